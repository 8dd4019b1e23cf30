# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Core entity models for the rescue and adoption platform.
"""

import re
from datetime import datetime
from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict
from .base import BaseEntity, utc_now
from .enums import (
    DogStatus,
    TreatmentStatus,
    DogGender,
    DogSize,
    ReportStatus,
    Urgency,
    URGENCY_RANK,
    ApplicationStatus,
    AccountRole,
    GATED_ROLES,
    VerificationStatus,
    NotificationType,
    MedicalRecordType
)

EMAIL_PATTERN = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'


class Location(BaseModel):
    """Geographic location of a sighting or rescue case."""

    model_config = ConfigDict(populate_by_name=True)

    lat: Optional[float] = Field(None, ge=-90, le=90, description="Latitude")
    lng: Optional[float] = Field(None, ge=-180, le=180, description="Longitude")
    address: Optional[str] = Field(None, max_length=500, description="Street address")
    district: Optional[str] = Field(None, max_length=200, description="District or neighbourhood")


class Dog(BaseEntity):
    """Rescue case entity."""

    name: str = Field(..., min_length=1, max_length=200, description="Dog name")
    breed: Optional[str] = Field(None, max_length=200, description="Breed or mix")
    estimated_age: Optional[str] = Field(None, max_length=100, description="Age estimate")
    gender: DogGender = Field(default=DogGender.UNKNOWN, description="Gender")
    size: Optional[DogSize] = Field(None, description="Size class")
    status: DogStatus = Field(default=DogStatus.REPORTED, description="Rescue case status")
    description: Optional[str] = Field(None, max_length=5000, description="Description")
    rescue_story: Optional[str] = Field(None, max_length=10000, description="Rescue story")
    location: Optional[Location] = Field(None, description="Where the dog was found")
    vaccinated: bool = Field(default=False, description="Vaccination flag")
    sterilized: bool = Field(default=False, description="Sterilization flag")
    medical_notes: Optional[str] = Field(None, max_length=5000, description="Free-text medical notes")
    photos: List[str] = Field(default_factory=list, max_length=10, description="Photo URLs")
    created_by: Optional[str] = Field(None, description="Owning organization account ID")
    assigned_vet: Optional[str] = Field(None, description="Assigned veterinarian account ID")
    treatment_status: Optional[TreatmentStatus] = Field(None, description="Treatment progress")
    adopter_id: Optional[str] = Field(None, description="Adopter account ID")
    adopted_at: Optional[datetime] = Field(None, description="Adoption timestamp")
    from_report_id: Optional[str] = Field(None, description="Report this case was promoted from")

    @model_validator(mode='after')
    def validate_adopter(self):
        """An adopter is recorded exactly when the dog is adopted."""
        adopted = self.status == DogStatus.ADOPTED
        if adopted != (self.adopter_id is not None):
            raise ValueError('adopter_id must be set if and only if status is adopted')
        return self

    def is_adopted(self) -> bool:
        """Check if the dog reached the terminal adopted state."""
        return self.status == DogStatus.ADOPTED

    def can_accept_applications(self) -> bool:
        """Check if adoption applications may be submitted for this dog."""
        return self.status == DogStatus.ADOPTABLE


class RescueReport(BaseEntity):
    """Citizen-submitted sighting report."""

    description: str = Field(..., min_length=20, max_length=5000, description="Sighting description")
    urgency: Urgency = Field(default=Urgency.MEDIUM, description="Urgency level")
    urgency_rank: int = Field(default=URGENCY_RANK[Urgency.MEDIUM], description="Triage sort key")
    status: ReportStatus = Field(default=ReportStatus.PENDING, description="Report status")
    reported_by: str = Field(default="Anonymous", max_length=200, description="Reporter name")
    reporter_id: Optional[str] = Field(None, description="Reporter account ID when logged in")
    contact_phone: Optional[str] = Field(None, max_length=50, description="Reporter contact phone")
    location: Optional[Location] = Field(None, description="Sighting location")
    photos: List[str] = Field(default_factory=list, max_length=10, description="Photo URLs")
    assigned_to: Optional[str] = Field(None, description="Assigned volunteer account ID")
    dog_id: Optional[str] = Field(None, description="Dog created from this report")

    @model_validator(mode='before')
    @classmethod
    def derive_urgency_rank(cls, data: Any) -> Any:
        """Keep the triage rank in step with the urgency."""
        if isinstance(data, dict):
            data = dict(data)
            data.pop('urgencyRank', None)
            urgency = data.get('urgency') or Urgency.MEDIUM
            try:
                data['urgency_rank'] = URGENCY_RANK[Urgency(urgency)]
            except ValueError:
                # Left to field validation to report the bad urgency
                pass
        return data

    def is_terminal(self) -> bool:
        """Check if the report reached a terminal state."""
        return self.status in (ReportStatus.COMPLETED, ReportStatus.CANCELLED)


class AdoptionApplication(BaseEntity):
    """Request by an account to adopt a specific dog."""

    dog_id: str = Field(..., description="Dog ID")
    applicant_id: str = Field(..., description="Applicant account ID")
    ngo_id: Optional[str] = Field(None, description="Organization that owned the dog at submission")
    applicant_phone: str = Field(..., min_length=6, max_length=50, description="Contact phone")
    home_type: str = Field(..., min_length=2, max_length=100, description="Home type")
    has_yard: bool = Field(default=False, description="Whether the home has a yard")
    other_pets: str = Field(default="", max_length=1000, description="Other pets in the household")
    experience: str = Field(..., min_length=5, max_length=5000, description="Experience with dogs")
    reason: str = Field(..., min_length=5, max_length=5000, description="Motivation for adopting")
    status: ApplicationStatus = Field(default=ApplicationStatus.PENDING, description="Application status")
    is_active: bool = Field(default=True, description="True while the application is non-terminal")
    submitted_at: datetime = Field(default_factory=utc_now, description="Submission timestamp")
    reviewed_at: Optional[datetime] = Field(None, description="Review timestamp")
    reviewed_by: Optional[str] = Field(None, description="Reviewer account ID")
    notes: Optional[str] = Field(None, max_length=2000, description="Reviewer notes")

    @model_validator(mode='after')
    def validate_active_flag(self):
        """The active flag mirrors whether the status is terminal."""
        terminal = self.status in (ApplicationStatus.APPROVED, ApplicationStatus.REJECTED)
        if self.is_active == terminal:
            raise ValueError('is_active must be false exactly for terminal applications')
        return self


class Account(BaseEntity):
    """Registered identity with role and verification sub-state."""

    email: str = Field(..., description="Email address")
    name: str = Field(..., min_length=1, max_length=200, description="Full name")
    password_hash: str = Field(..., description="Hashed password")
    role: AccountRole = Field(default=AccountRole.PUBLIC, description="Account role")
    phone: Optional[str] = Field(None, max_length=50, description="Contact phone")
    organization_name: Optional[str] = Field(None, max_length=200, description="Organization or clinic name")
    avatar_url: Optional[str] = Field(None, description="Profile picture URL")
    verification_status: Optional[VerificationStatus] = Field(None, description="Verification gate state")
    verification_document_url: Optional[str] = Field(None, description="Submitted verification document")
    verified_at: Optional[datetime] = Field(None, description="Verification decision timestamp")
    verified_by: Optional[str] = Field(None, description="Superadmin who decided verification")
    rejection_reason: Optional[str] = Field(None, max_length=1000, description="Verification rejection reason")
    last_login: Optional[datetime] = Field(None, description="Last login timestamp")

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        """Validate email format."""
        if not re.match(EMAIL_PATTERN, v.lower()):
            raise ValueError('Invalid email format')
        return v.lower()

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        """Validate account name."""
        if not v.strip():
            raise ValueError('Name cannot be empty')
        return v.strip()

    def is_gated(self) -> bool:
        """Check if the role requires manual verification."""
        return self.role in GATED_ROLES

    def is_superadmin(self) -> bool:
        """Check if the account is a superadmin."""
        return self.role == AccountRole.SUPERADMIN

    def to_public_dict(self) -> Dict[str, Any]:
        """Account representation without credential material."""
        document = self.model_dump(mode='json', by_alias=True, exclude={'password_hash'})
        return document


class PasswordResetChallenge(BaseEntity):
    """Single-use, time-boxed password reset code."""

    account_id: str = Field(..., description="Account ID")
    email: str = Field(..., description="Email the code was sent to")
    code_hash: str = Field(..., description="SHA-256 of the one-time code")
    expires_at: datetime = Field(..., description="Expiry timestamp")
    used: bool = Field(default=False, description="Whether the code was consumed or invalidated")
    used_at: Optional[datetime] = Field(None, description="Consumption timestamp")
    attempts: int = Field(default=0, ge=0, description="Failed confirmation attempts")


class Notification(BaseEntity):
    """In-app notification addressed to one account."""

    account_id: str = Field(..., description="Recipient account ID")
    title: str = Field(..., min_length=1, max_length=200, description="Notification title")
    message: str = Field(..., min_length=1, max_length=2000, description="Notification message")
    type: NotificationType = Field(default=NotificationType.INFO, description="Severity")
    link: Optional[str] = Field(None, max_length=500, description="Deep link")
    is_read: bool = Field(default=False, description="Read flag")


class MedicalRecord(BaseEntity):
    """Medical event recorded by a veterinarian."""

    dog_id: str = Field(..., description="Dog ID")
    vet_id: str = Field(..., description="Veterinarian account ID")
    record_type: MedicalRecordType = Field(..., description="Record type")
    description: str = Field(..., min_length=1, max_length=5000, description="What was done")
    medications: Optional[str] = Field(None, max_length=2000, description="Medications given")
    next_follow_up: Optional[datetime] = Field(None, description="Next follow-up date")


class ActorContext(BaseModel):
    """Authenticated caller for request processing."""

    account_id: str = Field(..., description="Authenticated account ID")
    role: AccountRole = Field(..., description="Account role")
    email: Optional[str] = Field(None, description="Account email")
    name: Optional[str] = Field(None, description="Display name")
    token_payload: Optional[Dict[str, Any]] = Field(None, description="Original JWT payload")
    ip_address: Optional[str] = Field(None, description="Client IP address")
    user_agent: Optional[str] = Field(None, description="Client user agent")

    def has_role(self, *roles: AccountRole) -> bool:
        """Check if the actor holds any of the given roles."""
        return self.role in roles

    def is_superadmin(self) -> bool:
        """Check if the actor is a superadmin."""
        return self.role == AccountRole.SUPERADMIN

    @classmethod
    def from_account(cls, account: Account, **request_info: Any) -> 'ActorContext':
        """Build an actor context for an account."""
        return cls(
            account_id=account.id,
            role=account.role,
            email=account.email,
            name=account.name,
            **request_info
        )
