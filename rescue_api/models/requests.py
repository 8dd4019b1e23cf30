# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request models for API endpoints.

Request bodies use camelCase keys on the wire; python code reads the
snake_case field names.
"""

import re
from datetime import datetime
from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from .entities import Location, EMAIL_PATTERN
from .enums import (
    DogStatus,
    DogGender,
    DogSize,
    TreatmentStatus,
    ReportStatus,
    Urgency,
    ApplicationStatus,
    AccountRole,
    REGISTRABLE_ROLES,
    MedicalRecordType
)


class RequestModel(BaseModel):
    """Base model for API request bodies."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        str_strip_whitespace=True
    )


def _normalize_email(v: str) -> str:
    if not re.match(EMAIL_PATTERN, v.lower()):
        raise ValueError('Invalid email format')
    return v.lower()


# Dogs

class CreateDogRequest(RequestModel):
    """Request model for creating a rescue case."""

    name: str = Field(..., min_length=1, max_length=200, description="Dog name")
    breed: Optional[str] = Field(None, max_length=200, description="Breed or mix")
    estimated_age: Optional[str] = Field(None, max_length=100, description="Age estimate")
    gender: DogGender = Field(default=DogGender.UNKNOWN, description="Gender")
    size: Optional[DogSize] = Field(None, description="Size class")
    description: Optional[str] = Field(None, min_length=10, max_length=5000, description="Description")
    rescue_story: Optional[str] = Field(None, max_length=10000, description="Rescue story")
    location: Optional[Location] = Field(None, description="Where the dog was found")
    vaccinated: bool = Field(default=False, description="Vaccination flag")
    sterilized: bool = Field(default=False, description="Sterilization flag")
    medical_notes: Optional[str] = Field(None, max_length=5000, description="Medical notes")
    photos: List[str] = Field(default_factory=list, max_length=10, description="Photo URLs")


class UpdateDogRequest(RequestModel):
    """
    Partial update for a rescue case.

    Only fields present in the request are applied; absent fields keep their
    stored value.
    """

    name: Optional[str] = Field(None, min_length=1, max_length=200, description="Dog name")
    breed: Optional[str] = Field(None, max_length=200, description="Breed or mix")
    estimated_age: Optional[str] = Field(None, max_length=100, description="Age estimate")
    gender: Optional[DogGender] = Field(None, description="Gender")
    size: Optional[DogSize] = Field(None, description="Size class")
    status: Optional[DogStatus] = Field(None, description="Rescue case status")
    description: Optional[str] = Field(None, min_length=10, max_length=5000, description="Description")
    rescue_story: Optional[str] = Field(None, max_length=10000, description="Rescue story")
    location: Optional[Location] = Field(None, description="Location")
    vaccinated: Optional[bool] = Field(None, description="Vaccination flag")
    sterilized: Optional[bool] = Field(None, description="Sterilization flag")
    medical_notes: Optional[str] = Field(None, max_length=5000, description="Medical notes")
    photos: Optional[List[str]] = Field(None, max_length=10, description="Photo URLs")

    @field_validator('status')
    @classmethod
    def validate_status(cls, v):
        """Adoption is only reachable through application approval."""
        if v == DogStatus.ADOPTED:
            raise ValueError('Dogs can only be marked adopted by approving an adoption application')
        return v

    def changes(self) -> Dict[str, Any]:
        """Return only the fields the caller explicitly sent."""
        return self.model_dump(exclude_unset=True)


class AssignVetRequest(RequestModel):
    """Request model for assigning or unassigning a veterinarian."""

    vet_id: Optional[str] = Field(None, description="Veterinarian account ID, null to unassign")


class TreatmentStatusRequest(RequestModel):
    """Request model for updating treatment progress."""

    treatment_status: TreatmentStatus = Field(..., description="New treatment status")


class MedicalRecordRequest(RequestModel):
    """Request model for recording a medical event."""

    record_type: MedicalRecordType = Field(..., description="Record type")
    description: str = Field(..., min_length=1, max_length=5000, description="What was done")
    medications: Optional[str] = Field(None, max_length=2000, description="Medications given")
    next_follow_up: Optional[datetime] = Field(None, description="Next follow-up date")


# Reports

class SubmitReportRequest(RequestModel):
    """Request model for a citizen sighting report."""

    description: str = Field(..., min_length=20, max_length=5000, description="Sighting description")
    urgency: Urgency = Field(default=Urgency.MEDIUM, description="Urgency level")
    reported_by: str = Field(default="Anonymous", min_length=1, max_length=200, description="Reporter name")
    contact_phone: Optional[str] = Field(None, max_length=50, description="Contact phone")
    location: Optional[Location] = Field(None, description="Sighting location")
    photos: List[str] = Field(default_factory=list, max_length=10, description="Photo URLs")


class ReportStatusRequest(RequestModel):
    """Request model for moving a report through its lifecycle."""

    status: ReportStatus = Field(..., description="New report status")


class AssignReportRequest(RequestModel):
    """Request model for assigning a report to a volunteer."""

    volunteer_id: str = Field(..., min_length=1, description="Volunteer account ID")


# Adoptions

class AdoptionApplicationRequest(RequestModel):
    """Request model for submitting an adoption application."""

    dog_id: str = Field(..., min_length=1, description="Dog ID")
    applicant_phone: str = Field(..., min_length=6, max_length=50, description="Contact phone")
    home_type: str = Field(..., min_length=2, max_length=100, description="Home type")
    has_yard: bool = Field(default=False, description="Whether the home has a yard")
    other_pets: str = Field(default="", max_length=1000, description="Other pets")
    experience: str = Field(..., min_length=5, max_length=5000, description="Experience with dogs")
    reason: str = Field(..., min_length=5, max_length=5000, description="Motivation for adopting")


class ApplicationDecisionRequest(RequestModel):
    """Request model for reviewing an adoption application."""

    status: ApplicationStatus = Field(..., description="Decision")
    notes: Optional[str] = Field(None, max_length=2000, description="Reviewer notes")

    @field_validator('status')
    @classmethod
    def validate_decision(cls, v):
        """Applications cannot be moved back to pending."""
        if v == ApplicationStatus.PENDING:
            raise ValueError('Decision must be under_review, approved or rejected')
        return v


# Accounts

class RegisterRequest(RequestModel):
    """Request model for self-service registration."""

    email: str = Field(..., description="Email address")
    password: str = Field(..., min_length=8, description="Password")
    name: str = Field(..., min_length=2, max_length=200, description="Full name")
    role: AccountRole = Field(default=AccountRole.PUBLIC, description="Requested role")
    phone: Optional[str] = Field(None, min_length=6, max_length=50, description="Contact phone")
    organization: Optional[str] = Field(None, min_length=2, max_length=200, description="Organization or clinic")
    verification_document: Optional[str] = Field(
        None,
        description="Verification document as a URL or base64 data for gated roles"
    )

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        """Validate email format."""
        return _normalize_email(v)

    @field_validator('role')
    @classmethod
    def validate_role(cls, v):
        """Superadmin accounts cannot be self-registered."""
        if v not in REGISTRABLE_ROLES:
            raise ValueError(f'Role {v} cannot be registered')
        return v


class LoginRequest(RequestModel):
    """Request model for login."""

    email: str = Field(..., description="Email address")
    password: str = Field(..., min_length=1, description="Password")

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        """Validate email format."""
        return _normalize_email(v)


class RejectAccountRequest(RequestModel):
    """Request model for rejecting a pending verification."""

    reason: str = Field(..., min_length=3, max_length=1000, description="Rejection reason")


class ForgotPasswordRequest(RequestModel):
    """Request model for starting a password reset."""

    email: str = Field(..., description="Email address")

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        """Validate email format."""
        return _normalize_email(v)


class ResetPasswordRequest(RequestModel):
    """Request model for completing a password reset."""

    email: str = Field(..., description="Email address")
    otp: str = Field(..., pattern=r'^\d{6}$', description="Six digit one-time code")
    new_password: str = Field(..., min_length=8, description="New password")

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        """Validate email format."""
        return _normalize_email(v)


# Profile and volunteer management

class UpdateProfileRequest(RequestModel):
    """
    Self-service profile edit.

    Changing the password requires the current password.
    """

    name: Optional[str] = Field(None, min_length=2, max_length=200, description="Full name")
    phone: Optional[str] = Field(None, min_length=6, max_length=50, description="Contact phone")
    organization: Optional[str] = Field(None, min_length=2, max_length=200, description="Organization or clinic")
    avatar: Optional[str] = Field(None, description="Profile picture as a URL or base64 data")
    current_password: Optional[str] = Field(None, description="Current password")
    new_password: Optional[str] = Field(None, min_length=8, description="New password")

    def changes(self) -> Dict[str, Any]:
        """Fields present in the request."""
        return self.model_dump(exclude_unset=True)


class CreateVolunteerRequest(RequestModel):
    """Request model for a superadmin creating a volunteer account."""

    email: str = Field(..., description="Email address")
    password: str = Field(..., min_length=8, description="Initial password")
    name: str = Field(..., min_length=2, max_length=200, description="Full name")
    phone: Optional[str] = Field(None, min_length=6, max_length=50, description="Contact phone")
    organization: Optional[str] = Field(None, min_length=2, max_length=200, description="Organization")

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        """Validate email format."""
        return _normalize_email(v)


class UpdateVolunteerRequest(RequestModel):
    """Partial update of a volunteer account."""

    email: Optional[str] = Field(None, description="Email address")
    password: Optional[str] = Field(None, min_length=8, description="New password")
    name: Optional[str] = Field(None, min_length=2, max_length=200, description="Full name")
    phone: Optional[str] = Field(None, min_length=6, max_length=50, description="Contact phone")
    organization: Optional[str] = Field(None, min_length=2, max_length=200, description="Organization")

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        """Validate email format."""
        return _normalize_email(v) if v is not None else v

    def changes(self) -> Dict[str, Any]:
        """Fields present in the request."""
        return self.model_dump(exclude_unset=True)


# Path parameters

class DogPath(BaseModel):
    """Path parameters for dog endpoints."""

    dog_id: str = Field(..., description="Dog ID")


class ReportPath(BaseModel):
    """Path parameters for report endpoints."""

    report_id: str = Field(..., description="Report ID")


class ApplicationPath(BaseModel):
    """Path parameters for adoption application endpoints."""

    application_id: str = Field(..., description="Application ID")


class AccountPath(BaseModel):
    """Path parameters for account verification endpoints."""

    account_id: str = Field(..., description="Account ID")


class NotificationPath(BaseModel):
    """Path parameters for notification endpoints."""

    notification_id: str = Field(..., description="Notification ID")


class NgoPath(BaseModel):
    """Path parameters for organization endpoints."""

    ngo_id: str = Field(..., description="Organization account ID")


class VolunteerPath(BaseModel):
    """Path parameters for volunteer endpoints."""

    volunteer_id: str = Field(..., description="Volunteer account ID")
