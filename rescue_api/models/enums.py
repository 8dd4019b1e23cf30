# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Enumeration types for the rescue and adoption platform.
"""

from enum import Enum


class DogStatus(str, Enum):
    """Rescue case status enumeration."""
    REPORTED = "reported"
    IN_PROGRESS = "in_progress"
    TREATED = "treated"
    ADOPTABLE = "adoptable"
    ADOPTED = "adopted"


class TreatmentStatus(str, Enum):
    """Veterinary treatment status enumeration."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class DogGender(str, Enum):
    """Dog gender enumeration."""
    MALE = "male"
    FEMALE = "female"
    UNKNOWN = "unknown"


class DogSize(str, Enum):
    """Dog size enumeration."""
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class ReportStatus(str, Enum):
    """Rescue report status enumeration."""
    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Urgency(str, Enum):
    """Rescue report urgency levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# Triage order: lower rank is handled first
URGENCY_RANK = {
    Urgency.CRITICAL: 0,
    Urgency.HIGH: 1,
    Urgency.MEDIUM: 2,
    Urgency.LOW: 3,
}


class ApplicationStatus(str, Enum):
    """Adoption application status enumeration."""
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"


class AccountRole(str, Enum):
    """Account role enumeration."""
    PUBLIC = "public"
    VOLUNTEER = "volunteer"
    NGO_ADMIN = "ngo_admin"
    VETERINARIAN = "veterinarian"
    ADOPTER = "adopter"
    SUPERADMIN = "superadmin"


# Roles that need manual approval before they may log in
GATED_ROLES = (AccountRole.NGO_ADMIN, AccountRole.VETERINARIAN)

# Roles available through self-service registration
REGISTRABLE_ROLES = (
    AccountRole.PUBLIC,
    AccountRole.VOLUNTEER,
    AccountRole.NGO_ADMIN,
    AccountRole.VETERINARIAN,
    AccountRole.ADOPTER,
)


class VerificationStatus(str, Enum):
    """Account verification status enumeration."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class NotificationType(str, Enum):
    """In-app notification severity."""
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class MedicalRecordType(str, Enum):
    """Medical record type enumeration."""
    VACCINATION = "vaccination"
    STERILIZATION = "sterilization"
    TREATMENT = "treatment"
    CHECKUP = "checkup"
