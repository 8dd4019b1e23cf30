# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Models package - Pydantic schemas and data models for the rescue platform.
"""

# Base models
from .base import BaseEntity, generate_object_id, utc_now

# Enumerations
from .enums import (
    DogStatus,
    TreatmentStatus,
    DogGender,
    DogSize,
    ReportStatus,
    Urgency,
    ApplicationStatus,
    AccountRole,
    VerificationStatus,
    NotificationType,
    MedicalRecordType,
    GATED_ROLES,
    REGISTRABLE_ROLES,
    URGENCY_RANK
)

# Core entities
from .entities import (
    Location,
    Dog,
    RescueReport,
    AdoptionApplication,
    Account,
    PasswordResetChallenge,
    Notification,
    MedicalRecord,
    ActorContext
)

__all__ = [
    "BaseEntity",
    "generate_object_id",
    "utc_now",
    "DogStatus",
    "TreatmentStatus",
    "DogGender",
    "DogSize",
    "ReportStatus",
    "Urgency",
    "ApplicationStatus",
    "AccountRole",
    "VerificationStatus",
    "NotificationType",
    "MedicalRecordType",
    "GATED_ROLES",
    "REGISTRABLE_ROLES",
    "URGENCY_RANK",
    "Location",
    "Dog",
    "RescueReport",
    "AdoptionApplication",
    "Account",
    "PasswordResetChallenge",
    "Notification",
    "MedicalRecord",
    "ActorContext",
]
