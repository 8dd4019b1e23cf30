# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Base entity models with common fields and document conversion.
"""

from datetime import datetime, timezone
from typing import Any, Dict
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from bson import ObjectId


def generate_object_id() -> str:
    """Generate a new MongoDB ObjectId as string."""
    return str(ObjectId())


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class BaseEntity(BaseModel):
    """Base entity with common fields for all stored records."""

    model_config = ConfigDict(
        # Stored documents use camelCase keys
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        validate_assignment=True,
        arbitrary_types_allowed=True
    )

    id: str = Field(default_factory=generate_object_id, description="Unique identifier")
    created_at: datetime = Field(default_factory=utc_now, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=utc_now, description="Last update timestamp")

    def to_document(self) -> Dict[str, Any]:
        """Serialize the entity into a store document (camelCase keys)."""
        return self.model_dump(by_alias=True)

    @classmethod
    def from_document(cls, document: Dict[str, Any]):
        """Build an entity from a store document."""
        return cls.model_validate(document)

    def with_changes(self, **changes: Any):
        """
        Return a validated copy of this entity with the given field changes.

        Args:
            **changes: Field values keyed by python field name

        Returns:
            New entity instance; the original is left untouched
        """
        data = self.model_dump()
        data.update(changes)
        return type(self).model_validate(data)

    def document_fields(self, *fields: str) -> Dict[str, Any]:
        """Return the named fields as a camelCase partial document."""
        return self.model_dump(by_alias=True, include=set(fields))
