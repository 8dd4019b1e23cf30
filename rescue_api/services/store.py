# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Entity store interface.

The store owns no behavior: it keeps documents per collection and exposes
atomic reads, conditional (compare-and-write) updates and a transaction
boundary. Documents use camelCase keys and carry their identifier under
"id". Query predicates use a small MongoDB-compatible subset: equality
plus the $in, $nin, $ne, $gt, $gte, $lt and $lte operators.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple

# Collection names
DOGS = "dogs"
REPORTS = "rescue_reports"
APPLICATIONS = "adoption_applications"
ACCOUNTS = "accounts"
RESET_CHALLENGES = "password_reset_challenges"
NOTIFICATIONS = "notifications"
MEDICAL_RECORDS = "medical_records"

ALL_COLLECTIONS = (
    DOGS, REPORTS, APPLICATIONS, ACCOUNTS, RESET_CHALLENGES, NOTIFICATIONS, MEDICAL_RECORDS
)

Sort = List[Tuple[str, int]]


class StoreError(Exception):
    """Base exception for entity store failures."""
    pass


class TransactionConflictError(StoreError):
    """Raised when a transaction aborts because of a concurrent write."""
    pass


class DuplicateEntityError(StoreError):
    """Raised when a write would violate a unique index."""

    def __init__(self, collection: str, fields: Tuple[str, ...]):
        super().__init__(f"Duplicate value for {', '.join(fields)} in {collection}")
        self.collection = collection
        self.fields = fields


@dataclass(frozen=True)
class UniqueIndex:
    """Uniqueness constraint, optionally limited to documents matching a filter."""
    collection: str
    fields: Tuple[str, ...]
    partial_filter: Optional[Dict[str, Any]] = None

    @property
    def name(self) -> str:
        return f"uniq_{'_'.join(self.fields)}"


UNIQUE_INDEXES = (
    UniqueIndex(ACCOUNTS, ("email",)),
    # One non-terminal application per (dog, applicant)
    UniqueIndex(APPLICATIONS, ("dogId", "applicantId"), {"isActive": True}),
)


class EntityStore(ABC):
    """
    Abstract document store used by every lifecycle service.

    Implementations must make each single-document operation atomic and
    make transaction() all-or-nothing across collections.
    """

    @abstractmethod
    def insert(self, collection: str, document: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert a document.

        Raises:
            DuplicateEntityError: If a unique index would be violated
        """

    @abstractmethod
    def get(self, collection: str, entity_id: str) -> Optional[Dict[str, Any]]:
        """Fetch a document by identifier."""

    @abstractmethod
    def find(
        self,
        collection: str,
        query: Optional[Dict[str, Any]] = None,
        sort: Optional[Sort] = None,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Find documents matching a predicate."""

    def find_one(
        self,
        collection: str,
        query: Dict[str, Any],
        sort: Optional[Sort] = None
    ) -> Optional[Dict[str, Any]]:
        """Find the first document matching a predicate."""
        documents = self.find(collection, query, sort=sort, limit=1)
        return documents[0] if documents else None

    @abstractmethod
    def update_where(
        self,
        collection: str,
        entity_id: str,
        expected: Dict[str, Any],
        changes: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """
        Conditionally update one document.

        Args:
            collection: Collection name
            entity_id: Document identifier
            expected: Predicate the current document must match
            changes: Fields to set

        Returns:
            Updated document, or None when no document matched
        """

    @abstractmethod
    def update_many(self, collection: str, query: Dict[str, Any], changes: Dict[str, Any]) -> int:
        """Set fields on every matching document; returns the match count."""

    @abstractmethod
    def delete_where(self, collection: str, entity_id: str, expected: Dict[str, Any]) -> bool:
        """Conditionally delete one document; returns whether it was deleted."""

    @abstractmethod
    def count(self, collection: str, query: Optional[Dict[str, Any]] = None) -> int:
        """Count matching documents."""

    @abstractmethod
    @contextmanager
    def transaction(self) -> Iterator['EntityStore']:
        """
        Open an all-or-nothing unit of work.

        Yields a store bound to the transaction. Leaving the block normally
        commits; an exception rolls every write back and propagates.
        """

    def ensure_indexes(self) -> None:
        """Create indexes backing uniqueness and query patterns."""

    @abstractmethod
    def health_check(self) -> Dict[str, Any]:
        """Report store health."""


def _compare(operator: str, actual: Any, operand: Any) -> bool:
    if operator == "$in":
        return actual in operand
    if operator == "$nin":
        return actual not in operand
    if operator == "$ne":
        return actual != operand
    if actual is None:
        return False
    if operator == "$gt":
        return actual > operand
    if operator == "$gte":
        return actual >= operand
    if operator == "$lt":
        return actual < operand
    if operator == "$lte":
        return actual <= operand
    raise StoreError(f"Unsupported query operator: {operator}")


def lookup(document: Dict[str, Any], key: str) -> Any:
    """Read a possibly dotted field path; missing fields read as None."""
    value: Any = document
    for part in key.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def matches(document: Dict[str, Any], query: Optional[Dict[str, Any]]) -> bool:
    """
    Evaluate a query predicate against a document.

    Missing fields compare as None, as they do in MongoDB equality matches.
    Dotted keys address fields of embedded documents.
    """
    for key, condition in (query or {}).items():
        actual = lookup(document, key)
        if isinstance(condition, dict) and condition and all(k.startswith("$") for k in condition):
            if not all(_compare(op, actual, operand) for op, operand in condition.items()):
                return False
        elif actual != condition:
            return False
    return True
