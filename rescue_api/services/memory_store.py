# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
In-memory entity store for development and testing.

All operations run under one re-entrant lock, so every conditional write is
a true compare-and-set. Transactions hold the lock for their whole duration
and restore a snapshot of every collection if the block raises.
"""

import copy
import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence

from .store import (
    DuplicateEntityError,
    EntityStore,
    Sort,
    StoreError,
    UNIQUE_INDEXES,
    UniqueIndex,
    lookup,
    matches
)

logger = logging.getLogger(__name__)


def _sort_value(value: Any):
    # None sorts before any other value, as in MongoDB ascending order
    return (value is not None, value)


class InMemoryStore(EntityStore):
    """Entity store backed by dictionaries, with optional unique indexes."""

    def __init__(self, unique_indexes: Sequence[UniqueIndex] = UNIQUE_INDEXES):
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._unique_indexes = list(unique_indexes)
        self._lock = threading.RLock()
        self._transaction_depth = 0

    def _collection(self, name: str) -> Dict[str, Dict[str, Any]]:
        return self._collections.setdefault(name, {})

    def _check_unique(self, collection: str, document: Dict[str, Any], exclude_id: Optional[str] = None) -> None:
        for index in self._unique_indexes:
            if index.collection != collection:
                continue
            if index.partial_filter and not matches(document, index.partial_filter):
                continue
            key = tuple(lookup(document, field) for field in index.fields)
            for other_id, other in self._collection(collection).items():
                if other_id == exclude_id:
                    continue
                if index.partial_filter and not matches(other, index.partial_filter):
                    continue
                if tuple(lookup(other, field) for field in index.fields) == key:
                    raise DuplicateEntityError(collection, index.fields)

    def insert(self, collection: str, document: Dict[str, Any]) -> Dict[str, Any]:
        if "id" not in document:
            raise StoreError("Documents must carry an id")
        with self._lock:
            items = self._collection(collection)
            if document["id"] in items:
                raise DuplicateEntityError(collection, ("id",))
            self._check_unique(collection, document)
            items[document["id"]] = copy.deepcopy(document)
            logger.debug(f"Inserted document {document['id']} into {collection}")
            return copy.deepcopy(document)

    def get(self, collection: str, entity_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            document = self._collection(collection).get(entity_id)
            return copy.deepcopy(document) if document is not None else None

    def find(
        self,
        collection: str,
        query: Optional[Dict[str, Any]] = None,
        sort: Optional[Sort] = None,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        with self._lock:
            documents = [
                copy.deepcopy(document)
                for document in self._collection(collection).values()
                if matches(document, query)
            ]

        # Stable sorts applied from the least significant key
        for field, direction in reversed(sort or []):
            documents.sort(key=lambda d: _sort_value(lookup(d, field)), reverse=direction < 0)

        if limit is not None:
            documents = documents[:limit]
        return documents

    def update_where(
        self,
        collection: str,
        entity_id: str,
        expected: Dict[str, Any],
        changes: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        with self._lock:
            current = self._collection(collection).get(entity_id)
            if current is None or not matches(current, expected):
                logger.debug(f"Conditional update matched no document {entity_id} in {collection}")
                return None

            updated = {**current, **copy.deepcopy(changes)}
            self._check_unique(collection, updated, exclude_id=entity_id)
            self._collection(collection)[entity_id] = updated
            return copy.deepcopy(updated)

    def update_many(self, collection: str, query: Dict[str, Any], changes: Dict[str, Any]) -> int:
        with self._lock:
            matched = [
                entity_id for entity_id, document in self._collection(collection).items()
                if matches(document, query)
            ]
            for entity_id in matched:
                self._collection(collection)[entity_id].update(copy.deepcopy(changes))
            return len(matched)

    def delete_where(self, collection: str, entity_id: str, expected: Dict[str, Any]) -> bool:
        with self._lock:
            current = self._collection(collection).get(entity_id)
            if current is None or not matches(current, expected):
                return False
            del self._collection(collection)[entity_id]
            return True

    def count(self, collection: str, query: Optional[Dict[str, Any]] = None) -> int:
        with self._lock:
            return sum(1 for document in self._collection(collection).values() if matches(document, query))

    @contextmanager
    def transaction(self) -> Iterator[EntityStore]:
        with self._lock:
            snapshot = copy.deepcopy(self._collections)
            self._transaction_depth += 1
            try:
                yield self
            except BaseException:
                self._collections = snapshot
                logger.debug("In-memory transaction rolled back")
                raise
            finally:
                self._transaction_depth -= 1

    def health_check(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "status": "healthy",
                "backend": "memory",
                "collections": {name: len(items) for name, items in self._collections.items()}
            }

    def clear(self) -> None:
        """Drop every collection."""
        with self._lock:
            self._collections = {}
