# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
MongoDB entity store with connection pooling and multi-document transactions.

Documents keep their identifier under "_id" as an ObjectId; callers only see
the string "id" key. Transactions need a replica set or sharded cluster.
"""

import copy
import os
import logging
from contextlib import contextmanager
from typing import List, Dict, Optional, Any, Iterator
from pymongo import MongoClient, ASCENDING, DESCENDING, ReturnDocument
from pymongo.client_session import ClientSession
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import (
    ConnectionFailure,
    ServerSelectionTimeoutError,
    DuplicateKeyError,
    OperationFailure
)
from bson import ObjectId
from bson.errors import InvalidId

from .store import (
    ACCOUNTS,
    APPLICATIONS,
    DOGS,
    MEDICAL_RECORDS,
    NOTIFICATIONS,
    REPORTS,
    RESET_CHALLENGES,
    DuplicateEntityError,
    EntityStore,
    Sort,
    StoreError,
    TransactionConflictError,
    UNIQUE_INDEXES
)

logger = logging.getLogger(__name__)


def _to_mongo(document: Dict[str, Any]) -> Dict[str, Any]:
    """Move the string "id" key to an ObjectId "_id"."""
    stored = dict(document)
    stored["_id"] = _object_id(stored.pop("id"))
    return stored


def _from_mongo(document: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if document is None:
        return None
    document["id"] = str(document.pop("_id"))
    return document


def _object_id(entity_id: str) -> ObjectId:
    try:
        return ObjectId(entity_id)
    except (InvalidId, TypeError):
        raise ValueError(f"Invalid ObjectId format: {entity_id}")


def _duplicate_fields(collection: str, error: DuplicateKeyError) -> tuple:
    key_pattern = (error.details or {}).get("keyPattern") or {}
    if key_pattern:
        return tuple(field for field in key_pattern if field != "_id") or ("id",)
    for index in UNIQUE_INDEXES:
        if index.collection == collection and index.name in str(error):
            return index.fields
    return ("id",)


# Non-unique indexes backing the list and triage queries
QUERY_INDEXES = {
    DOGS: [
        [("status", ASCENDING), ("createdAt", DESCENDING)],
        [("createdBy", ASCENDING), ("createdAt", DESCENDING)],
        [("assignedVet", ASCENDING)],
    ],
    REPORTS: [
        [("urgencyRank", ASCENDING), ("createdAt", DESCENDING)],
        [("assignedTo", ASCENDING), ("status", ASCENDING)],
        [("reporterId", ASCENDING)],
    ],
    APPLICATIONS: [
        [("applicantId", ASCENDING), ("submittedAt", DESCENDING)],
        [("ngoId", ASCENDING), ("status", ASCENDING), ("submittedAt", DESCENDING)],
    ],
    ACCOUNTS: [
        [("role", ASCENDING), ("verificationStatus", ASCENDING)],
    ],
    RESET_CHALLENGES: [
        [("accountId", ASCENDING), ("used", ASCENDING), ("createdAt", DESCENDING)],
    ],
    NOTIFICATIONS: [
        [("accountId", ASCENDING), ("isRead", ASCENDING), ("createdAt", DESCENDING)],
    ],
    MEDICAL_RECORDS: [
        [("dogId", ASCENDING), ("createdAt", DESCENDING)],
    ],
}


class MongoDBStore(EntityStore):
    """MongoDB implementation of the entity store."""

    def __init__(self, connection_string: str = None, database_name: str = None):
        """Initialize MongoDB store with connection pooling."""
        self.connection_string = connection_string or os.getenv(
            'MONGODB_URI',
            'mongodb://localhost:27017/rescue_dev'
        )
        self.database_name = database_name or os.getenv('MONGODB_DATABASE', 'rescue_dev')
        self._client: Optional[MongoClient] = None
        self._database: Optional[Database] = None
        self._session: Optional[ClientSession] = None

        # Connection pool settings
        self.max_pool_size = int(os.getenv('MONGODB_MAX_POOL_SIZE', '10'))
        self.min_pool_size = int(os.getenv('MONGODB_MIN_POOL_SIZE', '1'))
        self.max_idle_time_ms = int(os.getenv('MONGODB_MAX_IDLE_TIME_MS', '30000'))
        self.server_selection_timeout_ms = int(os.getenv('MONGODB_SERVER_SELECTION_TIMEOUT_MS', '5000'))

        logger.info(f"MongoDB store initialized for database: {self.database_name}")

    @property
    def client(self) -> MongoClient:
        """Get MongoDB client with connection pooling."""
        if self._client is None:
            try:
                self._client = MongoClient(
                    self.connection_string,
                    maxPoolSize=self.max_pool_size,
                    minPoolSize=self.min_pool_size,
                    maxIdleTimeMS=self.max_idle_time_ms,
                    serverSelectionTimeoutMS=self.server_selection_timeout_ms,
                    retryWrites=True,
                    retryReads=True,
                    tz_aware=True
                )
                self._client.admin.command('ping')
                logger.info("MongoDB connection established successfully")
            except (ConnectionFailure, ServerSelectionTimeoutError) as e:
                logger.error(f"Failed to connect to MongoDB: {e}")
                raise
        return self._client

    @property
    def database(self) -> Database:
        """Get MongoDB database."""
        if self._database is None:
            self._database = self.client[self.database_name]
        return self._database

    def get_collection(self, collection_name: str) -> Collection:
        """Get MongoDB collection."""
        return self.database[collection_name]

    def close_connection(self) -> None:
        """Close MongoDB connection."""
        if self._client:
            self._client.close()
            self._client = None
            self._database = None
            logger.info("MongoDB connection closed")

    def _bind(self, session: ClientSession) -> 'MongoDBStore':
        """Return a view of this store whose operations run inside a session."""
        bound = copy.copy(self)
        bound._session = session
        return bound

    # Entity store operations

    def insert(self, collection: str, document: Dict[str, Any]) -> Dict[str, Any]:
        try:
            self.get_collection(collection).insert_one(_to_mongo(document), session=self._session)
            logger.debug(f"Created document in {collection}: {document['id']}")
            return dict(document)
        except DuplicateKeyError as e:
            logger.warning(f"Duplicate key error in {collection}: {e}")
            raise DuplicateEntityError(collection, _duplicate_fields(collection, e))

    def get(self, collection: str, entity_id: str) -> Optional[Dict[str, Any]]:
        try:
            object_id = _object_id(entity_id)
        except ValueError:
            logger.debug(f"Invalid document ID {entity_id} for {collection}")
            return None
        document = self.get_collection(collection).find_one({"_id": object_id}, session=self._session)
        return _from_mongo(document)

    def find(
        self,
        collection: str,
        query: Optional[Dict[str, Any]] = None,
        sort: Optional[Sort] = None,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        cursor = self.get_collection(collection).find(query or {}, session=self._session)
        if sort:
            cursor = cursor.sort(sort)
        if limit:
            cursor = cursor.limit(limit)
        documents = [_from_mongo(document) for document in cursor]
        logger.debug(f"Found {len(documents)} documents in {collection}")
        return documents

    def update_where(
        self,
        collection: str,
        entity_id: str,
        expected: Dict[str, Any],
        changes: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        try:
            object_id = _object_id(entity_id)
        except ValueError:
            return None

        updates = {key: value for key, value in changes.items() if key != "id"}
        try:
            document = self.get_collection(collection).find_one_and_update(
                {"_id": object_id, **expected},
                {"$set": updates},
                return_document=ReturnDocument.AFTER,
                session=self._session
            )
        except DuplicateKeyError as e:
            raise DuplicateEntityError(collection, _duplicate_fields(collection, e))

        if document is None:
            logger.debug(f"Conditional update matched no document {entity_id} in {collection}")
        return _from_mongo(document)

    def update_many(self, collection: str, query: Dict[str, Any], changes: Dict[str, Any]) -> int:
        result = self.get_collection(collection).update_many(query, {"$set": changes}, session=self._session)
        return result.matched_count

    def delete_where(self, collection: str, entity_id: str, expected: Dict[str, Any]) -> bool:
        try:
            object_id = _object_id(entity_id)
        except ValueError:
            return False
        result = self.get_collection(collection).delete_one({"_id": object_id, **expected}, session=self._session)
        if result.deleted_count > 0:
            logger.info(f"Deleted document {entity_id} in {collection}")
            return True
        return False

    def count(self, collection: str, query: Optional[Dict[str, Any]] = None) -> int:
        return self.get_collection(collection).count_documents(query or {}, session=self._session)

    @contextmanager
    def transaction(self) -> Iterator[EntityStore]:
        if self._session is not None:
            # Already inside a transaction; join it
            yield self
            return
        try:
            with self.client.start_session() as session:
                with session.start_transaction():
                    yield self._bind(session)
        except OperationFailure as e:
            if e.has_error_label("TransientTransactionError"):
                raise TransactionConflictError(str(e)) from e
            raise

    # Index management

    def ensure_indexes(self) -> None:
        """Create unique and query indexes for all collections."""
        try:
            logger.info("Creating MongoDB indexes...")
            for index in UNIQUE_INDEXES:
                options: Dict[str, Any] = {"unique": True, "name": index.name}
                if index.partial_filter:
                    options["partialFilterExpression"] = index.partial_filter
                self.get_collection(index.collection).create_index(
                    [(field, ASCENDING) for field in index.fields], **options
                )
            for collection, indexes in QUERY_INDEXES.items():
                for keys in indexes:
                    self.get_collection(collection).create_index(keys)
            logger.info("MongoDB indexes created successfully")
        except Exception as e:
            logger.error(f"Failed to create MongoDB indexes: {e}")
            raise StoreError(f"Failed to create indexes: {e}") from e

    def health_check(self) -> Dict[str, Any]:
        """Check MongoDB connection health."""
        try:
            result = self.client.admin.command('ping')
            server_info = self.client.server_info()
            return {
                'status': 'healthy',
                'backend': 'mongodb',
                'ping': result.get('ok') == 1,
                'version': server_info.get('version'),
                'database': self.database_name,
                'connection_pool_size': self.max_pool_size
            }
        except Exception as e:
            logger.error(f"MongoDB health check failed: {e}")
            return {
                'status': 'unhealthy',
                'backend': 'mongodb',
                'error': str(e),
                'database': self.database_name
            }


def create_store() -> EntityStore:
    """
    Build the entity store selected by STORE_BACKEND.

    "mongodb" (default) connects to MONGODB_URI; "memory" keeps everything
    in process and is meant for development and tests.
    """
    backend = os.getenv('STORE_BACKEND', 'mongodb').lower()
    if backend == 'memory':
        from .memory_store import InMemoryStore
        logger.warning("Using in-memory entity store; data is lost on restart")
        return InMemoryStore()
    if backend != 'mongodb':
        raise StoreError(f"Unknown STORE_BACKEND: {backend}")

    store = MongoDBStore()
    store.ensure_indexes()
    return store
