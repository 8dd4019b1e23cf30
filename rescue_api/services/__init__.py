# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Services package - Persistence, orchestration and external integrations.
"""

from .store import EntityStore, StoreError, DuplicateEntityError, TransactionConflictError
from .memory_store import InMemoryStore
from .mongodb import MongoDBStore, create_store
from .amqp import EventPublisher, AMQPConfig, PublishResult, create_event_publisher

__all__ = [
    "EntityStore",
    "StoreError",
    "DuplicateEntityError",
    "TransactionConflictError",
    "InMemoryStore",
    "MongoDBStore",
    "create_store",
    "EventPublisher",
    "AMQPConfig",
    "PublishResult",
    "create_event_publisher"
]
