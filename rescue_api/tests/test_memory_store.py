# SPDX-License-Identifier: Apache-2.0

"""
Tests for the in-memory entity store and the shared query matcher.
"""

import threading

import pytest

from rescue_api.services.memory_store import InMemoryStore
from rescue_api.services.store import (
    APPLICATIONS,
    DuplicateEntityError,
    StoreError,
    UniqueIndex,
    lookup,
    matches
)


class TestMatches:
    """Test the query predicate subset."""

    DOCUMENT = {"id": "1", "status": "adoptable", "age": 3, "location": {"district": "North"}, "vet": None}

    @pytest.mark.parametrize("query,expected", [
        ({}, True),
        ({"status": "adoptable"}, True),
        ({"status": "adopted"}, False),
        ({"location.district": "North"}, True),
        ({"location.city": None}, True),
        ({"missing": None}, True),
        ({"status": {"$in": ["treated", "adoptable"]}}, True),
        ({"status": {"$nin": ["adoptable"]}}, False),
        ({"status": {"$ne": "adopted"}}, True),
        ({"age": {"$gte": 3, "$lt": 5}}, True),
        ({"age": {"$gt": 3}}, False),
        ({"vet": {"$gt": 1}}, False),
    ])
    def test_predicates(self, query, expected):
        assert matches(self.DOCUMENT, query) is expected

    def test_embedded_document_equality(self):
        assert matches(self.DOCUMENT, {"location": {"district": "North"}})

    def test_unsupported_operator(self):
        with pytest.raises(StoreError):
            matches(self.DOCUMENT, {"age": {"$regex": "3"}})

    def test_lookup_through_scalar(self):
        assert lookup(self.DOCUMENT, "status.value") is None


class TestBasicOperations:
    """Test reads and writes."""

    def test_insert_requires_id(self, store):
        with pytest.raises(StoreError):
            store.insert("dogs", {"name": "Rex"})

    def test_insert_duplicate_id(self, store):
        store.insert("dogs", {"id": "1"})
        with pytest.raises(DuplicateEntityError):
            store.insert("dogs", {"id": "1"})

    def test_returned_documents_are_copies(self, store):
        store.insert("dogs", {"id": "1", "location": {"district": "North"}})
        document = store.get("dogs", "1")
        document["location"]["district"] = "South"

        assert store.get("dogs", "1")["location"]["district"] == "North"

    def test_sort_and_limit(self, store):
        store.insert("reports", {"id": "a", "rank": 1, "createdAt": 5})
        store.insert("reports", {"id": "b", "rank": 3, "createdAt": 1})
        store.insert("reports", {"id": "c", "rank": 1, "createdAt": 9})
        store.insert("reports", {"id": "d", "rank": None, "createdAt": 2})

        ordered = store.find("reports", sort=[("rank", -1), ("createdAt", -1)])
        assert [d["id"] for d in ordered] == ["b", "c", "a", "d"]

        ascending = store.find("reports", sort=[("rank", 1)], limit=2)
        assert [d["id"] for d in ascending][0] == "d"
        assert len(ascending) == 2

    def test_find_one_with_sort(self, store):
        store.insert("codes", {"id": "old", "owner": "x", "createdAt": 1})
        store.insert("codes", {"id": "new", "owner": "x", "createdAt": 2})

        assert store.find_one("codes", {"owner": "x"}, sort=[("createdAt", -1)])["id"] == "new"
        assert store.find_one("codes", {"owner": "y"}) is None

    def test_update_many_and_count(self, store):
        for i in range(3):
            store.insert("notifications", {"id": str(i), "accountId": "a", "isRead": i == 0})

        assert store.update_many("notifications", {"accountId": "a", "isRead": False}, {"isRead": True}) == 2
        assert store.count("notifications", {"isRead": True}) == 3

    def test_health_check(self, store):
        store.insert("dogs", {"id": "1"})
        health = store.health_check()
        assert health["status"] == "healthy"
        assert health["collections"] == {"dogs": 1}


class TestConditionalWrites:
    """Test compare-and-set semantics."""

    def test_update_applies_when_expected_matches(self, store):
        store.insert("dogs", {"id": "1", "status": "treated"})
        updated = store.update_where("dogs", "1", {"status": "treated"}, {"status": "adoptable"})
        assert updated["status"] == "adoptable"

    def test_update_refused_when_state_moved(self, store):
        store.insert("dogs", {"id": "1", "status": "adopted"})
        assert store.update_where("dogs", "1", {"status": "treated"}, {"status": "adoptable"}) is None
        assert store.get("dogs", "1")["status"] == "adopted"

    def test_update_missing_document(self, store):
        assert store.update_where("dogs", "missing", {}, {"status": "treated"}) is None

    def test_delete_where(self, store):
        store.insert("dogs", {"id": "1", "status": "adopted"})
        assert store.delete_where("dogs", "1", {"status": {"$ne": "adopted"}}) is False
        store.update_where("dogs", "1", {}, {"status": "treated"})
        assert store.delete_where("dogs", "1", {"status": {"$ne": "adopted"}}) is True
        assert store.get("dogs", "1") is None

    def test_only_one_concurrent_writer_wins(self, store):
        store.insert("dogs", {"id": "1", "status": "adoptable", "adopterId": None})
        winners = []
        barrier = threading.Barrier(8)

        def adopt(applicant):
            barrier.wait()
            if store.update_where("dogs", "1", {"status": "adoptable"},
                                  {"status": "adopted", "adopterId": applicant}):
                winners.append(applicant)

        threads = [threading.Thread(target=adopt, args=(f"applicant-{i}",)) for i in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(winners) == 1
        assert store.get("dogs", "1")["adopterId"] == winners[0]


class TestUniqueIndexes:
    """Test unique and partial unique indexes."""

    def test_unique_email(self, store):
        store.insert("accounts", {"id": "1", "email": "a@example.com"})
        with pytest.raises(DuplicateEntityError):
            store.insert("accounts", {"id": "2", "email": "a@example.com"})

    def test_partial_index_only_covers_active_applications(self, store):
        store.insert(APPLICATIONS, {"id": "1", "dogId": "d", "applicantId": "a", "isActive": False})
        store.insert(APPLICATIONS, {"id": "2", "dogId": "d", "applicantId": "a", "isActive": True})

        with pytest.raises(DuplicateEntityError):
            store.insert(APPLICATIONS, {"id": "3", "dogId": "d", "applicantId": "a", "isActive": True})
        store.insert(APPLICATIONS, {"id": "4", "dogId": "d", "applicantId": "b", "isActive": True})

    def test_reactivation_checked_on_update(self, store):
        store.insert(APPLICATIONS, {"id": "1", "dogId": "d", "applicantId": "a", "isActive": False})
        store.insert(APPLICATIONS, {"id": "2", "dogId": "d", "applicantId": "a", "isActive": True})

        with pytest.raises(DuplicateEntityError):
            store.update_where(APPLICATIONS, "1", {}, {"isActive": True})
        assert store.get(APPLICATIONS, "1")["isActive"] is False

    def test_custom_indexes(self):
        store = InMemoryStore(unique_indexes=[UniqueIndex("dogs", ("tag",))])
        store.insert("accounts", {"id": "1", "email": "a@example.com"})
        store.insert("accounts", {"id": "2", "email": "a@example.com"})
        store.insert("dogs", {"id": "1", "tag": "X"})
        with pytest.raises(DuplicateEntityError):
            store.insert("dogs", {"id": "2", "tag": "X"})


class TestTransactions:
    """Test all-or-nothing units of work."""

    def test_commit(self, store):
        with store.transaction() as tx:
            tx.insert("dogs", {"id": "1"})
            tx.insert("medical_records", {"id": "m1", "dogId": "1"})

        assert store.count("dogs") == 1
        assert store.count("medical_records") == 1

    def test_rollback_restores_every_collection(self, store):
        store.insert("dogs", {"id": "1", "status": "adoptable"})

        with pytest.raises(RuntimeError):
            with store.transaction() as tx:
                tx.update_where("dogs", "1", {}, {"status": "adopted"})
                tx.insert("adoption_applications", {"id": "a1", "dogId": "1", "applicantId": "x",
                                                    "isActive": False})
                raise RuntimeError("boom")

        assert store.get("dogs", "1")["status"] == "adoptable"
        assert store.count("adoption_applications") == 0

    def test_nested_failure_rolls_back_outer(self, store):
        with pytest.raises(DuplicateEntityError):
            with store.transaction() as tx:
                tx.insert("accounts", {"id": "1", "email": "a@example.com"})
                with tx.transaction() as inner:
                    inner.insert("accounts", {"id": "2", "email": "a@example.com"})

        assert store.count("accounts") == 0

    def test_clear(self, store):
        store.insert("dogs", {"id": "1"})
        store.clear()
        assert store.count("dogs") == 0
