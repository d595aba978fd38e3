"""
Tests for services/snapshots.py — user predicates, the latest-snapshot
pipeline and the in-memory latest-per-user pass.

MongoDB is replaced by the `fake_db` MagicMock fixture (see conftest.py).
"""

import sys
import os
import pytest
from datetime import datetime, timezone

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from bson import ObjectId
from pymongo.errors import ServerSelectionTimeoutError

import config
from models.schemas import DemographicSnapshot
from services.errors import AggregationError, SnapshotFetchError
from services.snapshots import (
    COMMUNITY_COVERAGE_QUERY,
    build_user_query,
    fetch_latest_snapshots,
    fetch_user_snapshot,
    latest_snapshot_pipeline,
    resolve_user_ids,
    select_latest_per_user,
)


# ===========================================================================
# Test helpers
# ===========================================================================

USER_A = ObjectId("64b7f0c2a1b2c3d4e5f60001")
USER_B = ObjectId("64b7f0c2a1b2c3d4e5f60002")


def at(day: int) -> datetime:
    return datetime(2026, 3, day, 12, 0, tzinfo=timezone.utc)


def make_snapshot(user, recorded_at=None, snapshot_id=None, city=None):
    return DemographicSnapshot(
        _id=snapshot_id,
        user=user,
        recordedAt=recorded_at,
        demographics={"follower_demographics": {"city": city or {}}},
    )


def grouped_doc(user, recorded_at, city, snapshot_id=None):
    """Shape of one $group output document."""
    return {
        "_id": user,
        "snapshotId": snapshot_id or ObjectId(),
        "recordedAt": recorded_at,
        "demographics": {"follower_demographics": {"city": city}},
    }


# ===========================================================================
# 1. User predicates
# ===========================================================================

class TestUserQuery:

    def test_no_predicate(self):
        assert build_user_query() == {}

    def test_active_and_agency(self):
        agency = ObjectId()
        assert build_user_query(agency, only_active=True) == {
            "planStatus": "active",
            "agency": agency,
        }

    def test_empty_query_means_all_users(self, fake_db):
        db, collections = fake_db
        assert resolve_user_ids(db, {}) is None
        collections[config.USER_COLLECTION].find.assert_not_called()

    def test_resolves_ids(self, fake_db):
        db, collections = fake_db
        users = collections[config.USER_COLLECTION]
        users.find.return_value = [{"_id": USER_A}, {"_id": USER_B}]

        assert resolve_user_ids(db, {"planStatus": "active"}) == [USER_A, USER_B]
        users.find.assert_called_once_with({"planStatus": "active"}, {"_id": 1})

    def test_no_matching_users(self, fake_db):
        db, _ = fake_db
        assert resolve_user_ids(db, COMMUNITY_COVERAGE_QUERY) == []

    def test_driver_error_is_wrapped(self, fake_db):
        db, collections = fake_db
        collections[config.USER_COLLECTION].find.side_effect = ServerSelectionTimeoutError("down")
        with pytest.raises(SnapshotFetchError):
            resolve_user_ids(db, {"planStatus": "active"})


# ===========================================================================
# 2. Pipeline
# ===========================================================================

class TestLatestSnapshotPipeline:

    def test_all_users(self):
        pipeline = latest_snapshot_pipeline()
        assert pipeline[0] == {"$sort": {"recordedAt": -1, "_id": -1}}
        assert pipeline[1]["$group"]["_id"] == "$user"
        assert pipeline[1]["$group"]["demographics"] == {"$first": "$demographics"}
        assert pipeline[-1] == {"$sort": {"_id": 1}}

    def test_user_scope_and_city_requirement(self):
        pipeline = latest_snapshot_pipeline([USER_A], require_city=True)
        assert pipeline[0] == {
            "$match": {
                "user": {"$in": [USER_A]},
                "demographics.follower_demographics.city": {"$exists": True},
            }
        }

    def test_sort_precedes_group(self):
        stages = [next(iter(stage)) for stage in latest_snapshot_pipeline([USER_A])]
        assert stages == ["$match", "$sort", "$group", "$sort"]


# ===========================================================================
# 3. select_latest_per_user
# ===========================================================================

class TestSelectLatestPerUser:

    def test_keeps_most_recent(self):
        old = make_snapshot("a", at(1), city={"Recife": 1})
        new = make_snapshot("a", at(5), city={"Natal": 1})
        result = select_latest_per_user([new, old])
        assert result == [new]

    def test_one_per_user_in_first_seen_order(self):
        snaps = [
            make_snapshot("b", at(1)),
            make_snapshot("a", at(1)),
            make_snapshot("b", at(3)),
        ]
        result = select_latest_per_user(snaps)
        assert [s.user for s in result] == ["b", "a"]
        assert result[0].recorded_at == at(3)

    def test_tie_broken_by_larger_id(self):
        low = make_snapshot("a", at(2), snapshot_id="64b7f0c2a1b2c3d4e5f60010")
        high = make_snapshot("a", at(2), snapshot_id="64b7f0c2a1b2c3d4e5f60020")
        assert select_latest_per_user([high, low]) == [high]
        assert select_latest_per_user([low, high]) == [high]

    def test_full_tie_keeps_later_one(self):
        first = make_snapshot("a", at(2), city={"Recife": 1})
        second = make_snapshot("a", at(2), city={"Natal": 1})
        assert select_latest_per_user([first, second]) == [second]

    def test_undated_loses_to_dated(self):
        dated = make_snapshot("a", at(1))
        undated = make_snapshot("a", None)
        assert select_latest_per_user([dated, undated]) == [dated]

    def test_empty(self):
        assert select_latest_per_user([]) == []


# ===========================================================================
# 4. fetch_latest_snapshots / fetch_user_snapshot
# ===========================================================================

class TestFetchLatestSnapshots:

    def test_empty_scope_skips_query(self, fake_db):
        db, collections = fake_db
        assert fetch_latest_snapshots(db, []) == []
        collections[config.SNAPSHOT_COLLECTION].aggregate.assert_not_called()

    def test_parses_grouped_documents(self, fake_db):
        db, collections = fake_db
        snaps = collections[config.SNAPSHOT_COLLECTION]
        snaps.aggregate.return_value = [
            grouped_doc(USER_A, at(4), {"São Paulo": 10}),
            grouped_doc(USER_B, at(2), {"Recife": 5}),
        ]

        result = fetch_latest_snapshots(db, [USER_A, USER_B])

        assert [s.user for s in result] == [str(USER_A), str(USER_B)]
        assert result[0].followers.city == {"São Paulo": 10}
        pipeline = snaps.aggregate.call_args[0][0]
        assert pipeline[0] == {"$match": {"user": {"$in": [USER_A, USER_B]}}}

    def test_only_latest_snapshot_per_user_survives(self, fake_db):
        db, collections = fake_db
        collections[config.SNAPSHOT_COLLECTION].aggregate.return_value = [
            grouped_doc(USER_A, at(1), {"Recife": 100}),
            grouped_doc(USER_A, at(9), {"Natal": 7}),
        ]
        result = fetch_latest_snapshots(db)
        assert len(result) == 1
        assert result[0].followers.city == {"Natal": 7}

    def test_malformed_documents_are_skipped(self, fake_db):
        db, collections = fake_db
        collections[config.SNAPSHOT_COLLECTION].aggregate.return_value = [
            grouped_doc(None, at(1), {"Recife": 1}),
            grouped_doc(USER_B, at(1), {"Recife": "lots", "Natal": 3}),
        ]
        result = fetch_latest_snapshots(db)
        assert [s.user for s in result] == [str(USER_B)]
        assert result[0].followers.city == {"Natal": 3}

    def test_driver_error_is_an_aggregation_error(self, fake_db):
        db, collections = fake_db
        collections[config.SNAPSHOT_COLLECTION].aggregate.side_effect = ServerSelectionTimeoutError("down")
        with pytest.raises(AggregationError):
            fetch_latest_snapshots(db, [USER_A])

    def test_user_snapshot(self, fake_db):
        db, collections = fake_db
        snaps = collections[config.SNAPSHOT_COLLECTION]
        snaps.find_one.return_value = {
            "_id": ObjectId(),
            "user": USER_A,
            "recordedAt": at(3),
            "demographics": {"follower_demographics": {"gender": {"F": 3}}},
        }

        snapshot = fetch_user_snapshot(db, USER_A)

        assert snapshot.followers.gender == {"F": 3}
        snaps.find_one.assert_called_once_with(
            {"user": USER_A}, sort=[("recordedAt", -1), ("_id", -1)]
        )

    def test_user_without_snapshot(self, fake_db):
        db, _ = fake_db
        assert fetch_user_snapshot(db, USER_A) is None
