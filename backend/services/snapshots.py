"""
Snapshot selector — one latest demographic snapshot per user.

Pipeline:
  1. build_user_query(...)        → MongoDB filter on the users collection (tenant / plan predicate)
  2. resolve_user_ids(db, query)  → list of user ObjectIds, or None for "all users"
  3. fetch_latest_snapshots(db, user_ids)
       → one aggregation round trip ($match → $sort → $group $first)
       → documents parsed into DemographicSnapshot
       → select_latest_per_user() as the final pass

Latest rule (pipeline and in-memory pass agree):
  - greatest recordedAt wins
  - equal recordedAt → greater snapshot _id wins
  - still equal (in memory only) → the one seen later wins
Snapshots without recordedAt lose to any dated snapshot.

Users with no snapshots simply do not appear. Data-store errors are raised
as SnapshotFetchError; nothing is retried.
"""

import logging
from typing import Any, Iterable, Optional

from bson import ObjectId
from pydantic import ValidationError
from pymongo.database import Database
from pymongo.errors import PyMongoError

import config
from models.schemas import DemographicSnapshot
from services.errors import SnapshotFetchError

logger = logging.getLogger(__name__)

ACTIVE_PLAN_STATUS = "active"

# Users shown on the public coverage widget
COMMUNITY_COVERAGE_QUERY: dict[str, Any] = {
    "communityInspirationOptIn": True,
    "isInstagramConnected": True,
}


# ===========================================================================
# User predicates
# ===========================================================================

def build_user_query(
    agency_id: Optional[ObjectId] = None,
    only_active: bool = False,
) -> dict[str, Any]:
    """Users-collection filter for a tenant scope; {} means every user."""
    query: dict[str, Any] = {}
    if only_active:
        query["planStatus"] = ACTIVE_PLAN_STATUS
    if agency_id is not None:
        query["agency"] = agency_id
    return query


def resolve_user_ids(db: Database, query: dict[str, Any]) -> Optional[list[ObjectId]]:
    """
    Resolve a users-collection filter to user ids.

    Returns None for an empty query (no restriction) so the snapshot
    pipeline can skip the $match on user; returns [] when nobody matches.
    """
    if not query:
        return None

    try:
        cursor = db[config.USER_COLLECTION].find(query, {"_id": 1})
        user_ids = [doc["_id"] for doc in cursor]
    except PyMongoError as e:
        logger.error(f"Failed to resolve users for {query}: {e}")
        raise SnapshotFetchError(f"Could not load users: {e}") from e

    logger.info(f"Resolved {len(user_ids)} users for query {query}")
    return user_ids


# ===========================================================================
# Snapshot retrieval
# ===========================================================================

def latest_snapshot_pipeline(
    user_ids: Optional[list[ObjectId]] = None,
    require_city: bool = False,
) -> list[dict[str, Any]]:
    """Aggregation pipeline returning one document per user with its latest snapshot."""
    match: dict[str, Any] = {}
    if user_ids is not None:
        match["user"] = {"$in": list(user_ids)}
    if require_city:
        match["demographics.follower_demographics.city"] = {"$exists": True}

    pipeline: list[dict[str, Any]] = []
    if match:
        pipeline.append({"$match": match})
    pipeline.extend([
        {"$sort": {"recordedAt": -1, "_id": -1}},
        {
            "$group": {
                "_id": "$user",
                "snapshotId": {"$first": "$_id"},
                "recordedAt": {"$first": "$recordedAt"},
                "demographics": {"$first": "$demographics"},
            }
        },
        {"$sort": {"_id": 1}},
    ])
    return pipeline


def fetch_latest_snapshots(
    db: Database,
    user_ids: Optional[list[ObjectId]] = None,
    require_city: bool = False,
) -> list[DemographicSnapshot]:
    """
    Fetch the latest snapshot of every user in user_ids (all users when None).

    Raises:
        SnapshotFetchError: if the aggregation query fails.
    """
    if user_ids is not None and not user_ids:
        logger.info("No users in scope, skipping snapshot query")
        return []

    pipeline = latest_snapshot_pipeline(user_ids, require_city=require_city)
    try:
        docs = list(db[config.SNAPSHOT_COLLECTION].aggregate(pipeline, allowDiskUse=True))
    except PyMongoError as e:
        logger.error(f"Snapshot aggregation failed: {e}")
        raise SnapshotFetchError(f"Could not load demographic snapshots: {e}") from e

    snapshots = [
        snapshot
        for snapshot in (_parse_grouped(doc) for doc in docs)
        if snapshot is not None
    ]
    latest = select_latest_per_user(snapshots)

    logger.info(
        f"Fetched {len(latest)} latest snapshots "
        f"({len(docs)} grouped documents, scope="
        f"{'all users' if user_ids is None else f'{len(user_ids)} users'})"
    )
    return latest


def fetch_user_snapshot(db: Database, user_id: ObjectId) -> Optional[DemographicSnapshot]:
    """Latest snapshot of a single user, or None when the user has none."""
    try:
        doc = db[config.SNAPSHOT_COLLECTION].find_one(
            {"user": user_id},
            sort=[("recordedAt", -1), ("_id", -1)],
        )
    except PyMongoError as e:
        logger.error(f"Snapshot lookup failed for user {user_id}: {e}")
        raise SnapshotFetchError(f"Could not load demographic snapshot: {e}") from e

    if doc is None:
        return None
    return _parse_document(doc)


def select_latest_per_user(
    snapshots: Iterable[DemographicSnapshot],
) -> list[DemographicSnapshot]:
    """
    Keep exactly one snapshot per user, applying the latest rule.

    Output keeps the order in which each user was first seen.
    """
    latest: dict[str, DemographicSnapshot] = {}
    for snapshot in snapshots:
        current = latest.get(snapshot.user)
        if current is None or _recency_key(snapshot) >= _recency_key(current):
            latest[snapshot.user] = snapshot
    return list(latest.values())


# ===========================================================================
# Private helpers
# ===========================================================================

def _recency_key(snapshot: DemographicSnapshot) -> tuple[int, float, str]:
    if snapshot.recorded_at is None:
        return (0, 0.0, snapshot.id or "")
    return (1, snapshot.recorded_at.timestamp(), snapshot.id or "")


def _parse_grouped(doc: dict[str, Any]) -> Optional[DemographicSnapshot]:
    """$group output → DemographicSnapshot (the group _id is the user)."""
    return _parse_document({
        "_id": doc.get("snapshotId"),
        "user": doc.get("_id"),
        "recordedAt": doc.get("recordedAt"),
        "demographics": doc.get("demographics"),
    })


def _parse_document(doc: dict[str, Any]) -> Optional[DemographicSnapshot]:
    try:
        return DemographicSnapshot.model_validate(doc)
    except ValidationError as e:
        logger.warning(
            f"Skipping malformed snapshot {doc.get('_id')} "
            f"(user={doc.get('user')}): {e.error_count()} validation error(s)"
        )
        return None
