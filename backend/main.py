"""
Creator Audience Region service — FastAPI application.

Wires the snapshot selector and the aggregators into read-only endpoints:

  GET /api/admin/audience/regions
    1. Validate filters (gender, ageRange | minAge/maxAge, region, agencyId)
    2. Resolve users in scope (agency / active plan predicate)
    3. Fetch the latest snapshot per user (one aggregation query)
    4. Redistribute city counts into states (region_aggregator.py)
    5. Sort by count and return StateBreakdown list

  GET /api/admin/users/{user_id}/audience/regions
    Same aggregation for one user's latest snapshot, keyed by state code.

  GET /api/admin/users/{user_id}/demographics
    Latest follower demographics of one user (null when none).

  GET /api/admin/audience/platform-demographics
    Key-wise sums of the four demographic maps over active users (platform_rollup.py).

  GET /api/landing/coverage/regions
    Top states by follower count for community creators (coverage.py).

Results are cached per filter combination in the injected TTLCache.

Error handling:
  - Invalid filter / id → 400
  - Any failure while aggregating (MongoDB unavailable, query error) → 500 "Aggregation failed"
  - No users / no snapshots → 200 with empty results
"""

import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional, TypeVar

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pymongo.database import Database

import config
from models.schemas import (
    AudienceDemographics,
    CoverageRegion,
    PlatformDemographicsAggregation,
    RegionSummaryResponse,
    StateBreakdown,
)
from services.brazil_geo import STATE_LABELS
from services.cache import TTLCache, build_cache_key
from services.coverage import compute_coverage_regions
from services.database import close_client, get_database
from services.errors import FilterValidationError
from services.filters import RegionFilters, build_region_filters, parse_object_id
from services.platform_rollup import aggregate_platform_demographics
from services.region_aggregator import aggregate_audience_by_region
from services.snapshots import (
    COMMUNITY_COVERAGE_QUERY,
    build_user_query,
    fetch_latest_snapshots,
    fetch_user_snapshot,
    resolve_user_ids,
)

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Shared aggregation cache (overridable through the get_cache dependency)
# ---------------------------------------------------------------------------
_aggregation_cache = TTLCache(maxsize=config.CACHE_MAX_SIZE, ttl=config.CACHE_TTL_SECONDS)


def get_cache() -> TTLCache:
    return _aggregation_cache


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    close_client()


app = FastAPI(
    title="Creator Audience Region Service",
    description="Audience heatmap, platform demographics and coverage aggregations",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ===========================================================================
# GET /api/admin/audience/regions — creator heatmap
# ===========================================================================

@app.get(
    "/api/admin/audience/regions",
    response_model=RegionSummaryResponse,
    response_model_exclude_none=True,
)
def region_summary(
    gender: Optional[str] = Query(None),
    age_range: Optional[str] = Query(None, alias="ageRange"),
    min_age: Optional[str] = Query(None, alias="minAge"),
    max_age: Optional[str] = Query(None, alias="maxAge"),
    region: Optional[str] = Query(None),
    agency_id: Optional[str] = Query(None, alias="agencyId"),
    only_active: bool = Query(False, alias="onlyActiveSubscribers"),
    density_only: bool = Query(False, alias="densityOnly"),
    db: Database = Depends(get_database),
    cache: TTLCache = Depends(get_cache),
):
    """
    Follower estimates per state across every user in scope.

    Pipeline steps:
      1. Validate filters
      2. Resolve users (agency / active plan)
      3. Fetch latest snapshots
      4. Aggregate by region (densityOnly drops per-state gender/age maps)
      5. Sort by count descending
    """
    # ------------------------------------------------------------------
    # Step 1: Validate filters
    # ------------------------------------------------------------------
    try:
        filters = build_region_filters(gender, age_range, min_age, max_age, region)
        agency = parse_object_id(agency_id, "agencyId")
    except FilterValidationError as e:
        raise _bad_request(e)

    cache_key = build_cache_key("admin:regions", {
        **filters.as_dict(),
        "agency_id": agency_id,
        "only_active": only_active,
        "density_only": density_only,
    })

    # ------------------------------------------------------------------
    # Steps 2-4: Resolve users → fetch snapshots → aggregate
    # ------------------------------------------------------------------
    def compute() -> list[StateBreakdown]:
        user_ids = resolve_user_ids(db, build_user_query(agency, only_active))
        snapshots = fetch_latest_snapshots(db, user_ids)
        return _aggregate_regions(snapshots, filters, include_breakdowns=not density_only)

    states = _run_cached(cache, cache_key, compute, "region summary")

    # ------------------------------------------------------------------
    # Step 5: Sort for display
    # ------------------------------------------------------------------
    ordered = sorted(states, key=lambda s: s.count, reverse=True)

    return RegionSummaryResponse(
        status="success",
        filters={
            **filters.as_dict(),
            "agency_id": agency_id,
            "only_active_subscribers": only_active,
            "density_only": density_only,
        },
        states=ordered,
        summary={
            "total_states": len(ordered),
            "total_followers": sum(s.count for s in ordered),
        },
    )


# ===========================================================================
# GET /api/admin/users/{user_id}/audience/regions — one creator's heatmap
# ===========================================================================

@app.get(
    "/api/admin/users/{user_id}/audience/regions",
    response_model=dict[str, StateBreakdown],
    response_model_exclude_none=True,
)
def user_region_summary(
    user_id: str,
    gender: Optional[str] = Query(None),
    age_range: Optional[str] = Query(None, alias="ageRange"),
    min_age: Optional[str] = Query(None, alias="minAge"),
    max_age: Optional[str] = Query(None, alias="maxAge"),
    region: Optional[str] = Query(None),
    db: Database = Depends(get_database),
    cache: TTLCache = Depends(get_cache),
):
    """State breakdowns for a single user's latest snapshot, keyed by state code."""
    try:
        user = parse_object_id(user_id, "userId")
        filters = build_region_filters(gender, age_range, min_age, max_age, region)
    except FilterValidationError as e:
        raise _bad_request(e)
    if user is None:
        raise _bad_request(FilterValidationError("Invalid or missing userId."))

    cache_key = build_cache_key("admin:user-regions", {"user_id": user_id, **filters.as_dict()})

    def compute() -> list[StateBreakdown]:
        snapshots = fetch_latest_snapshots(db, [user])
        return _aggregate_regions(snapshots, filters, include_breakdowns=True)

    states = _run_cached(cache, cache_key, compute, f"region summary for user {user_id}")
    return {s.state: s for s in states}


# ===========================================================================
# GET /api/admin/users/{user_id}/demographics — latest raw demographics
# ===========================================================================

@app.get(
    "/api/admin/users/{user_id}/demographics",
    response_model=Optional[AudienceDemographics],
)
def user_demographics(
    user_id: str,
    db: Database = Depends(get_database),
):
    try:
        user = parse_object_id(user_id, "userId")
    except FilterValidationError as e:
        raise _bad_request(e)
    if user is None:
        raise _bad_request(FilterValidationError("Invalid or missing userId."))

    try:
        snapshot = fetch_user_snapshot(db, user)
    except Exception as e:
        logger.error(f"Failed to load demographics for user {user_id}: {e}")
        raise _aggregation_failed()

    return snapshot.demographics if snapshot is not None else None


# ===========================================================================
# GET /api/admin/audience/platform-demographics — platform rollup
# ===========================================================================

@app.get(
    "/api/admin/audience/platform-demographics",
    response_model=PlatformDemographicsAggregation,
)
def platform_demographics(
    db: Database = Depends(get_database),
    cache: TTLCache = Depends(get_cache),
):
    """Summed country/city/age/gender maps across all active users."""
    cache_key = build_cache_key("admin:platform-demographics", {"only_active": True})

    def compute() -> PlatformDemographicsAggregation:
        user_ids = resolve_user_ids(db, build_user_query(only_active=True))
        snapshots = fetch_latest_snapshots(db, user_ids)
        return aggregate_platform_demographics(snapshots)

    return _run_cached(cache, cache_key, compute, "platform demographics")


# ===========================================================================
# GET /api/landing/coverage/regions — landing-page coverage widget
# ===========================================================================

@app.get("/api/landing/coverage/regions", response_model=list[CoverageRegion])
def coverage_regions(
    limit: int = Query(config.COVERAGE_REGION_LIMIT),
    db: Database = Depends(get_database),
    cache: TTLCache = Depends(get_cache),
):
    if limit < 1 or limit > len(STATE_LABELS):
        raise _bad_request(FilterValidationError(
            f"Invalid limit. Must be between 1 and {len(STATE_LABELS)}."
        ))

    cache_key = build_cache_key("landing:coverage-regions", {"limit": limit})

    def compute() -> list[CoverageRegion]:
        user_ids = resolve_user_ids(db, COMMUNITY_COVERAGE_QUERY)
        snapshots = fetch_latest_snapshots(db, user_ids, require_city=True)
        return compute_coverage_regions(snapshots, limit)

    return _run_cached(cache, cache_key, compute, "coverage regions")


# ===========================================================================
# GET /api/health
# ===========================================================================

@app.get("/api/health")
def health(cache: TTLCache = Depends(get_cache)):
    return {"status": "ok", "cache": cache.stats()}


# ===========================================================================
# Helpers
# ===========================================================================

def _aggregate_regions(snapshots, filters: RegionFilters, include_breakdowns: bool) -> list[StateBreakdown]:
    return aggregate_audience_by_region(
        snapshots,
        gender=filters.gender,
        age_range=filters.age_range,
        states=filters.states,
        include_breakdowns=include_breakdowns,
    )


def _run_cached(cache: TTLCache, key: str, compute: Callable[[], T], label: str) -> T:
    """
    Serve from cache or compute. Any failure while computing becomes a 500
    with a generic message; nothing partial is returned or cached.
    """
    try:
        value, hit = cache.wrap(key, compute)
    except Exception as e:
        logger.error(f"Failed to aggregate {label}: {e}")
        raise _aggregation_failed()

    logger.info(f"{label}: cache {'hit' if hit else 'miss'} ({key})")
    return value


def _bad_request(error: FilterValidationError) -> HTTPException:
    return HTTPException(
        status_code=400,
        detail={"status": "error", "message": str(error)},
    )


def _aggregation_failed() -> HTTPException:
    return HTTPException(
        status_code=500,
        detail={"status": "error", "message": "Aggregation failed"},
    )


# ===========================================================================
# Main entry point
# ===========================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
