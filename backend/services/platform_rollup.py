"""
Platform-wide demographic rollup.

Sums the four follower maps (country, city, age, gender) key by key across
the latest snapshot of every user in scope. No city → state resolution, no
filters, no density: "what does the platform's audience look like overall".

Each resulting map is ordered by descending value; equal values keep the
order in which their keys were first seen.
"""

import logging
from typing import Iterable

from models.schemas import DemographicSnapshot, PlatformDemographicsAggregation

logger = logging.getLogger(__name__)

DIMENSIONS = ("country", "city", "age", "gender")


def aggregate_platform_demographics(
    snapshots: Iterable[DemographicSnapshot],
) -> PlatformDemographicsAggregation:
    totals: dict[str, dict[str, float]] = {dimension: {} for dimension in DIMENSIONS}
    snapshot_count = 0

    for snapshot in snapshots:
        snapshot_count += 1
        followers = snapshot.followers
        for dimension in DIMENSIONS:
            target = totals[dimension]
            for key, value in getattr(followers, dimension).items():
                target[key] = target.get(key, 0) + value

    logger.info(
        f"Platform rollup: {snapshot_count} snapshots, "
        + ", ".join(f"{d}={len(totals[d])} keys" for d in DIMENSIONS)
    )

    return PlatformDemographicsAggregation(
        **{dimension: sort_desc(totals[dimension]) for dimension in DIMENSIONS}
    )


def sort_desc(counts: dict[str, float]) -> dict[str, float]:
    # sorted() is stable, so ties keep first-seen order
    return dict(sorted(counts.items(), key=lambda item: item[1], reverse=True))
