"""
Landing-page audience coverage by state.

For the community creators shown on the landing page, sums follower city
counts per state across their latest snapshots and returns the top states
with their share of the total. When snapshots also carry an engaged-audience
city map, the same is done for engaged followers.

Unlike the region aggregator there are no filters and no proportional
scaling: counts are summed as stored, and cities that do not resolve to a
state are ignored.
"""

import logging
from typing import Iterable, Optional

from models.schemas import CoverageRegion, DemographicSnapshot
from services.brazil_geo import region_for_state, resolve_state, state_label

logger = logging.getLogger(__name__)


def compute_coverage_regions(
    snapshots: Iterable[DemographicSnapshot],
    limit: int,
) -> list[CoverageRegion]:
    """
    Top `limit` states by follower count.

    share          = state followers / followers across all resolved states
    engaged_share  = state engaged followers / engaged total (None when absent)
    """
    followers_by_state: dict[str, float] = {}
    engaged_by_state: dict[str, float] = {}

    for snapshot in snapshots:
        demographics = snapshot.demographics
        _accumulate_cities(followers_by_state, demographics.follower_demographics.city)
        if demographics.engaged_audience_demographics is not None:
            _accumulate_cities(engaged_by_state, demographics.engaged_audience_demographics.city)

    total_followers = sum(followers_by_state.values())
    total_engaged = sum(engaged_by_state.values())

    ranked = sorted(followers_by_state.items(), key=lambda item: item[1], reverse=True)

    regions: list[CoverageRegion] = []
    for state, followers in ranked[:limit]:
        engaged: Optional[float] = engaged_by_state.get(state)
        regions.append(CoverageRegion(
            code=state,
            label=state_label(state),
            region=region_for_state(state),
            followers=followers,
            share=followers / total_followers if total_followers > 0 else 0.0,
            engaged_followers=engaged,
            engaged_share=engaged / total_engaged if engaged and total_engaged > 0 else None,
        ))

    logger.info(
        f"Coverage: {len(followers_by_state)} states with followers, "
        f"returning top {len(regions)}"
    )
    return regions


def _accumulate_cities(target: dict[str, float], cities: dict[str, float]) -> None:
    for city, count in cities.items():
        state = resolve_state(city)
        if state:
            target[state] = target.get(state, 0) + count
