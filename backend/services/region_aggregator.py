"""
Proportional redistribution of follower counts into Brazilian states.

Snapshots only carry independent per-dimension breakdowns: city counts are
not cross-tabulated with gender or age. To answer "how many female followers
does this creator have in SP?" each snapshot's city counts are scaled by the
share of its followers matching the filter, assuming the demographic split is
uniform across the snapshot's cities. This is an estimate by construction.

Per snapshot:
  1. demographic_proportion() → scalar in [0, 1], default 1.0
       gender filter + non-empty, non-zero-sum gender map → gender[code] / sum(gender)
       else age filter + non-empty, non-zero-sum age map  → age[band] / sum(age)
       filtered code absent from a usable map               → 0.0 (snapshot contributes nothing)
       map missing / empty / zero-sum                       → 1.0 (filter has no effect)
  2. For each (city_label, count) in the city map:
       estimated = count * proportion; skip when 0
       resolve city → state; skip when unknown or outside the state filter
       add estimated to the state total and to the city total
  3. Breakdown variant: the snapshot's unfiltered gender/age maps are added to
     each city it contributed to, and once to each state it contributed to.

Finalization (after every snapshot):
  - density = count / population for states with a known reference population
    (computed before rounding)
  - every state and city count is rounded half-up to an integer; intermediate
    sums stay fractional so small contributions do not accumulate rounding bias

States are returned in the order they were first touched. Callers sort.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import AbstractSet, Iterable, Mapping, Optional

from models.schemas import (
    CityBreakdown,
    DemographicBreakdown,
    DemographicSnapshot,
    StateBreakdown,
)
from services.brazil_geo import STATE_POPULATION, resolve_state

logger = logging.getLogger(__name__)


@dataclass
class _CityAccumulator:
    count: float = 0.0
    gender: dict[str, float] = field(default_factory=dict)
    age: dict[str, float] = field(default_factory=dict)


@dataclass
class _StateAccumulator:
    count: float = 0.0
    gender: dict[str, float] = field(default_factory=dict)
    age: dict[str, float] = field(default_factory=dict)
    cities: dict[str, _CityAccumulator] = field(default_factory=dict)


# ===========================================================================
# Public API
# ===========================================================================

def aggregate_audience_by_region(
    snapshots: Iterable[DemographicSnapshot],
    gender: Optional[str] = None,
    age_range: Optional[str] = None,
    states: Optional[AbstractSet[str]] = None,
    include_breakdowns: bool = True,
    populations: Mapping[str, int] = STATE_POPULATION,
) -> list[StateBreakdown]:
    """
    Aggregate latest snapshots into per-state follower estimates.

    Args:
        snapshots:          One snapshot per user (already latest-per-user)
        gender:             Gender code filter (takes precedence over age_range)
        age_range:          Age band filter, e.g. "18-24"
        states:             Allowed state codes; None keeps every resolved state
        include_breakdowns: False → density-only variant (no gender/age maps)
        populations:        Reference population per state for density

    Returns:
        StateBreakdown list in first-touched order, counts rounded.
    """
    accumulators: dict[str, _StateAccumulator] = {}
    snapshot_count = 0
    unresolved_cities = 0

    for snapshot in snapshots:
        snapshot_count += 1
        followers = snapshot.followers
        proportion = demographic_proportion(followers, gender=gender, age_range=age_range)
        states_touched: set[str] = set()

        for city_label, count in followers.city.items():
            estimated = count * proportion
            if estimated == 0:
                continue

            state = resolve_state(city_label)
            if state is None:
                unresolved_cities += 1
                logger.debug(f"Skipping unresolved city '{city_label}' (user {snapshot.user})")
                continue
            if states is not None and state not in states:
                continue

            bucket = accumulators.setdefault(state, _StateAccumulator())
            bucket.count += estimated
            city = bucket.cities.setdefault(city_label, _CityAccumulator())
            city.count += estimated

            if include_breakdowns:
                _add_counts(city.gender, followers.gender)
                _add_counts(city.age, followers.age)
                if state not in states_touched:
                    _add_counts(bucket.gender, followers.gender)
                    _add_counts(bucket.age, followers.age)
            states_touched.add(state)

    result = _finalize(accumulators, include_breakdowns, populations)

    logger.info(
        f"Region aggregation: {snapshot_count} snapshots → {len(result)} states "
        f"(gender={gender}, age_range={age_range}, "
        f"state_filter={'none' if states is None else len(states)}, "
        f"unresolved city entries={unresolved_cities})"
    )
    return result


def demographic_proportion(
    followers: DemographicBreakdown,
    gender: Optional[str] = None,
    age_range: Optional[str] = None,
) -> float:
    """
    Estimated share of a snapshot's followers matching the filter.

    An absent code in a usable map yields 0.0, while a missing or zero-sum
    map yields 1.0. Both behaviours are relied on by callers.
    """
    if gender:
        total = sum(followers.gender.values())
        if followers.gender and total > 0:
            return followers.gender.get(gender, 0) / total

    if age_range:
        total = sum(followers.age.values())
        if followers.age and total > 0:
            return followers.age.get(age_range, 0) / total

    return 1.0


def round_half_up(value: float) -> int:
    """Nearest integer, .5 rounding up (counts are never negative)."""
    return int(math.floor(value + 0.5))


# ===========================================================================
# Private helpers
# ===========================================================================

def _add_counts(target: dict[str, float], source: Mapping[str, float]) -> None:
    for key, value in source.items():
        target[key] = target.get(key, 0) + value


def _finalize(
    accumulators: dict[str, _StateAccumulator],
    include_breakdowns: bool,
    populations: Mapping[str, int],
) -> list[StateBreakdown]:
    result: list[StateBreakdown] = []

    for state, bucket in accumulators.items():
        population = populations.get(state)
        density = bucket.count / population if population else None

        cities = {
            label: CityBreakdown(
                count=round_half_up(city.count),
                gender=dict(city.gender) if include_breakdowns else None,
                age=dict(city.age) if include_breakdowns else None,
            )
            for label, city in bucket.cities.items()
        }

        result.append(StateBreakdown(
            state=state,
            count=round_half_up(bucket.count),
            density=density,
            gender=dict(bucket.gender) if include_breakdowns else None,
            age=dict(bucket.age) if include_breakdowns else None,
            cities=cities,
        ))

    return result
