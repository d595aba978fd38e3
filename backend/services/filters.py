"""
Query filter validation for the audience endpoints.

Turns raw query-string values into the closed vocabularies the aggregators
understand:

  gender     → one of F / M / U
  ageRange   → one of the fixed age-band labels
  minAge/maxAge → the single age band containing them (when ageRange is absent)
  region     → one of the five macro-regions, expanded to its state codes
  ids        → bson ObjectId

Every failure raises FilterValidationError, which the API turns into a 400.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional, get_args

from bson import ObjectId

from models.schemas import AgeBand, GenderCode, MacroRegion
from services.brazil_geo import REGION_STATES
from services.errors import FilterValidationError

logger = logging.getLogger(__name__)

ALLOWED_GENDERS: tuple[str, ...] = get_args(GenderCode)
ALLOWED_AGE_RANGES: tuple[str, ...] = get_args(AgeBand)
ALLOWED_REGIONS: tuple[str, ...] = get_args(MacroRegion)

# (band, min_age_inclusive, max_age_inclusive)
AGE_BAND_BOUNDS: tuple[tuple[str, int, float], ...] = (
    ("13-17", 13, 17),
    ("18-24", 18, 24),
    ("25-34", 25, 34),
    ("35-44", 35, 44),
    ("45-54", 45, 54),
    ("55-64", 55, 64),
    ("65+", 65, math.inf),
)


@dataclass(frozen=True)
class RegionFilters:
    """Validated filters for one region-summary request."""

    gender: Optional[str] = None
    age_range: Optional[str] = None
    region: Optional[str] = None
    states: Optional[frozenset[str]] = None

    def as_dict(self) -> dict:
        return {
            "gender": self.gender,
            "age_range": self.age_range,
            "region": self.region,
        }


# ===========================================================================
# Public API
# ===========================================================================

def build_region_filters(
    gender: Optional[str] = None,
    age_range: Optional[str] = None,
    min_age: Optional[str] = None,
    max_age: Optional[str] = None,
    region: Optional[str] = None,
) -> RegionFilters:
    """Validate raw query values and bundle them into RegionFilters."""
    gender = validate_gender(gender)
    band = resolve_age_band(age_range, min_age, max_age)
    region = validate_region(region)
    states = states_for_region(region)
    return RegionFilters(gender=gender, age_range=band, region=region, states=states)


def validate_gender(gender: Optional[str]) -> Optional[str]:
    if not gender:
        return None
    if gender not in ALLOWED_GENDERS:
        raise FilterValidationError(
            f"Invalid gender. Allowed: {', '.join(ALLOWED_GENDERS)}"
        )
    return gender


def validate_region(region: Optional[str]) -> Optional[str]:
    if not region:
        return None
    if region not in ALLOWED_REGIONS:
        raise FilterValidationError(
            f"Invalid region. Allowed: {', '.join(ALLOWED_REGIONS)}"
        )
    return region


def states_for_region(region: Optional[str]) -> Optional[frozenset[str]]:
    """Macro-region → its state codes; None means no state restriction."""
    if not region:
        return None
    return frozenset(REGION_STATES[region])


def resolve_age_band(
    age_range: Optional[str] = None,
    min_age: Optional[str] = None,
    max_age: Optional[str] = None,
) -> Optional[str]:
    """
    Pick the single age band a request filters on.

    Rules:
      1. An explicit ageRange wins and must be one of ALLOWED_AGE_RANGES
      2. Otherwise minAge (or maxAge when minAge is absent) selects the band containing it
      3. When both are given they must fall inside the same band
      4. No bound at all → no age filter
    """
    if age_range:
        if age_range not in ALLOWED_AGE_RANGES:
            raise FilterValidationError(
                f"Invalid ageRange. Allowed: {', '.join(ALLOWED_AGE_RANGES)}"
            )
        return age_range

    low = _parse_age(min_age, "minAge")
    high = _parse_age(max_age, "maxAge")
    if low is None and high is None:
        return None

    if low is not None and high is not None and low > high:
        raise FilterValidationError("minAge must be <= maxAge")

    anchor = low if low is not None else high
    band = _band_containing(anchor)
    if band is None:
        raise FilterValidationError(
            f"No age band covers age {anchor}. Allowed: {', '.join(ALLOWED_AGE_RANGES)}"
        )

    if low is not None and high is not None and _band_containing(high) != band:
        raise FilterValidationError(
            f"minAge/maxAge ({low}-{high}) must fall within a single age band: "
            f"{', '.join(ALLOWED_AGE_RANGES)}"
        )

    logger.debug(f"Age bounds min={low} max={high} mapped to band {band}")
    return band


def parse_object_id(value: Optional[str], field: str) -> Optional[ObjectId]:
    """Parse a hex id; None/empty passes through as None."""
    if not value:
        return None
    if not ObjectId.is_valid(value):
        raise FilterValidationError(f"Invalid or missing {field}.")
    return ObjectId(value)


# ===========================================================================
# Private helpers
# ===========================================================================

def _parse_age(raw: Optional[str], field: str) -> Optional[int]:
    if raw is None:
        return None
    text = str(raw).strip()
    if not text:
        return None
    try:
        age = int(text)
    except ValueError:
        raise FilterValidationError(f"{field} must be a whole number") from None
    if age < 0:
        raise FilterValidationError(f"{field} must be >= 0")
    return age


def _band_containing(age: int) -> Optional[str]:
    for band, low, high in AGE_BAND_BOUNDS:
        if low <= age <= high:
            return band
    return None
