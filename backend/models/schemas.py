"""
Pydantic models for the Creator Audience Region service.

Models:
  - DemographicBreakdown: the four independent follower maps (city, gender, age, country)
  - AudienceDemographics: follower + engaged-audience breakdowns of one snapshot
  - DemographicSnapshot: one user's point-in-time audience record (MongoDB document)
  - CityBreakdown / StateBreakdown: output units of the region aggregator
  - PlatformDemographicsAggregation: output of the platform-wide rollup
  - CoverageRegion: one row of the landing-page coverage widget
  - RegionSummaryResponse: API response model for the admin heatmap
"""

import math
from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ---------------------------------------------------------------------------
# Closed filter vocabularies (validated at the API boundary)
# ---------------------------------------------------------------------------
GenderCode = Literal["F", "M", "U"]
AgeBand = Literal["13-17", "18-24", "25-34", "35-44", "45-54", "55-64", "65+"]
MacroRegion = Literal["Norte", "Nordeste", "Centro-Oeste", "Sudeste", "Sul"]


def clean_counts(raw: Any) -> dict[str, float]:
    """
    Coerce a raw demographic map into {label: count}.

    Accepts both stored shapes:
      - a mapping {label: count}
      - a list of {"value": label, "count": count} entries (insights format)

    Entries whose count is not a finite, non-negative number (including
    booleans) or whose label is missing are dropped.
    """
    if not raw:
        return {}

    if isinstance(raw, list):
        pairs = [
            (item.get("value"), item.get("count"))
            for item in raw
            if isinstance(item, dict)
        ]
    elif isinstance(raw, dict):
        pairs = list(raw.items())
    else:
        return {}

    cleaned: dict[str, float] = {}
    for label, count in pairs:
        if label is None or label == "":
            continue
        if isinstance(count, bool) or not isinstance(count, (int, float)):
            continue
        if not math.isfinite(count) or count < 0:
            continue
        cleaned[str(label)] = cleaned.get(str(label), 0) + count
    return cleaned


# ---------------------------------------------------------------------------
# Input documents
# ---------------------------------------------------------------------------
class DemographicBreakdown(BaseModel):
    city: dict[str, float] = Field(default_factory=dict)
    gender: dict[str, float] = Field(default_factory=dict)
    age: dict[str, float] = Field(default_factory=dict)
    country: dict[str, float] = Field(default_factory=dict)

    @field_validator("city", "gender", "age", "country", mode="before")
    @classmethod
    def _numeric_counts_only(cls, value):
        return clean_counts(value)


class AudienceDemographics(BaseModel):
    follower_demographics: DemographicBreakdown = Field(default_factory=DemographicBreakdown)
    engaged_audience_demographics: Optional[DemographicBreakdown] = None

    @field_validator("follower_demographics", mode="before")
    @classmethod
    def _missing_as_empty(cls, value):
        return value if value is not None else {}


class DemographicSnapshot(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = Field(default=None, alias="_id")
    user: str
    recorded_at: Optional[datetime] = Field(default=None, alias="recordedAt")
    demographics: AudienceDemographics = Field(default_factory=AudienceDemographics)

    @field_validator("id", "user", mode="before")
    @classmethod
    def _stringify_object_id(cls, value):
        # bson.ObjectId → hex string
        return str(value) if value is not None else None

    @field_validator("demographics", mode="before")
    @classmethod
    def _missing_demographics(cls, value):
        return value if value is not None else {}

    @property
    def followers(self) -> DemographicBreakdown:
        return self.demographics.follower_demographics


# ---------------------------------------------------------------------------
# Region aggregator output
#
# gender / age are None in the density-only variant and are then left out
# of the JSON response (routes serialize with exclude_none).
# density is None when the state has no reference population.
# ---------------------------------------------------------------------------
class CityBreakdown(BaseModel):
    count: int = 0
    gender: Optional[dict[str, float]] = None
    age: Optional[dict[str, float]] = None


class StateBreakdown(BaseModel):
    state: str
    count: int = 0
    density: Optional[float] = None
    gender: Optional[dict[str, float]] = None
    age: Optional[dict[str, float]] = None
    cities: dict[str, CityBreakdown] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Platform rollup output — each map sorted by descending value
# ---------------------------------------------------------------------------
class PlatformDemographicsAggregation(BaseModel):
    country: dict[str, float] = Field(default_factory=dict)
    city: dict[str, float] = Field(default_factory=dict)
    age: dict[str, float] = Field(default_factory=dict)
    gender: dict[str, float] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Landing coverage output
# ---------------------------------------------------------------------------
class CoverageRegion(BaseModel):
    code: str
    label: str
    region: Optional[str] = None
    followers: float
    share: float
    engaged_followers: Optional[float] = None
    engaged_share: Optional[float] = None


# ---------------------------------------------------------------------------
# API response models
# ---------------------------------------------------------------------------
class RegionSummaryResponse(BaseModel):
    status: str
    filters: dict
    states: list[StateBreakdown]
    summary: dict
