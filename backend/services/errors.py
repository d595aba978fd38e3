"""
Error types shared by the aggregation services and the API layer.

  - FilterValidationError: a query filter is outside its allowed set → HTTP 400
  - AggregationError:      aggregation could not complete → HTTP 500
  - SnapshotFetchError:    the snapshot/user store failed (an AggregationError)
"""


class AggregationError(RuntimeError):
    """Aggregation failed; no partial result is available."""


class SnapshotFetchError(AggregationError):
    """Reading users or demographic snapshots from MongoDB failed."""


class FilterValidationError(ValueError):
    """A request filter (gender, age band, region, id) is invalid."""
