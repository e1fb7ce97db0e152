"""
Data Quality
============

Invariant checks for clean trips, enriched trips and aggregated buckets.
"""

from taxi_efficiency.quality.validators import (
    DataQualityChecker,
    DataQualityError,
    ensure_passed,
    validate_buckets,
    validate_clean_trips,
    validate_enriched_trips,
)

__all__ = [
    "DataQualityChecker",
    "DataQualityError",
    "ensure_passed",
    "validate_buckets",
    "validate_clean_trips",
    "validate_enriched_trips",
]
