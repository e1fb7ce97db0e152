"""
Grouping Definitions
====================

Tagged grouping-key definitions for the aggregator. Every grouping
starts from the (weekday, hour, pickup zone) triple; the context groupings
add one enrichment dimension and the dashboard grouping adds all three.
"""

from __future__ import annotations

from enum import Enum
from typing import Tuple

BASE_KEYS = ("pickup_weekday", "pickup_hour", "PUZone")


class Grouping(Enum):
    """Dimension combinations a bucket can be keyed by."""

    HOURLY_ZONE = BASE_KEYS
    DAY_TYPE = ("day_type",) + BASE_KEYS
    DAY_PART = ("day_part",) + BASE_KEYS
    TRIP_LENGTH = ("trip_length_type",) + BASE_KEYS
    DASHBOARD = BASE_KEYS + ("day_type", "day_part", "trip_length_type")

    @property
    def columns(self) -> Tuple[str, ...]:
        """Key column names, in output order."""
        return self.value
