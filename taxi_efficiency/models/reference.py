"""
Reference Data
==============

Static classification tables used by the enricher and the dashboard.

Conventions:
    - Weekdays are numbered 1=Sunday ... 7=Saturday (Spark dayofweek),
      so the weekend is {1, 7}.
    - Day-part bounds are inclusive on both ends.
"""

from __future__ import annotations

# ============================================
# CALENDAR
# ============================================

WEEKDAY_NAMES = {
    1: "Sunday",
    2: "Monday",
    3: "Tuesday",
    4: "Wednesday",
    5: "Thursday",
    6: "Friday",
    7: "Saturday",
}

WEEKEND_DAYS = (1, 7)

WEEKEND = "Weekend"
WEEKDAY = "Weekday"

# (first_hour, last_hour, name); hours outside every range are Night
DAY_PART_RANGES = [
    (5, 10, "Morning"),
    (11, 15, "Afternoon"),
    (16, 20, "Evening"),
]
DEFAULT_DAY_PART = "Night"

DAY_PARTS = [name for _, _, name in DAY_PART_RANGES] + [DEFAULT_DAY_PART]


# ============================================
# TRIP LENGTH
# ============================================

SHORT_TRIP_MAX_MILES = 2.0   # exclusive: < 2 is Short
MEDIUM_TRIP_MAX_MILES = 8.0  # inclusive: 2..8 is Medium

TRIP_LENGTH_TYPES = ["Short", "Medium", "Long"]


# ============================================
# ZONES
# ============================================

AIRPORT_MARKER = "Airport"

ZONE_TYPE_AIRPORT = "Airport"
ZONE_TYPE_CITY = "City"
