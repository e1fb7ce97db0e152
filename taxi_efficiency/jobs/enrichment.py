"""
Trip Enrichment
===============

Row-wise derivation of calendar and category attributes from clean trips.
No cross-row state; every clean trip maps to exactly one enriched trip.
"""

from __future__ import annotations

from pyspark.sql import Column, DataFrame
from pyspark.sql import functions as F

from taxi_efficiency.models.reference import (
    DAY_PART_RANGES,
    DEFAULT_DAY_PART,
    MEDIUM_TRIP_MAX_MILES,
    SHORT_TRIP_MAX_MILES,
    WEEKDAY,
    WEEKEND,
    WEEKEND_DAYS,
)


def day_part_expr(hour: Column) -> Column:
    """Map a 0-23 hour to Morning/Afternoon/Evening/Night."""
    expr = None
    for first, last, name in DAY_PART_RANGES:
        condition = hour.between(first, last)
        expr = F.when(condition, name) if expr is None else expr.when(condition, name)
    return expr.otherwise(DEFAULT_DAY_PART)


def trip_length_expr(distance: Column) -> Column:
    """Map a trip distance in miles to Short/Medium/Long."""
    return (
        F.when(distance < SHORT_TRIP_MAX_MILES, "Short")
        .when(distance <= MEDIUM_TRIP_MAX_MILES, "Medium")
        .otherwise("Long")
    )


def day_type_expr(weekday: Column) -> Column:
    """Weekend for Sunday (1) and Saturday (7), Weekday otherwise."""
    return F.when(weekday.isin(list(WEEKEND_DAYS)), WEEKEND).otherwise(WEEKDAY)


def enrich_trips(clean: DataFrame) -> DataFrame:
    """
    Add pickup_weekday, pickup_hour, pickup_date, day_type, day_part and
    trip_length_type to clean trips.

    Args:
        clean: Clean trips DataFrame (CLEAN_TRIP_SCHEMA)

    Returns:
        DataFrame with ENRICHED_TRIP_SCHEMA
    """
    return (
        clean
        # dayofweek is 1=Sunday ... 7=Saturday
        .withColumn("pickup_weekday", F.dayofweek("pickup_datetime"))
        .withColumn("pickup_hour", F.hour("pickup_datetime"))
        .withColumn("pickup_date", F.to_date("pickup_datetime"))
        .withColumn("day_type", day_type_expr(F.col("pickup_weekday")))
        .withColumn("day_part", day_part_expr(F.col("pickup_hour")))
        .withColumn("trip_length_type", trip_length_expr(F.col("trip_distance")))
    )
