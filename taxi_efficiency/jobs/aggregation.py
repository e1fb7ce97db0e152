"""
Bucket Aggregation
==================

Groups enriched trips by a Grouping and derives the efficiency, demand and
risk metrics of each bucket.

Aggregation runs in three steps so partitions can be reduced independently:

    partials = compute_partial_aggregates(trips, grouping)     # per partition
    partials = combine_partial_aggregates([p1, p2], grouping)  # merge
    buckets  = finalize_buckets(partials, grouping)            # ratios

Partial aggregates only hold combinable quantities (counts, sums, sums of
squares and the set of active dates). Ratios, means and the standard
deviation are derived once, from the combined totals.

Undefined metrics are NULL:
    - minutes_per_mile when no trip in the bucket has a positive distance
    - earnings_per_hour when the bucket's total duration is 0
    - trip_duration_volatility_min when the bucket has fewer than 2 trips
"""

from __future__ import annotations

import logging
from functools import reduce
from typing import Iterable, Optional

from pyspark.sql import DataFrame
from pyspark.sql import functions as F

from taxi_efficiency.models.grouping import Grouping

logger = logging.getLogger(__name__)


PARTIAL_COLUMNS = [
    "trip_count",
    "active_dates",
    "sum_fare",
    "sum_duration_min",
    "sum_duration_sq",
    "sum_distance",
    "sum_minutes_per_mile",
    "minutes_per_mile_count",
]

METRIC_COLUMNS = [
    "total_trips",
    "active_days",
    "avg_trips_per_day_hour",
    "avg_trip_duration_min",
    "avg_trip_distance",
    "minutes_per_mile",
    "total_fare",
    "total_trip_duration_min",
    "earnings_per_hour",
    "trip_duration_volatility_min",
]

# Rounded to 2 decimals at presentation time only
ROUNDED_COLUMNS = [
    "avg_trips_per_day_hour",
    "avg_trip_duration_min",
    "avg_trip_distance",
    "minutes_per_mile",
    "total_fare",
    "earnings_per_hour",
    "trip_duration_volatility_min",
]

PRESENTATION_DECIMALS = 2

# Sums of squared durations overflow LONG on extreme outliers
EXACT_TYPE = "decimal(38,0)"


def compute_partial_aggregates(trips: DataFrame, grouping: Grouping) -> DataFrame:
    """
    Reduce enriched trips to one partial aggregate per grouping key.

    Args:
        trips: Enriched trips DataFrame
        grouping: Grouping to aggregate by

    Returns:
        DataFrame with grouping columns plus PARTIAL_COLUMNS
    """
    duration = F.col("trip_duration_min").cast("long")
    exact_duration = duration.cast(EXACT_TYPE)
    distance = F.col("trip_distance")
    per_trip_pace = F.when(distance > 0, duration / distance)

    return trips.groupBy(*grouping.columns).agg(
        F.count(F.lit(1)).alias("trip_count"),
        F.collect_set("pickup_date").alias("active_dates"),
        F.sum("fare_amount").alias("sum_fare"),
        F.sum(duration).alias("sum_duration_min"),
        F.sum(exact_duration * exact_duration).alias("sum_duration_sq"),
        F.sum(distance).alias("sum_distance"),
        F.sum(per_trip_pace).alias("sum_minutes_per_mile"),
        F.count(per_trip_pace).alias("minutes_per_mile_count"),
    )


def combine_partial_aggregates(
    partials: Iterable[DataFrame],
    grouping: Grouping,
) -> DataFrame:
    """
    Merge partial aggregates computed on separate partitions.

    Counts and sums are added; active-date sets are unioned so a date seen
    in two partitions is counted once.

    Args:
        partials: Partial aggregate DataFrames for the same grouping
        grouping: Grouping to aggregate by

    Returns:
        DataFrame with one combined partial per grouping key
    """
    partials = list(partials)
    if not partials:
        raise ValueError("At least one partial aggregate is required")

    columns = list(grouping.columns) + PARTIAL_COLUMNS
    unioned = reduce(
        lambda left, right: left.unionByName(right),
        (p.select(*columns) for p in partials),
    )

    return unioned.groupBy(*grouping.columns).agg(
        F.sum("trip_count").alias("trip_count"),
        F.array_distinct(F.flatten(F.collect_list("active_dates"))).alias("active_dates"),
        F.sum("sum_fare").alias("sum_fare"),
        F.sum("sum_duration_min").alias("sum_duration_min"),
        F.sum("sum_duration_sq").alias("sum_duration_sq"),
        F.sum("sum_distance").alias("sum_distance"),
        F.sum("sum_minutes_per_mile").alias("sum_minutes_per_mile"),
        F.sum("minutes_per_mile_count").alias("minutes_per_mile_count"),
    )


def finalize_buckets(partials: DataFrame, grouping: Grouping) -> DataFrame:
    """
    Derive bucket metrics from (combined) partial aggregates.

    Args:
        partials: Partial aggregates for the grouping
        grouping: Grouping to aggregate by

    Returns:
        DataFrame with grouping columns plus METRIC_COLUMNS, full precision
    """
    n = F.col("trip_count")
    total_duration = F.col("sum_duration_min")
    pace_count = F.col("minutes_per_mile_count")

    # Sample variance from count, sum and sum of squares. The numerator is
    # exact in decimal(38,0); an overflow yields NULL instead of wrapping.
    exact_n = n.cast(EXACT_TYPE)
    exact_total = total_duration.cast(EXACT_TYPE)
    numerator = exact_n * F.col("sum_duration_sq") - exact_total * exact_total
    variance = numerator.cast("double") / (n * (n - 1))

    return partials.select(
        *grouping.columns,
        n.alias("total_trips"),
        F.size("active_dates").alias("active_days"),
        (n / F.size("active_dates")).alias("avg_trips_per_day_hour"),
        (total_duration / n).alias("avg_trip_duration_min"),
        (F.col("sum_distance") / n).alias("avg_trip_distance"),
        F.when(pace_count > 0, F.col("sum_minutes_per_mile") / pace_count)
        .alias("minutes_per_mile"),
        F.col("sum_fare").alias("total_fare"),
        total_duration.alias("total_trip_duration_min"),
        F.when(total_duration > 0, F.col("sum_fare") / (total_duration / 60.0))
        .alias("earnings_per_hour"),
        F.when(n >= 2, F.sqrt(F.when(variance < 0, F.lit(0.0)).otherwise(variance)))
        .alias("trip_duration_volatility_min"),
    )


def aggregate_trips(trips: DataFrame, grouping: Grouping) -> DataFrame:
    """
    Aggregate enriched trips into buckets in a single pass.

    Args:
        trips: Enriched trips DataFrame
        grouping: Grouping to aggregate by

    Returns:
        Bucket DataFrame (full precision)
    """
    logger.info(f"Aggregating trips by {grouping.name}: {list(grouping.columns)}")
    return finalize_buckets(compute_partial_aggregates(trips, grouping), grouping)


def round_metrics(buckets: DataFrame) -> DataFrame:
    """Round metric columns to PRESENTATION_DECIMALS for output."""
    for column in ROUNDED_COLUMNS:
        if column in buckets.columns:
            buckets = buckets.withColumn(
                column, F.round(F.col(column), PRESENTATION_DECIMALS)
            )
    return buckets


def filter_by_support(
    buckets: DataFrame,
    min_support: Optional[float],
    inclusive: bool = True,
) -> DataFrame:
    """
    Keep buckets whose avg_trips_per_day_hour meets a minimum support.

    Applied at query time on the unrounded metric.

    Args:
        buckets: Bucket DataFrame
        min_support: Threshold; None keeps every bucket
        inclusive: If True keep >= threshold, otherwise > threshold

    Returns:
        Filtered bucket DataFrame
    """
    if min_support is None:
        return buckets

    support = F.col("avg_trips_per_day_hour")
    condition = support >= min_support if inclusive else support > min_support
    return buckets.filter(condition)
