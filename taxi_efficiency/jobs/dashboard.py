"""
Dashboard View
==============

Builds the wide driver-efficiency table handed to reporting tools.

Grain:
    One row per weekday x hour x pickup zone x day type x day part x
    trip length type.

No metric is computed here: the builder only labels weekdays, classifies
zones and rounds the aggregator's metrics for presentation.
"""

from __future__ import annotations

import logging
from itertools import chain

from pyspark.sql import Column, DataFrame
from pyspark.sql import functions as F

from taxi_efficiency.jobs.aggregation import aggregate_trips, round_metrics
from taxi_efficiency.models.grouping import Grouping
from taxi_efficiency.models.reference import (
    AIRPORT_MARKER,
    WEEKDAY_NAMES,
    ZONE_TYPE_AIRPORT,
    ZONE_TYPE_CITY,
)
from taxi_efficiency.models.schemas import DASHBOARD_SCHEMA, get_schema_field_names

logger = logging.getLogger(__name__)


DASHBOARD_TABLE = "driver_efficiency_dashboard"
DASHBOARD_COLUMNS = get_schema_field_names(DASHBOARD_SCHEMA)


def weekday_name_expr(weekday: Column) -> Column:
    """Look up the weekday name for a 1=Sunday ... 7=Saturday index."""
    mapping = F.create_map(*[F.lit(v) for v in chain(*WEEKDAY_NAMES.items())])
    return mapping[weekday]


def zone_type_expr(zone: Column) -> Column:
    """Airport when the zone name contains "Airport", City otherwise."""
    return (
        F.when(zone.contains(AIRPORT_MARKER), ZONE_TYPE_AIRPORT)
        .otherwise(ZONE_TYPE_CITY)
    )


def build_dashboard_view(buckets: DataFrame) -> DataFrame:
    """
    Assemble the dashboard table from DASHBOARD-grouped buckets.

    Args:
        buckets: Output of aggregate_trips(trips, Grouping.DASHBOARD)

    Returns:
        DataFrame with DASHBOARD_COLUMNS, metrics rounded to 2 decimals
    """
    missing = [c for c in Grouping.DASHBOARD.columns if c not in buckets.columns]
    if missing:
        raise ValueError(f"Buckets are not keyed by the dashboard grouping, missing: {missing}")

    return (
        round_metrics(buckets)
        .withColumn("pickup_weekday_name", weekday_name_expr(F.col("pickup_weekday")))
        .withColumn("zone_type", zone_type_expr(F.col("PUZone")))
        .select(*DASHBOARD_COLUMNS)
    )


def build_dashboard(enriched: DataFrame) -> DataFrame:
    """Aggregate enriched trips by the dashboard grouping and build the view."""
    logger.info("Building driver efficiency dashboard")
    return build_dashboard_view(aggregate_trips(enriched, Grouping.DASHBOARD))
