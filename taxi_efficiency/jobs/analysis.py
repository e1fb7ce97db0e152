"""
Driver Efficiency Analyses
==========================

Ranked reports layered on top of the aggregator. Each analysis picks a
grouping, a minimum-support tier and an ordering; thresholds come from
AnalysisConfig so they can be tuned per run.

Available analyses:
    - high_demand: busiest pickup windows
    - congestion: slowest windows (minutes per mile) among busy ones
    - earnings: best earnings per hour
    - demand_earnings_gap: busy windows with the lowest earnings per hour
    - income_risk: earnings per hour against trip-duration volatility
    - day_type / day_part / trip_length: earnings per hour by context
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from pyspark.sql import DataFrame
from pyspark.sql import functions as F

from taxi_efficiency.jobs.aggregation import (
    aggregate_trips,
    filter_by_support,
    round_metrics,
)
from taxi_efficiency.models.grouping import Grouping
from taxi_efficiency.utils.config import AnalysisConfig, SupportTier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalysisSpec:
    """Definition of one ranked report."""
    name: str
    description: str
    grouping: Grouping
    metrics: Tuple[str, ...]
    order_by: Tuple[Tuple[str, bool], ...]  # (column, ascending)
    support_tier: SupportTier = SupportTier.STANDARD
    inclusive: bool = True
    require_min_distance: bool = False

    @property
    def output_columns(self) -> Tuple[str, ...]:
        return self.grouping.columns + self.metrics


ANALYSES: Dict[str, AnalysisSpec] = {
    spec.name: spec
    for spec in [
        AnalysisSpec(
            name="high_demand",
            description="Average trips per day-hour by weekday, hour and zone",
            grouping=Grouping.HOURLY_ZONE,
            metrics=("avg_trips_per_day_hour",),
            order_by=(("avg_trips_per_day_hour", False),),
            support_tier=SupportTier.NONE,
        ),
        AnalysisSpec(
            name="congestion",
            description="Zones and hours with the highest minutes per mile",
            grouping=Grouping.HOURLY_ZONE,
            metrics=("avg_trips_per_day_hour", "avg_trip_duration_min", "minutes_per_mile"),
            order_by=(("minutes_per_mile", False),),
            support_tier=SupportTier.HIGH,
            inclusive=False,
            require_min_distance=True,
        ),
        AnalysisSpec(
            name="earnings",
            description="Driver earnings per hour by weekday, hour and zone",
            grouping=Grouping.HOURLY_ZONE,
            metrics=("earnings_per_hour", "avg_trips_per_day_hour"),
            order_by=(("earnings_per_hour", False),),
        ),
        AnalysisSpec(
            name="demand_earnings_gap",
            description="High pickup volume with low earnings per hour",
            grouping=Grouping.HOURLY_ZONE,
            metrics=("avg_trips_per_day_hour", "earnings_per_hour"),
            order_by=(("earnings_per_hour", True),),
            support_tier=SupportTier.HIGH,
        ),
        AnalysisSpec(
            name="income_risk",
            description="Earnings per hour against trip duration volatility",
            grouping=Grouping.HOURLY_ZONE,
            metrics=("earnings_per_hour", "trip_duration_volatility_min", "avg_trips_per_day_hour"),
            order_by=(("earnings_per_hour", False), ("trip_duration_volatility_min", True)),
        ),
        AnalysisSpec(
            name="day_type",
            description="Weekday vs weekend earnings per hour",
            grouping=Grouping.DAY_TYPE,
            metrics=("earnings_per_hour", "avg_trips_per_day_hour"),
            order_by=(("earnings_per_hour", False),),
        ),
        AnalysisSpec(
            name="day_part",
            description="Earnings per hour by time of day",
            grouping=Grouping.DAY_PART,
            metrics=("earnings_per_hour", "avg_trips_per_day_hour"),
            order_by=(("earnings_per_hour", False),),
        ),
        AnalysisSpec(
            name="trip_length",
            description="Earnings per hour of short, medium and long trips",
            grouping=Grouping.TRIP_LENGTH,
            metrics=("earnings_per_hour", "avg_trips_per_day_hour"),
            order_by=(("earnings_per_hour", False),),
        ),
    ]
}


def get_analysis(name: str) -> AnalysisSpec:
    """
    Look up an analysis by name.

    Raises:
        KeyError: If no analysis has that name
    """
    try:
        return ANALYSES[name]
    except KeyError:
        raise KeyError(
            f"Unknown analysis: '{name}'. Available: {sorted(ANALYSES)}"
        )


def run_analysis(
    enriched: DataFrame,
    spec: AnalysisSpec,
    config: Optional[AnalysisConfig] = None,
    min_support: Optional[float] = None,
) -> DataFrame:
    """
    Aggregate, filter and rank enriched trips for one analysis.

    Args:
        enriched: Enriched trips DataFrame
        spec: Analysis definition
        config: Thresholds (defaults to AnalysisConfig())
        min_support: Explicit support threshold overriding the analysis' tier

    Returns:
        Ordered DataFrame with spec.output_columns, metrics rounded.
        Buckets whose primary ordering metric is undefined are excluded;
        NULL secondary metrics sort lowest.
    """
    config = config or AnalysisConfig()
    threshold = min_support if min_support is not None else config.threshold_for(spec.support_tier)

    logger.info(
        f"Running analysis '{spec.name}' "
        f"(grouping={spec.grouping.name}, min_support={threshold})"
    )

    buckets = filter_by_support(
        aggregate_trips(enriched, spec.grouping),
        threshold,
        inclusive=spec.inclusive,
    )

    if spec.require_min_distance:
        buckets = buckets.filter(F.col("avg_trip_distance") >= config.min_avg_trip_distance)

    primary_metric, _ = spec.order_by[0]
    buckets = buckets.filter(F.col(primary_metric).isNotNull())

    ordering = [
        F.col(column).asc() if ascending else F.col(column).desc()
        for column, ascending in spec.order_by
    ]

    return (
        round_metrics(buckets)
        .select(*spec.output_columns)
        .orderBy(*ordering)
    )
