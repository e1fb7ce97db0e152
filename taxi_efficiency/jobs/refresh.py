"""
Full Refresh Job
================

Rebuilds the clean trip set and the driver-efficiency dashboard from the
raw sources.

This job:
    1. Reads raw trips and the zone reference
    2. Deduplicates and validates trips (diagnostics recorded as counters)
    3. Enriches trips with calendar and category attributes
    4. Aggregates by the dashboard grouping and builds the dashboard view
    5. Writes clean trips (silver) and the dashboard (gold) as parquet
    6. Optionally publishes the dashboard to PostgreSQL

Every quality check runs before the first write, so a run that fails a
check leaves previous outputs untouched. The parquet overwrites are not
atomic: a failure while writing can leave the silver and gold outputs
from different runs.

Usage:
    python -m taxi_efficiency.jobs.refresh --publish
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from pyspark.sql import DataFrame, SparkSession

from taxi_efficiency.jobs.cleaning import REJECTION_RULES, clean_trips
from taxi_efficiency.jobs.dashboard import DASHBOARD_TABLE, build_dashboard
from taxi_efficiency.jobs.enrichment import enrich_trips
from taxi_efficiency.jobs.ingestion import read_raw_trips, read_zone_reference
from taxi_efficiency.models.schemas import DASHBOARD_SCHEMA
from taxi_efficiency.monitoring import MetricType, PipelineMonitor
from taxi_efficiency.quality.validators import (
    ensure_passed,
    validate_buckets,
    validate_clean_trips,
    validate_enriched_trips,
)
from taxi_efficiency.utils.config import PipelineConfig
from taxi_efficiency.utils.database import DatabaseWriter

logger = logging.getLogger(__name__)


def load_enriched_trips(
    config: PipelineConfig,
    spark: SparkSession,
    trips_path: Optional[str] = None,
    zones_path: Optional[str] = None,
) -> DataFrame:
    """
    Ingest, clean, check and enrich trips without writing anything.

    Used by ad-hoc analyses that query the enriched set directly.

    Args:
        config: Pipeline configuration
        spark: SparkSession
        trips_path: Override for the trip source
        zones_path: Override for the zone source

    Returns:
        Enriched trips DataFrame
    """
    raw = read_raw_trips(spark, trips_path or config.storage.get_trips_source_path())
    zones = read_zone_reference(spark, zones_path or config.storage.get_zones_source_path())

    clean, _ = clean_trips(raw, zones)
    ensure_passed(validate_clean_trips(clean))

    return enrich_trips(clean)


def write_parquet(df: DataFrame, path: str) -> None:
    """Overwrite a parquet dataset."""
    logger.info(f"Writing parquet to: {path}")
    df.write.mode("overwrite").parquet(path)


def run_full_refresh(
    config: PipelineConfig,
    spark: SparkSession,
    publish: bool = False,
    trips_path: Optional[str] = None,
    zones_path: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Run the full refresh.

    Args:
        config: Pipeline configuration
        spark: SparkSession
        publish: If True, also write the dashboard to PostgreSQL
        trips_path: Override for the trip source
        zones_path: Override for the zone source

    Returns:
        Dictionary with job statistics

    Raises:
        IngestionError: If a source cannot be read
        DataQualityError: If a produced dataset violates its invariants
    """
    trips_path = trips_path or config.storage.get_trips_source_path()
    zones_path = zones_path or config.storage.get_zones_source_path()
    clean_output = config.storage.get_clean_trips_path()
    dashboard_output = config.storage.get_dashboard_path()

    logger.info("=" * 60)
    logger.info("FULL REFRESH JOB")
    logger.info("=" * 60)
    logger.info(f"Environment: {config.environment.value}")
    logger.info(f"Trips source: {trips_path}")
    logger.info(f"Zones source: {zones_path}")
    logger.info(f"Publish to PostgreSQL: {publish}")

    monitor = PipelineMonitor("full_refresh", json_logging=False)

    stats: Dict[str, Any] = {
        "cleaning": {},
        "enriched_rows": 0,
        "dashboard_rows": 0,
        "published": False,
        "outputs": {},
    }

    # ========================================
    # Ingest
    # ========================================
    with monitor.track_stage("ingest") as stage:
        raw = read_raw_trips(spark, trips_path)
        zones = read_zone_reference(spark, zones_path)
        stage.records_in = stage.records_out = raw.count()

    # ========================================
    # Clean
    # ========================================
    with monitor.track_stage("clean") as stage:
        clean, cleaning_stats = clean_trips(raw, zones)
        stage.records_in = cleaning_stats.raw_rows
        stage.records_out = cleaning_stats.clean_rows
        stage.records_rejected = cleaning_stats.rejected_rows

        monitor.record_metric(
            "duplicates_removed", cleaning_stats.duplicates_removed, MetricType.COUNTER
        )
        for name, _ in REJECTION_RULES:
            monitor.record_metric(name, getattr(cleaning_stats, name), MetricType.COUNTER)

        ensure_passed(validate_clean_trips(clean))
        stats["cleaning"] = cleaning_stats.to_dict()

    clean = clean.cache()
    dashboard = None
    try:
        # ========================================
        # Enrich
        # ========================================
        with monitor.track_stage("enrich") as stage:
            enriched = enrich_trips(clean)
            report = ensure_passed(validate_enriched_trips(enriched))
            stage.records_in = cleaning_stats.clean_rows
            stage.records_out = report["total_rows"]
            stats["enriched_rows"] = report["total_rows"]

        # ========================================
        # Dashboard
        # ========================================
        with monitor.track_stage("dashboard") as stage:
            dashboard = build_dashboard(enriched).cache()
            report = ensure_passed(validate_buckets(dashboard, "driver_efficiency_dashboard"))
            stage.records_in = stats["enriched_rows"]
            stage.records_out = report["total_rows"]
            stats["dashboard_rows"] = report["total_rows"]

        # ========================================
        # Write
        # ========================================
        with monitor.track_stage("write") as stage:
            write_parquet(clean, clean_output)
            write_parquet(dashboard, dashboard_output)
            stats["outputs"] = {
                "clean_trips": clean_output,
                "dashboard": dashboard_output,
            }

            if publish:
                writer = DatabaseWriter(config)
                writer.ensure_table(DASHBOARD_TABLE, DASHBOARD_SCHEMA)
                writer.write_to_postgres(dashboard, DASHBOARD_TABLE)
                stats["published"] = True

            stage.records_in = stage.records_out = stats["dashboard_rows"]
    finally:
        clean.unpersist()
        if dashboard is not None:
            dashboard.unpersist()

    stats["monitor"] = monitor.finish()

    # ========================================
    # Summary
    # ========================================
    logger.info("=" * 60)
    logger.info("FULL REFRESH COMPLETE")
    logger.info(f"Raw trips: {cleaning_stats.raw_rows:,}")
    logger.info(f"Clean trips: {cleaning_stats.clean_rows:,}")
    logger.info(f"Dashboard rows: {stats['dashboard_rows']:,}")
    logger.info(f"Published: {stats['published']}")
    logger.info("=" * 60)

    return stats


# Entry point for direct execution
if __name__ == "__main__":
    import argparse

    from taxi_efficiency.utils.spark_session import SparkSessionManager

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    parser = argparse.ArgumentParser(description="Full Refresh Job")
    parser.add_argument("--trips-path", help="Trip CSV path")
    parser.add_argument("--zones-path", help="Zone CSV path")
    parser.add_argument(
        "--publish",
        action="store_true",
        help="Publish the dashboard to PostgreSQL"
    )

    args = parser.parse_args()

    config = PipelineConfig.load()

    with SparkSessionManager(config, app_name="FullRefresh") as spark:
        stats = run_full_refresh(
            config=config,
            spark=spark,
            publish=args.publish,
            trips_path=args.trips_path,
            zones_path=args.zones_path,
        )
        print(f"\nJob completed successfully: {stats['cleaning']}")
