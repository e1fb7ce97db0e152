"""
PySpark Jobs
============

This module contains the PySpark jobs of the driver efficiency pipeline.

Jobs:
    - ingestion: reads raw trips and the zone reference
    - cleaning: deduplicates and validates trips
    - enrichment: derives calendar and category attributes
    - aggregation: partial, combined and finalized bucket metrics
    - dashboard: builds the wide dashboard table
    - analysis: ranked reports
    - refresh: the full refresh job
"""

from taxi_efficiency.jobs.ingestion import (
    IngestionError,
    read_raw_trips,
    read_zone_reference,
)
from taxi_efficiency.jobs.cleaning import (
    CleaningStats,
    clean_trips,
    deduplicate_trips,
)
from taxi_efficiency.jobs.enrichment import enrich_trips
from taxi_efficiency.jobs.aggregation import (
    aggregate_trips,
    combine_partial_aggregates,
    compute_partial_aggregates,
    filter_by_support,
    finalize_buckets,
    round_metrics,
)
from taxi_efficiency.jobs.dashboard import build_dashboard, build_dashboard_view
from taxi_efficiency.jobs.analysis import ANALYSES, get_analysis, run_analysis
from taxi_efficiency.jobs.refresh import load_enriched_trips, run_full_refresh

__all__ = [
    # Ingestion
    "IngestionError",
    "read_raw_trips",
    "read_zone_reference",
    # Cleaning
    "CleaningStats",
    "clean_trips",
    "deduplicate_trips",
    # Enrichment
    "enrich_trips",
    # Aggregation
    "aggregate_trips",
    "combine_partial_aggregates",
    "compute_partial_aggregates",
    "filter_by_support",
    "finalize_buckets",
    "round_metrics",
    # Dashboard
    "build_dashboard",
    "build_dashboard_view",
    # Analyses
    "ANALYSES",
    "get_analysis",
    "run_analysis",
    # Refresh
    "load_enriched_trips",
    "run_full_refresh",
]
