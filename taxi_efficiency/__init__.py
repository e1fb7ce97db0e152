"""
Taxi Driver Efficiency
======================

A PySpark pipeline that cleans NYC taxi trips, enriches them with calendar
and category attributes and aggregates them into a driver-efficiency
dashboard and a set of ranked analyses.

Modules:
    - jobs: ingestion, cleaning, enrichment, aggregation, dashboard,
      analyses and the full refresh job
    - models: schemas, reference data and grouping definitions
    - utils: configuration, SparkSession factory, PostgreSQL publishing
    - quality: data quality validators
    - monitoring: stage tracking, metrics and alerts
"""

__version__ = "0.1.0"

from taxi_efficiency.utils.config import PipelineConfig, Environment

__all__ = [
    "__version__",
    "PipelineConfig",
    "Environment",
]
