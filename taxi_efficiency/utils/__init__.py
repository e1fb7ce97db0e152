"""
Utilities
=========

This module contains utility functions and configuration management.

Modules:
    - config: Environment-agnostic configuration management
    - spark_session: SparkSession factory
    - database: PostgreSQL publishing
"""

from taxi_efficiency.utils.config import (
    PipelineConfig,
    Environment,
    SupportTier,
    StorageConfig,
    PostgresConfig,
    SparkConfig,
    AnalysisConfig,
)
from taxi_efficiency.utils.spark_session import (
    create_spark_session,
    stop_spark_session,
    SparkSessionManager,
)
from taxi_efficiency.utils.database import (
    DatabaseWriter,
    table_exists,
)

__all__ = [
    # Config
    "PipelineConfig",
    "Environment",
    "SupportTier",
    "StorageConfig",
    "PostgresConfig",
    "SparkConfig",
    "AnalysisConfig",
    # Spark
    "create_spark_session",
    "stop_spark_session",
    "SparkSessionManager",
    # Database
    "DatabaseWriter",
    "table_exists",
]
