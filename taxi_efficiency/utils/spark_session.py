"""
Spark Session Factory
=====================

Creates and configures SparkSession for different environments.

Usage:
    from taxi_efficiency.utils.config import PipelineConfig
    from taxi_efficiency.utils.spark_session import SparkSessionManager

    config = PipelineConfig.load()
    with SparkSessionManager(config) as spark:
        ...
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from pyspark.sql import SparkSession

if TYPE_CHECKING:
    from taxi_efficiency.utils.config import PipelineConfig

logger = logging.getLogger(__name__)


def create_spark_session(
    config: PipelineConfig,
    app_name: Optional[str] = None,
) -> SparkSession:
    """
    Create a SparkSession configured for the current environment.

    Args:
        config: Pipeline configuration object
        app_name: Optional override for application name

    Returns:
        Configured SparkSession
    """
    spark_config = config.spark
    name = app_name or spark_config.app_name

    logger.info(f"Creating SparkSession: {name}")
    logger.info(f"Environment: {config.environment.value}")
    logger.info(f"Master: {spark_config.master}")

    builder = (
        SparkSession.builder
        .appName(name)
        .master(spark_config.master)
        .config("spark.driver.memory", spark_config.driver_memory)
        .config("spark.executor.memory", spark_config.executor_memory)
    )

    for key, value in spark_config.extra_configs.items():
        builder = builder.config(key, value)

    # JDBC driver, only needed when publishing to PostgreSQL
    if spark_config.jars_packages:
        builder = builder.config("spark.jars.packages", spark_config.jars_packages)

    if config.is_local:
        builder = _configure_local(builder)
    else:
        builder = _configure_gcp(builder)

    spark = builder.getOrCreate()
    spark.sparkContext.setLogLevel(config.log_level)

    logger.info("SparkSession created successfully")
    logger.info(f"Spark version: {spark.version}")

    return spark


def _configure_local(builder: SparkSession.Builder) -> SparkSession.Builder:
    return (
        builder
        .config("spark.sql.shuffle.partitions", "8")
        .config("spark.default.parallelism", "4")
        .config("spark.sql.catalogImplementation", "in-memory")
        .config("spark.driver.maxResultSize", "1g")
    )


def _configure_gcp(builder: SparkSession.Builder) -> SparkSession.Builder:
    return (
        builder
        .config("spark.hadoop.fs.gs.impl", "com.google.cloud.hadoop.fs.gcs.GoogleHadoopFileSystem")
        .config("spark.hadoop.fs.AbstractFileSystem.gs.impl", "com.google.cloud.hadoop.fs.gcs.GoogleHadoopFS")
        .config("spark.sql.shuffle.partitions", "200")
    )


def stop_spark_session(spark: SparkSession) -> None:
    """Safely stop a SparkSession."""
    if spark is not None:
        logger.info("Stopping SparkSession")
        spark.stop()
        logger.info("SparkSession stopped")


class SparkSessionManager:
    """
    Context manager for SparkSession lifecycle.

    Usage:
        with SparkSessionManager(config, app_name="FullRefresh") as spark:
            run_full_refresh(config, spark)
        # Session automatically stopped
    """

    def __init__(
        self,
        config: PipelineConfig,
        app_name: Optional[str] = None,
    ):
        self.config = config
        self.app_name = app_name
        self.spark: Optional[SparkSession] = None

    def __enter__(self) -> SparkSession:
        self.spark = create_spark_session(self.config, self.app_name)
        return self.spark

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.spark is not None:
            stop_spark_session(self.spark)
        return False  # Don't suppress exceptions
