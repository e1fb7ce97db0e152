"""
Configuration Management
========================

Environment-agnostic configuration for the Taxi Driver Efficiency pipeline.
Supports both local runs and GCP (Dataproc + GCS).

Usage:
    from taxi_efficiency.utils.config import PipelineConfig

    config = PipelineConfig.load()
    print(config.environment)                       # "local" or "gcp"
    print(config.storage.get_trips_source_path())   # "/data/raw/yellow_tripdata.csv"
    print(config.analysis.min_support)              # 50.0
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()


class Environment(str, Enum):
    """Pipeline execution environment."""
    LOCAL = "local"
    GCP = "gcp"


class SupportTier(str, Enum):
    """
    Minimum-support tiers applied to avg_trips_per_day_hour.

    NONE disables the filter; STANDARD and HIGH map to configurable
    thresholds (see AnalysisConfig).
    """
    NONE = "none"
    STANDARD = "standard"
    HIGH = "high"


TRIPS_FILE_NAME = "yellow_tripdata.csv"
ZONES_FILE_NAME = "taxi_zones.csv"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"Invalid {name}: '{raw}'. Must be a number.")


@dataclass
class StorageConfig:
    """
    Storage configuration for the pipeline layers.

    Layers:
        - raw: source CSV files as delivered
        - silver: clean, deduplicated trips
        - gold: dashboard aggregate table
    """
    raw_path: str
    silver_path: str
    gold_path: str

    # Explicit source-file locations (override the raw_path defaults)
    trips_source: Optional[str] = None
    zones_source: Optional[str] = None

    @classmethod
    def for_local(cls, base_path: str = "/data") -> StorageConfig:
        """Create configuration for local filesystem."""
        return cls(
            raw_path=f"{base_path}/raw",
            silver_path=f"{base_path}/silver",
            gold_path=f"{base_path}/gold",
            trips_source=os.getenv("TRIPS_SOURCE_PATH") or None,
            zones_source=os.getenv("ZONES_SOURCE_PATH") or None,
        )

    @classmethod
    def for_gcp(cls, bucket_name: str) -> StorageConfig:
        """Create configuration for Google Cloud Storage."""
        return cls(
            raw_path=f"gs://{bucket_name}/raw",
            silver_path=f"gs://{bucket_name}/silver",
            gold_path=f"gs://{bucket_name}/gold",
            trips_source=os.getenv("TRIPS_SOURCE_PATH") or None,
            zones_source=os.getenv("ZONES_SOURCE_PATH") or None,
        )

    def get_trips_source_path(self) -> str:
        """Get the location of the raw trip CSV."""
        return self.trips_source or f"{self.raw_path}/{TRIPS_FILE_NAME}"

    def get_zones_source_path(self) -> str:
        """Get the location of the zone reference CSV."""
        return self.zones_source or f"{self.raw_path}/{ZONES_FILE_NAME}"

    def get_clean_trips_path(self) -> str:
        """Get the path for clean trips in the silver layer."""
        return f"{self.silver_path}/clean_trips"

    def get_dashboard_path(self) -> str:
        """Get the path for the dashboard table in the gold layer."""
        return f"{self.gold_path}/driver_efficiency_dashboard"


@dataclass
class PostgresConfig:
    """PostgreSQL configuration for publishing the dashboard table."""
    host: str
    port: int
    database: str
    user: str
    password: str
    schema: str = "analytics"

    @classmethod
    def from_env(cls) -> PostgresConfig:
        """Create configuration from environment variables."""
        return cls(
            host=os.getenv("POSTGRES_HOST", "localhost"),
            port=int(os.getenv("POSTGRES_PORT", "5432")),
            database=os.getenv("POSTGRES_DB", "nyc_taxi"),
            user=os.getenv("POSTGRES_USER", "pipeline"),
            password=os.getenv("POSTGRES_PASSWORD", "pipeline123"),
            schema=os.getenv("POSTGRES_SCHEMA", "analytics"),
        )

    @property
    def jdbc_url(self) -> str:
        """Get JDBC connection URL for Spark."""
        return f"jdbc:postgresql://{self.host}:{self.port}/{self.database}"

    @property
    def connection_properties(self) -> dict:
        """Get connection properties for Spark JDBC."""
        return {
            "user": self.user,
            "password": self.password,
            "driver": "org.postgresql.Driver",
        }


@dataclass
class SparkConfig:
    """Apache Spark configuration."""
    master: str
    app_name: str
    driver_memory: str
    executor_memory: str
    jars_packages: str = ""

    extra_configs: dict = field(default_factory=dict)

    @staticmethod
    def _common_configs() -> dict:
        return {
            "spark.sql.adaptive.enabled": "true",
            "spark.sql.adaptive.coalescePartitions.enabled": "true",
            "spark.sql.parquet.compression.codec": "snappy",
            "spark.sql.session.timeZone": "UTC",
            # Parsing of raw values relies on try_cast returning NULL
            "spark.sql.ansi.enabled": "false",
            "spark.sql.legacy.timeParserPolicy": "CORRECTED",
        }

    @classmethod
    def for_local(cls, app_name: str = "TaxiDriverEfficiency") -> SparkConfig:
        """Create configuration for local Spark."""
        return cls(
            master=os.getenv("SPARK_MASTER", "local[*]"),
            app_name=app_name,
            driver_memory=os.getenv("SPARK_DRIVER_MEMORY", "2g"),
            executor_memory=os.getenv("SPARK_EXECUTOR_MEMORY", "2g"),
            jars_packages=os.getenv("SPARK_JARS_PACKAGES", "org.postgresql:postgresql:42.6.0"),
            extra_configs=cls._common_configs(),
        )

    @classmethod
    def for_gcp(cls, app_name: str = "TaxiDriverEfficiency") -> SparkConfig:
        """Create configuration for GCP Dataproc."""
        extra = cls._common_configs()
        extra["spark.hadoop.google.cloud.auth.service.account.enable"] = "true"
        return cls(
            master="yarn",
            app_name=app_name,
            driver_memory=os.getenv("SPARK_DRIVER_MEMORY", "4g"),
            executor_memory=os.getenv("SPARK_EXECUTOR_MEMORY", "8g"),
            jars_packages=os.getenv("SPARK_JARS_PACKAGES", "org.postgresql:postgresql:42.6.0"),
            extra_configs=extra,
        )


@dataclass
class AnalysisConfig:
    """
    Query-time thresholds for the ranked analyses.

    The demand reports were historically run with two different
    minimum-support levels (>= 50 and >= 100 trips per day-hour), so both
    are kept as separate, configurable tiers.
    """
    min_support: float = 50.0
    high_support: float = 100.0
    min_avg_trip_distance: float = 1.0

    @classmethod
    def from_env(cls) -> AnalysisConfig:
        """Create configuration from environment variables."""
        return cls(
            min_support=_env_float("MIN_SUPPORT", 50.0),
            high_support=_env_float("HIGH_SUPPORT", 100.0),
            min_avg_trip_distance=_env_float("MIN_AVG_TRIP_DISTANCE", 1.0),
        )

    def threshold_for(self, tier: SupportTier) -> Optional[float]:
        """Resolve a support tier to its threshold (None = no filter)."""
        if tier == SupportTier.STANDARD:
            return self.min_support
        if tier == SupportTier.HIGH:
            return self.high_support
        return None


@dataclass
class PipelineConfig:
    """
    Main configuration class for the pipeline.

    Usage:
        config = PipelineConfig.load()

        print(config.storage.get_dashboard_path())
        print(config.postgres.jdbc_url)
    """
    environment: Environment
    storage: StorageConfig
    spark: SparkConfig
    postgres: PostgresConfig
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)

    log_level: str = "INFO"

    @classmethod
    def load(cls) -> PipelineConfig:
        """
        Load configuration from environment variables.

        The PIPELINE_ENV variable determines which environment
        configuration to load ("local" or "gcp").
        """
        env_str = os.getenv("PIPELINE_ENV", "local").lower()

        try:
            environment = Environment(env_str)
        except ValueError:
            raise ValueError(
                f"Invalid PIPELINE_ENV: '{env_str}'. "
                f"Must be one of: {[e.value for e in Environment]}"
            )

        if environment == Environment.LOCAL:
            return cls._load_local()
        else:
            return cls._load_gcp()

    @classmethod
    def _load_local(cls) -> PipelineConfig:
        data_path = os.getenv("DATA_PATH", "/data")

        return cls(
            environment=Environment.LOCAL,
            storage=StorageConfig.for_local(data_path),
            spark=SparkConfig.for_local(),
            postgres=PostgresConfig.from_env(),
            analysis=AnalysisConfig.from_env(),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

    @classmethod
    def _load_gcp(cls) -> PipelineConfig:
        bucket_name = os.getenv("GCS_BUCKET")

        if not bucket_name:
            raise ValueError("GCS_BUCKET environment variable is required for GCP environment")

        return cls(
            environment=Environment.GCP,
            storage=StorageConfig.for_gcp(bucket_name),
            spark=SparkConfig.for_gcp(),
            postgres=PostgresConfig.from_env(),
            analysis=AnalysisConfig.from_env(),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

    @property
    def is_local(self) -> bool:
        """Check if running in local environment."""
        return self.environment == Environment.LOCAL

    @property
    def is_gcp(self) -> bool:
        """Check if running in GCP environment."""
        return self.environment == Environment.GCP
