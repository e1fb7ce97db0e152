"""
Raw Ingestion
=============

Reads the raw trip file and the zone reference file.

Raw layer characteristics:
    - Trip columns are read as strings, exactly as delivered
    - Header row present; data starts at row 2
    - Zone reference is typed, deduplicated on LocationID and small
      enough to broadcast to every stage

An unreadable source is fatal: the run stops before any output is written.
"""

from __future__ import annotations

import logging

from pyspark.errors import AnalysisException
from pyspark.sql import DataFrame, SparkSession
from pyspark.sql import functions as F

from taxi_efficiency.models.schemas import RAW_TRIP_SCHEMA

logger = logging.getLogger(__name__)


ZONE_COLUMNS = ["Zone", "LocationID", "Borough"]


class IngestionError(RuntimeError):
    """Raised when a source file cannot be read."""


def read_raw_trips(
    spark: SparkSession,
    file_path: str,
) -> DataFrame:
    """
    Read raw trip records from CSV.

    Args:
        spark: SparkSession
        file_path: Path to the trip CSV (file or directory)

    Returns:
        DataFrame with RAW_TRIP_SCHEMA (all strings)

    Raises:
        IngestionError: If the file cannot be read
    """
    logger.info(f"Reading raw trips from: {file_path}")

    try:
        df = (
            spark.read
            .option("header", "true")
            .option("mode", "PERMISSIVE")
            .schema(RAW_TRIP_SCHEMA)
            .csv(file_path)
        )
        row_count = df.count()
    except AnalysisException as e:
        raise IngestionError(f"Cannot read trip source '{file_path}': {e}") from e

    logger.info(f"Read {row_count:,} raw trips from {file_path}")

    return df


def read_zone_reference(
    spark: SparkSession,
    file_path: str,
) -> DataFrame:
    """
    Read the zone reference from CSV.

    Columns are matched by header name, so both the (Zone, LocationID,
    Borough) export and the TLC (LocationID, Borough, Zone, service_zone)
    layout are accepted.

    Args:
        spark: SparkSession
        file_path: Path to the zone CSV

    Returns:
        DataFrame with ZONE_REFERENCE_SCHEMA, unique on LocationID

    Raises:
        IngestionError: If the file cannot be read or lacks a required column
    """
    logger.info(f"Reading zone reference from: {file_path}")

    try:
        raw = spark.read.option("header", "true").csv(file_path)
    except AnalysisException as e:
        raise IngestionError(f"Cannot read zone source '{file_path}': {e}") from e

    missing = [c for c in ZONE_COLUMNS if c not in raw.columns]
    if missing:
        raise IngestionError(
            f"Zone source '{file_path}' is missing columns: {missing}"
        )

    typed = (
        raw
        .select(
            F.expr("try_cast(trim(LocationID) AS INT)").alias("LocationID"),
            F.trim(F.col("Zone")).alias("Zone"),
            F.trim(F.col("Borough")).alias("Borough"),
        )
        .filter(F.col("LocationID").isNotNull())
    )

    total = typed.count()
    zones = typed.dropDuplicates(["LocationID"])
    unique = zones.count()

    if unique < total:
        logger.warning(
            f"Dropped {total - unique:,} duplicate LocationID rows from zone reference"
        )

    logger.info(f"Read {unique:,} zones from {file_path}")

    return zones
