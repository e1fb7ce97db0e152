"""
Trip Validation and Deduplication
=================================

Turns the raw trip set into the canonical clean set.

Steps:
    1. Deduplicate on the raw values of (pickup ts, dropoff ts,
       PULocationID, DOLocationID, fare_amount), keeping one row per key
    2. Parse every field with try_cast (malformed values become NULL)
    3. Join pickup and dropoff zones from the broadcast zone reference
    4. Count each rejection rule, then keep rows passing all of them:
        - fare_amount > 0
        - trip_distance > 0
        - dropoff strictly after pickup
        - both location ids present in the zone reference

Usage:
    clean, stats = clean_trips(raw_trips, zones)
    print(stats.to_dict())
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Dict, Tuple

from pyspark.sql import Column, DataFrame
from pyspark.sql import functions as F
from pyspark.sql.window import Window

from taxi_efficiency.models.schemas import RAW_TRIP_COLUMNS

logger = logging.getLogger(__name__)


DEDUP_KEY_COLUMNS = [
    "tpep_pickup_datetime",
    "tpep_dropoff_datetime",
    "PULocationID",
    "DOLocationID",
    "fare_amount",
]

# NYC Open Data exports use 12-hour timestamps: 01/01/2023 12:32:10 AM
EXPORT_TIMESTAMP_FORMAT = "MM/dd/yyyy hh:mm:ss a"

# (stats field, validity flag column)
REJECTION_RULES = [
    ("invalid_timestamp", "_timestamp_ok"),
    ("invalid_fare", "_fare_ok"),
    ("invalid_distance", "_distance_ok"),
    ("zone_mismatch", "_zones_ok"),
]


@dataclass
class CleaningStats:
    """
    Diagnostic counts for one cleaning run.

    Rule counts are taken over the deduplicated rows and are independent:
    a row failing two rules is counted by both.
    """
    raw_rows: int = 0
    duplicates_removed: int = 0
    invalid_timestamp: int = 0
    invalid_fare: int = 0
    invalid_distance: int = 0
    zone_mismatch: int = 0
    clean_rows: int = 0

    @property
    def deduplicated_rows(self) -> int:
        return self.raw_rows - self.duplicates_removed

    @property
    def rejected_rows(self) -> int:
        """Rows removed for any reason (duplicates included)."""
        return self.raw_rows - self.clean_rows

    @property
    def clean_rate(self) -> float:
        if self.raw_rows == 0:
            return 0.0
        return self.clean_rows / self.raw_rows

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


# ============================================
# PARSING
# ============================================

def _try_cast(column: str, data_type: str) -> Column:
    return F.expr(f"try_cast(trim(`{column}`) AS {data_type})")


def parse_timestamp(column: str) -> Column:
    """
    Parse a raw timestamp string; NULL when it matches no known format.

    Accepts ISO-like strings (2023-01-01 00:32:10) and the open-data
    export format (01/01/2023 12:32:10 AM).
    """
    return F.coalesce(
        _try_cast(column, "TIMESTAMP"),
        F.expr(f"try_to_timestamp(trim(`{column}`), '{EXPORT_TIMESTAMP_FORMAT}')"),
    )


def trip_duration_minutes(pickup: Column, dropoff: Column) -> Column:
    """Whole-minute boundaries crossed between pickup and dropoff."""
    return (
        (
            F.unix_timestamp(F.date_trunc("minute", dropoff))
            - F.unix_timestamp(F.date_trunc("minute", pickup))
        ) / 60
    ).cast("int")


def parse_raw_trips(raw: DataFrame) -> DataFrame:
    """
    Add typed versions of the fields used for validation.

    Raw columns are kept; parsed columns are prefixed with "_".
    Parsing never raises.
    """
    return raw.select(
        "*",
        parse_timestamp("tpep_pickup_datetime").alias("_pickup_ts"),
        parse_timestamp("tpep_dropoff_datetime").alias("_dropoff_ts"),
        _try_cast("fare_amount", "DOUBLE").alias("_fare"),
        _try_cast("trip_distance", "DOUBLE").alias("_distance"),
        _try_cast("PULocationID", "INT").alias("_pu_id"),
        _try_cast("DOLocationID", "INT").alias("_do_id"),
    )


# ============================================
# DEDUPLICATION
# ============================================

def deduplicate_trips(raw: DataFrame) -> DataFrame:
    """
    Keep one raw row per deduplication key.

    The survivor is the row with the earliest pickup timestamp; remaining
    ties are broken by the other raw columns so repeated runs keep the
    same row.

    Args:
        raw: Raw trips DataFrame (RAW_TRIP_SCHEMA)

    Returns:
        DataFrame with the same columns, unique on DEDUP_KEY_COLUMNS
    """
    tiebreak = [
        F.col(c).asc_nulls_last()
        for c in RAW_TRIP_COLUMNS
        if c not in DEDUP_KEY_COLUMNS
    ]
    window = (
        Window
        .partitionBy(*DEDUP_KEY_COLUMNS)
        .orderBy(parse_timestamp("tpep_pickup_datetime").asc_nulls_last(), *tiebreak)
    )

    return (
        raw
        .withColumn("_dedup_rank", F.row_number().over(window))
        .filter(F.col("_dedup_rank") == 1)
        .drop("_dedup_rank")
    )


# ============================================
# VALIDATION
# ============================================

def _zone_lookup(zones: DataFrame, key: str, prefix: str) -> DataFrame:
    return F.broadcast(
        zones.select(
            F.col("LocationID").alias(key),
            F.col("Zone").alias(f"{prefix}Zone"),
            F.col("Borough").alias(f"{prefix}Borough"),
            F.lit(True).alias(f"_{prefix.lower()}_known"),
        )
    )


def flag_trips(parsed: DataFrame, zones: DataFrame) -> DataFrame:
    """
    Join zone names and add one boolean flag per validity rule.

    Flags are never NULL: an unparseable value fails its rule.
    """
    return (
        parsed
        .join(_zone_lookup(zones, "_pu_id", "PU"), on="_pu_id", how="left")
        .join(_zone_lookup(zones, "_do_id", "DO"), on="_do_id", how="left")
        .withColumn(
            "_timestamp_ok",
            F.coalesce(F.col("_dropoff_ts") > F.col("_pickup_ts"), F.lit(False)),
        )
        .withColumn("_fare_ok", F.coalesce(F.col("_fare") > 0, F.lit(False)))
        .withColumn("_distance_ok", F.coalesce(F.col("_distance") > 0, F.lit(False)))
        .withColumn(
            "_zones_ok",
            F.col("_pu_known").isNotNull() & F.col("_do_known").isNotNull(),
        )
    )


def _all_rules_pass() -> Column:
    condition = F.lit(True)
    for _, flag in REJECTION_RULES:
        condition = condition & F.col(flag)
    return condition


def _select_clean_columns(flagged: DataFrame) -> DataFrame:
    return flagged.select(
        _try_cast("VendorID", "INT").alias("VendorID"),
        F.col("_pickup_ts").alias("pickup_datetime"),
        F.col("_dropoff_ts").alias("dropoff_datetime"),
        F.col("_pu_id").alias("PULocationID"),
        "PUZone",
        "PUBorough",
        F.col("_do_id").alias("DOLocationID"),
        "DOZone",
        "DOBorough",
        F.col("_distance").alias("trip_distance"),
        F.col("_fare").alias("fare_amount"),
        _try_cast("total_amount", "DOUBLE").alias("total_amount"),
        _try_cast("passenger_count", "INT").alias("passenger_count"),
        _try_cast("payment_type", "INT").alias("payment_type"),
        trip_duration_minutes(F.col("_pickup_ts"), F.col("_dropoff_ts")).alias("trip_duration_min"),
    )


def _collect_stats(raw_rows: int, flagged: DataFrame) -> CleaningStats:
    row = flagged.agg(
        F.count(F.lit(1)).alias("deduplicated_rows"),
        *[
            F.sum(F.when(~F.col(flag), 1).otherwise(0)).alias(name)
            for name, flag in REJECTION_RULES
        ],
        F.sum(F.when(_all_rules_pass(), 1).otherwise(0)).alias("clean_rows"),
    ).first()

    return CleaningStats(
        raw_rows=raw_rows,
        duplicates_removed=raw_rows - row["deduplicated_rows"],
        invalid_timestamp=row["invalid_timestamp"] or 0,
        invalid_fare=row["invalid_fare"] or 0,
        invalid_distance=row["invalid_distance"] or 0,
        zone_mismatch=row["zone_mismatch"] or 0,
        clean_rows=row["clean_rows"] or 0,
    )


def clean_trips(
    raw: DataFrame,
    zones: DataFrame,
) -> Tuple[DataFrame, CleaningStats]:
    """
    Build the clean trip set from the raw store and the zone reference.

    Args:
        raw: Raw trips DataFrame (RAW_TRIP_SCHEMA)
        zones: Zone reference DataFrame (ZONE_REFERENCE_SCHEMA)

    Returns:
        Tuple of (clean trips DataFrame, CleaningStats). Nothing is left
        cached; callers that reuse the clean set cache it themselves.
    """
    raw_rows = raw.count()
    logger.info(f"Cleaning {raw_rows:,} raw trips")

    flagged = flag_trips(parse_raw_trips(deduplicate_trips(raw)), zones)

    stats = _collect_stats(raw_rows, flagged)
    clean = _select_clean_columns(flagged.filter(_all_rules_pass()))

    logger.info(f"Duplicates removed: {stats.duplicates_removed:,}")
    for name, _ in REJECTION_RULES:
        logger.info(f"{name}: {getattr(stats, name):,}")
    logger.info(
        f"Clean trips: {stats.clean_rows:,} of {stats.raw_rows:,} "
        f"({stats.clean_rate:.2%})"
    )

    return clean, stats
