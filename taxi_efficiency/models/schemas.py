"""
PySpark Schema Definitions
==========================

Defines StructType schemas for each layer of the pipeline.

Schemas:
    - RAW_TRIP_SCHEMA: Trip CSV exactly as delivered (all strings)
    - ZONE_REFERENCE_SCHEMA: Typed zone lookup
    - CLEAN_TRIP_SCHEMA: Validated, deduplicated, zone-joined trips
    - ENRICHED_TRIP_SCHEMA: Clean trips plus calendar/category attributes
    - DASHBOARD_SCHEMA: Final wide table for reporting tools
"""

from pyspark.sql.types import (
    DateType,
    DoubleType,
    IntegerType,
    LongType,
    StringType,
    StructField,
    StructType,
    TimestampType,
)


# ============================================
# RAW DATA SCHEMAS
# ============================================

# Column order matches the source CSV; nothing is typed at this stage.
RAW_TRIP_COLUMNS = [
    "VendorID",
    "tpep_pickup_datetime",
    "tpep_dropoff_datetime",
    "passenger_count",
    "trip_distance",
    "RatecodeID",
    "store_and_fwd_flag",
    "PULocationID",
    "DOLocationID",
    "payment_type",
    "fare_amount",
    "extra",
    "mta_tax",
    "tip_amount",
    "tolls_amount",
    "improvement_surcharge",
    "total_amount",
    "congestion_surcharge",
    "airport_fee",
]

RAW_TRIP_SCHEMA = StructType([
    StructField(name, StringType(), True) for name in RAW_TRIP_COLUMNS
])


ZONE_REFERENCE_SCHEMA = StructType([
    StructField("LocationID", IntegerType(), False),
    StructField("Zone", StringType(), True),
    StructField("Borough", StringType(), True),
])


# ============================================
# CLEAN / ENRICHED SCHEMAS
# ============================================

CLEAN_TRIP_SCHEMA = StructType([
    StructField("VendorID", IntegerType(), True),
    StructField("pickup_datetime", TimestampType(), False),
    StructField("dropoff_datetime", TimestampType(), False),
    StructField("PULocationID", IntegerType(), False),
    StructField("PUZone", StringType(), True),
    StructField("PUBorough", StringType(), True),
    StructField("DOLocationID", IntegerType(), False),
    StructField("DOZone", StringType(), True),
    StructField("DOBorough", StringType(), True),
    StructField("trip_distance", DoubleType(), False),
    StructField("fare_amount", DoubleType(), False),
    StructField("total_amount", DoubleType(), True),
    StructField("passenger_count", IntegerType(), True),
    StructField("payment_type", IntegerType(), True),
    StructField("trip_duration_min", IntegerType(), False),
])


ENRICHED_TRIP_SCHEMA = StructType(
    CLEAN_TRIP_SCHEMA.fields + [
        StructField("pickup_weekday", IntegerType(), False),  # 1=Sunday, 7=Saturday
        StructField("pickup_hour", IntegerType(), False),
        StructField("pickup_date", DateType(), False),
        StructField("day_type", StringType(), False),
        StructField("day_part", StringType(), False),
        StructField("trip_length_type", StringType(), False),
    ]
)


# ============================================
# DASHBOARD SCHEMA
# ============================================

# Metrics are nullable: undefined values are reported as NULL.
DASHBOARD_SCHEMA = StructType([
    StructField("pickup_weekday", IntegerType(), False),
    StructField("pickup_weekday_name", StringType(), False),
    StructField("pickup_hour", IntegerType(), False),
    StructField("PUZone", StringType(), True),
    StructField("zone_type", StringType(), False),
    StructField("day_type", StringType(), False),
    StructField("day_part", StringType(), False),
    StructField("trip_length_type", StringType(), False),
    StructField("total_trips", LongType(), False),
    StructField("active_days", IntegerType(), False),
    StructField("avg_trips_per_day_hour", DoubleType(), False),
    StructField("avg_trip_duration_min", DoubleType(), False),
    StructField("minutes_per_mile", DoubleType(), True),
    StructField("total_fare", DoubleType(), False),
    StructField("total_trip_duration_min", LongType(), False),
    StructField("earnings_per_hour", DoubleType(), True),
    StructField("trip_duration_volatility_min", DoubleType(), True),
])


# ============================================
# SCHEMA UTILITIES
# ============================================

def get_schema_field_names(schema: StructType) -> list[str]:
    """
    Get list of field names from a schema.

    Args:
        schema: PySpark StructType schema

    Returns:
        List of field names
    """
    return [field.name for field in schema.fields]


def schema_to_ddl(schema: StructType, table_name: str) -> str:
    """
    Convert PySpark schema to PostgreSQL DDL.

    Args:
        schema: PySpark StructType schema
        table_name: Table name for DDL

    Returns:
        CREATE TABLE statement
    """
    type_mapping = {
        IntegerType: "INTEGER",
        LongType: "BIGINT",
        DoubleType: "DOUBLE PRECISION",
        StringType: "VARCHAR(255)",
        DateType: "DATE",
        TimestampType: "TIMESTAMP",
    }

    columns = []
    for field in schema.fields:
        pg_type = type_mapping.get(type(field.dataType), "TEXT")
        nullable = "" if field.nullable else " NOT NULL"
        columns.append(f'    "{field.name}" {pg_type}{nullable}')

    return f"CREATE TABLE {table_name} (\n" + ",\n".join(columns) + "\n);"
