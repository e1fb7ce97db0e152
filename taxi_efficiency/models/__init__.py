"""
Data Models
===========

Schemas, reference data and grouping definitions.

Modules:
    - schemas: PySpark StructType definitions for raw, clean, enriched and
      dashboard data
    - reference: weekday names, day parts, trip length and zone type labels
    - grouping: grouping keys used by the aggregator
"""

from taxi_efficiency.models.schemas import (
    RAW_TRIP_COLUMNS,
    RAW_TRIP_SCHEMA,
    ZONE_REFERENCE_SCHEMA,
    CLEAN_TRIP_SCHEMA,
    ENRICHED_TRIP_SCHEMA,
    DASHBOARD_SCHEMA,
    get_schema_field_names,
    schema_to_ddl,
)
from taxi_efficiency.models.reference import (
    WEEKDAY_NAMES,
    DAY_PARTS,
    TRIP_LENGTH_TYPES,
)
from taxi_efficiency.models.grouping import Grouping

__all__ = [
    # Schemas
    "RAW_TRIP_COLUMNS",
    "RAW_TRIP_SCHEMA",
    "ZONE_REFERENCE_SCHEMA",
    "CLEAN_TRIP_SCHEMA",
    "ENRICHED_TRIP_SCHEMA",
    "DASHBOARD_SCHEMA",
    "get_schema_field_names",
    "schema_to_ddl",
    # Reference data
    "WEEKDAY_NAMES",
    "DAY_PARTS",
    "TRIP_LENGTH_TYPES",
    # Groupings
    "Grouping",
]
