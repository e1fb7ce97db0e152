"""
Data Quality Validators
=======================

Invariant checks run after each producing stage. A failed check means a
bug upstream, so the pipeline stops before writing anything.

Usage:
    report = validate_clean_trips(clean_df)
    report = validate_buckets(dashboard_df)
    ensure_passed(report)  # raises DataQualityError
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from pyspark.sql import Column, DataFrame
from pyspark.sql import functions as F
from pyspark.sql.types import StructType

from taxi_efficiency.models.reference import DAY_PARTS, TRIP_LENGTH_TYPES
from taxi_efficiency.models.schemas import CLEAN_TRIP_SCHEMA, ENRICHED_TRIP_SCHEMA

logger = logging.getLogger(__name__)


class DataQualityError(RuntimeError):
    """Raised when a dataset violates one of its invariants."""

    def __init__(self, report: Dict[str, Any]):
        failed = [c["check"] for c in report["checks"] if not c["passed"]]
        super().__init__(f"Data quality checks failed for '{report['dataset']}': {failed}")
        self.report = report


class DataQualityChecker:
    """
    Counts rows violating named conditions on a DataFrame.

    All registered checks are evaluated in a single aggregation when the
    report is requested.

    Usage:
        checker = DataQualityChecker(df, "clean_trips")
        checker.expect("positive_fare", F.col("fare_amount") > 0)
        checker.expect_finite(["earnings_per_hour"])
        report = checker.get_report()
    """

    def __init__(self, df: DataFrame, dataset_name: str):
        self.df = df
        self.dataset_name = dataset_name
        self._expectations: List[tuple] = []
        self._schema_checks: List[tuple] = []

    def expect(self, check: str, condition: Column) -> DataQualityChecker:
        """Register a condition every row must satisfy (NULL counts as a violation)."""
        self._expectations.append((check, F.coalesce(condition, F.lit(False))))
        return self

    def expect_not_null(self, columns: List[str]) -> DataQualityChecker:
        for column in columns:
            self.expect(f"not_null:{column}", F.col(column).isNotNull())
        return self

    def expect_finite(self, columns: List[str]) -> DataQualityChecker:
        """Values may be NULL but never NaN or infinite."""
        for column in columns:
            value = F.col(column)
            self.expect(
                f"finite:{column}",
                value.isNull()
                | (~F.isnan(value) & (F.abs(value) != F.lit(float("inf")))),
            )
        return self

    def expect_schema(self, schema: StructType) -> DataQualityChecker:
        """
        Require every field of schema, with the same data type.

        Nullability is not compared. A mismatch fails on every row.
        """
        actual = {f.name: f.dataType for f in self.df.schema.fields}
        for field in schema.fields:
            self._schema_checks.append(
                (f"schema:{field.name}", actual.get(field.name) == field.dataType)
            )
        return self

    def get_report(self) -> Dict[str, Any]:
        """Evaluate all registered checks and return a report."""
        if self._expectations:
            row = self.df.agg(
                F.count(F.lit(1)).alias("_total_rows"),
                *[
                    F.sum(F.when(~condition, 1).otherwise(0)).alias(f"_check_{i}")
                    for i, (_, condition) in enumerate(self._expectations)
                ],
            ).first()
            total_rows = row["_total_rows"]
            violations = [row[f"_check_{i}"] or 0 for i in range(len(self._expectations))]
        else:
            total_rows = self.df.count()
            violations = []

        checks = []
        for check, matches in self._schema_checks:
            checks.append({
                "check": check,
                "violations": 0 if matches else total_rows,
                "passed": matches,
            })
            if not matches:
                logger.warning(f"Check '{check}' failed on '{self.dataset_name}'")

        for (check, _), count in zip(self._expectations, violations):
            checks.append({
                "check": check,
                "violations": count,
                "passed": count == 0,
            })
            if count:
                logger.warning(
                    f"Check '{check}' failed on '{self.dataset_name}': {count:,} rows"
                )

        passed = sum(1 for c in checks if c["passed"])

        return {
            "dataset": self.dataset_name,
            "total_rows": total_rows,
            "checks_total": len(checks),
            "checks_passed": passed,
            "checks_failed": len(checks) - passed,
            "all_passed": passed == len(checks),
            "checks": checks,
        }


def validate_clean_trips(df: DataFrame) -> Dict[str, Any]:
    """Check the clean-trip invariants and column types."""
    return (
        DataQualityChecker(df, "clean_trips")
        .expect_schema(CLEAN_TRIP_SCHEMA)
        .expect("positive_fare", F.col("fare_amount") > 0)
        .expect("positive_distance", F.col("trip_distance") > 0)
        .expect("dropoff_after_pickup", F.col("dropoff_datetime") > F.col("pickup_datetime"))
        .expect_not_null(["PULocationID", "DOLocationID", "trip_duration_min"])
        .get_report()
    )


def validate_enriched_trips(df: DataFrame) -> Dict[str, Any]:
    """Check enriched column types, known day parts and trip lengths."""
    return (
        DataQualityChecker(df, "enriched_trips")
        .expect_schema(ENRICHED_TRIP_SCHEMA)
        .expect("known_day_part", F.col("day_part").isin(DAY_PARTS))
        .expect("known_trip_length", F.col("trip_length_type").isin(TRIP_LENGTH_TYPES))
        .expect("weekday_range", F.col("pickup_weekday").between(1, 7))
        .get_report()
    )


def validate_buckets(df: DataFrame, dataset_name: str = "buckets") -> Dict[str, Any]:
    """Check that buckets are non-empty and report no degenerate metrics."""
    metric_columns = [
        c for c in (
            "avg_trips_per_day_hour",
            "avg_trip_duration_min",
            "minutes_per_mile",
            "earnings_per_hour",
            "trip_duration_volatility_min",
        )
        if c in df.columns
    ]
    return (
        DataQualityChecker(df, dataset_name)
        .expect("non_empty_bucket", F.col("total_trips") >= 1)
        .expect_finite(metric_columns)
        .get_report()
    )


def ensure_passed(report: Dict[str, Any]) -> Dict[str, Any]:
    """
    Raise if any check in the report failed.

    Raises:
        DataQualityError: If report["all_passed"] is False
    """
    if not report["all_passed"]:
        raise DataQualityError(report)
    return report
