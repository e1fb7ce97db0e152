"""
Integration Tests for the Driver Efficiency Pipeline
====================================================

These tests run the cleaning, enrichment, aggregation, dashboard and
analysis stages on small in-memory datasets, plus one end-to-end refresh
over temporary CSV files.

Requirements:
    - PySpark must be available
    - Tests use in-memory data (no external dependencies)

Run with:
    pytest tests/integration/ -v
"""

import csv
import os
import shutil
import tempfile
from datetime import date

import pytest

# Skip all tests if PySpark is not available
pyspark = pytest.importorskip("pyspark")

from pyspark.sql import SparkSession
from pyspark.sql import functions as F
from pyspark.sql.types import (
    DateType,
    DoubleType,
    IntegerType,
    StringType,
    StructField,
    StructType,
)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(scope="module")
def spark():
    """Create a SparkSession for testing."""
    spark = (
        SparkSession.builder
        .master("local[2]")
        .appName("Taxi Driver Efficiency Tests")
        .config("spark.sql.shuffle.partitions", "2")
        .config("spark.default.parallelism", "2")
        .config("spark.sql.session.timeZone", "UTC")
        .config("spark.sql.ansi.enabled", "false")
        .config("spark.sql.legacy.timeParserPolicy", "CORRECTED")
        .config("spark.driver.memory", "1g")
        .getOrCreate()
    )

    yield spark

    spark.stop()


@pytest.fixture(scope="module")
def temp_dir():
    """Create a temporary directory for test outputs."""
    temp_path = tempfile.mkdtemp(prefix="taxi_efficiency_test_")
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def make_raw_trips(spark, sample_trip_record):
    """Build a raw trips DataFrame from per-row overrides of the sample record."""
    from taxi_efficiency.models.schemas import RAW_TRIP_COLUMNS, RAW_TRIP_SCHEMA

    def build(overrides):
        rows = []
        for override in overrides:
            record = dict(sample_trip_record)
            record.update(override)
            rows.append(tuple(record[c] for c in RAW_TRIP_COLUMNS))
        return spark.createDataFrame(rows, RAW_TRIP_SCHEMA)

    return build


@pytest.fixture
def zones(spark, sample_zone_records):
    """Zone reference DataFrame."""
    from taxi_efficiency.models.schemas import ZONE_REFERENCE_SCHEMA

    return spark.createDataFrame(sample_zone_records, ZONE_REFERENCE_SCHEMA)


def trip(pickup, dropoff, fare="15.50", distance="3.5", **extra):
    """Override dict for one raw trip."""
    record = {
        "tpep_pickup_datetime": pickup,
        "tpep_dropoff_datetime": dropoff,
        "fare_amount": fare,
        "trip_distance": distance,
    }
    record.update(extra)
    return record


# Sunday 2023-01-15, 10h, Midtown Center: fares [10, 20, 15], durations [10, 15, 20]
MIDTOWN_MORNING = [
    trip("2023-01-15 10:00:00", "2023-01-15 10:10:00", fare="10"),
    trip("2023-01-15 10:05:00", "2023-01-15 10:20:00", fare="20"),
    trip("2023-01-15 10:10:00", "2023-01-15 10:30:00", fare="15"),
]

# Sunday 2023-01-15, 14h, JFK Airport: a single 30 minute trip
JFK_AFTERNOON = [
    trip("2023-01-15 14:00:00", "2023-01-15 14:30:00", fare="70", distance="10",
         PULocationID="132"),
]

# Monday 2023-01-16, 9h, Midtown Center: dropoff in the same minute as pickup
MIDTOWN_ZERO_DURATION = [
    trip("2023-01-16 09:00:10", "2023-01-16 09:00:50", fare="3", distance="0.5"),
]


@pytest.fixture
def enriched_trips(make_raw_trips, zones):
    """Enriched trips covering three hourly-zone buckets."""
    from taxi_efficiency.jobs.cleaning import clean_trips
    from taxi_efficiency.jobs.enrichment import enrich_trips

    raw = make_raw_trips(MIDTOWN_MORNING + JFK_AFTERNOON + MIDTOWN_ZERO_DURATION)
    clean, _ = clean_trips(raw, zones)
    return enrich_trips(clean)


def by_key(rows, columns):
    return {tuple(row[c] for c in columns): row for row in rows}


def write_csv(path, header, rows):
    with open(path, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        writer.writerows(rows)


# =============================================================================
# Ingestion Tests
# =============================================================================

class TestIngestion:
    """Test reading the raw sources."""

    def test_missing_trip_file_raises(self, spark, temp_dir):
        from taxi_efficiency.jobs.ingestion import IngestionError, read_raw_trips

        with pytest.raises(IngestionError):
            read_raw_trips(spark, os.path.join(temp_dir, "does_not_exist.csv"))

    def test_trip_values_stay_strings(self, spark, temp_dir, sample_trip_record):
        from taxi_efficiency.jobs.ingestion import read_raw_trips
        from taxi_efficiency.models.schemas import RAW_TRIP_COLUMNS

        path = os.path.join(temp_dir, "raw_trips.csv")
        write_csv(path, RAW_TRIP_COLUMNS, [[sample_trip_record[c] for c in RAW_TRIP_COLUMNS]])

        df = read_raw_trips(spark, path)
        row = df.first()

        assert df.columns == RAW_TRIP_COLUMNS
        assert row["fare_amount"] == "15.50"
        assert row["PULocationID"] == "161"

    def test_zone_reference_by_header(self, spark, temp_dir):
        """TLC layout is accepted; duplicates and bad ids are dropped."""
        from taxi_efficiency.jobs.ingestion import read_zone_reference

        path = os.path.join(temp_dir, "tlc_zones.csv")
        write_csv(path, ["LocationID", "Borough", "Zone", "service_zone"], [
            ["132", "Queens", "JFK Airport", "Airports"],
            ["161", "Manhattan", "Midtown Center", "Yellow Zone"],
            ["161", "Manhattan", "Midtown Center", "Yellow Zone"],
            ["N/A", "Unknown", "NV", "N/A"],
        ])

        zones = read_zone_reference(spark, path)
        rows = by_key(zones.collect(), ["LocationID"])

        assert zones.columns == ["LocationID", "Zone", "Borough"]
        assert set(rows) == {(132,), (161,)}
        assert rows[(132,)]["Zone"] == "JFK Airport"

    def test_zone_reference_missing_column(self, spark, temp_dir):
        from taxi_efficiency.jobs.ingestion import IngestionError, read_zone_reference

        path = os.path.join(temp_dir, "bad_zones.csv")
        write_csv(path, ["LocationID", "Zone"], [["161", "Midtown Center"]])

        with pytest.raises(IngestionError, match="Borough"):
            read_zone_reference(spark, path)


# =============================================================================
# Cleaning Tests
# =============================================================================

class TestCleaning:
    """Test deduplication and validation."""

    def test_duplicates_with_different_vendor_collapse(self, make_raw_trips, zones):
        """Rows equal on the dedup key are one trip, whatever the VendorID."""
        from taxi_efficiency.jobs.cleaning import clean_trips

        raw = make_raw_trips([{"VendorID": "2"}, {"VendorID": "1"}])
        clean, stats = clean_trips(raw, zones)

        rows = clean.collect()
        assert len(rows) == 1
        assert rows[0]["VendorID"] == 1
        assert stats.duplicates_removed == 1
        assert stats.clean_rows == 1

    def test_dedup_runs_before_validation(self, make_raw_trips, zones):
        """The survivor is picked on raw values, even when it fails a rule."""
        from taxi_efficiency.jobs.cleaning import clean_trips, deduplicate_trips

        raw = make_raw_trips([{"trip_distance": "3.5"}, {"trip_distance": "0"}])

        survivors = deduplicate_trips(raw).collect()
        assert [r["trip_distance"] for r in survivors] == ["0"]

        clean, stats = clean_trips(raw, zones)
        assert stats.duplicates_removed == 1
        assert stats.invalid_distance == 1
        assert stats.invalid_fare == 0
        assert stats.clean_rows == 0
        assert clean.count() == 0

    def test_invalid_duplicates_counted_once(self, make_raw_trips, zones):
        from taxi_efficiency.jobs.cleaning import clean_trips

        raw = make_raw_trips([
            {},
            {"fare_amount": "-5", "tip_amount": "1.00"},
            {"fare_amount": "-5", "tip_amount": "2.00"},
        ])
        clean, stats = clean_trips(raw, zones)

        assert stats.raw_rows == 3
        assert stats.duplicates_removed == 1
        assert stats.invalid_fare == 1
        assert stats.rejected_rows == 2
        assert clean.count() == 1

    def test_negative_fare_counted(self, make_raw_trips, zones):
        from taxi_efficiency.jobs.cleaning import clean_trips

        raw = make_raw_trips([{}, {"fare_amount": "-5", "PULocationID": "237"}])
        clean, stats = clean_trips(raw, zones)

        assert clean.count() == 1
        assert stats.invalid_fare == 1
        assert stats.invalid_distance == 0
        assert stats.invalid_timestamp == 0
        assert stats.zone_mismatch == 0

    def test_rule_counts(self, make_raw_trips, zones):
        """Every rule is counted independently over deduplicated rows."""
        from taxi_efficiency.jobs.cleaning import clean_trips

        raw = make_raw_trips([
            {},
            {"PULocationID": "999"},
            {"DOLocationID": "abc"},
            {"trip_distance": "0", "fare_amount": "12"},
            {"trip_distance": "", "fare_amount": "13"},
            {"fare_amount": "abc"},
            {"tpep_dropoff_datetime": "2023-01-15 10:30:00", "fare_amount": "14"},
            {"tpep_pickup_datetime": "not a date", "fare_amount": "0"},
        ])
        clean, stats = clean_trips(raw, zones)

        assert stats.raw_rows == 8
        assert stats.duplicates_removed == 0
        assert stats.zone_mismatch == 2
        assert stats.invalid_distance == 2
        assert stats.invalid_fare == 2
        assert stats.invalid_timestamp == 2
        assert stats.clean_rows == 1
        assert clean.count() == 1
        assert stats.rejected_rows == 7

    def test_export_timestamp_format(self, make_raw_trips, zones):
        from taxi_efficiency.jobs.cleaning import clean_trips

        raw = make_raw_trips([
            trip("01/15/2023 10:30:00 PM", "01/15/2023 10:45:00 PM"),
        ])
        clean, _ = clean_trips(raw, zones)
        row = clean.select(
            F.date_format("pickup_datetime", "yyyy-MM-dd HH:mm:ss").alias("pickup"),
            "trip_duration_min",
        ).first()

        assert row["pickup"] == "2023-01-15 22:30:00"
        assert row["trip_duration_min"] == 15

    def test_duration_counts_minute_boundaries(self, make_raw_trips, zones):
        from taxi_efficiency.jobs.cleaning import clean_trips

        raw = make_raw_trips([trip("2023-01-15 10:30:50", "2023-01-15 10:31:10")])
        clean, _ = clean_trips(raw, zones)

        assert clean.first()["trip_duration_min"] == 1

    def test_clean_rows_are_valid(self, make_raw_trips, zones):
        from taxi_efficiency.jobs.cleaning import clean_trips
        from taxi_efficiency.quality.validators import validate_clean_trips

        raw = make_raw_trips(
            MIDTOWN_MORNING + JFK_AFTERNOON + MIDTOWN_ZERO_DURATION
            + [{"fare_amount": "-1"}, {"trip_distance": "-2"}]
        )
        clean, _ = clean_trips(raw, zones)

        assert validate_clean_trips(clean)["all_passed"] is True
        row = by_key(clean.collect(), ["PULocationID"])[(132,)]
        assert row["PUZone"] == "JFK Airport"
        assert row["DOZone"] == "Upper East Side South"

    def test_cleaning_is_idempotent(self, make_raw_trips, zones):
        from taxi_efficiency.jobs.cleaning import clean_trips, deduplicate_trips

        raw = make_raw_trips([{"VendorID": "2"}, {"VendorID": "1"}] + MIDTOWN_MORNING)

        once = deduplicate_trips(raw)
        twice = deduplicate_trips(once)
        assert sorted(once.collect()) == sorted(twice.collect())

        first, first_stats = clean_trips(raw, zones)
        second, second_stats = clean_trips(raw, zones)
        assert sorted(first.collect()) == sorted(second.collect())
        assert first_stats == second_stats


# =============================================================================
# Enrichment Tests
# =============================================================================

class TestEnrichment:
    """Test calendar and category attributes."""

    def test_day_part_and_weekday(self, make_raw_trips, zones):
        from taxi_efficiency.jobs.cleaning import clean_trips
        from taxi_efficiency.jobs.enrichment import enrich_trips

        raw = make_raw_trips([
            trip("2023-01-15 23:10:00", "2023-01-15 23:25:00"),
            trip("2023-01-16 12:00:00", "2023-01-16 12:20:00"),
        ])
        clean, _ = clean_trips(raw, zones)
        rows = by_key(enrich_trips(clean).collect(), ["pickup_hour"])

        night = rows[(23,)]
        assert night["day_part"] == "Night"
        assert night["pickup_weekday"] == 1
        assert night["day_type"] == "Weekend"
        assert night["pickup_date"] == date(2023, 1, 15)

        afternoon = rows[(12,)]
        assert afternoon["day_part"] == "Afternoon"
        assert afternoon["pickup_weekday"] == 2
        assert afternoon["day_type"] == "Weekday"

    @pytest.mark.parametrize("distance,expected", [
        ("0.4", "Short"),
        ("1.99", "Short"),
        ("2.0", "Medium"),
        ("8.0", "Medium"),
        ("8.01", "Long"),
    ])
    def test_trip_length_type(self, make_raw_trips, zones, distance, expected):
        from taxi_efficiency.jobs.cleaning import clean_trips
        from taxi_efficiency.jobs.enrichment import enrich_trips

        clean, _ = clean_trips(make_raw_trips([{"trip_distance": distance}]), zones)

        assert enrich_trips(clean).first()["trip_length_type"] == expected

    def test_enrichment_is_total(self, enriched_trips):
        from taxi_efficiency.quality.validators import validate_enriched_trips

        report = validate_enriched_trips(enriched_trips)

        assert report["total_rows"] == 5
        assert report["all_passed"] is True


# =============================================================================
# Aggregation Tests
# =============================================================================

class TestAggregation:
    """Test bucket metrics."""

    def test_bucket_metrics(self, enriched_trips):
        from taxi_efficiency.jobs.aggregation import aggregate_trips
        from taxi_efficiency.models.grouping import Grouping

        buckets = by_key(
            aggregate_trips(enriched_trips, Grouping.HOURLY_ZONE).collect(),
            Grouping.HOURLY_ZONE.columns,
        )
        midtown = buckets[(1, 10, "Midtown Center")]

        assert midtown["total_trips"] == 3
        assert midtown["active_days"] == 1
        assert midtown["avg_trips_per_day_hour"] == 3.0
        assert midtown["avg_trip_duration_min"] == 15.0
        assert midtown["total_fare"] == 45.0
        assert midtown["total_trip_duration_min"] == 45
        assert midtown["earnings_per_hour"] == pytest.approx(60.0)
        assert midtown["trip_duration_volatility_min"] == pytest.approx(5.0)
        assert midtown["minutes_per_mile"] == pytest.approx(15 / 3.5)

    def test_volatility_exact_for_extreme_durations(self, spark):
        """Squared durations past the LONG range still give the exact deviation."""
        from taxi_efficiency.jobs.aggregation import aggregate_trips
        from taxi_efficiency.models.grouping import Grouping

        schema = StructType([
            StructField("pickup_weekday", IntegerType(), False),
            StructField("pickup_hour", IntegerType(), False),
            StructField("PUZone", StringType(), True),
            StructField("pickup_date", DateType(), False),
            StructField("fare_amount", DoubleType(), False),
            StructField("trip_distance", DoubleType(), False),
            StructField("trip_duration_min", IntegerType(), False),
        ])
        longest = 2147483647
        trips = spark.createDataFrame([
            (1, 10, "Midtown Center", date(2023, 1, 15), 10.0, 1.0, longest),
            (1, 10, "Midtown Center", date(2023, 1, 15), 10.0, 1.0, longest - 2),
        ], schema)

        row = aggregate_trips(trips, Grouping.HOURLY_ZONE).first()

        assert row["trip_duration_volatility_min"] == pytest.approx(2 ** 0.5)

    def test_single_trip_has_no_volatility(self, enriched_trips):
        from taxi_efficiency.jobs.aggregation import aggregate_trips
        from taxi_efficiency.models.grouping import Grouping

        buckets = by_key(
            aggregate_trips(enriched_trips, Grouping.HOURLY_ZONE).collect(),
            Grouping.HOURLY_ZONE.columns,
        )
        jfk = buckets[(1, 14, "JFK Airport")]

        assert jfk["total_trips"] == 1
        assert jfk["trip_duration_volatility_min"] is None
        assert jfk["earnings_per_hour"] == pytest.approx(140.0)

    def test_zero_duration_has_no_earnings_rate(self, enriched_trips):
        from taxi_efficiency.jobs.aggregation import aggregate_trips
        from taxi_efficiency.models.grouping import Grouping

        buckets = by_key(
            aggregate_trips(enriched_trips, Grouping.HOURLY_ZONE).collect(),
            Grouping.HOURLY_ZONE.columns,
        )
        bucket = buckets[(2, 9, "Midtown Center")]

        assert bucket["total_trip_duration_min"] == 0
        assert bucket["earnings_per_hour"] is None
        assert bucket["minutes_per_mile"] == 0.0

    @pytest.mark.parametrize("grouping_name", [
        "HOURLY_ZONE", "DAY_TYPE", "DAY_PART", "TRIP_LENGTH", "DASHBOARD",
    ])
    def test_trip_count_conserved(self, enriched_trips, grouping_name):
        from taxi_efficiency.jobs.aggregation import aggregate_trips
        from taxi_efficiency.models.grouping import Grouping

        buckets = aggregate_trips(enriched_trips, Grouping[grouping_name])
        total = buckets.agg(F.sum("total_trips")).first()[0]

        assert total == enriched_trips.count()

    def test_combined_partials_match_single_pass(self, make_raw_trips, zones):
        """Partials from two partitions combine to the single-pass result."""
        from taxi_efficiency.jobs.aggregation import (
            aggregate_trips,
            combine_partial_aggregates,
            compute_partial_aggregates,
            finalize_buckets,
        )
        from taxi_efficiency.jobs.cleaning import clean_trips
        from taxi_efficiency.jobs.enrichment import enrich_trips
        from taxi_efficiency.models.grouping import Grouping

        raw = make_raw_trips([
            trip("2023-01-15 10:00:00", "2023-01-15 10:12:00", fare="11", VendorID="1"),
            trip("2023-01-22 10:03:00", "2023-01-22 10:30:00", fare="24", VendorID="1"),
            trip("2023-01-15 10:20:00", "2023-01-15 10:27:00", fare="9", VendorID="2"),
            trip("2023-01-22 10:40:00", "2023-01-22 10:49:00", fare="13", VendorID="2"),
            trip("2023-01-22 10:41:00", "2023-01-22 10:59:00", fare="19", VendorID="2"),
        ])
        clean, _ = clean_trips(raw, zones)
        enriched = enrich_trips(clean)
        grouping = Grouping.HOURLY_ZONE

        partials = [
            compute_partial_aggregates(enriched.filter(F.col("VendorID") == vendor), grouping)
            for vendor in (1, 2)
        ]
        combined = by_key(
            finalize_buckets(combine_partial_aggregates(partials, grouping), grouping).collect(),
            grouping.columns,
        )
        single = by_key(aggregate_trips(enriched, grouping).collect(), grouping.columns)

        assert set(combined) == set(single) == {(1, 10, "Midtown Center")}
        got, expected = combined[(1, 10, "Midtown Center")], single[(1, 10, "Midtown Center")]

        assert got["total_trips"] == expected["total_trips"] == 5
        assert got["active_days"] == expected["active_days"] == 2
        assert got["avg_trips_per_day_hour"] == pytest.approx(2.5)
        for metric in ("earnings_per_hour", "trip_duration_volatility_min", "minutes_per_mile"):
            assert got[metric] == pytest.approx(expected[metric])

    def test_combine_requires_partials(self):
        from taxi_efficiency.jobs.aggregation import combine_partial_aggregates
        from taxi_efficiency.models.grouping import Grouping

        with pytest.raises(ValueError):
            combine_partial_aggregates([], Grouping.HOURLY_ZONE)

    def test_filter_by_support(self, enriched_trips):
        from taxi_efficiency.jobs.aggregation import aggregate_trips, filter_by_support
        from taxi_efficiency.models.grouping import Grouping

        buckets = aggregate_trips(enriched_trips, Grouping.HOURLY_ZONE)

        assert filter_by_support(buckets, None).count() == 3
        assert filter_by_support(buckets, 1.0).count() == 3
        assert filter_by_support(buckets, 1.0, inclusive=False).count() == 1
        assert filter_by_support(buckets, 3.5).count() == 0


# =============================================================================
# Dashboard Tests
# =============================================================================

class TestDashboard:
    """Test the dashboard view."""

    def test_dashboard_columns_and_labels(self, enriched_trips):
        from taxi_efficiency.jobs.dashboard import DASHBOARD_COLUMNS, build_dashboard

        dashboard = build_dashboard(enriched_trips)
        rows = by_key(dashboard.collect(), ["PUZone", "pickup_hour"])

        assert dashboard.columns == DASHBOARD_COLUMNS

        jfk = rows[("JFK Airport", 14)]
        assert jfk["zone_type"] == "Airport"
        assert jfk["pickup_weekday_name"] == "Sunday"
        assert jfk["day_part"] == "Afternoon"
        assert jfk["trip_length_type"] == "Long"
        assert jfk["trip_duration_volatility_min"] is None

        midtown = rows[("Midtown Center", 9)]
        assert midtown["zone_type"] == "City"
        assert midtown["pickup_weekday_name"] == "Monday"
        assert midtown["day_type"] == "Weekday"
        assert midtown["earnings_per_hour"] is None

    def test_metrics_rounded_to_two_decimals(self, make_raw_trips, zones):
        from taxi_efficiency.jobs.cleaning import clean_trips
        from taxi_efficiency.jobs.dashboard import build_dashboard
        from taxi_efficiency.jobs.enrichment import enrich_trips

        raw = make_raw_trips([trip("2023-01-15 10:00:00", "2023-01-15 10:07:00", fare="10")])
        clean, _ = clean_trips(raw, zones)
        row = build_dashboard(enrich_trips(clean)).first()

        assert row["earnings_per_hour"] == 85.71
        assert row["minutes_per_mile"] == 2.0

    def test_view_requires_dashboard_grouping(self, enriched_trips):
        from taxi_efficiency.jobs.aggregation import aggregate_trips
        from taxi_efficiency.jobs.dashboard import build_dashboard_view
        from taxi_efficiency.models.grouping import Grouping

        buckets = aggregate_trips(enriched_trips, Grouping.HOURLY_ZONE)

        with pytest.raises(ValueError, match="dashboard grouping"):
            build_dashboard_view(buckets)


# =============================================================================
# Analysis Tests
# =============================================================================

class TestAnalyses:
    """Test ranked reports."""

    def test_default_support_threshold(self, enriched_trips):
        from taxi_efficiency.jobs.analysis import get_analysis, run_analysis
        from taxi_efficiency.utils.config import AnalysisConfig

        rows = run_analysis(
            enriched_trips, get_analysis("earnings"), AnalysisConfig(min_support=2.0)
        ).collect()

        assert [(r["PUZone"], r["pickup_hour"]) for r in rows] == [("Midtown Center", 10)]
        assert rows[0]["earnings_per_hour"] == 60.0

    def test_undefined_order_metric_excluded(self, enriched_trips):
        from taxi_efficiency.jobs.analysis import get_analysis, run_analysis

        rows = run_analysis(
            enriched_trips, get_analysis("earnings"), min_support=0.0
        ).collect()

        assert [r["earnings_per_hour"] for r in rows] == [140.0, 60.0]

    def test_null_secondary_metric_kept(self, enriched_trips):
        """A single-trip bucket has no volatility but still ranks by earnings."""
        from taxi_efficiency.jobs.analysis import get_analysis, run_analysis

        rows = run_analysis(
            enriched_trips, get_analysis("income_risk"), min_support=1.0
        ).collect()

        assert [(r["PUZone"], r["earnings_per_hour"]) for r in rows] == [
            ("JFK Airport", 140.0),
            ("Midtown Center", 60.0),
        ]
        assert rows[0]["trip_duration_volatility_min"] is None
        assert rows[1]["trip_duration_volatility_min"] == 5.0

    def test_demand_earnings_gap_ascending(self, enriched_trips):
        from taxi_efficiency.jobs.analysis import get_analysis, run_analysis
        from taxi_efficiency.utils.config import AnalysisConfig

        rows = run_analysis(
            enriched_trips,
            get_analysis("demand_earnings_gap"),
            AnalysisConfig(high_support=1.0),
        ).collect()

        assert [r["earnings_per_hour"] for r in rows] == [60.0, 140.0]

    def test_congestion_threshold_is_strict(self, enriched_trips):
        from taxi_efficiency.jobs.analysis import get_analysis, run_analysis
        from taxi_efficiency.utils.config import AnalysisConfig

        spec = get_analysis("congestion")

        rows = run_analysis(enriched_trips, spec, AnalysisConfig(high_support=1.0)).collect()
        assert len(rows) == 1
        assert rows[0]["PUZone"] == "Midtown Center"
        assert rows[0]["minutes_per_mile"] == 4.29

        assert run_analysis(enriched_trips, spec, AnalysisConfig(high_support=3.0)).count() == 0

    def test_high_demand_has_no_threshold(self, enriched_trips):
        from taxi_efficiency.jobs.analysis import get_analysis, run_analysis

        spec = get_analysis("high_demand")
        result = run_analysis(enriched_trips, spec)
        rows = result.collect()

        assert result.columns == list(spec.output_columns)
        assert len(rows) == 3
        assert rows[0]["avg_trips_per_day_hour"] == 3.0

    def test_day_part_analysis(self, enriched_trips):
        from taxi_efficiency.jobs.analysis import get_analysis, run_analysis

        rows = run_analysis(enriched_trips, get_analysis("day_part"), min_support=1.0).collect()

        assert [r["day_part"] for r in rows] == ["Afternoon", "Morning"]


# =============================================================================
# Data Quality Tests
# =============================================================================

class TestDataQuality:
    """Test invariant checks."""

    def test_non_finite_metrics_fail(self, spark):
        from taxi_efficiency.quality.validators import (
            DataQualityChecker,
            DataQualityError,
            ensure_passed,
        )

        schema = StructType([StructField("earnings_per_hour", DoubleType(), True)])
        df = spark.createDataFrame(
            [(60.0,), (None,), (float("nan"),), (float("inf"),)], schema
        )

        report = DataQualityChecker(df, "metrics").expect_finite(["earnings_per_hour"]).get_report()

        assert report["total_rows"] == 4
        assert report["checks"][0]["violations"] == 2
        assert report["all_passed"] is False

        with pytest.raises(DataQualityError) as exc_info:
            ensure_passed(report)
        assert exc_info.value.report is report

    def test_null_condition_is_a_violation(self, spark):
        from taxi_efficiency.quality.validators import DataQualityChecker

        schema = StructType([StructField("fare_amount", DoubleType(), True)])
        df = spark.createDataFrame([(10.0,), (None,)], schema)

        report = (
            DataQualityChecker(df, "trips")
            .expect("positive_fare", F.col("fare_amount") > 0)
            .get_report()
        )

        assert report["checks"][0]["violations"] == 1

    def test_buckets_pass(self, enriched_trips):
        from taxi_efficiency.jobs.dashboard import build_dashboard
        from taxi_efficiency.quality.validators import validate_buckets

        report = validate_buckets(build_dashboard(enriched_trips))

        assert report["all_passed"] is True
        assert report["checks_failed"] == 0

    def test_produced_types_match_declared_schemas(self, make_raw_trips, zones):
        from taxi_efficiency.jobs.cleaning import clean_trips
        from taxi_efficiency.jobs.enrichment import enrich_trips
        from taxi_efficiency.models.schemas import CLEAN_TRIP_SCHEMA, ENRICHED_TRIP_SCHEMA
        from taxi_efficiency.quality.validators import (
            validate_clean_trips,
            validate_enriched_trips,
        )

        clean, _ = clean_trips(make_raw_trips(MIDTOWN_MORNING), zones)
        enriched = enrich_trips(clean)

        def types(schema):
            return [(f.name, f.dataType) for f in schema.fields]

        assert types(clean.schema) == types(CLEAN_TRIP_SCHEMA)
        assert types(enriched.schema) == types(ENRICHED_TRIP_SCHEMA)
        assert validate_clean_trips(clean)["all_passed"] is True
        assert validate_enriched_trips(enriched)["all_passed"] is True

    def test_schema_mismatch_fails(self, spark):
        from taxi_efficiency.quality.validators import DataQualityChecker

        expected = StructType([
            StructField("fare_amount", DoubleType(), False),
            StructField("trip_distance", DoubleType(), False),
        ])
        df = spark.createDataFrame(
            [("10.0",)], StructType([StructField("fare_amount", StringType(), True)])
        )

        report = DataQualityChecker(df, "trips").expect_schema(expected).get_report()

        assert report["all_passed"] is False
        assert [c["check"] for c in report["checks"] if not c["passed"]] == [
            "schema:fare_amount",
            "schema:trip_distance",
        ]
        assert report["checks"][0]["violations"] == 1


# =============================================================================
# Full Refresh Tests
# =============================================================================

class TestFullRefresh:
    """End-to-end refresh over CSV sources."""

    @pytest.fixture
    def sources(self, temp_dir, sample_trip_record, sample_zone_records):
        from taxi_efficiency.models.schemas import RAW_TRIP_COLUMNS

        overrides = (
            MIDTOWN_MORNING + JFK_AFTERNOON + MIDTOWN_ZERO_DURATION
            + [MIDTOWN_MORNING[0], {"fare_amount": "-5"}, {"PULocationID": "999"}]
        )
        rows = []
        for override in overrides:
            record = dict(sample_trip_record)
            record.update(override)
            rows.append([record[c] for c in RAW_TRIP_COLUMNS])

        trips_path = os.path.join(temp_dir, "refresh_trips.csv")
        zones_path = os.path.join(temp_dir, "refresh_zones.csv")
        write_csv(trips_path, RAW_TRIP_COLUMNS, rows)
        write_csv(zones_path, ["Zone", "LocationID", "Borough"], [
            [zone, location_id, borough]
            for location_id, zone, borough in sample_zone_records
        ])
        return trips_path, zones_path

    @pytest.fixture
    def config(self, temp_dir):
        from taxi_efficiency.utils.config import (
            Environment,
            PipelineConfig,
            PostgresConfig,
            SparkConfig,
            StorageConfig,
        )

        return PipelineConfig(
            environment=Environment.LOCAL,
            storage=StorageConfig.for_local(os.path.join(temp_dir, "lake")),
            spark=SparkConfig.for_local(),
            postgres=PostgresConfig.from_env(),
        )

    def test_full_refresh(self, spark, config, sources):
        from taxi_efficiency.jobs.dashboard import DASHBOARD_COLUMNS
        from taxi_efficiency.jobs.refresh import run_full_refresh

        trips_path, zones_path = sources
        stats = run_full_refresh(
            config, spark, trips_path=trips_path, zones_path=zones_path
        )

        assert stats["cleaning"] == {
            "raw_rows": 8,
            "duplicates_removed": 1,
            "invalid_timestamp": 0,
            "invalid_fare": 1,
            "invalid_distance": 0,
            "zone_mismatch": 1,
            "clean_rows": 5,
        }
        assert stats["enriched_rows"] == 5
        assert stats["published"] is False
        assert stats["monitor"]["success"] is True

        dashboard = spark.read.parquet(config.storage.get_dashboard_path())
        assert dashboard.columns == DASHBOARD_COLUMNS
        assert dashboard.count() == stats["dashboard_rows"] == 3
        assert dashboard.agg(F.sum("total_trips")).first()[0] == 5

        clean = spark.read.parquet(config.storage.get_clean_trips_path())
        assert clean.count() == 5

    def test_refresh_is_repeatable(self, spark, config, sources):
        from taxi_efficiency.jobs.refresh import run_full_refresh

        trips_path, zones_path = sources
        run_full_refresh(config, spark, trips_path=trips_path, zones_path=zones_path)
        first = sorted(spark.read.parquet(config.storage.get_dashboard_path()).collect())

        run_full_refresh(config, spark, trips_path=trips_path, zones_path=zones_path)
        second = sorted(spark.read.parquet(config.storage.get_dashboard_path()).collect())

        assert first == second

    def test_refresh_releases_cached_data(self, spark, config, sources):
        from taxi_efficiency.jobs.refresh import run_full_refresh

        trips_path, zones_path = sources
        spark.catalog.clearCache()
        run_full_refresh(config, spark, trips_path=trips_path, zones_path=zones_path)

        assert spark._jsparkSession.sharedState().cacheManager().isEmpty()

    def test_failed_check_keeps_previous_outputs(self, spark, config, sources, monkeypatch):
        from taxi_efficiency.jobs import refresh
        from taxi_efficiency.quality.validators import DataQualityError

        trips_path, zones_path = sources
        refresh.run_full_refresh(config, spark, trips_path=trips_path, zones_path=zones_path)
        before = sorted(spark.read.parquet(config.storage.get_dashboard_path()).collect())

        def failing_report(df):
            return {
                "dataset": "enriched_trips",
                "total_rows": 5,
                "all_passed": False,
                "checks": [{"check": "weekday_range", "violations": 5, "passed": False}],
            }

        monkeypatch.setattr(refresh, "validate_enriched_trips", failing_report)
        spark.catalog.clearCache()

        with pytest.raises(DataQualityError, match="weekday_range"):
            refresh.run_full_refresh(
                config, spark, trips_path=trips_path, zones_path=zones_path
            )

        after = sorted(spark.read.parquet(config.storage.get_dashboard_path()).collect())
        assert after == before
        assert spark.read.parquet(config.storage.get_clean_trips_path()).count() == 5
        assert spark._jsparkSession.sharedState().cacheManager().isEmpty()

    def test_load_enriched_trips(self, spark, config, sources):
        from taxi_efficiency.jobs.refresh import load_enriched_trips

        trips_path, zones_path = sources
        enriched = load_enriched_trips(config, spark, trips_path, zones_path)

        assert enriched.count() == 5
        assert "trip_length_type" in enriched.columns
