"""
Taxi Driver Efficiency CLI
==========================

Command-line interface for the refresh job and the ranked analyses.

Usage:
    # Rebuild clean trips and the dashboard
    taxi-efficiency run --publish

    # Run one analysis on the raw sources
    taxi-efficiency analyze congestion --limit 20

    # List analyses / show configuration
    taxi-efficiency analyses
    taxi-efficiency info
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

import click

from taxi_efficiency.utils.config import PipelineConfig
from taxi_efficiency.utils.spark_session import create_spark_session, stop_spark_session


def setup_logging(level: str = "INFO") -> None:
    """Configure logging for CLI."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ]
    )


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    default="INFO",
    help="Logging level"
)
@click.pass_context
def cli(ctx: click.Context, log_level: str) -> None:
    """Taxi Driver Efficiency - cleaning, aggregation and analyses."""
    setup_logging(log_level)
    ctx.ensure_object(dict)
    ctx.obj["log_level"] = log_level


@cli.command()
@click.option("--trips-path", default=None, help="Trip CSV (defaults to the configured raw path)")
@click.option("--zones-path", default=None, help="Zone CSV (defaults to the configured raw path)")
@click.option(
    "--publish",
    is_flag=True,
    help="Also publish the dashboard table to PostgreSQL"
)
@click.pass_context
def run(
    ctx: click.Context,
    trips_path: Optional[str],
    zones_path: Optional[str],
    publish: bool,
) -> None:
    """
    Run the full refresh.

    Cleans raw trips, builds the dashboard and writes both as parquet.

    Example:
        taxi-efficiency run --trips-path data/trips.csv --zones-path data/zones.csv
    """
    from taxi_efficiency.jobs.refresh import run_full_refresh

    logger = logging.getLogger(__name__)
    logger.info("Starting Full Refresh")

    config = PipelineConfig.load()
    spark = create_spark_session(config, app_name="FullRefresh")

    try:
        stats = run_full_refresh(
            config=config,
            spark=spark,
            publish=publish,
            trips_path=trips_path,
            zones_path=zones_path,
        )
        cleaning = stats["cleaning"]

        click.echo("\n" + "=" * 50)
        click.echo(click.style("✅ Full Refresh Complete", fg="green", bold=True))
        click.echo("=" * 50)
        click.echo(f"\n🧹 Cleaning:")
        click.echo(f"   - Raw rows: {cleaning['raw_rows']:,}")
        click.echo(f"   - Duplicates removed: {cleaning['duplicates_removed']:,}")
        click.echo(f"   - Invalid timestamps: {cleaning['invalid_timestamp']:,}")
        click.echo(f"   - Invalid fares: {cleaning['invalid_fare']:,}")
        click.echo(f"   - Invalid distances: {cleaning['invalid_distance']:,}")
        click.echo(f"   - Zone mismatches: {cleaning['zone_mismatch']:,}")
        click.echo(f"   - Clean rows: {cleaning['clean_rows']:,}")
        click.echo(f"\n📊 Dashboard:")
        click.echo(f"   - Rows: {stats['dashboard_rows']:,}")
        click.echo(f"   - Path: {stats['outputs']['dashboard']}")
        click.echo(f"   - Published: {stats['published']}")
        click.echo("\n" + "=" * 50 + "\n")

    except Exception as e:
        click.echo(click.style(f"❌ Error: {e}", fg="red", bold=True))
        raise
    finally:
        stop_spark_session(spark)


@cli.command()
@click.argument("name")
@click.option(
    "--min-support",
    type=float,
    default=None,
    help="Override the analysis' minimum avg trips per day-hour"
)
@click.option("--limit", type=int, default=20, show_default=True, help="Rows to show")
@click.option("--trips-path", default=None, help="Trip CSV (defaults to the configured raw path)")
@click.option("--zones-path", default=None, help="Zone CSV (defaults to the configured raw path)")
@click.pass_context
def analyze(
    ctx: click.Context,
    name: str,
    min_support: Optional[float],
    limit: int,
    trips_path: Optional[str],
    zones_path: Optional[str],
) -> None:
    """
    Run one ranked analysis and print the top rows.

    Example:
        taxi-efficiency analyze earnings --min-support 100 --limit 10
    """
    from taxi_efficiency.jobs.analysis import get_analysis, run_analysis
    from taxi_efficiency.jobs.refresh import load_enriched_trips

    try:
        spec = get_analysis(name)
    except KeyError as e:
        raise click.UsageError(str(e.args[0]))

    config = PipelineConfig.load()
    spark = create_spark_session(config, app_name=f"Analysis-{spec.name}")

    try:
        enriched = load_enriched_trips(config, spark, trips_path, zones_path)
        result = run_analysis(enriched, spec, config.analysis, min_support=min_support)
        rows = result.limit(limit).collect()

        click.echo("\n" + "=" * 50)
        click.echo(click.style(f"{spec.name}: {spec.description}", fg="blue", bold=True))
        click.echo("=" * 50)
        click.echo(" | ".join(spec.output_columns))
        for row in rows:
            click.echo(" | ".join("" if v is None else str(v) for v in row))
        click.echo(f"\n{len(rows)} row(s)")
        click.echo("=" * 50 + "\n")

    except Exception as e:
        click.echo(click.style(f"❌ Error: {e}", fg="red", bold=True))
        raise
    finally:
        stop_spark_session(spark)


@cli.command()
def analyses() -> None:
    """List available analyses."""
    from taxi_efficiency.jobs.analysis import ANALYSES

    for spec in ANALYSES.values():
        click.echo(f"{click.style(spec.name, bold=True):<30} {spec.description}")


@cli.command()
@click.pass_context
def info(ctx: click.Context) -> None:
    """Show pipeline configuration info."""
    config = PipelineConfig.load()

    click.echo("\n" + "=" * 50)
    click.echo(click.style("Taxi Driver Efficiency Configuration", fg="blue", bold=True))
    click.echo("=" * 50)
    click.echo(f"\n🌍 Environment: {config.environment.value}")
    click.echo(f"\n📂 Storage:")
    click.echo(f"   - Trips:  {config.storage.get_trips_source_path()}")
    click.echo(f"   - Zones:  {config.storage.get_zones_source_path()}")
    click.echo(f"   - Silver: {config.storage.silver_path}")
    click.echo(f"   - Gold:   {config.storage.gold_path}")
    click.echo(f"\n🗄️ PostgreSQL:")
    click.echo(f"   - Host: {config.postgres.host}")
    click.echo(f"   - Port: {config.postgres.port}")
    click.echo(f"   - Database: {config.postgres.database}")
    click.echo(f"   - Schema: {config.postgres.schema}")
    click.echo(f"\n📈 Analyses:")
    click.echo(f"   - Standard support: {config.analysis.min_support}")
    click.echo(f"   - High support: {config.analysis.high_support}")
    click.echo(f"   - Min avg trip distance: {config.analysis.min_avg_trip_distance}")
    click.echo(f"\n⚡ Spark:")
    click.echo(f"   - Master: {config.spark.master}")
    click.echo(f"   - Driver Memory: {config.spark.driver_memory}")
    click.echo(f"   - Executor Memory: {config.spark.executor_memory}")
    click.echo("\n" + "=" * 50 + "\n")


def main() -> None:
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
