"""
Database Utilities
==================

Publishes the dashboard table to PostgreSQL so reporting tools can query it.

Usage:
    from taxi_efficiency.utils.database import DatabaseWriter

    writer = DatabaseWriter(config)
    writer.write_to_postgres(dashboard_df, "driver_efficiency_dashboard")
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import psycopg2

from taxi_efficiency.models.schemas import schema_to_ddl

if TYPE_CHECKING:
    from pyspark.sql import DataFrame
    from pyspark.sql.types import StructType
    from taxi_efficiency.utils.config import PipelineConfig, PostgresConfig

logger = logging.getLogger(__name__)


def _connect(postgres: PostgresConfig):
    return psycopg2.connect(
        host=postgres.host,
        port=postgres.port,
        database=postgres.database,
        user=postgres.user,
        password=postgres.password,
    )


class DatabaseWriter:
    """Writes DataFrames to PostgreSQL via Spark JDBC."""

    def __init__(self, config: PipelineConfig):
        self.config = config
        self.postgres = config.postgres

    def write_to_postgres(
        self,
        df: DataFrame,
        table_name: str,
        mode: str = "overwrite",
    ) -> None:
        """
        Write DataFrame to a PostgreSQL table.

        Args:
            df: Spark DataFrame to write
            table_name: Target table name (prefixed with the configured schema)
            mode: Write mode ("overwrite" or "append")

        Note:
            An existing table is truncated and appended to on "overwrite",
            so views and grants defined on it by reporting tools survive
            the refresh. A missing table is created by Spark.
        """
        full_table_name = f"{self.postgres.schema}.{table_name}"
        logger.info(f"Writing to PostgreSQL: {full_table_name} (mode={mode})")

        actual_mode = mode
        if mode == "overwrite" and table_exists(self.postgres, table_name):
            self._truncate_table(table_name)
            actual_mode = "append"

        (
            df.write
            .format("jdbc")
            .option("url", self.postgres.jdbc_url)
            .option("dbtable", full_table_name)
            .option("user", self.postgres.user)
            .option("password", self.postgres.password)
            .option("driver", "org.postgresql.Driver")
            .option("batchsize", 10000)
            .mode(actual_mode)
            .save()
        )

        logger.info(f"Successfully wrote to {full_table_name}")

    def ensure_table(self, table_name: str, schema: StructType) -> None:
        """
        Create the schema and table from a StructType if the table is missing.

        Args:
            table_name: Table name (without schema)
            schema: PySpark schema the table is created from
        """
        if table_exists(self.postgres, table_name):
            return

        full_table_name = f"{self.postgres.schema}.{table_name}"
        logger.info(f"Creating table: {full_table_name}")

        conn = _connect(self.postgres)
        try:
            with conn.cursor() as cur:
                cur.execute(f"CREATE SCHEMA IF NOT EXISTS {self.postgres.schema}")
                cur.execute(schema_to_ddl(schema, full_table_name))
            conn.commit()
        finally:
            conn.close()

    def _truncate_table(self, table_name: str) -> None:
        full_table_name = f"{self.postgres.schema}.{table_name}"
        logger.info(f"Truncating table: {full_table_name}")

        conn = _connect(self.postgres)
        try:
            with conn.cursor() as cur:
                cur.execute(f"TRUNCATE TABLE {full_table_name}")
            conn.commit()
        finally:
            conn.close()


def table_exists(postgres: PostgresConfig, table_name: str) -> bool:
    """
    Check if a table exists in the configured PostgreSQL schema.

    Args:
        postgres: PostgreSQL configuration
        table_name: Table name (without schema)

    Returns:
        True if table exists, False otherwise
    """
    conn = _connect(postgres)
    try:
        with conn.cursor() as cur:
            cur.execute(
                """
                SELECT EXISTS (
                    SELECT FROM information_schema.tables
                    WHERE table_schema = %s
                    AND table_name = %s
                )
                """,
                (postgres.schema, table_name)
            )
            return cur.fetchone()[0]
    finally:
        conn.close()
