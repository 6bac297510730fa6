"""
The write cycle: turn a metric batch into rows and insert them.

Steps run in strict order and every step up to the insert loop is a hard
failure point:

1. transform metrics to rows
2. ping
3. create database if missing
4. create table if missing
5. begin transaction
6. prepare the row insert
7. insert rows (per-row failures handled by RowErrorPolicy)
8. commit
"""

from __future__ import annotations

import logging
from typing import Sequence

from clickhouse_connect.driver.exceptions import ClickHouseError

from clickhouse_output.connection import ClickHouseConnection
from clickhouse_output.errors import RowInsertError, SchemaError
from clickhouse_output.models import (
    FieldPolicy,
    Metric,
    RowErrorPolicy,
    RowFailure,
    WriteResult,
)
from clickhouse_output.schema import (
    create_database_sql,
    create_table_sql,
    insert_sql,
)
from clickhouse_output.transform import metrics_to_rows, row_values

logger = logging.getLogger(__name__)


def _ensure_schema(
    connection: ClickHouseConnection, database: str, table: str, debug: bool
) -> None:
    trace = logger.info if debug else logger.debug
    for sql in (create_database_sql(database), create_table_sql(database, table)):
        trace("Ensuring schema: %s", " ".join(sql.split()))
        try:
            connection.command(sql)
        except ClickHouseError as exc:
            raise SchemaError(
                f"Failed to create {database}.{table} schema: {exc}"
            ) from exc


def write_metrics(
    connection: ClickHouseConnection,
    database: str,
    table: str,
    metrics: Sequence[Metric],
    debug: bool = False,
    field_policy: FieldPolicy = FieldPolicy.ALL,
    row_error_policy: RowErrorPolicy = RowErrorPolicy.SKIP,
) -> WriteResult:
    """
    Run one write cycle for a batch of metrics.

    Args:
        connection: Open ClickHouse connection
        database: Target database name
        table: Target table name
        metrics: Metric batch from the agent
        debug: Log each step and every failed row
        field_policy: How rows are extracted from metric fields
        row_error_policy: SKIP records failed rows and continues, ABORT
            rolls back the batch on the first failed row

    Returns:
        WriteResult with attempted/written counts and failed rows

    Raises:
        DatabaseConnectionError: Ping failed
        SchemaError: Database or table creation failed
        TransactionError: Begin or commit failed
        StatementError: Insert preparation failed
        RowInsertError: A row failed under the ABORT policy
    """
    trace = logger.info if debug else logger.debug

    rows = metrics_to_rows(metrics, field_policy)
    trace("Converted %d metrics to %d rows", len(metrics), len(rows))
    result = WriteResult()
    if not rows:
        return result

    connection.ping()
    _ensure_schema(connection, database, table, debug)

    tx = connection.begin()
    trace("Started transaction")
    try:
        with tx.prepare(database, table) as stmt:
            trace("Prepared %s", insert_sql(database, table))
            for row in rows:
                result.rows_attempted += 1
                try:
                    stmt.execute(row_values(row))
                except RowInsertError as exc:
                    if row_error_policy == RowErrorPolicy.ABORT:
                        raise
                    result.failures.append(RowFailure(row=row, error=exc))
                    if debug:
                        logger.warning(
                            "Failed to insert row %s %s: %s",
                            row.name,
                            dict(row.tags),
                            exc,
                        )
                    else:
                        logger.debug("Skipped row %s: %s", row.name, exc)
                    continue
                result.rows_written += 1
    except Exception:
        tx.rollback()
        raise

    tx.commit()
    trace(
        "Committed transaction: %d of %d rows written",
        result.rows_written,
        result.rows_attempted,
    )
    return result
