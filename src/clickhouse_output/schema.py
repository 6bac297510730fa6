"""
SQL text for the metrics table: database/table DDL and the row insert.
"""

from __future__ import annotations

import re
from typing import List

from clickhouse_output.errors import ConfigError

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# date and updated are computed by ClickHouse and never inserted.
INSERT_COLUMNS: List[str] = ["name", "tags", "val", "ts"]


def validate_identifier(value: str, kind: str) -> str:
    if not value or not _IDENTIFIER_RE.match(value):
        raise ConfigError(f"Invalid {kind} name: {value!r}")
    return value


def quote_identifier(value: str) -> str:
    return f"`{value}`"


def qualified_table(database: str, table: str) -> str:
    validate_identifier(database, "database")
    validate_identifier(table, "table")
    return f"{quote_identifier(database)}.{quote_identifier(table)}"


def create_database_sql(database: str) -> str:
    validate_identifier(database, "database")
    return f"CREATE DATABASE IF NOT EXISTS {quote_identifier(database)}"


def create_table_sql(database: str, table: str) -> str:
    return f"""
    CREATE TABLE IF NOT EXISTS {qualified_table(database, table)} (
        date Date DEFAULT toDate(ts),
        name String,
        tags String,
        val Float64,
        ts DateTime,
        updated DateTime DEFAULT now()
    ) ENGINE = MergeTree()
    PARTITION BY toYYYYMM(date)
    ORDER BY (name, tags, ts)
    SETTINGS index_granularity = 8192
    """


def insert_sql(database: str, table: str) -> str:
    """Parameterized form of the row insert, used for logging."""
    columns = ", ".join(INSERT_COLUMNS)
    placeholders = ", ".join("?" for _ in INSERT_COLUMNS)
    return (
        f"INSERT INTO {qualified_table(database, table)} ({columns}) "
        f"VALUES ({placeholders})"
    )
