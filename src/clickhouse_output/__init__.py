"""
ClickHouse output for agent metrics.

Usage:
    from clickhouse_output import ClickHouseOutput, ClickHouseOutputConfig

    output = ClickHouseOutput(ClickHouseOutputConfig(hosts=["127.0.0.1:8123"]))
    output.connect()
    output.write(metrics)
    output.close()
"""

from clickhouse_output.config import ClickHouseOutputConfig, load_config
from clickhouse_output.connection import ClickHouseConnection
from clickhouse_output.dsn import build_connection_string, parse_connection_string
from clickhouse_output.errors import (
    ClickHouseOutputError,
    ConfigError,
    DatabaseConnectionError,
    RowInsertError,
    SchemaError,
    StatementError,
    TransactionError,
)
from clickhouse_output.models import (
    FieldPolicy,
    Metric,
    Row,
    RowErrorPolicy,
    WriteResult,
)
from clickhouse_output.output import ClickHouseOutput
from clickhouse_output.pipeline import write_metrics

__all__ = [
    "ClickHouseConnection",
    "ClickHouseOutput",
    "ClickHouseOutputConfig",
    "ClickHouseOutputError",
    "ConfigError",
    "DatabaseConnectionError",
    "FieldPolicy",
    "Metric",
    "Row",
    "RowErrorPolicy",
    "RowInsertError",
    "SchemaError",
    "StatementError",
    "TransactionError",
    "WriteResult",
    "build_connection_string",
    "load_config",
    "parse_connection_string",
    "write_metrics",
]
