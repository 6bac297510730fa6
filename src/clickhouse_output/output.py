"""
Output plugin surface used by the collection agent.

    output = ClickHouseOutput(config)
    output.connect()
    output.write(metrics)
    output.close()
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from clickhouse_output.config import SAMPLE_CONFIG, ClickHouseOutputConfig
from clickhouse_output.connection import ClickHouseConnection
from clickhouse_output.dsn import build_connection_string, mask_connection_string
from clickhouse_output.errors import DatabaseConnectionError
from clickhouse_output.models import Metric, WriteResult
from clickhouse_output.pipeline import write_metrics

logger = logging.getLogger(__name__)


class ClickHouseOutput:
    """Writes metric batches to a ClickHouse table."""

    def __init__(self, config: ClickHouseOutputConfig) -> None:
        self.config = config
        self.dsn: Optional[str] = None
        self.connection: Optional[ClickHouseConnection] = None

    @staticmethod
    def description() -> str:
        return "Metrics output plugin for ClickHouse"

    @staticmethod
    def sample_config() -> str:
        return SAMPLE_CONFIG

    def connect(self) -> None:
        # reconnecting replaces the client, so release the old one first
        self.close()
        self.dsn = build_connection_string(self.config)
        if self.config.debug:
            logger.info("DSN=%s", mask_connection_string(self.dsn))
        self.connection = ClickHouseConnection.open(
            self.dsn, transactions=self.config.transactions
        )

    def write(self, metrics: Sequence[Metric]) -> WriteResult:
        if self.connection is None:
            raise DatabaseConnectionError("write() called before connect()")
        if self.config.debug:
            logger.info("Received %d metrics", len(metrics))
        return write_metrics(
            self.connection,
            self.config.database,
            self.config.tablename,
            metrics,
            debug=self.config.debug,
            field_policy=self.config.field_policy,
            row_error_policy=self.config.row_error_policy,
        )

    def close(self) -> None:
        if self.connection is None:
            return
        self.connection.close()
        self.connection = None

    def __enter__(self) -> "ClickHouseOutput":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
