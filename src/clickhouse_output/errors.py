"""Error types raised by the ClickHouse metrics output.

Every failure that aborts a write cycle surfaces as a subclass of
ClickHouseOutputError, with the underlying driver exception kept as
``__cause__``.
"""

from __future__ import annotations

from typing import Any, Optional


class ClickHouseOutputError(Exception):
    """Base class for all output errors."""


class ConfigError(ClickHouseOutputError):
    """Invalid or missing configuration (e.g. an empty host list)."""


class DatabaseConnectionError(ClickHouseOutputError):
    """Opening the connection or pinging the server failed."""


class SchemaError(ClickHouseOutputError):
    """Creating the target database or table failed."""


class TransactionError(ClickHouseOutputError):
    """Beginning, committing or rolling back a transaction failed."""


class StatementError(ClickHouseOutputError):
    """Preparing the insert statement failed."""


class RowInsertError(ClickHouseOutputError):
    """A single row could not be inserted."""

    def __init__(self, message: str, row: Optional[Any] = None) -> None:
        super().__init__(message)
        self.row = row
