"""
Owned ClickHouse connection used by the write pipeline.

Wraps a clickhouse-connect client and translates driver failures into the
output's error types. Transactions use ClickHouse's session-scoped
``BEGIN TRANSACTION`` / ``COMMIT`` / ``ROLLBACK`` statements.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Sequence

import clickhouse_connect
from clickhouse_connect.driver.exceptions import ClickHouseError

from clickhouse_output.dsn import (
    ConnectionParams,
    mask_connection_string,
    parse_connection_string,
    split_host,
)
from clickhouse_output.errors import (
    DatabaseConnectionError,
    RowInsertError,
    StatementError,
    TransactionError,
)
from clickhouse_output.schema import INSERT_COLUMNS, validate_identifier

logger = logging.getLogger(__name__)


def _client_kwargs(params: ConnectionParams, host: str) -> Dict[str, Any]:
    hostname, port = split_host(host)
    kwargs: Dict[str, Any] = {
        "host": hostname,
        "connect_timeout": params.write_timeout,
        "send_receive_timeout": params.read_timeout,
    }
    if port is not None:
        kwargs["port"] = port
    if params.username:
        kwargs["username"] = params.username
    if params.password:
        kwargs["password"] = params.password
    return kwargs


class PreparedInsert:
    """
    Insert of the four row columns bound to one target table.

    Holds a clickhouse-connect insert context for the lifetime of a write
    cycle; use as a context manager so it is released when the cycle ends.
    """

    def __init__(self, client: Any, context: Any, database: str, table: str) -> None:
        self._client = client
        self._context = context
        self.database = database
        self.table = table

    @property
    def closed(self) -> bool:
        return self._context is None

    def execute(self, values: Sequence[Any]) -> None:
        if self._context is None:
            raise StatementError("Prepared insert is closed")
        try:
            self._client.insert(data=[list(values)], context=self._context)
        except ClickHouseError as exc:
            raise RowInsertError(str(exc), row=values) from exc

    def close(self) -> None:
        self._context = None

    def __enter__(self) -> "PreparedInsert":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class Transaction:
    """A transaction on the connection's session.

    When transactions are disabled begin/commit/rollback issue nothing and
    inserts are applied as they are executed.
    """

    def __init__(self, client: Any, enabled: bool = True) -> None:
        self._client = client
        self.enabled = enabled
        self.active = False

    def begin(self) -> "Transaction":
        if self.enabled:
            try:
                self._client.command("BEGIN TRANSACTION")
            except ClickHouseError as exc:
                raise TransactionError(f"Failed to begin transaction: {exc}") from exc
        self.active = True
        return self

    def prepare(self, database: str, table: str) -> PreparedInsert:
        validate_identifier(database, "database")
        validate_identifier(table, "table")
        try:
            context = self._client.create_insert_context(
                table=table,
                database=database,
                column_names=list(INSERT_COLUMNS),
            )
        except ClickHouseError as exc:
            raise StatementError(
                f"Failed to prepare insert into {database}.{table}: {exc}"
            ) from exc
        return PreparedInsert(self._client, context, database, table)

    def commit(self) -> None:
        if self.enabled:
            try:
                self._client.command("COMMIT")
            except ClickHouseError as exc:
                self.rollback()
                raise TransactionError(
                    f"Failed to commit transaction: {exc}"
                ) from exc
        self.active = False

    def rollback(self) -> None:
        if not self.active:
            return
        self.active = False
        if not self.enabled:
            return
        try:
            self._client.command("ROLLBACK")
        except ClickHouseError as e:
            logger.warning(
                "Exception occurred when rolling back ClickHouse transaction: %s",
                e,
                exc_info=True,
            )


class ClickHouseConnection:
    """
    Connection to a ClickHouse server.

    Created once by the output's connect() and shared by every write cycle
    until close().
    """

    def __init__(self, client: Any, *, transactions: bool = True) -> None:
        if client is None:
            raise DatabaseConnectionError("ClickHouse client is required")
        self.client = client
        self.transactions = transactions

    @classmethod
    def open(
        cls, dsn: str, *, transactions: bool = True
    ) -> "ClickHouseConnection":
        """
        Open a client against the primary host, falling back to alt_hosts.

        Args:
            dsn: Connection string from build_connection_string

        Returns:
            The open connection

        Raises:
            ConfigError: If the DSN is malformed
            DatabaseConnectionError: If no host accepted the connection
        """
        params = parse_connection_string(dsn)
        logger.debug("Opening ClickHouse connection %s", mask_connection_string(dsn))

        last_error: Optional[Exception] = None
        for host in params.hosts:
            try:
                client = clickhouse_connect.get_client(**_client_kwargs(params, host))
            except ClickHouseError as exc:
                logger.warning("ClickHouse host %s unavailable: %s", host, exc)
                last_error = exc
                continue
            if host != params.primary_host:
                logger.info("Connected to alternate ClickHouse host %s", host)
            return cls(client, transactions=transactions)

        raise DatabaseConnectionError(
            f"Could not connect to any ClickHouse host ({', '.join(params.hosts)}): "
            f"{last_error}"
        ) from last_error

    def ping(self) -> None:
        try:
            alive = self.client.ping()
        except ClickHouseError as exc:
            raise DatabaseConnectionError(f"ClickHouse ping failed: {exc}") from exc
        if not alive:
            raise DatabaseConnectionError("ClickHouse ping failed")

    def command(self, sql: str) -> Any:
        return self.client.command(sql)

    def begin(self) -> Transaction:
        return Transaction(self.client, enabled=self.transactions).begin()

    def close(self) -> None:
        """Close the ClickHouse connection."""
        try:
            self.client.close()
        except Exception as e:
            logger.warning(
                "Exception occurred when closing ClickHouse client: %s",
                e,
                exc_info=True,
            )
