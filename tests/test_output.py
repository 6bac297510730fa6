"""Tests for the ClickHouse output plugin lifecycle."""

from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from clickhouse_connect.driver.exceptions import OperationalError

from clickhouse_output.config import ClickHouseOutputConfig
from clickhouse_output.errors import ConfigError, DatabaseConnectionError
from clickhouse_output.models import Metric
from clickhouse_output.output import ClickHouseOutput

GET_CLIENT = "clickhouse_output.connection.clickhouse_connect.get_client"


@pytest.fixture
def mock_client():
    """Create a mock ClickHouse client."""
    client = MagicMock()
    client.ping.return_value = True
    return client


@pytest.fixture
def config():
    return ClickHouseOutputConfig(
        hosts=["h1:8123", "h2:8123"],
        read_timeout=10,
        write_timeout=20,
        user="writer",
        password="pw",
    )


class TestConnect:
    def test_connect_uses_primary_host(self, config, mock_client):
        output = ClickHouseOutput(config)
        with patch(GET_CLIENT, return_value=mock_client) as get_client:
            output.connect()

        get_client.assert_called_once_with(
            host="h1",
            port=8123,
            username="writer",
            password="pw",
            connect_timeout=20,
            send_receive_timeout=10,
        )
        assert output.connection.client is mock_client
        assert output.dsn.startswith("tcp://h1:8123?")

    def test_connect_fails_over_to_alt_host(self, config, mock_client):
        output = ClickHouseOutput(config)
        with patch(
            GET_CLIENT, side_effect=[OperationalError("refused"), mock_client]
        ) as get_client:
            output.connect()

        assert get_client.call_count == 2
        assert get_client.call_args.kwargs["host"] == "h2"
        assert output.connection.client is mock_client

    def test_connect_fails_when_no_host_answers(self, config):
        output = ClickHouseOutput(config)
        with patch(GET_CLIENT, side_effect=OperationalError("refused")):
            with pytest.raises(DatabaseConnectionError):
                output.connect()
        assert output.connection is None

    def test_empty_hosts_never_connects(self):
        output = ClickHouseOutput(ClickHouseOutputConfig(hosts=[]))
        with patch(GET_CLIENT) as get_client:
            with pytest.raises(ConfigError, match="hosts must be set"):
                output.connect()
        get_client.assert_not_called()


class TestWriteAndClose:
    def test_write_before_connect(self, config):
        with pytest.raises(DatabaseConnectionError):
            ClickHouseOutput(config).write([])

    def test_write_uses_configured_table(self, config, mock_client):
        config.database = "metrics_db"
        config.tablename = "points"
        metric = Metric(
            name="cpu",
            fields={"value": 1},
            time=datetime(2024, 3, 1, tzinfo=timezone.utc),
        )
        with patch(GET_CLIENT, return_value=mock_client):
            with ClickHouseOutput(config) as output:
                result = output.write([metric])

        assert result.rows_written == 1
        mock_client.create_insert_context.assert_called_once_with(
            table="points",
            database="metrics_db",
            column_names=["name", "tags", "val", "ts"],
        )
        mock_client.close.assert_called_once()

    def test_close_releases_connection(self, config, mock_client):
        output = ClickHouseOutput(config)
        with patch(GET_CLIENT, return_value=mock_client):
            output.connect()
        output.close()

        mock_client.close.assert_called_once()
        assert output.connection is None
        output.close()
        mock_client.close.assert_called_once()

    def test_reconnect_closes_previous_client(self, config, mock_client):
        replacement = MagicMock()
        output = ClickHouseOutput(config)
        with patch(GET_CLIENT, side_effect=[mock_client, replacement]):
            output.connect()
            output.connect()

        mock_client.close.assert_called_once()
        replacement.close.assert_not_called()
        assert output.connection.client is replacement

    def test_close_swallows_client_errors(self, config, mock_client):
        mock_client.close.side_effect = OperationalError("gone")
        output = ClickHouseOutput(config)
        with patch(GET_CLIENT, return_value=mock_client):
            output.connect()
        output.close()
        assert output.connection is None


def test_sample_config_describes_table():
    sample = ClickHouseOutput.sample_config()
    assert "tablename: metrics" in sample
    assert "hosts:" in sample
    assert ClickHouseOutput.description()
