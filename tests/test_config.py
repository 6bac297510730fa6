import pytest
import yaml

from clickhouse_output.config import (
    SAMPLE_CONFIG,
    ClickHouseOutputConfig,
    load_config,
)
from clickhouse_output.errors import ConfigError
from clickhouse_output.models import FieldPolicy, RowErrorPolicy
from clickhouse_output.schema import create_table_sql, insert_sql


class TestClickHouseOutputConfig:
    def test_defaults(self):
        config = ClickHouseOutputConfig()
        assert config.database == "telegraf"
        assert config.tablename == "metrics"
        assert config.read_timeout == 10
        assert config.write_timeout == 10
        assert config.hosts == []
        assert config.debug is False
        assert config.field_policy is FieldPolicy.ALL
        assert config.row_error_policy is RowErrorPolicy.SKIP

    def test_policies_from_strings(self):
        config = ClickHouseOutputConfig(field_policy="single", row_error_policy="abort")
        assert config.field_policy is FieldPolicy.SINGLE
        assert config.row_error_policy is RowErrorPolicy.ABORT

    def test_unknown_policy(self):
        with pytest.raises(ConfigError):
            ClickHouseOutputConfig(field_policy="some")

    @pytest.mark.parametrize("name", ["", "my-db", "db; DROP TABLE x", "1db"])
    def test_rejects_bad_database_name(self, name):
        with pytest.raises(ConfigError):
            ClickHouseOutputConfig(database=name)

    def test_rejects_negative_timeout(self):
        with pytest.raises(ConfigError):
            ClickHouseOutputConfig(read_timeout=-1)

    def test_rejects_host_string(self):
        with pytest.raises(ConfigError):
            ClickHouseOutputConfig(hosts="h1:8123")

    def test_unknown_keys(self):
        with pytest.raises(ConfigError, match="hostz"):
            ClickHouseOutputConfig.from_mapping({"hostz": ["h1:8123"]})


class TestLoadConfig:
    def test_sample_config_loads(self, tmp_path):
        path = tmp_path / "output.yaml"
        path.write_text(SAMPLE_CONFIG, encoding="utf-8")

        config = load_config(path)

        assert config.hosts == ["127.0.0.1:8123"]
        assert config.user == "default"
        assert config.transactions is True

    def test_values_from_file(self, tmp_path):
        path = tmp_path / "output.yaml"
        path.write_text(
            yaml.safe_dump(
                {
                    "database": "ops",
                    "tablename": "points",
                    "hosts": ["a:8123", "b:8123"],
                    "read_timeout": 3,
                    "debug": True,
                }
            ),
            encoding="utf-8",
        )

        config = load_config(path)

        assert config.database == "ops"
        assert config.tablename == "points"
        assert config.hosts == ["a:8123", "b:8123"]
        assert config.read_timeout == 3
        assert config.debug is True

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "missing.yaml")

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "output.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_config(path)


class TestSchemaSql:
    def test_table_columns(self):
        sql = " ".join(create_table_sql("telegraf", "metrics").split())
        assert sql.startswith("CREATE TABLE IF NOT EXISTS `telegraf`.`metrics`")
        for column in (
            "date Date DEFAULT toDate(ts)",
            "name String",
            "tags String",
            "val Float64",
            "ts DateTime",
            "updated DateTime DEFAULT now()",
        ):
            assert column in sql
        assert "ORDER BY (name, tags, ts)" in sql

    def test_insert_has_four_columns(self):
        assert insert_sql("telegraf", "metrics") == (
            "INSERT INTO `telegraf`.`metrics` (name, tags, val, ts) VALUES (?, ?, ?, ?)"
        )

    def test_bad_table_name(self):
        with pytest.raises(ConfigError):
            create_table_sql("telegraf", "metrics`; DROP")
