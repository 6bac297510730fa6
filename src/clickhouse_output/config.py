"""Configuration for the ClickHouse metrics output.

The keys mirror the agent's plugin config section:

    user, password, database, tablename, read_timeout, write_timeout,
    hosts, debug, field_policy, row_error_policy, transactions
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, List, Mapping, Union

import yaml

from clickhouse_output.errors import ConfigError
from clickhouse_output.models import FieldPolicy, RowErrorPolicy
from clickhouse_output.schema import validate_identifier

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "CLICKHOUSE_OUTPUT_CONFIG"

SAMPLE_CONFIG = """\
# Schema:
# CREATE TABLE telegraf.metrics(
#   date Date DEFAULT toDate(ts),
#   name String,
#   tags String,
#   val Float64,
#   ts DateTime,
#   updated DateTime DEFAULT now()
# ) ENGINE = MergeTree() PARTITION BY toYYYYMM(date) ORDER BY (name, tags, ts)

user: default
password: ""
database: telegraf
tablename: metrics
read_timeout: 10
write_timeout: 10
hosts:
  - "127.0.0.1:8123"
debug: false

# "all": one row per numeric field; "single": one row per metric.
field_policy: all
# "skip": log and drop failed rows; "abort": roll back the whole batch.
row_error_policy: skip
# Requires a server with experimental transactions enabled.
transactions: true
"""


@dataclass
class ClickHouseOutputConfig:
    user: str = ""
    password: str = ""
    database: str = "telegraf"
    tablename: str = "metrics"
    read_timeout: int = 10
    write_timeout: int = 10
    hosts: List[str] = field(default_factory=list)
    debug: bool = False
    field_policy: FieldPolicy = FieldPolicy.ALL
    row_error_policy: RowErrorPolicy = RowErrorPolicy.SKIP
    transactions: bool = True

    def __post_init__(self) -> None:
        validate_identifier(self.database, "database")
        validate_identifier(self.tablename, "table")
        for name in ("read_timeout", "write_timeout"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ConfigError(f"{name} must be a non-negative integer")
        if isinstance(self.hosts, str):
            raise ConfigError("hosts must be a list of host:port strings")
        self.hosts = [str(h).strip() for h in self.hosts if str(h).strip()]
        try:
            self.field_policy = FieldPolicy(self.field_policy)
            self.row_error_policy = RowErrorPolicy(self.row_error_policy)
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "ClickHouseOutputConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(payload) - known)
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")
        values = {k: v for k, v in payload.items() if v is not None}
        return cls(**values)


def load_config(path: Union[str, Path]) -> ClickHouseOutputConfig:
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as handle:
            payload = yaml.safe_load(handle) or {}
    except FileNotFoundError as exc:
        raise ConfigError(f"Config file not found at {path}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse config {path}: {exc}") from exc

    if not isinstance(payload, Mapping):
        raise ConfigError(f"Config {path} must contain a mapping")
    logger.debug("Loaded config from %s", path)
    return ClickHouseOutputConfig.from_mapping(payload)
