from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import List, Optional, TextIO

from clickhouse_output.config import CONFIG_ENV_VAR, ClickHouseOutputConfig, load_config
from clickhouse_output.dsn import build_connection_string, mask_connection_string
from clickhouse_output.errors import ClickHouseOutputError
from clickhouse_output.models import Metric
from clickhouse_output.output import ClickHouseOutput

logger = logging.getLogger(__name__)


def _resolve_config(ns: argparse.Namespace) -> ClickHouseOutputConfig:
    path = ns.config or os.getenv(CONFIG_ENV_VAR)
    if not path:
        raise ClickHouseOutputError(
            f"No config file given. Pass --config or set {CONFIG_ENV_VAR}."
        )
    return load_config(path)


def read_metrics(handle: TextIO) -> List[Metric]:
    """Read one JSON metric object per line; blank lines are ignored."""
    metrics = []
    for lineno, raw_line in enumerate(handle, start=1):
        line = raw_line.strip()
        if not line:
            continue
        try:
            metrics.append(Metric.from_dict(json.loads(line)))
        except (ValueError, TypeError) as exc:
            raise ClickHouseOutputError(f"Invalid metric on line {lineno}: {exc}") from exc
    return metrics


def _cmd_sample_config(_ns: argparse.Namespace) -> int:
    sys.stdout.write(ClickHouseOutput.sample_config())
    return 0


def _cmd_dsn(ns: argparse.Namespace) -> int:
    config = _resolve_config(ns)
    print(mask_connection_string(build_connection_string(config)))
    return 0


def _cmd_check(ns: argparse.Namespace) -> int:
    config = _resolve_config(ns)
    output = ClickHouseOutput(config)
    output.connect()
    try:
        output.connection.ping()
    finally:
        output.close()
    logger.info("ClickHouse is reachable")
    return 0


def _cmd_write(ns: argparse.Namespace) -> int:
    config = _resolve_config(ns)
    if ns.input and ns.input != "-":
        with open(ns.input, "r", encoding="utf-8") as handle:
            metrics = read_metrics(handle)
    else:
        metrics = read_metrics(sys.stdin)

    with ClickHouseOutput(config) as output:
        result = output.write(metrics)
    print(json.dumps(result.summary(), sort_keys=True))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clickhouse-metrics-output",
        description="Write agent metrics to ClickHouse.",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (DEBUG, INFO, WARNING). Defaults to env LOG_LEVEL or INFO.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sample = sub.add_parser("sample-config", help="Print a sample config file.")
    sample.set_defaults(func=_cmd_sample_config)

    for name, func, help_text in (
        ("dsn", _cmd_dsn, "Print the connection string for a config."),
        ("check", _cmd_check, "Connect to ClickHouse and ping it."),
        ("write", _cmd_write, "Write JSON-lines metrics to ClickHouse."),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument(
            "--config",
            help=f"Path to the YAML config. Defaults to env {CONFIG_ENV_VAR}.",
        )
        cmd.set_defaults(func=func)
        if name == "write":
            cmd.add_argument(
                "--input",
                default="-",
                help="JSON-lines metrics file. Defaults to stdin.",
            )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    ns = parser.parse_args(argv)

    level_name = str(getattr(ns, "log_level", "") or "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    func = getattr(ns, "func", None)
    if func is None:
        parser.print_help()
        return 2
    try:
        return int(func(ns))
    except ClickHouseOutputError as exc:
        logger.error("%s: %s", type(exc).__name__, exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
