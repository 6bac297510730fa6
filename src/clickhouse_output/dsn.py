"""
Connection string handling.

The output describes its target as a single ``tcp://`` URI:

    tcp://host1:8123?alt_hosts=host2:8123,host3:8123&debug=false&read_timeout=10&write_timeout=20

The first configured host is the authority; any further hosts travel in
``alt_hosts`` and are tried in order when the primary is unreachable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple
from urllib.parse import parse_qs, urlencode, urlsplit

from clickhouse_output.errors import ConfigError

DSN_SCHEME = "tcp"
_MASK = "***"


def build_connection_string(config: Any) -> str:
    """
    Build the connection string for a config object.

    Args:
        config: Object exposing ``hosts``, ``read_timeout``, ``write_timeout``,
            ``debug`` and optionally ``user``/``password``.

    Returns:
        The ``tcp://`` connection string.

    Raises:
        ConfigError: If no hosts are configured.
    """
    hosts = list(getattr(config, "hosts", None) or [])
    if not hosts:
        raise ConfigError("hosts must be set")

    params = {
        "read_timeout": str(int(config.read_timeout)),
        "write_timeout": str(int(config.write_timeout)),
        "debug": "true" if config.debug else "false",
    }
    user = getattr(config, "user", "")
    password = getattr(config, "password", "")
    if user:
        params["username"] = user
    if password:
        params["password"] = password
    if len(hosts) > 1:
        params["alt_hosts"] = ",".join(hosts[1:])

    query = urlencode(sorted(params.items()))
    return f"{DSN_SCHEME}://{hosts[0]}?{query}"


def mask_connection_string(dsn: str) -> str:
    """Return the DSN with any password value replaced."""
    parts = urlsplit(dsn)
    if not parts.query:
        return dsn
    pairs = parse_qs(parts.query, keep_blank_values=True)
    if "password" not in pairs:
        return dsn
    pairs["password"] = [_MASK]
    query = urlencode(sorted((k, v[0]) for k, v in pairs.items()), safe="*")
    return f"{parts.scheme}://{parts.netloc}?{query}"


def split_host(host: str) -> Tuple[str, Optional[int]]:
    """Split ``host:port`` (IPv6 in brackets allowed) into its parts."""
    try:
        parts = urlsplit(f"//{host}")
        port = parts.port
    except ValueError as exc:
        raise ConfigError(f"Invalid host {host!r}: {exc}") from exc
    if not parts.hostname:
        raise ConfigError(f"Invalid host {host!r}")
    return parts.hostname, port


@dataclass
class ConnectionParams:
    hosts: List[str] = field(default_factory=list)
    read_timeout: int = 10
    write_timeout: int = 10
    debug: bool = False
    username: Optional[str] = None
    password: Optional[str] = None

    @property
    def primary_host(self) -> str:
        return self.hosts[0]

    @property
    def alt_hosts(self) -> List[str]:
        return self.hosts[1:]


def _int_param(values: dict, name: str, default: int) -> int:
    raw = values.get(name, [None])[0]
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


def parse_connection_string(dsn: str) -> ConnectionParams:
    """Parse a connection string produced by build_connection_string."""
    parts = urlsplit(dsn)
    if parts.scheme != DSN_SCHEME:
        raise ConfigError(f"Unsupported connection scheme {parts.scheme!r}")
    if not parts.netloc:
        raise ConfigError("hosts must be set")

    values = parse_qs(parts.query, keep_blank_values=True)
    alt = values.get("alt_hosts", [""])[0]
    hosts = [parts.netloc] + [h.strip() for h in alt.split(",") if h.strip()]

    return ConnectionParams(
        hosts=hosts,
        read_timeout=_int_param(values, "read_timeout", 10),
        write_timeout=_int_param(values, "write_timeout", 10),
        debug=values.get("debug", ["false"])[0].lower() == "true",
        username=values.get("username", [None])[0] or None,
        password=values.get("password", [None])[0] or None,
    )
