"""
Data models for metrics flowing through the ClickHouse output.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Union

FieldValue = Union[int, float, str, bool]


class FieldPolicy(str, Enum):
    """How numeric values are pulled out of a metric's field set."""

    ALL = "all"
    SINGLE = "single"


class RowErrorPolicy(str, Enum):
    """What a write cycle does when a single row insert fails."""

    SKIP = "skip"
    ABORT = "abort"


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, bool):
        raise ValueError(f"Invalid metric timestamp: {value!r}")
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as exc:
            raise ValueError(f"Invalid metric timestamp: {value!r}") from exc
    if isinstance(value, str) and value.strip():
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    raise ValueError(f"Invalid metric timestamp: {value!r}")


@dataclass(frozen=True)
class Metric:
    """A named, timestamped measurement as emitted by the collection agent."""

    name: str
    fields: Mapping[str, FieldValue]
    tags: Mapping[str, str] = field(default_factory=dict)
    time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Metric":
        """
        Build a metric from a decoded JSON object.

        Expected keys are ``name``, ``fields``, ``tags`` and ``timestamp``.
        The timestamp may be an ISO-8601 string or epoch seconds; when it is
        missing the current time is used.
        """
        if not isinstance(payload, Mapping):
            raise ValueError(f"Metric must be an object, got {payload!r}")
        name = str(payload.get("name") or "").strip()
        if not name:
            raise ValueError("Metric name is required")
        fields = payload.get("fields") or {}
        if not isinstance(fields, Mapping):
            raise ValueError(f"Metric fields must be an object, got {fields!r}")
        tags = payload.get("tags") or {}
        if not isinstance(tags, Mapping):
            raise ValueError(f"Metric tags must be an object, got {tags!r}")
        raw_ts = payload.get("timestamp")
        ts = (
            datetime.now(timezone.utc) if raw_ts is None else _parse_timestamp(raw_ts)
        )
        return cls(
            name=name,
            fields=dict(fields),
            tags={str(k): str(v) for k, v in tags.items()},
            time=ts,
        )


@dataclass(frozen=True)
class Row:
    """Flattened relational form of a metric value."""

    name: str
    tags: Mapping[str, str]
    val: float
    ts: datetime


@dataclass
class RowFailure:
    row: Row
    error: Exception


@dataclass
class WriteResult:
    """Outcome of one write cycle."""

    rows_attempted: int = 0
    rows_written: int = 0
    failures: List[RowFailure] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.failures)

    def summary(self) -> Dict[str, int]:
        return {
            "rows_attempted": self.rows_attempted,
            "rows_written": self.rows_written,
            "rows_failed": len(self.failures),
        }
