"""
Metric to row conversion.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Iterable, List, Mapping, Optional, Tuple

from clickhouse_output.models import FieldPolicy, FieldValue, Metric, Row

logger = logging.getLogger(__name__)

VALUE_FIELD = "value"
DEFAULT_VALUE = 0.0


def _dt_to_clickhouse_datetime(value: datetime) -> datetime:
    """Convert datetime to aware UTC; naive values are taken as UTC.

    The driver serializes DateTime with value.timestamp(), which reads naive
    datetimes as local time.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _numeric(value: FieldValue) -> Optional[float]:
    # bool is an int subclass; store it as 1.0 / 0.0
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    return None


def _numeric_fields(fields: Mapping[str, FieldValue]) -> List[Tuple[str, float]]:
    out = []
    for key in sorted(fields):
        val = _numeric(fields[key])
        if val is not None:
            out.append((key, val))
    return out


def encode_tags(tags: Mapping[str, str]) -> str:
    """Serialize a tag map to the JSON text stored in the ``tags`` column.

    Keys are sorted so equal tag sets always produce the same string.
    """
    return json.dumps(
        dict(tags), sort_keys=True, separators=(",", ":"), ensure_ascii=False
    )


def row_name(metric_name: str, field_name: str) -> str:
    if field_name == VALUE_FIELD:
        return metric_name
    return f"{metric_name}_{field_name}"


def metric_to_rows(metric: Metric, policy: FieldPolicy = FieldPolicy.ALL) -> List[Row]:
    numeric = _numeric_fields(metric.fields)

    if policy == FieldPolicy.SINGLE:
        values = dict(numeric)
        if VALUE_FIELD in values:
            val = values[VALUE_FIELD]
        elif numeric:
            val = numeric[0][1]
        else:
            val = DEFAULT_VALUE
        return [Row(name=metric.name, tags=metric.tags, val=val, ts=metric.time)]

    if not numeric:
        logger.debug("Dropping metric %s: no numeric fields", metric.name)
        return []
    return [
        Row(name=row_name(metric.name, key), tags=metric.tags, val=val, ts=metric.time)
        for key, val in numeric
    ]


def metrics_to_rows(
    metrics: Iterable[Metric], policy: FieldPolicy = FieldPolicy.ALL
) -> List[Row]:
    rows: List[Row] = []
    for metric in metrics:
        rows.extend(metric_to_rows(metric, policy))
    return rows


def row_values(row: Row) -> list:
    """Values for one insert, in INSERT_COLUMNS order."""
    return [row.name, encode_tags(row.tags), row.val, _dt_to_clickhouse_datetime(row.ts)]
