"""Flux query construction.

Pure string renderers over :class:`~pythingy.models.query.QuerySpec`; no
I/O happens here. Every query filters on measurement and field, and on
the ``device`` tag only when the ``QuerySpec`` names a device.
"""

from __future__ import annotations

from pythingy._constants import DEVICE_TAG
from pythingy.models.query import Aggregation, QuerySpec


def flux_string(value: str) -> str:
    """Render *value* as a double-quoted Flux string literal."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("${", "\\${")
    return f'"{escaped}"'


def _filter_predicate(spec: QuerySpec, extra: str | None = None) -> str:
    clauses = [
        f"r._measurement == {flux_string(spec.measurement)}",
        f"r._field == {flux_string(spec.field)}",
    ]
    if spec.device_id is not None:
        clauses.append(f"r.{DEVICE_TAG} == {flux_string(spec.device_id)}")
    if extra:
        clauses.append(extra)
    return " and ".join(clauses)


def _base_pipeline(spec: QuerySpec, extra_filter: str | None = None) -> list[str]:
    return [
        f"from(bucket: {flux_string(spec.bucket)})",
        f"  |> range(start: -{spec.interval})",
        f"  |> filter(fn: (r) => {_filter_predicate(spec, extra_filter)})",
    ]


def basic_range_query(spec: QuerySpec) -> str:
    """Range-filtered scan without aggregation.

    ``spec.aggregation`` is ignored; use :func:`statistical_query` to
    reduce.
    """
    return "\n".join(_base_pipeline(spec))


def statistical_query(spec: QuerySpec) -> str:
    """Range-filtered scan grouped by field and reduced by ``spec.aggregation``."""
    if spec.aggregation is None:
        raise ValueError("statistical_query requires spec.aggregation")
    lines = _base_pipeline(spec)
    lines.append('  |> group(columns: ["_field"])')
    lines.append(f"  |> {Aggregation(spec.aggregation).value}()")
    return "\n".join(lines)


def latest_rows_query(spec: QuerySpec, limit: int, *, value: int | float | None = None) -> str:
    """The *limit* most recent rows, newest first.

    When *value* is given only rows whose ``_value`` equals it are kept.
    """
    if limit < 1:
        raise ValueError("limit must be >= 1")
    extra = f"r._value == {value!r}" if value is not None else None
    lines = _base_pipeline(spec, extra)
    lines.append('  |> sort(columns: ["_time"], desc: true)')
    lines.append(f"  |> limit(n: {int(limit)})")
    return "\n".join(lines)
