"""Query specifications and result rows."""

from __future__ import annotations

import enum
import re
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from pydantic import field_validator

from pythingy._constants import DEVICE_TAG
from pythingy.models._base import ThingyBaseModel, ThingyTimestamp

_DURATION_RE = re.compile(r"^(?:\d+(?:ns|us|µs|ms|mo|s|m|h|d|w|y))+$")


class Aggregation(enum.StrEnum):
    """Flux reducers accepted by ``statistical_query``."""

    MEAN = "mean"
    MEDIAN = "median"
    STDDEV = "stddev"
    COUNT = "count"
    SUM = "sum"
    MIN = "min"
    MAX = "max"
    FIRST = "first"
    LAST = "last"
    SPREAD = "spread"


class QuerySpec(ThingyBaseModel):
    """Immutable description of a range (and optionally reduced) scan.

    ``aggregation`` set means the rendered query ends with a group+reduce
    stage; unset means a raw filtered range scan. ``device_id`` unset
    means the query aggregates across devices.
    """

    bucket: str
    interval: str
    measurement: str
    field: str
    device_id: str | None = None
    aggregation: Aggregation | None = None

    @field_validator("bucket", "measurement", "field")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must be non-empty")
        return value

    @field_validator("interval")
    @classmethod
    def _duration_literal(cls, value: str) -> str:
        interval = value.strip().lstrip("-")
        if not _DURATION_RE.match(interval):
            raise ValueError(f"not a Flux duration literal: {value!r}")
        return interval

    @field_validator("device_id")
    @classmethod
    def _blank_device_is_none(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value.strip()


class Row(ThingyBaseModel):
    """One record of a query result."""

    device: str | None = None
    measurement: str
    field: str
    value: Any = None
    time: ThingyTimestamp = None

    @classmethod
    def from_flux(cls, values: Mapping[str, Any]) -> Row:
        """Build a row from a Flux record's ``values`` mapping.

        Reduced tables carry no ``_time`` column; ``_stop`` (the end of the
        queried range) is used instead.
        """
        time_value = values.get("_time")
        if time_value is None:
            time_value = values.get("_stop")
        return cls(
            device=values.get(DEVICE_TAG),
            measurement=str(values.get("_measurement", "")),
            field=str(values.get("_field", "")),
            value=values.get("_value"),
            time=time_value,
        )

    @property
    def time_or_raise(self) -> datetime:
        if self.time is None:
            raise ValueError("row has no time column")
        return self.time
