"""Time-series points written to the store."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType

from influxdb_client import Point as InfluxPoint
from influxdb_client import WritePrecision


@dataclass(frozen=True)
class Point:
    """One append-only telemetry datum.

    Never mutated after creation; handed to the store on write.
    """

    measurement: str
    tags: MappingProxyType[str, str]
    fields: MappingProxyType[str, int | float]
    timestamp: datetime

    @classmethod
    def create(
        cls,
        measurement: str,
        *,
        tags: dict[str, str],
        fields: dict[str, int | float],
        timestamp: datetime,
    ) -> Point:
        if not fields:
            raise ValueError("a point needs at least one field")
        return cls(
            measurement=measurement,
            tags=MappingProxyType(dict(tags)),
            fields=MappingProxyType(dict(fields)),
            timestamp=timestamp,
        )

    def to_influx(self) -> InfluxPoint:
        """Convert into an ``influxdb_client.Point`` with millisecond precision."""
        point = InfluxPoint(self.measurement)
        for key, value in self.tags.items():
            point = point.tag(key, value)
        for key, value in self.fields.items():
            point = point.field(key, value)
        return point.time(self.timestamp, WritePrecision.MS)
