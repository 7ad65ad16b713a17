"""Telemetry message → time-series point encoding."""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from pythingy._constants import DEVICE_TAG, EDGE_TRIGGERED_APP_IDS, FIELD_KINDS, FieldKind
from pythingy._store import TimeSeriesStore
from pythingy.exceptions import ThingyDecodeError
from pythingy.models.message import TelemetryMessage
from pythingy.models.point import Point

_logger = logging.getLogger(__name__)


def _coerce(value: Any, kind: FieldKind) -> int | float:
    if isinstance(value, bool):
        return int(value) if kind is FieldKind.INTEGER else float(value)
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"not a finite number: {value!r}")
    if kind is FieldKind.INTEGER:
        return int(number)
    return number


class PointEncoder:
    """Turns decoded telemetry into typed points and writes them.

    One ``write_point`` call per persisted message; batching is the store
    client's concern.
    """

    def __init__(
        self,
        store: TimeSeriesStore,
        *,
        measurement: str,
        field_kinds: Mapping[str, FieldKind] | None = None,
        edge_triggered: frozenset[str] = EDGE_TRIGGERED_APP_IDS,
    ) -> None:
        self._store = store
        self._measurement = measurement
        self._field_kinds = dict(field_kinds if field_kinds is not None else FIELD_KINDS)
        self._edge_triggered = edge_triggered

    def knows(self, app_id: str) -> bool:
        return app_id in self._field_kinds

    def encode(
        self,
        device_id: str,
        message: TelemetryMessage,
        *,
        observed_at: datetime | None = None,
    ) -> Point | None:
        """Build the point for *message*, or ``None`` when nothing is stored.

        Edge-triggered channels only produce a point for ``"1"``; ``"0"``
        is a reset. The message's own ``ts`` wins over *observed_at*.
        """
        kind = self._field_kinds.get(message.app_id)
        if kind is None:
            raise ThingyDecodeError(f"No field kind registered for appId={message.app_id}", device_id=device_id)

        data = message.data
        if message.app_id in self._edge_triggered:
            if str(data).strip() != "1":
                return None
            data = 1

        try:
            value = _coerce(data, kind)
        except (TypeError, ValueError, OverflowError) as exc:
            raise ThingyDecodeError(
                f"appId={message.app_id} carries non-numeric or non-finite data {data!r}",
                device_id=device_id,
            ) from exc

        if message.ts is not None:
            timestamp = message.ts
        else:
            timestamp = observed_at or datetime.now(UTC)

        return Point.create(
            self._measurement,
            tags={DEVICE_TAG: device_id},
            fields={message.app_id: value},
            timestamp=timestamp,
        )

    def write(self, device_id: str, message: TelemetryMessage) -> Point | None:
        """Encode *message* and hand the point to the store (fire-and-forget)."""
        point = self.encode(device_id, message)
        if point is None:
            _logger.debug("No point for appId=%s device=%s data=%r", message.app_id, device_id, message.data)
            return None
        self._store.write_point(point)
        _logger.debug("Point queued device=%s fields=%s", device_id, dict(point.fields))
        return point
