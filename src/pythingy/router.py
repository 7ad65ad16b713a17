"""Inbound bus message routing.

Every message is decoded once and then offered, independently, to:

1. the :class:`~pythingy.correlator.EventCorrelator`, so a pending wait
   can claim it, and
2. the :class:`~pythingy.encoding.PointEncoder`, when its ``appId`` is
   registered for persistence.

Nothing raised here reaches the bus thread: malformed traffic is reported
to the device's waiters and logged.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from pythingy._mqtt import decode_telemetry_payload
from pythingy._redact import redact_for_log
from pythingy._topics import TopicAddress
from pythingy.correlator import EventCorrelator
from pythingy.encoding import PointEncoder
from pythingy.exceptions import ThingyConnectionError, ThingyDecodeError
from pythingy.models.message import TelemetryMessage

_logger = logging.getLogger(__name__)


class MessageRouter:
    """Decodes and dispatches bus messages for device-scoped topics."""

    def __init__(
        self,
        correlator: EventCorrelator,
        encoder: PointEncoder,
        *,
        persisted_app_ids: Iterable[str],
    ) -> None:
        self._correlator = correlator
        self._encoder = encoder
        self._persisted = frozenset(persisted_app_ids)

    def route(self, topic: str, raw_payload: bytes) -> TelemetryMessage | None:
        """Handle one bus message; returns the decoded message, if any."""
        address = TopicAddress.parse(topic)
        if address is None:
            _logger.debug("Ignoring non device-scoped topic=%s", topic)
            return None
        device_id = address.device_id

        try:
            message = decode_telemetry_payload(raw_payload, topic=topic)
        except ThingyDecodeError as exc:
            exc.device_id = device_id
            failed = self._correlator.fail(device_id, exc)
            _logger.warning(
                "Dropping malformed payload topic=%s waiters_failed=%d: %s",
                topic,
                failed,
                exc,
            )
            _logger.debug("Malformed payload=%s", redact_for_log(raw_payload))
            return None

        _logger.debug(
            "Routing device=%s appId=%s type=%s data=%s",
            device_id,
            message.app_id,
            message.message_type,
            redact_for_log(message.data),
        )

        self._correlator.offer(device_id, message)

        if message.app_id in self._persisted and self._encoder.knows(message.app_id):
            self._persist(device_id, message)
        return message

    def _persist(self, device_id: str, message: TelemetryMessage) -> None:
        try:
            self._encoder.write(device_id, message)
        except ThingyDecodeError as exc:
            _logger.warning("Not persisting device=%s appId=%s: %s", device_id, message.app_id, exc)
        except ThingyConnectionError:
            _logger.warning(
                "Store unavailable; dropping point device=%s appId=%s",
                device_id,
                message.app_id,
                exc_info=True,
            )
