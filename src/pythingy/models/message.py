"""Decoded telemetry messages received from the bus."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import Field, field_validator

from pythingy.models._base import ThingyBaseModel, ThingyEnum, ThingyTimestamp


class MessageType(ThingyEnum):
    """Application-level ``messageType`` of a Thingy payload."""

    DATA = "DATA"
    EVENT = "EVENT"
    CFG_SET = "CFG_SET"
    CFG_GET = "CFG_GET"
    HELLO = "HELLO"
    UNKNOWN = "UNKNOWN"


class TelemetryMessage(ThingyBaseModel):
    """A decoded bus payload.

    Only lives for the duration of dispatch. ``ts`` is the device's own
    timestamp when it sent one; ``received_at`` is when pythingy decoded it.
    """

    app_id: str
    data: Any = None
    message_type: MessageType = MessageType.UNKNOWN
    ts: ThingyTimestamp = None
    received_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("app_id")
    @classmethod
    def _normalize_app_id(cls, value: str) -> str:
        app_id = value.strip()
        if not app_id:
            raise ValueError("appId must be non-empty")
        return app_id

    @property
    def timestamp(self) -> datetime:
        """Device timestamp when present, otherwise the observation instant."""
        return self.ts if self.ts is not None else self.received_at
