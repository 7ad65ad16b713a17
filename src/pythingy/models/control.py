"""Outbound command payloads and acknowledgements."""

from __future__ import annotations

from typing import Any

from pydantic import Field

from pythingy.models._base import ThingyBaseModel
from pythingy.models.message import MessageType


class CommandMessage(ThingyBaseModel):
    """Wire payload published to a device's command topic."""

    app_id: str
    data: Any = Field(default_factory=dict)
    message_type: MessageType = MessageType.CFG_SET

    def to_wire(self) -> str:
        return self.model_dump_json(by_alias=True)


class CommandAck(ThingyBaseModel):
    """Returned once the broker acknowledged a published command."""

    topic: str
    app_id: str
    message: str
