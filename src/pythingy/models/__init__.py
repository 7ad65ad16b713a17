"""Data models for Thingy telemetry, queries and commands."""

from pythingy.models._base import ThingyBaseModel, ThingyEnum, ThingyTimestamp, parse_thingy_timestamp
from pythingy.models.control import CommandAck, CommandMessage
from pythingy.models.message import MessageType, TelemetryMessage
from pythingy.models.point import Point
from pythingy.models.query import Aggregation, QuerySpec, Row
from pythingy.models.timer import ButtonTimer, RetentionPolicy

__all__ = [
    "Aggregation",
    "ButtonTimer",
    "CommandAck",
    "CommandMessage",
    "MessageType",
    "Point",
    "QuerySpec",
    "RetentionPolicy",
    "Row",
    "TelemetryMessage",
    "ThingyBaseModel",
    "ThingyEnum",
    "ThingyTimestamp",
    "parse_thingy_timestamp",
]
