"""Tests for Pydantic model parsing with ThingyBaseModel + ThingyEnum."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from pydantic import ValidationError

from pythingy._topics import TopicAddress
from pythingy.models.control import CommandMessage
from pythingy.models.message import MessageType, TelemetryMessage
from pythingy.models.query import Row
from pythingy.models.timer import ButtonTimer, RetentionPolicy

_EXPECTED = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)

# ------------------------------------------------------------------
# ThingyEnum
# ------------------------------------------------------------------


class TestMessageType:
    def test_known_value(self) -> None:
        assert MessageType("DATA") == MessageType.DATA

    def test_lower_case_value(self) -> None:
        assert MessageType("cfg_set") == MessageType.CFG_SET

    def test_unknown_value_falls_back(self) -> None:
        assert MessageType("TELEPORT") == MessageType.UNKNOWN


# ------------------------------------------------------------------
# TelemetryMessage
# ------------------------------------------------------------------


class TestTelemetryMessage:
    @pytest.mark.parametrize(
        "ts",
        [1714564800000, 1714564800, "1714564800000", "2024-05-01T12:00:00Z", "2024-05-01T12:00:00+00:00"],
    )
    def test_timestamp_formats(self, ts: object) -> None:
        message = TelemetryMessage.model_validate({"appId": "TEMP", "data": "21.0", "ts": ts})
        assert message.ts == _EXPECTED
        assert message.timestamp == _EXPECTED

    def test_missing_ts_falls_back_to_receipt_time(self) -> None:
        message = TelemetryMessage.model_validate({"appId": "TEMP", "data": "21.0"})
        assert message.ts is None
        assert message.timestamp == message.received_at
        assert message.received_at.tzinfo is not None

    def test_camel_case_wire_keys(self) -> None:
        message = TelemetryMessage.model_validate({"appId": " BUTTON ", "data": {}, "messageType": "DATA"})
        assert message.app_id == "BUTTON"
        assert message.data == {}
        assert message.message_type is MessageType.DATA

    def test_unknown_message_type(self) -> None:
        message = TelemetryMessage.model_validate({"appId": "TEMP", "messageType": "WHATEVER"})
        assert message.message_type is MessageType.UNKNOWN

    def test_app_id_required(self) -> None:
        with pytest.raises(ValidationError):
            TelemetryMessage.model_validate({"data": "1"})
        with pytest.raises(ValidationError):
            TelemetryMessage.model_validate({"appId": "", "data": "1"})

    def test_extra_keys_ignored(self) -> None:
        message = TelemetryMessage.model_validate({"appId": "TEMP", "data": "1", "rssi": -70})
        assert not hasattr(message, "rssi")

    def test_frozen(self) -> None:
        message = TelemetryMessage(app_id="TEMP", data="1")
        with pytest.raises(ValidationError):
            message.data = "2"  # type: ignore[misc]


# ------------------------------------------------------------------
# Row
# ------------------------------------------------------------------


class TestRow:
    def test_from_flux_record(self) -> None:
        row = Row.from_flux(
            {
                "_measurement": "thingy91",
                "_field": "HUMID",
                "_value": 41.0,
                "_time": _EXPECTED,
                "device": "blue-1",
                "result": "_result",
                "table": 0,
            }
        )
        assert row.device == "blue-1"
        assert row.field == "HUMID"
        assert row.value == 41.0
        assert row.time_or_raise == _EXPECTED

    def test_reduced_table_uses_stop(self) -> None:
        row = Row.from_flux({"_measurement": "thingy91", "_field": "TEMP", "_value": 0.4, "_stop": _EXPECTED})
        assert row.device is None
        assert row.time == _EXPECTED

    def test_missing_time(self) -> None:
        row = Row.from_flux({"_field": "TEMP", "_value": 1})
        with pytest.raises(ValueError):
            _ = row.time_or_raise


# ------------------------------------------------------------------
# Commands, timers, retention
# ------------------------------------------------------------------


def test_command_wire_format() -> None:
    wire = CommandMessage(app_id="LED", data={"color": "ff0000"}).to_wire()
    assert wire == '{"appId":"LED","data":{"color":"ff0000"},"messageType":"CFG_SET"}'


def test_button_timer_components() -> None:
    timer = ButtonTimer(elapsed=timedelta(days=1, hours=2, minutes=3, seconds=4), running=True)
    assert (timer.days, timer.hours, timer.minutes, timer.seconds) == (1, 2, 3, 4)
    assert str(timer) == "1d 2h 3m 4s"
    assert timer.model_dump()["minutes"] == 3


@pytest.mark.parametrize(
    ("every_seconds", "expected"),
    [(None, (0, "h")), (0, (0, "h")), (3600, (1, "h")), (172800, (2, "d"))],
)
def test_retention_policy_units(every_seconds: int | None, expected: tuple[float, str]) -> None:
    policy = RetentionPolicy.from_seconds(every_seconds)
    assert (policy.value, policy.unit) == expected


# ------------------------------------------------------------------
# Topics
# ------------------------------------------------------------------


class TestTopicAddress:
    def test_device_scoped_topic(self) -> None:
        address = TopicAddress.parse("things/blue-1/shadow/update")
        assert address is not None
        assert address.device_id == "blue-1"
        assert address.topic == "things/blue-1/shadow/update"

    def test_prefixed_topic(self) -> None:
        address = TopicAddress.parse("prod-1234/m/d/things/red-2/d2c")
        assert address is not None
        assert address.device_id == "red-2"

    @pytest.mark.parametrize("topic", ["things", "things/", "things//x", "sensors/blue-1", "things/#"])
    def test_not_device_scoped(self, topic: str) -> None:
        assert TopicAddress.parse(topic) is None


@pytest.mark.parametrize("ts", ["inf", float("nan"), 1e400, 1e20, -1e20, 10**400])
def test_unusable_timestamps_fail_validation(ts: object) -> None:
    with pytest.raises(ValidationError):
        TelemetryMessage.model_validate({"appId": "TEMP", "data": "1", "ts": ts})
