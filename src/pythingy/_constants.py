"""Internal constants shared across the library."""

from __future__ import annotations

import enum


class FieldKind(enum.Enum):
    INTEGER = "int"
    FLOAT = "float"


# Static mapping from Thingy ``appId`` to the InfluxDB field type it is stored as.
FIELD_KINDS: dict[str, FieldKind] = {
    "TEMP": FieldKind.FLOAT,
    "HUMID": FieldKind.FLOAT,
    "AIR_PRESS": FieldKind.FLOAT,
    "AIR_QUAL": FieldKind.INTEGER,
    "CO2_EQUIV": FieldKind.INTEGER,
    "BUTTON": FieldKind.INTEGER,
}

# Boolean channels sent as "1"/"0"; only "1" is stored.
EDGE_TRIGGERED_APP_IDS: frozenset[str] = frozenset({"BUTTON"})

BUTTON_APP_ID = "BUTTON"
DEVICE_TAG = "device"
THINGS_SEGMENT = "things"

DEFAULT_MEASUREMENT = "thingy91"
DEFAULT_BUCKET = "pnsBucket"
DEFAULT_ORG = "pnsOrg"
DEFAULT_PROPERTY_INTERVAL = "30m"
DEFAULT_STATISTIC_INTERVAL = "1h"
DEFAULT_TIMER_INTERVAL = "1d"
DEFAULT_SUBSCRIBE_TOPICS: tuple[str, ...] = ("things/+/shadow/update",)
DEFAULT_COMMAND_TOPIC = "things/{device_id}/shadow/update/accepted"

DEFAULT_BUZZER_FREQUENCY = 1000

# LED colour names accepted by ``set_led_color``; anything else falls back to red.
LED_COLORS: dict[str, str] = {
    "red": "ff0000",
    "green": "00ff00",
    "blue": "0000ff",
}
DEFAULT_LED_COLOR = "red"
