"""W3C WoT thing description for a Thingy:91 device."""

from __future__ import annotations

from typing import Any

_PROPERTIES: dict[str, tuple[str, str, str]] = {
    "TEMP": ("Temperature", "degree celsius", "A measurement of ambient temperature"),
    "HUMID": ("Humidity", "percent", "A measurement of ambient humidity"),
    "AIR_PRESS": ("Air Pressure", "kPa", "A measurement of ambient air pressure"),
    "AIR_QUAL": ("Air Quality", "AQI", "A measurement of ambient air quality"),
    "CO2_EQUIV": ("CO2 Equivalent", "MMTCDE", "A measurement of ambient CO2 equivalent"),
}

_EVENTS: dict[str, dict[str, Any]] = {
    "flip": {
        "title": "Flip",
        "type": "string",
        "readOnly": True,
        "description": "The Thingy has been flipped to a different side",
    },
    "button": {
        "title": "Button",
        "type": "boolean",
        "readOnly": True,
        "description": "The button has been pressed or released",
    },
}


def build_thing_description(device_id: str, *, base_url: str = "https://127.0.0.1") -> dict[str, Any]:
    """Return the thing description document for *device_id*."""
    properties: dict[str, Any] = {}
    for app_id, (title, unit, description) in _PROPERTIES.items():
        properties[app_id] = {
            "title": title,
            "type": "number",
            "unit": unit,
            "readOnly": True,
            "description": description,
            "links": [{"href": f"/things/{device_id}/properties/{app_id}"}],
        }
    return {
        "id": f"{base_url.rstrip('/')}/things/{device_id}",
        "title": "Nordic Thingy:91",
        "description": "A WoT-connected Thingy:91 sensor",
        "properties": properties,
        "events": {name: dict(event) for name, event in _EVENTS.items()},
    }
