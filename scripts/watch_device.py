#!/usr/bin/env python3
"""Manual probe for a Thingy device.

Reads connection settings from ``THINGY_*`` environment variables and:

* ``button``   waits for a button press and prints when it happened,
* ``property`` prints the stored readings of a property,
* ``stat``     prints a statistic of a property,
* ``timer``    prints the button stopwatch,
* ``led`` / ``buzzer`` publish a command to the device.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from pythingy import ThingyClient, ThingyConfig, ThingyError, ThingyTimeoutError

_LOG = logging.getLogger("watch_device")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Probe a Thingy device over MQTT/InfluxDB.")
    parser.add_argument("device_id", help="Device id as it appears in things/<deviceId>/...")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logs.")
    sub = parser.add_subparsers(dest="command", required=True)

    button = sub.add_parser("button", help="Wait for a button press.")
    button.add_argument("--timeout", type=float, default=60.0, help="Seconds to wait.")

    prop = sub.add_parser("property", help="Print stored readings.")
    prop.add_argument("name", help="Property appId, e.g. TEMP.")
    prop.add_argument("--interval", default=None, help="Flux duration, e.g. 30m.")

    stat = sub.add_parser("stat", help="Print a statistic of a property.")
    stat.add_argument("name", help="Property appId, e.g. TEMP.")
    stat.add_argument("statistic", help="mean, stddev, count, ...")
    stat.add_argument("--interval", default=None, help="Flux duration, e.g. 1h.")

    sub.add_parser("timer", help="Print the button stopwatch.")

    led = sub.add_parser("led", help="Set the LED colour.")
    led.add_argument("color", choices=["red", "green", "blue"])

    buzzer = sub.add_parser("buzzer", help="Switch the buzzer.")
    buzzer.add_argument("state", choices=["on", "off"])
    buzzer.add_argument("--freq", type=int, default=None, help="Frequency in Hz.")
    return parser.parse_args()


async def _run(args: argparse.Namespace) -> int:
    needs_bus = args.command in {"button", "led", "buzzer"}
    config = ThingyConfig.from_env(mqtt_enabled=needs_bus)

    async with ThingyClient(config) as client:
        if args.command == "button":
            print(f"[probe] Press the button on {args.device_id} within {args.timeout}s")
            try:
                pressed_at = await client.await_button_press(args.device_id, args.timeout)
            except ThingyTimeoutError:
                print("[probe] No button press.", file=sys.stderr)
                return 1
            print(f"[probe] Pressed at {pressed_at.isoformat()}")
        elif args.command == "property":
            async for row in client.stream_property(args.device_id, args.name, args.interval):
                print(json.dumps(row.model_dump(mode="json")))
        elif args.command == "stat":
            rows = await client.get_statistic(args.device_id, args.name, args.statistic, args.interval)
            print(json.dumps([row.model_dump(mode="json") for row in rows], indent=2))
        elif args.command == "timer":
            timer = await client.get_button_timer(args.device_id)
            print("[probe] No timer started in the last 24h" if timer is None else f"[probe] {timer}")
        elif args.command == "led":
            ack = await client.set_led_color(args.device_id, args.color)
            print(f"[probe] Sent {ack.message} to {ack.topic}")
        elif args.command == "buzzer":
            ack = await client.set_buzzer(args.device_id, enabled=args.state == "on", frequency=args.freq)
            print(f"[probe] Sent {ack.message} to {ack.topic}")
    return 0


def _main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(_run(args))
    except ThingyError as exc:  # pragma: no cover - network/system interaction
        _LOG.debug("Probe failed", exc_info=True)
        print(f"[probe] {type(exc).__name__}: {exc}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(_main())
