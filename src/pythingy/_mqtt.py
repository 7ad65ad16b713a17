"""Internal MQTT runtime and payload decoding."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from typing import Any, Protocol, cast

import paho.mqtt.client as mqtt
from pydantic import ValidationError

from pythingy.config import ThingyConfig
from pythingy.exceptions import ThingyConnectionError, ThingyDecodeError, ThingyPublishError
from pythingy.models.message import TelemetryMessage

MessageHandler = Callable[[str, bytes], None]


class Bus(Protocol):
    """Structural bus interface used by :class:`~pythingy.client.ThingyClient`."""

    @property
    def is_running(self) -> bool:
        ...

    def start(self, on_message: MessageHandler) -> None:
        ...

    def stop(self) -> None:
        ...

    def publish(self, topic: str, payload: str) -> None:
        ...


def decode_telemetry_payload(payload: bytes, *, topic: str = "") -> TelemetryMessage:
    """Parse MQTT payload bytes into a :class:`TelemetryMessage`.

    Raises :class:`ThingyDecodeError` for invalid UTF-8/JSON, non-object
    JSON, or objects missing ``appId``.
    """
    try:
        parsed = json.loads(payload)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ThingyDecodeError(f"Payload is not valid JSON: {exc}", topic=topic) from exc
    if not isinstance(parsed, dict):
        raise ThingyDecodeError("Payload decoded to non-object JSON", topic=topic)
    try:
        return TelemetryMessage.model_validate(parsed)
    except ValidationError as exc:
        raise ThingyDecodeError(f"Payload is not a telemetry message: {exc}", topic=topic) from exc
    except (ArithmeticError, OSError, TypeError) as exc:
        raise ThingyDecodeError(f"Payload has unusable values: {exc!r}", topic=topic) from exc


class ThingyMqttRuntime:
    """Threaded paho-mqtt runtime that hands raw messages to an asyncio loop.

    paho's network loop runs on its own thread; every inbound message is
    scheduled onto *loop* with ``call_soon_threadsafe`` so handlers run on
    the loop thread in delivery order.
    """

    def __init__(
        self,
        config: ThingyConfig,
        *,
        loop: asyncio.AbstractEventLoop,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config
        self._loop = loop
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False
        self._on_message: MessageHandler | None = None

    @property
    def is_running(self) -> bool:
        """Whether the MQTT runtime is actively running."""
        return self._running

    def start(self, on_message: MessageHandler) -> None:
        """Connect, subscribe to the configured topics and start the network loop."""
        self.stop()
        config = self._config
        self._logger.debug(
            "MQTT runtime start requested host=%s port=%s topics=%s",
            config.mqtt_host,
            config.mqtt_port,
            config.mqtt_topics,
        )

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=config.mqtt_client_id,
        )
        client.enable_logger(self._logger)
        if config.mqtt_username:
            client.username_pw_set(config.mqtt_username, config.mqtt_password)
        if config.mqtt_tls:
            client.tls_set()

        self._on_message = on_message

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.value != 0:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                return
            self._logger.debug("MQTT connected successfully reason=%s", reason_code)
            for topic in config.mqtt_topics:
                self._logger.debug("MQTT subscribing topic=%s", topic)
                c.subscribe(topic, qos=0)

        def on_message_cb(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            handler = self._on_message
            if handler is None:
                return
            try:
                self._loop.call_soon_threadsafe(handler, msg.topic, bytes(msg.payload))
            except RuntimeError:
                self._logger.debug("Event loop closed; dropping message topic=%s", msg.topic)

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if self._running:
                self._logger.warning("MQTT disconnected: %s", reason_code)

        client.on_connect = on_connect
        client.on_message = on_message_cb
        client.on_disconnect = on_disconnect

        try:
            client.connect(config.mqtt_host, config.mqtt_port, keepalive=config.mqtt_keepalive)
        except OSError as exc:
            raise ThingyConnectionError(
                f"Cannot reach MQTT broker {config.mqtt_host}:{config.mqtt_port}: {exc}"
            ) from exc
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    def stop(self) -> None:
        """Stop and disconnect current MQTT client if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False
        self._on_message = None

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")

    def publish(self, topic: str, payload: str) -> None:
        """Publish *payload* with QoS 1 and block until the broker acknowledges it.

        Blocking; run in an executor from async code.
        """
        client = self._client
        if client is None or not self._running:
            raise ThingyPublishError("MQTT runtime is not running", topic=topic)
        info = client.publish(topic, payload, qos=1)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise ThingyPublishError(
                f"Publish to {topic} failed: {mqtt.error_string(info.rc)}",
                topic=topic,
                rc=info.rc,
            )
        try:
            info.wait_for_publish(timeout=self._config.publish_timeout)
        except (RuntimeError, ValueError) as exc:
            raise ThingyPublishError(f"Publish to {topic} failed: {exc}", topic=topic) from exc
        if not info.is_published():
            raise ThingyPublishError(
                f"Publish to {topic} not acknowledged within {self._config.publish_timeout}s",
                topic=topic,
            )
        self._logger.debug("MQTT published topic=%s payload=%s", topic, payload)
