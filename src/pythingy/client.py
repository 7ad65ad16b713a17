"""High-level async client for Thingy telemetry."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from datetime import UTC, datetime
from typing import Any

from pythingy._constants import (
    BUTTON_APP_ID,
    DEFAULT_BUZZER_FREQUENCY,
    DEFAULT_LED_COLOR,
    DEFAULT_TIMER_INTERVAL,
    LED_COLORS,
)
from pythingy._mqtt import Bus, ThingyMqttRuntime
from pythingy._store import InfluxStore, TimeSeriesStore
from pythingy.aggregator import CompleteCallback, ErrorCallback, RowCallback, RowStream
from pythingy.config import ThingyConfig
from pythingy.correlator import EventCorrelator, Predicate
from pythingy.encoding import PointEncoder
from pythingy.exceptions import ThingyConnectionError, ThingyError, ThingyPublishError
from pythingy.models.control import CommandAck, CommandMessage
from pythingy.models.message import TelemetryMessage
from pythingy.models.query import Aggregation, QuerySpec, Row
from pythingy.models.timer import ButtonTimer, RetentionPolicy
from pythingy.query import basic_range_query, latest_rows_query, statistical_query
from pythingy.router import MessageRouter
from pythingy.thing import build_thing_description

_logger = logging.getLogger(__name__)


def _is_button_press(message: TelemetryMessage) -> bool:
    """A ``BUTTON`` message that is not a release (``"0"``)."""
    return message.app_id == BUTTON_APP_ID and str(message.data).strip() != "0"


class ThingyClient:
    """Async client combining bus ingestion, storage queries and device waits.

    Usage::

        async with ThingyClient(ThingyConfig.from_env()) as client:
            pressed_at = await client.await_button_press("blue-1", 60)
            rows = await client.get_property("blue-1", "TEMP", interval="1h")
    """

    def __init__(
        self,
        config: ThingyConfig,
        *,
        store: TimeSeriesStore | None = None,
        bus: Bus | None = None,
    ) -> None:
        self._config = config
        # Only a store pythingy created itself is opened and closed here.
        self._influx: InfluxStore | None = None
        if store is None:
            store = self._influx = InfluxStore(config)
        self._store: TimeSeriesStore = store
        self._bus = bus
        self._loop: asyncio.AbstractEventLoop | None = None
        self._correlator = EventCorrelator()
        self._encoder = PointEncoder(self._store, measurement=config.measurement)
        self._rows = RowStream(self._store)
        self._router = MessageRouter(
            self._correlator,
            self._encoder,
            persisted_app_ids=config.persisted_app_ids,
        )

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> ThingyClient:
        self._loop = asyncio.get_running_loop()
        if self._influx is not None:
            self._config.validate()
            await self._influx.open()
        try:
            await self._start_bus()
        except BaseException:
            await self._close_store()
            self._loop = None
            raise
        return self

    async def __aexit__(self, *exc: Any) -> None:
        cancelled = self._correlator.cancel_all()
        if cancelled:
            _logger.debug("Cancelled %d pending device wait(s) on shutdown", cancelled)
        try:
            await self._stop_bus()
        finally:
            await self._close_store()
            self._loop = None

    async def _start_bus(self) -> None:
        if not self._config.mqtt_enabled:
            return
        loop = self._require_loop()
        if self._bus is None:
            self._bus = ThingyMqttRuntime(self._config, loop=loop, logger=_logger)
        # paho's connect() blocks on the socket handshake.
        await loop.run_in_executor(None, self._bus.start, self._on_bus_message)

    async def _stop_bus(self) -> None:
        bus = self._bus
        if bus is None or not bus.is_running:
            return
        try:
            await self._require_loop().run_in_executor(None, bus.stop)
        except Exception:
            _logger.warning("MQTT runtime stop failed", exc_info=True)

    async def _close_store(self) -> None:
        if self._influx is not None:
            await self._influx.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            raise ThingyError("Client not initialized. Use 'async with ThingyClient(...) as client:'")
        return self._loop

    def _require_bus(self) -> Bus:
        bus = self._bus
        if bus is None or not bus.is_running:
            raise ThingyConnectionError("MQTT bus is not running (is mqtt_enabled set?)")
        return bus

    def _on_bus_message(self, topic: str, payload: bytes) -> None:
        """Route one bus message (scheduled on the loop by the MQTT thread)."""
        try:
            self._router.route(topic, payload)
        except Exception:
            _logger.exception("Unexpected failure routing message topic=%s", topic)

    def _spec(
        self,
        device_id: str | None,
        prop: str,
        interval: str,
        aggregation: Aggregation | str | None = None,
    ) -> QuerySpec:
        return QuerySpec(
            bucket=self._config.influx_bucket,
            interval=interval,
            measurement=self._config.measurement,
            field=prop,
            device_id=device_id,
            aggregation=aggregation,
        )

    @property
    def correlator(self) -> EventCorrelator:
        return self._correlator

    @property
    def router(self) -> MessageRouter:
        return self._router

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_property(
        self,
        device_id: str | None,
        prop: str,
        interval: str | None = None,
    ) -> list[Row]:
        """Raw readings of *prop* over the last *interval*.

        ``device_id=None`` returns rows of every device.
        """
        spec = self._spec(device_id, prop, interval or self._config.property_interval)
        return await self._rows.collect(basic_range_query(spec))

    async def get_statistic(
        self,
        device_id: str | None,
        prop: str,
        statistic: Aggregation | str,
        interval: str | None = None,
    ) -> list[Row]:
        """*statistic* (``mean``, ``stddev``, ``count`` …) of *prop* over *interval*."""
        spec = self._spec(device_id, prop, interval or self._config.statistic_interval, statistic)
        return await self._rows.collect(statistical_query(spec))

    def stream_property(
        self,
        device_id: str | None,
        prop: str,
        interval: str | None = None,
    ) -> AsyncIterator[Row]:
        """Like :meth:`get_property` but yields rows as they arrive."""
        spec = self._spec(device_id, prop, interval or self._config.property_interval)
        return self._rows.stream(basic_range_query(spec))

    async def push_property(
        self,
        device_id: str | None,
        prop: str,
        on_row: RowCallback,
        on_error: ErrorCallback | None = None,
        on_complete: CompleteCallback | None = None,
        *,
        interval: str | None = None,
    ) -> None:
        """Callback form of :meth:`stream_property`."""
        spec = self._spec(device_id, prop, interval or self._config.property_interval)
        await self._rows.push(basic_range_query(spec), on_row, on_error, on_complete)

    async def get_button_timer(self, device_id: str) -> ButtonTimer | None:
        """Stopwatch driven by button presses over the last day.

        Each press toggles the timer. Returns ``None`` when the button was
        not pressed in the window.
        """
        spec = self._spec(device_id, BUTTON_APP_ID, DEFAULT_TIMER_INTERVAL)
        count_spec = spec.model_copy(update={"aggregation": Aggregation.COUNT})

        latest = await self._rows.collect(latest_rows_query(spec, 2, value=1))
        counted = await self._rows.collect(statistical_query(count_spec))
        count = sum(int(row.value or 0) for row in counted)
        if count == 0 or not latest:
            return None

        running = count % 2 == 1 or len(latest) < 2
        if running:
            elapsed = datetime.now(UTC) - latest[0].time_or_raise
        else:
            elapsed = latest[0].time_or_raise - latest[1].time_or_raise
        return ButtonTimer(elapsed=elapsed, running=running)

    async def get_retention_policy(self) -> RetentionPolicy:
        """Expiry rule of the telemetry bucket."""
        loop = self._require_loop()
        if self._influx is None:
            raise ThingyError("Retention policy lookup requires an InfluxStore")
        return await loop.run_in_executor(None, self._influx.retention_policy)

    def get_thing_description(self, device_id: str) -> dict[str, Any]:
        """WoT thing description for *device_id*."""
        return build_thing_description(device_id)

    # ------------------------------------------------------------------
    # Device events
    # ------------------------------------------------------------------

    async def wait_for_event(
        self,
        device_id: str,
        predicate: Predicate,
        timeout: float,
    ) -> TelemetryMessage:
        """Wait for the first message from *device_id* accepted by *predicate*."""
        self._require_loop()
        return await self._correlator.wait(device_id, predicate, timeout)

    async def await_button_press(self, device_id: str, timeout_seconds: float) -> datetime:
        """Wait for the device's button to be pressed and return when it happened.

        Raises :class:`~pythingy.exceptions.ThingyTimeoutError` when nobody
        presses it within *timeout_seconds*.
        """
        message = await self.wait_for_event(device_id, _is_button_press, timeout_seconds)
        _logger.debug("Button press device=%s at=%s", device_id, message.timestamp)
        return message.timestamp

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def publish_command(self, device_id: str, app_id: str, payload: Any) -> CommandAck:
        """Publish a ``CFG_SET`` command for *app_id* to the device."""
        loop = self._require_loop()
        bus = self._require_bus()
        topic = self._config.command_topic_for(device_id)
        message = CommandMessage(app_id=app_id, data=payload).to_wire()
        try:
            await loop.run_in_executor(None, bus.publish, topic, message)
        except ThingyPublishError:
            _logger.warning("Command publish failed device=%s appId=%s", device_id, app_id)
            raise
        _logger.info("Published command device=%s appId=%s", device_id, app_id)
        return CommandAck(topic=topic, app_id=app_id, message=message)

    async def set_buzzer(
        self,
        device_id: str,
        *,
        enabled: bool = True,
        frequency: int | None = None,
    ) -> CommandAck:
        """Turn the buzzer on at *frequency* Hz, or off."""
        freq = (frequency or DEFAULT_BUZZER_FREQUENCY) if enabled else 0
        return await self.publish_command(device_id, "BUZZER", {"frequency": freq})

    async def set_led_color(self, device_id: str, color: str = DEFAULT_LED_COLOR) -> CommandAck:
        """Set the LED to ``red``, ``green`` or ``blue`` (unknown names mean red)."""
        hex_color = LED_COLORS.get(color.strip().lower(), LED_COLORS[DEFAULT_LED_COLOR])
        return await self.publish_command(device_id, "LED", {"color": hex_color})
