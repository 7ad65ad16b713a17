"""Correlation of awaited device events with in-flight requests.

A caller registers a waiter for a device with a predicate and a deadline;
the router offers every decoded message for that device. Whichever of
{matching message, decode error, deadline} happens first settles the
waiter, and the waiter is removed from the registry on every exit path,
including caller cancellation.

Several waiters may be pending for the same device at once. Each one
evaluates its own predicate and a single message can settle more than
one of them.

``offer``/``fail`` and the deadline timers all run on the event loop
thread, so resolution follows loop order: a message scheduled on the loop
before the deadline timer becomes due wins over the timeout.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field

from pythingy.exceptions import ThingyDecodeError, ThingyTimeoutError
from pythingy.models.message import TelemetryMessage

_logger = logging.getLogger(__name__)

Predicate = Callable[[TelemetryMessage], bool]


@dataclass(slots=True, eq=False)
class _Waiter:
    """A pending wait registered by :meth:`EventCorrelator.wait`."""

    device_id: str
    predicate: Predicate
    future: asyncio.Future[TelemetryMessage]
    timer: asyncio.TimerHandle | None = None
    created_at: float = field(default_factory=time.monotonic)


class EventCorrelator:
    """Registry of pending device waits keyed by device id."""

    def __init__(self) -> None:
        # Guards _waiters only; never held across an await.
        self._lock = threading.Lock()
        self._waiters: dict[str, list[_Waiter]] = {}

    def pending(self, device_id: str | None = None) -> int:
        """Number of registered waiters, for one device or overall."""
        with self._lock:
            if device_id is not None:
                return len(self._waiters.get(device_id, ()))
            return sum(len(waiters) for waiters in self._waiters.values())

    @contextlib.contextmanager
    def _registered(self, device_id: str, predicate: Predicate) -> Iterator[_Waiter]:
        loop = asyncio.get_running_loop()
        waiter = _Waiter(device_id=device_id, predicate=predicate, future=loop.create_future())
        with self._lock:
            self._waiters.setdefault(device_id, []).append(waiter)
        try:
            yield waiter
        finally:
            self._discard(waiter)
            if not waiter.future.done():
                waiter.future.cancel()

    def _discard(self, waiter: _Waiter) -> None:
        with self._lock:
            waiters = self._waiters.get(waiter.device_id)
            if waiters is not None:
                remaining = [cand for cand in waiters if cand is not waiter]
                if remaining:
                    self._waiters[waiter.device_id] = remaining
                else:
                    self._waiters.pop(waiter.device_id, None)
        if waiter.timer is not None:
            waiter.timer.cancel()
            waiter.timer = None

    def _settle(
        self,
        waiter: _Waiter,
        *,
        result: TelemetryMessage | None = None,
        error: BaseException | None = None,
    ) -> bool:
        if waiter.future.done():
            return False
        self._discard(waiter)
        if error is not None:
            waiter.future.set_exception(error)
        else:
            waiter.future.set_result(result)  # type: ignore[arg-type]
        return True

    def _expire(self, waiter: _Waiter, timeout: float) -> None:
        waited = time.monotonic() - waiter.created_at
        settled = self._settle(
            waiter,
            error=ThingyTimeoutError(
                f"No matching event from device {waiter.device_id} within {timeout}s",
                device_id=waiter.device_id,
                timeout=timeout,
            ),
        )
        if settled:
            _logger.debug("Wait timed out device=%s after %.3fs", waiter.device_id, waited)

    async def wait(self, device_id: str, predicate: Predicate, timeout: float) -> TelemetryMessage:
        """Wait for the first message from *device_id* accepted by *predicate*.

        Parameters
        ----------
        device_id
            Device whose messages are considered.
        predicate
            Called with each decoded message; ``True`` settles the wait.
            An exception raised by the predicate settles the wait with
            that exception.
        timeout
            Seconds before :class:`ThingyTimeoutError` is raised.

        Raises
        ------
        ThingyTimeoutError
            Nothing matched before the deadline.
        ThingyDecodeError
            A malformed payload arrived for the device first.
        """
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        loop = asyncio.get_running_loop()
        with self._registered(device_id, predicate) as waiter:
            waiter.timer = loop.call_later(timeout, self._expire, waiter, timeout)
            _logger.debug("Waiting for device=%s timeout=%ss", device_id, timeout)
            return await waiter.future

    def _snapshot(self, device_id: str) -> list[_Waiter]:
        with self._lock:
            return list(self._waiters.get(device_id, ()))

    def offer(self, device_id: str, message: TelemetryMessage) -> int:
        """Offer a decoded message; returns how many waiters it settled."""
        claimed = 0
        for waiter in self._snapshot(device_id):
            if waiter.future.done():
                continue
            try:
                matched = waiter.predicate(message)
            except Exception as exc:
                _logger.warning("Wait predicate failed device=%s appId=%s", device_id, message.app_id, exc_info=True)
                self._settle(waiter, error=exc)
                continue
            if matched and self._settle(waiter, result=message):
                claimed += 1
        if claimed:
            _logger.debug("Message appId=%s settled %d waiter(s) device=%s", message.app_id, claimed, device_id)
        return claimed

    def fail(self, device_id: str, error: ThingyDecodeError) -> int:
        """Settle every waiter of *device_id* with *error*; returns the count.

        Each waiter gets its own :class:`ThingyDecodeError` chained from
        *error*, so tracebacks of separate awaiting tasks stay apart.
        """
        failed = 0
        for waiter in self._snapshot(device_id):
            if waiter.future.done():
                continue
            own = ThingyDecodeError(str(error), topic=error.topic, device_id=error.device_id or device_id)
            own.__cause__ = error
            if self._settle(waiter, error=own):
                failed += 1
        return failed

    def cancel_all(self) -> int:
        """Cancel every pending wait, e.g. on shutdown."""
        with self._lock:
            waiters = [waiter for device_waiters in self._waiters.values() for waiter in device_waiters]
        cancelled = 0
        for waiter in waiters:
            self._discard(waiter)
            if not waiter.future.done():
                waiter.future.cancel()
                cancelled += 1
        return cancelled
