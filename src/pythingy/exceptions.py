"""Custom exception hierarchy for pythingy."""

from __future__ import annotations


class ThingyError(Exception):
    """Base exception for all pythingy errors."""

    status_code: int = 500


class ThingyConfigError(ThingyError):
    """Invalid or missing configuration."""


class ThingyConnectionError(ThingyError):
    """Bus or store client could not be reached."""

    status_code = 503


class ThingyDecodeError(ThingyError):
    """A bus payload could not be decoded into a telemetry message."""

    status_code = 400

    def __init__(
        self,
        message: str,
        *,
        topic: str = "",
        device_id: str | None = None,
    ) -> None:
        self.topic = topic
        self.device_id = device_id
        super().__init__(message)


class ThingyTimeoutError(ThingyError, TimeoutError):
    """No matching device event arrived before the deadline.

    Subclasses the builtin :class:`TimeoutError` so callers that already
    handle ``asyncio`` timeouts catch it too. Retryable by the caller.
    """

    status_code = 408

    def __init__(self, message: str, *, device_id: str = "", timeout: float = 0.0) -> None:
        self.device_id = device_id
        self.timeout = timeout
        super().__init__(message)


class ThingyQueryError(ThingyError):
    """The time-series store failed before or during a query stream."""

    def __init__(
        self,
        message: str,
        *,
        query: str = "",
        rows_received: int = 0,
    ) -> None:
        self.query = query
        self.rows_received = rows_received
        super().__init__(message)


class ThingyPublishError(ThingyError):
    """A command could not be published on the bus."""

    status_code = 502

    def __init__(self, message: str, *, topic: str = "", rc: int | None = None) -> None:
        self.topic = topic
        self.rc = rc
        super().__init__(message)


class RangeConfigurationError(ThingyError, ValueError):
    """Invalid optimal/full range passed to a rating function."""

    status_code = 400
