"""Derived views over stored telemetry."""

from __future__ import annotations

from datetime import timedelta

from pydantic import computed_field

from pythingy.models._base import ThingyBaseModel


class ButtonTimer(ThingyBaseModel):
    """Elapsed time of a button-driven stopwatch.

    Each stored press toggles the timer; an odd number of presses in the
    window means it is still running.
    """

    elapsed: timedelta
    running: bool

    @computed_field  # type: ignore[prop-decorator]
    @property
    def days(self) -> int:
        return self.elapsed.days

    @computed_field  # type: ignore[prop-decorator]
    @property
    def hours(self) -> int:
        return self.elapsed.seconds // 3600

    @computed_field  # type: ignore[prop-decorator]
    @property
    def minutes(self) -> int:
        return (self.elapsed.seconds % 3600) // 60

    @computed_field  # type: ignore[prop-decorator]
    @property
    def seconds(self) -> int:
        return self.elapsed.seconds % 60

    def __str__(self) -> str:
        return f"{self.days}d {self.hours}h {self.minutes}m {self.seconds}s"


class RetentionPolicy(ThingyBaseModel):
    """Expiry rule of the telemetry bucket; ``value == 0`` means keep forever."""

    value: float
    unit: str

    @classmethod
    def from_seconds(cls, every_seconds: int | None) -> RetentionPolicy:
        if not every_seconds:
            return cls(value=0, unit="h")
        if every_seconds >= 86400:
            return cls(value=every_seconds / 86400, unit="d")
        return cls(value=every_seconds / 3600, unit="h")
