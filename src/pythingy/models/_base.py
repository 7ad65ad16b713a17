"""Base model and enum for Thingy messages and query results.

Every pythingy model inherits from :class:`ThingyBaseModel` which
provides:

* ``alias_generator=to_camel`` so camelCase wire keys (``appId``,
  ``messageType``) map automatically to snake_case fields.
* Frozen instances; a decoded message is never mutated while it is
  being dispatched.

String enums inherit from :class:`ThingyEnum` which adds a ``_missing_``
hook returning ``UNKNOWN`` for values without a mapped member.
"""

from __future__ import annotations

import enum
import math
from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict
from pydantic.alias_generators import to_camel

# Threshold to distinguish seconds from milliseconds.
_MS_THRESHOLD = 1_000_000_000_000


def parse_thingy_timestamp(value: Any) -> datetime | None:
    """Convert a device timestamp to a timezone-aware UTC datetime.

    Accepts epoch seconds, epoch milliseconds (as numbers or digit
    strings), ISO-8601 text and datetimes. Returns ``None`` for ``None``
    and empty strings.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    if isinstance(value, bool):
        raise ValueError("boolean is not a timestamp")
    if isinstance(value, str):
        text = value.strip()
        try:
            value = float(text)
        except ValueError:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)
    try:
        ts = float(value)
    except OverflowError as exc:
        raise ValueError(f"timestamp out of range: {value!r}") from exc
    if not math.isfinite(ts):
        raise ValueError(f"timestamp is not finite: {value!r}")
    if ts >= _MS_THRESHOLD:
        ts /= 1000.0
    try:
        return datetime.fromtimestamp(ts, tz=UTC)
    except (OverflowError, OSError) as exc:
        raise ValueError(f"timestamp out of range: {value!r}") from exc


ThingyTimestamp = Annotated[datetime | None, BeforeValidator(parse_thingy_timestamp)]
"""Annotated type that coerces epoch seconds/ms or ISO text to UTC datetimes."""


class ThingyEnum(enum.StrEnum):
    """Base for wire-level string enums.

    Every subclass **must** define ``UNKNOWN``. Values without a mapped
    member resolve to ``UNKNOWN`` instead of raising ``ValueError``.
    """

    @classmethod
    def _missing_(cls, value: object) -> ThingyEnum:
        if isinstance(value, str):
            for member in cls:
                if member.value == value.upper():
                    return member
        if hasattr(cls, "UNKNOWN"):
            unknown: ThingyEnum = cls.UNKNOWN  # type: ignore[attr-defined]
            return unknown
        return next(iter(cls))


class ThingyBaseModel(BaseModel):
    """Base for pythingy models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )
