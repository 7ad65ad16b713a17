"""Topic parsing for device-scoped bus topics."""

from __future__ import annotations

from dataclasses import dataclass

from pythingy._constants import THINGS_SEGMENT


@dataclass(frozen=True)
class TopicAddress:
    """Structured view of a ``.../things/<deviceId>/...`` topic."""

    device_id: str
    segments: tuple[str, ...]

    @classmethod
    def parse(cls, topic: str) -> TopicAddress | None:
        """Split *topic* and locate the device id.

        Returns ``None`` when the topic carries no ``things`` marker
        followed by a non-empty device id.
        """
        segments = tuple(topic.strip().split("/"))
        for index, segment in enumerate(segments[:-1]):
            if segment != THINGS_SEGMENT:
                continue
            device_id = segments[index + 1]
            if device_id and device_id not in {"+", "#"}:
                return cls(device_id=device_id, segments=segments)
        return None

    @property
    def topic(self) -> str:
        return "/".join(self.segments)
