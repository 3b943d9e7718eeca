"""Event and seek-state models."""

import json
from dataclasses import dataclass, field, asdict
from datetime import datetime


def rfc3339_now() -> str:
    """Current local time as an RFC 3339 string with seconds precision."""
    return datetime.now().astimezone().isoformat(timespec="seconds")


@dataclass(frozen=True)
class Event:
    type: str
    time: str = field(default_factory=rfc3339_now)
    data: dict = field(default_factory=dict)


def event_to_dict(event: Event) -> dict:
    return asdict(event)


def serialize_events(events: list[Event]) -> bytes:
    """Encode a batch as the JSON array accepted by /1.0/event/put.

    Raises ValueError on NaN or infinity, which strict JSON has no token for.
    """
    return json.dumps([event_to_dict(e) for e in events], allow_nan=False).encode("utf-8")


@dataclass
class SeekState:
    """Byte offset into a tailed file; the position to resume reading from."""

    offset: int = 0

    def to_bytes(self) -> bytes:
        return json.dumps({"offset": self.offset}).encode("utf-8")

    @classmethod
    def from_bytes(cls, data: bytes) -> "SeekState":
        return cls(offset=int(json.loads(data)["offset"]))
