"""EventBuffer: lock-protected list of events waiting for delivery."""

import math
import threading

from logcube.models import Event


class EventBuffer:
    """Shared between every extractor (appending) and the uploader (draining).

    The lock is only held while the list is appended to, swapped or measured,
    never while a batch is on the wire.
    """

    def __init__(self):
        self._events: list[Event] = []
        self._lock = threading.Lock()

    def append(self, event: Event):
        with self._lock:
            self._events.append(event)

    def extend(self, events: list[Event]):
        """Re-enqueue events at the tail, e.g. a batch that failed to send."""
        with self._lock:
            self._events.extend(events)

    def partition(self, size: int) -> list[list[Event]]:
        """Atomically take everything buffered, split into batches of *size*.

        Returns ceil(len / size) contiguous batches, the last possibly short.
        Events appended after the swap land in the fresh list and wait for the
        next round.
        """
        with self._lock:
            if not self._events:
                return []
            events = self._events
            self._events = []

        count = math.ceil(len(events) / size)
        return [events[i * size:(i + 1) * size] for i in range(count)]

    def snapshot(self) -> list[Event]:
        with self._lock:
            return list(self._events)

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
