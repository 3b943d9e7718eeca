"""Extractor: turns matching log lines into cube events."""

import logging

from logcube.buffer import EventBuffer
from logcube.config import SourceConfig
from logcube.models import Event

logger = logging.getLogger(__name__)


class Extractor:
    def __init__(self, source: SourceConfig, buffer: EventBuffer):
        self._source = source
        self._buffer = buffer
        self._matched = 0
        self._dropped = 0

    @property
    def matched(self) -> int:
        return self._matched

    @property
    def dropped(self) -> int:
        return self._dropped

    def extract(self, line: str) -> Event | None:
        """Apply the source pattern and casts. Returns None for lines that don't match."""
        m = self._source.pattern.search(line)
        if m is None:
            return None

        data = {}
        for name, value in m.groupdict(default="").items():
            data[name] = self._source.cast_for(name).apply(value)
        return Event(type=self._source.type, data=data)

    def consume(self, line: str) -> Event | None:
        """Extract *line* and append the event to the buffer."""
        event = self.extract(line)
        if event is None:
            self._dropped += 1
            logger.debug("No match for line: %s", line[:100])
            return None

        self._matched += 1
        self._buffer.append(event)
        return event
