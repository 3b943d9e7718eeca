"""Tailer: follows one file, feeds its lines to an extractor, checkpoints the offset."""

import logging
import threading

from logcube.checkpoint import CheckpointStore, CheckpointError
from logcube.extractor import Extractor
from logcube.models import SeekState
from logcube.tail import FileTail, StreamGap

logger = logging.getLogger(__name__)


class Tailer(threading.Thread):
    """One thread per watched file, plus a flush thread that persists the
    offset every *flush_interval* seconds when it has moved.

    The persisted offset trails the in-memory one by at most one flush
    interval; after a crash the lines in between are read again.
    """

    def __init__(
        self,
        path: str,
        state: SeekState,
        extractor: Extractor,
        store: CheckpointStore,
        shutdown_event: threading.Event,
        flush_interval: float = 0.5,
        gap_sleep: float = 1.0,
        poll_interval: float = 0.25,
    ):
        super().__init__(daemon=True, name=f"tailer:{path}")
        self._path = path
        self._state = state
        self._extractor = extractor
        self._store = store
        self._shutdown = shutdown_event
        self._flush_interval = flush_interval
        self._gap_sleep = gap_sleep
        self._poll_interval = poll_interval

        self._lock = threading.Lock()
        self._dirty = False
        self._stopped = threading.Event()
        self._lines_read = 0

    @property
    def path(self) -> str:
        return self._path

    @property
    def offset(self) -> int:
        with self._lock:
            return self._state.offset

    @property
    def lines_read(self) -> int:
        return self._lines_read

    def _running(self) -> bool:
        return not (self._shutdown.is_set() or self._stopped.is_set())

    def _wait(self, seconds: float):
        # Wakes early on stop()
        self._stopped.wait(seconds)

    def run(self):
        tail = FileTail(self._path, offset=self._state.offset, reopen=True, must_exist=False)
        flusher = threading.Thread(
            target=self._flush_loop, daemon=True, name=f"flush:{self._path}"
        )
        flusher.start()
        logger.info("Watching path %s from offset %d", self._path, self._state.offset)

        try:
            while self._running():
                item = tail.readline()
                if item is None:
                    self._wait(self._poll_interval)
                elif isinstance(item, StreamGap):
                    self._handle_gap(item)
                else:
                    with self._lock:
                        self._state.offset += item.size
                        self._dirty = True
                    self._lines_read += 1
                    self._extractor.consume(item.text)
        finally:
            tail.close()
            self._stopped.set()
            flusher.join()
            self.flush()
            logger.info("Stopped watching %s at offset %d", self._path, self._state.offset)

    def _handle_gap(self, gap: StreamGap):
        """The stream started over: wait, then reset the offset to the start."""
        self._wait(self._gap_sleep)
        with self._lock:
            if self._state.offset != 0:
                logger.info("Stream for %s %s, resetting offset %d -> 0",
                            self._path, gap.reason, self._state.offset)
                self._state.offset = 0
                self._dirty = True

    def _flush_loop(self):
        while not self._stopped.is_set():
            self._stopped.wait(self._flush_interval)
            self.flush()

    def flush(self) -> bool:
        """Persist the offset if it moved since the last flush.

        Write failures are logged and skipped; the next flush tries again.
        """
        with self._lock:
            if not self._dirty:
                return False
            self._dirty = False
            state = SeekState(offset=self._state.offset)

        try:
            self._store.put(self._path, state)
        except CheckpointError as e:
            logger.warning("Checkpoint flush failed for %s: %s", self._path, e)
            with self._lock:
                self._dirty = True
            return False
        return True

    def stop(self):
        self._stopped.set()
