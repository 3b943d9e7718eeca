"""SourceWatcher: resolves configured sources to files and supervises their tailers."""

import glob
import logging
import os
import threading

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from logcube.buffer import EventBuffer
from logcube.checkpoint import CheckpointStore, CheckpointError
from logcube.config import Config, SourceConfig
from logcube.extractor import Extractor
from logcube.tailer import Tailer

logger = logging.getLogger(__name__)


def glob_base(pattern: str) -> str:
    """Longest leading directory of *pattern* that contains no wildcards."""
    parts = []
    for part in os.path.dirname(pattern).split(os.sep):
        if glob.has_magic(part):
            break
        parts.append(part)
    base = os.sep.join(parts)
    if not base:
        return os.sep if pattern.startswith(os.sep) else "."
    return base


def resolve(source: SourceConfig) -> list[str]:
    """Concrete absolute paths for a source: glob matches, or its single path."""
    if source.glob:
        return [os.path.abspath(p) for p in sorted(glob.glob(source.glob)) if not os.path.isdir(p)]
    if source.path:
        return [os.path.abspath(source.path)]
    return []


class _RescanTrigger(FileSystemEventHandler):
    """Asks the watcher for a rescan whenever a file shows up in a glob directory."""

    def __init__(self, request_rescan):
        super().__init__()
        self._request_rescan = request_rescan

    def on_created(self, event):
        if not event.is_directory:
            self._request_rescan()

    def on_moved(self, event):
        if not event.is_directory:
            self._request_rescan()


class SourceWatcher:
    def __init__(
        self,
        config: Config,
        buffer: EventBuffer,
        store: CheckpointStore,
        shutdown_event: threading.Event,
    ):
        self._config = config
        self._buffer = buffer
        self._store = store
        self._shutdown = shutdown_event
        self._tailers: dict[str, Tailer] = {}
        self._lock = threading.Lock()
        self._rescan_requested = threading.Event()
        self._stopping = threading.Event()
        self._rescan_thread = None
        self._observer = None
        self.fatal_error: Exception | None = None

    @property
    def watched_paths(self) -> list[str]:
        with self._lock:
            return sorted(self._tailers)

    @property
    def tailers(self) -> list[Tailer]:
        with self._lock:
            return list(self._tailers.values())

    def start(self):
        """Start a tailer for every file that matches now, then keep globs under watch.

        A checkpoint that cannot be read here is fatal: CheckpointError propagates,
        as does the OSError of a directory that cannot be watched.
        """
        self.scan()

        glob_sources = [s for s in self._config.sources if s.glob]
        if not glob_sources:
            return

        observer = Observer()
        trigger = _RescanTrigger(self._rescan_requested.set)
        bases: dict[str, bool] = {}
        for source in glob_sources:
            base = glob_base(source.glob)
            # Wildcards in directory components need the whole subtree
            recursive = base != (os.path.dirname(source.glob) or ".")
            bases[base] = bases.get(base, False) or recursive
        for base, recursive in sorted(bases.items()):
            if os.path.isdir(base):
                observer.schedule(trigger, base, recursive=recursive)
                logger.info("Watching directory: %s", base)
        observer.start()
        self._observer = observer

        self._rescan_thread = threading.Thread(
            target=self._rescan_loop, daemon=True, name="rescan"
        )
        self._rescan_thread.start()

    def scan(self, globs_only: bool = False) -> int:
        """Start tailers for newly matching files. Returns how many were started."""
        started = 0
        for source in self._config.sources:
            if globs_only and not source.glob:
                continue
            for path in resolve(source):
                if self.watch_path(source, path) is not None:
                    started += 1
        return started

    def watch_path(self, source: SourceConfig, path: str) -> Tailer | None:
        """Start a tailer for *path* unless one is already running for it."""
        path = os.path.abspath(path)
        with self._lock:
            if path in self._tailers or not self._running():
                return None

            state = self._store.get(path)
            tailer = Tailer(
                path,
                state,
                Extractor(source, self._buffer),
                self._store,
                self._shutdown,
                flush_interval=self._config.flush_interval,
                gap_sleep=self._config.gap_sleep,
                poll_interval=self._config.poll_interval,
            )
            self._tailers[path] = tailer

        tailer.start()
        return tailer

    def _running(self) -> bool:
        return not (self._shutdown.is_set() or self._stopping.is_set())

    def _rescan_loop(self):
        while self._running():
            self._rescan_requested.wait(self._config.rescan_interval)
            self._rescan_requested.clear()
            if not self._running():
                break
            try:
                started = self.scan(globs_only=True)
            except CheckpointError as e:
                logger.error("Cannot read checkpoint for new file, shutting down: %s", e)
                self.fatal_error = e
                self._shutdown.set()
                break
            if started:
                logger.info("Rescan picked up %d new file(s)", started)

    def stop(self, timeout: float = 5.0):
        """Stop the observer and every tailer; each tailer persists its final offset."""
        self._stopping.set()
        self._rescan_requested.set()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=timeout)
        if self._rescan_thread is not None:
            self._rescan_thread.join(timeout=timeout)

        tailers = self.tailers
        for tailer in tailers:
            tailer.stop()
        for tailer in tailers:
            tailer.join(timeout=timeout)
