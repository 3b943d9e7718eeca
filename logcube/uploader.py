"""Uploader: partitions the event buffer and delivers batches concurrently."""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from logcube.buffer import EventBuffer
from logcube.metrics import MetricsCollector
from logcube.models import Event
from logcube.sender import CubeSender

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoundResult:
    batches: int = 0
    delivered: int = 0
    failed: int = 0


class Uploader:
    """Runs delivery rounds against the cube endpoint.

    Each round takes everything buffered, splits it into batches of
    *batch_size*, sends at most *concurrency* batches at a time, and puts
    failed batches back into the buffer for a later round. A round returns
    only once every batch has either been accepted or re-enqueued.
    """

    def __init__(
        self,
        buffer: EventBuffer,
        sender: CubeSender,
        batch_size: int = 500,
        concurrency: int = 5,
        metrics: MetricsCollector | None = None,
    ):
        self._buffer = buffer
        self._sender = sender
        self._batch_size = batch_size
        self._concurrency = concurrency
        self._metrics = metrics or MetricsCollector()

    @property
    def buffer(self) -> EventBuffer:
        return self._buffer

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    def run_round(self) -> RoundResult:
        batches = self._buffer.partition(self._batch_size)
        if not batches:
            return RoundResult()

        total = sum(len(b) for b in batches)
        logger.info("Preparing %d records for upload in %d batches", total, len(batches))
        self._metrics.record_round()

        workers = min(self._concurrency, len(batches))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="upload") as executor:
            results = list(executor.map(self._deliver, batches))

        delivered = sum(len(b) for b, ok in zip(batches, results) if ok)
        failed = results.count(False)
        if failed:
            logger.warning("%d of %d batches failed, %d records re-enqueued",
                           failed, len(batches), total - delivered)
        return RoundResult(batches=len(batches), delivered=delivered, failed=failed)

    def _deliver(self, batch: list[Event]) -> bool:
        """Send one batch; on failure put its events back at the buffer tail."""
        start = time.monotonic()
        ok = self._sender.send(batch)
        elapsed_ms = (time.monotonic() - start) * 1000
        self._metrics.record_batch(len(batch), ok, elapsed_ms)
        if not ok:
            self._buffer.extend(batch)
        return ok

    def run(self, shutdown_event: threading.Event, interval: float = 5.0):
        """Driver loop: one round every *interval* seconds until shutdown."""
        while not shutdown_event.is_set():
            self.run_round()
            shutdown_event.wait(interval)

    def drain(self) -> RoundResult:
        """One last round at exit. Whatever fails stays undelivered."""
        pending = len(self._buffer)
        if not pending:
            return RoundResult()
        logger.info("Draining %d buffered records before exit", pending)
        result = self.run_round()
        if result.failed:
            logger.warning("%d records left undelivered at exit", len(self._buffer))
        return result
