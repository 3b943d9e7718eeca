#!/usr/bin/env python3
"""logcube: entry point.

Tails the configured log files and ships matching lines to a cube endpoint
until SIGINT/SIGTERM.
"""

import argparse
import logging
import os
import signal
import sys
import threading

from logcube.buffer import EventBuffer
from logcube.checkpoint import CheckpointStore, CheckpointError
from logcube.config import ConfigError, load_config
from logcube.sender import CubeSender
from logcube.uploader import Uploader
from logcube.watcher import SourceWatcher

logger = logging.getLogger(__name__)


def build_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Ship regex-extracted log events to cube")
    parser.add_argument(
        "--config", default=os.environ.get("CONFIG_PATH", "config.json"),
        help="Path to the JSON/YAML config file (default: config.json)",
    )
    parser.add_argument(
        "--db", default=None,
        help="Path to the checkpoint database (default: data.db)",
    )
    parser.add_argument(
        "--checkpoints", action="store_true",
        help="Print stored file offsets and exit",
    )
    return parser


def setup_logging():
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s [LOGCUBE] %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def print_checkpoints(store: CheckpointStore) -> int:
    try:
        offsets = store.all()
    except CheckpointError as e:
        logger.error("%s", e)
        return 1
    for path, offset in sorted(offsets.items()):
        print(f"{offset:>12}  {path}")
    return 0


def run(argv=None, shutdown_event: threading.Event | None = None) -> int:
    """Run the daemon until *shutdown_event* is set.

    Without an event, one is created and tied to SIGINT/SIGTERM.
    """
    args = build_cli_parser().parse_args(argv)

    try:
        config = load_config(args.config, checkpoint_db=args.db)
    except ConfigError as e:
        logger.error("Config error: %s", e)
        return 1

    store = CheckpointStore(config.checkpoint_db)
    if args.checkpoints:
        return print_checkpoints(store)

    logger.info("Config: cube=%s, %d source(s), batch_size=%d, concurrency=%d",
                config.cube, len(config.sources), config.batch_size, config.concurrency)

    if shutdown_event is None:
        shutdown_event = threading.Event()

        def handle_signal(signum, frame):
            logger.info("Received signal %d, shutting down...", signum)
            shutdown_event.set()

        signal.signal(signal.SIGINT, handle_signal)
        signal.signal(signal.SIGTERM, handle_signal)

    buffer = EventBuffer()
    uploader = Uploader(
        buffer,
        CubeSender(config.put_url, timeout=config.request_timeout),
        batch_size=config.batch_size,
        concurrency=config.concurrency,
    )
    watcher = SourceWatcher(config, buffer, store, shutdown_event)

    try:
        watcher.start()
    except CheckpointError as e:
        logger.error("Cannot read checkpoint at startup: %s", e)
        shutdown_event.set()
        watcher.stop()
        return 1
    except OSError as e:
        # e.g. the inotify watch limit; tailers may already be running
        logger.error("Cannot watch source directories: %s", e)
        shutdown_event.set()
        watcher.stop()
        return 1

    logger.info("logcube running, watching %d file(s). Press Ctrl+C to stop.",
                len(watcher.watched_paths))

    try:
        uploader.run(shutdown_event, interval=config.upload_interval)
    except KeyboardInterrupt:
        shutdown_event.set()

    logger.info("Shutting down...")
    watcher.stop()
    if config.drain_on_shutdown:
        uploader.drain()

    logger.info("Delivery stats: %s", uploader.metrics.snapshot())
    if watcher.fatal_error is not None:
        logger.error("logcube stopped after a fatal error: %s", watcher.fatal_error)
        return 1
    logger.info("logcube stopped.")
    return 0


def main():
    setup_logging()
    sys.exit(run())


if __name__ == "__main__":
    main()
