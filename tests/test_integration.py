"""End-to-end: log file -> tailer -> extractor -> buffer -> uploader -> mock cube."""

import json
import threading

from logcube.buffer import EventBuffer
from logcube.checkpoint import CheckpointStore
from logcube.config import load_config
from logcube.sender import CubeSender
from logcube.uploader import Uploader
from logcube.watcher import SourceWatcher

from conftest import wait_for


def _pipeline(tmp_path, cube, log_glob):
    cfg_path = tmp_path / "config.json"
    cfg_path.write_text(json.dumps({
        "cube": cube.url,
        "flush_interval": 0.05,
        "poll_interval": 0.02,
        "rescan_interval": 0.1,
        "sources": [{
            "glob": log_glob,
            "pattern": r"(?P<host>\S+) (?P<status>\d+) (?P<path>\S+)",
            "type": "request",
            "cast": {"host": "host", "status": "integer", "path": "url"},
        }],
    }))
    config = load_config(str(cfg_path), checkpoint_db=str(tmp_path / "data.db"))
    shutdown = threading.Event()
    buffer = EventBuffer()
    store = CheckpointStore(config.checkpoint_db)
    watcher = SourceWatcher(config, buffer, store, shutdown)
    uploader = Uploader(buffer, CubeSender(config.put_url), batch_size=config.batch_size)
    return watcher, uploader, store


def test_lines_reach_cube(tmp_path, cube):
    logs = tmp_path / "logs"
    logs.mkdir()
    (logs / "access.log").write_text(
        "www.example.com 200 /index.html\n"
        "garbage line\n"
        "api.example.com 500 /v1/items?id=3\n"
    )
    watcher, uploader, store = _pipeline(tmp_path, cube, str(logs / "*.log"))
    watcher.start()
    try:
        assert wait_for(lambda: len(uploader.buffer) == 2)
        uploader.run_round()
    finally:
        watcher.stop()

    assert cube.records_processed == 2
    first, second = cube.received
    assert first["type"] == "request"
    assert first["data"]["host"]["domain"] == "example.com"
    assert first["data"]["status"] == 200
    assert second["data"]["path"]["RawQuery"] == "id=3"


def test_restart_resumes_without_resending(tmp_path, cube):
    logs = tmp_path / "logs"
    logs.mkdir()
    log = logs / "access.log"
    log.write_text("a.example.com 200 /one\n")

    watcher, uploader, store = _pipeline(tmp_path, cube, str(logs / "*.log"))
    watcher.start()
    assert wait_for(lambda: len(uploader.buffer) == 1)
    uploader.run_round()
    watcher.stop()

    with open(log, "a") as fh:
        fh.write("b.example.com 404 /two\n")

    watcher, uploader, store = _pipeline(tmp_path, cube, str(logs / "*.log"))
    watcher.start()
    try:
        assert wait_for(lambda: len(uploader.buffer) == 1)
        uploader.run_round()
    finally:
        watcher.stop()

    assert [r["data"]["path"]["Path"] for r in cube.received] == ["/one", "/two"]
    assert store.get(str(log)).offset == log.stat().st_size


def test_endpoint_outage_then_recovery(tmp_path, cube):
    logs = tmp_path / "logs"
    logs.mkdir()
    (logs / "access.log").write_text("".join(f"h{i}.example.com 200 /{i}\n" for i in range(12)))

    watcher, uploader, store = _pipeline(tmp_path, cube, str(logs / "*.log"))
    watcher.start()
    try:
        assert wait_for(lambda: len(uploader.buffer) == 12)
        cube.set_mode("fail")
        uploader.run_round()
        assert len(uploader.buffer) == 12

        cube.set_mode("pass")
        uploader.run_round()
    finally:
        watcher.stop()

    assert cube.records_processed == 12
    assert len(uploader.buffer) == 0
