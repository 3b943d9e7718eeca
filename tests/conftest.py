import json
import re
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from logcube.buffer import EventBuffer
from logcube.casts import Cast
from logcube.checkpoint import CheckpointStore
from logcube.config import SourceConfig


class CubeHandler(BaseHTTPRequestHandler):
    """Stands in for the cube collector's /1.0/event/put endpoint."""

    def do_POST(self):
        server = self.server
        length = int(self.headers.get("Content-Length", 0))
        body = self.rfile.read(length)

        with server.lock:
            server.paths.append(self.path)
            if server.mode == "fail":
                server.batches_failed += 1
                status = 500
            else:
                records = json.loads(body)
                server.batches_processed += 1
                server.records_processed += len(records)
                server.received.extend(records)
                status = 200

        self.send_response(status)
        self.send_header("Content-Length", "0")
        self.end_headers()

    def log_message(self, format, *args):
        pass


class MockCube:
    def __init__(self):
        self._httpd = ThreadingHTTPServer(("127.0.0.1", 0), CubeHandler)
        self._httpd.daemon_threads = True
        self._httpd.lock = threading.Lock()
        self._httpd.mode = "pass"
        self._httpd.batches_processed = 0
        self._httpd.records_processed = 0
        self._httpd.batches_failed = 0
        self._httpd.received = []
        self._httpd.paths = []
        self._thread = threading.Thread(target=self._httpd.serve_forever, daemon=True)
        self._thread.start()

    @property
    def url(self) -> str:
        host, port = self._httpd.server_address[:2]
        return f"http://{host}:{port}"

    @property
    def put_url(self) -> str:
        return self.url + "/1.0/event/put"

    def set_mode(self, mode: str):
        with self._httpd.lock:
            self._httpd.mode = mode

    def __getattr__(self, name):
        if name in ("batches_processed", "records_processed", "batches_failed", "received", "paths"):
            with self._httpd.lock:
                return getattr(self._httpd, name)
        raise AttributeError(name)

    def close(self):
        self._httpd.shutdown()
        self._httpd.server_close()


@pytest.fixture
def cube():
    server = MockCube()
    yield server
    server.close()


@pytest.fixture
def buffer():
    return EventBuffer()


@pytest.fixture
def store(tmp_path):
    return CheckpointStore(str(tmp_path / "data.db"))


def make_source(pattern=r"(?P<message>.*)", type="log", casts=None, glob="", path="") -> SourceConfig:
    return SourceConfig(
        pattern=re.compile(pattern),
        type=type,
        glob=glob,
        path=path,
        casts={k: Cast.from_name(v) for k, v in (casts or {}).items()},
    )


def wait_for(predicate, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()
