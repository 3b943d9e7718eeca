"""Cube sender: POSTs one batch of events to the cube collector."""

import logging

import requests

from logcube.models import Event, serialize_events

logger = logging.getLogger(__name__)


class CubeSender:
    """Sends batches to ``<cube>/1.0/event/put``. A batch is accepted only on HTTP 200."""

    def __init__(self, put_url: str, timeout: float | None = 30.0):
        self._put_url = put_url
        self._timeout = timeout

    @property
    def put_url(self) -> str:
        return self._put_url

    def send(self, batch: list[Event]) -> bool:
        """Send *batch*. Returns True on success, False on transport error or non-200 status."""
        payload = serialize_events(batch)
        try:
            resp = requests.post(
                self._put_url,
                data=payload,
                headers={"Content-Type": "application/json"},
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            logger.warning("Send of %d events failed: %s", len(batch), exc)
            return False

        with resp:
            if resp.status_code != 200:
                logger.warning(
                    "Send of %d events rejected: HTTP %d", len(batch), resp.status_code
                )
                return False
        return True
