"""Remote document with a live change feed over server-sent events.

The listener opens `GET <document>.json` with `Accept: text/event-stream`. The
server answers with a `put` at path "/" carrying the whole document (so the
current value arrives on subscribe), then further `put` / `patch` events as the
document changes, with `keep-alive` events in between.
"""

import json
import logging
import threading
from typing import Iterable, Iterator

import requests
from pydantic import ValidationError

from rollcall.transports._base import SnapshotCallback, Unsubscribe
from rollcall.transports._registry import register
from rollcall.transports.remote import RemoteDocument, decode_document

logger = logging.getLogger(__name__)


def iter_events(lines: Iterable[str]) -> Iterator[tuple[str, str]]:
    """
    Groups server-sent event lines into (event, data) pairs.

    Args:
        lines: Decoded response lines without trailing newlines.

    Yields:
        tuple[str, str]: Event name ("message" if unnamed) and its data payload.
    """
    event = None
    data_lines = []
    for line in lines:
        if line is None:
            continue
        if not line:
            if data_lines or event:
                yield event or "message", "\n".join(data_lines)
            event = None
            data_lines = []
            continue
        if line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        value = value[1:] if value.startswith(" ") else value
        if field == "event":
            event = value
        elif field == "data":
            data_lines.append(value)
    if data_lines or event:
        yield event or "message", "\n".join(data_lines)


@register
class RealtimeTransport(RemoteDocument):
    """Remote document that pushes every change to subscribers as it happens."""

    def __init__(
        self,
        *args,
        reconnect_delay: float = 5.0,
        stream_timeout: float = 60.0,
        **kwargs,
    ):
        super().__init__(*args, **kwargs)
        self.reconnect_delay = reconnect_delay
        # must exceed the server keep-alive period (30s on Firebase)
        self.stream_timeout = stream_timeout
        self._stoppers: list[Unsubscribe] = []

    @classmethod
    def from_config(cls, config):
        return cls(config.remote_url, **cls._remote_kwargs(config))

    def handle_event(self, event: str, data: str, callback: SnapshotCallback) -> bool:
        """
        Turns one stream event into a snapshot for `callback`.

        Returns:
            bool: True if a snapshot was delivered.
        """
        if event in ("cancel", "auth_revoked"):
            logger.warning("Realtime stream %s closed by server: %s", self.document_url, event)
            return False
        if event not in ("put", "patch"):
            return False

        try:
            payload = json.loads(data)
            if event == "put" and payload.get("path") == "/":
                document = payload.get("data")
                snapshot = (
                    None if document is None else decode_document(document)
                )
            else:
                # partial update; the whole roster is the unit we reconcile
                snapshot = self.pull()
        except (ValidationError, ValueError, AttributeError) as exc:
            logger.warning("Ignoring malformed realtime event: %s", exc)
            return False

        if snapshot is None:
            return False
        callback(snapshot)
        return True

    def _stream(
        self,
        callback: SnapshotCallback,
        stop: threading.Event,
        responses: list,
    ) -> None:
        with self.session.get(
            self.document_url,
            params=self._params(),
            headers={"Accept": "text/event-stream"},
            stream=True,
            timeout=(self.timeout, self.stream_timeout),
        ) as response:
            responses.append(response)
            try:
                response.raise_for_status()
                lines = response.iter_lines(decode_unicode=True)
                for event, data in iter_events(lines):
                    if stop.is_set():
                        return
                    self.handle_event(event, data, callback)
            finally:
                responses.remove(response)

    def _listen_loop(
        self, callback: SnapshotCallback, stop: threading.Event, responses: list
    ) -> None:
        while not stop.is_set():
            try:
                self._stream(callback, stop, responses)
            except (requests.RequestException, AttributeError, OSError) as exc:
                if stop.is_set():
                    return
                logger.warning("Realtime stream %s dropped: %s", self.document_url, exc)
            if stop.wait(self.reconnect_delay):
                return

    def subscribe(self, callback: SnapshotCallback) -> Unsubscribe:
        stop = threading.Event()
        responses: list = []
        thread = threading.Thread(
            target=self._listen_loop,
            args=(callback, stop, responses),
            name="rollcall-realtime",
            daemon=True,
        )
        thread.start()
        logger.info("Listening for changes on %s", self.document_url)

        def unsubscribe() -> None:
            stop.set()
            # closing the response unblocks a read waiting on the socket
            for response in list(responses):
                response.close()
            if thread is not threading.current_thread():
                thread.join(timeout=self.timeout)
            if unsubscribe in self._stoppers:
                self._stoppers.remove(unsubscribe)

        self._stoppers.append(unsubscribe)
        return unsubscribe

    def close(self) -> None:
        for unsubscribe in list(self._stoppers):
            unsubscribe()
        super().close()
