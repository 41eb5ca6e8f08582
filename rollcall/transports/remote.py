"""Whole-document access to a remote JSON store over HTTP.

The document lives at `<url>/<path>.json` (the Firebase Realtime Database REST
shape): GET reads it, PUT overwrites it, DELETE removes it.
"""

import logging
from urllib.parse import unquote

import requests
from pydantic import ValidationError

from rollcall.roster import RosterSnapshot
from rollcall.transports._base import Transport
from rollcall.transports._registry import register
from rollcall.utils import COLLECTIONS

logger = logging.getLogger(__name__)

# characters the document store rejects in keys; "%" first so decoding is unambiguous
_KEY_ESCAPES = "%/.#$[]"


def encode_key(key: str) -> str:
    return "".join(
        f"%{ord(c):02X}" if c in _KEY_ESCAPES or ord(c) < 32 or ord(c) == 127 else c
        for c in key
    )


def encode_document(snapshot: RosterSnapshot) -> dict:
    """
    Serializes a snapshot with every record key made safe for the remote store.

    CSV headers such as "City/State" become "City%2FState"; `decode_document`
    reverses it.
    """
    document = snapshot.model_dump()
    for name in COLLECTIONS:
        document[name] = [
            {encode_key(str(k)): v for k, v in record.items()}
            for record in document[name]
        ]
    return document


def decode_document(data) -> RosterSnapshot:
    """
    Builds a snapshot from a stored document, restoring the original record keys.

    Raises:
        pydantic.ValidationError: If the document is not a roster snapshot.
    """
    if isinstance(data, dict):
        data = dict(data)
        for name in COLLECTIONS:
            records = data.get(name)
            if isinstance(records, list):
                data[name] = [
                    {unquote(k): v for k, v in record.items()}
                    if isinstance(record, dict)
                    else record
                    for record in records
                ]
    return RosterSnapshot.model_validate(data)


@register
class RemoteDocument(Transport):
    """A single remote roster document with no change feed."""

    def __init__(
        self,
        url: str,
        path: str = "checkin",
        auth: str | None = None,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ):
        self.url = url
        self.path = path
        self.auth = auth
        self.timeout = timeout
        self.session = session or requests.Session()

    def __repr__(self):
        return f"{type(self).__name__}({self.document_url})"

    @classmethod
    def from_config(cls, config):
        return cls(config.remote_url, **cls._remote_kwargs(config))

    @staticmethod
    def _remote_kwargs(config) -> dict:
        if not config.remote_url:
            raise ValueError("remote_url is required for remote transports")
        return {
            "path": config.remote_path,
            "auth": config.remote_auth,
            "timeout": config.request_timeout,
        }

    @property
    def document_url(self) -> str:
        return f"{self.url.rstrip('/')}/{self.path.strip('/')}.json"

    def _params(self) -> dict:
        return {"auth": self.auth} if self.auth else {}

    def fetch(self) -> RosterSnapshot | None:
        """
        Reads the remote document, letting errors propagate.

        Returns:
            RosterSnapshot or None: The stored roster, or None if the document is empty.

        Raises:
            requests.RequestException: On network or HTTP errors.
            ValueError: If the body is not a valid roster snapshot.
        """
        r = self.session.get(
            self.document_url, params=self._params(), timeout=self.timeout
        )
        r.raise_for_status()
        data = r.json()
        if data is None:
            return None
        return decode_document(data)

    def pull(self) -> RosterSnapshot | None:
        try:
            return self.fetch()
        except (requests.RequestException, ValidationError, ValueError) as exc:
            logger.warning("Remote read from %s failed: %s", self.document_url, exc)
            return None

    def push(self, snapshot: RosterSnapshot) -> bool:
        try:
            r = self.session.put(
                self.document_url,
                params=self._params(),
                json=encode_document(snapshot),
                timeout=self.timeout,
            )
            r.raise_for_status()
        except requests.RequestException as exc:
            logger.warning("Remote write to %s failed: %s", self.document_url, exc)
            return False
        return True

    def clear(self) -> bool:
        try:
            r = self.session.delete(
                self.document_url, params=self._params(), timeout=self.timeout
            )
            r.raise_for_status()
        except requests.RequestException as exc:
            logger.warning("Remote delete of %s failed: %s", self.document_url, exc)
            return False
        return True

    def close(self) -> None:
        self.session.close()
