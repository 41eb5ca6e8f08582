"""Durable key/value cache on local disk.

Values are stored as JSON strings under namespaced keys, mirroring how a
browser's localStorage holds the roster: `<namespace>_participants`,
`<namespace>_staff` and `<namespace>_lastSync`.
"""

import json
import logging
import os
from pathlib import Path

from pydantic import ValidationError

from rollcall.roster import RosterSnapshot
from rollcall.transports._base import Transport
from rollcall.transports._registry import register

logger = logging.getLogger(__name__)


@register
class LocalCache(Transport):
    """Synchronous JSON-file cache used as fallback and write-through backstop."""

    def __init__(self, path, namespace: str = "roseCity"):
        self.path = Path(path)
        self.namespace = namespace

    def __repr__(self):
        return f"LocalCache({self.path}, namespace={self.namespace!r})"

    @classmethod
    def from_config(cls, config) -> "LocalCache":
        return cls(config.cache_path, namespace=config.namespace)

    @property
    def keys(self) -> tuple[str, str, str]:
        """Participants, staff and last-sync keys for this namespace."""
        return (
            f"{self.namespace}_participants",
            f"{self.namespace}_staff",
            f"{self.namespace}_lastSync",
        )

    # =========================================================================

    def _read_all(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Local cache %s is unreadable: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("Local cache %s does not hold a key/value object", self.path)
            return {}
        return data

    def _write_all(self, data: dict) -> bool:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(data), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as exc:
            logger.warning("Local cache write to %s failed: %s", self.path, exc)
            return False
        return True

    def get_item(self, key: str) -> str | None:
        return self._read_all().get(key)

    def set_items(self, items: dict[str, str]) -> bool:
        data = self._read_all()
        data.update(items)
        return self._write_all(data)

    def remove_items(self, keys) -> bool:
        data = self._read_all()
        for key in keys:
            data.pop(key, None)
        return self._write_all(data)

    # =========================================================================

    def pull(self) -> RosterSnapshot | None:
        participants_key, staff_key, last_sync_key = self.keys
        data = self._read_all()
        if participants_key not in data or staff_key not in data:
            return None

        try:
            return RosterSnapshot(
                participants=json.loads(data[participants_key]),
                staff=json.loads(data[staff_key]),
                timestamp=int(data.get(last_sync_key) or 0),
            )
        except (TypeError, ValueError, ValidationError) as exc:
            logger.warning("Ignoring corrupt roster in local cache: %s", exc)
            return None

    def push(self, snapshot: RosterSnapshot) -> bool:
        participants_key, staff_key, last_sync_key = self.keys
        return self.set_items(
            {
                participants_key: json.dumps(snapshot.participants),
                staff_key: json.dumps(snapshot.staff),
                last_sync_key: str(snapshot.timestamp),
            }
        )

    def clear(self) -> bool:
        if not self.path.exists():
            return True
        return self.remove_items(self.keys)
