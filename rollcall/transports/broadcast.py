"""Same-device broadcast channel between instances on one machine.

Snapshots are JSON lines appended to `<channel_dir>/<name>.jsonl`:

    {"type": "snapshot", "origin": <session id>, "snapshot": {...}}

Every subscribed instance tails the file and reacts to lines written by other
sessions. Once the file grows past `max_bytes` the writer compacts it to its
latest snapshot line.

Liveness lives beside the channel in `<name>.sessions/<session id>.json`, one
small file per session holding its last heartbeat time. Heartbeats only feed
the advisory "online" count; reconciliation never looks at them.
"""

import json
import logging
import os
import threading
import uuid
from pathlib import Path

from pydantic import ValidationError

from rollcall.roster import RosterSnapshot
from rollcall.transports._base import SnapshotCallback, Transport, Unsubscribe
from rollcall.transports._registry import register
from rollcall.utils import now_ms

logger = logging.getLogger(__name__)


def new_session_id() -> str:
    return f"device-{uuid.uuid4().hex[:7]}"


def _is_snapshot_line(raw: bytes) -> bool:
    try:
        message = json.loads(raw)
    except ValueError:
        return False
    return isinstance(message, dict) and message.get("type") == "snapshot"


@register
class BroadcastChannel(Transport):
    """
    File-backed publish/subscribe channel scoped to the local machine.

    Attributes:
        session_id (str): Origin tag stamped on every message this instance posts.
        path (Path): The channel file.
        sessions_dir (Path): Directory of per-session heartbeat files.
        sessions (dict[str, int]): Last heartbeat time of each other live session.
    """

    def __init__(
        self,
        channel_dir,
        name: str = "roseCitySync",
        session_id: str | None = None,
        heartbeat_interval: float = 5.0,
        heartbeat_timeout: float = 15.0,
        poll_interval: float = 0.25,
        max_bytes: int = 1024 * 1024,
    ):
        self.path = Path(channel_dir) / f"{name}.jsonl"
        self.sessions_dir = Path(channel_dir) / f"{name}.sessions"
        self.session_id = session_id or new_session_id()
        self.heartbeat_interval = heartbeat_interval
        self.heartbeat_timeout = heartbeat_timeout
        self.poll_interval = poll_interval
        self.max_bytes = max_bytes
        self.sessions: dict[str, int] = {}
        self._sessions_lock = threading.Lock()
        self._stoppers: list[Unsubscribe] = []

    def __repr__(self):
        return f"BroadcastChannel({self.path}, session={self.session_id})"

    @classmethod
    def from_config(cls, config) -> "BroadcastChannel":
        return cls(
            config.channel_dir,
            name=config.channel_name,
            heartbeat_interval=config.heartbeat_interval,
            heartbeat_timeout=config.heartbeat_timeout,
            max_bytes=config.channel_max_bytes,
        )

    # =========================================================================
    # channel file

    def post(self, message: dict) -> bool:
        """Append one message to the channel."""
        line = json.dumps({**message, "origin": self.session_id}) + "\n"
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line)
        except OSError as exc:
            logger.warning("Broadcast on %s failed: %s", self.path, exc)
            return False
        return True

    def read_messages(self, offset: int = 0) -> tuple[list[dict], int]:
        """
        Reads complete messages written after byte `offset`.

        A trailing partial line is left for the next read. If the channel has been
        truncated or compacted since `offset` was taken, reading restarts from the
        beginning.

        Returns:
            tuple[list[dict], int]: Decoded messages and the offset to resume from.
        """
        try:
            with open(self.path, "rb") as f:
                size = f.seek(0, os.SEEK_END)
                if offset > size:
                    offset = 0
                elif offset:
                    f.seek(offset - 1)
                    # a rewritten channel no longer has a line break where we stopped
                    if f.read(1) != b"\n":
                        offset = 0
                f.seek(offset)
                chunk = f.read()
        except FileNotFoundError:
            return [], 0
        except OSError as exc:
            logger.warning("Reading broadcast channel %s failed: %s", self.path, exc)
            return [], offset

        end = chunk.rfind(b"\n") + 1
        messages = []
        for raw in chunk[:end].splitlines():
            if not raw.strip():
                continue
            try:
                message = json.loads(raw)
            except ValueError:
                logger.debug("Skipping undecodable broadcast line")
                continue
            if isinstance(message, dict):
                messages.append(message)
        return messages, offset + end

    def compact(self) -> bool:
        """
        Rewrites the channel in place so only its latest snapshot line remains.

        Returns:
            bool: False if the file could not be rewritten.
        """
        try:
            with open(self.path, "r+b") as f:
                lines = f.read().splitlines(keepends=True)
                complete = [raw for raw in lines if raw.endswith(b"\n")]
                latest = next(
                    (raw for raw in reversed(complete) if _is_snapshot_line(raw)), b""
                )
                # another instance may be halfway through writing a line
                partial = lines[-1] if lines and not lines[-1].endswith(b"\n") else b""
                f.seek(0)
                f.write(latest + partial)
                f.truncate()
        except OSError as exc:
            logger.warning("Compacting broadcast channel %s failed: %s", self.path, exc)
            return False
        logger.debug("Compacted broadcast channel %s", self.path)
        return True

    def _end_offset(self) -> int:
        try:
            return self.path.stat().st_size
        except OSError:
            return 0

    # =========================================================================
    # liveness

    @property
    def heartbeat_path(self) -> Path:
        return self.sessions_dir / f"{self.session_id}.json"

    def heartbeat(self, now: int | None = None) -> bool:
        """Overwrite this session's heartbeat file with the current time."""
        timestamp = now_ms() if now is None else now
        tmp = self.heartbeat_path.with_suffix(".tmp")
        try:
            self.sessions_dir.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps({"timestamp": timestamp}), encoding="utf-8")
            os.replace(tmp, self.heartbeat_path)
        except OSError as exc:
            logger.warning("Heartbeat on %s failed: %s", self.sessions_dir, exc)
            return False
        return True

    def read_heartbeats(self, now: int | None = None) -> None:
        """Refresh `sessions` from the heartbeat files of other sessions.

        Files whose last beat is older than `heartbeat_timeout` are deleted.
        """
        now = now_ms() if now is None else now
        cutoff = self.heartbeat_timeout * 1000
        try:
            beats = sorted(self.sessions_dir.glob("*.json"))
        except OSError:
            return
        for beat in beats:
            origin = beat.stem
            if origin == self.session_id:
                continue
            try:
                timestamp = int(json.loads(beat.read_text(encoding="utf-8"))["timestamp"])
            except FileNotFoundError:
                continue
            except (OSError, ValueError, KeyError, TypeError) as exc:
                logger.debug("Unreadable heartbeat %s: %s", beat.name, exc)
                continue
            if now - timestamp > cutoff:
                self._remove_beat(beat)
                continue
            self.record_heartbeat(origin, timestamp, now)

    def _remove_beat(self, beat: Path) -> None:
        try:
            beat.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.debug("Could not remove heartbeat %s: %s", beat.name, exc)

    def record_heartbeat(self, origin: str, timestamp: int, now: int | None = None) -> None:
        with self._sessions_lock:
            self.sessions[origin] = timestamp
        self.prune_sessions(now)

    def prune_sessions(self, now: int | None = None) -> None:
        """Forget sessions whose last heartbeat is older than `heartbeat_timeout`."""
        now = now_ms() if now is None else now
        cutoff = self.heartbeat_timeout * 1000
        with self._sessions_lock:
            for origin, seen in list(self.sessions.items()):
                if now - seen > cutoff:
                    del self.sessions[origin]

    def online_count(self, now: int | None = None) -> int:
        """Number of live sessions on this channel, counting this one."""
        self.prune_sessions(now)
        with self._sessions_lock:
            return len(self.sessions) + 1

    # =========================================================================
    # transport

    def handle_message(self, message: dict, callback: SnapshotCallback) -> bool:
        """
        Dispatches one channel message.

        Messages from this session are ignored.

        Returns:
            bool: True if a snapshot was handed to `callback`.
        """
        origin = message.get("origin")
        if origin == self.session_id or message.get("type") != "snapshot":
            return False

        try:
            snapshot = RosterSnapshot.model_validate(message.get("snapshot"))
        except ValidationError as exc:
            logger.warning("Ignoring malformed snapshot from %s: %s", origin, exc)
            return False
        callback(snapshot)
        return True

    def pull(self) -> RosterSnapshot | None:
        messages, _ = self.read_messages()
        for message in reversed(messages):
            if message.get("type") != "snapshot":
                continue
            try:
                return RosterSnapshot.model_validate(message.get("snapshot"))
            except ValidationError as exc:
                logger.warning("Latest broadcast snapshot is malformed: %s", exc)
                return None
        return None

    def push(self, snapshot: RosterSnapshot) -> bool:
        if not self.post({"type": "snapshot", "snapshot": snapshot.model_dump()}):
            return False
        if self._end_offset() > self.max_bytes:
            self.compact()
        return True

    def clear(self) -> bool:
        try:
            if self.path.exists():
                self.path.write_text("", encoding="utf-8")
        except OSError as exc:
            logger.warning("Clearing broadcast channel %s failed: %s", self.path, exc)
            return False
        return True

    def _listen_loop(
        self, callback: SnapshotCallback, stop: threading.Event, offset: int
    ) -> None:
        next_heartbeat = 0.0
        elapsed = 0.0
        while not stop.is_set():
            if elapsed >= next_heartbeat:
                self.heartbeat()
                self.read_heartbeats()
                next_heartbeat = elapsed + self.heartbeat_interval
            messages, offset = self.read_messages(offset)
            for message in messages:
                self.handle_message(message, callback)
            if stop.wait(self.poll_interval):
                return
            elapsed += self.poll_interval

    def subscribe(self, callback: SnapshotCallback) -> Unsubscribe:
        stop = threading.Event()
        # taken here, not in the thread, so nothing posted after this call is missed
        offset = self._end_offset()
        thread = threading.Thread(
            target=self._listen_loop,
            args=(callback, stop, offset),
            name="rollcall-broadcast",
            daemon=True,
        )
        thread.start()
        logger.info("Joined broadcast channel %s as %s", self.path, self.session_id)

        def unsubscribe() -> None:
            stop.set()
            if thread is not threading.current_thread():
                thread.join(timeout=self.poll_interval * 4 + 1)
            if unsubscribe in self._stoppers:
                self._stoppers.remove(unsubscribe)
            if not self._stoppers:
                self._remove_beat(self.heartbeat_path)

        self._stoppers.append(unsubscribe)
        return unsubscribe

    def close(self) -> None:
        for unsubscribe in list(self._stoppers):
            unsubscribe()
