"""Last-writer-wins reconciliation and the synchronizer that drives it."""

import logging
import queue
from enum import Enum
from typing import Callable

from rollcall.ingest import IngestError
from rollcall.roster import RosterSnapshot
from rollcall.store import RosterStore, ToggleResult
from rollcall.transports import Transport
from rollcall.transports.local_cache import LocalCache
from rollcall.utils import format_sync_time

logger = logging.getLogger(__name__)


class Decision(Enum):
    ADOPT_CANDIDATE = "adopt_candidate"
    KEEP_LOCAL = "keep_local"


def reconcile(
    local: RosterSnapshot | None, candidate: RosterSnapshot | None
) -> Decision:
    """
    Picks between the locally held roster and one observed elsewhere.

    The later timestamp wins outright. A winning candidate replaces both
    collections in full; edits are never merged field by field, so concurrent
    edits on two instances between syncs are lost on the older side.

    Args:
        local: Local roster stamped with its last sync time, or None if this
            instance has never synced.
        candidate: Roster from a transport, or None if nothing was observed.

    Returns:
        Decision: ADOPT_CANDIDATE or KEEP_LOCAL.
    """
    if candidate is None:
        return Decision.KEEP_LOCAL
    if local is None:
        return Decision.ADOPT_CANDIDATE
    if candidate.timestamp > local.timestamp:
        return Decision.ADOPT_CANDIDATE
    return Decision.KEEP_LOCAL


class Synchronizer:
    """
    Keeps one instance's roster in step with every other instance.

    The synchronizer owns the store and the transport for the lifetime of the
    instance. Transport callbacks may arrive on background threads; they only
    enqueue snapshots, and `process_pending` applies them on the owning thread,
    so the store is never touched concurrently.

    Attributes:
        store (RosterStore): The instance's roster.
        cache (LocalCache): Durable fallback, written on every sync.
        transport (Transport or None): Networked or broadcast transport, if any.
        bootstrap (callable or None): Builds a fresh snapshot from CSV.
        remote_ok (bool or None): Outcome of the last transport push.
    """

    def __init__(
        self,
        store: RosterStore,
        cache: LocalCache,
        transport: Transport | None = None,
        bootstrap: Callable[[], RosterSnapshot] | None = None,
    ):
        self.store = store
        self.cache = cache
        self.transport = transport
        self.bootstrap = bootstrap
        self.inbox: queue.Queue[RosterSnapshot] = queue.Queue()
        self.remote_ok: bool | None = None
        self._unsubscribe = None
        self._disposed = False

    def __repr__(self):
        return f"Synchronizer({self.store!r}, transport={self.transport!r})"

    @property
    def status(self) -> str:
        """Short sync indicator for the dashboard."""
        if self.store.last_sync is None:
            return "Connecting..."
        if self.remote_ok is False:
            return "Offline (local only)"
        return f"Synced {format_sync_time(self.store.last_sync)}"

    # =========================================================================
    # lifecycle

    def load(self) -> bool:
        """
        Brings the roster up on startup.

        The transport copy and the local cache are reconciled like any other
        pair of snapshots, the transport copy winning ties. A cache holding
        edits made while the transport was unreachable is adopted and written
        back out. With neither copy the roster is bootstrapped from CSV and
        pushed. Ingestion failures leave the roster empty and unloaded.

        Returns:
            bool: Whether the roster is loaded.
        """
        # listen first so a snapshot published while we read is not lost
        self._subscribe()

        remote = self.transport.pull() if self.transport is not None else None
        cached = self.cache.pull()

        if remote is None and cached is None:
            self._bootstrap()
        elif reconcile(remote, cached) is Decision.ADOPT_CANDIDATE:
            logger.info("Loaded roster from %r", self.cache)
            self._adopt(cached)
            if remote is not None:
                logger.info("Local roster is newer than %r; pushing it", self.transport)
                self.remote_ok = self.transport.push(cached)
                if not self.remote_ok:
                    logger.warning("Roster kept in local cache only; remote write failed")
        else:
            logger.info("Loaded roster from %r", self.transport)
            self._adopt(remote)

        return self.store.is_loaded

    def _bootstrap(self) -> None:
        if self.bootstrap is None:
            logger.warning("No stored roster and no CSV bootstrap configured")
            return
        try:
            snapshot = self.bootstrap()
        except IngestError as exc:
            logger.error("Could not load roster from CSV: %s", exc)
            return
        self.store.replace(snapshot)
        self.store.mark_loaded()
        self.push()

    def _subscribe(self) -> None:
        if self.transport is None or self._unsubscribe is not None:
            return
        self._unsubscribe = self.transport.subscribe(self.receive)

    def dispose(self) -> None:
        """Tear down subscriptions and release the transport."""
        if self._disposed:
            return
        self._disposed = True
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self.transport is not None:
            self.transport.close()
        self._drain_inbox()

    # =========================================================================
    # inbound

    def receive(self, snapshot: RosterSnapshot) -> None:
        """Subscription callback; safe to call from any thread."""
        if self._disposed:
            return
        self.inbox.put(snapshot)

    def process_pending(self) -> int:
        """
        Reconciles every snapshot received since the last call.

        Returns:
            int: Number of snapshots adopted.
        """
        adopted = 0
        while not self._disposed:
            try:
                candidate = self.inbox.get_nowait()
            except queue.Empty:
                break
            if self.consider(candidate) is Decision.ADOPT_CANDIDATE:
                adopted += 1
        return adopted

    def consider(self, candidate: RosterSnapshot | None) -> Decision:
        """Reconcile one candidate against the store, adopting it if it wins."""
        decision = reconcile(self.store.synced_snapshot(), candidate)
        if decision is Decision.ADOPT_CANDIDATE:
            logger.debug("Adopting roster from %s", candidate.timestamp)
            self._adopt(candidate)
        return decision

    def _adopt(self, snapshot: RosterSnapshot) -> None:
        self.store.replace(snapshot)
        self.store.mark_loaded()
        self.cache.push(snapshot)

    def _drain_inbox(self) -> None:
        while True:
            try:
                self.inbox.get_nowait()
            except queue.Empty:
                return

    # =========================================================================
    # outbound

    def push(self) -> RosterSnapshot:
        """
        Writes the current roster everywhere it is kept.

        The transport is tried first; a failed write there is logged and does not
        stop the local cache write. `last_sync` advances either way.

        Returns:
            RosterSnapshot: The snapshot that was written.
        """
        snapshot = self.store.get_snapshot()
        if self.transport is not None:
            self.remote_ok = self.transport.push(snapshot)
            if not self.remote_ok:
                logger.warning("Roster kept in local cache only; remote write failed")
        self.cache.push(snapshot)
        self.store.mark_synced(snapshot.timestamp)
        return snapshot

    def toggle(self, collection: str, name: str, field: str) -> ToggleResult:
        """Flip a field on one person and push the change if the roster is loaded."""
        result = self.store.toggle_field(collection, name, field)
        if result is ToggleResult.TOGGLED and self.store.is_loaded:
            self.push()
        return result

    def reset(self) -> None:
        """
        Erases the roster from the cache, the transport and memory.

        A following `load` falls through to the CSV bootstrap unless another
        instance has written a roster in the meantime.
        """
        self.cache.clear()
        if self.transport is not None and not self.transport.clear():
            logger.warning("Remote roster could not be cleared")
        self.store.clear()
        self.remote_ok = None
        self._drain_inbox()
        logger.info("Roster data reset")
