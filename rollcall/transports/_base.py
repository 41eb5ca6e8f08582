from abc import ABC, abstractmethod
from typing import Callable

from rollcall.roster import RosterSnapshot

SnapshotCallback = Callable[[RosterSnapshot], None]
Unsubscribe = Callable[[], None]


class Transport(ABC):
    """
    Interface for everything that moves a roster snapshot between instances.

    Implementations never raise past these methods: read failures come back as
    None and write failures as False, after being logged.
    """

    @classmethod
    @abstractmethod
    def from_config(cls, config) -> "Transport":
        """Build the transport from a `Config`."""
        raise NotImplementedError

    @abstractmethod
    def pull(self) -> RosterSnapshot | None:
        """Return the latest stored snapshot, or None if there is none or it is unreachable."""
        raise NotImplementedError

    @abstractmethod
    def push(self, snapshot: RosterSnapshot) -> bool:
        """Store `snapshot`, replacing whatever was there. Returns False if the write failed."""
        raise NotImplementedError

    @abstractmethod
    def clear(self) -> bool:
        """Delete the stored snapshot. Returns False if the delete failed."""
        raise NotImplementedError

    def subscribe(self, callback: SnapshotCallback) -> Unsubscribe:
        """Register `callback` for snapshots published by other instances.

        The callback may be invoked from a background thread. The default
        transport has no change feed and never calls it.

        Args:
            callback: Callable accepting a RosterSnapshot.

        Returns:
            Callable that cancels the subscription.
        """
        return lambda: None

    def close(self) -> None:
        """Release any connections or threads held by the transport."""
