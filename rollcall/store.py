import copy
import logging
from enum import Enum

from rollcall.roster import RosterSnapshot
from rollcall.utils import (
    CHECKED_IN,
    COLLECTIONS,
    NAME_FIELD,
    SHIRT_PROVIDED,
    TOGGLE_FIELDS,
    needs_shirt,
    now_ms,
)

logger = logging.getLogger(__name__)


class ToggleResult(Enum):
    TOGGLED = "toggled"
    NOT_FOUND = "not_found"
    REJECTED = "rejected"


class RosterStore:
    """
    In-memory roster for one running client instance.

    Owns the participant and staff collections plus sync bookkeeping. Nothing
    outside the synchronizer mutates these; all changes go through `toggle_field`
    or a whole-snapshot `replace`.

    Attributes:
        participants (list[dict]): Participant records.
        staff (list[dict]): Staff records.
        last_sync (int or None): Timestamp of the last adopted or pushed snapshot.
        is_loaded (bool): Set once after the first successful bootstrap.
    """

    def __init__(self):
        self.participants = []
        self.staff = []
        self.last_sync = None
        self.is_loaded = False

    def __repr__(self):
        return (
            f"RosterStore({len(self.participants)} participants, "
            f"{len(self.staff)} staff, last_sync={self.last_sync})"
        )

    def collection(self, name: str) -> list[dict]:
        """Return the named collection, raising ValueError for unknown names."""
        if name not in COLLECTIONS:
            raise ValueError(f"Unknown collection: {name!r}")
        return getattr(self, name)

    def find(self, collection: str, name: str) -> dict | None:
        """
        Finds the first person in `collection` whose name matches exactly.

        Returns:
            dict or None: The live record, or None on a miss.
        """
        for person in self.collection(collection):
            if person.get(NAME_FIELD) == name:
                return person
        return None

    def get_snapshot(self) -> RosterSnapshot:
        """Copy of the current roster stamped with the current time."""
        return RosterSnapshot(
            participants=copy.deepcopy(self.participants),
            staff=copy.deepcopy(self.staff),
            timestamp=now_ms(),
        )

    def synced_snapshot(self) -> RosterSnapshot | None:
        """Copy of the current roster stamped with `last_sync`, or None if never synced."""
        if self.last_sync is None:
            return None
        return RosterSnapshot(
            participants=copy.deepcopy(self.participants),
            staff=copy.deepcopy(self.staff),
            timestamp=self.last_sync,
        )

    def replace(self, snapshot: RosterSnapshot) -> None:
        """Overwrite both collections with the snapshot's and adopt its timestamp."""
        self.participants = copy.deepcopy(snapshot.participants)
        self.staff = copy.deepcopy(snapshot.staff)
        self.last_sync = snapshot.timestamp

    def mark_synced(self, timestamp: int) -> None:
        self.last_sync = timestamp

    def mark_loaded(self) -> None:
        self.is_loaded = True

    def clear(self) -> None:
        """Drop all people and forget the last sync. `is_loaded` is kept."""
        self.participants = []
        self.staff = []
        self.last_sync = None

    def can_toggle_shirt(self, collection: str, person: dict) -> bool:
        """Shirts change hands only for checked-in people who are owed one."""
        return bool(person.get(CHECKED_IN)) and needs_shirt(collection, person)

    def toggle_field(self, collection: str, name: str, field: str) -> ToggleResult:
        """
        Flips a boolean field on the person named `name`.

        A name that is not in the collection is a silent no-op. Shirt toggles are
        refused for people who are not checked in or who need no shirt.

        Args:
            collection (str): "participants" or "staff".
            name (str): Exact value of the person's "Name" field.
            field (str): "checkedIn" or "shirtProvided".

        Returns:
            ToggleResult: What happened.

        Raises:
            ValueError: If `collection` is not a known collection name, or
                `field` is not a toggleable flag.
        """
        if field not in TOGGLE_FIELDS:
            raise ValueError(f"{field!r} cannot be toggled")

        person = self.find(collection, name)
        if person is None:
            logger.debug("Toggle of %s skipped: no %s named %r", field, collection, name)
            return ToggleResult.NOT_FOUND

        if field == SHIRT_PROVIDED and not self.can_toggle_shirt(collection, person):
            logger.debug("Shirt toggle refused for %r", name)
            return ToggleResult.REJECTED

        person[field] = not person.get(field, False)
        return ToggleResult.TOGGLED
