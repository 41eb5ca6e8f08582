from pathlib import Path

import pytest

from rollcall.roster import RosterSnapshot
from rollcall.transports import Transport

TESTS_DIR = Path(__file__).resolve().parent


def person(name: str, checked_in: bool = False, shirt: bool = False, **fields) -> dict:
    return {"Name": name, **fields, "checkedIn": checked_in, "shirtProvided": shirt}


def snapshot(timestamp: int, participants=None, staff=None) -> RosterSnapshot:
    return RosterSnapshot(
        participants=participants or [], staff=staff or [], timestamp=timestamp
    )


class FakeRemote(Transport):
    """In-memory stand-in for a networked transport."""

    def __init__(self, stored: RosterSnapshot | None = None):
        self.stored = stored
        self.fail_reads = False
        self.fail_writes = False
        self.pushes: list[RosterSnapshot] = []
        self.callbacks = []
        self.cleared = False
        self.closed = False

    @classmethod
    def from_config(cls, config):
        return cls()

    def pull(self):
        if self.fail_reads:
            return None
        return self.stored

    def push(self, snapshot):
        if self.fail_writes:
            return False
        self.stored = snapshot
        self.pushes.append(snapshot)
        return True

    def clear(self):
        self.stored = None
        self.cleared = True
        return True

    def subscribe(self, callback):
        self.callbacks.append(callback)

        def unsubscribe():
            self.callbacks.remove(callback)

        return unsubscribe

    def emit(self, snapshot):
        for callback in list(self.callbacks):
            callback(snapshot)

    def close(self):
        self.closed = True


@pytest.fixture
def participants_csv() -> Path:
    return TESTS_DIR / "sample_participants.csv"


@pytest.fixture
def staff_csv() -> Path:
    return TESTS_DIR / "sample_staff.csv"


@pytest.fixture
def sample_config_path() -> Path:
    return TESTS_DIR / "sample_config.yaml"
