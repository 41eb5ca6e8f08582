import time
from datetime import datetime

# TODO: make the CSV column names configurable per event
NAME_FIELD = "Name"
SHIRT_NEEDED_FIELD = "Shirt Needed"
CHECKED_IN = "checkedIn"
SHIRT_PROVIDED = "shirtProvided"

PARTICIPANTS = "participants"
STAFF = "staff"
COLLECTIONS = (PARTICIPANTS, STAFF)
TOGGLE_FIELDS = (CHECKED_IN, SHIRT_PROVIDED)


def now_ms() -> int:
    """Current time in milliseconds since the epoch."""
    return int(time.time() * 1000)


def format_sync_time(timestamp_ms: int) -> str:
    """
    Formats a millisecond timestamp as local wall-clock time.

    Args:
        timestamp_ms (int): Milliseconds since the epoch.

    Returns:
        str: Time of day, e.g. "14:03:27".
    """
    return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%H:%M:%S")


def needs_shirt(collection: str, person: dict) -> bool:
    """
    Whether a person is owed a T-shirt.

    Every participant gets one; staff only when their "Shirt Needed" column is "Yes".

    Args:
        collection (str): "participants" or "staff".
        person (dict): Person record.

    Returns:
        bool: True if a shirt should be handed out.
    """
    if collection == PARTICIPANTS:
        return True
    return person.get(SHIRT_NEEDED_FIELD) == "Yes"


def name_matches(person: dict, query: str) -> bool:
    """Case-insensitive substring match on the person's name."""
    return query.lower() in str(person.get(NAME_FIELD, "")).lower()
