from typing import Any

from pydantic import BaseModel, Field

from rollcall.utils import COLLECTIONS


class RosterSnapshot(BaseModel):
    """A complete, timestamped copy of the roster.

    This is the only unit moved by transports and written to the cache. There is
    no per-record versioning; the whole roster carries a single timestamp.
    """

    participants: list[dict[str, Any]] = Field(
        default_factory=list, description="Participant records in roster order."
    )
    staff: list[dict[str, Any]] = Field(
        default_factory=list, description="Staff records in roster order."
    )
    timestamp: int = Field(..., description="Milliseconds since the epoch.")

    def collection(self, name: str) -> list[dict[str, Any]]:
        """Return the named person collection."""
        if name not in COLLECTIONS:
            raise ValueError(f"Unknown collection: {name!r}")
        return getattr(self, name)
