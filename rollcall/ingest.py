"""CSV ingestion and the bootstrap rule for a fresh roster."""

import csv
import io
import logging
from pathlib import Path

from rollcall.roster import RosterSnapshot
from rollcall.utils import CHECKED_IN, SHIRT_NEEDED_FIELD, SHIRT_PROVIDED, now_ms

logger = logging.getLogger(__name__)


class IngestError(Exception):
    """Raised when a roster CSV is missing, unreadable, or has no header row."""


def _coerce(value: str):
    """Convert integer- or float-looking cells to numbers, leave the rest alone."""
    stripped = value.strip()
    if not stripped:
        return value
    try:
        return int(stripped)
    except ValueError:
        pass
    try:
        return float(stripped)
    except ValueError:
        return value


def parse_csv(text: str, coerce_numbers: bool = False) -> list[dict]:
    """
    Parses CSV text with a header row into flat records.

    Rows whose cells are all blank are skipped. Cells beyond the header are dropped
    and missing trailing cells become empty strings.

    Args:
        text (str): Raw CSV content.
        coerce_numbers (bool): Convert numeric-looking cells to int or float.

    Returns:
        list[dict]: One mapping of header name to cell value per row.

    Raises:
        IngestError: If the text has no header row or is not valid CSV.
    """
    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff"), newline=""))
    try:
        if not reader.fieldnames:
            raise IngestError("CSV has no header row")

        records = []
        for row in reader:
            record = {}
            for field in reader.fieldnames:
                value = row.get(field)
                value = "" if value is None else value
                record[field] = _coerce(value) if coerce_numbers else value
            if all(str(v).strip() == "" for v in record.values()):
                continue
            records.append(record)
    except csv.Error as exc:
        raise IngestError(f"Malformed CSV: {exc}") from exc

    return records


def read_csv(path, coerce_numbers: bool = False) -> list[dict]:
    """
    Reads and parses a roster CSV file.

    Args:
        path: Path to the CSV file.
        coerce_numbers (bool): Convert numeric-looking cells to int or float.

    Returns:
        list[dict]: Parsed records.

    Raises:
        IngestError: If the file cannot be read or parsed.
    """
    try:
        text = Path(path).read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as exc:
        raise IngestError(f"Cannot read {path}: {exc}") from exc
    records = parse_csv(text, coerce_numbers=coerce_numbers)
    logger.debug("Read %d records from %s", len(records), path)
    return records


def tag_participants(records: list[dict]) -> list[dict]:
    """Add default check-in and shirt flags to participant records."""
    return [{**r, CHECKED_IN: False, SHIRT_PROVIDED: False} for r in records]


def tag_staff(records: list[dict]) -> list[dict]:
    """Add default check-in and shirt flags to staff records.

    Staff who need no shirt start with `shirtProvided` set so they never count
    as outstanding.
    """
    return [
        {**r, CHECKED_IN: False, SHIRT_PROVIDED: r.get(SHIRT_NEEDED_FIELD) == "No"}
        for r in records
    ]


def bootstrap_snapshot(
    participants_csv, staff_csv, coerce_numbers: bool = False
) -> RosterSnapshot:
    """
    Builds a fresh roster snapshot from the participant and staff CSV files.

    Running this any number of times against the same files yields the same
    collections; only the timestamp differs.

    Args:
        participants_csv: Path to the participant roster.
        staff_csv: Path to the staff roster.
        coerce_numbers (bool): Convert numeric-looking cells to int or float.

    Returns:
        RosterSnapshot: Untouched roster stamped with the current time.

    Raises:
        IngestError: If either file is missing or malformed.
    """
    participants = tag_participants(read_csv(participants_csv, coerce_numbers))
    staff = tag_staff(read_csv(staff_csv, coerce_numbers))
    logger.info(
        "Bootstrapped roster from CSV: %d participants, %d staff",
        len(participants),
        len(staff),
    )
    return RosterSnapshot(participants=participants, staff=staff, timestamp=now_ms())
