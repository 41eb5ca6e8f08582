import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from rollcall.utils import (
    CHECKED_IN,
    NAME_FIELD,
    PARTICIPANTS,
    SHIRT_NEEDED_FIELD,
    SHIRT_PROVIDED,
    STAFF,
    name_matches,
    needs_shirt,
)

logger = logging.getLogger(__name__)


def compute_metrics(participants: list[dict], staff: list[dict]) -> dict:
    """
    Dashboard figures for the current roster.

    Args:
        participants (list[dict]): Participant records.
        staff (list[dict]): Staff records.

    Returns:
        dict: Totals, checked-in counts, people still missing, and shirt counts.
    """
    staff_needing_shirt = [s for s in staff if needs_shirt(STAFF, s)]
    return {
        "totalParticipants": len(participants),
        "checkedInParticipants": sum(1 for p in participants if p.get(CHECKED_IN)),
        "totalStaff": len(staff),
        "checkedInStaff": sum(1 for s in staff if s.get(CHECKED_IN)),
        "notCheckedInParticipants": [p for p in participants if not p.get(CHECKED_IN)],
        "notCheckedInStaff": [s for s in staff if not s.get(CHECKED_IN)],
        "totalShirtsGiven": sum(1 for p in participants if p.get(SHIRT_PROVIDED))
        + sum(1 for s in staff_needing_shirt if s.get(SHIRT_PROVIDED)),
        "totalShirtsNeeded": len(participants) + len(staff_needing_shirt),
    }


def search(people: list[dict], query: str) -> list[dict]:
    """People whose name contains `query`, ignoring case. An empty query matches all."""
    return [p for p in people if name_matches(p, query)]


def summary(metrics: dict) -> dict:
    return {
        "totalParticipants": metrics["totalParticipants"],
        "checkedInParticipants": metrics["checkedInParticipants"],
        "totalStaff": metrics["totalStaff"],
        "checkedInStaff": metrics["checkedInStaff"],
        "shirtsDistributed": metrics["totalShirtsGiven"],
        "shirtsNeeded": metrics["totalShirtsNeeded"],
    }


def _progress_bar(done: int, total: int, width: int = 30) -> str:
    filled = round(width * done / total) if total else 0
    return "[" + "#" * filled + "-" * (width - filled) + "]"


def dashboard_lines(metrics: dict, status: str, online: int | None = None) -> list[str]:
    """
    Renders the check-in dashboard as text lines.

    Args:
        metrics (dict): Output of `compute_metrics`.
        status (str): Sync indicator text.
        online (int or None): Live instance count, when the transport reports one.

    Returns:
        list[str]: Lines ready to print.
    """
    header = f"Real-Time Check-In Status ({status}"
    header += f", {online} online)" if online is not None else ")"
    lines = [header, "-" * len(header), ""]

    if not metrics["totalParticipants"] and not metrics["totalStaff"]:
        lines.append("  No roster loaded.")
        return lines

    for label, done, total in (
        ("Participants", metrics["checkedInParticipants"], metrics["totalParticipants"]),
        ("Staff", metrics["checkedInStaff"], metrics["totalStaff"]),
        ("T-Shirts", metrics["totalShirtsGiven"], metrics["totalShirtsNeeded"]),
    ):
        lines.append(
            f"  {label.ljust(12)} {_progress_bar(done, total)} {str(done).rjust(3)} / {total}"
        )

    lines.append("")
    lines.append(
        f"  {len(metrics['notCheckedInParticipants'])} participants missing, "
        f"{len(metrics['notCheckedInStaff'])} staff missing"
    )
    return lines


def person_lines(collection: str, person: dict) -> list[str]:
    """Detail view of one person."""
    lines = [f"  {person.get(NAME_FIELD, '')}"]
    if collection == PARTICIPANTS:
        lines.append(f"    T-Shirt Size: {person.get('T-Shirt Size', '')}")
        lines.append(f"    Location:     {person.get('City/State', '')}")
    else:
        lines.append(f"    Shirt Needed: {person.get(SHIRT_NEEDED_FIELD, '')}")
        if needs_shirt(STAFF, person):
            lines.append(f"    Shirt Size:   {person.get('Shirt Size') or 'N/A'}")
            lines.append(f"    Shirt Type:   {person.get('Shirt Type') or 'N/A'}")
    if needs_shirt(collection, person):
        shirt = "Provided" if person.get(SHIRT_PROVIDED) else "Not Provided"
        lines.append(f"    T-Shirt:      {shirt}")
    status = "Checked In" if person.get(CHECKED_IN) else "Not Checked In"
    lines.append(f"    Status:       {status}")
    return lines


def export_report(
    participants: list[dict], staff: list[dict], export_dir, name: str
) -> Path:
    """
    Writes the full roster and its summary to `<export_dir>/<name>_report.json`.

    Args:
        participants (list[dict]): Participant records.
        staff (list[dict]): Staff records.
        export_dir: Directory to write into; created if missing.
        name (str): Event name used for the file name.

    Returns:
        Path: The written report.
    """
    report = {
        "participants": participants,
        "staff": staff,
        "summary": summary(compute_metrics(participants, staff)),
        "exportedAt": datetime.now(timezone.utc).isoformat(),
    }
    path = Path(export_dir) / f"{name}_report.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(report, indent=2), encoding="utf-8")
    logger.info("Exported roster report to %s", path)
    return path
