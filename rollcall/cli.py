import logging
from pathlib import Path

import click
import questionary
import yaml
from pydantic import ValidationError

from rollcall.app import build_synchronizer, main, print_dashboard
from rollcall.config import Config, read_config
from rollcall.reconciler import Synchronizer
from rollcall.report import compute_metrics, export_report, person_lines, search
from rollcall.store import ToggleResult
from rollcall.transports import get_transports
from rollcall.utils import (
    CHECKED_IN,
    NAME_FIELD,
    PARTICIPANTS,
    SHIRT_PROVIDED,
    STAFF,
    needs_shirt,
)

CHOICES = [
    "Show dashboard",
    "Check in / undo a participant",
    "Check in / undo a staff member",
    "Give / undo a participant shirt",
    "Give / undo a staff shirt",
    "Search by name",
    "Show missing people",
    "Refresh",
    "Export report",
    "Reset all data",
    "Quit",
]


def load_config(ctx, param, value: Path) -> Config:
    if value is None:
        return None
    try:
        return read_config(value)
    except (ValidationError, FileNotFoundError, ValueError) as e:
        raise click.BadParameter(f"Invalid config: {e}")
    except (OSError, yaml.YAMLError) as e:
        raise click.BadParameter(f"Failed to load config: {e}")


def _pick_person(synchronizer: Synchronizer, collection: str) -> str | None:
    names = [str(p.get(NAME_FIELD, "")) for p in synchronizer.store.collection(collection)]
    if not names:
        print("\n  Nobody on this roster.")
        return None
    label = "Participant" if collection == PARTICIPANTS else "Staff member"
    return questionary.autocomplete(
        f"\n{label}:", choices=names, qmark="", ignore_case=True
    ).ask()


def _toggle(synchronizer: Synchronizer, collection: str, field: str) -> None:
    name = _pick_person(synchronizer, collection)
    if not name:
        return

    result = synchronizer.toggle(collection, name, field)
    person = synchronizer.store.find(collection, name)
    print()
    if result is ToggleResult.NOT_FOUND:
        print(f"  No one named {name!r}.")
    elif result is ToggleResult.REJECTED:
        if not needs_shirt(collection, person):
            print(f"  {name} does not need a shirt.")
        else:
            print(f"  {name} must be checked in before a shirt is handed out.")
    else:
        for line in person_lines(collection, person):
            print(line)


def _show_search(synchronizer: Synchronizer) -> None:
    query = questionary.text("\nName contains:", qmark="").ask()
    if query is None:
        return
    store = synchronizer.store
    for label, collection, people in (
        ("Participants", PARTICIPANTS, store.participants),
        ("Staff", STAFF, store.staff),
    ):
        matches = search(people, query)
        print(f"\n  {label} ({len(matches)})")
        print(f"  {'-' * len(label)}")
        for person in matches:
            for line in person_lines(collection, person):
                print(line)


def _show_missing(synchronizer: Synchronizer) -> None:
    metrics = compute_metrics(synchronizer.store.participants, synchronizer.store.staff)
    for label, people in (
        ("Missing participants", metrics["notCheckedInParticipants"]),
        ("Missing staff", metrics["notCheckedInStaff"]),
    ):
        print(f"\n  {label}")
        print(f"  {'-' * len(label)}\n")
        if not people:
            print("    All checked in!")
        [print(f"    - {p.get(NAME_FIELD, '')}") for p in people]


def run_menu(synchronizer: Synchronizer, config: Config) -> None:
    """Interactive operator loop. Inbound snapshots are applied before each prompt."""
    while True:

        adopted = synchronizer.process_pending()
        if adopted:
            print(f"\n  Roster updated from another instance ({synchronizer.status}).")

        print(f"\n---")

        choice = questionary.select(
            "\nAction:",
            choices=CHOICES,
            qmark="",
            instruction=" ",
        ).ask()

        # a pending update may have arrived while the prompt was open
        synchronizer.process_pending()

        if choice == "Show dashboard" or choice == "Refresh":
            print_dashboard(synchronizer)

        if choice == "Check in / undo a participant":
            _toggle(synchronizer, PARTICIPANTS, CHECKED_IN)

        if choice == "Check in / undo a staff member":
            _toggle(synchronizer, STAFF, CHECKED_IN)

        if choice == "Give / undo a participant shirt":
            _toggle(synchronizer, PARTICIPANTS, SHIRT_PROVIDED)

        if choice == "Give / undo a staff shirt":
            _toggle(synchronizer, STAFF, SHIRT_PROVIDED)

        if choice == "Search by name":
            _show_search(synchronizer)

        if choice == "Show missing people":
            _show_missing(synchronizer)

        if choice == "Export report":
            store = synchronizer.store
            path = export_report(
                store.participants, store.staff, config.export_dir, config.name
            )
            print(f"\n  Roster report saved to {path}")

        if choice == "Reset all data":
            confirmed = questionary.confirm(
                "\nThis erases every check-in on every device. Continue?",
                default=False,
                qmark="",
            ).ask()
            if confirmed:
                synchronizer.reset()
                synchronizer.load()
                print("\n  All data reset.")
                print_dashboard(synchronizer)

        if choice == "Quit" or choice is None:
            print(f"\nProgram terminated.\n")
            return


@click.command(context_settings={"max_content_width": 120})
@click.option(
    "--config",
    type=click.Path(exists=True, dir_okay=False, readable=True, path_type=Path),
    callback=load_config,
    required=True,
    help="Path to event configuration file.",
)
@click.option(
    "--transport",
    type=click.Choice(list(get_transports().keys())),
    default=None,
    help="Transport to sync through (overrides the config file).",
)
@click.option(
    "--interactive/--no-interactive",
    default=True,
    help="Open the operator menu after loading.",
)
@click.option(
    "--export",
    "export",
    is_flag=True,
    default=False,
    help="Write a JSON roster report after loading.",
)
def cli(config: Config, transport: str | None, interactive: bool, export: bool):

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        synchronizer = build_synchronizer(config, transport)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--transport")

    print(f"\nEvent loaded: {config.name}")

    try:
        main(synchronizer, config, export=export)
        if interactive:
            run_menu(synchronizer, config)
    finally:
        synchronizer.dispose()


if __name__ == "__main__":
    cli()
