import functools
import logging

from rollcall.config import Config
from rollcall.ingest import bootstrap_snapshot
from rollcall.reconciler import Synchronizer
from rollcall.report import compute_metrics, dashboard_lines, export_report
from rollcall.store import RosterStore
from rollcall.transports import get_transport
from rollcall.transports.local_cache import LocalCache

logger = logging.getLogger(__name__)


def build_synchronizer(config: Config, transport_name: str | None = None) -> Synchronizer:
    """Wire a store, cache, transport and CSV bootstrap together.

    Args:
        config: Loaded configuration.
        transport_name: Registered transport to use instead of `config.transport`.

    Returns:
        Synchronizer: Ready to `load()`.

    Raises:
        ValueError: If the transport is unknown or missing required settings.
    """
    name = transport_name or config.transport
    cache = LocalCache.from_config(config)
    # the cache is always present; it only doubles as the primary when asked for
    transport = None if name == "local_cache" else get_transport(name).from_config(config)
    bootstrap = functools.partial(
        bootstrap_snapshot,
        config.participants_csv,
        config.staff_csv,
        coerce_numbers=config.coerce_numbers,
    )
    return Synchronizer(RosterStore(), cache, transport=transport, bootstrap=bootstrap)


def online_count(synchronizer: Synchronizer) -> int | None:
    """Live instance count when the transport tracks one."""
    counter = getattr(synchronizer.transport, "online_count", None)
    return counter() if callable(counter) else None


def print_dashboard(synchronizer: Synchronizer) -> None:
    store = synchronizer.store
    metrics = compute_metrics(store.participants, store.staff)
    print()
    for line in dashboard_lines(metrics, synchronizer.status, online_count(synchronizer)):
        print(f"  {line}")


def main(synchronizer: Synchronizer, config: Config, export: bool = False):
    """Load the roster, show the dashboard, and optionally export a report.

    Args:
        synchronizer: Synchronizer built by `build_synchronizer`.
        config: Loaded configuration.
        export: Whether to write the JSON report after loading.

    Returns:
        bool: Whether a roster is loaded.
    """
    missing = config.missing_paths()
    if missing:
        logger.warning("Roster CSV not found: %s", ", ".join(missing))

    is_loaded = synchronizer.load()
    print_dashboard(synchronizer)

    if export:
        store = synchronizer.store
        path = export_report(store.participants, store.staff, config.export_dir, config.name)
        print(f"\n  Roster report saved to {path}")

    return is_loaded
