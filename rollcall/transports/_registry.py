import importlib
import pkgutil
from typing import Dict, Type

from rollcall import transports
from rollcall.transports._base import Transport

_registry: Dict[str, Type[Transport]] = {}
_discovered = False


def register(cls: Type[Transport]) -> Type[Transport]:
    """Make a Transport selectable by name from the config file and `--transport`.

    A transport is named after the module that defines it, so `polling.py`
    provides the `polling` transport.

    Args:
        cls: Transport subclass to register.

    Returns:
        Type[Transport]: The registered class.

    Raises:
        ValueError: If another class already claimed the same name.
    """
    name = cls.__module__.rpartition(".")[2]
    existing = _registry.get(name)
    if existing is not None and existing.__qualname__ != cls.__qualname__:
        raise ValueError(
            f"Transport name {name!r} is taken by {existing.__qualname__}"
        )
    _registry[name] = cls
    return cls


def _load_transport_modules() -> None:
    """Import every public module in the transports package once."""
    global _discovered
    if _discovered:
        return
    for module in pkgutil.iter_modules(transports.__path__):
        # _base, _registry and other private helpers hold no transports
        if module.name.startswith("_"):
            continue
        importlib.import_module(f"{transports.__name__}.{module.name}")
    _discovered = True


def get_transports() -> Dict[str, Type[Transport]]:
    _load_transport_modules()
    return dict(sorted(_registry.items()))


def get_transport(name: str) -> Type[Transport]:
    _load_transport_modules()
    if name not in _registry:
        known = ", ".join(sorted(_registry))
        raise ValueError(f"No transport named {name!r} (known: {known})")
    return _registry[name]
