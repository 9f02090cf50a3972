"""Backend: the platform objects a monitor runs against, loadable from a "module:attribute" path."""

import logging
from dataclasses import dataclass
from importlib import import_module
from typing import Any, Callable, Mapping, Protocol

from .errors import BackendLoadError

logger = logging.getLogger(__name__)

DEFAULT_BACKEND = "pydatasignal.simulator:create_backend"

EventCallback = Callable[[str, Mapping[str, Any]], None]


class EventSource(Protocol):
    """Delivers callback(action, extras) for every hardware event, from any thread."""

    def subscribe(self, callback: EventCallback) -> None: ...

    def unsubscribe(self, callback: EventCallback) -> None: ...


@dataclass
class Backend:
    """Control surface plus optional event source and battery telemetry (microamps)."""

    surface: object
    events: EventSource | None = None
    battery: Callable[[], int] | None = None


def load_backend(path: str) -> Backend:
    """
    Import module:attribute and return the Backend it names.
    A callable attribute is called with no arguments and must return a Backend.
    """
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise BackendLoadError(path, f"Backend path must look like 'module:attribute', got {path!r}")
    try:
        module = import_module(module_name)
    except ImportError as e:
        raise BackendLoadError(path, f"Cannot import {module_name!r}: {e}") from e
    try:
        obj = getattr(module, attr)
    except AttributeError:
        raise BackendLoadError(path, f"Module {module_name!r} has no attribute {attr!r}") from None
    if not isinstance(obj, Backend) and callable(obj):
        obj = obj()
    if not isinstance(obj, Backend):
        raise BackendLoadError(path, f"{path!r} did not produce a Backend (got {type(obj).__name__})")
    logger.debug("Loaded backend %s: surface %s", path, type(obj.surface).__name__)
    return obj
