"""EventCorrelator: match port-changed events against the last poll to confirm the forced-disable race."""

import logging
import threading
from collections.abc import Mapping
from typing import Any

from .display import AuditLog, DisplayShell
from .errors import InvocationError, MalformedEventPayload
from .invoker import DynamicInvoker
from .tracker import PortStateTracker
from .types import (
    FORCE_DISABLED_SENTINEL,
    PORT_STATUS_EXTRA,
    PORT_STATUS_GET_DATA_STATUS,
    EventKind,
    HardwareEvent,
)

logger = logging.getLogger(__name__)


class RaceFlag:
    """Set-once flag: a forced disable was seen while the only port was observed enabled."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def set(self) -> None:
        self._event.set()

    def is_set(self) -> bool:
        return self._event.is_set()

    def __bool__(self) -> bool:
        return self._event.is_set()

    def __repr__(self) -> str:
        return f"RaceFlag({self.is_set()})"


def parse_event(action: str, extras: Mapping[str, Any] | None, invoker: DynamicInvoker) -> HardwareEvent | None:
    """
    Decode a raw (action, extras) platform event.

    Returns None for actions the correlator does not handle. For port-changed events the
    data status is read through the payload's accessor, which may be non-public; a missing
    payload or failing accessor raises MalformedEventPayload.
    """
    try:
        kind = EventKind(action)
    except ValueError:
        return None
    if kind != EventKind.PORT_CHANGED:
        return HardwareEvent(kind=kind)

    if extras is not None and not isinstance(extras, Mapping):
        raise MalformedEventPayload(action, f"extras is {type(extras).__name__}, not a mapping")
    payload = extras.get(PORT_STATUS_EXTRA) if extras is not None else None
    if payload is None:
        raise MalformedEventPayload(action, f"no {PORT_STATUS_EXTRA!r} extra")
    try:
        code = invoker.invoke(payload, PORT_STATUS_GET_DATA_STATUS, returns=int)
    except InvocationError as e:
        raise MalformedEventPayload(action, str(e), cause=e) from e
    try:
        text = str(payload)
    except Exception as e:
        raise MalformedEventPayload(action, f"status text unavailable: {e}", cause=e) from e
    return HardwareEvent(kind=kind, data_status_code=code, raw_status_text=text)


class EventCorrelator:
    """
    Handles hardware events delivered out-of-band from polling. The race flag is set when a
    port-changed event reports FORCE_DISABLED_SENTINEL while the tracker holds exactly one
    port and that port was last observed enabled.
    """

    def __init__(
        self,
        tracker: PortStateTracker,
        invoker: DynamicInvoker,
        display: DisplayShell,
        log: AuditLog,
        flag: RaceFlag | None = None,
    ) -> None:
        self._tracker = tracker
        self._invoker = invoker
        self._display = display
        self._log = log
        self._flag = flag if flag is not None else RaceFlag()

    @property
    def flag(self) -> RaceFlag:
        return self._flag

    def on_event(self, action: str, extras: Mapping[str, Any] | None = None) -> HardwareEvent | None:
        """Event source callback. Never raises."""
        try:
            event = parse_event(action, extras, self._invoker)
        except MalformedEventPayload as e:
            self._log.warning(f"Ignoring event: {e}")
            return None
        except Exception as e:
            self._log.exception(f"Parsing {action} failed", e)
            return None
        if event is None:
            logger.debug("Ignoring unhandled action %s", action)
            return None
        try:
            self.handle(event)
        except Exception as e:
            self._log.exception(f"Handling {action} failed", e)
        return event

    def handle(self, event: HardwareEvent) -> None:
        if event.kind == EventKind.PORT_CHANGED:
            table = self._tracker.snapshot()
            if (
                event.data_status_code == FORCE_DISABLED_SENTINEL
                and len(table) == 1
                and any(table.values())
            ):
                self._flag.set()
                self._display.show_confirmed()
                self._log.debug("USB port event with data force-disabled while port observed enabled. Confirmed behavior.")
            self._log.debug(event.raw_status_text or "")
        else:
            self._log.debug(f"{event.kind.value} event caught")
