"""In-process simulated platform: a USB manager with a hidden port query, an event source and battery telemetry."""

import logging
import threading
from typing import Any, Iterable, Mapping

from .backend import Backend, EventCallback
from .types import DATA_STATUS_ENABLED, FORCE_DISABLED_SENTINEL, PORT_STATUS_EXTRA, EventKind

logger = logging.getLogger(__name__)


class SimulatedPort:
    def __init__(self, port_id: str) -> None:
        self._port_id = port_id

    def _get_id(self) -> str:
        return self._port_id

    def __repr__(self) -> str:
        return f"UsbPort{{id={self._port_id}}}"


class SimulatedPortStatus:
    def __init__(self, port_id: str, data_status: int) -> None:
        self._port_id = port_id
        self._data_status = data_status

    def _get_usb_data_status(self) -> int:
        return self._data_status

    def __str__(self) -> str:
        return f"UsbPortStatus{{portId={self._port_id}, usbDataStatus={self._data_status}}}"


class SimulatedEventSource:
    """Thread-safe subscriber list; emit() calls every subscriber on the caller's thread."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._callbacks: list[EventCallback] = []

    def subscribe(self, callback: EventCallback) -> None:
        with self._lock:
            self._callbacks.append(callback)

    def unsubscribe(self, callback: EventCallback) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._callbacks)

    def emit(self, action: str, extras: Mapping[str, Any] | None = None) -> None:
        with self._lock:
            callbacks = list(self._callbacks)
        for callback in callbacks:
            callback(action, dict(extras or {}))


class SimulatedUsbManager:
    """
    Control surface whose port query is name-mangled (hidden from the public listing).
    Disabling data emits a port-changed event with the force-disabled status before any
    poll can observe it.
    """

    def __init__(
        self,
        port_ids: Iterable[str] = ("port0",),
        hal_version: int = 20,
        events: SimulatedEventSource | None = None,
    ) -> None:
        self._ports = [SimulatedPort(pid) for pid in port_ids]
        self._disabled = {p._get_id(): False for p in self._ports}
        self._hal_version = hal_version
        self._events = events

    def get_usb_hal_version(self) -> int:
        return self._hal_version

    def get_ports(self) -> list[SimulatedPort]:
        return list(self._ports)

    def enable_usb_data_signal(self, enable: bool) -> bool:
        for port in self._ports:
            self._disabled[port._get_id()] = not enable
        if self._events is not None:
            status = DATA_STATUS_ENABLED if enable else FORCE_DISABLED_SENTINEL
            for port in self._ports:
                self._events.emit(
                    EventKind.PORT_CHANGED.value,
                    {PORT_STATUS_EXTRA: SimulatedPortStatus(port._get_id(), status)},
                )
        logger.debug("Simulated data signal %s", "enabled" if enable else "disabled")
        return True

    def attach_device(self) -> None:
        if self._events is not None:
            self._events.emit(EventKind.DEVICE_ATTACHED.value)

    def __is_port_disabled(self, port: SimulatedPort) -> bool:
        return self._disabled[port._get_id()]


class SimulatedBattery:
    """Battery current telemetry in microamps (negative while discharging)."""

    def __init__(self, current_ua: int = -1_234_000) -> None:
        self.current_ua = current_ua

    def __call__(self) -> int:
        return self.current_ua


def create_backend(port_ids: Iterable[str] = ("port0",)) -> Backend:
    """Single-port simulated backend used by the CLI by default."""
    events = SimulatedEventSource()
    return Backend(
        surface=SimulatedUsbManager(port_ids, events=events),
        events=events,
        battery=SimulatedBattery(),
    )
