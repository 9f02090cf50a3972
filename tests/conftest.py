"""Shared fakes: a control surface with a hidden port query, port status payloads, and a recording display."""

import pytest

from pydatasignal.display import AuditLog
from pydatasignal.invoker import DynamicInvoker
from pydatasignal.tracker import PortStateTracker


class FakePort:
    def __init__(self, port_id: str) -> None:
        self._port_id = port_id

    def _get_id(self) -> str:
        return self._port_id


class FakePortStatus:
    def __init__(self, code, text: str = "UsbPortStatus{fake}") -> None:
        self._code = code
        self._text = text

    def _get_usb_data_status(self):
        return self._code

    def __str__(self) -> str:
        return self._text


class FakeUsbManager:
    """is_port_disabled is only reachable as a non-public attribute."""

    def __init__(self, ports: dict[str, bool] | None = None, hal_version: int = 3) -> None:
        self.hal_version = hal_version
        self.enable_calls: list[bool] = []
        self.enable_result = True
        self.enable_error: Exception | None = None
        self.get_ports_error: Exception | None = None
        self._ports: list[FakePort] = []
        self._disabled: dict[str, bool] = {}
        self.set_ports(ports or {})

    def set_ports(self, ports: dict[str, bool]) -> None:
        """ports maps port id -> disabled."""
        self._ports = [FakePort(pid) for pid in ports]
        self._disabled = dict(ports)

    def get_usb_hal_version(self) -> int:
        return self.hal_version

    def get_ports(self) -> list[FakePort]:
        if self.get_ports_error is not None:
            raise self.get_ports_error
        return list(self._ports)

    def enable_usb_data_signal(self, enable: bool) -> bool:
        self.enable_calls.append(enable)
        if self.enable_error is not None:
            raise self.enable_error
        return self.enable_result

    def _is_port_disabled(self, port: FakePort) -> bool:
        return self._disabled[port._get_id()]


class RecordingDisplay:
    def __init__(self) -> None:
        self.port_status: list[str] = []
        self.battery_current: list[str] = []
        self.hal_version: list[str] = []
        self.confirmed = 0
        self.notifications: list[str] = []

    def show_port_status(self, text: str) -> None:
        self.port_status.append(text)

    def show_battery_current(self, text: str) -> None:
        self.battery_current.append(text)

    def show_hal_version(self, text: str) -> None:
        self.hal_version.append(text)

    def show_confirmed(self) -> None:
        self.confirmed += 1

    def notify(self, message: str) -> None:
        self.notifications.append(message)


def lines_containing(log: AuditLog, text: str) -> list[str]:
    return [line for line in log.lines if text in line]


@pytest.fixture
def surface() -> FakeUsbManager:
    return FakeUsbManager({"port0": False})


@pytest.fixture
def display() -> RecordingDisplay:
    return RecordingDisplay()


@pytest.fixture
def audit_log() -> AuditLog:
    return AuditLog()


@pytest.fixture
def invoker() -> DynamicInvoker:
    return DynamicInvoker()


@pytest.fixture
def tracker() -> PortStateTracker:
    return PortStateTracker()
