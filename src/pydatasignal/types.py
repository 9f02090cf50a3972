"""Core data model: required operations, event kinds, Port, HardwareEvent, and MonitorConfig."""

from dataclasses import dataclass
from enum import Enum

FORCE_DISABLED_SENTINEL = 8
DATA_STATUS_ENABLED = 1

PORT_STATUS_EXTRA = "portStatus"
PORT_GET_ID = "get_id"
PORT_STATUS_GET_DATA_STATUS = "get_usb_data_status"


class RequiredOperation(str, Enum):
    """Operations the control surface must expose (some deliberately non-public)."""

    GET_HAL_VERSION = "get_usb_hal_version"
    ENABLE_DATA_SIGNAL = "enable_usb_data_signal"
    IS_PORT_DISABLED = "is_port_disabled"
    GET_PORTS = "get_ports"


class EventKind(str, Enum):
    """Platform event actions the correlator listens for."""

    PORT_CHANGED = "android.hardware.usb.action.USB_PORT_CHANGED"
    DEVICE_ATTACHED = "android.hardware.usb.action.USB_DEVICE_ATTACHED"
    ACCESSORY_ATTACHED = "android.hardware.usb.action.USB_ACCESSORY_ATTACHED"


class LoopState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    CANCELLED = "cancelled"
    FAILED = "failed"


class FailurePolicy(str, Enum):
    """What the polling loop does after an unexpected tick exception."""

    STOP = "stop"
    RETRY = "retry"


class ConcurrencyMode(str, Enum):
    """How event delivery is serialized against the polling loop."""

    COOPERATIVE = "cooperative"
    THREADED = "threaded"


@dataclass(frozen=True)
class Port:
    """One enumerated port and its observed data-signal state."""

    id: str
    enabled: bool


@dataclass(frozen=True)
class HardwareEvent:
    """Decoded platform event; status fields are only present for PORT_CHANGED."""

    kind: EventKind
    data_status_code: int | None = None
    raw_status_text: str | None = None

    def __post_init__(self) -> None:
        if self.kind != EventKind.PORT_CHANGED and self.data_status_code is not None:
            raise ValueError(f"data_status_code only applies to {EventKind.PORT_CHANGED.value}")


@dataclass(frozen=True)
class MonitorConfig:
    """Polling cadence, failure policy, concurrency model, and per-read timeout."""

    poll_interval_s: float = 1.0
    failure_policy: FailurePolicy = FailurePolicy.STOP
    concurrency: ConcurrencyMode = ConcurrencyMode.COOPERATIVE
    # A timed-out read is abandoned, not killed; no new read starts until it returns.
    call_timeout_s: float | None = None

    def __post_init__(self) -> None:
        if self.poll_interval_s <= 0:
            raise ValueError(f"poll_interval_s must be > 0, got {self.poll_interval_s}")
        if self.call_timeout_s is not None and self.call_timeout_s <= 0:
            raise ValueError(f"call_timeout_s must be > 0, got {self.call_timeout_s}")
