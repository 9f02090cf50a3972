"""pydatasignal: monitor and control a USB port's data signal through a partly hidden control surface."""

__version__ = "0.1.0"

from .backend import Backend, load_backend
from .control import ControlInterface
from .correlator import EventCorrelator, RaceFlag, parse_event
from .display import AuditLog, DisplayShell, LogSink, NullDisplay
from .errors import (
    BackendLoadError,
    InvocationError,
    MalformedEventPayload,
    OperationNotFoundError,
    PyDataSignalError,
    StartupCapabilityError,
)
from .invoker import DynamicInvoker
from .monitor import Monitor, StartupResult
from .poller import PollingLoop, format_port_status, ua_to_ma
from .probe import ProbeResult, probe
from .registry import OperationRegistry
from .tracker import PortStateTracker
from .types import (
    FORCE_DISABLED_SENTINEL,
    ConcurrencyMode,
    EventKind,
    FailurePolicy,
    HardwareEvent,
    LoopState,
    MonitorConfig,
    Port,
    RequiredOperation,
)

__all__ = [
    "__version__",
    "Backend",
    "load_backend",
    "ControlInterface",
    "EventCorrelator",
    "RaceFlag",
    "parse_event",
    "AuditLog",
    "DisplayShell",
    "LogSink",
    "NullDisplay",
    "BackendLoadError",
    "InvocationError",
    "MalformedEventPayload",
    "OperationNotFoundError",
    "PyDataSignalError",
    "StartupCapabilityError",
    "DynamicInvoker",
    "Monitor",
    "StartupResult",
    "PollingLoop",
    "format_port_status",
    "ua_to_ma",
    "ProbeResult",
    "probe",
    "OperationRegistry",
    "PortStateTracker",
    "FORCE_DISABLED_SENTINEL",
    "ConcurrencyMode",
    "EventKind",
    "FailurePolicy",
    "HardwareEvent",
    "LoopState",
    "MonitorConfig",
    "Port",
    "RequiredOperation",
]
