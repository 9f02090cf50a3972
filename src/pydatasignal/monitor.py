"""Monitor: gate startup on the capability probe, then run polling, event correlation and control together."""

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from .backend import Backend, EventSource
from .control import ControlInterface
from .correlator import EventCorrelator, RaceFlag
from .display import AuditLog, DisplayShell, NullDisplay
from .errors import InvocationError, StartupCapabilityError
from .invoker import DynamicInvoker
from .poller import PollingLoop
from .probe import ProbeResult, probe
from .tracker import PortStateTracker
from .types import ConcurrencyMode, MonitorConfig, RequiredOperation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StartupResult:
    """Ready, or a StartupCapabilityError the shell must show as fatal."""

    probe: ProbeResult
    hal_version: int | None = None

    @property
    def ready(self) -> bool:
        return self.probe.ok

    @property
    def error(self) -> StartupCapabilityError | None:
        if self.probe.ok:
            return None
        return StartupCapabilityError(list(self.probe.missing), self.probe.describe())


class Monitor:
    """
    One control-surface session. start() must be called from inside a running event loop;
    stop() cancels the polling task and drops the event subscription.
    """

    def __init__(
        self,
        display: DisplayShell | None = None,
        log: AuditLog | None = None,
        config: MonitorConfig | None = None,
        events: EventSource | None = None,
        battery: Callable[[], int] | None = None,
        invoker: DynamicInvoker | None = None,
    ) -> None:
        self._config = config or MonitorConfig()
        self._display = display if display is not None else NullDisplay()
        self._log = log if log is not None else AuditLog()
        self._events = events
        self._battery = battery
        self._invoker = invoker or DynamicInvoker()
        self._tracker = PortStateTracker(locked=self._config.concurrency == ConcurrencyMode.THREADED)
        self._flag = RaceFlag()
        self._poller: PollingLoop | None = None
        self._correlator: EventCorrelator | None = None
        self._control: ControlInterface | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._loop_thread: int | None = None
        self._subscribed = False

    @classmethod
    def from_backend(cls, backend: Backend, **kwargs: Any) -> "Monitor":
        return cls(events=backend.events, battery=backend.battery, **kwargs)

    @property
    def config(self) -> MonitorConfig:
        return self._config

    @property
    def log(self) -> AuditLog:
        return self._log

    @property
    def tracker(self) -> PortStateTracker:
        return self._tracker

    @property
    def race_flag(self) -> RaceFlag:
        return self._flag

    @property
    def poller(self) -> PollingLoop | None:
        return self._poller

    @property
    def correlator(self) -> EventCorrelator | None:
        return self._correlator

    @property
    def started(self) -> bool:
        return self._poller is not None

    def start(self, surface: object) -> StartupResult:
        """
        Probe surface; if every required operation is present, show the HAL version,
        start polling and subscribe to events. Otherwise log the diagnostics and do nothing else.
        """
        if self._poller is not None:
            raise RuntimeError("Monitor already started")
        loop = asyncio.get_running_loop()

        result = probe(surface)
        if not result.ok:
            self._log.exception(result.describe())
            return StartupResult(probe=result)

        hal_version: int | None = None
        try:
            hal_version = self._invoker.invoke(surface, RequiredOperation.GET_HAL_VERSION.value, returns=int)
        except InvocationError as e:
            self._log.exception("Reading USB HAL version failed", e)
        else:
            self._display.show_hal_version(str(hal_version))

        self._loop = loop
        self._loop_thread = threading.get_ident()
        self._control = ControlInterface(surface, self._invoker, self._display, self._log)
        self._correlator = EventCorrelator(self._tracker, self._invoker, self._display, self._log, self._flag)
        self._poller = PollingLoop(
            surface,
            self._invoker,
            self._tracker,
            self._display,
            self._log,
            battery=self._battery,
            config=self._config,
        )
        self._poller.start()
        if self._events is not None:
            self._events.subscribe(self._deliver)
            self._subscribed = True
        logger.info("Monitor started (HAL version %s)", hal_version)
        return StartupResult(probe=result, hal_version=hal_version)

    def _deliver(self, action: str, extras: Mapping[str, Any]) -> None:
        correlator = self._correlator
        if correlator is None:
            return
        if self._config.concurrency == ConcurrencyMode.THREADED or threading.get_ident() == self._loop_thread:
            correlator.on_event(action, extras)
            return
        assert self._loop is not None
        try:
            self._loop.call_soon_threadsafe(correlator.on_event, action, extras)
        except RuntimeError:
            logger.warning("Event %s dropped: event loop is closed", action)

    def on_enable_pressed(self) -> None:
        if self._control is None:
            self._log.warning("Enable ignored: control surface not available")
            return
        self._control.enable()

    def on_disable_pressed(self) -> None:
        if self._control is None:
            self._log.warning("Disable ignored: control surface not available")
            return
        self._control.disable()

    async def stop(self) -> None:
        """Unsubscribe from events, cancel polling and refuse further commands. Safe to call more than once."""
        if self._subscribed and self._events is not None:
            self._events.unsubscribe(self._deliver)
            self._subscribed = False
        self._control = None
        self._correlator = None
        if self._poller is not None:
            await self._poller.stop()
