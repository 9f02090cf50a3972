"""PollingLoop: periodic asyncio task reading port status and battery current into the tracker and display."""

import asyncio
import logging
from contextlib import suppress
from typing import Any, Callable, Iterable

from .display import AuditLog, DisplayShell
from .errors import InvocationError
from .invoker import DynamicInvoker
from .tracker import PortStateTracker
from .types import FailurePolicy, LoopState, MonitorConfig, Port, PORT_GET_ID, RequiredOperation

logger = logging.getLogger(__name__)


def ua_to_ma(raw: int) -> int:
    """Convert a microamp reading to milliamps, truncating toward zero."""
    ma = abs(raw) // 1000
    return -ma if raw < 0 else ma


def format_port_status(ports: Iterable[Port]) -> str:
    """One "<id>: enabled|disabled" line per port."""
    return "\n".join(f"{p.id}: {'enabled' if p.enabled else 'disabled'}" for p in ports)


class PollingLoop:
    """
    Every poll_interval_s: enumerate ports, query each port's disabled flag, update the
    tracker, push status text and battery current to the display.

    A failed invocation is logged and the loop moves on to the next tick. Any other
    exception is logged with its traceback; under FailurePolicy.STOP the loop then ends
    in LoopState.FAILED and never ticks again.
    """

    def __init__(
        self,
        surface: object,
        invoker: DynamicInvoker,
        tracker: PortStateTracker,
        display: DisplayShell,
        log: AuditLog,
        battery: Callable[[], int] | None = None,
        config: MonitorConfig | None = None,
    ) -> None:
        self._surface = surface
        self._invoker = invoker
        self._tracker = tracker
        self._display = display
        self._log = log
        self._battery = battery
        self._config = config or MonitorConfig()
        self._state = LoopState.IDLE
        self._task: asyncio.Task[None] | None = None
        self._pending: "asyncio.Future[Any] | None" = None
        self._last_status: str | None = None
        self._ticks = 0

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def ticks(self) -> int:
        """Number of ticks that completed without an exception."""
        return self._ticks

    @property
    def last_status(self) -> str | None:
        return self._last_status

    def read_ports(self) -> list[Port]:
        raw_ports = self._invoker.invoke(self._surface, RequiredOperation.GET_PORTS.value, returns=list)
        ports: list[Port] = []
        for raw in raw_ports:
            port_id = self._invoker.invoke(raw, PORT_GET_ID, returns=str)
            disabled = self._invoker.invoke(
                self._surface,
                RequiredOperation.IS_PORT_DISABLED.value,
                (object,),
                (raw,),
                returns=bool,
            )
            ports.append(Port(id=port_id, enabled=not disabled))
        return ports

    def apply_ports(self, ports: list[Port]) -> str:
        self._tracker.update_from((p.id, not p.enabled) for p in ports)
        status = format_port_status(ports)
        self._display.show_port_status(status)
        if status == self._last_status:
            self._log.debug(f"Port status unchanged since last poll: {status}")
        self._last_status = status
        return status

    def apply_battery(self, raw: int) -> str:
        text = str(ua_to_ma(raw))
        self._display.show_battery_current(text)
        return text

    def tick(self) -> None:
        """Run one poll cycle synchronously."""
        self.apply_ports(self.read_ports())
        if self._battery is not None:
            self.apply_battery(self._battery())
        self._ticks += 1

    async def _call_in_thread(self, func: Callable[[], Any], timeout: float) -> Any:
        """
        Run func in a worker thread, waiting at most timeout seconds.

        A timed-out call keeps its thread; it stays in _pending until the thread returns.
        """
        fut = asyncio.ensure_future(asyncio.to_thread(func))
        fut.add_done_callback(lambda f: f.cancelled() or f.exception())
        self._pending = fut
        return await asyncio.wait_for(asyncio.shield(fut), timeout)

    async def _tick_with_timeout(self, timeout: float) -> None:
        if self._pending is not None and not self._pending.done():
            self._log.debug("Previous read still running; skipping tick")
            return
        ports = await self._call_in_thread(self.read_ports, timeout)
        self.apply_ports(ports)
        if self._battery is not None:
            raw = await self._call_in_thread(self._battery, timeout)
            self.apply_battery(raw)
        self._ticks += 1

    async def run(self) -> None:
        """Tick until cancelled or, under FailurePolicy.STOP, until a tick raises unexpectedly."""
        self._state = LoopState.RUNNING
        timeout = self._config.call_timeout_s
        logger.debug("Polling every %.3fs", self._config.poll_interval_s)
        try:
            while True:
                try:
                    if timeout is None:
                        self.tick()
                    else:
                        await self._tick_with_timeout(timeout)
                except InvocationError as e:
                    self._log.exception("Port status read failed", e)
                except Exception as e:
                    self._log.exception("Polling tick failed", e)
                    if self._config.failure_policy == FailurePolicy.STOP:
                        self._state = LoopState.FAILED
                        self._log.debug("Polling stopped; port status will no longer update")
                        return
                await asyncio.sleep(self._config.poll_interval_s)
        except asyncio.CancelledError:
            self._state = LoopState.CANCELLED
            raise

    def start(self) -> "asyncio.Task[None]":
        """Schedule run() on the running event loop."""
        if self._task is not None:
            raise RuntimeError("Polling loop already started")
        self._task = asyncio.get_running_loop().create_task(self.run())
        return self._task

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        elif self._task is None:
            self._state = LoopState.CANCELLED

    async def stop(self) -> None:
        """Cancel the task and wait for it to finish."""
        self.cancel()
        if self._task is not None:
            with suppress(asyncio.CancelledError):
                await self._task
        if self._state != LoopState.FAILED:
            self._state = LoopState.CANCELLED
