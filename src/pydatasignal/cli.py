#!/usr/bin/env python3
"""Command-line shell for pydatasignal using Typer."""

import asyncio
import json
import logging
from typing import Optional

import typer
from typing_extensions import Annotated

from . import __version__  # type: ignore
from .backend import DEFAULT_BACKEND, Backend, load_backend
from .control import ControlInterface
from .display import AuditLog
from .errors import BackendLoadError, InvocationError
from .invoker import DynamicInvoker
from .monitor import Monitor
from .poller import PollingLoop
from .probe import ProbeResult, probe
from .tracker import PortStateTracker
from .types import ConcurrencyMode, FailurePolicy, MonitorConfig, RequiredOperation

app = typer.Typer(
    name="pydatasignal",
    help="Monitor and toggle a USB port's data signal and confirm forced-disable races.",
    no_args_is_help=True,
)

logger = logging.getLogger(__name__)

# ============================================================================
# Shared options and helpers
# ============================================================================

BackendOption = Annotated[
    str,
    typer.Option("--backend", "-b", help="Backend as module:attribute", envvar="PYDATASIGNAL_BACKEND"),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Enable debug logging"),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", help="Output as JSON"),
]
IntervalOption = Annotated[
    float,
    typer.Option("--interval", "-i", help="Polling interval in seconds", envvar="PYDATASIGNAL_INTERVAL"),
]
RetryOption = Annotated[
    bool,
    typer.Option(
        "--retry-on-failure",
        help="Keep polling after an unexpected tick failure instead of stopping",
        envvar="PYDATASIGNAL_RETRY",
    ),
]
ThreadedOption = Annotated[
    bool,
    typer.Option(
        "--threaded",
        help="Handle events on the delivering thread with a locked port table",
        envvar="PYDATASIGNAL_THREADED",
    ),
]
CallTimeoutOption = Annotated[
    Optional[float],
    typer.Option("--call-timeout", help="Timeout in seconds for each poll read", envvar="PYDATASIGNAL_CALL_TIMEOUT"),
]


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbose flag."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s" if not verbose else "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def create_backend(path: str) -> Backend:
    """Load the backend or exit with a usage error."""
    try:
        return load_backend(path)
    except BackendLoadError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(2)


def require_capabilities(surface: object) -> ProbeResult:
    """Probe the surface and exit with code 3 if anything required is missing."""
    result = probe(surface)
    if not result.ok:
        typer.echo(f"Error: {result.describe()}", err=True)
        raise typer.Exit(3)
    return result


class ConsoleShell:
    """DisplayShell and LogSink that echo to the terminal; fields are kept for later reads."""

    def __init__(self, echo_fields: bool = True, echo_log: bool = True) -> None:
        self.port_status: str | None = None
        self.battery_current: str | None = None
        self.hal_version: str | None = None
        self.confirmed = False
        self._echo_fields = echo_fields
        self._echo_log = echo_log

    def _field(self, label: str, old: str | None, new: str) -> None:
        if self._echo_fields and new != old:
            typer.echo(f"{label}: {new}")

    def show_port_status(self, text: str) -> None:
        self._field("Port status", self.port_status, text)
        self.port_status = text

    def show_battery_current(self, text: str) -> None:
        self._field("Battery current (mA)", self.battery_current, text)
        self.battery_current = text

    def show_hal_version(self, text: str) -> None:
        self._field("USB HAL version", self.hal_version, text)
        self.hal_version = text

    def show_confirmed(self) -> None:
        self.confirmed = True
        if self._echo_fields:
            typer.secho("RACE CONFIRMED", fg=typer.colors.GREEN, bold=True)

    def notify(self, message: str) -> None:
        if self._echo_fields:
            typer.echo(message)

    def append(self, line: str) -> None:
        if self._echo_log:
            typer.echo(line, err=True)


def build_config(interval: float, retry: bool, threaded: bool, call_timeout: float | None) -> MonitorConfig:
    try:
        return MonitorConfig(
            poll_interval_s=interval,
            failure_policy=FailurePolicy.RETRY if retry else FailurePolicy.STOP,
            concurrency=ConcurrencyMode.THREADED if threaded else ConcurrencyMode.COOPERATIVE,
            call_timeout_s=call_timeout,
        )
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(2)


# ============================================================================
# Commands
# ============================================================================

@app.command(name="probe")
def probe_command(
    backend: BackendOption = DEFAULT_BACKEND,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """
    Check the control surface for every required operation, hidden ones included.

    Lists the public and declared operations found. Exits with code 3 if any are missing.
    """
    setup_logging(verbose)
    loaded = create_backend(backend)
    result = probe(loaded.surface)

    if json_output:
        typer.echo(
            json.dumps(
                {
                    "ok": result.ok,
                    "missing": list(result.missing),
                    "operations": list(result.public_operations),
                    "declared_operations": list(result.declared_operations),
                },
                indent=2,
            )
        )
    else:
        typer.echo(result.describe())
    if not result.ok:
        raise typer.Exit(3)


@app.command()
def status(
    backend: BackendOption = DEFAULT_BACKEND,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """
    Read the HAL version, every port's data state and the battery current once.
    """
    setup_logging(verbose)
    loaded = create_backend(backend)
    require_capabilities(loaded.surface)

    invoker = DynamicInvoker()
    shell = ConsoleShell(echo_fields=False, echo_log=verbose)
    tracker = PortStateTracker()
    poller = PollingLoop(loaded.surface, invoker, tracker, shell, AuditLog(sink=shell), battery=loaded.battery)
    try:
        hal_version = invoker.invoke(loaded.surface, RequiredOperation.GET_HAL_VERSION.value, returns=int)
        poller.tick()
    except InvocationError as e:
        typer.echo(f"Error: Control surface error: {e}", err=True)
        raise typer.Exit(3)
    except Exception as e:
        typer.echo(f"Error: Unexpected error: {e}", err=True)
        if verbose:
            import traceback
            traceback.print_exc()
        raise typer.Exit(4)

    if json_output:
        typer.echo(
            json.dumps(
                {
                    "hal_version": hal_version,
                    "ports": dict(tracker.snapshot()),
                    "battery_ma": int(shell.battery_current) if shell.battery_current is not None else None,
                },
                indent=2,
            )
        )
    else:
        typer.echo(f"USB HAL version: {hal_version}")
        typer.echo(shell.port_status or "(no ports)")
        if shell.battery_current is not None:
            typer.echo(f"Battery current (mA): {shell.battery_current}")


def _set_data_signal(backend: str, verbose: bool, enable: bool) -> None:
    setup_logging(verbose)
    loaded = create_backend(backend)
    require_capabilities(loaded.surface)

    shell = ConsoleShell()
    control = ControlInterface(loaded.surface, DynamicInvoker(), shell, AuditLog(sink=shell))
    result = control.set_data_signal(enable)
    if result is None:
        raise typer.Exit(3)
    typer.echo(f"OK: enable_usb_data_signal({str(enable).lower()}) returned {str(result).lower()}")


@app.command()
def enable(
    backend: BackendOption = DEFAULT_BACKEND,
    verbose: VerboseOption = False,
) -> None:
    """Turn the USB data signal on."""
    _set_data_signal(backend, verbose, True)


@app.command()
def disable(
    backend: BackendOption = DEFAULT_BACKEND,
    verbose: VerboseOption = False,
) -> None:
    """Turn the USB data signal off."""
    _set_data_signal(backend, verbose, False)


async def run_monitor(
    loaded: Backend,
    config: MonitorConfig,
    shell: ConsoleShell,
    duration: float | None,
    disable_after: float | None,
) -> Monitor:
    """Start a monitor, optionally press disable after a delay, run for duration (or forever), then stop."""
    monitor = Monitor.from_backend(loaded, display=shell, log=AuditLog(sink=shell), config=config)
    result = monitor.start(loaded.surface)
    if not result.ready:
        typer.echo(f"Error: {result.error}", err=True)
        raise typer.Exit(3)
    try:
        if disable_after is not None:
            await asyncio.sleep(disable_after)
            monitor.on_disable_pressed()
            remaining = None if duration is None else max(duration - disable_after, 0.0)
        else:
            remaining = duration
        if remaining is None:
            await asyncio.Event().wait()
        else:
            await asyncio.sleep(remaining)
    finally:
        await monitor.stop()
    return monitor


@app.command()
def monitor(
    backend: BackendOption = DEFAULT_BACKEND,
    verbose: VerboseOption = False,
    interval: IntervalOption = 1.0,
    retry: RetryOption = False,
    threaded: ThreadedOption = False,
    call_timeout: CallTimeoutOption = None,
    duration: Annotated[Optional[float], typer.Option("--duration", "-d", help="Stop after this many seconds")] = None,
    disable_after: Annotated[
        Optional[float],
        typer.Option("--disable-after", help="Press disable this many seconds after start"),
    ] = None,
) -> None:
    """
    Poll port status continuously and watch hardware events for the forced-disable race.

    Field updates go to stdout, the timestamped audit log to stderr.
    Press Ctrl+C to stop gracefully.
    """
    setup_logging(verbose)
    config = build_config(interval, retry, threaded, call_timeout)
    loaded = create_backend(backend)
    shell = ConsoleShell()

    try:
        finished = asyncio.run(run_monitor(loaded, config, shell, duration, disable_after))
    except KeyboardInterrupt:
        typer.echo("\nStopped by user", err=True)
        raise typer.Exit(0)
    typer.echo(f"Race confirmed: {'yes' if finished.race_flag else 'no'}")


@app.command()
def info(
    backend: BackendOption = DEFAULT_BACKEND,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """
    Show package version, backend and the operations the control surface must provide.
    """
    setup_logging(verbose)

    info_data = {
        "version": __version__,
        "backend": backend,
        "required_operations": [op.value for op in RequiredOperation],
    }

    if json_output:
        typer.echo(json.dumps(info_data, indent=2))
    else:
        typer.echo(f"pydatasignal version: {info_data['version']}")
        typer.echo(f"Backend: {info_data['backend']}")
        typer.echo(f"Required operations: {', '.join(info_data['required_operations'])}")


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        typer.echo(f"pydatasignal {__version__}")
        raise typer.Exit(0)


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option("--version", callback=version_callback, is_eager=True, help="Show version and exit"),
    ] = None,
) -> None:
    """pydatasignal - monitor and control a USB port's data signal."""
    pass


if __name__ == "__main__":
    app()
