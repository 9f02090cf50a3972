"""Shell contract (display fields, log sink) and AuditLog, the timestamped in-memory log."""

import logging
import traceback
from datetime import datetime, timezone
from typing import Protocol

logger = logging.getLogger(__name__)

LOG_DIVIDER = "-" * 25


class LogSink(Protocol):
    def append(self, line: str) -> None: ...


class DisplayShell(Protocol):
    """Write-only fields the core pushes to. The core never reads them back."""

    def show_port_status(self, text: str) -> None: ...

    def show_battery_current(self, text: str) -> None: ...

    def show_hal_version(self, text: str) -> None: ...

    def show_confirmed(self) -> None: ...

    def notify(self, message: str) -> None: ...


class NullDisplay:
    """DisplayShell that discards everything (headless use)."""

    def show_port_status(self, text: str) -> None:
        pass

    def show_battery_current(self, text: str) -> None:
        pass

    def show_hal_version(self, text: str) -> None:
        pass

    def show_confirmed(self) -> None:
        pass

    def notify(self, message: str) -> None:
        pass


def describe_exception(exc: BaseException) -> str:
    """Message followed by the full traceback, chained causes included."""
    return f"{exc} {''.join(traceback.format_exception(type(exc), exc, exc.__traceback__))}".rstrip()


class AuditLog:
    """
    Append-only audit trail. Each entry is "<timestamp> <TYPE>: msg", TYPE being DEBUG, WARNING or EXCEPTION.
    Entries are kept in memory, forwarded to an optional downstream sink, and mirrored to logging.
    """

    def __init__(self, sink: LogSink | None = None, clock=None) -> None:
        self._sink = sink
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lines: list[str] = []

    @property
    def lines(self) -> list[str]:
        return list(self._lines)

    def append(self, line: str) -> None:
        self._lines.append(line)
        if self._sink is not None:
            self._sink.append(line)

    def _write(self, log_type: str, message: str) -> None:
        self.append(f"{self._clock().isoformat()} {log_type}: {message}")

    def debug(self, message: str) -> None:
        logger.debug(message)
        self._write("DEBUG", message)

    def warning(self, message: str) -> None:
        logger.warning(message)
        self._write("WARNING", message)

    def exception(self, message: str, exc: BaseException | None = None) -> None:
        """Record a failure; with exc, append its message and traceback."""
        text = f"{message}: {describe_exception(exc)}" if exc is not None else message
        logger.error(text)
        self._write("EXCEPTION", text)

    def text(self) -> str:
        """All entries joined with the divider, the way the log pane shows them."""
        return f"\n{LOG_DIVIDER}\n".join(self._lines)

    def __len__(self) -> int:
        return len(self._lines)
