"""PortStateTracker: last-known enabled state per port id, written once per poll cycle."""

import logging
import threading
from contextlib import nullcontext
from types import MappingProxyType
from typing import ContextManager, Iterable, Mapping

logger = logging.getLogger(__name__)


class PortStateTracker:
    """
    Port id -> enabled. Last write wins; ids that stop being enumerated are kept.
    Pass locked=True when reads and writes can happen on different threads.
    """

    def __init__(self, locked: bool = False) -> None:
        self._table: dict[str, bool] = {}
        self._lock: ContextManager[object] = threading.Lock() if locked else nullcontext()

    def update_from(self, ports: Iterable[tuple[str, bool]]) -> None:
        """Store enabled = not disabled for each (port_id, disabled) pair."""
        updates = {port_id: not disabled for port_id, disabled in ports}
        with self._lock:
            self._table.update(updates)
        logger.debug("Port table updated: %s", updates)

    def snapshot(self) -> Mapping[str, bool]:
        """Read-only point-in-time copy of the table."""
        with self._lock:
            return MappingProxyType(dict(self._table))

    def count(self) -> int:
        with self._lock:
            return len(self._table)

    def any_enabled(self) -> bool:
        with self._lock:
            return any(self._table.values())

    def __len__(self) -> int:
        return self.count()
