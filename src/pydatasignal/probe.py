"""Capability probing: verify the control surface exposes every required operation before anything runs."""

import logging
from dataclasses import dataclass

from .errors import StartupCapabilityError
from .registry import canonical_name, list_operations, owner_names
from .types import RequiredOperation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProbeResult:
    """Missing required operations plus the public and declared listings found on the surface."""

    missing: tuple[str, ...]
    public_operations: tuple[str, ...]
    declared_operations: tuple[str, ...]

    @property
    def ok(self) -> bool:
        return not self.missing

    def describe(self) -> str:
        lines = []
        if self.missing:
            lines.append(f"Not all required found: Missing operations: {list(self.missing)}")
        else:
            lines.append("All required operations found")
        lines.append("Current API operations:")
        lines.extend(self.public_operations)
        lines.append("Current API declared operations:")
        lines.extend(self.declared_operations)
        return "\n".join(lines)

    def raise_for_missing(self) -> None:
        if self.missing:
            raise StartupCapabilityError(list(self.missing), self.describe())


def probe(surface: object) -> ProbeResult:
    """
    Check that every RequiredOperation is available on surface, hidden ones included.

    A required operation counts as present when a public attribute has its name or a
    non-public attribute (_name, _Owner__name) maps to it.
    """
    public, declared = list_operations(surface)
    owners = owner_names(surface)
    available = {canonical_name(attr, owners) for attr in declared}
    missing = tuple(op.value for op in RequiredOperation if op.value not in available)
    result = ProbeResult(
        missing=missing,
        public_operations=tuple(public),
        declared_operations=tuple(declared),
    )
    if missing:
        logger.warning("Control surface %s missing operations: %s", type(surface).__name__, list(missing))
    else:
        logger.debug("Control surface %s passed capability probe", type(surface).__name__)
    return result
