"""DynamicInvoker: call operations by name and signature on objects whose shape is only known at runtime."""

import logging
import operator
from collections.abc import Iterable
from typing import Any, Sequence

from .errors import InvocationError
from .registry import OperationRegistry

logger = logging.getLogger(__name__)


def _type_label(types: type | tuple[type, ...]) -> str:
    if isinstance(types, tuple):
        return " | ".join(t.__name__ for t in types)
    return types.__name__


def _shape_key(target: object) -> tuple[type, tuple[str, ...]]:
    """Type plus the callable attributes set on the instance itself, which dir() also reports."""
    try:
        attrs = vars(target)
    except TypeError:
        return type(target), ()
    return type(target), tuple(sorted(name for name, value in attrs.items() if callable(value)))


def _coerce(value: Any, returns: type | None, operation: str) -> Any:
    """Coerce an operation result to the expected type or raise InvocationError."""
    if returns is None or returns is object:
        return value
    if returns is bool:
        if isinstance(value, bool):
            return value
    elif returns is int:
        if not isinstance(value, bool):
            try:
                return operator.index(value)
            except TypeError:
                pass
    elif returns is str:
        if isinstance(value, str):
            return value
    elif returns is list:
        if isinstance(value, Iterable) and not isinstance(value, (str, bytes)):
            return list(value)
    elif isinstance(value, returns):
        return value
    raise InvocationError(
        f"Operation {operation!r} returned {type(value).__name__}, expected {returns.__name__}",
        operation=operation,
    )


class DynamicInvoker:
    """
    Resolve and call named operations, public or not, with argument and result type checks.
    One OperationRegistry is built per target shape (type plus instance-level callables)
    and reused for every later call on an object of that shape.
    """

    def __init__(self) -> None:
        self._registries: dict[tuple[type, tuple[str, ...]], OperationRegistry] = {}

    def registry_for(self, target: object) -> OperationRegistry:
        key = _shape_key(target)
        if key not in self._registries:
            self._registries[key] = OperationRegistry.from_object(target)
        return self._registries[key]

    def invoke(
        self,
        target: object,
        operation: str,
        arg_types: Sequence[type | tuple[type, ...]] = (),
        args: Sequence[Any] = (),
        returns: type | None = None,
    ) -> Any:
        """
        Call operation on target with args, checking each against arg_types, and coerce the result.

        Lookup failures, argument or result type mismatches and exceptions raised by the
        operation itself are all reported as InvocationError.
        """
        if len(arg_types) != len(args):
            raise InvocationError(
                f"Operation {operation!r}: {len(args)} argument(s) for {len(arg_types)} declared type(s)",
                operation=operation,
            )
        for i, (arg, expected) in enumerate(zip(args, arg_types)):
            if not isinstance(arg, expected):
                raise InvocationError(
                    f"Operation {operation!r} argument {i}: expected {_type_label(expected)}, "
                    f"got {type(arg).__name__}",
                    operation=operation,
                )
        func = self.registry_for(target).resolve(target, operation, arity=len(args))
        try:
            result = func(*args)
        except Exception as e:
            raise InvocationError(
                f"Operation {operation!r} failed: {e}",
                operation=operation,
                cause=e,
            ) from e
        return _coerce(result, returns, operation)
