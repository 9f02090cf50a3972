"""OperationRegistry: introspect an object once, resolve operations by name including non-public ones."""

import inspect
import logging
from typing import Any, Callable

from .errors import InvocationError, OperationNotFoundError

logger = logging.getLogger(__name__)


def owner_names(target: object) -> set[str]:
    cls = target if isinstance(target, type) else type(target)
    return {klass.__name__.lstrip("_") for klass in cls.__mro__}


def canonical_name(attr: str, owners: set[str]) -> str:
    """
    Map an attribute name to the operation name it implements.

    _name and __name become name; a mangled _Owner__name becomes name when Owner is
    in the target's class hierarchy. Public names are returned unchanged.
    """
    if not attr.startswith("_"):
        return attr
    head, sep, rest = attr[1:].partition("__")
    if sep and rest and head in owners:
        return rest
    return attr.lstrip("_")


def list_operations(target: object) -> tuple[list[str], list[str]]:
    """
    Return (public, declared) callable attribute names on target and its class hierarchy.

    declared includes every callable, non-public ones too; dunder methods are skipped.
    Properties are not evaluated.
    """
    public: list[str] = []
    declared: list[str] = []
    for attr in dir(target):
        if attr.startswith("__") and attr.endswith("__"):
            continue
        try:
            member = inspect.getattr_static(target, attr)
        except AttributeError:
            continue
        if isinstance(member, (staticmethod, classmethod)):
            member = member.__func__
        if not callable(member):
            continue
        declared.append(attr)
        if not attr.startswith("_"):
            public.append(attr)
    return public, declared


class OperationRegistry:
    """
    Operation name -> attribute name for one target type, populated once from introspection.
    A public attribute wins over a non-public one with the same canonical name.
    """

    def __init__(self, target: object) -> None:
        self._type_name = type(target).__name__
        self._by_name: dict[str, str] = {}
        owners = owner_names(target)
        public, declared = list_operations(target)
        public_attrs = set(public)
        for attr in declared:
            name = canonical_name(attr, owners)
            if name in self._by_name and not self._by_name[name].startswith("_"):
                continue
            if attr in public_attrs or name not in self._by_name:
                self._by_name[name] = attr
        logger.debug("OperationRegistry for %s: %d operations", self._type_name, len(self._by_name))

    @classmethod
    def from_object(cls, target: object) -> "OperationRegistry":
        return cls(target)

    def names(self) -> set[str]:
        return set(self._by_name)

    def attribute_for(self, name: str) -> str | None:
        return self._by_name.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __len__(self) -> int:
        return len(self._by_name)

    def resolve(self, target: object, name: str, arity: int = 0) -> Callable[..., Any]:
        """
        Return the bound callable for name on target, checking it accepts arity positional args.

        Raises OperationNotFoundError if the name is unknown, InvocationError on a signature mismatch.
        """
        attr = self._by_name.get(name)
        if attr is None:
            raise OperationNotFoundError(name, target)
        try:
            func = getattr(target, attr)
        except AttributeError as e:
            raise OperationNotFoundError(name, target) from e
        try:
            sig = inspect.signature(func)
        except (TypeError, ValueError):
            return func  # builtins without introspectable signatures
        try:
            sig.bind(*([None] * arity))
        except TypeError as e:
            raise InvocationError(
                f"Operation {name!r} on {self._type_name} does not accept {arity} argument(s): {sig}",
                operation=name,
                cause=e,
            ) from e
        return func
