"""Clear exceptions for pydatasignal: missing capabilities, failed invocations, bad events."""


class PyDataSignalError(Exception):
    """Base exception for pydatasignal."""

    pass


class StartupCapabilityError(PyDataSignalError):
    """Raised when the control surface lacks required operations. Fatal: nothing else may run."""

    def __init__(self, missing: list[str], diagnostics: str | None = None) -> None:
        self.missing = list(missing)
        self.diagnostics = diagnostics or ""
        self._msg = f"Not all required operations found: missing {self.missing}"
        super().__init__(self._msg)


class InvocationError(PyDataSignalError):
    """Raised when a dynamic call fails (lookup, type mismatch, or the operation itself raised)."""

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.operation = operation
        self.cause = cause
        super().__init__(message)


class OperationNotFoundError(InvocationError):
    """Raised when an operation name cannot be resolved on the target, public or not."""

    def __init__(self, operation: str, target: object) -> None:
        super().__init__(
            f"Operation {operation!r} not found on {type(target).__name__}",
            operation=operation,
        )


class MalformedEventPayload(PyDataSignalError):
    """Raised when a hardware event arrives without the fields correlation needs."""

    def __init__(self, action: str, message: str, *, cause: BaseException | None = None) -> None:
        self.action = action
        self.cause = cause
        super().__init__(f"Malformed {action} payload: {message}")


class BackendLoadError(PyDataSignalError):
    """Raised when a backend import path cannot be loaded."""

    def __init__(self, path: str, message: str | None = None) -> None:
        self.path = path
        self._msg = message or f"Cannot load backend: {path!r}"
        super().__init__(self._msg)
