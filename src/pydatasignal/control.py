"""ControlInterface: fire-and-log enable/disable of the USB data signal."""

import logging

from .display import AuditLog, DisplayShell
from .errors import InvocationError
from .invoker import DynamicInvoker
from .types import RequiredOperation

logger = logging.getLogger(__name__)


class ControlInterface:
    """Issues enable_usb_data_signal(True/False). Failures are logged, never raised."""

    def __init__(self, surface: object, invoker: DynamicInvoker, display: DisplayShell, log: AuditLog) -> None:
        self._surface = surface
        self._invoker = invoker
        self._display = display
        self._log = log

    def set_data_signal(self, enable: bool) -> bool | None:
        """Return the operation's result, or None if the invocation failed."""
        word = "on" if enable else "off"
        result: bool | None = None
        try:
            result = self._invoker.invoke(
                self._surface,
                RequiredOperation.ENABLE_DATA_SIGNAL.value,
                (bool,),
                (enable,),
                returns=bool,
            )
        except InvocationError as e:
            self._log.exception(f"Turning {word} USB data failed", e)
        else:
            logger.info("%s(%s) returned %s", RequiredOperation.ENABLE_DATA_SIGNAL.value, enable, result)
        self._log.debug(f"Attempt to turn {word} USB occurred")
        self._display.notify(f"Attempting to turn {word.upper()} USB data")
        return result

    def enable(self) -> bool | None:
        return self.set_data_signal(True)

    def disable(self) -> bool | None:
        return self.set_data_signal(False)
