#!/usr/bin/env python3
"""Example: probe a control surface, read port status once, then toggle the data signal off and on."""

import sys

from pydatasignal import AuditLog, ControlInterface, DynamicInvoker, NullDisplay, PollingLoop, PortStateTracker, probe
from pydatasignal.errors import InvocationError, StartupCapabilityError
from pydatasignal.simulator import create_backend


def main() -> None:
    backend = create_backend()  # swap for your platform backend
    log = AuditLog()
    invoker = DynamicInvoker()
    tracker = PortStateTracker()

    try:
        probe(backend.surface).raise_for_missing()
        poller = PollingLoop(backend.surface, invoker, tracker, NullDisplay(), log, battery=backend.battery)
        poller.tick()
        print(poller.last_status)

        control = ControlInterface(backend.surface, invoker, NullDisplay(), log)
        control.disable()
        control.enable()
    except StartupCapabilityError as e:
        print(e.diagnostics, file=sys.stderr)
        sys.exit(1)
    except InvocationError as e:
        print(f"Control surface error: {e}", file=sys.stderr)
        sys.exit(1)

    print(log.text())


if __name__ == "__main__":
    main()
