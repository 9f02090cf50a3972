#!/usr/bin/env python3
"""Example: run a monitor against the simulator, press disable, and report whether the race was confirmed."""

import asyncio

from pydatasignal import AuditLog, Monitor, MonitorConfig
from pydatasignal.simulator import create_backend


class PrintSink:
    def append(self, line: str) -> None:
        print(line)


async def main() -> None:
    backend = create_backend()
    monitor = Monitor.from_backend(backend, log=AuditLog(sink=PrintSink()), config=MonitorConfig(poll_interval_s=0.5))
    result = monitor.start(backend.surface)
    if not result.ready:
        print(result.error)
        return
    try:
        await asyncio.sleep(1.2)
        monitor.on_disable_pressed()
        await asyncio.sleep(1.2)
    finally:
        await monitor.stop()
    print(f"Race confirmed: {bool(monitor.race_flag)}")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nStopped.")
