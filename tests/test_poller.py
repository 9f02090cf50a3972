"""Tests for the polling loop: tick contents, unchanged-status diagnostics, and failure policies."""

import asyncio
import threading
import time
from types import SimpleNamespace

import pytest

from conftest import FakeUsbManager, RecordingDisplay, lines_containing
from pydatasignal.display import AuditLog
from pydatasignal.invoker import DynamicInvoker
from pydatasignal.poller import PollingLoop, format_port_status, ua_to_ma
from pydatasignal.tracker import PortStateTracker
from pydatasignal.types import FailurePolicy, LoopState, MonitorConfig, Port

FAST = MonitorConfig(poll_interval_s=0.01)


def make_loop(surface, tracker, display, audit_log, battery=None, config=FAST) -> PollingLoop:
    return PollingLoop(surface, DynamicInvoker(), tracker, display, audit_log, battery=battery, config=config)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (1_234_000, 1234),
        (-1_234_000, -1234),
        (-1_500, -1),
        (999, 0),
        (0, 0),
    ],
)
def test_ua_to_ma(raw: int, expected: int) -> None:
    assert ua_to_ma(raw) == expected


def test_format_port_status() -> None:
    text = format_port_status([Port("p0", True), Port("p1", False)])
    assert text == "p0: enabled\np1: disabled"


def test_tick_updates_tracker_and_display(tracker, display, audit_log) -> None:
    surface = FakeUsbManager({"p0": False, "p1": True})
    loop = make_loop(surface, tracker, display, audit_log, battery=lambda: 1_234_000)
    loop.tick()
    assert dict(tracker.snapshot()) == {"p0": True, "p1": False}
    assert display.port_status == ["p0: enabled\np1: disabled"]
    assert display.battery_current == ["1234"]
    assert loop.ticks == 1


def test_tick_sequence_reflects_each_reading(tracker, display, audit_log) -> None:
    surface = FakeUsbManager()
    loop = make_loop(surface, tracker, display, audit_log)
    readings = [
        {"p0": False},
        {"p0": True},
        {"p0": True, "p1": False},
        {"p1": True},
    ]
    for reading in readings:
        surface.set_ports(reading)
        loop.tick()
        snap = tracker.snapshot()
        for port_id, disabled in reading.items():
            assert snap[port_id] is (not disabled)
    # p0 was not enumerated in the last tick and keeps its previous value
    assert dict(tracker.snapshot()) == {"p0": False, "p1": False}


def test_unchanged_status_is_logged(surface, tracker, display, audit_log) -> None:
    loop = make_loop(surface, tracker, display, audit_log)
    loop.tick()
    assert lines_containing(audit_log, "unchanged") == []
    loop.tick()
    assert len(lines_containing(audit_log, "Port status unchanged since last poll: port0: enabled")) == 1
    surface.set_ports({"port0": True})
    loop.tick()
    assert len(lines_containing(audit_log, "unchanged")) == 1
    assert loop.last_status == "port0: disabled"


def test_no_battery_reader_skips_battery(surface, tracker, display, audit_log) -> None:
    make_loop(surface, tracker, display, audit_log).tick()
    assert display.battery_current == []


async def _wait_for(predicate, timeout: float = 2.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.005)


@pytest.mark.asyncio
async def test_unexpected_exception_stops_polling(surface, tracker, display, audit_log) -> None:
    calls = {"n": 0}

    def battery() -> int:
        calls["n"] += 1
        if calls["n"] >= 2:
            try:
                raise OSError("fuel gauge i2c timeout")
            except OSError as e:
                raise RuntimeError("battery read failed") from e
        return 1_000_000

    loop = make_loop(surface, tracker, display, audit_log, battery=battery)
    loop.start()
    await _wait_for(lambda: loop.state == LoopState.FAILED)

    status_pushes = len(display.port_status)
    surface.set_ports({"port0": True, "port1": False})
    await asyncio.sleep(0.05)

    assert loop.ticks == 1
    assert dict(tracker.snapshot()) == {"port0": True}
    assert len(display.port_status) == status_pushes
    assert display.port_status[-1] == "port0: enabled"
    failure = lines_containing(audit_log, "EXCEPTION: Polling tick failed")
    assert len(failure) == 1
    assert "battery read failed" in failure[0]
    assert "fuel gauge i2c timeout" in failure[0]
    assert lines_containing(audit_log, "Polling stopped")
    await loop.stop()
    assert loop.state == LoopState.FAILED


@pytest.mark.asyncio
async def test_retry_policy_keeps_polling(surface, tracker, display, audit_log) -> None:
    calls = {"n": 0}

    def battery() -> int:
        calls["n"] += 1
        if calls["n"] == 1:
            raise RuntimeError("transient")
        return 2_000_000

    config = MonitorConfig(poll_interval_s=0.01, failure_policy=FailurePolicy.RETRY)
    loop = make_loop(surface, tracker, display, audit_log, battery=battery, config=config)
    loop.start()
    await _wait_for(lambda: loop.ticks >= 2)
    assert loop.state == LoopState.RUNNING
    assert len(lines_containing(audit_log, "Polling tick failed")) == 1
    assert display.battery_current[-1] == "2000"
    await loop.stop()
    assert loop.state == LoopState.CANCELLED


@pytest.mark.asyncio
async def test_invocation_error_skips_tick_but_keeps_running(surface, tracker, display, audit_log) -> None:
    surface.get_ports_error = OSError("port service unavailable")
    loop = make_loop(surface, tracker, display, audit_log)
    loop.start()
    await _wait_for(lambda: len(lines_containing(audit_log, "Port status read failed")) >= 2)
    assert loop.state == LoopState.RUNNING
    assert tracker.count() == 0

    surface.get_ports_error = None
    await _wait_for(lambda: tracker.count() == 1)
    assert loop.state == LoopState.RUNNING
    await loop.stop()


@pytest.mark.asyncio
async def test_call_timeout_fails_hung_read(tracker, display, audit_log) -> None:
    class HungManager(FakeUsbManager):
        def get_ports(self):
            time.sleep(0.3)
            return super().get_ports()

    config = MonitorConfig(poll_interval_s=0.01, call_timeout_s=0.05)
    loop = make_loop(HungManager({"p0": False}), tracker, display, audit_log, config=config)
    loop.start()
    await _wait_for(lambda: loop.state == LoopState.FAILED)
    assert tracker.count() == 0
    assert lines_containing(audit_log, "Polling tick failed")


@pytest.mark.asyncio
async def test_call_timeout_allows_fast_reads(surface, tracker, display, audit_log) -> None:
    config = MonitorConfig(poll_interval_s=0.01, call_timeout_s=1.0)
    loop = make_loop(surface, tracker, display, audit_log, battery=lambda: 5_000, config=config)
    loop.start()
    await _wait_for(lambda: loop.ticks >= 1)
    assert dict(tracker.snapshot()) == {"port0": True}
    assert display.battery_current[0] == "5"
    await loop.stop()


@pytest.mark.asyncio
async def test_call_timeout_does_not_stack_hung_reads(tracker, display, audit_log) -> None:
    release = threading.Event()
    calls = {"n": 0}

    class HungManager(FakeUsbManager):
        def get_ports(self):
            calls["n"] += 1
            if calls["n"] == 1:
                release.wait(2.0)
            return super().get_ports()

    config = MonitorConfig(poll_interval_s=0.01, failure_policy=FailurePolicy.RETRY, call_timeout_s=0.02)
    loop = make_loop(HungManager({"p0": False}), tracker, display, audit_log, config=config)
    loop.start()
    await _wait_for(lambda: len(lines_containing(audit_log, "Previous read still running")) >= 3)
    assert calls["n"] == 1
    assert len(lines_containing(audit_log, "Polling tick failed")) == 1

    release.set()
    await _wait_for(lambda: loop.ticks >= 1)
    assert dict(tracker.snapshot()) == {"p0": True}
    assert loop.state == LoopState.RUNNING
    await loop.stop()


def test_tick_with_instance_level_operations(tracker, display, audit_log) -> None:
    surface = SimpleNamespace(
        get_usb_hal_version=lambda: 20,
        enable_usb_data_signal=lambda enable: True,
        is_port_disabled=lambda port: False,
        get_ports=lambda: [SimpleNamespace(get_id=lambda: "p0")],
    )
    loop = make_loop(surface, tracker, display, audit_log)

    loop.tick()

    assert dict(tracker.snapshot()) == {"p0": True}
    assert display.port_status == ["p0: enabled"]
    assert lines_containing(audit_log, "EXCEPTION:") == []


@pytest.mark.asyncio
async def test_stop_cancels_task(surface, tracker, display, audit_log) -> None:
    loop = make_loop(surface, tracker, display, audit_log)
    task = loop.start()
    await _wait_for(lambda: loop.ticks >= 1)
    await loop.stop()
    assert task.done()
    assert loop.state == LoopState.CANCELLED
    ticks = loop.ticks
    await asyncio.sleep(0.03)
    assert loop.ticks == ticks


@pytest.mark.asyncio
async def test_start_twice_raises(surface, tracker, display, audit_log) -> None:
    loop = make_loop(surface, tracker, display, audit_log)
    loop.start()
    with pytest.raises(RuntimeError):
        loop.start()
    await loop.stop()


def test_cancel_before_start(surface, tracker, display, audit_log) -> None:
    loop = make_loop(surface, tracker, display, audit_log)
    assert loop.state == LoopState.IDLE
    loop.cancel()
    assert loop.state == LoopState.CANCELLED


def test_config_rejects_bad_values() -> None:
    with pytest.raises(ValueError):
        MonitorConfig(poll_interval_s=0)
    with pytest.raises(ValueError):
        MonitorConfig(call_timeout_s=-1)
