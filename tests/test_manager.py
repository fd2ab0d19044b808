from __future__ import annotations

import asyncio

import pytest
from conftest import RUNTIME_16, RUNTIME_17, FakeClock, FakeSimulatorHost

from rn_ios_simulator_mcp.errors import NotFoundError, OperationTimeoutError, PreconditionError
from rn_ios_simulator_mcp.idb import IDBClient
from rn_ios_simulator_mcp.manager import NO_SIMULATOR_MESSAGE, SimulatorManager, select_device
from rn_ios_simulator_mcp.sessions import SessionState
from rn_ios_simulator_mcp.simulator import SimctlClient, SimulatorDevice, SimulatorState


def _manager(host: FakeSimulatorHost, clock: FakeClock, **kwargs) -> SimulatorManager:
    kwargs.setdefault("auto_boot", False)
    return SimulatorManager(
        SimctlClient(host),
        IDBClient(host, retry_attempts=0, retry_delay=0),
        clock=clock,
        sleep=clock.sleep,
        **kwargs,
    )


def test_create_session_then_boot_converges() -> None:
    host = FakeSimulatorHost(converge_after=2)
    host.add_device("UDID-1", "iPhone 15 Pro")
    manager = _manager(host, FakeClock())

    async def scenario():
        session, report = await manager.create_session("iPhone 15 Pro")
        assert report is None
        assert session.udid == "UDID-1"
        assert session.state == SessionState.INACTIVE

        boot = await manager.boot(session.udid)
        return session, boot

    session, boot = asyncio.run(scenario())

    assert boot.state == SimulatorState.BOOTED
    assert boot.changed
    assert boot.warnings == []
    assert session.state == SessionState.ACTIVE
    assert host.devices["UDID-1"]["state"] == "Booted"


def test_boot_times_out_when_never_booted() -> None:
    host = FakeSimulatorHost(converge_after=None)
    host.add_device("UDID-1", "iPhone 15 Pro")
    clock = FakeClock()
    manager = _manager(host, clock, timeout=0.02, poll_interval=0.01)

    async def scenario():
        session, _ = await manager.create_session("iPhone 15 Pro")
        await manager.boot(session.udid)

    with pytest.raises(OperationTimeoutError) as exc_info:
        asyncio.run(scenario())

    error = exc_info.value
    assert isinstance(error, TimeoutError)
    assert error.udid == "UDID-1"
    assert error.expected_state == "Booted"
    assert str(error) == "Timeout waiting for simulator UDID-1 to reach state: Booted"
    assert clock.now == pytest.approx(0.02)


def test_boot_then_get_current_returns_booted_device() -> None:
    host = FakeSimulatorHost()
    host.add_device("UDID-1", "iPhone 15 Pro")
    manager = _manager(host, FakeClock())

    async def scenario():
        await manager.boot("UDID-1")
        return await manager.get_current()

    current = asyncio.run(scenario())
    assert current.udid == "UDID-1"


def test_boot_already_booted_is_a_no_op() -> None:
    host = FakeSimulatorHost()
    host.add_device("UDID-1", "iPhone 15 Pro", state="Booted")
    manager = _manager(host, FakeClock())

    report = asyncio.run(manager.boot("UDID-1"))

    assert not report.changed
    assert host.calls_to("xcrun", "simctl", "boot") == []


def test_boot_unknown_device() -> None:
    manager = _manager(FakeSimulatorHost(), FakeClock())

    with pytest.raises(NotFoundError, match="Simulator not found: NOPE"):
        asyncio.run(manager.boot("NOPE"))


def test_companion_failure_becomes_warning() -> None:
    host = FakeSimulatorHost()
    host.add_device("UDID-1", "iPhone 15 Pro")
    host.script(["idb", "connect"], stderr="companion unavailable", exit_code=1)
    manager = _manager(host, FakeClock())

    report = asyncio.run(manager.boot("UDID-1"))

    assert report.state == SimulatorState.BOOTED
    assert len(report.warnings) == 1
    assert "companion unavailable" in report.warnings[0]
    assert report.to_dict()["warnings"] == report.warnings


def test_boot_reconnects_companion_after_outside_shutdown() -> None:
    host = FakeSimulatorHost()
    host.add_device("UDID-1", "iPhone 15 Pro", state="Booted")
    manager = _manager(host, FakeClock())

    async def scenario():
        await manager.get_current()
        host.devices["UDID-1"]["state"] = "Shutdown"
        report = await manager.boot("UDID-1")
        current = await manager.get_current()
        return report, current

    report, current = asyncio.run(scenario())

    assert report.changed
    assert current.udid == "UDID-1"
    assert len(host.calls_to("idb", "connect", "UDID-1")) == 3


def test_headless_boot_passes_environment() -> None:
    from rn_ios_simulator_mcp.config import HeadlessSettings
    from rn_ios_simulator_mcp.headless import HeadlessManager

    host = FakeSimulatorHost()
    host.add_device("UDID-1", "iPhone 15 Pro")
    headless = HeadlessManager(HeadlessSettings(enabled=True, mode="cli-only"), host)
    manager = _manager(host, FakeClock(), headless=headless)

    asyncio.run(manager.boot("UDID-1"))

    index = host.calls.index(["xcrun", "simctl", "boot", "UDID-1"])
    assert host.envs[index] == {"SIMULATOR_HEADLESS": "1", "IOS_SIMULATOR_HEADLESS": "1"}


def test_terminate_session_shuts_down_and_removes() -> None:
    host = FakeSimulatorHost()
    host.add_device("UDID-1", "iPhone 15 Pro")
    manager = _manager(host, FakeClock(), auto_boot=True)

    async def scenario():
        session, report = await manager.create_session("iPhone 15 Pro")
        assert report.state == SimulatorState.BOOTED
        terminated = await manager.terminate_session(session.id)
        return session, terminated

    session, terminated = asyncio.run(scenario())

    assert terminated is session
    assert session.state == SessionState.TERMINATED
    assert host.devices["UDID-1"]["state"] == "Shutdown"
    assert manager.get_all_sessions() == []
    assert manager.get_session(session.id) is None
    assert host.calls_to("idb", "disconnect")


def test_terminate_unknown_session() -> None:
    manager = _manager(FakeSimulatorHost(), FakeClock())

    with pytest.raises(NotFoundError, match="Session not found: nope"):
        asyncio.run(manager.terminate_session("nope"))


def test_shutdown_already_shut_down() -> None:
    host = FakeSimulatorHost()
    host.add_device("UDID-1", "iPhone 15 Pro")
    manager = _manager(host, FakeClock())

    report = asyncio.run(manager.shutdown("UDID-1"))

    assert report.state == SimulatorState.SHUTDOWN
    assert not report.changed


def test_create_session_without_match() -> None:
    host = FakeSimulatorHost()
    host.add_device("UDID-1", "iPhone 15 Pro")
    manager = _manager(host, FakeClock())

    with pytest.raises(NotFoundError) as exc_info:
        asyncio.run(manager.create_session("Pixel 8", ios_version="17"))
    assert str(exc_info.value) == "No simulator found matching device type: Pixel 8 and iOS version: 17"
    assert manager.get_all_sessions() == []


def test_get_current_prefers_smallest_udid() -> None:
    host = FakeSimulatorHost()
    host.add_device("ZZZ", "iPhone 15", state="Booted")
    host.add_device("AAA", "iPad Air", state="Booted")
    host.add_device("MMM", "iPhone 15 Pro")
    manager = _manager(host, FakeClock())

    assert asyncio.run(manager.get_current()).udid == "AAA"
    assert [d.udid for d in asyncio.run(manager.list_booted())] == ["AAA", "ZZZ"]


def test_resolve_udid_without_booted_device() -> None:
    host = FakeSimulatorHost()
    host.add_device("UDID-1", "iPhone 15 Pro")
    manager = _manager(host, FakeClock())

    assert asyncio.run(manager.resolve_udid("EXPLICIT")) == "EXPLICIT"
    with pytest.raises(PreconditionError, match=NO_SIMULATOR_MESSAGE):
        asyncio.run(manager.resolve_udid())


def test_focus_is_skipped_in_headless_mode() -> None:
    from rn_ios_simulator_mcp.config import HeadlessSettings
    from rn_ios_simulator_mcp.headless import HeadlessManager

    host = FakeSimulatorHost()
    headless = HeadlessManager(HeadlessSettings(enabled=True), host)
    manager = _manager(host, FakeClock(), headless=headless)

    assert asyncio.run(manager.focus("UDID-1")) is False
    assert host.calls_to("osascript") == []


def test_select_device_prefers_newest_runtime_then_udid() -> None:
    devices = [
        SimulatorDevice("C", "iPhone 15 Pro", SimulatorState.SHUTDOWN, RUNTIME_16),
        SimulatorDevice("B", "iPhone 15 Pro", SimulatorState.SHUTDOWN, RUNTIME_17),
        SimulatorDevice("A", "iPhone 15 Pro Max", SimulatorState.SHUTDOWN, RUNTIME_17),
        SimulatorDevice("D", "iPad Air", SimulatorState.SHUTDOWN, RUNTIME_17),
    ]

    assert select_device(devices, "iPhone 15 Pro").udid == "A"
    assert select_device(devices, "iPhone 15 Pro", "16").udid == "C"
    assert select_device(devices, "Pixel") is None
