from __future__ import annotations

import asyncio

import pytest
from conftest import FakeSimulatorHost

from rn_ios_simulator_mcp.errors import ExternalCommandError, NotFoundError
from rn_ios_simulator_mcp.idb import IDBClient, resolve_key_code, scroll_endpoints


def _client(host: FakeSimulatorHost, attempts: int = 0) -> IDBClient:
    return IDBClient(host, retry_attempts=attempts, retry_delay=0)


def test_connect_retries_then_raises() -> None:
    host = FakeSimulatorHost()
    host.script(["idb", "connect"], stderr="connection refused", exit_code=1)

    with pytest.raises(ExternalCommandError) as exc_info:
        asyncio.run(_client(host, attempts=2).connect("UDID-1"))

    assert len(host.calls_to("idb", "connect", "UDID-1")) == 3
    assert str(exc_info.value) == "Failed to connect to target UDID-1: connection refused"
    assert exc_info.value.result.exit_code == 1


def test_disconnect_failure_is_not_raised() -> None:
    host = FakeSimulatorHost()
    host.script(["idb", "disconnect"], stderr="not connected", exit_code=1)

    asyncio.run(_client(host).disconnect("UDID-1"))


def test_list_targets_parses_json_lines() -> None:
    host = FakeSimulatorHost()
    host.script(
        ["idb", "list-targets"],
        stdout='{"udid": "A", "name": "iPhone 15"}\n\n{"udid": "B", "name": "iPad Air"}',
    )

    targets = asyncio.run(_client(host).list_targets())
    assert [t["udid"] for t in targets] == ["A", "B"]


def test_list_targets_rejects_garbage() -> None:
    host = FakeSimulatorHost()
    host.script(["idb", "list-targets"], stdout="not json")

    with pytest.raises(ExternalCommandError, match="Failed to parse idb targets"):
        asyncio.run(_client(host).list_targets())


def test_gesture_argv() -> None:
    host = FakeSimulatorHost()
    client = _client(host)

    async def scenario():
        await client.long_press("U", 5, 6)
        await client.swipe("U", 1, 2, 3, 4)
        await client.press_button("U", "HOME", duration=0.5)
        await client.clear_text("U", max_characters=3)
        await client.set_location("U", 37.7749, -122.4194)
        await client.describe_point("U", 10.2, 20.7)

    asyncio.run(scenario())

    assert host.calls == [
        ["idb", "ui", "tap", "--udid", "U", "5", "6", "--duration", "2.0"],
        ["idb", "ui", "swipe", "--udid", "U", "1", "2", "3", "4"],
        ["idb", "ui", "button", "--udid", "U", "HOME", "--duration", "0.5"],
        ["idb", "ui", "key-sequence", "--udid", "U", "42", "42", "42"],
        ["idb", "set-location", "--udid", "U", "37.7749", "-122.4194"],
        ["idb", "ui", "describe-point", "--udid", "U", "10", "21"],
    ]


def test_resolve_key_code() -> None:
    assert resolve_key_code("Enter") == "40"
    assert resolve_key_code(42) == "42"
    assert resolve_key_code("7") == "7"
    with pytest.raises(NotFoundError):
        resolve_key_code("hyper")


@pytest.mark.parametrize(
    "direction,expected",
    [
        ("up", (100, 300, 100, 500)),
        ("down", (100, 300, 100, 100)),
        ("left", (100, 300, 300, 300)),
        ("right", (100, 300, -100, 300)),
    ],
)
def test_scroll_moves_finger_against_content(direction, expected) -> None:
    assert scroll_endpoints(100, 300, direction, 200) == expected


def test_recording_cannot_start_twice(tmp_path) -> None:
    host = FakeSimulatorHost()
    client = _client(host)

    async def scenario():
        await client.start_recording("U", tmp_path / "a.mp4")
        assert client.is_recording("U")
        await client.start_recording("U", tmp_path / "b.mp4")

    with pytest.raises(ExternalCommandError, match="already in progress"):
        asyncio.run(scenario())
    assert len(host.spawned) == 1


def test_recording_stops_itself_after_duration(tmp_path) -> None:
    host = FakeSimulatorHost()
    client = _client(host)

    async def scenario():
        await client.start_recording("U", tmp_path / "a.mp4", duration=0.01)
        await asyncio.sleep(0.1)

    asyncio.run(scenario())

    assert host.stopped == host.spawned
    assert not client.is_recording("U")
