from __future__ import annotations

import itertools
import json
from collections.abc import Sequence

import pytest
from PIL import Image

from rn_ios_simulator_mcp.config import IDBSettings, ServerConfig, SimulatorSettings
from rn_ios_simulator_mcp.process import CommandResult, ProcessExecutor
from rn_ios_simulator_mcp.server import SimulatorMCPServer

RUNTIME_17 = "com.apple.CoreSimulator.SimRuntime.iOS-17-4"
RUNTIME_16 = "com.apple.CoreSimulator.SimRuntime.iOS-16-2"


class FakeClock:
    """Monotonic clock whose ``sleep`` advances time instantly."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeProcess:
    _pids = itertools.count(4000)

    def __init__(self, args: list[str]):
        self.args = args
        self.pid = next(self._pids)
        self.returncode: int | None = None


class FakeSimulatorHost(ProcessExecutor):
    """Executor that answers simctl, idb and osascript calls from memory.

    ``simctl boot``/``shutdown`` move a device to its target state after
    ``converge_after`` further device listings; ``None`` never converges.
    """

    def __init__(self, converge_after: int | None = 1):
        super().__init__()
        self.devices: dict[str, dict[str, str]] = {}
        self.converge_after = converge_after
        self.calls: list[list[str]] = []
        self.envs: list[dict[str, str] | None] = []
        self.spawned: list[FakeProcess] = []
        self.stopped: list[FakeProcess] = []
        self._pending: dict[str, list] = {}
        self._scripted: list[tuple[tuple[str, ...], CommandResult]] = []

    def add_device(self, udid: str, name: str, state: str = "Shutdown", runtime: str = RUNTIME_17) -> None:
        self.devices[udid] = {"udid": udid, "name": name, "state": state, "runtime": runtime}

    def script(self, prefix: Sequence[str], stdout: str = "", stderr: str = "", exit_code: int = 0) -> None:
        """Answer commands starting with ``prefix``; later scripts win."""
        result = CommandResult(exit_code == 0, stdout, stderr, exit_code)
        self._scripted.insert(0, (tuple(prefix), result))

    def calls_to(self, *prefix: str) -> list[list[str]]:
        return [c for c in self.calls if tuple(c[: len(prefix)]) == prefix]

    def _device_listing(self) -> str:
        for udid, pending in list(self._pending.items()):
            pending[1] -= 1
            if pending[1] <= 0:
                self.devices[udid]["state"] = pending[0]
                del self._pending[udid]

        by_runtime: dict[str, list[dict]] = {}
        for device in self.devices.values():
            by_runtime.setdefault(device["runtime"], []).append(
                {
                    "udid": device["udid"],
                    "name": device["name"],
                    "state": device["state"],
                    "isAvailable": True,
                }
            )
        return json.dumps({"devices": by_runtime})

    def _transition(self, udid: str, interim: str, target: str) -> CommandResult:
        if udid not in self.devices:
            return CommandResult(False, "", f"Invalid device: {udid}", 148)
        if self.converge_after is None:
            self.devices[udid]["state"] = interim
        elif self.converge_after <= 0:
            self.devices[udid]["state"] = target
        else:
            self.devices[udid]["state"] = interim
            self._pending[udid] = [target, self.converge_after]
        return CommandResult(True, "", "", 0)

    def _answer(self, cmd: list[str]) -> CommandResult:
        for prefix, result in self._scripted:
            if tuple(cmd[: len(prefix)]) == prefix:
                return CommandResult(result.success, result.stdout, result.stderr, result.exit_code, cmd)

        if cmd[:2] == ["xcrun", "simctl"]:
            action = cmd[2]
            if action == "list":
                return CommandResult(True, self._device_listing(), "", 0, cmd)
            if action == "boot":
                return self._transition(cmd[3], "Booting", "Booted")
            if action == "shutdown":
                return self._transition(cmd[3], "Shutting Down", "Shutdown")
            if action == "io" and cmd[4] == "screenshot":
                Image.new("RGBA", (400, 800), (20, 120, 220, 255)).save(cmd[5], "PNG")
        return CommandResult(True, "", "", 0, cmd)

    async def run(self, args, timeout=None, *, env=None, cwd=None) -> CommandResult:
        cmd = list(args)
        self.calls.append(cmd)
        self.envs.append(dict(env) if env else None)
        return self._answer(cmd)

    async def run_streaming(
        self, args, timeout=None, *, on_stdout=None, on_stderr=None, env=None, cwd=None
    ) -> CommandResult:
        result = await self.run(args, timeout, env=env, cwd=cwd)
        for line in result.stdout.splitlines():
            if on_stdout:
                on_stdout(line)
        for line in result.stderr.splitlines():
            if on_stderr:
                on_stderr(line)
        return result

    async def spawn(self, args, *, env=None, cwd=None) -> FakeProcess:
        cmd = list(args)
        self.calls.append(cmd)
        self.envs.append(dict(env) if env else None)
        proc = FakeProcess(cmd)
        self.spawned.append(proc)
        return proc

    async def stop(self, proc, timeout: float = 30.0) -> int | None:
        proc.returncode = 0
        self.stopped.append(proc)
        return 0


def make_config(**overrides) -> ServerConfig:
    config = ServerConfig(
        simulator=SimulatorSettings(timeout=5.0, poll_interval=1.0),
        idb=IDBSettings(retry_attempts=0, retry_delay=0.0),
    )
    return config.model_copy(update=overrides)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def host() -> FakeSimulatorHost:
    return FakeSimulatorHost()


@pytest.fixture
def make_server(host, clock):
    def factory(config: ServerConfig | None = None) -> SimulatorMCPServer:
        return SimulatorMCPServer(
            config or make_config(),
            executor=host,
            sleep=clock.sleep,
            clock=clock,
        )

    return factory
