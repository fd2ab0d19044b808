"""iOS Simulator device enumeration and control via xcrun simctl."""

from __future__ import annotations

import json
import logging
import re
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from .errors import ExternalCommandError
from .process import CommandResult, ProcessExecutor

logger = logging.getLogger(__name__)


class SimulatorState(str, Enum):
    """Simulator runtime state."""

    SHUTDOWN = "Shutdown"
    BOOTED = "Booted"
    BOOTING = "Booting"
    SHUTTING_DOWN = "Shutting Down"


@dataclass
class SimulatorDevice:
    """Represents an iOS Simulator device."""

    udid: str
    name: str
    state: SimulatorState
    runtime: str
    device_type: str | None = None
    is_available: bool = True

    @property
    def ios_version(self) -> str:
        """Extract iOS version from runtime string."""
        # Runtime looks like "com.apple.CoreSimulator.SimRuntime.iOS-17-4"
        match = re.search(r"iOS[.-](\d+)[.-](\d+)", self.runtime)
        if match:
            return f"{match.group(1)}.{match.group(2)}"
        return "Unknown"

    @property
    def version_key(self) -> tuple[int, ...]:
        """Numeric iOS version for ordering; unknown versions sort lowest."""
        if self.ios_version == "Unknown":
            return ()
        return tuple(int(part) for part in self.ios_version.split("."))

    @property
    def is_booted(self) -> bool:
        return self.state == SimulatorState.BOOTED

    def to_dict(self) -> dict[str, Any]:
        return {
            "udid": self.udid,
            "name": self.name,
            "state": self.state.value,
            "ios_version": self.ios_version,
            "runtime": self.runtime,
            "device_type": self.device_type,
            "is_available": self.is_available,
            "is_booted": self.is_booted,
        }


def parse_device_list(output: str) -> list[SimulatorDevice]:
    """Parse ``simctl list devices --json`` output, keeping iOS runtimes only.

    Raises:
        ExternalCommandError: if the output is not the expected JSON
    """
    try:
        data = json.loads(output)
    except json.JSONDecodeError as e:
        raise ExternalCommandError(f"Failed to parse simctl output: {e}") from e

    devices: list[SimulatorDevice] = []
    for runtime, device_list in data.get("devices", {}).items():
        if "iOS" not in runtime or not isinstance(device_list, list):
            continue
        for device_data in device_list:
            state_str = device_data.get("state", "Shutdown")
            try:
                state = SimulatorState(state_str)
            except ValueError:
                state = SimulatorState.SHUTDOWN

            devices.append(
                SimulatorDevice(
                    udid=device_data["udid"],
                    name=device_data["name"],
                    state=state,
                    runtime=runtime,
                    device_type=device_data.get("deviceTypeIdentifier"),
                    is_available=device_data.get("isAvailable", True),
                )
            )
    return devices


class SimctlClient:
    """Thin async wrapper over ``xcrun simctl``."""

    def __init__(self, executor: ProcessExecutor, timeout: float = 30.0):
        self.executor = executor
        self.timeout = timeout

    async def _run_simctl(
        self,
        *args: str,
        timeout: float | None = None,
        check: bool = True,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        """Run xcrun simctl command."""
        result = await self.executor.run(
            ["xcrun", "simctl", *args], timeout or self.timeout, env=env
        )
        if check and not result.success:
            raise ExternalCommandError(
                f"simctl {args[0]} failed: {result.error_message}", result
            )
        return result

    async def list_devices(self) -> list[SimulatorDevice]:
        """List available iOS simulators."""
        result = await self._run_simctl("list", "devices", "available", "--json", timeout=10.0)
        devices = parse_device_list(result.stdout)
        logger.debug(f"Found {len(devices)} simulators")
        return devices

    async def get_device(self, udid: str) -> SimulatorDevice | None:
        """Get a specific device by UDID."""
        for device in await self.list_devices():
            if device.udid == udid:
                return device
        return None

    async def boot(self, udid: str, env: Mapping[str, str] | None = None) -> None:
        """Issue the boot command; the device converges to Booted afterwards."""
        await self._run_simctl("boot", udid, env=env)

    async def shutdown(self, udid: str) -> None:
        await self._run_simctl("shutdown", udid)

    async def screenshot(self, udid: str, output_path: str | Path) -> Path:
        """Take a screenshot using simctl.

        Args:
            udid: Simulator UDID
            output_path: Where to save the screenshot

        Returns:
            Path to the saved screenshot
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        result = await self._run_simctl("io", udid, "screenshot", str(output_path), check=False)
        # simctl prints "Detected file type 'PNG' from extension" on stderr on success
        if not result.success or "error" in result.stderr.lower():
            raise ExternalCommandError(
                f"Failed to take screenshot on {udid}: {result.error_message}. "
                "Make sure the simulator is booted and accessible.",
                result,
            )
        return output_path

    async def push_notification(
        self,
        udid: str,
        bundle_id: str,
        payload: dict[str, Any],
    ) -> None:
        """Send a push notification to an app.

        Args:
            udid: Simulator UDID
            bundle_id: App bundle ID
            payload: APNs payload dict
        """
        with tempfile.NamedTemporaryFile(mode="w", suffix=".json", delete=False) as f:
            json.dump(payload, f)
            payload_path = f.name

        try:
            await self._run_simctl("push", udid, bundle_id, payload_path, timeout=10.0)
        finally:
            Path(payload_path).unlink(missing_ok=True)

