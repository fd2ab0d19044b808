"""UI-automation companion (Facebook idb) client."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Literal

from .errors import ExternalCommandError, NotFoundError
from .process import CommandResult, ProcessExecutor

logger = logging.getLogger(__name__)

HardwareButton = Literal["APPLE_PAY", "HOME", "LOCK", "SIDE_BUTTON", "SIRI"]
ScrollDirection = Literal["up", "down", "left", "right"]

# USB HID usage IDs understood by `idb ui key`
KEY_CODES: dict[str, int] = {
    "enter": 40,
    "return": 40,
    "escape": 41,
    "backspace": 42,
    "delete": 42,
    "tab": 43,
    "space": 44,
    "right": 79,
    "left": 80,
    "down": 81,
    "up": 82,
}

SCROLL_DELTA = 5


def resolve_key_code(key: str | int) -> str:
    """Map a key name or numeric code to the HID code idb expects."""
    text = str(key).strip()
    if text.isdigit():
        return text
    code = KEY_CODES.get(text.lower())
    if code is None:
        raise NotFoundError(f"Unknown key: {key}. Use a HID key code or one of: {', '.join(KEY_CODES)}")
    return str(code)


def scroll_endpoints(
    x: float, y: float, direction: ScrollDirection, distance: float
) -> tuple[float, float, float, float]:
    """Swipe endpoints for a scroll; the finger moves opposite to the content."""
    x2, y2 = x, y
    if direction == "up":
        y2 = y + distance
    elif direction == "down":
        y2 = y - distance
    elif direction == "left":
        x2 = x + distance
    elif direction == "right":
        x2 = x - distance
    return x, y, x2, y2


def _coord(value: float) -> str:
    return str(round(value))


@dataclass
class Recording:
    """A video recording in progress."""

    udid: str
    output_path: Path
    process: asyncio.subprocess.Process
    started_at: datetime = field(default_factory=datetime.now)
    stop_task: asyncio.Task | None = None

    @property
    def pid(self) -> int:
        return self.process.pid


class IDBClient:
    """Drives the idb companion for one or more simulators.

    Connect is retried because the companion is often slow to accept the
    first connection after a boot. Everything else runs once.
    """

    def __init__(
        self,
        executor: ProcessExecutor,
        timeout: float = 30.0,
        retry_attempts: int = 3,
        retry_delay: float = 1.0,
    ):
        self.executor = executor
        self.timeout = timeout
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay
        self._recordings: dict[str, Recording] = {}

    async def _run(self, *args: str, timeout: float | None = None) -> CommandResult:
        return await self.executor.run(["idb", *args], timeout or self.timeout)

    async def _run_with_retry(self, *args: str) -> CommandResult:
        return await self.executor.run_with_retry(
            ["idb", *args],
            self.timeout,
            attempts=self.retry_attempts,
            delay=self.retry_delay,
        )

    @staticmethod
    def _check(result: CommandResult, action: str) -> CommandResult:
        if not result.success:
            raise ExternalCommandError(f"Failed to {action}: {result.error_message}", result)
        return result

    async def check_installation(self) -> bool:
        """Whether the idb CLI is on PATH and responds."""
        result = await self._run("--help", timeout=10.0)
        return result.success

    # === Targets ===

    async def list_targets(self) -> list[dict[str, Any]]:
        result = self._check(await self._run("list-targets", "--json"), "list idb targets")
        targets = []
        # idb prints one JSON object per line
        for line in result.stdout.splitlines():
            line = line.strip()
            if not line:
                continue
            try:
                targets.append(json.loads(line))
            except json.JSONDecodeError as e:
                raise ExternalCommandError(f"Failed to parse idb targets response: {e}", result) from e
        return targets

    async def connect(self, udid: str) -> None:
        result = await self._run_with_retry("connect", udid)
        self._check(result, f"connect to target {udid}")
        logger.debug(f"idb connected to {udid}")

    async def disconnect(self, udid: str) -> None:
        """Disconnect from a target; failures are only logged."""
        result = await self._run("disconnect", udid)
        if not result.success:
            logger.warning(f"Failed to disconnect from target {udid}: {result.error_message}")

    # === Apps ===

    async def install_app(self, udid: str, app_path: str) -> None:
        result = await self._run_with_retry("install", "--udid", udid, app_path)
        self._check(result, f"install app {app_path} on {udid}")

    async def launch_app(self, udid: str, bundle_id: str) -> None:
        result = await self._run_with_retry("launch", "--udid", udid, bundle_id)
        self._check(result, f"launch app {bundle_id} on {udid}")

    async def terminate_app(self, udid: str, bundle_id: str) -> None:
        result = await self._run("terminate", "--udid", udid, bundle_id)
        self._check(result, f"terminate app {bundle_id} on {udid}")

    # === Touch ===

    async def tap(self, udid: str, x: float, y: float, duration: float | None = None) -> None:
        args = ["ui", "tap", "--udid", udid, _coord(x), _coord(y)]
        if duration:
            args.extend(["--duration", str(duration)])
        self._check(await self._run(*args), f"tap at {x}, {y} on {udid}")

    async def long_press(self, udid: str, x: float, y: float, duration: float = 2.0) -> None:
        await self.tap(udid, x, y, duration=duration)

    async def swipe(
        self,
        udid: str,
        x1: float,
        y1: float,
        x2: float,
        y2: float,
        duration: float | None = None,
        delta: float | None = None,
    ) -> None:
        args = ["ui", "swipe", "--udid", udid, _coord(x1), _coord(y1), _coord(x2), _coord(y2)]
        if duration is not None:
            args.extend(["--duration", str(duration)])
        if delta is not None:
            args.extend(["--delta", str(delta)])
        self._check(
            await self._run(*args), f"swipe from {x1}, {y1} to {x2}, {y2} on {udid}"
        )

    async def scroll(
        self,
        udid: str,
        x: float,
        y: float,
        direction: ScrollDirection,
        distance: float = 200,
        duration: float = 0.5,
    ) -> tuple[float, float, float, float]:
        endpoints = scroll_endpoints(x, y, direction, distance)
        await self.swipe(udid, *endpoints, duration=duration, delta=SCROLL_DELTA)
        return endpoints

    # === Keyboard and buttons ===

    async def input_text(self, udid: str, text: str) -> None:
        result = await self.executor.run_streaming(
            ["idb", "ui", "text", "--udid", udid, text], self.timeout
        )
        self._check(result, f"input text on {udid}")

    async def press_key(self, udid: str, key: str | int, duration: float | None = None) -> None:
        args = ["ui", "key", "--udid", udid, resolve_key_code(key)]
        if duration is not None:
            args.extend(["--duration", str(duration)])
        self._check(await self._run(*args), f'press key "{key}" on {udid}')

    async def press_key_sequence(self, udid: str, keys: list[str]) -> None:
        codes = [resolve_key_code(k) for k in keys]
        self._check(
            await self._run("ui", "key-sequence", "--udid", udid, *codes),
            f"press key sequence on {udid}",
        )

    async def clear_text(self, udid: str, max_characters: int = 50) -> None:
        """Delete backwards from the cursor of the focused field."""
        backspace = str(KEY_CODES["backspace"])
        self._check(
            await self._run("ui", "key-sequence", "--udid", udid, *[backspace] * max_characters),
            f"clear text on {udid}",
        )

    async def press_button(
        self, udid: str, button: HardwareButton, duration: float | None = None
    ) -> None:
        args = ["ui", "button", "--udid", udid, button]
        if duration is not None:
            args.extend(["--duration", str(duration)])
        self._check(await self._run(*args), f"press {button} on {udid}")

    # === Introspection ===

    async def describe_all(self, udid: str) -> str:
        result = await self._run("ui", "describe-all", "--udid", udid)
        return self._check(result, f"describe elements on {udid}").stdout

    async def describe_point(self, udid: str, x: float, y: float) -> str:
        result = await self._run("ui", "describe-point", "--udid", udid, _coord(x), _coord(y))
        return self._check(result, f"describe point {x}, {y} on {udid}").stdout

    # === Location ===

    async def set_location(self, udid: str, latitude: float, longitude: float) -> None:
        result = await self._run("set-location", "--udid", udid, str(latitude), str(longitude))
        self._check(result, f"set location on {udid}")

    # === Video ===

    async def start_recording(
        self, udid: str, output_path: str | Path, duration: float | None = None
    ) -> Recording:
        """Start recording the simulator screen.

        With ``duration`` the recording stops itself after that many seconds;
        otherwise it runs until ``stop_recording``.
        """
        if self.is_recording(udid):
            raise ExternalCommandError(f"Recording already in progress for {udid}")

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        proc = await self.executor.spawn(["idb", "record-video", "--udid", udid, str(output_path)])
        recording = Recording(udid=udid, output_path=output_path, process=proc)
        if duration:
            recording.stop_task = asyncio.create_task(self._stop_after(udid, duration))
        self._recordings[udid] = recording
        logger.info(f"Recording started for {udid}: {output_path}")
        return recording

    async def _stop_after(self, udid: str, duration: float) -> None:
        await asyncio.sleep(duration)
        await self.stop_recording(udid)

    async def stop_recording(self, udid: str) -> Recording | None:
        """Stop a recording; returns None when none was active."""
        recording = self._recordings.pop(udid, None)
        if recording is None:
            return None

        current = asyncio.current_task()
        if recording.stop_task and recording.stop_task is not current:
            recording.stop_task.cancel()

        await self.executor.stop(recording.process)
        logger.info(f"Recording stopped for {udid}")
        return recording

    def is_recording(self, udid: str) -> bool:
        """Check if recording is in progress for a device."""
        recording = self._recordings.get(udid)
        return recording is not None and recording.process.returncode is None
