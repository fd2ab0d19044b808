"""Headless simulator environments for CI-style runs."""

from __future__ import annotations

import asyncio
import logging
import shutil
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

import httpx

from .config import HeadlessSettings
from .errors import ExternalCommandError
from .process import ProcessExecutor

logger = logging.getLogger(__name__)

CLI_ONLY_ENVIRONMENT = {
    "SIMULATOR_HEADLESS": "1",
    "IOS_SIMULATOR_HEADLESS": "1",
}

XVFB_STARTUP_DELAY = 2.0
COMPANION_STARTUP_DELAY = 3.0


@dataclass
class HeadlessSetup:
    """Outcome of preparing the headless environment."""

    success: bool
    message: str
    environment: dict[str, str] = field(default_factory=dict)


class HeadlessManager:
    """Prepares and tears down the configured headless mode.

    ``cli-only`` only exports environment hints to the boot command.
    ``virtual-display`` runs an Xvfb server and ``idb-companion`` runs a
    standalone idb companion; both processes are stopped by ``cleanup``.
    """

    def __init__(
        self,
        settings: HeadlessSettings,
        executor: ProcessExecutor,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.settings = settings
        self.executor = executor
        self._sleep = sleep
        self._environment: dict[str, str] = {}
        self._display_process: asyncio.subprocess.Process | None = None
        self._companion_process: asyncio.subprocess.Process | None = None

    @property
    def is_enabled(self) -> bool:
        return self.settings.enabled

    @property
    def mode(self) -> str:
        return self.settings.mode

    @property
    def boot_environment(self) -> dict[str, str]:
        """Extra environment for ``simctl boot``; empty when disabled."""
        if not self.is_enabled:
            return {}
        if not self._environment and self.mode == "cli-only":
            return dict(CLI_ONLY_ENVIRONMENT)
        return dict(self._environment)

    async def setup(self) -> HeadlessSetup:
        if not self.is_enabled:
            return HeadlessSetup(True, "Headless mode is disabled, running in normal mode")

        logger.info(f"Setting up headless mode: {self.mode}")
        if self.mode == "cli-only":
            result = self._setup_cli_only()
        elif self.mode == "virtual-display":
            result = await self._setup_virtual_display()
        else:
            result = await self._setup_companion()

        if result.success:
            self._environment = dict(result.environment)
            logger.info(result.message)
        else:
            logger.error(f"Headless setup failed: {result.message}")
        return result

    def _setup_cli_only(self) -> HeadlessSetup:
        return HeadlessSetup(
            True,
            "CLI-only mode configured (simulators will boot without GUI)",
            dict(CLI_ONLY_ENVIRONMENT),
        )

    async def _setup_virtual_display(self) -> HeadlessSetup:
        display = self.settings.display
        if shutil.which("Xvfb") is None:
            return HeadlessSetup(
                False,
                "Xvfb not found. Install it with: brew install xvfb (macOS) "
                "or apt-get install xvfb (Linux)",
            )

        try:
            self._display_process = await self.executor.spawn(
                ["Xvfb", display.id, "-screen", "0", f"{display.resolution}x{display.color_depth}"]
            )
        except ExternalCommandError as e:
            return HeadlessSetup(False, f"Virtual display setup failed: {e}")

        await self._sleep(XVFB_STARTUP_DELAY)

        check = await self.executor.run(["xdpyinfo", "-display", display.id], 10.0)
        if not check.success:
            await self._stop_display()
            return HeadlessSetup(False, f"Failed to verify virtual display {display.id}")

        return HeadlessSetup(
            True, f"Virtual display running on {display.id}", {"DISPLAY": display.id}
        )

    async def _setup_companion(self) -> HeadlessSetup:
        companion = self.settings.companion
        check = await self.executor.run(["idb", "companion", "--help"], 10.0)
        if not check.success:
            return HeadlessSetup(
                False, "IDB companion not available. Ensure fb-idb is properly installed."
            )

        args = ["idb", "companion", "--port", str(companion.port)]
        if companion.enable_tls:
            args.append("--tls")

        try:
            self._companion_process = await self.executor.spawn(args)
        except ExternalCommandError as e:
            return HeadlessSetup(False, f"IDB companion setup failed: {e}")

        await self._sleep(COMPANION_STARTUP_DELAY)

        if not await self.probe_companion():
            await self._stop_companion()
            return HeadlessSetup(False, f"Failed to verify IDB companion on port {companion.port}")

        return HeadlessSetup(
            True,
            f"IDB companion running on port {companion.port}",
            {
                "IDB_COMPANION_PORT": str(companion.port),
                "IDB_COMPANION_TLS": str(companion.enable_tls).lower(),
            },
        )

    async def probe_companion(self) -> bool:
        """Whether something is listening on the companion port.

        The companion speaks gRPC, so any HTTP-level reply, including a
        protocol error, means the port is up.
        """
        companion = self.settings.companion
        scheme = "https" if companion.enable_tls else "http"
        url = f"{scheme}://localhost:{companion.port}/status"
        try:
            async with httpx.AsyncClient(timeout=5.0, verify=False) as client:
                await client.get(url)
        except (httpx.ConnectError, httpx.TimeoutException) as e:
            logger.debug(f"Companion probe failed: {e}")
            return False
        except httpx.HTTPError:
            return True
        return True

    async def _stop_display(self) -> None:
        if self._display_process is not None:
            logger.info("Cleaning up virtual display")
            await self.executor.stop(self._display_process, timeout=5.0)
            self._display_process = None

    async def _stop_companion(self) -> None:
        if self._companion_process is not None:
            logger.info("Cleaning up IDB companion")
            await self.executor.stop(self._companion_process, timeout=5.0)
            self._companion_process = None

    async def cleanup(self) -> None:
        await self._stop_display()
        await self._stop_companion()
        self._environment = {}
