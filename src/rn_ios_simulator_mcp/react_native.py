"""React Native project builds and app control on a simulator."""

from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

from .errors import NotFoundError, PreconditionError
from .idb import IDBClient
from .polling import Sleep
from .process import ProcessExecutor
from .simulator_app import SimulatorApp

logger = logging.getLogger(__name__)

BuildMode = Literal["Debug", "Release"]

BUILD_TIMEOUT = 900.0
RELOAD_DELAY = 2.0
MAX_WARNINGS = 5

_INSTALL_PATH = re.compile(r'Installing "?([^"\s]+\.app)"?')
_WARNING = re.compile(r"\bwarning\b", re.IGNORECASE)


@dataclass
class ReactNativeProject:
    path: Path
    name: str
    package_json: dict[str, Any]

    @property
    def react_native_version(self) -> str | None:
        deps = {**self.package_json.get("devDependencies", {}), **self.package_json.get("dependencies", {})}
        return deps.get("react-native")


@dataclass
class BuildResult:
    success: bool
    duration: float
    build_path: str | None = None
    warnings: list[str] = field(default_factory=list)
    error: str | None = None


def load_project(path: str | Path) -> ReactNativeProject:
    """Read ``package.json`` and confirm the project depends on react-native.

    Raises:
        NotFoundError: if the directory or its package.json is missing
        PreconditionError: if the project does not use react-native
    """
    root = Path(path).expanduser()
    manifest = root / "package.json"
    if not manifest.is_file():
        raise NotFoundError(f"No package.json found in {root}")

    try:
        package_json = json.loads(manifest.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise PreconditionError(f"Invalid package.json in {root}: {e}") from e

    project = ReactNativeProject(root, package_json.get("name", root.name), package_json)
    if project.react_native_version is None:
        raise PreconditionError(f"{root} is not a React Native project (no react-native dependency)")
    return project


class ReactNativeAppManager:
    """Builds React Native projects and manages their apps on a simulator."""

    def __init__(
        self,
        executor: ProcessExecutor,
        companion: IDBClient,
        simulator_app: SimulatorApp,
        sleep: Sleep = asyncio.sleep,
    ):
        self.executor = executor
        self.companion = companion
        self.simulator_app = simulator_app
        self._sleep = sleep

    async def build_and_run(
        self,
        project_path: str | Path,
        udid: str,
        mode: BuildMode = "Debug",
        reset_cache: bool = False,
        verbose: bool = False,
    ) -> BuildResult:
        """Build the iOS app with the React Native CLI and launch it on ``udid``."""
        project = load_project(project_path)
        logger.info(f"Building {project.name} ({mode}) for {udid}")
        started = time.monotonic()
        warnings: list[str] = []

        if reset_cache:
            clean = await self.executor.run(
                ["npx", "react-native", "clean", "--include", "metro,watchman"],
                120.0,
                cwd=str(project.path),
            )
            if not clean.success:
                warnings.append(f"Cache reset failed: {clean.error_message}")

        args = ["npx", "react-native", "run-ios", "--udid", udid, "--mode", mode]
        if verbose:
            args.append("--verbose")

        def on_line(line: str) -> None:
            if verbose:
                logger.debug(f"[run-ios] {line}")

        result = await self.executor.run_streaming(
            args, BUILD_TIMEOUT, on_stdout=on_line, on_stderr=on_line, cwd=str(project.path)
        )
        duration = time.monotonic() - started

        output = f"{result.stdout}\n{result.stderr}"
        warnings.extend(line.strip() for line in output.splitlines() if _WARNING.search(line))
        match = _INSTALL_PATH.search(output)

        if not result.success:
            logger.error(f"Build failed for {project.name}: {result.error_message}")
            return BuildResult(False, duration, warnings=warnings, error=result.error_message)

        logger.info(f"Build of {project.name} finished in {duration:.1f}s")
        return BuildResult(True, duration, match.group(1) if match else None, warnings)

    async def install_app(self, app_path: str, udid: str) -> None:
        logger.info(f"Installing {app_path} on {udid}")
        await self.companion.install_app(udid, app_path)

    async def launch_app(self, bundle_id: str, udid: str) -> None:
        logger.info(f"Launching {bundle_id} on {udid}")
        await self.companion.launch_app(udid, bundle_id)

    async def terminate_app(self, bundle_id: str, udid: str) -> None:
        logger.info(f"Terminating {bundle_id} on {udid}")
        await self.companion.terminate_app(udid, bundle_id)

    async def reload_app(self, bundle_id: str, udid: str) -> None:
        """Terminate and relaunch so the app fetches a fresh bundle."""
        await self.terminate_app(bundle_id, udid)
        await self._sleep(RELOAD_DELAY)
        await self.launch_app(bundle_id, udid)

    async def open_dev_menu(self) -> None:
        """Send ⌘D to the Simulator, which opens the dev menu of the foreground app."""
        await self.simulator_app.keystroke("d", ("command",))
