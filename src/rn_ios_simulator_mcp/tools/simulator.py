"""Simulator lifecycle and session tools."""

from __future__ import annotations

import platform
import sys
import time
from datetime import datetime
from typing import Any

from ..errors import SimulatorMCPError
from ..manager import LifecycleReport
from ..registry import ToolSpec
from ..results import StructuredResult, TextResult
from ..simulator import SimulatorDevice
from . import ToolContext, schema

CATEGORY = "simulator"

DEVICE_TYPES = [
    "iPhone 15",
    "iPhone 15 Pro",
    "iPhone 15 Plus",
    "iPhone 15 Pro Max",
    "iPad Air",
    "iPad Pro",
]


def format_devices(devices: list[SimulatorDevice]) -> str:
    return "\n".join(
        f"- {d.name} (iOS {d.ios_version})\n  UDID: {d.udid}\n  State: {d.state.value}"
        for d in devices
    )


def format_warnings(report: LifecycleReport | None) -> str:
    if report is None or not report.warnings:
        return ""
    return "\n\nWarnings:\n" + "\n".join(f"- {w}" for w in report.warnings)


def _peak_memory_mb() -> float | None:
    try:
        import resource
    except ImportError:
        return None
    peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # ru_maxrss is bytes on macOS and kilobytes on Linux
    return peak / (1024 * 1024) if sys.platform == "darwin" else peak / 1024


def create_simulator_tools(ctx: ToolContext) -> list[ToolSpec]:
    manager = ctx.manager

    async def healthcheck(args: dict[str, Any]) -> TextResult:
        started = time.monotonic()
        try:
            devices = await manager.list_devices()
            booted = sum(1 for d in devices if d.is_booted)
            simulators = f"{len(devices)} available, {booted} booted"
        except SimulatorMCPError as e:
            simulators = f"unavailable ({e})"
        idb_status = "not found"
        if await ctx.companion.check_installation():
            try:
                idb_status = f"installed, {len(await ctx.companion.list_targets())} targets"
            except SimulatorMCPError as e:
                idb_status = f"installed, targets unavailable ({e})"

        memory = _peak_memory_mb()
        headless = (
            f"enabled ({ctx.headless.mode})" if ctx.headless.is_enabled else "disabled"
        )
        lines = [
            "MCP Server Health Check PASSED",
            "",
            "Server Status: healthy",
            f"Server: {ctx.config.name} v{ctx.config.version}",
            f"Timestamp: {datetime.now().isoformat(timespec='seconds')}",
            f"Uptime: {time.monotonic() - ctx.started_at:.1f}s",
            f"Response Time: {(time.monotonic() - started) * 1000:.0f}ms",
            f"Platform: {sys.platform} ({platform.machine()})",
            f"Python: {platform.python_version()}",
            f"Memory: {memory:.1f} MB peak RSS" if memory is not None else "Memory: unknown",
            f"Simulators: {simulators}",
            f"idb: {idb_status}",
            f"Headless: {headless}",
            f"Sessions: {len(manager.get_all_sessions())}",
        ]
        return TextResult("\n".join(lines))

    async def create_session(args: dict[str, Any]) -> TextResult:
        session, report = await manager.create_session(
            args["deviceType"],
            ios_version=args.get("iosVersion"),
            project_path=args.get("projectPath"),
            bundle_id=args.get("bundleId") or ctx.config.react_native.default_bundle_id or None,
        )
        return TextResult(
            "Created React Native simulator session successfully!\n\n"
            f"Session ID: {session.id}\n"
            f"Device: {session.name}\n"
            f"UDID: {session.udid}\n"
            f"State: {session.state.value}\n"
            f"Created: {session.created_at.isoformat(timespec='seconds')}"
            f"{format_warnings(report)}\n\n"
            "You can now use this session to boot the simulator, install apps, "
            "and run React Native projects."
        )

    async def terminate_session(args: dict[str, Any]) -> TextResult:
        session = await manager.terminate_session(args["sessionId"])
        return TextResult(
            f"Terminated simulator session: {session.id}\n\n"
            f"Device {session.name} ({session.udid}) has been released."
        )

    async def list_sessions(args: dict[str, Any]) -> StructuredResult:
        sessions = manager.get_all_sessions()
        if not sessions:
            return StructuredResult(
                [], message="No active simulator sessions.\n\nUse 'create_rn_simulator_session' to start one."
            )
        return StructuredResult([s.to_dict() for s in sessions])

    async def boot(args: dict[str, Any]) -> TextResult:
        report = await manager.boot(args["udid"])
        status = "was already booted" if not report.changed else "is now running and ready for use"
        return TextResult(
            f"Successfully booted simulator: {report.udid}\n\n"
            f"The simulator {status}. You can install apps, run React Native projects, "
            f"or perform UI automation.{format_warnings(report)}"
        )

    async def shutdown(args: dict[str, Any]) -> TextResult:
        report = await manager.shutdown(args["udid"])
        return TextResult(
            f"Successfully shut down simulator: {report.udid}\n\n"
            "The simulator has been stopped and is no longer running."
        )

    async def list_available(args: dict[str, Any]) -> TextResult:
        devices = await manager.list_devices()
        return TextResult(
            f"Available iOS Simulators ({len(devices)} found):\n\n{format_devices(devices)}\n\n"
            "Use the UDID to boot a specific simulator or create a session."
        )

    async def list_booted(args: dict[str, Any]) -> TextResult:
        devices = await manager.list_booted()
        if not devices:
            return TextResult(
                "No simulators are currently running.\n\n"
                "Use 'boot_simulator' to start a simulator first."
            )
        return TextResult(
            f"Running iOS Simulators ({len(devices)} found):\n\n{format_devices(devices)}"
        )

    async def focus(args: dict[str, Any]) -> TextResult:
        if not await manager.focus(args.get("udid")):
            return TextResult("Running in headless mode; there is no simulator window to focus.")
        return TextResult(
            "Simulator window brought to front.\n\n"
            "The Simulator app is now the active window on your screen."
        )

    return [
        ToolSpec(
            name="mcp_server_healthcheck",
            description="Check if the MCP server is running and report its status",
            category=CATEGORY,
            handler=healthcheck,
            input_schema=schema(udid=False),
        ),
        ToolSpec(
            name="create_rn_simulator_session",
            description="Create a new React Native simulator session",
            category=CATEGORY,
            handler=create_session,
            input_schema=schema(
                {
                    "deviceType": {
                        "type": "string",
                        "enum": DEVICE_TYPES,
                        "description": "Type of iOS device to simulate",
                    },
                    "iosVersion": {
                        "type": "string",
                        "description": "iOS version (optional, will use latest available)",
                    },
                    "projectPath": {
                        "type": "string",
                        "description": "Path to React Native project (optional)",
                    },
                    "bundleId": {
                        "type": "string",
                        "description": "Bundle ID of the app under test (optional)",
                    },
                },
                required=["deviceType"],
                udid=False,
            ),
        ),
        ToolSpec(
            name="terminate_rn_simulator_session",
            description="Terminate a simulator session, shutting its simulator down if running",
            category=CATEGORY,
            handler=terminate_session,
            input_schema=schema(
                {"sessionId": {"type": "string", "description": "ID of the session to terminate"}},
                required=["sessionId"],
                udid=False,
            ),
        ),
        ToolSpec(
            name="list_simulator_sessions",
            description="List active simulator sessions",
            category=CATEGORY,
            handler=list_sessions,
            input_schema=schema(udid=False),
        ),
        ToolSpec(
            name="boot_simulator",
            description="Boot an iOS simulator by UDID",
            category=CATEGORY,
            handler=boot,
            input_schema=schema(
                {"udid": {"type": "string", "description": "UDID of the simulator to boot"}},
                required=["udid"],
            ),
        ),
        ToolSpec(
            name="shutdown_simulator",
            description="Shutdown an iOS simulator by UDID",
            category=CATEGORY,
            handler=shutdown,
            input_schema=schema(
                {"udid": {"type": "string", "description": "UDID of the simulator to shutdown"}},
                required=["udid"],
            ),
        ),
        ToolSpec(
            name="list_available_simulators",
            description="List all available iOS simulators",
            category=CATEGORY,
            handler=list_available,
            input_schema=schema(udid=False),
        ),
        ToolSpec(
            name="list_booted_simulators",
            description="List currently running iOS simulators",
            category=CATEGORY,
            handler=list_booted,
            input_schema=schema(udid=False),
        ),
        ToolSpec(
            name="focus_simulator",
            description="Bring simulator window to front",
            category=CATEGORY,
            handler=focus,
            input_schema=schema(
                {
                    "udid": {
                        "type": "string",
                        "description": "UDID of the simulator to focus (optional, will focus current simulator)",
                    }
                }
            ),
        ),
    ]
