"""Tool catalog: one module per category, each returning ``ToolSpec``s."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any

from ..biometrics import BiometricSimulator
from ..config import ServerConfig
from ..headless import HeadlessManager
from ..idb import IDBClient
from ..manager import SimulatorManager
from ..polling import Sleep
from ..react_native import ReactNativeAppManager
from ..registry import ToolSpec
from ..simulator import SimctlClient
from ..simulator_app import SimulatorApp


@dataclass
class ToolContext:
    """Collaborators handed to every tool handler."""

    config: ServerConfig
    manager: SimulatorManager
    simctl: SimctlClient
    companion: IDBClient
    simulator_app: SimulatorApp
    react_native: ReactNativeAppManager
    biometrics: BiometricSimulator
    headless: HeadlessManager
    sleep: Sleep = asyncio.sleep
    started_at: float = field(default_factory=time.monotonic)


UDID_PROPERTY: dict[str, Any] = {
    "type": "string",
    "description": "UDID of the simulator (optional, will use current simulator)",
}


def schema(
    properties: dict[str, Any] | None = None,
    required: list[str] | None = None,
    *,
    udid: bool = True,
) -> dict[str, Any]:
    """Object input schema, by default with an optional ``udid`` property."""
    props = dict(properties or {})
    if udid:
        props.setdefault("udid", UDID_PROPERTY)
    result: dict[str, Any] = {"type": "object", "properties": props}
    if required:
        result["required"] = required
    return result


def build_tool_catalog(ctx: ToolContext) -> list[ToolSpec]:
    from .biometrics import create_biometric_tools
    from .react_native import create_react_native_tools
    from .simulator import create_simulator_tools
    from .testing import create_testing_tools
    from .ui_automation import create_ui_automation_tools

    return [
        *create_simulator_tools(ctx),
        *create_ui_automation_tools(ctx),
        *create_testing_tools(ctx),
        *create_biometric_tools(ctx),
        *create_react_native_tools(ctx),
    ]
