"""Guided-workflow prompts.

Each prompt is a user/assistant/user exchange that steers the agent toward the
accessibility tools for navigation, keeping screenshots for documentation.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastmcp.prompts import Message

from .errors import SimulatorMCPError

if TYPE_CHECKING:
    from fastmcp import FastMCP

    from .manager import SimulatorManager

logger = logging.getLogger(__name__)


def _message(role: str, text: str) -> Message:
    return Message(text, role=role)


def start_simulator_test(app_name: str | None = None, device_type: str | None = None) -> list[Message]:
    app = app_name or "your app"
    device = device_type or "iPhone 15 Pro"
    return [
        _message("user", f"I want to start testing {app} on an iOS simulator."),
        _message(
            "assistant",
            f"I'll help you start testing {app} on an iOS simulator:\n\n"
            "1. First, I'll check if any simulators are already running\n"
            "2. Then, I'll either use an existing simulator or create a new one\n"
            f"3. Finally, I'll help you launch {app}\n\n"
            "For navigation I'll use accessibility tools instead of screenshots, since they "
            "give accurate, parseable information about UI elements.\n\n"
            "Let's start by checking for running simulators...",
        ),
        _message(
            "user",
            f"Please check for running simulators, then proceed with testing {app} on {device}. "
            "Use get_accessibility_elements to understand the UI layout instead of relying on screenshots.",
        ),
    ]


def test_ui_flow(flow_description: str) -> list[Message]:
    return [
        _message("user", f"I want to test the following UI flow: {flow_description}"),
        _message(
            "assistant",
            "I'll help you test that UI flow. Here's my approach:\n\n"
            "1. **Pre-check**: verify we have a simulator running\n"
            "2. **UI Discovery**: use accessibility tools to understand the current screen\n"
            "3. **Navigation**: move through the flow using element coordinates\n"
            "4. **Validation**: verify each step using accessibility information\n\n"
            "**Key Tools I'll Use**:\n"
            "- `get_accessibility_elements` - to see all UI elements on screen\n"
            "- `inspect_element` - to get details about specific elements\n"
            "- `tap_coordinates` - to interact with elements\n"
            "- `input_text` - to enter text in fields\n\n"
            "Screenshots will only be used for documentation, not navigation.",
        ),
        _message(
            "user",
            "Check for running simulators, ensure the app is running, then use "
            "get_accessibility_elements to understand the current screen layout. "
            f"Navigate through: {flow_description}",
        ),
    ]


def debug_simulator_issue(issue_description: str) -> list[Message]:
    return [
        _message("user", f"I'm having this issue with the simulator: {issue_description}"),
        _message(
            "assistant",
            "I'll help you troubleshoot that simulator issue with a systematic check:\n\n"
            "1. **Health Check**: verify the MCP server is working\n"
            "2. **Simulator Status**: check what simulators are available and running\n"
            "3. **UI Analysis**: use accessibility tools to understand the current state\n"
            "4. **Diagnostics**: gather relevant information\n"
            "5. **Solution**: apply fixes based on what we find\n\n"
            "Starting with a health check...",
        ),
        _message(
            "user",
            "Run health check, list available and running simulators, then use "
            "get_accessibility_elements to understand the current UI state. "
            f"Help diagnose: {issue_description}",
        ),
    ]


async def setup_test_environment(manager: SimulatorManager) -> list[Message]:
    hint = ""
    try:
        booted = await manager.list_booted()
    except SimulatorMCPError as e:
        logger.debug(f"Could not list booted simulators for prompt hint: {e}")
    else:
        if booted:
            hint = f"\n\nI can see you already have {len(booted)} simulator(s) running. We can use one of those!"

    return [
        _message("user", "I need help setting up my simulator testing environment."),
        _message(
            "assistant",
            "I'll guide you through setting up a complete simulator testing environment:\n\n"
            "**Pre-flight Checks:**\n"
            "1. Verify MCP server health\n"
            "2. Check for existing simulators\n"
            "3. Ensure screenshot/video paths are configured\n\n"
            "**Simulator Setup:**\n"
            "4. Create or select an appropriate simulator\n"
            "5. Boot the simulator\n"
            "6. Install your app (if needed)\n\n"
            "**Testing Preparation:**\n"
            "7. Verify accessibility tools are working\n"
            "8. Test UI element detection\n"
            f"9. Confirm navigation capabilities{hint}\n\n"
            "Let's begin with the health check...",
        ),
        _message(
            "user",
            "Run health check, list available simulators, check for running simulators, "
            "then either use an existing one or create a new iPhone 15 Pro simulator. "
            "Once ready, test get_accessibility_elements to ensure UI navigation is working.",
        ),
    ]


def navigate_with_accessibility(target_screen: str) -> list[Message]:
    return [
        _message("user", f"I need to navigate to: {target_screen}"),
        _message(
            "assistant",
            f"I'll help you navigate to {target_screen} using accessibility tools.\n\n"
            "**Step 1: Understand Current Screen**\n"
            "- Use `get_accessibility_elements` to see all UI elements\n\n"
            "**Step 2: Find Navigation Elements**\n"
            f'- Search for elements with labels matching "{target_screen}"\n'
            "- Check for navigation bars, tab bars, or menu buttons\n"
            "- Use `inspect_element` for detailed information\n\n"
            "**Step 3: Interact with Elements**\n"
            "- Use `tap_coordinates` with the x,y from accessibility data\n"
            "- For text fields, use `input_text` after tapping\n"
            "- Use `scroll_gesture` if elements are off-screen",
        ),
        _message(
            "user",
            "Use get_accessibility_elements to understand the current screen, then navigate to: "
            f"{target_screen}. Look for matching labels or related UI elements.",
        ),
    ]


def register_prompts(mcp: FastMCP, manager: SimulatorManager) -> None:
    """Register the workflow prompts on a FastMCP server."""

    async def setup_environment() -> list[Message]:
        return await setup_test_environment(manager)

    mcp.prompt(
        name="start_simulator_test",
        description="Best practices workflow for starting simulator testing",
    )(start_simulator_test)
    mcp.prompt(
        name="test_ui_flow",
        description="Guided workflow for testing a UI flow in your app",
    )(test_ui_flow)
    mcp.prompt(
        name="debug_simulator_issue",
        description="Troubleshooting guide for common simulator issues",
    )(debug_simulator_issue)
    mcp.prompt(
        name="setup_test_environment",
        description="Complete setup guide for simulator testing environment",
    )(setup_environment)
    mcp.prompt(
        name="navigate_with_accessibility",
        description="Guide for navigating apps using accessibility tools",
    )(navigate_with_accessibility)
