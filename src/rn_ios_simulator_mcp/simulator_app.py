"""Keyboard shortcuts and window control for Simulator.app via AppleScript."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from .errors import ExternalCommandError
from .process import ProcessExecutor

logger = logging.getLogger(__name__)

ACTIVATE_SCRIPT = 'tell application "Simulator" to activate'

# macOS virtual key codes
KEY_CODE_M = 46
KEY_CODE_N = 45


def _modifier_clause(modifiers: Sequence[str]) -> str:
    if not modifiers:
        return ""
    return " using {" + ", ".join(f"{m} down" for m in modifiers) + "}"


class SimulatorApp:
    """Sends window and keyboard events to the Simulator application."""

    def __init__(self, executor: ProcessExecutor, timeout: float = 5.0):
        self.executor = executor
        self.timeout = timeout

    async def _osascript(self, *lines: str) -> None:
        args = ["osascript"]
        for line in lines:
            args.extend(["-e", line])
        result = await self.executor.run(args, self.timeout)
        if not result.success:
            raise ExternalCommandError(f"AppleScript failed: {result.error_message}", result)

    async def activate(self) -> None:
        await self._osascript(ACTIVATE_SCRIPT)

    async def key_code(self, code: int, modifiers: Sequence[str] = ()) -> None:
        """Activate the Simulator and send a virtual key code."""
        logger.debug(f"Sending key code {code} with {list(modifiers)}")
        await self._osascript(
            ACTIVATE_SCRIPT,
            f'tell application "System Events" to key code {code}{_modifier_clause(modifiers)}',
        )

    async def keystroke(self, key: str, modifiers: Sequence[str] = ()) -> None:
        """Activate the Simulator and type a character with modifiers."""
        logger.debug(f"Sending keystroke {key!r} with {list(modifiers)}")
        await self._osascript(
            ACTIVATE_SCRIPT,
            f'tell application "System Events" to keystroke "{key}"{_modifier_clause(modifiers)}',
        )
