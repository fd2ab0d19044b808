"""Face ID and Touch ID simulation.

The enrollment dialog is dismissed by tapping its Continue button, then the
Simulator's Features menu shortcut (⌥⌘M matching, ⌥⌘N non-matching) is sent
through AppleScript. Both need the Simulator window, so headless runs refuse.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Literal

from .errors import PreconditionError
from .idb import IDBClient
from .manager import SimulatorManager
from .polling import Sleep
from .simulator_app import KEY_CODE_M, KEY_CODE_N, SimulatorApp

logger = logging.getLogger(__name__)

BiometricKind = Literal["face_id", "touch_id"]

# Logical screen sizes in points
SCREEN_SIZES: dict[str, tuple[int, int]] = {
    "iPhone 15 Pro Max": (430, 932),
    "iPhone 15 Plus": (430, 932),
    "iPhone 15 Pro": (393, 852),
    "iPhone 15": (393, 852),
    "iPhone 14 Pro": (393, 852),
    "iPhone 14": (390, 844),
    "iPhone 13": (390, 844),
    "iPad Air": (820, 1180),
    "iPad Pro": (1024, 1366),
}
DEFAULT_SCREEN_SIZE = (393, 852)

DIALOG_DELAY = 0.5
PROMPT_DELAY = 1.0

LABELS = {"face_id": "Face ID", "touch_id": "Touch ID"}


def screen_size(device_name: str) -> tuple[int, int]:
    """Logical screen size for a device name; longest known prefix wins."""
    for name, size in SCREEN_SIZES.items():
        if device_name.startswith(name):
            return size
    return DEFAULT_SCREEN_SIZE


def continue_button(device_name: str) -> tuple[int, int]:
    """The Continue button sits at 50% width, 90% height."""
    width, height = screen_size(device_name)
    return round(width * 0.5), round(height * 0.9)


@dataclass
class BiometricOutcome:
    udid: str
    kind: BiometricKind
    matching: bool
    tap_point: tuple[int, int]

    @property
    def message(self) -> str:
        label = LABELS[self.kind]
        verdict = "matched" if self.matching else "failed to match"
        x, y = self.tap_point
        return (
            f"{'Matching' if self.matching else 'Non-matching'} {label} simulation completed!\n"
            f"Continue button tapped at ({x}, {y}) + {label} {verdict}"
        )


class BiometricSimulator:
    def __init__(
        self,
        manager: SimulatorManager,
        companion: IDBClient,
        simulator_app: SimulatorApp,
        sleep: Sleep = asyncio.sleep,
    ):
        self.manager = manager
        self.companion = companion
        self.simulator_app = simulator_app
        self._sleep = sleep

    async def simulate(
        self, kind: BiometricKind, matching: bool, udid: str | None = None
    ) -> BiometricOutcome:
        """Dismiss the enrollment dialog and send the match/no-match shortcut.

        Raises:
            PreconditionError: in headless mode or when nothing is booted
        """
        if self.manager.is_headless:
            raise PreconditionError(
                f"{LABELS[kind]} simulation needs the Simulator window and is unavailable in headless mode"
            )

        target = await self.manager.resolve_udid(udid)
        device = await self.manager.get_device(target)
        point = continue_button(device.name if device else "")

        logger.info(f"Simulating {'matching' if matching else 'non-matching'} {LABELS[kind]} on {target}")
        await self._sleep(DIALOG_DELAY)
        await self.companion.tap(target, *point)
        await self._sleep(PROMPT_DELAY)
        await self.simulator_app.key_code(
            KEY_CODE_M if matching else KEY_CODE_N, ("option", "command")
        )
        return BiometricOutcome(target, kind, matching, point)
