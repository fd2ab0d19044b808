"""Simulator lifecycle controller.

Drives boot and shutdown through simctl, observes the resulting device state by
polling, and keeps the session store in step. The simulator runtime owns the
device state machine; this module only issues commands and waits for the
state it asked for.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any

from .errors import ExternalCommandError, NotFoundError, OperationTimeoutError, PreconditionError
from .headless import HeadlessManager
from .idb import IDBClient
from .polling import Clock, Sleep, wait_until
from .sessions import SessionState, SessionStore, SimulatorSession
from .simulator import SimctlClient, SimulatorDevice, SimulatorState
from .simulator_app import SimulatorApp

logger = logging.getLogger(__name__)

NO_SIMULATOR_MESSAGE = "No simulator is currently running. Please boot a simulator first."


@dataclass
class LifecycleReport:
    """Result of a boot or shutdown.

    ``warnings`` collects best-effort steps that failed without failing the
    operation, such as connecting the automation companion.
    """

    udid: str
    state: SimulatorState
    warnings: list[str] = field(default_factory=list)
    changed: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "udid": self.udid,
            "state": self.state.value,
            "warnings": list(self.warnings),
            "changed": self.changed,
        }


def select_device(
    devices: list[SimulatorDevice], device_type: str, ios_version: str | None = None
) -> SimulatorDevice | None:
    """Pick the device for a new session.

    Candidates are devices whose name contains ``device_type`` and, when given,
    whose iOS version contains ``ios_version``. The newest iOS version wins;
    ties go to the lexicographically smallest UDID.
    """
    matches = [
        d
        for d in devices
        if device_type in d.name and (not ios_version or ios_version in d.ios_version)
    ]
    if not matches:
        return None
    ordered = sorted(matches, key=lambda d: d.udid)
    ordered.sort(key=lambda d: d.version_key, reverse=True)
    return ordered[0]


class SimulatorManager:
    """Owns simulator sessions and the boot/shutdown state transitions."""

    def __init__(
        self,
        simctl: SimctlClient,
        companion: IDBClient,
        store: SessionStore | None = None,
        *,
        timeout: float = 30.0,
        poll_interval: float = 1.0,
        auto_boot: bool = True,
        headless: HeadlessManager | None = None,
        simulator_app: SimulatorApp | None = None,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ):
        self.simctl = simctl
        self.companion = companion
        self.store = store if store is not None else SessionStore()
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.auto_boot = auto_boot
        self.headless = headless
        self.simulator_app = simulator_app
        self._clock = clock
        self._sleep = sleep

    @property
    def is_headless(self) -> bool:
        return self.headless is not None and self.headless.is_enabled

    # === Devices ===

    async def list_devices(self) -> list[SimulatorDevice]:
        return await self.simctl.list_devices()

    async def get_device(self, udid: str) -> SimulatorDevice | None:
        return await self.simctl.get_device(udid)

    async def list_booted(self) -> list[SimulatorDevice]:
        """Booted devices ordered by UDID, each connected to the companion."""
        booted = sorted((d for d in await self.list_devices() if d.is_booted), key=lambda d: d.udid)
        for device in booted:
            await self._ensure_connected(device.udid)
        return booted

    async def get_current(self) -> SimulatorDevice | None:
        """The booted device with the smallest UDID, or None."""
        booted = await self.list_booted()
        return booted[0] if booted else None

    async def resolve_udid(self, udid: str | None = None) -> str:
        """Return ``udid`` or fall back to the current simulator.

        Raises:
            PreconditionError: if no udid was given and nothing is booted
        """
        if udid:
            return udid
        current = await self.get_current()
        if current is None:
            raise PreconditionError(NO_SIMULATOR_MESSAGE)
        return current.udid

    async def _ensure_connected(self, udid: str) -> str | None:
        """Connect the companion to ``udid``; returns a warning on failure.

        Connects on every call; idb accepts a connect to an already
        connected target.
        """
        try:
            await self.companion.connect(udid)
        except ExternalCommandError as e:
            warning = f"Failed to connect automation companion to {udid}: {e}"
            logger.warning(warning)
            return warning
        return None

    async def _disconnect(self, udid: str) -> None:
        await self.companion.disconnect(udid)

    # === Boot / shutdown ===

    async def _wait_for_state(self, udid: str, state: SimulatorState) -> None:
        async def reached() -> bool:
            device = await self.simctl.get_device(udid)
            return device is not None and device.state == state

        ok = await wait_until(
            reached,
            timeout=self.timeout,
            interval=self.poll_interval,
            clock=self._clock,
            sleep=self._sleep,
        )
        if not ok:
            raise OperationTimeoutError(
                f"Timeout waiting for simulator {udid} to reach state: {state.value}",
                udid=udid,
                expected_state=state.value,
            )

    async def boot(self, udid: str) -> LifecycleReport:
        """Boot a device and wait until simctl reports it Booted.

        Raises:
            NotFoundError: if the UDID is unknown
            ExternalCommandError: if ``simctl boot`` fails
            OperationTimeoutError: if the device does not reach Booted in time
        """
        device = await self.get_device(udid)
        if device is None:
            raise NotFoundError(f"Simulator not found: {udid}")

        if device.is_booted:
            logger.info(f"Simulator {udid} is already booted")
            report = LifecycleReport(udid, SimulatorState.BOOTED, changed=False)
        else:
            env = self.headless.boot_environment if self.is_headless else None
            logger.info(f"Booting simulator{' in headless mode' if env else ''}: {udid}")
            await self.simctl.boot(udid, env=env)
            await self._wait_for_state(udid, SimulatorState.BOOTED)
            logger.info(f"Successfully booted simulator: {udid}")
            report = LifecycleReport(udid, SimulatorState.BOOTED)

        warning = await self._ensure_connected(udid)
        if warning:
            report.warnings.append(warning)

        for session in self.store.values():
            if session.udid == udid and session.state == SessionState.INACTIVE:
                session.transition(SessionState.ACTIVE)
        return report

    async def shutdown(self, udid: str) -> LifecycleReport:
        """Shut a device down and wait until simctl reports it Shutdown.

        Raises:
            NotFoundError: if the UDID is unknown
            ExternalCommandError: if ``simctl shutdown`` fails
            OperationTimeoutError: if the device does not reach Shutdown in time
        """
        device = await self.get_device(udid)
        if device is None:
            raise NotFoundError(f"Simulator not found: {udid}")

        await self._disconnect(udid)

        if device.state == SimulatorState.SHUTDOWN:
            logger.info(f"Simulator {udid} is already shut down")
            return LifecycleReport(udid, SimulatorState.SHUTDOWN, changed=False)

        logger.info(f"Shutting down simulator: {udid}")
        await self.simctl.shutdown(udid)
        await self._wait_for_state(udid, SimulatorState.SHUTDOWN)
        logger.info(f"Successfully shut down simulator: {udid}")
        return LifecycleReport(udid, SimulatorState.SHUTDOWN)

    # === Sessions ===

    async def create_session(
        self,
        device_type: str,
        ios_version: str | None = None,
        project_path: str | None = None,
        bundle_id: str | None = None,
    ) -> tuple[SimulatorSession, LifecycleReport | None]:
        """Create a session on a matching device, booting it when auto-boot is on.

        Returns:
            The session and the boot report, which is None without auto-boot

        Raises:
            NotFoundError: if no available device matches
        """
        logger.info(f"Creating simulator session for {device_type} (iOS {ios_version or 'any'})")
        device = select_device(await self.list_devices(), device_type, ios_version)
        if device is None:
            message = f"No simulator found matching device type: {device_type}"
            if ios_version:
                message += f" and iOS version: {ios_version}"
            raise NotFoundError(message)

        session = SimulatorSession(
            udid=device.udid,
            name=device.name,
            project_path=project_path,
            bundle_id=bundle_id,
        )
        self.store.put(session)
        logger.info(f"Created simulator session: {session.id} for {device.name}")

        report = None
        if self.auto_boot:
            report = await self.boot(device.udid)
        return session, report

    async def terminate_session(self, session_id: str) -> SimulatorSession:
        """Shut down the session's device if booted and drop the session.

        Raises:
            NotFoundError: if the session is unknown
        """
        session = self.store.get(session_id)
        if session is None:
            raise NotFoundError(f"Session not found: {session_id}")

        logger.info(f"Terminating simulator session: {session_id}")
        device = await self.get_device(session.udid)
        if device is not None and device.is_booted:
            await self.shutdown(session.udid)
        await self._disconnect(session.udid)

        session.transition(SessionState.TERMINATED)
        self.store.delete(session_id)
        logger.info(f"Terminated simulator session: {session_id}")
        return session

    def get_session(self, session_id: str) -> SimulatorSession | None:
        return self.store.get(session_id)

    def get_all_sessions(self) -> list[SimulatorSession]:
        return self.store.values()

    # === Window ===

    async def focus(self, udid: str | None = None) -> bool:
        """Bring the Simulator window to front.

        Returns:
            False when skipped because no window exists in headless mode

        Raises:
            PreconditionError: if no udid was given and nothing is booted
        """
        target = udid or (await self.resolve_udid())
        if self.is_headless:
            logger.info(f"Skipping simulator focus in headless mode: {target}")
            return False
        if self.simulator_app is None:
            raise PreconditionError("Simulator window control is not available")
        await self.simulator_app.activate()
        logger.info(f"Focused simulator: {target}")
        return True
