"""Error taxonomy shared by the lifecycle controller, tools and front door."""

from __future__ import annotations

from typing import TYPE_CHECKING

from mcp.types import INVALID_PARAMS

if TYPE_CHECKING:
    from .process import CommandResult


class SimulatorMCPError(Exception):
    """Base class for all errors raised by this server."""

    pass


class NotFoundError(SimulatorMCPError):
    """Referenced tool, session, or device does not exist."""

    pass


class ValidationError(SimulatorMCPError):
    """Caller-supplied arguments violate a tool's declared input schema."""

    code = INVALID_PARAMS

    def __init__(self, message: str, argument: str | None = None):
        super().__init__(message)
        self.argument = argument


class ExternalCommandError(SimulatorMCPError):
    """An external process exited non-zero or produced unparseable output."""

    def __init__(self, message: str, result: CommandResult | None = None):
        super().__init__(message)
        self.result = result


class OperationTimeoutError(SimulatorMCPError, TimeoutError):
    """A state-convergence poll or bounded invocation ran out of time."""

    def __init__(
        self,
        message: str,
        udid: str | None = None,
        expected_state: str | None = None,
    ):
        super().__init__(message)
        self.udid = udid
        self.expected_state = expected_state


class PreconditionError(SimulatorMCPError):
    """The operation needs a booted device or active session and none exists."""

    pass
