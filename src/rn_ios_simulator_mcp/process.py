"""Bounded execution of external commands.

Commands are always passed as argument vectors to the OS, never through a
shell, so free-form values such as typed text or notification bodies need no
escaping.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import shlex
import signal
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field

from .errors import ExternalCommandError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
TIMEOUT_EXIT_CODE = -1
NOT_FOUND_EXIT_CODE = 127

OutputCallback = Callable[[str], None]


@dataclass
class CommandResult:
    """Outcome of one external process invocation."""

    success: bool
    stdout: str
    stderr: str
    exit_code: int
    command: list[str] = field(default_factory=list)
    timed_out: bool = False

    @property
    def error_message(self) -> str:
        """Best human-readable failure text."""
        return self.stderr.strip() or self.stdout.strip() or f"exit code {self.exit_code}"


def format_command(args: Sequence[str]) -> str:
    """Render an argument vector for log lines."""
    return shlex.join(args)


def _timeout_marker(timeout: float) -> str:
    return f"Command timed out after {timeout:g}s"


class ProcessExecutor:
    """Runs external commands with a timeout and captures their output.

    None of the ``run*`` methods raise for process failures: missing binaries,
    non-zero exits and timeouts are all reported through ``CommandResult``.
    """

    def __init__(
        self,
        default_timeout: float = DEFAULT_TIMEOUT,
        env: Mapping[str, str] | None = None,
    ):
        self.default_timeout = default_timeout
        self.env: dict[str, str] = dict(env or {})

    def _build_env(self, env: Mapping[str, str] | None) -> dict[str, str] | None:
        if not self.env and not env:
            return None
        return {**os.environ, **self.env, **(env or {})}

    async def _create(
        self,
        cmd: list[str],
        env: Mapping[str, str] | None,
        cwd: str | None,
        stdin: int | None = asyncio.subprocess.DEVNULL,
        output: int = asyncio.subprocess.PIPE,
    ) -> asyncio.subprocess.Process:
        return await asyncio.create_subprocess_exec(
            *cmd,
            stdin=stdin,
            stdout=output,
            stderr=output,
            env=self._build_env(env),
            cwd=cwd,
        )

    async def run(
        self,
        args: Sequence[str],
        timeout: float | None = None,
        *,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
    ) -> CommandResult:
        """Run a command to completion."""
        cmd = list(args)
        timeout = timeout or self.default_timeout
        logger.debug(f"Running: {format_command(cmd)}")

        try:
            proc = await self._create(cmd, env, cwd)
        except FileNotFoundError:
            return CommandResult(
                False, "", f"Command not found: {cmd[0]}", NOT_FOUND_EXIT_CODE, cmd
            )
        except OSError as e:
            return CommandResult(False, "", str(e), TIMEOUT_EXIT_CODE, cmd)

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            await self._kill(proc)
            logger.warning(f"Command timed out after {timeout:g}s: {format_command(cmd)}")
            return CommandResult(
                False, "", _timeout_marker(timeout), TIMEOUT_EXIT_CODE, cmd, timed_out=True
            )

        exit_code = proc.returncode if proc.returncode is not None else TIMEOUT_EXIT_CODE
        result = CommandResult(
            success=exit_code == 0,
            stdout=stdout.decode("utf-8", errors="replace").strip(),
            stderr=stderr.decode("utf-8", errors="replace").strip(),
            exit_code=exit_code,
            command=cmd,
        )
        if not result.success:
            logger.debug(f"Command failed ({exit_code}): {format_command(cmd)}: {result.stderr}")
        return result

    async def run_with_retry(
        self,
        args: Sequence[str],
        timeout: float | None = None,
        attempts: int = 3,
        delay: float = 1.0,
        **kwargs,
    ) -> CommandResult:
        """Run a command, retrying up to ``attempts`` extra times while it fails.

        The last result is returned whether or not it succeeded.
        """
        total = attempts + 1
        result = await self.run(args, timeout, **kwargs)
        for attempt in range(2, total + 1):
            if result.success:
                break
            logger.warning(
                f"Command failed, retrying in {delay:g}s "
                f"(attempt {attempt}/{total}): {format_command(args)}"
            )
            await asyncio.sleep(delay)
            result = await self.run(args, timeout, **kwargs)
        return result

    async def run_streaming(
        self,
        args: Sequence[str],
        timeout: float | None = None,
        *,
        on_stdout: OutputCallback | None = None,
        on_stderr: OutputCallback | None = None,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
    ) -> CommandResult:
        """Run a command, consuming its output line by line as it arrives."""
        cmd = list(args)
        timeout = timeout or self.default_timeout
        logger.debug(f"Streaming: {format_command(cmd)}")

        try:
            proc = await self._create(cmd, env, cwd)
        except FileNotFoundError:
            return CommandResult(
                False, "", f"Command not found: {cmd[0]}", NOT_FOUND_EXIT_CODE, cmd
            )
        except OSError as e:
            return CommandResult(False, "", str(e), TIMEOUT_EXIT_CODE, cmd)

        out_lines: list[str] = []
        err_lines: list[str] = []

        async def pump(stream, sink: list[str], callback: OutputCallback | None) -> None:
            async for raw in stream:
                line = raw.decode("utf-8", errors="replace").rstrip("\n")
                sink.append(line)
                if callback:
                    callback(line)

        try:
            await asyncio.wait_for(
                asyncio.gather(
                    pump(proc.stdout, out_lines, on_stdout),
                    pump(proc.stderr, err_lines, on_stderr),
                    proc.wait(),
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            await self._kill(proc)
            err_lines.append(_timeout_marker(timeout))
            return CommandResult(
                False,
                "\n".join(out_lines).strip(),
                "\n".join(err_lines).strip(),
                TIMEOUT_EXIT_CODE,
                cmd,
                timed_out=True,
            )

        exit_code = proc.returncode if proc.returncode is not None else TIMEOUT_EXIT_CODE
        return CommandResult(
            success=exit_code == 0,
            stdout="\n".join(out_lines).strip(),
            stderr="\n".join(err_lines).strip(),
            exit_code=exit_code,
            command=cmd,
        )

    async def spawn(
        self,
        args: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
    ) -> asyncio.subprocess.Process:
        """Start a long-running command and hand back the live process.

        Output goes to the null device.

        Raises:
            ExternalCommandError: if the binary cannot be started
        """
        cmd = list(args)
        logger.debug(f"Spawning: {format_command(cmd)}")
        try:
            return await self._create(cmd, env, cwd, output=asyncio.subprocess.DEVNULL)
        except OSError as e:
            raise ExternalCommandError(f"Failed to start {cmd[0]}: {e}") from e

    async def stop(self, proc: asyncio.subprocess.Process, timeout: float = 30.0) -> int | None:
        """Interrupt a spawned process, killing it if it ignores SIGINT."""
        if proc.returncode is not None:
            return proc.returncode

        with contextlib.suppress(ProcessLookupError):
            proc.send_signal(signal.SIGINT)

        try:
            await asyncio.wait_for(proc.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            await self._kill(proc)
        return proc.returncode

    @staticmethod
    async def _kill(proc: asyncio.subprocess.Process) -> None:
        with contextlib.suppress(ProcessLookupError):
            proc.kill()
        await proc.wait()
