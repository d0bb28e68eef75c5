"""Async subprocess runner shared by every external tool wrapper."""

import asyncio
import logging
import os
from dataclasses import dataclass

from imagesec.errors import CommandTimeoutError, ExecutionError

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Captured output of a finished subprocess."""

    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.returncode == 0

    @property
    def combined_output(self) -> str:
        return f"{self.stdout}\n{self.stderr}".strip()


async def run_command(
    cmd: list[str],
    timeout: float,
    env: dict[str, str] | None = None,
    tool: str | None = None,
    stdin: bytes | None = None,
    cwd: str | None = None,
) -> CommandResult:
    """Run a command, killing it on timeout or cancellation.

    Args:
        cmd: Command and arguments
        timeout: Time budget in seconds
        env: Extra environment variables layered over the current environment
        tool: Tool name used in error messages (default: cmd[0])
        stdin: Optional bytes fed to the process
        cwd: Working directory for the process

    Returns:
        CommandResult, regardless of exit code

    Raises:
        CommandTimeoutError: If the process exceeded the timeout
        ExecutionError: If the process could not be started
    """
    tool_name = tool or cmd[0]
    # Never log env, it may carry passwords or tokens
    logger.debug(f"Running: {' '.join(cmd)}")

    process_env = None
    if env:
        process_env = os.environ.copy()
        process_env.update(env)

    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=process_env,
            cwd=cwd,
        )
    except OSError as e:
        raise ExecutionError(tool_name, f"failed to start {tool_name}: {e}") from e

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(stdin), timeout=timeout)
    except TimeoutError:
        await _kill(process)
        raise CommandTimeoutError(tool_name, timeout)
    except asyncio.CancelledError:
        await _kill(process)
        raise

    return CommandResult(
        returncode=process.returncode,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )


async def _kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
    await process.wait()


def check_result(result: CommandResult, tool: str, action: str) -> None:
    """Raise ExecutionError for a non-zero exit, keeping the tool output."""
    if result.success:
        return
    output = result.stderr.strip() or result.stdout.strip()
    raise ExecutionError(
        tool,
        f"{tool} {action} failed (exit code {result.returncode}): {output[:1000]}",
        returncode=result.returncode,
        output=result.combined_output,
    )
