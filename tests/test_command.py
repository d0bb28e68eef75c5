"""Tests for the subprocess runner."""

import asyncio
import sys

import pytest

from imagesec.errors import CommandTimeoutError, ExecutionError
from imagesec.tools.command import CommandResult, check_result, run_command


class TestRunCommand:
    """Tests for run_command against real child processes."""

    @pytest.mark.asyncio
    async def test_captures_output(self) -> None:
        """Test stdout, stderr and exit code are captured."""
        result = await run_command(
            [sys.executable, "-c", "import sys; print('out'); print('err', file=sys.stderr); sys.exit(3)"],
            timeout=10,
        )

        assert result.returncode == 3
        assert result.stdout.strip() == "out"
        assert result.stderr.strip() == "err"
        assert not result.success

    @pytest.mark.asyncio
    async def test_extra_env(self) -> None:
        """Test extra environment variables reach the child."""
        result = await run_command(
            [sys.executable, "-c", "import os; print(os.environ['IMAGESEC_TEST_VALUE'])"],
            timeout=10,
            env={"IMAGESEC_TEST_VALUE": "from-parent"},
        )

        assert result.success
        assert result.stdout.strip() == "from-parent"

    @pytest.mark.asyncio
    async def test_stdin(self) -> None:
        """Test bytes are fed to the child's stdin."""
        result = await run_command(
            [sys.executable, "-c", "import sys; print(sys.stdin.read().upper())"],
            timeout=10,
            stdin=b"payload",
        )

        assert result.stdout.strip() == "PAYLOAD"

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self) -> None:
        """Test a slow process is killed and reported as a timeout."""
        with pytest.raises(CommandTimeoutError) as exc_info:
            await run_command(
                [sys.executable, "-c", "import time; time.sleep(30)"],
                timeout=0.5,
                tool="sleeper",
            )

        assert exc_info.value.tool == "sleeper"
        assert exc_info.value.timeout == 0.5

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self) -> None:
        """Test cancelling the caller cancels the command."""
        task = asyncio.create_task(
            run_command([sys.executable, "-c", "import time; time.sleep(30)"], timeout=60)
        )
        await asyncio.sleep(0.3)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await asyncio.wait_for(task, timeout=10)

    @pytest.mark.asyncio
    async def test_missing_binary(self) -> None:
        """Test an unknown executable raises ExecutionError."""
        with pytest.raises(ExecutionError, match="failed to start"):
            await run_command(["imagesec-definitely-not-installed"], timeout=5)


class TestCheckResult:
    """Tests for check_result."""

    def test_success_passes(self) -> None:
        """Test a zero exit is accepted."""
        check_result(CommandResult(returncode=0, stdout="ok", stderr=""), "cosign", "sign")

    def test_failure_prefers_stderr(self) -> None:
        """Test the error message carries stderr and the exit code."""
        with pytest.raises(ExecutionError) as exc_info:
            check_result(CommandResult(returncode=1, stdout="noise", stderr="no matching signatures"), "cosign", "verify")

        assert "cosign verify failed (exit code 1): no matching signatures" == str(exc_info.value)
        assert exc_info.value.returncode == 1
        assert "noise" in exc_info.value.output
