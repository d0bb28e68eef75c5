"""Exception hierarchy for the security pipeline.

Every failure a caller may need to tell apart has its own class: a missing
tool, a tool that is too old, a timed out or failed subprocess, a policy
violation, and signature or attestation verification failures.
"""


class SecurityError(Exception):
    """Base security pipeline error."""

    pass


class ConfigurationError(SecurityError):
    """Invalid or incomplete configuration."""

    pass


class ToolAvailabilityError(SecurityError):
    """A required external tool cannot be used."""

    def __init__(self, tool: str, message: str):
        super().__init__(message)
        self.tool = tool


class ToolNotInstalledError(ToolAvailabilityError):
    """Tool binary is not on PATH."""

    def __init__(self, tool: str, install_url: str = ""):
        message = f"{tool} is not installed"
        if install_url:
            message += f" (install: {install_url})"
        super().__init__(tool, message)
        self.install_url = install_url


class ToolVersionError(ToolAvailabilityError):
    """Installed tool is older than the supported minimum, or its version is unreadable."""

    def __init__(self, tool: str, installed: str, minimum: str, reason: str = ""):
        message = reason or f"{tool} version {installed} is below minimum required {minimum}"
        super().__init__(tool, message)
        self.installed = installed
        self.minimum = minimum


class UnknownToolError(SecurityError, KeyError):
    """Tool name is not present in the registry."""

    def __init__(self, tool: str):
        super().__init__(f"tool not found in registry: {tool}")
        self.tool = tool

    def __str__(self) -> str:
        return str(self.args[0])


class ToolCheckError(SecurityError):
    """One or more required tools failed availability checks."""

    def __init__(self, failures: list[ToolAvailabilityError]):
        lines = "\n".join(f"  - {failure}" for failure in failures)
        super().__init__(f"tool check failed:\n{lines}")
        self.failures = failures


class ExecutionError(SecurityError):
    """External tool exited unsuccessfully."""

    def __init__(self, tool: str, message: str, returncode: int | None = None, output: str = ""):
        super().__init__(message)
        self.tool = tool
        self.returncode = returncode
        self.output = output


class CommandTimeoutError(ExecutionError):
    """External tool exceeded its time budget and was killed."""

    def __init__(self, tool: str, timeout: float):
        super().__init__(tool, f"{tool} timed out after {timeout}s")
        self.timeout = timeout


class OutputParseError(ExecutionError):
    """External tool output could not be parsed."""

    pass


class PolicyViolationError(SecurityError):
    """Scan result breaches the configured failOn threshold."""

    def __init__(self, message: str, threshold: str, counts: dict[str, int]):
        super().__init__(message)
        self.threshold = threshold
        self.counts = counts


class SigningError(SecurityError):
    """Image or attestation signing failed."""

    pass


class VerificationError(SecurityError):
    """Signature or attestation could not be verified."""

    pass


class DigestMismatchError(SecurityError):
    """Stored content digest does not match the recomputed digest."""

    def __init__(self, expected: str, actual: str):
        super().__init__(f"digest mismatch: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual
