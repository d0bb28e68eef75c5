"""Common scanner adapter behaviour."""

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any

from imagesec.consts import DEFAULT_COMMAND_TIMEOUT
from imagesec.errors import OutputParseError
from imagesec.models.model_scan import ScanResult, ScanTool
from imagesec.tools.command import check_result, run_command
from imagesec.tools.installer import ToolInstaller
from imagesec.tools.version import Version

logger = logging.getLogger(__name__)

_DIGEST_RE = re.compile(r"(sha256:[a-f0-9]{64})")


def find_digest(text: str) -> str:
    """Return the first sha256 digest embedded in text, or ""."""
    match = _DIGEST_RE.search(text or "")
    return match.group(1) if match else ""


class Scanner(ABC):
    """Wraps one vulnerability scanner CLI and normalizes its JSON output."""

    tool: ScanTool

    def __init__(self, installer: ToolInstaller, timeout: float = DEFAULT_COMMAND_TIMEOUT):
        """Initialize Scanner.

        Args:
            installer: ToolInstaller resolving the binary and its minimum version
            timeout: Scan timeout in seconds (default: 300)
        """
        self.installer = installer
        self.timeout = timeout

    @property
    def name(self) -> str:
        return self.tool.value

    @property
    def command(self) -> str:
        return self.installer.registry.get(self.name).command

    def check_installed(self) -> None:
        self.installer.check_installed(self.name)

    async def check_version(self) -> Version:
        return await self.installer.check_version(self.name)

    async def version(self) -> str:
        return str(await self.installer.installed_version(self.name))

    async def scan(self, image_ref: str) -> ScanResult:
        """Scan an image and return a normalized ScanResult.

        Raises:
            CommandTimeoutError: If the scanner exceeded the timeout
            ExecutionError: If the scanner exited non-zero
            OutputParseError: If the scanner output is not valid JSON
        """
        logger.info(f"Scanning {image_ref} with {self.name}")
        result = await run_command(self.build_command(image_ref), timeout=self.timeout, tool=self.name)
        check_result(result, self.name, "scan")

        try:
            data = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise OutputParseError(
                self.name, f"failed to parse {self.name} output: {e}", output=result.stdout
            ) from e
        if not isinstance(data, dict):
            raise OutputParseError(
                self.name, f"unexpected {self.name} output: expected a JSON object", output=result.stdout
            )

        scan_result = self.parse_output(data, image_ref)
        logger.info(f"{self.name} scan of {image_ref}: {scan_result.summary}")
        return scan_result

    @abstractmethod
    def build_command(self, image_ref: str) -> list[str]:
        """Command line that scans image_ref and prints JSON."""

    @abstractmethod
    def parse_output(self, data: dict[str, Any], image_ref: str) -> ScanResult:
        """Convert decoded scanner JSON into a ScanResult."""
