"""Runs the configured scanners concurrently and merges their results."""

import asyncio
import logging

from imagesec.consts import DEFAULT_COMMAND_TIMEOUT
from imagesec.errors import ToolAvailabilityError
from imagesec.models.model_config import ScanConfig
from imagesec.models.model_scan import ScanResult, ScanTool
from imagesec.scanner.base import Scanner
from imagesec.scanner.grype_scanner import GrypeScanner
from imagesec.scanner.merge import merge_results
from imagesec.scanner.trivy_scanner import TrivyScanner
from imagesec.tools.installer import ToolInstaller

logger = logging.getLogger(__name__)

_SCANNER_CLASSES: dict[ScanTool, type[Scanner]] = {
    ScanTool.GRYPE: GrypeScanner,
    ScanTool.TRIVY: TrivyScanner,
}


def create_scanner(
    tool: ScanTool, installer: ToolInstaller, timeout: float = DEFAULT_COMMAND_TIMEOUT
) -> Scanner:
    """Build the adapter for a concrete scanner.

    Raises:
        ValueError: For ScanTool.ALL, which is not a single scanner
    """
    try:
        scanner_cls = _SCANNER_CLASSES[tool]
    except KeyError:
        raise ValueError(f"no scanner adapter for tool: {tool.value}") from None
    return scanner_cls(installer, timeout=timeout)


class ScanOrchestrator:
    """Fans an image out to every configured scanner."""

    def __init__(
        self,
        config: ScanConfig,
        installer: ToolInstaller,
        timeout: float = DEFAULT_COMMAND_TIMEOUT,
        scanners: list[Scanner] | None = None,
    ):
        """Initialize ScanOrchestrator.

        Args:
            config: Scan configuration (tools, required flag)
            installer: ToolInstaller for availability checks
            timeout: Per-scanner timeout in seconds (default: 300)
            scanners: Explicit adapters, overriding config.tools
        """
        self.config = config
        self.installer = installer
        self.scanners = scanners or [
            create_scanner(tool, installer, timeout) for tool in config.scanners()
        ]

    async def _available(self, scanner: Scanner) -> bool:
        """Check a scanner, raising if it is unusable and scanning is required."""
        try:
            scanner.check_installed()
            await scanner.check_version()
        except ToolAvailabilityError as e:
            if self.config.required:
                raise
            logger.warning(f"Skipping {scanner.name}: {e}")
            return False
        return True

    async def scan(self, image_ref: str) -> ScanResult | None:
        """Scan image_ref with every available scanner.

        Scanners run concurrently. Every scan is allowed to finish before the
        first failure is raised. Results from more than one scanner are merged.

        Returns:
            The single or merged result, or None when every scanner was skipped

        Raises:
            ToolAvailabilityError: If a scanner is unusable and scanning is required
            ExecutionError: If any scanner run failed
        """
        available = [s for s in self.scanners if await self._available(s)]
        if not available:
            logger.warning(f"No scanners available for {image_ref}, skipping scan")
            return None

        outcomes = await asyncio.gather(
            *(scanner.scan(image_ref) for scanner in available),
            return_exceptions=True,
        )

        results: list[ScanResult] = []
        for scanner, outcome in zip(available, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"{scanner.name} scan of {image_ref} failed: {outcome}")
                raise outcome
            results.append(outcome)

        if len(results) == 1:
            return results[0]
        return merge_results(*results)
