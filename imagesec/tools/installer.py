"""Tool availability and version checks."""

import logging
import shutil

from imagesec.consts import VERSION_PROBE_TIMEOUT
from imagesec.errors import (
    CommandTimeoutError,
    ExecutionError,
    ToolAvailabilityError,
    ToolCheckError,
    ToolNotInstalledError,
    ToolVersionError,
)
from imagesec.models.model_config import SecurityConfig
from imagesec.models.model_tools import ToolMetadata
from imagesec.tools.command import run_command
from imagesec.tools.registry import ToolRegistry
from imagesec.tools.version import Version, extract_version, parse_version

logger = logging.getLogger(__name__)


class ToolInstaller:
    """Checks that registered tools are installed and recent enough."""

    def __init__(self, registry: ToolRegistry, timeout: float = VERSION_PROBE_TIMEOUT):
        self.registry = registry
        self.timeout = timeout

    def check_installed(self, name: str) -> ToolMetadata:
        """Confirm the tool binary is on PATH.

        Raises:
            UnknownToolError: If the tool is not registered
            ToolNotInstalledError: If the binary cannot be found
        """
        tool = self.registry.get(name)
        if shutil.which(tool.command) is None:
            raise ToolNotInstalledError(tool.name, tool.install_url)
        return tool

    async def installed_version(self, name: str) -> Version:
        """Run the tool's version command and parse the result.

        Raises:
            ToolVersionError: If the version command fails or prints no parseable version
        """
        tool = self.registry.get(name)
        try:
            result = await run_command(
                [tool.command, *tool.version_args], timeout=self.timeout, tool=tool.name
            )
        except (CommandTimeoutError, ExecutionError) as e:
            raise ToolVersionError(
                tool.name, "", tool.min_version, reason=f"failed to get {tool.name} version: {e}"
            ) from e
        if not result.success:
            raise ToolVersionError(
                tool.name,
                "",
                tool.min_version,
                reason=f"failed to get {tool.name} version (exit code {result.returncode})",
            )
        try:
            return parse_version(extract_version(result.combined_output))
        except ValueError as e:
            raise ToolVersionError(
                tool.name, "", tool.min_version, reason=f"failed to parse {tool.name} version: {e}"
            ) from e

    async def check_version(self, name: str) -> Version:
        """Confirm the installed version meets the registered minimum.

        Raises:
            ToolVersionError: If the tool is too old or its version is unreadable
        """
        tool = self.registry.get(name)
        installed = await self.installed_version(name)
        minimum = parse_version(tool.min_version)
        if not installed.meets_minimum(minimum):
            raise ToolVersionError(tool.name, str(installed), str(minimum))
        logger.debug(f"{tool.name} {installed} meets minimum {minimum}")
        return installed

    async def check_installed_with_version(self, name: str) -> Version:
        self.check_installed(name)
        return await self.check_version(name)

    async def check_all_tools(self, config: SecurityConfig) -> list[ToolAvailabilityError]:
        """Check every tool the enabled configuration needs.

        All tools are checked before reporting. Failures of tools whose
        section is required are raised together as one ToolCheckError;
        failures of optional tools are logged and returned as warnings.

        Raises:
            ToolCheckError: If any required tool failed
        """
        required_failures: list[ToolAvailabilityError] = []
        warnings: list[ToolAvailabilityError] = []

        for name, required in required_tools(config).items():
            try:
                await self.check_installed_with_version(name)
            except ToolAvailabilityError as e:
                if required:
                    required_failures.append(e)
                else:
                    logger.warning(f"Optional tool check failed: {e}")
                    warnings.append(e)

        if required_failures:
            raise ToolCheckError(required_failures)
        return warnings


def required_tools(config: SecurityConfig) -> dict[str, bool]:
    """Map tool name to whether its failure is fatal for the given configuration."""
    tools: dict[str, bool] = {}
    if not config.enabled:
        return tools

    def need(name: str, required: bool) -> None:
        tools[name] = tools.get(name, False) or required

    if config.scan.enabled:
        for scanner in config.scan.scanners():
            need(scanner.value, config.scan.required)
    if config.signing.enabled:
        need("cosign", config.signing.required)
    if config.sbom.enabled:
        need("syft", config.sbom.required)
        if config.sbom.should_attach():
            need("cosign", config.sbom.required)
    return tools
