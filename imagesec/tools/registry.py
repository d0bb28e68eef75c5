"""Registry of external tools and their minimum versions."""

from imagesec.consts import (
    COSIGN_COMMAND,
    COSIGN_INSTALL_URL,
    COSIGN_MIN_VERSION,
    GRYPE_COMMAND,
    GRYPE_INSTALL_URL,
    GRYPE_MIN_VERSION,
    SYFT_COMMAND,
    SYFT_INSTALL_URL,
    SYFT_MIN_VERSION,
    TRIVY_COMMAND,
    TRIVY_INSTALL_URL,
    TRIVY_MIN_VERSION,
)
from imagesec.errors import UnknownToolError
from imagesec.models.model_tools import ToolCategory, ToolMetadata


class ToolRegistry:
    """Caller-owned lookup table of ToolMetadata keyed by tool name."""

    def __init__(self, tools: list[ToolMetadata] | None = None):
        self._tools: dict[str, ToolMetadata] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: ToolMetadata) -> None:
        """Add or replace a tool entry."""
        self._tools[tool.name] = tool

    def get(self, name: str) -> ToolMetadata:
        try:
            return self._tools[name]
        except KeyError:
            raise UnknownToolError(name) from None

    def list_tools(self) -> list[ToolMetadata]:
        return list(self._tools.values())

    def by_category(self, category: ToolCategory) -> list[ToolMetadata]:
        return [t for t in self._tools.values() if t.category == category]

    def __contains__(self, name: object) -> bool:
        return name in self._tools


def default_registry() -> ToolRegistry:
    """Build a registry with cosign, syft, grype and trivy."""
    return ToolRegistry(
        [
            ToolMetadata(
                name="cosign",
                command=COSIGN_COMMAND,
                min_version=COSIGN_MIN_VERSION,
                install_url=COSIGN_INSTALL_URL,
                version_args=("version",),
                category=ToolCategory.SIGNING,
            ),
            ToolMetadata(
                name="syft",
                command=SYFT_COMMAND,
                min_version=SYFT_MIN_VERSION,
                install_url=SYFT_INSTALL_URL,
                version_args=("version",),
                category=ToolCategory.SBOM,
            ),
            ToolMetadata(
                name="grype",
                command=GRYPE_COMMAND,
                min_version=GRYPE_MIN_VERSION,
                install_url=GRYPE_INSTALL_URL,
                version_args=("version",),
                category=ToolCategory.SCANNER,
            ),
            ToolMetadata(
                name="trivy",
                command=TRIVY_COMMAND,
                min_version=TRIVY_MIN_VERSION,
                install_url=TRIVY_INSTALL_URL,
                version_args=("--version",),
                category=ToolCategory.SCANNER,
            ),
        ]
    )
