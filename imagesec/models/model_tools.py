"""External tool metadata."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ToolCategory(str, Enum):
    """Role an external tool plays in the pipeline."""

    SCANNER = "scanner"
    SIGNING = "signing"
    SBOM = "sbom"


class ToolMetadata(BaseModel):
    """Registry entry describing an external binary."""

    model_config = ConfigDict(frozen=True)

    name: str
    command: str = Field(description="Executable looked up on PATH")
    min_version: str = Field(description="Minimum supported version, e.g. v1.41.0")
    install_url: str = ""
    version_args: tuple[str, ...] = Field(default=("version",), description="Arguments printing the version")
    category: ToolCategory
