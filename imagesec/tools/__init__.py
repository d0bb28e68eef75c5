"""External tool registry, version checks and subprocess execution."""

from imagesec.tools.command import CommandResult, check_result, run_command
from imagesec.tools.installer import ToolInstaller, required_tools
from imagesec.tools.registry import ToolRegistry, default_registry
from imagesec.tools.version import Version, extract_version, parse_version

__all__ = [
    "CommandResult",
    "check_result",
    "run_command",
    "ToolInstaller",
    "required_tools",
    "ToolRegistry",
    "default_registry",
    "Version",
    "extract_version",
    "parse_version",
]
