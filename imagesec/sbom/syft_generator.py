"""SBOM generation with Syft."""

import json
import logging
from typing import Any

from imagesec.consts import DEFAULT_COMMAND_TIMEOUT, SYFT_COMMAND
from imagesec.errors import OutputParseError
from imagesec.models.model_sbom import SBOM, SBOMFormat, SBOMMetadata, new_sbom, parse_format
from imagesec.scanner.base import find_digest
from imagesec.tools.command import check_result, run_command

logger = logging.getLogger(__name__)

# JSON key holding the package list, per format
_PACKAGE_KEYS = {
    SBOMFormat.CYCLONEDX_JSON: "components",
    SBOMFormat.SPDX_JSON: "packages",
    SBOMFormat.SYFT_JSON: "artifacts",
}


def _generator_version(document: dict[str, Any], fmt: SBOMFormat) -> str:
    """Syft version recorded inside the document, or ""."""
    if fmt == SBOMFormat.SYFT_JSON:
        return (document.get("descriptor") or {}).get("version", "")
    if fmt == SBOMFormat.CYCLONEDX_JSON:
        tools = (document.get("metadata") or {}).get("tools") or {}
        # CycloneDX 1.5+ nests tools under "components", older specs use a list
        entries = tools.get("components", []) if isinstance(tools, dict) else tools
        for tool in entries:
            if tool.get("name") == "syft":
                return tool.get("version", "")
    if fmt == SBOMFormat.SPDX_JSON:
        for creator in (document.get("creationInfo") or {}).get("creators", []):
            if creator.startswith("Tool: syft-"):
                return creator.removeprefix("Tool: syft-")
    return ""


class SyftGenerator:
    """Wraps `syft registry:<image> -o <format>`."""

    def __init__(self, syft_path: str = SYFT_COMMAND, timeout: float = DEFAULT_COMMAND_TIMEOUT):
        self.syft_path = syft_path
        self.timeout = timeout

    async def generate(self, image_ref: str, fmt: SBOMFormat | str) -> SBOM:
        """Generate an SBOM for image_ref.

        Raises:
            ConfigurationError: If fmt is not a supported format
            ExecutionError: If syft exits non-zero
            OutputParseError: If syft prints nothing, or invalid JSON for a JSON format
        """
        fmt = parse_format(fmt)
        logger.info(f"Generating {fmt.value} SBOM for {image_ref}")
        result = await run_command(
            [self.syft_path, f"registry:{image_ref}", "-o", fmt.value],
            timeout=self.timeout,
            tool="syft",
        )
        check_result(result, "syft", "SBOM generation")

        content = result.stdout.encode("utf-8")
        if not content.strip():
            raise OutputParseError("syft", f"syft produced empty SBOM for {image_ref}", output=result.stderr)

        metadata = SBOMMetadata(tool_name="syft")
        if fmt.is_json:
            try:
                document = json.loads(content)
            except json.JSONDecodeError as e:
                raise OutputParseError("syft", f"failed to parse syft output: {e}", output=result.stdout) from e
            metadata = SBOMMetadata(
                tool_name="syft",
                tool_version=_generator_version(document, fmt),
                package_count=len(document.get(_PACKAGE_KEYS[fmt]) or []),
            )

        image_digest = find_digest(result.stderr) or find_digest(image_ref) or image_ref
        sbom = new_sbom(fmt, content, image_ref=image_ref, image_digest=image_digest, metadata=metadata)
        logger.info(f"Generated SBOM for {image_ref}: {metadata.package_count} packages, {sbom.size} bytes")
        return sbom
