"""Reconciles findings from several scanners into one result."""

import logging

from imagesec.models.model_scan import (
    ScanResult,
    ScanTool,
    Vulnerability,
    compare_severity,
    new_scan_result,
)

logger = logging.getLogger(__name__)


def merge_results(*results: ScanResult | None) -> ScanResult | None:
    """Merge scan results, de-duplicating vulnerabilities by ID.

    When two scanners report the same ID, the more severe record wins and
    ties keep the record seen first. Output order is first-seen order.

    Returns:
        Merged result with tool "all", or None if no non-None result was given
    """
    present = [r for r in results if r is not None]
    if not present:
        return None

    merged: dict[str, Vulnerability] = {}
    image_digest = ""
    tools: list[str] = []

    for result in present:
        if not image_digest and result.image_digest:
            image_digest = result.image_digest
        if result.tool.value not in tools:
            tools.append(result.tool.value)
        for vuln in result.vulnerabilities:
            existing = merged.get(vuln.id)
            if existing is None or compare_severity(vuln.severity, existing.severity) > 0:
                merged[vuln.id] = vuln

    result = new_scan_result(
        image_digest,
        ScanTool.ALL,
        list(merged.values()),
        metadata={"merged_tools": tools},
    )
    logger.debug(
        f"Merged {len(present)} results from {', '.join(tools)}: {result.summary.total} unique vulnerabilities"
    )
    return result
