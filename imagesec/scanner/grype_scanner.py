"""Grype CLI adapter."""

from typing import Any

from imagesec.models.model_scan import ScanResult, ScanTool, Severity, Vulnerability, new_scan_result
from imagesec.scanner.base import Scanner, find_digest

_SEVERITY_MAP = {
    "critical": Severity.CRITICAL,
    "high": Severity.HIGH,
    "medium": Severity.MEDIUM,
    "low": Severity.LOW,
    "negligible": Severity.LOW,
}


def map_grype_severity(value: str | None) -> Severity:
    return _SEVERITY_MAP.get((value or "").strip().lower(), Severity.UNKNOWN)


def _cvss_score(entries: list[dict[str, Any]] | None) -> float:
    """First non-zero v3 base score, 0.0 when there is none."""
    for entry in entries or []:
        if not str(entry.get("version", "")).startswith("3"):
            continue
        score = float((entry.get("metrics") or {}).get("baseScore") or 0.0)
        if score > 0:
            return score
    return 0.0


def _fixed_in(fix: dict[str, Any] | None) -> str:
    fix = fix or {}
    versions = fix.get("versions") or []
    if fix.get("state") == "fixed" and versions:
        return versions[0]
    return ""


def _image_digest(data: dict[str, Any], image_ref: str) -> str:
    target = (data.get("source") or {}).get("target") or {}
    if isinstance(target, dict):
        if target.get("manifestDigest"):
            return target["manifestDigest"]
        for repo_digest in target.get("repoDigests") or []:
            digest = find_digest(repo_digest)
            if digest:
                return digest
        digest = find_digest(target.get("userInput", ""))
        if digest:
            return digest
    return find_digest(image_ref)


class GrypeScanner(Scanner):
    """Runs `grype registry:<image> -o json`."""

    tool = ScanTool.GRYPE

    def build_command(self, image_ref: str) -> list[str]:
        return [self.command, f"registry:{image_ref}", "-o", "json"]

    def parse_output(self, data: dict[str, Any], image_ref: str) -> ScanResult:
        vulnerabilities: list[Vulnerability] = []
        for match in data.get("matches") or []:
            vuln = match.get("vulnerability") or {}
            artifact = match.get("artifact") or {}
            vulnerabilities.append(
                Vulnerability(
                    id=vuln.get("id", ""),
                    severity=map_grype_severity(vuln.get("severity")),
                    package=artifact.get("name", ""),
                    version=artifact.get("version", ""),
                    fixed_in=_fixed_in(vuln.get("fix")),
                    description=vuln.get("description") or "",
                    urls=list(vuln.get("urls") or []),
                    cvss=_cvss_score(vuln.get("cvss")),
                )
            )

        metadata = {}
        grype_version = (data.get("descriptor") or {}).get("version")
        if grype_version:
            metadata["grype_version"] = grype_version

        return new_scan_result(_image_digest(data, image_ref), ScanTool.GRYPE, vulnerabilities, metadata)
