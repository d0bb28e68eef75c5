"""Trivy CLI adapter."""

from typing import Any

from imagesec.models.model_scan import ScanResult, ScanTool, Severity, Vulnerability, new_scan_result
from imagesec.scanner.base import Scanner, find_digest

_SEVERITY_MAP = {
    "CRITICAL": Severity.CRITICAL,
    "HIGH": Severity.HIGH,
    "MEDIUM": Severity.MEDIUM,
    "LOW": Severity.LOW,
}


def map_trivy_severity(value: str | None) -> Severity:
    return _SEVERITY_MAP.get((value or "").strip().upper(), Severity.UNKNOWN)


def _cvss_score(cvss: dict[str, Any] | list[Any] | None) -> float:
    """First non-zero V3Score across vendor entries."""
    if isinstance(cvss, dict):
        entries = list(cvss.values())
    else:
        entries = list(cvss or [])
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        score = float(entry.get("V3Score") or 0.0)
        if score > 0:
            return score
    return 0.0


def _image_digest(data: dict[str, Any], image_ref: str) -> str:
    metadata = data.get("Metadata") or {}
    for repo_digest in metadata.get("RepoDigests") or []:
        digest = find_digest(repo_digest)
        if digest:
            return digest
    image_id = metadata.get("ImageID") or ""
    if image_id.startswith("sha256:"):
        return image_id
    return find_digest(image_ref)


class TrivyScanner(Scanner):
    """Runs `trivy image --format json <image>`."""

    tool = ScanTool.TRIVY

    def build_command(self, image_ref: str) -> list[str]:
        return [self.command, "image", "--format", "json", image_ref]

    def parse_output(self, data: dict[str, Any], image_ref: str) -> ScanResult:
        vulnerabilities: list[Vulnerability] = []
        for target in data.get("Results") or []:
            # Trivy emits null for targets without findings
            for vuln in target.get("Vulnerabilities") or []:
                vulnerabilities.append(
                    Vulnerability(
                        id=vuln.get("VulnerabilityID", ""),
                        severity=map_trivy_severity(vuln.get("Severity")),
                        package=vuln.get("PkgName", ""),
                        version=vuln.get("InstalledVersion", ""),
                        fixed_in=vuln.get("FixedVersion") or "",
                        description=vuln.get("Description") or "",
                        urls=list(vuln.get("References") or []),
                        cvss=_cvss_score(vuln.get("CVSS")),
                    )
                )

        metadata = {}
        trivy_version = (data.get("Trivy") or {}).get("Version")
        if trivy_version:
            metadata["trivy_version"] = trivy_version

        return new_scan_result(_image_digest(data, image_ref), ScanTool.TRIVY, vulnerabilities, metadata)
