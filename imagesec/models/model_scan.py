"""Vulnerability scan result models."""

import hashlib
import json
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from imagesec.errors import DigestMismatchError
from imagesec.models.common import _utc_now


class Severity(str, Enum):
    """Vulnerability severity levels."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str) -> "Severity":
        """Parse a severity string case-insensitively, unknown strings map to UNKNOWN."""
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.UNKNOWN


# Single source of truth for severity ordering
SEVERITY_PRIORITY: dict[Severity, int] = {
    Severity.CRITICAL: 4,
    Severity.HIGH: 3,
    Severity.MEDIUM: 2,
    Severity.LOW: 1,
    Severity.UNKNOWN: 0,
}

# Most severe first
SEVERITY_ORDER: list[Severity] = sorted(SEVERITY_PRIORITY, key=SEVERITY_PRIORITY.get, reverse=True)


def compare_severity(a: Severity, b: Severity) -> int:
    """Compare two severities.

    Returns:
        1 if a is more severe than b, -1 if less severe, 0 if equal
    """
    pa, pb = SEVERITY_PRIORITY[a], SEVERITY_PRIORITY[b]
    if pa > pb:
        return 1
    if pa < pb:
        return -1
    return 0


def severities_at_or_above(floor: Severity) -> list[Severity]:
    """Return severities at least as severe as floor, most severe first."""
    return [s for s in SEVERITY_ORDER if compare_severity(s, floor) >= 0]


class ScanTool(str, Enum):
    """Supported vulnerability scanners. ALL marks merged results."""

    GRYPE = "grype"
    TRIVY = "trivy"
    ALL = "all"


class Vulnerability(BaseModel):
    """A single normalized vulnerability finding."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="CVE or advisory identifier")
    severity: Severity = Field(default=Severity.UNKNOWN, description="Normalized severity")
    package: str = Field(default="", description="Affected package name")
    version: str = Field(default="", description="Installed package version")
    fixed_in: str = Field(default="", description="First fixed version, empty if unfixed")
    description: str = Field(default="", description="Advisory description")
    urls: list[str] = Field(default_factory=list, description="Reference URLs")
    cvss: float = Field(default=0.0, description="CVSS base score, 0.0 if unknown")


class VulnerabilitySummary(BaseModel):
    """Per-severity vulnerability counts."""

    model_config = ConfigDict(frozen=True)

    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    unknown: int = 0
    total: int = 0

    def count(self, severity: Severity) -> int:
        return getattr(self, severity.value)

    def counts_at_or_above(self, floor: Severity) -> dict[str, int]:
        """Counts for every severity at or above floor, most severe first."""
        return {s.value: self.count(s) for s in severities_at_or_above(floor)}

    def __str__(self) -> str:
        if self.total == 0:
            return "No vulnerabilities found"
        return (
            f"Found {self.critical} critical, {self.high} high, "
            f"{self.medium} medium, {self.low} low vulnerabilities"
        )


def summarize(vulnerabilities: list[Vulnerability]) -> VulnerabilitySummary:
    """Count vulnerabilities by severity."""
    counts = {s.value: 0 for s in Severity}
    for vuln in vulnerabilities:
        counts[vuln.severity.value] += 1
    return VulnerabilitySummary(**counts, total=len(vulnerabilities))


def compute_vulnerabilities_digest(vulnerabilities: list[Vulnerability]) -> str:
    """Return "sha256:<hex>" of the canonical JSON of the vulnerability list."""
    payload = json.dumps(
        [v.model_dump(mode="json") for v in vulnerabilities],
        sort_keys=True,
        separators=(",", ":"),
    )
    return "sha256:" + hashlib.sha256(payload.encode("utf-8")).hexdigest()


class ScanResult(BaseModel):
    """Normalized result of one scanner run, or of a merge of several.

    The digest is recomputed on every construction, including JSON loads,
    and a mismatch raises DigestMismatchError.
    """

    model_config = ConfigDict(frozen=True)

    image_digest: str = Field(default="", description="Digest of the scanned image")
    tool: ScanTool = Field(description="Scanner that produced this result")
    vulnerabilities: list[Vulnerability] = Field(default_factory=list)
    scanned_at: datetime = Field(default_factory=_utc_now)
    digest: str = Field(description="sha256 digest over the vulnerability list")
    metadata: dict[str, Any] = Field(default_factory=dict)

    @computed_field
    @property
    def summary(self) -> VulnerabilitySummary:
        return summarize(self.vulnerabilities)

    @model_validator(mode="after")
    def _check_digest(self) -> "ScanResult":
        self.validate_digest()
        return self

    def validate_digest(self) -> None:
        """Raise DigestMismatchError if the stored digest is stale or tampered."""
        actual = compute_vulnerabilities_digest(self.vulnerabilities)
        if actual != self.digest:
            raise DigestMismatchError(self.digest, actual)


def new_scan_result(
    image_digest: str,
    tool: ScanTool,
    vulnerabilities: list[Vulnerability],
    metadata: dict[str, Any] | None = None,
) -> ScanResult:
    """Build a ScanResult with its digest computed from the vulnerabilities."""
    return ScanResult(
        image_digest=image_digest,
        tool=tool,
        vulnerabilities=vulnerabilities,
        digest=compute_vulnerabilities_digest(vulnerabilities),
        metadata=metadata or {},
    )
