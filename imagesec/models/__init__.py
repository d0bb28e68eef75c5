"""Pydantic models for imagesec."""

from imagesec.models.model_config import (
    CacheConfig,
    OutputConfig,
    SBOMConfig,
    ScanConfig,
    SecurityConfig,
    SigningConfig,
)
from imagesec.models.model_outcome import Outcome, OutcomeStatus
from imagesec.models.model_sbom import (
    SBOM,
    SBOMFormat,
    SBOMMetadata,
    new_sbom,
    parse_format,
)
from imagesec.models.model_scan import (
    ScanResult,
    ScanTool,
    Severity,
    Vulnerability,
    VulnerabilitySummary,
    compare_severity,
    new_scan_result,
    summarize,
)
from imagesec.models.model_signing import CertificateInfo, SignResult, VerifyResult
from imagesec.models.model_tools import ToolCategory, ToolMetadata

__all__ = [
    # Config
    "CacheConfig",
    "OutputConfig",
    "SBOMConfig",
    "ScanConfig",
    "SecurityConfig",
    "SigningConfig",
    # Outcome
    "Outcome",
    "OutcomeStatus",
    # SBOM
    "SBOM",
    "SBOMFormat",
    "SBOMMetadata",
    "new_sbom",
    "parse_format",
    # Scan
    "ScanResult",
    "ScanTool",
    "Severity",
    "Vulnerability",
    "VulnerabilitySummary",
    "compare_severity",
    "new_scan_result",
    "summarize",
    # Signing
    "CertificateInfo",
    "SignResult",
    "VerifyResult",
    # Tools
    "ToolCategory",
    "ToolMetadata",
]
