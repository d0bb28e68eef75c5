"""Vulnerability scanner adapters, merge engine and policy enforcement."""

from imagesec.scanner.base import Scanner
from imagesec.scanner.grype_scanner import GrypeScanner
from imagesec.scanner.merge import merge_results
from imagesec.scanner.policy import PolicyEnforcer
from imagesec.scanner.scan_orchestrator import ScanOrchestrator, create_scanner
from imagesec.scanner.trivy_scanner import TrivyScanner

__all__ = [
    "GrypeScanner",
    "PolicyEnforcer",
    "ScanOrchestrator",
    "Scanner",
    "TrivyScanner",
    "create_scanner",
    "merge_results",
]
