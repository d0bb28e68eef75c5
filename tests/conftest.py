"""Pytest configuration and fixtures."""

import json

import pytest

from imagesec.models.model_scan import ScanResult, ScanTool, Severity, Vulnerability, new_scan_result
from imagesec.tools.command import CommandResult
from imagesec.tools.installer import ToolInstaller
from imagesec.tools.registry import default_registry

IMAGE_DIGEST = "sha256:" + "a" * 64


def _make_vuln(vuln_id: str, severity: Severity = Severity.HIGH, package: str = "openssl") -> Vulnerability:
    return Vulnerability(id=vuln_id, severity=severity, package=package, version="1.0.0")


def _make_result(tool: ScanTool, *vulns: Vulnerability, image_digest: str = IMAGE_DIGEST) -> ScanResult:
    return new_scan_result(image_digest, tool, list(vulns))


def _command_result(stdout: str = "", stderr: str = "", returncode: int = 0) -> CommandResult:
    return CommandResult(returncode=returncode, stdout=stdout, stderr=stderr)


@pytest.fixture
def make_vuln():
    """Factory for Vulnerability records."""
    return _make_vuln


@pytest.fixture
def make_result():
    """Factory for ScanResult records with a valid digest."""
    return _make_result


@pytest.fixture
def command_result():
    """Factory for CommandResult values returned by a patched run_command."""
    return _command_result


@pytest.fixture
def image_digest() -> str:
    return IMAGE_DIGEST


@pytest.fixture
def installer() -> ToolInstaller:
    """ToolInstaller backed by the default registry."""
    return ToolInstaller(default_registry())


@pytest.fixture
def grype_output() -> str:
    """Sample `grype -o json` output."""
    return json.dumps(
        {
            "matches": [
                {
                    "vulnerability": {
                        "id": "CVE-2024-0001",
                        "severity": "Critical",
                        "description": "Heap overflow",
                        "fix": {"state": "fixed", "versions": ["3.0.8", "3.1.1"]},
                        "cvss": [
                            {"version": "2.0", "metrics": {"baseScore": 7.5}},
                            {"version": "3.1", "metrics": {"baseScore": 9.8}},
                        ],
                        "urls": ["https://nvd.nist.gov/vuln/detail/CVE-2024-0001"],
                    },
                    "artifact": {"name": "openssl", "version": "3.0.7"},
                },
                {
                    "vulnerability": {
                        "id": "CVE-2024-0002",
                        "severity": "Negligible",
                        "fix": {"state": "not-fixed", "versions": []},
                        "cvss": [],
                    },
                    "artifact": {"name": "zlib", "version": "1.2.13"},
                },
                {
                    "vulnerability": {"id": "GHSA-xxxx", "severity": "Medium"},
                    "artifact": {"name": "requests", "version": "2.30.0"},
                },
            ],
            "source": {
                "type": "image",
                "target": {
                    "userInput": "nginx:1.25",
                    "manifestDigest": IMAGE_DIGEST,
                    "repoDigests": [],
                },
            },
            "descriptor": {"name": "grype", "version": "0.106.0"},
        }
    )


@pytest.fixture
def trivy_output() -> str:
    """Sample `trivy image --format json` output."""
    return json.dumps(
        {
            "SchemaVersion": 2,
            "Trivy": {"Version": "0.68.2"},
            "Metadata": {
                "ImageID": "sha256:" + "b" * 64,
                "RepoDigests": ["nginx@" + IMAGE_DIGEST],
            },
            "Results": [
                {
                    "Target": "nginx:1.25 (debian 12.4)",
                    "Vulnerabilities": [
                        {
                            "VulnerabilityID": "CVE-2024-0001",
                            "Severity": "HIGH",
                            "PkgName": "openssl",
                            "InstalledVersion": "3.0.7",
                            "FixedVersion": "3.0.8",
                            "Description": "Heap overflow",
                            "References": ["https://avd.aquasec.com/nvd/cve-2024-0001"],
                            "CVSS": {
                                "ghsa": {"V3Score": 0},
                                "nvd": {"V2Score": 7.5, "V3Score": 8.1},
                            },
                        },
                        {
                            "VulnerabilityID": "CVE-2024-0003",
                            "Severity": "LOW",
                            "PkgName": "libc6",
                            "InstalledVersion": "2.36",
                        },
                        {
                            "VulnerabilityID": "CVE-2024-0004",
                            "Severity": "UNKNOWN",
                            "PkgName": "tar",
                            "InstalledVersion": "1.34",
                        },
                    ],
                },
                {"Target": "app/requirements.txt", "Vulnerabilities": None},
            ],
        }
    )
