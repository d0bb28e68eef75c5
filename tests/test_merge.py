"""Tests for merging scan results."""

from imagesec.models.model_scan import ScanTool, Severity
from imagesec.scanner.merge import merge_results


class TestMergeResults:
    """Tests for merge_results."""

    def test_no_input(self) -> None:
        """Test merging nothing yields None."""
        assert merge_results() is None
        assert merge_results(None, None) is None

    def test_single_result(self, make_vuln, make_result) -> None:
        """Test a single result is re-tagged as merged."""
        result = make_result(ScanTool.GRYPE, make_vuln("CVE-1"))
        merged = merge_results(None, result)

        assert merged.tool == ScanTool.ALL
        assert [v.id for v in merged.vulnerabilities] == ["CVE-1"]
        assert merged.metadata["merged_tools"] == ["grype"]

    def test_higher_severity_wins(self, make_vuln, make_result) -> None:
        """Test duplicate IDs keep the more severe record."""
        grype = make_result(ScanTool.GRYPE, make_vuln("CVE-1", Severity.MEDIUM, package="from-grype"))
        trivy = make_result(ScanTool.TRIVY, make_vuln("CVE-1", Severity.CRITICAL, package="from-trivy"))

        merged = merge_results(grype, trivy)

        assert len(merged.vulnerabilities) == 1
        assert merged.vulnerabilities[0].severity == Severity.CRITICAL
        assert merged.vulnerabilities[0].package == "from-trivy"

    def test_tie_keeps_first_seen(self, make_vuln, make_result) -> None:
        """Test equal severities keep the first record."""
        grype = make_result(ScanTool.GRYPE, make_vuln("CVE-1", Severity.HIGH, package="first"))
        trivy = make_result(ScanTool.TRIVY, make_vuln("CVE-1", Severity.HIGH, package="second"))

        assert merge_results(grype, trivy).vulnerabilities[0].package == "first"

    def test_unknown_never_overrides(self, make_vuln, make_result) -> None:
        """Test a known severity is not downgraded by an unknown one."""
        grype = make_result(ScanTool.GRYPE, make_vuln("CVE-1", Severity.LOW))
        trivy = make_result(ScanTool.TRIVY, make_vuln("CVE-1", Severity.UNKNOWN))

        assert merge_results(grype, trivy).vulnerabilities[0].severity == Severity.LOW

    def test_first_seen_order(self, make_vuln, make_result) -> None:
        """Test output follows first-seen order across inputs."""
        grype = make_result(ScanTool.GRYPE, make_vuln("CVE-2"), make_vuln("CVE-1"))
        trivy = make_result(ScanTool.TRIVY, make_vuln("CVE-3"), make_vuln("CVE-2", Severity.CRITICAL))

        merged = merge_results(grype, trivy)

        assert [v.id for v in merged.vulnerabilities] == ["CVE-2", "CVE-1", "CVE-3"]
        assert merged.metadata["merged_tools"] == ["grype", "trivy"]

    def test_total_bounded_by_inputs(self, make_vuln, make_result) -> None:
        """Test merged total never exceeds the sum of inputs."""
        grype = make_result(ScanTool.GRYPE, make_vuln("A"), make_vuln("B"), make_vuln("C"))
        trivy = make_result(ScanTool.TRIVY, make_vuln("B"), make_vuln("D"))

        merged = merge_results(grype, trivy)

        assert merged.summary.total == 4
        assert merged.summary.total <= grype.summary.total + trivy.summary.total

    def test_first_non_empty_image_digest(self, make_vuln, make_result, image_digest) -> None:
        """Test the image digest comes from the first input that has one."""
        grype = make_result(ScanTool.GRYPE, make_vuln("A"), image_digest="")
        trivy = make_result(ScanTool.TRIVY, make_vuln("B"), image_digest=image_digest)

        assert merge_results(grype, trivy).image_digest == image_digest

    def test_merged_digest_is_valid(self, make_vuln, make_result) -> None:
        """Test the merged result carries a digest over its own findings."""
        merged = merge_results(
            make_result(ScanTool.GRYPE, make_vuln("A")),
            make_result(ScanTool.TRIVY, make_vuln("B")),
        )
        merged.validate_digest()
