"""Severity threshold enforcement."""

import logging

from imagesec.errors import PolicyViolationError
from imagesec.models.model_config import ScanConfig
from imagesec.models.model_scan import ScanResult, Severity

logger = logging.getLogger(__name__)


def _format_counts(counts: dict[str, int]) -> str:
    parts = [f"{count} {severity}" for severity, count in counts.items()]
    if len(parts) <= 2:
        return " and ".join(parts)
    return ", ".join(parts)


def _breach(result: ScanResult, threshold: str) -> dict[str, int] | None:
    """Counts at or above threshold when any is non-zero, otherwise None."""
    if not threshold:
        return None
    counts = result.summary.counts_at_or_above(Severity(threshold))
    if sum(counts.values()) == 0:
        return None
    return counts


class PolicyEnforcer:
    """Applies failOn and warnOn floors to scan results.

    A floor of S triggers when any vulnerability at S or more severe is
    present. failOn raises PolicyViolationError; warnOn only logs.
    """

    def __init__(self, config: ScanConfig):
        self.fail_on = config.fail_on
        self.warn_on = config.warn_on

    def enforce(self, result: ScanResult | None) -> None:
        """Raise PolicyViolationError if the result breaches failOn."""
        if result is None:
            return

        warn_counts = _breach(result, self.warn_on)
        if warn_counts:
            logger.warning(
                f"WARNING: found {_format_counts(warn_counts)} vulnerabilities (warnOn: {self.warn_on})"
            )

        fail_counts = _breach(result, self.fail_on)
        if fail_counts:
            message = (
                f"policy violation: found {_format_counts(fail_counts)} vulnerabilities "
                f"(failOn: {self.fail_on})"
            )
            raise PolicyViolationError(message, threshold=self.fail_on, counts=fail_counts)

    def should_block(self, result: ScanResult | None) -> bool:
        try:
            self.enforce(result)
        except PolicyViolationError:
            return True
        return False
