"""Security pipeline orchestration for one container image.

Steps, in order:
1. Scan with the configured scanners and merge their findings
2. Enforce failOn / warnOn policy (a violation aborts the run)
3. Sign the image (fail-open unless signing is required)
4. Generate the SBOM, save it locally and attach it as a signed attestation
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from imagesec.consts import SBOM_FILENAME_TEMPLATE, SCAN_RESULT_FILENAME
from imagesec.models.model_config import SecurityConfig
from imagesec.models.model_outcome import Outcome
from imagesec.models.model_sbom import SBOM
from imagesec.models.model_scan import ScanResult
from imagesec.models.model_signing import SignResult
from imagesec.sbom.attacher import attach_sbom
from imagesec.sbom.syft_generator import SyftGenerator
from imagesec.scanner.policy import PolicyEnforcer
from imagesec.scanner.scan_orchestrator import ScanOrchestrator
from imagesec.signing.context import ExecutionContext
from imagesec.signing.failure_policy import run_with_failure_policy, sign_image
from imagesec.tools.installer import ToolInstaller
from imagesec.tools.registry import default_registry

logger = logging.getLogger(__name__)


def resolve_output_path(local: str, default_name: str) -> Path:
    """Treat local as a file path when it has a suffix, otherwise as a directory."""
    path = Path(local)
    if not path.suffix:
        path = path / default_name
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


@dataclass
class SecurityReport:
    """Results of every pipeline step for one image."""

    image_ref: str
    scan: ScanResult | None = None
    signing: Outcome[SignResult] = field(default_factory=Outcome.skipped)
    sbom: Outcome[SBOM] = field(default_factory=Outcome.skipped)
    attestation: Outcome[None] = field(default_factory=Outcome.skipped)


class SecurityExecutor:
    """Runs scanning, signing and SBOM steps according to a SecurityConfig."""

    def __init__(
        self,
        config: SecurityConfig,
        installer: ToolInstaller | None = None,
        context: ExecutionContext | None = None,
        orchestrator: ScanOrchestrator | None = None,
        generator: SyftGenerator | None = None,
    ):
        """Initialize SecurityExecutor.

        Args:
            config: Security configuration, validated here
            installer: Tool checks (default: built from default_registry())
            context: CI execution context (default: detected from environment)
            orchestrator: Scan fan-out (default: built from config.scan)
            generator: SBOM generator (default: SyftGenerator)

        Raises:
            ConfigurationError: If any enabled section is invalid
        """
        config.validate_config()
        self.config = config
        self.installer = installer or ToolInstaller(default_registry())
        self.context = context or ExecutionContext.detect()
        self.orchestrator = orchestrator or ScanOrchestrator(config.scan, self.installer)
        self.generator = generator or SyftGenerator()
        self.policy = PolicyEnforcer(config.scan)

    async def execute_scanning(self, image_ref: str) -> ScanResult | None:
        """Scan, merge and enforce policy.

        Raises:
            PolicyViolationError: If findings breach failOn
            ToolAvailabilityError: If a required scanner is unusable
            ExecutionError: If any scanner fails
        """
        if not self.config.scan.enabled:
            logger.info("Scanning disabled, skipping")
            return None

        result = await self.orchestrator.scan(image_ref)
        if result is not None and self.config.scan.output.local:
            path = resolve_output_path(self.config.scan.output.local, SCAN_RESULT_FILENAME)
            path.write_text(result.model_dump_json(indent=2))
            logger.info(f"Saved scan result to {path}")

        self.policy.enforce(result)
        return result

    async def _oidc_token(self) -> str:
        if not (self.config.signing.enabled and self.config.signing.keyless):
            return ""
        return await self.context.resolve_oidc_token()

    async def execute_signing(self, image_ref: str) -> Outcome[SignResult]:
        return await sign_image(self.config.signing, image_ref, oidc_token=await self._oidc_token())

    async def execute_sbom(self, image_ref: str) -> tuple[Outcome[SBOM], Outcome[None]]:
        """Generate, save and attach the SBOM.

        Returns:
            Outcomes of generation and of attestation
        """
        sbom_config = self.config.sbom
        if not sbom_config.enabled:
            logger.info("SBOM generation disabled, skipping")
            return Outcome.skipped(), Outcome.skipped()

        generated = await run_with_failure_policy(
            f"SBOM generation for {image_ref}",
            sbom_config.required,
            lambda: self.generator.generate(image_ref, sbom_config.format),
        )
        if not generated.ok:
            return generated, Outcome.skipped()

        sbom = generated.unwrap()
        if sbom_config.output.local:
            path = resolve_output_path(
                sbom_config.output.local, SBOM_FILENAME_TEMPLATE.format(extension=sbom.format.extension)
            )
            path.write_bytes(sbom.content)
            logger.info(f"Saved SBOM to {path}")

        if not sbom_config.should_attach():
            return generated, Outcome.skipped()
        if not self.config.signing.enabled:
            logger.warning("SBOM attestation requested but signing is disabled, not attaching")
            return generated, Outcome.skipped()

        attached = await attach_sbom(self.config.signing, sbom, image_ref, oidc_token=await self._oidc_token())
        return generated, attached

    async def run(self, image_ref: str) -> SecurityReport:
        """Run every enabled step for image_ref.

        Raises:
            PolicyViolationError: If the scan blocks deployment; later steps do not run
        """
        report = SecurityReport(image_ref=image_ref)
        if not self.config.enabled:
            logger.info("Security pipeline disabled")
            return report

        logger.info(f"Running security pipeline for {image_ref}")
        report.scan = await self.execute_scanning(image_ref)
        report.signing = await self.execute_signing(image_ref)
        report.sbom, report.attestation = await self.execute_sbom(image_ref)
        logger.info(f"Security pipeline complete for {image_ref}")
        return report
