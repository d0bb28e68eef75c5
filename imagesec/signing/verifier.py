"""Signature verification with cosign."""

import contextlib
import json
import logging
from collections.abc import Iterator
from typing import Any

from imagesec.consts import COSIGN_COMMAND, DEFAULT_VERIFY_TIMEOUT
from imagesec.errors import ExecutionError, VerificationError
from imagesec.models.model_config import SigningConfig
from imagesec.models.model_signing import CertificateInfo, VerifyResult
from imagesec.scanner.base import find_digest
from imagesec.signing.keys import key_file
from imagesec.tools.command import check_result, run_command

logger = logging.getLogger(__name__)


def parse_json_documents(output: str) -> list[dict[str, Any]]:
    """Decode cosign JSON output: a single document, an array, or one document per line."""
    text = output.strip()
    if not text:
        return []
    try:
        decoded = json.loads(text)
    except json.JSONDecodeError:
        decoded = []
        for line in text.splitlines():
            line = line.strip()
            if not line.startswith(("{", "[")):
                continue
            try:
                item = json.loads(line)
            except json.JSONDecodeError:
                continue
            decoded.extend(item if isinstance(item, list) else [item])
    if isinstance(decoded, dict):
        return [decoded]
    return [d for d in decoded if isinstance(d, dict)]


class Verifier:
    """Verifies image signatures in keyless or key-based mode."""

    def __init__(
        self,
        config: SigningConfig,
        timeout: float = DEFAULT_VERIFY_TIMEOUT,
        cosign_path: str = COSIGN_COMMAND,
    ):
        """Initialize Verifier.

        Raises:
            ConfigurationError: If the mode's trust material is missing
        """
        config.validate_for_verification()
        self.config = config
        self.timeout = timeout
        self.cosign_path = cosign_path

    @property
    def keyless(self) -> bool:
        return self.config.keyless

    @contextlib.contextmanager
    def verification_args(self) -> Iterator[list[str]]:
        """Mode-specific cosign flags, shared by `verify` and `verify-attestation`."""
        if self.keyless:
            yield [
                "--certificate-oidc-issuer",
                self.config.oidc_issuer,
                "--certificate-identity-regexp",
                self.config.identity_regexp,
            ]
            return
        with key_file(self.config.public_key, suffix=".pub") as key_path:
            # Key-based signatures are not uploaded to the transparency log
            yield ["--key", key_path, "--insecure-ignore-tlog=true"]

    async def verify(self, image_ref: str) -> VerifyResult:
        """Verify the signature on image_ref.

        Raises:
            VerificationError: If verification fails or its output is unusable
            CommandTimeoutError: If cosign exceeds the timeout
        """
        logger.info(f"Verifying signature of {image_ref} ({'keyless' if self.keyless else 'key-based'})")
        with self.verification_args() as args:
            result = await run_command(
                [self.cosign_path, "verify", *args, "--output", "json", image_ref],
                timeout=self.timeout,
                tool="cosign",
            )
        try:
            check_result(result, "cosign", "verify")
        except ExecutionError as e:
            raise VerificationError(f"signature verification of {image_ref} failed: {e}") from e

        return self._build_result(image_ref, parse_json_documents(result.stdout))

    def _build_result(self, image_ref: str, documents: list[dict[str, Any]]) -> VerifyResult:
        if not documents:
            raise VerificationError(f"cosign returned no verified signatures for {image_ref}")

        payload = documents[0]
        critical = payload.get("critical") or {}
        optional = payload.get("optional") or {}

        image_digest = (critical.get("image") or {}).get("docker-manifest-digest") or find_digest(image_ref)
        if not image_digest:
            raise VerificationError(f"verified signature for {image_ref} carries no image digest")

        if not self.keyless:
            return VerifyResult(image_digest=image_digest)

        issuer = optional.get("Issuer") or ""
        identity = optional.get("Subject") or ""
        if not issuer or not identity:
            raise VerificationError(
                f"keyless signature for {image_ref} is missing certificate issuer or identity"
            )
        return VerifyResult(
            image_digest=image_digest,
            keyless=True,
            certificate=CertificateInfo(issuer=issuer, identity=identity),
        )
