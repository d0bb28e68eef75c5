"""Keyless (OIDC + transparency log) signing."""

import contextlib
import logging
import re
from collections.abc import Iterator

from imagesec.consts import (
    ENV_COSIGN_EXPERIMENTAL,
    ENV_SIGSTORE_ID_TOKEN,
    REKOR_LOG_ENTRY_URL,
)
from imagesec.errors import ExecutionError, SigningError
from imagesec.models.model_signing import SignResult
from imagesec.scanner.base import find_digest
from imagesec.signing.base import Signer
from imagesec.tools.command import check_result, run_command

logger = logging.getLogger(__name__)

_REKOR_URL_RE = re.compile(r"https://[^\s]*rekor[^\s]*")
_TLOG_INDEX_RE = re.compile(r"tlog entry created with index:\s*(\d+)")


def parse_rekor_entry(output: str) -> str:
    """Extract the transparency log entry reference from cosign output, or ""."""
    match = _REKOR_URL_RE.search(output)
    if match:
        return match.group(0)
    match = _TLOG_INDEX_RE.search(output)
    if match:
        return REKOR_LOG_ENTRY_URL.format(index=match.group(1))
    return ""


def validate_oidc_token(token: str) -> bool:
    """Check that token has the three-segment JWT shape."""
    parts = token.split(".")
    return len(parts) == 3 and all(parts)


class KeylessSigner(Signer):
    """Signs with a short-lived Fulcio certificate bound to an OIDC identity."""

    def __init__(self, oidc_token: str, **kwargs):
        super().__init__(**kwargs)
        if not oidc_token:
            raise SigningError("OIDC token required for keyless signing")
        self._oidc_token = oidc_token

    @property
    def keyless(self) -> bool:
        return True

    @contextlib.contextmanager
    def signing_args(self) -> Iterator[list[str]]:
        yield ["--yes"]

    def signing_env(self) -> dict[str, str]:
        return {ENV_COSIGN_EXPERIMENTAL: "1", ENV_SIGSTORE_ID_TOKEN: self._oidc_token}

    async def sign(self, image_ref: str) -> SignResult:
        logger.info(f"Signing {image_ref} (keyless)")
        with self.signing_args() as args:
            result = await run_command(
                [self.cosign_path, "sign", *args, image_ref],
                timeout=self.timeout,
                env=self.signing_env(),
                tool="cosign",
            )
        try:
            check_result(result, "cosign", "sign")
        except ExecutionError as e:
            raise SigningError(f"keyless signing of {image_ref} failed: {e}") from e

        rekor_entry = parse_rekor_entry(result.combined_output)
        if rekor_entry:
            logger.info(f"Transparency log entry: {rekor_entry}")
        return SignResult(image_digest=find_digest(image_ref), rekor_entry=rekor_entry)
