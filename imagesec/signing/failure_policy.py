"""Fail-open / fail-closed handling for signing, verification and attestation.

With required=True a failure propagates and must abort the workflow. With
required=False the failure is logged as a warning and reported as a
SKIPPED outcome so deployment continues without the guarantee.
Configuration errors always propagate.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from imagesec.consts import COSIGN_COMMAND
from imagesec.errors import ConfigurationError, SecurityError
from imagesec.models.model_config import SigningConfig
from imagesec.models.model_outcome import Outcome
from imagesec.models.model_signing import SignResult, VerifyResult
from imagesec.signing.factory import create_signer, create_verifier

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_with_failure_policy(
    operation: str,
    required: bool,
    action: Callable[[], Awaitable[T]],
) -> Outcome[T]:
    """Run action under the required flag.

    Args:
        operation: Human readable name used in the warning
        required: Whether failure must abort the caller
        action: Zero-argument coroutine function performing the operation

    Raises:
        ConfigurationError: Always, regardless of required
        SecurityError: Any operation failure when required is True
    """
    try:
        value = await action()
    except ConfigurationError:
        raise
    except SecurityError as e:
        if required:
            raise
        logger.warning(f"{operation} failed (not required, continuing): {e}")
        return Outcome.skipped(e)
    return Outcome.succeeded(value)


async def sign_image(
    config: SigningConfig,
    image_ref: str,
    oidc_token: str = "",
    cosign_path: str = COSIGN_COMMAND,
) -> Outcome[SignResult]:
    """Sign image_ref according to config, honouring config.required."""
    if not config.enabled:
        logger.debug("Signing disabled, skipping")
        return Outcome.skipped()
    config.validate_config()

    async def _sign() -> SignResult:
        signer = create_signer(config, oidc_token, cosign_path=cosign_path)
        return await signer.sign(image_ref)

    return await run_with_failure_policy(f"Signing {image_ref}", config.required, _sign)


async def verify_image(
    config: SigningConfig,
    image_ref: str,
    cosign_path: str = COSIGN_COMMAND,
) -> Outcome[VerifyResult]:
    """Verify image_ref's signature, honouring config.required."""
    if not config.enabled:
        logger.debug("Signing disabled, skipping verification")
        return Outcome.skipped()
    verifier = create_verifier(config, cosign_path=cosign_path)
    return await run_with_failure_policy(
        f"Verification of {image_ref}", config.required, lambda: verifier.verify(image_ref)
    )
