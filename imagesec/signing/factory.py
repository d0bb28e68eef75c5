"""Builds signers and verifiers from configuration."""

from imagesec.consts import COSIGN_COMMAND
from imagesec.models.model_config import SigningConfig
from imagesec.signing.base import Signer
from imagesec.signing.keybased import KeyBasedSigner
from imagesec.signing.keyless import KeylessSigner
from imagesec.signing.verifier import Verifier


def create_signer(config: SigningConfig, oidc_token: str = "", cosign_path: str = COSIGN_COMMAND) -> Signer:
    """Validate config and build the matching signer.

    Raises:
        ConfigurationError: If the configuration is incomplete
        SigningError: If keyless mode has no OIDC token available
    """
    config.validate_config()
    if config.keyless:
        return KeylessSigner(oidc_token, timeout=config.timeout, cosign_path=cosign_path)
    return KeyBasedSigner(
        config.private_key,
        password=config.password,
        timeout=config.timeout,
        cosign_path=cosign_path,
    )


def create_verifier(config: SigningConfig, cosign_path: str = COSIGN_COMMAND) -> Verifier:
    return Verifier(config, timeout=config.timeout, cosign_path=cosign_path)
