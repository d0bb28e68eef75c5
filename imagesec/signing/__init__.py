"""Image signing, signature verification and CI identity detection."""

from imagesec.signing.base import Signer
from imagesec.signing.context import CIProvider, ExecutionContext, fetch_github_oidc_token
from imagesec.signing.factory import create_signer, create_verifier
from imagesec.signing.failure_policy import run_with_failure_policy, sign_image, verify_image
from imagesec.signing.keybased import KeyBasedSigner, generate_key_pair
from imagesec.signing.keyless import KeylessSigner, parse_rekor_entry, validate_oidc_token
from imagesec.signing.verifier import Verifier

__all__ = [
    "CIProvider",
    "ExecutionContext",
    "KeyBasedSigner",
    "KeylessSigner",
    "Signer",
    "Verifier",
    "create_signer",
    "create_verifier",
    "fetch_github_oidc_token",
    "generate_key_pair",
    "parse_rekor_entry",
    "run_with_failure_policy",
    "sign_image",
    "validate_oidc_token",
    "verify_image",
]
