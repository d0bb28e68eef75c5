"""Signed SBOM attestations with cosign."""

import base64
import json
import logging
import re
from typing import Any

from imagesec.consts import COSIGN_COMMAND, COSIGN_CUSTOM_PREDICATE_TYPE, DEFAULT_ATTEST_TIMEOUT
from imagesec.errors import ExecutionError, SigningError, VerificationError
from imagesec.models.model_config import SigningConfig
from imagesec.models.model_outcome import Outcome
from imagesec.models.model_sbom import SBOM, SBOMFormat, new_sbom, parse_format
from imagesec.signing.factory import create_signer, create_verifier
from imagesec.signing.failure_policy import run_with_failure_policy
from imagesec.signing.keys import temporary_file
from imagesec.signing.verifier import parse_json_documents
from imagesec.tools.command import check_result, run_command

logger = logging.getLogger(__name__)

_DECODER = json.JSONDecoder()
_WHITESPACE = re.compile(r"\s*")


def decode_payload(document: dict[str, Any]) -> str:
    """Decode a DSSE envelope's base64 payload to text."""
    payload = document.get("payload")
    if not payload:
        raise VerificationError("attestation envelope has no payload")
    try:
        return base64.b64decode(payload).decode("utf-8")
    except (ValueError, TypeError) as e:
        raise VerificationError(f"failed to decode attestation payload: {e}") from e


def _parse_statement(payload: str) -> dict[str, Any]:
    try:
        statement = json.loads(payload)
    except ValueError as e:
        raise VerificationError(f"failed to decode attestation payload: {e}") from e
    if not isinstance(statement, dict):
        raise VerificationError("attestation payload is not an in-toto statement")
    return statement


def decode_statement(document: dict[str, Any]) -> dict[str, Any]:
    """Decode the in-toto statement from a DSSE envelope's base64 payload."""
    return _parse_statement(decode_payload(document))


def _raw_member(text: str, key: str) -> str | None:
    """Verbatim JSON text of a top-level member of the object in text, or None.

    text must already be known to be a valid JSON object.
    """
    idx = _WHITESPACE.match(text, 0).end() + 1
    while True:
        idx = _WHITESPACE.match(text, idx).end()
        if text[idx] == "}":
            return None
        name, idx = _DECODER.raw_decode(text, idx)
        # skip the ":" separator
        idx = _WHITESPACE.match(text, idx).end() + 1
        start = _WHITESPACE.match(text, idx).end()
        _, idx = _DECODER.raw_decode(text, start)
        if name == key:
            return text[start:idx]
        idx = _WHITESPACE.match(text, idx).end()
        if text[idx] == ",":
            idx += 1


def _predicate_content(statement: dict[str, Any], payload: str, fmt: SBOMFormat) -> bytes | None:
    """SBOM bytes from a statement whose predicate type matches fmt, else None.

    JSON predicates are returned exactly as they appear in the signed payload.
    """
    predicate_type = statement.get("predicateType")
    predicate = statement.get("predicate")
    if predicate is None:
        return None

    if fmt.attestation_type == "custom":
        if predicate_type not in (fmt.predicate_type, COSIGN_CUSTOM_PREDICATE_TYPE):
            return None
        # cosign wraps custom predicates as {"Data": "<raw>", "Timestamp": ...}
        if isinstance(predicate, dict) and "Data" in predicate:
            predicate = predicate["Data"]
    elif predicate_type != fmt.predicate_type:
        return None

    if isinstance(predicate, str):
        return predicate.encode("utf-8")
    raw = _raw_member(payload, "predicate")
    if raw is None:
        raw = json.dumps(predicate)
    return raw.encode("utf-8")


def _subject_digest(statement: dict[str, Any]) -> str:
    for subject in statement.get("subject") or []:
        sha = (subject.get("digest") or {}).get("sha256")
        if sha:
            return f"sha256:{sha}"
    return ""


class SBOMAttacher:
    """Attaches SBOMs to images as signed attestations and verifies them."""

    def __init__(
        self,
        signing_config: SigningConfig,
        oidc_token: str = "",
        timeout: float = DEFAULT_ATTEST_TIMEOUT,
        cosign_path: str = COSIGN_COMMAND,
    ):
        self.signing_config = signing_config
        self.oidc_token = oidc_token
        self.timeout = timeout
        self.cosign_path = cosign_path

    async def attach(self, sbom: SBOM, image_ref: str) -> None:
        """Sign sbom as an attestation of image_ref using the configured signing mode.

        Raises:
            ConfigurationError: If signing configuration is incomplete
            SigningError: If cosign attest fails
        """
        signer = create_signer(self.signing_config, self.oidc_token, cosign_path=self.cosign_path)
        fmt = sbom.format
        logger.info(f"Attaching {fmt.value} SBOM attestation to {image_ref}")

        with temporary_file(sbom.content, suffix=f".{fmt.extension}") as predicate_path:
            with signer.signing_args() as args:
                result = await run_command(
                    [
                        self.cosign_path,
                        "attest",
                        "--predicate",
                        predicate_path,
                        "--type",
                        fmt.attestation_type,
                        *args,
                        image_ref,
                    ],
                    timeout=self.timeout,
                    env=signer.signing_env(),
                    tool="cosign",
                )
        try:
            check_result(result, "cosign", "attest")
        except ExecutionError as e:
            raise SigningError(f"SBOM attestation of {image_ref} failed: {e}") from e

    async def verify(self, image_ref: str, fmt: SBOMFormat | str) -> SBOM:
        """Verify the SBOM attestation on image_ref and return its content.

        Nothing is returned unless cosign verified the attestation and a
        statement of the expected predicate type was found.

        Raises:
            VerificationError: If verification fails or no matching attestation exists
        """
        fmt = parse_format(fmt)
        verifier = create_verifier(self.signing_config, cosign_path=self.cosign_path)
        logger.info(f"Verifying {fmt.value} SBOM attestation on {image_ref}")

        with verifier.verification_args() as args:
            result = await run_command(
                [self.cosign_path, "verify-attestation", "--type", fmt.attestation_type, *args, image_ref],
                timeout=self.timeout,
                tool="cosign",
            )
        try:
            check_result(result, "cosign", "verify-attestation")
        except ExecutionError as e:
            raise VerificationError(f"SBOM attestation verification for {image_ref} failed: {e}") from e

        for document in parse_json_documents(result.stdout):
            try:
                payload = decode_payload(document)
                statement = _parse_statement(payload)
            except VerificationError as e:
                logger.warning(f"Skipping attestation envelope for {image_ref}: {e}")
                continue
            content = _predicate_content(statement, payload, fmt)
            if content is not None:
                return new_sbom(fmt, content, image_ref=image_ref, image_digest=_subject_digest(statement))

        raise VerificationError(
            f"no {fmt.value} attestation with predicate type {fmt.predicate_type} found for {image_ref}"
        )


async def attach_sbom(
    signing_config: SigningConfig,
    sbom: SBOM,
    image_ref: str,
    oidc_token: str = "",
    cosign_path: str = COSIGN_COMMAND,
) -> Outcome[None]:
    """Attach sbom under the signing configuration's required flag."""
    signing_config.validate_config()
    attacher = SBOMAttacher(
        signing_config, oidc_token, timeout=signing_config.timeout, cosign_path=cosign_path
    )
    return await run_with_failure_policy(
        f"SBOM attestation of {image_ref}", signing_config.required, lambda: attacher.attach(sbom, image_ref)
    )


async def verify_sbom(
    signing_config: SigningConfig,
    image_ref: str,
    fmt: SBOMFormat | str,
    cosign_path: str = COSIGN_COMMAND,
) -> Outcome[SBOM]:
    """Verify an SBOM attestation under the signing configuration's required flag."""
    signing_config.validate_for_verification()
    attacher = SBOMAttacher(signing_config, timeout=signing_config.timeout, cosign_path=cosign_path)
    return await run_with_failure_policy(
        f"SBOM verification of {image_ref}", signing_config.required, lambda: attacher.verify(image_ref, fmt)
    )
