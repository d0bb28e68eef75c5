"""Tests for Syft SBOM generation and cosign SBOM attestations."""

import base64
import hashlib
import json
import logging
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from imagesec.errors import ConfigurationError, ExecutionError, OutputParseError, SigningError, VerificationError
from imagesec.models.model_config import SigningConfig
from imagesec.models.model_outcome import OutcomeStatus
from imagesec.models.model_sbom import SBOMFormat, new_sbom
from imagesec.sbom.attacher import SBOMAttacher, attach_sbom, decode_statement, verify_sbom
from imagesec.sbom.syft_generator import SyftGenerator

OIDC_TOKEN = "header.payload.signature"

CYCLONEDX_DOCUMENT = {
    "bomFormat": "CycloneDX",
    "specVersion": "1.5",
    "metadata": {"tools": {"components": [{"type": "application", "name": "syft", "version": "1.4.1"}]}},
    "components": [
        {"type": "library", "name": "openssl", "version": "3.0.7"},
        {"type": "library", "name": "zlib", "version": "1.2.13"},
    ],
}


def _envelope(statement: dict | str) -> dict:
    text = statement if isinstance(statement, str) else json.dumps(statement)
    payload = base64.b64encode(text.encode("utf-8")).decode("ascii")
    return {"payloadType": "application/vnd.in-toto+json", "payload": payload, "signatures": [{"sig": "MEUC"}]}


@pytest.fixture
def signing_config() -> SigningConfig:
    return SigningConfig(
        enabled=True,
        keyless=True,
        oidc_issuer="https://token.actions.githubusercontent.com",
        identity_regexp="^https://github.com/acme/.*$",
    )


class TestSyftGenerator:
    """Tests for SyftGenerator."""

    @pytest.mark.asyncio
    async def test_generate_cyclonedx(self, command_result, image_digest) -> None:
        """Test a CycloneDX document is captured with metadata and digest."""
        output = json.dumps(CYCLONEDX_DOCUMENT)
        mock_run = AsyncMock(return_value=command_result(stdout=output, stderr=f"Loaded image {image_digest}"))

        with patch("imagesec.sbom.syft_generator.run_command", mock_run):
            sbom = await SyftGenerator(timeout=30).generate("ghcr.io/acme/app:1.0", "CycloneDX-JSON ")

        assert mock_run.await_args.args[0] == ["syft", "registry:ghcr.io/acme/app:1.0", "-o", "cyclonedx-json"]
        assert mock_run.await_args.kwargs["timeout"] == 30
        assert sbom.format == SBOMFormat.CYCLONEDX_JSON
        assert sbom.content == output.encode("utf-8")
        assert sbom.size == len(output.encode("utf-8"))
        assert sbom.image_digest == image_digest
        assert sbom.metadata.tool_name == "syft"
        assert sbom.metadata.tool_version == "1.4.1"
        assert sbom.metadata.package_count == 2
        sbom.validate_digest()

    @pytest.mark.asyncio
    async def test_generate_spdx_json(self, command_result) -> None:
        """Test SPDX package counting and creator version."""
        document = {
            "spdxVersion": "SPDX-2.3",
            "creationInfo": {"creators": ["Organization: Anchore, Inc", "Tool: syft-1.4.1"]},
            "packages": [{"name": "busybox"}],
        }
        mock_run = AsyncMock(return_value=command_result(stdout=json.dumps(document)))

        with patch("imagesec.sbom.syft_generator.run_command", mock_run):
            sbom = await SyftGenerator().generate("alpine:3.19", SBOMFormat.SPDX_JSON)

        assert sbom.metadata.tool_version == "1.4.1"
        assert sbom.metadata.package_count == 1
        assert sbom.image_digest == "alpine:3.19"

    @pytest.mark.asyncio
    async def test_generate_tag_value_is_not_parsed(self, command_result) -> None:
        """Test non-JSON formats are stored verbatim."""
        output = "SPDXVersion: SPDX-2.3\nDataLicense: CC0-1.0\n"
        with patch("imagesec.sbom.syft_generator.run_command", AsyncMock(return_value=command_result(stdout=output))):
            sbom = await SyftGenerator().generate("alpine:3.19", "spdx-tag-value")

        assert sbom.content == output.encode("utf-8")
        assert sbom.metadata.package_count == 0

    @pytest.mark.asyncio
    async def test_invalid_format(self) -> None:
        """Test an unsupported format fails before syft runs."""
        mock_run = AsyncMock()
        with patch("imagesec.sbom.syft_generator.run_command", mock_run):
            with pytest.raises(ConfigurationError, match="invalid SBOM format: pdf"):
                await SyftGenerator().generate("alpine", "pdf")
        mock_run.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_output(self, command_result) -> None:
        """Test an empty SBOM is a parse error."""
        with patch("imagesec.sbom.syft_generator.run_command", AsyncMock(return_value=command_result(stdout="  \n"))):
            with pytest.raises(OutputParseError, match="empty SBOM"):
                await SyftGenerator().generate("alpine", "cyclonedx-json")

    @pytest.mark.asyncio
    async def test_invalid_json(self, command_result) -> None:
        """Test malformed JSON output is a parse error."""
        with patch("imagesec.sbom.syft_generator.run_command", AsyncMock(return_value=command_result(stdout="{oops"))):
            with pytest.raises(OutputParseError, match="failed to parse syft output"):
                await SyftGenerator().generate("alpine", "syft-json")

    @pytest.mark.asyncio
    async def test_syft_failure(self, command_result) -> None:
        """Test a non-zero exit is an execution error."""
        failed = command_result(stderr="could not fetch image", returncode=1)
        with patch("imagesec.sbom.syft_generator.run_command", AsyncMock(return_value=failed)):
            with pytest.raises(ExecutionError, match="could not fetch image"):
                await SyftGenerator().generate("alpine", "cyclonedx-json")


class TestDecodeStatement:
    """Tests for decode_statement."""

    def test_decode(self) -> None:
        """Test the base64 payload is decoded into a statement."""
        statement = {"_type": "https://in-toto.io/Statement/v0.1", "predicateType": "https://cyclonedx.org/bom"}
        assert decode_statement(_envelope(statement)) == statement

    @pytest.mark.parametrize(
        "document",
        [{}, {"payload": "!!!not-base64"}, {"payload": base64.b64encode(b"[1, 2]").decode()}],
    )
    def test_invalid(self, document) -> None:
        """Test undecodable envelopes raise VerificationError."""
        with pytest.raises(VerificationError):
            decode_statement(document)


class TestSBOMAttacher:
    """Tests for SBOMAttacher."""

    @pytest.mark.asyncio
    async def test_attach(self, signing_config, command_result) -> None:
        """Test cosign attest receives the predicate file and attestation type."""
        sbom = new_sbom(SBOMFormat.CYCLONEDX_JSON, json.dumps(CYCLONEDX_DOCUMENT).encode("utf-8"))
        seen: dict[str, object] = {}

        async def fake_run(cmd, timeout, env=None, tool=None, **kwargs):
            predicate = cmd[cmd.index("--predicate") + 1]
            seen["cmd"] = cmd
            seen["predicate"] = predicate
            seen["content"] = Path(predicate).read_bytes()
            seen["env"] = env
            return command_result()

        with patch("imagesec.sbom.attacher.run_command", AsyncMock(side_effect=fake_run)):
            await SBOMAttacher(signing_config, OIDC_TOKEN).attach(sbom, "ghcr.io/acme/app:1.0")

        cmd = seen["cmd"]
        assert cmd[:2] == ["cosign", "attest"]
        assert cmd[cmd.index("--type") + 1] == "cyclonedx"
        assert "--yes" in cmd
        assert cmd[-1] == "ghcr.io/acme/app:1.0"
        assert seen["content"] == sbom.content
        assert str(seen["predicate"]).endswith(".json")
        assert not Path(seen["predicate"]).exists()
        assert seen["env"]["SIGSTORE_ID_TOKEN"] == OIDC_TOKEN

    @pytest.mark.asyncio
    async def test_attach_failure(self, signing_config, command_result) -> None:
        """Test a cosign attest failure is a SigningError."""
        sbom = new_sbom(SBOMFormat.CYCLONEDX_JSON, b"{}")
        failed = command_result(stderr="denied", returncode=1)
        with patch("imagesec.sbom.attacher.run_command", AsyncMock(return_value=failed)):
            with pytest.raises(SigningError, match="denied"):
                await SBOMAttacher(signing_config, OIDC_TOKEN).attach(sbom, "app")

    @pytest.mark.asyncio
    async def test_verify(self, signing_config, command_result) -> None:
        """Test the matching predicate is returned as a fresh SBOM."""
        statement = {
            "_type": "https://in-toto.io/Statement/v0.1",
            "predicateType": "https://cyclonedx.org/bom",
            "subject": [{"name": "ghcr.io/acme/app", "digest": {"sha256": "b" * 64}}],
            "predicate": CYCLONEDX_DOCUMENT,
        }
        output = json.dumps(_envelope(statement))
        mock_run = AsyncMock(return_value=command_result(stdout=output))

        with patch("imagesec.sbom.attacher.run_command", mock_run):
            sbom = await SBOMAttacher(signing_config).verify("ghcr.io/acme/app:1.0", "cyclonedx-json")

        cmd = mock_run.await_args.args[0]
        assert cmd[:2] == ["cosign", "verify-attestation"]
        assert cmd[cmd.index("--type") + 1] == "cyclonedx"
        assert "--certificate-oidc-issuer" in cmd
        assert sbom.content == json.dumps(CYCLONEDX_DOCUMENT).encode("utf-8")
        assert sbom.image_digest == "sha256:" + "b" * 64
        sbom.validate_digest()

    @pytest.mark.asyncio
    async def test_verify_keeps_signed_predicate_text(self, signing_config, command_result) -> None:
        """Test the predicate is returned byte-for-byte as it appears in the payload."""
        predicate = '{"bomFormat":"CycloneDX",  "components": [ {"name":"zlib"} ]}'
        payload = (
            '{"_type": "https://in-toto.io/Statement/v0.1", '
            '"subject": [], "predicateType": "https://cyclonedx.org/bom", '
            f'"predicate": {predicate}}}'
        )
        output = json.dumps(_envelope(payload))

        with patch("imagesec.sbom.attacher.run_command", AsyncMock(return_value=command_result(stdout=output))):
            sbom = await SBOMAttacher(signing_config).verify("app", "cyclonedx-json")

        assert sbom.content == predicate.encode("utf-8")
        assert sbom.digest == "sha256:" + hashlib.sha256(predicate.encode("utf-8")).hexdigest()

    @pytest.mark.asyncio
    async def test_verify_skips_undecodable_envelope(self, signing_config, command_result) -> None:
        """Test a bad envelope does not hide a later matching attestation."""
        statement = {"predicateType": "https://spdx.dev/Document", "predicate": {"spdxVersion": "SPDX-2.3"}}
        output = "\n".join([json.dumps({"payload": ""}), json.dumps(_envelope(statement))])

        with patch("imagesec.sbom.attacher.run_command", AsyncMock(return_value=command_result(stdout=output))):
            sbom = await SBOMAttacher(signing_config).verify("app", "spdx-json")

        assert json.loads(sbom.content) == {"spdxVersion": "SPDX-2.3"}

    @pytest.mark.asyncio
    async def test_verify_custom_predicate(self, signing_config, command_result) -> None:
        """Test cosign's custom predicate wrapper is unwrapped for syft-json."""
        raw = json.dumps({"artifacts": [], "descriptor": {"name": "syft"}})
        statement = {
            "predicateType": "https://cosign.sigstore.dev/attestation/v1",
            "predicate": {"Data": raw, "Timestamp": "2024-05-01T00:00:00Z"},
        }
        output = json.dumps(_envelope(statement))

        with patch("imagesec.sbom.attacher.run_command", AsyncMock(return_value=command_result(stdout=output))):
            sbom = await SBOMAttacher(signing_config).verify("app", SBOMFormat.SYFT_JSON)

        assert sbom.content == raw.encode("utf-8")
        assert sbom.format == SBOMFormat.SYFT_JSON

    @pytest.mark.asyncio
    async def test_verify_skips_other_predicates(self, signing_config, command_result) -> None:
        """Test statements of another predicate type do not count."""
        statement = {"predicateType": "https://slsa.dev/provenance/v1", "predicate": {"buildType": "x"}}
        output = json.dumps(_envelope(statement))

        with patch("imagesec.sbom.attacher.run_command", AsyncMock(return_value=command_result(stdout=output))):
            with pytest.raises(VerificationError, match="no cyclonedx-json attestation"):
                await SBOMAttacher(signing_config).verify("app", "cyclonedx-json")

    @pytest.mark.asyncio
    async def test_verify_failure(self, signing_config, command_result) -> None:
        """Test a cosign failure returns nothing and raises."""
        failed = command_result(stderr="no matching attestations", returncode=1)
        with patch("imagesec.sbom.attacher.run_command", AsyncMock(return_value=failed)):
            with pytest.raises(VerificationError, match="no matching attestations"):
                await SBOMAttacher(signing_config).verify("app", "spdx-json")


class TestAttachSBOMPolicy:
    """Tests for the required flag on attestation helpers."""

    @pytest.mark.asyncio
    async def test_attach_optional_failure(self, signing_config, command_result, caplog) -> None:
        """Test an optional attestation failure is skipped with a warning."""
        sbom = new_sbom(SBOMFormat.CYCLONEDX_JSON, b"{}")
        failed = command_result(stderr="registry unavailable", returncode=1)

        with patch("imagesec.sbom.attacher.run_command", AsyncMock(return_value=failed)):
            with caplog.at_level(logging.WARNING):
                outcome = await attach_sbom(signing_config, sbom, "app", oidc_token=OIDC_TOKEN)

        assert outcome.status == OutcomeStatus.SKIPPED
        assert "SBOM attestation of app failed (not required, continuing)" in caplog.text

    @pytest.mark.asyncio
    async def test_attach_required_failure(self, signing_config, command_result) -> None:
        """Test a required attestation failure propagates."""
        config = signing_config.model_copy(update={"required": True})
        sbom = new_sbom(SBOMFormat.CYCLONEDX_JSON, b"{}")
        failed = command_result(stderr="registry unavailable", returncode=1)

        with patch("imagesec.sbom.attacher.run_command", AsyncMock(return_value=failed)):
            with pytest.raises(SigningError):
                await attach_sbom(config, sbom, "app", oidc_token=OIDC_TOKEN)

    @pytest.mark.asyncio
    async def test_attach_invalid_config(self) -> None:
        """Test incomplete signing configuration is always fatal."""
        sbom = new_sbom(SBOMFormat.CYCLONEDX_JSON, b"{}")
        with pytest.raises(ConfigurationError):
            await attach_sbom(SigningConfig(enabled=True, keyless=True), sbom, "app")

    @pytest.mark.asyncio
    async def test_verify_optional_failure(self, signing_config, command_result) -> None:
        """Test optional SBOM verification failures are skipped."""
        failed = command_result(stderr="no attestations", returncode=1)
        with patch("imagesec.sbom.attacher.run_command", AsyncMock(return_value=failed)):
            outcome = await verify_sbom(signing_config, "app", "cyclonedx-json")

        assert outcome.status == OutcomeStatus.SKIPPED
        assert isinstance(outcome.error, VerificationError)

    @pytest.mark.asyncio
    async def test_signing_timeout_applies(self, signing_config, command_result) -> None:
        """Test attest and verify-attestation run under the configured signing timeout."""
        config = signing_config.model_copy(update={"timeout": 600})
        sbom = new_sbom(SBOMFormat.CYCLONEDX_JSON, b"{}")
        statement = {"predicateType": "https://cyclonedx.org/bom", "predicate": {}}
        mock_run = AsyncMock(
            side_effect=[command_result(), command_result(stdout=json.dumps(_envelope(statement)))]
        )

        with patch("imagesec.sbom.attacher.run_command", mock_run):
            await attach_sbom(config, sbom, "app", oidc_token=OIDC_TOKEN)
            await verify_sbom(config, "app", "cyclonedx-json")

        attest, verify = mock_run.await_args_list
        assert attest.args[0][1] == "attest"
        assert attest.kwargs["timeout"] == 600
        assert verify.args[0][1] == "verify-attestation"
        assert verify.kwargs["timeout"] == 600
