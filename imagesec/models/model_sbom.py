"""SBOM document models and format table."""

import hashlib
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field

from imagesec.errors import ConfigurationError, DigestMismatchError
from imagesec.models.common import _utc_now


class SBOMFormat(str, Enum):
    """Supported SBOM output formats."""

    CYCLONEDX_JSON = "cyclonedx-json"
    CYCLONEDX_XML = "cyclonedx-xml"
    SPDX_JSON = "spdx-json"
    SPDX_TAG_VALUE = "spdx-tag-value"
    SYFT_JSON = "syft-json"

    @property
    def predicate_type(self) -> str:
        return _FORMAT_ATTESTATION[self][0]

    @property
    def attestation_type(self) -> str:
        return _FORMAT_ATTESTATION[self][1]

    @property
    def is_json(self) -> bool:
        return self in (SBOMFormat.CYCLONEDX_JSON, SBOMFormat.SPDX_JSON, SBOMFormat.SYFT_JSON)

    @property
    def extension(self) -> str:
        if self == SBOMFormat.CYCLONEDX_XML:
            return "xml"
        if self == SBOMFormat.SPDX_TAG_VALUE:
            return "spdx"
        return "json"


# format -> (in-toto predicate type, cosign --type value)
_FORMAT_ATTESTATION: dict[SBOMFormat, tuple[str, str]] = {
    SBOMFormat.CYCLONEDX_JSON: ("https://cyclonedx.org/bom", "cyclonedx"),
    SBOMFormat.CYCLONEDX_XML: ("https://cyclonedx.org/bom", "cyclonedx"),
    SBOMFormat.SPDX_JSON: ("https://spdx.dev/Document", "spdx"),
    SBOMFormat.SPDX_TAG_VALUE: ("https://spdx.dev/Document", "spdx"),
    SBOMFormat.SYFT_JSON: ("https://syft.dev/bom", "custom"),
}


def parse_format(value: str | SBOMFormat) -> SBOMFormat:
    """Parse an SBOM format name, trimming and lowercasing it first.

    Raises:
        ConfigurationError: If the format is not supported
    """
    if isinstance(value, SBOMFormat):
        return value
    normalized = value.strip().lower()
    try:
        return SBOMFormat(normalized)
    except ValueError:
        supported = ", ".join(f.value for f in SBOMFormat)
        raise ConfigurationError(f"invalid SBOM format: {value} (supported: {supported})")


def compute_content_digest(content: bytes) -> str:
    return "sha256:" + hashlib.sha256(content).hexdigest()


class SBOMMetadata(BaseModel):
    """Generator details for an SBOM."""

    model_config = ConfigDict(frozen=True)

    tool_name: str = ""
    tool_version: str = ""
    package_count: int = 0


class SBOM(BaseModel):
    """A generated or verified SBOM document."""

    model_config = ConfigDict(frozen=True)

    format: SBOMFormat
    content: bytes = Field(repr=False)
    digest: str = Field(description="sha256 digest of content")
    image_ref: str = ""
    image_digest: str = ""
    generated_at: datetime = Field(default_factory=_utc_now)
    metadata: SBOMMetadata = Field(default_factory=SBOMMetadata)

    @computed_field
    @property
    def size(self) -> int:
        return len(self.content)

    def validate_digest(self) -> None:
        actual = compute_content_digest(self.content)
        if actual != self.digest:
            raise DigestMismatchError(self.digest, actual)


def new_sbom(
    fmt: SBOMFormat,
    content: bytes,
    image_ref: str = "",
    image_digest: str = "",
    metadata: SBOMMetadata | None = None,
) -> SBOM:
    return SBOM(
        format=fmt,
        content=content,
        digest=compute_content_digest(content),
        image_ref=image_ref,
        image_digest=image_digest,
        metadata=metadata or SBOMMetadata(),
    )
