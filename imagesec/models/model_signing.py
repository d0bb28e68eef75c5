"""Signing and verification result models."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from imagesec.models.common import _utc_now


class SignResult(BaseModel):
    """Outcome of a successful image signing."""

    model_config = ConfigDict(frozen=True)

    image_digest: str = Field(default="", description="Signed image digest, empty when signed by tag")
    rekor_entry: str = Field(default="", description="Transparency log entry URL, keyless only")
    signed_at: datetime = Field(default_factory=_utc_now)


class CertificateInfo(BaseModel):
    """Signing certificate identity for keyless signatures."""

    model_config = ConfigDict(frozen=True)

    issuer: str
    identity: str


class VerifyResult(BaseModel):
    """Outcome of a successful signature verification.

    Only successful verifications produce a VerifyResult; failures raise.
    """

    model_config = ConfigDict(frozen=True)

    verified: bool = True
    image_digest: str
    keyless: bool = False
    certificate: CertificateInfo | None = None
    verified_at: datetime = Field(default_factory=_utc_now)

    @model_validator(mode="after")
    def _check_verified(self) -> "VerifyResult":
        if not self.verified:
            raise ValueError("VerifyResult must represent a successful verification")
        if not self.image_digest:
            raise ValueError("verified image digest must not be empty")
        if self.keyless and (
            self.certificate is None
            or not self.certificate.issuer
            or not self.certificate.identity
        ):
            raise ValueError("keyless verification requires certificate issuer and identity")
        return self
