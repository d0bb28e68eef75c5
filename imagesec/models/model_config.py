"""Security pipeline configuration models.

Keys are camelCase in config files (``failOn``, ``oidcIssuer``); snake_case
field names are accepted as well.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from imagesec.consts import (
    DEFAULT_CACHE_TTL_HOURS,
    DEFAULT_COMMAND_TIMEOUT,
    DEFAULT_FAIL_ON,
    DEFAULT_SBOM_FORMAT,
    DEFAULT_SBOM_GENERATOR,
    DEFAULT_WARN_ON,
)
from imagesec.errors import ConfigurationError
from imagesec.models.model_sbom import parse_format
from imagesec.models.model_scan import ScanTool, Severity


class _ConfigModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class OutputConfig(_ConfigModel):
    """Where artifacts are written."""

    local: str = Field(default="", description="Local file or directory path, empty to skip")
    registry: bool = Field(default=False, description="Push artifact to the image registry")


class CacheConfig(_ConfigModel):
    """Scan result caching, honoured by the calling layer."""

    enabled: bool = True
    ttl: int = Field(default=DEFAULT_CACHE_TTL_HOURS, description="Cache TTL in hours")


def _check_severity(field: str, value: str) -> None:
    if value and value not in {s.value for s in Severity}:
        raise ConfigurationError(
            f"invalid {field} severity: {value} (must be one of: critical, high, medium, low, unknown)"
        )


class ScanConfig(_ConfigModel):
    """Vulnerability scanning settings."""

    enabled: bool = True
    tools: list[ScanTool] = Field(default_factory=lambda: [ScanTool.GRYPE])
    fail_on: str = Field(default=DEFAULT_FAIL_ON, alias="failOn")
    warn_on: str = Field(default=DEFAULT_WARN_ON, alias="warnOn")
    required: bool = True
    output: OutputConfig = Field(default_factory=OutputConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)

    @field_validator("tools")
    @classmethod
    def _dedupe_tools(cls, tools: list[ScanTool]) -> list[ScanTool]:
        return list(dict.fromkeys(tools))

    @field_validator("fail_on", "warn_on", mode="before")
    @classmethod
    def _normalize_severity(cls, value: str | None) -> str:
        return (value or "").strip().lower()

    def validate_config(self) -> None:
        """Raise ConfigurationError if the configuration cannot be executed."""
        if not self.enabled:
            return
        if not self.tools:
            raise ConfigurationError("at least one scan tool must be configured when scanning is enabled")
        _check_severity("failOn", self.fail_on)
        _check_severity("warnOn", self.warn_on)
        if self.cache.enabled and self.cache.ttl <= 0:
            raise ConfigurationError(f"cache ttl must be positive, got {self.cache.ttl}")

    def scanners(self) -> list[ScanTool]:
        """Configured scanners with ALL expanded to every concrete scanner."""
        expanded: list[ScanTool] = []
        for tool in self.tools:
            if tool == ScanTool.ALL:
                expanded.extend([ScanTool.GRYPE, ScanTool.TRIVY])
            else:
                expanded.append(tool)
        return list(dict.fromkeys(expanded))


class SigningConfig(_ConfigModel):
    """Image signing and verification settings."""

    enabled: bool = False
    keyless: bool = True
    oidc_issuer: str = Field(default="", alias="oidcIssuer")
    identity_regexp: str = Field(default="", alias="identityRegexp")
    private_key: str = Field(default="", alias="privateKey", description="Key path or PEM content")
    public_key: str = Field(default="", alias="publicKey", description="Key path or PEM content")
    password: str = Field(default="", repr=False)
    timeout: int = Field(default=DEFAULT_COMMAND_TIMEOUT, description="Signing timeout in seconds")
    required: bool = False

    def validate_config(self) -> None:
        if not self.enabled:
            return
        if self.timeout <= 0:
            raise ConfigurationError(f"signing timeout must be positive, got {self.timeout}")
        if self.keyless:
            if not self.oidc_issuer:
                raise ConfigurationError("oidc_issuer required for keyless signing")
            if not self.identity_regexp:
                raise ConfigurationError("identity_regexp required for keyless signing")
        elif not self.private_key:
            raise ConfigurationError("private_key required for key-based signing")

    def validate_for_verification(self) -> None:
        if self.keyless:
            if not self.oidc_issuer or not self.identity_regexp:
                raise ConfigurationError(
                    "oidc_issuer and identity_regexp required for keyless verification"
                )
        elif not self.public_key:
            raise ConfigurationError("public_key required for key-based verification")


class SBOMConfig(_ConfigModel):
    """SBOM generation and attestation settings."""

    enabled: bool = False
    format: str = DEFAULT_SBOM_FORMAT
    generator: str = DEFAULT_SBOM_GENERATOR
    output: OutputConfig = Field(default_factory=OutputConfig)
    attach: bool = False
    required: bool = False

    def validate_config(self) -> None:
        if not self.enabled:
            return
        parse_format(self.format)
        if self.generator != DEFAULT_SBOM_GENERATOR:
            raise ConfigurationError(
                f"unsupported SBOM generator: {self.generator} (supported: {DEFAULT_SBOM_GENERATOR})"
            )

    def should_attach(self) -> bool:
        return self.attach or self.output.registry


class SecurityConfig(_ConfigModel):
    """Top-level security pipeline configuration."""

    enabled: bool = True
    scan: ScanConfig = Field(default_factory=ScanConfig)
    signing: SigningConfig = Field(default_factory=SigningConfig)
    sbom: SBOMConfig = Field(default_factory=SBOMConfig)

    def validate_config(self) -> None:
        """Validate every section, prefixing errors with the section name."""
        if not self.enabled:
            return
        for name, section in (("scan", self.scan), ("signing", self.signing), ("sbom", self.sbom)):
            try:
                section.validate_config()
            except ConfigurationError as e:
                raise ConfigurationError(f"invalid {name} config: {e}") from e
