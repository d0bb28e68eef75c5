# Subprocess timeouts (seconds)
DEFAULT_COMMAND_TIMEOUT = 300
DEFAULT_VERIFY_TIMEOUT = 120
DEFAULT_ATTEST_TIMEOUT = 120
VERSION_PROBE_TIMEOUT = 10
OIDC_REQUEST_TIMEOUT = 10.0

# Tool binaries
COSIGN_COMMAND = "cosign"
SYFT_COMMAND = "syft"
GRYPE_COMMAND = "grype"
TRIVY_COMMAND = "trivy"

# Minimum supported tool versions
COSIGN_MIN_VERSION = "v3.0.2"
SYFT_MIN_VERSION = "v1.41.0"
GRYPE_MIN_VERSION = "v0.106.0"
TRIVY_MIN_VERSION = "v0.68.2"

# Installation docs shown when a tool is missing
COSIGN_INSTALL_URL = "https://docs.sigstore.dev/cosign/installation/"
SYFT_INSTALL_URL = "https://github.com/anchore/syft#installation"
GRYPE_INSTALL_URL = "https://github.com/anchore/grype#installation"
TRIVY_INSTALL_URL = "https://aquasecurity.github.io/trivy/latest/getting-started/installation/"

# Scan defaults
DEFAULT_FAIL_ON = "critical"
DEFAULT_WARN_ON = "high"
DEFAULT_CACHE_TTL_HOURS = 6

# Sigstore
REKOR_LOG_ENTRY_URL = "https://rekor.sigstore.dev/api/v1/log/entries?logIndex={index}"
GITHUB_OIDC_ISSUER = "https://token.actions.githubusercontent.com"
SIGSTORE_AUDIENCE = "sigstore"
COSIGN_CUSTOM_PREDICATE_TYPE = "https://cosign.sigstore.dev/attestation/v1"

# Environment variables
ENV_COSIGN_EXPERIMENTAL = "COSIGN_EXPERIMENTAL"
ENV_COSIGN_PASSWORD = "COSIGN_PASSWORD"
ENV_SIGSTORE_ID_TOKEN = "SIGSTORE_ID_TOKEN"
ENV_GITHUB_TOKEN_URL = "ACTIONS_ID_TOKEN_REQUEST_URL"
ENV_GITHUB_TOKEN_REQUEST = "ACTIONS_ID_TOKEN_REQUEST_TOKEN"
ENV_GITLAB_JWT = "CI_JOB_JWT_V2"

# SBOM defaults
DEFAULT_SBOM_FORMAT = "cyclonedx-json"
DEFAULT_SBOM_GENERATOR = "syft"

# Local output file names
SCAN_RESULT_FILENAME = "scan-result.json"
SBOM_FILENAME_TEMPLATE = "sbom.{extension}"
