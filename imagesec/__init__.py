"""imagesec - Container image scanning, SBOM attestation and signing pipeline."""

__version__ = "0.1.0"
