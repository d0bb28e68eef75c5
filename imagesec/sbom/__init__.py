"""SBOM generation and attestation."""

from imagesec.sbom.attacher import SBOMAttacher, attach_sbom, decode_statement, verify_sbom
from imagesec.sbom.syft_generator import SyftGenerator

__all__ = [
    "SBOMAttacher",
    "SyftGenerator",
    "attach_sbom",
    "decode_statement",
    "verify_sbom",
]
