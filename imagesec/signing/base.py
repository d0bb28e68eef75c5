"""Signer interface."""

import contextlib
from abc import ABC, abstractmethod

from imagesec.consts import COSIGN_COMMAND, DEFAULT_COMMAND_TIMEOUT
from imagesec.models.model_signing import SignResult


class Signer(ABC):
    """Signs container images with cosign."""

    def __init__(self, timeout: float = DEFAULT_COMMAND_TIMEOUT, cosign_path: str = COSIGN_COMMAND):
        self.timeout = timeout
        self.cosign_path = cosign_path

    @property
    @abstractmethod
    def keyless(self) -> bool:
        """Whether this signer uses the keyless trust model."""

    @abstractmethod
    def signing_args(self) -> contextlib.AbstractContextManager[list[str]]:
        """Mode-specific cosign flags, shared by `sign` and `attest`.

        A context manager so temporary key material lives only as long as
        the cosign call using it.
        """

    @abstractmethod
    def signing_env(self) -> dict[str, str]:
        """Mode-specific environment for cosign."""

    @abstractmethod
    async def sign(self, image_ref: str) -> SignResult:
        """Sign image_ref.

        Raises:
            SigningError: If cosign fails
            CommandTimeoutError: If cosign exceeds the timeout
        """
