"""Key-based signing with a static cosign key pair."""

import contextlib
import logging
from collections.abc import Iterator
from pathlib import Path

from imagesec.consts import COSIGN_COMMAND, DEFAULT_COMMAND_TIMEOUT, ENV_COSIGN_PASSWORD
from imagesec.errors import ConfigurationError, ExecutionError, SigningError
from imagesec.models.model_signing import SignResult
from imagesec.scanner.base import find_digest
from imagesec.signing.base import Signer
from imagesec.signing.keys import key_file
from imagesec.tools.command import check_result, run_command

logger = logging.getLogger(__name__)


class KeyBasedSigner(Signer):
    """Signs with a private key. No transparency log entry is produced."""

    def __init__(self, private_key: str, password: str = "", **kwargs):
        super().__init__(**kwargs)
        if not private_key:
            raise ConfigurationError("private_key required for key-based signing")
        self._private_key = private_key
        self._password = password

    @property
    def keyless(self) -> bool:
        return False

    @contextlib.contextmanager
    def signing_args(self) -> Iterator[list[str]]:
        with key_file(self._private_key) as key_path:
            yield ["--key", key_path, "--tlog-upload=false", "--yes"]

    def signing_env(self) -> dict[str, str]:
        if self._password:
            return {ENV_COSIGN_PASSWORD: self._password}
        return {}

    async def sign(self, image_ref: str) -> SignResult:
        logger.info(f"Signing {image_ref} (key-based)")
        with self.signing_args() as args:
            result = await run_command(
                [self.cosign_path, "sign", *args, image_ref],
                timeout=self.timeout,
                env=self.signing_env(),
                tool="cosign",
            )
        try:
            check_result(result, "cosign", "sign")
        except ExecutionError as e:
            raise SigningError(f"key-based signing of {image_ref} failed: {e}") from e
        return SignResult(image_digest=find_digest(image_ref))


async def generate_key_pair(
    output_dir: str | Path,
    password: str = "",
    timeout: float = DEFAULT_COMMAND_TIMEOUT,
    cosign_path: str = COSIGN_COMMAND,
) -> tuple[Path, Path]:
    """Create cosign.key and cosign.pub in output_dir.

    Returns:
        Paths of the private and public key
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    result = await run_command(
        [cosign_path, "generate-key-pair"],
        timeout=timeout,
        env={ENV_COSIGN_PASSWORD: password},
        tool="cosign",
        cwd=str(output_dir),
    )
    try:
        check_result(result, "cosign", "generate-key-pair")
    except ExecutionError as e:
        raise SigningError(f"key pair generation failed: {e}") from e
    return output_dir / "cosign.key", output_dir / "cosign.pub"
