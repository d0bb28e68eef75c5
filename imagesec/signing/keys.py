"""Scoped temporary files for key material and attestation predicates."""

import contextlib
import os
import tempfile
from collections.abc import Iterator
from pathlib import Path

from imagesec.errors import ConfigurationError

PEM_MARKER = "-----BEGIN"


@contextlib.contextmanager
def temporary_file(content: bytes, suffix: str = "") -> Iterator[str]:
    """Write content to a 0600 temp file and remove it on exit."""
    fd, path = tempfile.mkstemp(suffix=suffix, prefix="imagesec-")
    try:
        os.fchmod(fd, 0o600)
        with os.fdopen(fd, "wb") as f:
            f.write(content)
        yield path
    finally:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(path)


@contextlib.contextmanager
def key_file(key: str, suffix: str = ".key") -> Iterator[str]:
    """Yield a filesystem path for key, which is either a path or raw PEM content.

    Raw PEM is written to a private temp file that is removed on every exit path.

    Raises:
        ConfigurationError: If key is neither PEM content nor an existing file
    """
    if PEM_MARKER in key:
        with temporary_file(key.encode("utf-8"), suffix=suffix) as path:
            yield path
        return
    if not Path(key).is_file():
        raise ConfigurationError(f"key file not found: {key}")
    yield key
