"""Semantic version parsing and comparison for external tools."""

import re
from dataclasses import dataclass
from functools import total_ordering

_VERSION_RE = re.compile(r"^v?(\d+)\.(\d+)(?:\.(\d+))?(?:-([0-9A-Za-z.\-]+))?$")
_EMBEDDED_VERSION_RE = re.compile(r"v?\d+\.\d+(?:\.\d+)?(?:-[0-9A-Za-z.\-]+)?")


@total_ordering
@dataclass(frozen=True)
class Version:
    """A MAJOR.MINOR[.PATCH][-PRERELEASE] version."""

    major: int
    minor: int
    patch: int = 0
    prerelease: str = ""

    def compare(self, other: "Version") -> int:
        """Return -1, 0 or 1.

        Numeric fields compare first. A pre-release sorts below the same
        release, and two pre-releases compare lexicographically.
        """
        mine = (self.major, self.minor, self.patch)
        theirs = (other.major, other.minor, other.patch)
        if mine != theirs:
            return -1 if mine < theirs else 1
        if self.prerelease == other.prerelease:
            return 0
        if not self.prerelease:
            return 1
        if not other.prerelease:
            return -1
        return -1 if self.prerelease < other.prerelease else 1

    def meets_minimum(self, minimum: "Version") -> bool:
        return self.compare(minimum) >= 0

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.compare(other) == 0

    def __lt__(self, other: "Version") -> bool:
        return self.compare(other) < 0

    def __hash__(self) -> int:
        return hash((self.major, self.minor, self.patch, self.prerelease))

    def __str__(self) -> str:
        text = f"v{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            text += f"-{self.prerelease}"
        return text


def parse_version(text: str) -> Version:
    """Parse a version string such as "v1.2.3", "1.2" or "0.106.0-rc1".

    Raises:
        ValueError: If the text is not a supported version format
    """
    match = _VERSION_RE.match(text.strip())
    if not match:
        raise ValueError(f"invalid version format: {text!r}")
    major, minor, patch, prerelease = match.groups()
    return Version(int(major), int(minor), int(patch or 0), prerelease or "")


def extract_version(output: str) -> str:
    """Find the version number in free-form tool output.

    Prefers a "Version:" / "GitVersion:" line, otherwise the first
    version-looking token.

    Raises:
        ValueError: If no version is found
    """
    for line in output.splitlines():
        key, sep, value = line.partition(":")
        if sep and key.strip().lower() in ("version", "gitversion"):
            match = _EMBEDDED_VERSION_RE.search(value)
            if match:
                return match.group(0)
    match = _EMBEDDED_VERSION_RE.search(output)
    if not match:
        raise ValueError(f"no version found in output: {output[:200]!r}")
    return match.group(0)
