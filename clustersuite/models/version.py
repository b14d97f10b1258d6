import re
from typing import Tuple
from pydantic import BaseModel, ConfigDict, Field

from clustersuite.errors import ParseError

# MAJOR.MINOR[.PATCH][(.|-)BUILD]
_VERSION_PATTERN = re.compile(r"^(\d+)\.(\d+)(?:\.(\d+))?(?:[.-](\d+))?$")


class NodeVersion(BaseModel):
    """
    Version of the cluster under test.

    Ordering only looks at (major, minor, patch, build). ``is_simulated``
    is an input to feature gating, not part of the ordering.
    """
    model_config = ConfigDict(frozen=True)

    major: int = Field(..., ge=0)
    minor: int = Field(default=0, ge=0)
    patch: int = Field(default=0, ge=0)
    build: int = Field(default=0, ge=0)
    is_simulated: bool = Field(default=False, description="Version was reported by the simulated cluster")

    @property
    def components(self) -> Tuple[int, int, int, int]:
        return (self.major, self.minor, self.patch, self.build)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NodeVersion):
            return NotImplemented
        return self.components == other.components

    def __hash__(self) -> int:
        return hash(self.components)

    def __lt__(self, other: "NodeVersion") -> bool:
        if not isinstance(other, NodeVersion):
            return NotImplemented
        return self.components < other.components

    def __le__(self, other: "NodeVersion") -> bool:
        if not isinstance(other, NodeVersion):
            return NotImplemented
        return self.components <= other.components

    def __gt__(self, other: "NodeVersion") -> bool:
        if not isinstance(other, NodeVersion):
            return NotImplemented
        return self.components > other.components

    def __ge__(self, other: "NodeVersion") -> bool:
        if not isinstance(other, NodeVersion):
            return NotImplemented
        return self.components >= other.components

    def __str__(self) -> str:
        base = f"{self.major}.{self.minor}.{self.patch}"
        if self.build:
            return f"{base}-{self.build}"
        return base


def parse_node_version(version: str, is_simulated: bool = False) -> NodeVersion:
    """
    Parse a server version string such as "7.0.12" or "5.1.0-1234"

    Args:
        version: Dotted numeric version with an optional build suffix
        is_simulated: Whether the version was reported by the simulated cluster

    Returns:
        NodeVersion: The parsed version

    Raises:
        ParseError: If the string is not a valid version
    """
    if not isinstance(version, str):
        raise ParseError(f"Version must be a string, got {type(version).__name__}")

    match = _VERSION_PATTERN.match(version.strip())
    if not match:
        raise ParseError(f"Invalid server version '{version}'")

    major, minor, patch, build = match.groups()
    return NodeVersion(
        major=int(major),
        minor=int(minor),
        patch=int(patch or 0),
        build=int(build or 0),
        is_simulated=is_simulated
    )
