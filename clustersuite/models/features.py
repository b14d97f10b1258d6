from typing import Dict, List, Optional, Union
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field

from clustersuite.models.version import NodeVersion

WILDCARD = "*"


class FeatureCode(str, Enum):
    """Optional server capabilities a test can depend on"""
    CHANGE_STREAMS = "change_streams"
    RETRYABLE_WRITES = "retryable_writes"
    LINEARIZABLE_READS = "linearizable_reads"
    MAJORITY_WRITE_CONCERN = "majority_write_concern"
    TRANSACTIONS = "transactions"
    SHARDED_TRANSACTIONS = "sharded_transactions"
    WILDCARD_INDEXES = "wildcard_indexes"
    SNAPSHOT_READS = "snapshot_reads"
    TIME_SERIES = "time_series"
    SET_WINDOW_FIELDS = "set_window_fields"
    CLUSTERED_COLLECTIONS = "clustered_collections"
    QUERYABLE_ENCRYPTION = "queryable_encryption"
    SEARCH_INDEXES = "search_indexes"
    USER_MANAGEMENT = "user_management"


class FeatureFlag(BaseModel):
    """A single forced on/off switch for a feature (or '*' for all)"""
    model_config = ConfigDict(frozen=True)

    feature: str = Field(..., description="Feature code or '*'")
    enabled: bool = Field(..., description="Forced value")


class FeatureOverrides(BaseModel):
    """
    Ordered feature overrides from run configuration.

    The last flag naming a code (directly or through '*') decides.
    """
    model_config = ConfigDict(frozen=True)

    flags: List[FeatureFlag] = Field(default_factory=list)

    @classmethod
    def from_mapping(cls, mapping: Dict[Union[FeatureCode, str], bool]) -> "FeatureOverrides":
        return cls(flags=[
            FeatureFlag(feature=_code_value(code), enabled=enabled)
            for code, enabled in mapping.items()
        ])

    def lookup(self, code: Union[FeatureCode, str]) -> Optional[bool]:
        """Forced value for a code, or None when nothing overrides it"""
        value = _code_value(code)
        result = None
        for flag in self.flags:
            if flag.feature == value or flag.feature == WILDCARD:
                result = flag.enabled
        return result


class FeatureRequirement(BaseModel):
    """Minimum server version for a feature"""
    model_config = ConfigDict(frozen=True)

    min_version: NodeVersion
    unsupported_when_simulated: bool = False


def _requires(major: int, minor: int, simulated: bool = True) -> FeatureRequirement:
    return FeatureRequirement(
        min_version=NodeVersion(major=major, minor=minor),
        unsupported_when_simulated=not simulated
    )


# The simulated cluster is a single unauthenticated community replica set,
# so sharding, access control and Atlas/enterprise features are excluded.
FEATURE_REQUIREMENTS: Dict[FeatureCode, FeatureRequirement] = {
    FeatureCode.MAJORITY_WRITE_CONCERN: _requires(3, 2),
    FeatureCode.LINEARIZABLE_READS: _requires(3, 4),
    FeatureCode.CHANGE_STREAMS: _requires(3, 6),
    FeatureCode.RETRYABLE_WRITES: _requires(3, 6),
    FeatureCode.TRANSACTIONS: _requires(4, 0),
    FeatureCode.SHARDED_TRANSACTIONS: _requires(4, 2, simulated=False),
    FeatureCode.WILDCARD_INDEXES: _requires(4, 2),
    FeatureCode.SNAPSHOT_READS: _requires(5, 0),
    FeatureCode.TIME_SERIES: _requires(5, 0),
    FeatureCode.SET_WINDOW_FIELDS: _requires(5, 0),
    FeatureCode.CLUSTERED_COLLECTIONS: _requires(5, 3),
    FeatureCode.QUERYABLE_ENCRYPTION: _requires(7, 0, simulated=False),
    FeatureCode.SEARCH_INDEXES: _requires(7, 0, simulated=False),
    FeatureCode.USER_MANAGEMENT: _requires(2, 6, simulated=False),
}


def _code_value(code: Union[FeatureCode, str]) -> str:
    if isinstance(code, FeatureCode):
        return code.value
    return str(code)


def parse_feature_flags(text: str) -> FeatureOverrides:
    """
    Parse a comma separated override list.

    "+code" or "code" enables a feature, "-code" disables it and "*"
    stands for every feature. Blank entries are ignored.
    """
    flags = []
    for raw in (text or "").split(","):
        item = raw.strip()
        if not item:
            continue

        enabled = True
        if item.startswith("-"):
            enabled = False
            item = item[1:]
        elif item.startswith("+"):
            item = item[1:]

        item = item.strip()
        if not item:
            raise ValueError(f"Empty feature name in flags '{text}'")
        flags.append(FeatureFlag(feature=item, enabled=enabled))

    return FeatureOverrides(flags=flags)


def feature_supported(version: NodeVersion, overrides: FeatureOverrides, code: Union[FeatureCode, str]) -> bool:
    """Whether a feature is available: explicit override first, then version table"""
    forced = overrides.lookup(code)
    if forced is not None:
        return forced

    try:
        requirement = FEATURE_REQUIREMENTS.get(FeatureCode(_code_value(code)))
    except ValueError:
        return False
    if requirement is None:
        return False

    if requirement.unsupported_when_simulated and version.is_simulated:
        return False
    return version >= requirement.min_version
