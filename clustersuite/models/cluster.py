from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field

from clustersuite.models.features import FeatureCode, FeatureOverrides, feature_supported
from clustersuite.models.version import NodeVersion


class ClusterState(str, Enum):
    """Readiness states a bucket can be waited on"""
    ONLINE = "online"
    DEGRADED = "degraded"
    OFFLINE = "offline"


class BucketType(str, Enum):
    """Storage type of a simulated bucket"""
    PERSISTENT = "persistent"
    EPHEMERAL = "ephemeral"


class BucketSpec(BaseModel):
    """A bucket the simulated cluster creates on start"""
    name: str = Field(..., description="Bucket (database) name", min_length=1)
    type: BucketType = Field(default=BucketType.PERSISTENT, description="Bucket storage type")


class MockTopology(BaseModel):
    """Size of the simulated cluster"""
    node_count: int = Field(default=4, description="Number of mongod nodes", ge=1, le=50)
    replica_count: int = Field(default=1, description="Voting secondaries behind the primary", ge=0, le=6)
    per_node_capacity_mb: int = Field(default=512, description="Memory limit per node in MB", ge=256)


class ControlCode(str, Enum):
    """Runtime controls understood by the simulated cluster"""
    SET_TOPOLOGY_PUSH = "SET_TOPOLOGY_PUSH"
    SET_SASL_MECHANISMS = "SET_SASL_MECHANISMS"


class MockCommand(BaseModel):
    """A control command sent to the simulated cluster"""
    code: ControlCode = Field(..., description="Control to apply")
    params: Dict[str, Any] = Field(default_factory=dict, description="Control parameters")


class BootstrapCredentials(BaseModel):
    """Address and credentials used once to open the cluster handle"""
    connection_address: str = Field(..., description="MongoDB connection string")
    username: str = Field(default="", description="User name")
    password: str = Field(default="", description="Password, empty for unauthenticated access")


class SimulatedTarget(BaseModel):
    """Run against a freshly started simulated cluster"""
    mode: Literal["simulated"] = "simulated"
    topology: MockTopology = Field(default_factory=MockTopology)
    buckets: List[BucketSpec] = Field(..., min_length=1)


class RealTarget(BaseModel):
    """Run against an existing deployment"""
    mode: Literal["real"] = "real"
    address: str = Field(..., min_length=1)
    username: str = ""
    password: str = ""
    version: str = Field(..., description="Server version to gate features on")


BootstrapTarget = Annotated[Union[SimulatedTarget, RealTarget], Field(discriminator="mode")]


class ClusterTestContext(BaseModel):
    """
    Everything a test case needs from the run: the opened cluster, the
    working bucket and collection, and what the target supports.

    Owned by SuiteLifecycle. Tests must not close or reconfigure any of
    the handles; after teardown they must not be used at all.
    """
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    cluster: Any = Field(..., description="ClusterHandle")
    bucket: Any = Field(..., description="BucketHandle of the target bucket")
    collection: Any = Field(..., description="Working CollectionHandle")
    mock: Optional[Any] = Field(None, description="MockCluster, only in simulated mode")
    version: NodeVersion
    feature_overrides: FeatureOverrides = Field(default_factory=FeatureOverrides)

    @property
    def is_simulated(self) -> bool:
        return self.version.is_simulated

    def supports_feature(self, code: Union[FeatureCode, str]) -> bool:
        return feature_supported(self.version, self.feature_overrides, code)

    def not_supports_feature(self, code: Union[FeatureCode, str]) -> bool:
        return not self.supports_feature(code)
