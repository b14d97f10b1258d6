from typing import Callable, List, Optional, Tuple
import logging

from pydantic import TypeAdapter, ValidationError

from clustersuite.config import Settings
from clustersuite.errors import FatalSetupError
from clustersuite.models.cluster import (
    BootstrapCredentials,
    BootstrapTarget,
    BucketSpec,
    BucketType,
    ClusterState,
    ClusterTestContext,
    ControlCode,
    MockCommand,
    MockTopology,
    RealTarget,
    SimulatedTarget
)
from clustersuite.models.features import parse_feature_flags
from clustersuite.models.version import parse_node_version
from clustersuite.services.client import ClusterHandle, connect
from clustersuite.services.mock_cluster import MockCluster, start_mock

logger = logging.getLogger(__name__)

DEFAULT_SERVER_VERSION = "6.0.0"
MOCK_TOPOLOGY = MockTopology(node_count=4, replica_count=1, per_node_capacity_mb=512)
MOCK_CONTROLS = [
    MockCommand(code=ControlCode.SET_TOPOLOGY_PUSH, params={"enabled": True}),
    MockCommand(code=ControlCode.SET_SASL_MECHANISMS, params={"mechs": ["SCRAM-SHA-256"]}),
]

_target_adapter = TypeAdapter(BootstrapTarget)


class ClusterBootstrap:
    """Prepares the cluster a test run works against"""

    def __init__(
        self,
        settings: Settings,
        connector: Callable[[str, BootstrapCredentials], ClusterHandle] = connect,
        mock_starter: Callable[[MockTopology, List[BucketSpec]], MockCluster] = start_mock
    ):
        self.settings = settings
        self.connector = connector
        self.mock_starter = mock_starter

    def resolve_target(self) -> BootstrapTarget:
        """
        Decide between a simulated cluster and a real deployment

        Raises:
            FatalSetupError: If a version is configured without a server
        """
        if not self.settings.server and self.settings.version:
            raise FatalSetupError("version cannot be specified with the simulated cluster")

        try:
            return _target_adapter.validate_python(self._target_fields())
        except ValidationError as e:
            raise FatalSetupError(f"Invalid cluster configuration: {e}") from e

    def _target_fields(self) -> dict:
        if not self.settings.server:
            return {
                "mode": "simulated",
                "topology": MOCK_TOPOLOGY,
                "buckets": [{"name": self.settings.bucket, "type": BucketType.PERSISTENT}]
            }

        return {
            "mode": "real",
            "address": self.settings.server,
            "username": self.settings.username,
            "password": self.settings.password,
            "version": self.settings.version or DEFAULT_SERVER_VERSION
        }

    def _start_simulated(self, target: SimulatedTarget) -> Tuple[MockCluster, BootstrapCredentials, str]:
        mock = self.mock_starter(target.topology, target.buckets)
        try:
            for command in MOCK_CONTROLS:
                mock.control(command)

            version = mock.version()
            addresses = [f"{self.settings.mock_host}:{port}" for port in mock.data_ports()]
        except Exception:
            self._release(None, mock)
            raise

        credentials = BootstrapCredentials(
            connection_address=f"mongodb://{','.join(addresses)}",
            username=self.settings.mock_username,
            password=""
        )
        return mock, credentials, version

    def _prepare(self, target: BootstrapTarget) -> Tuple[Optional[MockCluster], BootstrapCredentials, str]:
        if isinstance(target, SimulatedTarget):
            return self._start_simulated(target)
        if isinstance(target, RealTarget):
            credentials = BootstrapCredentials(
                connection_address=target.address,
                username=target.username,
                password=target.password
            )
            return None, credentials, target.version
        raise TypeError(f"Unknown bootstrap target {type(target).__name__}")

    def bootstrap(self) -> ClusterTestContext:
        """
        Open the cluster for this run

        Returns:
            ClusterTestContext: The run context

        Raises:
            FatalSetupError: On any failure; nothing is left running
        """
        target = self.resolve_target()
        logger.info(f"Bootstrapping {target.mode} cluster")

        try:
            overrides = parse_feature_flags(self.settings.features)
        except ValueError as e:
            raise FatalSetupError(f"Invalid feature flags: {e}") from e

        mock = None
        cluster = None
        try:
            mock, credentials, version_string = self._prepare(target)

            cluster = self.connector(credentials.connection_address, credentials)
            version = parse_node_version(version_string, is_simulated=mock is not None)
            logger.info(f"Cluster version {version} (simulated: {version.is_simulated})")

            bucket = cluster.bucket(self.settings.bucket)
            bucket.wait_until_ready(self.settings.readiness_timeout_seconds, ClusterState.ONLINE)

            if self.settings.collection:
                collection = bucket.collection(self.settings.collection)
            else:
                collection = bucket.default_collection()

        except Exception as e:
            logger.error(f"Failed to bootstrap {target.mode} cluster: {e}")
            self._release(cluster, mock)
            raise FatalSetupError(f"Cluster setup failed: {e}") from e

        return ClusterTestContext(
            cluster=cluster,
            bucket=bucket,
            collection=collection,
            mock=mock,
            version=version,
            feature_overrides=overrides
        )

    def _release(self, cluster: Optional[ClusterHandle], mock: Optional[MockCluster]):
        for resource in (cluster, mock):
            if resource is None:
                continue
            try:
                resource.close()
            except Exception as e:
                logger.warning(f"Failed to release {type(resource).__name__} after setup failure: {e}")
