from pymongo import MongoClient
from pymongo.errors import CollectionInvalid, PyMongoError
from typing import Any, Dict, List, Optional
import logging

from clustersuite.config import Settings, settings as default_settings
from clustersuite.errors import ReadinessTimeout
from clustersuite.models.cluster import (
    BucketSpec,
    BucketType,
    ControlCode,
    MockCommand,
    MockTopology
)
from clustersuite.services.client import DEFAULT_COLLECTION
from clustersuite.services.docker_manager import DockerManager, get_docker_manager
from clustersuite.services.polling import deadline_after, poll_until

logger = logging.getLogger(__name__)

NODE_POLL_INTERVAL = 0.5
PRIMARY_POLL_INTERVAL = 1.0


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


class MockCluster:
    """
    A simulated cluster: a replica set of mongod containers on this host.

    The primary is followed by ``replica_count`` voting secondaries; any
    further nodes are non-voting members that never become primary.
    """

    def __init__(
        self,
        topology: MockTopology,
        buckets: List[BucketSpec],
        docker_manager: Optional[DockerManager] = None,
        settings: Settings = default_settings
    ):
        if topology.replica_count >= topology.node_count:
            raise ValueError(
                f"replica_count ({topology.replica_count}) must be lower than node_count ({topology.node_count})"
            )

        self.topology = topology
        self.buckets = buckets
        self.docker_manager = docker_manager or get_docker_manager()
        self.settings = settings
        self.replica_set_name = settings.mock_replica_set_name
        self.host = settings.mock_host
        self.ports = [settings.mock_start_port + i for i in range(topology.node_count)]
        self.node_ids = [f"{self.replica_set_name}-node{i+1}" for i in range(topology.node_count)]
        self.parameters: Dict[str, Any] = {}
        self.client: Optional[MongoClient] = None
        self._version: Optional[str] = None

    def _node_config(self, port: int) -> Dict[str, Any]:
        """mongod configuration for one node"""
        cache_size_gb = max(0.25, round(self.topology.per_node_capacity_mb / 2 / 1024, 2))
        config: Dict[str, Any] = {
            "net": {"port": port, "bindIpAll": True},
            "replication": {"replSetName": self.replica_set_name},
            "storage": {
                "dbPath": "/data/db",
                "wiredTiger": {"engineConfig": {"cacheSizeGB": cache_size_gb}}
            }
        }
        if self.parameters:
            config["setParameter"] = dict(self.parameters)
        return config

    def _seed_list(self) -> str:
        return ",".join(f"{self.host}:{port}" for port in self.ports)

    def start(self):
        """Create the nodes, initiate the replica set and create the buckets"""
        logger.info(
            f"Starting simulated cluster '{self.replica_set_name}' with {self.topology.node_count} nodes "
            f"and {self.topology.replica_count} replicas"
        )

        # Containers left behind by an earlier, interrupted run
        self.docker_manager.cleanup_replica_set(self.replica_set_name)

        try:
            for node_id, port in zip(self.node_ids, self.ports):
                self.docker_manager.create_node(
                    node_id=node_id,
                    config=self._node_config(port),
                    memory_limit_mb=self.topology.per_node_capacity_mb
                )

            self._initiate_replica_set()
            self.client = MongoClient(
                f"mongodb://{self._seed_list()}/?replicaSet={self.replica_set_name}",
                serverSelectionTimeoutMS=5000,
                connectTimeoutMS=5000
            )
            self._wait_for_primary()
            self._create_buckets()

        except Exception as e:
            logger.error(f"Failed to start simulated cluster '{self.replica_set_name}': {e}")
            # Cleanup on failure
            try:
                self.close()
            except Exception as cleanup_error:
                logger.warning(f"Cleanup after failed start was incomplete: {cleanup_error}")
            raise

        logger.info(f"Simulated cluster '{self.replica_set_name}' running on ports {self.ports}")

    def _wait_for_node(self, port: int):
        node_client = MongoClient(
            f"mongodb://{self.host}:{port}/?directConnection=true",
            serverSelectionTimeoutMS=1000
        )

        def answers_ping() -> bool:
            try:
                node_client.admin.command("ping")
                return True
            except PyMongoError as e:
                logger.debug(f"Node on port {port} not up yet: {e}")
                return False

        try:
            deadline = deadline_after(self.settings.mock_ready_timeout_seconds)
            if not poll_until(deadline, NODE_POLL_INTERVAL, answers_ping):
                raise ReadinessTimeout(f"mongod on port {port} did not start")
        finally:
            node_client.close()

    def _initiate_replica_set(self):
        for port in self.ports:
            self._wait_for_node(port)

        voting = self.topology.replica_count + 1
        rs_config = {
            "_id": self.replica_set_name,
            "members": [
                {
                    "_id": idx,
                    "host": f"{self.host}:{port}",
                    "priority": 1 if idx < voting else 0,
                    "votes": 1 if idx < voting else 0
                }
                for idx, port in enumerate(self.ports)
            ]
        }

        logger.info(f"Initiating replica set with config: {rs_config}")
        first = MongoClient(
            f"mongodb://{self.host}:{self.ports[0]}/?directConnection=true",
            serverSelectionTimeoutMS=5000
        )
        try:
            first.admin.command("replSetInitiate", rs_config)
        finally:
            first.close()

    def _primary_answers(self) -> bool:
        # The topology view can still show a primary from before a restart
        if not self.client.topology_description.has_writable_server():
            return False
        try:
            reply = self.client.admin.command("hello")
        except PyMongoError as e:
            logger.debug(f"Primary not answering yet: {e}")
            return False
        return bool(reply.get("isWritablePrimary"))

    def _wait_for_primary(self):
        logger.info("Waiting for replica set to elect primary...")
        deadline = deadline_after(self.settings.mock_ready_timeout_seconds)
        elected = poll_until(deadline, PRIMARY_POLL_INTERVAL, self._primary_answers)
        if not elected:
            logs = self.docker_manager.get_container_logs(self.node_ids[0], tail=20)
            logger.error(f"No primary elected, last log lines of {self.node_ids[0]}:\n{logs}")
            raise ReadinessTimeout(
                f"Replica set '{self.replica_set_name}' elected no primary "
                f"within {self.settings.mock_ready_timeout_seconds}s"
            )

    def _create_buckets(self):
        capacity_bytes = self.topology.per_node_capacity_mb * 1024 * 1024
        for bucket in self.buckets:
            database = self.client[bucket.name]
            try:
                if bucket.type == BucketType.EPHEMERAL:
                    # Oldest documents are evicted once the node capacity is reached
                    database.create_collection(DEFAULT_COLLECTION, capped=True, size=capacity_bytes)
                else:
                    database.create_collection(DEFAULT_COLLECTION)
                logger.info(f"Created {bucket.type.value} bucket '{bucket.name}'")
            except CollectionInvalid:
                logger.debug(f"Bucket '{bucket.name}' already exists")

    def control(self, command: MockCommand):
        """
        Apply a runtime control to every node

        Both controls are mongod startup parameters, so each node's config
        is rewritten and the nodes are restarted.
        """
        logger.info(f"Applying control {command.code.value} {command.params}")

        if command.code == ControlCode.SET_TOPOLOGY_PUSH:
            enabled = _truthy(command.params.get("enabled", True))
            self.parameters["replicaSetMonitorProtocol"] = "streamable" if enabled else "sdam"
        elif command.code == ControlCode.SET_SASL_MECHANISMS:
            mechs = command.params.get("mechs")
            if not isinstance(mechs, (list, tuple)) or not mechs or not all(isinstance(m, str) and m for m in mechs):
                raise ValueError(f"SET_SASL_MECHANISMS needs a non-empty list of mechanisms, got {mechs!r}")
            self.parameters["authenticationMechanisms"] = ",".join(mechs)
        else:
            raise ValueError(f"Unsupported control command '{command.code}'")

        for node_id, port in zip(self.node_ids, self.ports):
            self.docker_manager.write_node_config(node_id, self._node_config(port))
            self.docker_manager.restart_node(node_id)

        self._wait_for_primary()

    def version(self) -> str:
        """Server version reported by the simulated nodes"""
        if self._version is None:
            self._version = self.client.admin.command("buildInfo")["version"]
        return self._version

    def data_ports(self) -> List[int]:
        """Host ports of the mongod nodes, in member order"""
        return list(self.ports)

    def close(self):
        """Stop and remove every node"""
        if self.client is not None:
            self.client.close()
            self.client = None

        errors = []
        for node_id in self.node_ids:
            try:
                self.docker_manager.remove_node(node_id, force=True)
            except Exception as e:
                logger.error(f"Failed to remove node {node_id}: {e}")
                errors.append(e)

        if errors:
            raise RuntimeError(
                f"Failed to remove {len(errors)} node(s) of '{self.replica_set_name}': {errors[0]}"
            )
        logger.info(f"Cleaned up simulated cluster '{self.replica_set_name}'")


def start_mock(
    topology: MockTopology,
    buckets: List[BucketSpec],
    docker_manager: Optional[DockerManager] = None
) -> MockCluster:
    """Start a simulated cluster and return its handle"""
    mock = MockCluster(topology, buckets, docker_manager=docker_manager)
    mock.start()
    return mock
