import docker
from docker.models.containers import Container
from typing import Any, Dict, Optional
import io
import json
import logging
import tarfile
import time

from clustersuite.config import settings

logger = logging.getLogger(__name__)

CONFIG_DIR = "/etc"
CONFIG_FILE_NAME = "clustersuite-mongod.conf"
CONFIG_PATH = f"{CONFIG_DIR}/{CONFIG_FILE_NAME}"

NODE_LABEL = "clustersuite.node"
REPLICA_SET_LABEL = "clustersuite.replica_set"


def _config_archive(config: Dict[str, Any]) -> bytes:
    """Pack a mongod config file into a tar stream for put_archive"""
    # JSON is valid YAML, which is what mongod reads
    payload = json.dumps(config, indent=2).encode("utf-8")

    stream = io.BytesIO()
    with tarfile.open(fileobj=stream, mode="w") as tar:
        info = tarfile.TarInfo(name=CONFIG_FILE_NAME)
        info.size = len(payload)
        info.mode = 0o644
        info.mtime = int(time.time())
        tar.addfile(info, io.BytesIO(payload))
    return stream.getvalue()


class DockerManager:
    """Manages Docker containers for simulated mongod nodes"""

    def __init__(self, client: Optional[docker.DockerClient] = None):
        """Initialize Docker client"""
        try:
            self.client = client or docker.from_env()
            self.client.ping()
            logger.info("Docker client initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize Docker client: {e}")
            raise

        self.containers: Dict[str, Container] = {}

    def _get_container_name(self, node_id: str) -> str:
        """Generate container name from node ID"""
        return f"{settings.docker_container_prefix}-{node_id}"

    def _get_container(self, node_id: str) -> Container:
        if node_id not in self.containers:
            container = self.client.containers.get(self._get_container_name(node_id))
            self.containers[node_id] = container
        return self.containers[node_id]

    def _image(self) -> str:
        return f"mongo:{settings.mongodb_version}"

    def create_node(
        self,
        node_id: str,
        config: Dict[str, Any],
        memory_limit_mb: int
    ) -> Container:
        """
        Create and start a mongod container for one node

        The node uses host networking and listens on the port from its
        config, so replica set members are reachable under the same
        address from the host and from each other.

        Args:
            node_id: Unique identifier for the node
            config: mongod configuration document
            memory_limit_mb: Container memory limit

        Returns:
            Container: The started container
        """
        container_name = self._get_container_name(node_id)

        if node_id in self.containers:
            logger.warning(f"Container {container_name} already exists")
            return self.containers[node_id]

        create_args = dict(
            image=self._image(),
            name=container_name,
            command=["mongod", "--config", CONFIG_PATH],
            network_mode="host",
            mem_limit=f"{memory_limit_mb}m",
            labels={
                NODE_LABEL: node_id,
                REPLICA_SET_LABEL: config["replication"]["replSetName"]
            },
            detach=True
        )

        try:
            try:
                container = self.client.containers.create(**create_args)
            except docker.errors.ImageNotFound:
                logger.info(f"Pulling image {self._image()}")
                self.client.images.pull("mongo", tag=settings.mongodb_version)
                container = self.client.containers.create(**create_args)

            self.containers[node_id] = container
            container.put_archive(CONFIG_DIR, _config_archive(config))
            container.start()
            logger.info(f"Created container {container_name} on port {config['net']['port']}")

            return container

        except Exception as e:
            logger.error(f"Failed to create container {container_name}: {e}")
            raise

    def write_node_config(self, node_id: str, config: Dict[str, Any]):
        """Replace the mongod config file of a node, applied on next restart"""
        container = self._get_container(node_id)
        container.put_archive(CONFIG_DIR, _config_archive(config))
        logger.debug(f"Updated config of {self._get_container_name(node_id)}")

    def restart_node(self, node_id: str):
        """Restart a node so it reloads its config file"""
        container_name = self._get_container_name(node_id)

        try:
            container = self._get_container(node_id)
            container.restart(timeout=10)
            logger.info(f"Restarted container {container_name}")
        except Exception as e:
            logger.error(f"Failed to restart container {container_name}: {e}")
            raise

    def remove_node(self, node_id: str, force: bool = False) -> bool:
        """
        Remove a node container

        Args:
            node_id: Node identifier
            force: Force remove even if running

        Returns:
            bool: True if a container was removed, False if none existed
        """
        container_name = self._get_container_name(node_id)

        try:
            container = self._get_container(node_id)
        except docker.errors.NotFound:
            logger.warning(f"Container {container_name} not found")
            self.containers.pop(node_id, None)
            return False

        container.reload()
        if container.status == "running":
            container.stop(timeout=10)
            logger.info(f"Stopped container {container_name}")

        container.remove(force=force)
        logger.info(f"Removed container {container_name}")

        del self.containers[node_id]
        return True

    def get_container_logs(self, node_id: str, tail: int = 100) -> str:
        """Get logs from a node container"""
        container_name = self._get_container_name(node_id)
        try:
            container = self._get_container(node_id)
            # logs returns bytes, decode to string
            return container.logs(tail=tail).decode('utf-8')
        except Exception as e:
            logger.error(f"Failed to get logs for {container_name}: {e}")
            return f"Error retrieving logs: {str(e)}"

    def cleanup_replica_set(self, replica_set_name: str):
        """
        Remove the nodes of one replica set, including ones left by an
        interrupted earlier run

        Containers are matched on their labels, so nodes of other replica
        sets stay untouched.
        """
        logger.info(f"Cleaning up containers of replica set '{replica_set_name}'")

        containers = self.client.containers.list(
            all=True,
            filters={"label": [NODE_LABEL, f"{REPLICA_SET_LABEL}={replica_set_name}"]}
        )
        for container in containers:
            try:
                container.remove(force=True)
                logger.info(f"Removed container {container.name}")
            except Exception as e:
                logger.error(f"Failed to remove container {container.name}: {e}")
                raise
            self.containers.pop(container.labels.get(NODE_LABEL), None)


# Global instance
docker_manager = None

def get_docker_manager() -> DockerManager:
    """Get or create the docker manager instance"""
    global docker_manager
    if docker_manager is None:
        docker_manager = DockerManager()
    return docker_manager
