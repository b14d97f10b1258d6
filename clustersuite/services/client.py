from pymongo import MongoClient, ReadPreference
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import PyMongoError
from pydantic import BaseModel
from typing import Any, Dict, Union
import logging

from clustersuite.errors import ReadinessTimeout
from clustersuite.models.cluster import BootstrapCredentials, ClusterState
from clustersuite.services.polling import deadline_after, poll_until

logger = logging.getLogger(__name__)

DEFAULT_COLLECTION = "_default"
READINESS_POLL_INTERVAL = 0.1


class CollectionHandle:
    """A collection documents are written to"""

    def __init__(self, collection: Collection):
        self.collection = collection

    @property
    def name(self) -> str:
        return self.collection.name

    def upsert(self, key: str, document: Union[BaseModel, Dict[str, Any]]):
        """
        Insert or replace the document stored under ``key``

        Args:
            key: Document key, stored as ``_id``
            document: Pydantic model or plain mapping

        Returns:
            UpdateResult: Result of the replace
        """
        if isinstance(document, BaseModel):
            body = document.model_dump(mode="json")
        else:
            body = dict(document)
        body.pop("_id", None)

        return self.collection.replace_one({"_id": key}, body, upsert=True)


class BucketHandle:
    """A bucket maps to one database of the cluster"""

    def __init__(self, database: Database):
        self.database = database

    @property
    def name(self) -> str:
        return self.database.name

    def default_collection(self) -> CollectionHandle:
        return CollectionHandle(self.database[DEFAULT_COLLECTION])

    def collection(self, name: str) -> CollectionHandle:
        return CollectionHandle(self.database[name])

    def _in_state(self, desired_state: ClusterState) -> bool:
        topology = self.database.client.topology_description
        if desired_state == ClusterState.OFFLINE:
            return not topology.has_readable_server(ReadPreference.NEAREST)

        if not topology.has_writable_server():
            return False

        if desired_state == ClusterState.ONLINE:
            servers = topology.server_descriptions().values()
            if not all(server.is_server_type_known for server in servers):
                return False

        try:
            self.database.command("ping")
        except PyMongoError as e:
            logger.debug(f"Bucket '{self.name}' not answering yet: {e}")
            return False
        return True

    def wait_until_ready(self, timeout: float, desired_state: ClusterState = ClusterState.ONLINE):
        """
        Block until the bucket reaches ``desired_state``

        ONLINE needs a writable primary and every known member reachable,
        DEGRADED only needs the writable primary.

        Raises:
            ReadinessTimeout: If the state is not reached within timeout seconds
        """
        logger.info(f"Waiting up to {timeout}s for bucket '{self.name}' to be {desired_state.value}")

        ready = poll_until(
            deadline_after(timeout),
            READINESS_POLL_INTERVAL,
            lambda: self._in_state(desired_state)
        )
        if not ready:
            raise ReadinessTimeout(
                f"Bucket '{self.name}' did not become {desired_state.value} within {timeout}s"
            )

        logger.info(f"Bucket '{self.name}' is {desired_state.value}")


class ClusterHandle:
    """Connection to the cluster under test"""

    def __init__(self, client: MongoClient):
        self.client = client

    def bucket(self, name: str) -> BucketHandle:
        return BucketHandle(self.client[name])

    def close(self):
        self.client.close()
        logger.info("Closed cluster connection")


def connect(address: str, credentials: BootstrapCredentials) -> ClusterHandle:
    """
    Open a cluster handle

    An empty password opens an unauthenticated connection.

    Args:
        address: MongoDB connection string
        credentials: Credentials derived for this run

    Returns:
        ClusterHandle: The opened handle
    """
    options: Dict[str, Any] = {
        "serverSelectionTimeoutMS": 5000,
        "connectTimeoutMS": 5000
    }
    if credentials.username and credentials.password:
        options["username"] = credentials.username
        options["password"] = credentials.password

    try:
        client = MongoClient(address, **options)
    except PyMongoError as e:
        logger.error(f"Failed to create MongoDB client for {address}: {e}")
        raise

    logger.info(f"Created MongoDB client for {address}")
    return ClusterHandle(client)
