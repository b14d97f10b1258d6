"""
Unit tests for the simulated cluster, with Docker and pymongo mocked out.
"""
from unittest.mock import MagicMock, call, patch

import pytest
from pymongo.errors import AutoReconnect

from clustersuite.errors import ReadinessTimeout
from clustersuite.models.cluster import BucketSpec, BucketType, ControlCode, MockCommand, MockTopology
from clustersuite.services.mock_cluster import MockCluster, start_mock


@pytest.fixture
def docker_manager():
    return MagicMock()


@pytest.fixture
def mock_settings(make_settings):
    return make_settings(mock_start_port=27100, mock_ready_timeout_seconds=0.2)


@pytest.fixture
def mongo_client():
    with patch("clustersuite.services.mock_cluster.MongoClient") as client_cls:
        client = client_cls.return_value
        client.topology_description.has_writable_server.return_value = True
        client.admin.command.return_value = {"version": "7.0.12", "isWritablePrimary": True, "ok": 1}
        yield client_cls


def make_mock(docker_manager, settings, node_count=4, replica_count=1, buckets=None):
    return MockCluster(
        MockTopology(node_count=node_count, replica_count=replica_count),
        buckets or [BucketSpec(name="default")],
        docker_manager=docker_manager,
        settings=settings
    )


class TestMockClusterSetup:

    def test_replicas_must_leave_a_primary(self, docker_manager, mock_settings):
        with pytest.raises(ValueError):
            make_mock(docker_manager, mock_settings, node_count=2, replica_count=2)

    def test_ports_and_node_ids(self, docker_manager, mock_settings):
        mock = make_mock(docker_manager, mock_settings)
        assert mock.data_ports() == [27100, 27101, 27102, 27103]
        assert mock.node_ids[0] == "clustersuite-rs-node1"

    def test_node_config(self, docker_manager, mock_settings):
        config = make_mock(docker_manager, mock_settings)._node_config(27101)
        assert config["net"]["port"] == 27101
        assert config["replication"]["replSetName"] == "clustersuite-rs"
        assert "setParameter" not in config

    def test_start_creates_nodes_and_initiates(self, docker_manager, mock_settings, mongo_client):
        mock = make_mock(docker_manager, mock_settings)

        mock.start()

        docker_manager.cleanup_replica_set.assert_called_once_with("clustersuite-rs")
        assert docker_manager.create_node.call_count == 4

        initiate = [c for c in mongo_client.return_value.admin.command.call_args_list
                    if c.args and c.args[0] == "replSetInitiate"][0]
        members = initiate.args[1]["members"]
        assert [m["votes"] for m in members] == [1, 1, 0, 0]
        assert [m["priority"] for m in members] == [1, 1, 0, 0]
        assert members[2]["host"] == "127.0.0.1:27102"

        database = mongo_client.return_value.__getitem__.return_value
        database.create_collection.assert_called_once_with("_default")

    def test_ephemeral_bucket_is_capped(self, docker_manager, mock_settings, mongo_client):
        mock = make_mock(docker_manager, mock_settings, buckets=[BucketSpec(name="cache", type=BucketType.EPHEMERAL)])

        mock.start()

        database = mongo_client.return_value.__getitem__.return_value
        args, kwargs = database.create_collection.call_args
        assert args == ("_default",)
        assert kwargs["capped"] is True
        assert kwargs["size"] == 512 * 1024 * 1024

    def test_failed_start_removes_nodes(self, docker_manager, mock_settings, mongo_client):
        mongo_client.return_value.topology_description.has_writable_server.return_value = False
        mock = make_mock(docker_manager, mock_settings)

        with pytest.raises(ReadinessTimeout):
            mock.start()

        removed = [c.args[0] for c in docker_manager.remove_node.call_args_list]
        assert removed == mock.node_ids

    def test_start_mock_returns_started_handle(self, docker_manager, mongo_client):
        mock = start_mock(MockTopology(), [BucketSpec(name="default")], docker_manager=docker_manager)
        assert mock.client is not None
        assert docker_manager.create_node.call_count == 4


class TestMockClusterControl:

    @pytest.fixture
    def started(self, docker_manager, mock_settings):
        mock = make_mock(docker_manager, mock_settings)
        mock.client = MagicMock()
        mock.client.topology_description.has_writable_server.return_value = True
        return mock

    def test_topology_push(self, started, docker_manager):
        started.control(MockCommand(code=ControlCode.SET_TOPOLOGY_PUSH, params={"enabled": "true"}))

        assert started.parameters == {"replicaSetMonitorProtocol": "streamable"}
        assert docker_manager.restart_node.call_count == 4
        node_id, config = docker_manager.write_node_config.call_args.args
        assert config["setParameter"] == {"replicaSetMonitorProtocol": "streamable"}

    def test_topology_push_disabled(self, started):
        started.control(MockCommand(code=ControlCode.SET_TOPOLOGY_PUSH, params={"enabled": False}))
        assert started.parameters["replicaSetMonitorProtocol"] == "sdam"

    def test_sasl_mechanisms(self, started, docker_manager):
        started.control(MockCommand(code=ControlCode.SET_SASL_MECHANISMS, params={"mechs": ["SCRAM-SHA-256"]}))

        assert started.parameters == {"authenticationMechanisms": "SCRAM-SHA-256"}
        docker_manager.restart_node.assert_has_calls([call(node_id) for node_id in started.node_ids])

    @pytest.mark.parametrize("mechs", [None, [], [""], "SCRAM-SHA-256"])
    def test_sasl_mechanisms_validated(self, started, docker_manager, mechs):
        with pytest.raises(ValueError):
            started.control(MockCommand(code=ControlCode.SET_SASL_MECHANISMS, params={"mechs": mechs}))
        docker_manager.restart_node.assert_not_called()

    def test_waits_for_restarted_primary(self, started, monkeypatch):
        monkeypatch.setattr("clustersuite.services.mock_cluster.PRIMARY_POLL_INTERVAL", 0.01)
        started.client.admin.command.side_effect = [
            AutoReconnect("connection reset"),
            {"isWritablePrimary": False},
            {"isWritablePrimary": True},
        ]

        started.control(MockCommand(code=ControlCode.SET_TOPOLOGY_PUSH, params={"enabled": True}))

        assert started.client.admin.command.call_count == 3
        started.client.admin.command.assert_called_with("hello")

    def test_stale_primary_is_not_ready(self, started, monkeypatch):
        monkeypatch.setattr("clustersuite.services.mock_cluster.PRIMARY_POLL_INTERVAL", 0.01)
        started.client.admin.command.return_value = {"isWritablePrimary": False}

        with pytest.raises(ReadinessTimeout):
            started.control(MockCommand(code=ControlCode.SET_TOPOLOGY_PUSH, params={"enabled": True}))

    def test_version_is_cached(self, started):
        started.client.admin.command.return_value = {"version": "7.0.12"}

        assert started.version() == "7.0.12"
        assert started.version() == "7.0.12"
        started.client.admin.command.assert_called_once_with("buildInfo")


class TestMockClusterClose:

    def test_close_removes_all_nodes(self, docker_manager, mock_settings):
        mock = make_mock(docker_manager, mock_settings)
        client = MagicMock()
        mock.client = client

        mock.close()

        client.close.assert_called_once()
        assert mock.client is None
        assert docker_manager.remove_node.call_count == 4

    def test_close_tries_every_node(self, docker_manager, mock_settings):
        docker_manager.remove_node.side_effect = [True, RuntimeError("busy"), True, True]
        mock = make_mock(docker_manager, mock_settings)

        with pytest.raises(RuntimeError):
            mock.close()

        assert docker_manager.remove_node.call_count == 4
