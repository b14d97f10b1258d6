"""
pytest integration for clustersuite

Load it from a conftest.py:

    pytest_plugins = ["clustersuite.pytest_plugin"]

Tests marked ``integration`` share one cluster for the whole session and
only run with ``--integration``. The cluster is started (or connected to)
on first use and closed after the last test; a setup failure aborts the
run before any test executes.
"""
import logging
from typing import Callable, Union

import pytest

from clustersuite.config import Settings, settings
from clustersuite.errors import FatalSetupError, TeardownError
from clustersuite.models.cluster import ClusterTestContext
from clustersuite.models.features import FeatureCode
from clustersuite.services.bootstrap import ClusterBootstrap
from clustersuite.services.feature_gate import skip_if_unsupported
from clustersuite.services.lifecycle import SuiteLifecycle
from clustersuite.services.seeder import DatasetSeeder

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def pytest_addoption(parser):
    group = parser.getgroup("clustersuite")
    group.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="run tests marked 'integration' against a real or simulated cluster"
    )


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "integration: needs the shared cluster, skipped unless --integration is given"
    )
    config.addinivalue_line(
        "markers", "requires_feature(*codes): skip unless the cluster supports every listed feature"
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless explicitly requested."""
    if config.getoption("--integration"):
        return

    skip_marker = pytest.mark.skip(reason="integration tests require --integration")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_marker)


@pytest.fixture(scope="session")
def cluster_settings() -> Settings:
    """Run configuration; override in a conftest.py to change it per project."""
    return settings


@pytest.fixture(scope="session")
def cluster_bootstrap(cluster_settings) -> ClusterBootstrap:
    """Prepares the cluster; override to change how the run gets its cluster."""
    return ClusterBootstrap(cluster_settings)


@pytest.fixture(scope="session")
def cluster_suite(cluster_bootstrap):
    """Set up the shared cluster once, tear it down after the last test."""
    lifecycle = SuiteLifecycle(cluster_bootstrap)

    try:
        lifecycle.setup()
    except FatalSetupError as e:
        logger.error(f"Aborting test run: {e}")
        pytest.exit(f"Cluster setup failed: {e}", returncode=pytest.ExitCode.INTERNAL_ERROR)

    yield lifecycle

    logger.info("Test session complete. Closing cluster...")
    try:
        lifecycle.teardown()
    except TeardownError as e:
        pytest.fail(str(e), pytrace=False)


@pytest.fixture(scope="session")
def cluster_context(cluster_suite) -> ClusterTestContext:
    """Read-only run context: version, feature flags and handles."""
    return cluster_suite.context


@pytest.fixture(scope="session")
def cluster_bucket(cluster_context):
    return cluster_context.bucket


@pytest.fixture(scope="session")
def cluster_collection(cluster_context):
    return cluster_context.collection


@pytest.fixture
def dataset_seeder(cluster_collection) -> DatasetSeeder:
    return DatasetSeeder(cluster_collection)


@pytest.fixture
def skip_unless_supported(cluster_context) -> Callable[[Union[FeatureCode, str]], None]:
    """Call with a feature code to skip the current test when it is unsupported."""
    def check(code: Union[FeatureCode, str]):
        skip_if_unsupported(cluster_context, code)
    return check


@pytest.fixture(autouse=True)
def _required_features(request):
    """Honour @pytest.mark.requires_feature before the test body runs."""
    markers = list(request.node.iter_markers("requires_feature"))
    if not markers:
        return

    context = request.getfixturevalue("cluster_context")
    for marker in markers:
        for code in marker.args:
            skip_if_unsupported(context, code)
