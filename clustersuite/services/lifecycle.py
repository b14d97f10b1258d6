from enum import Enum
import logging

from clustersuite.errors import TeardownError
from clustersuite.models.cluster import ClusterTestContext
from clustersuite.services.bootstrap import ClusterBootstrap

logger = logging.getLogger(__name__)


class SuiteState(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    CLOSED = "closed"


class SuiteLifecycle:
    """
    Owns the run context: bootstrapped once before the first test,
    closed once after the last. There is no way back from CLOSED.
    """

    def __init__(self, bootstrapper: ClusterBootstrap):
        self.bootstrapper = bootstrapper
        self.state = SuiteState.UNINITIALIZED
        self._context = None

    @property
    def context(self) -> ClusterTestContext:
        if self.state != SuiteState.READY:
            raise RuntimeError(f"Cluster context is not available in state '{self.state.value}'")
        return self._context

    def setup(self) -> ClusterTestContext:
        """
        Bootstrap the cluster for the run

        Raises:
            RuntimeError: If setup already ran
            FatalSetupError: If the cluster could not be prepared
        """
        if self.state != SuiteState.UNINITIALIZED:
            raise RuntimeError(f"Suite setup already ran (state '{self.state.value}')")

        self._context = self.bootstrapper.bootstrap()
        self.state = SuiteState.READY
        logger.info("Cluster suite ready")
        return self._context

    def teardown(self):
        """
        Close the cluster handle, then the simulated cluster if any

        Raises:
            RuntimeError: If the suite is not READY
            TeardownError: If any resource failed to close
        """
        if self.state != SuiteState.READY:
            raise RuntimeError(f"Cannot tear down suite in state '{self.state.value}'")

        context = self._context
        self.state = SuiteState.CLOSED
        self._context = None

        errors = []
        for name, resource in (("cluster", context.cluster), ("simulated cluster", context.mock)):
            if resource is None:
                continue
            try:
                resource.close()
            except Exception as e:
                logger.error(f"Failed to close {name}: {e}")
                errors.append(e)

        if errors:
            raise TeardownError(errors)
        logger.info("Cluster suite closed")
