from typing import List, Optional


class ClusterSuiteError(Exception):
    """Base class for harness errors"""


class FatalSetupError(ClusterSuiteError):
    """The run cannot proceed: the target environment could not be prepared"""


class ParseError(ClusterSuiteError, ValueError):
    """A version string could not be parsed"""


class ReadinessTimeout(ClusterSuiteError):
    """A bucket did not reach the desired state before its timeout"""


class SeedingError(ClusterSuiteError):
    """
    Writing a fixture dataset failed part way through.

    Documents written before the failure are left in place; re-seeding
    the same partition label overwrites them.
    """

    def __init__(self, dataset_name: str, partition_label: str, written: int, cause: Optional[Exception] = None):
        self.dataset_name = dataset_name
        self.partition_label = partition_label
        self.written = written
        message = f"Failed to seed dataset '{dataset_name}' as '{partition_label}' after {written} documents"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class TeardownError(ClusterSuiteError):
    """One or more run-scoped resources failed to close"""

    def __init__(self, errors: List[Exception]):
        self.errors = errors
        details = "; ".join(str(e) for e in errors)
        super().__init__(f"Failed to close cluster resources: {details}")
