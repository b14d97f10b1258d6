"""
Pytest configuration for integration tests

The shared cluster fixtures come from clustersuite.pytest_plugin.
"""
import logging

from clustersuite.services.polling import deadline_after, poll_until

logger = logging.getLogger(__name__)

SEED_DATASET = "brewery_sample"
SEED_DATASET_SIZE = 6


def wait_for_condition(condition_fn, timeout=30, interval=0.5, description="condition"):
    """Wait for a condition to be true."""
    def attempt():
        try:
            return bool(condition_fn())
        except Exception as e:
            logger.debug(f"Waiting for {description}: {e}")
            return False

    if not poll_until(deadline_after(timeout), interval, attempt):
        raise TimeoutError(f"Timeout waiting for {description} after {timeout}s")
    return True
