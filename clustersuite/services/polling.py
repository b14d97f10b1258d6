import logging
import time
from typing import Callable

logger = logging.getLogger(__name__)


def deadline_after(seconds: float, clock: Callable[[], float] = time.monotonic) -> float:
    """Deadline ``seconds`` from now, on the same clock poll_until uses"""
    return clock() + seconds


def poll_until(
    deadline: float,
    interval: float,
    predicate: Callable[[], bool],
    *,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep
) -> bool:
    """
    Evaluate ``predicate`` until it returns True or the deadline passes.

    The predicate is evaluated immediately and then once per interval. No
    attempt is scheduled past the deadline, so a deadline that has already
    passed gives exactly one evaluation. A false predicate is not an
    error: the caller decides what a False result means.

    Args:
        deadline: Absolute time on ``clock`` (see deadline_after)
        interval: Seconds between attempts, must be positive
        predicate: Condition to wait for
        clock: Monotonic time source
        sleep: Blocking wait

    Returns:
        bool: True if the predicate succeeded before the deadline

    Raises:
        ValueError: If interval is not positive
    """
    if interval <= 0:
        raise ValueError(f"Polling interval must be positive, got {interval}")

    attempts = 0
    while True:
        attempts += 1
        if predicate():
            return True

        next_attempt = clock() + interval
        if next_attempt > deadline:
            logger.debug(f"Giving up after {attempts} attempts: deadline reached")
            return False

        sleep(max(0.0, next_attempt - clock()))
