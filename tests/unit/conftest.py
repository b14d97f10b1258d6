"""
Fakes shared by the unit tests
"""
import pytest
from typing import Dict, List, Optional

from clustersuite.config import Settings


class FakeCollection:
    """Collection that keeps upserted documents in memory"""

    def __init__(self, name: str = "_default", fail_on: Optional[str] = None):
        self.name = name
        self.fail_on = fail_on
        self.documents: Dict[str, object] = {}
        self.writes: List[str] = []

    def upsert(self, key, document):
        if key == self.fail_on:
            raise ConnectionError(f"write of {key} failed")
        self.writes.append(key)
        self.documents[key] = document


class FakeBucket:
    def __init__(self, name: str, ready_error: Optional[Exception] = None):
        self.name = name
        self.ready_error = ready_error
        self.waits = []
        self.collections: Dict[str, FakeCollection] = {}

    def wait_until_ready(self, timeout, desired_state):
        self.waits.append((timeout, desired_state))
        if self.ready_error is not None:
            raise self.ready_error

    def default_collection(self):
        return self.collection("_default")

    def collection(self, name):
        return self.collections.setdefault(name, FakeCollection(name))


class FakeCluster:
    def __init__(self, ready_error: Optional[Exception] = None, close_error: Optional[Exception] = None):
        self.ready_error = ready_error
        self.close_error = close_error
        self.buckets: Dict[str, FakeBucket] = {}
        self.closed = 0

    def bucket(self, name):
        return self.buckets.setdefault(name, FakeBucket(name, self.ready_error))

    def close(self):
        self.closed += 1
        if self.close_error is not None:
            raise self.close_error


class FakeMock:
    """Stands in for MockCluster"""

    def __init__(self, version: str = "7.0.12", ports=(27100, 27101, 27102, 27103),
                 control_error: Optional[Exception] = None, close_error: Optional[Exception] = None):
        self._version = version
        self.ports = list(ports)
        self.control_error = control_error
        self.close_error = close_error
        self.controls = []
        self.closed = 0

    def control(self, command):
        if self.control_error is not None:
            raise self.control_error
        self.controls.append(command)

    def version(self):
        return self._version

    def data_ports(self):
        return list(self.ports)

    def close(self):
        self.closed += 1
        if self.close_error is not None:
            raise self.close_error


class FakeClock:
    """Manual clock: sleeping advances time instantly"""

    def __init__(self, start: float = 100.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def make_settings():
    """Settings built from keyword arguments only, ignoring .env files"""
    def build(**overrides) -> Settings:
        return Settings(_env_file=None, **overrides)
    return build


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()
