import pytest

from clients.local_store import InMemoryKeyValueStore
from clients.remote_store import InMemoryRemoteStore
from planner.store import PlannerStore


@pytest.fixture
def kv():
    return InMemoryKeyValueStore()


@pytest.fixture
def remote():
    return InMemoryRemoteStore()


@pytest.fixture
def store(kv):
    return PlannerStore(kv)
