"""
Pytest fixtures for residency document tests.
"""

import pytest

from residency_docs.backends.stub import StubBackend
from residency_docs.notifications import CollectingNotifier
from residency_docs.state import ApiExecutor, ResidencyActions, Store


class FakeRedis:
    """In-memory stand-in for the handful of Redis commands we use."""

    def __init__(self):
        self.data: dict[str, str] = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.data[key] = value
        return True

    def delete(self, key):
        return 1 if self.data.pop(key, None) is not None else 0


@pytest.fixture
def fake_redis():
    """Empty fake Redis client."""
    return FakeRedis()


@pytest.fixture
def stub_backend():
    """Stub backend seeded with demo data."""
    return StubBackend()


@pytest.fixture
def store():
    return Store()


@pytest.fixture
def notifier():
    """Notifier that keeps toasts for assertions."""
    return CollectingNotifier()


@pytest.fixture
def executor(store, notifier):
    return ApiExecutor(store, notifier)


@pytest.fixture
def actions(stub_backend, store, executor):
    return ResidencyActions(stub_backend, store, executor)
