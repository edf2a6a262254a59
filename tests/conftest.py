"""Pytest configuration and shared fixtures."""

import pytest

from lodgelock.crypto import generate_shared_secret
from lodgelock.relay.client import RelayClient
from lodgelock.relay.store import MemoryRelayStore


@pytest.fixture(autouse=True)
def reset_logging_state():
    """Reset logging state before each test."""
    from lodgelock.logging import reset_logging

    reset_logging()
    yield
    reset_logging()


@pytest.fixture
def store():
    """Fresh in-memory relay store."""
    return MemoryRelayStore()


@pytest.fixture
def secret():
    """Fresh shared secret."""
    return generate_shared_secret()


@pytest.fixture
def client(secret, store):
    """Relay client for a fresh room."""
    return RelayClient(secret, store)
