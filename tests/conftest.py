"""Shared fixtures for parley tests."""

import pytest

from parley import GlobalUserStore, InMemoryInstance


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def instance() -> InMemoryInstance:
    return InMemoryInstance()


@pytest.fixture
def user_store(instance: InMemoryInstance) -> GlobalUserStore:
    return GlobalUserStore(instance)
