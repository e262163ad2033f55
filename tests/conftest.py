"""
Shared fixtures for engine tests.
"""

import pytest

from programme_deps.repository import DependencyRepository

from .helpers import FailingStore


@pytest.fixture
def store():
    return FailingStore()


@pytest.fixture
def repo(store):
    return DependencyRepository(store)
