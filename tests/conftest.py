"""Shared pytest fixtures for sqlforge unit and integration tests."""
from __future__ import annotations

import pytest

import sqlforge
from sqlforge.schema.columns import EntityMeta
from tests.fixtures import load_entity

#: Dialects with an implemented provider.
IMPLEMENTED_DIALECTS = ["sqlserver", "mysql", "postgres", "sqlite"]


@pytest.fixture(scope="session")
def todo() -> EntityMeta:
    """TodoItem entity mapped to table ``todo``."""
    return load_entity("todo")


@pytest.fixture(scope="session")
def users() -> EntityMeta:
    """User entity mapped to table ``users``; ``EmailAddress`` maps to ``email``."""
    return load_entity("users")


@pytest.fixture(params=IMPLEMENTED_DIALECTS)
def dialect(request: pytest.FixtureRequest) -> str:
    """Parametrizes a test over every implemented dialect."""
    return request.param


@pytest.fixture(autouse=True)
def _fresh_cache():
    """Each test starts with an empty process-wide expression cache."""
    sqlforge.clear_cache()
    yield
    sqlforge.clear_cache()
