"""
Shared fixtures for recordmap tests.

Fixtures are synchronous on purpose; async tests request them and run on
the loop pytest-asyncio provides.
"""

import asyncio

import pytest

from recordmap.core.config import reset_settings
from recordmap.core.logging_config import LogContext
from recordmap.model.definition import ModelBuilder
from recordmap.model.model_type import ModelType
from recordmap.storage.memory import MemoryStorage


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    """Every test starts from default settings, whatever the environment says."""
    for name in (
        "RECORDMAP_DEFAULT_PRIMARY_KEY",
        "RECORDMAP_MERGE_POLICY",
        "RECORDMAP_CONCURRENCY_POLICY",
        "RECORDMAP_DEFINITIONS_PATH",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()
    assert LogContext.get_context() == {}


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def post_definition():
    return (
        ModelBuilder("post")
        .storage_key("posts")
        .encode("title", "body")
        .validate("title", presence=True)
        .build()
    )


@pytest.fixture
def Post(post_definition, storage):
    return ModelType(post_definition, storage=storage)


@pytest.fixture
def collect():
    """
    Factory for error-first callbacks.

    ``callback, outcome = collect()`` inside a running test; ``await outcome``
    yields the ``(error, result)`` pair the callback received.
    """

    def make():
        future = asyncio.get_running_loop().create_future()

        def callback(error, result):
            if not future.done():
                future.set_result((error, result))

        return callback, future

    return make
