"""
Shared pytest fixtures for the decigraph test suite.

Provides common fixtures using the GraphTestFactory pattern: real logs,
checkpoint and projection under tmp_path, a fixed logical clock and
predictable change_ids.

Usage in tests:
    def test_something(graph_factory):
        goal = graph_factory.add("alice", "goal", "Cache strategy")
        graph_factory.rebuild()
        # ... assertions against graph_factory.graph

    def test_with_data(graph_env):
        # graph_env comes pre-populated with the sample project
        assert len(graph_env.queries().list_nodes()) == 4
"""

import pytest
from loguru import logger

from decigraph.config import ConfigManager
from tests.factories import GraphTestFactory


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """
    Keep the user's own ~/.decigraph and environment out of every test.
    """
    monkeypatch.setattr(ConfigManager, "USER_CONFIG_DIR", tmp_path / "home" / ".decigraph")
    for var in ("DECIGRAPH_AUTHOR", "DECIGRAPH_LOG_LEVEL", "DECIGRAPH_PROJECT_PATH", "DECIGRAPH_ASCII_ONLY"):
        monkeypatch.delenv(var, raising=False)
    yield
    # main() points loguru at the captured stderr of the test that ran it
    logger.remove()


@pytest.fixture
def graph_factory(tmp_path):
    """
    Create an empty GraphTestFactory instance.

    Use this when you need fine-grained control over test data.

    Example:
        def test_pending_edge(graph_factory):
            a = graph_factory.node_record("alice", "goal", "G")
            result = graph_factory.replay([a])
    """
    factory = GraphTestFactory(tmp_path)
    yield factory
    factory.close()


@pytest.fixture
def graph_env(tmp_path):
    """
    Create a GraphTestFactory with the sample project.

    Pre-populated with (authors alice and bob):
    - 1 goal
    - 2 options, both possible approaches of the goal
    - 1 decision, chosen from one option and rejected from the other
    """
    factory = GraphTestFactory(tmp_path)
    factory.ids_by_role = factory.create_sample_project()
    yield factory
    factory.close()


@pytest.fixture
def workspace(tmp_path):
    """Initialized workspace for author alice."""
    from decigraph.core.workspace import Workspace

    ws = Workspace(tmp_path, "alice")
    ws.init()
    yield ws
    ws.close()
