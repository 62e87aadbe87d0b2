"""Shared pytest fixtures."""

import pytest

from lineage.graph.mutator import PathMutator
from lineage.service import LineageService
from lineage.store.sqlite import SqliteStore
from tests.core.graph_test_helpers import seed_contents


@pytest.fixture
def store(tmp_path):
    """Empty file-backed store."""
    return SqliteStore(tmp_path / "lineage.db")


@pytest.fixture
def mutator(store):
    """PathMutator over the empty store."""
    return PathMutator(store)


@pytest.fixture
def service(store):
    """LineageService over the empty store."""
    return LineageService(store)


@pytest.fixture
def family(store, mutator):
    """Two families built through the mutator.

        yt_r            yt_x
        ├── yt_a
        │   └── yt_c
        └── yt_b

    Content "d" is registered but has no node.
    """
    seed_contents(store, "r", "a", "b", "c", "d", "x")
    mutator.create_node("r")
    mutator.create_node("a", "r")
    mutator.create_node("c", "a")
    mutator.create_node("b", "r")
    mutator.create_node("x")
    mutator.log.clear()
    return mutator


@pytest.fixture
def family_service(store, family):
    """LineageService sharing the `family` store and mutation log."""
    return LineageService(store, log=family.log)
