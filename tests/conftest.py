"""
Pytest configuration and shared fixtures.
"""

from pathlib import Path

import pytest

from kgmem.graph import GraphStore
from kgmem.models import Entity, Relation


@pytest.fixture
def memory_path(tmp_path: Path) -> Path:
    """Path to a memory file that does not exist yet."""
    return tmp_path / "memory.json"


@pytest.fixture
def store(memory_path: Path) -> GraphStore:
    return GraphStore(memory_path)


@pytest.fixture
def cities(store: GraphStore) -> GraphStore:
    """Store seeded with a small city graph."""
    store.create_entities([
        Entity("Paris", "City", ["capital of France"]),
        Entity("Berlin", "City", ["capital of Germany"]),
        Entity("France", "Country", []),
    ])
    store.create_relations([
        Relation("Paris", "France", "is located in"),
        Relation("Paris", "Berlin", "is twinned with"),
    ])
    return store


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's environment out of config resolution."""
    monkeypatch.delenv("MEMORY_FILE_PATH", raising=False)
    monkeypatch.delenv("KGMEM_LOG_LEVEL", raising=False)
