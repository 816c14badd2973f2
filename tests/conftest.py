"""
Pytest configuration and shared fixtures for the skill tree test suite.
"""
import sys
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


@pytest.fixture
def seed():
    """Provide a fresh seed graph (n1 HTML unlocked, n2 CSS, n3 JS)."""
    from core.reducer import seed_state
    return seed_state()


@pytest.fixture
def counter_ids():
    """Deterministic id source: n1, n2, ... / e1, e2, ..."""
    from core.schemas import CounterIdFactory
    return CounterIdFactory()


@pytest.fixture
def empty_state():
    from core.schemas import SkillState
    return SkillState()


@pytest.fixture
def memory_storage():
    from infrastructure.storage import MemoryStorage
    return MemoryStorage()


@pytest.fixture
def persistence(memory_storage):
    from infrastructure.persistence import GraphPersistence
    return GraphPersistence(memory_storage)


@pytest.fixture
def engine(seed):
    """An engine over the seed graph with ids starting at n100/e100."""
    from core.reducer import SkillTreeEngine
    from core.schemas import CounterIdFactory
    return SkillTreeEngine(state=seed, id_factory=CounterIdFactory(start=100))


@pytest.fixture
def chain_state():
    """A -> B -> C, all locked."""
    from core.schemas import SkillEdge, SkillNode, SkillState
    return SkillState(
        nodes=(
            SkillNode(id="a", label="A"),
            SkillNode(id="b", label="B"),
            SkillNode(id="c", label="C"),
        ),
        edges=(
            SkillEdge(id="ab", source="a", target="b"),
            SkillEdge(id="bc", source="b", target="c"),
        ),
    )
