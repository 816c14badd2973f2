"""
Unit tests for core/reducer.py - the state engine

Tests the transition table:
- Node creation (label rules, defaults, selection)
- Edge creation (self-loops, duplicates, cycles)
- Move / remove / select / toggle-unlock / load
- Structured outcomes (apply_intent)
- The seed graph scenario end to end
"""
import pytest

from core.ontology import RejectionReason
from core.reducer import apply_intent, seed_state, transition
from core.schemas import (
    AddEdge,
    AddNode,
    CounterIdFactory,
    Load,
    MoveNode,
    RemoveEdge,
    RemoveNode,
    Select,
    SkillEdge,
    SkillNode,
    SkillState,
    ToggleUnlock,
)
from core.selectors import find_node


# =============================================================================
# ADD NODE
# =============================================================================

def test_add_node_appends_locked_node_and_selects_it(seed, counter_ids):
    """
    Validate that add-node appends a node with defaults.

    Verifies:
    - Node gets the generated id and trimmed label
    - Node starts locked at the default position
    - New node becomes the selection
    """
    ids = CounterIdFactory(start=4)
    next_state = transition(seed, AddNode(label="  React "), ids)

    assert len(next_state.nodes) == 4
    node = next_state.nodes[-1]
    assert node == SkillNode(id="n4", label="React", unlocked=False, x=100.0, y=100.0)
    assert next_state.selected_id == "n4"
    # Existing nodes keep insertion order
    assert next_state.node_ids == ("n1", "n2", "n3", "n4")


def test_add_node_uses_given_position(empty_state, counter_ids):
    next_state = transition(empty_state, AddNode(label="Go", x=12.5, y=-3), counter_ids)
    assert (next_state.nodes[0].x, next_state.nodes[0].y) == (12.5, -3)


def test_add_node_duplicate_label_is_case_insensitive(seed, counter_ids):
    """
    Validate that labels are unique ignoring case and surrounding spaces.

    Verifies:
    - "html" and " Html " are rejected when "HTML" exists
    - The returned state is the prior state
    """
    for label in ("html", " Html ", "HTML"):
        outcome = apply_intent(seed, AddNode(label=label), counter_ids)
        assert outcome.applied is False
        assert outcome.reason == RejectionReason.DUPLICATE_LABEL
        assert outcome.state is seed
    assert len(transition(seed, AddNode(label="html"), counter_ids).nodes) == 3


@pytest.mark.parametrize("label", ["", "   ", "x" * 81])
def test_add_node_rejects_invalid_labels(seed, counter_ids, label):
    outcome = apply_intent(seed, AddNode(label=label), counter_ids)
    assert outcome.reason == RejectionReason.INVALID_LABEL
    assert outcome.state == seed


def test_add_node_accepts_80_character_label(seed, counter_ids):
    outcome = apply_intent(seed, AddNode(label="y" * 80), counter_ids)
    assert outcome.applied


def test_add_node_rejects_non_finite_position(seed, counter_ids):
    outcome = apply_intent(seed, AddNode(label="NaN skill", x=float("nan")), counter_ids)
    assert outcome.reason == RejectionReason.INVALID_POSITION
    assert outcome.state is seed


def test_add_node_reports_created_id(seed):
    outcome = apply_intent(seed, AddNode(label="Rust"), CounterIdFactory(start=9))
    assert outcome.created_id == "n9"


def test_generated_ids_skip_ids_already_in_use(seed):
    """
    Validate that add-node and add-edge never reuse an existing id.

    Verifies:
    - A counter starting at 1 on the seed graph skips n1..n3 and e1..e2
    - Ids stay pairwise distinct afterwards
    """
    ids = CounterIdFactory()
    with_node = apply_intent(seed, AddNode(label="Rust"), ids)
    assert with_node.created_id == "n4"

    with_edge = apply_intent(with_node.state, AddEdge(source="n1", target="n2"), ids)
    assert with_edge.created_id == "e3"

    state = with_edge.state
    assert len(set(state.node_ids)) == len(state.nodes)
    assert len({e.id for e in state.edges}) == len(state.edges)


# =============================================================================
# ADD EDGE
# =============================================================================

def test_add_edge_appends_edge(seed, counter_ids):
    ids = CounterIdFactory(start=3)
    next_state = transition(seed, AddEdge(source="n1", target="n2"), ids)

    assert next_state.edges[-1] == SkillEdge(id="e3", source="n1", target="n2")
    assert len(next_state.edges) == 3
    # Nodes untouched
    assert next_state.nodes == seed.nodes


def test_add_edge_rejects_self_loop(seed, counter_ids):
    """
    Validate that add-edge(X, X) is always rejected.

    Verifies:
    - Rejected on an existing node and on an unknown id
    - Reason is SELF_LOOP
    """
    for node_id in ("n1", "n3", "ghost"):
        outcome = apply_intent(seed, AddEdge(source=node_id, target=node_id), counter_ids)
        assert outcome.reason == RejectionReason.SELF_LOOP
        assert outcome.state is seed


def test_add_edge_twice_keeps_one_edge(seed, counter_ids):
    once = transition(seed, AddEdge(source="n1", target="n2"), counter_ids)
    twice = transition(once, AddEdge(source="n1", target="n2"), counter_ids)

    assert twice is once
    assert len([e for e in twice.edges if (e.source, e.target) == ("n1", "n2")]) == 1


def test_add_edge_rejects_existing_seed_pair(seed, counter_ids):
    outcome = apply_intent(seed, AddEdge(source="n1", target="n3"), counter_ids)
    assert outcome.reason == RejectionReason.DUPLICATE_EDGE


def test_add_edge_closing_cycle_rejected(chain_state, counter_ids):
    """
    Validate the acyclicity rule.

    Verifies:
    - With A->B and B->C, adding C->A is rejected
    - Reason is CYCLE and the state is unchanged
    """
    outcome = apply_intent(chain_state, AddEdge(source="c", target="a"), counter_ids)
    assert outcome.reason == RejectionReason.CYCLE
    assert outcome.state is chain_state


def test_add_edge_reverse_of_existing_edge_rejected(chain_state, counter_ids):
    outcome = apply_intent(chain_state, AddEdge(source="b", target="a"), counter_ids)
    assert outcome.reason == RejectionReason.CYCLE


def test_add_edge_allows_diamond(counter_ids):
    """Multiple paths to the same node are allowed (A->B, A->C, B->D, C->D, A->D)."""
    state = SkillState(nodes=tuple(SkillNode(id=i, label=i.upper()) for i in "abcd"))
    for source, target in [("a", "b"), ("a", "c"), ("b", "d"), ("c", "d"), ("a", "d")]:
        outcome = apply_intent(state, AddEdge(source=source, target=target), counter_ids)
        assert outcome.applied, (source, target)
        state = outcome.state
    assert len(state.edges) == 5


def test_add_edge_requires_existing_nodes(seed, counter_ids):
    outcome = apply_intent(seed, AddEdge(source="n1", target="ghost"), counter_ids)
    assert outcome.reason == RejectionReason.NOT_FOUND
    assert outcome.state is seed


# =============================================================================
# MOVE / REMOVE / SELECT
# =============================================================================

def test_move_node_updates_position_only(seed, counter_ids):
    next_state = transition(seed, MoveNode(id="n2", x=5.0, y=6.0), counter_ids)

    moved = find_node(next_state, "n2")
    assert (moved.x, moved.y) == (5.0, 6.0)
    assert moved.label == "CSS" and moved.unlocked is False
    assert next_state.edges == seed.edges
    assert next_state.selected_id == seed.selected_id
    # Prior snapshot untouched
    assert find_node(seed, "n2").x == 240.0


def test_move_unknown_node_is_noop(seed, counter_ids):
    outcome = apply_intent(seed, MoveNode(id="ghost", x=1.0, y=1.0), counter_ids)
    assert outcome.reason == RejectionReason.NOT_FOUND
    assert outcome.state is seed


def test_remove_node_cascades_edges_and_clears_selection(counter_ids):
    """
    Validate cascade delete.

    Verifies:
    - Every edge touching the removed node goes, and no other edge
    - selected_id is cleared when it pointed at the removed node
    """
    state = SkillState(
        nodes=tuple(SkillNode(id=i, label=i) for i in ("a", "x", "b", "c")),
        edges=(
            SkillEdge(id="e1", source="a", target="x"),
            SkillEdge(id="e2", source="x", target="b"),
            SkillEdge(id="e3", source="a", target="c"),
        ),
        selected_id="x",
    )
    next_state = transition(state, RemoveNode(id="x"), counter_ids)

    assert next_state.node_ids == ("a", "b", "c")
    assert [e.id for e in next_state.edges] == ["e3"]
    assert next_state.selected_id is None


def test_remove_node_keeps_other_selection(seed, counter_ids):
    next_state = transition(seed, RemoveNode(id="n1"), counter_ids)
    assert next_state.selected_id == "n3"
    assert [e.id for e in next_state.edges] == ["e2"]


def test_remove_missing_node_is_noop_by_value(seed, counter_ids):
    outcome = apply_intent(seed, RemoveNode(id="ghost"), counter_ids)
    assert outcome.applied
    assert outcome.state == seed


def test_remove_edge(seed, counter_ids):
    next_state = transition(seed, RemoveEdge(id="e1"), counter_ids)
    assert [e.id for e in next_state.edges] == ["e2"]
    assert transition(next_state, RemoveEdge(id="e1"), counter_ids) == next_state


def test_select_sets_and_clears(seed, counter_ids):
    assert transition(seed, Select(id="n1"), counter_ids).selected_id == "n1"
    assert transition(seed, Select(), counter_ids).selected_id is None


# =============================================================================
# TOGGLE UNLOCK
# =============================================================================

def test_toggle_unlock_without_prereqs_flips_both_ways(seed, counter_ids):
    unlocked = transition(seed, ToggleUnlock(id="n2"), counter_ids)
    assert find_node(unlocked, "n2").unlocked is True
    relocked = transition(unlocked, ToggleUnlock(id="n2"), counter_ids)
    assert find_node(relocked, "n2").unlocked is False


def test_toggle_unlock_blocked_by_locked_predecessor(seed, counter_ids):
    outcome = apply_intent(seed, ToggleUnlock(id="n3"), counter_ids)
    assert outcome.reason == RejectionReason.PREREQS_UNMET
    assert outcome.state is seed


def test_toggle_unlock_blocked_by_missing_predecessor(counter_ids):
    state = SkillState(
        nodes=(SkillNode(id="b", label="B"),),
        edges=(SkillEdge(id="e1", source="gone", target="b"),),
    )
    outcome = apply_intent(state, ToggleUnlock(id="b"), counter_ids)
    assert outcome.reason == RejectionReason.PREREQS_UNMET


def test_toggle_unlock_checks_direct_predecessors_only(chain_state, counter_ids):
    """With A -> B -> C, C unlocks once B is unlocked even if A never was."""
    state = SkillState(
        nodes=(
            SkillNode(id="a", label="A", unlocked=False),
            SkillNode(id="b", label="B", unlocked=True),
            SkillNode(id="c", label="C", unlocked=False),
        ),
        edges=chain_state.edges,
    )
    next_state = transition(state, ToggleUnlock(id="c"), counter_ids)
    assert find_node(next_state, "c").unlocked is True


def test_toggle_unlock_unknown_node(seed, counter_ids):
    outcome = apply_intent(seed, ToggleUnlock(id="ghost"), counter_ids)
    assert outcome.reason == RejectionReason.NOT_FOUND


# =============================================================================
# LOAD
# =============================================================================

def test_load_replaces_wholesale_and_is_idempotent(seed, counter_ids):
    other = SkillState(nodes=(SkillNode(id="z", label="Z"),), selected_id="z")

    first = transition(seed, Load(state=other), counter_ids)
    second = transition(first, Load(state=other), counter_ids)

    assert first == other
    assert second == other


# =============================================================================
# SEED SCENARIO
# =============================================================================

def test_seed_graph_shape():
    state = seed_state()
    assert [(n.id, n.label, n.unlocked) for n in state.nodes] == [
        ("n1", "HTML", True),
        ("n2", "CSS", False),
        ("n3", "JS", False),
    ]
    assert state.edge_pairs == (("n1", "n3"), ("n2", "n3"))
    assert state.selected_id == "n3"


def test_seed_state_is_fresh_each_call():
    assert seed_state() == seed_state()
    assert seed_state() is not seed_state()


def test_seed_unlock_scenario(seed, counter_ids):
    """
    End-to-end: JS needs both HTML and CSS.

    Verifies:
    - toggle-unlock(n3) is rejected while n2 is locked
    - after unlocking n2, toggle-unlock(n3) succeeds
    """
    assert transition(seed, ToggleUnlock(id="n3"), counter_ids) is seed

    state = transition(seed, ToggleUnlock(id="n2"), counter_ids)
    assert find_node(state, "n2").unlocked is True

    state = transition(state, ToggleUnlock(id="n3"), counter_ids)
    assert find_node(state, "n3").unlocked is True


def test_unknown_intent_type_raises(seed):
    with pytest.raises(TypeError):
        apply_intent(seed, object())
