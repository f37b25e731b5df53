"""
Unit tests for GraphDocument.
"""

import json

import pytest
from hypothesis import given, settings, strategies as st

from routing_policy_editor.config import EditorSettings
from routing_policy_editor.document import GraphDocument
from routing_policy_editor.exceptions import DanglingReferenceError
from routing_policy_editor.models import GraphBody, PolicyEdge, PolicyNode, PolicyState, Viewport
from routing_policy_editor.selection import InteractionMode


def _chain_document(*ids) -> GraphDocument:
    """Document with nodes ``ids`` wired in sequence; history cleared, not dirty."""
    nodes = [PolicyNode(id=i, position=(n * 100, 0)) for n, i in enumerate(ids)]
    edges = [PolicyEdge(id=f'{a}-{b}', source=a, target=b) for a, b in zip(ids, ids[1:])]
    doc = GraphDocument()
    doc.initialize(PolicyState(id='p1', name='Test'), GraphBody(nodes=nodes, edges=edges))
    return doc


class TestInitialize:
    """Test cases for loading a document."""

    def test_initialize_is_clean(self):
        doc = _chain_document('a', 'b', 'c')

        assert [n.id for n in doc.nodes] == ['a', 'b', 'c']
        assert len(doc.edges) == 2
        assert not doc.is_dirty
        assert not doc.can_undo

    def test_initialize_drops_dangling_edges(self):
        doc = GraphDocument()
        doc.initialize(PolicyState(), GraphBody(
            nodes=[PolicyNode(id='a')],
            edges=[PolicyEdge(id='e', source='a', target='missing')],
        ))
        assert doc.edges == []
        doc.check_integrity()

    def test_history_limit_from_settings(self):
        doc = GraphDocument(EditorSettings(history_limit=7))
        assert doc.history.limit == 7

    def test_reset(self):
        doc = _chain_document('a', 'b')
        doc.update_node_data('a', {'x': 1})
        doc.reset()

        assert doc.nodes == [] and doc.edges == []
        assert not doc.is_dirty and not doc.can_undo
        assert doc.policy.name == ''


class TestMutations:
    """Test cases for content mutations."""

    def test_add_node_marks_dirty_and_records_history(self):
        doc = _chain_document('a')
        assert doc.add_node(PolicyNode(id='b')) == 'b'

        assert doc.is_dirty
        assert doc.can_undo
        assert doc.has_node('b')

    def test_add_node_accepts_dicts(self):
        doc = GraphDocument()
        doc.add_node({'id': 'x', 'type': 'speak', 'position': {'x': 5, 'y': 6}, 'data': {'label': 'Hi'}})
        node = doc.get_node('x')
        assert node.type == 'speak' and node.position == (5, 6) and node.label == 'Hi'

    def test_duplicate_node_ignored(self):
        doc = _chain_document('a')
        original = doc.get_node('a')

        assert doc.add_node(PolicyNode(id='a', type='end')) is None
        assert doc.get_node('a') is original
        assert not doc.is_dirty
        assert not doc.can_undo

    def test_dangling_edge_ignored(self):
        doc = _chain_document('a')
        assert doc.add_edge(PolicyEdge(id='e', source='a', target='ghost')) is None
        assert doc.edges == []
        assert not doc.is_dirty

    def test_update_node_data_is_shallow_merge(self):
        doc = _chain_document('a')
        doc.update_node_data('a', {'config': {'x': 1}, 'label': 'One'})
        doc.update_node_data('a', {'config': {'y': 2}})

        assert doc.get_node('a').data == {'config': {'y': 2}, 'label': 'One'}

    def test_update_missing_node(self):
        doc = _chain_document('a')
        assert doc.update_node_data('ghost', {'x': 1}) is False
        assert not doc.is_dirty

    def test_remove_nodes_cascades(self):
        """Removing a node removes every edge touching it."""
        doc = _chain_document('a', 'b', 'c')
        doc.select(['b'], ['a-b'])
        doc.set_active_node('b', 'config')

        assert doc.remove_nodes(['b']) == ['b']
        assert [n.id for n in doc.nodes] == ['a', 'c']
        assert doc.edges == []
        assert doc.selection.node_ids == set()
        assert doc.selection.edge_ids == set()
        assert doc.selection.active.node_id is None
        doc.check_integrity()

    def test_remove_edges(self):
        doc = _chain_document('a', 'b', 'c')
        assert doc.remove_edges(['a-b', 'nope']) == ['a-b']
        assert [e.id for e in doc.edges] == ['b-c']

    def test_set_nodes_removes_orphaned_edges(self):
        doc = _chain_document('a', 'b', 'c')
        doc.set_nodes([PolicyNode(id='a'), PolicyNode(id='b')])

        assert [e.id for e in doc.edges] == ['a-b']
        doc.check_integrity()

    def test_set_edges_filters_dangling(self):
        doc = _chain_document('a', 'b')
        doc.set_edges([
            {'id': 'ok', 'source': 'a', 'target': 'b'},
            {'id': 'bad', 'source': 'a', 'target': 'zzz'},
        ])
        assert [e.id for e in doc.edges] == ['ok']

    def test_move_node(self):
        doc = _chain_document('a')
        assert doc.move_node('a', (42, 43))
        assert doc.get_node('a').position == (42, 43)
        assert not doc.move_node('ghost', (0, 0))

    def test_delete_selection_is_one_step(self):
        doc = _chain_document('a', 'b', 'c')
        doc.select(['a'], ['b-c'])

        assert doc.delete_selection()
        assert [n.id for n in doc.nodes] == ['b', 'c']
        assert doc.edges == []

        doc.undo()
        assert [n.id for n in doc.nodes] == ['a', 'b', 'c']
        assert len(doc.edges) == 2

    def test_delete_empty_selection(self):
        doc = _chain_document('a')
        assert doc.delete_selection() is False
        assert not doc.can_undo


class TestUndoRedo:
    """Test cases for document-level undo/redo."""

    def test_undo_restores_and_marks_dirty(self):
        doc = _chain_document('a', 'b')
        doc.remove_nodes(['a'])
        doc.mark_saved()

        assert doc.undo()
        assert [n.id for n in doc.nodes] == ['a', 'b']
        assert [e.id for e in doc.edges] == ['a-b']
        assert doc.is_dirty

    def test_redo(self):
        doc = _chain_document('a', 'b')
        doc.update_node_data('a', {'label': 'changed'})
        doc.undo()
        assert doc.get_node('a').data == {}

        assert doc.redo()
        assert doc.get_node('a').data == {'label': 'changed'}

    def test_mutation_after_undo_clears_redo(self):
        doc = _chain_document('a')
        doc.add_node(PolicyNode(id='b'))
        doc.undo()
        doc.add_node(PolicyNode(id='c'))

        assert not doc.can_redo
        assert doc.redo() is False

    def test_undo_on_empty_history(self):
        doc = _chain_document('a')
        assert doc.undo() is False
        assert not doc.is_dirty

    def test_undo_drops_stale_selection(self):
        doc = _chain_document('a')
        doc.add_node(PolicyNode(id='b'))
        doc.select(['b'])
        doc.undo()

        assert 'b' not in doc.selection.node_ids
        doc.check_integrity()

    def test_snapshots_are_isolated(self):
        """Editing after a snapshot must not alter the stored snapshot."""
        doc = _chain_document('a')
        doc.update_node_data('a', {'v': 1})
        doc.move_node('a', (9, 9))
        doc.undo()

        assert doc.get_node('a').position == (0, 0)
        assert doc.get_node('a').data == {'v': 1}


class TestEditorState:
    """Test cases for flags, observers and export."""

    def test_mark_saving_and_saved(self):
        doc = _chain_document('a')
        doc.add_node(PolicyNode(id='b'))
        doc.mark_saving()
        assert doc.policy.is_saving

        doc.mark_saved()
        assert not doc.is_dirty
        assert not doc.policy.is_saving
        assert doc.policy.last_saved is not None

    def test_update_policy(self):
        doc = _chain_document('a')
        doc.update_policy(name='Renamed', color='#000000')
        assert doc.policy.name == 'Renamed'
        assert doc.is_dirty
        with pytest.raises(AttributeError):
            doc.update_policy(bogus=1)

    def test_interaction_mode(self):
        doc = GraphDocument()
        doc.set_interaction_mode(InteractionMode.DRAG)
        assert doc.interaction_mode == InteractionMode.DRAG

    def test_set_active_node_requires_existing_node(self):
        doc = _chain_document('a')
        assert doc.set_active_node('ghost') is False
        assert doc.set_active_node('a', 'variables') is True
        assert doc.selection.active.overlay_tab == 'variables'
        doc.clear_active_node()
        assert doc.selection.active.node_id is None

    def test_select_ignores_unknown_ids(self):
        doc = _chain_document('a', 'b')
        doc.select(['a', 'ghost'])

        assert doc.selection.node_ids == {'a'}
        assert doc.get_node('a').selected and not doc.get_node('b').selected

    def test_observers(self):
        doc = _chain_document('a')
        calls = []
        unsubscribe = doc.subscribe(lambda d: calls.append(len(d.nodes)))

        doc.add_node(PolicyNode(id='b'))
        unsubscribe()
        doc.add_node(PolicyNode(id='c'))

        assert calls == [2]

    def test_export_policy(self):
        doc = _chain_document('a', 'b')
        doc.viewport = Viewport(x=1, y=2, zoom=3)
        exported = json.loads(doc.export_policy())

        assert exported['name'] == 'Test'
        assert [n['id'] for n in exported['body']['nodes']] == ['a', 'b']
        assert exported['body']['viewport'] == {'x': 1, 'y': 2, 'zoom': 3}

    def test_check_integrity_detects_corruption(self):
        doc = _chain_document('a', 'b')
        doc._nodes.pop('b')
        with pytest.raises(DanglingReferenceError) as exc_info:
            doc.check_integrity()
        assert exc_info.value.missing_ids == ['b']


# Property-based tests
_operations = st.lists(
    st.tuples(
        st.sampled_from(['add_node', 'add_edge', 'remove', 'select', 'delete_selection', 'undo', 'redo']),
        st.integers(min_value=0, max_value=5),
        st.integers(min_value=0, max_value=5),
    ),
    max_size=40,
)


@settings(max_examples=60, deadline=None)
@given(_operations)
def test_random_edits_keep_references_valid(operations):
    """Property test: no sequence of edits leaves a dangling reference."""
    doc = GraphDocument(history_limit=5)
    for op, a, b in operations:
        if op == 'add_node':
            doc.add_node(PolicyNode(id=f'n{a}'))
        elif op == 'add_edge':
            doc.add_edge(PolicyEdge(id=f'e{a}{b}', source=f'n{a}', target=f'n{b}'))
        elif op == 'remove':
            doc.remove_nodes([f'n{a}'])
        elif op == 'select':
            doc.select([f'n{a}', f'n{b}'], [f'e{a}{b}'])
        elif op == 'delete_selection':
            doc.delete_selection()
        elif op == 'undo':
            doc.undo()
        else:
            doc.redo()
        doc.check_integrity()
        assert len(doc.history.past) <= 5


_content_operations = st.lists(
    st.tuples(
        st.sampled_from(['add_node', 'add_edge', 'remove', 'update', 'move']),
        st.integers(min_value=0, max_value=5),
        st.integers(min_value=0, max_value=5),
    ),
    max_size=30,
)


@settings(max_examples=60, deadline=None)
@given(_content_operations)
def test_undo_all_restores_original(operations):
    """Property test: undoing every recorded step restores the loaded graph exactly."""
    doc = _chain_document('n0', 'n1', 'n2')
    original_nodes = [n.to_dict() for n in doc.nodes]
    original_edges = [e.to_dict() for e in doc.edges]

    for op, a, b in operations:
        if op == 'add_node':
            doc.add_node(PolicyNode(id=f'n{a}'))
        elif op == 'add_edge':
            doc.add_edge(PolicyEdge(id=f'e{a}{b}', source=f'n{a}', target=f'n{b}'))
        elif op == 'remove':
            doc.remove_nodes([f'n{a}'])
        elif op == 'update':
            doc.update_node_data(f'n{a}', {'v': b})
        else:
            doc.move_node(f'n{a}', (a, b))

    while doc.undo():
        pass

    assert [n.to_dict() for n in doc.nodes] == original_nodes
    assert [e.to_dict() for e in doc.edges] == original_edges
    if operations and doc.can_redo:
        assert doc.is_dirty
