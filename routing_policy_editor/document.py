"""
Graph document for the Routing Policy Editor.

The document owns the nodes and edges of one policy plus the editor state
that travels with them (policy metadata, viewport, selection, history). It is
created per editor session and is the only way the graph is mutated.

Every content mutation follows the same sequence:

    1. snapshot the current nodes/edges onto the undo stack
    2. clear the redo stack
    3. apply the change
    4. mark the document dirty and notify observers

Removing nodes always removes the edges attached to them and any selection or
active-node reference to them, so no edge or selection can outlive its node.
"""

import copy
import json
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from .config import EditorSettings
from .exceptions import DanglingReferenceError
from .history import DEFAULT_HISTORY_LIMIT, HistoryManager
from .models import (
    EditorContext, GraphBody, HistorySnapshot, PolicyEdge, PolicyNode,
    PolicyState, Viewport,
)
from .selection import InteractionMode, SelectionManager


NodeLike = Union[PolicyNode, Dict[str, Any]]
EdgeLike = Union[PolicyEdge, Dict[str, Any]]


def _as_node(node: NodeLike) -> PolicyNode:
    return node if isinstance(node, PolicyNode) else PolicyNode.from_dict(node)


def _as_edge(edge: EdgeLike) -> PolicyEdge:
    return edge if isinstance(edge, PolicyEdge) else PolicyEdge.from_dict(edge)


class GraphDocument:
    """Mutable policy graph with bounded undo/redo."""

    def __init__(self, settings: Optional[EditorSettings] = None,
                 history_limit: Optional[int] = None):
        self.logger = logging.getLogger(__name__)
        self.settings = settings or EditorSettings()

        self._nodes: Dict[str, PolicyNode] = {}
        self._edges: Dict[str, PolicyEdge] = {}
        self.viewport = Viewport()
        self.policy = PolicyState()
        self.context = EditorContext()

        limit = history_limit or self.settings.history_limit or DEFAULT_HISTORY_LIMIT
        self.history = HistoryManager(limit)
        self.selection = SelectionManager()
        self.interaction_mode = InteractionMode.SELECT

        self._observers: List[Callable[['GraphDocument'], None]] = []

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def nodes(self) -> List[PolicyNode]:
        return list(self._nodes.values())

    @property
    def edges(self) -> List[PolicyEdge]:
        return list(self._edges.values())

    def get_node(self, node_id: str) -> Optional[PolicyNode]:
        return self._nodes.get(node_id)

    def get_edge(self, edge_id: str) -> Optional[PolicyEdge]:
        return self._edges.get(edge_id)

    def has_node(self, node_id: str) -> bool:
        return node_id in self._nodes

    @property
    def is_dirty(self) -> bool:
        return self.policy.is_dirty

    @property
    def has_unsaved_changes(self) -> bool:
        return self.policy.is_dirty

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo

    @property
    def can_redo(self) -> bool:
        return self.history.can_redo

    def to_body(self) -> GraphBody:
        """Deep copy of the graph in its editor (rendering) shape."""
        return GraphBody(
            nodes=copy.deepcopy(self.nodes),
            edges=copy.deepcopy(self.edges),
            viewport=copy.deepcopy(self.viewport),
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self, policy_state: PolicyState, body: Optional[GraphBody] = None,
                   context: Optional[EditorContext] = None):
        """Load a policy into the document. History starts empty; not dirty."""
        body = body or GraphBody()
        self.policy = policy_state
        self.policy.is_dirty = False
        self.policy.is_saving = False
        self.context = context or EditorContext()
        self.viewport = copy.deepcopy(body.viewport)
        self._nodes = {}
        self._edges = {}
        for node in body.nodes:
            if node.id in self._nodes:
                self.logger.warning(f"Duplicate node id {node.id} in policy body; keeping the first")
                continue
            self._nodes[node.id] = copy.deepcopy(node)
        for edge in body.edges:
            if not self._edge_endpoints_exist(edge):
                self.logger.warning(
                    f"Dropping edge {edge.id}: endpoint {edge.source} -> {edge.target} not in policy"
                )
                continue
            self._edges[edge.id] = copy.deepcopy(edge)
        self.history.clear()
        self.selection.clear_selection()
        self.selection.clear_active_node()
        self.selection.set_selection(n.id for n in self._nodes.values() if n.selected)
        self.interaction_mode = InteractionMode.SELECT
        self._notify()

    def reset(self):
        """Return to the empty state used when no policy is open."""
        self._nodes = {}
        self._edges = {}
        self.viewport = Viewport()
        self.policy = PolicyState()
        self.context = EditorContext()
        self.history.clear()
        self.selection.clear_selection()
        self.selection.clear_active_node()
        self.interaction_mode = InteractionMode.SELECT
        self._notify()

    # ------------------------------------------------------------------
    # Content mutations
    # ------------------------------------------------------------------

    def set_nodes(self, nodes: Iterable[NodeLike]):
        """Replace every node. Edges left without an endpoint are removed."""
        new_nodes: Dict[str, PolicyNode] = {}
        for node in nodes:
            node = _as_node(node)
            if node.id in new_nodes:
                self.logger.warning(f"Ignoring duplicate node id {node.id} in set_nodes")
                continue
            new_nodes[node.id] = node

        self._begin_mutation()
        removed = [node_id for node_id in self._nodes if node_id not in new_nodes]
        self._nodes = new_nodes
        self._drop_orphaned_edges()
        self.selection.discard_nodes(removed)
        self._finish_mutation()

    def set_edges(self, edges: Iterable[EdgeLike]):
        """Replace every edge. Edges whose endpoints are missing are dropped."""
        new_edges: Dict[str, PolicyEdge] = {}
        for edge in edges:
            edge = _as_edge(edge)
            if not self._edge_endpoints_exist(edge):
                self.logger.warning(
                    f"Ignoring edge {edge.id}: endpoint {edge.source} -> {edge.target} does not exist"
                )
                continue
            new_edges[edge.id] = edge

        self._begin_mutation()
        removed = [edge_id for edge_id in self._edges if edge_id not in new_edges]
        self._edges = new_edges
        self.selection.discard_edges(removed)
        self._finish_mutation()

    def update_node_data(self, node_id: str, partial: Dict[str, Any]) -> bool:
        """Shallow-merge ``partial`` into a node's data."""
        node = self._nodes.get(node_id)
        if node is None:
            self.logger.warning(f"update_node_data: no node {node_id}")
            return False

        self._begin_mutation()
        node.data = {**node.data, **partial}
        self._finish_mutation()
        return True

    def move_node(self, node_id: str, position) -> bool:
        node = self._nodes.get(node_id)
        if node is None:
            return False

        self._begin_mutation()
        node.position = (position[0], position[1])
        self._finish_mutation()
        return True

    def add_node(self, node: NodeLike) -> Optional[str]:
        """Add a node. A node whose id is already present is ignored."""
        node = _as_node(node)
        if node.id in self._nodes:
            self.logger.warning(f"add_node: node id {node.id} already exists, ignoring")
            return None

        self._begin_mutation()
        self._nodes[node.id] = node
        if node.selected:
            self.selection.node_ids.add(node.id)
        self._finish_mutation()
        return node.id

    def remove_nodes(self, node_ids: Iterable[str]) -> List[str]:
        """Remove nodes, every edge attached to them and any reference to them."""
        doomed = [node_id for node_id in dict.fromkeys(node_ids) if node_id in self._nodes]
        if not doomed:
            return []

        self._begin_mutation()
        self._remove_nodes(doomed)
        self._finish_mutation()
        return doomed

    def add_edge(self, edge: EdgeLike) -> Optional[str]:
        """Add an edge. Edges with a missing endpoint or a taken id are ignored."""
        edge = _as_edge(edge)
        if not self._edge_endpoints_exist(edge):
            self.logger.warning(
                f"add_edge: endpoint {edge.source} -> {edge.target} does not exist, ignoring"
            )
            return None
        if edge.id in self._edges:
            self.logger.warning(f"add_edge: edge id {edge.id} already exists, ignoring")
            return None

        self._begin_mutation()
        self._edges[edge.id] = edge
        self._finish_mutation()
        return edge.id

    def remove_edges(self, edge_ids: Iterable[str]) -> List[str]:
        doomed = [edge_id for edge_id in dict.fromkeys(edge_ids) if edge_id in self._edges]
        if not doomed:
            return []

        self._begin_mutation()
        for edge_id in doomed:
            del self._edges[edge_id]
        self.selection.discard_edges(doomed)
        self._finish_mutation()
        return doomed

    def delete_selection(self) -> bool:
        """Remove the selected nodes and edges as a single undoable step."""
        node_ids = [node_id for node_id in self._nodes if node_id in self.selection.node_ids]
        edge_ids = [edge_id for edge_id in self._edges if edge_id in self.selection.edge_ids]
        if not node_ids and not edge_ids:
            return False

        self._begin_mutation()
        for edge_id in edge_ids:
            self._edges.pop(edge_id, None)
        self.selection.discard_edges(edge_ids)
        self._remove_nodes(node_ids)
        self._finish_mutation()
        return True

    def insert_subgraph(self, nodes: List[PolicyNode], edges: List[PolicyEdge],
                        select: bool = True) -> List[str]:
        """Add nodes and edges as one undoable step, optionally selecting them.

        Callers supply fresh ids; colliding nodes and edges with a missing
        endpoint are skipped.
        """
        self._begin_mutation()
        if select:
            for node in self._nodes.values():
                node.selected = False

        added = []
        for node in nodes:
            if node.id in self._nodes:
                self.logger.warning(f"insert_subgraph: node id {node.id} already exists, skipping")
                continue
            node.selected = select
            self._nodes[node.id] = node
            added.append(node.id)
        for edge in edges:
            if edge.id in self._edges or not self._edge_endpoints_exist(edge):
                self.logger.warning(f"insert_subgraph: skipping edge {edge.id}")
                continue
            self._edges[edge.id] = edge

        if select:
            self.selection.set_selection(added)
        self._finish_mutation()
        return added

    # ------------------------------------------------------------------
    # Undo / redo
    # ------------------------------------------------------------------

    def undo(self) -> bool:
        snapshot = self.history.undo(self._snapshot())
        if snapshot is None:
            return False
        self._restore(snapshot)
        return True

    def redo(self) -> bool:
        snapshot = self.history.redo(self._snapshot())
        if snapshot is None:
            return False
        self._restore(snapshot)
        return True

    # ------------------------------------------------------------------
    # Selection & editor state
    # ------------------------------------------------------------------

    def select(self, node_ids: Iterable[str], edge_ids: Iterable[str] = ()):
        """Select exactly the given (existing) nodes and edges."""
        wanted_nodes = {node_id for node_id in node_ids if node_id in self._nodes}
        wanted_edges = {edge_id for edge_id in edge_ids if edge_id in self._edges}
        for node in self._nodes.values():
            node.selected = node.id in wanted_nodes
        self.selection.set_selection(wanted_nodes, wanted_edges)
        self._notify()

    def clear_selection(self):
        for node in self._nodes.values():
            node.selected = False
        self.selection.clear_selection()
        self._notify()

    def set_active_node(self, node_id: Optional[str], overlay_tab: Optional[str] = None) -> bool:
        if node_id is not None and node_id not in self._nodes:
            self.logger.warning(f"set_active_node: no node {node_id}")
            return False
        self.selection.set_active_node(node_id, overlay_tab)
        self._notify()
        return True

    def clear_active_node(self):
        self.selection.clear_active_node()
        self._notify()

    def set_interaction_mode(self, mode: InteractionMode):
        self.interaction_mode = mode
        self._notify()

    def set_viewport(self, viewport: Viewport):
        self.viewport = viewport
        self._notify()

    def update_policy(self, **changes):
        """Update policy metadata (name, description, color, grid...)."""
        for key, value in changes.items():
            if not hasattr(self.policy, key):
                raise AttributeError(f"PolicyState has no field {key!r}")
            setattr(self.policy, key, value)
        self.mark_dirty()

    def mark_dirty(self):
        self.policy.is_dirty = True
        self._notify()

    def mark_saving(self, saving: bool = True):
        self.policy.is_saving = saving
        self._notify()

    def mark_saved(self, when: Optional[datetime] = None):
        """Only a successful record-store write should call this."""
        self.policy.is_dirty = False
        self.policy.is_saving = False
        self.policy.last_saved = when or datetime.now()
        self._notify()

    # ------------------------------------------------------------------
    # Observers & export
    # ------------------------------------------------------------------

    def subscribe(self, callback: Callable[['GraphDocument'], None]) -> Callable[[], None]:
        """Register an observer; returns a function that unsubscribes it."""
        self._observers.append(callback)

        def unsubscribe():
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    def export_policy(self) -> str:
        """Portable JSON export of the policy and its graph."""
        return json.dumps({
            'name': self.policy.name,
            'description': self.policy.description,
            'color': self.policy.color,
            'grid': self.policy.grid,
            'body': self.to_body().to_dict(),
        }, indent=2)

    def check_integrity(self):
        """Raise ``DanglingReferenceError`` if any reference points nowhere."""
        missing = set()
        for edge in self._edges.values():
            for endpoint in (edge.source, edge.target):
                if endpoint not in self._nodes:
                    missing.add(endpoint)
        missing |= self.selection.node_ids - set(self._nodes)
        active = self.selection.active.node_id
        if active is not None and active not in self._nodes:
            missing.add(active)
        if missing:
            raise DanglingReferenceError(
                f"Document references {len(missing)} missing node(s)", sorted(missing)
            )
        stale_edges = self.selection.edge_ids - set(self._edges)
        if stale_edges:
            raise DanglingReferenceError(
                f"Selection references {len(stale_edges)} missing edge(s)", sorted(stale_edges)
            )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _snapshot(self) -> HistorySnapshot:
        return HistorySnapshot.capture(self._nodes.values(), self._edges.values())

    def _begin_mutation(self):
        self.history.record(self._snapshot())

    def _finish_mutation(self):
        self.policy.is_dirty = True
        self._notify()

    def _restore(self, snapshot: HistorySnapshot):
        self._nodes = {node.id: node for node in snapshot.nodes}
        self._edges = {edge.id: edge for edge in snapshot.edges}
        self.selection.discard_nodes([i for i in self.selection.node_ids if i not in self._nodes])
        self.selection.discard_edges([i for i in self.selection.edge_ids if i not in self._edges])
        active = self.selection.active.node_id
        if active is not None and active not in self._nodes:
            self.selection.clear_active_node()
        # Snapshot flags are stale; the live selection decides
        for node in self._nodes.values():
            node.selected = node.id in self.selection.node_ids
        self._finish_mutation()

    def _edge_endpoints_exist(self, edge: PolicyEdge) -> bool:
        return edge.source in self._nodes and edge.target in self._nodes

    def _remove_nodes(self, node_ids: List[str]):
        removed = set(node_ids)
        for node_id in node_ids:
            self._nodes.pop(node_id, None)
        orphaned = [edge.id for edge in self._edges.values() if edge.touches(removed)]
        for edge_id in orphaned:
            del self._edges[edge_id]
        self.selection.discard_nodes(removed)
        self.selection.discard_edges(orphaned)

    def _drop_orphaned_edges(self):
        orphaned = [edge.id for edge in self._edges.values()
                    if not self._edge_endpoints_exist(edge)]
        for edge_id in orphaned:
            del self._edges[edge_id]
        self.selection.discard_edges(orphaned)

    def _notify(self):
        for callback in list(self._observers):
            callback(self)
