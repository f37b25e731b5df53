"""
Selection tracking for the policy editor.

Selection is stored as id sets, never as node references, so it cannot keep a
removed node alive. Views over the selected objects are computed against the
live document on demand.
"""

from enum import Enum
from typing import Iterable, List, Optional, Set, TYPE_CHECKING

from .models import ActiveNodeState, PolicyEdge, PolicyNode

if TYPE_CHECKING:
    from .document import GraphDocument


class SelectionMode(Enum):
    """How the current selection was made."""
    SELECT = "select"
    DRAG = "drag"


class InteractionMode(Enum):
    """Canvas interaction modes."""
    SELECT = "select"
    DRAG = "drag"


class SelectionManager:
    """Tracks selected node/edge ids and the active (overlay) node."""

    def __init__(self):
        self.node_ids: Set[str] = set()
        self.edge_ids: Set[str] = set()
        self.mode: Optional[SelectionMode] = None
        self.active = ActiveNodeState()

    def set_selection(self, node_ids: Iterable[str], edge_ids: Iterable[str] = ()):
        """Replace both id sets at once; the mode is left as it is."""
        self.node_ids = set(node_ids)
        self.edge_ids = set(edge_ids)

    def clear_selection(self):
        self.node_ids = set()
        self.edge_ids = set()
        self.mode = None

    def set_mode(self, mode: Optional[SelectionMode]):
        self.mode = mode

    def is_empty(self) -> bool:
        return not self.node_ids and not self.edge_ids

    def selected_nodes(self, document: 'GraphDocument') -> List[PolicyNode]:
        """Selected nodes in document order."""
        return [node for node in document.nodes if node.id in self.node_ids]

    def selected_edges(self, document: 'GraphDocument') -> List[PolicyEdge]:
        return [edge for edge in document.edges if edge.id in self.edge_ids]

    def discard_nodes(self, node_ids: Iterable[str]):
        """Drop references to removed nodes, including the active node."""
        removed = set(node_ids)
        self.node_ids -= removed
        if self.active.node_id in removed:
            self.clear_active_node()

    def discard_edges(self, edge_ids: Iterable[str]):
        self.edge_ids -= set(edge_ids)

    # Active node (options overlay)

    def set_active_node(self, node_id: Optional[str], overlay_tab: Optional[str] = None):
        self.active = ActiveNodeState(node_id=node_id, overlay_tab=overlay_tab)

    def clear_active_node(self):
        self.active = ActiveNodeState()

    def to_dict(self):
        return {
            'nodeIds': sorted(self.node_ids),
            'edgeIds': sorted(self.edge_ids),
            'mode': self.mode.value if self.mode else None,
            'activeNode': {
                'nodeId': self.active.node_id,
                'overlayTab': self.active.overlay_tab,
            },
        }
