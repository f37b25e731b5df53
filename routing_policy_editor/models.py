"""
Core data models for the Routing Policy Editor.

This module defines the graph document's building blocks: policy nodes, the
edges wiring them together, the viewport, and the policy metadata carried
alongside the graph. Every model converts to and from the camelCase JSON shape
the editor front end and the record store exchange.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Any, Tuple, Optional
import copy
import uuid


# Keys of ``PolicyNode.data`` that the converter and payload builder read
# directly. Everything else in ``data`` is carried through untouched.
PROMOTED_DATA_KEYS = (
    'label',
    'description',
    'templateClass',
    'templateId',
    'config',
    'variables',
    'outputs',
    'subItems',
)

DEFAULT_POLICY_COLOR = '#3b82f6'


@dataclass
class PolicyNode:
    """A typed vertex of a routing policy graph."""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    type: str = 'default'
    position: Tuple[Any, Any] = (0, 0)
    data: Dict[str, Any] = field(default_factory=dict)
    parent_id: Optional[str] = None
    selected: bool = False
    extra: Dict[str, Any] = field(default_factory=dict)  # width, height, className...

    @property
    def label(self) -> str:
        return self.data.get('label', '')

    @property
    def template_id(self) -> Any:
        return self.data.get('templateId')

    @property
    def template_class(self) -> Optional[str]:
        return self.data.get('templateClass')

    def moved_by(self, offset_x: float, offset_y: float) -> Tuple[Any, Any]:
        """Return this node's position shifted by the given offset."""
        x, y = self.position
        return (x + offset_x, y + offset_y)

    def to_dict(self) -> Dict[str, Any]:
        result = dict(self.extra)
        result.update({
            'id': self.id,
            'type': self.type,
            'position': {'x': self.position[0], 'y': self.position[1]},
            'data': copy.deepcopy(self.data),
        })
        if self.parent_id is not None:
            result['parentId'] = self.parent_id
        if self.selected:
            result['selected'] = True
        return result

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'PolicyNode':
        """Build a node from its editor JSON shape.

        ``parentNode`` is accepted as an alias of ``parentId``; unknown
        top-level keys land in ``extra``.
        """
        remaining = copy.deepcopy(dict(d))
        position = remaining.pop('position', None) or {}
        parent_id = remaining.pop('parentId', None)
        parent_node = remaining.pop('parentNode', None)
        data = remaining.pop('data', None)
        return cls(
            id=str(remaining.pop('id')),
            type=remaining.pop('type', None) or 'default',
            position=(position.get('x', 0) or 0, position.get('y', 0) or 0),
            data=dict(data) if isinstance(data, dict) else {},
            parent_id=parent_id or parent_node,
            selected=bool(remaining.pop('selected', False)),
            extra=remaining,
        )


@dataclass
class PolicyEdge:
    """A directed wire from one node's output port to another's input port."""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    source: str = ''
    target: str = ''
    source_handle: Optional[str] = None
    target_handle: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def touches(self, node_ids) -> bool:
        """True if either endpoint is one of ``node_ids``."""
        return self.source in node_ids or self.target in node_ids

    def to_dict(self) -> Dict[str, Any]:
        result = dict(self.extra)
        result.update({
            'id': self.id,
            'source': self.source,
            'target': self.target,
        })
        if self.source_handle is not None:
            result['sourceHandle'] = self.source_handle
        if self.target_handle is not None:
            result['targetHandle'] = self.target_handle
        if self.data is not None:
            result['data'] = copy.deepcopy(self.data)
        return result

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'PolicyEdge':
        remaining = copy.deepcopy(dict(d))
        return cls(
            id=str(remaining.pop('id')),
            source=remaining.pop('source', '') or '',
            target=remaining.pop('target', '') or '',
            source_handle=remaining.pop('sourceHandle', None),
            target_handle=remaining.pop('targetHandle', None),
            data=remaining.pop('data', None),
            extra=remaining,
        )


@dataclass
class Viewport:
    """Pan/zoom state of the editor canvas."""
    x: float = 0
    y: float = 0
    zoom: float = 1

    def to_dict(self) -> Dict[str, Any]:
        return {'x': self.x, 'y': self.y, 'zoom': self.zoom}

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> 'Viewport':
        if not d:
            return cls()
        return cls(x=d.get('x', 0) or 0, y=d.get('y', 0) or 0, zoom=d.get('zoom', 1) or 1)


@dataclass
class PolicyState:
    """Policy metadata and editor flags kept alongside the graph."""
    id: Optional[str] = None
    name: str = ''
    description: str = ''
    color: str = DEFAULT_POLICY_COLOR
    grid: bool = True
    is_active: bool = False
    is_dirty: bool = False
    is_saving: bool = False
    last_saved: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'color': self.color,
            'grid': self.grid,
            'isActive': self.is_active,
            'isDirty': self.is_dirty,
            'isSaving': self.is_saving,
            'lastSaved': self.last_saved.isoformat() if self.last_saved else None,
        }


@dataclass
class HistorySnapshot:
    """Deep copy of the document's nodes and edges at one point in time."""
    nodes: List[PolicyNode] = field(default_factory=list)
    edges: List[PolicyEdge] = field(default_factory=list)

    @classmethod
    def capture(cls, nodes, edges) -> 'HistorySnapshot':
        return cls(nodes=copy.deepcopy(list(nodes)), edges=copy.deepcopy(list(edges)))


@dataclass
class ClipboardContents:
    """Nodes and edges captured by a copy operation."""
    nodes: List[PolicyNode] = field(default_factory=list)
    edges: List[PolicyEdge] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.nodes


@dataclass
class GraphBody:
    """Editor-shaped policy body: the converter's output."""
    nodes: List[PolicyNode] = field(default_factory=list)
    edges: List[PolicyEdge] = field(default_factory=list)
    viewport: Viewport = field(default_factory=Viewport)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'nodes': [node.to_dict() for node in self.nodes],
            'edges': [edge.to_dict() for edge in self.edges],
            'viewport': self.viewport.to_dict(),
        }


@dataclass
class ActiveNodeState:
    """The node currently open in the options overlay, if any."""
    node_id: Optional[str] = None
    overlay_tab: Optional[str] = None


@dataclass
class EditorContext:
    """Lookup lists handed to the editor when a policy is opened."""
    users: List[Dict[str, Any]] = field(default_factory=list)
    groups: List[Dict[str, Any]] = field(default_factory=list)
    sounds: List[Dict[str, Any]] = field(default_factory=list)
    phone_numbers: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> 'EditorContext':
        d = d or {}
        return cls(
            users=list(d.get('users', [])),
            groups=list(d.get('groups', [])),
            sounds=list(d.get('sounds', [])),
            phone_numbers=list(d.get('phoneNumbers', [])),
        )


@dataclass
class PolicyRecord:
    """A policy row as held by the record store."""
    id: str
    name: str
    description: str = ''
    body: Any = None  # JSON string or already-decoded dict
    engine_id: Optional[str] = None
    policy_type: str = 'CALL'
    is_active: bool = False
    color: Optional[str] = None
    grid: Optional[bool] = None
