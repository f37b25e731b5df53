"""
Routing Policy Editor - graph document model for authoring call-routing policies.

This package provides the in-memory policy graph (with selection, clipboard and
undo/redo) and the bidirectional conversion between that graph and the legacy
flat format executed by the routing engine.
"""

__version__ = "0.1.0"
__author__ = "Routing Policy Editor Team"

from .models import (
    PolicyNode, PolicyEdge, Viewport, PolicyState, HistorySnapshot,
    ClipboardContents, GraphBody, ActiveNodeState, EditorContext, PolicyRecord
)
from .exceptions import (
    PolicyEditorError, MalformedPolicyError, DanglingReferenceError,
    CollaboratorError, EngineRequestError, RecordStoreError
)
from .node_types import TemplateId, resolve_node_type, is_payload_node, get_display_colors
from .legacy_converter import LegacyFormatConverter, convert_legacy_policy
from .history import HistoryManager
from .selection import SelectionManager, SelectionMode, InteractionMode
from .document import GraphDocument
from .clipboard import ClipboardManager
from .payload_builder import PayloadBuilder, SavePayload, build_payload
from .config import EditorSettings, load_settings, resolve_setting
from .collaborators import RecordStore, RoutingEngine
from .engine_client import RoutingEngineClient
from .session import PolicyEditorSession, OperationResult, SaveResult

__all__ = [
    # Models
    'PolicyNode', 'PolicyEdge', 'Viewport', 'PolicyState', 'HistorySnapshot',
    'ClipboardContents', 'GraphBody', 'ActiveNodeState', 'EditorContext', 'PolicyRecord',
    # Errors
    'PolicyEditorError', 'MalformedPolicyError', 'DanglingReferenceError',
    'CollaboratorError', 'EngineRequestError', 'RecordStoreError',
    # Registry & conversion
    'TemplateId', 'resolve_node_type', 'is_payload_node', 'get_display_colors',
    'LegacyFormatConverter', 'convert_legacy_policy',
    'PayloadBuilder', 'SavePayload', 'build_payload',
    # Editing
    'HistoryManager', 'SelectionManager', 'SelectionMode', 'InteractionMode',
    'GraphDocument', 'ClipboardManager',
    # Configuration & collaborators
    'EditorSettings', 'load_settings', 'resolve_setting',
    'RecordStore', 'RoutingEngine', 'RoutingEngineClient',
    'PolicyEditorSession', 'OperationResult', 'SaveResult',
]
