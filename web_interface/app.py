"""
Routing Policy Editor — Flask REST surface.

Routes:
  GET    /api/policies                              — list stored policies
  POST   /api/policies                              — create a policy
  DELETE /api/policies/<policy_id>                  — delete everywhere
  POST   /api/editor/<policy_id>/open               — open an editor session
  POST   /api/editor/<policy_id>/close              — discard the session
  GET    /api/editor/<policy_id>/state              — full editor state
  POST   /api/editor/<policy_id>/nodes              — add a node
  PATCH  /api/editor/<policy_id>/nodes/<node_id>    — merge into node data
  POST   /api/editor/<policy_id>/nodes/<node_id>/move
  DELETE /api/editor/<policy_id>/nodes/<node_id>    — remove (cascades edges)
  POST   /api/editor/<policy_id>/edges              — add an edge
  DELETE /api/editor/<policy_id>/edges/<edge_id>
  POST   /api/editor/<policy_id>/selection          — replace the selection
  POST   /api/editor/<policy_id>/selection/delete
  POST   /api/editor/<policy_id>/copy
  POST   /api/editor/<policy_id>/paste
  POST   /api/editor/<policy_id>/undo
  POST   /api/editor/<policy_id>/redo
  POST   /api/editor/<policy_id>/save
  GET    /api/editor/<policy_id>/export
  GET    /api/settings                              — effective settings
  PUT    /api/settings/<key>                        — stored override
"""

import json
import logging
import os
from typing import Any, Dict, Optional

from flask import Blueprint, Flask, current_app, jsonify, request
from flask_cors import CORS

from routing_policy_editor.collaborators import RoutingEngine
from routing_policy_editor.config import SETTINGS_MANIFEST, resolve_setting
from routing_policy_editor.engine_client import RoutingEngineClient
from routing_policy_editor.exceptions import PolicyEditorError
from routing_policy_editor.models import EditorContext
from routing_policy_editor.selection import InteractionMode
from routing_policy_editor.session import PolicyEditorSession

from web_interface.policy_db import PolicyRecordStore

logger = logging.getLogger(__name__)

editor_bp = Blueprint('policy_editor', __name__)


class EditorRegistry:
    """Open editor sessions plus the collaborators they share."""

    def __init__(self, record_store: PolicyRecordStore, engine: Optional[RoutingEngine] = None):
        self.record_store = record_store
        self.engine = engine
        self.sessions: Dict[str, PolicyEditorSession] = {}

    def new_session(self) -> PolicyEditorSession:
        settings = self.record_store.load_settings()
        engine = self.engine
        if engine is None and settings.engine_host:
            engine = RoutingEngineClient.from_settings(settings)
        return PolicyEditorSession(self.record_store, engine, settings)


def _registry() -> EditorRegistry:
    return current_app.extensions['policy_editor']


def _ok(data: Any = None, status: int = 200):
    return jsonify({'success': True, 'data': data}), status


def _fail(error: str, status: int = 400):
    return jsonify({'success': False, 'error': error}), status


def _open_session(policy_id: str) -> Optional[PolicyEditorSession]:
    return _registry().sessions.get(policy_id)


def _editor_state(session: PolicyEditorSession) -> Dict[str, Any]:
    document = session.document
    return {
        'policy': document.policy.to_dict(),
        'nodes': [node.to_dict() for node in document.nodes],
        'edges': [edge.to_dict() for edge in document.edges],
        'viewport': document.viewport.to_dict(),
        'selection': document.selection.to_dict(),
        'interactionMode': document.interaction_mode.value,
        'canUndo': document.can_undo,
        'canRedo': document.can_redo,
        'hasClipboard': session.clipboard.has_contents(),
    }


def _with_session(policy_id: str, action):
    """Run ``action(session)`` against an open session, JSON-wrapping the result."""
    session = _open_session(policy_id)
    if session is None:
        return _fail(f'Policy {policy_id} is not open', 404)
    try:
        return action(session)
    except PolicyEditorError as e:
        logger.error(f"Editor operation on {policy_id} failed: {e}")
        return _fail(str(e), 500)


# ─────────────────────────────────────────────────────────────────────
# Policies
# ─────────────────────────────────────────────────────────────────────

@editor_bp.route('/api/policies', methods=['GET'])
def list_policies():
    """List stored policies (metadata only)."""
    try:
        return _ok(_registry().record_store.list_policies())
    except PolicyEditorError as e:
        return _fail(str(e), 500)


@editor_bp.route('/api/policies', methods=['POST'])
def create_policy():
    """Create a policy record. ``body`` may be a legacy or editor body."""
    data = request.get_json(silent=True) or {}
    name = (data.get('name') or '').strip()
    if not name:
        return _fail('Policy name is required')
    body = data.get('body')
    if body is not None and not isinstance(body, str):
        body = json.dumps(body)
    try:
        created = _registry().record_store.create_policy(
            name=name,
            description=data.get('description', ''),
            body=body,
            policy_type=data.get('type', 'CALL'),
        )
    except PolicyEditorError as e:
        return _fail(str(e), 500)
    return _ok(created, 201)


@editor_bp.route('/api/policies/<policy_id>', methods=['DELETE'])
def delete_policy(policy_id):
    """Delete from event subscriptions, the engine and the record store."""
    registry = _registry()
    session = registry.sessions.pop(policy_id, None) or registry.new_session()
    result = session.delete(policy_id)
    if not result.success:
        return _fail(result.message, 500)
    return _ok(result.to_dict())


# ─────────────────────────────────────────────────────────────────────
# Editor sessions
# ─────────────────────────────────────────────────────────────────────

@editor_bp.route('/api/editor/<policy_id>/open', methods=['POST'])
def open_policy(policy_id):
    """Open (or re-open) a policy for editing."""
    data = request.get_json(silent=True) or {}
    registry = _registry()
    session = registry.new_session()
    result = session.load(policy_id, EditorContext.from_dict(data.get('context')))
    if not result.success:
        return _fail(result.message, 404)
    registry.sessions[policy_id] = session
    return _ok(_editor_state(session))


@editor_bp.route('/api/editor/<policy_id>/close', methods=['POST'])
def close_policy(policy_id):
    session = _registry().sessions.pop(policy_id, None)
    if session is None:
        return _fail(f'Policy {policy_id} is not open', 404)
    had_changes = session.document.has_unsaved_changes
    session.close()
    return _ok({'closed': True, 'discardedChanges': had_changes})


@editor_bp.route('/api/editor/<policy_id>/state', methods=['GET'])
def get_editor_state(policy_id):
    return _with_session(policy_id, lambda s: _ok(_editor_state(s)))


@editor_bp.route('/api/editor/<policy_id>/nodes', methods=['POST'])
def add_node(policy_id):
    data = request.get_json(silent=True) or {}
    node = data.get('node') or data
    if not node.get('id'):
        return _fail('Node id is required')

    def action(session):
        added = session.document.add_node(node)
        return _ok({'nodeId': added, 'added': added is not None})
    return _with_session(policy_id, action)


@editor_bp.route('/api/editor/<policy_id>/nodes/<node_id>', methods=['PATCH'])
def update_node(policy_id, node_id):
    partial = (request.get_json(silent=True) or {}).get('data') or {}

    def action(session):
        updated = session.document.update_node_data(node_id, partial)
        if not updated:
            return _fail(f'Node {node_id} not found', 404)
        return _ok(session.document.get_node(node_id).to_dict())
    return _with_session(policy_id, action)


@editor_bp.route('/api/editor/<policy_id>/nodes/<node_id>/move', methods=['POST'])
def move_node(policy_id, node_id):
    position = (request.get_json(silent=True) or {}).get('position') or {}
    if isinstance(position, dict):
        position = (position.get('x', 0), position.get('y', 0))

    def action(session):
        moved = session.document.move_node(node_id, position)
        return _ok({'moved': moved})
    return _with_session(policy_id, action)


@editor_bp.route('/api/editor/<policy_id>/nodes/<node_id>', methods=['DELETE'])
def remove_node(policy_id, node_id):
    def action(session):
        removed = session.document.remove_nodes([node_id])
        return _ok({'removed': bool(removed)})
    return _with_session(policy_id, action)


@editor_bp.route('/api/editor/<policy_id>/edges', methods=['POST'])
def add_edge(policy_id):
    data = request.get_json(silent=True) or {}
    edge = data.get('edge') or data
    if not edge.get('source') or not edge.get('target'):
        return _fail('Edge source and target are required')
    edge.setdefault('id', f"edge-{edge['source']}-{edge['target']}")

    def action(session):
        added = session.document.add_edge(edge)
        return _ok({'edgeId': added, 'added': added is not None})
    return _with_session(policy_id, action)


@editor_bp.route('/api/editor/<policy_id>/edges/<edge_id>', methods=['DELETE'])
def remove_edge(policy_id, edge_id):
    def action(session):
        removed = session.document.remove_edges([edge_id])
        return _ok({'removed': bool(removed)})
    return _with_session(policy_id, action)


@editor_bp.route('/api/editor/<policy_id>/selection', methods=['POST'])
def set_selection(policy_id):
    data = request.get_json(silent=True) or {}

    def action(session):
        if 'mode' in data:
            try:
                mode = InteractionMode(data['mode'])
            except ValueError:
                return _fail(f"Unknown interaction mode {data['mode']!r}")
            session.document.set_interaction_mode(mode)
        session.document.select(data.get('nodeIds', []), data.get('edgeIds', []))
        return _ok(session.document.selection.to_dict())
    return _with_session(policy_id, action)


@editor_bp.route('/api/editor/<policy_id>/selection/delete', methods=['POST'])
def delete_selection(policy_id):
    def action(session):
        return _ok({'deleted': session.document.delete_selection()})
    return _with_session(policy_id, action)


@editor_bp.route('/api/editor/<policy_id>/copy', methods=['POST'])
def copy_selection(policy_id):
    def action(session):
        return _ok({'copied': session.clipboard.copy_selection()})
    return _with_session(policy_id, action)


@editor_bp.route('/api/editor/<policy_id>/paste', methods=['POST'])
def paste(policy_id):
    data = request.get_json(silent=True) or {}

    def action(session):
        new_ids = session.clipboard.paste_from_clipboard(data.get('offsetX'), data.get('offsetY'))
        return _ok({'nodeIds': new_ids})
    return _with_session(policy_id, action)


@editor_bp.route('/api/editor/<policy_id>/undo', methods=['POST'])
def undo(policy_id):
    def action(session):
        return _ok({'undone': session.document.undo(), 'state': _editor_state(session)})
    return _with_session(policy_id, action)


@editor_bp.route('/api/editor/<policy_id>/redo', methods=['POST'])
def redo(policy_id):
    def action(session):
        return _ok({'redone': session.document.redo(), 'state': _editor_state(session)})
    return _with_session(policy_id, action)


@editor_bp.route('/api/editor/<policy_id>/save', methods=['POST'])
def save_policy(policy_id):
    def action(session):
        result = session.save()
        if not result.success:
            status = 409 if 'in progress' in result.message else 500
            return _fail(result.message, status)
        return _ok(result.to_dict())
    return _with_session(policy_id, action)


@editor_bp.route('/api/editor/<policy_id>/export', methods=['GET'])
def export_policy(policy_id):
    def action(session):
        return _ok(json.loads(session.document.export_policy()))
    return _with_session(policy_id, action)


# ─────────────────────────────────────────────────────────────────────
# Settings
# ─────────────────────────────────────────────────────────────────────

@editor_bp.route('/api/settings', methods=['GET'])
def list_settings():
    """Every known setting with its effective value and where it came from."""
    stored = _registry().record_store.get_all_settings()
    out = {}
    for key, meta in SETTINGS_MANIFEST.items():
        env_val = os.environ.get(meta['env'], '').strip() or None
        source = 'database' if stored.get(key) else ('environment' if env_val else 'default')
        value = resolve_setting(key, stored)
        out[key] = {
            'value': '********' if meta['type'] == 'secret' and value else value,
            'source': source,
            'default': meta['default'],
            'label': meta['label'],
            'group': meta['group'],
            'type': meta['type'],
        }
    return _ok(out)


@editor_bp.route('/api/settings/<key>', methods=['PUT'])
def put_setting(key):
    value = (request.get_json(silent=True) or {}).get('value')
    if value is None:
        return _fail('Setting value is required')
    try:
        saved = _registry().record_store.set_setting(key, str(value))
    except KeyError as e:
        return _fail(str(e), 404)
    return _ok(saved)


# ─────────────────────────────────────────────────────────────────────
# App factory
# ─────────────────────────────────────────────────────────────────────

def create_app(record_store: Optional[PolicyRecordStore] = None,
               engine: Optional[RoutingEngine] = None) -> Flask:
    """Build the Flask app with its own record store and session registry."""
    app = Flask(__name__)
    CORS(app)
    app.extensions['policy_editor'] = EditorRegistry(record_store or PolicyRecordStore(), engine)
    app.register_blueprint(editor_bp)
    return app


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO, format='%(asctime)s %(name)s %(levelname)s %(message)s')
    host = os.environ.get('POLICY_EDITOR_HOST', '0.0.0.0')
    port = int(os.environ.get('POLICY_EDITOR_PORT', '5002'))
    logger.info(f"Starting Routing Policy Editor API on {host}:{port}")
    create_app().run(host=host, port=port, debug=False)
