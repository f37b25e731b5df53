"""
Legacy format converter.

Turns a stored policy body into the editor's graph shape. Two body shapes are
understood:

    legacy   {nodes, connections, translateX, translateY, zoom}
    modern   {nodes, edges, viewport}

Stored bodies are frequently hand-edited or truncated, so the converter never
raises: anything it cannot make sense of becomes an empty graph and a warning
in the log.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Union

from .exceptions import MalformedPolicyError
from .models import GraphBody, PolicyEdge, PolicyNode, Viewport
from .node_types import is_decision_node, resolve_node_type


DEFAULT_NODE_LABEL = 'Node'


class LegacyFormatConverter:
    """Converts legacy or modern policy bodies into a ``GraphBody``."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def convert(self, body: Union[str, Dict[str, Any], None]) -> GraphBody:
        """Convert a stored body; returns an empty graph on malformed input."""
        if body is None or body == '':
            return GraphBody()

        try:
            parsed = self._parse(body)
            nodes = [self._convert_node(raw) for raw in parsed.get('nodes') or []]
            edges = self._convert_edges(parsed)
            viewport = self._convert_viewport(parsed)
        except MalformedPolicyError as e:
            self.logger.warning(f"Could not convert policy body: {e}")
            return GraphBody()
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            self.logger.warning(f"Policy body has an unexpected structure: {e}")
            return GraphBody()

        return GraphBody(nodes=nodes, edges=edges, viewport=viewport)

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def _parse(self, body: Union[str, Dict[str, Any]]) -> Dict[str, Any]:
        if isinstance(body, (bytes, bytearray)):
            body = body.decode('utf-8')
        if isinstance(body, str):
            try:
                body = json.loads(body)
            except json.JSONDecodeError as e:
                raise MalformedPolicyError(f"Body is not valid JSON: {e.msg}",
                                           {'position': e.pos}) from e
        if not isinstance(body, dict):
            raise MalformedPolicyError(f"Body must be an object, got {type(body).__name__}")
        nodes = body.get('nodes')
        if nodes is not None and not isinstance(nodes, list):
            raise MalformedPolicyError("'nodes' must be a list")
        return body

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def _convert_node(self, raw: Dict[str, Any]) -> PolicyNode:
        if not isinstance(raw, dict):
            raise MalformedPolicyError(f"Node entry must be an object, got {type(raw).__name__}")
        if 'id' not in raw:
            raise MalformedPolicyError("Node entry has no id")

        # Already in editor shape
        if isinstance(raw.get('position'), dict) and isinstance(raw.get('data'), dict):
            return PolicyNode.from_dict(raw)

        template_class = raw.get('templateClass')
        # Keys the legacy node lacks stay absent so they never reach the engine as null
        data = dict(raw)
        data['label'] = self._node_label(raw)
        return PolicyNode(
            id=str(raw['id']),
            type=resolve_node_type(template_class, raw.get('type')),
            position=(raw.get('x') or 0, raw.get('y') or 0),
            data=data,
        )

    def _node_label(self, raw: Dict[str, Any]) -> str:
        label = raw.get('name') or raw.get('title') or DEFAULT_NODE_LABEL
        outputs = raw.get('outputs')
        if is_decision_node(raw.get('templateClass')) and isinstance(outputs, list) and outputs:
            first = outputs[0] if isinstance(outputs[0], dict) else {}
            label = first.get('name') or first.get('title') or label
            if len(outputs) > 1:
                label = f"{label} (+{len(outputs) - 1})"
        return label

    # ------------------------------------------------------------------
    # Edges & viewport
    # ------------------------------------------------------------------

    def _convert_edges(self, parsed: Dict[str, Any]) -> List[PolicyEdge]:
        connections = parsed.get('connections')
        if isinstance(connections, list) and connections:
            return [self._connection_to_edge(i, c) for i, c in enumerate(connections)]

        edges = parsed.get('edges') or []
        if not isinstance(edges, list):
            raise MalformedPolicyError("'edges' must be a list")
        return [PolicyEdge.from_dict(e) for e in edges]

    def _connection_to_edge(self, index: int, connection: Dict[str, Any]) -> PolicyEdge:
        source = connection.get('source') or {}
        dest = connection.get('dest') or {}
        return PolicyEdge(
            id=f"edge-{index}",
            source=str(source.get('nodeID', '')),
            target=str(dest.get('nodeID', '')),
            source_handle=source.get('id'),
            target_handle=dest.get('id'),
        )

    def _convert_viewport(self, parsed: Dict[str, Any]) -> Viewport:
        if isinstance(parsed.get('viewport'), dict):
            return Viewport.from_dict(parsed['viewport'])
        return Viewport(
            x=parsed.get('translateX') or 0,
            y=parsed.get('translateY') or 0,
            zoom=parsed.get('zoom') or 1,
        )


_default_converter: Optional[LegacyFormatConverter] = None


def convert_legacy_policy(body: Union[str, Dict[str, Any], None]) -> GraphBody:
    """Convert a stored policy body with a shared converter instance."""
    global _default_converter
    if _default_converter is None:
        _default_converter = LegacyFormatConverter()
    return _default_converter.convert(body)
