"""
Payload builder — the reverse direction of the legacy converter.

Reads the editor graph and produces the two serialized blobs a save needs:

    body_json     the editor rendering (nodes, edges, viewport) as-is
    policy_json   the legacy-shaped payload the routing engine executes

Building the legacy payload means dropping editor-only scaffolding, flattening
each node's ``data`` back to the top level, stripping canvas-library fields,
inheriting platform configuration into unconfigured branches and inverting
edges back into ``connections``.
"""

import copy
import json
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, TYPE_CHECKING

from .models import PolicyEdge, PolicyNode, Viewport
from .node_types import (
    GROUP_NODE_TYPE, TemplateId, coerce_template_id, is_inbound_number_placeholder,
    is_payload_node,
)

if TYPE_CHECKING:
    from .document import GraphDocument


CONNECT_AND_SCREEN_ID_FIELDS = ('screenId', 'connectId', 'screenParentId', 'connectParentId')

# Canvas-library fields that never belong in an output
LIBRARY_FIELDS = (
    'position', 'sourcePosition', 'targetPosition', 'className', 'style', 'label',
    'draggable', 'dragging', 'extent', 'selectable', 'selected', 'measured',
)

# Titles whose connect/screen ids are meaningful to the engine
CONNECT_ID_TITLES = frozenset({'Hunt Group', 'Connect a Call', 'Call Queue'})

POLICY_TYPE_VALUES: Dict[str, str] = {
    'POLICY_TYPE_CALL': 'CALL',
    'POLICY_TYPE_DATA_ANALYTICS': 'NON_CALL',
    'POLICY_TYPE_DIGITAL': 'DIGITAL',
}
DEFAULT_POLICY_TYPE = 'POLICY_TYPE_CALL'


def policy_type_pair(policy_type: Optional[str]) -> Dict[str, str]:
    """``{advanced, basic}`` for an advanced (``POLICY_TYPE_*``) or basic type."""
    if policy_type in POLICY_TYPE_VALUES:
        return {'advanced': policy_type, 'basic': POLICY_TYPE_VALUES[policy_type]}
    for advanced, basic in POLICY_TYPE_VALUES.items():
        if policy_type == basic:
            return {'advanced': advanced, 'basic': basic}
    return {'advanced': DEFAULT_POLICY_TYPE, 'basic': POLICY_TYPE_VALUES[DEFAULT_POLICY_TYPE]}


def _omit(mapping: Dict[str, Any], keys) -> Dict[str, Any]:
    return {k: v for k, v in mapping.items() if k not in keys}


@dataclass
class SavePayload:
    """What a save hands to the two external stores."""
    name: str
    description: str
    body_json: str
    policy_json: str
    type: str
    phone_numbers: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'description': self.description,
            'bodyJson': self.body_json,
            'policyJson': self.policy_json,
            'type': self.type,
            'phoneNumbers': self.phone_numbers,
        }


class PayloadBuilder:
    """Builds save payloads from an editor-shaped policy."""

    def __init__(self, config: Optional[Mapping[str, Any]] = None):
        config = config or {}
        self.dev_org_id = config.get('devOrgId')
        self.connector_id = config.get('connectorId')
        self.logger = logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    @staticmethod
    def policy_from_document(document: 'GraphDocument', policy_type: str = 'CALL',
                             existing_engine_id: Optional[str] = None) -> Dict[str, Any]:
        """The builder's input dict for the current state of a document."""
        return {
            'id': document.policy.id,
            'name': document.policy.name,
            'description': document.policy.description,
            'nodes': [node.to_dict() for node in document.nodes],
            'edges': [edge.to_dict() for edge in document.edges],
            'viewport': document.viewport.to_dict(),
            'grid': document.policy.grid,
            'type': policy_type,
            'existingEngineId': existing_engine_id,
        }

    def build(self, policy: Mapping[str, Any], sounds: Optional[List[Dict[str, Any]]] = None) -> SavePayload:
        """Build the save payload for ``policy``.

        ``sounds`` is accepted for interface compatibility; sound references
        are carried inside node variables and need no rewriting here.
        """
        policy = copy.deepcopy(dict(policy))
        nodes = [self._as_node_dict(n) for n in policy.get('nodes') or []]
        edges = [self._as_edge_dict(e) for e in policy.get('edges') or []]
        viewport = Viewport.from_dict(policy.get('viewport'))
        types = policy_type_pair(policy.get('type'))

        body = {
            'nodes': nodes,
            'edges': edges,
            'viewport': viewport.to_dict(),
        }
        legacy = {
            'id': policy.get('existingEngineId') or None,
            'name': policy.get('name', ''),
            'description': policy.get('description') or None,
            'type': types,
            'zoom': viewport.zoom or 1,
            'translateX': viewport.x or 0,
            'translateY': viewport.y or 0,
            'grid': bool(policy.get('grid', False)),
            'lastModifiedDate': int(time.time() * 1000),
            'connections': self.map_edges_to_connections(edges, nodes),
            'nodes': self.map_nodes_to_payload_format(self.filter_payload_nodes(nodes), types['basic']),
        }

        payload = SavePayload(
            name=policy.get('name', ''),
            description=policy.get('description') or '',
            body_json=json.dumps(body),
            policy_json=json.dumps(legacy),
            type=types['basic'],
            phone_numbers=self.build_phone_numbers(nodes),
        )
        self.logger.debug(
            f"Built payload for '{payload.name}': {len(legacy['nodes'])} node(s), "
            f"{len(legacy['connections'])} connection(s)"
        )
        return payload

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    @staticmethod
    def _template_id(node: Dict[str, Any]) -> Any:
        if node.get('templateId') is not None:
            return node['templateId']
        return (node.get('data') or {}).get('templateId')

    def filter_payload_nodes(self, nodes: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Keep SYSTEM nodes and nodes whose templateId the engine accepts."""
        return [
            node for node in nodes
            if is_payload_node((node.get('data') or {}).get('type'), self._template_id(node))
        ]

    def map_nodes_to_payload_format(self, nodes: List[Dict[str, Any]], policy_type: str) -> List[Dict[str, Any]]:
        result = []
        for node in nodes:
            data = node.get('data') or {}
            template_id = self._template_id(node)
            if is_inbound_number_placeholder(template_id, data.get('templateClass')):
                continue

            position = node.get('position') or {}
            flat = dict(data)
            flat.update({
                'templateId': template_id,
                'id': node.get('id') or None,
                'parentId': node.get('parentId') or str(uuid.uuid4()),
            })
            flat.update(position)
            flat = self.omit_connect_and_screen_ids(flat)

            if isinstance(flat.get('outputs'), list):
                flat['outputs'] = [self.process_output(o, policy_type) for o in flat['outputs']]

            if coerce_template_id(template_id) == TemplateId.INBOUND_NUMBER and flat.get('subItems'):
                flat['subItems'] = self.ensure_inbound_number_items(flat['subItems'])

            result.append(flat)
        return result

    @staticmethod
    def omit_connect_and_screen_ids(item: Dict[str, Any]) -> Dict[str, Any]:
        """Always drop ``label``; drop connect/screen ids unless the title needs them."""
        result = _omit(item, ('label',))
        if item.get('title') in CONNECT_ID_TITLES:
            return result
        return _omit(result, CONNECT_AND_SCREEN_ID_FIELDS)

    def process_output(self, output: Dict[str, Any], policy_type: str) -> Dict[str, Any]:
        """Normalize one branch of a multi-output node."""
        if not isinstance(output, dict) or output.get('type') == GROUP_NODE_TYPE:
            return output

        processed = dict(output)
        processed['type'] = policy_type
        processed = self.omit_connect_and_screen_ids(processed)
        processed = _omit(processed, LIBRARY_FIELDS)

        nested = processed.get('data') if isinstance(processed.get('data'), dict) else {}
        if nested.get('name'):
            processed['name'] = nested['name']
        if not processed.get('connectedTo') and nested.get('connectedTo'):
            processed['connectedTo'] = nested['connectedTo']
            processed.pop('output', None)
        processed.pop('data', None)

        self.inherit_platform_config(processed.get('config'))
        return processed

    def inherit_platform_config(self, output_config: Optional[Dict[str, Any]]):
        """Fill an unconfigured branch from the platform configuration.

        A branch counts as unconfigured when either id is null; both are then
        replaced together so a branch never mixes two platforms.
        """
        if not isinstance(output_config, dict):
            return
        if output_config.get('devOrgId') is None or output_config.get('connectorId') is None:
            output_config['devOrgId'] = self.dev_org_id
            output_config['connectorId'] = self.connector_id

    @staticmethod
    def ensure_inbound_number_items(sub_items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [
            {**_omit(item, ('parentNode',)), 'templateId': int(TemplateId.INBOUND_NUMBER)}
            for item in sub_items
        ]

    @staticmethod
    def build_phone_numbers(nodes: List[Dict[str, Any]]) -> str:
        """Comma-joined public numbers of every inbound-number sub-item."""
        numbers = []
        for node in nodes:
            data = node.get('data') or {}
            if coerce_template_id(data.get('templateId')) != TemplateId.INBOUND_NUMBER:
                continue
            for item in data.get('subItems') or []:
                number = ((item or {}).get('variables') or {}).get('publicNumber')
                if number:
                    numbers.append(str(number))
        return ','.join(numbers)

    # ------------------------------------------------------------------
    # Edges → connections
    # ------------------------------------------------------------------

    @staticmethod
    def map_edges_to_connections(edges: List[Dict[str, Any]], nodes: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Invert editor edges into legacy connections.

        Runs against every node, not just the ones that survive filtering, so
        a nested child can still be resolved to its container. Only one
        pass-through group level is walked.
        """
        by_id = {node.get('id'): node for node in nodes}
        connections = []
        for edge in edges:
            source = by_id.get(edge.get('source'))
            dest = by_id.get(edge.get('target'))
            if source is None or dest is None:
                continue

            parent_id = source.get('parentId') or source.get('parentNode')
            if parent_id:
                node_id = parent_id
                parent = by_id.get(parent_id)
                if parent is not None and parent.get('type') == GROUP_NODE_TYPE:
                    node_id = parent.get('parentId') or parent.get('parentNode')
                port = edge.get('sourceHandle') or edge['source']
            else:
                node_id = None
                source_data = source.get('data') or {}
                handle = edge.get('sourceHandle')
                if handle and handle in PayloadBuilder._branch_ids(source_data):
                    # A branch of a multi-output node keeps its own port
                    port = handle
                else:
                    output = source_data.get('output') or {}
                    port = output.get('id') or handle or edge['source']

            dest_input = (dest.get('data') or {}).get('input') or {}
            connections.append({
                'source': {'nodeID': node_id or edge['source'], 'id': port},
                'dest': {
                    'nodeID': edge['target'],
                    'id': dest_input.get('id') or edge.get('targetHandle') or edge['target'],
                },
            })
        return connections

    @staticmethod
    def _branch_ids(data: Dict[str, Any]) -> set:
        outputs = data.get('outputs')
        if not isinstance(outputs, list):
            return set()
        return {o.get('id') for o in outputs if isinstance(o, dict) and o.get('id')}

    # ------------------------------------------------------------------

    @staticmethod
    def _as_node_dict(node: Any) -> Dict[str, Any]:
        return node.to_dict() if isinstance(node, PolicyNode) else dict(node)

    @staticmethod
    def _as_edge_dict(edge: Any) -> Dict[str, Any]:
        return edge.to_dict() if isinstance(edge, PolicyEdge) else dict(edge)


def build_payload(policy: Mapping[str, Any], config: Optional[Mapping[str, Any]] = None,
                  sounds: Optional[List[Dict[str, Any]]] = None) -> SavePayload:
    """Build a save payload with a one-off ``PayloadBuilder``."""
    return PayloadBuilder(config).build(policy, sounds=sounds)
