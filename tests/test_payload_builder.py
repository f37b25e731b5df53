"""
Unit tests for PayloadBuilder.
"""

import json

from hypothesis import given, settings, strategies as st

from routing_policy_editor.document import GraphDocument
from routing_policy_editor.models import GraphBody, PolicyNode, PolicyState
from routing_policy_editor.payload_builder import (
    LIBRARY_FIELDS, PayloadBuilder, build_payload, policy_type_pair,
)


PLATFORM = {'devOrgId': 'ORG-1', 'connectorId': 'CON-1'}


def _node(node_id, template_id=None, parent_id=None, node_type='default', **data):
    node = {
        'id': node_id,
        'type': node_type,
        'position': {'x': 10, 'y': 20},
        'data': dict(data, templateId=template_id, label=data.get('label', node_id)),
    }
    if parent_id:
        node['parentId'] = parent_id
    return node


def _policy(nodes, edges=(), **extra):
    policy = {'name': 'Main', 'description': 'desc', 'nodes': list(nodes), 'edges': list(edges), 'type': 'CALL'}
    policy.update(extra)
    return policy


def _legacy(payload):
    return json.loads(payload.policy_json)


class TestBuildEnvelope:
    """Test cases for the overall payload shape."""

    def test_payload_fields(self):
        payload = build_payload(_policy([_node('n', 4)]), PLATFORM)

        assert payload.name == 'Main'
        assert payload.description == 'desc'
        assert payload.type == 'CALL'
        body = json.loads(payload.body_json)
        assert body['nodes'][0]['id'] == 'n'
        assert body['viewport'] == {'x': 0, 'y': 0, 'zoom': 1}

    def test_legacy_header(self):
        payload = build_payload(_policy([], viewport={'x': 3, 'y': 4, 'zoom': 2}, existingEngineId='77'), PLATFORM)
        legacy = _legacy(payload)

        assert legacy['id'] == '77'
        assert legacy['type'] == {'advanced': 'POLICY_TYPE_CALL', 'basic': 'CALL'}
        assert (legacy['translateX'], legacy['translateY'], legacy['zoom']) == (3, 4, 2)
        assert isinstance(legacy['lastModifiedDate'], int)
        assert legacy['connections'] == [] and legacy['nodes'] == []

    def test_policy_type_pair(self):
        assert policy_type_pair('POLICY_TYPE_DIGITAL') == {'advanced': 'POLICY_TYPE_DIGITAL', 'basic': 'DIGITAL'}
        assert policy_type_pair('NON_CALL')['advanced'] == 'POLICY_TYPE_DATA_ANALYTICS'
        assert policy_type_pair(None)['basic'] == 'CALL'

    def test_input_is_not_mutated(self):
        policy = _policy([_node('n', 4, outputs=[{'id': 'o', 'label': 'x', 'config': {'devOrgId': None}}])])
        before = json.dumps(policy, sort_keys=True)
        build_payload(policy, PLATFORM)
        assert json.dumps(policy, sort_keys=True) == before


class TestNodeFiltering:
    """Test cases for which nodes reach the engine."""

    def test_allow_list(self):
        payload = build_payload(_policy([
            _node('keep-action', 4),
            _node('keep-system', None, type='SYSTEM'),
            _node('drop-unknown', 7),
            _node('drop-none', None),
        ]), PLATFORM)

        assert [n['id'] for n in _legacy(payload)['nodes']] == ['keep-action', 'keep-system']

    def test_inbound_number_without_template_class_dropped(self):
        payload = build_payload(_policy([
            _node('placeholder', 3),
            _node('real', 3, templateClass='ModNumber'),
        ]), PLATFORM)

        assert [n['id'] for n in _legacy(payload)['nodes']] == ['real']


class TestNodeFlattening:
    """Test cases for per-node rewriting."""

    def test_flatten(self):
        payload = build_payload(_policy([_node('n', 4, parent_id='p', title='Say', custom=1)]), PLATFORM)
        node = _legacy(payload)['nodes'][0]

        assert node['id'] == 'n'
        assert node['templateId'] == 4
        assert node['parentId'] == 'p'
        assert (node['x'], node['y']) == (10, 20)
        assert node['custom'] == 1
        assert 'label' not in node

    def test_fresh_parent_id(self):
        payload = build_payload(_policy([_node('n', 4)]), PLATFORM)
        assert _legacy(payload)['nodes'][0]['parentId']

    def test_connect_ids_stripped_unless_title_needs_them(self):
        ids = {'screenId': 's', 'connectId': 'c', 'screenParentId': 'sp', 'connectParentId': 'cp'}
        payload = build_payload(_policy([
            _node('plain', 4, title='Say', **ids),
            _node('hunt', 4, title='Hunt Group', **ids),
        ]), PLATFORM)
        plain, hunt = _legacy(payload)['nodes']

        assert not set(ids) & set(plain)
        assert set(ids) <= set(hunt)

    def test_inbound_sub_items(self):
        payload = build_payload(_policy([
            _node('in', 3, templateClass='ModNumber', subItems=[
                {'id': 's1', 'templateId': 9, 'parentNode': 'in', 'variables': {'publicNumber': '+441'}},
                {'id': 's2', 'variables': {'publicNumber': '+442'}},
            ]),
        ]), PLATFORM)
        sub_items = _legacy(payload)['nodes'][0]['subItems']

        assert [s['templateId'] for s in sub_items] == [3, 3]
        assert all('parentNode' not in s for s in sub_items)
        assert payload.phone_numbers == '+441,+442'


class TestOutputs:
    """Test cases for multi-output branch processing."""

    def _outputs(self, outputs, policy_type='CALL'):
        payload = build_payload(_policy([_node('n', 4, outputs=outputs)], type=policy_type), PLATFORM)
        return _legacy(payload)['nodes'][0]['outputs']

    def test_type_forced_and_library_fields_stripped(self):
        output = {'id': 'o', 'type': 'whatever', **{f: 1 for f in LIBRARY_FIELDS}}
        processed = self._outputs([output], 'POLICY_TYPE_DIGITAL')[0]

        assert processed['type'] == 'DIGITAL'
        assert not set(LIBRARY_FIELDS) & set(processed)

    def test_group_outputs_untouched(self):
        group = {'id': 'g', 'type': 'group', 'label': 'keep', 'position': {'x': 1}}
        assert self._outputs([group])[0] == group

    def test_nested_data_promoted(self):
        processed = self._outputs([
            {'id': 'o', 'output': {'id': 'x'}, 'data': {'name': 'Branch', 'connectedTo': 'n9'}},
        ])[0]

        assert processed['name'] == 'Branch'
        assert processed['connectedTo'] == 'n9'
        assert 'output' not in processed
        assert 'data' not in processed

    def test_existing_connected_to_kept(self):
        processed = self._outputs([
            {'id': 'o', 'connectedTo': 'n1', 'output': {'id': 'x'}, 'data': {'connectedTo': 'n9'}},
        ])[0]
        assert processed['connectedTo'] == 'n1'
        assert processed['output'] == {'id': 'x'}

    def test_config_inheritance(self):
        outputs = self._outputs([
            {'id': 'a', 'config': {'devOrgId': None, 'connectorId': 'mine'}},
            {'id': 'b', 'config': {'devOrgId': 'own', 'connectorId': 'own'}},
            {'id': 'c'},
        ])

        assert outputs[0]['config'] == {'devOrgId': 'ORG-1', 'connectorId': 'CON-1'}
        assert outputs[1]['config'] == {'devOrgId': 'own', 'connectorId': 'own'}
        assert 'config' not in outputs[2]


class TestEdgeInversion:
    """Test cases for edges → connections."""

    def test_top_level_ports(self):
        nodes = [
            _node('a', 4, output={'id': 'a-out'}),
            _node('b', 4, input={'id': 'b-in'}),
            _node('c', 4),
        ]
        edges = [
            {'id': 'e1', 'source': 'a', 'target': 'b', 'sourceHandle': 'ignored'},
            {'id': 'e2', 'source': 'b', 'target': 'c', 'sourceHandle': 'b-h', 'targetHandle': 'c-h'},
            {'id': 'e3', 'source': 'c', 'target': 'a'},
        ]
        connections = _legacy(build_payload(_policy(nodes, edges), PLATFORM))['connections']

        assert connections == [
            {'source': {'nodeID': 'a', 'id': 'a-out'}, 'dest': {'nodeID': 'b', 'id': 'b-in'}},
            {'source': {'nodeID': 'b', 'id': 'b-h'}, 'dest': {'nodeID': 'c', 'id': 'c-h'}},
            {'source': {'nodeID': 'c', 'id': 'c'}, 'dest': {'nodeID': 'a', 'id': 'a'}},
        ]

    def test_nested_source_uses_parent(self):
        nodes = [_node('parent', 4), _node('branch', None, parent_id='parent'), _node('next', 4)]
        edges = [{'id': 'e', 'source': 'branch', 'target': 'next'}]
        connection = _legacy(build_payload(_policy(nodes, edges), PLATFORM))['connections'][0]

        assert connection['source'] == {'nodeID': 'parent', 'id': 'branch'}

    def test_group_is_passed_through(self):
        nodes = [
            _node('owner', 4),
            _node('group', None, parent_id='owner', node_type='group'),
            _node('branch', None, parent_id='group'),
            _node('next', 4),
        ]
        edges = [{'id': 'e', 'source': 'branch', 'target': 'next', 'sourceHandle': 'h'}]
        connection = _legacy(build_payload(_policy(nodes, edges), PLATFORM))['connections'][0]

        assert connection['source'] == {'nodeID': 'owner', 'id': 'h'}

    def test_edges_with_missing_endpoints_skipped(self):
        edges = [{'id': 'e', 'source': 'a', 'target': 'ghost'}]
        legacy = _legacy(build_payload(_policy([_node('a', 4)], edges), PLATFORM))
        assert legacy['connections'] == []


class TestDocumentInput:
    """Building straight from a GraphDocument."""

    def test_policy_from_document(self):
        doc = GraphDocument()
        doc.initialize(PolicyState(id='p', name='Doc', description='d'), GraphBody(nodes=[
            PolicyNode(id='x', data={'templateId': 23}),
        ]))
        policy = PayloadBuilder.policy_from_document(doc, 'POLICY_TYPE_CALL', existing_engine_id='5')
        payload = PayloadBuilder(PLATFORM).build(policy)

        assert payload.name == 'Doc'
        assert _legacy(payload)['id'] == '5'
        assert [n['id'] for n in _legacy(payload)['nodes']] == ['x']


# Property-based tests
@settings(max_examples=40, deadline=None)
@given(st.lists(st.one_of(st.none(), st.integers(min_value=0, max_value=200)), max_size=15))
def test_filtered_nodes_are_subset(template_ids):
    """Property test: the engine payload never contains an unknown node."""
    nodes = [_node(f'n{i}', tid) for i, tid in enumerate(template_ids)]
    legacy = _legacy(build_payload(_policy(nodes), PLATFORM))
    assert {n['id'] for n in legacy['nodes']} <= {n['id'] for n in nodes}
