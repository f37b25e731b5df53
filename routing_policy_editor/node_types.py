"""
Node Type Registry — lookup tables between legacy routing-engine identifiers
and editor node-type tags.

The legacy format identifies a node two ways:

    templateClass   a string such as ``ModAction_Say`` (checked first)
    type            a coarse category: SYSTEM / CALL / OUTPUT

and additionally carries a numeric ``templateId`` that the engine keys on.
The editor only needs a single type tag per node. Everything in this module is
a pure table or a pure function over the tables; there is no state.

The mapping is deliberately not symmetric. Some editor nodes (an inbound
number placeholder that never got a template class, for instance) are valid
on the canvas but are filtered out again before a payload reaches the engine.
See ``is_payload_node``.
"""

from enum import IntEnum
from typing import Any, Dict, Optional


DEFAULT_NODE_TYPE = 'default'
GROUP_NODE_TYPE = 'group'
SYSTEM_LEGACY_TYPE = 'SYSTEM'
DECISION_TEMPLATE_CLASS = 'ModAction'


# =============================================================================
# TEMPLATE IDS: numeric identifiers used by the routing engine
# =============================================================================

class TemplateId(IntEnum):
    """Numeric template identifiers understood by the routing engine."""
    FROM_POLICY = 2
    INBOUND_NUMBER = 3
    ACTION = 4
    SWITCHBOARD = 9
    CATCH_ALL = 16
    FINISH = 23
    EXTENSION_NUMBER = 31
    DDI = 38
    OUTBOUND = 39
    FINISH_ANALYTICS = 58
    TO_POLICY = 66
    SIP_TRUNK = 81
    INBOUND_MESSAGE = 93
    DA_ACTION = 94
    AI_TEST_NODE = 111
    AI_SUPPORT_CHAT = 112
    OMNI_CHANNEL_FLOW = 117
    DATA_ANALYTICS_FINISH = 120
    DIGITAL_CONNECT = 140
    CATCH_ALL_DIGITAL = 141
    DIGITAL_ACTION = 142
    DIGITAL_FINISH = 144
    NATTERBOX_AI = 145
    CALL_NATTERBOX_AI = 146
    ANALYTICS_NATTERBOX_AI = 147
    INVOKABLE_DESTINATION = 3100000


# =============================================================================
# FORWARD DIRECTION: legacy identifiers → editor node type
# =============================================================================

TEMPLATE_CLASS_TO_NODE_TYPE: Dict[str, str] = {
    'ModFromPolicy': 'init',
    'ModNumber': 'inboundNumber',
    'ModNumber_Public': 'inboundNumber',
    'ModAction': 'default',
    'ModAction_Say': 'speak',
    'ModAction_Record': 'recordCall',
    'ModAction_Notify': 'notify',
    'ModConnect': 'connectCall',
    'ModConnector_SFQuery': 'queryObject',
    'ModVoicemail': 'voicemail',
    'ModHuntGroup': 'huntGroup',
    'ModCallQueue': 'callQueue',
    'ModRule': 'rule',
    'ModDevelop_Script': 'default',
    'ModExtension': 'extensionNumber',
    'ModFinish': 'end',
    'ModSwitchboard': 'switchBoard',
    'ModToPolicy': 'init',
    'ModOutbound': 'output',
    'ModInboundMessage': 'inboundMessage',
    'ModDigitalAction': 'default',
    'ModNatterboxAI': 'natterboxAI',
    'ModOmniChannelFlow': 'omniChannelFlow',
}

LEGACY_TYPE_TO_NODE_TYPE: Dict[str, str] = {
    'SYSTEM': 'init',
    'CALL': 'default',
    'OUTPUT': 'output',
}

# templateId → CSS class name used by the canvas
TEMPLATE_ID_TO_CLASS_NAME: Dict[int, str] = {
    TemplateId.OMNI_CHANNEL_FLOW: 'omniChannelFlow_node',
    TemplateId.DIGITAL_ACTION: 'digital_node',
    TemplateId.FROM_POLICY: 'from_policy_node',
    TemplateId.INBOUND_NUMBER: 'inbound_numbers_node',
    TemplateId.ACTION: 'action_node',
    TemplateId.DA_ACTION: 'action_node',
    TemplateId.SWITCHBOARD: 'switchboard_node',
    TemplateId.CATCH_ALL: 'catch_all_node',
    TemplateId.CATCH_ALL_DIGITAL: 'catch_all_node',
    TemplateId.FINISH: 'finish_node',
    TemplateId.FINISH_ANALYTICS: 'finish_node',
    TemplateId.EXTENSION_NUMBER: 'extension_number_node',
    TemplateId.DDI: 'ddi_node',
    TemplateId.OUTBOUND: 'outbound_node',
    TemplateId.TO_POLICY: 'to_policy_node',
    TemplateId.SIP_TRUNK: 'sip_trunk_node',
    TemplateId.INBOUND_MESSAGE: 'inbound_message',
    TemplateId.NATTERBOX_AI: 'natterbox_ai',
    TemplateId.CALL_NATTERBOX_AI: 'natterbox_ai',
    TemplateId.ANALYTICS_NATTERBOX_AI: 'natterbox_ai',
    TemplateId.AI_TEST_NODE: 'sip_trunk_node',
    TemplateId.AI_SUPPORT_CHAT: 'ai_support_chat_node',
    TemplateId.INVOKABLE_DESTINATION: 'invokable_destination_node',
}

CLASS_NAME_TO_NODE_TYPE: Dict[str, str] = {
    'omniChannelFlow_node': 'omniChannelFlow',
    'digital_node': 'inboundNumber',
    'from_policy_node': 'init',
    'inbound_numbers_node': 'inboundNumber',
    'action_node': 'default',
    'switchboard_node': 'switchBoard',
    'catch_all_node': 'end',
    'finish_node': 'end',
    'extension_number_node': 'extensionNumber',
    'ddi_node': 'inboundNumber',
    'outbound_node': 'output',
    'to_policy_node': 'init',
    'sip_trunk_node': 'connectCall',
    'inbound_message': 'inboundMessage',
    'natterbox_ai': 'natterboxAI',
    'ai_support_chat_node': 'natterboxAI',
    'invokable_destination_node': 'connectCall',
}


# =============================================================================
# REVERSE DIRECTION: which nodes may reach the routing engine
# =============================================================================

ACCEPTED_PAYLOAD_TEMPLATE_IDS = frozenset({
    TemplateId.ACTION,
    TemplateId.FINISH,
    TemplateId.TO_POLICY,
    TemplateId.DA_ACTION,
    TemplateId.SWITCHBOARD,
    TemplateId.SIP_TRUNK,
    TemplateId.INBOUND_NUMBER,
    TemplateId.INBOUND_MESSAGE,
    TemplateId.EXTENSION_NUMBER,
    TemplateId.INVOKABLE_DESTINATION,
    TemplateId.DIGITAL_CONNECT,
    TemplateId.DIGITAL_ACTION,
    TemplateId.DATA_ANALYTICS_FINISH,
    TemplateId.OMNI_CHANNEL_FLOW,
    TemplateId.NATTERBOX_AI,
    TemplateId.CALL_NATTERBOX_AI,
    TemplateId.ANALYTICS_NATTERBOX_AI,
    TemplateId.AI_TEST_NODE,
    TemplateId.AI_SUPPORT_CHAT,
})


# =============================================================================
# DISPLAY METADATA: presentation only, never read by the data model
# =============================================================================

NODE_TYPE_COLORS: Dict[str, Dict[str, str]] = {
    'action_node': {'headerColor': '#2ecbbf', 'footerColor': '#96e5df'},
    'natterbox_ai': {'headerColor': '#75c3bd', 'footerColor': '#c0ebee'},
    'ddi_node': {'headerColor': '#bf5a88', 'footerColor': '#bc7599'},
    'from_policy_node': {'headerColor': '#963cbd', 'footerColor': '#cf92ef'},
    'to_policy_node': {'headerColor': '#963cbd', 'footerColor': '#cf92ef'},
    'inbound_numbers_node': {'headerColor': '#cfd05b', 'footerColor': '#e7e7ad'},
    'digital_node': {'headerColor': '#cfd05b', 'footerColor': '#e7e7ad'},
    'extension_number_node': {'headerColor': '#d68a6a', 'footerColor': '#d19884'},
    'switchboard_node': {'headerColor': '#d95879', 'footerColor': '#ecabbc'},
    'omniChannelFlow_node': {'headerColor': '#00A1E0', 'footerColor': '#80D0EF'},
    'finish_node': {'headerColor': '#666666', 'footerColor': '#999999'},
    'catch_all_node': {'headerColor': '#000000', 'footerColor': '#000000'},
    'outbound_node': {'headerColor': '#000000', 'footerColor': '#000000'},
    'sip_trunk_node': {'headerColor': '#069abc', 'footerColor': '#97d6e4'},
    'ai_support_chat_node': {'headerColor': '#4A4E69', 'footerColor': '#9B9DAA'},
    'inbound_message': {'headerColor': '#6bb7e4', 'footerColor': '#bee0f3'},
    'invokable_destination_node': {'headerColor': '#069abc', 'footerColor': '#97d6e4'},
    'default': {'headerColor': '#4f6a92', 'footerColor': '#4f6a92'},
}


# =============================================================================
# LOOKUPS
# =============================================================================

def coerce_template_id(value: Any) -> Optional[int]:
    """Normalize a templateId that may arrive as int, numeric string or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def resolve_node_type(template_class: Optional[str] = None,
                      legacy_type: Optional[str] = None) -> str:
    """Map a legacy node to its editor type tag.

    ``template_class`` wins when it is known; otherwise the coarse legacy
    ``type`` is consulted. Anything unrecognised is ``'default'``.
    """
    if template_class and template_class in TEMPLATE_CLASS_TO_NODE_TYPE:
        return TEMPLATE_CLASS_TO_NODE_TYPE[template_class]
    if isinstance(legacy_type, str):
        return LEGACY_TYPE_TO_NODE_TYPE.get(legacy_type, DEFAULT_NODE_TYPE)
    return DEFAULT_NODE_TYPE


def get_class_name_for_template_id(template_id: Any) -> str:
    """CSS class name for a templateId, or '' if it has none."""
    tid = coerce_template_id(template_id)
    if tid is None:
        return ''
    return TEMPLATE_ID_TO_CLASS_NAME.get(tid, '')


def node_type_for_template_id(template_id: Any) -> str:
    """Map a numeric templateId to an editor type tag via its class name."""
    class_name = get_class_name_for_template_id(template_id)
    return CLASS_NAME_TO_NODE_TYPE.get(class_name, DEFAULT_NODE_TYPE) if class_name else DEFAULT_NODE_TYPE


def get_node_class_name(template_id: Any, node_type: Optional[str] = None,
                        with_parent_class: bool = True) -> str:
    """Full canvas class string for a node (``parent_node`` + base class)."""
    class_names = []
    if with_parent_class and node_type != GROUP_NODE_TYPE:
        class_names.append('parent_node')
    base = get_class_name_for_template_id(template_id)
    if base:
        class_names.append(base)
    return ' '.join(class_names)


def get_display_colors(template_id: Any) -> Dict[str, str]:
    """Header/footer colours for a node's template, falling back to default."""
    class_name = get_class_name_for_template_id(template_id)
    return dict(NODE_TYPE_COLORS.get(class_name, NODE_TYPE_COLORS['default']))


def is_decision_node(template_class: Optional[str]) -> bool:
    """Generic action nodes are the multi-output decision nodes."""
    return template_class == DECISION_TEMPLATE_CLASS


def is_payload_node(legacy_type: Optional[str], template_id: Any) -> bool:
    """True if a node of this legacy type/template may be sent to the engine."""
    if legacy_type == SYSTEM_LEGACY_TYPE:
        return True
    tid = coerce_template_id(template_id)
    return tid is not None and tid in ACCEPTED_PAYLOAD_TEMPLATE_IDS


def is_inbound_number_placeholder(template_id: Any, template_class: Optional[str]) -> bool:
    """An inbound number node that never resolved a template class."""
    return coerce_template_id(template_id) == TemplateId.INBOUND_NUMBER and not template_class
