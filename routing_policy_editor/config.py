"""
Editor configuration.

Every setting resolves in three tiers:

    1. stored override   (the record store's ``settings`` table)
    2. environment       (``POLICY_EDITOR_*``)
    3. built-in default

``SETTINGS_MANIFEST`` is the single registry of known keys. Anything that
needs a configurable value goes through ``resolve_setting`` rather than
reading the environment itself.
"""

import os
from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping, Optional


SETTINGS_MANIFEST: Dict[str, Dict[str, Any]] = {
    # ── Editor ───────────────────────────────────────────────────────
    'history_limit': {
        'env': 'POLICY_EDITOR_HISTORY_LIMIT',
        'default': '50',
        'label': 'Undo history depth',
        'group': 'editor',
        'type': 'number',
    },
    'paste_offset_x': {
        'env': 'POLICY_EDITOR_PASTE_OFFSET_X',
        'default': '50',
        'label': 'Paste offset (x)',
        'group': 'editor',
        'type': 'number',
    },
    'paste_offset_y': {
        'env': 'POLICY_EDITOR_PASTE_OFFSET_Y',
        'default': '50',
        'label': 'Paste offset (y)',
        'group': 'editor',
        'type': 'number',
    },
    # ── Platform ─────────────────────────────────────────────────────
    'dev_org_id': {
        'env': 'POLICY_EDITOR_DEV_ORG_ID',
        'default': '',
        'label': 'Platform developer org id inherited by unconfigured branches',
        'group': 'platform',
        'type': 'string',
    },
    'connector_id': {
        'env': 'POLICY_EDITOR_CONNECTOR_ID',
        'default': '',
        'label': 'Platform connector id inherited by unconfigured branches',
        'group': 'platform',
        'type': 'string',
    },
    'organization_id': {
        'env': 'POLICY_EDITOR_ORGANIZATION_ID',
        'default': '',
        'label': 'Routing engine organisation id',
        'group': 'platform',
        'type': 'string',
    },
    # ── Routing engine ───────────────────────────────────────────────
    'engine_host': {
        'env': 'POLICY_EDITOR_ENGINE_HOST',
        'default': '',
        'label': 'Routing engine base URL',
        'group': 'engine',
        'type': 'string',
    },
    'events_host': {
        'env': 'POLICY_EDITOR_EVENTS_HOST',
        'default': '',
        'label': 'Event subscription service base URL',
        'group': 'engine',
        'type': 'string',
    },
    'engine_token': {
        'env': 'POLICY_EDITOR_ENGINE_TOKEN',
        'default': '',
        'label': 'Routing engine bearer token',
        'group': 'engine',
        'type': 'secret',
    },
    'request_timeout': {
        'env': 'POLICY_EDITOR_REQUEST_TIMEOUT',
        'default': '30',
        'label': 'HTTP request timeout (seconds)',
        'group': 'engine',
        'type': 'number',
    },
}


@dataclass
class EditorSettings:
    """Effective editor settings after three-tier resolution."""
    history_limit: int = 50
    paste_offset_x: float = 50
    paste_offset_y: float = 50
    dev_org_id: Optional[str] = None
    connector_id: Optional[str] = None
    organization_id: Optional[str] = None
    engine_host: Optional[str] = None
    events_host: Optional[str] = None
    engine_token: Optional[str] = None
    request_timeout: float = 30

    def platform_config(self) -> Dict[str, Optional[str]]:
        """The values inherited by outputs with no devOrgId/connectorId."""
        return {'devOrgId': self.dev_org_id, 'connectorId': self.connector_id}


def resolve_setting(key: str, overrides: Optional[Mapping[str, Any]] = None) -> str:
    """Three-tier resolution: stored override → env → default."""
    meta = SETTINGS_MANIFEST[key]
    # 1. Stored override
    if overrides:
        stored = overrides.get(key)
        if stored is not None and str(stored).strip() != '':
            return str(stored)
    # 2. Environment variable
    env_val = os.environ.get(meta['env'], '').strip()
    if env_val:
        return env_val
    # 3. Default
    return meta['default']


def _coerce(key: str, raw: str) -> Any:
    kind = SETTINGS_MANIFEST[key]['type']
    if kind == 'number':
        default = SETTINGS_MANIFEST[key]['default']
        try:
            value = float(raw)
        except ValueError:
            value = float(default)
        return int(value) if value.is_integer() else value
    return raw or None


def load_settings(overrides: Optional[Mapping[str, Any]] = None) -> EditorSettings:
    """Build ``EditorSettings`` from stored overrides, env and defaults."""
    values = {}
    for f in fields(EditorSettings):
        values[f.name] = _coerce(f.name, resolve_setting(f.name, overrides))
    values['history_limit'] = int(values['history_limit'])
    if values['history_limit'] < 1:
        values['history_limit'] = int(SETTINGS_MANIFEST['history_limit']['default'])
    return EditorSettings(**values)


def platform_config(overrides: Optional[Mapping[str, Any]] = None) -> Dict[str, Optional[str]]:
    """``{devOrgId, connectorId}`` for the payload builder."""
    return load_settings(overrides).platform_config()
