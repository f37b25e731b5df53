"""
Policy Database — SQLite-backed record store for routing policies.

Stores each policy's editor body and the last engine payload built from it,
plus a key/value settings table whose rows override environment defaults.

Schema:
  policies   — id, name, description, type, engine_id, is_active, color, grid,
               body_json, policy_json, phone_numbers, created_at, updated_at
  settings   — key, value, updated_at
"""

import os
import sqlite3
import time
import uuid
import logging
from typing import Dict, List, Optional, Any

from routing_policy_editor.collaborators import RecordStore
from routing_policy_editor.config import EditorSettings, SETTINGS_MANIFEST, load_settings
from routing_policy_editor.exceptions import RecordStoreError
from routing_policy_editor.models import PolicyRecord


def _resolve_db_path() -> str:
    """Resolve the database path from env → default.

    Priority:
        1. POLICY_EDITOR_DB_PATH environment variable
        2. ``<web_interface>/policies.db``
    """
    env_path = os.environ.get('POLICY_EDITOR_DB_PATH', '').strip()
    if env_path:
        os.makedirs(os.path.dirname(env_path) or '.', exist_ok=True)
        return env_path
    return os.path.join(os.path.dirname(os.path.abspath(__file__)), 'policies.db')


# Record-store field name → column
_FIELD_COLUMNS = {
    'name': 'name',
    'description': 'description',
    'body': 'body_json',
    'policy': 'policy_json',
    'phoneNumbers': 'phone_numbers',
    'engineId': 'engine_id',
    'type': 'type',
    'isActive': 'is_active',
    'color': 'color',
    'grid': 'grid',
}


class PolicyRecordStore(RecordStore):
    """``RecordStore`` on a local SQLite file."""

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path or _resolve_db_path()
        self.logger = logging.getLogger(__name__)
        conn = self._connect()
        conn.close()

    def _connect(self) -> sqlite3.Connection:
        """Return a connection to the policies database, creating tables if needed."""
        try:
            conn = sqlite3.connect(self.db_path)
            conn.row_factory = sqlite3.Row
            conn.execute('PRAGMA journal_mode=WAL')
            conn.executescript('''
                CREATE TABLE IF NOT EXISTS policies (
                    id             TEXT PRIMARY KEY,
                    name           TEXT NOT NULL,
                    description    TEXT DEFAULT '',
                    type           TEXT NOT NULL DEFAULT 'CALL',
                    engine_id      TEXT,
                    is_active      INTEGER NOT NULL DEFAULT 0,
                    color          TEXT,
                    grid           INTEGER,
                    body_json      TEXT,
                    policy_json    TEXT,
                    phone_numbers  TEXT DEFAULT '',
                    created_at     REAL NOT NULL,
                    updated_at     REAL NOT NULL
                );

                CREATE TABLE IF NOT EXISTS settings (
                    key           TEXT PRIMARY KEY,
                    value         TEXT NOT NULL,
                    updated_at    REAL NOT NULL
                );
            ''')
            conn.commit()
        except sqlite3.Error as e:
            raise RecordStoreError(f"Cannot open policy database: {e}", {'db_path': self.db_path}) from e
        return conn

    # ─────────────────────────────────────────────────────────────────
    # Policy CRUD
    # ─────────────────────────────────────────────────────────────────

    def create_policy(self, name: str, description: str = '', body: Optional[str] = None,
                      policy_type: str = 'CALL', policy_id: Optional[str] = None) -> Dict[str, Any]:
        """Insert a new policy row and return its metadata."""
        policy_id = policy_id or str(uuid.uuid4())
        now = time.time()
        conn = self._connect()
        try:
            conn.execute('''
                INSERT INTO policies (id, name, description, type, body_json, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            ''', (policy_id, name, description, policy_type, body, now, now))
            conn.commit()
        except sqlite3.Error as e:
            raise RecordStoreError(f"Failed to create policy: {e}", {'policy_id': policy_id}) from e
        finally:
            conn.close()

        self.logger.info(f"Created policy {policy_id} ({name})")
        return {
            'id': policy_id,
            'name': name,
            'description': description,
            'type': policy_type,
            'created_at': now,
            'updated_at': now,
        }

    def list_policies(self) -> List[Dict[str, Any]]:
        """Return all policies (metadata only, no body blobs)."""
        conn = self._connect()
        try:
            rows = conn.execute('''
                SELECT id, name, description, type, engine_id, is_active, created_at, updated_at
                  FROM policies
                 ORDER BY updated_at DESC
            ''').fetchall()
        except sqlite3.Error as e:
            raise RecordStoreError(f"Failed to list policies: {e}") from e
        finally:
            conn.close()

        return [dict(r) for r in rows]

    def fetch_policy_record(self, policy_id: str) -> Optional[PolicyRecord]:
        conn = self._connect()
        try:
            row = conn.execute('SELECT * FROM policies WHERE id = ?', (policy_id,)).fetchone()
        except sqlite3.Error as e:
            raise RecordStoreError(f"Failed to fetch policy: {e}", {'policy_id': policy_id}) from e
        finally:
            conn.close()
        if not row:
            return None

        return PolicyRecord(
            id=row['id'],
            name=row['name'],
            description=row['description'] or '',
            body=row['body_json'],
            engine_id=row['engine_id'],
            policy_type=row['type'],
            is_active=bool(row['is_active']),
            color=row['color'],
            grid=None if row['grid'] is None else bool(row['grid']),
        )

    def update_record_store(self, policy_id: str, fields: Dict[str, Any]) -> bool:
        """Write the known ``fields``; returns False if the policy does not exist."""
        columns = []
        values = []
        for key, value in fields.items():
            column = _FIELD_COLUMNS.get(key)
            if column is None:
                self.logger.debug(f"Ignoring unknown policy field {key!r}")
                continue
            if column in ('is_active', 'grid') and value is not None:
                value = int(bool(value))
            columns.append(f"{column} = ?")
            values.append(value)
        columns.append('updated_at = ?')
        values.append(time.time())

        conn = self._connect()
        try:
            cursor = conn.execute(
                f"UPDATE policies SET {', '.join(columns)} WHERE id = ?",
                (*values, policy_id),
            )
            conn.commit()
        except sqlite3.Error as e:
            raise RecordStoreError(f"Failed to update policy: {e}", {'policy_id': policy_id}) from e
        finally:
            conn.close()
        return cursor.rowcount > 0

    def delete_record_store(self, policy_id: str) -> bool:
        conn = self._connect()
        try:
            cursor = conn.execute('DELETE FROM policies WHERE id = ?', (policy_id,))
            conn.commit()
        except sqlite3.Error as e:
            raise RecordStoreError(f"Failed to delete policy: {e}", {'policy_id': policy_id}) from e
        finally:
            conn.close()
        return cursor.rowcount > 0

    # ─────────────────────────────────────────────────────────────────
    # Settings KV store  (database overrides for env defaults)
    # ─────────────────────────────────────────────────────────────────

    def get_setting(self, key: str) -> Optional[str]:
        """Return a single setting value, or None if unset."""
        conn = self._connect()
        try:
            row = conn.execute('SELECT value FROM settings WHERE key = ?', (key.lower(),)).fetchone()
        finally:
            conn.close()
        return row['value'] if row else None

    def set_setting(self, key: str, value: str) -> Dict[str, Any]:
        """Upsert a setting. Returns the saved record."""
        if key.lower() not in SETTINGS_MANIFEST:
            raise KeyError(f"Unknown setting {key!r}")
        now = time.time()
        conn = self._connect()
        try:
            conn.execute('''
                INSERT INTO settings (key, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE
                   SET value = excluded.value,
                       updated_at = excluded.updated_at
            ''', (key.lower(), str(value), now))
            conn.commit()
        finally:
            conn.close()
        return {'key': key.lower(), 'value': str(value), 'updated_at': now}

    def get_all_settings(self) -> Dict[str, str]:
        """Return all settings as a flat dict."""
        conn = self._connect()
        try:
            rows = conn.execute('SELECT key, value FROM settings').fetchall()
        finally:
            conn.close()
        return {r['key']: r['value'] for r in rows}

    def delete_setting(self, key: str) -> bool:
        """Remove a setting (reverts to env / default)."""
        conn = self._connect()
        try:
            cursor = conn.execute('DELETE FROM settings WHERE key = ?', (key.lower(),))
            conn.commit()
        finally:
            conn.close()
        return cursor.rowcount > 0

    def load_settings(self) -> EditorSettings:
        """Effective settings: stored overrides → env → defaults."""
        return load_settings(self.get_all_settings())
