"""
Unit tests for the SQLite policy record store.
"""

import os
import tempfile

import pytest

from web_interface.policy_db import PolicyRecordStore


class TestPolicyRecordStore:
    """Test cases for PolicyRecordStore."""

    def setup_method(self):
        """Set up test fixtures."""
        self.temp_db = tempfile.NamedTemporaryFile(delete=False, suffix='.db')
        self.temp_db.close()
        self.store = PolicyRecordStore(self.temp_db.name)

    def teardown_method(self):
        """Clean up test fixtures."""
        for suffix in ('', '-wal', '-shm'):
            path = self.temp_db.name + suffix
            if os.path.exists(path):
                os.unlink(path)

    def test_create_and_fetch(self):
        created = self.store.create_policy('Main', 'desc', body='{"nodes": []}', policy_id='p1')
        assert created['id'] == 'p1'

        record = self.store.fetch_policy_record('p1')
        assert record.name == 'Main'
        assert record.description == 'desc'
        assert record.body == '{"nodes": []}'
        assert record.policy_type == 'CALL'
        assert record.engine_id is None
        assert record.grid is None

    def test_generated_id(self):
        created = self.store.create_policy('Generated')
        assert self.store.fetch_policy_record(created['id']) is not None

    def test_fetch_missing(self):
        assert self.store.fetch_policy_record('ghost') is None

    def test_update_fields(self):
        self.store.create_policy('Main', policy_id='p1')
        assert self.store.update_record_store('p1', {
            'name': 'Renamed',
            'body': '{}',
            'policy': '{"nodes": []}',
            'engineId': 'E-1',
            'grid': False,
            'unknown': 'ignored',
        })

        record = self.store.fetch_policy_record('p1')
        assert record.name == 'Renamed'
        assert record.engine_id == 'E-1'
        assert record.grid is False

    def test_update_missing_policy(self):
        assert self.store.update_record_store('ghost', {'name': 'x'}) is False

    def test_delete(self):
        self.store.create_policy('Main', policy_id='p1')
        assert self.store.delete_record_store('p1')
        assert not self.store.delete_record_store('p1')
        assert self.store.list_policies() == []

    def test_list_policies_omits_bodies(self):
        self.store.create_policy('One', body='{"big": true}')
        self.store.create_policy('Two')

        policies = self.store.list_policies()
        assert {p['name'] for p in policies} == {'One', 'Two'}
        assert all('body_json' not in p for p in policies)


class TestSettingsTable:
    """Test cases for the settings key/value table."""

    def setup_method(self):
        """Set up test fixtures."""
        self.temp_db = tempfile.NamedTemporaryFile(delete=False, suffix='.db')
        self.temp_db.close()
        self.store = PolicyRecordStore(self.temp_db.name)

    def teardown_method(self):
        """Clean up test fixtures."""
        for suffix in ('', '-wal', '-shm'):
            path = self.temp_db.name + suffix
            if os.path.exists(path):
                os.unlink(path)

    def test_set_and_get(self):
        self.store.set_setting('HISTORY_LIMIT', '10')
        assert self.store.get_setting('history_limit') == '10'
        assert self.store.get_all_settings() == {'history_limit': '10'}

    def test_unknown_setting_rejected(self):
        with pytest.raises(KeyError):
            self.store.set_setting('no_such_setting', '1')

    def test_stored_override_wins(self, monkeypatch):
        monkeypatch.setenv('POLICY_EDITOR_HISTORY_LIMIT', '20')
        assert self.store.load_settings().history_limit == 20

        self.store.set_setting('history_limit', '5')
        assert self.store.load_settings().history_limit == 5

        assert self.store.delete_setting('history_limit')
        assert self.store.load_settings().history_limit == 20
