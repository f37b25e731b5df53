"""
Unit tests for three-tier settings resolution.
"""

import pytest

from routing_policy_editor.config import (
    SETTINGS_MANIFEST, EditorSettings, load_settings, platform_config, resolve_setting,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for meta in SETTINGS_MANIFEST.values():
        monkeypatch.delenv(meta['env'], raising=False)


class TestResolveSetting:
    """Test cases for resolve_setting."""

    def test_default(self):
        assert resolve_setting('history_limit') == '50'

    def test_env_beats_default(self, monkeypatch):
        monkeypatch.setenv('POLICY_EDITOR_ENGINE_HOST', 'https://engine.example')
        assert resolve_setting('engine_host') == 'https://engine.example'

    def test_override_beats_env(self, monkeypatch):
        monkeypatch.setenv('POLICY_EDITOR_ENGINE_HOST', 'https://engine.example')
        assert resolve_setting('engine_host', {'engine_host': 'https://stored'}) == 'https://stored'

    def test_blank_override_ignored(self, monkeypatch):
        monkeypatch.setenv('POLICY_EDITOR_DEV_ORG_ID', 'ENV')
        assert resolve_setting('dev_org_id', {'dev_org_id': '  '}) == 'ENV'

    def test_unknown_key(self):
        with pytest.raises(KeyError):
            resolve_setting('nope')


class TestLoadSettings:
    """Test cases for load_settings."""

    def test_defaults(self):
        settings = load_settings()
        assert settings == EditorSettings()

    def test_numbers_are_coerced(self):
        settings = load_settings({'paste_offset_x': '12.5', 'request_timeout': '5'})
        assert settings.paste_offset_x == 12.5
        assert settings.request_timeout == 5

    def test_invalid_number_falls_back(self):
        assert load_settings({'history_limit': 'lots'}).history_limit == 50

    def test_history_limit_must_be_positive(self):
        assert load_settings({'history_limit': '0'}).history_limit == 50

    def test_platform_config(self, monkeypatch):
        monkeypatch.setenv('POLICY_EDITOR_DEV_ORG_ID', 'DEV')
        assert platform_config() == {'devOrgId': 'DEV', 'connectorId': None}
