"""
test_config.py - Testes para SyncSettings
"""

from __future__ import annotations

import pytest

from semantic_sync.config import DEFAULT_DEBOUNCE_MS, SyncSettings


def test_defaults():
    settings = SyncSettings()
    assert settings.enabled is True
    assert settings.debounce_ms == DEFAULT_DEBOUNCE_MS
    assert settings.debounce_seconds == pytest.approx(0.2)


def test_from_settings_section():
    settings = SyncSettings.from_settings({"semanticTokens": {"enabled": False, "debounce": 50}})
    assert settings == SyncSettings(enabled=False, debounce_ms=50)


def test_from_settings_bare_section():
    settings = SyncSettings.from_settings({"debounce": 0})
    assert settings.debounce_ms == 0
    assert settings.enabled is True


@pytest.mark.parametrize("payload", [None, [], "x", {"semanticTokens": None}])
def test_from_settings_malformed_payload(payload):
    assert SyncSettings.from_settings(payload) == SyncSettings()


@pytest.mark.parametrize("debounce", [-1, "200", 1.5, True])
def test_from_settings_invalid_debounce_falls_back(debounce):
    settings = SyncSettings.from_settings({"debounce": debounce})
    assert settings.debounce_ms == DEFAULT_DEBOUNCE_MS


def test_from_settings_invalid_enabled_falls_back():
    assert SyncSettings.from_settings({"enabled": "no"}).enabled is True
