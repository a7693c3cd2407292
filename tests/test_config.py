"""Tests for config loading, scope presets and manual recipients."""

import json

import pytest

from teams_share.config import (
    add_manual_recipient,
    authority_url,
    config_path,
    load_config,
    redirect_uri,
    required_scopes,
    save_config,
    token_cache_path,
)


def test_paths_follow_home_override(isolated_home):
    assert config_path() == isolated_home / "config.json"
    assert token_cache_path() == isolated_home / "msal-token-cache.json"


def test_defaults_when_missing():
    config = load_config()
    assert config["tenant"] == "common"
    assert config["redirect_port"] == 3000
    assert config["login_timeout"] == 300
    assert config["manual_recipients"] == []


def test_saved_values_override_defaults():
    save_config({"client_id": "abc", "redirect_port": 8400})
    config = load_config()
    assert config["client_id"] == "abc"
    assert config["redirect_port"] == 8400
    assert config["capability"] == "chat"


def test_env_overrides_file(monkeypatch):
    save_config({"client_id": "from-file"})
    monkeypatch.setenv("TEAMS_SHARE_CLIENT_ID", "from-env")
    monkeypatch.setenv("TEAMS_SHARE_TENANT", "contoso.onmicrosoft.com")
    config = load_config()
    assert config["client_id"] == "from-env"
    assert authority_url(config) == "https://login.microsoftonline.com/contoso.onmicrosoft.com"


def test_unreadable_config_falls_back_to_defaults():
    path = config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("{not json")
    assert load_config()["tenant"] == "common"


def test_scope_presets_drop_reserved():
    assert required_scopes({"capability": "chat"}) == ["Chat.ReadWrite", "User.Read", "ChatMessage.Send"]
    assert "offline_access" not in required_scopes({"capability": "directory"})
    assert "User.ReadBasic.All" in required_scopes({"capability": "directory"})


def test_explicit_scopes_win():
    assert required_scopes({"capability": "chat", "scopes": ["User.Read", "openid"]}) == ["User.Read"]


def test_unknown_capability():
    with pytest.raises(ValueError):
        required_scopes({"capability": "everything"})


def test_redirect_uri_uses_port():
    assert redirect_uri({"redirect_port": 4000}) == "http://localhost:4000/auth/callback"


def test_add_manual_recipient_persists():
    config = load_config()
    assert add_manual_recipient(config, " new@x.com ")
    assert not add_manual_recipient(config, "NEW@x.com")

    stored = json.loads(config_path().read_text())
    assert stored["manual_recipients"] == ["new@x.com"]


def test_add_manual_recipient_rejects_garbage():
    with pytest.raises(ValueError):
        add_manual_recipient(load_config(), "not-an-email")
