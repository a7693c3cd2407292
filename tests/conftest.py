"""Shared fixtures for teams-share tests."""

from unittest.mock import MagicMock

import pytest

from teams_share.auth.cache import TokenCacheStore
from teams_share.auth.session import Authenticator
from teams_share.config import DEFAULT_CONFIG


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Point the storage directory at a temp dir and drop env overrides."""
    home = tmp_path / "teams-share-home"
    monkeypatch.setenv("TEAMS_SHARE_HOME", str(home))
    for var in ("TEAMS_SHARE_CLIENT_ID", "TEAMS_SHARE_CLIENT_SECRET", "TEAMS_SHARE_TENANT"):
        monkeypatch.delenv(var, raising=False)
    return home


@pytest.fixture
def config():
    cfg = dict(DEFAULT_CONFIG)
    cfg["client_id"] = "11111111-2222-3333-4444-555555555555"
    cfg["manual_recipients"] = []
    return cfg


@pytest.fixture
def store(tmp_path):
    return TokenCacheStore(tmp_path / "cache" / "msal-token-cache.json")


@pytest.fixture
def msal_app():
    app = MagicMock()
    app.get_accounts.return_value = []
    return app


@pytest.fixture
def authenticator(config, store, msal_app):
    opener = MagicMock(return_value=True)
    return Authenticator(config, store=store, opener=opener, app_factory=lambda cfg, cache: msal_app)
