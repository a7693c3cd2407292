"""teams-share configuration and storage paths.

Shared by the authenticator, the recipient resolver and the CLI commands.
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.json"
TOKEN_CACHE_FILENAME = "msal-token-cache.json"

GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"
AUTHORITY_HOST = "https://login.microsoftonline.com"
CALLBACK_PATH = "/auth/callback"

# msal adds these on its own and refuses them in explicit scope lists
RESERVED_SCOPES = frozenset({"openid", "profile", "offline_access"})

CAPABILITY_SCOPES: Dict[str, List[str]] = {
    "chat": ["Chat.ReadWrite", "User.Read", "ChatMessage.Send"],
    "contacts": ["Contacts.Read", "People.Read", "User.Read", "offline_access"],
    "directory": [
        "Contacts.Read",
        "People.Read",
        "User.Read",
        "User.ReadBasic.All",
        "offline_access",
    ],
}

DEFAULT_CONFIG: Dict[str, Any] = {
    "client_id": "",
    "client_secret": "",
    "tenant": "common",
    "capability": "chat",
    "redirect_port": 3000,
    "prompt": "select_account",
    "login_timeout": 300,
    "prefer_deep_link": False,
    "deep_link_scheme": "https",
    "include_language": True,
    "manual_recipients": [],
    "recipient_cache_ttl": 600,
}

_ENV_OVERRIDES = {
    "TEAMS_SHARE_CLIENT_ID": "client_id",
    "TEAMS_SHARE_CLIENT_SECRET": "client_secret",
    "TEAMS_SHARE_TENANT": "tenant",
}

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def storage_dir() -> Path:
    """Application-private storage directory (``TEAMS_SHARE_HOME`` overrides)."""
    env_home = os.environ.get("TEAMS_SHARE_HOME")
    if env_home:
        return Path(env_home)
    return Path.home() / ".teams-share"


def config_path() -> Path:
    return storage_dir() / CONFIG_FILENAME


def token_cache_path() -> Path:
    return storage_dir() / TOKEN_CACHE_FILENAME


def load_config(path: Path | None = None) -> Dict[str, Any]:
    """Load config from disk, layered over defaults and under env overrides."""
    path = path or config_path()
    config = dict(DEFAULT_CONFIG)
    config["manual_recipients"] = []

    if path.exists():
        try:
            stored = json.loads(path.read_text())
            if isinstance(stored, dict):
                config.update(stored)
            else:
                logger.warning("Ignoring config at %s: not a JSON object", path)
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Ignoring unreadable config at %s: %s", path, exc)

    for env_var, key in _ENV_OVERRIDES.items():
        value = os.environ.get(env_var)
        if value:
            config[key] = value

    return config


def save_config(config: Dict[str, Any], path: Path | None = None):
    """Save config to disk."""
    path = path or config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(config, indent=2))


def required_scopes(config: Dict[str, Any]) -> List[str]:
    """Scope set for this deployment, with msal-reserved scopes removed.

    An explicit ``scopes`` list wins over the ``capability`` preset.
    """
    scopes = config.get("scopes")
    if not scopes:
        capability = config.get("capability", "chat")
        if capability not in CAPABILITY_SCOPES:
            raise ValueError(
                f"Unknown capability: {capability}. "
                f"Use one of: {', '.join(sorted(CAPABILITY_SCOPES))}"
            )
        scopes = CAPABILITY_SCOPES[capability]
    return [s for s in scopes if s.lower() not in RESERVED_SCOPES]


def redirect_uri(config: Dict[str, Any]) -> str:
    return f"http://localhost:{int(config.get('redirect_port', 3000))}{CALLBACK_PATH}"


def authority_url(config: Dict[str, Any]) -> str:
    tenant = (config.get("tenant") or "common").strip("/")
    return f"{AUTHORITY_HOST}/{tenant}"


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email.strip()))


def add_manual_recipient(config: Dict[str, Any], email: str, path: Path | None = None) -> bool:
    """Add a manually entered recipient email and persist the config.

    Returns False if the address is already present (case-insensitive).
    Raises ValueError for something that is not an email address.
    """
    email = email.strip()
    if not is_valid_email(email):
        raise ValueError(f"Not a valid email address: {email}")

    manual = list(config.get("manual_recipients") or [])
    if email.lower() in {m.lower() for m in manual}:
        return False

    manual.append(email)
    config["manual_recipients"] = manual
    save_config(config, path)
    logger.info("Added manual recipient %s", email)
    return True
