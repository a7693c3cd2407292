"""The explicit context object threaded through every share operation.

Bundles config, the authenticator (and its token cache), the recipient
resolver (and its cache) and the dispatcher, so nothing lives in module
state and tests can build a fresh one per case.
"""

from __future__ import annotations

import logging
import webbrowser
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from teams_share.auth.cache import TokenCacheStore
from teams_share.auth.session import Authenticator
from teams_share.config import add_manual_recipient, load_config, token_cache_path
from teams_share.graph.dispatch import MessageDispatcher
from teams_share.graph.recipients import RecipientResolver

logger = logging.getLogger(__name__)


@dataclass
class ShareContext:
    config: Dict[str, Any]
    authenticator: Authenticator
    resolver: RecipientResolver
    dispatcher: MessageDispatcher

    @classmethod
    def from_config(
        cls,
        config: Optional[Dict[str, Any]] = None,
        opener: Callable[[str], Any] = webbrowser.open,
    ) -> "ShareContext":
        config = config if config is not None else load_config()
        authenticator = Authenticator(
            config,
            store=TokenCacheStore(token_cache_path()),
            opener=opener,
        )
        resolver = RecipientResolver(
            manual_recipients=config.get("manual_recipients") or [],
            include_directory=config.get("capability") == "directory",
            ttl=float(config.get("recipient_cache_ttl", 600)),
        )
        dispatcher = MessageDispatcher(
            prefer_deep_link=bool(config.get("prefer_deep_link")),
            deep_link_scheme=config.get("deep_link_scheme") or "https",
            opener=opener,
        )
        return cls(config, authenticator, resolver, dispatcher)

    def add_manual_recipient(self, email: str) -> bool:
        """Persist a manual recipient and drop the cached recipient set."""
        added = add_manual_recipient(self.config, email)
        self.resolver.add_manual_recipient(email.strip())
        return added

    def sign_out(self) -> List[str]:
        self.resolver.invalidate()
        return self.authenticator.sign_out()
