"""Existing Teams chats as share targets."""

from __future__ import annotations

import logging
from typing import List

from teams_share.errors import AuthorizationError
from teams_share.graph.client import GraphClient
from teams_share.models import Chat

logger = logging.getLogger(__name__)


def list_chats(client: GraphClient, limit: int = 50) -> List[Chat]:
    """Fetch the signed-in user's chats with members expanded.

    Raises AuthorizationError when the token cannot read chats; other
    Graph failures propagate as GraphAPIError.
    """
    try:
        raw = client.list_chats(limit=limit)
    except AuthorizationError as exc:
        raise AuthorizationError(
            "Not authorized to access Teams chats. Check permissions or sign out and try again.",
            status_code=exc.status_code,
        ) from exc

    chats = []
    for item in raw:
        if not item.get("id"):
            continue
        chats.append(Chat.from_graph(item))

    logger.info("Fetched %d chats", len(chats))
    return chats
