"""Microsoft Graph access: chats, recipient resolution and message delivery."""

from teams_share.graph.chats import list_chats
from teams_share.graph.client import GraphClient
from teams_share.graph.dispatch import MessageDispatcher, build_deep_link
from teams_share.graph.recipients import RecipientResolver

__all__ = [
    "GraphClient",
    "MessageDispatcher",
    "RecipientResolver",
    "build_deep_link",
    "list_chats",
]
