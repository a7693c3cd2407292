"""Core dataclasses shared by the authenticator, resolver and dispatcher."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional


@dataclass(frozen=True)
class AccessToken:
    """A delegated bearer token. Never persisted outside the msal cache."""

    token: str
    scopes: FrozenSet[str] = frozenset()
    expires_at: float = 0
    username: str = ""

    @property
    def expired(self) -> bool:
        return bool(self.expires_at) and time.time() >= self.expires_at

    def __str__(self) -> str:
        return self.token


@dataclass(frozen=True)
class Recipient:
    """A normalized identity eligible to receive a shared snippet.

    Identity key is the lowercased email address.
    """

    id: str
    display_name: str
    email: str
    department: str = ""
    company: str = ""
    job_title: str = ""
    is_manual: bool = False

    @property
    def key(self) -> str:
        return self.email.lower()

    @classmethod
    def manual(cls, email: str) -> "Recipient":
        return cls(id=email, display_name=email, email=email, is_manual=True)

    def describe(self) -> str:
        parts = [p for p in (self.job_title, self.department, self.company) if p]
        return " · ".join(parts)


@dataclass
class ChatMember:
    display_name: str
    email: str = ""
    user_id: str = ""


@dataclass
class Chat:
    """A Teams chat as returned by ``/me/chats?$expand=members``."""

    id: str
    chat_type: str = ""
    topic: Optional[str] = None
    members: List[ChatMember] = field(default_factory=list)

    @classmethod
    def from_graph(cls, data: Dict[str, Any]) -> "Chat":
        members = [
            ChatMember(
                display_name=m.get("displayName") or "",
                email=m.get("email") or "",
                user_id=m.get("userId") or "",
            )
            for m in data.get("members") or []
        ]
        return cls(
            id=data["id"],
            chat_type=data.get("chatType") or "",
            topic=data.get("topic") or None,
            members=members,
        )

    def other_members(self, my_id: str = "") -> List[ChatMember]:
        return [
            m for m in self.members
            if "(You)" not in m.display_name and not (my_id and m.user_id == my_id)
        ]

    def label(self, my_id: str = "") -> str:
        if self.topic:
            return self.topic
        others = [m.display_name for m in self.other_members(my_id) if m.display_name]
        if others:
            return ", ".join(others)
        return "Chat"

    def description(self) -> str:
        if self.topic:
            return f"{len(self.members)} members" if self.members else "Group chat"
        return "Direct message"


@dataclass
class ShareTarget:
    """Where a snippet goes: an existing chat, a set of emails, or both."""

    chat_id: Optional[str] = None
    emails: List[str] = field(default_factory=list)
    label: str = ""

    @classmethod
    def for_chat(cls, chat: Chat, my_id: str = "") -> "ShareTarget":
        emails = [m.email for m in chat.other_members(my_id) if m.email]
        return cls(chat_id=chat.id, emails=emails, label=chat.label(my_id))

    @classmethod
    def for_recipients(cls, recipients: List[Recipient]) -> "ShareTarget":
        return cls(
            emails=[r.email for r in recipients],
            label=", ".join(r.display_name for r in recipients),
        )


@dataclass
class DeliveryReceipt:
    """Outcome of a send. ``method`` is ``graph`` or ``deep_link``."""

    method: str
    target: ShareTarget
    message_id: Optional[str] = None
    url: Optional[str] = None
    response: Optional[Dict[str, Any]] = None

    @property
    def confirmed(self) -> bool:
        return self.method == "graph"
