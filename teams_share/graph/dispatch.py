"""Message delivery: Graph chat POST first, Teams deep link as fallback."""

from __future__ import annotations

import logging
import webbrowser
from typing import Any, Callable, Iterable, Optional
from urllib.parse import quote

from teams_share.errors import AuthorizationError, DeliveryError, GraphAPIError
from teams_share.graph.client import GraphClient
from teams_share.models import AccessToken, DeliveryReceipt, ShareTarget

logger = logging.getLogger(__name__)

DEEP_LINK_HOST = "teams.microsoft.com/l/chat/0/0"


def build_deep_link(emails: Iterable[str], content: str, scheme: str = "https") -> str:
    """Teams compose link with the recipients and message pre-filled.

    Both values are fully percent-encoded; ``users`` is omitted when there
    are no recipients, leaving Teams to ask for them.
    """
    params = []
    joined = ",".join(e.strip() for e in emails if e and e.strip())
    if joined:
        params.append(f"users={quote(joined, safe='')}")
    params.append(f"message={quote(content, safe='')}")
    return f"{scheme}://{DEEP_LINK_HOST}?{'&'.join(params)}"


class MessageDispatcher:
    """Sends formatted content to a ShareTarget.

    ``opener`` receives deep links; it should return a truthy value when
    the platform accepted the URI (``webbrowser.open`` does).
    """

    def __init__(
        self,
        prefer_deep_link: bool = False,
        deep_link_scheme: str = "https",
        opener: Callable[[str], Any] = webbrowser.open,
        client_factory: Callable[[AccessToken | str], GraphClient] = GraphClient,
    ):
        self.prefer_deep_link = prefer_deep_link
        self.deep_link_scheme = deep_link_scheme
        self.opener = opener
        self._client_factory = client_factory

    def send(
        self,
        access_token: Optional[AccessToken | str],
        target: ShareTarget,
        content: str,
    ) -> DeliveryReceipt:
        """Deliver ``content``; raises AuthorizationError on 401/403 from Graph."""
        if access_token and target.chat_id and not self.prefer_deep_link:
            try:
                return self.send_via_graph(access_token, target, content)
            except DeliveryError as exc:
                logger.warning("%s; falling back to Teams deep link", exc)

        return self.send_via_deep_link(target, content)

    def send_via_graph(self, access_token: AccessToken | str, target: ShareTarget, content: str) -> DeliveryReceipt:
        client = self._client_factory(access_token)
        try:
            response = client.send_chat_message(target.chat_id, content)
        except AuthorizationError as exc:
            raise AuthorizationError(
                f"Not authorized to post to this chat ({exc.status_code}). "
                "Sign out and sign in again, or check the app's permissions.",
                status_code=exc.status_code,
            ) from exc
        except GraphAPIError as exc:
            raise DeliveryError(f"Failed to send message to Teams: {exc}") from exc

        logger.info("Message sent to chat %s", target.chat_id)
        return DeliveryReceipt(
            method="graph",
            target=target,
            message_id=response.get("id") if isinstance(response, dict) else None,
            response=response,
        )

    def send_via_deep_link(self, target: ShareTarget, content: str) -> DeliveryReceipt:
        url = build_deep_link(target.emails, content, scheme=self.deep_link_scheme)
        if not self.opener(url):
            raise DeliveryError("Could not open Microsoft Teams. Open this link manually:\n" + url)
        logger.info("Opened Teams deep link for %d recipients", len(target.emails))
        return DeliveryReceipt(method="deep_link", target=target, url=url)
