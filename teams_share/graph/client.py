"""Thin Microsoft Graph client over ``requests``.

Every call is bearer-authenticated with a caller-supplied token; the
client never acquires or refreshes tokens itself. Non-2xx responses are
mapped onto the exceptions in ``teams_share.errors``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

from teams_share.config import GRAPH_BASE_URL
from teams_share.errors import (
    AuthorizationError,
    GraphAPIError,
    NotFoundError,
    RateLimitError,
)
from teams_share.models import AccessToken

logger = logging.getLogger(__name__)

USER_FIELDS = "id,displayName,mail,userPrincipalName,department,jobTitle,companyName"


def _error_message(resp: requests.Response) -> str:
    try:
        return resp.json().get("error", {}).get("message") or resp.text[:300]
    except ValueError:
        return resp.text[:300]


class GraphClient:
    """Microsoft Graph v1.0 client bound to one access token.

    Usage:
        client = GraphClient(token)
        me = client.get_me()
        client.send_chat_message(chat_id, "hello")
    """

    def __init__(
        self,
        access_token: AccessToken | str,
        session: Optional[requests.Session] = None,
        base_url: str = GRAPH_BASE_URL,
        timeout: float = 10,
    ):
        self.access_token = str(access_token)
        self.session = session or requests.Session()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        url = f"{self.base_url}{endpoint}"
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }

        try:
            resp = self.session.request(
                method, url, headers=headers, params=params, json=json, timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise GraphAPIError(f"Request to {endpoint} failed: {exc}") from exc

        status = resp.status_code
        if 200 <= status < 300:
            if status == 204 or not resp.content:
                return {}
            try:
                return resp.json()
            except ValueError as exc:
                raise GraphAPIError(
                    f"Unreadable response from {endpoint}: {resp.text[:300]}", status_code=status
                ) from exc

        message = _error_message(resp)
        logger.debug("Graph %s %s -> %s: %s", method, endpoint, status, message)

        if status in (401, 403):
            raise AuthorizationError(
                f"Not authorized for {endpoint} ({status}): {message}", status_code=status
            )
        if status == 404:
            raise NotFoundError(f"Resource not found: {endpoint}", status_code=status)
        if status == 429:
            retry_after = resp.headers.get("Retry-After", "60")
            raise RateLimitError(
                f"Rate limited. Retry after {retry_after} seconds.",
                retry_after=int(retry_after) if str(retry_after).isdigit() else 60,
            )
        raise GraphAPIError(f"Graph API error ({status}): {message}", status_code=status)

    def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self._request("GET", endpoint, params=params)

    def post(self, endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", endpoint, json=payload)

    def _list(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        body = self.get(endpoint, params)
        if not isinstance(body, dict):
            raise GraphAPIError(f"Unexpected response shape from {endpoint}")
        return body.get("value") or []

    # ========== Profile ==========

    def get_me(self) -> Dict[str, Any]:
        """Current user's profile; doubles as a token validity probe."""
        return self.get("/me")

    def get_organization(self) -> List[Dict[str, Any]]:
        return self._list("/organization")

    # ========== Recipient sources ==========

    def list_contacts(self, limit: int = 100) -> List[Dict[str, Any]]:
        return self._list("/me/contacts", {"$top": limit})

    def list_people(self, limit: int = 100) -> List[Dict[str, Any]]:
        return self._list(
            "/me/people",
            {"$filter": "personType/class eq 'Person'", "$top": limit},
        )

    def list_users(self, limit: int = 50) -> List[Dict[str, Any]]:
        return self._list("/users", {"$top": limit, "$select": USER_FIELDS})

    # ========== Chats ==========

    def list_chats(self, limit: int = 50) -> List[Dict[str, Any]]:
        return self._list("/me/chats", {"$expand": "members", "$top": limit})

    def send_chat_message(self, chat_id: str, content: str, content_type: str = "text") -> Dict[str, Any]:
        """Post a message to a chat (1:1 or group)."""
        body = {"body": {"contentType": content_type, "content": content}}
        return self.post(f"/chats/{chat_id}/messages", body)
