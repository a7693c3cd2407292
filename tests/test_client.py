"""Tests for the Graph client status mapping and request shapes."""

import json
from unittest.mock import MagicMock

import pytest
import requests

from teams_share.errors import (
    AuthorizationError,
    GraphAPIError,
    NotFoundError,
    RateLimitError,
)
from teams_share.graph.client import GraphClient
from teams_share.models import AccessToken


def _response(status, body=None, headers=None):
    resp = requests.Response()
    resp.status_code = status
    resp._content = json.dumps(body).encode("utf-8") if body is not None else b""
    resp.headers.update(headers or {})
    return resp


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def client(session):
    return GraphClient(AccessToken(token="tok-123"), session=session)


def test_get_me_sends_bearer_token(client, session):
    """Test the token is passed as a bearer header to the v1.0 endpoint."""
    session.request.return_value = _response(200, {"id": "u1", "displayName": "Amy"})

    me = client.get_me()

    assert me["displayName"] == "Amy"
    method, url = session.request.call_args[0]
    kwargs = session.request.call_args[1]
    assert method == "GET"
    assert url == "https://graph.microsoft.com/v1.0/me"
    assert kwargs["headers"]["Authorization"] == "Bearer tok-123"


def test_list_chats_expands_members(client, session):
    session.request.return_value = _response(200, {"value": [{"id": "c1"}]})

    chats = client.list_chats(limit=20)

    assert chats == [{"id": "c1"}]
    kwargs = session.request.call_args[1]
    assert kwargs["params"] == {"$expand": "members", "$top": 20}


def test_list_people_filters_to_persons(client, session):
    session.request.return_value = _response(200, {"value": []})
    client.list_people()
    kwargs = session.request.call_args[1]
    assert kwargs["params"]["$filter"] == "personType/class eq 'Person'"


def test_send_chat_message_payload(client, session):
    """Test the message body shape for a chat post."""
    session.request.return_value = _response(201, {"id": "m1"})

    result = client.send_chat_message("19:abc@thread.v2", "<pre>x</pre>", content_type="html")

    assert result == {"id": "m1"}
    method, url = session.request.call_args[0]
    kwargs = session.request.call_args[1]
    assert method == "POST"
    assert url.endswith("/chats/19:abc@thread.v2/messages")
    assert kwargs["json"] == {"body": {"contentType": "html", "content": "<pre>x</pre>"}}


def test_no_content_returns_empty_dict(client, session):
    session.request.return_value = _response(204)
    assert client.post("/me/something", {}) == {}


@pytest.mark.parametrize("status", [401, 403])
def test_auth_statuses_raise_authorization_error(client, session, status):
    session.request.return_value = _response(status, {"error": {"message": "Forbidden"}})
    with pytest.raises(AuthorizationError) as exc_info:
        client.get_me()
    assert exc_info.value.status_code == status
    assert "Forbidden" in str(exc_info.value)


def test_not_found(client, session):
    session.request.return_value = _response(404, {"error": {"message": "nope"}})
    with pytest.raises(NotFoundError):
        client.get("/chats/missing")


def test_rate_limit_reads_retry_after(client, session):
    session.request.return_value = _response(429, {}, headers={"Retry-After": "12"})
    with pytest.raises(RateLimitError) as exc_info:
        client.list_contacts()
    assert exc_info.value.retry_after == 12
    assert exc_info.value.status_code == 429


def test_server_error_is_generic(client, session):
    """Test other statuses map to the base GraphAPIError, not a subclass."""
    session.request.return_value = _response(500, {"error": {"message": "boom"}})
    with pytest.raises(GraphAPIError) as exc_info:
        client.get_me()
    assert type(exc_info.value) is GraphAPIError
    assert exc_info.value.status_code == 500


def test_non_json_error_body(client, session):
    resp = _response(502)
    resp._content = b"Bad Gateway"
    session.request.return_value = resp
    with pytest.raises(GraphAPIError) as exc_info:
        client.get_me()
    assert "Bad Gateway" in str(exc_info.value)


def test_transport_failure_is_wrapped(client, session):
    session.request.side_effect = requests.ConnectionError("offline")
    with pytest.raises(GraphAPIError) as exc_info:
        client.get_me()
    assert exc_info.value.status_code is None


def test_unreadable_success_body(client, session):
    """Test a 2xx body that is not JSON surfaces as GraphAPIError."""
    resp = _response(201)
    resp._content = b"<html>proxy login</html>"
    session.request.return_value = resp
    with pytest.raises(GraphAPIError) as exc_info:
        client.send_chat_message("chat-1", "hi")
    assert exc_info.value.status_code == 201


def test_list_with_non_object_body(client, session):
    session.request.return_value = _response(200, ["not", "an", "object"])
    with pytest.raises(GraphAPIError):
        client.list_contacts()
