"""Tests for message delivery and the deep-link fallback."""

from unittest.mock import MagicMock
from urllib.parse import quote

import pytest
import requests

from teams_share.errors import AuthorizationError, DeliveryError, GraphAPIError
from teams_share.graph.client import GraphClient
from teams_share.graph.dispatch import MessageDispatcher, build_deep_link
from teams_share.models import ShareTarget

CONTENT = "```js\nhi\n```"


@pytest.fixture
def graph():
    client = MagicMock()
    client.send_chat_message.return_value = {"id": "msg-1"}
    return client


@pytest.fixture
def opener():
    return MagicMock(return_value=True)


def make_dispatcher(graph, opener, **kwargs):
    return MessageDispatcher(opener=opener, client_factory=lambda token: graph, **kwargs)


def test_deep_link_encodes_users_and_message():
    url = build_deep_link(["a@x.com", "b@y.com"], CONTENT)

    assert url.startswith("https://teams.microsoft.com/l/chat/0/0?")
    assert f"users={quote('a@x.com,b@y.com', safe='')}" in url
    assert f"message={quote(CONTENT, safe='')}" in url
    assert "\n" not in url
    assert "`" not in url


def test_deep_link_custom_scheme_and_no_users():
    url = build_deep_link([], "hi", scheme="msteams")
    assert url == "msteams://teams.microsoft.com/l/chat/0/0?message=hi"


def test_graph_delivery(graph, opener):
    target = ShareTarget(chat_id="chat-1", emails=["a@x.com"], label="Amy")

    receipt = make_dispatcher(graph, opener).send("token", target, CONTENT)

    assert receipt.method == "graph"
    assert receipt.confirmed
    assert receipt.message_id == "msg-1"
    graph.send_chat_message.assert_called_once_with("chat-1", CONTENT)
    opener.assert_not_called()


def test_server_error_falls_back_to_deep_link(graph, opener):
    graph.send_chat_message.side_effect = GraphAPIError("boom", status_code=500)
    target = ShareTarget(chat_id="chat-1", emails=["a@x.com"])

    receipt = make_dispatcher(graph, opener).send("token", target, CONTENT)

    assert receipt.method == "deep_link"
    assert not receipt.confirmed
    opener.assert_called_once_with(receipt.url)
    assert quote("a@x.com", safe="") in receipt.url


def test_forbidden_is_not_masked_by_fallback(graph, opener):
    graph.send_chat_message.side_effect = AuthorizationError("denied", status_code=403)
    target = ShareTarget(chat_id="chat-1", emails=["a@x.com"])

    with pytest.raises(AuthorizationError) as exc_info:
        make_dispatcher(graph, opener).send("token", target, CONTENT)

    assert exc_info.value.status_code == 403
    opener.assert_not_called()


def test_no_chat_id_uses_deep_link(graph, opener):
    target = ShareTarget(emails=["a@x.com", "b@y.com"])
    receipt = make_dispatcher(graph, opener).send("token", target, CONTENT)
    assert receipt.method == "deep_link"
    graph.send_chat_message.assert_not_called()


def test_no_token_uses_deep_link(graph, opener):
    target = ShareTarget(chat_id="chat-1", emails=["a@x.com"])
    receipt = make_dispatcher(graph, opener).send(None, target, CONTENT)
    assert receipt.method == "deep_link"
    graph.send_chat_message.assert_not_called()


def test_prefer_deep_link_skips_graph(graph, opener):
    target = ShareTarget(chat_id="chat-1", emails=["a@x.com"])
    receipt = make_dispatcher(graph, opener, prefer_deep_link=True).send("token", target, CONTENT)
    assert receipt.method == "deep_link"
    graph.send_chat_message.assert_not_called()


def test_opener_failure_raises_with_link(graph):
    opener = MagicMock(return_value=False)
    target = ShareTarget(emails=["a@x.com"])

    with pytest.raises(DeliveryError) as exc_info:
        make_dispatcher(graph, opener).send(None, target, CONTENT)

    assert "https://teams.microsoft.com/l/chat/0/0?" in str(exc_info.value)


def test_unreadable_graph_reply_falls_back(opener):
    """Test a non-JSON success body from the chat POST still reaches the deep link."""
    reply = requests.Response()
    reply.status_code = 201
    reply._content = b"<html>not json</html>"
    session = MagicMock(spec=requests.Session)
    session.request.return_value = reply
    dispatcher = MessageDispatcher(
        opener=opener,
        client_factory=lambda token: GraphClient(token, session=session),
    )
    target = ShareTarget(chat_id="chat-1", emails=["a@x.com"])

    receipt = dispatcher.send("token", target, CONTENT)

    assert receipt.method == "deep_link"
    opener.assert_called_once_with(receipt.url)
