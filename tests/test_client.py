"""
Tests for BoardClient transport and error mapping.
"""

from unittest.mock import MagicMock

import pytest
import requests

from taskboard.client import (
    AuthorizationError,
    BoardAPIError,
    BoardClient,
    NotFoundError,
    TransportError,
    ValidationError,
)
from taskboard.config import Config
from taskboard.schema import Priority


def response(status, body=None):
    resp = MagicMock()
    resp.status_code = status
    resp.ok = status < 400
    if body is None:
        resp.json.side_effect = ValueError("no JSON")
    else:
        resp.json.return_value = body
    return resp


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def client(session):
    return BoardClient("http://board/api/", api_key="k", user_id="u1", timeout=3.0, session=session)


def test_request_carries_headers_and_timeout(client, session):
    session.request.return_value = response(200, [])
    client.list_projects()
    method, url = session.request.call_args.args
    kwargs = session.request.call_args.kwargs
    assert (method, url) == ("GET", "http://board/api/projects")
    assert kwargs["headers"]["X-API-Key"] == "k"
    assert kwargs["headers"]["X-User-Id"] == "u1"
    assert kwargs["timeout"] == 3.0


def test_headers_omitted_when_not_configured(session):
    session.request.return_value = response(200, [])
    BoardClient("http://board/api", session=session).list_users()
    headers = session.request.call_args.kwargs["headers"]
    assert "X-API-Key" not in headers
    assert "X-User-Id" not in headers


@pytest.mark.parametrize("status,error_cls", [
    (400, ValidationError),
    (401, AuthorizationError),
    (403, AuthorizationError),
    (404, NotFoundError),
    (500, BoardAPIError),
])
def test_status_mapping(client, session, status, error_cls):
    session.request.return_value = response(status, {"error": "nope"})
    with pytest.raises(error_cls) as exc:
        client.get_board("p1")
    assert str(exc.value) == "nope"
    assert exc.value.status == status


def test_error_without_body_gets_generic_message(client, session):
    session.request.return_value = response(502)
    with pytest.raises(BoardAPIError, match="HTTP 502"):
        client.get_board("p1")


def test_connection_error_becomes_transport_error(client, session):
    session.request.side_effect = requests.ConnectionError("refused")
    with pytest.raises(TransportError):
        client.get_board("p1")


def test_timeout_becomes_transport_error(client, session):
    session.request.side_effect = requests.Timeout("slow")
    with pytest.raises(TransportError):
        client.list_users()


def test_non_json_success_is_transport_error(client, session):
    session.request.return_value = response(200)
    with pytest.raises(TransportError):
        client.get_board("p1")


def test_move_sends_target_section(client, session):
    session.request.return_value = response(200, {
        "id": "c1", "title": "t", "priority": "low", "sectionId": "s2",
        "createdAt": "2025-08-07T00:00:00Z",
    })
    card = client.move_card("p1", "c1", "s2")
    assert session.request.call_args.kwargs["json"] == {"targetSectionId": "s2"}
    assert card.section_id == "s2"


def test_bulk_delete_payload(client, session):
    session.request.return_value = response(200, {"deleted": 3})
    assert client.bulk_delete_cards("p1", Priority.LOW, "s1") == 3
    assert session.request.call_args.kwargs["json"] == {
        "scope": "section", "priority": "low", "sectionId": "s1",
    }
    client.bulk_delete_cards("p1", Priority.HIGH)
    assert session.request.call_args.kwargs["json"] == {"scope": "all", "priority": "high"}


def test_from_config():
    cfg = Config(api_base="http://x/api", api_key="key", user_id="me", timeout=2.5)
    client = BoardClient.from_config(cfg)
    assert (client.api_base, client.api_key, client.user_id, client.timeout) == (
        "http://x/api", "key", "me", 2.5,
    )
    assert isinstance(client.session, requests.Session)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Malformed bodies
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

GOOD_CARD = {
    "id": "c1", "title": "t", "priority": "low", "sectionId": "s1",
    "createdAt": "2025-08-07T00:00:00Z",
}


@pytest.mark.parametrize("body", [
    [],
    {"id": "b", "sections": [{"id": "s1", "title": "A", "cards": [dict(GOOD_CARD, priority="urgent")]}]},
    {"id": "b", "sections": [{"id": "s1", "title": "A", "cards": [dict(GOOD_CARD, createdAt="yesterday")]}]},
    {"id": "b", "sections": ["not a section"]},
])
def test_malformed_board_is_transport_error(client, session, body):
    session.request.return_value = response(200, body)
    with pytest.raises(TransportError, match="malformed"):
        client.get_board("p1")


def test_malformed_card_from_mutation_is_transport_error(client, session):
    session.request.return_value = response(200, dict(GOOD_CARD, priority="urgent"))
    with pytest.raises(TransportError):
        client.move_card("p1", "c1", "s1")


def test_malformed_assignee_list_is_transport_error(client, session):
    session.request.return_value = response(201, ["u1"])
    with pytest.raises(TransportError):
        client.assign_user("p1", "c1", "u1")


def test_malformed_bulk_delete_count_is_transport_error(client, session):
    session.request.return_value = response(200, {"deleted": "many"})
    with pytest.raises(TransportError):
        client.bulk_delete_cards("p1", Priority.LOW)
