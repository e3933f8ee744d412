"""Shared test fixtures for the board store, client and server tests."""

from types import SimpleNamespace

import pytest

from taskboard.client import BoardClient
from taskboard.server import create_app

API_BASE = "http://testserver/api"


class FlaskResponse:
    """requests.Response look-alike over a Flask test response."""

    def __init__(self, resp):
        self._resp = resp
        self.status_code = resp.status_code

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self):
        data = self._resp.get_json(silent=True)
        if data is None:
            raise ValueError("response body is not JSON")
        return data


class FlaskSession:
    """Routes BoardClient requests into a Flask test client and records them."""

    def __init__(self, app):
        self.http = app.test_client()
        self.calls = []

    def request(self, method, url, json=None, headers=None, timeout=None):
        path = url.replace("http://testserver", "", 1)
        self.calls.append((method, path))
        resp = self.http.open(path, method=method, json=json, headers=headers or {})
        return FlaskResponse(resp)

    def mutations(self):
        return [c for c in self.calls if c[0] != "GET"]


@pytest.fixture
def app(tmp_path):
    return create_app(str(tmp_path / "board.db"))


@pytest.fixture
def repo(app):
    return app.config["BOARD_REPOSITORY"]


@pytest.fixture
def http(app):
    return app.test_client()


@pytest.fixture
def seeded(repo):
    """A project with default sections and two users."""
    alice = repo.create_user("Alice", "alice@example.com")
    bob = repo.create_user("Bob", "bob@example.com")
    project = repo.create_project("Launch")
    board = repo.get_board(project["id"])
    sections = {s.title: s.id for s in board.sections}
    return SimpleNamespace(project_id=project["id"], alice=alice, bob=bob, sections=sections)


@pytest.fixture
def session(app):
    return FlaskSession(app)


@pytest.fixture
def client(session, seeded):
    """BoardClient acting as Alice against the test server."""
    return BoardClient(API_BASE, user_id=seeded.alice.id, session=session)
