"""
Tests for the Flask board API: status codes, error bodies and auth.
"""

import pytest

from taskboard.server import create_app


def board_of(http, project_id):
    return http.get(f"/api/projects/{project_id}/board").get_json()


def new_card(http, project_id, section_id, **fields):
    body = {"title": "Card", "priority": "normal"}
    body.update(fields)
    return http.post(f"/api/projects/{project_id}/sections/{section_id}/cards", json=body)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Projects & board
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestProjects:

    def test_create_project_seeds_default_sections(self, http):
        resp = http.post("/api/projects", json={"title": "Roadmap"})
        assert resp.status_code == 201
        project = resp.get_json()
        board = board_of(http, project["id"])
        assert board["title"] == "Roadmap"
        assert [s["title"] for s in board["sections"]] == ["Backlog", "To Do", "Review", "Done"]
        assert [s["canDelete"] for s in board["sections"]] == [False, True, True, True]

    def test_create_project_without_title(self, http):
        resp = http.post("/api/projects", json={})
        assert resp.get_json()["title"] == "Untitled project"

    def test_list_projects(self, http, seeded):
        projects = http.get("/api/projects").get_json()
        assert [p["title"] for p in projects] == ["Launch"]

    def test_unknown_board_is_404(self, http):
        resp = http.get("/api/projects/nope/board")
        assert resp.status_code == 404
        assert resp.get_json() == {"error": "Project not found"}

    def test_unknown_route_returns_json_error(self, http):
        resp = http.get("/api/nothing-here")
        assert resp.status_code == 404
        assert "error" in resp.get_json()

    def test_list_users(self, http, seeded):
        users = http.get("/api/users").get_json()
        assert {u["name"] for u in users} == {"Alice", "Bob"}
        assert set(users[0]) == {"id", "name", "email"}


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Sections
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestSections:

    def test_create_section_requires_title(self, http, seeded):
        resp = http.post(f"/api/projects/{seeded.project_id}/sections", json={"title": "  "})
        assert resp.status_code == 400
        assert resp.get_json() == {"error": "title is required"}

    def test_new_section_is_last(self, http, seeded):
        http.post(f"/api/projects/{seeded.project_id}/sections", json={"title": "QA"})
        titles = [s["title"] for s in board_of(http, seeded.project_id)["sections"]]
        assert titles[-1] == "QA"

    def test_backlog_delete_is_rejected(self, http, seeded):
        backlog = seeded.sections["Backlog"]
        resp = http.delete(f"/api/projects/{seeded.project_id}/sections/{backlog}")
        assert resp.status_code == 400

    def test_delete_unknown_section_is_404(self, http, seeded):
        resp = http.delete(f"/api/projects/{seeded.project_id}/sections/nope")
        assert resp.status_code == 404

    def test_section_from_other_project_is_404(self, http, repo, seeded):
        other = repo.create_project("Other")
        todo = seeded.sections["To Do"]
        resp = http.post(f"/api/projects/{other['id']}/sections/{todo}/clear")
        assert resp.status_code == 404

    def test_delete_all_returns_backlog(self, http, seeded):
        new_card(http, seeded.project_id, seeded.sections["Done"], title="kept")
        resp = http.post(f"/api/projects/{seeded.project_id}/sections/delete-all")
        sections = resp.get_json()
        assert [s["title"] for s in sections] == ["Backlog"]
        assert [c["title"] for c in sections[0]["cards"]] == ["kept"]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Cards
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestCards:

    def test_create_card(self, http, seeded):
        todo = seeded.sections["To Do"]
        resp = new_card(http, seeded.project_id, todo, title="Ship", priority="high", executor="Bob")
        assert resp.status_code == 201
        card = resp.get_json()
        assert card["sectionId"] == todo
        assert card["priority"] == "high"
        assert card["comments"] == [] and card["assignees"] == []

    @pytest.mark.parametrize("body", [
        {"priority": "normal"},
        {"title": "x"},
        {"title": "x", "priority": "urgent"},
        {"title": "x", "priority": "low", "executor": 5},
    ])
    def test_create_card_validation(self, http, seeded, body):
        resp = http.post(
            f"/api/projects/{seeded.project_id}/sections/{seeded.sections['To Do']}/cards", json=body
        )
        assert resp.status_code == 400
        assert "error" in resp.get_json()

    def test_create_card_in_unknown_section(self, http, seeded):
        assert new_card(http, seeded.project_id, "nope").status_code == 404

    def test_update_card_can_change_section(self, http, seeded):
        card = new_card(http, seeded.project_id, seeded.sections["To Do"]).get_json()
        done = seeded.sections["Done"]
        resp = http.put(
            f"/api/projects/{seeded.project_id}/cards/{card['id']}",
            json={"title": "Renamed", "priority": "low", "sectionId": done},
        )
        updated = resp.get_json()
        assert updated["title"] == "Renamed"
        assert updated["sectionId"] == done

    def test_update_into_unknown_section_is_400(self, http, seeded):
        card = new_card(http, seeded.project_id, seeded.sections["To Do"]).get_json()
        resp = http.put(
            f"/api/projects/{seeded.project_id}/cards/{card['id']}",
            json={"title": "x", "priority": "low", "sectionId": "nope"},
        )
        assert resp.status_code == 400

    def test_update_unknown_card_is_404(self, http, seeded):
        resp = http.put(f"/api/projects/{seeded.project_id}/cards/nope", json={"title": "x", "priority": "low"})
        assert resp.status_code == 404

    def test_move_card(self, http, seeded):
        card = new_card(http, seeded.project_id, seeded.sections["To Do"]).get_json()
        review = seeded.sections["Review"]
        resp = http.post(
            f"/api/projects/{seeded.project_id}/cards/{card['id']}/move", json={"targetSectionId": review}
        )
        assert resp.get_json()["sectionId"] == review

    def test_move_to_missing_section_is_400(self, http, seeded):
        card = new_card(http, seeded.project_id, seeded.sections["To Do"]).get_json()
        resp = http.post(
            f"/api/projects/{seeded.project_id}/cards/{card['id']}/move", json={"targetSectionId": "nope"}
        )
        assert resp.status_code == 400

    def test_move_missing_card_is_404(self, http, seeded):
        resp = http.post(
            f"/api/projects/{seeded.project_id}/cards/nope/move",
            json={"targetSectionId": seeded.sections["Done"]},
        )
        assert resp.status_code == 404

    def test_delete_card_twice(self, http, seeded):
        card = new_card(http, seeded.project_id, seeded.sections["To Do"]).get_json()
        url = f"/api/projects/{seeded.project_id}/cards/{card['id']}"
        assert http.delete(url).status_code == 200
        assert http.delete(url).status_code == 404

    def test_bulk_delete_scope_validation(self, http, seeded):
        url = f"/api/projects/{seeded.project_id}/cards/bulk-delete"
        assert http.post(url, json={"scope": "board", "priority": "low"}).status_code == 400
        assert http.post(url, json={"scope": "section", "priority": "low"}).status_code == 400
        resp = http.post(url, json={"scope": "all", "priority": "low"})
        assert resp.get_json() == {"deleted": 0}


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Auth
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestApiKey:

    @pytest.fixture
    def locked(self, tmp_path):
        return create_app(str(tmp_path / "locked.db"), api_secret="s3cret").test_client()

    def test_reads_do_not_need_key(self, locked):
        assert locked.get("/api/projects").status_code == 200

    def test_missing_key_is_401(self, locked):
        assert locked.post("/api/projects", json={"title": "x"}).status_code == 401

    def test_wrong_key_is_403(self, locked):
        resp = locked.post("/api/projects", json={"title": "x"}, headers={"X-API-Key": "nope"})
        assert resp.status_code == 403

    def test_right_key_is_accepted(self, locked):
        resp = locked.post("/api/projects", json={"title": "x"}, headers={"X-API-Key": "s3cret"})
        assert resp.status_code == 201


class TestComments:

    def comments_url(self, seeded, card_id):
        return f"/api/projects/{seeded.project_id}/cards/{card_id}/comments"

    def test_comment_requires_user(self, http, seeded):
        card = new_card(http, seeded.project_id, seeded.sections["To Do"]).get_json()
        assert http.post(self.comments_url(seeded, card["id"]), json={"text": "hi"}).status_code == 401
        resp = http.post(
            self.comments_url(seeded, card["id"]), json={"text": "hi"}, headers={"X-User-Id": "ghost"}
        )
        assert resp.status_code == 401

    def test_comment_author_is_acting_user(self, http, seeded):
        card = new_card(http, seeded.project_id, seeded.sections["To Do"]).get_json()
        resp = http.post(
            self.comments_url(seeded, card["id"]),
            json={"text": "hi"},
            headers={"X-User-Id": seeded.bob.id},
        )
        assert resp.status_code == 201
        assert resp.get_json()["author"]["id"] == seeded.bob.id

    def test_only_author_may_edit(self, http, seeded):
        card = new_card(http, seeded.project_id, seeded.sections["To Do"]).get_json()
        comment = http.post(
            self.comments_url(seeded, card["id"]),
            json={"text": "mine"},
            headers={"X-User-Id": seeded.alice.id},
        ).get_json()
        url = f"/api/projects/{seeded.project_id}/comments/{comment['id']}"
        as_bob = {"X-User-Id": seeded.bob.id}
        assert http.put(url, json={"text": "x"}, headers=as_bob).status_code == 403
        assert http.delete(url, headers=as_bob).status_code == 403
        as_alice = {"X-User-Id": seeded.alice.id}
        assert http.put(url, json={"text": "edited"}, headers=as_alice).get_json()["text"] == "edited"
        assert http.delete(url, headers=as_alice).status_code == 200
        assert http.delete(url, headers=as_alice).status_code == 404

    def test_comments_listed_oldest_first(self, http, seeded):
        card = new_card(http, seeded.project_id, seeded.sections["To Do"]).get_json()
        headers = {"X-User-Id": seeded.alice.id}
        for text in ("one", "two", "three"):
            http.post(self.comments_url(seeded, card["id"]), json={"text": text}, headers=headers)
        listed = http.get(self.comments_url(seeded, card["id"])).get_json()
        assert [c["text"] for c in listed] == ["one", "two", "three"]
