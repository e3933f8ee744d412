"""
Tests for the command line entry point, run against the test server.
"""

import pytest

from taskboard import cli
from taskboard.client import BoardClient, NotFoundError
from taskboard.schema import Board, Priority

from conftest import API_BASE


@pytest.fixture
def run(monkeypatch, tmp_path, session, seeded):
    """Invoke cli.main with the client wired to the test server."""
    monkeypatch.setattr(
        BoardClient,
        "from_config",
        classmethod(lambda cls, cfg: cls(API_BASE, user_id=seeded.alice.id, session=session)),
    )
    config_path = tmp_path / "config.yaml"
    config_path.write_text("log_level: WARNING\n")

    def invoke(*argv):
        return cli.main(["--config", str(config_path), *argv])

    return invoke


def test_section_ref_accepts_id_or_title():
    board = Board.skeleton()
    assert cli._section_ref(board, "todo") == "todo"
    assert cli._section_ref(board, "to do") == "todo"
    with pytest.raises(NotFoundError):
        cli._section_ref(board, "Archive")


def test_render_board_lists_sections_and_cards():
    board = Board.skeleton()
    text = cli.render_board(board)
    assert "Backlog 🔒 (0)" in text
    assert "Done (0)" in text


def test_projects(run, seeded, capsys):
    assert run("projects") == 0
    assert f"{seeded.project_id}  Launch" in capsys.readouterr().out


def test_add_card_then_show_with_filter(run, seeded, capsys):
    assert run("add-card", seeded.project_id, "To Do", "Ship it", "--priority", "high") == 0
    assert run("add-card", seeded.project_id, "To Do", "Later", "--priority", "low") == 0
    capsys.readouterr()
    assert run("show", seeded.project_id, "--priority", "high") == 0
    out = capsys.readouterr().out
    assert "Ship it" in out
    assert "Later" not in out


def test_move_uses_drop_rules(run, seeded, repo, capsys):
    card = repo.create_card(seeded.sections["To Do"], "Hop", Priority.NORMAL)
    assert run("move", seeded.project_id, card.id, "Review") == 0
    assert "Moved" in capsys.readouterr().out
    assert repo.get_card(seeded.project_id, card.id).section_id == seeded.sections["Review"]

    assert run("move", seeded.project_id, card.id, "Review") == 0
    assert "Nothing to move." in capsys.readouterr().out


def test_api_errors_exit_with_1(run, seeded, capsys):
    assert run("add-card", seeded.project_id, "Archive", "x") == 1
    assert "No section 'Archive'" in capsys.readouterr().err


def test_bad_config_exits_with_2(tmp_path, capsys):
    path = tmp_path / "config.yaml"
    path.write_text("port: [1\n")
    assert cli.main(["--config", str(path), "projects"]) == 2
    assert "Config error" in capsys.readouterr().err
