"""
Board Server
------------
JSON API for multi-board task tracking, backed by SQLite.

Usage:
    taskboard serve                      # uses ~/.config/taskboard/config.yaml
    TASKBOARD_DB_PATH=/tmp/board.db TASKBOARD_PORT=4001 taskboard serve

API (all under /api):
    GET    /users
    GET    /projects                                   POST /projects {title}
    GET    /projects/<pid>/board
    POST   /projects/<pid>/sections {title}
    DELETE /projects/<pid>/sections/<id>               cards move to Backlog
    POST   /projects/<pid>/sections/<id>/clear
    POST   /projects/<pid>/sections/delete-all
    POST   /projects/<pid>/sections/<sid>/cards {title, description, priority, executor}
    PUT    /projects/<pid>/cards/<cid> {title, description, priority, executor, sectionId}
    DELETE /projects/<pid>/cards/<cid>
    POST   /projects/<pid>/cards/<cid>/move {targetSectionId}
    POST   /projects/<pid>/cards/bulk-delete {scope, sectionId?, priority}
    POST   /projects/<pid>/cards/<cid>/assignees {userId}
    DELETE /projects/<pid>/cards/<cid>/assignees/<uid>
    GET    /projects/<pid>/cards/<cid>/comments       POST ... {text}
    PUT    /projects/<pid>/comments/<id> {text}        DELETE /projects/<pid>/comments/<id>

Errors are {"error": "<message>"}. Mutating routes require X-API-Key when an
API secret is configured; comment writes need X-User-Id naming a known user.

Dependencies:
    pip install flask
"""

import hmac
from functools import wraps

from flask import Blueprint, Flask, current_app, g, jsonify, request
from werkzeug.exceptions import HTTPException

from .repository import BoardRepository
from .schema import Priority

api = Blueprint("api", __name__, url_prefix="/api")


def create_app(db_path: str = None, api_secret: str = "") -> Flask:
    app = Flask(__name__)
    app.config["BOARD_REPOSITORY"] = BoardRepository(db_path)
    app.config["API_SECRET"] = api_secret
    app.register_blueprint(api)

    @app.errorhandler(HTTPException)
    def http_error(e):
        return jsonify({"error": e.description}), e.code

    @app.errorhandler(Exception)
    def unexpected_error(e):
        app.logger.exception(f"Unhandled error on {request.method} {request.path}")
        return jsonify({"error": "Internal server error"}), 500

    return app


def repo() -> BoardRepository:
    return current_app.config["BOARD_REPOSITORY"]


def error(message: str, code: int):
    return jsonify({"error": message}), code


def _body() -> dict:
    data = request.get_json(force=True, silent=True)
    return data if isinstance(data, dict) else {}


# ── Auth ─────────────────────────────────────────────────────────────────────


def require_api_key(f):
    """Decorator: when API_SECRET is set, reject requests without a matching X-API-Key."""
    @wraps(f)
    def decorated(*args, **kwargs):
        secret = current_app.config.get("API_SECRET", "")
        if secret:
            provided = request.headers.get("X-API-Key", "").strip()
            if not hmac.compare_digest(provided, secret):
                code = 401 if not provided else 403
                return error("Unauthorized", code)
        return f(*args, **kwargs)
    return decorated


def require_user(f):
    """Decorator: resolve the acting user from X-User-Id into g.user."""
    @wraps(f)
    def decorated(*args, **kwargs):
        user_id = request.headers.get("X-User-Id", "").strip()
        if not user_id:
            return error("Missing user", 401)
        user = repo().get_user(user_id)
        if user is None:
            return error("Unknown user", 401)
        g.user = user
        return f(*args, **kwargs)
    return decorated


# ── Validation ───────────────────────────────────────────────────────────────


class InvalidInput(Exception):
    pass


@api.errorhandler(InvalidInput)
def invalid_input(e):
    return error(str(e), 400)


def required_text(data: dict, key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise InvalidInput(f"{key} is required")
    return value.strip()


def optional_text(data: dict, key: str) -> str:
    value = data.get(key, "")
    if value is None:
        return ""
    if not isinstance(value, str):
        raise InvalidInput(f"{key} must be a string")
    return value


def required_priority(data: dict) -> Priority:
    try:
        return Priority.from_str(required_text(data, "priority"))
    except ValueError as e:
        raise InvalidInput(str(e)) from None


# ── Users & projects ─────────────────────────────────────────────────────────


@api.route("/users")
def list_users():
    return jsonify([u.to_dict() for u in repo().list_users()])


@api.route("/projects", methods=["GET"])
def list_projects():
    return jsonify(repo().list_projects())


@api.route("/projects", methods=["POST"])
@require_api_key
def create_project():
    title = _body().get("title") or ""
    if not isinstance(title, str):
        raise InvalidInput("title must be a string")
    project = repo().create_project(title.strip() or "Untitled project")
    return jsonify(project), 201


# ── Board & sections ─────────────────────────────────────────────────────────


@api.route("/projects/<project_id>/board")
def get_board(project_id):
    board = repo().get_board(project_id)
    if board is None:
        return error("Project not found", 404)
    return jsonify(board.to_dict())


@api.route("/projects/<project_id>/sections", methods=["POST"])
@require_api_key
def create_section(project_id):
    title = required_text(_body(), "title")
    if repo().get_project(project_id) is None:
        return error("Project not found", 404)
    section = repo().create_section(project_id, title)
    return jsonify(section.to_dict()), 201


@api.route("/projects/<project_id>/sections/<section_id>", methods=["DELETE"])
@require_api_key
def delete_section(project_id, section_id):
    section = repo().get_section(project_id, section_id)
    if section is None:
        return error("Section not found", 404)
    if not section.can_delete:
        return error(f"{section.title} cannot be deleted", 400)
    backlog = repo().get_backlog(project_id)
    if backlog is None:
        return error("Backlog section missing", 400)
    repo().delete_section(section_id, backlog.id)
    return jsonify({"ok": True})


@api.route("/projects/<project_id>/sections/<section_id>/clear", methods=["POST"])
@require_api_key
def clear_section(project_id, section_id):
    section = repo().get_section(project_id, section_id)
    if section is None:
        return error("Section not found", 404)
    repo().clear_section(section_id)
    section.cards = []
    return jsonify(section.to_dict())


@api.route("/projects/<project_id>/sections/delete-all", methods=["POST"])
@require_api_key
def delete_all_sections(project_id):
    if repo().get_project(project_id) is None:
        return error("Project not found", 404)
    backlog = repo().get_backlog(project_id)
    if backlog is None:
        return error("Backlog section missing", 400)
    repo().delete_deletable_sections(project_id, backlog.id)
    return jsonify([repo().get_section(project_id, backlog.id).to_dict()])


# ── Cards ────────────────────────────────────────────────────────────────────


@api.route("/projects/<project_id>/sections/<section_id>/cards", methods=["POST"])
@require_api_key
def create_card(project_id, section_id):
    data = _body()
    title = required_text(data, "title")
    priority = required_priority(data)
    description = optional_text(data, "description")
    executor = optional_text(data, "executor")
    if repo().get_section(project_id, section_id) is None:
        return error("Section not found", 404)
    card = repo().create_card(section_id, title, priority, description, executor)
    return jsonify(card.to_dict()), 201


@api.route("/projects/<project_id>/cards/<card_id>", methods=["PUT"])
@require_api_key
def update_card(project_id, card_id):
    data = _body()
    title = required_text(data, "title")
    priority = required_priority(data)
    description = optional_text(data, "description")
    executor = optional_text(data, "executor")
    section_id = optional_text(data, "sectionId") or None
    if section_id and repo().get_section(project_id, section_id) is None:
        return error("Target section not found", 400)
    card = repo().update_card(project_id, card_id, title, priority, description, executor, section_id)
    if card is None:
        return error("Card not found", 404)
    return jsonify(card.to_dict())


@api.route("/projects/<project_id>/cards/<card_id>", methods=["DELETE"])
@require_api_key
def delete_card(project_id, card_id):
    if not repo().delete_card(project_id, card_id):
        return error("Card not found", 404)
    return jsonify({"ok": True})


@api.route("/projects/<project_id>/cards/<card_id>/move", methods=["POST"])
@require_api_key
def move_card(project_id, card_id):
    target_id = required_text(_body(), "targetSectionId")
    if repo().get_section(project_id, target_id) is None:
        return error("Target section not found", 400)
    card = repo().move_card(project_id, card_id, target_id)
    if card is None:
        return error("Card not found", 404)
    return jsonify(card.to_dict())


@api.route("/projects/<project_id>/cards/bulk-delete", methods=["POST"])
@require_api_key
def bulk_delete_cards(project_id):
    data = _body()
    scope = data.get("scope")
    if scope not in ("section", "all"):
        raise InvalidInput("scope must be 'section' or 'all'")
    priority = required_priority(data)
    section_id = None
    if scope == "section":
        section_id = optional_text(data, "sectionId")
        if not section_id:
            raise InvalidInput("sectionId required for section scope")
        if repo().get_section(project_id, section_id) is None:
            return error("Section not found", 404)
    elif repo().get_project(project_id) is None:
        return error("Project not found", 404)
    deleted = repo().bulk_delete(project_id, priority, section_id)
    return jsonify({"deleted": deleted})


# ── Assignees ────────────────────────────────────────────────────────────────


@api.route("/projects/<project_id>/cards/<card_id>/assignees", methods=["POST"])
@require_api_key
def assign_user(project_id, card_id):
    user_id = required_text(_body(), "userId")
    if repo().get_card(project_id, card_id) is None:
        return error("Card not found", 404)
    if repo().get_user(user_id) is None:
        return error("User not found", 404)
    assignees = repo().assign(card_id, user_id)
    return jsonify({"assignees": [u.to_dict() for u in assignees]}), 201


@api.route("/projects/<project_id>/cards/<card_id>/assignees/<user_id>", methods=["DELETE"])
@require_api_key
def unassign_user(project_id, card_id, user_id):
    if repo().get_card(project_id, card_id) is None:
        return error("Card not found", 404)
    assignees = repo().unassign(card_id, user_id)
    return jsonify({"assignees": [u.to_dict() for u in assignees]})


# ── Comments ─────────────────────────────────────────────────────────────────


@api.route("/projects/<project_id>/cards/<card_id>/comments", methods=["GET"])
def list_comments(project_id, card_id):
    if repo().get_card(project_id, card_id) is None:
        return error("Card not found", 404)
    return jsonify([c.to_dict() for c in repo().list_comments(card_id)])


@api.route("/projects/<project_id>/cards/<card_id>/comments", methods=["POST"])
@require_api_key
@require_user
def create_comment(project_id, card_id):
    text = required_text(_body(), "text")
    if repo().get_card(project_id, card_id) is None:
        return error("Card not found", 404)
    comment = repo().create_comment(card_id, g.user.id, text)
    return jsonify(comment.to_dict()), 201


def _owned_comment(project_id: str, comment_id: str):
    """None if the acting user owns the comment, else an error response."""
    owner = repo().get_comment_owner(project_id, comment_id)
    if owner is None:
        return error("Comment not found", 404)
    if owner["author_id"] != g.user.id:
        return error("Forbidden", 403)
    return None


@api.route("/projects/<project_id>/comments/<comment_id>", methods=["PUT"])
@require_api_key
@require_user
def update_comment(project_id, comment_id):
    text = required_text(_body(), "text")
    denied = _owned_comment(project_id, comment_id)
    if denied:
        return denied
    return jsonify(repo().update_comment(comment_id, text).to_dict())


@api.route("/projects/<project_id>/comments/<comment_id>", methods=["DELETE"])
@require_api_key
@require_user
def delete_comment(project_id, comment_id):
    denied = _owned_comment(project_id, comment_id)
    if denied:
        return denied
    repo().delete_comment(comment_id)
    return jsonify({"ok": True})
