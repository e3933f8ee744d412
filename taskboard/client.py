"""
Board API client
────────────────
JSON-over-HTTP client for the board server.

Every call returns schema objects parsed from the server's response and
raises a BoardAPIError subclass on failure:

    ValidationError     - malformed or missing fields (HTTP 400, or local)
    AuthorizationError  - missing/unknown acting user or not the owner (401/403)
    NotFoundError       - an id did not resolve (404)
    TransportError      - connection failure, timeout, undecodable or malformed body

Dependencies:
    pip install requests
"""

import logging
from typing import Any, Callable, List, Optional, TypeVar

import requests

from .schema import Board, Card, CardDraft, Comment, Priority, Section, UserLite

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Exceptions
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class BoardAPIError(Exception):
    """Raised when a board operation fails."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class ValidationError(BoardAPIError):
    """Raised when input is rejected, before or by the server."""
    pass


class NotFoundError(BoardAPIError):
    """Raised when a project, section, card, comment or user id does not resolve."""
    pass


class AuthorizationError(BoardAPIError):
    """Raised when the acting user may not perform the operation."""
    pass


class TransportError(BoardAPIError):
    """Raised when the server could not be reached or answered garbage."""
    pass


_STATUS_ERRORS = {
    400: ValidationError,
    401: AuthorizationError,
    403: AuthorizationError,
    404: NotFoundError,
}


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# BoardClient
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class BoardClient:
    """
    Thin client for the board API.

    The client holds no board state; BoardStore merges its results.
    ``session`` may be any object with a ``requests.Session``-style
    ``request(method, url, **kwargs)`` method.
    """

    def __init__(
        self,
        api_base: str,
        api_key: str = "",
        user_id: str = "",
        timeout: Optional[float] = 10.0,
        session=None,
    ):
        self.api_base = api_base.rstrip("/")
        self.api_key = api_key
        self.user_id = user_id
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, cfg) -> "BoardClient":
        return cls(
            api_base=cfg.api_base,
            api_key=cfg.api_key,
            user_id=cfg.user_id,
            timeout=cfg.timeout,
        )

    # ──────────────────────────────────────────
    # Transport
    # ──────────────────────────────────────────

    def _headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["X-API-Key"] = self.api_key
        if self.user_id:
            headers["X-User-Id"] = self.user_id
        return headers

    def _request(self, method: str, path: str, payload: Optional[dict] = None) -> Any:
        url = f"{self.api_base}{path}"
        logger.debug(f"{method} {url}")
        try:
            resp = self.session.request(
                method,
                url,
                json=payload,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TransportError(f"{method} {path} failed: {e}") from e

        try:
            body = resp.json()
        except ValueError:
            body = None

        if not resp.ok:
            message = body.get("error") if isinstance(body, dict) else None
            error_cls = _STATUS_ERRORS.get(resp.status_code, BoardAPIError)
            raise error_cls(
                message or f"{method} {path} returned HTTP {resp.status_code}",
                status=resp.status_code,
            )
        if body is None:
            raise TransportError(
                f"{method} {path} returned a non-JSON body", status=resp.status_code
            )
        return body

    def _parse(self, what: str, parse: Callable[[Any], T], data: Any) -> T:
        """Turn a decoded body into schema objects; a malformed body is a TransportError."""
        try:
            return parse(data)
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            raise TransportError(f"{what} returned a malformed body: {e}") from e

    # ──────────────────────────────────────────
    # Users & projects
    # ──────────────────────────────────────────

    def list_users(self) -> List[UserLite]:
        data = self._request("GET", "/users")
        return self._parse("GET /users", lambda d: [UserLite.from_dict(u) for u in d], data)

    def list_projects(self) -> List[dict]:
        data = self._request("GET", "/projects")
        return self._parse("GET /projects", lambda d: [{"id": p["id"], "title": p["title"]} for p in d], data)

    def create_project(self, title: str) -> dict:
        data = self._request("POST", "/projects", {"title": title})
        return self._parse("POST /projects", lambda d: {"id": d["id"], "title": d["title"]}, data)

    # ──────────────────────────────────────────
    # Board & sections
    # ──────────────────────────────────────────

    def get_board(self, project_id: str) -> Board:
        path = f"/projects/{project_id}/board"
        return self._parse(f"GET {path}", Board.from_dict, self._request("GET", path))

    def create_section(self, project_id: str, title: str) -> Section:
        path = f"/projects/{project_id}/sections"
        data = self._request("POST", path, {"title": title})
        return self._parse(f"POST {path}", Section.from_dict, data)

    def delete_section(self, project_id: str, section_id: str) -> None:
        self._request("DELETE", f"/projects/{project_id}/sections/{section_id}")

    def clear_section(self, project_id: str, section_id: str) -> Section:
        path = f"/projects/{project_id}/sections/{section_id}/clear"
        return self._parse(f"POST {path}", Section.from_dict, self._request("POST", path))

    def delete_all_sections(self, project_id: str) -> List[Section]:
        path = f"/projects/{project_id}/sections/delete-all"
        data = self._request("POST", path)
        return self._parse(f"POST {path}", lambda d: [Section.from_dict(s) for s in d], data)

    # ──────────────────────────────────────────
    # Cards
    # ──────────────────────────────────────────

    def create_card(self, project_id: str, section_id: str, draft: CardDraft) -> Card:
        path = f"/projects/{project_id}/sections/{section_id}/cards"
        data = self._request("POST", path, draft.to_dict())
        return self._parse(f"POST {path}", Card.from_dict, data)

    def update_card(self, project_id: str, card: Card) -> Card:
        payload = card.draft().to_dict()
        payload["sectionId"] = card.section_id
        path = f"/projects/{project_id}/cards/{card.id}"
        data = self._request("PUT", path, payload)
        return self._parse(f"PUT {path}", Card.from_dict, data)

    def delete_card(self, project_id: str, card_id: str) -> None:
        self._request("DELETE", f"/projects/{project_id}/cards/{card_id}")

    def move_card(self, project_id: str, card_id: str, target_section_id: str) -> Card:
        path = f"/projects/{project_id}/cards/{card_id}/move"
        data = self._request("POST", path, {"targetSectionId": target_section_id})
        return self._parse(f"POST {path}", Card.from_dict, data)

    def bulk_delete_cards(
        self, project_id: str, priority: Priority, section_id: Optional[str] = None
    ) -> int:
        payload = {
            "scope": "section" if section_id else "all",
            "priority": priority.value,
        }
        if section_id:
            payload["sectionId"] = section_id
        path = f"/projects/{project_id}/cards/bulk-delete"
        data = self._request("POST", path, payload)
        return self._parse(f"POST {path}", lambda d: int(d.get("deleted", 0)), data)

    # ──────────────────────────────────────────
    # Assignees
    # ──────────────────────────────────────────

    @staticmethod
    def _assignees(data: Any) -> List[UserLite]:
        return [UserLite.from_dict(u) for u in data.get("assignees", [])]

    def assign_user(self, project_id: str, card_id: str, user_id: str) -> List[UserLite]:
        path = f"/projects/{project_id}/cards/{card_id}/assignees"
        data = self._request("POST", path, {"userId": user_id})
        return self._parse(f"POST {path}", self._assignees, data)

    def unassign_user(self, project_id: str, card_id: str, user_id: str) -> List[UserLite]:
        path = f"/projects/{project_id}/cards/{card_id}/assignees/{user_id}"
        return self._parse(f"DELETE {path}", self._assignees, self._request("DELETE", path))

    # ──────────────────────────────────────────
    # Comments
    # ──────────────────────────────────────────

    def list_comments(self, project_id: str, card_id: str) -> List[Comment]:
        path = f"/projects/{project_id}/cards/{card_id}/comments"
        data = self._request("GET", path)
        return self._parse(f"GET {path}", lambda d: [Comment.from_dict(c) for c in d], data)

    def create_comment(self, project_id: str, card_id: str, text: str) -> Comment:
        path = f"/projects/{project_id}/cards/{card_id}/comments"
        data = self._request("POST", path, {"text": text})
        return self._parse(f"POST {path}", Comment.from_dict, data)

    def update_comment(self, project_id: str, comment_id: str, text: str) -> Comment:
        path = f"/projects/{project_id}/comments/{comment_id}"
        data = self._request("PUT", path, {"text": text})
        return self._parse(f"PUT {path}", Comment.from_dict, data)

    def delete_comment(self, project_id: str, comment_id: str) -> None:
        self._request("DELETE", f"/projects/{project_id}/comments/{comment_id}")
