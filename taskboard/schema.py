"""
Board data model.

A board is an ordered list of sections, each section an ordered list of
cards. Every card belongs to exactly one section.

The wire format is camelCase JSON with ISO-8601 timestamps; the Python side
uses snake_case attributes and timezone-aware datetimes.
"""
from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any


BACKLOG_TITLE = "Backlog"
DEFAULT_SECTION_TITLES = ["Backlog", "To Do", "Review", "Done"]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 string (``Z`` suffix allowed) into an aware datetime."""
    if isinstance(value, datetime):
        ts = value
    elif not value:
        return utc_now()
    else:
        text = str(value)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        ts = datetime.fromisoformat(text)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat()


class Priority(Enum):
    """Card priority."""
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"

    @classmethod
    def from_str(cls, value: str) -> "Priority":
        try:
            return cls[str(value).strip().upper()]
        except KeyError:
            raise ValueError(f"Invalid priority: {value!r}") from None

    @property
    def rank(self) -> int:
        return PRIORITY_RANK[self]


PRIORITY_RANK = {Priority.LOW: 1, Priority.NORMAL: 2, Priority.HIGH: 3}


@dataclass
class UserLite:
    """Public projection of a user."""
    id: str
    name: str = ""
    email: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "email": self.email}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserLite":
        return cls(
            id=str(data.get("id", "")),
            name=data.get("name", "") or "",
            email=data.get("email", "") or "",
        )


@dataclass
class Comment:
    id: str
    text: str
    created_at: datetime = field(default_factory=utc_now)
    author: Optional[UserLite] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "text": self.text,
            "createdAt": format_timestamp(self.created_at),
        }
        if self.author is not None:
            data["author"] = self.author.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Comment":
        author = data.get("author")
        return cls(
            id=str(data.get("id", "")),
            text=data.get("text", ""),
            created_at=parse_timestamp(data.get("createdAt")),
            author=UserLite.from_dict(author) if author else None,
        )


@dataclass
class CardDraft:
    """User-editable fields of a card, as sent when creating one."""
    title: str
    description: str = ""
    priority: Priority = Priority.NORMAL
    executor: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "priority": self.priority.value,
            "executor": self.executor,
        }


@dataclass
class Card:
    """A single task on the board."""

    id: str
    title: str
    section_id: str
    description: str = ""
    priority: Priority = Priority.NORMAL
    executor: str = ""                  # legacy free-text owner label
    created_at: datetime = field(default_factory=utc_now)
    comments: List[Comment] = field(default_factory=list)
    assignees: List[UserLite] = field(default_factory=list)

    def draft(self) -> CardDraft:
        return CardDraft(
            title=self.title,
            description=self.description,
            priority=self.priority,
            executor=self.executor,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "priority": self.priority.value,
            "executor": self.executor,
            "comments": [c.to_dict() for c in self.comments],
            "createdAt": format_timestamp(self.created_at),
            "sectionId": self.section_id,
            "assignees": [u.to_dict() for u in self.assignees],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Card":
        return cls(
            id=str(data.get("id", "")),
            title=data.get("title", ""),
            section_id=str(data.get("sectionId", "")),
            description=data.get("description", "") or "",
            priority=Priority.from_str(data.get("priority", "normal")),
            executor=data.get("executor", "") or "",
            created_at=parse_timestamp(data.get("createdAt")),
            comments=[Comment.from_dict(c) for c in data.get("comments") or []],
            assignees=[UserLite.from_dict(u) for u in data.get("assignees") or []],
        )


@dataclass
class Section:
    id: str
    title: str
    can_delete: bool = True
    cards: List[Card] = field(default_factory=list)

    def find_card(self, card_id: str) -> Optional[Card]:
        for card in self.cards:
            if card.id == card_id:
                return card
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "canDelete": self.can_delete,
            "cards": [c.to_dict() for c in self.cards],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Section":
        return cls(
            id=str(data.get("id", "")),
            title=data.get("title", ""),
            can_delete=bool(data.get("canDelete", True)),
            cards=[Card.from_dict(c) for c in data.get("cards") or []],
        )


@dataclass
class Board:
    id: str
    title: str = ""
    sections: List[Section] = field(default_factory=list)

    def get_section(self, section_id: str) -> Optional[Section]:
        for section in self.sections:
            if section.id == section_id:
                return section
        return None

    def section_of(self, card_id: str) -> Optional[Section]:
        """Return the section currently holding a card (linear scan)."""
        for section in self.sections:
            if section.find_card(card_id) is not None:
                return section
        return None

    def find_card(self, card_id: str) -> Optional[Card]:
        section = self.section_of(card_id)
        return section.find_card(card_id) if section else None

    def all_cards(self) -> List[Card]:
        return [card for section in self.sections for card in section.cards]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "sections": [s.to_dict() for s in self.sections],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Board":
        return cls(
            id=str(data.get("id", "")),
            title=data.get("title", "") or "",
            sections=[Section.from_dict(s) for s in data.get("sections") or []],
        )

    @classmethod
    def skeleton(cls) -> "Board":
        """Placeholder board shown until the first load completes."""
        return cls(
            id="main-board",
            title="",
            sections=[
                Section(id="backlog", title="Backlog", can_delete=False),
                Section(id="todo", title="To Do"),
                Section(id="review", title="Review"),
                Section(id="done", title="Done"),
            ],
        )
