"""
In-memory board store.

BoardStore mirrors one board of the remote server. Every mutation is a
remote call followed by a merge of the server's canonical answer; the store
never computes next-state on its own, so a failed call leaves local state
exactly as it was.

BoardContext owns the single active store: a new store is created when a
board is selected, replaced when another board is selected and torn down
when the caller navigates away.
"""
import copy
import logging
from typing import Callable, List, Optional, Tuple

from .client import BoardAPIError, BoardClient, NotFoundError, ValidationError
from .events import BOARD_CHANGED, BOARD_LOADED, CARD_MOVED, BoardEvents
from .schema import Board, Card, CardDraft, Comment, Priority, Section, UserLite

logger = logging.getLogger(__name__)


def _require_text(value: str, field_name: str) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"{field_name} is required")
    return text


class BoardStore:
    """Single in-memory representation of the active board."""

    def __init__(self, client: BoardClient, project_id: str, events: Optional[BoardEvents] = None):
        self.client = client
        self.project_id = project_id
        self.events = events or BoardEvents()
        self.loaded = False
        self._board = Board.skeleton()

    # ──────────────────────────────────────────
    # Read access
    # ──────────────────────────────────────────

    @property
    def board(self) -> Board:
        """Snapshot of the board. Changing it does not change the store."""
        return copy.deepcopy(self._board)

    def find_card(self, card_id: str) -> Optional[Card]:
        card = self._board.find_card(card_id)
        return copy.deepcopy(card) if card else None

    def subscribe(self, event_type: str, callback: Callable) -> Callable[[], None]:
        return self.events.subscribe(event_type, callback)

    # ──────────────────────────────────────────
    # Hydration
    # ──────────────────────────────────────────

    def load(self, project_id: Optional[str] = None) -> Board:
        """
        Fetch the full board and replace local state.

        A failed load is logged and leaves the current board in place.
        ``loaded`` is set once the attempt finishes either way.
        """
        if project_id is not None:
            self.project_id = project_id
        try:
            board = self.client.get_board(self.project_id)
        except BoardAPIError as e:
            logger.warning(f"Failed to load board for project {self.project_id}: {e}")
        else:
            self._replace(board)
            logger.info(
                f"Loaded board {board.id} ({len(board.sections)} sections, "
                f"{len(board.all_cards())} cards)"
            )
        finally:
            self.loaded = True
        return self.board

    def _refetch(self, reason: str) -> None:
        self._replace(self.client.get_board(self.project_id))
        self._changed(reason)

    def _replace(self, board: Board) -> None:
        self._board = board
        self.events.emit(BOARD_LOADED, project_id=self.project_id)

    def _changed(self, reason: str) -> None:
        logger.debug(f"Board {self.project_id} changed: {reason}")
        self.events.emit(BOARD_CHANGED, reason=reason)

    # ──────────────────────────────────────────
    # Sections
    # ──────────────────────────────────────────

    def add_section(self, title: str) -> Section:
        title = _require_text(title, "Section title")
        section = self.client.create_section(self.project_id, title)
        self._board.sections.append(section)
        self._changed("section_added")
        return copy.deepcopy(section)

    def delete_section(self, section_id: str) -> None:
        section = self._board.get_section(section_id)
        if section is None:
            raise NotFoundError(f"Section {section_id} not found")
        if not section.can_delete:
            raise ValidationError(f"Section '{section.title}' cannot be deleted")
        self.client.delete_section(self.project_id, section_id)
        # cards were relocated server-side
        self._refetch("section_deleted")

    def clear_section(self, section_id: str) -> None:
        self.client.clear_section(self.project_id, section_id)
        self._refetch("section_cleared")

    def delete_all_sections(self) -> None:
        self.client.delete_all_sections(self.project_id)
        self._refetch("sections_deleted")

    # ──────────────────────────────────────────
    # Cards
    # ──────────────────────────────────────────

    def add_card(self, section_id: str, draft: CardDraft) -> Card:
        _require_text(draft.title, "Card title")
        created = self.client.create_card(self.project_id, section_id, draft)
        created.comments = []
        self._place_card(created)
        self._changed("card_added")
        return copy.deepcopy(created)

    def update_card(self, card: Card) -> Card:
        _require_text(card.title, "Card title")
        updated = self.client.update_card(self.project_id, card)
        holder = self._board.section_of(card.id)
        if holder is not None and holder.id == updated.section_id:
            for i, existing in enumerate(holder.cards):
                if existing.id == updated.id:
                    holder.cards[i] = self._merge_card(existing, updated)
                    break
        else:
            existing = holder.find_card(card.id) if holder else None
            self._place_card(self._merge_card(existing, updated) if existing else updated)
        self._changed("card_updated")
        return self.find_card(updated.id) or copy.deepcopy(updated)

    def delete_card(self, card_id: str) -> None:
        self.client.delete_card(self.project_id, card_id)
        self._remove_card(card_id)
        self._changed("card_deleted")

    def move_card(self, card_id: str, target_section_id: str) -> Optional[Card]:
        """
        Move a card to another section.

        Returns None without calling the server when the destination is not
        a section of this board. A card already in the destination is
        returned unchanged, also without a call.
        """
        if self._board.get_section(target_section_id) is None:
            logger.debug(f"Ignoring move of {card_id}: no section {target_section_id}")
            return None
        holder = self._board.section_of(card_id)
        if holder is not None and holder.id == target_section_id:
            logger.debug(f"Ignoring move of {card_id}: already in {target_section_id}")
            return self.find_card(card_id)
        moved = self.client.move_card(self.project_id, card_id, target_section_id)
        self._place_card(moved)
        self._changed("card_moved")
        return self.find_card(moved.id) or copy.deepcopy(moved)

    def bulk_delete_cards(self, priority: Priority, section_id: Optional[str] = None) -> int:
        deleted = self.client.bulk_delete_cards(self.project_id, priority, section_id)
        self._refetch("cards_bulk_deleted")
        return deleted

    # ──────────────────────────────────────────
    # Assignees
    # ──────────────────────────────────────────

    def list_users(self) -> List[UserLite]:
        return self.client.list_users()

    def assign_user(self, card_id: str, user_id: str) -> List[UserLite]:
        assignees = self.client.assign_user(self.project_id, card_id, user_id)
        return self._set_assignees(card_id, assignees)

    def unassign_user(self, card_id: str, user_id: str) -> List[UserLite]:
        assignees = self.client.unassign_user(self.project_id, card_id, user_id)
        return self._set_assignees(card_id, assignees)

    def _set_assignees(self, card_id: str, assignees: List[UserLite]) -> List[UserLite]:
        card = self._board.find_card(card_id)
        if card is not None:
            card.assignees = list(assignees)
            self._changed("assignees_changed")
        return copy.deepcopy(assignees)

    # ──────────────────────────────────────────
    # Comments
    # ──────────────────────────────────────────

    def list_comments(self, card_id: str) -> List[Comment]:
        comments = self.client.list_comments(self.project_id, card_id)
        card = self._board.find_card(card_id)
        if card is not None:
            card.comments = list(comments)
            self._changed("comments_loaded")
        return copy.deepcopy(comments)

    def add_comment(self, card_id: str, text: str) -> Comment:
        text = _require_text(text, "Comment text")
        comment = self.client.create_comment(self.project_id, card_id, text)
        card = self._board.find_card(card_id)
        if card is not None:
            card.comments.append(comment)
            self._changed("comment_added")
        return copy.deepcopy(comment)

    def edit_comment(self, card_id: str, comment_id: str, text: str) -> Comment:
        text = _require_text(text, "Comment text")
        updated = self.client.update_comment(self.project_id, comment_id, text)
        card = self._board.find_card(card_id)
        if card is not None:
            for i, existing in enumerate(card.comments):
                if existing.id == comment_id:
                    if updated.author is None:
                        updated.author = existing.author
                    card.comments[i] = updated
                    self._changed("comment_edited")
                    break
        return copy.deepcopy(updated)

    def delete_comment(self, card_id: str, comment_id: str) -> None:
        self.client.delete_comment(self.project_id, comment_id)
        card = self._board.find_card(card_id)
        if card is not None:
            card.comments = [c for c in card.comments if c.id != comment_id]
            self._changed("comment_deleted")

    # ──────────────────────────────────────────
    # Membership reconciliation
    # ──────────────────────────────────────────

    @staticmethod
    def _merge_card(existing: Card, updated: Card) -> Card:
        """Server fields win; comments are kept when the response carries none."""
        merged = copy.deepcopy(updated)
        if not updated.comments:
            merged.comments = copy.deepcopy(existing.comments)
        return merged

    def _remove_card(self, card_id: str) -> Optional[str]:
        """Drop a card from every section. Returns the id of the section that held it."""
        held_by = None
        for section in self._board.sections:
            kept = [c for c in section.cards if c.id != card_id]
            if len(kept) != len(section.cards):
                held_by = section.id
                section.cards = kept
        return held_by

    def _place_card(self, card: Card) -> Tuple[Optional[str], str]:
        """
        Put a server-returned card into the section the server says holds it.

        The card is appended. If that section is unknown locally the whole
        board is refetched instead.
        """
        target = self._board.get_section(card.section_id)
        if target is None:
            logger.info(f"Section {card.section_id} not in local board; refetching")
            self._replace(self.client.get_board(self.project_id))
            return None, card.section_id
        previous = self._remove_card(card.id)
        target.cards.append(card)
        if previous is not None and previous != target.id:
            self.events.emit(CARD_MOVED, card_id=card.id, from_section=previous, to_section=target.id)
        return previous, target.id


class BoardContext:
    """
    Owns the store of the active board.

    select() creates a fresh store for a project and loads it; selecting a
    different project replaces it; close() tears it down.
    """

    def __init__(self, client: BoardClient):
        self.client = client
        self.store: Optional[BoardStore] = None

    @property
    def active_project(self) -> Optional[str]:
        return self.store.project_id if self.store else None

    def select(self, project_id: str) -> BoardStore:
        if self.store is not None and self.store.project_id == project_id:
            return self.store
        self.close()
        self.store = BoardStore(self.client, project_id)
        self.store.load()
        return self.store

    def close(self) -> None:
        if self.store is not None:
            self.store.events.clear()
            self.store = None

    def __enter__(self) -> "BoardContext":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
