"""
Drag-and-drop card movement.

A drag ends with a DragEndEvent naming the dragged card and whatever was
under the pointer. Only a drop directly on a section that does not already
hold the card becomes a move; everything else is a no-op. Cards are never
reordered within a section.

States:
    idle → dragging → (dropped_on_section | dropped_on_card | dropped_nowhere) → idle
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .schema import Board, Card

logger = logging.getLogger(__name__)


class DragState(Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    DROPPED_ON_SECTION = "dropped_on_section"
    DROPPED_ON_CARD = "dropped_on_card"
    DROPPED_NOWHERE = "dropped_nowhere"


@dataclass(frozen=True)
class DragEndEvent:
    """End of a drag gesture. ``over_id`` is None when dropped outside any target."""
    card_id: str
    over_id: Optional[str] = None


@dataclass(frozen=True)
class DropResolution:
    outcome: DragState
    card_id: str
    source_section_id: Optional[str] = None
    target_section_id: Optional[str] = None

    @property
    def should_move(self) -> bool:
        return (
            self.outcome == DragState.DROPPED_ON_SECTION
            and self.target_section_id is not None
            and self.target_section_id != self.source_section_id
        )


def resolve_drop(board: Board, event: DragEndEvent) -> DropResolution:
    """Decide what a drag end means for the given board. Pure."""
    current = board.section_of(event.card_id)
    source_id = current.id if current else None

    if event.over_id is None:
        return DropResolution(DragState.DROPPED_NOWHERE, event.card_id, source_id)

    target = board.get_section(event.over_id)
    if target is not None:
        return DropResolution(DragState.DROPPED_ON_SECTION, event.card_id, source_id, target.id)
    if board.find_card(event.over_id) is not None:
        return DropResolution(DragState.DROPPED_ON_CARD, event.card_id, source_id)
    return DropResolution(DragState.DROPPED_NOWHERE, event.card_id, source_id)


class DragTracker:
    """Drives one drag gesture at a time against a BoardStore."""

    def __init__(self, store):
        self.store = store
        self.state = DragState.IDLE
        self.card_id: Optional[str] = None
        self.last_resolution: Optional[DropResolution] = None

    def start(self, card_id: str) -> None:
        self.state = DragState.DRAGGING
        self.card_id = card_id

    def cancel(self) -> None:
        self.state = DragState.IDLE
        self.card_id = None

    def drop(self, over_id: Optional[str]) -> Optional[Card]:
        """
        Finish the current drag.

        Returns the moved card, or None when the drop was a no-op.
        Errors from the move propagate; the tracker is back to idle either way.
        """
        if self.state != DragState.DRAGGING or self.card_id is None:
            raise RuntimeError("drop() called without an active drag")
        return self.handle(DragEndEvent(self.card_id, over_id))

    def handle(self, event: DragEndEvent) -> Optional[Card]:
        resolution = resolve_drop(self.store.board, event)
        self.state = resolution.outcome
        self.last_resolution = resolution
        try:
            if not resolution.should_move:
                logger.debug(f"Drop of {event.card_id} is a no-op ({resolution.outcome.value})")
                return None
            return self.store.move_card(event.card_id, resolution.target_section_id)
        finally:
            self.cancel()
