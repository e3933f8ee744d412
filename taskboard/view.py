"""
Filtered and sorted projection of a board.

Everything here is derived: functions take a board (or cards) and return new
objects without touching their input.
"""
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, List

from .schema import Board, Card, Priority


class SortBy(Enum):
    DATE = "date"
    PRIORITY_LOW_HIGH = "priority-low-high"
    PRIORITY_HIGH_LOW = "priority-high-low"
    PRIORITY_NORMAL_FIRST = "priority-normal-first"

    @classmethod
    def from_str(cls, value: str) -> "SortBy":
        try:
            return cls(value)
        except ValueError:
            return cls.DATE


@dataclass
class FilterState:
    """
    Active filters.

    ``multi_filter`` False combines the priority and executor predicates with
    OR, True with AND. An empty predicate set is inactive.
    """
    priorities: List[Priority] = field(default_factory=list)
    executors: List[str] = field(default_factory=list)
    multi_filter: bool = False
    sort_by: SortBy = SortBy.DATE

    def toggle_priority(self, priority: Priority) -> None:
        if priority in self.priorities:
            self.priorities.remove(priority)
        else:
            self.priorities.append(priority)

    def toggle_executor(self, executor: str) -> None:
        if executor in self.executors:
            self.executors.remove(executor)
        else:
            self.executors.append(executor)

    def update(self, **changes) -> None:
        for key, value in changes.items():
            if not hasattr(self, key):
                raise AttributeError(f"Unknown filter field: {key}")
            setattr(self, key, value)

    def clear(self) -> None:
        self.priorities = []
        self.executors = []
        self.multi_filter = False
        self.sort_by = SortBy.DATE

    def has_active_filters(self) -> bool:
        return bool(self.priorities or self.executors)

    def matches(self, card: Card) -> bool:
        """
        Whether a card passes the active filters.

        Only non-empty predicate sets take part. Choosing just priorities in
        OR mode therefore keeps only the cards with those priorities. An
        empty executor set does not count as a match, so it cannot let
        every card through.
        """
        checks = []
        if self.priorities:
            checks.append(card.priority in self.priorities)
        if self.executors:
            checks.append(card.executor in self.executors)
        if not checks:
            return True
        return all(checks) if self.multi_filter else any(checks)


def filter_cards(cards: Iterable[Card], filters: FilterState) -> List[Card]:
    return [card for card in cards if filters.matches(card)]


def sort_cards(cards: Iterable[Card], sort_by: SortBy) -> List[Card]:
    """Stable sort into a new list."""
    if sort_by == SortBy.PRIORITY_LOW_HIGH:
        return sorted(cards, key=lambda c: c.priority.rank)
    if sort_by == SortBy.PRIORITY_HIGH_LOW:
        return sorted(cards, key=lambda c: -c.priority.rank)
    if sort_by == SortBy.PRIORITY_NORMAL_FIRST:
        return sorted(cards, key=lambda c: (c.priority != Priority.NORMAL, c.priority.rank))
    return sorted(cards, key=lambda c: c.created_at)


def filtered_board(board: Board, filters: FilterState) -> Board:
    """Board with every section's cards filtered and sorted."""
    return replace(
        board,
        sections=[
            replace(section, cards=sort_cards(filter_cards(section.cards, filters), filters.sort_by))
            for section in board.sections
        ],
    )


def available_executors(board: Board) -> List[str]:
    """Distinct non-blank executor labels, in first-seen order."""
    seen = []
    for card in board.all_cards():
        if card.executor.strip() and card.executor not in seen:
            seen.append(card.executor)
    return seen
