"""
Change notifications for a board store.

The store emits an event after every successful merge; a presentation layer
subscribes and re-renders from the store's snapshot.

Event types:
    board_loaded    - full board replaced by load()/refetch (project_id)
    board_changed   - any change to the local board (reason)
    card_moved      - card placed into a different section (card_id, from_section, to_section)
"""
import logging
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)

BOARD_LOADED = "board_loaded"
BOARD_CHANGED = "board_changed"
CARD_MOVED = "card_moved"


class BoardEvents:
    """Routes store changes to subscribed callbacks."""

    def __init__(self):
        self.subscribers: Dict[str, List[Callable]] = {}  # event_type -> callbacks

    def subscribe(self, event_type: str, callback: Callable) -> Callable[[], None]:
        """Register a callback for an event type. Returns an unsubscribe function."""
        self.subscribers.setdefault(event_type, []).append(callback)

        def unsubscribe() -> None:
            callbacks = self.subscribers.get(event_type, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    def clear(self) -> None:
        self.subscribers.clear()

    def emit(self, event_type: str, **kwargs) -> None:
        """Emit an event to all subscribers. A failing callback does not stop the rest."""
        for callback in list(self.subscribers.get(event_type, [])):
            try:
                callback(**kwargs)
            except Exception:
                logger.exception(f"Error in {event_type} callback {callback!r}")
