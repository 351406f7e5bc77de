"""
Board event bus.

The coordinator announces every committed mutation here so that whoever
serves the UI can push a refresh. Payloads are the serialised records.
"""
import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

PROJECT_CREATED = "project_created"
PROJECT_UPDATED = "project_updated"
PROJECT_DELETED = "project_deleted"
ACTIVITY_CREATED = "activity_created"
ACTIVITY_UPDATED = "activity_updated"
ACTIVITY_DELETED = "activity_deleted"
CLAIM_CHANGED = "claim_changed"

ALL_EVENTS = (
    PROJECT_CREATED,
    PROJECT_UPDATED,
    PROJECT_DELETED,
    ACTIVITY_CREATED,
    ACTIVITY_UPDATED,
    ACTIVITY_DELETED,
    CLAIM_CHANGED,
)


class BoardEvents:
    """Routes board mutations to subscribers."""

    def __init__(self):
        self.subscribers: Dict[str, List[Callable]] = {}

    def subscribe(self, event_type: str, callback: Callable) -> None:
        """Register a callback for an event type ("*" for all)."""
        if event_type != "*" and event_type not in ALL_EVENTS:
            raise ValueError(f"Unknown event type: {event_type}")
        self.subscribers.setdefault(event_type, []).append(callback)

    def emit(self, event_type: str, **payload: Any) -> None:
        """Deliver an event. Subscriber failures are logged, not raised:
        the mutation has already been committed."""
        callbacks = self.subscribers.get(event_type, []) + self.subscribers.get("*", [])
        for callback in callbacks:
            try:
                callback(event_type, **payload)
            except Exception:
                logger.exception("Error in %s subscriber %r", event_type, callback)
