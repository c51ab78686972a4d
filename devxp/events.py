"""
Notification channel for engine events

Handlers are plain callables registered per event name. Emission is
synchronous and in registration order; a handler that raises is logged and
skipped so the remaining handlers (and the evaluation that emitted) carry on.
"""

import logging
from collections import deque
from datetime import datetime
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from devxp.observability import metrics

logger = logging.getLogger(__name__)

XP_GAIN = "xp:gain"
LEVEL_UP = "level:up"
ACHIEVEMENT_UNLOCK = "achievement:unlock"
ACHIEVEMENT_PROGRESS = "achievement:progress"
ACHIEVEMENT_COMBO = "achievement:combo"
CHALLENGE_COMPLETED = "challenge:completed"
STREAK_MILESTONE = "streak:milestone"
MULTIPLIER_APPLIED = "multiplier:applied"

EVENT_TYPES = frozenset({
    XP_GAIN,
    LEVEL_UP,
    ACHIEVEMENT_UNLOCK,
    ACHIEVEMENT_PROGRESS,
    ACHIEVEMENT_COMBO,
    CHALLENGE_COMPLETED,
    STREAK_MILESTONE,
    MULTIPLIER_APPLIED,
})

EventHandler = Callable[[Dict[str, Any]], Any]


class EventRecord(BaseModel):
    """An emitted event as kept in the activity log"""
    id: str = Field(default_factory=lambda: str(uuid4()))
    event_type: str
    data: Dict[str, Any]
    timestamp: datetime = Field(default_factory=datetime.now)


class _Hook:
    __slots__ = ("fn", "once")

    def __init__(self, fn: EventHandler, once: bool):
        self.fn = fn
        self.once = once


class EventEmitter:
    """Per-engine listener registry with a bounded activity log"""

    def __init__(self, log_capacity: int = 500):
        self._listeners: Dict[str, List[_Hook]] = {}
        self._log: Deque[EventRecord] = deque(maxlen=log_capacity)

    def on(self, event_type: str, handler: EventHandler, once: bool = False) -> None:
        if event_type not in EVENT_TYPES:
            logger.warning(f"Registering handler for unknown event type '{event_type}'")
        self._listeners.setdefault(event_type, []).append(_Hook(handler, once))

    def off(self, event_type: str, handler: EventHandler) -> None:
        hooks = self._listeners.get(event_type)
        if not hooks:
            return
        self._listeners[event_type] = [h for h in hooks if h.fn is not handler]

    def emit(self, event_type: str, data: Dict[str, Any]) -> EventRecord:
        """
        Deliver an event to every handler registered for it

        Returns:
            The logged EventRecord
        """
        record = EventRecord(event_type=event_type, data=data)
        self._log.append(record)
        logger.debug(f"Event emitted: {event_type}")

        hooks = list(self._listeners.get(event_type, []))
        for hook in hooks:
            try:
                hook.fn(data)
            except Exception:
                metrics.event_handler_errors_total.labels(event=event_type).inc()
                logger.exception(f"Event handler {getattr(hook.fn, '__name__', hook.fn)!r} for {event_type} raised")

        if any(h.once for h in hooks):
            fired = {id(h) for h in hooks if h.once}
            self._listeners[event_type] = [
                h for h in self._listeners.get(event_type, []) if id(h) not in fired
            ]

        return record

    def listener_count(self, event_type: str) -> int:
        return len(self._listeners.get(event_type, []))

    def get_activity_log(self, event_types: Optional[Iterable[str]] = None) -> List[EventRecord]:
        """Logged events, oldest first, optionally filtered by type"""
        if event_types is None:
            return list(self._log)
        wanted = set(event_types)
        return [r for r in self._log if r.event_type in wanted]

    def clear(self) -> None:
        """Drop all handlers and the activity log"""
        self._listeners.clear()
        self._log.clear()
