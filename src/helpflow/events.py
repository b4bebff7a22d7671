"""In-process pub/sub for intents emitted to UI collaborators.

The engine never touches the rendering layer; it publishes what it wants
(help shown, highlight requested, ...) and renderers subscribe. Delivery is
synchronous and in publish order, on the caller's task.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

HELP_SHOWN = "help.shown"
HELP_HIDDEN = "help.hidden"
HELP_CONTEXT_UPDATED = "help.context_updated"
HELP_DETAILED_REQUESTED = "help.detailed_requested"
TUTORIAL_STARTED = "tutorial.started"
TUTORIAL_STEP_CHANGED = "tutorial.step_changed"
TUTORIAL_COMPLETED = "tutorial.completed"
TUTORIAL_EXITED = "tutorial.exited"
HIGHLIGHT_REQUESTED = "tutorial.highlight_requested"
HIGHLIGHT_CLEARED = "tutorial.highlight_cleared"

WILDCARD = "*"


@dataclass
class Event:
    name: str
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)


Handler = Callable[[Event], Any]


class EventBus:
    """Simple synchronous pub/sub keyed by event name ("*" receives everything)."""

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[Handler]] = defaultdict(list)
        self._stats = {"published": 0, "handler_errors": 0}

    def subscribe(self, name: str, handler: Handler) -> Callable[[], None]:
        """Register ``handler`` and return a function that unsubscribes it."""
        self._subscribers[name].append(handler)

        def unsubscribe() -> None:
            handlers = self._subscribers.get(name, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def publish(self, name: str, **data: Any) -> Event:
        event = Event(name=name, data=data)
        self._stats["published"] += 1
        for handler in list(self._subscribers.get(name, [])) + list(self._subscribers.get(WILDCARD, [])):
            try:
                handler(event)
            except Exception as e:
                # subscriber failures never propagate
                self._stats["handler_errors"] += 1
                logger.error(f"Handler error processing {name} event: {e}")
        return event

    def clear(self) -> None:
        self._subscribers.clear()

    def get_stats(self) -> Dict[str, Any]:
        return {
            "subscriber_count": sum(len(h) for h in self._subscribers.values()),
            **self._stats,
        }


__all__ = [
    "Event",
    "EventBus",
    "HELP_SHOWN",
    "HELP_HIDDEN",
    "HELP_CONTEXT_UPDATED",
    "HELP_DETAILED_REQUESTED",
    "TUTORIAL_STARTED",
    "TUTORIAL_STEP_CHANGED",
    "TUTORIAL_COMPLETED",
    "TUTORIAL_EXITED",
    "HIGHLIGHT_REQUESTED",
    "HIGHLIGHT_CLEARED",
    "WILDCARD",
]
