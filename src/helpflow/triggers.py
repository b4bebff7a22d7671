"""
Help Trigger Registry

Binds UI elements to a help context. Registering an element returns a
:class:`TriggerHandle`; releasing the handle removes exactly the listeners
that registration added. The registry releases every outstanding handle when
it is closed, so session teardown never leaks listeners.
"""

from __future__ import annotations

import itertools
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Tuple

from .keyboard import KeyEvent
from .models import HelpContext
from .visibility import HelpVisibility

logger = logging.getLogger(__name__)

POINTER_ENTER = "pointer_enter"
FOCUS = "focus"
KEY_DOWN = "key_down"

Listener = Callable[[Any], Any]


class UIElement:
    """In-process handle for a UI element that can carry event listeners.

    Host integrations wrap their real widgets in (or subclass) this; the
    engine only needs ``add_listener``, ``remove_listener`` and ``attached``.
    """

    def __init__(self, name: str = "", attached: bool = True):
        self.name = name
        self.attached = attached
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)

    def add_listener(self, event_name: str, listener: Listener) -> None:
        self._listeners[event_name].append(listener)

    def remove_listener(self, event_name: str, listener: Listener) -> None:
        listeners = self._listeners.get(event_name, [])
        if listener in listeners:
            listeners.remove(listener)

    def listener_count(self, event_name: Optional[str] = None) -> int:
        if event_name is not None:
            return len(self._listeners.get(event_name, []))
        return sum(len(v) for v in self._listeners.values())

    def dispatch(self, event_name: str, payload: Any = None) -> None:
        for listener in list(self._listeners.get(event_name, [])):
            listener(payload)

    def __repr__(self) -> str:
        return f"UIElement({self.name!r})"


class TriggerHandle:
    """Ownership of one trigger registration. Release is idempotent."""

    def __init__(
        self,
        element: Optional[UIElement],
        context: Optional[HelpContext],
        listeners: List[Tuple[str, Listener]],
        on_release: Optional[Callable[["TriggerHandle"], None]] = None,
    ):
        self.element = element
        self.context = context
        self._listeners = listeners
        self._on_release = on_release
        self._released = not listeners

    @property
    def active(self) -> bool:
        return not self._released

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        for event_name, listener in self._listeners:
            try:
                self.element.remove_listener(event_name, listener)
            except Exception as e:
                logger.warning(f"Failed to remove {event_name} listener from {self.element!r}: {e}")
        self._listeners = []
        if self._on_release is not None:
            self._on_release(self)

    # The returned cleanup is also callable directly.
    __call__ = release

    def __enter__(self) -> "TriggerHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


class HelpTriggerRegistry:
    """Owns the mapping from registrations to the listeners they installed."""

    def __init__(self, visibility: HelpVisibility):
        self.visibility = visibility
        self._handles: Dict[int, TriggerHandle] = {}
        self._ids = itertools.count(1)

    @property
    def active_count(self) -> int:
        return len(self._handles)

    def register(self, element: Optional[UIElement], context: HelpContext) -> TriggerHandle:
        if element is None or not getattr(element, "attached", False):
            logger.debug(f"Skipping help trigger for detached element {element!r}")
            return TriggerHandle(element, context, [])

        visibility = self.visibility

        def on_pointer_enter(_payload: Any = None) -> None:
            if visibility.preferences.show_on_hover:
                visibility.show_help(context, auto_hide=True)

        def on_focus(_payload: Any = None) -> None:
            if visibility.preferences.show_on_focus:
                visibility.show_help(context, auto_hide=True)

        def on_key_down(payload: Any = None) -> None:
            if isinstance(payload, KeyEvent) and visibility.key_map.is_show_help(payload):
                visibility.show_help(context, auto_hide=True)

        listeners: List[Tuple[str, Listener]] = [
            (POINTER_ENTER, on_pointer_enter),
            (FOCUS, on_focus),
            (KEY_DOWN, on_key_down),
        ]
        try:
            for event_name, listener in listeners:
                element.add_listener(event_name, listener)
        except Exception as e:
            logger.warning(f"Could not attach help trigger to {element!r}: {e}")
            for event_name, listener in listeners:
                try:
                    element.remove_listener(event_name, listener)
                except Exception:
                    logger.debug(f"Listener {event_name} was never attached")
            return TriggerHandle(element, context, [])

        trigger_id = next(self._ids)
        handle = TriggerHandle(
            element,
            context,
            listeners,
            on_release=lambda h: self._handles.pop(trigger_id, None),
        )
        self._handles[trigger_id] = handle
        logger.debug(f"Registered help trigger {trigger_id} on {element!r} for {context.fingerprint}")
        return handle

    def close(self) -> None:
        """Release every outstanding trigger."""
        for handle in list(self._handles.values()):
            handle.release()
        self._handles.clear()


__all__ = [
    "UIElement",
    "TriggerHandle",
    "HelpTriggerRegistry",
    "POINTER_ENTER",
    "FOCUS",
    "KEY_DOWN",
]
