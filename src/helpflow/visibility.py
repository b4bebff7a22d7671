"""
Help Visibility State Machine

Owns whether contextual help is currently shown, what it is about, where it
is placed, and the auto-hide timer. It is the only component that decides
visibility; triggers, keyboard shortcuts and the session all call into it.

States are ``Hidden`` (initial) and ``Visible(context, placement)``. Every
operation is safe to call in any state: out-of-order calls are silent no-ops.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from .config import UserPreferences
from .events import HELP_CONTEXT_UPDATED, HELP_HIDDEN, HELP_SHOWN, EventBus
from .keyboard import HelpAction, HelpKeyMap, KeyEvent
from .models import HelpContext, HelpViewState, Placement, SessionStats
from .timers import Scheduler, TimerSlot

logger = logging.getLogger(__name__)


class HelpVisibility:
    """Visibility, context, placement and auto-hide for one application session."""

    def __init__(
        self,
        scheduler: Scheduler,
        preferences: Optional[UserPreferences] = None,
        stats_provider: Optional[Callable[[], SessionStats]] = None,
        events: Optional[EventBus] = None,
        key_map: Optional[HelpKeyMap] = None,
    ):
        self.preferences = preferences or UserPreferences()
        self.events = events or EventBus()
        self.key_map = key_map or HelpKeyMap()
        self._stats_provider = stats_provider or SessionStats
        self._auto_hide = TimerSlot(scheduler, name="auto-hide")

        self._visible = False
        self._context: Optional[HelpContext] = None
        self._placement = self.preferences.preferred_placement

    @property
    def is_visible(self) -> bool:
        return self._visible

    @property
    def context(self) -> Optional[HelpContext]:
        return self._context

    @property
    def placement(self) -> Placement:
        return self._placement

    @property
    def auto_hide_armed(self) -> bool:
        return self._auto_hide.active

    @property
    def state(self) -> HelpViewState:
        return HelpViewState(is_visible=self._visible, context=self._context, placement=self._placement)

    def show_help(
        self,
        context: HelpContext,
        placement: Optional[Placement] = None,
        auto_hide: bool = True,
    ) -> None:
        """Show help for ``context`` and (re)arm auto-hide unless disabled."""
        self._context = context.merged(session_context=self._stats_provider())
        self._placement = placement or self.preferences.preferred_placement
        self._visible = True

        self._auto_hide.cancel()
        delay = self.preferences.auto_hide_delay_ms
        if auto_hide and delay > 0:
            self._auto_hide.arm(delay, self._on_auto_hide)

        logger.debug(f"Help shown for {self._context.fingerprint} ({self._placement.value})")
        self.events.publish(HELP_SHOWN, state=self.state)

    def hide_help(self) -> None:
        self._auto_hide.cancel()
        if not self._visible:
            return
        self._visible = False
        logger.debug("Help hidden")
        self.events.publish(HELP_HIDDEN, state=self.state)

    def toggle_help(self) -> None:
        if self._visible:
            self.hide_help()
        elif self._context is not None:
            self.show_help(self._context)

    def update_context(self, **partial: Any) -> None:
        """Shallow-merge ``partial`` into the current context while visible."""
        if not self._visible or self._context is None or not partial:
            return
        self._context = self._context.merged(**partial)
        self.events.publish(HELP_CONTEXT_UPDATED, state=self.state)

    def set_preferences(self, **partial: Any) -> UserPreferences:
        self.preferences = UserPreferences.model_validate({**self.preferences.model_dump(), **partial})
        logger.debug(f"Help preferences updated: {sorted(partial)}")
        return self.preferences

    def expand(self) -> None:
        """Flip a visible panel between floating and sidebar placement."""
        if not self._visible:
            return
        self._placement = Placement.SIDEBAR if self._placement == Placement.FLOATING else Placement.FLOATING
        self.events.publish(HELP_SHOWN, state=self.state)

    def handle_key(self, event: KeyEvent) -> bool:
        """Apply the global help shortcuts. Returns True if the key was consumed."""
        action = self.key_map.resolve(event)
        if action is HelpAction.SHOW_HELP:
            if self._context is None:
                return False
            self.show_help(self._context)
            return True
        if action is HelpAction.TOGGLE_HELP:
            self.toggle_help()
            return True
        if action is HelpAction.HIDE_HELP:
            if not self._visible:
                return False
            self.hide_help()
            return True
        return False

    def close(self) -> None:
        """Tear down: cancel the timer and hide."""
        self.hide_help()

    def _on_auto_hide(self) -> None:
        logger.debug("Auto-hide fired")
        self.hide_help()


__all__ = ["HelpVisibility"]
