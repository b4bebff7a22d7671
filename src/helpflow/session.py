"""
Help Session

The per-application-session context object. One :class:`HelpSession` owns
the action log, session statistics, event bus, help visibility state machine,
trigger registry and the content service shared by the widgets it creates.
It is constructed explicitly and passed to whatever needs it; nothing here is
a module-level singleton.

Use it as a context manager (sync or async) to guarantee that every trigger,
timer and widget it handed out is torn down.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence

from .action_log import ActionLog, SessionStatistics
from .config import HelpflowConfig
from .disclosure import ProgressiveDisclosure
from .events import HELP_DETAILED_REQUESTED, EventBus
from .gateway import (
    ContentRequest,
    ContentService,
    DisabledContentService,
    RecommendationGateway,
    ResponseKind,
    build_content_service,
)
from .keyboard import HelpKeyMap, KeyEvent, TutorialKeyMap
from .models import DisclosureLevel, HelpContext, Placement, SessionStats
from .panel import HelpPanel
from .settings import AppSettings
from .timers import AsyncioScheduler, Scheduler
from .triggers import HelpTriggerRegistry, TriggerHandle, UIElement
from .tutorial import TutorialPlayer
from .visibility import HelpVisibility

logger = logging.getLogger(__name__)

# Shown when content generation is switched off
OFFLINE_NEXT_STEPS = [
    "Explore related features",
    "Check keyboard shortcuts",
    "View documentation",
]

# Shown when content generation failed
FALLBACK_NEXT_STEPS = [
    "Explore related features",
    "Use keyboard shortcuts for efficiency",
    "Save your current progress",
]


class HelpSession:
    """Everything contextual help needs for one application session."""

    def __init__(
        self,
        config: Optional[HelpflowConfig] = None,
        scheduler: Optional[Scheduler] = None,
        service: Optional[ContentService] = None,
        events: Optional[EventBus] = None,
    ):
        self.config = config or HelpflowConfig()
        self.scheduler = scheduler or AsyncioScheduler()
        self.events = events or EventBus()
        self.service = service or build_content_service(self.config.gateway)

        self.action_log = ActionLog()
        self.statistics = SessionStatistics()
        self.key_map = HelpKeyMap(self.config.keys)
        self.visibility = HelpVisibility(
            self.scheduler,
            preferences=self.config.preferences,
            stats_provider=self.session_stats,
            events=self.events,
            key_map=self.key_map,
        )
        self.triggers = HelpTriggerRegistry(self.visibility)
        self._next_steps = RecommendationGateway(self.service, name="next-steps")
        self._owned: List[Any] = []
        self._closed = False

    # -- state -----------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def is_visible(self) -> bool:
        return self.visibility.is_visible

    @property
    def context(self) -> Optional[HelpContext]:
        return self.visibility.context

    @property
    def preferences(self):
        return self.visibility.preferences

    @property
    def content_enabled(self) -> bool:
        return not isinstance(self.service, DisabledContentService)

    def session_stats(self) -> SessionStats:
        return self.statistics.snapshot(self.action_log)

    # -- visibility ------------------------------------------------------

    def show_help(self, context: HelpContext, placement: Optional[Placement] = None, auto_hide: bool = True) -> None:
        if self._closed:
            return
        self.visibility.show_help(context, placement=placement, auto_hide=auto_hide)

    def hide_help(self) -> None:
        self.visibility.hide_help()

    def toggle_help(self) -> None:
        if self._closed:
            return
        self.visibility.toggle_help()

    def update_context(self, **partial: Any) -> None:
        self.visibility.update_context(**partial)

    def set_preferences(self, **partial: Any):
        return self.visibility.set_preferences(**partial)

    def handle_key(self, event: KeyEvent) -> bool:
        if self._closed:
            return False
        return self.visibility.handle_key(event)

    def register_help_trigger(self, element: Optional[UIElement], context: HelpContext) -> TriggerHandle:
        return self.triggers.register(element, context)

    # -- actions ---------------------------------------------------------

    def track_user_action(self, action: str, **context_update: Any) -> None:
        """Record ``action`` and optionally merge ``context_update`` into visible help."""
        self.action_log.append(action)
        self.statistics.apply(action)
        if context_update:
            self.visibility.update_context(**context_update)

    def request_detailed_help(self, feature: str) -> None:
        logger.info(f"Detailed help requested for {feature}")
        self.events.publish(HELP_DETAILED_REQUESTED, feature=feature, context=self.visibility.context)

    async def suggest_next_steps(self, context: HelpContext) -> List[str]:
        """Up to five suggested next steps for ``context``."""
        if not self.content_enabled:
            return list(OFFLINE_NEXT_STEPS)

        stats = self.session_stats()
        recent = list(stats.recent_actions[-3:])
        request = ContentRequest(
            kind=ResponseKind.NEXT_STEPS,
            context_description=(
                "Suggest 3-5 logical next steps for the user as a JSON array of strings.\n"
                f"{context.describe()}\n"
                f"Recent Actions: {', '.join(recent) or 'none'}"
            ),
            structured_context={**context.to_dict(), "recentActions": recent, "sessionStats": stats.to_dict()},
        )
        steps = await self._next_steps.fetch_items(f"{context.fingerprint}:next-steps", request)
        return steps or list(FALLBACK_NEXT_STEPS)

    # -- widgets ---------------------------------------------------------

    def create_panel(self) -> HelpPanel:
        panel = HelpPanel(RecommendationGateway(self.service, name="panel"))
        self._owned.append(panel)
        return panel

    def create_disclosure(self, feature: str, levels: Sequence[DisclosureLevel]) -> ProgressiveDisclosure:
        disclosure = ProgressiveDisclosure(
            feature,
            levels,
            self.scheduler,
            session=self,
            gateway=RecommendationGateway(self.service, name=f"disclosure:{feature}"),
            config=self.config.disclosure,
            thresholds=self.config.skill,
        )
        self._owned.append(disclosure)
        return disclosure

    def create_tutorial_player(self, on_complete=None) -> TutorialPlayer:
        player = TutorialPlayer(
            self.scheduler,
            events=self.events,
            session=self,
            pace=self.config.tutorial.pace,
            default_step_duration_sec=self.config.tutorial.default_step_duration_sec,
            on_complete=on_complete,
            gateway=RecommendationGateway(self.service, name="tutorial"),
            key_map=TutorialKeyMap(self.config.keys),
        )
        self._owned.append(player)
        return player

    # -- teardown --------------------------------------------------------

    def close(self) -> None:
        """Release every trigger, cancel every timer, close every widget."""
        if self._closed:
            return
        self._closed = True
        self.triggers.close()
        self.visibility.close()
        for owned in reversed(self._owned):
            owned.close()
        self._owned.clear()
        self._next_steps.close()
        logger.debug("Help session closed")

    async def aclose(self) -> None:
        self.close()
        aclose = getattr(self.service, "aclose", None)
        if aclose is not None:
            await aclose()

    def __enter__(self) -> "HelpSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    async def __aenter__(self) -> "HelpSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


def create_session(
    config: Optional[HelpflowConfig] = None,
    scheduler: Optional[Scheduler] = None,
    service: Optional[ContentService] = None,
) -> HelpSession:
    """Build a session, loading configuration from YAML/env when none is given."""
    if config is None:
        config = AppSettings().load_config()
    return HelpSession(config=config, scheduler=scheduler, service=service)


__all__ = ["HelpSession", "create_session", "FALLBACK_NEXT_STEPS", "OFFLINE_NEXT_STEPS"]
