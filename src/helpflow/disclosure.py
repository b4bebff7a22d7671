"""
Progressive Disclosure

Filters, orders and caps a set of help levels for display, based on the
user's inferred skill tier and any recommendations from the content service.

:func:`select_levels` is the pure selector; :class:`ProgressiveDisclosure` is
the stateful widget controller that owns one set of levels, records open and
close times and asks the gateway for recommendations.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Sequence, Set

from .config import DisclosureConfig, SkillThresholds
from .gateway import ContentRequest, RecommendationGateway, ResponseKind, sort_by_priority
from .models import DisclosureLevel, HelpContext, Recommendation, SkillLevel
from .skill import DisclosureProgress, infer_skill_level
from .timers import Scheduler

if TYPE_CHECKING:
    from .session import HelpSession

logger = logging.getLogger(__name__)

DISCLOSURE_COMPONENT = "progressive-disclosure"


def select_levels(
    all_levels: Sequence[DisclosureLevel],
    progress: DisclosureProgress,
    recommendations: Iterable[Recommendation] = (),
    max_count: int = 2,
    show_all: bool = False,
) -> List[DisclosureLevel]:
    """Pick the levels to display.

    1. ``show_all`` returns every level, unfiltered and in order.
    2. Otherwise keep levels whose complexity is at most one tier above the
       inferred skill tier.
    3. Recommended levels go first; order within each group is preserved.
    4. Truncate to ``max_count``.
    """
    if show_all:
        return list(all_levels)

    ceiling = infer_skill_level(progress).rank + 1
    eligible = [level for level in all_levels if level.complexity.rank <= ceiling]

    recommended: Set[str] = {r.target_id for r in recommendations}
    ordered = [lvl for lvl in eligible if lvl.id in recommended] + [
        lvl for lvl in eligible if lvl.id not in recommended
    ]
    return ordered[: max(0, max_count)]


class ProgressiveDisclosure:
    """Controller for one progressive-disclosure widget."""

    def __init__(
        self,
        feature: str,
        levels: Sequence[DisclosureLevel],
        scheduler: Scheduler,
        session: Optional["HelpSession"] = None,
        gateway: Optional[RecommendationGateway] = None,
        config: Optional[DisclosureConfig] = None,
        thresholds: Optional[SkillThresholds] = None,
    ):
        self.feature = feature
        self.levels: List[DisclosureLevel] = list(levels)
        self.scheduler = scheduler
        self.session = session
        self.gateway = gateway or RecommendationGateway(name=f"disclosure:{feature}")
        self.config = config or DisclosureConfig()
        self.progress = DisclosureProgress(thresholds=thresholds or SkillThresholds())

        self.recommendations: List[Recommendation] = []
        self.show_all = False
        self._open: Set[str] = set()
        self._opened_at: Dict[str, float] = {}
        self._closed = False

    # -- queries ---------------------------------------------------------

    @property
    def skill_level(self) -> SkillLevel:
        return self.progress.skill_level

    @property
    def open_levels(self) -> List[str]:
        return [lvl.id for lvl in self.levels if lvl.id in self._open]

    def is_open(self, level_id: str) -> bool:
        return level_id in self._open

    def display_levels(self) -> List[DisclosureLevel]:
        max_count = self.config.max_initial_levels if self.config.adapt_to_user_level else len(self.levels)
        return select_levels(
            self.levels,
            self.progress,
            self.recommendations,
            max_count=max_count,
            show_all=self.show_all,
        )

    @property
    def completion_percentage(self) -> int:
        if not self.levels:
            return 0
        known = {lvl.id for lvl in self.levels}
        done = sum(1 for level_id in self.progress.completed_levels if level_id in known)
        return round(done / len(self.levels) * 100)

    def recommendation_for(self, level_id: str) -> Optional[Recommendation]:
        for rec in self.recommendations:
            if rec.target_id == level_id:
                return rec
        return None

    # -- level open / close ----------------------------------------------

    def _get_level(self, level_id: str) -> Optional[DisclosureLevel]:
        for level in self.levels:
            if level.id == level_id:
                return level
        return None

    def open_level(self, level_id: str) -> None:
        if self._closed or self._get_level(level_id) is None or level_id in self._open:
            return
        self._open.add(level_id)
        self._opened_at[level_id] = self.scheduler.now()
        self.progress.current_level = level_id
        self._track(f"disclosure-level-opened-{level_id}")

    def close_level(self, level_id: str) -> None:
        if level_id not in self._open:
            return
        self._open.discard(level_id)
        started = self._opened_at.pop(level_id, None)
        if started is not None:
            # latest visit wins
            self.progress.time_spent_ms[level_id] = self.scheduler.now() - started
        if self.progress.mark_completed(level_id):
            logger.debug(f"Level {level_id} completed; skill is now {self.progress.skill_level.value}")
        if self.progress.current_level == level_id:
            self.progress.current_level = None
        self._track(f"disclosure-level-closed-{level_id}")

    def toggle_level(self, level_id: str) -> None:
        if level_id in self._open:
            self.close_level(level_id)
        else:
            self.open_level(level_id)

    def set_show_all(self, show_all: bool = True) -> None:
        self.show_all = show_all

    # -- recommendations --------------------------------------------------

    def _context(self) -> HelpContext:
        return HelpContext(
            feature=self.feature,
            component=DISCLOSURE_COMPONENT,
            user_action="completed:" + ",".join(self.progress.completed_levels),
        )

    def _request(self) -> ContentRequest:
        skill = self.progress.skill_level
        description = (
            f"User is learning {self.feature}.\n"
            f"Skill Level: {skill.value}\n"
            f"Completed Levels: {', '.join(self.progress.completed_levels) or 'none'}\n"
            f"Available Levels: {', '.join(f'{lvl.id} ({lvl.complexity.value})' for lvl in self.levels)}\n"
            "Recommend up to 3 levels to explore next."
        )
        return ContentRequest(
            kind=ResponseKind.RECOMMENDATIONS,
            context_description=description,
            structured_context={
                "feature": self.feature,
                "skillLevel": skill.value,
                "completedLevels": list(self.progress.completed_levels),
                "timeSpentMs": dict(self.progress.time_spent_ms),
                "levels": [
                    {"id": lvl.id, "title": lvl.title, "complexity": lvl.complexity.value}
                    for lvl in self.levels
                ],
            },
        )

    async def refresh_recommendations(self) -> List[Recommendation]:
        """Ask for recommendations for the current completion history.

        Does nothing unless adaptation is on and at least one level has been
        completed. Replies for a history that has since changed are dropped.
        """
        if self._closed or not self.config.adapt_to_user_level or not self.progress.completed_levels:
            return self.recommendations

        fingerprint = self._context().fingerprint
        items = await self.gateway.fetch_items(fingerprint, self._request())
        if self._closed or fingerprint != self._context().fingerprint:
            logger.debug(f"Discarding stale recommendations for {fingerprint}")
            return self.recommendations
        if items:
            self.recommendations = sort_by_priority(items)
        return self.recommendations

    def close(self) -> None:
        self._closed = True
        self.gateway.close()
        self._open.clear()
        self._opened_at.clear()

    def _track(self, action: str) -> None:
        if self.session is not None:
            self.session.track_user_action(action)


__all__ = ["select_levels", "ProgressiveDisclosure", "DISCLOSURE_COMPONENT"]
