"""
Skill-level inference.

The skill tier is never stored: it is recomputed from completion history
every time somebody asks, so it cannot drift from the history it came from.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .config import SkillThresholds
from .models import SkillLevel

logger = logging.getLogger(__name__)


@dataclass
class DisclosureProgress:
    """Completion history of one disclosure widget."""
    completed_levels: List[str] = field(default_factory=list)
    current_level: Optional[str] = None
    time_spent_ms: Dict[str, float] = field(default_factory=dict)
    thresholds: SkillThresholds = field(default_factory=SkillThresholds)

    @classmethod
    def from_history(
        cls, time_spent_ms: Dict[str, float], thresholds: Optional[SkillThresholds] = None
    ) -> "DisclosureProgress":
        """Build progress where every timed level counts as completed."""
        return cls(
            completed_levels=list(time_spent_ms),
            time_spent_ms=dict(time_spent_ms),
            thresholds=thresholds or SkillThresholds(),
        )

    def mark_completed(self, level_id: str) -> bool:
        """Add ``level_id`` once. Returns True if it was new."""
        if level_id in self.completed_levels:
            return False
        self.completed_levels.append(level_id)
        return True

    def is_completed(self, level_id: str) -> bool:
        return level_id in self.completed_levels

    @property
    def skill_level(self) -> SkillLevel:
        return infer_skill_level(self, self.thresholds)


def average_time_ms(progress: DisclosureProgress) -> float:
    completed = len(progress.completed_levels)
    if completed == 0:
        return 0.0
    return sum(progress.time_spent_ms.values()) / completed


def infer_skill_level(progress: DisclosureProgress, thresholds: Optional[SkillThresholds] = None) -> SkillLevel:
    t = thresholds or progress.thresholds
    completed = len(progress.completed_levels)
    avg = average_time_ms(progress)

    if completed >= t.expert_min_completed and avg < t.expert_max_avg_ms:
        return SkillLevel.EXPERT
    if completed >= t.advanced_min_completed and avg < t.advanced_max_avg_ms:
        return SkillLevel.ADVANCED
    if completed >= max(1, t.intermediate_min_completed):
        return SkillLevel.INTERMEDIATE
    return SkillLevel.BEGINNER


def levels_up_to(skill: SkillLevel, stretch: int = 1) -> List[SkillLevel]:
    """Tiers visible to ``skill``: its own and up to ``stretch`` above it."""
    return [level for level in SkillLevel if level.rank <= skill.rank + stretch]


__all__ = [
    "DisclosureProgress",
    "infer_skill_level",
    "average_time_ms",
    "levels_up_to",
]
