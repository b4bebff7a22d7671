"""Core value types shared across helpflow.

Everything here is a plain value: contexts, stats, levels and tutorials are
created by callers or by the gateway and never mutated by the engine. The
only mutable records are the progress dataclasses, which belong to exactly
one widget or player.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


class Placement(str, Enum):
    FLOATING = "floating"
    SIDEBAR = "sidebar"
    MODAL = "modal"


class Workspace(str, Enum):
    STUDIO = "studio"
    REGEXR = "regexr"


class SkillLevel(str, Enum):
    """Skill tiers, ordered from least to most experienced."""
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"

    @property
    def rank(self) -> int:
        return _SKILL_ORDER.index(self)


_SKILL_ORDER = [SkillLevel.BEGINNER, SkillLevel.INTERMEDIATE, SkillLevel.ADVANCED, SkillLevel.EXPERT]


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def weight(self) -> int:
        return {"low": 1, "medium": 2, "high": 3}[self.value]


class Pace(str, Enum):
    FAST = "fast"
    NORMAL = "normal"
    SLOW = "slow"

    @property
    def multiplier(self) -> float:
        return {"fast": 0.7, "normal": 1.0, "slow": 1.5}[self.value]


@dataclass(frozen=True)
class SessionStats:
    item_count: int = 0
    completed_count: int = 0
    active_workspace: Workspace = Workspace.STUDIO
    recent_actions: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "itemCount": self.item_count,
            "completedCount": self.completed_count,
            "activeWorkspace": self.active_workspace.value,
            "recentActions": list(self.recent_actions),
        }


@dataclass(frozen=True)
class HelpContext:
    """What a piece of help is about. A new instance is created per request."""
    feature: str
    component: str
    user_action: Optional[str] = None
    current_data: Any = None
    session_context: Optional[SessionStats] = None

    @property
    def fingerprint(self) -> str:
        return f"{self.feature}:{self.component}:{self.user_action or 'viewing'}"

    def merged(self, **changes: Any) -> "HelpContext":
        """Copy with ``changes`` applied.

        Keys that are not context fields are merged into ``current_data`` when
        it is a dict (or unset); otherwise they are dropped.
        """
        known = {f.name for f in fields(self)}
        updates = {k: v for k, v in changes.items() if k in known}
        extra = {k: v for k, v in changes.items() if k not in known}
        if extra:
            data = updates.get("current_data", self.current_data)
            if data is None or isinstance(data, dict):
                updates["current_data"] = {**(data or {}), **extra}
            else:
                logger.debug(f"Dropping context keys {sorted(extra)}: current_data is not a dict")
        return replace(self, **updates)

    def describe(self) -> str:
        lines = [
            f"Feature: {self.feature}",
            f"Component: {self.component}",
            f"User Action: {self.user_action or 'viewing'}",
        ]
        if self.session_context is not None:
            lines.append(f"Workspace: {self.session_context.active_workspace.value}")
            if self.session_context.recent_actions:
                lines.append(f"Recent Actions: {', '.join(self.session_context.recent_actions)}")
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "feature": self.feature,
            "component": self.component,
            "userAction": self.user_action,
        }
        if self.session_context is not None:
            data["sessionContext"] = self.session_context.to_dict()
        return data


@dataclass(frozen=True)
class HelpViewState:
    """Snapshot handed to the rendering collaborator."""
    is_visible: bool
    context: Optional[HelpContext]
    placement: Placement


@dataclass(frozen=True)
class Recommendation:
    target_id: str
    reason: str
    confidence: float
    priority: Priority = Priority.MEDIUM


@dataclass(frozen=True)
class Insight:
    type: str
    title: str
    content: str
    confidence: float = 0.7
    actionable: bool = True
    priority: Priority = Priority.MEDIUM
    category: str = "productivity"


@dataclass(frozen=True)
class FaqEntry:
    question: str
    answer: str


@dataclass(frozen=True)
class TutorialPersonalization:
    difficulty_adjustments: Dict[str, str] = field(default_factory=dict)
    personalized_hints: Dict[str, List[str]] = field(default_factory=dict)
    recommended_next: Tuple[str, ...] = ()
    skip_suggestions: Tuple[str, ...] = ()


@dataclass(frozen=True)
class DisclosureLevel:
    id: str
    title: str
    complexity: SkillLevel
    prerequisites: Tuple[str, ...] = ()
    estimated_minutes: Optional[int] = None
    description: str = ""


@dataclass(frozen=True)
class TutorialStep:
    id: str
    title: str
    target_ref: Optional[str] = None
    duration_sec: Optional[float] = None
    interaction_required: bool = False
    validate: Optional[Callable[[], bool]] = field(default=None, compare=False)
    hints: Tuple[str, ...] = ()
    description: str = ""


@dataclass(frozen=True)
class Tutorial:
    id: str
    title: str
    steps: Tuple[TutorialStep, ...]
    estimated_minutes: int = 5
    category: SkillLevel = SkillLevel.BEGINNER
    description: str = ""
    learning_objectives: Tuple[str, ...] = ()

    @property
    def last_index(self) -> int:
        return len(self.steps) - 1


__all__ = [
    "Placement",
    "Workspace",
    "SkillLevel",
    "Priority",
    "Pace",
    "SessionStats",
    "HelpContext",
    "HelpViewState",
    "Recommendation",
    "Insight",
    "FaqEntry",
    "TutorialPersonalization",
    "DisclosureLevel",
    "TutorialStep",
    "Tutorial",
]
