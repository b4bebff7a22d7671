"""Action log and session statistics.

Both are owned by a :class:`helpflow.session.HelpSession` and written only
through ``track_user_action``. The log is a ring buffer of the last ten
actions; the statistics are a fold over every tracked action and are handed
out as immutable :class:`SessionStats` snapshots.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Deque, List, Tuple

from .models import SessionStats, Workspace

logger = logging.getLogger(__name__)

ACTION_LOG_SIZE = 10
RECENT_ACTIONS_IN_CONTEXT = 5

ITEM_CREATED_MARKERS: Tuple[str, ...] = ("node-created", "item-created")
TASK_COMPLETED_MARKER = "task-completed"
WORKSPACE_SWITCHED_MARKER = "workspace-switched"


class ActionLog:
    """Bounded ring buffer of recent user actions."""

    def __init__(self, size: int = ACTION_LOG_SIZE):
        self._entries: Deque[str] = deque(maxlen=size)

    def append(self, action: str) -> None:
        self._entries.append(action)

    def recent(self, count: int = RECENT_ACTIONS_IN_CONTEXT) -> List[str]:
        if count <= 0:
            return []
        return list(self._entries)[-count:]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(list(self._entries))

    def clear(self) -> None:
        self._entries.clear()


class SessionStatistics:
    """Coarse counters derived from the stream of tracked actions."""

    def __init__(self) -> None:
        self.item_count = 0
        self.completed_count = 0
        self.active_workspace = Workspace.STUDIO

    def apply(self, action: str) -> None:
        if any(marker in action for marker in ITEM_CREATED_MARKERS):
            self.item_count += 1
        elif TASK_COMPLETED_MARKER in action:
            self.completed_count += 1
        elif WORKSPACE_SWITCHED_MARKER in action:
            self.active_workspace = Workspace.STUDIO if "studio" in action else Workspace.REGEXR
            logger.debug(f"Active workspace is now {self.active_workspace.value}")

    def snapshot(self, log: ActionLog) -> SessionStats:
        return SessionStats(
            item_count=self.item_count,
            completed_count=self.completed_count,
            active_workspace=self.active_workspace,
            recent_actions=tuple(log.recent(RECENT_ACTIONS_IN_CONTEXT)),
        )


__all__ = [
    "ActionLog",
    "SessionStatistics",
    "ACTION_LOG_SIZE",
    "RECENT_ACTIONS_IN_CONTEXT",
]
