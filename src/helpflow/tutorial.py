"""
Tutorial Player

Drives one interactive tutorial at a time through its steps.

States are ``Idle`` (no active tutorial) and ``Stepping(tutorial, index)``.
While playing, steps that do not require interaction advance on their own
after ``duration_sec`` scaled by the learning pace; interaction-required steps
only move forward through :meth:`TutorialPlayer.validate_and_continue`.

Step highlighting is emitted as intents on the event bus; the player never
touches the rendering layer itself.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple

from .events import (
    HIGHLIGHT_CLEARED,
    HIGHLIGHT_REQUESTED,
    TUTORIAL_COMPLETED,
    TUTORIAL_EXITED,
    TUTORIAL_STARTED,
    TUTORIAL_STEP_CHANGED,
    EventBus,
)
from .gateway import ContentRequest, Ok, RecommendationGateway, ResponseKind
from .keyboard import KeyEvent, TutorialAction, TutorialKeyMap
from .models import Pace, Tutorial, TutorialPersonalization, TutorialStep
from .timers import Scheduler, TimerSlot

if TYPE_CHECKING:
    from .session import HelpSession

logger = logging.getLogger(__name__)

DEFAULT_STEP_DURATION_SEC = 30.0
TUTORIAL_FEATURE = "interactive-tutorials"
TUTORIAL_COMPONENT = "tutorial-player"

StepKey = Tuple[str, int]


@dataclass
class TutorialProgress:
    active_tutorial: Optional[Tutorial] = None
    step_index: int = 0
    tutorial_started_at: Optional[float] = None
    step_started_at: Optional[float] = None
    completed: List[str] = field(default_factory=list)
    time_per_step_ms: Dict[StepKey, float] = field(default_factory=dict)
    time_per_tutorial_ms: Dict[str, float] = field(default_factory=dict)

    def reset(self) -> None:
        """Back to idle. History (completions and timings) is kept."""
        self.active_tutorial = None
        self.step_index = 0
        self.tutorial_started_at = None
        self.step_started_at = None

    def step_time_for(self, tutorial_id: str) -> float:
        return sum(ms for (tid, _), ms in self.time_per_step_ms.items() if tid == tutorial_id)


class TutorialPlayer:
    """State machine for stepping through tutorials."""

    def __init__(
        self,
        scheduler: Scheduler,
        events: Optional[EventBus] = None,
        session: Optional["HelpSession"] = None,
        pace: Pace = Pace.NORMAL,
        default_step_duration_sec: float = DEFAULT_STEP_DURATION_SEC,
        on_complete: Optional[Callable[[str, float], Any]] = None,
        gateway: Optional[RecommendationGateway] = None,
        key_map: Optional[TutorialKeyMap] = None,
    ):
        self.scheduler = scheduler
        self.session = session
        if events is None:
            events = session.events if session is not None else EventBus()
        self.events = events
        self.pace = pace
        self.default_step_duration_sec = default_step_duration_sec
        self.on_complete = on_complete
        self.gateway = gateway or RecommendationGateway(name="tutorial")
        self.key_map = key_map or TutorialKeyMap()

        self.progress = TutorialProgress()
        self.personalization: Optional[TutorialPersonalization] = None
        self._playing = False
        self._auto_advance = TimerSlot(scheduler, name="auto-advance")

    # -- queries ---------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self.progress.active_tutorial is not None

    @property
    def is_playing(self) -> bool:
        return self._playing

    @property
    def auto_advance_armed(self) -> bool:
        return self._auto_advance.active

    @property
    def active_tutorial(self) -> Optional[Tutorial]:
        return self.progress.active_tutorial

    @property
    def step_index(self) -> int:
        return self.progress.step_index

    @property
    def current_step(self) -> Optional[TutorialStep]:
        tutorial = self.progress.active_tutorial
        if tutorial is None:
            return None
        return tutorial.steps[self.progress.step_index]

    def is_completed(self, tutorial_id: str) -> bool:
        return tutorial_id in self.progress.completed

    def step_duration_ms(self, step: TutorialStep) -> float:
        duration = step.duration_sec or self.default_step_duration_sec
        return duration * 1000 * self.pace.multiplier

    # -- navigation ------------------------------------------------------

    def start(self, tutorial: Tutorial) -> None:
        if not tutorial.steps:
            logger.warning(f"Tutorial {tutorial.id} has no steps; not starting")
            return
        if self.is_active:
            self._leave_step()

        now = self.scheduler.now()
        self.progress.active_tutorial = tutorial
        self.progress.step_index = 0
        self.progress.tutorial_started_at = now
        self.progress.step_started_at = now
        self.personalization = None

        logger.info(f"Started tutorial {tutorial.id} ({len(tutorial.steps)} steps)")
        self.events.publish(TUTORIAL_STARTED, tutorial_id=tutorial.id)
        self._enter_step()
        self._track(f"tutorial-started-{tutorial.id}", "tutorial-started")
        self._reschedule()

    def next(self) -> None:
        tutorial = self.progress.active_tutorial
        if tutorial is None or self.progress.step_index >= tutorial.last_index:
            return
        index = self.progress.step_index
        now = self.scheduler.now()
        if self.progress.step_started_at is not None:
            self.progress.time_per_step_ms[(tutorial.id, index)] = now - self.progress.step_started_at

        self._leave_step()
        self.progress.step_index = index + 1
        self.progress.step_started_at = now
        self._enter_step()
        self._track(f"tutorial-step-{index + 1}", "step-advanced")
        self._reschedule()

    def previous(self) -> None:
        if not self.is_active or self.progress.step_index <= 0:
            return
        index = self.progress.step_index
        self._leave_step()
        self.progress.step_index = index - 1
        self.progress.step_started_at = self.scheduler.now()
        self._enter_step()
        self._track(f"tutorial-step-back-{index - 1}", "step-back")
        self._reschedule()

    def complete(self) -> None:
        tutorial = self.progress.active_tutorial
        if tutorial is None or self.progress.tutorial_started_at is None:
            return
        total = self.scheduler.now() - self.progress.tutorial_started_at
        self.progress.time_per_tutorial_ms[tutorial.id] = total
        if tutorial.id not in self.progress.completed:
            self.progress.completed.append(tutorial.id)

        self._auto_advance.cancel()
        self._leave_step()
        self.progress.reset()
        self.personalization = None

        logger.info(f"Completed tutorial {tutorial.id} in {total / 1000:.1f}s")
        self.events.publish(TUTORIAL_COMPLETED, tutorial_id=tutorial.id, total_ms=total)
        if self.on_complete is not None:
            try:
                self.on_complete(tutorial.id, total)
            except Exception:
                logger.exception(f"on_complete callback failed for {tutorial.id}")
        self._track(f"tutorial-completed-{tutorial.id}", "tutorial-completed")

    def exit(self) -> None:
        """Abandon the active tutorial without recording completion."""
        tutorial = self.progress.active_tutorial
        if tutorial is None:
            return
        self._auto_advance.cancel()
        self._leave_step()
        step_index = self.progress.step_index
        self.progress.reset()
        self.personalization = None

        logger.info(f"Exited tutorial {tutorial.id} at step {step_index}")
        self.events.publish(TUTORIAL_EXITED, tutorial_id=tutorial.id, step_index=step_index)
        self._track(f"tutorial-exited-{tutorial.id}", "tutorial-exited")

    def validate_and_continue(self) -> bool:
        """Advance past the current step if its validation passes.

        A step without a ``validate`` function always passes. On the last
        step a pass completes the tutorial. A failure changes nothing.
        """
        step = self.current_step
        if step is None:
            return False
        if step.validate is not None:
            try:
                ok = bool(step.validate())
            except Exception as e:
                logger.warning(f"Validation of step {step.id} raised {type(e).__name__}: {e}")
                ok = False
            if not ok:
                logger.debug(f"Step {step.id} did not validate")
                return False

        tutorial = self.progress.active_tutorial
        if self.progress.step_index >= tutorial.last_index:
            self.complete()
        else:
            self.next()
        return True

    # -- playback --------------------------------------------------------

    def play(self) -> None:
        self._playing = True
        self._reschedule()

    def pause(self) -> None:
        self._playing = False
        self._reschedule()

    def toggle_play(self) -> None:
        if self._playing:
            self.pause()
        else:
            self.play()

    def set_pace(self, pace: Pace) -> None:
        self.pace = pace
        self._reschedule()

    def handle_key(self, event: KeyEvent) -> bool:
        """Tutorial navigation keys; only consumed while a tutorial is active."""
        if not self.is_active:
            return False
        action = self.key_map.resolve(event)
        if action is TutorialAction.NEXT:
            self.validate_and_continue()
        elif action is TutorialAction.PREVIOUS:
            self.previous()
        elif action is TutorialAction.PLAY_PAUSE:
            self.toggle_play()
        elif action is TutorialAction.EXIT:
            self.exit()
        else:
            return False
        return True

    def _reschedule(self) -> None:
        self._auto_advance.cancel()
        step = self.current_step
        if not self._playing or step is None or step.interaction_required:
            return
        self._auto_advance.arm(self.step_duration_ms(step), self._on_auto_advance)

    def _on_auto_advance(self) -> None:
        tutorial = self.progress.active_tutorial
        if tutorial is None:
            return
        if self.progress.step_index >= tutorial.last_index:
            self.complete()
        else:
            self.next()

    # -- highlight intents -----------------------------------------------

    def _enter_step(self) -> None:
        step = self.current_step
        tutorial = self.progress.active_tutorial
        self.events.publish(
            TUTORIAL_STEP_CHANGED,
            tutorial_id=tutorial.id,
            step_index=self.progress.step_index,
            step_id=step.id,
        )
        if step.target_ref:
            self.events.publish(HIGHLIGHT_REQUESTED, tutorial_id=tutorial.id, step_id=step.id, target=step.target_ref)

    def _leave_step(self) -> None:
        step = self.current_step
        if step is not None and step.target_ref:
            self.events.publish(
                HIGHLIGHT_CLEARED,
                tutorial_id=self.progress.active_tutorial.id,
                step_id=step.id,
                target=step.target_ref,
            )

    # -- personalization and reporting -----------------------------------

    def hints_for(self, step: Optional[TutorialStep] = None) -> List[str]:
        """Static hints of ``step`` followed by personalized ones, if any."""
        step = step or self.current_step
        if step is None:
            return []
        hints = list(step.hints)
        if self.personalization is not None:
            for hint in self.personalization.personalized_hints.get(step.id, []):
                if hint not in hints:
                    hints.append(hint)
        return hints

    async def personalize(self) -> Optional[TutorialPersonalization]:
        """Fetch personalization for the active tutorial.

        The reply is dropped if a different tutorial (or none) is active by
        the time it arrives.
        """
        tutorial = self.progress.active_tutorial
        if tutorial is None:
            return None

        fingerprint = f"{TUTORIAL_FEATURE}:{tutorial.id}:personalize"
        request = ContentRequest(
            kind=ResponseKind.PERSONALIZATION,
            context_description=(
                f"Personalize the tutorial '{tutorial.title}' for this learner.\n"
                f"Completed Tutorials: {', '.join(self.progress.completed) or 'none'}\n"
                f"Preferred Pace: {self.pace.value}\n"
                f"Steps: {', '.join(step.id for step in tutorial.steps)}"
            ),
            structured_context={
                "tutorialId": tutorial.id,
                "steps": [step.id for step in tutorial.steps],
                "completedTutorials": list(self.progress.completed),
                "pace": self.pace.value,
            },
        )
        result = await self.gateway.fetch(fingerprint, request)
        if self.progress.active_tutorial is not tutorial:
            logger.debug(f"Discarding personalization for inactive tutorial {tutorial.id}")
            return None
        if isinstance(result, Ok):
            self.personalization = result.data
        return self.personalization

    def summary(self) -> Dict[str, Any]:
        completed = len(self.progress.completed)
        total = sum(self.progress.time_per_tutorial_ms.get(tid, 0.0) for tid in self.progress.completed)
        return {
            "completed_count": completed,
            "completed": list(self.progress.completed),
            "total_time_ms": total,
            "average_time_ms": total / completed if completed else 0.0,
        }

    def close(self) -> None:
        """Tear down: exit any active tutorial and ignore late replies."""
        self._playing = False
        self.exit()
        self._auto_advance.cancel()
        self.gateway.close()

    def _track(self, action: str, user_action: str) -> None:
        if self.session is not None:
            self.session.track_user_action(
                action,
                feature=TUTORIAL_FEATURE,
                component=TUTORIAL_COMPONENT,
                user_action=user_action,
            )


__all__ = ["TutorialPlayer", "TutorialProgress", "DEFAULT_STEP_DURATION_SEC"]
