"""
Tests for the tutorial player state machine.
"""

import asyncio
import json
from unittest.mock import Mock

import pytest

from helpflow.events import (
    HIGHLIGHT_CLEARED,
    HIGHLIGHT_REQUESTED,
    TUTORIAL_COMPLETED,
    TUTORIAL_EXITED,
)
from helpflow.gateway import RecommendationGateway
from helpflow.keyboard import KeyEvent
from helpflow.models import Pace, Tutorial, TutorialStep
from helpflow.tutorial import TutorialPlayer


def make_tutorial(*steps, tutorial_id="t1"):
    return Tutorial(id=tutorial_id, title="Tutorial", steps=tuple(steps))


@pytest.fixture
def player(scheduler, bus):
    return TutorialPlayer(scheduler, events=bus)


@pytest.fixture
def three_steps():
    return make_tutorial(
        TutorialStep("s0", "Zero", duration_sec=10),
        TutorialStep("s1", "One", duration_sec=10),
        TutorialStep("s2", "Two", duration_sec=10),
    )


class TestNavigation:

    def test_start(self, player, three_steps, scheduler):
        scheduler.advance(100)
        player.start(three_steps)
        assert player.is_active
        assert player.step_index == 0
        assert player.progress.tutorial_started_at == 100
        assert player.progress.step_started_at == 100

    def test_empty_tutorial_is_not_started(self, player):
        player.start(make_tutorial())
        assert not player.is_active

    def test_next_records_step_time(self, player, three_steps, scheduler):
        player.start(three_steps)
        scheduler.advance(4_000)
        player.next()
        assert player.step_index == 1
        assert player.progress.time_per_step_ms == {("t1", 0): 4_000}

    def test_next_on_last_step_is_noop(self, player, three_steps):
        player.start(three_steps)
        player.next()
        player.next()
        player.next()
        assert player.step_index == 2
        assert player.is_active

    def test_previous(self, player, three_steps, scheduler):
        player.start(three_steps)
        player.previous()
        assert player.step_index == 0

        player.next()
        scheduler.advance(2_000)
        player.previous()
        assert player.step_index == 0
        assert ("t1", 1) not in player.progress.time_per_step_ms
        assert player.progress.step_started_at == 2_000

    def test_complete_records_total_and_resets(self, player, three_steps, scheduler, recorder):
        done = Mock()
        player.on_complete = done
        player.start(three_steps)
        scheduler.advance(7_000)
        player.complete()

        assert not player.is_active
        assert player.step_index == 0
        assert player.is_completed("t1")
        assert player.progress.time_per_tutorial_ms == {"t1": 7_000}
        done.assert_called_once_with("t1", 7_000)
        assert TUTORIAL_COMPLETED in [e.name for e in recorder]

    def test_exit_does_not_complete(self, player, three_steps, recorder):
        player.start(three_steps)
        player.exit()
        assert not player.is_active
        assert not player.is_completed("t1")
        assert TUTORIAL_EXITED in [e.name for e in recorder]

    def test_operations_while_idle_are_noops(self, player):
        player.next()
        player.previous()
        player.complete()
        player.exit()
        assert player.validate_and_continue() is False
        assert not player.is_active

    def test_step_time_never_exceeds_total(self, player, three_steps, scheduler):
        player.start(three_steps)
        for op, ms in [("next", 3_000), ("next", 1_000), ("previous", 2_000), ("next", 500), ("previous", 4_000), ("next", 700)]:
            scheduler.advance(ms)
            getattr(player, op)()
        scheduler.advance(1_000)
        player.complete()
        assert player.progress.step_time_for("t1") <= player.progress.time_per_tutorial_ms["t1"]


class TestAutoAdvance:

    def test_gated_step_stops_auto_advance(self, player, scheduler):
        tutorial = make_tutorial(
            TutorialStep("s0", "Zero", duration_sec=5),
            TutorialStep("s1", "One", interaction_required=True),
        )
        player.start(tutorial)
        player.play()
        scheduler.advance(5_000)
        assert player.step_index == 1
        assert not player.auto_advance_armed

        scheduler.advance(600_000)
        assert player.step_index == 1
        assert player.is_active

    def test_last_step_completes(self, player, scheduler):
        player.play()
        player.start(make_tutorial(TutorialStep("only", "Only", duration_sec=2)))
        scheduler.advance(2_000)
        assert not player.is_active
        assert player.is_completed("t1")

    def test_default_duration_and_pace(self, player, scheduler):
        player.start(make_tutorial(TutorialStep("a", "A"), TutorialStep("b", "B")))
        player.set_pace(Pace.SLOW)
        player.play()
        scheduler.advance(44_999)
        assert player.step_index == 0
        scheduler.advance(1)
        assert player.step_index == 1

    def test_fast_pace(self, player, three_steps, scheduler):
        player.set_pace(Pace.FAST)
        player.start(three_steps)
        player.play()
        scheduler.advance(7_001)
        assert player.step_index == 1

    def test_pause_cancels_timer(self, player, three_steps, scheduler):
        player.start(three_steps)
        player.toggle_play()
        assert player.auto_advance_armed
        player.toggle_play()
        assert not player.auto_advance_armed
        scheduler.advance(60_000)
        assert player.step_index == 0

    def test_at_most_one_timer(self, player, three_steps, scheduler):
        player.start(three_steps)
        player.play()
        for action in (player.next, player.previous, lambda: player.set_pace(Pace.FAST), player.play):
            action()
            assert scheduler.pending <= 1

    def test_manual_navigation_restarts_timer(self, player, three_steps, scheduler):
        player.start(three_steps)
        player.play()
        scheduler.advance(9_000)
        player.next()
        scheduler.advance(9_000)
        assert player.step_index == 1
        scheduler.advance(1_000)
        assert player.step_index == 2


class TestValidation:

    def test_false_leaves_state_unchanged(self, player):
        tutorial = make_tutorial(
            TutorialStep("a", "A", interaction_required=True, validate=lambda: False),
            TutorialStep("b", "B"),
        )
        player.start(tutorial)
        assert player.validate_and_continue() is False
        assert player.step_index == 0

    def test_true_advances(self, player):
        tutorial = make_tutorial(
            TutorialStep("a", "A", interaction_required=True, validate=lambda: True),
            TutorialStep("b", "B"),
        )
        player.start(tutorial)
        assert player.validate_and_continue() is True
        assert player.step_index == 1

    def test_true_on_last_step_completes(self, player):
        player.start(make_tutorial(TutorialStep("a", "A", interaction_required=True, validate=lambda: True)))
        assert player.validate_and_continue() is True
        assert player.is_completed("t1")

    def test_raising_validator_counts_as_false(self, player):
        def broken():
            raise RuntimeError("selector not found")

        player.start(make_tutorial(TutorialStep("a", "A", validate=broken), TutorialStep("b", "B")))
        assert player.validate_and_continue() is False
        assert player.step_index == 0


class TestHighlight:

    def test_highlight_on_entry_and_exit(self, player, recorder):
        tutorial = make_tutorial(
            TutorialStep("a", "A", target_ref="#add"),
            TutorialStep("b", "B"),
        )
        player.start(tutorial)
        player.next()
        names = [e.name for e in recorder if e.name in (HIGHLIGHT_REQUESTED, HIGHLIGHT_CLEARED)]
        assert names == [HIGHLIGHT_REQUESTED, HIGHLIGHT_CLEARED]
        requested = next(e for e in recorder if e.name == HIGHLIGHT_REQUESTED)
        assert requested.data["target"] == "#add"

    def test_exit_clears_highlight(self, player, recorder):
        player.start(make_tutorial(TutorialStep("a", "A", target_ref="#add")))
        player.exit()
        assert [e.name for e in recorder][-2:] == [HIGHLIGHT_CLEARED, TUTORIAL_EXITED]


class TestKeys:

    def test_keys_only_while_active(self, player, three_steps):
        assert player.handle_key(KeyEvent("ArrowRight")) is False
        player.start(three_steps)
        assert player.handle_key(KeyEvent("ArrowRight")) is True
        assert player.step_index == 1
        assert player.handle_key(KeyEvent("ArrowLeft")) is True
        assert player.step_index == 0
        assert player.handle_key(KeyEvent(" ")) is True
        assert player.is_playing
        assert player.handle_key(KeyEvent("q")) is False
        assert player.handle_key(KeyEvent("Escape")) is True
        assert not player.is_active


class TestSessionIntegration:

    def test_actions_reported_to_session(self, session, scheduler, three_steps):
        player = session.create_tutorial_player()
        player.start(three_steps)
        player.next()
        player.previous()
        player.complete()
        assert list(session.action_log) == [
            "tutorial-started-t1",
            "tutorial-step-1",
            "tutorial-step-back-0",
            "tutorial-completed-t1",
        ]

    def test_summary(self, player, scheduler):
        for tid, ms in (("a", 1_000), ("b", 3_000)):
            player.start(make_tutorial(TutorialStep("x", "X"), tutorial_id=tid))
            scheduler.advance(ms)
            player.complete()
        summary = player.summary()
        assert summary["completed_count"] == 2
        assert summary["total_time_ms"] == 4_000
        assert summary["average_time_ms"] == 2_000


class TestPersonalization:

    @pytest.mark.asyncio
    async def test_personalized_hints(self, scheduler, service):
        service.reply = json.dumps({"personalizedHints": {"a": ["Try the toolbar"]}, "recommendedNext": ["t2"]})
        player = TutorialPlayer(scheduler, gateway=RecommendationGateway(service))
        player.start(make_tutorial(TutorialStep("a", "A", hints=("Static hint",))))

        personalization = await player.personalize()
        assert personalization.recommended_next == ("t2",)
        assert player.hints_for() == ["Static hint", "Try the toolbar"]

    @pytest.mark.asyncio
    async def test_stale_personalization_is_dropped(self, scheduler, service):
        service.reply = json.dumps({"personalizedHints": {}})
        service.gate = asyncio.Event()
        player = TutorialPlayer(scheduler, gateway=RecommendationGateway(service))
        player.start(make_tutorial(TutorialStep("a", "A")))

        task = asyncio.create_task(player.personalize())
        await asyncio.sleep(0)
        player.exit()
        service.gate.set()

        assert await task is None
        assert player.personalization is None

    @pytest.mark.asyncio
    async def test_failure_leaves_static_hints(self, scheduler, service):
        service.reply = "oops"
        player = TutorialPlayer(scheduler, gateway=RecommendationGateway(service))
        player.start(make_tutorial(TutorialStep("a", "A", hints=("Static hint",))))
        assert await player.personalize() is None
        assert player.hints_for() == ["Static hint"]
