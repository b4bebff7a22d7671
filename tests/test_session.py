"""
Tests for HelpSession: action tracking, next steps, widget ownership and teardown.
"""

import json

import pytest

from helpflow.config import GatewayConfig, HelpflowConfig, KeyBindings
from helpflow.events import HELP_DETAILED_REQUESTED
from helpflow.keyboard import KeyEvent
from helpflow.models import DisclosureLevel, SkillLevel, Tutorial, TutorialStep, Workspace
from helpflow.session import FALLBACK_NEXT_STEPS, OFFLINE_NEXT_STEPS, HelpSession, create_session
from helpflow.triggers import FOCUS, UIElement


@pytest.fixture
def online(scheduler, config, service):
    s = HelpSession(config=config, scheduler=scheduler, service=service)
    yield s
    s.close()


class TestActionTracking:

    def test_statistics_fold(self, session):
        for action in ("node-created", "item-created", "task-completed", "workspace-switched-regexr"):
            session.track_user_action(action)
        stats = session.session_stats()
        assert stats.item_count == 2
        assert stats.completed_count == 1
        assert stats.active_workspace is Workspace.REGEXR

    def test_log_keeps_last_ten(self, session):
        for i in range(12):
            session.track_user_action(f"a{i}")
        assert len(session.action_log) == 10
        assert session.session_stats().recent_actions == ("a7", "a8", "a9", "a10", "a11")

    def test_context_merged_only_while_visible(self, session, ctx):
        session.track_user_action("drag", user_action="drag")
        assert session.context is None

        session.show_help(ctx)
        session.track_user_action("drag", user_action="drag")
        assert session.context.user_action == "drag"
        assert session.context.feature == "studio"

    def test_arbitrary_action_details_are_kept(self, session, ctx):
        session.show_help(ctx)
        session.track_user_action("node-created", node_id="n1")
        assert session.context.current_data == {"node_id": "n1"}
        assert session.session_stats().item_count == 1

    def test_show_help_attaches_session_stats(self, session, ctx):
        session.track_user_action("node-created")
        session.show_help(ctx)
        assert session.context.session_context.item_count == 1

    def test_request_detailed_help(self, session, ctx):
        seen = []
        session.events.subscribe(HELP_DETAILED_REQUESTED, seen.append)
        session.show_help(ctx)
        session.request_detailed_help("studio")
        assert seen[0].data["feature"] == "studio"
        assert seen[0].data["context"].component == "canvas"


class TestNextSteps:

    @pytest.mark.asyncio
    async def test_offline(self, session, ctx):
        assert not session.content_enabled
        assert await session.suggest_next_steps(ctx) == OFFLINE_NEXT_STEPS

    @pytest.mark.asyncio
    async def test_capped_at_five(self, online, service, ctx):
        service.reply = json.dumps([f"step {i}" for i in range(8)])
        steps = await online.suggest_next_steps(ctx)
        assert steps == [f"step {i}" for i in range(5)]

    @pytest.mark.asyncio
    async def test_fallback_on_failure(self, online, service, ctx):
        service.error = RuntimeError("boom")
        assert await online.suggest_next_steps(ctx) == FALLBACK_NEXT_STEPS

    @pytest.mark.asyncio
    async def test_fallback_on_malformed(self, online, service, ctx):
        service.reply = '{"steps": "not a list"}'
        assert await online.suggest_next_steps(ctx) == FALLBACK_NEXT_STEPS

    @pytest.mark.asyncio
    async def test_fallback_on_undecodable_reply(self, online, service, ctx):
        service.reply = "[" * 100000
        assert await online.suggest_next_steps(ctx) == FALLBACK_NEXT_STEPS

    @pytest.mark.asyncio
    async def test_recent_actions_are_sent(self, online, service, ctx):
        service.reply = '["Save"]'
        online.track_user_action("node-created")
        await online.suggest_next_steps(ctx)
        assert service.requests[0].structured_context["recentActions"] == ["node-created"]


class TestTeardown:

    def test_close_releases_triggers_and_timers(self, scheduler, config, ctx):
        session = HelpSession(config=config, scheduler=scheduler)
        element = UIElement("add-node")
        session.register_help_trigger(element, ctx)
        element.dispatch(FOCUS)
        assert session.is_visible
        assert scheduler.pending == 1

        session.close()
        assert element.listener_count() == 0
        assert not session.is_visible
        assert scheduler.pending == 0
        assert session.closed

    def test_close_is_idempotent(self, session):
        session.close()
        session.close()
        assert session.closed

    def test_closed_session_ignores_show(self, session, ctx):
        session.close()
        session.show_help(ctx)
        assert not session.is_visible

    def test_owned_widgets_are_closed(self, session, scheduler):
        player = session.create_tutorial_player()
        player.start(Tutorial("t", "T", (TutorialStep("a", "A"), TutorialStep("b", "B"))))
        player.play()
        session.create_disclosure("studio", [DisclosureLevel("x", "X", SkillLevel.BEGINNER)])
        session.create_panel()

        session.close()
        assert not player.is_active
        assert scheduler.pending == 0

    def test_context_manager(self, scheduler, ctx):
        with HelpSession(scheduler=scheduler) as session:
            session.show_help(ctx)
        assert session.closed
        assert scheduler.pending == 0

    @pytest.mark.asyncio
    async def test_async_context_manager(self, scheduler, service):
        async with HelpSession(scheduler=scheduler, service=service) as session:
            assert session.content_enabled
        assert session.closed


def test_create_session_reads_environment(monkeypatch, tmp_path, scheduler):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HELPFLOW_GATEWAY_URL", "http://localhost:9/generate")
    session = create_session(scheduler=scheduler)
    try:
        assert session.content_enabled
        assert session.config.gateway.url == "http://localhost:9/generate"
    finally:
        session.close()


def test_create_session_with_explicit_config(scheduler):
    config = HelpflowConfig(gateway=GatewayConfig(enabled=False))
    session = create_session(config=config, scheduler=scheduler)
    assert session.config is config
    assert not session.content_enabled
    session.close()


def test_tutorial_player_uses_configured_keys(scheduler):
    config = HelpflowConfig(keys=KeyBindings(tutorial_next="n"))
    with HelpSession(config=config, scheduler=scheduler) as session:
        player = session.create_tutorial_player()
        player.start(Tutorial("t", "T", (TutorialStep("a", "A"), TutorialStep("b", "B"))))
        assert player.handle_key(KeyEvent("ArrowRight")) is False
        assert player.handle_key(KeyEvent("n")) is True
        assert player.step_index == 1
