from helpflow.action_log import ACTION_LOG_SIZE, ActionLog, SessionStatistics
from helpflow.models import HelpContext, SessionStats, Workspace


def test_log_keeps_last_ten():
    log = ActionLog()
    for i in range(15):
        log.append(f"a{i}")
    assert len(log) == ACTION_LOG_SIZE
    assert list(log)[0] == "a5"
    assert log.recent(5) == ["a10", "a11", "a12", "a13", "a14"]
    assert log.recent(0) == []


def test_statistics_fold_over_actions():
    stats = SessionStatistics()
    for action in ["node-created", "item-created-7", "task-completed", "noop", "node-created"]:
        stats.apply(action)
    assert stats.item_count == 3
    assert stats.completed_count == 1


def test_counts_are_not_capped_by_log_size():
    log, stats = ActionLog(), SessionStatistics()
    for _ in range(25):
        log.append("node-created")
        stats.apply("node-created")
    snapshot = stats.snapshot(log)
    assert snapshot.item_count == 25
    assert len(snapshot.recent_actions) == 5


def test_workspace_switch():
    stats = SessionStatistics()
    stats.apply("workspace-switched-regexr")
    assert stats.active_workspace is Workspace.REGEXR
    stats.apply("workspace-switched-to-studio")
    assert stats.active_workspace is Workspace.STUDIO


def test_snapshot_is_a_value():
    log, stats = ActionLog(), SessionStatistics()
    log.append("opened")
    snap = stats.snapshot(log)
    log.append("closed")
    assert snap.recent_actions == ("opened",)
    assert snap.to_dict() == {
        "itemCount": 0,
        "completedCount": 0,
        "activeWorkspace": "studio",
        "recentActions": ["opened"],
    }


def test_context_fingerprint_and_description():
    ctx = HelpContext(feature="studio", component="canvas")
    assert ctx.fingerprint == "studio:canvas:viewing"
    assert ctx.merged(user_action="drag").fingerprint == "studio:canvas:drag"

    described = ctx.merged(session_context=SessionStats(recent_actions=("x", "y"))).describe()
    assert "Feature: studio" in described
    assert "Recent Actions: x, y" in described
