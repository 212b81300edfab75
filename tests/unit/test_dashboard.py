"""Unit tests for the status dashboard."""

from waveplan.observability.dashboard import StatusDashboard
from waveplan.state.machine import create_escalation
from waveplan.state.persistence import RunState, RunStatus, TaskExecution, TaskStatus


def make_state():
    tasks = [
        TaskExecution(task_id="A-DATABASE", feature_id="A", task_kind="database", name="A - Database", wave_number=1),
        TaskExecution(task_id="A-API", feature_id="A", task_kind="api", name="A - API", wave_number=1),
        TaskExecution(task_id="B-DATABASE", feature_id="B", task_kind="database", name="B - Database", wave_number=2),
        TaskExecution(task_id="B-API", feature_id="B", task_kind="api", name="B - API", wave_number=2),
    ]
    tasks[0].status = TaskStatus.DONE
    tasks[1].status = TaskStatus.WAITING_INPUT
    tasks[1].escalation = create_escalation("T2", "Which endpoint shape?")
    return RunState(status=RunStatus.WAITING_INPUT, current_task_id="A-API", tasks=tasks)


def test_counts_and_progress(tmp_path):
    dashboard = StatusDashboard(make_state(), tmp_path)
    counts = dashboard.counts()

    assert counts[TaskStatus.DONE] == 1
    assert counts[TaskStatus.WAITING_INPUT] == 1
    assert counts[TaskStatus.BACKLOG] == 2
    assert dashboard.progress == 25


def test_summary_lines(tmp_path):
    lines = StatusDashboard(make_state(), tmp_path).summary_lines()

    assert lines[0] == "Run status: waiting_input"
    assert "Progress: 1/4 tasks (25%)" in lines
    assert "Current task: A-API" in lines
    assert lines[-1] == (
        "Escalation on A-API: [T2] Ambiguous specification - Which endpoint shape?"
    )


def test_update_writes_status_file(tmp_path):
    """Test STATUS.md groups tasks by wave and marks the current task."""
    dashboard = StatusDashboard(make_state(), tmp_path / "state")
    dashboard.update()

    content = dashboard.status_path.read_text()
    assert content.startswith("# Waveplan Run Status")
    assert "### Wave 1" in content
    assert "### Wave 2" in content
    assert "- ✅ `A-DATABASE` A - Database" in content
    assert "- ❓ `A-API` A - API ⬅" in content
    assert "- ⏳ `B-API` B - API" in content
