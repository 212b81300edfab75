"""Run status dashboard."""

import logging
from enum import Enum
from pathlib import Path

from ..state.machine import calculate_progress
from ..state.persistence import RunState, TaskStatus

logger = logging.getLogger(__name__)


class StatusSymbol(str, Enum):
    """Symbols for status display."""

    DONE = "✅"
    RUNNING = "🔄"
    WAITING = "❓"
    PENDING = "⏳"
    FAILED = "❌"


_SYMBOLS = {
    TaskStatus.DONE: StatusSymbol.DONE,
    TaskStatus.IN_PROGRESS: StatusSymbol.RUNNING,
    TaskStatus.WAITING_INPUT: StatusSymbol.WAITING,
    TaskStatus.BACKLOG: StatusSymbol.PENDING,
    TaskStatus.FAILED: StatusSymbol.FAILED,
}


class StatusDashboard:
    """Summarize a run and write STATUS.md."""

    STATUS_FILE = "STATUS.md"

    def __init__(self, state: RunState, state_dir: Path):
        """Initialize status dashboard.

        Args:
            state: Current run state
            state_dir: Directory receiving STATUS.md
        """
        self.state = state
        self.state_dir = state_dir

    @property
    def status_path(self) -> Path:
        return self.state_dir / self.STATUS_FILE

    @property
    def progress(self) -> int:
        return calculate_progress(self.state)

    def counts(self) -> dict[TaskStatus, int]:
        counts = {status: 0 for status in TaskStatus}
        for task in self.state.tasks:
            counts[task.status] += 1
        return counts

    def summary_lines(self) -> list[str]:
        """Short plain-text summary for the terminal."""
        counts = self.counts()
        total = len(self.state.tasks)
        lines = [
            f"Run status: {self.state.status.value}",
            f"Progress: {counts[TaskStatus.DONE]}/{total} tasks ({self.progress}%)",
            f"Current task: {self.state.current_task_id or 'none'}",
            (
                f"Backlog: {counts[TaskStatus.BACKLOG]} | "
                f"In progress: {counts[TaskStatus.IN_PROGRESS]} | "
                f"Waiting: {counts[TaskStatus.WAITING_INPUT]} | "
                f"Done: {counts[TaskStatus.DONE]} | "
                f"Failed: {counts[TaskStatus.FAILED]}"
            ),
        ]

        for task in self.state.tasks:
            if task.status == TaskStatus.WAITING_INPUT and task.escalation:
                esc = task.escalation
                lines.append(
                    f"Escalation on {task.task_id}: [{esc.trigger.value}] "
                    f"{esc.trigger.label} - {esc.question}"
                )
        return lines

    def update(self) -> None:
        """Update STATUS.md file."""
        self.status_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.status_path, "w") as f:
            f.write(self._generate_status())

        logger.debug(f"Updated {self.status_path}")

    def _generate_status(self) -> str:
        lines = [
            "# Waveplan Run Status",
            "",
            f"**Started:** {self.state.started_at}",
            f"**Updated:** {self.state.updated_at}",
            f"**Run Status:** `{self.state.status.value}`",
            f"**Progress:** {self.progress}%",
            "",
            "## Tasks",
            "",
        ]

        current_wave = None
        for task in self.state.tasks:
            if task.wave_number != current_wave:
                current_wave = task.wave_number
                lines.extend(["", f"### Wave {current_wave}", ""])
            symbol = _SYMBOLS[task.status].value
            marker = " ⬅" if task.task_id == self.state.current_task_id else ""
            lines.append(f"- {symbol} `{task.task_id}` {task.name}{marker}")

        return "\n".join(lines) + "\n"
