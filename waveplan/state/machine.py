"""Task execution state machine."""

import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Optional, Union

from .persistence import (
    AffectedFile,
    Escalation,
    EscalationOption,
    EscalationTrigger,
    FileAction,
    RunState,
    RunStatus,
    TaskExecution,
    TaskStatus,
    load_run_state,
    save_run_state,
    utc_now,
)

logger = logging.getLogger(__name__)

FileSpec = Union[AffectedFile, tuple[str, str], dict, str]


class RunStateError(Exception):
    """Base class for rejected run state operations."""

    pass


class TaskNotFoundError(RunStateError):
    """Task id is not part of the run."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task not found: {task_id}")


class StateTransitionError(RunStateError):
    """Task is not in a state that allows the requested operation."""

    def __init__(self, task_id: str, status: TaskStatus, expected: Iterable[TaskStatus], message: str = ""):
        self.task_id = task_id
        self.status = status
        self.expected = tuple(expected)
        if not message:
            allowed = ", ".join(s.value for s in self.expected) or "none"
            message = f"Task {task_id} is {status.value}, expected {allowed}"
        super().__init__(message)


def create_escalation(
    trigger: Union[EscalationTrigger, str],
    question: str,
    context: str = "",
    options: Optional[Iterable[Union[tuple[str, str], str]]] = None,
    recommendation: str = "",
    recommendation_reason: str = "",
) -> Escalation:
    """Build an escalation with options numbered from 1.

    Args:
        trigger: Escalation trigger (T1-T7)
        question: Question for the human
        context: What the task was doing when it got stuck
        options: (description, impact) pairs or bare descriptions
        recommendation: Recommended option
        recommendation_reason: Why it is recommended

    Returns:
        Escalation
    """
    numbered = []
    for idx, option in enumerate(options or [], start=1):
        if isinstance(option, str):
            description, impact = option, ""
        else:
            description, impact = option
        numbered.append(EscalationOption(id=idx, description=description, impact=impact))

    return Escalation(
        trigger=EscalationTrigger(trigger),
        context=context,
        question=question,
        options=numbered,
        recommendation=recommendation,
        recommendation_reason=recommendation_reason,
    )


def select_next_task(state: RunState) -> Optional[TaskExecution]:
    """Pick the task to work on next.

    An escalated task always wins so an unresolved question is never
    skipped; otherwise the first backlog task in plan order.
    """
    for task in state.tasks:
        if task.status == TaskStatus.WAITING_INPUT:
            return task
    for task in state.tasks:
        if task.status == TaskStatus.BACKLOG:
            return task
    return None


def calculate_progress(state: RunState) -> int:
    """Percentage of done tasks, halves rounded up."""
    total = len(state.tasks)
    if not total:
        return 0
    done = sum(1 for t in state.tasks if t.status == TaskStatus.DONE)
    return (done * 200 + total) // (total * 2)


class RunMachine:
    """Owns the lifecycle of every task in a run."""

    # Valid task transitions
    TRANSITIONS = {
        TaskStatus.BACKLOG: [
            TaskStatus.IN_PROGRESS,
        ],
        TaskStatus.IN_PROGRESS: [
            TaskStatus.WAITING_INPUT,
            TaskStatus.DONE,
            TaskStatus.FAILED,
        ],
        TaskStatus.WAITING_INPUT: [
            TaskStatus.IN_PROGRESS,  # Resolve
            TaskStatus.FAILED,
        ],
        TaskStatus.DONE: [],  # Terminal
        TaskStatus.FAILED: [],  # Terminal
    }

    def __init__(self, state_dir: Optional[Path] = None, state: Optional[RunState] = None):
        """Initialize state machine.

        Args:
            state_dir: Project state directory; None keeps the run in memory
            state: Explicit run state (skips loading from state_dir)
        """
        self.state_dir = state_dir
        self.state = state if state is not None else self._load_or_create()

    def _load_or_create(self) -> RunState:
        """Load existing run state or create an empty one."""
        if self.state_dir is not None:
            existing = load_run_state(self.state_dir)
            if existing:
                logger.info(
                    f"Resuming run in state {existing.status.value} "
                    f"({len(existing.tasks)} tasks, current={existing.current_task_id})"
                )
                return existing

        return RunState()

    def save(self) -> None:
        """Persist run state if backed by a state directory."""
        if self.state_dir is not None:
            save_run_state(self.state, self.state_dir)

    @property
    def status(self) -> RunStatus:
        return self.state.status

    @property
    def current_task(self) -> Optional[TaskExecution]:
        if not self.state.current_task_id:
            return None
        return self.state.get_task(self.state.current_task_id)

    def load_tasks(self, tasks: list[TaskExecution]) -> None:
        """Replace the run's task list, resetting it to idle.

        Args:
            tasks: Task executions in plan order
        """
        seen: set[str] = set()
        for task in tasks:
            if task.task_id in seen:
                raise RunStateError(f"Duplicate task id in run: {task.task_id}")
            seen.add(task.task_id)

        self.state = RunState(tasks=tasks)
        logger.info(f"Run activated with {len(tasks)} tasks")
        self.save()

    def get_task(self, task_id: str) -> Optional[TaskExecution]:
        """Get task state.

        Args:
            task_id: Task identifier

        Returns:
            TaskExecution or None
        """
        return self.state.get_task(task_id)

    def can_transition(self, task_id: str, new_status: TaskStatus) -> bool:
        task = self.get_task(task_id)
        if task is None:
            return False
        return new_status in self.TRANSITIONS.get(task.status, [])

    def _require(self, task_id: str, *expected: TaskStatus) -> TaskExecution:
        task = self.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        if task.status not in expected:
            raise StateTransitionError(task_id, task.status, expected)
        return task

    def _set_status(self, task: TaskExecution, new_status: TaskStatus) -> None:
        if new_status not in self.TRANSITIONS.get(task.status, []):
            raise StateTransitionError(
                task.task_id,
                task.status,
                [s for s, targets in self.TRANSITIONS.items() if new_status in targets],
            )
        logger.info(f"Task {task.task_id}: {task.status.value} -> {new_status.value}")
        task.status = new_status

    def start(self, task_id: str) -> TaskExecution:
        """Move a backlog task to in_progress and make it current.

        Raises:
            TaskNotFoundError: Unknown task id
            StateTransitionError: Task not in backlog, or another task is current
        """
        task = self._require(task_id, TaskStatus.BACKLOG)

        current = self.current_task
        if current is not None and current.task_id != task_id and not current.status.is_terminal:
            raise StateTransitionError(
                task_id,
                task.status,
                [TaskStatus.BACKLOG],
                message=f"Cannot start {task_id}: {current.task_id} is still {current.status.value}",
            )

        self._set_status(task, TaskStatus.IN_PROGRESS)
        task.started_at = utc_now()
        self.state.current_task_id = task_id
        self.state.status = RunStatus.RUNNING
        self.save()
        return task

    def escalate(self, task_id: str, escalation: Escalation) -> TaskExecution:
        """Suspend an in-progress task on a question.

        Raises:
            TaskNotFoundError: Unknown task id
            StateTransitionError: Task not in_progress
        """
        task = self._require(task_id, TaskStatus.IN_PROGRESS)

        self._set_status(task, TaskStatus.WAITING_INPUT)
        task.escalation = escalation
        self.state.current_task_id = task_id
        self.state.status = RunStatus.WAITING_INPUT
        logger.info(f"Task {task_id} escalated: [{escalation.trigger.value}] {escalation.question}")
        self.save()
        return task

    def resolve(self, task_id: str, resolution: str) -> TaskExecution:
        """Answer a pending escalation and resume the task.

        The escalation stays on the task with its resolution recorded.

        Raises:
            TaskNotFoundError: Unknown task id
            StateTransitionError: Task not waiting_input
        """
        task = self._require(task_id, TaskStatus.WAITING_INPUT)

        self._set_status(task, TaskStatus.IN_PROGRESS)
        if task.escalation is not None:
            task.escalation.resolution = resolution
            task.escalation.resolved_at = utc_now()
        self.state.current_task_id = task_id
        self.state.status = RunStatus.RUNNING
        logger.info(f"Task {task_id} escalation resolved: {resolution}")
        self.save()
        return task

    def complete(
        self,
        task_id: str,
        affected_files: Optional[Iterable[FileSpec]] = None,
        quality_score: Optional[float] = None,
    ) -> TaskExecution:
        """Finish an in-progress task.

        Args:
            task_id: Task identifier
            affected_files: Files touched, as AffectedFile, (path, action),
                dict or bare path
            quality_score: Score supplied by the caller

        Raises:
            TaskNotFoundError: Unknown task id
            StateTransitionError: Task not in_progress
        """
        task = self._require(task_id, TaskStatus.IN_PROGRESS)

        self._set_status(task, TaskStatus.DONE)
        task.affected_files = [_coerce_file(f) for f in affected_files or []]
        task.quality_score = quality_score
        task.completed_at = utc_now()

        if self.state.current_task_id == task_id:
            self.state.current_task_id = None

        if all(t.status.is_terminal for t in self.state.tasks):
            self.state.status = RunStatus.COMPLETED
            self.state.completed_at = utc_now()
            logger.info("All tasks finished; run completed")
        else:
            self.state.status = RunStatus.RUNNING

        self.save()
        return task

    def fail(self, task_id: str) -> TaskExecution:
        """Mark an in-progress or escalated task as failed.

        Failure is local to the task; other tasks can still be started.

        Raises:
            TaskNotFoundError: Unknown task id
            StateTransitionError: Task not in_progress or waiting_input
        """
        task = self._require(task_id, TaskStatus.IN_PROGRESS, TaskStatus.WAITING_INPUT)

        self._set_status(task, TaskStatus.FAILED)
        task.completed_at = utc_now()
        if self.state.current_task_id == task_id:
            self.state.current_task_id = None
        self.state.status = RunStatus.FAILED
        logger.error(f"Task {task_id} failed")
        self.save()
        return task

    def next_task(self) -> Optional[TaskExecution]:
        """Select the next task; marks the run completed when all are done.

        Returns:
            The escalated task, else the first backlog task, else None
        """
        task = select_next_task(self.state)
        if task is not None:
            logger.debug(f"Next task: {task.task_id} ({task.status.value})")
            return task

        if self.state.tasks and all(t.status == TaskStatus.DONE for t in self.state.tasks):
            if self.state.status != RunStatus.COMPLETED:
                self.state.status = RunStatus.COMPLETED
                self.state.completed_at = self.state.completed_at or utc_now()
                self.save()
        else:
            logger.debug("No pending tasks")
        return None

    def progress(self) -> int:
        return calculate_progress(self.state)

    def summary(self) -> dict[str, int]:
        """Count tasks per status."""
        counts = {status.value: 0 for status in TaskStatus}
        for task in self.state.tasks:
            counts[task.status.value] += 1
        counts["total"] = len(self.state.tasks)
        return counts


def _coerce_file(value: FileSpec) -> AffectedFile:
    if isinstance(value, AffectedFile):
        return value
    if isinstance(value, dict):
        return AffectedFile(**value)
    if isinstance(value, str):
        return AffectedFile(path=value)
    path, action = value
    return AffectedFile(path=path, action=FileAction(action))
