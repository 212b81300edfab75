"""Execution loop: activates a plan into a run and advances it one task at a time."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..config.models import WaveplanConfig
from ..observability.dashboard import StatusDashboard
from ..state.machine import (
    RunMachine,
    StateTransitionError,
    TaskNotFoundError,
    select_next_task,
)
from ..state.persistence import (
    PlanState,
    PlanStatus,
    RunState,
    RunStatus,
    TaskExecution,
    TaskStatus,
    save_plan,
)
from ..tasks.plan import plan_tasks, require_plan

logger = logging.getLogger(__name__)


class StepOutcome(str, Enum):
    """What a single step did."""

    STARTED = "started"
    IN_PROGRESS = "in_progress"
    ESCALATED = "escalated"
    DRY_RUN = "dry_run"
    COMPLETED = "completed"
    NO_PENDING = "no_pending"


@dataclass
class StepResult:
    """Result of ExecutionLoop.step."""

    outcome: StepOutcome
    task: Optional[TaskExecution] = None
    progress: int = 0


def build_executions(plan: PlanState, profile_type: Optional[str] = None) -> list[TaskExecution]:
    """Flatten a plan into backlog task executions in wave order.

    Args:
        plan: Generated plan
        profile_type: Override for the profile recorded on the plan

    Returns:
        Task executions ready to load into a RunMachine
    """
    wave_of = {f.id: wave.number for wave in plan.waves for f in wave.features}
    return [
        TaskExecution(
            task_id=task.id,
            feature_id=task.feature_id,
            task_kind=task.kind.value,
            name=task.name,
            wave_number=wave_of.get(task.feature_id),
            references=task.references,
            blocked_by=task.blocked_by,
        )
        for task in plan_tasks(plan, profile_type)
    ]


class ExecutionLoop:
    """Drives the run state machine for one project."""

    def __init__(self, config: WaveplanConfig):
        """Initialize execution loop.

        Args:
            config: Waveplan configuration
        """
        self.config = config
        self.state_dir = config.state_dir
        self.machine = RunMachine(self.state_dir)
        self.dashboard = StatusDashboard(self.machine.state, self.state_dir)

    @property
    def is_active(self) -> bool:
        return bool(self.machine.state.tasks)

    def activate(self, reset: bool = False) -> bool:
        """Create the run's task list from the plan if not done yet.

        Args:
            reset: Discard an existing run and rebuild it from the plan

        Returns:
            True if a new run was created

        Raises:
            PlanError: If no plan exists
        """
        if self.is_active and not reset:
            return False

        plan = require_plan(self.state_dir)
        self.machine.load_tasks(build_executions(plan))

        plan.status = PlanStatus.ACTIVE
        save_plan(plan, self.state_dir)
        self._sync_dashboard()
        return True

    def step(self, task_id: Optional[str] = None, dry_run: bool = False) -> StepResult:
        """Advance the run by selecting and starting a task.

        An unresolved escalation or an already running task is reported
        rather than skipped.

        Args:
            task_id: Specific task to start instead of the next one
            dry_run: Report the selection without changing state

        Returns:
            StepResult

        Raises:
            PlanError: If the run is not active and no plan exists
            TaskNotFoundError: If task_id is unknown
            StateTransitionError: If task_id is already finished
        """
        machine = self.machine
        if not self.is_active:
            if dry_run:
                # Preview against an in-memory run
                plan = require_plan(self.state_dir)
                machine = RunMachine(state=RunState(tasks=build_executions(plan)))
            else:
                self.activate()

        if task_id:
            task = machine.get_task(task_id)
            if task is None:
                raise TaskNotFoundError(task_id)
            if task.status.is_terminal:
                raise StateTransitionError(task_id, task.status, [TaskStatus.BACKLOG])
        else:
            task = machine.current_task
            if task is None or task.status != TaskStatus.IN_PROGRESS:
                task = select_next_task(machine.state) if dry_run else machine.next_task()

        if task is None:
            outcome = (
                StepOutcome.COMPLETED
                if machine.status == RunStatus.COMPLETED
                else StepOutcome.NO_PENDING
            )
            return self._result(outcome, machine=machine)

        if task.status == TaskStatus.WAITING_INPUT:
            return self._result(StepOutcome.ESCALATED, task, machine)
        if task.status == TaskStatus.IN_PROGRESS:
            return self._result(StepOutcome.IN_PROGRESS, task, machine)
        if dry_run:
            return self._result(StepOutcome.DRY_RUN, task, machine)

        machine.start(task.task_id)
        return self._result(StepOutcome.STARTED, task, machine)

    def refresh_status(self) -> None:
        """Rewrite STATUS.md if enabled."""
        self._sync_dashboard()
        if self.config.state.write_status_file and self.is_active:
            self.dashboard.update()

    def _sync_dashboard(self) -> None:
        self.dashboard.state = self.machine.state

    def _result(
        self,
        outcome: StepOutcome,
        task: Optional[TaskExecution] = None,
        machine: Optional[RunMachine] = None,
    ) -> StepResult:
        self._sync_dashboard()
        machine = machine or self.machine
        if task is not None:
            logger.info(f"Step {outcome.value}: {task.task_id}")
        else:
            logger.info(f"Step {outcome.value}")
        return StepResult(outcome=outcome, task=task, progress=machine.progress())
