"""Plan and run state persistence with atomic writes."""

import json
import os
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from ..catalog.models import Feature

PLAN_FILE = "plan.json"
RUN_STATE_FILE = "run-state.json"


def utc_now() -> str:
    """Current UTC time as ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


class WavePhase(str, Enum):
    """Scheduling phase of a wave."""

    COMMON = "common"
    PROPRIETARY = "proprietary"


class PlanStatus(str, Enum):
    """Plan document status."""

    IDLE = "idle"
    GENERATED = "generated"
    ACTIVE = "active"


class TaskStatus(str, Enum):
    """Task execution status."""

    BACKLOG = "backlog"
    IN_PROGRESS = "in_progress"
    WAITING_INPUT = "waiting_input"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.DONE, TaskStatus.FAILED)


class RunStatus(str, Enum):
    """Aggregate run status."""

    IDLE = "idle"
    RUNNING = "running"
    WAITING_INPUT = "waiting_input"
    COMPLETED = "completed"
    FAILED = "failed"


class EscalationTrigger(str, Enum):
    """Why a task needs human input."""

    T1 = "T1"  # Edge case has no defined behavior
    T2 = "T2"  # Ambiguous specification wording
    T3 = "T3"  # Multiple viable technical approaches
    T4 = "T4"  # Specification contradicts implementation
    T5 = "T5"  # Undefined constraint or convention
    T6 = "T6"  # Unclear blast radius of the change
    T7 = "T7"  # Business judgment needed

    @property
    def label(self) -> str:
        return ESCALATION_LABELS[self]


ESCALATION_LABELS = {
    EscalationTrigger.T1: "Undefined edge case",
    EscalationTrigger.T2: "Ambiguous specification",
    EscalationTrigger.T3: "Multiple viable approaches",
    EscalationTrigger.T4: "Specification/implementation conflict",
    EscalationTrigger.T5: "Undefined convention",
    EscalationTrigger.T6: "Unclear blast radius",
    EscalationTrigger.T7: "Business judgment needed",
}


class FileAction(str, Enum):
    """What happened to an affected file."""

    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"


class Wave(BaseModel):
    """Ordered batch of features with no dependencies among them."""

    number: int = Field(description="1-based, contiguous across the plan")
    phase: WavePhase
    layer: Optional[int] = Field(default=None, description="Common-phase layer (1 = foundation)")
    title: str = Field(default="")
    features: list[Feature] = Field(default_factory=list)


class PlanState(BaseModel):
    """Plan document: waves, detected cycles and generation time."""

    status: PlanStatus = Field(default=PlanStatus.IDLE)
    profile_type: str = Field(default="app", description="Profile used for task ordering")
    generated_at: str = Field(default_factory=utc_now)
    updated_at: str = Field(default_factory=utc_now)
    waves: list[Wave] = Field(default_factory=list)
    circular_dependencies: list[list[str]] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def features(self) -> list[Feature]:
        return [f for wave in self.waves for f in wave.features]


class EscalationOption(BaseModel):
    """One answer offered by an escalation."""

    id: int
    description: str
    impact: str = Field(default="")


class Escalation(BaseModel):
    """Structured question that suspends a task until answered."""

    trigger: EscalationTrigger
    context: str = Field(default="")
    question: str
    options: list[EscalationOption] = Field(default_factory=list)
    recommendation: str = Field(default="")
    recommendation_reason: str = Field(default="")
    created_at: str = Field(default_factory=utc_now)
    resolution: Optional[str] = Field(default=None)
    resolved_at: Optional[str] = Field(default=None)

    @property
    def is_resolved(self) -> bool:
        return self.resolved_at is not None


class AffectedFile(BaseModel):
    """File touched by a completed task."""

    path: str
    action: FileAction = Field(default=FileAction.MODIFIED)


class TaskExecution(BaseModel):
    """Run-time state of one decomposed task."""

    task_id: str
    feature_id: str
    task_kind: str
    name: str = Field(default="")
    wave_number: Optional[int] = Field(default=None)
    references: list[str] = Field(default_factory=list)
    blocked_by: list[str] = Field(default_factory=list)
    status: TaskStatus = Field(default=TaskStatus.BACKLOG)
    escalation: Optional[Escalation] = Field(default=None)
    affected_files: list[AffectedFile] = Field(default_factory=list)
    quality_score: Optional[float] = Field(default=None)
    started_at: Optional[str] = Field(default=None)
    completed_at: Optional[str] = Field(default=None)


class RunState(BaseModel):
    """Run document: ordered task list plus the current task pointer."""

    status: RunStatus = Field(default=RunStatus.IDLE)
    current_task_id: Optional[str] = Field(default=None)
    tasks: list[TaskExecution] = Field(default_factory=list)
    started_at: str = Field(default_factory=utc_now)
    updated_at: str = Field(default_factory=utc_now)
    completed_at: Optional[str] = Field(default=None)

    def get_task(self, task_id: str) -> Optional[TaskExecution]:
        for task in self.tasks:
            if task.task_id == task_id:
                return task
        return None


def plan_path(state_dir: Path) -> Path:
    return state_dir / PLAN_FILE


def run_state_path(state_dir: Path) -> Path:
    return state_dir / RUN_STATE_FILE


def load_plan(state_dir: Path) -> Optional[PlanState]:
    """Load plan document.

    Args:
        state_dir: Project state directory

    Returns:
        PlanState or None if no plan has been generated
    """
    path = plan_path(state_dir)
    if not path.exists():
        return None

    with open(path, "r") as f:
        data = json.load(f)

    return PlanState(**data)


def save_plan(plan: PlanState, state_dir: Path) -> None:
    """Save plan document with atomic write."""
    plan.updated_at = utc_now()
    _atomic_write(plan, plan_path(state_dir))


def load_run_state(state_dir: Path) -> Optional[RunState]:
    """Load run document.

    Args:
        state_dir: Project state directory

    Returns:
        RunState or None if no run has been activated
    """
    path = run_state_path(state_dir)
    if not path.exists():
        return None

    with open(path, "r") as f:
        data = json.load(f)

    return RunState(**data)


def save_run_state(state: RunState, state_dir: Path) -> None:
    """Save run document with atomic write."""
    state.updated_at = utc_now()
    _atomic_write(state, run_state_path(state_dir))


def _atomic_write(model: BaseModel, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)

    # Atomic write: temp file -> fsync -> rename
    temp_path = path.with_suffix(".tmp")
    with open(temp_path, "w") as f:
        json.dump(model.model_dump(mode="json"), f, indent=2)
        f.flush()
        os.fsync(f.fileno())
    temp_path.replace(path)
