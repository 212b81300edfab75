"""Feature to task decomposition."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..catalog.models import Feature, FeatureKind, Size

logger = logging.getLogger(__name__)

PROFILE_TYPES = ("app", "lp", "hp", "api", "cli")


class TaskKind(str, Enum):
    """Typed unit of work within a feature."""

    DATABASE = "database"
    API = "api"
    UI = "ui"
    INTEGRATION = "integration"
    TEST = "test"
    REVIEW = "review"


class OrderMode(str, Enum):
    """Task pipeline ordering."""

    NORMAL = "normal"
    TDD = "tdd"


@dataclass(frozen=True)
class TaskTemplate:
    """Static definition of one pipeline step."""

    kind: TaskKind
    label: str
    references: tuple[str, ...]


@dataclass
class Task:
    """One decomposed unit of work for a feature."""

    id: str
    feature_id: str
    kind: TaskKind
    name: str
    size: Size
    references: list[str] = field(default_factory=list)
    blocked_by: list[str] = field(default_factory=list)
    blocks: list[str] = field(default_factory=list)


_DATABASE = TaskTemplate(TaskKind.DATABASE, "Database", ("§4",))
_API = TaskTemplate(TaskKind.API, "API", ("§5", "§7", "§9"))
_UI = TaskTemplate(TaskKind.UI, "UI", ("§6",))
_INTEGRATION = TaskTemplate(TaskKind.INTEGRATION, "Integration", ("§5", "§6"))
_REVIEW = TaskTemplate(TaskKind.REVIEW, "Code Audit", ("All",))

PIPELINES: dict[OrderMode, tuple[TaskTemplate, ...]] = {
    # Implementation -> audit -> test
    OrderMode.NORMAL: (
        _DATABASE,
        _API,
        _UI,
        _INTEGRATION,
        _REVIEW,
        TaskTemplate(TaskKind.TEST, "Testing", ("§10",)),
    ),
    # Test -> implementation -> audit
    OrderMode.TDD: (
        TaskTemplate(TaskKind.TEST, "Testing (TDD)", ("§10",)),
        _DATABASE,
        _API,
        _UI,
        _INTEGRATION,
        _REVIEW,
    ),
}


def choose_order_mode(profile_type: str, feature_kind: Optional[FeatureKind] = None) -> OrderMode:
    """Pick the task ordering for a feature.

    api and cli profiles always test first; app profiles test first for
    common features. Everything else uses the normal pipeline.

    Args:
        profile_type: Project profile (app, lp, hp, api, cli)
        feature_kind: Kind of the feature being decomposed

    Returns:
        OrderMode
    """
    if profile_type in ("api", "cli"):
        return OrderMode.TDD
    if profile_type == "app" and feature_kind == FeatureKind.COMMON:
        return OrderMode.TDD
    return OrderMode.NORMAL


def task_id_for(feature_id: str, kind: TaskKind) -> str:
    return f"{feature_id}-{kind.value.upper()}"


def estimate_task_size(feature_size: Size, kind: TaskKind) -> Size:
    """Estimate a task's size from its feature's size.

    Database and review tasks are small (M only for XL features), tests are
    M unless the feature is S, and the remaining kinds carry the feature size.
    """
    if kind in (TaskKind.DATABASE, TaskKind.REVIEW):
        return Size.M if feature_size == Size.XL else Size.S
    if kind == TaskKind.TEST:
        return Size.S if feature_size == Size.S else Size.M
    return feature_size


def decompose(feature: Feature, order_mode: OrderMode = OrderMode.NORMAL) -> list[Task]:
    """Expand a feature into its six-task pipeline.

    Tasks form a strict linear chain: each is blocked by the previous one
    and blocks the next one.

    Args:
        feature: Feature to decompose
        order_mode: Pipeline ordering

    Returns:
        Ordered list of tasks
    """
    mode = OrderMode(order_mode)
    pipeline = PIPELINES[mode]
    ids = [task_id_for(feature.id, step.kind) for step in pipeline]

    tasks = []
    for idx, step in enumerate(pipeline):
        tasks.append(
            Task(
                id=ids[idx],
                feature_id=feature.id,
                kind=step.kind,
                name=f"{feature.name} - {step.label}",
                size=estimate_task_size(feature.size, step.kind),
                references=list(step.references),
                blocked_by=[ids[idx - 1]] if idx > 0 else [],
                blocks=[ids[idx + 1]] if idx < len(ids) - 1 else [],
            )
        )

    logger.debug(f"Decomposed {feature.id} into {len(tasks)} tasks ({mode.value})")
    return tasks
