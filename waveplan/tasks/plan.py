"""Plan engine: feature catalog to persisted wave plan."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ..catalog.models import Feature
from ..catalog.parser import CatalogError, load_catalog
from ..config.models import WaveplanConfig
from ..scheduler.graph import (
    build_graph,
    compute_dependent_counts,
    detect_cycles,
    find_dangling_dependencies,
    format_cycle,
)
from ..scheduler.waves import FoundationPredicate, build_waves, prefix_foundation_predicate
from ..state.persistence import PlanState, PlanStatus, load_plan, load_run_state, save_plan
from .decomposer import Task, choose_order_mode, decompose

logger = logging.getLogger(__name__)

TASKS_PER_FEATURE = 6


@dataclass
class PlanResult:
    """Generated plan plus non-fatal data-quality warnings."""

    plan: PlanState
    warnings: list[str] = field(default_factory=list)

    @property
    def feature_count(self) -> int:
        return len(self.plan.features)

    @property
    def task_count(self) -> int:
        return self.feature_count * TASKS_PER_FEATURE


class PlanError(Exception):
    """Planning cannot proceed."""

    pass


def generate_plan(
    features: list[Feature],
    profile_type: str = "app",
    is_foundation: Optional[FoundationPredicate] = None,
) -> PlanResult:
    """Schedule a feature catalog into waves.

    Cycles and dangling dependencies are reported as warnings; a plan is
    produced regardless.

    Args:
        features: Feature catalog (not mutated)
        profile_type: Project profile, recorded for task ordering
        is_foundation: Foundation predicate for the common phase

    Returns:
        PlanResult with a generated (unsaved) plan

    Raises:
        PlanError: If the catalog is empty
    """
    if not features:
        raise PlanError("No features found. Add features to the feature catalog first.")

    features = [f.model_copy(deep=True) for f in features]
    compute_dependent_counts(features)
    graph = build_graph(features)

    warnings: list[str] = []

    for feature_id, missing in find_dangling_dependencies(features).items():
        message = f"{feature_id} depends on unknown features: {', '.join(missing)}"
        logger.warning(message)
        warnings.append(message)

    cycles = detect_cycles(graph)
    for cycle in cycles:
        message = f"Circular dependency: {format_cycle(cycle)}"
        logger.warning(message)
        warnings.append(message)

    waves = build_waves(features, is_foundation)

    plan = PlanState(
        status=PlanStatus.GENERATED,
        profile_type=profile_type,
        waves=waves,
        circular_dependencies=cycles,
        warnings=warnings,
    )
    logger.info(
        f"Plan generated: {len(features)} features, {len(waves)} waves, "
        f"~{len(features) * TASKS_PER_FEATURE} tasks"
    )
    return PlanResult(plan=plan, warnings=warnings)


def run_plan(
    config: WaveplanConfig,
    features: Optional[list[Feature]] = None,
    catalog_path: Optional[Path] = None,
) -> PlanResult:
    """Load the catalog, generate the plan and persist it.

    Args:
        config: Waveplan configuration
        features: Feature override (skips catalog loading)
        catalog_path: Catalog override

    Returns:
        PlanResult; warnings include dropped catalog rows

    Raises:
        PlanError: If no catalog is available or it is empty
    """
    warnings: list[str] = []

    if features is None:
        path = catalog_path or config.project.catalog_file
        try:
            catalog = load_catalog(path)
        except CatalogError as e:
            raise PlanError(str(e))
        features = catalog.features
        warnings.extend(catalog.warnings)

    result = generate_plan(
        features,
        profile_type=config.project.profile_type,
        is_foundation=prefix_foundation_predicate(config.scheduling.foundation_prefixes),
    )
    result.warnings = warnings + result.warnings
    result.plan.warnings = result.warnings

    # A kept run still executes against this plan
    run = load_run_state(config.state_dir)
    if run is not None and run.tasks:
        result.plan.status = PlanStatus.ACTIVE

    save_plan(result.plan, config.state_dir)
    return result


def plan_tasks(plan: PlanState, profile_type: Optional[str] = None) -> list[Task]:
    """Decompose every planned feature, in wave order.

    The order mode is chosen once per feature from the profile type and the
    feature kind.

    Args:
        plan: Generated plan
        profile_type: Override for the profile recorded on the plan

    Returns:
        Flat ordered task list
    """
    profile_type = profile_type or plan.profile_type
    tasks: list[Task] = []
    for wave in plan.waves:
        for feature in wave.features:
            tasks.extend(decompose(feature, choose_order_mode(profile_type, feature.kind)))
    return tasks


def require_plan(state_dir: Path) -> PlanState:
    """Load the plan document or fail.

    Raises:
        PlanError: If no plan exists or it has no waves
    """
    plan = load_plan(state_dir)
    if plan is None or not plan.waves:
        raise PlanError("No implementation plan found. Run 'waveplan plan' first.")
    return plan
