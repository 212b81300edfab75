"""Wave scheduler: topological layering of features into ordered waves."""

import logging
from collections.abc import Callable, Iterable
from typing import Optional

from ..catalog.models import Feature, FeatureKind
from ..state.persistence import Wave, WavePhase
from .graph import build_graph

logger = logging.getLogger(__name__)

FoundationPredicate = Callable[[Feature], bool]

DEFAULT_FOUNDATION_PREFIXES = ("AUTH", "ACCT")

FOUNDATION_LAYER = 1
COMMON_LAYER = 2


def prefix_foundation_predicate(
    prefixes: Iterable[str] = DEFAULT_FOUNDATION_PREFIXES,
) -> FoundationPredicate:
    """Build a predicate marking features whose id starts with a prefix.

    Args:
        prefixes: Id prefixes treated as foundation (authentication/account)

    Returns:
        Predicate over Feature
    """
    prefixes = tuple(p for p in prefixes if p)

    def is_foundation(feature: Feature) -> bool:
        return bool(prefixes) and feature.id.startswith(prefixes)

    return is_foundation


def assign_waves(
    features: Iterable[Feature],
    graph: dict[str, list[str]],
) -> dict[str, int]:
    """Assign each feature a wave number.

    wave(f) = 1 without in-catalog dependencies, otherwise
    1 + max(wave(d)). Uses an explicit stack and memo table. Reaching a
    feature that is still being computed means a cycle: that feature is
    pinned to wave 1 so the computation terminates.

    Args:
        features: Features to schedule
        graph: Adjacency dict from build_graph

    Returns:
        Mapping feature id -> wave number (1-based)
    """
    features = list(features)
    known = {f.id for f in features}
    waves: dict[str, int] = {}

    def deps_of(feature_id: str) -> list[str]:
        return [d for d in graph.get(feature_id, []) if d in known]

    for feature in features:
        if feature.id in waves:
            continue

        visiting = {feature.id}
        stack = [(feature.id, iter(deps_of(feature.id)))]

        while stack:
            node, pending = stack[-1]
            descended = False

            for dep in pending:
                if dep in waves:
                    continue
                if dep in visiting:
                    logger.debug(f"Cycle guard: pinning {dep} to wave 1 (reached from {node})")
                    waves[dep] = 1
                    continue
                visiting.add(dep)
                stack.append((dep, iter(deps_of(dep))))
                descended = True
                break

            if descended:
                continue

            stack.pop()
            visiting.discard(node)
            if node in waves:
                # Pinned by the cycle guard
                continue
            waves[node] = 1 + max((waves[d] for d in deps_of(node)), default=0)

    return waves


def sort_features_in_wave(features: Iterable[Feature]) -> list[Feature]:
    """Order features within a wave.

    1. Priority ascending (P0 first)
    2. Dependent count descending
    3. Size ascending (S first)
    4. Id ascending
    """
    return sorted(
        features,
        key=lambda f: (f.priority.rank, -f.dependent_count, f.size.rank, f.id),
    )


def layer_features(features: list[Feature]) -> list[tuple[int, list[Feature]]]:
    """Split features into dependency layers, each sorted by tie-break rules.

    Returns:
        (computed wave number, features) pairs in ascending wave order
    """
    if not features:
        return []

    # Id order keeps cycle pinning independent of catalog order
    ordered = sorted(features, key=lambda f: f.id)
    assignment = assign_waves(ordered, build_graph(ordered))
    layers: dict[int, list[Feature]] = {}
    for feature in features:
        layers.setdefault(assignment.get(feature.id, 1), []).append(feature)

    return [(n, sort_features_in_wave(layers[n])) for n in sorted(layers)]


def build_waves(
    features: list[Feature],
    is_foundation: Optional[FoundationPredicate] = None,
) -> list[Wave]:
    """Group features into numbered waves.

    Common features come first: foundation features (see is_foundation) in
    their own layer, then the remaining common features. Proprietary
    features follow, one wave per computed dependency layer. Each group is
    layered only over dependencies inside the group. Wave numbers are
    contiguous from 1.

    Args:
        features: Feature catalog with dependent counts computed
        is_foundation: Foundation predicate (defaults to AUTH/ACCT prefixes)

    Returns:
        Ordered list of waves
    """
    if is_foundation is None:
        is_foundation = prefix_foundation_predicate()

    common = [f for f in features if f.kind == FeatureKind.COMMON]
    proprietary = [f for f in features if f.kind == FeatureKind.PROPRIETARY]
    foundation = [f for f in common if is_foundation(f)]
    other_common = [f for f in common if not is_foundation(f)]

    waves: list[Wave] = []

    def add_group(layers, phase, layer, title_for):
        for index, (computed, batch) in enumerate(layers, start=1):
            waves.append(
                Wave(
                    number=len(waves) + 1,
                    phase=phase,
                    layer=layer,
                    title=title_for(index, computed, len(layers)),
                    features=batch,
                )
            )

    add_group(
        layer_features(foundation),
        WavePhase.COMMON,
        FOUNDATION_LAYER,
        lambda i, _, n: _step_title("Authentication Foundation", i, n),
    )
    add_group(
        layer_features(other_common),
        WavePhase.COMMON,
        COMMON_LAYER,
        lambda i, _, n: _step_title("Common Features", i, n),
    )
    add_group(
        layer_features(proprietary),
        WavePhase.PROPRIETARY,
        None,
        lambda _, w, __: (
            f"Wave {w}: Independent Features" if w == 1 else f"Wave {w}: Depends on Wave {w - 1}"
        ),
    )

    logger.info(
        f"Scheduled {len(features)} features into {len(waves)} waves "
        f"({len(common)} common, {len(proprietary)} proprietary)"
    )
    return waves


def _step_title(base: str, index: int, total: int) -> str:
    if total <= 1:
        return base
    return f"{base} ({index}/{total})"
