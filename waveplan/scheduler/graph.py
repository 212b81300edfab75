"""Feature dependency graph and cycle detection."""

import logging
from collections.abc import Iterable

from ..catalog.models import Feature

logger = logging.getLogger(__name__)

# DFS colors
_UNVISITED = 0
_ON_STACK = 1
_DONE = 2


def build_graph(features: Iterable[Feature]) -> dict[str, list[str]]:
    """Build adjacency list {feature id -> [ids it depends on]}.

    Dependencies that reference ids outside the catalog are dropped; a catalog
    may be edited incrementally, so dangling references are not an error.

    Args:
        features: Feature catalog

    Returns:
        Adjacency dict keyed in catalog order
    """
    features = list(features)
    known = {f.id for f in features}
    graph: dict[str, list[str]] = {}

    for feature in features:
        graph[feature.id] = [d for d in feature.dependencies if d in known]

    return graph


def find_dangling_dependencies(features: Iterable[Feature]) -> dict[str, list[str]]:
    """Return {feature id -> dependency ids not present in the catalog}."""
    features = list(features)
    known = {f.id for f in features}
    dangling: dict[str, list[str]] = {}

    for feature in features:
        missing = [d for d in feature.dependencies if d not in known]
        if missing:
            dangling[feature.id] = missing

    return dangling


def compute_dependent_counts(features: list[Feature]) -> None:
    """Recompute ``dependent_count`` on every feature in place.

    Args:
        features: Feature catalog (mutated)
    """
    counts: dict[str, int] = {}
    for feature in features:
        for dep in feature.dependencies:
            counts[dep] = counts.get(dep, 0) + 1

    for feature in features:
        feature.dependent_count = counts.get(feature.id, 0)


def detect_cycles(graph: dict[str, list[str]]) -> list[list[str]]:
    """Find dependency cycles with a three-color depth-first search.

    Reaching a node that is still on the stack closes a cycle made of the
    stack segment from that node onward. Traversal continues afterwards, so
    every cycle reachable from each unvisited start node is reported.

    Args:
        graph: Adjacency dict from build_graph

    Returns:
        Cycles in discovery order, each a list of ids
    """
    cycles: list[list[str]] = []
    color: dict[str, int] = {}

    for root in graph:
        if color.get(root, _UNVISITED) != _UNVISITED:
            continue

        color[root] = _ON_STACK
        path = [root]
        pending = [iter(graph.get(root, []))]

        while pending:
            descended = False
            for neighbor in pending[-1]:
                state = color.get(neighbor, _UNVISITED)
                if state == _ON_STACK:
                    cycle = path[path.index(neighbor):]
                    logger.debug(f"Cycle found: {' -> '.join(cycle)}")
                    cycles.append(cycle)
                elif state == _UNVISITED:
                    color[neighbor] = _ON_STACK
                    path.append(neighbor)
                    pending.append(iter(graph.get(neighbor, [])))
                    descended = True
                    break

            if not descended:
                pending.pop()
                color[path.pop()] = _DONE

    return cycles


def format_cycle(cycle: list[str]) -> str:
    """Render a cycle as ``A -> B -> C -> A``."""
    if not cycle:
        return ""
    return " -> ".join(cycle + [cycle[0]])
