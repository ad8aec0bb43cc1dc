"""
Curricular metrics for degree plans.

All functions are pure: they read a DegreePlan and return new mappings keyed
by course id. Every course of the plan appears in every returned mapping.

Scale limit: all_paths() enumerates every maximal root-to-leaf path, which is
exponential in the worst case for dense DAGs. Suffixes are memoized per
course, so term-sized plans (tens of courses) stay cheap.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import networkx as nx

from .model import Course, DegreePlan
from .terms import CALENDAR_SYSTEMS
from .utils.validation import GraphInvariantError

Weight = Callable[[Course], float]
Path = List[int]


def _unit_weight(course: Course) -> float:
    return 1.0


def to_networkx(plan: DegreePlan) -> nx.DiGraph:
    """Convert the plan's requisite structure to a NetworkX DiGraph.

    Nodes are course ids carrying the Course as ``course`` attribute; an edge
    u -> v means v depends on u.
    """
    G = nx.DiGraph()  # noqa: N806
    for course in plan.courses():
        G.add_node(course.id, course=course)
    G.add_edges_from(plan.edges())
    return G


def _topological_order(plan: DegreePlan) -> List[int]:
    G = to_networkx(plan)  # noqa: N806
    try:
        return list(nx.topological_sort(G))
    except nx.NetworkXUnfeasible:
        cycle = nx.find_cycle(G)
        raise GraphInvariantError(
            "Requisite cycle detected: " + " -> ".join(f"{u}->{v}" for u, v in cycle)
        )


def blocking_factor(plan: DegreePlan, course_id: int, weight: Optional[Weight] = None) -> float:
    """Weighted count of courses that transitively depend on a course.

    Args:
        plan: Degree plan with resolved requisites
        course_id: Course to measure
        weight: Per-course scalar, defaults to 1 (plain count)

    Returns:
        Sum of weight(c) over every course reachable by forwards edges,
        excluding the course itself; each course counted once
    """
    weight = weight or _unit_weight
    plan.course(course_id)

    visited = {course_id}
    stack = list(plan.forwards[course_id])
    total = 0.0
    while stack:
        current = stack.pop()
        if current in visited:
            continue
        visited.add(current)
        total += weight(plan.course(current))
        stack.extend(plan.forwards[current])
    return total


def blocking_factors(plan: DegreePlan, weight: Optional[Weight] = None) -> Dict[int, float]:
    return {cid: blocking_factor(plan, cid, weight) for cid in plan.course_ids}


def all_paths(plan: DegreePlan) -> List[Path]:
    """Enumerate every maximal path from a root (no requisites) to a leaf.

    Courses without any requisite relation form one-course paths. Paths are
    returned in plan order of their roots, then forwards order.

    Raises:
        GraphInvariantError: If the requisite structure has a cycle
    """
    # Build suffixes bottom-up so each course's suffix set is computed once
    suffixes: Dict[int, List[Path]] = {}
    for cid in reversed(_topological_order(plan)):
        nexts = plan.forwards[cid]
        if not nexts:
            suffixes[cid] = [[cid]]
        else:
            suffixes[cid] = [[cid] + tail for nxt in nexts for tail in suffixes[nxt]]

    paths: List[Path] = []
    for root in plan.roots():
        paths.extend(list(p) for p in suffixes[root])
    return paths


def delay_factors(plan: DegreePlan, paths: List[Path]) -> Dict[int, int]:
    """Length of the longest enumerated path containing each course (at least 1).

    Path length counts courses, so the last course of a path counts toward it:
    for A -> B both A and B get 2.
    """
    result = {cid: 1 for cid in plan.course_ids}
    for path in paths:
        length = len(path)
        for cid in path:
            if length > result.get(cid, 0):
                result[cid] = length
    return result


def complexities(
    blocking: Dict[int, float], delay: Dict[int, int], system: str = "semester"
) -> Dict[int, float]:
    """Base structural complexity: blocking factor plus delay factor.

    Args:
        blocking: Blocking factor per course
        delay: Delay factor per course
        system: Academic calendar ('semester' or 'quarter'); passed through
            for callers choosing a display scale, no conversion is applied

    Returns:
        Complexity per course, keyed like ``blocking`` and ``delay`` combined
    """
    if system not in CALENDAR_SYSTEMS:
        raise ValueError(f"Unknown calendar system: {system!r}")
    keys = list(blocking) + [k for k in delay if k not in blocking]
    return {k: blocking.get(k, 0) + delay.get(k, 0) for k in keys}


def centralities(
    plan: DegreePlan,
    paths: List[Path],
    blocking: Dict[int, float],
    delay: Dict[int, int],
) -> Dict[int, float]:
    """Prominence of each course across all paths, net of its own factors.

    centrality(c) = max(0, sum of lengths of paths through c - bf(c) - df(c))
    """
    through = {cid: 0 for cid in plan.course_ids}
    for path in paths:
        for cid in path:
            through[cid] += len(path)
    return {
        cid: max(0, total - blocking.get(cid, 0) - delay.get(cid, 0))
        for cid, total in through.items()
    }


def longest_path(paths: List[Path]) -> Path:
    """First longest path in enumeration order (empty for no paths)."""
    best: Path = []
    for path in paths:
        if len(path) > len(best):
            best = path
    return list(best)


def term_summaries(plan: DegreePlan, complexity: Dict[int, float]) -> List[Dict[str, float]]:
    """Total complexity and credits per term, in plan order."""
    return [
        {
            "index": index,
            "complexity": sum(complexity.get(c.id, 0) for c in term),
            "credits": sum(c.credits for c in term),
        }
        for index, term in enumerate(plan.terms)
    ]


@dataclass
class PlanMetrics:
    """Metrics of one plan, keyed by course id."""

    blocking_factors: Dict[int, float] = field(default_factory=dict)
    delay_factors: Dict[int, int] = field(default_factory=dict)
    complexities: Dict[int, float] = field(default_factory=dict)
    centralities: Dict[int, float] = field(default_factory=dict)
    paths: List[Path] = field(default_factory=list)
    system: str = "semester"


def compute_plan_metrics(
    plan: DegreePlan,
    weight: Optional[Weight] = None,
    system: str = "semester",
    logger: Optional[logging.Logger] = None,
) -> PlanMetrics:
    """Compute blocking, delay, complexity and centrality for every course.

    Args:
        plan: Degree plan with resolved requisites
        weight: Blocking factor weight per course (default 1)
        system: Academic calendar passed through to complexities()
        logger: Logger instance (optional)

    Returns:
        PlanMetrics bundle
    """
    if logger:
        logger.info(f"Computing metrics for {len(plan)} courses, {len(plan.edges())} edges")

    bf = blocking_factors(plan, weight)
    paths = all_paths(plan)
    df = delay_factors(plan, paths)
    cx = complexities(bf, df, system)
    ce = centralities(plan, paths, bf, df)

    if logger:
        logger.info(f"Enumerated {len(paths)} paths, longest has {len(longest_path(paths))} courses")
        if cx:
            logger.info(f"Complexity total: {sum(cx.values()):.2f}")

    return PlanMetrics(
        blocking_factors=bf,
        delay_factors=df,
        complexities=cx,
        centralities=ce,
        paths=paths,
        system=system,
    )
