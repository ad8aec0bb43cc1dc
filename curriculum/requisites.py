"""
Requisite resolution: rebuild a degree plan's requisite edges from per-term
requisite tables.

A requisite expression is a list of alternatives (OR); each alternative is a
list of course names (AND). A member may also be an object
``{"name": ..., "type": "prereq" | "coreq" | "strict-coreq"}`` carrying an
explicit requisite type. Names are matched exactly against the names present
in the plan; a name with no course in the plan yields no edge.

Classification for each dependent course:
    * the chosen alternative is the first one whose members are all in the
      plan, or, if none is, the one with most members present (first on ties);
      its edges are direct;
    * members of the other alternatives produce indirect edges;
    * an edge u -> v is redundant if v is reachable from u over direct edges
      without using u -> v itself.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

import networkx as nx

from .model import DegreePlan, EdgeTypes, RequisiteEdge, RequisiteType
from .term_cache import TermCache
from .terms import TermBounds, term_for
from .utils.validation import validate_requisite_table

_logger = logging.getLogger(__name__)

Member = Tuple[str, Optional[RequisiteType]]


@dataclass
class ResolveResult:
    """Outcome of one resolution pass."""

    plan: DegreePlan
    edge_types: EdgeTypes = field(default_factory=dict)
    edges: Dict[Tuple[int, int], RequisiteEdge] = field(default_factory=dict)
    terms: Dict[int, str] = field(default_factory=dict)
    missing_terms: List[str] = field(default_factory=list)

    def edge_list(self) -> List[RequisiteEdge]:
        return [self.edges[key] for key in self.plan.edges()]


def _parse_member(member: Any) -> Member:
    if isinstance(member, str):
        return member, None
    tag = member.get("type")
    return member["name"], RequisiteType.parse(tag) if tag is not None else None


def _choose_alternative(
    matched: List[List[Tuple[int, Optional[RequisiteType]]]], sizes: List[int]
) -> Optional[int]:
    """Index of the alternative that satisfies the requirement, or None."""
    for index, (found, size) in enumerate(zip(matched, sizes)):
        if len(found) == size:
            return index
    best = None
    for index, found in enumerate(matched):
        if found and (best is None or len(found) > len(matched[best])):
            best = index
    return best


def _redundant_edges(edges: Dict[Tuple[int, int], RequisiteEdge]) -> Set[Tuple[int, int]]:
    D = nx.DiGraph()  # noqa: N806
    D.add_edges_from(key for key, edge in edges.items() if edge.direct)

    descendants: Dict[int, Set[int]] = {}

    def reach(node: int) -> Set[int]:
        if node not in descendants:
            descendants[node] = nx.descendants(D, node) if node in D else set()
        return descendants[node]

    redundant = set()
    for source, target in edges:
        if source not in D:
            continue
        for other in D.successors(source):
            if other != target and target in reach(other):
                redundant.add((source, target))
                break
    return redundant


def resolve_requisites(
    plan: DegreePlan,
    cache: Mapping[str, Mapping[str, Any]],
    reference_year: int,
    bounds: TermBounds,
    edge_types: Optional[EdgeTypes] = None,
    logger: Optional[logging.Logger] = _logger,
) -> ResolveResult:
    """Rebuild every requisite edge of a plan.

    The input plan is not modified; the result carries a new plan whose
    adjacency is built from scratch.

    Args:
        plan: Degree plan (existing edges are discarded)
        cache: Requisite tables keyed by term key
        reference_year: Calendar year of the plan's first fall term
        bounds: Range of terms with published data
        edge_types: Previously known types per (source, target); used for
            members without an explicit type tag
        logger: Logger instance (optional)

    Returns:
        ResolveResult with the new plan, edge types and edge flags

    Raises:
        RequisiteDataError: If a table used by the plan is malformed
    """
    edge_types = edge_types or {}

    course_terms = {
        course.id: term_for(reference_year, course, bounds) for course in plan.courses()
    }

    # Validate every table before building anything
    missing_terms = []
    for term in sorted(set(course_terms.values())):
        if term in cache:
            validate_requisite_table(cache[term])
        else:
            missing_terms.append(term)
            if logger:
                logger.warning(
                    f"No requisite data loaded for {term}; treating its courses as having none"
                )

    # First course in plan order wins when names collide
    by_name: Dict[str, int] = {}
    for course in plan.courses():
        by_name.setdefault(course.name, course.id)

    resolved = plan.without_edges()
    edges: Dict[Tuple[int, int], RequisiteEdge] = {}
    types: EdgeTypes = {}

    for course in plan.courses():
        table = cache.get(course_terms[course.id])
        expression = table.get(course.name) if table else None
        if not expression:
            continue

        alternatives = [[_parse_member(m) for m in alternative] for alternative in expression]
        matched = [
            [
                (by_name[name], tag)
                for name, tag in alternative
                if name in by_name and by_name[name] != course.id
            ]
            for alternative in alternatives
        ]
        chosen = _choose_alternative(matched, [len(a) for a in alternatives])

        order = ([chosen] if chosen is not None else []) + [
            i for i in range(len(matched)) if i != chosen
        ]
        for index in order:
            for source, tag in matched[index]:
                key = (source, course.id)
                if key in edges:
                    continue
                edge_type = tag or edge_types.get(key, RequisiteType.PREREQ)
                edges[key] = RequisiteEdge(
                    source=source, target=course.id, type=edge_type, direct=index == chosen
                )
                types[key] = edge_type
                resolved.add_edge(source, course.id)

    redundant = _redundant_edges(edges)
    for key in redundant:
        e = edges[key]
        edges[key] = RequisiteEdge(e.source, e.target, e.type, e.direct, redundant=True)

    if logger:
        direct_count = sum(1 for e in edges.values() if e.direct)
        logger.info(
            f"Resolved {len(edges)} requisite edges ({direct_count} direct, "
            f"{len(redundant)} redundant) for {len(plan)} courses"
        )

    return ResolveResult(
        plan=resolved,
        edge_types=types,
        edges=edges,
        terms=course_terms,
        missing_terms=missing_terms,
    )


async def resolve_plan(
    plan: DegreePlan,
    term_cache: TermCache,
    reference_year: int,
    bounds: TermBounds,
    edge_types: Optional[EdgeTypes] = None,
    logger: Optional[logging.Logger] = _logger,
) -> ResolveResult:
    """Load every term the plan touches, then rebuild its requisite edges.

    Several passes may run concurrently; they share fetches through the cache.

    Raises:
        DataSourceError: If fetching a term fails; no plan is produced
    """
    terms = {term_for(reference_year, course, bounds) for course in plan.courses()}
    await term_cache.ensure_terms(terms)
    return resolve_requisites(
        plan, term_cache.snapshot(), reference_year, bounds, edge_types, logger
    )


def rename_course(plan: DegreePlan, course_id: int, name: str) -> DegreePlan:
    """Copy of ``plan`` with one course renamed; resolve it again afterwards."""
    return plan.with_course_renamed(course_id, name)
