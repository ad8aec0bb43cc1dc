"""
Plan-viewing session: holds the current degree plan, its requisite edges and
the term cache, re-resolves after renames and memoizes metrics.
"""

import asyncio
import logging
from typing import Dict, Optional, Tuple

from .data_source import PrereqDataSource
from .metrics import PlanMetrics, compute_plan_metrics
from .model import DegreePlan, EdgeTypes, RequisiteEdge
from .requisites import ResolveResult, rename_course, resolve_plan
from .stats import ComplexityMode, StatsLookup, blocking_weight, no_stats, scale_complexities
from .term_cache import TermCache
from .terms import TermBounds, term_for


class PlanSession:
    """State of one degree plan being viewed and edited.

    The plan is only replaced once a resolution pass has fully succeeded; a
    failed fetch leaves the previous plan and edges in place.
    """

    def __init__(
        self,
        plan: DegreePlan,
        reference_year: int,
        source: PrereqDataSource,
        edge_types: Optional[EdgeTypes] = None,
        bounds: Optional[TermBounds] = None,
        stats_for: StatsLookup = no_stats,
        system: str = "semester",
        term_cache: Optional[TermCache] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.plan = plan
        self.reference_year = reference_year
        self.source = source
        self.edge_types: EdgeTypes = dict(edge_types or {})
        self.edges: Dict[Tuple[int, int], RequisiteEdge] = {}
        self.bounds = bounds or TermBounds()
        self.stats_for = stats_for
        self.system = system
        self.logger = logger or logging.getLogger(__name__)
        self.term_cache = term_cache or TermCache(source, logger=self.logger)
        self._metrics_cache: Dict[Tuple, PlanMetrics] = {}
        # Serializes read-resolve-apply so overlapping passes never drop an edit
        self._plan_lock = asyncio.Lock()

    async def load_metadata(self) -> TermBounds:
        """Replace the default term bounds with the data source's published range."""
        self.bounds = await self.source.fetch_metadata_async()
        return self.bounds

    async def prefetch_course_term(self, course_id: int) -> str:
        """Start loading the term a course resolves to, e.g. when it is inspected."""
        term = term_for(self.reference_year, self.plan.course(course_id), self.bounds)
        await self.term_cache.ensure_term(term)
        return term

    def _apply(self, result: ResolveResult) -> ResolveResult:
        self.plan = result.plan
        self.edge_types = result.edge_types
        self.edges = result.edges
        return result

    async def resolve(self) -> ResolveResult:
        """Rebuild all requisite edges of the current plan."""
        async with self._plan_lock:
            result = await resolve_plan(
                self.plan,
                self.term_cache,
                self.reference_year,
                self.bounds,
                self.edge_types,
                self.logger,
            )
            return self._apply(result)

    async def rename(self, course_id: int, name: str) -> ResolveResult:
        """Rename a course and re-derive every requisite edge.

        Renames and resolution passes are applied one at a time, each on top
        of the plan left by the previous one.

        Raises:
            DataSourceError: If a needed term cannot be fetched; state is unchanged
        """
        async with self._plan_lock:
            renamed = rename_course(self.plan, course_id, name)
            self.logger.info(f"Renamed course {course_id} to {name!r}")
            result = await resolve_plan(
                renamed,
                self.term_cache,
                self.reference_year,
                self.bounds,
                self.edge_types,
                self.logger,
            )
            return self._apply(result)

    def metrics(self, mode: ComplexityMode = ComplexityMode.DEFAULT) -> PlanMetrics:
        """Metrics of the current plan under a complexity mode, memoized by plan structure.

        Only entries for the current structure are kept.
        """
        mode = ComplexityMode(mode)
        structure = self.plan.structural_key()
        for stale in [k for k in self._metrics_cache if k[0] != structure]:
            del self._metrics_cache[stale]

        key = (structure, mode, self.system)
        if key not in self._metrics_cache:
            weight = blocking_weight(mode, self.stats_for)
            metrics = compute_plan_metrics(self.plan, weight, self.system)
            metrics.complexities = scale_complexities(
                mode, self.plan, metrics.complexities, self.stats_for
            )
            self._metrics_cache[key] = metrics
        return self._metrics_cache[key]
