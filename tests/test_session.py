"""
Tests for the plan session: resolve, rename and memoized metrics.
"""

import asyncio
from unittest.mock import patch

import pytest

from conftest import StubSource, make_plan
from curriculum.data_source import DataSourceError
from curriculum.metrics import compute_plan_metrics
from curriculum.session import PlanSession
from curriculum.stats import ComplexityMode, CourseStats
from curriculum.terms import TermBounds


class StubSourceWithMetadata(StubSource):
    def __init__(self, tables=None, fail_terms=None, bounds=None):
        super().__init__(tables, fail_terms)
        self.bounds = bounds or TermBounds()

    async def fetch_metadata_async(self):
        return self.bounds


def make_session(tables, **kwargs):
    plan = make_plan([(1, "A")], [(2, "B")], [(3, "C")])
    source = StubSourceWithMetadata(tables, kwargs.pop("fail_terms", None))
    return PlanSession(plan, 2024, source, **kwargs)


class TestPlanSession:
    def test_resolve_updates_plan_and_edges(self):
        session = make_session({"FA24": {"B": [["A"]], "C": [["B"]]}})
        result = asyncio.run(session.resolve())

        assert session.plan is result.plan
        assert session.plan.edges() == [(1, 2), (2, 3)]
        assert set(session.edges) == {(1, 2), (2, 3)}

    def test_load_metadata_replaces_bounds(self):
        session = make_session({})
        session.source.bounds = TermBounds("FA21", "SP25")
        asyncio.run(session.load_metadata())
        assert session.bounds == TermBounds("FA21", "SP25")

    def test_prefetch_course_term(self):
        session = make_session({"FA24": {}})
        term = asyncio.run(session.prefetch_course_term(2))
        assert term == "FA24"
        assert "FA24" in session.term_cache

    def test_rename_rederives_edges(self):
        session = make_session({"FA24": {"B": [["A"]], "Z": [["A"]]}})
        asyncio.run(session.resolve())
        assert session.plan.edges() == [(1, 2)]

        asyncio.run(session.rename(3, "Z"))
        assert session.plan.course(3).name == "Z"
        assert session.plan.edges() == [(1, 2), (1, 3)]

    def test_failed_rename_keeps_previous_state(self):
        session = make_session({}, fail_terms={"FA24"})
        before = session.plan

        with pytest.raises(DataSourceError):
            asyncio.run(session.rename(1, "Renamed"))

        assert session.plan is before
        assert session.plan.course(1).name == "A"

    def test_metrics_memoized_by_structure(self):
        session = make_session({"FA24": {"B": [["A"]]}})
        asyncio.run(session.resolve())

        with patch("curriculum.session.compute_plan_metrics", wraps=compute_plan_metrics) as spy:
            first = session.metrics()
            second = session.metrics(ComplexityMode.DEFAULT)
            assert first is second
            assert spy.call_count == 1

            session.metrics("dfq")
            assert spy.call_count == 2

        assert first.blocking_factors == {1: 1, 2: 0, 3: 0}

    def test_metrics_apply_complexity_mode(self):
        rates = {"A": 0.5, "B": 0.0, "C": 1.0}
        session = make_session(
            {"FA24": {"B": [["A"]]}}, stats_for=lambda name: CourseStats(dfq=rates[name])
        )
        asyncio.run(session.resolve())

        plain = session.metrics()
        scaled = session.metrics(ComplexityMode.DFQ_PLUS_1)
        weighted = session.metrics(ComplexityMode.DFQ_PLUS_1_BF)

        assert plain.complexities[1] == 3
        assert scaled.complexities[1] == 4.5
        assert weighted.blocking_factors[1] == 1.0
        assert weighted.complexities == plain.complexities


class SleepySource(StubSourceWithMetadata):
    """Term fetches yield to the event loop before answering."""

    async def fetch_term_async(self, term):
        await asyncio.sleep(0.01)
        return await super().fetch_term_async(term)


class TestOverlappingPasses:
    def make_session(self, tables):
        plan = make_plan([(1, "A")], [(2, "B")], [(3, "C")])
        return PlanSession(plan, 2024, SleepySource(tables))

    def test_concurrent_renames_both_kept(self):
        session = self.make_session({"FA24": {"B2": [["A"]], "C2": [["B2"]]}})

        async def run():
            await asyncio.gather(session.rename(2, "B2"), session.rename(3, "C2"))

        asyncio.run(run())
        assert [c.name for c in session.plan.courses()] == ["A", "B2", "C2"]
        assert session.plan.edges() == [(1, 2), (2, 3)]

    def test_resolve_started_before_rename_does_not_undo_it(self):
        session = self.make_session({"FA24": {"Z": [["A"]]}})

        async def run():
            await asyncio.gather(session.resolve(), session.rename(3, "Z"))

        asyncio.run(run())
        assert session.plan.course(3).name == "Z"
        assert session.plan.edges() == [(1, 3)]

    def test_failed_rename_does_not_block_later_passes(self):
        session = self.make_session({})
        session.source.fail_terms.add("FA24")

        async def run():
            with pytest.raises(DataSourceError):
                await session.rename(2, "B2")
            session.source.fail_terms.clear()
            await session.rename(2, "B2")

        asyncio.run(run())
        assert session.plan.course(2).name == "B2"


def test_metrics_cache_keeps_only_current_structure():
    session = make_session({"FA24": {"B": [["A"]], "Z": [["A"]]}})
    asyncio.run(session.resolve())
    session.metrics()
    session.metrics(ComplexityMode.DFQ)
    assert len(session._metrics_cache) == 2

    asyncio.run(session.rename(3, "Z"))
    session.metrics()
    current = session.plan.structural_key()
    assert len(session._metrics_cache) == 1
    assert all(key[0] == current for key in session._metrics_cache)
