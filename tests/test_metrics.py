#!/usr/bin/env python3
"""
Unit tests for curricular metrics: blocking factor, delay factor,
complexity and centrality.
"""

import sys
import unittest
from pathlib import Path
from unittest.mock import MagicMock

sys.path.insert(0, str(Path(__file__).parent.parent))

from conftest import make_plan  # noqa: E402
from curriculum.metrics import (  # noqa: E402
    all_paths,
    blocking_factor,
    blocking_factors,
    centralities,
    complexities,
    compute_plan_metrics,
    delay_factors,
    longest_path,
    term_summaries,
    to_networkx,
)
from curriculum.utils.validation import GraphInvariantError  # noqa: E402


def chain():
    plan = make_plan([(1, "A")], [(2, "B")], [(3, "C")])
    plan.add_edge(1, 2)
    plan.add_edge(2, 3)
    return plan


def diamond():
    plan = make_plan([(1, "A")], [(2, "B"), (3, "C")], [(4, "D")])
    for s, t in [(1, 2), (1, 3), (2, 4), (3, 4)]:
        plan.add_edge(s, t)
    return plan


class TestBlockingFactor(unittest.TestCase):
    def test_chain(self):
        plan = chain()
        self.assertEqual(blocking_factors(plan), {1: 2, 2: 1, 3: 0})

    def test_diamond_counts_each_course_once(self):
        """D is reachable from A by two paths but blocks once."""
        self.assertEqual(blocking_factor(diamond(), 1), 3)

    def test_leaf_is_zero(self):
        self.assertEqual(blocking_factor(diamond(), 4), 0)

    def test_weighted(self):
        plan = make_plan([(1, "A")], [(2, "B")])
        plan.add_edge(1, 2)
        weights = {"A": 1, "B": 2}
        weight = lambda course: weights[course.name]  # noqa: E731
        self.assertEqual(blocking_factor(plan, 1, weight), 2)
        self.assertEqual(blocking_factor(plan, 2, weight), 0)

    def test_unknown_course(self):
        with self.assertRaises(GraphInvariantError):
            blocking_factor(chain(), 42)


class TestPaths(unittest.TestCase):
    def test_all_paths_diamond(self):
        self.assertEqual(all_paths(diamond()), [[1, 2, 4], [1, 3, 4]])

    def test_isolated_course_is_single_path(self):
        plan = make_plan([(1, "A"), (2, "B")])
        self.assertEqual(all_paths(plan), [[1], [2]])

    def test_cycle_rejected(self):
        plan = chain()
        plan.add_edge(3, 1)
        with self.assertRaises(GraphInvariantError) as ctx:
            all_paths(plan)
        self.assertIn("cycle", str(ctx.exception))

    def test_longest_path_first_wins(self):
        self.assertEqual(longest_path([[1, 2], [3, 4], [5]]), [1, 2])
        self.assertEqual(longest_path([]), [])


class TestDelayFactor(unittest.TestCase):
    def test_every_course_at_least_one(self):
        plan = make_plan([(1, "A"), (2, "B")])
        self.assertEqual(delay_factors(plan, all_paths(plan)), {1: 1, 2: 1})

    def test_longest_path_containing_course(self):
        """B sits on the 3-course chain, E only on a 2-course one."""
        plan = make_plan([(1, "A"), (5, "E")], [(2, "B")], [(3, "C")])
        plan.add_edge(1, 2)
        plan.add_edge(2, 3)
        plan.add_edge(5, 3)
        df = delay_factors(plan, all_paths(plan))
        self.assertEqual(df, {1: 3, 5: 2, 2: 3, 3: 3})

    def test_last_course_counts_toward_path_length(self):
        plan = chain()
        self.assertEqual(delay_factors(plan, all_paths(plan)), {1: 3, 2: 3, 3: 3})


class TestComplexityAndCentrality(unittest.TestCase):
    def test_complexity_is_sum(self):
        self.assertEqual(complexities({1: 2, 2: 0}, {1: 3, 2: 3}), {1: 5, 2: 3})

    def test_unknown_system(self):
        with self.assertRaises(ValueError):
            complexities({}, {}, system="trimester")

    def test_centrality_chain(self):
        """Middle of a chain: one path of length 3, bf 1, df 3."""
        plan = chain()
        paths = all_paths(plan)
        bf = blocking_factors(plan)
        df = delay_factors(plan, paths)
        ce = centralities(plan, paths, bf, df)
        self.assertEqual(ce, {1: 0, 2: 0, 3: 0})

    def test_centrality_diamond(self):
        plan = diamond()
        paths = all_paths(plan)
        bf = blocking_factors(plan)
        df = delay_factors(plan, paths)
        ce = centralities(plan, paths, bf, df)
        # A: 3+3 - 3 - 3; D: 3+3 - 0 - 3; B: 3 - 1 - 3 clamps to 0
        self.assertEqual(ce, {1: 0, 2: 0, 3: 0, 4: 3})

    def test_centrality_never_negative(self):
        plan = make_plan([(1, "A")])
        ce = centralities(plan, [[1]], {1: 10}, {1: 1})
        self.assertEqual(ce, {1: 0})


class TestPlanMetrics(unittest.TestCase):
    def test_two_course_example(self):
        plan = make_plan([(1, "A")], [(2, "B")])
        plan.add_edge(1, 2)
        metrics = compute_plan_metrics(plan)
        self.assertEqual(metrics.blocking_factors, {1: 1, 2: 0})
        # B lies on the path A -> B, so its delay factor is 2 as well
        self.assertEqual(metrics.delay_factors, {1: 2, 2: 2})
        self.assertEqual(metrics.complexities, {1: 3, 2: 2})
        self.assertEqual(metrics.paths, [[1, 2]])

    def test_every_course_present(self):
        plan = diamond()
        metrics = compute_plan_metrics(plan)
        for mapping in (
            metrics.blocking_factors,
            metrics.delay_factors,
            metrics.complexities,
            metrics.centralities,
        ):
            self.assertEqual(set(mapping), set(plan.course_ids))

    def test_pure_with_respect_to_input(self):
        plan = diamond()
        before = plan.structural_key()
        first = compute_plan_metrics(plan)
        second = compute_plan_metrics(plan)
        self.assertEqual(plan.structural_key(), before)
        self.assertEqual(first, second)

    def test_logger_used_when_given(self):
        logger = MagicMock()
        compute_plan_metrics(chain(), logger=logger)
        self.assertTrue(logger.info.called)

    def test_term_summaries(self):
        plan = diamond()
        summaries = term_summaries(plan, {1: 1, 2: 2, 3: 3, 4: 4})
        self.assertEqual([s["complexity"] for s in summaries], [1, 5, 4])
        self.assertEqual([s["credits"] for s in summaries], [4, 8, 4])

    def test_to_networkx(self):
        G = to_networkx(diamond())  # noqa: N806
        self.assertEqual(G.number_of_nodes(), 4)
        self.assertTrue(G.has_edge(1, 3))
        self.assertEqual(G.nodes[4]["course"].name, "D")


if __name__ == "__main__":
    unittest.main()
