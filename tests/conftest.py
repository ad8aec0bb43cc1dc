"""
Global pytest configuration.
Loads environment variables from .env and provides shared plan fixtures.
"""

import json
import sys
from pathlib import Path

import pytest
from dotenv import load_dotenv

sys.path.insert(0, str(Path(__file__).parent.parent))

from curriculum.data_source import DataSourceError  # noqa: E402
from curriculum.model import Course, DegreePlan  # noqa: E402

# Load environment variables from .env when running tests
load_dotenv()


class StubSource:
    """In-memory requisite source that counts fetches per term."""

    def __init__(self, tables=None, fail_terms=None):
        self.tables = dict(tables or {})
        self.fail_terms = set(fail_terms or [])
        self.calls = []

    async def fetch_term_async(self, term):
        self.calls.append(term)
        if term in self.fail_terms:
            raise DataSourceError(f"unavailable: {term}")
        return self.tables.get(term, {})


def make_plan(*terms):
    """Plan from terms given as lists of (id, name) pairs, one semester each."""
    built = []
    for index, term in enumerate(terms):
        year, position = divmod(index, 2)
        quarter = "FA" if position == 0 else "SP"
        built.append([Course(cid, name, year, quarter, 4.0) for cid, name in term])
    return DegreePlan(built)


@pytest.fixture
def chain_plan():
    """A -> B -> C, one course per term, edges already set."""
    plan = make_plan([(1, "A")], [(2, "B")], [(3, "C")])
    plan.add_edge(1, 2)
    plan.add_edge(2, 3)
    return plan


@pytest.fixture
def diamond_plan():
    """A -> B, A -> C, B -> D, C -> D."""
    plan = make_plan([(1, "A")], [(2, "B"), (3, "C")], [(4, "D")])
    plan.add_edge(1, 2)
    plan.add_edge(1, 3)
    plan.add_edge(2, 4)
    plan.add_edge(3, 4)
    return plan


@pytest.fixture
def stub_source():
    return StubSource()


@pytest.fixture
def prereqs_mirror(tmp_path):
    """Local requisite mirror with metadata and one FA24 table."""
    root = tmp_path / "mirror"
    (root / "prereqs").mkdir(parents=True)
    (root / "metadata.json").write_text(
        json.dumps({"min_prereq_term": "FA24", "max_prereq_term": "FA24"}), encoding="utf-8"
    )
    (root / "prereqs" / "FA24.json").write_text(
        json.dumps(
            {
                "MATH 20B": [["MATH 20A"]],
                "MATH 20C": [["MATH 20B"]],
                "CSE 11": [["CSE 8A"], ["CSE 8B"]],
                "CSE 12": [["CSE 11"]],
                "CSE 100": [["CSE 12", "MATH 20A"]],
            }
        ),
        encoding="utf-8",
    )
    return root
