"""
Graph model for degree plans.

A degree plan is an ordered list of terms, each an ordered list of courses.
Requisite relations are kept on the side as an arena keyed by course id:
``backwards[c]`` lists the requisites of course ``c`` and ``forwards[c]``
lists the courses that depend on ``c``. The two maps are inverses.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from .utils.validation import GraphInvariantError

# Season codes accepted in Course.quarter
SEASONS = ("FA", "WI", "SP", "S1", "S2", "S3")


class RequisiteType(str, Enum):
    """Kind of requisite relation carried by an edge."""

    PREREQ = "prereq"
    COREQ = "coreq"
    STRICT_COREQ = "strict-coreq"

    @classmethod
    def parse(cls, value: Any) -> "RequisiteType":
        """Accept enum members, canonical values and a few common spellings."""
        if isinstance(value, RequisiteType):
            return value
        normalized = str(value).strip().lower().replace("_", "-")
        aliases = {
            "prerequisite": cls.PREREQ,
            "corequisite": cls.COREQ,
            "strict-corequisite": cls.STRICT_COREQ,
        }
        if normalized in aliases:
            return aliases[normalized]
        try:
            return cls(normalized)
        except ValueError:
            raise GraphInvariantError(f"Unknown requisite type: {value!r}")


@dataclass(frozen=True)
class Course:
    """A course placed in a degree plan.

    Attributes:
        id: Identity, unique within one plan
        name: Course code or title, used to join requisite data and statistics
        year: 0-indexed enrollment year
        quarter: Season code within the year (FA, WI, SP, S1, S2, S3)
        credits: Non-negative credit weight
    """

    id: int
    name: str
    year: int
    quarter: str
    credits: float = 0.0

    def __post_init__(self):
        if self.year < 0:
            raise GraphInvariantError(f"Course {self.id}: year must be non-negative")
        if self.quarter not in SEASONS:
            raise GraphInvariantError(f"Course {self.id}: unknown quarter {self.quarter!r}")
        if self.credits < 0:
            raise GraphInvariantError(f"Course {self.id}: credits must be non-negative")


@dataclass(frozen=True)
class RequisiteEdge:
    """Requisite relation: ``target`` depends on ``source``."""

    source: int
    target: int
    type: RequisiteType = RequisiteType.PREREQ
    direct: bool = True
    redundant: bool = False

    @property
    def key(self) -> Tuple[int, int]:
        return (self.source, self.target)


EdgeTypes = Dict[Tuple[int, int], RequisiteType]


class DegreePlan:
    """Term-ordered courses plus arena adjacency.

    The plan owns the adjacency lists; courses are immutable values, so a
    rebuilt plan can share them with the plan it was derived from.
    """

    def __init__(
        self,
        terms: Sequence[Sequence[Course]],
        backwards: Optional[Dict[int, List[int]]] = None,
        forwards: Optional[Dict[int, List[int]]] = None,
    ):
        self.terms: List[List[Course]] = [list(term) for term in terms]
        self._by_id: Dict[int, Course] = {}
        for course in self.courses():
            if course.id in self._by_id:
                raise GraphInvariantError(f"Duplicate course ID: {course.id}")
            self._by_id[course.id] = course

        self.backwards: Dict[int, List[int]] = {cid: [] for cid in self._by_id}
        self.forwards: Dict[int, List[int]] = {cid: [] for cid in self._by_id}

        if backwards is not None or forwards is not None:
            for target, sources in (backwards or {}).items():
                for source in sources:
                    self.add_edge(source, target)
            # Forwards may only restate what backwards already holds
            for source, targets in (forwards or {}).items():
                for target in targets:
                    self.add_edge(source, target)

    def courses(self) -> Iterator[Course]:
        """Iterate courses in plan order (term by term)."""
        for term in self.terms:
            yield from term

    def course(self, course_id: int) -> Course:
        try:
            return self._by_id[course_id]
        except KeyError:
            raise GraphInvariantError(f"Course {course_id} is not in the plan")

    def __contains__(self, course_id: int) -> bool:
        return course_id in self._by_id

    def __len__(self) -> int:
        return len(self._by_id)

    @property
    def course_ids(self) -> List[int]:
        return [course.id for course in self.courses()]

    def add_edge(self, source: int, target: int) -> None:
        """Record that ``target`` requires ``source``. Repeated calls are no-ops."""
        if source not in self._by_id:
            raise GraphInvariantError(f"Edge source {source} does not exist")
        if target not in self._by_id:
            raise GraphInvariantError(f"Edge target {target} does not exist")
        if source == target:
            raise GraphInvariantError(f"Requisite self-loop forbidden: {source} -> {target}")
        if source not in self.backwards[target]:
            self.backwards[target].append(source)
            self.forwards[source].append(target)

    def edges(self) -> List[Tuple[int, int]]:
        """All (source, target) pairs, ordered by target plan order."""
        return [
            (source, target) for target in self.course_ids for source in self.backwards[target]
        ]

    def roots(self) -> List[int]:
        return [cid for cid in self.course_ids if not self.backwards[cid]]

    def leaves(self) -> List[int]:
        return [cid for cid in self.course_ids if not self.forwards[cid]]

    def check_adjacency(self) -> None:
        """Verify that backwards and forwards are exact inverses.

        Raises:
            GraphInvariantError: On any one-sided reference
        """
        for target, sources in self.backwards.items():
            for source in sources:
                if target not in self.forwards.get(source, []):
                    raise GraphInvariantError(
                        f"Adjacency mismatch: {source} in backwards[{target}] "
                        f"but {target} missing from forwards[{source}]"
                    )
        for source, targets in self.forwards.items():
            for target in targets:
                if source not in self.backwards.get(target, []):
                    raise GraphInvariantError(
                        f"Adjacency mismatch: {target} in forwards[{source}] "
                        f"but {source} missing from backwards[{target}]"
                    )

    def without_edges(self) -> "DegreePlan":
        """Same courses and term order, empty adjacency."""
        return DegreePlan(self.terms)

    def with_course_renamed(self, course_id: int, name: str) -> "DegreePlan":
        """Copy of the plan where one course carries a new name.

        Adjacency is copied unchanged; callers re-resolve requisites afterwards.
        """
        self.course(course_id)
        terms = [
            [replace(c, name=name) if c.id == course_id else c for c in term]
            for term in self.terms
        ]
        return DegreePlan(terms, backwards=self.backwards)

    def structural_key(self) -> Tuple:
        """Hashable description of courses and edges, for memoizing derived data."""
        return (
            tuple(
                tuple((c.id, c.name, c.year, c.quarter, c.credits) for c in term)
                for term in self.terms
            ),
            tuple(self.edges()),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "terms": [
                [
                    {
                        "id": c.id,
                        "name": c.name,
                        "year": c.year,
                        "quarter": c.quarter,
                        "credits": c.credits,
                    }
                    for c in term
                ]
                for term in self.terms
            ],
            "edges": [{"source": s, "target": t} for s, t in self.edges()],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Tuple["DegreePlan", EdgeTypes]:
        """Build a plan and its edge-type map from the plan JSON document.

        Args:
            data: Document matching DegreePlan.schema.json

        Returns:
            Tuple of (plan, edge types keyed by (source, target))
        """
        terms = [
            [
                Course(
                    id=int(c["id"]),
                    name=c["name"],
                    year=int(c["year"]),
                    quarter=c["quarter"],
                    credits=float(c.get("credits", 0)),
                )
                for c in term
            ]
            for term in data.get("terms", [])
        ]
        plan = cls(terms)
        edge_types: EdgeTypes = {}
        for edge in data.get("edges", []):
            source, target = int(edge["source"]), int(edge["target"])
            plan.add_edge(source, target)
            edge_types[(source, target)] = RequisiteType.parse(edge.get("type", "prereq"))
        return plan, edge_types

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DegreePlan):
            return NotImplemented
        return self.structural_key() == other.structural_key()

    def __repr__(self) -> str:
        return f"DegreePlan(terms={len(self.terms)}, courses={len(self)}, edges={len(self.edges())})"
