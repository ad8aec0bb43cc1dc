"""
Per-course statistics and the complexity modes that use them.

Statistics come from JSON tables produced outside this project:
    dfq        course name -> {major prefix | "allMajors": DFQ rate}
    equity     course code -> {major prefix | "allMajors": "firstGen urm ..."}
    frequency  course code -> ["FA21", "SP22", ...]
    waitlist   course code -> average waitlist length

Unknown values are None and count as zero weight.
"""

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from .metrics import Weight
from .model import Course, DegreePlan

EQUITY_GAP_NAMES = {
    "firstGen": "First-gen",
    "gender": "Gender",
    "major": "Major",
    "urm": "URM",
}

_CODE_RE = re.compile(r"([A-Z]+) *(\d+[A-Z]*)")
_NUMBER_RE = re.compile(r"[A-Z]+ *(\d+)[A-Z]*")


@dataclass(frozen=True)
class CourseStats:
    dfq: Optional[float] = None
    dfq_for_department: bool = False
    equity_gaps: List[str] = field(default_factory=list)
    equity_gaps_for_department: bool = False
    frequency: Optional[List[str]] = None
    waitlist: Optional[float] = None


StatsLookup = Callable[[str], CourseStats]


class ComplexityMode(str, Enum):
    """How DFQ rates scale the structural complexity."""

    DEFAULT = "default"
    DFQ = "dfq"
    DFQ_PLUS_1 = "dfqPlus1"
    DFQ_PLUS_1_BF = "dfqPlus1Bf"


def course_code(name: str) -> str:
    """Compact subject+number code, e.g. 'MATH 20A' -> 'MATH20A' ('' if none)."""
    match = _CODE_RE.search(name.upper())
    return match.group(1) + match.group(2) if match else ""


def is_upper_division(name: str) -> bool:
    """Course number 100 or higher, or an 'UD ELECTIVE' placeholder."""
    upper = name.upper()
    match = _NUMBER_RE.search(upper)
    return int(match.group(1)) >= 100 if match else "UD ELECTIVE" in upper


def interpret_frequency(terms: Iterable[str]) -> str:
    """Describe the terms a course is offered in, e.g. 'Regular year (no summer)'."""
    seasons = {term[:2] for term in terms}
    summer = "S1" in seasons or "S2" in seasons
    regular = [name for code, name in (("FA", "Fall"), ("SP", "Spring")) if code in seasons]
    if len(regular) == 2:
        return "Year-round (incl. summer)" if summer else "Regular year (no summer)"
    if summer:
        regular.append("Summer")
    return ", ".join(regular)


def offered_in(stats: CourseStats, quarter: str) -> bool:
    """Whether a course is offered in a season; unknown frequency counts as offered."""
    if stats.frequency is None:
        return True
    return quarter in {term[:2] for term in stats.frequency}


def is_high_dfq(name: str, stats: CourseStats, ld_threshold: float, ud_threshold: float) -> bool:
    threshold = ud_threshold if is_upper_division(name) else ld_threshold
    return stats.dfq is not None and stats.dfq >= threshold


def _load_table(path: Optional[Union[str, Path]]) -> Dict[str, Any]:
    if not path:
        return {}
    with open(path, encoding="utf-8") as f:
        return json.load(f)


class StatsProvider:
    """Looks up statistics by course name, preferring major-specific values."""

    def __init__(
        self,
        dfq: Optional[Dict[str, Dict[str, float]]] = None,
        equity: Optional[Dict[str, Dict[str, str]]] = None,
        frequency: Optional[Dict[str, List[str]]] = None,
        waitlist: Optional[Dict[str, float]] = None,
        major: str = "",
    ):
        self.dfq = dfq or {}
        self.equity = equity or {}
        self.frequency = frequency or {}
        self.waitlist = waitlist or {}
        # Only the first two characters of the major select department rates
        self.major = (major or "")[:2]

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "StatsProvider":
        section = config.get("stats", {})
        return cls(
            dfq=_load_table(section.get("dfq_file")),
            equity=_load_table(section.get("equity_file")),
            frequency=_load_table(section.get("frequency_file")),
            waitlist=_load_table(section.get("waitlist_file")),
            major=section.get("major", ""),
        )

    def __call__(self, name: str) -> CourseStats:
        return self.get(name)

    def get(self, name: str) -> CourseStats:
        code = course_code(name)
        rates = self.dfq.get(name) or {}
        gaps = self.equity.get(code) or {}

        major_rate = rates.get(self.major) if self.major else None
        dfq = major_rate if major_rate is not None else rates.get("allMajors")

        if self.major and self.major in gaps:
            equity_gaps = gaps[self.major].split() if gaps[self.major] else []
            gaps_for_department = True
        else:
            equity_gaps = gaps["allMajors"].split() if gaps.get("allMajors") else []
            gaps_for_department = False

        return CourseStats(
            dfq=dfq,
            dfq_for_department=major_rate is not None,
            equity_gaps=equity_gaps,
            equity_gaps_for_department=gaps_for_department,
            frequency=self.frequency.get(code),
            waitlist=self.waitlist.get(code),
        )


def blocking_weight(mode: ComplexityMode, stats_for: StatsLookup) -> Optional[Weight]:
    """Blocking factor weight for a complexity mode (None means plain count)."""
    if ComplexityMode(mode) is ComplexityMode.DFQ_PLUS_1_BF:
        return lambda course: (stats_for(course.name).dfq or 0) + 1
    return None


def complexity_multiplier(mode: ComplexityMode, stats: CourseStats) -> float:
    mode = ComplexityMode(mode)
    dfq = stats.dfq or 0
    if mode is ComplexityMode.DFQ:
        return dfq
    if mode is ComplexityMode.DFQ_PLUS_1:
        return dfq + 1
    return 1.0


def scale_complexities(
    mode: ComplexityMode,
    plan: DegreePlan,
    complexities: Dict[int, float],
    stats_for: StatsLookup,
) -> Dict[int, float]:
    """Apply a complexity mode's DFQ multiplier to base complexities."""
    result = {}
    for course in plan.courses():
        base = complexities.get(course.id, 0)
        result[course.id] = complexity_multiplier(mode, stats_for(course.name)) * base
    return result


def no_stats(name: str) -> CourseStats:
    """Statistics lookup for when no tables are configured."""
    return CourseStats()


def course_stats_row(course: Course, stats: CourseStats) -> Dict[str, Any]:
    """Statistics of one course in the renderer's JSON shape."""
    return {
        "dfq": stats.dfq,
        "dfq_for_department": stats.dfq_for_department,
        "equity_gaps": [EQUITY_GAP_NAMES.get(g, g) for g in stats.equity_gaps],
        "equity_gaps_for_department": stats.equity_gaps_for_department,
        "offered": interpret_frequency(stats.frequency) if stats.frequency is not None else None,
        "offered_in_term": offered_in(stats, course.quarter),
        "waitlist": stats.waitlist,
        "upper_division": is_upper_division(course.name),
    }
