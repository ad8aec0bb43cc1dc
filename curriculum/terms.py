"""
Term keys and term resolution.

A term key is a season code followed by the last two digits of the calendar
year, e.g. ``FA24`` or ``SP25``. Academic years start in the fall, so the
non-fall terms of academic year ``y`` fall in calendar year ``y + 1``.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, Tuple

from .model import SEASONS, Course
from .utils.validation import ValidationError

# Order of seasons within one calendar year
SEASON_ORDER = {"WI": 0, "SP": 1, "S1": 2, "S2": 3, "S3": 4, "FA": 5}

SEASON_NAMES = {
    "FA": "Fall",
    "WI": "Winter",
    "SP": "Spring",
    "S1": "Summer I",
    "S2": "Summer II",
    "S3": "Summer III",
}

CALENDAR_SYSTEMS = ("semester", "quarter")

_TERM_RE = re.compile(r"^(FA|WI|SP|S1|S2|S3)(\d{2})$")


class TermKeyError(ValidationError):
    """Malformed term key or inconsistent term bounds."""

    pass


def parse_term(term: str) -> Tuple[str, int]:
    """Split a term key into (season, calendar year).

    Args:
        term: Term key such as 'FA24'

    Returns:
        Tuple of (season code, four-digit calendar year)

    Raises:
        TermKeyError: If the key is malformed
    """
    match = _TERM_RE.match(term or "")
    if not match:
        raise TermKeyError(f"Invalid term key: {term!r}")
    return match.group(1), 2000 + int(match.group(2))


def term_key(season: str, calendar_year: int) -> str:
    if season not in SEASONS:
        raise TermKeyError(f"Unknown season: {season!r}")
    return f"{season}{calendar_year % 100:02d}"


def term_sort_key(term: str) -> Tuple[int, int]:
    """Sort key ordering term keys chronologically."""
    season, calendar_year = parse_term(term)
    return calendar_year, SEASON_ORDER[season]


def calendar_year_of(reference_year: int, course: Course) -> int:
    """Calendar year in which a course is nominally taken."""
    offset = 0 if course.quarter == "FA" else 1
    return reference_year + course.year + offset


def nominal_term(reference_year: int, course: Course) -> str:
    return term_key(course.quarter, calendar_year_of(reference_year, course))


@dataclass(frozen=True)
class TermBounds:
    """Earliest and latest term with published requisite data."""

    earliest: str = "FA24"
    latest: str = "FA24"

    def __post_init__(self):
        if term_sort_key(self.earliest) > term_sort_key(self.latest):
            raise TermKeyError(
                f"Term bounds out of order: earliest {self.earliest} after latest {self.latest}"
            )

    @classmethod
    def from_metadata(cls, metadata: Dict[str, Any]) -> "TermBounds":
        """Build bounds from the data source's metadata.json document."""
        try:
            return cls(metadata["min_prereq_term"], metadata["max_prereq_term"])
        except KeyError as e:
            raise TermKeyError(f"Metadata missing field: {e}")

    def clamp(self, term: str) -> str:
        key = term_sort_key(term)
        if key < term_sort_key(self.earliest):
            return self.earliest
        if key > term_sort_key(self.latest):
            return self.latest
        return term


def term_for(reference_year: int, course: Course, bounds: TermBounds) -> str:
    """Term key whose requisite data applies to a course.

    The nominal term is derived from ``reference_year + course.year`` and the
    course's season, then clamped into ``bounds`` so that data can always be
    requested for it.

    Args:
        reference_year: Calendar year of the first fall term of the plan
        course: Course to place
        bounds: Range of terms with data

    Returns:
        Term key within bounds
    """
    return bounds.clamp(nominal_term(reference_year, course))


def term_name(reference_year: int, index: int, system: str = "semester") -> str:
    """Display label for the ``index``-th term of a plan, e.g. "Fall '24".

    Args:
        reference_year: Calendar year of the first fall term
        index: 0-based position of the term in the plan
        system: 'semester' (Fall/Spring) or 'quarter' (Fall/Winter/Spring)
    """
    if system not in CALENDAR_SYSTEMS:
        raise ValueError(f"Unknown calendar system: {system!r}")
    seasons = ("FA", "SP") if system == "semester" else ("FA", "WI", "SP")
    academic_year, position = divmod(index, len(seasons))
    calendar_year = reference_year + academic_year + (1 if position > 0 else 0)
    return f"{SEASON_NAMES[seasons[position]]} '{calendar_year % 100:02d}"
