"""
Per-term cache of requisite tables.

Entries are added monotonically and never evicted. Concurrent resolution
passes that need the same missing term share a single in-flight fetch: the
first caller starts it, every caller awaits the same task. A fetch is never
cancelled once started; if every waiter goes away, it still completes and
populates the cache for later passes.
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, Mapping, Optional, Protocol

from .terms import parse_term

RequisiteTable = Dict[str, Any]


class TermFetcher(Protocol):
    async def fetch_term_async(self, term: str) -> RequisiteTable: ...


class TermCache:
    """Deduplicating asynchronous cache of requisite tables keyed by term."""

    def __init__(
        self,
        fetcher: TermFetcher,
        initial: Optional[Mapping[str, RequisiteTable]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.fetcher = fetcher
        self.logger = logger or logging.getLogger(__name__)
        self._tables: Dict[str, RequisiteTable] = dict(initial or {})
        self._in_flight: Dict[str, asyncio.Task] = {}
        self.fetch_count = 0

    def __contains__(self, term: str) -> bool:
        return term in self._tables

    def get(self, term: str) -> Optional[RequisiteTable]:
        return self._tables.get(term)

    def put(self, term: str, table: RequisiteTable) -> None:
        """Seed a table. An already-known term keeps its first table."""
        parse_term(term)
        self._tables.setdefault(term, table)

    @property
    def known_terms(self):
        return sorted(self._tables)

    @property
    def pending_terms(self):
        return sorted(self._in_flight)

    def snapshot(self) -> Dict[str, RequisiteTable]:
        """Shallow copy of the current contents, safe to hand to the resolver."""
        return dict(self._tables)

    async def ensure_term(self, term: str) -> None:
        """Make sure the table for ``term`` is cached.

        Returns immediately if it already is; otherwise starts a fetch or joins
        the fetch another caller already started.

        Raises:
            DataSourceError: If the shared fetch fails (every waiter sees it)
        """
        if term in self._tables:
            return

        task = self._in_flight.get(term)
        if task is None:
            parse_term(term)
            task = asyncio.ensure_future(self._fetch(term))
            task.add_done_callback(self._report_failure)
            self._in_flight[term] = task
        else:
            self.logger.debug(f"Joining in-flight fetch for {term}")

        # A waiter giving up must not cancel the fetch for everyone else
        await asyncio.shield(task)

    async def ensure_terms(self, terms: Iterable[str]) -> None:
        """Ensure several terms concurrently; the first failure is raised."""
        unique = sorted(set(terms))
        await asyncio.gather(*(self.ensure_term(term) for term in unique))

    async def _fetch(self, term: str) -> None:
        try:
            table = await self.fetcher.fetch_term_async(term)
            self.fetch_count += 1
            # Data for a known term never changes, so the first write wins
            self._tables.setdefault(term, table)
        finally:
            self._in_flight.pop(term, None)

    def _report_failure(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.logger.error(f"Requisite fetch failed: {type(error).__name__}: {error}")
