"""
HTTP client for published requisite data.

Endpoints relative to the configured base URL:
    GET <base>/prereqs/<term>.json  -> {course name: requisite expression}
    GET <base>/metadata.json        -> {"min_prereq_term": ..., "max_prereq_term": ...}
"""

import asyncio
import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, Optional, Union

import requests

from .terms import TermBounds, parse_term
from .utils.validation import ValidationError, validate_json, validate_requisite_table

DEFAULT_BASE_URL = "https://raw.githubusercontent.com/SheepTester-forks/ucsd-degree-plans/main"

RequisiteTable = Dict[str, Any]


class DataSourceError(Exception):
    """Network, HTTP or decoding failure while fetching requisite data."""

    pass


class PrereqDataSource:
    """Fetches per-term requisite tables and the term bounds metadata.

    Blocking calls use a requests.Session; the ``*_async`` variants run them
    in a worker thread so the event loop keeps serving other resolution passes.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30,
        max_retries: int = 2,
        backoff: float = 1.0,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff = backoff
        self.session = session or requests.Session()
        self.logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_config(cls, config: Dict[str, Any], **kwargs) -> "PrereqDataSource":
        section = config.get("data_source", {})
        return cls(
            base_url=section.get("base_url", DEFAULT_BASE_URL),
            timeout=section.get("timeout", 30),
            max_retries=section.get("max_retries", 2),
            backoff=section.get("backoff", 1.0),
            **kwargs,
        )

    def _get_json(self, url: str) -> Any:
        retry_count = 0
        while True:
            try:
                self.logger.debug(f"GET {url} (attempt {retry_count + 1})")
                response = self.session.get(url, timeout=self.timeout)
                response.raise_for_status()
                return response.json()
            except requests.exceptions.JSONDecodeError as e:
                raise DataSourceError(f"Invalid JSON from {url}: {e}") from e
            except requests.HTTPError as e:
                status = e.response.status_code if e.response is not None else None
                retryable = status is None or status >= 500
                if not retryable or retry_count >= self.max_retries:
                    raise DataSourceError(f"Request failed for {url}: {e}") from e
            except (requests.ConnectionError, requests.Timeout) as e:
                if retry_count >= self.max_retries:
                    raise DataSourceError(f"Request failed for {url}: {e}") from e
            except requests.RequestException as e:
                raise DataSourceError(f"Request failed for {url}: {e}") from e

            retry_count += 1
            wait_time = self.backoff * (2 ** (retry_count - 1))
            self.logger.warning(f"Retry {retry_count}/{self.max_retries} for {url} in {wait_time}s")
            time.sleep(wait_time)

    def fetch_term(self, term: str) -> RequisiteTable:
        """Download and validate the requisite table of one term.

        Raises:
            TermKeyError: If ``term`` is not a valid term key
            DataSourceError: On transport failure
            RequisiteDataError: If the payload is not a valid requisite table
        """
        parse_term(term)
        url = f"{self.base_url}/prereqs/{term}.json"
        self.logger.info(f"Fetching requisites for {term}")
        table = self._get_json(url)
        validate_requisite_table(table)
        self.logger.info(f"Loaded requisites for {term}: {len(table)} courses")
        return table

    def fetch_metadata(self) -> TermBounds:
        """Download the range of terms for which requisite data exists."""
        url = f"{self.base_url}/metadata.json"
        metadata = self._get_json(url)
        try:
            validate_json(metadata, "Metadata")
        except ValidationError as e:
            raise DataSourceError(f"Invalid metadata from {url}: {e}") from e
        bounds = TermBounds.from_metadata(metadata)
        self.logger.info(f"Requisite data available from {bounds.earliest} to {bounds.latest}")
        return bounds

    async def fetch_term_async(self, term: str) -> RequisiteTable:
        return await asyncio.to_thread(self.fetch_term, term)

    async def fetch_metadata_async(self) -> TermBounds:
        return await asyncio.to_thread(self.fetch_metadata)


class DirectoryDataSource:
    """Reads requisite tables from a local mirror laid out like the remote source.

    ``<root>/prereqs/<term>.json`` and ``<root>/metadata.json``.
    """

    def __init__(self, root: Union[str, Path], logger: Optional[logging.Logger] = None):
        self.root = Path(root)
        self.logger = logger or logging.getLogger(__name__)

    def _read_json(self, path: Path) -> Any:
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except OSError as e:
            raise DataSourceError(f"Cannot read {path}: {e}") from e
        except json.JSONDecodeError as e:
            raise DataSourceError(f"Invalid JSON in {path}: {e}") from e

    def fetch_term(self, term: str) -> RequisiteTable:
        parse_term(term)
        table = self._read_json(self.root / "prereqs" / f"{term}.json")
        validate_requisite_table(table)
        self.logger.info(f"Loaded requisites for {term} from {self.root}: {len(table)} courses")
        return table

    def fetch_metadata(self) -> TermBounds:
        path = self.root / "metadata.json"
        metadata = self._read_json(path)
        try:
            validate_json(metadata, "Metadata")
        except ValidationError as e:
            raise DataSourceError(f"Invalid metadata in {path}: {e}") from e
        return TermBounds.from_metadata(metadata)

    async def fetch_term_async(self, term: str) -> RequisiteTable:
        return await asyncio.to_thread(self.fetch_term, term)

    async def fetch_metadata_async(self) -> TermBounds:
        return await asyncio.to_thread(self.fetch_metadata)
