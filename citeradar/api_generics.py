from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import requests

from .config import (
    HTTP_TIMEOUT_DEFAULT,
    MIN_SEARCH_QUERY_LENGTH,
    SEARCH_RESULTS_PER_SOURCE,
    SIM_TITLE_MATCH_THRESHOLD,
)
from .exceptions import FIELD_ACCESS_ERRORS, JSON_ERRORS, MalformedResponseError, SOURCE_ERRORS
from .http_utils import decode_json_response, get_session, http_get
from .log_utils import logger, LogCategory
from .models import BibliographicQuery, PartialCitationRecord
from .rate_limit import RateLimitedRequestExecutor
from .text_utils import build_search_query, normalize_doi, safe_get_field, safe_get_nested, title_similarity


@dataclass
class SourceConfig:
    """
    Configuration for one citation database: endpoint, query parameters,
    where the result list lives in the response, and how to read a
    candidate's title and DOI for matching.
    """
    name: str
    base_url: str
    details_key: str

    # Query parameters
    query_param_name: str = "query"
    additional_params: Dict[str, Any] = field(default_factory=dict)

    # Response structure
    result_path: List[str] = field(default_factory=lambda: ["results"])

    timeout: float = HTTP_TIMEOUT_DEFAULT

    # Optional custom extractors
    title_getter: Optional[Callable[[Dict[str, Any]], str]] = None
    doi_getter: Optional[Callable[[Dict[str, Any]], Optional[str]]] = None


class SourceAdapter:
    """
    Search one citation database and normalize its best hit into a
    PartialCitationRecord.

    search() never raises for upstream trouble: rate limiting, server and
    auth errors, bad JSON and unexpected shapes all come back as None.
    Subclasses only implement parse_item().
    """

    def __init__(
            self,
            config: SourceConfig,
            executor: Optional[RateLimitedRequestExecutor] = None,
            session: Optional[requests.Session] = None,
    ):
        self.config = config
        self.executor = executor or RateLimitedRequestExecutor(config.name)
        self.session = session or get_session()

    @property
    def name(self) -> str:
        return self.config.name

    def build_params(self, search_query: str) -> Dict[str, Any]:
        return {self.config.query_param_name: search_query, **self.config.additional_params}

    def item_title(self, item: Dict[str, Any]) -> str:
        if self.config.title_getter:
            return self.config.title_getter(item) or ""
        return safe_get_field(item, "title") or ""

    def item_doi(self, item: Dict[str, Any]) -> Optional[str]:
        if self.config.doi_getter:
            return normalize_doi(self.config.doi_getter(item))
        return normalize_doi(safe_get_field(item, "doi"))

    def parse_item(self, item: Dict[str, Any]) -> PartialCitationRecord:
        raise NotImplementedError

    def search(self, query: BibliographicQuery) -> Optional[PartialCitationRecord]:
        """
        Look the query up and return this source's partial record, or None
        when the source has nothing usable.
        """
        search_query = build_search_query(query.title, query.author)
        if len(search_query) < MIN_SEARCH_QUERY_LENGTH:
            logger.info(f"Search string too short: {search_query!r}", source=self.name, category=LogCategory.SKIP)
            return None

        logger.info(f"Searching: {search_query[:80]}", source=self.name, category=LogCategory.SEARCH)
        try:
            data = self._fetch(search_query)
            if data is None:
                return None

            item = self._pick_item(query, data)
            if item is None:
                logger.info("No results", source=self.name, category=LogCategory.SKIP)
                return None

            try:
                record = self.parse_item(item)
            except FIELD_ACCESS_ERRORS as e:
                raise MalformedResponseError(self.name, f"could not map result: {e}") from e

        except SOURCE_ERRORS as e:
            logger.warn(f"Treating source as absent: {e}", source=self.name, category=LogCategory.ERROR)
            return None

        logger.success(f"Found record (citations={record.citation_count})", source=self.name,
                       category=LogCategory.SEARCH)
        return record

    def _fetch(self, search_query: str) -> Optional[Any]:
        params = self.build_params(search_query)

        def request():
            return http_get(self.config.base_url, params=params, timeout=self.config.timeout, session=self.session)

        resp = self.executor.execute(request)
        if resp.status_code != 200:
            logger.info(f"Returned status {resp.status_code}", source=self.name, category=LogCategory.SKIP)
            return None

        try:
            return decode_json_response(resp)
        except JSON_ERRORS as e:
            raise MalformedResponseError(self.name, str(e), resp.status_code) from e

    def _pick_item(self, query: BibliographicQuery, data: Any) -> Optional[Dict[str, Any]]:
        """
        Choose the result to map: a DOI match first, then the first result
        whose title matches the query title, then the first result.
        """
        if not isinstance(data, dict):
            raise MalformedResponseError(self.name, f"expected a JSON object, got {type(data).__name__}")

        results = safe_get_nested(data, *self.config.result_path, default=[])
        if not isinstance(results, list):
            raise MalformedResponseError(self.name, f"expected a result list at {'.'.join(self.config.result_path)}")

        candidates = [r for r in results[:SEARCH_RESULTS_PER_SOURCE] if isinstance(r, dict)]
        if not candidates:
            return None

        wanted_doi = normalize_doi(query.doi)
        if wanted_doi:
            for item in candidates:
                if self.item_doi(item) == wanted_doi:
                    return item

        for item in candidates:
            if title_similarity(query.title, self.item_title(item)) >= SIM_TITLE_MATCH_THRESHOLD:
                return item

        logger.debug("No close title match; using first result", source=self.name, category=LogCategory.SEARCH)
        return candidates[0]
