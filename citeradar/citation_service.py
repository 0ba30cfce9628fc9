from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from .api_clients import default_adapters
from .api_generics import SourceAdapter
from .config import BATCH_MAX_WORKERS, MAX_BATCH_SIZE, SOURCE_PACING_DELAY
from .exceptions import BatchSizeError, InvalidPublicationError
from .fallback import FallbackSynthesizer, iso_timestamp
from .log_utils import logger, LogCategory, LogSource
from .merge_utils import merge_citations
from .models import BibliographicQuery, CanonicalCitationRecord, PartialCitationRecord

SERVICE_NAME = "CiteRadar Citation Service"

FEATURES = [
    "Multi-source citation lookup (Crossref, Semantic Scholar, OpenAlex)",
    "Per-source rate limiting with exponential backoff",
    "Max-count merge with source-priority identity fields",
    "Deterministic synthetic fallback when no source has data",
    f"Batch lookups of up to {MAX_BATCH_SIZE} publications",
    "Author-level citation metrics",
]


def check_batch_size(items: Any) -> int:
    """
    Reject anything that is not a list of 1 to MAX_BATCH_SIZE items.
    """
    if not isinstance(items, (list, tuple)):
        raise BatchSizeError(f"Publications must be a list, got {type(items).__name__}")
    n = len(items)
    if n == 0:
        raise BatchSizeError("Publications list is empty")
    if n > MAX_BATCH_SIZE:
        raise BatchSizeError(f"Maximum {MAX_BATCH_SIZE} publications per batch, got {n}")
    return n


class CitationService:
    """
    Look publications up across every configured source and hand back one
    canonical record per publication.

    Lookups never raise for upstream trouble. A source that fails counts as
    absent, and a lookup with no usable source data gets a synthetic record.
    Only caller mistakes (missing title, bad batch size) raise, and they do
    so before any request goes out.
    """

    def __init__(
            self,
            adapters: Optional[Sequence[SourceAdapter]] = None,
            synthesizer: Optional[FallbackSynthesizer] = None,
            pacing_delay: float = SOURCE_PACING_DELAY,
            max_workers: int = BATCH_MAX_WORKERS,
            sleep: Callable[[float], None] = time.sleep,
    ):
        self.adapters = list(adapters) if adapters is not None else default_adapters()
        self.synthesizer = synthesizer or FallbackSynthesizer()
        self.pacing_delay = pacing_delay
        self.max_workers = max(1, int(max_workers))
        self._sleep = sleep

    def _search_source(self, adapter: Any, query: BibliographicQuery) -> Optional[PartialCitationRecord]:
        name = getattr(adapter, "name", type(adapter).__name__)
        try:
            return adapter.search(query)
        except Exception as e:
            logger.warn(f"Search raised {type(e).__name__}: {e}", source=name, category=LogCategory.ERROR)
            return None

    def lookup_one(self, query: BibliographicQuery) -> CanonicalCitationRecord:
        """
        Query each source in turn, pausing between calls, and merge what
        came back.
        """
        logger.step(f"Looking up: {query.title[:80]}", source=LogSource.SYSTEM, category=LogCategory.SEARCH)
        try:
            partials: List[Optional[PartialCitationRecord]] = []
            for i, adapter in enumerate(self.adapters):
                if i > 0 and self.pacing_delay > 0:
                    self._sleep(self.pacing_delay)
                partials.append(self._search_source(adapter, query))
            return merge_citations(query, partials, synthesizer=self.synthesizer)
        except Exception as e:
            logger.error(f"Lookup failed ({type(e).__name__}: {e}); using fallback", source=LogSource.SYSTEM,
                         category=LogCategory.FALLBACK)
            return self.synthesizer.synthesize(query)

    def lookup_batch(self, queries: Sequence[BibliographicQuery]) -> List[CanonicalCitationRecord]:
        """
        Look up 1 to MAX_BATCH_SIZE queries concurrently. The i-th record
        always answers the i-th query.
        """
        n = check_batch_size(queries)
        logger.step(f"Batch lookup of {n} publication(s) with {self.max_workers} worker(s)",
                    source=LogSource.SYSTEM, category=LogCategory.BATCH)

        results: List[CanonicalCitationRecord] = []
        with ThreadPoolExecutor(max_workers=min(self.max_workers, n)) as executor:
            futures = [executor.submit(self.lookup_one, q) for q in queries]
            for i, (query, future) in enumerate(zip(queries, futures), start=1):
                try:
                    results.append(future.result())
                except Exception as e:
                    logger.error(f"Batch item {i}/{n} failed: {e}", source=LogSource.SYSTEM,
                                 category=LogCategory.BATCH)
                    results.append(self.synthesizer.synthesize(query))

        real = sum(1 for r in results if not r.is_mock_data)
        logger.success(f"Batch complete: {real}/{n} with source data", source=LogSource.SYSTEM,
                       category=LogCategory.BATCH)
        return results

    def get_citation_info(self, publication: Any) -> CanonicalCitationRecord:
        """
        Single-publication entry point. Raises InvalidPublicationError when
        the publication has no title; otherwise always returns a record.
        """
        query = BibliographicQuery.from_publication(publication)
        return self.lookup_one(query)

    def get_citation_info_batch(self, publications: Any) -> Dict[str, Any]:
        """
        Batch entry point. The whole batch is validated up front, so a bad
        size or an untitled publication fails before any request is made.
        """
        check_batch_size(publications)
        queries = []
        for i, pub in enumerate(publications):
            try:
                queries.append(BibliographicQuery.from_publication(pub))
            except InvalidPublicationError as e:
                raise InvalidPublicationError(f"Publication {i}: {e}") from e

        records = self.lookup_batch(queries)
        return {
            "success": True,
            "results": [
                {"publication": pub, "citationInfo": rec}
                for pub, rec in zip(publications, records)
            ],
            "timestamp": iso_timestamp(),
        }

    def enrich_results(self, items: Sequence[Any]) -> List[Any]:
        """
        Attach a "citationInfo" record to every search result that has a
        title. Items without one come back unchanged, in their original
        position.
        """
        items = list(items or [])
        out: List[Any] = list(items)
        pending = []
        for i, item in enumerate(items):
            if not isinstance(item, Mapping):
                continue
            try:
                pending.append((i, BibliographicQuery.from_publication(item)))
            except InvalidPublicationError:
                continue

        logger.info(f"Enriching {len(pending)} of {len(items)} result(s)", source=LogSource.SYSTEM,
                    category=LogCategory.BATCH)
        for start in range(0, len(pending), MAX_BATCH_SIZE):
            chunk = pending[start:start + MAX_BATCH_SIZE]
            records = self.lookup_batch([q for _, q in chunk])
            for (i, _), rec in zip(chunk, records):
                out[i] = {**items[i], "citationInfo": rec}
        return out

    def status(self) -> Dict[str, Any]:
        apis = {}
        for adapter in self.adapters:
            config = getattr(adapter, "config", None)
            name = getattr(adapter, "name", type(adapter).__name__)
            apis[name] = getattr(config, "base_url", None)
        return {
            "service": SERVICE_NAME,
            "status": "operational",
            "apis": apis,
            "features": list(FEATURES),
            "maxBatchSize": MAX_BATCH_SIZE,
            "pacingDelay": self.pacing_delay,
            "timestamp": iso_timestamp(),
        }
