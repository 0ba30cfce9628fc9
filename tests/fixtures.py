from __future__ import annotations

import threading
import time
from typing import Any, Callable, Dict, List, Optional
from unittest.mock import Mock

from citeradar.config import SOURCE_CROSSREF, SOURCE_OPENALEX, SOURCE_S2
from citeradar.models import BibliographicQuery, PartialCitationRecord
from citeradar.rate_limit import RateLimitedRequestExecutor


DEEP_LEARNING = BibliographicQuery(title="Deep Learning", author="Ian Goodfellow", year="2016")

ATTENTION = BibliographicQuery(
    title="Attention Is All You Need",
    author="Ashish Vaswani, Noam Shazeer",
    year="2017",
    doi="10.48550/arXiv.1706.03762",
)


CROSSREF_PAYLOAD: Dict[str, Any] = {
    "status": "ok",
    "message": {
        "items": [
            {
                "DOI": "10.1000/unrelated",
                "title": ["A Survey of Something Else Entirely"],
                "is-referenced-by-count": 3,
            },
            {
                "DOI": "10.48550/ARXIV.1706.03762",
                "title": ["Attention Is All You Need"],
                "author": [
                    {"given": "Ashish", "family": "Vaswani", "ORCID": "https://orcid.org/0000-0000-0000-0001",
                     "affiliation": [{"name": "Google Brain"}]},
                    {"given": "Noam", "family": "Shazeer", "affiliation": []},
                    {"name": "Google Research"},
                ],
                "published": {"date-parts": [[2017, 6, 12]]},
                "container-title": ["Advances in Neural Information Processing Systems"],
                "publisher": "Curran Associates",
                "type": "proceedings-article",
                "URL": "https://doi.org/10.48550/arxiv.1706.03762",
                "is-referenced-by-count": 1200,
                "reference-count": 40,
                "subject": ["Artificial Intelligence", "Computer Science"],
                "ISSN": ["1049-5258"],
            },
        ]
    },
}

S2_PAYLOAD: Dict[str, Any] = {
    "total": 1,
    "data": [
        {
            "paperId": "204e3073870fae3d05bcbc2f6a8e263d9b72e776",
            "title": "Attention is All you Need",
            "citationCount": 95000,
            "influentialCitationCount": 9000,
            "referenceCount": 41,
            "year": 2017,
            "venue": "Neural Information Processing Systems",
            "journal": None,
            "externalIds": {"DOI": "10.48550/arXiv.1706.03762", "ArXiv": "1706.03762", "CorpusId": 13756489},
            "isOpenAccess": None,
            "openAccessPdf": {"url": "https://arxiv.org/pdf/1706.03762"},
            "publicationDate": "2017-06-12",
            "authors": [
                {"authorId": "40348417", "name": "Ashish Vaswani", "hIndex": 40},
                {"authorId": "1846258", "name": "Noam Shazeer", "hIndex": 0},
                {"authorId": "3877127", "name": "Niki Parmar"},
            ],
        }
    ],
}

OPENALEX_PAYLOAD: Dict[str, Any] = {
    "meta": {"count": 1},
    "results": [
        {
            "id": "https://openalex.org/W2963403868",
            "doi": "https://doi.org/10.48550/arxiv.1706.03762",
            "title": "Attention Is All You Need",
            "display_name": "Attention Is All You Need",
            "publication_year": 2017,
            "publication_date": None,
            "cited_by_count": 80000,
            "referenced_works_count": 35,
            "primary_location": {
                "landing_page_url": "https://arxiv.org/abs/1706.03762",
                "source": {"display_name": "arXiv (Cornell University)", "host_organization_name": "Cornell University"},
            },
            "open_access": {"is_oa": True, "oa_status": "green"},
            "authorships": [
                {
                    "author": {"id": "https://openalex.org/A1", "display_name": "Ashish Vaswani",
                               "orcid": None, "summary_stats": {"h_index": 25}},
                    "institutions": [{"display_name": "Google (United States)"}],
                },
                {
                    "author": {"id": "https://openalex.org/A2", "display_name": "Noam Shazeer",
                               "summary_stats": {"h_index": 31}},
                    "institutions": [],
                },
            ],
            "concepts": [
                {"display_name": "Computer science"},
                {"display_name": "Transformer"},
                {"display_name": "Artificial intelligence"},
                {"display_name": "Machine translation"},
                {"display_name": "Encoder"},
                {"display_name": "Speech recognition"},
            ],
            "ids": {"openalex": "https://openalex.org/W2963403868", "mag": "2963403868"},
        }
    ],
}


def make_response(
        status: int = 200,
        payload: Any = None,
        text: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        url: str = "https://example.test/api",
) -> Mock:
    """
    Build a stand-in for requests.Response. Without a payload, json() raises
    ValueError the way requests does for a non-JSON body.
    """
    resp = Mock()
    resp.status_code = status
    resp.headers = headers or {}
    resp.url = url
    resp.text = text if text is not None else ("" if payload is None else str(payload))
    if payload is None:
        resp.json.side_effect = ValueError("Expecting value: line 1 column 1 (char 0)")
    else:
        resp.json.return_value = payload
    return resp


class FakeSession:
    """
    Session double that plays back queued responses (or raises queued
    exceptions) and remembers every call it received.
    """

    def __init__(self, *outcomes: Any):
        self.outcomes = list(outcomes)
        self.calls: List[Dict[str, Any]] = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        if not self.outcomes:
            raise AssertionError("FakeSession received more requests than expected")
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def fast_executor(name: str, sleeps: Optional[List[float]] = None, **kwargs) -> RateLimitedRequestExecutor:
    """
    Executor whose bucket never runs dry and whose sleeps are recorded instead of taken.
    """
    record = sleeps if sleeps is not None else []
    return RateLimitedRequestExecutor(name, 1000.0, sleep=record.append, **kwargs)


class FakeAdapter:
    """
    Adapter double for coordinator tests. The result may be a record, None,
    an exception to raise, or a callable taking the query.
    """

    def __init__(self, name: str, result: Any = None, delay: float = 0.0):
        self.name = name
        self.result = result
        self.delay = delay
        self.calls: List[BibliographicQuery] = []
        self._lock = threading.Lock()

    def search(self, query: BibliographicQuery) -> Optional[PartialCitationRecord]:
        with self._lock:
            self.calls.append(query)
        delay = self.delay(query) if callable(self.delay) else self.delay
        if delay:
            time.sleep(delay)
        result = self.result
        if isinstance(result, BaseException):
            raise result
        if callable(result):
            return result(query)
        return result


def partial(source: str, **fields) -> PartialCitationRecord:
    return PartialCitationRecord(source=source, **fields)


def crossref(**fields) -> PartialCitationRecord:
    return partial(SOURCE_CROSSREF, **fields)


def s2(**fields) -> PartialCitationRecord:
    return partial(SOURCE_S2, **fields)


def openalex(**fields) -> PartialCitationRecord:
    return partial(SOURCE_OPENALEX, **fields)


def no_sleep() -> Callable[[float], None]:
    return lambda _seconds: None
