import copy

import pytest
import requests

from citeradar import api_clients
from citeradar.config import SOURCE_CROSSREF, SOURCE_OPENALEX, SOURCE_PRIORITY, SOURCE_S2
from citeradar.models import BibliographicQuery
from tests.fixtures import (
    ATTENTION,
    CROSSREF_PAYLOAD,
    OPENALEX_PAYLOAD,
    S2_PAYLOAD,
    FakeSession,
    fast_executor,
    make_response,
)


def crossref_adapter(*outcomes):
    session = FakeSession(*outcomes)
    return api_clients.CrossrefAdapter(executor=fast_executor(SOURCE_CROSSREF), session=session), session


def s2_adapter(*outcomes):
    session = FakeSession(*outcomes)
    return api_clients.SemanticScholarAdapter(executor=fast_executor(SOURCE_S2), session=session), session


def openalex_adapter(*outcomes):
    session = FakeSession(*outcomes)
    return api_clients.OpenAlexAdapter(executor=fast_executor(SOURCE_OPENALEX), session=session), session


# ===== CROSSREF =====

def test_crossref_maps_matching_item():
    """
    The DOI-matching item is chosen over the first result and mapped field by field.
    """
    adapter, session = crossref_adapter(make_response(200, CROSSREF_PAYLOAD))

    rec = adapter.search(ATTENTION)

    assert rec is not None, "Expected a partial record"
    assert rec.source == SOURCE_CROSSREF
    assert rec.citation_count == 1200, f"Wrong item picked or count unmapped: {rec.citation_count}"
    assert rec.reference_count == 40
    assert rec.doi == "10.48550/arxiv.1706.03762", "DOI should be normalized to lowercase"
    assert rec.journal == "Advances in Neural Information Processing Systems"
    assert rec.publisher == "Curran Associates"
    assert rec.published_date == "2017-06-12"
    assert rec.authors == ["Ashish Vaswani", "Noam Shazeer", "Google Research"]
    assert rec.subjects == ["Artificial Intelligence", "Computer Science"]
    assert rec.h_index is None, "Crossref does not report an h-index"
    assert rec.author_details[0].affiliations == ["Google Brain"]
    assert rec.identifiers["issn"] == ["1049-5258"]


def test_crossref_request_shape():
    adapter, session = crossref_adapter(make_response(200, CROSSREF_PAYLOAD))

    adapter.search(ATTENTION)

    assert len(session.calls) == 1
    params = session.calls[0]["params"]
    assert params["query"] == "Attention Is All You Need Ashish Vaswani", \
        f"Search string should be title plus first author, got {params['query']!r}"
    assert params["rows"] == 5
    assert "is-referenced-by-count" in params["select"]
    assert session.calls[0]["timeout"] == 15.0


def test_first_result_used_when_nothing_matches():
    adapter, _ = crossref_adapter(make_response(200, CROSSREF_PAYLOAD))

    rec = adapter.search(BibliographicQuery(title="Completely Different Topic"))

    assert rec is not None
    assert rec.doi == "10.1000/unrelated", "Without a DOI or title match the first result is used"


def test_title_match_preferred_without_doi():
    adapter, _ = crossref_adapter(make_response(200, CROSSREF_PAYLOAD))

    rec = adapter.search(BibliographicQuery(title="Attention is all you need."))

    assert rec.citation_count == 1200


def test_absent_fields_stay_unknown():
    payload = {"message": {"items": [{"title": ["Sparse Item"]}]}}
    adapter, _ = crossref_adapter(make_response(200, payload))

    rec = adapter.search(BibliographicQuery(title="Sparse Item"))

    assert rec is not None
    assert rec.citation_count is None, "Missing counts must map to None, not 0"
    assert rec.doi is None
    assert rec.authors == []


# ===== SEMANTIC SCHOLAR =====

def test_s2_maps_paper():
    adapter, session = s2_adapter(make_response(200, S2_PAYLOAD))

    rec = adapter.search(ATTENTION)

    assert rec.source == SOURCE_S2
    assert rec.citation_count == 95000
    assert rec.influential_citation_count == 9000
    assert rec.reference_count == 41
    assert rec.h_index == 40, "h-index is the highest positive author h-index"
    assert rec.doi == "10.48550/arxiv.1706.03762"
    assert rec.journal == "Neural Information Processing Systems", "Venue is used when journal is missing"
    assert rec.is_open_access is True, "An open access PDF implies open access"
    assert rec.published_date == "2017-06-12"
    assert rec.identifiers["arxivId"] == "1706.03762"
    assert rec.identifiers["semanticScholarId"] == S2_PAYLOAD["data"][0]["paperId"]
    assert session.calls[0]["url"].endswith("/paper/search")
    assert session.calls[0]["params"]["limit"] == 5


def test_s2_h_index_absent_when_all_zero():
    payload = copy.deepcopy(S2_PAYLOAD)
    for a in payload["data"][0]["authors"]:
        a["hIndex"] = 0
    adapter, _ = s2_adapter(make_response(200, payload))

    rec = adapter.search(ATTENTION)

    assert rec.h_index is None, "Zero h-indexes mean unknown"


# ===== OPENALEX =====

def test_openalex_maps_work():
    adapter, session = openalex_adapter(make_response(200, OPENALEX_PAYLOAD))

    rec = adapter.search(ATTENTION)

    assert rec.source == SOURCE_OPENALEX
    assert rec.citation_count == 80000
    assert rec.reference_count == 35
    assert rec.h_index == 31
    assert rec.doi == "10.48550/arxiv.1706.03762", "URL prefix should be stripped from the DOI"
    assert rec.journal == "arXiv (Cornell University)"
    assert rec.publisher == "Cornell University"
    assert rec.published_date == "2017", "Year is used when no full date is given"
    assert rec.is_open_access is True
    assert rec.open_access_status == "green"
    assert len(rec.concepts) == 5, f"OpenAlex concepts are capped at 5, got {rec.concepts}"
    assert rec.author_details[0].affiliations == ["Google (United States)"]
    assert session.calls[0]["params"]["search"] == "Attention Is All You Need Ashish Vaswani"
    assert session.calls[0]["params"]["per-page"] == 5


def test_openalex_unexpected_item_shape_is_absent():
    payload = copy.deepcopy(OPENALEX_PAYLOAD)
    payload["results"][0]["concepts"] = 5
    adapter, _ = openalex_adapter(make_response(200, payload))

    assert adapter.search(ATTENTION) is None


# ===== FAILURE HANDLING =====

def test_short_search_string_skips_request():
    adapter, session = crossref_adapter()

    assert adapter.search(BibliographicQuery(title="a!")) is None
    assert session.calls == [], "No request should be sent for a too-short search string"


@pytest.mark.parametrize("status", [400, 404])
def test_client_errors_are_absent(status):
    adapter, session = crossref_adapter(make_response(status, {"message": "nope"}))

    assert adapter.search(ATTENTION) is None
    assert len(session.calls) == 1, "Plain client errors are not retried"


def test_rate_limit_exhaustion_is_absent():
    adapter, session = s2_adapter(*[make_response(429) for _ in range(4)])

    assert adapter.search(ATTENTION) is None
    assert len(session.calls) == 4


def test_auth_failure_is_absent():
    adapter, session = openalex_adapter(make_response(403), make_response(200, OPENALEX_PAYLOAD))

    assert adapter.search(ATTENTION) is None
    assert len(session.calls) == 1


def test_server_error_then_success():
    adapter, session = crossref_adapter(make_response(502), make_response(200, CROSSREF_PAYLOAD))

    rec = adapter.search(ATTENTION)

    assert rec is not None and rec.citation_count == 1200
    assert len(session.calls) == 2


def test_connection_error_is_absent():
    adapter, _ = crossref_adapter(requests.ConnectionError("refused"))

    assert adapter.search(ATTENTION) is None


@pytest.mark.parametrize("body", [
    None,                                       # not JSON
    ["a", "list"],                              # not an object
    {"message": {"items": {"not": "a list"}}},  # results not a list
])
def test_malformed_payloads_are_absent(body):
    resp = make_response(200, body, text="<html>oops</html>" if body is None else None)
    adapter, _ = crossref_adapter(resp)

    assert adapter.search(ATTENTION) is None


def test_empty_results_are_absent():
    adapter, _ = crossref_adapter(make_response(200, {"message": {"items": []}}))

    assert adapter.search(ATTENTION) is None


def test_default_adapters_in_priority_order():
    adapters = api_clients.default_adapters()

    assert [a.name for a in adapters] == SOURCE_PRIORITY
    executors = {id(a.executor) for a in adapters}
    assert len(executors) == 3, "Each source must rate-limit independently"
