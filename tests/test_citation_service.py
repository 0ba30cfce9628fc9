from datetime import date
from unittest.mock import patch

import pytest

from citeradar import citation_service
from citeradar.citation_service import CitationService
from citeradar.config import SOURCE_CROSSREF, SOURCE_MOCK, SOURCE_OPENALEX, SOURCE_S2
from citeradar.exceptions import BatchSizeError, InvalidPublicationError, TransientSourceError
from citeradar.fallback import FallbackSynthesizer
from citeradar.models import BibliographicQuery, CanonicalCitationRecord
from tests.fixtures import DEEP_LEARNING, FakeAdapter, crossref, s2


def make_service(*adapters, sleeps=None, **kwargs):
    record = sleeps if sleeps is not None else []
    return CitationService(
        adapters=list(adapters),
        synthesizer=FallbackSynthesizer(today=date(2024, 5, 1)),
        sleep=record.append,
        **kwargs,
    )


def failing_adapters():
    return [
        FakeAdapter(SOURCE_CROSSREF, RuntimeError("boom")),
        FakeAdapter(SOURCE_S2, TransientSourceError(SOURCE_S2, "retries exhausted", 429)),
        FakeAdapter(SOURCE_OPENALEX, ValueError("bad payload")),
    ]


# ===== SINGLE LOOKUPS =====

def test_all_sources_failing_never_raises():
    """
    Adapters that raise are treated as absent and the lookup still resolves.
    """
    service = make_service(*failing_adapters())

    rec = service.get_citation_info({"title": "Deep Learning", "author": "Ian Goodfellow", "year": "2016"})

    assert isinstance(rec, CanonicalCitationRecord)
    assert rec.is_mock_data is True
    assert rec.citation_count >= 0
    assert rec.h_index == rec.citation_count // 10


def test_all_sources_absent_gives_mock_record():
    service = make_service(FakeAdapter(SOURCE_CROSSREF), FakeAdapter(SOURCE_S2), FakeAdapter(SOURCE_OPENALEX))

    rec = service.lookup_one(DEEP_LEARNING)

    assert rec.is_mock_data is True
    assert rec.sources == [SOURCE_MOCK], f"Mock records carry only the mock source, got {rec.sources}"


def test_merges_available_sources():
    service = make_service(
        FakeAdapter(SOURCE_CROSSREF, crossref(citation_count=120)),
        FakeAdapter(SOURCE_S2, s2(citation_count=95, h_index=40)),
        FakeAdapter(SOURCE_OPENALEX, RuntimeError("down")),
    )

    rec = service.get_citation_info({"title": "Deep Learning"})

    assert rec.citation_count == 120
    assert rec.primary_source == SOURCE_CROSSREF
    assert rec.h_index == 40
    assert rec.is_mock_data is False
    assert rec.sources == [SOURCE_CROSSREF, SOURCE_S2]


def test_pacing_between_sources_only():
    sleeps = []
    adapters = [FakeAdapter(SOURCE_CROSSREF), FakeAdapter(SOURCE_S2), FakeAdapter(SOURCE_OPENALEX)]
    service = make_service(*adapters, sleeps=sleeps, pacing_delay=2.0)

    service.lookup_one(DEEP_LEARNING)

    assert sleeps == [2.0, 2.0], f"Expected a pause between each pair of sources, got {sleeps}"
    assert all(len(a.calls) == 1 for a in adapters), "Every source is queried once"


def test_merge_failure_falls_back():
    service = make_service(FakeAdapter(SOURCE_CROSSREF, crossref(citation_count=1)))

    with patch.object(citation_service, "merge_citations", side_effect=RuntimeError("merge bug")):
        rec = service.lookup_one(DEEP_LEARNING)

    assert rec.is_mock_data is True


@pytest.mark.parametrize("publication", [{}, {"title": "   "}, {"author": "Someone"}, None])
def test_missing_title_rejected(publication):
    service = make_service(FakeAdapter(SOURCE_CROSSREF))

    with pytest.raises(InvalidPublicationError):
        service.get_citation_info(publication)


def test_publication_aliases():
    adapter = FakeAdapter(SOURCE_CROSSREF)
    service = make_service(adapter)

    service.get_citation_info({"title": "Deep Learning", "authors": ["Ian Goodfellow", "Yoshua Bengio"],
                               "publishYear": 2016})

    query = adapter.calls[0]
    assert query.author == "Ian Goodfellow, Yoshua Bengio"
    assert query.year == "2016"


# ===== BATCHES =====

def test_batch_over_limit_rejected_before_any_request():
    adapter = FakeAdapter(SOURCE_CROSSREF)
    service = make_service(adapter)
    pubs = [{"title": f"Paper {i}"} for i in range(21)]

    with pytest.raises(BatchSizeError):
        service.get_citation_info_batch(pubs)

    assert adapter.calls == [], "No source may be queried for an oversized batch"


def test_batch_at_limit_processes_everything():
    adapter = FakeAdapter(SOURCE_CROSSREF, lambda q: crossref(citation_count=len(q.title), doi="10.1/x"))
    service = make_service(adapter, pacing_delay=0)
    pubs = [{"title": f"Paper number {i}"} for i in range(20)]

    out = service.get_citation_info_batch(pubs)

    assert out["success"] is True
    assert len(out["results"]) == 20
    assert len(adapter.calls) == 20
    assert out["timestamp"].endswith("Z")


def test_empty_batch_rejected():
    service = make_service(FakeAdapter(SOURCE_CROSSREF))

    with pytest.raises(BatchSizeError):
        service.get_citation_info_batch([])


def test_batch_with_untitled_item_rejected_up_front():
    adapter = FakeAdapter(SOURCE_CROSSREF)
    service = make_service(adapter)

    with pytest.raises(InvalidPublicationError) as excinfo:
        service.get_citation_info_batch([{"title": "Fine"}, {"author": "No title"}])

    assert "Publication 1" in str(excinfo.value)
    assert adapter.calls == []


def test_batch_preserves_input_order():
    """
    Earlier items are made slower so they finish last; results must still
    line up with the input.
    """
    titles = [f"Staggered paper {i}" for i in range(5)]
    delays = {t: 0.05 * (5 - i) for i, t in enumerate(titles)}
    adapter = FakeAdapter(
        SOURCE_CROSSREF,
        lambda q: crossref(citation_count=int(q.title.split()[-1]) + 100, title=q.title, doi="10.1/x"),
        delay=lambda q: delays[q.title],
    )
    service = make_service(adapter, pacing_delay=0, max_workers=5)

    out = service.get_citation_info_batch([{"title": t} for t in titles])

    for i, item in enumerate(out["results"]):
        assert item["publication"]["title"] == titles[i]
        assert item["citationInfo"].title == titles[i], f"Result {i} belongs to another query"
        assert item["citationInfo"].citation_count == 100 + i


def test_batch_item_failure_is_isolated():
    def flaky(q):
        if q.title == "Bad one":
            raise RuntimeError("adapter bug")
        return crossref(citation_count=7, doi="10.1/ok")

    service = make_service(FakeAdapter(SOURCE_CROSSREF, flaky), pacing_delay=0)

    records = service.lookup_batch([BibliographicQuery(title="Good one"), BibliographicQuery(title="Bad one")])

    assert records[0].citation_count == 7 and not records[0].is_mock_data
    assert records[1].is_mock_data is True


def test_failed_future_becomes_fallback():
    service = make_service(FakeAdapter(SOURCE_CROSSREF), pacing_delay=0)

    with patch.object(service, "lookup_one", side_effect=RuntimeError("worker died")):
        records = service.lookup_batch([DEEP_LEARNING])

    assert len(records) == 1
    assert records[0].is_mock_data is True


# ===== ENRICHMENT AND STATUS =====

def test_enrich_results_attaches_citation_info():
    service = make_service(FakeAdapter(SOURCE_CROSSREF, crossref(citation_count=3, doi="10.1/a")), pacing_delay=0)
    items = [{"title": "Deep Learning", "id": 1}, {"id": 2}, "not a mapping"]

    out = service.enrich_results(items)

    assert out[0]["id"] == 1
    assert out[0]["citationInfo"].citation_count == 3
    assert out[1] == {"id": 2}, "Items without a title pass through unchanged"
    assert out[2] == "not a mapping"
    assert "citationInfo" not in items[0], "Input items must not be mutated"


def test_enrich_results_handles_more_than_one_batch():
    adapter = FakeAdapter(SOURCE_CROSSREF, crossref(citation_count=1, doi="10.1/a"))
    service = make_service(adapter, pacing_delay=0)

    out = service.enrich_results([{"title": f"Paper {i}"} for i in range(25)])

    assert len(out) == 25
    assert all("citationInfo" in item for item in out)
    assert len(adapter.calls) == 25


def test_enrich_empty_list():
    assert make_service(FakeAdapter(SOURCE_CROSSREF)).enrich_results([]) == []


def test_status_lists_apis_and_features():
    service = CitationService(sleep=lambda _s: None)

    status = service.status()

    assert status["status"] == "operational"
    assert set(status["apis"]) == {SOURCE_CROSSREF, SOURCE_S2, SOURCE_OPENALEX}
    assert all(url.startswith("http") for url in status["apis"].values())
    assert status["maxBatchSize"] == 20
    assert status["features"]
