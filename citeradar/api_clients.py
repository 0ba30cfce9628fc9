from __future__ import annotations

from typing import Any, Dict, List, Optional

import requests

from .api_configs import CROSSREF_CONFIG, OPENALEX_CONFIG, S2_CONFIG
from .api_generics import SourceAdapter, SourceConfig
from .config import MAX_OPENALEX_CONCEPTS, SOURCE_CROSSREF, SOURCE_OPENALEX, SOURCE_S2
from .models import AuthorDetail, PartialCitationRecord
from .rate_limit import RateLimitedRequestExecutor
from .text_utils import (
    format_date_parts,
    normalize_doi,
    safe_get_field,
    safe_get_nested,
    to_int_or_none,
    unique_strings,
)


def _drop_empty(d: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in d.items() if v not in (None, "", [])}


def _max_h_index(current: Optional[int], candidate: Optional[int]) -> Optional[int]:
    # sources report 0 for "unknown", so only positive values count
    if candidate is None or candidate <= 0:
        return current
    if current is None or candidate > current:
        return candidate
    return current


def parse_crossref_item(item: Dict[str, Any]) -> PartialCitationRecord:
    """
    Map one Crossref work into a partial record.

    Crossref reports the cited-by count as "is-referenced-by-count" and keeps
    most scalar fields (title, container-title) as single-element lists.
    Author names are rebuilt from given and family parts.
    """
    names: List[str] = []
    details: List[AuthorDetail] = []
    for a in item.get("author") or []:
        if not isinstance(a, dict):
            continue
        full = f"{(a.get('given') or '').strip()} {(a.get('family') or '').strip()}".strip()
        full = full or (a.get("name") or "").strip()
        if not full:
            continue
        names.append(full)
        affiliations = unique_strings(
            aff.get("name") for aff in a.get("affiliation") or [] if isinstance(aff, dict)
        )
        details.append(AuthorDetail(name=full, orcid=a.get("ORCID"), affiliations=affiliations))

    doi = normalize_doi(item.get("DOI"))
    identifiers = _drop_empty({
        "doi": doi,
        "issn": unique_strings(item.get("ISSN") or []),
        "isbn": unique_strings(item.get("ISBN") or []),
        "type": item.get("type"),
    })

    return PartialCitationRecord(
        source=SOURCE_CROSSREF,
        citation_count=to_int_or_none(item.get("is-referenced-by-count")),
        reference_count=to_int_or_none(item.get("reference-count")),
        doi=doi,
        journal=safe_get_field(item, "container-title"),
        publisher=safe_get_field(item, "publisher"),
        published_date=format_date_parts(item.get("published")),
        title=safe_get_field(item, "title"),
        url=safe_get_field(item, "URL"),
        authors=unique_strings(names),
        subjects=unique_strings(item.get("subject") or []),
        author_details=details,
        identifiers=identifiers,
    )


def parse_s2_paper(paper: Dict[str, Any]) -> PartialCitationRecord:
    """
    Map one Semantic Scholar paper into a partial record. The record's h-index
    is the highest positive author h-index the paper lists.
    """
    names: List[str] = []
    details: List[AuthorDetail] = []
    h_index: Optional[int] = None
    for a in paper.get("authors") or []:
        if not isinstance(a, dict):
            continue
        author_h = to_int_or_none(a.get("hIndex"))
        h_index = _max_h_index(h_index, author_h)
        name = (a.get("name") or "").strip()
        if not name:
            continue
        names.append(name)
        details.append(AuthorDetail(
            name=name,
            h_index=author_h,
            affiliations=unique_strings(a.get("affiliations") or []),
            source_id=a.get("authorId"),
        ))

    ext = paper.get("externalIds") or {}
    doi = normalize_doi(ext.get("DOI"))
    year = to_int_or_none(paper.get("year"))

    is_oa = paper.get("isOpenAccess")
    if not isinstance(is_oa, bool):
        is_oa = True if paper.get("openAccessPdf") else None

    identifiers = _drop_empty({
        "semanticScholarId": paper.get("paperId"),
        "doi": doi,
        "arxivId": ext.get("ArXiv"),
        "pubmedId": ext.get("PubMed"),
        "dblpId": ext.get("DBLP"),
        "corpusId": ext.get("CorpusId"),
    })

    paper_id = paper.get("paperId")
    return PartialCitationRecord(
        source=SOURCE_S2,
        citation_count=to_int_or_none(paper.get("citationCount")),
        h_index=h_index,
        influential_citation_count=to_int_or_none(paper.get("influentialCitationCount")),
        reference_count=to_int_or_none(paper.get("referenceCount")),
        doi=doi,
        journal=safe_get_nested(paper, "journal", "name") or safe_get_field(paper, "venue"),
        published_date=safe_get_field(paper, "publicationDate") or (str(year) if year else None),
        title=safe_get_field(paper, "title"),
        url=f"https://www.semanticscholar.org/paper/{paper_id}" if paper_id else None,
        authors=unique_strings(names),
        is_open_access=is_oa,
        author_details=details,
        identifiers=identifiers,
    )


def parse_openalex_work(work: Dict[str, Any]) -> PartialCitationRecord:
    """
    Map one OpenAlex work into a partial record.

    Authors come from authorships; the h-index is the highest author
    summary_stats.h_index; concepts keep the first few display names.
    """
    names: List[str] = []
    details: List[AuthorDetail] = []
    h_index: Optional[int] = None
    for authorship in work.get("authorships") or []:
        if not isinstance(authorship, dict):
            continue
        author = authorship.get("author") or {}
        author_h = to_int_or_none(safe_get_nested(author, "summary_stats", "h_index"))
        h_index = _max_h_index(h_index, author_h)
        name = (author.get("display_name") or "").strip()
        if not name:
            continue
        names.append(name)
        institutions = unique_strings(
            inst.get("display_name") for inst in authorship.get("institutions") or [] if isinstance(inst, dict)
        )
        details.append(AuthorDetail(
            name=name,
            orcid=author.get("orcid"),
            h_index=author_h,
            affiliations=institutions,
            source_id=author.get("id"),
        ))

    venue = safe_get_nested(work, "primary_location", "source", default={})
    open_access = work.get("open_access") or {}
    is_oa = open_access.get("is_oa")
    year = to_int_or_none(work.get("publication_year"))
    doi = normalize_doi(work.get("doi"))

    concepts = unique_strings(
        c.get("display_name") for c in (work.get("concepts") or [])[:MAX_OPENALEX_CONCEPTS] if isinstance(c, dict)
    )

    ids = work.get("ids") or {}
    identifiers = _drop_empty({
        "openAlexId": work.get("id"),
        "doi": doi,
        "pmid": ids.get("pmid"),
        "pmcid": ids.get("pmcid"),
        "mag": ids.get("mag"),
        "issn": venue.get("issn_l"),
    })

    return PartialCitationRecord(
        source=SOURCE_OPENALEX,
        citation_count=to_int_or_none(work.get("cited_by_count")),
        h_index=h_index,
        reference_count=to_int_or_none(work.get("referenced_works_count")),
        doi=doi,
        journal=safe_get_field(venue, "display_name"),
        publisher=safe_get_field(venue, "host_organization_name"),
        published_date=safe_get_field(work, "publication_date") or (str(year) if year else None),
        title=safe_get_field(work, "title") or safe_get_field(work, "display_name"),
        url=safe_get_nested(work, "primary_location", "landing_page_url") or work.get("id"),
        authors=unique_strings(names),
        concepts=concepts,
        is_open_access=is_oa if isinstance(is_oa, bool) else None,
        open_access_status=safe_get_field(open_access, "oa_status"),
        author_details=details,
        identifiers=identifiers,
    )


class CrossrefAdapter(SourceAdapter):
    def __init__(
            self,
            executor: Optional[RateLimitedRequestExecutor] = None,
            session: Optional[requests.Session] = None,
            config: SourceConfig = CROSSREF_CONFIG,
    ):
        super().__init__(config, executor=executor, session=session)

    def parse_item(self, item: Dict[str, Any]) -> PartialCitationRecord:
        return parse_crossref_item(item)


class SemanticScholarAdapter(SourceAdapter):
    def __init__(
            self,
            executor: Optional[RateLimitedRequestExecutor] = None,
            session: Optional[requests.Session] = None,
            config: SourceConfig = S2_CONFIG,
    ):
        super().__init__(config, executor=executor, session=session)

    def parse_item(self, item: Dict[str, Any]) -> PartialCitationRecord:
        return parse_s2_paper(item)


class OpenAlexAdapter(SourceAdapter):
    def __init__(
            self,
            executor: Optional[RateLimitedRequestExecutor] = None,
            session: Optional[requests.Session] = None,
            config: SourceConfig = OPENALEX_CONFIG,
    ):
        super().__init__(config, executor=executor, session=session)

    def parse_item(self, item: Dict[str, Any]) -> PartialCitationRecord:
        return parse_openalex_work(item)


def default_adapters(session: Optional[requests.Session] = None) -> List[SourceAdapter]:
    """
    Build the three adapters in query order, each with its own rate limiter.
    """
    return [
        CrossrefAdapter(session=session),
        SemanticScholarAdapter(session=session),
        OpenAlexAdapter(session=session),
    ]
