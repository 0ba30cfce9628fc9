from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from .config import (
    MAX_AUTHOR_DETAILS,
    MAX_MERGED_AUTHORS,
    MAX_MERGED_CONCEPTS,
    SOURCE_DETAILS_KEYS,
    SOURCE_PRIORITY,
)
from .fallback import FallbackSynthesizer, iso_timestamp
from .log_utils import logger, LogCategory, LogSource
from .models import BibliographicQuery, CanonicalCitationRecord, PartialCitationRecord
from .text_utils import unique_strings

IDENTITY_FIELDS = ("doi", "journal", "publisher", "published_date")


def details_key_for(source: str) -> str:
    return SOURCE_DETAILS_KEYS.get(source) or "_".join(source.lower().split())


def order_by_priority(partials: Iterable[Optional[PartialCitationRecord]]) -> List[PartialCitationRecord]:
    """
    Drop absent partials and sort the rest into source-priority order.
    Unknown sources go last, keeping their relative order.
    """
    rank = {src: i for i, src in enumerate(SOURCE_PRIORITY)}
    present = [p for p in partials or [] if isinstance(p, PartialCitationRecord)]
    return sorted(present, key=lambda p: rank.get(p.source, len(rank)))


def _max_defined(values: Iterable[Optional[int]]) -> Optional[int]:
    defined = [v for v in values if v is not None]
    return max(defined) if defined else None


def _first_present(partials: List[PartialCitationRecord], field_name: str) -> Optional[str]:
    for p in partials:
        value = getattr(p, field_name)
        if value:
            return value
    return None


def is_empty_shell(record: CanonicalCitationRecord) -> bool:
    """
    True when a merged record carries no information: no positive citation
    count and none of the identity fields.
    """
    if record.citation_count > 0:
        return False
    return not any(getattr(record, f) for f in IDENTITY_FIELDS)


def merge_citations(
        query: BibliographicQuery,
        partials: Iterable[Optional[PartialCitationRecord]],
        synthesizer: Optional[FallbackSynthesizer] = None,
        now: Optional[datetime] = None,
) -> CanonicalCitationRecord:
    """
    Reconcile up to one partial record per source into a canonical record.

    Metrics take the maximum over the sources that report them. Identity
    fields (DOI, journal, publisher, date) take the first value found in
    source-priority order. Authors and concepts are unioned in first-seen
    order and capped. When nothing usable remains the synthesizer supplies
    a wholly synthetic record instead.
    """
    synthesizer = synthesizer or FallbackSynthesizer()
    ordered = order_by_priority(partials)

    if not ordered:
        logger.info("No source returned data", source=LogSource.SYSTEM, category=LogCategory.MERGE)
        return synthesizer.synthesize(query, now=now)

    # highest count wins; ties go to the earlier source in priority order
    citation_count = 0
    primary_source = None
    for p in ordered:
        if p.citation_count is not None and p.citation_count > citation_count:
            citation_count = p.citation_count
            primary_source = p.source
    if primary_source is None:
        counted = [p for p in ordered if p.citation_count is not None]
        primary_source = (counted or ordered)[0].source

    authors = unique_strings(a for p in ordered for a in p.authors)[:MAX_MERGED_AUTHORS]
    concepts = unique_strings(c for p in ordered for c in list(p.concepts) + list(p.subjects))[:MAX_MERGED_CONCEPTS]

    identifiers: Dict[str, Any] = {}
    for p in ordered:
        for kind, value in p.identifiers.items():
            if value not in (None, "", []) and kind not in identifiers:
                identifiers[kind] = value

    author_details = [a.to_dict() for p in ordered for a in p.author_details][:MAX_AUTHOR_DETAILS]

    details: Dict[str, Any] = {details_key_for(p.source): p.to_dict() for p in ordered}
    details["identifiers"] = identifiers
    details["authorDetails"] = author_details

    record = CanonicalCitationRecord(
        title=query.title,
        author=query.author,
        citation_count=citation_count,
        h_index=_max_defined(p.h_index for p in ordered),
        influential_citation_count=_max_defined(p.influential_citation_count for p in ordered),
        reference_count=_max_defined(p.reference_count for p in ordered),
        sources=unique_strings(p.source for p in ordered),
        primary_source=primary_source,
        authors=authors,
        concepts=concepts,
        doi=_first_present(ordered, "doi"),
        journal=_first_present(ordered, "journal"),
        publisher=_first_present(ordered, "publisher"),
        published_date=_first_present(ordered, "published_date"),
        is_open_access=any(p.is_open_access is True for p in ordered),
        open_access_status=_first_present(ordered, "open_access_status"),
        is_mock_data=False,
        last_updated=iso_timestamp(now),
        details=details,
    )

    if is_empty_shell(record):
        logger.info(f"Sources {', '.join(record.sources)} returned an empty shell; using fallback",
                    source=LogSource.SYSTEM, category=LogCategory.MERGE)
        return synthesizer.synthesize(query, now=now)

    if record.h_index is not None and record.h_index > record.citation_count:
        logger.warn(f"hIndex {record.h_index} exceeds citationCount {record.citation_count}",
                    source=LogSource.SYSTEM, category=LogCategory.MERGE)

    logger.info(f"Merged {len(ordered)} source(s): citations={citation_count} from {primary_source}",
                source=LogSource.SYSTEM, category=LogCategory.MERGE)
    return record
