from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional

from .models import CanonicalCitationRecord
from .text_utils import to_int_or_none


def compute_h_index(counts: Iterable[Any]) -> int:
    """
    Largest h such that h of the papers have at least h citations each.
    Missing or non-numeric counts count as zero.
    """
    ordered = sorted((to_int_or_none(c) or 0 for c in counts), reverse=True)
    h = 0
    for i, c in enumerate(ordered, start=1):
        if c >= i:
            h = i
        else:
            break
    return h


def _as_mapping(record: Any) -> Mapping[str, Any]:
    if isinstance(record, CanonicalCitationRecord):
        return record.to_dict()
    if isinstance(record, Mapping):
        # enriched search results carry the record under citationInfo
        info = record.get("citationInfo")
        if isinstance(info, CanonicalCitationRecord):
            return info.to_dict()
        if isinstance(info, Mapping):
            return {**info, "title": record.get("title") or info.get("title")}
        return record
    return {}


def compute_author_metrics(records: Iterable[Any], include_mock: bool = True) -> Dict[str, Any]:
    """
    Summarize an author's publication list: totals, h-index, average
    citations per paper and the most cited paper.

    Accepts canonical records, their dict form, or enriched search results.
    """
    rows: List[Mapping[str, Any]] = []
    for r in records or []:
        m = _as_mapping(r)
        if not m:
            continue
        if not include_mock and m.get("isMockData"):
            continue
        rows.append(m)

    counts = [to_int_or_none(m.get("citationCount")) or 0 for m in rows]
    total = sum(counts)

    most_cited: Optional[Dict[str, Any]] = None
    if rows:
        best = max(range(len(rows)), key=lambda i: counts[i])
        most_cited = {
            "title": rows[best].get("title"),
            "citations": counts[best],
            "doi": rows[best].get("doi"),
        }

    return {
        "totalPublications": len(rows),
        "totalCitations": total,
        "hIndex": compute_h_index(counts),
        "averageCitationsPerPaper": round(total / len(rows), 2) if rows else 0,
        "mostCitedPaper": most_cited,
    }
