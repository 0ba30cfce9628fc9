from __future__ import annotations

import re
from typing import Any, Iterable, List, Optional

from rapidfuzz.fuzz import ratio as fuzz_ratio
from unidecode import unidecode

from .config import VALID_YEAR_MIN, VALID_YEAR_MAX
from .exceptions import DECODE_ERRORS, NUMERIC_ERRORS, PARSE_ERRORS


__all__ = [
    "strip_accents",
    "normalize_title",
    "title_similarity",
    "clean_title_for_search",
    "split_authors",
    "first_author",
    "build_search_query",
    "normalize_doi",
    "unique_strings",
    "to_int_or_none",
    "extract_year_from_any",
    "format_date_parts",
    "safe_get_field",
    "safe_get_nested",
]

_NON_WORD_RE = re.compile(r"[^\w\s]", re.UNICODE)
_SPACE_RE = re.compile(r"\s+")
_AUTHOR_SPLIT_RE = re.compile(r"[,;]")


def strip_accents(s: str) -> str:
    """
    Remove accents and diacritics from a string so visually similar text from
    different locales can be compared more reliably.
    """
    try:
        return unidecode(s)
    except PARSE_ERRORS + DECODE_ERRORS:
        return s


def normalize_title(t: Optional[str]) -> str:
    """
    Normalize a title for comparison by stripping accents and HTML tags,
    lowercasing, removing punctuation and collapsing repeated whitespace.
    """
    if not t:
        return ""
    t_str = re.sub(r"<[^>]+>", " ", str(t))
    t2 = strip_accents(t_str).lower()
    t2 = _NON_WORD_RE.sub(" ", t2)
    return " ".join(t2.split())


def title_similarity(a: Optional[str], b: Optional[str]) -> float:
    """
    Compute a similarity score between two titles after normalization, returning
    a value between 0 and 1 where higher means more similar.
    """
    norm_a = normalize_title(a or "")
    norm_b = normalize_title(b or "")
    if not norm_a or not norm_b:
        return 0.0
    if norm_a == norm_b:
        return 1.0
    return fuzz_ratio(norm_a, norm_b) / 100.0


def clean_title_for_search(title: Optional[str]) -> str:
    """
    Replace punctuation with spaces and collapse whitespace, keeping case and
    accents so upstream relevance ranking sees the title as written.
    """
    if not title:
        return ""
    cleaned = _NON_WORD_RE.sub(" ", str(title))
    return _SPACE_RE.sub(" ", cleaned).strip()


def split_authors(author: Any) -> List[str]:
    """
    Split a free-text author field on commas and semicolons. Lists are
    flattened the same way.
    """
    if not author:
        return []
    if isinstance(author, (list, tuple)):
        names: List[str] = []
        for a in author:
            names.extend(split_authors(a))
        return names
    return [p.strip() for p in _AUTHOR_SPLIT_RE.split(str(author)) if p.strip()]


def first_author(author: Any) -> Optional[str]:
    names = split_authors(author)
    return names[0] if names else None


def build_search_query(title: Optional[str], author: Any = None) -> str:
    """
    Build the search string sent to every source: the cleaned title followed
    by the first author, when one is given.
    """
    query = clean_title_for_search(title)
    lead = first_author(author)
    if lead:
        query = f"{query} {lead}".strip()
    return query


def normalize_doi(doi: Optional[str]) -> Optional[str]:
    """
    Clean up a DOI string by removing URL and "doi:" prefixes and lowercasing
    it, as DOIs are case-insensitive identifiers.
    """
    if not doi:
        return None
    d = str(doi).strip()
    d = re.sub(r"^https?://(dx\.)?doi\.org/", "", d, flags=re.IGNORECASE)
    d = re.sub(r"^doi:\s*", "", d, flags=re.IGNORECASE)
    d = d.strip()
    if not d:
        return None
    return d.lower()


def unique_strings(values: Iterable[Any]) -> List[str]:
    """
    Trim each value, drop empties and duplicates, keep first-seen order.
    """
    seen = set()
    out: List[str] = []
    for v in values or []:
        if v is None:
            continue
        s = str(v).strip()
        if not s or s in seen:
            continue
        seen.add(s)
        out.append(s)
    return out


def to_int_or_none(value: Any) -> Optional[int]:
    """
    Convert a count to a non-negative int, or None when it is missing or not numeric.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        n = int(value)
    except NUMERIC_ERRORS:
        return None
    return n if n >= 0 else None


def extract_year_from_any(obj: Any, fallback: Optional[int] = None) -> Optional[int]:
    """
    Recover a four-digit year from an int, free text, or Crossref-style
    date parts, falling back when no plausible year is found.
    """
    if isinstance(obj, bool):
        return fallback
    if isinstance(obj, int):
        return obj if VALID_YEAR_MIN <= obj <= VALID_YEAR_MAX else fallback
    if isinstance(obj, str):
        m = re.search(r"\b(\d{4})\b", obj)
        if m:
            year = int(m.group(1))
            if VALID_YEAR_MIN <= year <= VALID_YEAR_MAX:
                return year
        return fallback
    if isinstance(obj, dict):
        parts = obj.get("date-parts")
        if parts:
            return extract_year_from_any(parts, fallback=fallback)
        return fallback
    if isinstance(obj, (list, tuple)) and obj:
        return extract_year_from_any(obj[0], fallback=fallback)
    return fallback


def format_date_parts(date_obj: Any) -> Optional[str]:
    """
    Render a Crossref date object ({"date-parts": [[2016, 5, 1]]}) as an
    ISO-like string: "2016-05-01", "2016-05" or "2016".
    """
    if not isinstance(date_obj, dict):
        return None
    parts = date_obj.get("date-parts")
    if not isinstance(parts, list) or not parts or not isinstance(parts[0], list):
        return None
    nums = []
    for p in parts[0][:3]:
        n = to_int_or_none(p)
        if n is None:
            break
        nums.append(n)
    if not nums:
        return None
    year = nums[0]
    if not VALID_YEAR_MIN <= year <= VALID_YEAR_MAX:
        return None
    out = f"{year:04d}"
    for n in nums[1:]:
        out += f"-{n:02d}"
    return out


def safe_get_field(obj: Any, field: str, *, default: Optional[str] = None) -> Optional[str]:
    """
    Safely extract a string field from a dictionary, taking the first element
    of list values (common in Crossref) and returning default when empty.
    """
    if not isinstance(obj, dict):
        return default
    value = obj.get(field)
    if value is None:
        return default
    if isinstance(value, list):
        if not value:
            return default
        value = value[0]
        if value is None:
            return default
    value = str(value).strip()
    return value or default


def safe_get_nested(obj: Any, *keys: str, default=None) -> Any:
    """
    Safely get a nested dictionary value with null-safety, traversing multiple keys
    and returning a default if any key is missing.
    """
    current = obj
    for key in keys:
        if not isinstance(current, dict):
            return default
        current = current.get(key)
        if current is None:
            return default
    return current
