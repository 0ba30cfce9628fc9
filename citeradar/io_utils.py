from __future__ import annotations

import csv
import json
import os
from typing import Any, Dict, Iterable, List, Optional

from .config import DEFAULT_INPUT
from .exceptions import CSV_ERRORS, InvalidPublicationError
from .models import BibliographicQuery, CanonicalCitationRecord


# CSV fieldnames for summary export
_SUMMARY_CSV_FIELDNAMES = [
    "title",
    "citation_count",
    "h_index",
    "primary_source",
    "sources",
    "is_mock_data",
]


def _project_root() -> str:
    """
    Return the absolute path to the project root directory, inferred from the location of this module on disk.
    """
    return os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))


def _candidate_paths(primary: str) -> List[str]:
    """
    Build an ordered list of paths to try for a file: the path as given, then
    the same path relative to the project root.
    """
    candidates: List[str] = [primary]
    if not os.path.isabs(primary):
        candidates.append(os.path.join(_project_root(), primary))
    # remove duplicates, keep order
    seen = set()
    uniq: List[str] = []
    for p in candidates:
        if p not in seen:
            uniq.append(p)
            seen.add(p)
    return uniq


def read_publications(path: str = DEFAULT_INPUT) -> List[BibliographicQuery]:
    """
    Load publications from a CSV file with Title, Author, Year and DOI
    columns. Empty rows and rows without a title are skipped.
    """
    queries: List[BibliographicQuery] = []
    candidates = _candidate_paths(path)
    for p in candidates:
        try:
            with open(p, newline="", encoding="utf-8") as csvfile:
                reader = csv.DictReader(csvfile)
                for row in reader:
                    # skip empty rows
                    if not any((v or "").strip() for v in row.values() if isinstance(v, str)):
                        continue
                    try:
                        queries.append(
                            BibliographicQuery(
                                title=(row.get("Title") or "").strip(),
                                author=(row.get("Author") or "").strip() or None,
                                year=(row.get("Year") or "").strip() or None,
                                doi=(row.get("DOI") or "").strip() or None,
                            )
                        )
                    except InvalidPublicationError:
                        continue
            break
        except FileNotFoundError:
            continue
    else:
        raise FileNotFoundError(f"Input file not found (tried: {', '.join(candidates)})")

    if not queries:
        raise ValueError("No publications with a title found in input file.")
    return queries


def safe_write_json(path: str, data: Any, makedirs: bool = True, indent: Optional[int] = 2) -> bool:
    """
    Safely write data to a JSON file, optionally creating parent directories.
    """
    if makedirs:
        parent_dir = os.path.dirname(path)
        if parent_dir:
            try:
                os.makedirs(parent_dir, exist_ok=True)
            except OSError:
                return False

    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=indent, ensure_ascii=False)
        return True
    except (OSError, TypeError):
        return False


def init_summary_csv(csv_path: str) -> None:
    """
    Create or overwrite the summary CSV with just its header, creating the
    parent directory if needed.
    """
    parent_dir = os.path.dirname(csv_path)
    if parent_dir:
        os.makedirs(parent_dir, exist_ok=True)

    with open(csv_path, "w", newline="", encoding="utf-8") as csvfile:
        writer = csv.DictWriter(csvfile, fieldnames=_SUMMARY_CSV_FIELDNAMES)
        writer.writeheader()


def summary_row(record: CanonicalCitationRecord) -> Dict[str, Any]:
    return {
        "title": record.title,
        "citation_count": record.citation_count,
        "h_index": "" if record.h_index is None else record.h_index,
        "primary_source": record.primary_source or "",
        "sources": "; ".join(record.sources),
        "is_mock_data": 1 if record.is_mock_data else 0,
    }


def append_summary_to_csv(csv_path: str, records: Iterable[CanonicalCitationRecord]) -> int:
    """
    Append one summary row per record. Returns the number of rows written.
    """
    rows = [summary_row(r) for r in records]
    with open(csv_path, "a", newline="", encoding="utf-8") as csvfile:
        writer = csv.DictWriter(csvfile, fieldnames=_SUMMARY_CSV_FIELDNAMES)
        writer.writerows(rows)
    return len(rows)


def read_summary_csv(csv_path: str) -> List[Dict[str, str]]:
    """
    Read summary rows back, or an empty list when the file is missing or unreadable.
    """
    if not os.path.exists(csv_path):
        return []
    try:
        with open(csv_path, "r", newline="", encoding="utf-8") as csvfile:
            return list(csv.DictReader(csvfile))
    except CSV_ERRORS:
        return []
