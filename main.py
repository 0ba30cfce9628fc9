from __future__ import annotations

import os
from typing import Any, Dict, List, Optional

from citeradar.citation_service import CitationService
from citeradar.config import (
    DEFAULT_INPUT,
    DEFAULT_OUT_DIR,
    DEFAULT_RESULTS_FILE,
    DEFAULT_SUMMARY_FILE,
    MAX_BATCH_SIZE,
)
from citeradar.exceptions import FILE_IO_ERRORS, FILE_READ_ERRORS
from citeradar.fallback import iso_timestamp
from citeradar.io_utils import append_summary_to_csv, init_summary_csv, read_publications, safe_write_json
from citeradar.log_utils import logger, LogCategory
from citeradar.metrics import compute_author_metrics
from citeradar.models import BibliographicQuery, CanonicalCitationRecord


def _chunks(items: List[Any], size: int) -> List[List[Any]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


def process_chunk(
        service: CitationService,
        queries: List[BibliographicQuery],
        summary_csv_path: Optional[str],
) -> List[Dict[str, Any]]:
    """
    Look up one chunk of publications and record its summary rows.
    """
    records: List[CanonicalCitationRecord] = service.lookup_batch(queries)

    if summary_csv_path:
        try:
            append_summary_to_csv(summary_csv_path, records)
        except FILE_IO_ERRORS as e:
            logger.warn(f"Could not append to summary CSV: {e}", category=LogCategory.ERROR)

    return [
        {"publication": q.to_dict(), "citationInfo": r.to_dict()}
        for q, r in zip(queries, records)
    ]


def main() -> int:
    """
    Read the publication list, look every publication up in batches, and
    write the merged records, a summary CSV and author-level metrics.

    Returns an exit code suitable for use as a command-line entry point.
    """
    out_dir = os.path.join(os.path.dirname(__file__), DEFAULT_OUT_DIR)
    try:
        os.makedirs(out_dir, exist_ok=True)
    except OSError as e:
        logger.error(f"Cannot create output directory '{out_dir}': {e}", category=LogCategory.ERROR)
        return 2

    logger.set_log_file(os.path.join(out_dir, "run.log"))
    logger.step("CiteRadar run started", category=LogCategory.PLAN)

    try:
        queries = read_publications(DEFAULT_INPUT)
        logger.success(f"Input loaded: {len(queries)} publication(s)", category=LogCategory.PLAN)
    except FILE_READ_ERRORS as e:
        logger.error(f"Error reading input file: {e}", category=LogCategory.ERROR)
        logger.close()
        return 2

    summary_csv_path = os.path.join(out_dir, DEFAULT_SUMMARY_FILE)
    try:
        init_summary_csv(summary_csv_path)
        logger.success(f"Summary CSV initialized: {summary_csv_path}", category=LogCategory.PLAN)
    except FILE_IO_ERRORS as e:
        logger.warn(f"Could not initialize summary CSV: {e}", category=LogCategory.ERROR)
        summary_csv_path = None

    service = CitationService()
    chunks = _chunks(queries, MAX_BATCH_SIZE)
    logger.step(f"Processing {len(queries)} publication(s) in {len(chunks)} batch(es)", category=LogCategory.PLAN)

    results: List[Dict[str, Any]] = []
    for i, chunk in enumerate(chunks, start=1):
        logger.step(f"Batch {i}/{len(chunks)}", category=LogCategory.BATCH)
        results.extend(process_chunk(service, chunk, summary_csv_path))

    metrics = compute_author_metrics([r["citationInfo"] for r in results])
    real_metrics = compute_author_metrics([r["citationInfo"] for r in results], include_mock=False)

    results_path = os.path.join(out_dir, DEFAULT_RESULTS_FILE)
    payload = {
        "success": True,
        "results": results,
        "metrics": metrics,
        "timestamp": iso_timestamp(),
    }
    if safe_write_json(results_path, payload):
        logger.success(f"Results written: {results_path}", category=LogCategory.PLAN)
    else:
        logger.error(f"Could not write results to {results_path}", category=LogCategory.ERROR)

    mock_count = sum(1 for r in results if r["citationInfo"]["isMockData"])
    logger.step("Run complete", category=LogCategory.PLAN)
    logger.info(f"Publications processed: {len(results)} ({mock_count} synthetic)", category=LogCategory.PLAN)
    logger.info(f"Total citations: {metrics['totalCitations']} (from real sources: {real_metrics['totalCitations']})",
                category=LogCategory.PLAN)
    logger.info(f"h-index: {metrics['hIndex']} (from real sources: {real_metrics['hIndex']})",
                category=LogCategory.PLAN)
    logger.info(f"Average citations per paper: {metrics['averageCitationsPerPaper']}", category=LogCategory.PLAN)
    if metrics["mostCitedPaper"]:
        top = metrics["mostCitedPaper"]
        logger.info(f"Most cited: {top['title']} ({top['citations']})", category=LogCategory.PLAN)
    logger.info(f"Log file: {logger.log_file_path or 'n/a'}", category=LogCategory.PLAN)

    if summary_csv_path and os.path.exists(summary_csv_path):
        logger.info(f"Summary CSV: {summary_csv_path}", category=LogCategory.PLAN)

    logger.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
