from __future__ import annotations

import os

# Upstream base URLs; each can be pointed at a mirror or a local stub server
CROSSREF_BASE = os.getenv("CITERADAR_CROSSREF_BASE", "https://api.crossref.org/works")
S2_BASE = os.getenv("CITERADAR_S2_BASE", "https://api.semanticscholar.org/graph/v1")
OPENALEX_BASE = os.getenv("CITERADAR_OPENALEX_BASE", "https://api.openalex.org/works")

DEFAULT_INPUT = "data/publications.csv"
DEFAULT_OUT_DIR = "output"
DEFAULT_RESULTS_FILE = "citations.json"
DEFAULT_SUMMARY_FILE = "summary.csv"

# Contact address sent in the User-Agent so Crossref and OpenAlex route us to
# their polite pools
CONTACT_MAILTO = "contact@citeradar.org"

# Source tags. The order of SOURCE_PRIORITY decides which source wins ties on
# citation count and which source supplies identity fields (DOI, journal, ...)
SOURCE_CROSSREF = "Crossref"
SOURCE_S2 = "Semantic Scholar"
SOURCE_OPENALEX = "OpenAlex"
SOURCE_MOCK = "Mock Academic Database"

SOURCE_PRIORITY = [
    SOURCE_CROSSREF,
    SOURCE_S2,
    SOURCE_OPENALEX,
]

# Key under which each source's raw partial record is kept in record details
SOURCE_DETAILS_KEYS = {
    SOURCE_CROSSREF: "crossref",
    SOURCE_S2: "semantic_scholar",
    SOURCE_OPENALEX: "openalex",
}

# Outbound requests per second, one token bucket per source
RATE_LIMITS = {
    SOURCE_CROSSREF: 1.0,
    SOURCE_S2: 1.0,
    SOURCE_OPENALEX: 1.0,
}

# Results requested per search; only the best matching one is used
SEARCH_RESULTS_PER_SOURCE = 5

# Search strings shorter than this are too ambiguous to send upstream
MIN_SEARCH_QUERY_LENGTH = 3

# A candidate whose normalized title reaches this similarity with the query
# title is preferred over the first result
SIM_TITLE_MATCH_THRESHOLD = 0.8

# HTTP request configuration
HTTP_TIMEOUT_DEFAULT = 15.0

# Transport-level retries for connection failures only; status-based retries
# are handled by the rate-limited executor
HTTP_CONNECT_RETRIES = 2

# Exponential backoff configuration for the rate-limited executor
HTTP_BACKOFF_INITIAL = 1.0  # Initial backoff delay in seconds
HTTP_BACKOFF_MAX = 16.0     # Maximum backoff delay in seconds
HTTP_MAX_RETRIES = 3        # Maximum number of retry attempts

# Statuses the request function raises on so the executor can classify them;
# every other non-200 answer is treated as "no data" by the adapters
HTTP_RATE_LIMIT_STATUS = 429
HTTP_AUTH_STATUS_CODES = (401, 403)
HTTP_SERVER_ERROR_MIN = 500

# Delay between consecutive source calls inside one lookup. Upstream limiters
# key off client IP and time window, which our token buckets cannot see
SOURCE_PACING_DELAY = 2.0

# Batch limits
MAX_BATCH_SIZE = 20
BATCH_MAX_WORKERS = 4

# Merge caps
MAX_MERGED_AUTHORS = 10
MAX_MERGED_CONCEPTS = 8
MAX_AUTHOR_DETAILS = 10
MAX_OPENALEX_CONCEPTS = 5

# Synthetic record configuration
MOCK_JITTER_RANGE = 50
MOCK_DEFAULT_AGE_YEARS = 5
MOCK_AUTHOR_BONUS = 10

# Valid year range for publications
VALID_YEAR_MIN = 1000
VALID_YEAR_MAX = 2099

LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
