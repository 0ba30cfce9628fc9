from __future__ import annotations

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .config import (
    CONTACT_MAILTO,
    HTTP_AUTH_STATUS_CODES,
    HTTP_CONNECT_RETRIES,
    HTTP_RATE_LIMIT_STATUS,
    HTTP_SERVER_ERROR_MIN,
    HTTP_TIMEOUT_DEFAULT,
)
from .exceptions import JSON_ERRORS, NUMERIC_ERRORS

# Standard HTTP headers for API requests
DEFAULT_JSON_HEADERS = {
    "User-Agent": f"CiteRadar/1.0 (mailto:{CONTACT_MAILTO})",
    "Accept": "application/json",
}

# Global session for connection pooling
_SESSION = requests.Session()

# Only connection failures are retried here. Status-based retries (429, 5xx)
# belong to the rate-limited executor, which also spends a token per attempt
_RETRY_STRATEGY = Retry(
    total=HTTP_CONNECT_RETRIES,
    connect=HTTP_CONNECT_RETRIES,
    read=0,
    status=0,
    redirect=3,
    backoff_factor=0.5,
    allowed_methods=["GET"],
    raise_on_status=False,
)
_ADAPTER = HTTPAdapter(max_retries=_RETRY_STRATEGY)
_SESSION.mount("https://", _ADAPTER)
_SESSION.mount("http://", _ADAPTER)


def get_session() -> requests.Session:
    """
    Return the shared pooled session.
    """
    return _SESSION


def parse_retry_after(ra: Optional[str]) -> float:
    """
    Interpret a Retry-After header value and return how many seconds to wait,
    handling both numeric delays and HTTP date formats.
    """
    if not ra:
        return 0.0
    # try as a number first
    try:
        return max(0.0, float(ra))
    except NUMERIC_ERRORS:
        # maybe it's a date
        try:
            dt = parsedate_to_datetime(ra)
            if dt is None:
                return 0.0
            if getattr(dt, "tzinfo", None) is None:
                dt = dt.replace(tzinfo=timezone.utc)
            return max(0.0, (dt - datetime.now(timezone.utc)).total_seconds())
        except NUMERIC_ERRORS:
            return 0.0


def should_raise_for_status(status: int) -> bool:
    """
    Decide whether a status is something the executor must see as an error:
    rate limiting, authentication failures and server errors. Other client
    errors come back as plain responses and are read as "no data".
    """
    return (
        status == HTTP_RATE_LIMIT_STATUS
        or status in HTTP_AUTH_STATUS_CODES
        or status >= HTTP_SERVER_ERROR_MIN
    )


def http_get(
        url: str,
        params: Optional[Dict[str, Any]] = None,
        timeout: float = HTTP_TIMEOUT_DEFAULT,
        headers: Optional[Dict[str, str]] = None,
        session: Optional[requests.Session] = None,
) -> requests.Response:
    """
    Perform one HTTP GET with JSON headers and a fixed timeout. Raises
    requests.HTTPError for statuses the executor classifies (429, 401/403,
    5xx) and returns the response for everything else.
    """
    sess = session or _SESSION
    req_headers = DEFAULT_JSON_HEADERS.copy()
    if headers:
        req_headers.update(headers)

    resp = sess.get(url, params=params, headers=req_headers, timeout=timeout)
    if should_raise_for_status(resp.status_code):
        raise requests.HTTPError(f"{resp.status_code} response from {resp.url}", response=resp)
    return resp


def decode_json_response(resp: requests.Response) -> Any:
    """
    Parse a response body as JSON, including a short preview of invalid data
    in the error message.
    """
    try:
        return resp.json()
    except JSON_ERRORS as ex:
        preview = (resp.text or "")[:256]
        raise ValueError(f"Invalid JSON from {resp.url!r}: {ex}; preview={preview!r}") from ex
