from __future__ import annotations

import csv
import json
import socket
from typing import Optional

import requests

__all__ = [
    "SourceError",
    "TransientSourceError",
    "AuthSourceError",
    "MalformedResponseError",
    "RequestFailedError",
    "InvalidPublicationError",
    "BatchSizeError",
    "TIMEOUT_ERRORS",
    "DECODE_ERRORS",
    "PARSE_ERRORS",
    "SOURCE_ERRORS",
    "FILE_IO_ERRORS",
    "NUMERIC_ERRORS",
    "JSON_ERRORS",
    "FILE_READ_ERRORS",
    "CSV_ERRORS",
    "FIELD_ACCESS_ERRORS",
]


class SourceError(Exception):
    """
    Base class for failures talking to one citation database. Carries the
    logical source name so log lines and wrapped errors say where it happened.
    """

    def __init__(self, source: str, message: str, status: Optional[int] = None):
        super().__init__(f"{source}: {message}")
        self.source = source
        self.message = message
        self.status = status


class TransientSourceError(SourceError):
    """
    Rate limiting (429), server errors (5xx) or timeouts that survived every retry.
    """


class AuthSourceError(SourceError):
    """
    The source rejected our credentials (401/403). Never retried.
    """


class MalformedResponseError(SourceError):
    """
    The source answered, but the payload was not JSON or not the expected shape.
    """


class RequestFailedError(SourceError):
    """
    Any other request failure that is not worth retrying.
    """


class InvalidPublicationError(ValueError):
    """
    A publication without a usable title was handed to the lookup API.
    """


class BatchSizeError(ValueError):
    """
    A batch was empty or larger than the allowed maximum.
    """


# errors that signal an operation has taken too long and hit a timeout at the OS or socket level
TIMEOUT_ERRORS = (TimeoutError, socket.timeout, requests.exceptions.Timeout)

# errors that occur when converting response bytes into text using a specific encoding
DECODE_ERRORS = (UnicodeDecodeError, UnicodeError)

# errors raised while interpreting structured data such as JSON or response fields
PARSE_ERRORS = (ValueError, TypeError, KeyError)

# everything an adapter turns into "source absent"
SOURCE_ERRORS = (SourceError,)

# file system operation errors when reading input or writing results
FILE_IO_ERRORS = (FileNotFoundError, OSError)

# numeric conversion errors raised while parsing years, counts or Retry-After values
NUMERIC_ERRORS = (TypeError, ValueError, OverflowError)

# JSON parsing errors when processing JSON API responses
JSON_ERRORS = (json.JSONDecodeError, ValueError, TypeError)

# combined file read errors including I/O failures, encoding issues, and malformed data
FILE_READ_ERRORS = FILE_IO_ERRORS + DECODE_ERRORS + PARSE_ERRORS

# CSV file operation errors when reading publications or writing the summary
CSV_ERRORS = (csv.Error, OSError, UnicodeDecodeError)

# field access and attribute lookup errors when extracting data from API responses
# commonly occurs when navigating nested structures with missing or mistyped fields
FIELD_ACCESS_ERRORS = (TypeError, ValueError, KeyError, AttributeError, IndexError)
