from __future__ import annotations

import logging
import os
import sys
import threading
from typing import Optional

from .config import LOG_DATE_FORMAT


# Define custom log levels for workflow visibility
STEP_LEVEL = 25  # Between INFO (20) and WARNING (30)
SUCCESS_LEVEL = 22  # Between INFO (20) and STEP (25)

# Register custom levels with the logging module
logging.addLevelName(STEP_LEVEL, "STEP")
logging.addLevelName(SUCCESS_LEVEL, "SUCCESS")


class LogSource:
    """
    Constants for data sources to ensure consistent naming and coloring.
    Values match the source tags used in citation records.
    """
    CROSSREF = "Crossref"
    S2 = "Semantic Scholar"
    OPENALEX = "OpenAlex"
    MOCK = "Mock Academic Database"
    SYSTEM = "System"


class LogCategory:
    """
    Constants for log categories to replace indentation with semantic tagging.
    """
    REQUEST = "REQUEST"
    RETRY = "RETRY"
    SEARCH = "SEARCH"
    MERGE = "MERGE"
    FALLBACK = "FALLBACK"
    BATCH = "BATCH"
    SKIP = "SKIP"
    ERROR = "ERROR"
    PLAN = "PLAN"
    DEBUG = "DEBUG"


class ColoredFormatter(logging.Formatter):
    """
    Formatter that adds ANSI color codes for levels, sources and categories
    when writing to a terminal.
    """

    CYAN = "\033[36m"
    WHITE = "\033[37m"
    BOLD_CYAN = "\033[1;36m"
    BOLD_GREEN = "\033[1;32m"
    YELLOW = "\033[33m"
    RED = "\033[31m"
    BOLD_RED = "\033[1;31m"
    MAGENTA = "\033[35m"
    GREEN = "\033[32m"
    LIGHT_MAGENTA = "\033[95m"
    DARK_GRAY = "\033[90m"
    BOLD_BLUE = "\033[1;34m"
    RESET = "\033[0m"

    LEVEL_COLORS = {
        "DEBUG": CYAN,
        "INFO": WHITE,
        "STEP": BOLD_CYAN,
        "SUCCESS": BOLD_GREEN,
        "WARNING": YELLOW,
        "ERROR": RED,
        "CRITICAL": BOLD_RED,
    }

    SOURCE_COLORS = {
        LogSource.CROSSREF: YELLOW,
        LogSource.S2: MAGENTA,
        LogSource.OPENALEX: LIGHT_MAGENTA,
        LogSource.MOCK: DARK_GRAY,
        LogSource.SYSTEM: WHITE,
    }

    CATEGORY_COLORS = {
        LogCategory.REQUEST: CYAN,
        LogCategory.RETRY: YELLOW,
        LogCategory.SEARCH: YELLOW,
        LogCategory.MERGE: BOLD_GREEN,
        LogCategory.FALLBACK: MAGENTA,
        LogCategory.BATCH: BOLD_BLUE,
        LogCategory.SKIP: DARK_GRAY,
        LogCategory.ERROR: RED,
        LogCategory.PLAN: MAGENTA,
        LogCategory.DEBUG: DARK_GRAY,
    }

    def __init__(self, fmt: str, use_color: bool = True, datefmt: Optional[str] = None):
        super().__init__(fmt, datefmt=datefmt)
        self.use_color = use_color

    def _tag(self, value: str, palette: dict) -> str:
        if self.use_color and value in palette:
            return f"{palette[value]}[{value}]{self.RESET}"
        return f"[{value}]"

    def format(self, record: logging.LogRecord) -> str:
        """
        Prefix the message with its source and category tags, coloring them
        and the level name when color is enabled.
        """
        original_msg = record.msg
        original_levelname = record.levelname

        source = getattr(record, "source", None)
        category = getattr(record, "category", None)

        if self.use_color and record.levelname in self.LEVEL_COLORS:
            record.levelname = f"{self.LEVEL_COLORS[record.levelname]}{record.levelname}{self.RESET}"

        parts = []
        if source:
            parts.append(self._tag(source, self.SOURCE_COLORS))
        if category:
            parts.append(self._tag(category, self.CATEGORY_COLORS))
        if parts:
            record.msg = f"{' '.join(parts)} {record.msg}"

        formatted = super().format(record)

        record.msg = original_msg
        record.levelname = original_levelname
        return formatted


class CategoryAdapter(logging.LoggerAdapter):
    """
    Adapter that moves source and category keyword arguments into the record's extra dict.
    """

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        extra = dict(kwargs.get("extra") or {})

        source = kwargs.pop("source", None)
        if source:
            extra["source"] = source

        category = kwargs.pop("category", None)
        if category:
            extra["category"] = category

        kwargs["extra"] = extra
        return msg, kwargs


class Logger:
    """
    Logger built on the standard logging module with colored console output,
    custom levels (STEP, SUCCESS), source/category tags and optional mirroring
    to a log file. Safe to call from worker threads.
    """

    LOG_FORMAT = "%(asctime)s [%(levelname)-8s] %(message)s"

    def __init__(self, name: str = "citeradar"):
        self._logger = logging.getLogger(name)
        self._logger.setLevel(logging.DEBUG)
        self._logger.propagate = False
        self._logger.handlers.clear()

        self._console_handler = logging.StreamHandler(sys.stdout)
        self._console_handler.setLevel(logging.INFO)
        console_formatter = ColoredFormatter(self.LOG_FORMAT, use_color=sys.stdout.isatty(), datefmt=LOG_DATE_FORMAT)
        self._console_handler.setFormatter(console_formatter)
        self._logger.addHandler(self._console_handler)

        self._file_handler: Optional[logging.FileHandler] = None
        self._lock = threading.Lock()
        self._adapter = CategoryAdapter(self._logger, {})

    def set_level(self, level: int):
        """
        Change the console verbosity; the file mirror always records DEBUG.
        """
        self._console_handler.setLevel(level)

    def set_log_file(self, path: str):
        """
        Start mirroring all log messages to the specified file.
        """
        parent = os.path.dirname(path)
        if parent:
            try:
                os.makedirs(parent, exist_ok=True)
            except OSError:
                pass

        with self._lock:
            self._close_file_handler()
            try:
                handler = logging.FileHandler(path, mode="w", encoding="utf-8")
            except OSError as e:
                self._logger.error(f"Failed to open log file {path}: {e}")
                return
            handler.setLevel(logging.DEBUG)
            handler.setFormatter(ColoredFormatter(self.LOG_FORMAT, use_color=False, datefmt=LOG_DATE_FORMAT))
            self._logger.addHandler(handler)
            self._file_handler = handler

    def _close_file_handler(self):
        if self._file_handler is not None:
            self._logger.removeHandler(self._file_handler)
            self._file_handler.close()
            self._file_handler = None

    def close(self):
        """
        Stop logging to file.
        """
        with self._lock:
            self._close_file_handler()

    def step(self, msg: str, *, source: Optional[str] = None, category: Optional[str] = None):
        """
        Log a top-level workflow step.
        """
        self._adapter.log(STEP_LEVEL, msg, source=source, category=category)

    def debug(self, msg: str, *, source: Optional[str] = None, category: Optional[str] = None):
        self._adapter.debug(msg, source=source, category=category)

    def info(self, msg: str, *, source: Optional[str] = None, category: Optional[str] = None):
        self._adapter.info(msg, source=source, category=category)

    def warn(self, msg: str, *, source: Optional[str] = None, category: Optional[str] = None):
        self._adapter.warning(msg, source=source, category=category)

    def error(self, msg: str, *, source: Optional[str] = None, category: Optional[str] = None):
        self._adapter.error(msg, source=source, category=category)

    def success(self, msg: str, *, source: Optional[str] = None, category: Optional[str] = None):
        """
        Log successful operations.
        """
        self._adapter.log(SUCCESS_LEVEL, msg, source=source, category=category)

    @property
    def log_file_path(self) -> Optional[str]:
        handler = self._file_handler
        return handler.baseFilename if handler is not None else None


# Global logger instance
logger = Logger()
