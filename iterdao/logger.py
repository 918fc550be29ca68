"""
IterDAO Logging System
======================

A unified, thread-safe logging utility for IterDAO. This module integrates with
the standard Python `logging` library and the `rich` library to provide structured,
safe, and visually distinct logging outputs.

Usage:
    >>> from iterdao.logger import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("Governor initialised")
"""

import logging
import logging.handlers
import re
import sys
import threading
import time
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.highlighter import RegexHighlighter
from rich.logging import RichHandler
from rich.theme import Theme

from .constants import (
    LOG_LEVEL,
    LOG_FORMAT,
    LOG_DATE_FORMAT,
    LOG_MAX_FILE_SIZE,
    LOG_BACKUP_COUNT,
    LOG_CONSOLE_HIGHLIGHTING,
    LOG_FILE_OUTPUT,
)


# Define log file location relative to the project root
PROJECT_ROOT = Path(__file__).parent.parent
LOG_FILE_PATH = PROJECT_ROOT / "logs" / "iterdao.log"

# %(name)s style field, used to check record formats
_FIELD_RE = re.compile(r"\([a-zA-Z_][a-zA-Z0-9_]*\)[a-zA-Z]")

# At least one strftime directive; otherwise only directives and separators
_DATE_FORMAT_RE = re.compile(
    r"^(?=.*%(?!%)(?:[EO])?(?:[-_0^#])*(?:[A-DF-HIM-NPR-VW-Za-hj-lm-npr-uw-z]))"
    r"(?:%%|%(?:[EO])?(?:[-_0^#])*(?:[A-DF-HIM-NPR-VW-Za-hj-lm-npr-uw-z])|[0-9 \t:\-\/\.,TZ+])+$"
)

GOVERNANCE_THEME = Theme(
    {
        "iterdao.arrow":          "bold yellow",
        "iterdao.identity":       "cyan",
        "iterdao.level_critical": "bold red reverse",
        "iterdao.level_debug":    "bold dim",
        "iterdao.level_error":    "bold red",
        "iterdao.level_info":     "bold green",
        "iterdao.level_warning":  "bold yellow",
        "iterdao.logger_name":    "magenta",
        "iterdao.proposal":       "bold white",
        "iterdao.side_abstain":   "dim",
        "iterdao.side_against":   "red",
        "iterdao.side_for":       "green",
        "iterdao.state_failed":   "bold red",
        "iterdao.state_open":     "bold yellow",
        "iterdao.state_passed":   "bold green",
        "iterdao.tag":            "bold magenta",
        "iterdao.timestamp":      "bold cyan",
    }
)


class LogManager:
    """
    Process-wide owner of the root logger configuration.

    One instance exists per process. Handlers are installed on first use
    and replaced only through `reconfigure`, e.g. when a GovernanceConfig
    carries its own `[logging]` section.
    """

    _instance: Optional["LogManager"] = None
    _lock: threading.Lock = threading.Lock()


    def __new__(cls) -> "LogManager":
        # Double-checked so concurrent first calls build one instance
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance


    def __init__(self) -> None:
        if self._initialized:
            return
        self._configured = False
        self._initialized = True


    @staticmethod
    def _fallback(setting, reason: str) -> str:
        print(
            f"{time.strftime(str(LOG_DATE_FORMAT.default()))} - iterdao.logger - "
            f"{reason}; falling back to the default",
            file=sys.stderr,
        )
        return str(setting.default())


    @classmethod
    def validate_log_format(cls, log_format: str) -> str:
        """
        Check a %-style record format by rendering a throwaway record with it.

        Returns the format, or the default `LOG_FORMAT` when it is empty,
        has a specifier without its '%', or leaves a specifier unrendered.
        """
        if not log_format:
            return str(LOG_FORMAT.default())
        log_format = str(log_format)

        for match in _FIELD_RE.finditer(log_format):
            if match.start() == 0 or log_format[match.start() - 1] != "%":
                return cls._fallback(LOG_FORMAT, f"Malformed log format {log_format!r}")

        sample = logging.LogRecord(
            name="iterdao.sample", level=logging.INFO, pathname="", lineno=0,
            msg="sample", args=(), exc_info=None,
        )
        try:
            rendered = logging.Formatter(fmt=log_format).format(sample)
        except (ValueError, TypeError, KeyError) as e:
            return cls._fallback(LOG_FORMAT, f"Unusable log format ({e})")
        if _FIELD_RE.search(rendered):
            return cls._fallback(LOG_FORMAT, "Log format left fields unrendered")
        return log_format


    @classmethod
    def validate_date_format(cls, date_format: str) -> str:
        """Accept only strftime directives and plain separators."""
        if not date_format:
            return str(LOG_DATE_FORMAT.default())
        date_format = str(date_format)
        if not _DATE_FORMAT_RE.match(date_format):
            return cls._fallback(LOG_DATE_FORMAT, f"Invalid date format {date_format!r}")
        return date_format


    @staticmethod
    def _console_handler(level: int, formatter: logging.Formatter) -> logging.Handler:
        if not LOG_CONSOLE_HIGHLIGHTING:
            handler = logging.StreamHandler(sys.stdout)
        else:
            handler = RichHandler(
                console=Console(theme=GOVERNANCE_THEME, highlight=False),
                highlighter=GovernanceLogHighlighter(),
                keywords=[],
                rich_tracebacks=True,
                omit_repeated_times=False,
                show_path=False,
                show_time=False,
                show_level=False,
                markup=False,
            )
        handler.setLevel(level)
        handler.setFormatter(formatter)
        return handler


    @staticmethod
    def _file_handler(
        path: Path, level: int, formatter: logging.Formatter
    ) -> logging.Handler:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.handlers.RotatingFileHandler(
            filename=str(path),
            maxBytes=LOG_MAX_FILE_SIZE,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        handler.setLevel(level)
        handler.setFormatter(formatter)
        return handler


    def configure(
        self,
        log_level: Optional[str] = None,
        log_file: Optional[Path] = None,
        console_output: bool = True,
        file_output: Optional[bool] = None,
    ) -> None:
        """
        Install handlers on the root logger. Does nothing once configured;
        use `reconfigure` to apply new settings.

        Args:
            log_level: Level name; defaults to `LOG_LEVEL`.
            log_file: Rotating log path; defaults to `logs/iterdao.log`.
            console_output: Log to stdout (through rich when highlighting is on).
            file_output: Log to `log_file`; defaults to `LOG_FILE_OUTPUT`.
        """
        with self._lock:
            if self._configured:
                return

            level = getattr(logging, str(log_level or LOG_LEVEL).upper(), logging.INFO)
            if file_output is None:
                file_output = bool(LOG_FILE_OUTPUT)

            # Timestamps are written in UTC
            formatter = TerminalSafeFormatter(
                fmt=self.validate_log_format(LOG_FORMAT),
                datefmt=self.validate_date_format(LOG_DATE_FORMAT) + " UTC",
            )
            formatter.converter = time.gmtime

            root = logging.getLogger()
            root.setLevel(level)
            root.handlers.clear()
            if console_output:
                root.addHandler(self._console_handler(level, formatter))
            if file_output:
                root.addHandler(self._file_handler(log_file or LOG_FILE_PATH, level, formatter))

            self._configured = True


    def reconfigure(self, **kwargs) -> None:
        """Drops the current configuration and applies a new one."""
        with self._lock:
            self._configured = False
        self.configure(**kwargs)


    def get_logger(self, name: str) -> logging.Logger:
        if not self._configured:
            self.configure()
        return logging.getLogger(name)


    @property
    def is_configured(self) -> bool:
        return self._configured


class TerminalSafeFormatter(logging.Formatter):
    """
    Formatter that strips terminal escapes from rendered records.

    Voter identities and instruction payloads are caller supplied, so ANSI
    escape sequences and non-printable control characters are stripped
    before anything reaches a terminal or log file (CWE-117).
    """

    # ANSI CSI sequences, lone ESC sequences, then control chars other than
    # tab and newline (carriage return included)
    _unsafe_re = re.compile(
        r"\x1b\[[0-?]*[ -/]*[@-~]"
        r"|\x1b[@-Z\\-_]"
        r"|[\x00-\x08\x0B-\x1F\x7F]"
    )

    @classmethod
    def sanitize(cls, text: str) -> str:
        if not text:
            return text
        return cls._unsafe_re.sub("", text)


    def format(self, record: logging.LogRecord) -> str:
        return self.sanitize(super().format(record))


class GovernanceLogHighlighter(RegexHighlighter):
    """
    Rich highlighter for governance logs.

    Colors proposal references, lifecycle states, vote sides and the
    standard level / logger-name columns.
    """

    base_style = "iterdao."
    highlights = [
        r"(?P<arrow>(\-\->)|(<--)|(→))",
        r"(?P<level_critical>\bCRITICAL\b)",
        r"(?P<level_debug>\bDEBUG\b)",
        r"(?P<level_error>\bERROR\b)",
        r"(?P<level_info>\bINFO\b)",
        r"\-\s+\w+\s+-\s+(?P<logger_name>[\w.]+)(?=\s-\s)",
        r"(?P<level_warning>\bWARNING\b)",
        r"(?P<proposal>Proposal #\d+)",
        r"(?P<state_open>\b(DRAFT|ACTIVE|QUEUED)\b)",
        r"(?P<state_passed>\b(SUCCEEDED|EXECUTED)\b)",
        r"(?P<state_failed>\b(REJECTED|CANCELED)\b)",
        r"(?P<side_for>\bFOR\b)",
        r"(?P<side_against>\bAGAINST\b)",
        r"(?P<side_abstain>\bABSTAIN\b)",
        r"(?P<identity>\b0x[0-9a-fA-F]{8,}\b)",
        r"(?P<tag>\[.*?\])",
        r"(?P<timestamp>^(.*?)UTC)",
    ]


_manager = LogManager()

def get_logger(name: str) -> logging.Logger:
    """Module logger; configures logging on first use."""
    return _manager.get_logger(name)

# Configured at import so module-level loggers work immediately
_manager.configure()
