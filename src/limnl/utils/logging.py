"""structlog configuration: one JSON event per line in the user cache directory."""

import structlog
from pathlib import Path
from typing import Any
import os


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def configure_logging() -> None:
    """
    Route structlog events to ~/.cache/limnl/logs/limnl.log as JSON lines.

    LIMNL_LOG_LEVEL picks the threshold (DEBUG, INFO, WARNING or ERROR);
    anything else falls back to INFO.

    What each level carries:
    - DEBUG: Request envelopes, raw completions, extracted JSON
    - INFO: Record creation, analysis state transitions, provider call summary
    - WARNING: Skipped child writes (unknown card, failed task insert), abandoned analyses
    - ERROR: Provider failures, decode failures, persistence failures

    Example:
        LIMNL_LOG_LEVEL=DEBUG limnl dump add "too many open tabs in my head"
        jq -c 'select(.event | startswith("mind_dump_analysis"))' ~/.cache/limnl/logs/limnl.log
    """
    log_dir = Path.home() / ".cache" / "limnl" / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "limnl.log"

    log_level = os.environ.get("LIMNL_LOG_LEVEL", "INFO").upper()

    if log_level not in LOG_LEVELS:
        log_level = "INFO"

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.WriteLoggerFactory(file=open(log_file, "a")),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> Any:
    """Return a bound structlog logger; call sites pass `__name__`."""
    return structlog.get_logger(name)
