"""Logging setup for the linkprobe CLI and embedding applications."""

import logging
import sys
from pathlib import Path
from typing import Optional

DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Libraries that log every request at INFO/DEBUG
NOISY_LOGGERS = ('httpx', 'httpcore', 'urllib3', 'google', 'asyncio')


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    format_string: Optional[str] = None
) -> None:
    """Route log records to stderr and, optionally, a file.

    stdout is left to results so `linkprobe check -o json` can be piped.
    Calling this again replaces the previous configuration.

    Args:
        level: Level name; unknown names fall back to INFO
        log_file: File that also receives every record (parent dirs created)
        format_string: Record format, DEFAULT_LOG_FORMAT when omitted
    """
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=format_string or DEFAULT_LOG_FORMAT,
        handlers=handlers,
        force=True,
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
