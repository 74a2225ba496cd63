"""Logging configuration for the cryptoflow CLI.

Log records go to stderr so they never interleave with the rich panels
printed on stdout. A file handler can be added through `logging.file`.
"""

import logging
import sys
from typing import List, Optional

DEFAULT_LOG_LEVEL = logging.INFO
DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Chatty third-party loggers that drown out the request layer at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "openai")


def _build_handlers(log_file: Optional[str]) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        try:
            handlers.append(logging.FileHandler(log_file, encoding='utf-8'))
        except OSError as e:
            sys.stderr.write(f"Failed to open log file {log_file}: {e}\n")
    return handlers


def setup_logging(
    log_level: int = DEFAULT_LOG_LEVEL,
    log_format: str = DEFAULT_LOG_FORMAT,
    log_file: Optional[str] = None
) -> None:
    """Replaces the root logger's handlers with the cryptoflow ones.

    Args:
        log_level: Minimum level for cryptoflow records (e.g. logging.WARNING).
        log_format: Format string shared by all handlers.
        log_file: Optional path of an additional log file.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(log_format)
    for handler in _build_handlers(log_file):
        handler.setLevel(log_level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    # The SDK logs every HTTP request at INFO
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    logging.getLogger(__name__).debug(
        f"Logging configured. Level={logging.getLevelName(log_level)}, file={log_file or 'none'}"
    )


def resolve_log_level(level_name: str) -> int:
    """Maps a level name such as 'debug' to its logging constant (INFO if unknown)."""
    level = logging.getLevelName(str(level_name).upper())
    return level if isinstance(level, int) else DEFAULT_LOG_LEVEL
