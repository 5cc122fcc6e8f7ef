"""
Logging configuration for mlcore entry points.

Library modules only call ``get_logger(__name__)``; handlers and levels
are installed once, by the CLI or by the embedding application.
"""

import logging
import sys
from typing import Optional, TextIO, Union

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(
    level: Union[str, int] = "INFO",
    format_string: Optional[str] = None,
    stream: Optional[TextIO] = None,
) -> None:
    """
    Install a single stream handler on the root logger.

    Any handlers left by a previous call are replaced.

    Args:
        level: Level name such as "DEBUG" or "WARNING", or its numeric value
        format_string: Record format, DEFAULT_FORMAT when omitted
        stream: Destination stream, stdout when omitted
    """
    numeric = getattr(logging, level.upper()) if isinstance(level, str) else level
    handler = logging.StreamHandler(stream if stream is not None else sys.stdout)
    logging.basicConfig(level=numeric, format=format_string or DEFAULT_FORMAT, handlers=[handler], force=True)


def get_logger(name: str) -> logging.Logger:
    """Module logger; pass ``__name__``."""
    return logging.getLogger(name)
