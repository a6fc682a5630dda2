"""Verbosity control for the ``playoff_pool`` logger hierarchy.

Modules log through ``logging.getLogger(__name__)``; this module only decides
what reaches the terminal.  The names accepted by ``--log-level`` are:

    ========  ===========================================================
    Name      Shows
    ========  ===========================================================
    QUIET     data-quality warnings (unmatched teams, unfilled slots)
    NORMAL    run start and completion summaries
    VERBOSE   one line per scheduling round
    DEBUG     per-batch detail
    ========  ===========================================================

Without an explicit name, ``PLAYOFF_POOL_LOG_LEVEL`` is consulted before
falling back to ``NORMAL``.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TextIO

VERBOSE: int = 15
"""Round-by-round progress; sits between INFO and DEBUG."""

logging.addLevelName(VERBOSE, "VERBOSE")

VERBOSITY: dict[str, int] = {
    "QUIET": logging.WARNING,
    "NORMAL": logging.INFO,
    "VERBOSE": VERBOSE,
    "DEBUG": logging.DEBUG,
}

PACKAGE_LOGGER: str = "playoff_pool"
ENV_VAR: str = "PLAYOFF_POOL_LOG_LEVEL"

_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
_DATE_FORMAT = "%H:%M:%S"


def parse_verbosity(name: str) -> int:
    """Map a verbosity name (any case) to its numeric logging level.

    Raises:
        ValueError: If ``name`` is not one of :data:`VERBOSITY`.
    """
    try:
        return VERBOSITY[name.upper()]
    except KeyError:
        msg = f"Unknown log level {name!r}. Valid levels: {', '.join(VERBOSITY)}"
        raise ValueError(msg) from None


def configure_logging(level: str | None = None, *, stream: TextIO | None = None) -> int:
    """Attach a single handler to the package logger.

    Args:
        level: Verbosity name; ``None`` reads ``PLAYOFF_POOL_LOG_LEVEL``
            and defaults to ``"NORMAL"``.
        stream: Destination for records (stderr by default).

    Returns:
        The numeric level now in effect.

    Raises:
        ValueError: If the resolved name is unknown.
    """
    numeric = parse_verbosity(level if level is not None else os.environ.get(ENV_VAR, "NORMAL"))

    package = logging.getLogger(PACKAGE_LOGGER)
    for handler in package.handlers[:]:
        package.removeHandler(handler)

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATE_FORMAT))
    package.addHandler(handler)
    package.setLevel(numeric)
    package.propagate = False
    return numeric
