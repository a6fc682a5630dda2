"""Shared utilities module."""

from __future__ import annotations

from playoff_pool.utils.logger import VERBOSE, VERBOSITY, configure_logging, parse_verbosity

__all__ = [
    "VERBOSE",
    "VERBOSITY",
    "configure_logging",
    "parse_verbosity",
]
