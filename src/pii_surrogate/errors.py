"""Error taxonomy.

Only configuration and initialization problems raise.  Everything that can
go wrong during a pass (missing word lists, stale offsets, a key without a
replacement) is logged, counted and reported on the ProtectionResult.
"""

from __future__ import annotations
from enum import Enum


class PiiSurrogateError(Exception):
    """Base class for errors raised by this package."""


class ConfigError(PiiSurrogateError, ValueError):
    """An option value is out of range or malformed."""


class InvalidCustomPatternError(ConfigError):
    """A user-supplied regex failed to compile or matches the empty string."""

    def __init__(self, name: str, pattern: str, reason: str) -> None:
        super().__init__(f"custom pattern {name!r} ({pattern!r}) rejected: {reason}")
        self.name = name
        self.pattern = pattern
        self.reason = reason


class FatalInitializationError(PiiSurrogateError):
    """Required static data is missing; no pass may start."""


class SkipReason(str, Enum):
    """Why a single occurrence was left untouched during mutation."""
    SPAN_MISMATCH = "span_mismatch"
    UNRESOLVED_REPLACEMENT = "unresolved_replacement"
