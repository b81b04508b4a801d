"""
Include/exclude filtering of discovered source files.

Patterns are regular expressions that must match the whole path, written
with forward slashes and relative to the source root the file was found in.
"""

from __future__ import annotations

import logging
import re
from functools import lru_cache
from pathlib import PurePath

from .manifest import Profile

logger = logging.getLogger(__name__)


@lru_cache(maxsize=64)
def compile_pattern(pattern: str | None) -> re.Pattern[str] | None:
    """
    Compile a filter pattern.

    Blank patterns mean "no filter". A malformed pattern is logged and also
    treated as no filter so that one bad setting does not stop the build.
    """
    if pattern is None or not pattern.strip():
        return None
    try:
        return re.compile(pattern)
    except re.error as e:
        logger.error(f"ignoring malformed filter pattern {pattern!r}: {e}")
        return None


def is_included(path: PurePath | str, include: str | None = None, exclude: str | None = None) -> bool:
    """Return True if ``path`` passes the include filter and is not excluded."""
    text = path.as_posix() if isinstance(path, PurePath) else str(path).replace("\\", "/")

    include_re = compile_pattern(include)
    if include_re is not None and include_re.fullmatch(text) is None:
        logger.debug(f"excluded by include filter: {text}")
        return False

    exclude_re = compile_pattern(exclude)
    if exclude_re is not None and exclude_re.fullmatch(text) is not None:
        logger.debug(f"excluded by exclude filter: {text}")
        return False

    logger.debug(f"include: {text}")
    return True


class SourceFilter:
    """The include/exclude pair of one profile."""

    def __init__(self, include: str | None = None, exclude: str | None = None) -> None:
        self.include = include
        self.exclude = exclude

    @classmethod
    def for_profile(cls, profile: Profile) -> SourceFilter:
        return cls(profile.include_filter, profile.exclude_filter)

    def __call__(self, path: PurePath | str) -> bool:
        return is_included(path, self.include, self.exclude)
