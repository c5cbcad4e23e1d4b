"""
Path predicates for selecting records.

Callers use these to pick which listed records to act on; the filers
themselves never consult them.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Optional

from blobfiler.core.types import Record


class RegexPathPredicate:
    """
    Matches records whose full path matches any of the given patterns.

    Matching is full-string (``re.fullmatch``), not substring.

    Example:
        >>> predicate = RegexPathPredicate([r"/logs/.*\\.gz"])
        >>> selected = [r for r in filer.list_records("/logs/") if predicate(r)]
    """

    __slots__ = ("_patterns",)

    def __init__(self, regexes: Iterable[str]) -> None:
        if regexes is None:
            raise TypeError("regexes must not be None")
        self._patterns: List[re.Pattern[str]] = [re.compile(regex) for regex in regexes]

    def matches(self, record: Optional[Record]) -> bool:
        if record is None:
            return False
        path = record.path
        return any(pattern.fullmatch(path) for pattern in self._patterns)

    __call__ = matches

    def __repr__(self) -> str:
        return f"RegexPathPredicate({[p.pattern for p in self._patterns]!r})"
