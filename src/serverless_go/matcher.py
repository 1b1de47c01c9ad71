"""Private repository pattern matching.

Patterns use the same glob dialect as Go's ``path.Match`` (the one ``GOPRIVATE``
users already write): ``*`` and ``?`` never cross a ``/``, character classes
accept ranges and ``^`` negation, and ``\\`` escapes the next character.
Unlike :mod:`fnmatch`, malformed patterns are rejected instead of being read
literally.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

from .errors import PatternError
from .gomod import Requirement


def compile_pattern(pattern: str) -> re.Pattern[str]:
    """Translate a glob pattern into a regex matched against the whole path."""
    out: list[str] = []
    i = 0
    n = len(pattern)
    while i < n:
        c = pattern[i]
        if c == "*":
            out.append("[^/]*")
            i += 1
        elif c == "?":
            out.append("[^/]")
            i += 1
        elif c == "\\":
            if i + 1 >= n:
                raise PatternError(pattern, "trailing backslash")
            out.append(re.escape(pattern[i + 1]))
            i += 2
        elif c == "[":
            cls, i = _parse_class(pattern, i + 1)
            out.append(cls)
        else:
            out.append(re.escape(c))
            i += 1
    return re.compile("".join(out), re.DOTALL)


def _class_char(pattern: str, i: int) -> tuple[str, int]:
    if i >= len(pattern):
        raise PatternError(pattern, "unterminated character class")
    c = pattern[i]
    if c in "-]":
        raise PatternError(pattern, f"unexpected {c!r} in character class")
    if c == "\\":
        i += 1
        if i >= len(pattern):
            raise PatternError(pattern, "trailing backslash")
        c = pattern[i]
    return c, i + 1


def _parse_class(pattern: str, i: int) -> tuple[str, int]:
    negate = False
    if i < len(pattern) and pattern[i] == "^":
        negate = True
        i += 1

    ranges: list[tuple[str, str]] = []
    while True:
        if i >= len(pattern):
            raise PatternError(pattern, "unterminated character class")
        if pattern[i] == "]":
            if not ranges:
                raise PatternError(pattern, "empty character class")
            break
        lo, i = _class_char(pattern, i)
        hi = lo
        if i < len(pattern) and pattern[i] == "-":
            hi, i = _class_char(pattern, i + 1)
            if hi < lo:
                raise PatternError(pattern, f"invalid range {lo}-{hi}")
        ranges.append((lo, hi))

    body = "".join(
        re.escape(lo) if lo == hi else f"{re.escape(lo)}-{re.escape(hi)}" for lo, hi in ranges
    )
    return f"[{'^' if negate else ''}{body}]", i + 1


def match_path(pattern: str, path: str) -> bool:
    return compile_pattern(pattern).fullmatch(path) is not None


def match_dependencies(
    patterns: Iterable[str],
    requirements: Sequence[Requirement],
) -> list[Requirement]:
    """Return the requirements matched by at least one pattern.

    All patterns are compiled up front, so one malformed entry fails the call
    before anything is matched. The result keeps manifest order and lists each
    module path once, whatever order the patterns come in.
    """
    compiled = [compile_pattern(p) for p in patterns]
    if not compiled:
        return []

    matched: list[Requirement] = []
    seen: set[str] = set()
    for req in requirements:
        if req.path in seen:
            continue
        if any(rx.fullmatch(req.path) for rx in compiled):
            matched.append(req)
            seen.add(req.path)
    return matched
