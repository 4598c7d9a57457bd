"""Choosing where to cut text that does not fit in one unit."""

from __future__ import annotations

from typing import Iterator


def find_split_point(text: str, limit: int) -> int:
    """Return the index at which to cut ``text`` so the head fits in ``limit``.

    Precedence: the last newline at or before ``limit``, then the last
    space, then a hard cut at ``limit``. A boundary at index 0 is ignored
    because it would produce an empty head. The boundary character itself
    starts the tail, so ``text[:i] + text[i:] == text`` always holds.
    """
    if limit < 0:
        raise ValueError(f"limit must be >= 0, got {limit}")
    if len(text) <= limit:
        return len(text)

    for sep in ("\n", " "):
        idx = text.rfind(sep, 0, limit + 1)
        if idx > 0:
            return idx
    return limit


def iter_pieces(text: str, limit: int) -> Iterator[str]:
    """Yield consecutive pieces of ``text`` no longer than ``limit``."""
    if limit <= 0:
        raise ValueError(f"limit must be positive, got {limit}")
    rest = text
    while rest:
        cut = find_split_point(rest, limit)
        yield rest[:cut]
        rest = rest[cut:]
