"""Character n-gram shingling of normalized text."""

from __future__ import annotations

from typing import FrozenSet

DEFAULT_SHINGLE_SIZE = 3


def generate_shingles(normalized: str, n: int = DEFAULT_SHINGLE_SIZE) -> FrozenSet[str]:
    """Return the set of contiguous length-``n`` substrings.

    Text shorter than ``n`` (including the empty string) becomes its own
    single shingle.
    """
    if len(normalized) < n:
        return frozenset([normalized])
    return frozenset(normalized[i : i + n] for i in range(len(normalized) - n + 1))


__all__ = ["DEFAULT_SHINGLE_SIZE", "generate_shingles"]
