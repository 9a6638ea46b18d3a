"""MinHash signatures over shingle sets.

The hash family is fully determined by the position index, so a signature
computed today is identical to one computed after a library re-import in
another process. Library persistence relies on this: only texts are stored
and signatures are always rebuilt.
"""

from __future__ import annotations

import math
from functools import lru_cache
from typing import Iterable, Sequence, Tuple

import numpy as np

from .models import Signature, TextItem
from .normalizer import normalize_text
from .shingles import DEFAULT_SHINGLE_SIZE, generate_shingles

LARGE_PRIME = 2147483647  # 2**31 - 1
DEFAULT_NUM_HASH_FUNCTIONS = 128

_A_MULTIPLIER = 1103515245
_A_OFFSET = 12345
_B_MULTIPLIER = 134775813
_B_OFFSET = 1


def string_hash(value: str) -> int:
    """Polynomial ``h*31 + code`` over UTF-16 code units with int32 wraparound."""
    h = 0
    data = value.encode("utf-16-le", errors="surrogatepass")
    for i in range(0, len(data), 2):
        code = data[i] | (data[i + 1] << 8)
        h = (h * 31 + code) & 0xFFFFFFFF
    if h & 0x80000000:
        h -= 0x100000000
    return abs(h)


@lru_cache(maxsize=8)
def hash_parameters(num_hash_functions: int) -> Tuple[np.ndarray, np.ndarray]:
    idx = np.arange(num_hash_functions, dtype=np.int64)
    a = (idx * _A_MULTIPLIER + _A_OFFSET) % LARGE_PRIME
    b = (idx * _B_MULTIPLIER + _B_OFFSET) % LARGE_PRIME
    a.setflags(write=False)
    b.setflags(write=False)
    return a, b


def minhash_signature(shingles: Iterable[str], num_hash_functions: int = DEFAULT_NUM_HASH_FUNCTIONS) -> Tuple[float, ...]:
    """Position i holds ``min((a_i * hash(s) + b_i) mod p)`` over all shingles.

    An empty shingle set yields ``inf`` in every position, which never equals
    a real value.
    """
    shingle_list = list(shingles)
    if not shingle_list:
        return tuple([math.inf] * num_hash_functions)
    a, b = hash_parameters(num_hash_functions)
    hashes = np.fromiter((string_hash(s) for s in shingle_list), dtype=np.int64, count=len(shingle_list))
    # a < 2**31 and hash <= 2**31, so the product fits in int64.
    values = (np.outer(hashes, a) + b) % LARGE_PRIME
    return tuple(values.min(axis=0).tolist())


def estimate_jaccard(sig1: Sequence[float], sig2: Sequence[float]) -> float:
    """Fraction of agreeing positions. Diagnostics only; decisions use exact Jaccard."""
    if len(sig1) != len(sig2):
        raise ValueError(f"Signatures must have same length ({len(sig1)} != {len(sig2)})")
    if not sig1:
        return 0.0
    matches = sum(1 for x, y in zip(sig1, sig2) if x == y)
    return matches / len(sig1)


class MinHashSigner:
    """Normalize, shingle, and sign texts with one fixed configuration."""

    def __init__(self, num_hash_functions: int = DEFAULT_NUM_HASH_FUNCTIONS, shingle_size: int = DEFAULT_SHINGLE_SIZE) -> None:
        self.num_hash_functions = num_hash_functions
        self.shingle_size = shingle_size

    def shingles_for(self, text: str):
        return generate_shingles(normalize_text(text), self.shingle_size)

    def sign(self, item: TextItem) -> Signature:
        shingles = self.shingles_for(item.text)
        return Signature(
            id=item.id,
            signature=minhash_signature(shingles, self.num_hash_functions),
            shingles=shingles,
        )


__all__ = [
    "LARGE_PRIME",
    "DEFAULT_NUM_HASH_FUNCTIONS",
    "string_hash",
    "hash_parameters",
    "minhash_signature",
    "estimate_jaccard",
    "MinHashSigner",
]
