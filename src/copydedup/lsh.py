"""LSH banding over MinHash signatures for candidate pair generation."""

from __future__ import annotations

import logging
from collections import defaultdict
from itertools import combinations
from typing import Dict, List, Mapping, Optional, Sequence, Set, Tuple

from .models import pair_key

logger = logging.getLogger(__name__)

BAND_DELIMITER = ","

LSHIndex = Dict[str, List[str]]


def rows_per_band(num_hash_functions: int, num_bands: int) -> int:
    rows = num_hash_functions // num_bands
    dropped = num_hash_functions - rows * num_bands
    if dropped:
        logger.debug("LSH banding drops %d trailing signature rows (%d hashes, %d bands)", dropped, num_hash_functions, num_bands)
    return rows


def band_key(signature: Sequence[float], band: int, rows: int) -> str:
    start = band * rows
    return BAND_DELIMITER.join(str(v) for v in signature[start : start + rows])


def build_lsh_index(
    signatures: Mapping[str, Sequence[float]],
    num_bands: int,
    num_hash_functions: Optional[int] = None,
) -> List[LSHIndex]:
    """Bucket ids by band slice; one dict per band, ids kept in mapping order."""
    if num_hash_functions is None:
        first = next(iter(signatures.values()), ())
        num_hash_functions = len(first)
    rows = rows_per_band(num_hash_functions, num_bands)
    bands: List[LSHIndex] = [defaultdict(list) for _ in range(num_bands)]
    for item_id, signature in signatures.items():
        for b in range(num_bands):
            bands[b][band_key(signature, b, rows)].append(item_id)
    return [dict(band) for band in bands]


def find_candidate_pairs(band_indices: Sequence[LSHIndex]) -> Set[Tuple[str, str]]:
    """Every pair of ids sharing a bucket in at least one band."""
    candidates: Set[Tuple[str, str]] = set()
    for band in band_indices:
        for ids in band.values():
            if len(ids) < 2:
                continue
            for id1, id2 in combinations(ids, 2):
                if id1 != id2:
                    candidates.add(pair_key(id1, id2))
    return candidates


class LSHIndexer:
    def __init__(self, num_hash_functions: int, num_bands: int) -> None:
        self.num_hash_functions = num_hash_functions
        self.num_bands = num_bands

    def candidate_pairs(self, signatures: Mapping[str, Sequence[float]]) -> Set[Tuple[str, str]]:
        if len(signatures) < 2:
            return set()
        index = build_lsh_index(signatures, self.num_bands, self.num_hash_functions)
        pairs = find_candidate_pairs(index)
        logger.debug("LSH produced %d candidate pairs for %d signatures", len(pairs), len(signatures))
        return pairs


__all__ = ["LSHIndex", "BAND_DELIMITER", "rows_per_band", "band_key", "build_lsh_index", "find_candidate_pairs", "LSHIndexer"]
