"""Exact Jaccard verification of LSH candidates."""

from __future__ import annotations

from typing import AbstractSet, Callable, Iterable, List, Mapping, Optional, Tuple

from .models import Signature, SimilarPair


def exact_jaccard(set1: AbstractSet[str], set2: AbstractSet[str]) -> float:
    union = len(set1 | set2)
    if union == 0:
        return 0.0
    return len(set1 & set2) / union


def verify_candidates(
    candidates: Iterable[Tuple[str, str]],
    signatures: Mapping[str, Signature],
    threshold: float,
    order: Optional[Callable[[Tuple[str, str]], object]] = None,
) -> List[SimilarPair]:
    """Keep candidate pairs whose exact Jaccard meets ``threshold``.

    ``order`` sorts the candidates before verification so the accepted pairs
    come out in a stable sequence.
    """
    ordered = sorted(candidates, key=order) if order else list(candidates)
    accepted: List[SimilarPair] = []
    for id1, id2 in ordered:
        sig1 = signatures.get(id1)
        sig2 = signatures.get(id2)
        if sig1 is None or sig2 is None:
            continue
        similarity = exact_jaccard(sig1.shingles, sig2.shingles)
        if similarity >= threshold:
            accepted.append(SimilarPair(id1=id1, id2=id2, similarity=similarity))
    return accepted


__all__ = ["exact_jaccard", "verify_candidates"]
