"""Union-find clustering of verified similar pairs into duplicate groups.

Grouping is transitive: if A~B and B~C pass the threshold, A, B and C land
in one group even when A and C alone would not. Members that were never
paired directly with the representative report similarity 0.0.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional, Sequence

from .models import DuplicateEntry, DuplicateGroup, SimilarPair, TextItem, pair_key

logger = logging.getLogger(__name__)


class UnionFind:
    """Disjoint sets with path compression and union by rank."""

    def __init__(self) -> None:
        self.parent: Dict[str, str] = {}
        self.rank: Dict[str, int] = {}

    def find(self, x: str) -> str:
        if x not in self.parent:
            self.parent[x] = x
            self.rank[x] = 0
            return x
        root = x
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[x] != root:
            self.parent[x], x = root, self.parent[x]
        return root

    def union(self, x: str, y: str) -> None:
        px, py = self.find(x), self.find(y)
        if px == py:
            return
        rx, ry = self.rank[px], self.rank[py]
        if rx < ry:
            self.parent[px] = py
        elif rx > ry:
            self.parent[py] = px
        else:
            self.parent[py] = px
            self.rank[px] = rx + 1


def build_duplicate_groups(
    pairs: Sequence[SimilarPair],
    items: Mapping[str, TextItem],
    position: Optional[Mapping[str, int]] = None,
) -> List[DuplicateGroup]:
    """Materialize groups from accepted pairs.

    Without ``position`` the representative is the first id met while scanning
    ``pairs``. With it, members are ordered by input position and the earliest
    one represents the group.
    """
    uf = UnionFind()
    similarities: Dict[tuple, float] = {}
    for pair in pairs:
        uf.union(pair.id1, pair.id2)
        similarities[pair.key] = pair.similarity

    members_by_root: Dict[str, Dict[str, None]] = {}
    for pair in pairs:
        members = members_by_root.setdefault(uf.find(pair.id1), {})
        members.setdefault(pair.id1)
        members.setdefault(pair.id2)

    groups: List[DuplicateGroup] = []
    for members in members_by_root.values():
        ids = list(members)
        if position is not None:
            ids.sort(key=lambda i: position.get(i, len(position)))
        if len(ids) < 2:
            continue
        rep_id = ids[0]
        representative = items.get(rep_id)
        if representative is None:
            continue
        duplicates = [
            DuplicateEntry(item=items[i], similarity=similarities.get(pair_key(rep_id, i), 0.0))
            for i in ids[1:]
            if i in items
        ]
        if not duplicates:
            continue
        duplicates.sort(key=lambda d: d.similarity, reverse=True)
        groups.append(DuplicateGroup(representative=representative, duplicates=duplicates))

    if position is not None:
        groups.sort(key=lambda g: position.get(g.representative.id, len(position)))
    logger.debug("Clustered %d pairs into %d duplicate groups", len(pairs), len(groups))
    return groups


__all__ = ["UnionFind", "build_duplicate_groups"]
