"""Data contracts shared by the dedup engine, library, and outer surfaces."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Sequence


@dataclass(frozen=True)
class TextItem:
    id: str
    text: str
    chinese_text: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id, "text": self.text}
        if self.chinese_text is not None:
            data["chineseText"] = self.chinese_text
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TextItem":
        return cls(id=str(data["id"]), text=data.get("text", ""), chinese_text=data.get("chineseText"))


@dataclass(frozen=True)
class Signature:
    """MinHash signature plus the shingle set it was derived from."""

    id: str
    signature: Sequence[float]
    shingles: FrozenSet[str]


@dataclass(frozen=True)
class SimilarPair:
    id1: str
    id2: str
    similarity: float

    @property
    def key(self) -> tuple:
        return pair_key(self.id1, self.id2)


def pair_key(id1: str, id2: str) -> tuple:
    """Canonical, order-independent key for an undirected pair."""
    return (id1, id2) if id1 <= id2 else (id2, id1)


@dataclass
class DuplicateEntry:
    item: TextItem
    similarity: float

    def to_dict(self) -> Dict[str, Any]:
        return {"item": self.item.to_dict(), "similarity": self.similarity}


@dataclass
class DuplicateGroup:
    representative: TextItem
    duplicates: List[DuplicateEntry] = field(default_factory=list)

    @property
    def member_ids(self) -> List[str]:
        return [self.representative.id] + [d.item.id for d in self.duplicates]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "representative": self.representative.to_dict(),
            "duplicates": [d.to_dict() for d in self.duplicates],
        }


@dataclass
class LibraryMatch:
    new_item: TextItem
    library_item: TextItem
    similarity: float
    match_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "newItem": self.new_item.to_dict(),
            "libraryItem": self.library_item.to_dict(),
            "similarity": self.similarity,
            "matchCount": self.match_count,
        }


@dataclass
class DedupStats:
    total_input: int = 0
    unique_count: int = 0
    duplicate_count: int = 0
    library_match_count: int = 0
    processing_time_ms: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "totalInput": self.total_input,
            "uniqueCount": self.unique_count,
            "duplicateCount": self.duplicate_count,
            "libraryMatchCount": self.library_match_count,
            "processingTimeMs": self.processing_time_ms,
        }


@dataclass
class DedupResult:
    unique_items: List[TextItem] = field(default_factory=list)
    duplicate_groups: List[DuplicateGroup] = field(default_factory=list)
    library_matches: List[LibraryMatch] = field(default_factory=list)
    stats: DedupStats = field(default_factory=DedupStats)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uniqueItems": [i.to_dict() for i in self.unique_items],
            "duplicateGroups": [g.to_dict() for g in self.duplicate_groups],
            "libraryMatches": [m.to_dict() for m in self.library_matches],
            "stats": self.stats.to_dict(),
        }


@dataclass
class SearchMatch:
    item: TextItem
    similarity: float

    def to_dict(self) -> Dict[str, Any]:
        return {"item": self.item.to_dict(), "similarity": self.similarity}


@dataclass
class SearchResult:
    query: str
    matches: List[SearchMatch] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"query": self.query, "matches": [m.to_dict() for m in self.matches]}


__all__ = [
    "TextItem",
    "Signature",
    "SimilarPair",
    "pair_key",
    "DuplicateEntry",
    "DuplicateGroup",
    "LibraryMatch",
    "DedupStats",
    "DedupResult",
    "SearchMatch",
    "SearchResult",
]
