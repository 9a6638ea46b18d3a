"""In-memory library of accepted copy, matched by exhaustive exact Jaccard."""

from __future__ import annotations

import hashlib
import json
import logging
import uuid
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .minhash import MinHashSigner
from .models import LibraryMatch, SearchMatch, SearchResult, Signature, TextItem
from .normalizer import normalize_text
from .shingles import generate_shingles
from .similarity import exact_jaccard

logger = logging.getLogger(__name__)

DEFAULT_MAX_RESULTS = 20


def content_hash(text: str) -> str:
    """Stable id for copy that arrives without one."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class LibraryFormatError(ValueError):
    """Raised when an imported library payload is not a JSON array."""


class LibraryIndex:
    """Signatures and items of previously accepted copy, keyed by id.

    Not safe for concurrent mutation; callers serialize access.
    """

    def __init__(self, signer: MinHashSigner) -> None:
        self.signer = signer
        self._signatures: Dict[str, Signature] = {}
        self._items: Dict[str, TextItem] = {}

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def add(self, items: Iterable[TextItem]) -> int:
        added = 0
        for item in items:
            if item.id in self._items:
                continue
            self._signatures[item.id] = self.signer.sign(item)
            self._items[item.id] = item
            added += 1
        logger.debug("Library add: %d new, %d total", added, len(self._items))
        return added

    def remove(self, ids: Iterable[str]) -> int:
        removed = 0
        for item_id in ids:
            if self._items.pop(item_id, None) is not None:
                removed += 1
            self._signatures.pop(item_id, None)
        return removed

    def clear(self) -> None:
        self._signatures.clear()
        self._items.clear()

    def export(self) -> List[TextItem]:
        return list(self._items.values())

    def replace(self, items: Iterable[TextItem]) -> None:
        self.clear()
        self.add(items)

    def signature(self, item_id: str) -> Optional[Signature]:
        return self._signatures.get(item_id)

    def item(self, item_id: str) -> Optional[TextItem]:
        return self._items.get(item_id)

    def best_match(self, shingles: frozenset, threshold: float) -> Tuple[Optional[TextItem], float, int]:
        """Linear scan: (best item, its similarity, count of items at/above threshold)."""
        best: Optional[TextItem] = None
        best_similarity = 0.0
        match_count = 0
        for lib_id, lib_sig in self._signatures.items():
            similarity = exact_jaccard(shingles, lib_sig.shingles)
            if similarity < threshold:
                continue
            match_count += 1
            if best is None or similarity > best_similarity:
                best = self._items[lib_id]
                best_similarity = similarity
        return best, best_similarity, match_count

    def match(self, item: TextItem, signature: Signature, threshold: float) -> Optional[LibraryMatch]:
        best, similarity, count = self.best_match(signature.shingles, threshold)
        if best is None:
            return None
        return LibraryMatch(new_item=item, library_item=best, similarity=similarity, match_count=count)

    def search(self, query_texts: Sequence[str], threshold: float, max_results: int = DEFAULT_MAX_RESULTS) -> List[SearchResult]:
        results: List[SearchResult] = []
        for query in query_texts:
            normalized = normalize_text(query)
            if not normalized:
                results.append(SearchResult(query=query))
                continue
            query_shingles = generate_shingles(normalized, self.signer.shingle_size)
            matches: List[SearchMatch] = []
            for lib_id, lib_sig in self._signatures.items():
                similarity = exact_jaccard(query_shingles, lib_sig.shingles)
                if similarity >= threshold:
                    matches.append(SearchMatch(item=self._items[lib_id], similarity=similarity))
            matches.sort(key=lambda m: m.similarity, reverse=True)
            results.append(SearchResult(query=query, matches=matches[:max_results]))
        return results


def export_library_json(items: Iterable[TextItem]) -> str:
    return json.dumps([item.to_dict() for item in items], ensure_ascii=False, indent=2)


def import_library_json(payload: str) -> List[TextItem]:
    """Parse an exported library; entries may use ``text`` or ``originalText``."""
    try:
        data: Any = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise LibraryFormatError(f"Invalid library JSON: {exc}") from exc
    if not isinstance(data, list):
        raise LibraryFormatError("Invalid format: expected a JSON array")
    items: List[TextItem] = []
    for entry in data:
        if not isinstance(entry, dict):
            continue
        text = entry.get("text") or entry.get("originalText") or ""
        if not text:
            continue
        items.append(
            TextItem(
                id=str(entry.get("id") or uuid.uuid4()),
                text=text,
                chinese_text=entry.get("chineseText"),
            )
        )
    return items


__all__ = ["DEFAULT_MAX_RESULTS", "content_hash", "LibraryFormatError", "LibraryIndex", "export_library_json", "import_library_json"]
