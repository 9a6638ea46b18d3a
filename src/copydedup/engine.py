"""Dedup orchestration: sign a batch, cluster it, then check survivors against the library."""

from __future__ import annotations

import logging
import time
from typing import Dict, Iterable, List, Optional, Sequence

from .clustering import build_duplicate_groups
from .config import EngineSettings
from .library import DEFAULT_MAX_RESULTS, LibraryIndex
from .lsh import LSHIndexer
from .minhash import MinHashSigner
from .models import DedupResult, DedupStats, LibraryMatch, SearchResult, Signature, TextItem
from .similarity import verify_candidates

logger = logging.getLogger(__name__)


class DedupEngine:
    """MinHash + LSH near-duplicate detector with a long-lived library.

    ``dedup`` never mutates the library. Library mutations and ``dedup`` calls
    must be serialized by the caller.
    """

    def __init__(self, settings: Optional[EngineSettings] = None) -> None:
        self.settings = settings or EngineSettings()
        self.signer = MinHashSigner(self.settings.num_hash_functions, self.settings.shingle_size)
        self.lsh = LSHIndexer(self.settings.num_hash_functions, self.settings.num_bands)
        self.library = LibraryIndex(self.signer)

    # Library -----------------------------------------------------------

    def get_library_size(self) -> int:
        return len(self.library)

    def add_to_library(self, items: Iterable[TextItem]) -> int:
        return self.library.add(items)

    def remove_from_library(self, ids: Iterable[str]) -> int:
        return self.library.remove(ids)

    def clear_library(self) -> None:
        self.library.clear()

    def export_library(self) -> List[TextItem]:
        return self.library.export()

    def import_library(self, items: Iterable[TextItem]) -> None:
        self.library.replace(items)
        logger.info("Imported library with %d items", len(self.library))

    def load_from_store(self, store) -> int:
        """Replace the library with the contents of a ``LibraryStore``."""
        self.import_library(store.load_items())
        return len(self.library)

    def search_library(
        self,
        query_texts: Sequence[str],
        threshold: Optional[float] = None,
        max_results: int = DEFAULT_MAX_RESULTS,
    ) -> List[SearchResult]:
        if threshold is None:
            threshold = self.settings.similarity_threshold
        return self.library.search(query_texts, threshold=threshold, max_results=max_results)

    # Dedup -------------------------------------------------------------

    def sign(self, item: TextItem) -> Signature:
        return self.signer.sign(item)

    def dedup(
        self,
        new_items: Sequence[TextItem],
        threshold: Optional[float] = None,
        check_library: bool = True,
    ) -> DedupResult:
        start = time.perf_counter()
        if threshold is None:
            threshold = self.settings.similarity_threshold

        signatures: Dict[str, Signature] = {}
        items_by_id: Dict[str, TextItem] = {}
        position: Dict[str, int] = {}
        for idx, item in enumerate(new_items):
            if item.id in items_by_id:
                logger.warning("Duplicate id %r in batch; keeping the last occurrence", item.id)
            signatures[item.id] = self.signer.sign(item)
            items_by_id[item.id] = item
            position.setdefault(item.id, idx)

        candidates = self.lsh.candidate_pairs({item_id: sig.signature for item_id, sig in signatures.items()})
        pairs = verify_candidates(
            candidates,
            signatures,
            threshold,
            order=lambda pair: sorted((position[pair[0]], position[pair[1]])),
        )
        groups = build_duplicate_groups(pairs, items_by_id, position=position)

        grouped_ids = {member_id for group in groups for member_id in group.member_ids}
        unique_from_batch = [item for item in new_items if item.id not in grouped_ids]

        library_matches: List[LibraryMatch] = []
        if check_library and len(self.library) > 0:
            for item in unique_from_batch + [g.representative for g in groups]:
                match = self.library.match(item, signatures[item.id], threshold)
                if match is not None:
                    library_matches.append(match)

        matched_ids = {m.new_item.id for m in library_matches}
        final_unique = [item for item in unique_from_batch if item.id not in matched_ids]
        final_groups = [g for g in groups if g.representative.id not in matched_ids]

        elapsed_ms = int(round((time.perf_counter() - start) * 1000))
        stats = DedupStats(
            total_input=len(new_items),
            unique_count=len(final_unique),
            duplicate_count=sum(len(g.duplicates) for g in groups),
            library_match_count=len(library_matches),
            processing_time_ms=elapsed_ms,
        )
        logger.info(
            "Dedup: %d items, %d candidates, %d pairs, %d groups, %d library matches in %dms",
            len(new_items),
            len(candidates),
            len(pairs),
            len(groups),
            len(library_matches),
            elapsed_ms,
        )
        return DedupResult(
            unique_items=final_unique,
            duplicate_groups=final_groups,
            library_matches=library_matches,
            stats=stats,
        )


__all__ = ["DedupEngine"]
