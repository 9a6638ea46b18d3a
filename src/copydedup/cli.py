"""CLI entrypoint with dedup/library/judge commands."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from .config import Config, load_config
from .engine import DedupEngine
from .judge import JudgeError, build_llm, judge_with_llm, to_judge_items
from .library import content_hash, export_library_json, import_library_json
from .models import DedupResult, TextItem
from .storage import LibraryStore, stats_to_dict

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
logger = logging.getLogger(__name__)


def read_items(path: Path, content_ids: bool = False) -> List[TextItem]:
    """Load a JSON array of items (or strings), else one text per non-empty line.

    Entries without an id get ``item-<n>`` by position, or the sha256 of their
    text when ``content_ids`` is set so ids stay stable across files.
    """

    def default_id(idx: int, text: str) -> str:
        return content_hash(text) if content_ids else f"item-{idx}"

    raw = path.read_text(encoding="utf-8")
    if raw.lstrip().startswith("["):
        items: List[TextItem] = []
        for idx, entry in enumerate(json.loads(raw), start=1):
            if isinstance(entry, str):
                items.append(TextItem(id=default_id(idx, entry), text=entry))
            elif isinstance(entry, dict):
                text = entry.get("text") or entry.get("originalText") or ""
                items.append(
                    TextItem(
                        id=str(entry.get("id") or default_id(idx, text)),
                        text=text,
                        chinese_text=entry.get("chineseText"),
                    )
                )
        return items
    lines = [line.strip() for line in raw.splitlines() if line.strip()]
    return [TextItem(id=default_id(idx, line), text=line) for idx, line in enumerate(lines, start=1)]


def make_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="copydedup near-duplicate detection")
    parser.add_argument("--config", default="config.yaml", help="Path to config yaml")
    sub = parser.add_subparsers(dest="command", required=True)

    dedup_p = sub.add_parser("dedup", help="Deduplicate a batch of copy")
    dedup_p.add_argument("file", type=Path, help="JSON array of items or one text per line")
    dedup_p.add_argument("--threshold", type=float, default=None)
    dedup_p.add_argument("--no-library", action="store_true", help="Skip the library check")
    dedup_p.add_argument("--json", action="store_true", help="Print the full result as JSON")

    lib_p = sub.add_parser("library", help="Manage the persistent library")
    lib_sub = lib_p.add_subparsers(dest="library_command", required=True)
    add_p = lib_sub.add_parser("add", help="Add items from a file")
    add_p.add_argument("file", type=Path)
    add_p.add_argument("--source", default=None)
    remove_p = lib_sub.add_parser("remove", help="Remove items by id")
    remove_p.add_argument("ids", nargs="+")
    lib_sub.add_parser("clear", help="Remove every library item")
    export_p = lib_sub.add_parser("export", help="Export the library as JSON")
    export_p.add_argument("--output", type=Path, default=None)
    import_p = lib_sub.add_parser("import", help="Replace the library from an exported JSON file")
    import_p.add_argument("file", type=Path)
    search_p = lib_sub.add_parser("search", help="Search the library")
    search_p.add_argument("queries", nargs="+")
    search_p.add_argument("--threshold", type=float, default=None)
    search_p.add_argument("--max-results", type=int, default=None)
    lib_sub.add_parser("stats", help="Show library statistics")

    judge_p = sub.add_parser("judge", help="Ask the LLM judge to deduplicate a batch")
    judge_p.add_argument("file", type=Path)
    return parser


def _open_store(config: Config) -> LibraryStore:
    store = LibraryStore(config.library.db_url)
    store.init_db()
    return store


def _print_summary(result: DedupResult) -> None:
    stats = result.stats
    print(
        f"{stats.total_input} items: {stats.unique_count} unique, {stats.duplicate_count} duplicates, "
        f"{stats.library_match_count} library matches ({stats.processing_time_ms}ms)"
    )
    for group in result.duplicate_groups:
        print(f"[keep] {group.representative.id}: {group.representative.text[:80]}")
        for dup in group.duplicates:
            print(f"  [dup {dup.similarity:.2f}] {dup.item.id}: {dup.item.text[:80]}")
    for match in result.library_matches:
        print(f"[library {match.similarity:.2f}] {match.new_item.id} ~ {match.library_item.id}")


def _run_dedup(config: Config, args: argparse.Namespace) -> None:
    items = read_items(args.file)
    engine = DedupEngine(config.engine)
    check_library = config.library.check_library and not args.no_library
    if check_library:
        engine.load_from_store(_open_store(config))
    result = engine.dedup(items, threshold=args.threshold, check_library=check_library)
    if args.json:
        print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    else:
        _print_summary(result)


def _run_library(config: Config, args: argparse.Namespace) -> None:
    store = _open_store(config)
    command = args.library_command
    if command == "add":
        added = store.add_items(read_items(args.file, content_ids=True), source=args.source)
        logger.info("Added %d items to the library", added)
    elif command == "remove":
        removed = store.remove_items(args.ids)
        logger.info("Removed %d items from the library", removed)
    elif command == "clear":
        removed = store.clear()
        logger.info("Cleared %d library items", removed)
    elif command == "export":
        payload = export_library_json(store.load_items())
        if args.output:
            args.output.write_text(payload, encoding="utf-8")
            logger.info("Exported library to %s", args.output)
        else:
            print(payload)
    elif command == "import":
        items = import_library_json(args.file.read_text(encoding="utf-8"))
        count = store.replace(items, source=str(args.file))
        logger.info("Imported %d library items", count)
    elif command == "search":
        engine = DedupEngine(config.engine)
        engine.load_from_store(store)
        results = engine.search_library(
            args.queries,
            threshold=args.threshold,
            max_results=args.max_results or config.library.search_max_results,
        )
        print(json.dumps([r.to_dict() for r in results], ensure_ascii=False, indent=2))
    elif command == "stats":
        print(json.dumps(stats_to_dict(store.stats()), indent=2))


def _run_judge(config: Config, args: argparse.Namespace) -> int:
    llm = build_llm(config.judge)
    if llm is None:
        logger.error("Judge API key is not configured (set COPYDEDUP_JUDGE__API_KEY)")
        return 1

    def on_progress(current: int, total: int, status: str) -> None:
        logger.info("[%d/%d] %s", current, total, status)

    items = to_judge_items(read_items(args.file))
    try:
        result = asyncio.run(
            judge_with_llm(
                items,
                llm,
                system_prompt=config.judge.system_prompt,
                batch_size=config.judge.batch_size,
                batch_delay_seconds=config.judge.batch_delay_seconds,
                on_progress=on_progress,
            )
        )
    except JudgeError as exc:
        logger.error("%s", exc)
        return 1
    print(json.dumps(result.model_dump(by_alias=True), ensure_ascii=False, indent=2))
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = make_parser()
    args = parser.parse_args(argv)
    config = load_config(args.config)
    if args.command == "dedup":
        _run_dedup(config, args)
    elif args.command == "library":
        _run_library(config, args)
    elif args.command == "judge":
        return _run_judge(config, args)
    return 0


if __name__ == "__main__":
    sys.exit(main())
