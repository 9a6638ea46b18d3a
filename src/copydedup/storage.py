"""SQLite storage using SQLAlchemy for the persistent copy library.

Only texts are persisted; signatures and shingles are rebuilt on load.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import Column, DateTime, Integer, String, Text, create_engine, func
from sqlalchemy.orm import declarative_base, sessionmaker

from .models import TextItem

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class LibraryEntry(Base):
    __tablename__ = "library_items"
    seq = Column(Integer, primary_key=True, autoincrement=True)
    item_id = Column(String, unique=True, index=True, nullable=False)
    text = Column(Text, nullable=False)
    chinese_text = Column(Text, nullable=True)
    source = Column(String, nullable=True)
    added_at = Column(DateTime, default=_utcnow, index=True)

    def to_item(self) -> TextItem:
        return TextItem(id=self.item_id, text=self.text, chinese_text=self.chinese_text)


class LibraryStore:
    """Thin wrapper over SQLAlchemy sessions for library entries."""

    def __init__(self, db_url: str) -> None:
        self.db_url = db_url
        _ensure_sqlite_dir(db_url)
        self.engine = create_engine(db_url, future=True)
        self.SessionLocal = sessionmaker(self.engine, expire_on_commit=False, future=True)

    def init_db(self) -> None:
        Base.metadata.create_all(self.engine)

    def session(self):
        return self.SessionLocal()

    def add_items(self, items: Iterable[TextItem], source: Optional[str] = None) -> int:
        """Insert items whose id is not stored yet; returns the number inserted."""
        added = 0
        with self.session() as s:
            known = {row[0] for row in s.query(LibraryEntry.item_id)}
            for item in items:
                if item.id in known:
                    continue
                s.add(LibraryEntry(item_id=item.id, text=item.text, chinese_text=item.chinese_text, source=source))
                known.add(item.id)
                added += 1
            s.commit()
        return added

    def remove_items(self, ids: Iterable[str]) -> int:
        id_list = list(ids)
        if not id_list:
            return 0
        with self.session() as s:
            deleted = s.query(LibraryEntry).filter(LibraryEntry.item_id.in_(id_list)).delete(synchronize_session=False)
            s.commit()
        return deleted

    def clear(self) -> int:
        with self.session() as s:
            deleted = s.query(LibraryEntry).delete()
            s.commit()
        return deleted

    def replace(self, items: Iterable[TextItem], source: Optional[str] = None) -> int:
        self.clear()
        return self.add_items(items, source=source)

    def load_items(self) -> List[TextItem]:
        with self.session() as s:
            return [entry.to_item() for entry in s.query(LibraryEntry).order_by(LibraryEntry.seq.asc())]

    def stats(self) -> Dict[str, Any]:
        with self.session() as s:
            total, oldest, newest, avg_len = s.query(
                func.count(LibraryEntry.seq),
                func.min(LibraryEntry.added_at),
                func.max(LibraryEntry.added_at),
                func.avg(func.length(LibraryEntry.text)),
            ).one()
        return {
            "total_count": total or 0,
            "oldest": oldest,
            "newest": newest,
            "average_length": int(round(avg_len)) if avg_len is not None else 0,
        }


def stats_to_dict(stats: Dict[str, Any]) -> Dict[str, Any]:
    """camelCase, JSON-ready form of ``LibraryStore.stats()``."""
    return {
        "totalCount": stats["total_count"],
        "oldestDate": stats["oldest"].isoformat() if stats["oldest"] else None,
        "newestDate": stats["newest"].isoformat() if stats["newest"] else None,
        "averageLength": stats["average_length"],
    }


def _ensure_sqlite_dir(db_url: str) -> None:
    prefix = "sqlite:///"
    if db_url.startswith(prefix) and db_url != prefix + ":memory:":
        Path(db_url[len(prefix) :]).parent.mkdir(parents=True, exist_ok=True)


__all__ = ["Base", "LibraryEntry", "LibraryStore", "stats_to_dict"]
