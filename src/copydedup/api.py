"""FastAPI server exposing batch dedup and the persistent copy library."""

from __future__ import annotations

import threading
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from .config import Config, load_config
from .engine import DedupEngine
from .models import TextItem
from .storage import LibraryStore, stats_to_dict


class TextItemIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    text: str
    chinese_text: Optional[str] = Field(default=None, alias="chineseText")

    def to_item(self) -> TextItem:
        return TextItem(id=self.id, text=self.text, chinese_text=self.chinese_text)


class DedupRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    items: List[TextItemIn]
    threshold: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    check_library: Optional[bool] = Field(default=None, alias="checkLibrary")


class LibraryItemsRequest(BaseModel):
    items: List[TextItemIn]
    source: Optional[str] = None


class RemoveRequest(BaseModel):
    ids: List[str]


class SearchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    queries: List[str]
    threshold: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    max_results: Optional[int] = Field(default=None, ge=1, alias="maxResults")


def create_app(config_path: str | None = None, config: Config | None = None) -> FastAPI:
    config = config or load_config(config_path)
    store = LibraryStore(config.library.db_url)
    store.init_db()
    engine = DedupEngine(config.engine)
    engine.load_from_store(store)
    lock = threading.Lock()

    app = FastAPI(title="copydedup")
    app.state.config = config
    app.state.store = store
    app.state.engine = engine

    def get_config() -> Config:
        return app.state.config

    def get_store() -> LibraryStore:
        return app.state.store

    def get_engine() -> DedupEngine:
        return app.state.engine

    @app.post("/dedup")
    def dedup(req: DedupRequest, engine: DedupEngine = Depends(get_engine), config: Config = Depends(get_config)):
        check_library = config.library.check_library if req.check_library is None else req.check_library
        with lock:
            result = engine.dedup([i.to_item() for i in req.items], threshold=req.threshold, check_library=check_library)
        return result.to_dict()

    @app.get("/library")
    def list_library(engine: DedupEngine = Depends(get_engine)):
        with lock:
            items = engine.export_library()
        return {"items": [item.to_dict() for item in items], "size": len(items)}

    @app.post("/library")
    def add_library(
        req: LibraryItemsRequest,
        engine: DedupEngine = Depends(get_engine),
        store: LibraryStore = Depends(get_store),
    ):
        items = [i.to_item() for i in req.items]
        with lock:
            store.add_items(items, source=req.source)
            added = engine.add_to_library(items)
            size = engine.get_library_size()
        return {"added": added, "size": size}

    @app.put("/library")
    def replace_library(
        req: LibraryItemsRequest,
        engine: DedupEngine = Depends(get_engine),
        store: LibraryStore = Depends(get_store),
    ):
        items = [i.to_item() for i in req.items]
        with lock:
            store.replace(items, source=req.source)
            engine.import_library(items)
            size = engine.get_library_size()
        return {"size": size}

    @app.delete("/library")
    def remove_library_items(
        req: RemoveRequest,
        engine: DedupEngine = Depends(get_engine),
        store: LibraryStore = Depends(get_store),
    ):
        with lock:
            store.remove_items(req.ids)
            removed = engine.remove_from_library(req.ids)
            size = engine.get_library_size()
        return {"removed": removed, "size": size}

    @app.delete("/library/all")
    def clear_library(engine: DedupEngine = Depends(get_engine), store: LibraryStore = Depends(get_store)):
        with lock:
            removed = engine.get_library_size()
            store.clear()
            engine.clear_library()
        return {"removed": removed, "size": 0}

    @app.post("/library/search")
    def search_library(req: SearchRequest, engine: DedupEngine = Depends(get_engine), config: Config = Depends(get_config)):
        if not req.queries:
            raise HTTPException(status_code=422, detail="queries must not be empty")
        max_results = req.max_results or config.library.search_max_results
        with lock:
            results = engine.search_library(req.queries, threshold=req.threshold, max_results=max_results)
        return [r.to_dict() for r in results]

    @app.get("/library/stats")
    def library_stats(store: LibraryStore = Depends(get_store)):
        return stats_to_dict(store.stats())

    return app


__all__ = ["create_app", "TextItemIn", "DedupRequest", "LibraryItemsRequest", "RemoveRequest", "SearchRequest"]
