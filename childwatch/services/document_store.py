"""
Minimal document store: named collections of JSON documents keyed by id.

Each collection lives in `<DATA_DIR>/<collection>.json`. Queries support
equality filters only. Values must be JSON-serializable; callers dump
pydantic models with `mode="json"` before writing.
"""

from __future__ import annotations

import json
import threading
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

from childwatch.core.config import get_settings
from childwatch.core.logger import get_logger

log = get_logger(__name__)

Document = Dict[str, Any]


class DocumentStore:
    def __init__(self, base_dir: Optional[str | Path] = None) -> None:
        self._base = Path(base_dir or get_settings().DATA_DIR)
        self._base.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _path(self, collection: str) -> Path:
        return self._base / f"{collection}.json"

    def _load(self, collection: str) -> Dict[str, Document]:
        path = self._path(collection)
        if not path.exists():
            return {}
        try:
            return json.loads(path.read_text())
        except (json.JSONDecodeError, OSError):
            log.exception("Unreadable collection file %s", path)
            raise

    def _save(self, collection: str, docs: Dict[str, Document]) -> None:
        path = self._path(collection)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(docs, indent=2))
        tmp.replace(path)

    def create(self, collection: str, data: Document, doc_id: Optional[str] = None) -> Document:
        with self._lock:
            docs = self._load(collection)
            new_id = doc_id or uuid.uuid4().hex
            doc = {**data, "id": new_id}
            docs[new_id] = doc
            self._save(collection, docs)
        return dict(doc)

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        with self._lock:
            doc = self._load(collection).get(doc_id)
        return dict(doc) if doc is not None else None

    def update(self, collection: str, doc_id: str, changes: Document) -> Document:
        """Shallow-merge `changes` into a document; raises KeyError if absent."""
        with self._lock:
            docs = self._load(collection)
            if doc_id not in docs:
                raise KeyError(f"{collection}/{doc_id}")
            docs[doc_id] = {**docs[doc_id], **changes, "id": doc_id}
            self._save(collection, docs)
            return dict(docs[doc_id])

    def delete(self, collection: str, doc_id: str) -> bool:
        with self._lock:
            docs = self._load(collection)
            removed = docs.pop(doc_id, None) is not None
            if removed:
                self._save(collection, docs)
        return removed

    def query(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> List[Document]:
        filters = filters or {}
        with self._lock:
            docs = list(self._load(collection).values())
        matched = [dict(d) for d in docs if all(d.get(k) == v for k, v in filters.items())]
        return matched[:limit] if limit is not None else matched


_store: Optional[DocumentStore] = None


def get_document_store() -> DocumentStore:
    global _store
    if _store is None:
        _store = DocumentStore()
    return _store
