"""In-memory backends: dict-backed, ideal for tests and local development."""

from __future__ import annotations

import copy
import logging
from typing import Any, Mapping, Optional

from visitwise.persistence.protocols import StoredDocument

log = logging.getLogger(__name__)


class MemoryDocumentStore:
    """Stores documents in nested dicts, nothing touches disk.

    Values are deep-copied on the way in and out so callers cannot mutate
    stored state.  Native ``datetime``/``date`` values are kept as-is, which
    lets tests seed legacy records with heterogeneous encodings.
    """

    def __init__(self) -> None:
        self._collections: dict[tuple[str, str], dict[str, dict[str, Any]]] = {}

    def _bucket(self, collection: str, owner_id: str) -> dict[str, dict[str, Any]]:
        return self._collections.setdefault((collection, owner_id), {})

    async def get(self, collection: str, owner_id: str, doc_id: str) -> Optional[dict[str, Any]]:
        doc = self._bucket(collection, owner_id).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def query(
        self,
        collection: str,
        owner_id: str,
        filters: Optional[Mapping[str, Any]] = None,
    ) -> list[StoredDocument]:
        results = []
        for doc_id, data in self._bucket(collection, owner_id).items():
            if filters and any(data.get(k) != v for k, v in filters.items()):
                continue
            results.append(StoredDocument(doc_id=doc_id, data=copy.deepcopy(data)))
        return results

    async def set(self, collection: str, owner_id: str, doc_id: str, data: dict[str, Any]) -> None:
        self._bucket(collection, owner_id)[doc_id] = copy.deepcopy(data)
        log.debug("Set %s/%s/%s in memory store", collection, owner_id, doc_id)

    async def update(self, collection: str, owner_id: str, doc_id: str, fields: dict[str, Any]) -> None:
        bucket = self._bucket(collection, owner_id)
        if doc_id not in bucket:
            raise KeyError(f"Not found in memory store: {collection}/{owner_id}/{doc_id}")
        bucket[doc_id].update(copy.deepcopy(fields))

    async def delete(self, collection: str, owner_id: str, doc_id: str) -> None:
        self._bucket(collection, owner_id).pop(doc_id, None)

    async def batch_write(self, collection: str, owner_id: str, docs: list[StoredDocument]) -> None:
        bucket = self._bucket(collection, owner_id)
        staged = {d.doc_id: copy.deepcopy(d.data) for d in docs}
        bucket.update(staged)

    async def batch_delete(self, collection: str, owner_id: str, doc_ids: list[str]) -> None:
        bucket = self._bucket(collection, owner_id)
        for doc_id in doc_ids:
            bucket.pop(doc_id, None)

    def count(self, collection: str, owner_id: str) -> int:
        """Number of documents in a collection (test helper)."""
        return len(self._bucket(collection, owner_id))


class MemoryObjectStorage:
    """Dict-backed source-document store."""

    def __init__(self, objects: Optional[dict[str, bytes]] = None) -> None:
        self._objects: dict[str, bytes] = dict(objects or {})

    def put(self, path: str, content: bytes) -> None:
        self._objects[path] = content

    async def exists(self, path: str) -> bool:
        return path in self._objects

    async def download(self, path: str) -> bytes:
        if path not in self._objects:
            raise KeyError(f"Not found in memory storage: {path}")
        return self._objects[path]
