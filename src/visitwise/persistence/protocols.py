"""Storage protocols: the document database and the source-document store."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Protocol, runtime_checkable


@dataclass
class StoredDocument:
    """A document read back from a collection."""

    doc_id: str
    data: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class IDocumentStore(Protocol):
    """Per-owner document collections (summaries, derived records, locks, job ledger).

    Every operation is scoped to ``(collection, owner_id)``; two owners never
    see each other's documents.
    """

    async def get(self, collection: str, owner_id: str, doc_id: str) -> Optional[dict[str, Any]]:
        """Return the document, or None if it does not exist."""
        ...

    async def query(
        self,
        collection: str,
        owner_id: str,
        filters: Optional[Mapping[str, Any]] = None,
    ) -> list[StoredDocument]:
        """Return all documents in the collection, optionally filtered by field equality."""
        ...

    async def set(self, collection: str, owner_id: str, doc_id: str, data: dict[str, Any]) -> None:
        """Create or overwrite a document."""
        ...

    async def update(self, collection: str, owner_id: str, doc_id: str, fields: dict[str, Any]) -> None:
        """Merge fields into an existing document. Raises KeyError if it does not exist."""
        ...

    async def delete(self, collection: str, owner_id: str, doc_id: str) -> None:
        """Delete a document (no-op if not found)."""
        ...

    async def batch_write(
        self,
        collection: str,
        owner_id: str,
        docs: list[StoredDocument],
    ) -> None:
        """Create all documents atomically: either every write lands or none does."""
        ...

    async def batch_delete(self, collection: str, owner_id: str, doc_ids: list[str]) -> None:
        """Delete all documents atomically."""
        ...


@runtime_checkable
class IObjectStorage(Protocol):
    """Read-only access to uploaded source documents."""

    async def exists(self, path: str) -> bool:
        ...

    async def download(self, path: str) -> bytes:
        """Return the object's bytes. Raises KeyError if not found."""
        ...
