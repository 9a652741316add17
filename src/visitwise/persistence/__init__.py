"""Pluggable storage backends for visit records and source documents."""

from __future__ import annotations

from visitwise.persistence.factory import create_document_store, create_object_storage
from visitwise.persistence.file_backend import FileObjectStorage
from visitwise.persistence.memory_backend import MemoryDocumentStore, MemoryObjectStorage
from visitwise.persistence.protocols import IDocumentStore, IObjectStorage, StoredDocument

__all__ = [
    "IDocumentStore",
    "IObjectStorage",
    "StoredDocument",
    "FileObjectStorage",
    "MemoryDocumentStore",
    "MemoryObjectStorage",
    "create_document_store",
    "create_object_storage",
]
