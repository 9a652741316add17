"""Storage backend factories: resolve backends from config."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from visitwise.persistence.file_backend import FileObjectStorage
from visitwise.persistence.memory_backend import MemoryDocumentStore, MemoryObjectStorage
from visitwise.persistence.protocols import IDocumentStore, IObjectStorage

if TYPE_CHECKING:
    from visitwise.core.config import AppSettings

log = logging.getLogger(__name__)


def create_document_store(settings: AppSettings) -> IDocumentStore:
    """Create the document store named by ``settings.database.backend``."""
    config = settings.database
    if config.backend == "dynamodb":
        from visitwise.persistence.dynamodb_backend import DynamoDBDocumentStore

        log.info("Using DynamoDB document store: %s", config.table_name)
        return DynamoDBDocumentStore(
            table_name=config.table_name,
            aws_region=config.aws_region,
            max_batch_size=settings.fanout.max_batch_size,
        )
    log.info("Using in-memory document store")
    return MemoryDocumentStore()


def create_object_storage(settings: AppSettings) -> IObjectStorage:
    """Create the source-document store named by ``settings.storage.backend``."""
    config = settings.storage
    if config.backend == "s3":
        from visitwise.persistence.s3_backend import S3ObjectStorage

        log.info("Using S3 object storage: s3://%s/%s", config.s3_bucket, config.s3_prefix)
        return S3ObjectStorage(bucket=config.s3_bucket, prefix=config.s3_prefix, region=config.aws_region)
    if config.backend == "memory":
        return MemoryObjectStorage()
    log.info("Using file object storage at %s", config.root_path)
    return FileObjectStorage(config.root_path)
