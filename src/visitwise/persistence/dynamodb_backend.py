"""DynamoDB-backed document store.

Single-table layout::

    PK:    "{collection}#{owner_id}"
    SK:    "{doc_id}"
    data:  JSON-encoded document body

Keeping the body as one JSON string means legacy records written with other
date encodings round-trip untouched; the dedup resolver normalizes them on
read.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Mapping, Optional

import boto3

from visitwise.persistence.protocols import StoredDocument

log = logging.getLogger(__name__)

# DynamoDB caps TransactWriteItems at 100 actions
_MAX_TRANSACTION_ITEMS = 100


class DynamoDBDocumentStore:
    """Per-owner collections on a single DynamoDB table."""

    def __init__(
        self,
        table_name: str,
        aws_region: str = "us-east-1",
        max_batch_size: int = _MAX_TRANSACTION_ITEMS,
        boto3_client: Any | None = None,
    ) -> None:
        self._table_name = table_name
        self._max_batch = min(max_batch_size, _MAX_TRANSACTION_ITEMS)
        self._client = boto3_client if boto3_client is not None else boto3.client(
            "dynamodb", region_name=aws_region
        )

    @staticmethod
    def _pk(collection: str, owner_id: str) -> str:
        return f"{collection}#{owner_id}"

    def _item(self, collection: str, owner_id: str, doc_id: str, data: dict[str, Any]) -> dict[str, Any]:
        return {
            "PK": {"S": self._pk(collection, owner_id)},
            "SK": {"S": doc_id},
            "data": {"S": json.dumps(data, default=str)},
        }

    @staticmethod
    def _parse_item(item: dict[str, Any]) -> StoredDocument:
        return StoredDocument(doc_id=item["SK"]["S"], data=json.loads(item["data"]["S"]))

    # ── Reads ────────────────────────────────────────────────────────

    async def get(self, collection: str, owner_id: str, doc_id: str) -> Optional[dict[str, Any]]:
        response = await asyncio.to_thread(
            self._client.get_item,
            TableName=self._table_name,
            Key={"PK": {"S": self._pk(collection, owner_id)}, "SK": {"S": doc_id}},
            ConsistentRead=True,
        )
        item = response.get("Item")
        return self._parse_item(item).data if item else None

    async def query(
        self,
        collection: str,
        owner_id: str,
        filters: Optional[Mapping[str, Any]] = None,
    ) -> list[StoredDocument]:
        kwargs: dict[str, Any] = {
            "TableName": self._table_name,
            "KeyConditionExpression": "PK = :pk",
            "ExpressionAttributeValues": {":pk": {"S": self._pk(collection, owner_id)}},
            "ConsistentRead": True,
        }
        docs: list[StoredDocument] = []
        while True:
            response = await asyncio.to_thread(self._client.query, **kwargs)
            docs.extend(self._parse_item(item) for item in response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                break
            kwargs["ExclusiveStartKey"] = last_key

        if filters:
            # Bodies are opaque JSON, so equality filters apply client-side
            docs = [d for d in docs if all(d.data.get(k) == v for k, v in filters.items())]
        return docs

    # ── Writes ───────────────────────────────────────────────────────

    async def set(self, collection: str, owner_id: str, doc_id: str, data: dict[str, Any]) -> None:
        await asyncio.to_thread(
            self._client.put_item,
            TableName=self._table_name,
            Item=self._item(collection, owner_id, doc_id, data),
        )

    async def update(self, collection: str, owner_id: str, doc_id: str, fields: dict[str, Any]) -> None:
        current = await self.get(collection, owner_id, doc_id)
        if current is None:
            raise KeyError(f"Not found in DynamoDB: {collection}/{owner_id}/{doc_id}")
        current.update(fields)
        await asyncio.to_thread(
            self._client.put_item,
            TableName=self._table_name,
            Item=self._item(collection, owner_id, doc_id, current),
            ConditionExpression="attribute_exists(PK)",
        )

    async def delete(self, collection: str, owner_id: str, doc_id: str) -> None:
        await asyncio.to_thread(
            self._client.delete_item,
            TableName=self._table_name,
            Key={"PK": {"S": self._pk(collection, owner_id)}, "SK": {"S": doc_id}},
        )

    async def batch_write(self, collection: str, owner_id: str, docs: list[StoredDocument]) -> None:
        actions = [
            {"Put": {"TableName": self._table_name, "Item": self._item(collection, owner_id, d.doc_id, d.data)}}
            for d in docs
        ]
        await self._transact(actions)

    async def batch_delete(self, collection: str, owner_id: str, doc_ids: list[str]) -> None:
        pk = self._pk(collection, owner_id)
        actions = [
            {"Delete": {"TableName": self._table_name, "Key": {"PK": {"S": pk}, "SK": {"S": doc_id}}}}
            for doc_id in doc_ids
        ]
        await self._transact(actions)

    async def _transact(self, actions: list[dict[str, Any]]) -> None:
        if len(actions) > self._max_batch:
            # Atomicity holds per transaction only
            log.warning(
                "Batch of %d exceeds transaction limit %d; writing in chunks",
                len(actions), self._max_batch,
            )
        for start in range(0, len(actions), self._max_batch):
            chunk = actions[start:start + self._max_batch]
            await asyncio.to_thread(self._client.transact_write_items, TransactItems=chunk)
