"""S3 object storage for uploaded source documents."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from visitwise.exceptions import SourceUnavailableError

log = logging.getLogger(__name__)

_NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})
# Misconfiguration; retrying cannot help
_PERMANENT_CODES = frozenset({"403", "AccessDenied", "NoSuchBucket", "InvalidBucketName"})


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


class S3ObjectStorage:
    """Reads source documents from an S3 bucket.

    boto3 is synchronous, so each call runs in a worker thread to keep the
    pipeline's event loop free while polling other runs.  Missing keys are
    reported as absent and access errors propagate unchanged.  Throttling, 5xx
    and connection failures raise :class:`SourceUnavailableError`, which
    callers may retry.
    """

    def __init__(
        self,
        bucket: str,
        prefix: str = "",
        region: str = "us-east-1",
        client: Any | None = None,
    ) -> None:
        self._bucket = bucket
        self._prefix = prefix
        self._s3 = client if client is not None else boto3.client("s3", region_name=region)

    def _full_key(self, path: str) -> str:
        return f"{self._prefix}{path.lstrip('/')}"

    async def exists(self, path: str) -> bool:
        key = self._full_key(path)
        try:
            await asyncio.to_thread(self._s3.head_object, Bucket=self._bucket, Key=key)
            return True
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                return False
            if _error_code(e) in _PERMANENT_CODES:
                raise
            raise SourceUnavailableError(f"S3 head_object failed for {key}: {_error_code(e)}") from e
        except BotoCoreError as e:
            raise SourceUnavailableError(f"S3 unreachable for {key}: {e}") from e

    async def download(self, path: str) -> bytes:
        key = self._full_key(path)
        try:
            response = await asyncio.to_thread(self._s3.get_object, Bucket=self._bucket, Key=key)
            body = await asyncio.to_thread(response["Body"].read)
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                raise KeyError(f"Not found in S3: {path}") from e
            if _error_code(e) in _PERMANENT_CODES:
                raise
            raise SourceUnavailableError(f"S3 get_object failed for {key}: {_error_code(e)}") from e
        except BotoCoreError as e:
            raise SourceUnavailableError(f"S3 unreachable for {key}: {e}") from e
        log.debug("Downloaded s3://%s/%s (%d bytes)", self._bucket, key, len(body))
        return body
