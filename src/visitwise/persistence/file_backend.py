"""File-based object storage: source documents on the local filesystem."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

log = logging.getLogger(__name__)


class FileObjectStorage:
    """Resolves storage paths relative to a root directory."""

    def __init__(self, root: Path) -> None:
        self._root = root.resolve()

    def _resolve(self, path: str) -> Path:
        candidate = (self._root / path.lstrip("/")).resolve()
        if self._root not in candidate.parents and candidate != self._root:
            raise KeyError(f"Path escapes storage root: {path}")
        return candidate

    async def exists(self, path: str) -> bool:
        try:
            return self._resolve(path).is_file()
        except KeyError:
            return False

    async def download(self, path: str) -> bytes:
        target = self._resolve(path)
        if not target.is_file():
            raise KeyError(f"Not found: {path} (path: {target})")
        data = await asyncio.to_thread(target.read_bytes)
        log.debug("Read %d bytes from %s", len(data), target)
        return data
