from __future__ import annotations
"""Owned media storage — put-object service returning public URLs.

The default backend writes into MEDIA_VOLUME, which main.py serves under
``/media``. Other backends only need ``exists`` / ``put_object`` /
``public_url``.
"""

import asyncio
import logging
import os
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class ObjectStorage(ABC):
    """Minimal object-store contract used by the asset uploader."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        ...

    @abstractmethod
    async def put_object(self, key: str, body: bytes, content_type: str | None = None) -> str:
        """Store ``body`` under ``key`` and return its public URL."""
        ...

    @abstractmethod
    def public_url(self, key: str) -> str:
        ...


class LocalMediaStorage(ObjectStorage):
    """Filesystem storage rooted at the media volume."""

    def __init__(self, root: str, base_url: str) -> None:
        self.root = root
        self.base_url = base_url.rstrip("/")

    def _path(self, key: str) -> str:
        path = os.path.normpath(os.path.join(self.root, key))
        if not path.startswith(os.path.normpath(self.root) + os.sep):
            raise ValueError(f"Storage key escapes media root: {key}")
        return path

    async def exists(self, key: str) -> bool:
        return await asyncio.to_thread(os.path.exists, self._path(key))

    async def put_object(self, key: str, body: bytes, content_type: str | None = None) -> str:
        path = self._path(key)
        await asyncio.to_thread(_write_file, path, body)
        logger.info("Stored %s (%d bytes)", key, len(body))
        return self.public_url(key)

    def public_url(self, key: str) -> str:
        return f"{self.base_url}/{key}"


def _write_file(path: str, body: bytes) -> None:
    os.makedirs(os.path.dirname(path), exist_ok=True)
    tmp_path = f"{path}.part"
    with open(tmp_path, "wb") as f:
        f.write(body)
    os.replace(tmp_path, path)
