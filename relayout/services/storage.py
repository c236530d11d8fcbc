"""
Artifact storage for before/after snapshots of each request.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from typing import Protocol

logger = logging.getLogger(__name__)


class StorageProvider(Protocol):
    async def save(self, bucket: str, key: str, data: bytes) -> None: ...


class LocalStorage:
    """One directory per bucket under a root directory."""

    def __init__(self, root: str = "output") -> None:
        self.root = root

    def _write(self, bucket: str, key: str, data: bytes) -> str:
        directory = os.path.join(self.root, bucket)
        os.makedirs(directory, exist_ok=True)
        path = os.path.join(directory, os.path.basename(key))
        with open(path, "wb") as f:
            f.write(data)
        return path

    async def save(self, bucket: str, key: str, data: bytes) -> None:
        path = await asyncio.to_thread(self._write, bucket, key, data)
        logger.debug(f"Saved {len(data)} bytes to {path}")


class NullStorage:
    async def save(self, bucket: str, key: str, data: bytes) -> None:
        return None


def build_storage(backend: str, root: str) -> StorageProvider:
    backend = (backend or "local").lower()
    if backend == "local":
        return LocalStorage(root)
    if backend == "none":
        return NullStorage()
    raise ValueError(f"Unknown storage backend: {backend}")


def artifact_key(model: str, language: str, suffix: str, ts: int = 0) -> str:
    """image-{ts}-{model}-{lang}-{suffix}, e.g. image-1700000000-gemini-en-US-before.png"""
    ts = ts or int(time.time())
    return f"image-{ts}-{model}-{language}-{suffix}"


async def save_best_effort(storage: StorageProvider, bucket: str, key: str, data: bytes) -> bool:
    """Artifacts are diagnostic only; a failed save is logged, never raised."""
    try:
        await storage.save(bucket, key, data)
        return True
    except Exception as e:
        logger.error(f"Failed to save {bucket}/{key}: {e}")
        return False
