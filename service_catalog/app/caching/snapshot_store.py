"""
Durable snapshot stores for the product cache.

A store holds at most one snapshot under a fixed identity (a file path or a
Redis key). Stores raise ``PersistenceError`` on I/O failure and return
``None`` for content they cannot decode; the cache treats both as "no
snapshot".
"""

import asyncio
import json
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

import redis.asyncio as redis
from redis.exceptions import RedisError
from pydantic import ValidationError as PydanticValidationError

from shared.config import BaseConfig
from shared.errors import PersistenceError
from shared.logging import get_logger
from .models import CatalogSnapshot, SnapshotDocument


def _decode(raw: Union[str, bytes], source: str, logger) -> Optional[CatalogSnapshot]:
    """Decode a persisted document, returning None on any format problem."""
    try:
        return SnapshotDocument.model_validate_json(raw).to_snapshot()
    except (PydanticValidationError, ValueError) as exc:
        logger.warning("Discarding unreadable catalog snapshot", source=source, error=str(exc))
        return None


class FileSnapshotStore:
    """Snapshot persisted as a single JSON file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.logger = get_logger("catalog.snapshot_store")

    async def load(self) -> Optional[CatalogSnapshot]:
        raw = await asyncio.to_thread(self._read)
        if raw is None:
            return None
        return _decode(raw, str(self.path), self.logger)

    async def save(self, snapshot: CatalogSnapshot) -> None:
        payload = json.dumps(snapshot.to_document())
        await asyncio.to_thread(self._write, payload)
        self.logger.info("Catalog snapshot saved", path=str(self.path), items=len(snapshot))

    async def delete(self) -> None:
        await asyncio.to_thread(self._unlink)

    def _read(self) -> Optional[bytes]:
        try:
            return self.path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise PersistenceError("Failed to read catalog snapshot", {"path": str(self.path), "error": str(exc)}) from exc

    def _write(self, payload: str) -> None:
        # Write beside the target and swap in, so readers never see half a file.
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=str(self.path.parent), prefix=".snapshot-", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise PersistenceError("Failed to write catalog snapshot", {"path": str(self.path), "error": str(exc)}) from exc

    def _unlink(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            return
        except OSError as exc:
            raise PersistenceError("Failed to delete catalog snapshot", {"path": str(self.path), "error": str(exc)}) from exc


class RedisSnapshotStore:
    """Snapshot persisted under a single Redis key."""

    def __init__(self, redis_url: str, key: str = "storefront:catalog:snapshot"):
        self.redis_url = redis_url
        self.key = key
        self.logger = get_logger("catalog.snapshot_store")
        self._redis: Optional[redis.Redis] = None

    async def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url)
        return self._redis

    async def load(self) -> Optional[CatalogSnapshot]:
        try:
            client = await self._get_redis()
            raw = await client.get(self.key)
        except RedisError as exc:
            raise PersistenceError("Failed to read catalog snapshot", {"key": self.key, "error": str(exc)}) from exc
        if raw is None:
            return None
        return _decode(raw, self.key, self.logger)

    async def save(self, snapshot: CatalogSnapshot) -> None:
        payload = json.dumps(snapshot.to_document())
        try:
            client = await self._get_redis()
            await client.set(self.key, payload)
        except RedisError as exc:
            raise PersistenceError("Failed to write catalog snapshot", {"key": self.key, "error": str(exc)}) from exc
        self.logger.info("Catalog snapshot saved", key=self.key, items=len(snapshot))

    async def delete(self) -> None:
        try:
            client = await self._get_redis()
            await client.delete(self.key)
        except RedisError as exc:
            raise PersistenceError("Failed to delete catalog snapshot", {"key": self.key, "error": str(exc)}) from exc

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


def build_snapshot_store(config: BaseConfig):
    """Create the snapshot store selected by ``snapshot_backend``."""
    backend = config.snapshot_backend.lower()
    if backend == "file":
        return FileSnapshotStore(config.snapshot_path)
    if backend == "redis":
        return RedisSnapshotStore(config.redis_url, config.snapshot_redis_key)
    if backend == "none":
        return None
    raise ValueError(f"Unknown snapshot backend: {config.snapshot_backend}")
