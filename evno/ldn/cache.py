# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""Dedup cache: persisted ``dedup key -> fingerprint entry`` map.

The inbox watcher consults the cache once per fetched resource.  A
notification is emitted only when its dedup key is absent or the stored
fingerprint differs from the fingerprint of the bytes just fetched.

Two implementations are provided:

* :class:`MemoryDedupCache`: process-local; dedup state resets on
  restart.
* :class:`FileDedupCache`: a JSON object on disk, rewritten atomically
  on every ``set`` so that dedup state survives restarts.

Any object with async ``get``/``set`` methods satisfies
:class:`DedupCache` and can be handed to the watcher instead.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Protocol, Union, runtime_checkable

logger = logging.getLogger("evno.cache")

__all__ = [
    "DedupCache",
    "DedupMetrics",
    "MemoryDedupCache",
    "FileDedupCache",
    "fingerprint",
    "make_dedup_cache",
]


def fingerprint(data: bytes) -> str:
    """SHA256 hex digest of raw resource bytes."""
    return hashlib.sha256(data).hexdigest()


@runtime_checkable
class DedupCache(Protocol):
    """Contract consumed by the inbox watcher."""

    async def get(self, key: str) -> Optional[str]:
        ...

    async def set(self, key: str, fingerprint: str) -> None:
        ...


# ======================================================================
# DedupMetrics
# ======================================================================


@dataclass
class DedupMetrics:
    """Counters for cache lookups and writes.

    Attributes
    ----------
    hits : int
        Lookups that found a stored fingerprint.
    misses : int
        Lookups for an unknown key.
    writes : int
        Fingerprints stored.
    """

    hits: int = 0
    misses: int = 0
    writes: int = 0

    def to_dict(self) -> dict:
        return {"hits": self.hits, "misses": self.misses, "writes": self.writes}


# ======================================================================
# In-memory cache
# ======================================================================


class MemoryDedupCache:
    """Process-local dedup cache."""

    def __init__(self) -> None:
        self._entries: Dict[str, str] = {}
        self._metrics = DedupMetrics()

    async def get(self, key: str) -> Optional[str]:
        value = self._entries.get(key)
        if value is None:
            self._metrics.misses += 1
        else:
            self._metrics.hits += 1
        return value

    async def set(self, key: str, fingerprint: str) -> None:
        self._entries[key] = fingerprint
        self._metrics.writes += 1

    def stats(self) -> dict:
        d = self._metrics.to_dict()
        d["size"] = len(self._entries)
        return d


# ======================================================================
# File-backed cache
# ======================================================================


class FileDedupCache(MemoryDedupCache):
    """Dedup cache persisted as a JSON object.

    The parent directory and an empty ``{}`` document are created on
    first use.  Each ``set`` rewrites the whole file in a worker thread,
    via a temporary file and ``os.replace`` so that a crash never leaves a
    truncated document.  The lock keeps writes in ``set`` order.

    Parameters
    ----------
    path : str or Path
        Location of the JSON document.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        super().__init__()
        self._path = Path(path).expanduser()
        self._lock = asyncio.Lock()
        self._entries = self._load()
        logger.info("Using dedup cache at %s (%d entries)", self._path, len(self._entries))

    @property
    def path(self) -> Path:
        return self._path

    async def set(self, key: str, fingerprint: str) -> None:
        async with self._lock:
            await super().set(key, fingerprint)
            await asyncio.to_thread(self._write, dict(self._entries))

    def _load(self) -> Dict[str, str]:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        if not self._path.exists():
            self._path.write_text("{}", encoding="utf-8")
            return {}

        raw = self._path.read_text(encoding="utf-8").strip() or "{}"
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError(f"Dedup cache {self._path} is not a JSON object")
        return {str(k): str(v) for k, v in data.items()}

    def _write(self, entries: Dict[str, str]) -> None:
        fd, tmp = tempfile.mkstemp(dir=self._path.parent, prefix=self._path.name, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(entries, fh, sort_keys=True)
            os.replace(tmp, self._path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise


def make_dedup_cache(path: Optional[Union[str, Path]] = None) -> MemoryDedupCache:
    """File cache when *path* is given, otherwise an in-memory cache."""
    if path:
        return FileDedupCache(path)
    logger.info("Using in-memory dedup cache")
    return MemoryDedupCache()
