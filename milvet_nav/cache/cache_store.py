"""
Persistent response cache organized in named partitions.

A partition is a named, versioned collection of cache entries. A key lives in
at most one partition: writing it into one partition removes it from the
others. Entries never expire on their own; whole partitions are deleted when
a new cache version is activated.
"""

import asyncio
import hashlib
import json
import logging
import shutil
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from milvet_nav.models import CacheEntry, ProxyRequest, ProxyResponse


class CacheStore(ABC):
    """Base class for cache stores."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    async def put(self, partition: str, request: ProxyRequest, response: ProxyResponse) -> CacheEntry:
        """
        Store a response, replacing any existing entry for the same key.

        Args:
            partition: Partition name
            request: GET request the response answers
            response: Response to store

        Returns:
            The stored entry

        Raises:
            ValueError: If the request is not a GET
        """
        if not request.is_get():
            raise ValueError(f"Only GET requests can be cached, got {request.method}")

        entry = CacheEntry(key=request.cache_key, response=response, partition=partition,
                           stored_at=datetime.now())

        for name in await self.partition_names():
            if name != partition:
                await self._remove(name, entry.key)

        await self._write(partition, entry)
        self.logger.debug(f"Cached {entry.key} in {partition}")
        return entry

    async def match(self, request: ProxyRequest, partition: Optional[str] = None) -> Optional[ProxyResponse]:
        """
        Find a cached response for the request.

        Args:
            request: Request to look up
            partition: Restrict the lookup to one partition

        Returns:
            Cached response or None
        """
        entry = await self.match_entry(request, partition)
        return entry.response if entry else None

    async def match_entry(self, request: ProxyRequest, partition: Optional[str] = None) -> Optional[CacheEntry]:
        """Find the cache entry for the request."""
        if not request.is_get():
            return None

        names = [partition] if partition else await self.partition_names()
        for name in names:
            entry = await self._read(name, request.cache_key)
            if entry is not None:
                return entry
        return None

    async def delete_entry(self, request: ProxyRequest, partition: Optional[str] = None) -> bool:
        """Delete the entry for the request. Returns True if one was removed."""
        names = [partition] if partition else await self.partition_names()
        removed = False
        for name in names:
            removed = await self._remove(name, request.cache_key) or removed
        return removed

    async def has_partition(self, name: str) -> bool:
        return name in await self.partition_names()

    @abstractmethod
    async def partition_names(self) -> List[str]:
        """Get names of all existing partitions."""

    @abstractmethod
    async def keys(self, partition: str) -> List[str]:
        """Get the keys stored in a partition."""

    @abstractmethod
    async def delete_partition(self, name: str) -> bool:
        """Delete a whole partition. Returns True if it existed."""

    @abstractmethod
    async def _read(self, partition: str, key: str) -> Optional[CacheEntry]:
        pass

    @abstractmethod
    async def _write(self, partition: str, entry: CacheEntry):
        pass

    @abstractmethod
    async def _remove(self, partition: str, key: str) -> bool:
        pass


class MemoryCacheStore(CacheStore):
    """Cache store held in memory."""

    def __init__(self):
        super().__init__()
        self._partitions: Dict[str, Dict[str, CacheEntry]] = {}

    async def partition_names(self) -> List[str]:
        return list(self._partitions)

    async def keys(self, partition: str) -> List[str]:
        return list(self._partitions.get(partition, {}))

    async def delete_partition(self, name: str) -> bool:
        return self._partitions.pop(name, None) is not None

    async def _read(self, partition: str, key: str) -> Optional[CacheEntry]:
        return self._partitions.get(partition, {}).get(key)

    async def _write(self, partition: str, entry: CacheEntry):
        self._partitions.setdefault(partition, {})[entry.key] = entry

    async def _remove(self, partition: str, key: str) -> bool:
        entries = self._partitions.get(partition)
        if entries is None:
            return False
        return entries.pop(key, None) is not None


class FileCacheStore(CacheStore):
    """
    Cache store persisted on disk.

    Layout: one directory per partition, one JSON file per entry named by the
    SHA-256 of the entry key.
    """

    def __init__(self, root_dir: Path):
        """
        Initialize file cache store.

        Args:
            root_dir: Directory holding the partition directories
        """
        super().__init__()
        self.root_dir = Path(root_dir)
        self.root_dir.mkdir(parents=True, exist_ok=True)

    async def partition_names(self) -> List[str]:
        return await asyncio.to_thread(self._list_partitions)

    async def keys(self, partition: str) -> List[str]:
        return await asyncio.to_thread(self._list_keys, partition)

    async def delete_partition(self, name: str) -> bool:
        return await asyncio.to_thread(self._delete_partition, name)

    async def _read(self, partition: str, key: str) -> Optional[CacheEntry]:
        return await asyncio.to_thread(self._read_entry, partition, key)

    async def _write(self, partition: str, entry: CacheEntry):
        await asyncio.to_thread(self._write_entry, partition, entry)

    async def _remove(self, partition: str, key: str) -> bool:
        return await asyncio.to_thread(self._remove_entry, partition, key)

    def _partition_dir(self, partition: str) -> Path:
        if not partition or '/' in partition or '\\' in partition or partition.startswith('.'):
            raise ValueError(f"Invalid partition name: {partition!r}")
        return self.root_dir / partition

    def _entry_file(self, partition: str, key: str) -> Path:
        digest = hashlib.sha256(key.encode('utf-8')).hexdigest()
        return self._partition_dir(partition) / f"{digest}.json"

    def _list_partitions(self) -> List[str]:
        if not self.root_dir.exists():
            return []
        return sorted(p.name for p in self.root_dir.iterdir() if p.is_dir())

    def _list_keys(self, partition: str) -> List[str]:
        partition_dir = self._partition_dir(partition)
        if not partition_dir.exists():
            return []
        keys = []
        for entry_file in sorted(partition_dir.glob('*.json')):
            entry = self._load(entry_file)
            if entry is not None:
                keys.append(entry.key)
        return keys

    def _delete_partition(self, name: str) -> bool:
        partition_dir = self._partition_dir(name)
        if not partition_dir.exists():
            return False
        shutil.rmtree(partition_dir)
        return True

    def _read_entry(self, partition: str, key: str) -> Optional[CacheEntry]:
        entry_file = self._entry_file(partition, key)
        if not entry_file.exists():
            return None
        entry = self._load(entry_file)
        if entry is not None and entry.key != key:
            return None
        return entry

    def _write_entry(self, partition: str, entry: CacheEntry):
        entry_file = self._entry_file(partition, entry.key)
        entry_file.parent.mkdir(parents=True, exist_ok=True)

        # Write then rename so readers never see a partial entry.
        temp_file = entry_file.with_suffix('.tmp')
        with open(temp_file, 'w', encoding='utf-8') as f:
            json.dump(entry.to_dict(), f)
        temp_file.replace(entry_file)

    def _remove_entry(self, partition: str, key: str) -> bool:
        entry_file = self._entry_file(partition, key)
        try:
            entry_file.unlink()
            return True
        except FileNotFoundError:
            return False

    def _load(self, entry_file: Path) -> Optional[CacheEntry]:
        try:
            with open(entry_file, 'r', encoding='utf-8') as f:
                return CacheEntry.from_dict(json.load(f))
        except (OSError, json.JSONDecodeError, KeyError, ValueError) as e:
            self.logger.warning(f"Ignoring unreadable cache entry {entry_file}: {e}")
            return None
