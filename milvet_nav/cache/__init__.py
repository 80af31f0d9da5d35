"""
Offline response cache and request routing.
"""

from .cache_store import CacheStore, MemoryCacheStore, FileCacheStore
from .strategies import (
    CacheStrategy,
    PassthroughStrategy,
    ApiStrategy,
    NavigationStrategy,
    AssetStrategy,
    DefaultStrategy
)
from .request_router import RequestRouter

__all__ = [
    'CacheStore',
    'MemoryCacheStore',
    'FileCacheStore',
    'CacheStrategy',
    'PassthroughStrategy',
    'ApiStrategy',
    'NavigationStrategy',
    'AssetStrategy',
    'DefaultStrategy',
    'RequestRouter'
]
