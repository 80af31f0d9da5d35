"""
Data models for the milvet-nav client.

This module contains the data structures passed between the application,
the offline proxy and the cache store.
"""

from .request_data import ProxyRequest, normalize_url
from .response_data import ProxyResponse, CACHE_ORIGIN_HEADER
from .cache_entry import CacheEntry, CachePartition

__all__ = [
    'ProxyRequest',
    'normalize_url',
    'ProxyResponse',
    'CACHE_ORIGIN_HEADER',
    'CacheEntry',
    'CachePartition'
]
