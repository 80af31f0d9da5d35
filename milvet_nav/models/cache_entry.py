"""
Cache entry model for responses held by the offline cache.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict

from .response_data import ProxyResponse


class CachePartition(Enum):
    """Logical cache partitions."""
    STATIC = "static"
    DYNAMIC = "dynamic"

    def versioned_name(self, version: str) -> str:
        """Get the persisted partition name, e.g. "static-v1"."""
        return f"{self.value}-{version}"


@dataclass
class CacheEntry:
    """
    A stored GET response.

    Attributes:
        key: "GET <normalized url>"
        response: The stored response
        partition: Name of the partition holding the entry
        stored_at: When the entry was written
    """
    key: str
    response: ProxyResponse
    partition: str
    stored_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        if not self.key.startswith('GET '):
            raise ValueError(f"Only GET responses can be cached: {self.key}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'key': self.key,
            'payload': self.response.to_dict(),
            'partition': self.partition,
            'stored_at': self.stored_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CacheEntry':
        return cls(
            key=data['key'],
            response=ProxyResponse.from_dict(data['payload']),
            partition=data['partition'],
            stored_at=datetime.fromisoformat(data['stored_at']),
        )
