"""
Application settings data model.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Any, List, Optional
import json
import os

from milvet_nav.models.cache_entry import CachePartition


DEFAULT_STATIC_ASSETS = [
    '/',
    '/static/js/main.js',
    '/static/css/main.css',
    '/manifest.json',
]


def default_data_dir() -> str:
    """Get the default data directory based on OS."""
    if os.name == 'nt':  # Windows
        base = os.environ.get('LOCALAPPDATA', os.path.expanduser('~'))
        return str(Path(base) / "milvet-nav")
    base = os.environ.get('XDG_DATA_HOME', os.path.expanduser('~/.local/share'))
    return str(Path(base) / "milvet-nav")


@dataclass
class AppSettings:
    """
    Settings for the offline proxy, error handling and backend access.

    Attributes:
        environment: "development" or "production"
        app_origin: Origin the application is served from
        backend_url: Base URL of the remote data backend
        backend_host: Hostname whose traffic uses the API caching strategy
        api_key: Public API key sent to the backend
        cache_version: Version suffix of the cache partitions
        static_assets: Paths seeded into the static partition at install
        notification_icon: Default icon for push notifications
        notification_badge: Badge for push notifications
        request_timeout: Network timeout in seconds
        max_retries: Default retry count for backend operations
        base_delay: Default first backoff delay in seconds
        max_delay: Default backoff cap in seconds
        backoff_factor: Default backoff multiplier
        data_dir: Directory for the cache, sync queue and logs
        log_level: Logging level name
    """
    environment: str = "development"
    app_origin: str = "http://localhost:5173"
    backend_url: str = ""
    backend_host: str = "supabase.co"
    api_key: str = ""
    cache_version: str = "v1"
    static_assets: List[str] = field(default_factory=lambda: list(DEFAULT_STATIC_ASSETS))
    notification_icon: str = "/icon-192x192.png"
    notification_badge: str = "/badge-72x72.png"
    request_timeout: float = 30.0
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    backoff_factor: float = 2.0
    data_dir: str = field(default_factory=default_data_dir)
    log_level: str = "INFO"

    def __post_init__(self):
        """Validate settings after initialization."""
        self._validate()

    def _validate(self):
        valid_environments = {"development", "production"}
        if self.environment not in valid_environments:
            raise ValueError(f"Invalid environment: {self.environment}")

        if not self.app_origin.startswith(('http://', 'https://')):
            raise ValueError("app_origin must start with http:// or https://")

        if self.backend_url and not self.backend_url.startswith(('http://', 'https://')):
            raise ValueError("backend_url must start with http:// or https://")

        if not self.backend_host:
            raise ValueError("backend_host cannot be empty")

        if not self.cache_version or '-' in self.cache_version:
            raise ValueError("cache_version must be non-empty and contain no '-'")

        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")

        if not (0 <= self.max_retries <= 10):
            raise ValueError("max_retries must be between 0 and 10")

        if self.base_delay < 0 or self.max_delay < self.base_delay:
            raise ValueError("Delays must satisfy 0 <= base_delay <= max_delay")

        if self.backoff_factor < 1:
            raise ValueError("backoff_factor must be at least 1")

        if self.log_level.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {self.log_level}")

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def static_cache_name(self) -> str:
        return CachePartition.STATIC.versioned_name(self.cache_version)

    @property
    def dynamic_cache_name(self) -> str:
        return CachePartition.DYNAMIC.versioned_name(self.cache_version)

    @property
    def cache_dir(self) -> Path:
        return Path(self.data_dir) / "cache"

    @property
    def sync_queue_file(self) -> Path:
        return Path(self.data_dir) / "sync_queue.json"

    @property
    def log_dir(self) -> Path:
        return Path(self.data_dir) / "logs"

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to dictionary for serialization."""
        return {
            'environment': self.environment,
            'app_origin': self.app_origin,
            'backend_url': self.backend_url,
            'backend_host': self.backend_host,
            'api_key': self.api_key,
            'cache_version': self.cache_version,
            'static_assets': list(self.static_assets),
            'notification_icon': self.notification_icon,
            'notification_badge': self.notification_badge,
            'request_timeout': self.request_timeout,
            'max_retries': self.max_retries,
            'base_delay': self.base_delay,
            'max_delay': self.max_delay,
            'backoff_factor': self.backoff_factor,
            'data_dir': self.data_dir,
            'log_level': self.log_level,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AppSettings':
        """Create settings from dictionary, ignoring unknown keys."""
        known_keys = set(cls.__dataclass_fields__)
        filtered_data = {k: v for k, v in data.items() if k in known_keys}
        return cls(**filtered_data)

    def to_json(self) -> str:
        """Convert settings to JSON string."""
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_json(cls, json_str: str) -> 'AppSettings':
        """Create settings from JSON string."""
        return cls.from_dict(json.loads(json_str))

    def manifest_urls(self) -> List[str]:
        """Absolute URLs of the static asset manifest."""
        origin = self.app_origin.rstrip('/')
        return [path if path.startswith(('http://', 'https://')) else f"{origin}{path}"
                for path in self.static_assets if path]

    def with_overrides(self, overrides: Optional[Dict[str, Any]] = None) -> 'AppSettings':
        """Return new settings with the given values replaced."""
        data = self.to_dict()
        data.update(overrides or {})
        return AppSettings.from_dict(data)
