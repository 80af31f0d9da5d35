"""
Request model for requests issued by the application.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional
from urllib.parse import urljoin, urlsplit, urlunsplit
import uuid


VALID_METHODS = {'GET', 'POST', 'PUT', 'DELETE', 'HEAD', 'OPTIONS', 'PATCH'}
VALID_MODES = {'navigate', 'cors', 'no-cors', 'same-origin'}
ASSET_DESTINATIONS = {'script', 'style', 'image', 'font'}


def normalize_url(url: str) -> str:
    """Normalize a URL for cache keys: lowercase scheme/host, no fragment, default path."""
    parts = urlsplit(url)
    path = parts.path or '/'
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), path, parts.query, ''))


@dataclass
class ProxyRequest:
    """
    Represents an outgoing HTTP request seen by the offline proxy.

    Attributes:
        url: Absolute target URL
        method: HTTP method (GET, POST, etc.)
        mode: Request mode; "navigate" for top-level page loads
        destination: Resource type ("document", "script", "style", "image", "font", "")
        headers: Request headers
        body: Request body, if any
        request_id: Unique identifier for this request
    """
    url: str
    method: str = "GET"
    mode: str = "cors"
    destination: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self):
        """Validate the request after initialization."""
        self.method = self.method.upper()
        if isinstance(self.body, str):
            self.body = self.body.encode('utf-8')
        self._validate()

    def _validate(self):
        if not self.url:
            raise ValueError("URL cannot be empty")

        if not self.url.startswith(('http://', 'https://')):
            raise ValueError("URL must start with http:// or https://")

        if self.method not in VALID_METHODS:
            raise ValueError(f"Invalid HTTP method: {self.method}")

        if self.mode not in VALID_MODES:
            raise ValueError(f"Invalid request mode: {self.mode}. Must be one of {VALID_MODES}")

    @property
    def hostname(self) -> str:
        return (urlsplit(self.url).hostname or '').lower()

    @property
    def origin(self) -> str:
        parts = urlsplit(self.url)
        return f"{parts.scheme.lower()}://{parts.netloc.lower()}"

    @property
    def cache_key(self) -> str:
        """Cache identity: method plus normalized URL."""
        return f"{self.method} {normalize_url(self.url)}"

    def is_get(self) -> bool:
        return self.method == 'GET'

    def is_navigation(self) -> bool:
        """Check if this is a top-level page navigation."""
        return self.mode == 'navigate'

    def is_asset(self) -> bool:
        """Check if this requests a script, style, image or font."""
        return self.destination in ASSET_DESTINATIONS

    def for_url(self, url: str) -> 'ProxyRequest':
        """Create a GET request for another URL, resolved against this one."""
        return ProxyRequest(url=urljoin(self.url, url), method='GET', mode=self.mode,
                            destination=self.destination)

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get a header value, case-insensitively."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return default
