"""
Response model for responses returned to the application.
"""

import base64
import json
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional


STATUS_TEXTS = {
    200: "OK",
    201: "Created",
    204: "No Content",
    301: "Moved Permanently",
    302: "Found",
    304: "Not Modified",
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    408: "Request Timeout",
    409: "Conflict",
    422: "Unprocessable Entity",
    429: "Too Many Requests",
    500: "Internal Server Error",
    502: "Bad Gateway",
    503: "Service Unavailable",
    504: "Gateway Timeout",
}

CACHE_ORIGIN_HEADER = "X-Served-From-Cache"


@dataclass(frozen=True)
class ProxyResponse:
    """
    Represents an HTTP response, live, cached or synthesized.

    Responses are immutable; modifications return a new response.

    Attributes:
        status: HTTP status code
        headers: Response headers
        body: Raw response body
        status_text: Reason phrase
        url: URL the response was produced for
    """
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    status_text: str = ""
    url: str = ""

    def __post_init__(self):
        if not (100 <= self.status <= 599):
            raise ValueError(f"Invalid HTTP status code: {self.status}")
        if not self.status_text:
            object.__setattr__(self, 'status_text', STATUS_TEXTS.get(self.status, ""))

    @property
    def ok(self) -> bool:
        """Check if the response indicates success (2xx status)."""
        return 200 <= self.status < 300

    @property
    def text(self) -> str:
        return self.body.decode('utf-8', errors='replace')

    def json(self) -> Any:
        return json.loads(self.body.decode('utf-8'))

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get a header value, case-insensitively."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return default

    def with_header(self, name: str, value: str) -> 'ProxyResponse':
        """Return a copy of this response with one header set."""
        headers = {k: v for k, v in self.headers.items() if k.lower() != name.lower()}
        headers[name] = value
        return replace(self, headers=headers)

    def is_from_cache(self) -> bool:
        """Check if the offline proxy served this response from its cache."""
        return self.get_header(CACHE_ORIGIN_HEADER) == "true"

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for storage."""
        return {
            'status': self.status,
            'status_text': self.status_text,
            'headers': dict(self.headers),
            'body': base64.b64encode(self.body).decode('ascii'),
            'url': self.url,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ProxyResponse':
        """Deserialize from storage."""
        return cls(
            status=int(data['status']),
            headers=dict(data.get('headers') or {}),
            body=base64.b64decode(data.get('body') or ''),
            status_text=data.get('status_text', ''),
            url=data.get('url', ''),
        )

    @classmethod
    def json_response(cls, payload: Any, status: int = 200, url: str = "") -> 'ProxyResponse':
        """Build a JSON response."""
        return cls(
            status=status,
            headers={'Content-Type': 'application/json'},
            body=json.dumps(payload).encode('utf-8'),
            url=url,
        )

    @classmethod
    def network_unavailable(cls, url: str = "") -> 'ProxyResponse':
        """Structured 503 returned for API reads that cannot be served."""
        return cls.json_response(
            {
                'error': 'Network unavailable',
                'message': 'This action requires an internet connection',
            },
            status=503,
            url=url,
        )

    @classmethod
    def offline_page(cls, url: str = "") -> 'ProxyResponse':
        """Plain-text 503 returned when no page can be served."""
        return cls(
            status=503,
            headers={'Content-Type': 'text/plain; charset=utf-8'},
            body=b"Offline - Please check your connection",
            status_text="Service Unavailable",
            url=url,
        )
