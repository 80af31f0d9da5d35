"""
Outgoing request transports.
"""

from .http_transport import Transport, RequestsTransport
from .proxied_transport import OfflineProxyTransport

__all__ = [
    'Transport',
    'RequestsTransport',
    'OfflineProxyTransport'
]
