"""
Backend data client.
"""

from .data_client import DataClient, BackendError, AuthSession, DeferredMutation

__all__ = [
    'DataClient',
    'BackendError',
    'AuthSession',
    'DeferredMutation'
]
