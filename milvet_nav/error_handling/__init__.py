"""
Error classification, logging and retry for the milvet-nav client.

This package normalizes failures into a closed set of error kinds and wraps
backend operations with bounded retry and exponential backoff.
"""

from .error_codes import ErrorKind, ERROR_MESSAGES, get_error_message, is_recoverable
from .classifier import ClassifiedError, classify_error
from .error_manager import ErrorManager, get_error_manager, set_error_manager, log_error, handle_error
from .error_reporter import ErrorReporter
from .retry_manager import (
    RetryManager,
    RetryPolicy,
    RetryAttempt,
    RetryResult,
    ExponentialBackoff,
    default_should_retry,
    execute_with_retry,
    execute_with_retry_sync
)

__all__ = [
    'ErrorKind',
    'ERROR_MESSAGES',
    'get_error_message',
    'is_recoverable',
    'ClassifiedError',
    'classify_error',
    'ErrorManager',
    'get_error_manager',
    'set_error_manager',
    'log_error',
    'handle_error',
    'ErrorReporter',
    'RetryManager',
    'RetryPolicy',
    'RetryAttempt',
    'RetryResult',
    'ExponentialBackoff',
    'default_should_retry',
    'execute_with_retry',
    'execute_with_retry_sync'
]
