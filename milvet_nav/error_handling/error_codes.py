"""
Error taxonomy for the application.

Every failure is normalized into exactly one ErrorKind. Each kind has one
fixed user-facing message and a fixed recoverability.
"""

from enum import Enum
from typing import Dict, FrozenSet


class ErrorKind(Enum):
    """Closed set of error kinds."""
    # Authentication & authorization
    AUTH_REQUIRED = "AUTH_REQUIRED"
    AUTH_INVALID = "AUTH_INVALID"
    AUTH_EXPIRED = "AUTH_EXPIRED"
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"

    # Network & connectivity
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    OFFLINE_ERROR = "OFFLINE_ERROR"
    RATE_LIMITED = "RATE_LIMITED"

    # Data & validation
    VALIDATION_ERROR = "VALIDATION_ERROR"
    DATA_NOT_FOUND = "DATA_NOT_FOUND"
    DATA_CONFLICT = "DATA_CONFLICT"
    INVALID_FORMAT = "INVALID_FORMAT"

    # Server & database
    SERVER_ERROR = "SERVER_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"

    # Client & application
    CLIENT_ERROR = "CLIENT_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    FEATURE_UNAVAILABLE = "FEATURE_UNAVAILABLE"


ERROR_MESSAGES: Dict[ErrorKind, str] = {
    ErrorKind.AUTH_REQUIRED: "Please log in to continue.",
    ErrorKind.AUTH_INVALID: "Your login credentials are invalid. Please try again.",
    ErrorKind.AUTH_EXPIRED: "Your session has expired. Please log in again.",
    ErrorKind.INSUFFICIENT_PERMISSIONS: "You don't have permission to perform this action.",

    ErrorKind.NETWORK_ERROR: "Network connection failed. Please check your internet connection.",
    ErrorKind.TIMEOUT_ERROR: "The request took too long to complete. Please try again.",
    ErrorKind.OFFLINE_ERROR: "You're currently offline. Some features may not be available.",
    ErrorKind.RATE_LIMITED: "Too many requests. Please wait a moment before trying again.",

    ErrorKind.VALIDATION_ERROR: "Please check your input and try again.",
    ErrorKind.DATA_NOT_FOUND: "The requested information could not be found.",
    ErrorKind.DATA_CONFLICT: "This data conflicts with existing information.",
    ErrorKind.INVALID_FORMAT: "The data format is invalid.",

    ErrorKind.SERVER_ERROR: "A server error occurred. Please try again later.",
    ErrorKind.DATABASE_ERROR: "A database error occurred. Please try again later.",
    ErrorKind.SERVICE_UNAVAILABLE: "The service is temporarily unavailable.",

    ErrorKind.CLIENT_ERROR: "An application error occurred.",
    ErrorKind.UNKNOWN_ERROR: "An unexpected error occurred.",
    ErrorKind.FEATURE_UNAVAILABLE: "This feature is currently unavailable.",
}

# Retrying cannot change these outcomes without an external state change.
NON_RECOVERABLE_KINDS: FrozenSet[ErrorKind] = frozenset({
    ErrorKind.INSUFFICIENT_PERMISSIONS,
    ErrorKind.DATA_NOT_FOUND,
})

# Kinds the default retry predicate refuses even though some are recoverable.
NON_RETRYABLE_KINDS: FrozenSet[ErrorKind] = frozenset({
    ErrorKind.AUTH_INVALID,
    ErrorKind.INSUFFICIENT_PERMISSIONS,
    ErrorKind.DATA_NOT_FOUND,
})


def is_recoverable(kind: ErrorKind) -> bool:
    """Whether a retry or a user-initiated repeat makes sense for this kind."""
    return kind not in NON_RECOVERABLE_KINDS


def get_error_message(kind: ErrorKind) -> str:
    """Get the user-facing message for an error kind."""
    return ERROR_MESSAGES[kind]
