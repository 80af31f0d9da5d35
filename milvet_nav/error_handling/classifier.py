"""
Error classification.

Converts arbitrary failures (raised exceptions, HTTP-status-bearing responses,
structured backend error payloads) into a ClassifiedError.
"""

from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Tuple

from .error_codes import ErrorKind, get_error_message, is_recoverable


NETWORK_ERROR_NAMES = frozenset({
    'NetworkError',
    'ConnectionError',
    'ConnectionRefusedError',
    'ConnectionResetError',
    'ConnectionAbortedError',
})
NETWORK_ERROR_CODES = frozenset({
    'NETWORK_ERROR', 'ECONNREFUSED', 'ECONNRESET', 'ENOTFOUND', 'ENETUNREACH'
})

TIMEOUT_ERROR_NAMES = frozenset({'TimeoutError', 'Timeout', 'ReadTimeout', 'ConnectTimeout'})
TIMEOUT_ERROR_CODES = frozenset({'TIMEOUT', 'ETIMEDOUT'})

# Ordered: the first matching group wins.
MESSAGE_PATTERNS: Tuple[Tuple[ErrorKind, Tuple[str, ...]], ...] = (
    (ErrorKind.AUTH_INVALID, ('invalid login credentials', 'invalid credentials')),
    (ErrorKind.AUTH_EXPIRED, ('expired', 'session_timeout', 'session timeout')),
    (ErrorKind.INSUFFICIENT_PERMISSIONS, (
        'insufficient_privilege', 'insufficient privilege', 'permission', 'row-level security'
    )),
)

STATUS_KINDS: Dict[int, ErrorKind] = {
    401: ErrorKind.AUTH_REQUIRED,
    403: ErrorKind.INSUFFICIENT_PERMISSIONS,
    404: ErrorKind.DATA_NOT_FOUND,
    409: ErrorKind.DATA_CONFLICT,
    422: ErrorKind.VALIDATION_ERROR,
    429: ErrorKind.RATE_LIMITED,
    503: ErrorKind.SERVICE_UNAVAILABLE,
}


class ClassifiedError(Exception):
    """
    A failure normalized into one of the fixed error kinds.

    Attributes:
        kind: ErrorKind of the failure
        message: User-safe message
        details: Original failure payload, for logging only
        occurred_at: When the error was classified
        actor_id: User or session associated with the failure
        operation_label: Label of the attempted action
    """

    def __init__(self,
                 kind: ErrorKind,
                 message: Optional[str] = None,
                 details: Any = None,
                 actor_id: Optional[str] = None,
                 operation_label: Optional[str] = None):
        self.kind = kind
        self.message = message or get_error_message(kind)
        self.details = details
        self.occurred_at = datetime.now()
        self.actor_id = actor_id
        self.operation_label = operation_label
        super().__init__(self.message)

    @property
    def recoverable(self) -> bool:
        """Whether retrying the failed action is sane."""
        return is_recoverable(self.kind)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            'kind': self.kind.value,
            'message': self.message,
            'details': _describe_details(self.details),
            'occurred_at': self.occurred_at.isoformat(),
            'actor_id': self.actor_id,
            'operation_label': self.operation_label,
            'recoverable': self.recoverable,
        }

    def __repr__(self) -> str:
        return f"ClassifiedError({self.kind.value}, {self.message!r})"


def classify_error(error: Any,
                   actor_id: Optional[str] = None,
                   operation_label: Optional[str] = None) -> ClassifiedError:
    """
    Classify an arbitrary failure.

    Args:
        error: Exception, mapping or response-like object
        actor_id: Optional user/session identifier
        operation_label: Optional label of the attempted action

    Returns:
        The input itself if already classified, otherwise a new ClassifiedError
    """
    if isinstance(error, ClassifiedError):
        return error

    kind = _determine_kind(error)
    return ClassifiedError(
        kind,
        details=error,
        actor_id=actor_id,
        operation_label=operation_label,
    )


def _determine_kind(error: Any) -> ErrorKind:
    name = _get_name(error)
    code = _get_field(error, 'code')
    if not isinstance(code, str):
        code = None

    if (name in NETWORK_ERROR_NAMES
            or isinstance(error, ConnectionError)
            or code in NETWORK_ERROR_CODES):
        return ErrorKind.NETWORK_ERROR

    if (name in TIMEOUT_ERROR_NAMES
            or isinstance(error, TimeoutError)
            or code in TIMEOUT_ERROR_CODES):
        return ErrorKind.TIMEOUT_ERROR

    message = _get_message(error)
    if message:
        lowered = message.lower()
        for kind, patterns in MESSAGE_PATTERNS:
            if any(pattern in lowered for pattern in patterns):
                return kind

    status = _get_status(error)
    if status is not None:
        return _kind_for_status(status)

    return ErrorKind.UNKNOWN_ERROR


def _kind_for_status(status: int) -> ErrorKind:
    if status in STATUS_KINDS:
        return STATUS_KINDS[status]
    if 400 <= status < 500:
        return ErrorKind.CLIENT_ERROR
    if status >= 500:
        return ErrorKind.SERVER_ERROR
    return ErrorKind.UNKNOWN_ERROR


def _get_field(error: Any, field_name: str) -> Any:
    """Read a field from a mapping key or an attribute."""
    if isinstance(error, Mapping):
        return error.get(field_name)
    try:
        return getattr(error, field_name, None)
    except Exception:
        return None


def _get_name(error: Any) -> Optional[str]:
    if isinstance(error, BaseException):
        return type(error).__name__
    name = _get_field(error, 'name')
    return name if isinstance(name, str) else None


def _get_message(error: Any) -> Optional[str]:
    message = _get_field(error, 'message')
    if isinstance(message, str):
        return message
    if isinstance(error, BaseException):
        return _safe_str(error)
    return None


def _safe_str(error: BaseException) -> Optional[str]:
    try:
        return str(error)
    except Exception:
        return None


def _get_status(error: Any) -> Optional[int]:
    for field_name in ('status', 'status_code'):
        status = _get_field(error, field_name)
        if isinstance(status, int) and not isinstance(status, bool):
            return status
    return None


def _describe_details(details: Any) -> Any:
    if details is None or isinstance(details, (str, int, float, bool)):
        return details
    if isinstance(details, Mapping):
        return {str(k): _describe_details(v) for k, v in details.items()}
    if isinstance(details, BaseException):
        return {'type': type(details).__name__, 'message': _safe_str(details)}
    return repr(details)
