"""
Central error management.

The ErrorManager classifies failures, logs them with ambient context and
forwards them to reporting sinks. Logging is best-effort and never raises.
"""

import logging
import platform
import threading
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from .classifier import ClassifiedError, classify_error
from .error_codes import ErrorKind


ErrorSink = Callable[[Dict[str, Any]], None]
Notifier = Callable[[str], None]


def default_user_agent() -> str:
    from milvet_nav import __version__
    return f"milvet-nav/{__version__} (Python {platform.python_version()}; {platform.system()})"


class ErrorManager:
    """
    Central error management system.

    In development, errors are only written to the log. In production they
    are also forwarded to every registered sink (for example ErrorReporter).
    """

    def __init__(self, environment: str = "development",
                 user_agent: Optional[str] = None,
                 current_url: Optional[str] = None):
        """
        Initialize the error manager.

        Args:
            environment: "development" or "production"
            user_agent: User agent included in every log record
            current_url: URL of the current view, included in log records
        """
        self.logger = logging.getLogger(__name__)
        self.environment = environment
        self.user_agent = user_agent or default_user_agent()
        self.current_url = current_url
        self._sinks: List[ErrorSink] = []
        self._notifiers: List[Notifier] = []
        self._error_history: List[ClassifiedError] = []
        self._lock = threading.RLock()

        self.max_history_size = 1000

        self._stats = {
            'total_errors': 0,
            'errors_by_kind': {},
            'fallbacks_run': 0,
            'fallback_failures': 0,
        }

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def add_sink(self, sink: ErrorSink):
        """Add a reporting sink used in production."""
        with self._lock:
            self._sinks.append(sink)
            self.logger.info(f"Added error sink: {getattr(sink, '__qualname__', repr(sink))}")

    def remove_sink(self, sink: ErrorSink):
        """Remove a reporting sink."""
        with self._lock:
            if sink in self._sinks:
                self._sinks.remove(sink)

    def add_notifier(self, notifier: Notifier):
        """Add a callback that shows a user-safe message to the user."""
        with self._lock:
            self._notifiers.append(notifier)

    def remove_notifier(self, notifier: Notifier):
        """Remove a user notification callback."""
        with self._lock:
            if notifier in self._notifiers:
                self._notifiers.remove(notifier)

    def classify(self, error: Any, actor_id: Optional[str] = None,
                 operation_label: Optional[str] = None) -> ClassifiedError:
        """Classify a failure without logging it."""
        return classify_error(error, actor_id=actor_id, operation_label=operation_label)

    def build_log_record(self, error: ClassifiedError,
                         context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Build the record written for an error."""
        record = error.to_dict()
        record.update({
            'context': context,
            'user_agent': self.user_agent,
            'url': self.current_url,
        })
        return record

    def log_error(self, error: ClassifiedError, context: Optional[Dict[str, Any]] = None):
        """
        Log a classified error with ambient context.

        Args:
            error: Classified error to log
            context: Additional caller context
        """
        try:
            record = self.build_log_record(error, context)
            self._remember(error)
            self.logger.error(f"Application Error: {record}")
        except Exception as e:
            self.logger.error(f"Failed to log error: {e}")
            return

        if not self.is_production:
            return

        with self._lock:
            sinks = list(self._sinks)
        for sink in sinks:
            try:
                sink(record)
            except Exception as e:
                self.logger.error(f"Error in error sink: {e}")

    def handle_error(self, error: Any,
                     show_toast: bool = False,
                     fallback: Optional[Callable[[], Any]] = None,
                     context: Optional[Dict[str, Any]] = None,
                     actor_id: Optional[str] = None,
                     operation_label: Optional[str] = None) -> ClassifiedError:
        """
        Classify, log and optionally surface an error.

        Args:
            error: Any failure
            show_toast: Show the user-safe message through registered notifiers
            fallback: Callback run after logging; its failures are logged only
            context: Additional caller context for the log record
            actor_id: User/session identifier
            operation_label: Label of the attempted action

        Returns:
            The ClassifiedError for the failure
        """
        classified = classify_error(error, actor_id=actor_id, operation_label=operation_label)
        self.log_error(classified, context)

        if show_toast:
            self._notify_user(classified)

        if fallback is not None:
            with self._lock:
                self._stats['fallbacks_run'] += 1
            try:
                fallback()
            except Exception as fallback_error:
                with self._lock:
                    self._stats['fallback_failures'] += 1
                self.logger.error(f"Error in fallback function: {fallback_error}")

        return classified

    def get_error_history(self, kind: Optional[ErrorKind] = None,
                          since: Optional[datetime] = None) -> List[ClassifiedError]:
        """Get error history with optional filtering."""
        with self._lock:
            errors = self._error_history.copy()

        if kind:
            errors = [e for e in errors if e.kind == kind]
        if since:
            errors = [e for e in errors if e.occurred_at >= since]
        return errors

    def get_recent_errors(self, minutes: int = 60) -> List[ClassifiedError]:
        """Get errors from the last N minutes."""
        return self.get_error_history(since=datetime.now() - timedelta(minutes=minutes))

    def get_stats(self) -> Dict[str, Any]:
        """Get error handling statistics."""
        with self._lock:
            stats = self._stats.copy()
            stats['errors_by_kind'] = dict(self._stats['errors_by_kind'])
            return stats

    def clear_history(self):
        """Clear error history."""
        with self._lock:
            self._error_history.clear()
            self.logger.info("Error history cleared")

    def _remember(self, error: ClassifiedError):
        with self._lock:
            self._error_history.append(error)
            if len(self._error_history) > self.max_history_size:
                self._error_history = self._error_history[-self.max_history_size:]

            self._stats['total_errors'] += 1
            kind_key = error.kind.value
            self._stats['errors_by_kind'][kind_key] = self._stats['errors_by_kind'].get(kind_key, 0) + 1

    def _notify_user(self, error: ClassifiedError):
        with self._lock:
            notifiers = list(self._notifiers)

        if not notifiers:
            self.logger.warning(f"Toast notification requested but not available: {error.message}")
            return

        for notifier in notifiers:
            try:
                notifier(error.message)
            except Exception as e:
                self.logger.error(f"Error in user notifier: {e}")


# Global error manager instance
_global_error_manager: Optional[ErrorManager] = None
_global_lock = threading.Lock()


def get_error_manager() -> ErrorManager:
    """Get the global error manager instance."""
    global _global_error_manager
    with _global_lock:
        if _global_error_manager is None:
            _global_error_manager = ErrorManager()
        return _global_error_manager


def set_error_manager(manager: Optional[ErrorManager]):
    """Replace the global error manager (None resets it)."""
    global _global_error_manager
    with _global_lock:
        _global_error_manager = manager


def log_error(error: ClassifiedError, context: Optional[Dict[str, Any]] = None):
    """Log an error using the global manager."""
    get_error_manager().log_error(error, context)


def handle_error(error: Any, show_toast: bool = False,
                 fallback: Optional[Callable[[], Any]] = None,
                 context: Optional[Dict[str, Any]] = None) -> ClassifiedError:
    """Handle an error using the global manager."""
    return get_error_manager().handle_error(
        error,
        show_toast=show_toast,
        fallback=fallback,
        context=context,
    )
