"""
Retry management with exponential backoff and jitter.

This module wraps operations against the remote backend with bounded retries.
Failures are classified to decide whether a retry is worthwhile, but the
original failure is always what the caller sees once retrying stops.
"""

import asyncio
import logging
import random
import threading
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from .classifier import classify_error
from .error_codes import NON_RETRYABLE_KINDS


T = TypeVar("T")

logger = logging.getLogger(__name__)


class RetryResult(Enum):
    """Result of a retry attempt."""
    SUCCESS = "success"
    FAILED = "failed"
    EXHAUSTED = "exhausted"
    REJECTED = "rejected"


@dataclass
class RetryAttempt:
    """Information about a single attempt."""
    attempt_number: int
    timestamp: datetime
    delay: float = 0.0
    result: Optional[RetryResult] = None
    error: Optional[BaseException] = None


def default_should_retry(error: Any) -> bool:
    """Retry recoverable errors except invalid credentials, permissions and not-found."""
    classified = classify_error(error)
    return classified.recoverable and classified.kind not in NON_RETRYABLE_KINDS


class ExponentialBackoff:
    """Exponential backoff with additive jitter."""

    def __init__(self, base_delay: float = 1.0, multiplier: float = 2.0,
                 max_delay: float = 30.0, jitter_factor: float = 0.1,
                 rng: Optional[random.Random] = None):
        """
        Initialize exponential backoff.

        Args:
            base_delay: Delay before the first retry, in seconds
            multiplier: Multiplier for each retry attempt
            max_delay: Cap for the delay before jitter
            jitter_factor: Jitter is drawn from [0, jitter_factor * delay]
            rng: Random source, injectable for deterministic tests
        """
        self.base_delay = base_delay
        self.multiplier = multiplier
        self.max_delay = max_delay
        self.jitter_factor = jitter_factor
        self._rng = rng or random.Random()

    def get_base_delay(self, attempt_index: int) -> float:
        """Get the un-jittered delay after the zero-based attempt index."""
        return min(self.base_delay * (self.multiplier ** attempt_index), self.max_delay)

    def get_delay(self, attempt_index: int) -> float:
        """Get the delay with jitter after the zero-based attempt index."""
        delay = self.get_base_delay(attempt_index)
        return delay + self._rng.uniform(0, self.jitter_factor * delay)


@dataclass
class RetryPolicy:
    """Configuration for retry behavior. Delays are in seconds."""
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    backoff_factor: float = 2.0
    jitter_factor: float = 0.1
    should_retry: Callable[[Any], bool] = field(default=default_should_retry)

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries cannot be negative")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("Delays cannot be negative")
        if self.backoff_factor < 1:
            raise ValueError("backoff_factor must be at least 1")

    def create_backoff(self, rng: Optional[random.Random] = None) -> ExponentialBackoff:
        """Create the backoff strategy described by this policy."""
        return ExponentialBackoff(
            base_delay=self.base_delay,
            multiplier=self.backoff_factor,
            max_delay=self.max_delay,
            jitter_factor=self.jitter_factor,
            rng=rng,
        )


async def execute_with_retry(operation: Callable[[], Awaitable[T]],
                             policy: Optional[RetryPolicy] = None,
                             *,
                             operation_name: Optional[str] = None,
                             sleep_func: Optional[Callable[[float], Awaitable[Any]]] = None,
                             rng: Optional[random.Random] = None,
                             on_attempt: Optional[Callable[[RetryAttempt], None]] = None) -> T:
    """
    Run an async operation, retrying recoverable failures with backoff.

    Args:
        operation: Zero-argument coroutine function
        policy: Retry policy (a fresh default policy if None)
        operation_name: Name for logging
        sleep_func: Injectable sleep, defaults to asyncio.sleep
        rng: Injectable random source for jitter
        on_attempt: Called with every finished attempt

    Returns:
        Result of the first successful attempt

    Raises:
        Exception: The original failure of the last attempt
    """
    policy = policy or RetryPolicy()
    backoff = policy.create_backoff(rng)
    sleep = sleep_func or asyncio.sleep
    name = operation_name or getattr(operation, '__name__', 'operation')

    for attempt in range(policy.max_retries + 1):
        record = RetryAttempt(attempt_number=attempt + 1, timestamp=datetime.now())
        try:
            result = await operation()
        except Exception as e:
            record.error = e
            delay = _next_delay(policy, backoff, attempt, e, record, name)
            _report(on_attempt, record)
            if delay is None:
                raise
            await sleep(delay)
        else:
            record.result = RetryResult.SUCCESS
            _report(on_attempt, record)
            if attempt > 0:
                logger.info(f"{name} succeeded on attempt {attempt + 1}")
            return result

    # The loop always returns or raises; max_retries + 1 >= 1 attempts run.
    raise RuntimeError(f"{name}: retry loop ended without a result")


def execute_with_retry_sync(operation: Callable[[], T],
                            policy: Optional[RetryPolicy] = None,
                            *,
                            operation_name: Optional[str] = None,
                            sleep_func: Optional[Callable[[float], Any]] = None,
                            rng: Optional[random.Random] = None,
                            on_attempt: Optional[Callable[[RetryAttempt], None]] = None) -> T:
    """Blocking counterpart of execute_with_retry for plain callables."""
    policy = policy or RetryPolicy()
    backoff = policy.create_backoff(rng)
    sleep = sleep_func or time.sleep
    name = operation_name or getattr(operation, '__name__', 'operation')

    for attempt in range(policy.max_retries + 1):
        record = RetryAttempt(attempt_number=attempt + 1, timestamp=datetime.now())
        try:
            result = operation()
        except Exception as e:
            record.error = e
            delay = _next_delay(policy, backoff, attempt, e, record, name)
            _report(on_attempt, record)
            if delay is None:
                raise
            sleep(delay)
        else:
            record.result = RetryResult.SUCCESS
            _report(on_attempt, record)
            if attempt > 0:
                logger.info(f"{name} succeeded on attempt {attempt + 1}")
            return result

    raise RuntimeError(f"{name}: retry loop ended without a result")


def _next_delay(policy: RetryPolicy, backoff: ExponentialBackoff, attempt: int,
                error: Exception, record: RetryAttempt, name: str) -> Optional[float]:
    """Decide what happens after a failed attempt. None means stop."""
    if attempt == policy.max_retries:
        record.result = RetryResult.EXHAUSTED
        if policy.max_retries:
            logger.error(f"{name} exhausted all {policy.max_retries + 1} attempts: {error}")
        return None

    try:
        retry = policy.should_retry(error)
    except Exception as predicate_error:
        logger.error(f"Retry predicate for {name} failed: {predicate_error}")
        retry = False

    if not retry:
        record.result = RetryResult.REJECTED
        logger.info(f"Not retrying {name}: {classify_error(error).kind.value}")
        return None

    delay = backoff.get_delay(attempt)
    record.result = RetryResult.FAILED
    record.delay = delay
    logger.warning(f"Retry attempt {attempt + 1}/{policy.max_retries} for {name} "
                   f"after {delay * 1000:.0f}ms: {error}")
    return delay


def _report(on_attempt: Optional[Callable[[RetryAttempt], None]], record: RetryAttempt):
    if on_attempt is None:
        return
    try:
        on_attempt(record)
    except Exception as e:
        logger.error(f"Error in retry attempt callback: {e}")


class RetryManager:
    """
    Runs operations with retry and keeps attempt statistics.

    Each call gets its own policy and retry loop; the manager only records
    what happened.
    """

    def __init__(self, default_policy: Optional[RetryPolicy] = None,
                 max_history_size: int = 500):
        """
        Initialize retry manager.

        Args:
            default_policy: Policy template used when a call passes none
            max_history_size: Number of finished calls to keep statistics for
        """
        self.logger = logging.getLogger(__name__)
        self.default_policy = default_policy
        self.max_history_size = max_history_size
        self._retry_stats: Dict[str, List[RetryAttempt]] = {}
        self._lock = threading.RLock()

    async def execute(self, operation: Callable[[], Awaitable[T]],
                      policy: Optional[RetryPolicy] = None,
                      operation_name: Optional[str] = None) -> T:
        """Execute an async operation with retry logic."""
        retry_id = self._start()
        return await execute_with_retry(
            operation,
            policy or self._fresh_policy(),
            operation_name=operation_name,
            on_attempt=lambda attempt: self._record(retry_id, attempt),
        )

    def execute_sync(self, operation: Callable[[], T],
                     policy: Optional[RetryPolicy] = None,
                     operation_name: Optional[str] = None) -> T:
        """Execute a blocking operation with retry logic."""
        retry_id = self._start()
        return execute_with_retry_sync(
            operation,
            policy or self._fresh_policy(),
            operation_name=operation_name,
            on_attempt=lambda attempt: self._record(retry_id, attempt),
        )

    def get_retry_stats(self, retry_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Get retry statistics.

        Args:
            retry_id: Specific call, or None for aggregate stats
        """
        with self._lock:
            if retry_id:
                attempts = self._retry_stats.get(retry_id, [])
                return {
                    'retry_id': retry_id,
                    'attempts': len(attempts),
                    'total_delay': sum(a.delay for a in attempts),
                    'success': any(a.result == RetryResult.SUCCESS for a in attempts),
                    'attempts_detail': list(attempts),
                }

            total_calls = len(self._retry_stats)
            successful = sum(
                1 for attempts in self._retry_stats.values()
                if any(a.result == RetryResult.SUCCESS for a in attempts)
            )
            return {
                'total_calls': total_calls,
                'total_attempts': sum(len(a) for a in self._retry_stats.values()),
                'successful_calls': successful,
                'success_rate': successful / total_calls if total_calls > 0 else 0,
            }

    def _fresh_policy(self) -> RetryPolicy:
        if self.default_policy is None:
            return RetryPolicy()
        template = self.default_policy
        return RetryPolicy(
            max_retries=template.max_retries,
            base_delay=template.base_delay,
            max_delay=template.max_delay,
            backoff_factor=template.backoff_factor,
            jitter_factor=template.jitter_factor,
            should_retry=template.should_retry,
        )

    def _start(self) -> str:
        retry_id = str(uuid.uuid4())
        with self._lock:
            self._retry_stats[retry_id] = []
            while len(self._retry_stats) > self.max_history_size:
                self._retry_stats.pop(next(iter(self._retry_stats)))
        return retry_id

    def _record(self, retry_id: str, attempt: RetryAttempt):
        with self._lock:
            if retry_id in self._retry_stats:
                self._retry_stats[retry_id].append(attempt)
