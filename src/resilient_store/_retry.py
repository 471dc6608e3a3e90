"""Retry adapter — runs single-attempt units of work through tenacity and translates the outcome."""

from __future__ import annotations

import contextvars
import logging
import time
from typing import TYPE_CHECKING, Callable, Optional, TypeVar

from tenacity import (
    RetryError,
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    stop_after_delay,
    wait_exponential,
)

from resilient_store._classifier import EXCEPTION_CLASSIFIER, UnclassifiedFailureError, failure_kind
from resilient_store._errors import ClosedByInterrupt, FailureKind

if TYPE_CHECKING:
    import threading

    from tenacity import RetryCallState

    from resilient_store._classifier import ExceptionClassifier
    from resilient_store._config import RetryPolicy

T = TypeVar("T")

log = logging.getLogger(__name__)

_ATTEMPT: contextvars.ContextVar[int] = contextvars.ContextVar("resilient_store_attempt", default=1)


def current_attempt() -> int:
    """1-based number of the attempt running in this context (1 outside any retry run)."""
    return _ATTEMPT.get()


class RetryHelperError(RuntimeError):
    """Base class for retry outcome wrappers. Never escapes :func:`call_with_retries`.

    :param message: Human-readable description.
    :param cause: The failure of the attempt that ended the run, if any.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        self.cause = cause
        super().__init__(message)


class NonRetriableError(RetryHelperError):
    """An attempt failed with an abort-classified failure."""


class RetriesExhaustedError(RetryHelperError):
    """The retry policy ran out of attempts or time; ``cause`` is the last failure."""


class RetryInterruptedError(RetryHelperError):
    """Cancellation was signalled before an attempt or while waiting between attempts."""


def _before_attempt(cancel_event: Optional[threading.Event]) -> Callable[[RetryCallState], None]:
    def _before(retry_state: RetryCallState) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise RetryInterruptedError(f"Cancelled before attempt {retry_state.attempt_number}")
        _ATTEMPT.set(retry_state.attempt_number)

    return _before


def _sleeper(cancel_event: Optional[threading.Event]) -> Callable[[float], None]:
    def _sleep(seconds: float) -> None:
        if cancel_event is None:
            time.sleep(seconds)
        elif cancel_event.wait(seconds):
            raise RetryInterruptedError("Cancelled while waiting to retry")

    return _sleep


def run_with_retries(
    fn: Callable[[], T],
    policy: RetryPolicy,
    classifier: ExceptionClassifier = EXCEPTION_CLASSIFIER,
    *,
    cancel_event: Optional[threading.Event] = None,
) -> T:
    """Run ``fn`` until it succeeds, fails with an abort-classified error, or the policy is exhausted.

    :param fn: Zero-argument unit of work performing exactly one attempt.
    :param policy: Attempt limits, backoff and total retry period.
    :param classifier: Decides whether a failed attempt is retried.
    :param cancel_event: Once set, no further attempt starts and a pending backoff wait ends.
    :raises NonRetriableError: If an attempt failed with an abort-classified error.
    :raises RetriesExhaustedError: If the policy allowed no further attempt.
    :raises RetryInterruptedError: If ``cancel_event`` was set before an attempt or fired while waiting.
    """
    retryer = Retrying(
        stop=stop_after_attempt(policy.retry_max_attempts)
        | (
            stop_after_attempt(policy.retry_min_attempts)
            & stop_after_delay(policy.total_retry_period_millis / 1000)
        ),
        wait=wait_exponential(
            multiplier=policy.initial_retry_delay_millis / 1000,
            exp_base=policy.retry_delay_backoff_factor,
            max=policy.max_retry_delay_millis / 1000,
        ),
        retry=retry_if_exception(classifier.should_retry),
        before=_before_attempt(cancel_event),
        before_sleep=before_sleep_log(log, logging.WARNING),  # type: ignore[arg-type,unused-ignore]
        sleep=_sleeper(cancel_event),
    )
    token = _ATTEMPT.set(1)
    try:
        return retryer(fn)
    except RetryError as exc:
        last = exc.last_attempt
        cause = last.exception()
        raise RetriesExhaustedError(f"Retries exhausted after {last.attempt_number} attempts", cause) from cause
    except (RetryInterruptedError, UnclassifiedFailureError):
        raise
    except Exception as exc:
        raise NonRetriableError(f"Non-retriable failure: {exc}", exc) from exc
    finally:
        _ATTEMPT.reset(token)


def call_with_retries(
    fn: Callable[[], T],
    policy: RetryPolicy,
    classifier: ExceptionClassifier = EXCEPTION_CLASSIFIER,
    *,
    cancel_event: Optional[threading.Event] = None,
) -> T:
    """Like :func:`run_with_retries`, but surfaces the caller-facing error instead of a wrapper.

    Cancellation (before an attempt, during a wait, or an interrupted attempt) becomes
    :class:`ClosedByInterrupt`; any other outcome re-raises the failure that
    ended the run unchanged.
    """
    try:
        return run_with_retries(fn, policy, classifier, cancel_event=cancel_event)
    except RetryInterruptedError:
        raise ClosedByInterrupt("Interrupted by cancellation") from None
    except RetryHelperError as exc:
        cause = exc.cause
        if cause is None:  # pragma: no cover -- wrappers above always carry a cause
            raise
        if failure_kind(cause) is FailureKind.INTERRUPTED:
            raise ClosedByInterrupt(f"Interrupted during attempt: {cause}") from cause
        raise cause from cause.__cause__
