"""Exception classifier — decides whether a failed attempt is retried or aborted."""

from __future__ import annotations

import dataclasses
import enum
import logging

from resilient_store._errors import FailureKind

log = logging.getLogger(__name__)

# Most specific first; resilient_store errors are dispatched on their ``kind`` before this table is consulted.
_BUILTIN_KINDS: tuple[tuple[type[BaseException], FailureKind], ...] = (
    (KeyboardInterrupt, FailureKind.INTERRUPTED),
    (InterruptedError, FailureKind.INTERRUPTED),
    (FileNotFoundError, FailureKind.NOT_FOUND),
    (TimeoutError, FailureKind.SOCKET_TIMEOUT),
    (ConnectionError, FailureKind.RPC_FAILED),
    (OSError, FailureKind.IO),
)


class Verdict(enum.Enum):
    """Outcome of classifying a failed attempt."""

    RETRY = "retry"
    ABORT = "abort"


class UnclassifiedFailureError(RuntimeError):
    """Raised by a strict classifier for a failure outside its tables.

    :param cause: The failure that could not be classified.
    """

    def __init__(self, cause: BaseException) -> None:
        self.cause = cause
        super().__init__(f"No failure kind for {type(cause).__name__}: {cause}")


def failure_kind(exc: BaseException) -> FailureKind | None:
    """Return the :class:`FailureKind` of ``exc``, or ``None`` if it has none."""
    kind = getattr(type(exc), "kind", None)
    if isinstance(kind, FailureKind):
        return kind
    for exc_type, builtin_kind in _BUILTIN_KINDS:
        if isinstance(exc, exc_type):
            return builtin_kind
    return None


@dataclasses.dataclass(frozen=True)
class ExceptionClassifier:
    """Immutable retry/abort policy table keyed by :class:`FailureKind`.

    Failures whose kind appears in neither table are aborted: they are never
    retried automatically and never swallowed. A ``strict`` classifier raises
    :class:`UnclassifiedFailureError` for them instead, which surfaces gaps in
    the tables during development.

    :param retry_on: Kinds that are retried according to the retry policy.
    :param abort_on: Kinds that stop the operation immediately.
    :param strict: Raise on unclassified failures instead of aborting.
    :raises ValueError: If a kind appears in both tables.
    """

    retry_on: frozenset[FailureKind]
    abort_on: frozenset[FailureKind]
    strict: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "retry_on", frozenset(self.retry_on))
        object.__setattr__(self, "abort_on", frozenset(self.abort_on))
        overlap = self.retry_on & self.abort_on
        if overlap:
            names = sorted(k.name for k in overlap)
            raise ValueError(f"Failure kinds cannot be both retried and aborted: {names}")

    def classify(self, exc: BaseException) -> Verdict:
        """Classify a failure raised by a single attempt.

        :raises UnclassifiedFailureError: If ``strict`` and ``exc`` has no known kind.
        """
        kind = failure_kind(exc)
        if kind in self.abort_on:
            return Verdict.ABORT
        if kind in self.retry_on:
            return Verdict.RETRY
        if self.strict:
            raise UnclassifiedFailureError(exc) from exc
        log.warning("Unclassified failure %s(%s); aborting without retry", type(exc).__name__, exc)
        return Verdict.ABORT

    def should_retry(self, exc: BaseException) -> bool:
        """Predicate form of :meth:`classify` for the retry executor."""
        return self.classify(exc) is Verdict.RETRY


EXCEPTION_CLASSIFIER = ExceptionClassifier(
    retry_on=frozenset(
        {
            FailureKind.UNKNOWN,
            FailureKind.RPC_FAILED,
            FailureKind.DEADLINE_EXCEEDED,
            FailureKind.IO,
            FailureKind.SOCKET_TIMEOUT,
        }
    ),
    abort_on=frozenset(
        {
            FailureKind.INTERRUPTED,
            FailureKind.NOT_FOUND,
            FailureKind.MALFORMED_ADDRESS,
            FailureKind.CLOSED_BY_INTERRUPT,
            FailureKind.CHANNEL_CLOSED,
        }
    ),
)
