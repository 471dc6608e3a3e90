"""ObjectStoreClient — the retrying, size-unbounded facade over a transport."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Optional, TypeVar

from resilient_store._channels import (
    DEFAULT_PREFETCH_BLOCK_SIZE,
    OutputChannel,
    PrefetchingInputChannel,
    SimpleInputChannel,
)
from resilient_store._classifier import EXCEPTION_CLASSIFIER
from resilient_store._config import RetryPolicy
from resilient_store._models import ObjectOptions
from resilient_store._retry import call_with_retries

if TYPE_CHECKING:
    import threading
    from types import TracebackType

    from resilient_store._classifier import ExceptionClassifier
    from resilient_store._models import CreationToken, ObjectMetadata, ObjectName
    from resilient_store._transport import Transport
    from resilient_store._types import WritableContent

T = TypeVar("T")

log = logging.getLogger(__name__)

# Payloads above this size are never sent in a single request.
REQUEST_MAX_SIZE_BYTES = 10_000_000

_REQUEST_TIMEOUT_RETRY_FACTOR = 1.2


class ObjectStoreClient:
    """Retrying object-store client on top of a single-attempt transport.

    Every operation runs through the retry policy and the exception
    classifier; failures surface as ``resilient_store`` errors (or, for a
    non-I/O failure, unchanged). Writes larger than
    :data:`REQUEST_MAX_SIZE_BYTES` go through a resumable write session.

    The effective retry policy is derived once here, with a per-attempt
    timeout factor of 1.2, and shared read-only by all operations.

    :param transport: The transport performing single-attempt RPCs.
    :param retry_policy: Base retry policy (defaults to :class:`RetryPolicy`).
    :param classifier: Retry/abort classifier for every operation.
    :param cancel_event: Once set, operations stop with ``ClosedByInterrupt``
        before their next attempt or during a retry wait.
    """

    def __init__(
        self,
        transport: Transport,
        retry_policy: Optional[RetryPolicy] = None,
        *,
        classifier: ExceptionClassifier = EXCEPTION_CLASSIFIER,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self._transport = transport
        self._retry_policy = (retry_policy or RetryPolicy()).with_request_timeout_retry_factor(
            _REQUEST_TIMEOUT_RETRY_FACTOR
        )
        self._classifier = classifier
        self._cancel_event = cancel_event

    def __repr__(self) -> str:
        return f"ObjectStoreClient(transport={self._transport.name!r}, retry_policy={self._retry_policy!r})"

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def retry_policy(self) -> RetryPolicy:
        """The effective policy shared by every operation of this client."""
        return self._retry_policy

    @property
    def classifier(self) -> ExceptionClassifier:
        return self._classifier

    def close(self) -> None:
        """Close the underlying transport, releasing any held resources."""
        self._transport.close()

    def __enter__(self) -> ObjectStoreClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def _call(self, fn: Callable[[], T]) -> T:
        return call_with_retries(fn, self._retry_policy, self._classifier, cancel_event=self._cancel_event)

    @staticmethod
    def _read_content(content: WritableContent) -> bytes:
        if isinstance(content, bytes):
            return content
        if isinstance(content, (bytearray, memoryview)):
            return bytes(content)
        return content.read()

    def create_or_replace(self, name: ObjectName, options: Optional[ObjectOptions] = None) -> OutputChannel:
        """Open a resumable write session and return a channel writing to it.

        The object is replaced only once the channel is closed.

        :raises ClosedByInterrupt: If cancelled while waiting to retry.
        """
        options = options or ObjectOptions()

        def begin() -> CreationToken:
            return self._transport.begin_object_creation(
                name, options, self._retry_policy.request_timeout_millis_for_current_attempt()
            )

        token = self._call(begin)
        log.debug("Opened write session for %s", name)
        return OutputChannel(
            self._transport,
            token,
            self._retry_policy,
            classifier=self._classifier,
            cancel_event=self._cancel_event,
        )

    def write(self, name: ObjectName, content: WritableContent, options: Optional[ObjectOptions] = None) -> None:
        """Create or replace ``name`` with ``content``, blocking until done.

        Content up to :data:`REQUEST_MAX_SIZE_BYTES` is sent in one request per
        attempt; larger content is streamed through :meth:`create_or_replace`.

        :raises ClosedByInterrupt: If cancelled while waiting to retry.
        """
        options = options or ObjectOptions()
        data = self._read_content(content)
        if len(data) > REQUEST_MAX_SIZE_BYTES:
            log.debug("Writing %d bytes to %s through a resumable session", len(data), name)
            with self.create_or_replace(name, options) as channel:
                channel.write(data)
            return

        def put() -> None:
            self._transport.put_object(name, options, data, self._retry_policy.request_timeout_millis)

        self._call(put)

    def get_metadata(self, name: ObjectName) -> ObjectMetadata:
        """Fetch a metadata snapshot.

        :raises NotFound: If the object does not exist (not retried).
        """

        def get() -> ObjectMetadata:
            return self._transport.get_object_metadata(
                name, self._retry_policy.request_timeout_millis_for_current_attempt()
            )

        return self._call(get)

    def delete(self, name: ObjectName) -> bool:
        """Delete an object. Returns ``False`` if it did not exist."""

        def delete_object() -> bool:
            return self._transport.delete_object(name, self._retry_policy.request_timeout_millis_for_current_attempt())

        return self._call(delete_object)

    def open_read_channel(self, name: ObjectName, start_position: int = 0) -> SimpleInputChannel:
        """Open a lazy read channel; nothing is fetched until the first read."""
        return SimpleInputChannel(
            self._transport,
            name,
            start_position,
            self._retry_policy,
            classifier=self._classifier,
            cancel_event=self._cancel_event,
        )

    def open_prefetching_read_channel(
        self, name: ObjectName, start_position: int = 0, block_size: int = DEFAULT_PREFETCH_BLOCK_SIZE
    ) -> PrefetchingInputChannel:
        """Open a lazy read channel that reads ahead ``block_size`` bytes at a time."""
        return PrefetchingInputChannel(
            self._transport,
            name,
            start_position,
            self._retry_policy,
            block_size=block_size,
            classifier=self._classifier,
            cancel_event=self._cancel_event,
        )
