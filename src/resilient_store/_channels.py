"""Channels — sequential, retrying read and write handles bound to one object."""

from __future__ import annotations

import abc
import concurrent.futures
import logging
from typing import TYPE_CHECKING, Callable, Optional, TypeVar

from resilient_store._classifier import EXCEPTION_CLASSIFIER
from resilient_store._errors import ChannelClosed
from resilient_store._retry import call_with_retries

if TYPE_CHECKING:
    import threading
    from types import TracebackType

    from resilient_store._classifier import ExceptionClassifier
    from resilient_store._config import RetryPolicy
    from resilient_store._models import CreationToken, ObjectName
    from resilient_store._transport import Transport

T = TypeVar("T")

log = logging.getLogger(__name__)

DEFAULT_READ_CHUNK_SIZE = 1024 * 1024
DEFAULT_PREFETCH_BLOCK_SIZE = 1024 * 1024


def buffer_size_bytes(transport: Transport) -> int:
    """Largest multiple of the transport's chunk size that fits in one write (at least one chunk)."""
    chunk = transport.chunk_size_bytes
    limit = transport.max_write_size_bytes
    return max(chunk, limit - limit % chunk)


class OutputChannel:
    """Sequential write handle for one resumable write session.

    Writes are buffered and sent in chunks of :func:`buffer_size_bytes`, each
    chunk retried as a unit. :meth:`close` sends the remainder and finalizes
    the object; until it succeeds the object is not visible. Not safe for
    concurrent writers.

    Used as a context manager, a clean exit closes the channel, while an
    exit by exception abandons the session without finalizing it.

    :param transport: Transport owning the session.
    :param token: Creation token returned when the session was opened.
    :param policy: Retry policy applied to every chunk.
    :param classifier: Retry/abort classifier applied to every chunk.
    :param cancel_event: Once set, stops retry waits and further attempts.
    """

    def __init__(
        self,
        transport: Transport,
        token: CreationToken,
        policy: RetryPolicy,
        *,
        classifier: ExceptionClassifier = EXCEPTION_CLASSIFIER,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self._transport = transport
        self._name = token.name
        self._token: Optional[CreationToken] = token
        self._policy = policy
        self._classifier = classifier
        self._cancel_event = cancel_event
        self._buffer = bytearray()
        self._buffer_size = buffer_size_bytes(transport)

    def __repr__(self) -> str:
        return f"OutputChannel(name={str(self._name)!r}, transport={self._transport.name!r}, open={self.is_open})"

    @property
    def name(self) -> ObjectName:
        """The object being written."""
        return self._name

    @property
    def is_open(self) -> bool:
        return self._token is not None

    def write(self, data: bytes | bytearray | memoryview) -> int:
        """Append ``data`` to the object and return the number of bytes accepted.

        :raises ChannelClosed: If the channel is closed.
        """
        self._require_open()
        view = memoryview(data)
        self._buffer += view
        while len(self._buffer) >= self._buffer_size:
            self._send_chunk(bytes(self._buffer[: self._buffer_size]))
            del self._buffer[: self._buffer_size]
        return view.nbytes

    def close(self) -> None:
        """Send buffered data and finalize the object. Closing twice is a no-op."""
        if self._token is None:
            return
        token = self._token
        remainder = bytes(self._buffer)

        def finish() -> None:
            self._transport.finish_object_creation(
                token, remainder, self._policy.request_timeout_millis_for_current_attempt()
            )

        self._retry(finish)
        self._token = None
        self._buffer = bytearray()
        log.debug("Finalized %s (%d bytes)", self._name, token.offset + len(remainder))

    def __enter__(self) -> OutputChannel:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if exc_type is None:
            self.close()
        else:
            log.debug("Abandoning write session for %s after %s", self._name, exc_type.__name__)
            self._token = None
            self._buffer = bytearray()

    def _require_open(self) -> CreationToken:
        if self._token is None:
            raise ChannelClosed("Output channel is closed", path=str(self._name), transport=self._transport.name)
        return self._token

    def _send_chunk(self, chunk: bytes) -> None:
        token = self._require_open()

        def continue_creation() -> CreationToken:
            return self._transport.continue_object_creation(
                token, chunk, self._policy.request_timeout_millis_for_current_attempt()
            )

        self._token = self._retry(continue_creation)

    def _retry(self, fn: Callable[[], T]) -> T:
        return call_with_retries(fn, self._policy, self._classifier, cancel_event=self._cancel_event)


class InputChannel(abc.ABC):
    """Sequential read handle bound to one object and one retry policy.

    Construction performs no I/O; the first transport call happens on the
    first :meth:`read`. Not safe for concurrent readers.

    :param transport: Transport to read from.
    :param name: The object to read.
    :param start_position: Offset of the first byte returned.
    :param policy: Retry policy applied to every fetch.
    :param classifier: Retry/abort classifier applied to every fetch.
    :param cancel_event: Once set, stops retry waits and further attempts.
    :raises ValueError: If ``start_position`` is negative.
    """

    def __init__(
        self,
        transport: Transport,
        name: ObjectName,
        start_position: int,
        policy: RetryPolicy,
        *,
        classifier: ExceptionClassifier = EXCEPTION_CLASSIFIER,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        if start_position < 0:
            raise ValueError(f"start_position must not be negative: {start_position}")
        self._transport = transport
        self._name = name
        self._position = start_position
        self._policy = policy
        self._classifier = classifier
        self._cancel_event = cancel_event
        self._closed = False

    def __repr__(self) -> str:
        cls = type(self).__name__
        return f"{cls}(name={str(self._name)!r}, position={self._position}, open={self.is_open})"

    @property
    def name(self) -> ObjectName:
        """The object being read."""
        return self._name

    @property
    def position(self) -> int:
        """Offset of the next byte :meth:`read` will return."""
        return self._position

    @property
    def is_open(self) -> bool:
        return not self._closed

    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes, or to the end of the object if ``size`` is negative.

        Returns fewer bytes at the end of the object, and ``b""`` once there.
        If a fetch fails after some bytes were already read, those bytes are
        returned and :attr:`position` stops after them; the next call fetches
        from there again. A failure before any byte was read is raised.

        :raises ChannelClosed: If the channel is closed.
        """
        if self._closed:
            raise ChannelClosed("Input channel is closed", path=str(self._name), transport=self._transport.name)
        parts: list[bytes] = []
        remaining = size
        while remaining != 0:
            try:
                data = self._read_some(remaining if remaining > 0 else None)
            except Exception as exc:
                if not parts:
                    raise
                log.debug("Short read of %s at %d after %s", self._name, self._position, type(exc).__name__)
                break
            if not data:
                break
            parts.append(data)
            self._position += len(data)
            if remaining > 0:
                remaining -= len(data)
        return b"".join(parts)

    def readall(self) -> bytes:
        """Read from the current position to the end of the object, stopping early like :meth:`read`."""
        return self.read(-1)

    def close(self) -> None:
        self._closed = True

    def __enter__(self) -> InputChannel:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    @abc.abstractmethod
    def _read_some(self, limit: int | None) -> bytes:
        """Return the next bytes at :attr:`position` (at most ``limit`` if given), ``b""`` at the end."""

    def _retry(self, fn: Callable[[], T]) -> T:
        return call_with_retries(fn, self._policy, self._classifier, cancel_event=self._cancel_event)


class SimpleInputChannel(InputChannel):
    """Input channel that fetches on demand, one retried request per chunk.

    :param read_chunk_size: Largest number of bytes requested per fetch.
    """

    def __init__(
        self,
        transport: Transport,
        name: ObjectName,
        start_position: int,
        policy: RetryPolicy,
        *,
        read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE,
        classifier: ExceptionClassifier = EXCEPTION_CLASSIFIER,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        if read_chunk_size <= 0:
            raise ValueError(f"read_chunk_size must be positive: {read_chunk_size}")
        super().__init__(transport, name, start_position, policy, classifier=classifier, cancel_event=cancel_event)
        self._read_chunk_size = read_chunk_size

    def _read_some(self, limit: int | None) -> bytes:
        length = self._read_chunk_size if limit is None else min(limit, self._read_chunk_size)
        position = self._position

        def read_chunk() -> bytes:
            data, _ = self._transport.read_object(
                self._name, position, length, self._policy.request_timeout_millis_for_current_attempt()
            )
            return data

        return self._retry(read_chunk)


class PrefetchingInputChannel(InputChannel):
    """Input channel that reads ahead one block on a background worker.

    The first read fetches a block synchronously and schedules the next one;
    later reads are served from the prefetched block. The worker thread is
    only started by the first read.

    :param block_size: Size of each read-ahead block in bytes.
    :raises ValueError: If ``block_size`` is not positive.
    """

    def __init__(
        self,
        transport: Transport,
        name: ObjectName,
        start_position: int,
        policy: RetryPolicy,
        *,
        block_size: int = DEFAULT_PREFETCH_BLOCK_SIZE,
        classifier: ExceptionClassifier = EXCEPTION_CLASSIFIER,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        if block_size <= 0:
            raise ValueError(f"block_size must be positive: {block_size}")
        super().__init__(transport, name, start_position, policy, classifier=classifier, cancel_event=cancel_event)
        self._block_size = block_size
        self._block = b""
        self._fetch_position = start_position
        self._pending: Optional[concurrent.futures.Future[bytes]] = None
        self._executor: Optional[concurrent.futures.ThreadPoolExecutor] = None

    @property
    def block_size(self) -> int:
        return self._block_size

    def close(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None
        self._block = b""
        super().close()

    def _read_some(self, limit: int | None) -> bytes:
        if not self._block:
            self._block = self._next_block()
            if not self._block:
                return b""
        n = len(self._block) if limit is None else min(limit, len(self._block))
        data = self._block[:n]
        self._block = self._block[n:]
        return data

    def _next_block(self) -> bytes:
        if self._pending is None:
            block = self._fetch(self._fetch_position)
        else:
            pending, self._pending = self._pending, None
            block = pending.result()
        self._fetch_position += len(block)
        if len(block) == self._block_size:
            self._pending = self._worker().submit(self._fetch, self._fetch_position)
        return block

    def _worker(self) -> concurrent.futures.ThreadPoolExecutor:
        if self._executor is None:
            self._executor = concurrent.futures.ThreadPoolExecutor(
                max_workers=1, thread_name_prefix="resilient-store-prefetch"
            )
        return self._executor

    def _fetch(self, position: int) -> bytes:
        def read_block() -> bytes:
            data, _ = self._transport.read_object(
                self._name, position, self._block_size, self._policy.request_timeout_millis_for_current_attempt()
            )
            return data

        log.debug("Prefetching %d bytes of %s at %d", self._block_size, self._name, position)
        return self._retry(read_block)
