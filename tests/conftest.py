"""Shared test fixtures and marker registration."""

from __future__ import annotations

import threading
from collections import Counter, defaultdict
from typing import TYPE_CHECKING, Callable

import pytest

from resilient_store._client import ObjectStoreClient
from resilient_store._config import RetryPolicy
from resilient_store._models import ObjectName
from resilient_store._transport import Transport
from resilient_store.transports._memory import InMemoryTransport

if TYPE_CHECKING:
    from resilient_store._models import CreationToken, ObjectMetadata, ObjectOptions


def pytest_configure(config: object) -> None:
    """Register custom markers."""
    if isinstance(config, pytest.Config):
        config.addinivalue_line("markers", "integration: requires external services")


class FaultInjectingTransport(Transport):
    """Delegates to ``inner`` after raising any failures queued for a method.

    Records the number of calls and the timeout passed to every call.
    """

    def __init__(self, inner: Transport) -> None:
        self.inner = inner
        self.calls: Counter[str] = Counter()
        self.timeouts: dict[str, list[int]] = defaultdict(list)
        self.closed = False
        self._faults: dict[str, list[BaseException | None]] = defaultdict(list)
        self._lock = threading.Lock()

    def fail(self, method: str, *errors: BaseException, after: int = 0) -> None:
        """Queue ``errors`` to be raised, in order, by the next calls to ``method``.

        With ``after``, that many calls succeed first.
        """
        with self._lock:
            self._faults[method].extend([None] * after)
            self._faults[method].extend(errors)

    def _attempt(self, method: str, timeout_millis: int) -> None:
        with self._lock:
            self.calls[method] += 1
            self.timeouts[method].append(timeout_millis)
            fault = self._faults[method].pop(0) if self._faults[method] else None
        if fault is not None:
            raise fault

    @property
    def name(self) -> str:
        return "faulty"

    @property
    def chunk_size_bytes(self) -> int:
        return self.inner.chunk_size_bytes

    @property
    def max_write_size_bytes(self) -> int:
        return self.inner.max_write_size_bytes

    def begin_object_creation(self, name: ObjectName, options: ObjectOptions, timeout_millis: int) -> CreationToken:
        self._attempt("begin_object_creation", timeout_millis)
        return self.inner.begin_object_creation(name, options, timeout_millis)

    def continue_object_creation(self, token: CreationToken, chunk: bytes, timeout_millis: int) -> CreationToken:
        self._attempt("continue_object_creation", timeout_millis)
        return self.inner.continue_object_creation(token, chunk, timeout_millis)

    def finish_object_creation(self, token: CreationToken, chunk: bytes, timeout_millis: int) -> None:
        self._attempt("finish_object_creation", timeout_millis)
        self.inner.finish_object_creation(token, chunk, timeout_millis)

    def put_object(self, name: ObjectName, options: ObjectOptions, content: bytes, timeout_millis: int) -> None:
        self._attempt("put_object", timeout_millis)
        self.inner.put_object(name, options, content, timeout_millis)

    def read_object(
        self,
        name: ObjectName,
        offset: int,
        length: int,
        timeout_millis: int,
    ) -> tuple[bytes, ObjectMetadata]:
        self._attempt("read_object", timeout_millis)
        return self.inner.read_object(name, offset, length, timeout_millis)

    def get_object_metadata(self, name: ObjectName, timeout_millis: int) -> ObjectMetadata:
        self._attempt("get_object_metadata", timeout_millis)
        return self.inner.get_object_metadata(name, timeout_millis)

    def delete_object(self, name: ObjectName, timeout_millis: int) -> bool:
        self._attempt("delete_object", timeout_millis)
        return self.inner.delete_object(name, timeout_millis)

    def close(self) -> None:
        self.closed = True
        self.inner.close()


@pytest.fixture
def fast_policy() -> RetryPolicy:
    """Retry policy without backoff waits: at most 4 attempts."""
    return RetryPolicy(
        initial_retry_delay_millis=0,
        max_retry_delay_millis=0,
        retry_min_attempts=3,
        retry_max_attempts=4,
        total_retry_period_millis=60_000,
        request_timeout_millis=1000,
        max_request_timeout_millis=5000,
    )


@pytest.fixture
def memory() -> InMemoryTransport:
    """Memory transport with tiny chunks: 4-byte chunks, 16-byte writes."""
    return InMemoryTransport(chunk_size_bytes=4, max_write_size_bytes=16)


@pytest.fixture
def faulty(memory: InMemoryTransport) -> FaultInjectingTransport:
    return FaultInjectingTransport(memory)


@pytest.fixture
def client(faulty: FaultInjectingTransport, fast_policy: RetryPolicy) -> ObjectStoreClient:
    return ObjectStoreClient(faulty, fast_policy)


@pytest.fixture
def name() -> ObjectName:
    return ObjectName("bucket", "dir/object.bin")


@pytest.fixture
def fault_injecting() -> Callable[[Transport], FaultInjectingTransport]:
    """Factory wrapping any transport in a :class:`FaultInjectingTransport`."""
    return FaultInjectingTransport
