"""Error handling — NotFound, InvalidObjectName, exhausted retries, cancellation.

Demonstrates which failures are retried, which are not, and how they
surface to the caller with structured attributes.
"""

from __future__ import annotations

import logging
import threading

from resilient_store import (
    ClosedByInterrupt,
    InvalidObjectName,
    NotFound,
    ObjectName,
    ObjectOptions,
    ObjectStoreClient,
    ObjectStoreError,
    RetryPolicy,
)
from resilient_store.transports import InMemoryTransport


class FlakyTransport(InMemoryTransport):
    """Fails every put with a connection error."""

    def put_object(self, name: ObjectName, options: ObjectOptions, content: bytes, timeout_millis: int) -> None:
        raise ConnectionResetError("connection reset by peer")


if __name__ == "__main__":
    # Each retry is logged at WARNING by resilient_store._retry
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
    fast = RetryPolicy(initial_retry_delay_millis=10, max_retry_delay_millis=50, retry_max_attempts=3)

    client = ObjectStoreClient(InMemoryTransport(), fast)

    # --- NotFound: never retried ---
    try:
        client.get_metadata(ObjectName("bucket", "nonexistent.txt"))
    except NotFound as exc:
        print(f"NotFound: {exc}")
        print(f"  path={exc.path}, transport={exc.transport}")

    # --- InvalidObjectName: rejected before any request ---
    try:
        ObjectName("bad/bucket", "file.txt")
    except InvalidObjectName as exc:
        print(f"\nInvalidObjectName: {exc}")

    # --- Transient failures: retried, then the last one surfaces ---
    flaky = ObjectStoreClient(FlakyTransport(), fast)
    try:
        flaky.write(ObjectName("bucket", "file.txt"), b"data")
    except ConnectionResetError as exc:
        print(f"\nGave up after {fast.retry_max_attempts} attempts: {exc}")

    # --- Cancellation: once the event is set, no attempt starts ---
    cancel = threading.Event()
    cancel.set()
    cancelled = ObjectStoreClient(FlakyTransport(), fast, cancel_event=cancel)
    try:
        cancelled.write(ObjectName("bucket", "file.txt"), b"data")
    except ClosedByInterrupt as exc:
        print(f"\nClosedByInterrupt: {exc}")

    # --- Catch any resilient-store error with the base class ---
    for obj in ["missing-1.txt", "missing-2.txt"]:
        try:
            client.get_metadata(ObjectName("bucket", obj))
        except ObjectStoreError as exc:
            print(f"\nObjectStoreError ({type(exc).__name__}): {exc}")
