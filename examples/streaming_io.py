"""Streaming I/O — output channels, large writes, and prefetching reads.

Demonstrates how payloads larger than a single request are streamed
through a resumable write session, and how read channels fetch lazily.
"""

from __future__ import annotations

import io

from resilient_store import REQUEST_MAX_SIZE_BYTES, ObjectName, ObjectStoreClient, RetryPolicy
from resilient_store.transports import InMemoryTransport

if __name__ == "__main__":
    transport = InMemoryTransport(chunk_size_bytes=64 * 1024, max_write_size_bytes=1024 * 1024)
    client = ObjectStoreClient(transport, RetryPolicy())

    # --- Write through an output channel ---
    name = ObjectName("logs", "app/2024-01-01.log")
    with client.create_or_replace(name) as channel:
        for i in range(10_000):
            channel.write(f"line {i}\n".encode())
    print(f"Streamed {client.get_metadata(name).length} bytes through an output channel.")

    # --- Large payloads switch to a resumable session automatically ---
    big = ObjectName("blobs", "large.bin")
    client.write(big, io.BytesIO(b"X" * (REQUEST_MAX_SIZE_BYTES + 1)))
    print(f"\nWrote {client.get_metadata(big).length} bytes (above the {REQUEST_MAX_SIZE_BYTES}-byte request limit).")

    # --- Chunked reads: nothing is fetched until the first read ---
    with client.open_read_channel(name) as reader:
        total = 0
        chunk_count = 0
        while True:
            chunk = reader.read(4096)
            if not chunk:
                break
            total += len(chunk)
            chunk_count += 1
    print(f"\nRead {name} in {chunk_count} chunk(s), {total} bytes total.")

    # --- Prefetching reads: the next block is fetched in the background ---
    with client.open_prefetching_read_channel(big, start_position=REQUEST_MAX_SIZE_BYTES - 4) as reader:
        print(f"\nTail of large.bin: {reader.readall()!r}")

    print("\nDone!")
