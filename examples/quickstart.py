"""Quickstart — minimal config, write, and read with resilient-store.

Demonstrates:
- Creating a RegistryConfig with an in-memory transport
- Opening a Registry and getting a client
- Writing an object, reading it back, and checking its metadata
"""

from __future__ import annotations

from resilient_store import (
    ClientProfile,
    ObjectName,
    ObjectOptions,
    Registry,
    RegistryConfig,
    RetryPolicy,
    TransportConfig,
)

if __name__ == "__main__":
    config = RegistryConfig(
        transports={"mem": TransportConfig(type="memory")},
        clients={"data": ClientProfile(transport="mem", retry=RetryPolicy(retry_max_attempts=4))},
    )

    with Registry(config) as registry:
        client = registry.get_client("data")
        name = ObjectName("reports", "2024/hello.txt")

        # Small payloads are sent in one request
        client.write(name, b"Hello, world!", ObjectOptions(mime_type="text/plain"))

        # Read it back
        with client.open_read_channel(name) as channel:
            print(f"Content: {channel.readall()!r}")

        # Check metadata
        md = client.get_metadata(name)
        print(f"Size: {md.length} bytes")
        print(f"ETag: {md.etag}")
        print(f"Modified: {md.last_modified}")

        print(f"Deleted: {client.delete(name)}")
