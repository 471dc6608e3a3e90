"""Transport implementations."""

from resilient_store.transports._memory import InMemoryTransport, MemoryCreationToken
from resilient_store.transports._s3 import S3CreationToken, S3Transport

__all__ = ["InMemoryTransport", "MemoryCreationToken", "S3CreationToken", "S3Transport"]
