"""Transport abstract base class — the single-attempt RPC contract."""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from resilient_store._models import CreationToken, ObjectMetadata, ObjectName, ObjectOptions


class Transport(abc.ABC):
    """Abstract base class for object-store transports.

    Every method performs exactly one attempt and never retries. Failures
    must be raised as ``resilient_store`` errors so that the classifier can
    tell addressing errors (``NotFound``, ``InvalidObjectName``) from
    transient ones (``UnknownFailure``, ``RPCFailed``, ``DeadlineExceeded``,
    ``ObjectStoreError``). Transport-native exceptions must never leak.
    """

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Unique identifier for this transport type (e.g. ``'memory'``, ``'s3'``)."""

    @property
    @abc.abstractmethod
    def chunk_size_bytes(self) -> int:
        """Granularity of resumable writes: every non-final chunk is a multiple of this."""

    @property
    @abc.abstractmethod
    def max_write_size_bytes(self) -> int:
        """Largest chunk accepted by a single ``continue_object_creation`` call."""

    @abc.abstractmethod
    def begin_object_creation(self, name: ObjectName, options: ObjectOptions, timeout_millis: int) -> CreationToken:
        """Open a resumable write session for ``name``."""

    @abc.abstractmethod
    def continue_object_creation(self, token: CreationToken, chunk: bytes, timeout_millis: int) -> CreationToken:
        """Append ``chunk`` to the session and return the token for the next call.

        Retrying with the same ``token`` must be safe.

        :raises ValueError: If ``len(chunk)`` is not a multiple of :attr:`chunk_size_bytes`.
        :raises NotFound: If the session no longer exists.
        """

    @abc.abstractmethod
    def finish_object_creation(self, token: CreationToken, chunk: bytes, timeout_millis: int) -> None:
        """Append the final ``chunk`` (possibly empty) and make the object visible.

        :raises NotFound: If the session no longer exists.
        """

    @abc.abstractmethod
    def put_object(self, name: ObjectName, options: ObjectOptions, content: bytes, timeout_millis: int) -> None:
        """Create or replace ``name`` with ``content`` in a single request."""

    @abc.abstractmethod
    def read_object(
        self,
        name: ObjectName,
        offset: int,
        length: int,
        timeout_millis: int,
    ) -> tuple[bytes, ObjectMetadata]:
        """Read up to ``length`` bytes starting at ``offset``.

        Returns fewer bytes near the end of the object and ``b""`` at or past it.

        :raises NotFound: If the object does not exist.
        """

    @abc.abstractmethod
    def get_object_metadata(self, name: ObjectName, timeout_millis: int) -> ObjectMetadata:
        """Fetch a metadata snapshot.

        :raises NotFound: If the object does not exist.
        """

    @abc.abstractmethod
    def delete_object(self, name: ObjectName, timeout_millis: int) -> bool:
        """Delete an object. Returns ``False`` if it did not exist."""

    def close(self) -> None:  # noqa: B027
        """Release resources. Default is a no-op."""
