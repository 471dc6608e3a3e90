"""In-memory transport — stdlib-only reference implementation."""

from __future__ import annotations

import dataclasses
import hashlib
import threading
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from resilient_store._errors import NotFound
from resilient_store._models import CreationToken, ObjectMetadata
from resilient_store._transport import Transport

if TYPE_CHECKING:
    from resilient_store._models import ObjectName, ObjectOptions


@dataclasses.dataclass(frozen=True)
class MemoryCreationToken(CreationToken):
    """Creation token for an :class:`InMemoryTransport` session.

    :param session_id: Identifier of the open session.
    """

    session_id: str


@dataclasses.dataclass
class _Session:
    session_id: str
    name: ObjectName
    options: ObjectOptions
    data: bytearray = dataclasses.field(default_factory=bytearray)


class InMemoryTransport(Transport):
    """Transport keeping objects in a process-local dict. Thread-safe.

    Timeouts are accepted and ignored. Chunk writes are keyed by offset, so
    repeating a chunk with the same token rewrites the same byte range.

    :param chunk_size_bytes: Granularity of resumable writes.
    :param max_write_size_bytes: Largest chunk accepted per call.
    :raises ValueError: If the sizes are not positive or inconsistent.
    """

    def __init__(self, chunk_size_bytes: int = 256 * 1024, max_write_size_bytes: int = 8 * 1024 * 1024) -> None:
        if chunk_size_bytes <= 0:
            raise ValueError("chunk_size_bytes must be positive")
        if max_write_size_bytes < chunk_size_bytes:
            raise ValueError("max_write_size_bytes must be >= chunk_size_bytes")
        self._chunk_size = chunk_size_bytes
        self._max_write_size = max_write_size_bytes
        self._lock = threading.Lock()
        self._objects: dict[ObjectName, tuple[bytes, ObjectMetadata]] = {}
        self._sessions: dict[str, _Session] = {}

    @property
    def name(self) -> str:
        return "memory"

    @property
    def chunk_size_bytes(self) -> int:
        return self._chunk_size

    @property
    def max_write_size_bytes(self) -> int:
        return self._max_write_size

    # region: helpers
    def _commit(self, name: ObjectName, options: ObjectOptions, data: bytes) -> None:
        metadata = ObjectMetadata(
            name=name,
            options=options,
            etag=hashlib.md5(data).hexdigest(),  # noqa: S324
            length=len(data),
            last_modified=datetime.now(tz=timezone.utc),
        )
        self._objects[name] = (data, metadata)

    def _append(self, token: CreationToken, chunk: bytes) -> _Session:
        if not isinstance(token, MemoryCreationToken):
            raise TypeError(f"Expected MemoryCreationToken, got {type(token).__name__}")
        session = self._sessions.get(token.session_id)
        if session is None:
            raise NotFound(f"Upload session not found: {token.session_id}", path=str(token.name), transport=self.name)
        if token.offset > len(session.data):
            raise ValueError(f"Chunk offset {token.offset} is past the session end {len(session.data)}")
        session.data[token.offset :] = chunk
        return session

    # endregion

    # region: resumable writes
    def begin_object_creation(self, name: ObjectName, options: ObjectOptions, timeout_millis: int) -> CreationToken:
        session_id = uuid.uuid4().hex
        with self._lock:
            self._sessions[session_id] = _Session(session_id=session_id, name=name, options=options)
        return MemoryCreationToken(name=name, offset=0, session_id=session_id)

    def continue_object_creation(self, token: CreationToken, chunk: bytes, timeout_millis: int) -> CreationToken:
        if len(chunk) % self._chunk_size:
            raise ValueError(f"Chunk of {len(chunk)} bytes is not a multiple of {self._chunk_size}")
        if len(chunk) > self._max_write_size:
            raise ValueError(f"Chunk of {len(chunk)} bytes exceeds {self._max_write_size}")
        with self._lock:
            self._append(token, chunk)
        return dataclasses.replace(token, offset=token.offset + len(chunk))

    def finish_object_creation(self, token: CreationToken, chunk: bytes, timeout_millis: int) -> None:
        with self._lock:
            session = self._append(token, chunk)
            self._commit(session.name, session.options, bytes(session.data))
            del self._sessions[session.session_id]

    # endregion

    # region: single-request operations
    def put_object(self, name: ObjectName, options: ObjectOptions, content: bytes, timeout_millis: int) -> None:
        with self._lock:
            self._commit(name, options, bytes(content))

    def read_object(
        self,
        name: ObjectName,
        offset: int,
        length: int,
        timeout_millis: int,
    ) -> tuple[bytes, ObjectMetadata]:
        if offset < 0 or length < 0:
            raise ValueError(f"Invalid range: offset={offset}, length={length}")
        with self._lock:
            entry = self._objects.get(name)
        if entry is None:
            raise NotFound(f"Object not found: {name}", path=str(name), transport=self.name)
        data, metadata = entry
        return data[offset : offset + length], metadata

    def get_object_metadata(self, name: ObjectName, timeout_millis: int) -> ObjectMetadata:
        with self._lock:
            entry = self._objects.get(name)
        if entry is None:
            raise NotFound(f"Object not found: {name}", path=str(name), transport=self.name)
        return entry[1]

    def delete_object(self, name: ObjectName, timeout_millis: int) -> bool:
        with self._lock:
            return self._objects.pop(name, None) is not None

    # endregion
