"""Immutable identity, option and metadata models."""

from __future__ import annotations

import dataclasses
import types
from typing import TYPE_CHECKING

from resilient_store._errors import InvalidObjectName

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime


@dataclasses.dataclass(frozen=True)
class ObjectName:
    """Immutable value object identifying one stored object.

    :param bucket: Bucket (namespace) holding the object.
    :param name: Object name within the bucket; may contain ``/``.
    :raises InvalidObjectName: If either part is empty or malformed.
    """

    bucket: str
    name: str

    def __post_init__(self) -> None:
        if not self.bucket:
            raise InvalidObjectName("Bucket name must not be empty", path=self.name or None)
        if "/" in self.bucket:
            raise InvalidObjectName("Bucket name must not contain '/'", path=self.bucket)
        if not self.name:
            raise InvalidObjectName("Object name must not be empty", path=self.bucket)
        if "\0" in self.bucket or "\0" in self.name:
            raise InvalidObjectName("Name contains null byte", path=f"{self.bucket}/{self.name}")

    def __str__(self) -> str:
        return f"/{self.bucket}/{self.name}"


@dataclasses.dataclass(frozen=True, eq=False)
class ObjectOptions:
    """Creation-time metadata attached to an object. Never changed afterwards.

    :param mime_type: Content type of the object.
    :param acl: Canned access control setting understood by the transport.
    :param cache_control: ``Cache-Control`` header value.
    :param content_encoding: ``Content-Encoding`` header value.
    :param content_disposition: ``Content-Disposition`` header value.
    :param user_metadata: Free-form key/value metadata. Copied into a
        read-only mapping, so later changes to the argument have no effect.
    """

    mime_type: str | None = None
    acl: str | None = None
    cache_control: str | None = None
    content_encoding: str | None = None
    content_disposition: str | None = None
    user_metadata: Mapping[str, str] = dataclasses.field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "user_metadata", types.MappingProxyType(dict(self.user_metadata)))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ObjectOptions):
            return self._key() == other._key()
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._key())

    def _key(self) -> tuple[object, ...]:
        return (
            self.mime_type,
            self.acl,
            self.cache_control,
            self.content_encoding,
            self.content_disposition,
            tuple(sorted(self.user_metadata.items())),
        )


@dataclasses.dataclass(frozen=True)
class ObjectMetadata:
    """Immutable point-in-time snapshot of an object's metadata.

    :param name: The object described.
    :param options: Options the object was created with.
    :param etag: Entity tag of the stored content.
    :param length: Object size in bytes.
    :param last_modified: Time the object was last written.
    """

    name: ObjectName
    options: ObjectOptions
    etag: str | None
    length: int
    last_modified: datetime | None = None


@dataclasses.dataclass(frozen=True)
class CreationToken:
    """Opaque handle for an open resumable write session.

    Transports subclass this with their own session state. A token is
    immutable: each chunk written produces a new one.

    :param name: The object being created.
    :param offset: Number of bytes already accepted by the session.
    """

    name: ObjectName
    offset: int
