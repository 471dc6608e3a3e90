"""S3-compatible object storage transport using s3fs."""

from __future__ import annotations

import dataclasses
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from resilient_store._errors import (
    DeadlineExceeded,
    NotFound,
    ObjectStoreError,
    RPCFailed,
    UnknownFailure,
)
from resilient_store._models import CreationToken, ObjectMetadata, ObjectOptions
from resilient_store._transport import Transport

if TYPE_CHECKING:
    from collections.abc import Iterator

    from resilient_store._models import ObjectName

log = logging.getLogger(__name__)

# S3 rejects non-final multipart parts smaller than this.
MIN_PART_SIZE_BYTES = 5 * 1024 * 1024


@dataclasses.dataclass(frozen=True)
class S3CreationToken(CreationToken):
    """Creation token for an S3 multipart upload.

    :param upload_id: Multipart upload identifier issued by S3.
    :param parts: ``(part_number, etag)`` pairs of the parts uploaded so far.
    :param options: Options the object is created with.
    """

    upload_id: str
    parts: tuple[tuple[int, str], ...] = ()
    options: ObjectOptions = dataclasses.field(default_factory=ObjectOptions)


class S3Transport(Transport):
    """S3-compatible transport using s3fs.

    Resumable write sessions are S3 multipart uploads, one part per
    ``continue_object_creation`` call. Per-call timeouts are advisory: the
    s3fs client applies its own configured timeouts.

    Completion is not idempotent in S3: once an upload is completed its id is
    gone. A finish retried after a lost response therefore sees
    ``NoSuchUpload``, and counts as done when the object exists with the
    session's full length. Otherwise the failure surfaces as :class:`NotFound`.

    :param endpoint_url: Custom endpoint URL (e.g. for MinIO).
    :param key: AWS access key ID.
    :param secret: AWS secret access key.
    :param region_name: AWS region name.
    :param part_size_bytes: Size of each multipart part (at least 5 MiB).
    :param client_options: Additional options passed to s3fs.
    """

    def __init__(
        self,
        *,
        endpoint_url: str | None = None,
        key: str | None = None,
        secret: str | None = None,
        region_name: str | None = None,
        part_size_bytes: int = 8 * 1024 * 1024,
        client_options: dict[str, Any] | None = None,
    ) -> None:
        if part_size_bytes < MIN_PART_SIZE_BYTES:
            raise ValueError(f"part_size_bytes must be at least {MIN_PART_SIZE_BYTES}")
        self._endpoint_url = endpoint_url
        self._key = key
        self._secret = secret
        self._region_name = region_name
        self._part_size = part_size_bytes
        self._client_options = client_options or {}
        self._fs_instance: Any = None

    @property
    def name(self) -> str:
        return "s3"

    @property
    def chunk_size_bytes(self) -> int:
        return self._part_size

    @property
    def max_write_size_bytes(self) -> int:
        return self._part_size

    # region: lazy filesystem

    @property
    def _fs(self) -> Any:
        if self._fs_instance is None:
            import s3fs  # type: ignore[import-untyped]

            opts: dict[str, Any] = dict(self._client_options)
            if self._endpoint_url is not None:
                opts["endpoint_url"] = self._endpoint_url
            if self._key is not None:
                opts["key"] = self._key
            if self._secret is not None:
                opts["secret"] = self._secret
            if self._region_name is not None:
                client_kwargs: dict[str, Any] = opts.setdefault("client_kwargs", {})
                client_kwargs["region_name"] = self._region_name
            opts.setdefault("anon", False)
            log.info("Creating S3 filesystem (endpoint=%s)", self._endpoint_url or "default")
            self._fs_instance = s3fs.S3FileSystem(**opts)
        return self._fs_instance

    # endregion

    # region: error mapping

    @contextmanager
    def _errors(self, name: ObjectName) -> Iterator[None]:
        """Map s3fs/botocore exceptions to resilient_store errors."""
        path = str(name)
        try:
            yield
        except ObjectStoreError:
            raise
        except FileNotFoundError:
            raise NotFound(f"Not found: {path}", path=path, transport=self.name) from None
        except Exception as exc:
            raise self._classify_error(exc, path) from exc

    def _classify_error(self, exc: Exception, path: str) -> ObjectStoreError:
        """Classify an unknown exception into a resilient_store error type."""
        msg = str(exc).lower()
        if "nosuchupload" in msg or "nosuchkey" in msg or "nosuchbucket" in msg or "404" in msg:
            return NotFound(f"Not found: {path}", path=path, transport=self.name)
        if "timeout" in msg or "timed out" in msg:
            return DeadlineExceeded(str(exc), path=path, transport=self.name)
        if any(kw in msg for kw in ("endpoint", "connect", "dns", "name or service", "503", "slowdown")):
            return RPCFailed(str(exc), path=path, transport=self.name)
        return UnknownFailure(str(exc), path=path, transport=self.name)

    # endregion

    # region: helpers

    @staticmethod
    def _s3_path(name: ObjectName) -> str:
        return f"{name.bucket}/{name.name}"

    @staticmethod
    def _request_args(options: ObjectOptions) -> dict[str, Any]:
        args: dict[str, Any] = {}
        if options.mime_type is not None:
            args["ContentType"] = options.mime_type
        if options.acl is not None:
            args["ACL"] = options.acl
        if options.cache_control is not None:
            args["CacheControl"] = options.cache_control
        if options.content_encoding is not None:
            args["ContentEncoding"] = options.content_encoding
        if options.content_disposition is not None:
            args["ContentDisposition"] = options.content_disposition
        if options.user_metadata:
            args["Metadata"] = dict(options.user_metadata)
        return args

    def _info_to_metadata(self, info: dict[str, Any], name: ObjectName) -> ObjectMetadata:
        """Convert an s3fs info dict to an ObjectMetadata."""
        modified = info.get("LastModified", info.get("last_modified"))
        if isinstance(modified, str):
            modified = datetime.fromisoformat(modified)
        if modified is not None and modified.tzinfo is None:
            modified = modified.replace(tzinfo=timezone.utc)
        etag = info.get("ETag")
        options = ObjectOptions(
            mime_type=info.get("ContentType"),
            cache_control=info.get("CacheControl"),
            content_encoding=info.get("ContentEncoding"),
            content_disposition=info.get("ContentDisposition"),
            user_metadata=dict(info.get("Metadata") or {}),
        )
        return ObjectMetadata(
            name=name,
            options=options,
            etag=etag.strip('"') if isinstance(etag, str) else None,
            length=int(info.get("size", info.get("Size", 0)) or 0),
            last_modified=modified,
        )

    def _info(self, name: ObjectName) -> dict[str, Any]:
        info: dict[str, Any] = self._fs.info(self._s3_path(name), refresh=True)
        if info.get("type") != "file":
            raise NotFound(f"Not found: {name}", path=str(name), transport=self.name)
        return info

    # endregion

    # region: resumable writes

    def begin_object_creation(self, name: ObjectName, options: ObjectOptions, timeout_millis: int) -> CreationToken:
        with self._errors(name):
            resp = self._fs.call_s3(
                "create_multipart_upload", Bucket=name.bucket, Key=name.name, **self._request_args(options)
            )
            return S3CreationToken(name=name, offset=0, upload_id=resp["UploadId"], options=options)

    def _upload_part(self, token: S3CreationToken, chunk: bytes) -> S3CreationToken:
        part_number = len(token.parts) + 1
        resp = self._fs.call_s3(
            "upload_part",
            Bucket=token.name.bucket,
            Key=token.name.name,
            UploadId=token.upload_id,
            PartNumber=part_number,
            Body=chunk,
        )
        return dataclasses.replace(
            token,
            offset=token.offset + len(chunk),
            parts=(*token.parts, (part_number, resp["ETag"])),
        )

    def continue_object_creation(self, token: CreationToken, chunk: bytes, timeout_millis: int) -> CreationToken:
        if not isinstance(token, S3CreationToken):
            raise TypeError(f"Expected S3CreationToken, got {type(token).__name__}")
        if len(chunk) % self._part_size:
            raise ValueError(f"Chunk of {len(chunk)} bytes is not a multiple of {self._part_size}")
        with self._errors(token.name):
            return self._upload_part(token, chunk)

    def finish_object_creation(self, token: CreationToken, chunk: bytes, timeout_millis: int) -> None:
        if not isinstance(token, S3CreationToken):
            raise TypeError(f"Expected S3CreationToken, got {type(token).__name__}")
        name = token.name
        with self._errors(name):
            if not token.parts and not chunk:
                # S3 refuses to complete an upload without parts; an empty object is a plain PUT.
                self._fs.call_s3("abort_multipart_upload", Bucket=name.bucket, Key=name.name, UploadId=token.upload_id)
                self._fs.call_s3(
                    "put_object", Bucket=name.bucket, Key=name.name, Body=b"", **self._request_args(token.options)
                )
            else:
                try:
                    self._complete_upload(token, chunk)
                except Exception as exc:
                    if "nosuchupload" not in str(exc).lower():
                        raise
                    if not self._was_completed(name, token.offset + len(chunk)):
                        raise
                    log.info("Upload %s for %s was already completed by an earlier attempt", token.upload_id, name)
            self._fs.invalidate_cache(self._s3_path(name))

    def _complete_upload(self, token: S3CreationToken, chunk: bytes) -> None:
        if chunk:
            token = self._upload_part(token, chunk)
        self._fs.call_s3(
            "complete_multipart_upload",
            Bucket=token.name.bucket,
            Key=token.name.name,
            UploadId=token.upload_id,
            MultipartUpload={"Parts": [{"PartNumber": n, "ETag": etag} for n, etag in token.parts]},
        )

    def _was_completed(self, name: ObjectName, length: int) -> bool:
        """Whether ``name`` exists with ``length`` bytes, i.e. a lost completion response."""
        try:
            info = self._info(name)
        except (FileNotFoundError, NotFound):
            return False
        return int(info.get("size", info.get("Size", 0)) or 0) == length

    # endregion

    # region: single-request operations

    def put_object(self, name: ObjectName, options: ObjectOptions, content: bytes, timeout_millis: int) -> None:
        with self._errors(name):
            self._fs.call_s3(
                "put_object", Bucket=name.bucket, Key=name.name, Body=bytes(content), **self._request_args(options)
            )
            self._fs.invalidate_cache(self._s3_path(name))

    def read_object(
        self,
        name: ObjectName,
        offset: int,
        length: int,
        timeout_millis: int,
    ) -> tuple[bytes, ObjectMetadata]:
        if offset < 0 or length < 0:
            raise ValueError(f"Invalid range: offset={offset}, length={length}")
        with self._errors(name):
            metadata = self._info_to_metadata(self._info(name), name)
            end = min(offset + length, metadata.length)
            if offset >= end:
                return b"", metadata
            data = self._fs.cat_file(self._s3_path(name), start=offset, end=end)
            return bytes(data), metadata

    def get_object_metadata(self, name: ObjectName, timeout_millis: int) -> ObjectMetadata:
        with self._errors(name):
            return self._info_to_metadata(self._info(name), name)

    def delete_object(self, name: ObjectName, timeout_millis: int) -> bool:
        with self._errors(name):
            try:
                self._info(name)
            except (FileNotFoundError, NotFound):
                return False
            self._fs.rm_file(self._s3_path(name))
            self._fs.invalidate_cache(self._s3_path(name))
            return True

    # endregion

    # region: lifecycle

    def close(self) -> None:
        if self._fs_instance is not None:
            self._fs_instance.clear_instance_cache()
            self._fs_instance = None

    # endregion
