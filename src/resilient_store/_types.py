"""Type aliases used throughout resilient_store."""

from __future__ import annotations

from typing import BinaryIO, Union

WritableContent = Union[BinaryIO, bytes, bytearray, memoryview]  # noqa: UP007
