"""Tests for identity, option and metadata models."""

from __future__ import annotations

import dataclasses

import pytest

from resilient_store._errors import InvalidObjectName
from resilient_store._models import CreationToken, ObjectMetadata, ObjectName, ObjectOptions


class TestObjectName:
    def test_str(self) -> None:
        assert str(ObjectName("bucket", "a/b.txt")) == "/bucket/a/b.txt"

    def test_equality_and_hash(self) -> None:
        assert ObjectName("b", "x") == ObjectName("b", "x")
        assert ObjectName("b", "x") != ObjectName("c", "x")
        assert len({ObjectName("b", "x"), ObjectName("b", "x")}) == 1

    def test_immutable(self) -> None:
        name = ObjectName("b", "x")
        with pytest.raises(dataclasses.FrozenInstanceError):
            name.bucket = "c"  # type: ignore[misc]

    @pytest.mark.parametrize(
        ("bucket", "name"),
        [("", "x"), ("b", ""), ("a/b", "x"), ("b", "x\0y"), ("b\0", "x")],
    )
    def test_invalid(self, bucket: str, name: str) -> None:
        with pytest.raises(InvalidObjectName):
            ObjectName(bucket, name)


class TestObjectOptions:
    def test_defaults(self) -> None:
        opts = ObjectOptions()
        assert opts.mime_type is None
        assert opts.acl is None
        assert opts.user_metadata == {}

    def test_equality_ignores_metadata_order(self) -> None:
        a = ObjectOptions(mime_type="text/plain", user_metadata={"a": "1", "b": "2"})
        b = ObjectOptions(mime_type="text/plain", user_metadata={"b": "2", "a": "1"})
        assert a == b
        assert hash(a) == hash(b)

    def test_inequality(self) -> None:
        assert ObjectOptions(mime_type="text/plain") != ObjectOptions(mime_type="application/json")
        assert ObjectOptions() != "options"

    def test_immutable(self) -> None:
        with pytest.raises(dataclasses.FrozenInstanceError):
            ObjectOptions().mime_type = "x"  # type: ignore[misc]

    def test_user_metadata_is_read_only(self) -> None:
        opts = ObjectOptions(user_metadata={"owner": "etl"})
        with pytest.raises(TypeError):
            opts.user_metadata["owner"] = "someone-else"  # type: ignore[index]
        assert opts.user_metadata == {"owner": "etl"}

    def test_user_metadata_copied_from_argument(self) -> None:
        source = {"owner": "etl"}
        opts = ObjectOptions(user_metadata=source)
        before = hash(opts)
        source["owner"] = "someone-else"
        source["extra"] = "1"
        assert opts.user_metadata == {"owner": "etl"}
        assert hash(opts) == before
        assert opts == ObjectOptions(user_metadata={"owner": "etl"})


class TestObjectMetadata:
    def test_fields(self) -> None:
        name = ObjectName("b", "x")
        md = ObjectMetadata(name=name, options=ObjectOptions(), etag="abc", length=3)
        assert md.name == name
        assert md.length == 3
        assert md.last_modified is None

    def test_immutable(self) -> None:
        md = ObjectMetadata(name=ObjectName("b", "x"), options=ObjectOptions(), etag=None, length=0)
        with pytest.raises(dataclasses.FrozenInstanceError):
            md.length = 1  # type: ignore[misc]


class TestCreationToken:
    def test_advancing_produces_new_token(self) -> None:
        token = CreationToken(name=ObjectName("b", "x"), offset=0)
        advanced = dataclasses.replace(token, offset=16)
        assert token.offset == 0
        assert advanced.offset == 16
