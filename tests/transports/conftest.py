"""Transport test fixtures -- parameterized for conformance testing."""

from __future__ import annotations

import socket
import uuid
from typing import TYPE_CHECKING

import pytest

from resilient_store.transports._memory import InMemoryTransport

if TYPE_CHECKING:
    from collections.abc import Iterator

    from resilient_store._transport import Transport
    from resilient_store.transports._s3 import S3Transport

REGION = "us-east-1"


def _s3_available() -> bool:
    try:
        import boto3  # noqa: F401
        import moto  # noqa: F401
        import s3fs  # noqa: F401

        return True
    except ImportError:
        return False


def _free_port() -> int:
    with socket.socket() as s:
        s.bind(("", 0))
        return int(s.getsockname()[1])


@pytest.fixture(scope="session")
def moto_server() -> Iterator[str | None]:
    """Start a moto HTTP server for the test session.

    Server mode keeps s3fs/aiobotocore talking real HTTP instead of relying
    on in-process patching.
    """
    if not _s3_available():
        yield None
        return
    from moto.moto_server.threaded_moto_server import ThreadedMotoServer

    port = _free_port()
    server = ThreadedMotoServer(port=port, verbose=False)
    server.start()
    yield f"http://127.0.0.1:{port}"
    server.stop()


def create_bucket(endpoint_url: str, prefix: str = "test") -> str:
    """Create a uniquely named bucket on the moto server and return its name."""
    import boto3

    bucket = f"{prefix}-{uuid.uuid4().hex[:8]}"
    client = boto3.client(
        "s3",
        endpoint_url=endpoint_url,
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
        region_name=REGION,
    )
    client.create_bucket(Bucket=bucket)
    return bucket


def make_s3_transport(endpoint_url: str, **kwargs: object) -> S3Transport:
    from resilient_store.transports._s3 import S3Transport

    return S3Transport(
        key="testing",
        secret="testing",
        region_name=REGION,
        endpoint_url=endpoint_url,
        **kwargs,  # type: ignore[arg-type]
    )


_s3_param = pytest.param(
    "s3",
    marks=[pytest.mark.integration, pytest.mark.skipif(not _s3_available(), reason="moto/s3fs not installed")],
)


@pytest.fixture(params=["memory", _s3_param])
def target(request: pytest.FixtureRequest, moto_server: str | None) -> Iterator[tuple[Transport, str]]:
    """Parameterized ``(transport, bucket)`` fixture. Add new transports here."""
    if request.param == "memory":
        yield InMemoryTransport(chunk_size_bytes=1024, max_write_size_bytes=4096), "memory-bucket"
    elif request.param == "s3":
        assert moto_server is not None
        bucket = create_bucket(moto_server, prefix="conformance")
        t = make_s3_transport(moto_server, part_size_bytes=5 * 1024 * 1024)
        yield t, bucket
        t.close()
    else:
        pytest.skip(f"Unknown transport: {request.param}")


@pytest.fixture
def transport(target: tuple[Transport, str]) -> Transport:
    return target[0]


@pytest.fixture
def bucket(target: tuple[Transport, str]) -> str:
    return target[1]


@pytest.fixture
def s3(moto_server: str | None) -> Iterator[tuple[S3Transport, str]]:
    """An S3Transport with minimum-size parts against moto, plus a fresh bucket."""
    if moto_server is None:
        pytest.skip("moto/s3fs not installed")
    from resilient_store.transports._s3 import MIN_PART_SIZE_BYTES

    bucket = create_bucket(moto_server)
    transport = make_s3_transport(moto_server, part_size_bytes=MIN_PART_SIZE_BYTES)
    yield transport, bucket
    transport.close()
