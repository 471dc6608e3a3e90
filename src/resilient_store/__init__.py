"""Retrying, size-unbounded object-store client over single-attempt transports."""

from resilient_store._channels import (
    DEFAULT_PREFETCH_BLOCK_SIZE,
    InputChannel,
    OutputChannel,
    PrefetchingInputChannel,
    SimpleInputChannel,
)
from resilient_store._classifier import (
    EXCEPTION_CLASSIFIER,
    ExceptionClassifier,
    UnclassifiedFailureError,
    Verdict,
    failure_kind,
)
from resilient_store._client import REQUEST_MAX_SIZE_BYTES, ObjectStoreClient
from resilient_store._config import ClientProfile, RegistryConfig, RetryPolicy, TransportConfig
from resilient_store._errors import (
    ChannelClosed,
    ClosedByInterrupt,
    DeadlineExceeded,
    FailureKind,
    InvalidObjectName,
    NotFound,
    ObjectStoreError,
    RPCFailed,
    UnknownFailure,
)
from resilient_store._models import CreationToken, ObjectMetadata, ObjectName, ObjectOptions
from resilient_store._registry import Registry, register_transport, transport_type
from resilient_store._transport import Transport

__version__ = "0.1.0"

__all__ = [
    # Core
    "ObjectStoreClient",
    "Registry",
    "Transport",
    "register_transport",
    "transport_type",
    "REQUEST_MAX_SIZE_BYTES",
    # Channels
    "OutputChannel",
    "InputChannel",
    "SimpleInputChannel",
    "PrefetchingInputChannel",
    "DEFAULT_PREFETCH_BLOCK_SIZE",
    # Models
    "ObjectName",
    "ObjectOptions",
    "ObjectMetadata",
    "CreationToken",
    # Retry
    "RetryPolicy",
    "ExceptionClassifier",
    "EXCEPTION_CLASSIFIER",
    "Verdict",
    "failure_kind",
    "UnclassifiedFailureError",
    # Config
    "TransportConfig",
    "ClientProfile",
    "RegistryConfig",
    # Errors
    "FailureKind",
    "ObjectStoreError",
    "NotFound",
    "InvalidObjectName",
    "UnknownFailure",
    "RPCFailed",
    "DeadlineExceeded",
    "ClosedByInterrupt",
    "ChannelClosed",
    # Version
    "__version__",
]
