"""Registry: named clients over shared transports, with one cancellation switch for all of them."""

from __future__ import annotations

import dataclasses
import importlib
import logging
import threading
from typing import TYPE_CHECKING

from resilient_store._classifier import EXCEPTION_CLASSIFIER
from resilient_store._client import ObjectStoreClient
from resilient_store._config import RegistryConfig

if TYPE_CHECKING:
    from types import TracebackType

    from resilient_store._classifier import ExceptionClassifier
    from resilient_store._config import ClientProfile
    from resilient_store._transport import Transport

log = logging.getLogger(__name__)

# Imported on first use, so an unused S3 transport never needs s3fs.
_BUILTIN_TRANSPORTS = {
    "memory": ("resilient_store.transports._memory", "InMemoryTransport"),
    "s3": ("resilient_store.transports._s3", "S3Transport"),
}

_TRANSPORT_TYPES: dict[str, type[Transport]] = {}


def register_transport(type_name: str, cls: type[Transport], *, replace: bool = False) -> None:
    """Make ``cls`` available to :class:`TransportConfig` entries of type ``type_name``.

    :param type_name: The type identifier used in configs.
    :param cls: Transport class, called with the config's options as keyword arguments.
    :param replace: Allow rebinding a type name already bound to another class.
    :raises ValueError: If ``type_name`` is taken and ``replace`` is false.
    """
    current = _TRANSPORT_TYPES.get(type_name)
    if current is not None and current is not cls and not replace:
        raise ValueError(f"Transport type '{type_name}' is already bound to {current.__qualname__}")
    _TRANSPORT_TYPES[type_name] = cls


def transport_type(type_name: str) -> type[Transport]:
    """Resolve a config type name to its transport class, loading built-ins on demand.

    :raises ValueError: If nothing is registered under ``type_name``.
    """
    if type_name not in _TRANSPORT_TYPES and type_name in _BUILTIN_TRANSPORTS:
        module_name, attr = _BUILTIN_TRANSPORTS[type_name]
        _TRANSPORT_TYPES[type_name] = getattr(importlib.import_module(module_name), attr)
    try:
        return _TRANSPORT_TYPES[type_name]
    except KeyError:
        known = sorted(set(_TRANSPORT_TYPES) | set(_BUILTIN_TRANSPORTS))
        raise ValueError(f"Unknown transport type '{type_name}'; known types: {known}") from None


def _classifier_for(profile: ClientProfile) -> ExceptionClassifier:
    if profile.strict:
        return dataclasses.replace(EXCEPTION_CLASSIFIER, strict=True)
    return EXCEPTION_CLASSIFIER


class Registry:
    """Hands out one :class:`ObjectStoreClient` per configured profile.

    Transports are created on first use and shared by every client whose
    profile names them. All clients share the registry's cancellation event:
    after :meth:`cancel`, their pending retry waits end and no further
    attempt starts, each operation failing with ``ClosedByInterrupt``.

    :meth:`close` cancels, closes the transports and forgets the clients.
    The registry can be used again afterwards; it then builds fresh
    transports and clients with a new cancellation event.

    :param config: Optional configuration. Validates immediately.
    :raises ValueError: If a client profile names an undefined transport.
    """

    def __init__(self, config: RegistryConfig | None = None) -> None:
        self._config = config if config is not None else RegistryConfig()
        self._config.validate()
        self._transports: dict[str, Transport] = {}
        self._clients: dict[str, ObjectStoreClient] = {}
        self._cancel_event = threading.Event()
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"Registry(clients={sorted(self._config.clients)!r})"

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def get_client(self, name: str) -> ObjectStoreClient:
        """Return the client for profile ``name``, building it on the first request.

        :raises KeyError: If no client profile with this name exists.
        :raises ValueError: If the profile's transport cannot be created.
        """
        profile = self._config.clients.get(name)
        if profile is None:
            raise KeyError(f"No client profile named '{name}'; profiles: {sorted(self._config.clients)}")
        with self._lock:
            client = self._clients.get(name)
            if client is None:
                client = ObjectStoreClient(
                    self._transport(profile.transport),
                    profile.retry,
                    classifier=_classifier_for(profile),
                    cancel_event=self._cancel_event,
                )
                self._clients[name] = client
        return client

    def cancel(self) -> None:
        """Interrupt retries in every client handed out so far or later, until :meth:`close`."""
        if not self._cancel_event.is_set():
            log.info("Cancelling retries for %d client(s)", len(self._clients))
        self._cancel_event.set()

    def close(self) -> None:
        """Cancel pending retries and close every transport created so far."""
        with self._lock:
            self._cancel_event.set()
            transports, self._transports = self._transports, {}
            self._clients = {}
            self._cancel_event = threading.Event()
        for name, transport in transports.items():
            log.debug("Closing transport '%s'", name)
            transport.close()

    def _transport(self, name: str) -> Transport:
        transport = self._transports.get(name)
        if transport is None:
            cfg = self._config.transports[name]
            cls = transport_type(cfg.type)
            try:
                transport = cls(**cfg.options)
            except TypeError as exc:
                raise ValueError(
                    f"Invalid options {sorted(cfg.options)} for transport '{name}' ({cfg.type}): {exc}"
                ) from exc
            log.debug("Created %s transport '%s'", cfg.type, name)
            self._transports[name] = transport
        return transport

    def __enter__(self) -> Registry:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()
