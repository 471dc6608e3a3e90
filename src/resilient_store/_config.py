"""Configuration model — immutable data containers describing retry policies, transports and clients."""

from __future__ import annotations

import dataclasses

from resilient_store._retry import current_attempt


@dataclasses.dataclass(frozen=True)
class RetryPolicy:
    """Immutable retry configuration shared by every operation of a client.

    All durations are in milliseconds.

    :param initial_retry_delay_millis: Wait before the second attempt.
    :param max_retry_delay_millis: Upper bound for any single wait.
    :param retry_delay_backoff_factor: Multiplier applied to the wait after each attempt.
    :param retry_min_attempts: Attempts always made before the total period may stop retrying.
    :param retry_max_attempts: Hard upper bound on attempts.
    :param total_retry_period_millis: Once elapsed (and ``retry_min_attempts`` made), stop retrying.
    :param request_timeout_millis: Timeout requested for the first attempt.
    :param request_timeout_retry_factor: Multiplier applied to the timeout for each further attempt.
    :param max_request_timeout_millis: Upper bound for any per-attempt timeout.
    :raises ValueError: If a value is out of range.
    """

    initial_retry_delay_millis: int = 1000
    max_retry_delay_millis: int = 32000
    retry_delay_backoff_factor: float = 2.0
    retry_min_attempts: int = 3
    retry_max_attempts: int = 6
    total_retry_period_millis: int = 10000
    request_timeout_millis: int = 30000
    request_timeout_retry_factor: float = 1.0
    max_request_timeout_millis: int = 60000

    def __post_init__(self) -> None:
        if self.initial_retry_delay_millis < 0 or self.max_retry_delay_millis < 0:
            raise ValueError("Retry delays must not be negative")
        if self.max_retry_delay_millis < self.initial_retry_delay_millis:
            raise ValueError("max_retry_delay_millis must be >= initial_retry_delay_millis")
        if self.retry_delay_backoff_factor < 1.0:
            raise ValueError("retry_delay_backoff_factor must be >= 1.0")
        if self.retry_min_attempts < 1:
            raise ValueError("retry_min_attempts must be >= 1")
        if self.retry_max_attempts < self.retry_min_attempts:
            raise ValueError("retry_max_attempts must be >= retry_min_attempts")
        if self.total_retry_period_millis < 0:
            raise ValueError("total_retry_period_millis must not be negative")
        if self.request_timeout_millis <= 0:
            raise ValueError("request_timeout_millis must be positive")
        if self.request_timeout_retry_factor < 1.0:
            raise ValueError("request_timeout_retry_factor must be >= 1.0")
        if self.max_request_timeout_millis < self.request_timeout_millis:
            raise ValueError("max_request_timeout_millis must be >= request_timeout_millis")

    def with_request_timeout_retry_factor(self, factor: float) -> RetryPolicy:
        """Return a copy with a different per-attempt timeout factor."""
        return dataclasses.replace(self, request_timeout_retry_factor=factor)

    def request_timeout_millis_for_current_attempt(self) -> int:
        """Timeout for the attempt currently running in this context.

        The first attempt (and any call outside a retry run) gets
        ``request_timeout_millis``; each later attempt is scaled by
        ``request_timeout_retry_factor``, capped at ``max_request_timeout_millis``.
        """
        scaled = self.request_timeout_millis * self.request_timeout_retry_factor ** (current_attempt() - 1)
        return round(min(scaled, self.max_request_timeout_millis))

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> RetryPolicy:
        """Construct from a plain dict (e.g. a parsed ``retry`` table).

        :raises TypeError: If ``data`` contains an unknown key.
        """
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise TypeError(f"Unknown retry policy options: {unknown}")
        return cls(**data)  # type: ignore[arg-type]


def _table(value: object, where: str) -> dict[str, object]:
    if not isinstance(value, dict):
        raise TypeError(f"{where}: expected a table, got {type(value).__name__}")
    return value


def _reject_unknown(table: dict[str, object], known: set[str], where: str) -> None:
    unknown = sorted(set(table) - known)
    if unknown:
        raise TypeError(f"{where}: unknown keys {unknown}, expected some of {sorted(known)}")


def _name_field(table: dict[str, object], key: str, where: str) -> str:
    value = table.get(key)
    if not isinstance(value, str) or not value:
        raise TypeError(f"{where}: '{key}' must be a non-empty string")
    return value


@dataclasses.dataclass(frozen=True)
class TransportConfig:
    """Describes a transport instance.

    :param type: Transport type identifier (e.g. ``"memory"``, ``"s3"``).
    :param options: Keyword arguments for the transport constructor.
    """

    type: str
    options: dict[str, object] = dataclasses.field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, object], where: str = "transport") -> TransportConfig:
        """Parse a ``{"type": ..., "options": {...}}`` table.

        :raises TypeError: If ``type`` is missing, ``options`` is not a table,
            or an unknown key is present.
        """
        _reject_unknown(data, {"type", "options"}, where)
        options = _table(data.get("options", {}), f"{where}.options")
        return cls(type=_name_field(data, "type", where), options=dict(options))


@dataclasses.dataclass(frozen=True)
class ClientProfile:
    """Describes a named client.

    :param transport: Name of the transport config to use.
    :param retry: Retry policy for the client's operations.
    :param strict: Classify with a strict classifier, raising
        :class:`UnclassifiedFailureError` for failures outside its tables
        instead of aborting with a warning.
    """

    transport: str
    retry: RetryPolicy = dataclasses.field(default_factory=RetryPolicy)
    strict: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, object], where: str = "client") -> ClientProfile:
        """Parse a ``{"transport": ..., "retry": {...}, "strict": bool}`` table.

        :raises TypeError: On a missing transport name, a malformed ``retry``
            table, a non-boolean ``strict`` or an unknown key.
        """
        _reject_unknown(data, {"transport", "retry", "strict"}, where)
        retry = RetryPolicy.from_dict(_table(data.get("retry", {}), f"{where}.retry"))
        strict = data.get("strict", False)
        if not isinstance(strict, bool):
            raise TypeError(f"{where}.strict: expected true or false, got {strict!r}")
        return cls(transport=_name_field(data, "transport", where), retry=retry, strict=strict)


@dataclasses.dataclass(frozen=True)
class RegistryConfig:
    """Top-level configuration container.

    :param transports: Mapping of transport names to their configs.
    :param clients: Mapping of client names to their profiles.
    """

    transports: dict[str, TransportConfig] = dataclasses.field(default_factory=dict)
    clients: dict[str, ClientProfile] = dataclasses.field(default_factory=dict)

    def validate(self) -> None:
        """Check that every client profile names a defined transport.

        All dangling references are reported together.

        :raises ValueError: If any profile names an undefined transport.
        """
        dangling = [
            f"{client} -> {profile.transport}"
            for client, profile in sorted(self.clients.items())
            if profile.transport not in self.transports
        ]
        if dangling:
            raise ValueError(
                f"Undefined transports referenced by client profiles: {', '.join(dangling)} "
                f"(defined: {sorted(self.transports)})"
            )

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> RegistryConfig:
        """Construct from a plain dict, e.g. parsed TOML or JSON::

            {
                "transports": {"main": {"type": "s3", "options": {...}}},
                "clients": {"data": {"transport": "main", "retry": {...}, "strict": False}},
            }

        Errors name the offending entry by its dotted path, e.g. ``clients.data.retry``.

        :raises TypeError: If any section or entry has the wrong shape.
        """
        _reject_unknown(data, {"transports", "clients"}, "config")
        raw_transports = _table(data.get("transports", {}), "transports")
        raw_clients = _table(data.get("clients", {}), "clients")
        transports = {
            str(name): TransportConfig.from_dict(_table(raw, f"transports.{name}"), f"transports.{name}")
            for name, raw in raw_transports.items()
        }
        clients = {
            str(name): ClientProfile.from_dict(_table(raw, f"clients.{name}"), f"clients.{name}")
            for name, raw in raw_clients.items()
        }
        return cls(transports=transports, clients=clients)
