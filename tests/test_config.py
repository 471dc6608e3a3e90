"""Tests for the configuration model."""

from __future__ import annotations

import dataclasses

import pytest

from resilient_store._config import ClientProfile, RegistryConfig, RetryPolicy, TransportConfig


class TestRetryPolicy:
    def test_defaults(self) -> None:
        p = RetryPolicy()
        assert p.initial_retry_delay_millis == 1000
        assert p.max_retry_delay_millis == 32000
        assert p.retry_delay_backoff_factor == 2.0
        assert p.retry_min_attempts == 3
        assert p.retry_max_attempts == 6
        assert p.total_retry_period_millis == 10000
        assert p.request_timeout_millis == 30000
        assert p.request_timeout_retry_factor == 1.0
        assert p.max_request_timeout_millis == 60000

    def test_immutable(self) -> None:
        p = RetryPolicy()
        with pytest.raises(dataclasses.FrozenInstanceError):
            p.retry_max_attempts = 1  # type: ignore[misc]

    def test_with_request_timeout_retry_factor(self) -> None:
        p = RetryPolicy()
        q = p.with_request_timeout_retry_factor(1.2)
        assert q.request_timeout_retry_factor == 1.2
        assert p.request_timeout_retry_factor == 1.0
        assert dataclasses.replace(q, request_timeout_retry_factor=1.0) == p

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"initial_retry_delay_millis": -1},
            {"initial_retry_delay_millis": 5000, "max_retry_delay_millis": 1000},
            {"retry_delay_backoff_factor": 0.5},
            {"retry_min_attempts": 0},
            {"retry_min_attempts": 4, "retry_max_attempts": 3},
            {"total_retry_period_millis": -1},
            {"request_timeout_millis": 0},
            {"request_timeout_retry_factor": 0.9},
            {"request_timeout_millis": 5000, "max_request_timeout_millis": 1000},
        ],
    )
    def test_invalid_values_rejected(self, kwargs: dict[str, object]) -> None:
        with pytest.raises(ValueError):
            RetryPolicy(**kwargs)  # type: ignore[arg-type]

    def test_from_dict(self) -> None:
        p = RetryPolicy.from_dict({"retry_max_attempts": 10, "request_timeout_millis": 500})
        assert p.retry_max_attempts == 10
        assert p.request_timeout_millis == 500
        assert p.retry_min_attempts == 3

    def test_from_dict_unknown_key(self) -> None:
        with pytest.raises(TypeError, match="max_attempts"):
            RetryPolicy.from_dict({"max_attempts": 3})


class TestTransportConfig:
    def test_defaults(self) -> None:
        cfg = TransportConfig(type="memory")
        assert cfg.options == {}

    def test_immutable(self) -> None:
        cfg = TransportConfig(type="memory")
        with pytest.raises(dataclasses.FrozenInstanceError):
            cfg.type = "s3"  # type: ignore[misc]


class TestClientProfile:
    def test_default_retry(self) -> None:
        profile = ClientProfile(transport="main")
        assert profile.retry == RetryPolicy()
        assert profile.strict is False


class TestRegistryConfig:
    def test_validate_ok(self) -> None:
        cfg = RegistryConfig(
            transports={"main": TransportConfig(type="memory")},
            clients={"data": ClientProfile(transport="main")},
        )
        cfg.validate()

    def test_validate_unknown_transport(self) -> None:
        cfg = RegistryConfig(clients={"data": ClientProfile(transport="missing")})
        with pytest.raises(ValueError, match="missing"):
            cfg.validate()

    def test_from_dict(self) -> None:
        cfg = RegistryConfig.from_dict(
            {
                "transports": {"main": {"type": "memory", "options": {"chunk_size_bytes": 1024}}},
                "clients": {"data": {"transport": "main", "retry": {"retry_max_attempts": 2, "retry_min_attempts": 1}}},
            }
        )
        assert cfg.transports["main"] == TransportConfig(type="memory", options={"chunk_size_bytes": 1024})
        assert cfg.clients["data"].transport == "main"
        assert cfg.clients["data"].retry.retry_max_attempts == 2

    def test_from_dict_defaults_retry(self) -> None:
        cfg = RegistryConfig.from_dict(
            {"transports": {"main": {"type": "memory"}}, "clients": {"data": {"transport": "main"}}}
        )
        assert cfg.clients["data"].retry == RetryPolicy()

    def test_from_dict_empty(self) -> None:
        cfg = RegistryConfig.from_dict({})
        assert cfg.transports == {}
        assert cfg.clients == {}

    def test_validate_reports_every_dangling_reference(self) -> None:
        cfg = RegistryConfig(
            transports={"main": TransportConfig(type="memory")},
            clients={
                "a": ClientProfile(transport="gone"),
                "b": ClientProfile(transport="main"),
                "c": ClientProfile(transport="lost"),
            },
        )
        with pytest.raises(ValueError, match=r"a -> gone, c -> lost") as info:
            cfg.validate()
        assert "'main'" in str(info.value)

    def test_from_dict_strict_profile(self) -> None:
        cfg = RegistryConfig.from_dict(
            {"transports": {"main": {"type": "memory"}}, "clients": {"ci": {"transport": "main", "strict": True}}}
        )
        assert cfg.clients["ci"].strict is True

    @pytest.mark.parametrize(
        ("data", "where"),
        [
            ({"transports": []}, "transports"),
            ({"clients": "data"}, "clients"),
            ({"transports": {"main": "memory"}}, "transports.main"),
            ({"transports": {"main": {"options": {}}}}, "transports.main"),
            ({"transports": {"main": {"type": "memory", "options": []}}}, "transports.main.options"),
            ({"clients": {"data": "main"}}, "clients.data"),
            ({"clients": {"data": {"retry": {}}}}, "clients.data"),
            ({"clients": {"data": {"transport": "main", "retry": 3}}}, "clients.data.retry"),
            ({"clients": {"data": {"transport": "main", "strict": "yes"}}}, "clients.data.strict"),
        ],
    )
    def test_from_dict_names_malformed_entry(self, data: dict[str, object], where: str) -> None:
        with pytest.raises(TypeError, match=rf"^{where}[:.]"):
            RegistryConfig.from_dict(data)

    @pytest.mark.parametrize(
        ("data", "where"),
        [
            ({"transport": {}}, "config"),
            ({"transports": {"main": {"type": "memory", "opts": {}}}}, "transports.main"),
            ({"clients": {"data": {"transport": "main", "retries": {}}}}, "clients.data"),
        ],
    )
    def test_from_dict_rejects_unknown_keys(self, data: dict[str, object], where: str) -> None:
        with pytest.raises(TypeError, match=rf"^{where}: unknown keys"):
            RegistryConfig.from_dict(data)
