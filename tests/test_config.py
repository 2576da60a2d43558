from __future__ import annotations

import pytest

from pymotu.config import MotuConfig
from pymotu.exceptions import MotuConfigError
from pymotu.state.events import UpdateOrigin


def test_defaults_and_urls() -> None:
    config = MotuConfig(host="192.168.1.50")

    assert config.datastore_url == "http://192.168.1.50:80/datastore"
    assert config.health_url == "http://192.168.1.50:80/apiversion"
    assert 0 <= config.client_id < 2**32
    assert config.model_update_origins == {UpdateOrigin.INTERNAL, UpdateOrigin.EXTERNAL}


def test_client_ids_differ_between_configs() -> None:
    ids = {MotuConfig(host="motu").client_id for _ in range(8)}
    assert len(ids) > 1


@pytest.mark.parametrize(
    "kwargs",
    [
        {"host": ""},
        {"host": "motu", "port": 0},
        {"host": "motu", "update_buffer": 0},
        {"host": "motu", "request_timeout": -1.0},
        {"host": "motu", "model_update_origins": frozenset()},
    ],
)
def test_invalid_values_rejected(kwargs: dict[str, object]) -> None:
    with pytest.raises(MotuConfigError):
        MotuConfig(**kwargs)  # type: ignore[arg-type]


def test_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MOTU_HOST", "motu.local")
    monkeypatch.setenv("MOTU_PORT", "8080")
    monkeypatch.setenv("MOTU_CLIENT_ID", "1234")
    monkeypatch.setenv("MOTU_UPDATE_BUFFER", "16")
    monkeypatch.setenv("MOTU_REQUEST_TIMEOUT", "2.5")
    monkeypatch.setenv("MOTU_EXTERNAL_ONLY_MODEL", "yes")

    config = MotuConfig.from_env()

    assert config.base_url == "http://motu.local:8080"
    assert config.client_id == 1234
    assert config.update_buffer == 16
    assert config.request_timeout == 2.5
    assert config.model_update_origins == {UpdateOrigin.EXTERNAL}


def test_from_env_overrides_win(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MOTU_HOST", "motu.local")
    monkeypatch.setenv("MOTU_PORT", "not-a-port")

    config = MotuConfig.from_env(host="10.0.0.2", port=81)

    assert config.base_url == "http://10.0.0.2:81"


def test_from_env_requires_host(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MOTU_HOST", raising=False)
    with pytest.raises(MotuConfigError):
        MotuConfig.from_env()


def test_from_env_rejects_bad_numbers(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MOTU_HOST", "motu.local")
    monkeypatch.setenv("MOTU_UPDATE_BUFFER", "lots")
    with pytest.raises(MotuConfigError):
        MotuConfig.from_env()
