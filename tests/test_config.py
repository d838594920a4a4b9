import pytest
from pydantic import ValidationError

from chainchat.common.config import DEFAULT_PORT, load_env_config

ENV_VARS = (
    "SERVER_HOST",
    "SERVER_PORT",
    "USE_IPV6",
    "SOCKET_TIMEOUT",
    "KEYS_FILE",
    "TRANSCRIPTS_DIR",
    "VERBOSE",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    config = load_env_config()
    assert config.host == "127.0.0.1"
    assert config.port == DEFAULT_PORT == 1234
    assert config.timeout is None
    assert config.keys_file is None
    assert not config.verbose


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("SERVER_PORT", "4321")
    monkeypatch.setenv("SOCKET_TIMEOUT", "2.5")
    monkeypatch.setenv("KEYS_FILE", "certs/keys.json")
    monkeypatch.setenv("VERBOSE", "yes")

    config = load_env_config()
    assert config.port == 4321
    assert config.timeout == 2.5
    assert config.keys_file == "certs/keys.json"
    assert config.verbose


def test_ipv6_default_host(monkeypatch):
    monkeypatch.setenv("USE_IPV6", "true")
    config = load_env_config()
    assert config.use_ipv6
    assert config.host == "::1"


def test_invalid_port(monkeypatch):
    monkeypatch.setenv("SERVER_PORT", "70000")
    with pytest.raises(ValidationError):
        load_env_config()
