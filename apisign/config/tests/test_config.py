import pytest
from pydantic import ValidationError

from apisign.app import create_app
from apisign.config.config import DEVELOPMENT_SIGNING_KEY, Settings, load_signature_config
from apisign.signing.errors import MisconfiguredKeyError
from apisign.signing.models import SigningKey
from entrypoint import APP_TARGET, main, uvicorn_options


def test_defaults():
    settings = Settings(_env_file=None, environment="production", api_signature_key="k" * 32)
    config = load_signature_config(settings)
    assert config.header_name == "X-API-Signature"
    assert config.timestamp_header_name == "X-API-Timestamp"
    assert config.expiration_window_ms == 300_000
    assert config.key == SigningKey("k" * 32)


def test_environment_variables_are_read(monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "Production")
    monkeypatch.setenv("API_SIGNATURE_KEY", "from-env-secret")
    monkeypatch.setenv("API_SIGNATURE_HEADER", "X-Sig")
    monkeypatch.setenv("API_SIGNATURE_EXPIRATION_MS", "60000")
    settings = Settings(_env_file=None)
    config = load_signature_config(settings)
    assert settings.environment == "production"
    assert config.header_name == "X-Sig"
    assert config.expiration_window_ms == 60_000
    assert bytes(config.key) == b"from-env-secret"


@pytest.mark.parametrize("key", [None, "", "   "])
def test_missing_key_is_fatal_in_production(key):
    settings = Settings(_env_file=None, environment="production", api_signature_key=key)
    with pytest.raises(MisconfiguredKeyError):
        load_signature_config(settings)


def test_app_refuses_to_start_without_key_in_production():
    settings = Settings(_env_file=None, environment="production", api_signature_key=None)
    with pytest.raises(MisconfiguredKeyError):
        create_app(settings)


@pytest.mark.parametrize("environment", ["development", "test"])
def test_relaxed_environments_fall_back_to_development_key(environment):
    settings = Settings(_env_file=None, environment=environment, api_signature_key=None)
    assert load_signature_config(settings).key == SigningKey(DEVELOPMENT_SIGNING_KEY)


def test_window_must_be_positive():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, api_signature_expiration_ms=0)


def test_unknown_replay_backend_is_rejected():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, replay_backend="memcached")


def test_server_options_come_from_settings(monkeypatch):
    monkeypatch.delenv("HOST", raising=False)
    settings = Settings(_env_file=None, port=9001, log_level="DEBUG")
    options = uvicorn_options(settings)
    assert options["host"] == "0.0.0.0"
    assert options["port"] == 9001
    assert options["log_level"] == "debug"
    assert "ssl_certfile" not in options


def test_tls_is_enabled_only_with_both_files():
    only_cert = Settings(_env_file=None, ssl_certfile="server.crt")
    assert "ssl_certfile" not in uvicorn_options(only_cert)
    both = Settings(_env_file=None, ssl_certfile="server.crt", ssl_keyfile="server.key")
    assert uvicorn_options(both)["ssl_keyfile"] == "server.key"


@pytest.mark.parametrize("port", ["0", "70000", "http"])
def test_invalid_port_stops_entrypoint(monkeypatch, mocker, port):
    monkeypatch.setenv("PORT", port)
    mocker.patch("entrypoint.load_dotenv")
    run = mocker.patch("entrypoint.uvicorn.run")
    assert main() == 2
    run.assert_not_called()


def test_entrypoint_runs_app_target(monkeypatch, mocker):
    monkeypatch.setenv("PORT", "8123")
    mocker.patch("entrypoint.load_dotenv")
    run = mocker.patch("entrypoint.uvicorn.run")
    assert main() == 0
    run.assert_called_once()
    assert run.call_args.args == (APP_TARGET,)
    assert run.call_args.kwargs["port"] == 8123
