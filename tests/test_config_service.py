import json

import pytest

from projectmind.config import settings as config_settings
from projectmind.services.config_service import (
    CONFIG_ENV_VAR,
    DEFAULT_FALLBACK_MESSAGE,
    HOSTED_API_KEY_ENV_VAR,
    ConfigService,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    monkeypatch.delenv(HOSTED_API_KEY_ENV_VAR, raising=False)


def test_defaults_without_file(tmp_path):
    config = ConfigService(tmp_path / "missing.json")

    assert config.get("ai.timeout") == 30
    assert config.get("ai.transient_retries") == 1
    assert config.get("ai.fallback_message") == DEFAULT_FALLBACK_MESSAGE
    assert config.get("hosted.api_key") is None
    assert config.get("hosted.nothing", "fallback") == "fallback"
    assert config.get("user") is None


def test_file_values_override_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"ai": {"timeout": 5}, "hosted": {"model": "glm"}}))

    config = ConfigService(path)

    assert config.get("ai.timeout") == 5
    assert config.get("ai.transient_retries") == 1
    assert config.get("hosted.model") == "glm"


def test_environment_overrides_file(tmp_path, monkeypatch):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"hosted": {"api_key": "from-file"}}))
    monkeypatch.setenv(HOSTED_API_KEY_ENV_VAR, "from-env")

    assert ConfigService(path).get("hosted.api_key") == "from-env"


def test_config_path_from_environment(tmp_path, monkeypatch):
    path = tmp_path / "elsewhere.json"
    path.write_text(json.dumps({"user": "ada@example.com"}))
    monkeypatch.setenv(CONFIG_ENV_VAR, str(path))

    config = ConfigService()

    assert config.config_path == path
    assert config.get("user") == "ada@example.com"


def test_invalid_json_raises_value_error(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json")
    with pytest.raises(ValueError):
        ConfigService(path)


def test_set_and_save_write_only_explicit_values(tmp_path, monkeypatch):
    monkeypatch.setenv(HOSTED_API_KEY_ENV_VAR, "secret")
    path = tmp_path / "nested" / "config.json"
    config = ConfigService(path)

    config.set("ai.timeout", 12)
    assert config.save() is True

    assert json.loads(path.read_text()) == {"ai": {"timeout": 12}}
    reloaded = ConfigService(path)
    assert reloaded.get("ai.timeout") == 12
    assert reloaded.get("hosted.api_key") == "secret"


def test_get_all_is_a_copy(tmp_path):
    config = ConfigService(tmp_path / "config.json")
    snapshot = config.get_all()
    snapshot["ai"]["timeout"] = 999
    assert config.get("ai.timeout") == 30


def test_module_helpers_share_one_service(tmp_path, monkeypatch):
    monkeypatch.setattr(config_settings, "_config_service", None)
    path = tmp_path / "config.json"

    service = config_settings.get_config_service(path)
    assert config_settings.get_config_service() is service

    config_settings.save_config({"logging": {"level": "DEBUG"}})
    assert config_settings.load_config()["logging"]["level"] == "DEBUG"
    assert json.loads(path.read_text()) == {"logging": {"level": "DEBUG"}}
