"""Tests for config parsing and secret resolution."""

import json

import pytest

from orderbot.config import AppConfig, load_config, parse_config, resolve_secret
from orderbot.constants import MAX_HISTORY_TURNS, RATE_LIMIT_MAX_MESSAGES


@pytest.fixture
def raw():
    return {
        "agent": {
            "use_llm": True,
            "default": {"provider": "openrouter", "model": "openai/gpt-3.5-turbo", "temperature": 0.2},
        },
        "limits": {"rate_limit_max_messages": 5, "rate_limit_per_sender": False},
        "providers": {
            "openrouter": {
                "enabled": True,
                "api_key": "OPENROUTER_API_KEY",
                "api_base": "https://openrouter.ai/api/v1",
                "headers": {"X-Title": "OPENROUTER_SITE_NAME", "HTTP-Referer": "MISSING_HEADER"},
            }
        },
        "channels": {
            "whatsapp": {
                "enabled": True,
                "env_token": "WHATSAPP_ACCESS_TOKEN",
                "env_account_id": "WHATSAPP_PHONE_NUMBER_ID",
                "env_verify_token": "verify-literal",
                "env_app_secret": "WHATSAPP_APP_SECRET",
                "ignore_groups": False,
            }
        },
        "server": {"port": 9000},
    }


class TestResolveSecret:
    def test_env_reference_resolved(self, monkeypatch):
        monkeypatch.setenv("SOME_SECRET", "s3cret")
        assert resolve_secret("SOME_SECRET") == "s3cret"

    def test_missing_env_reference_is_none(self, monkeypatch):
        monkeypatch.delenv("SOME_SECRET", raising=False)
        assert resolve_secret("SOME_SECRET") is None

    @pytest.mark.parametrize("value", ["sk-or-literal", "1234567890", "verify-me"])
    def test_literals_pass_through(self, value):
        assert resolve_secret(value) == value

    def test_empty_passes_through(self):
        assert resolve_secret("") == ""


class TestParseConfig:
    def test_full_config(self, raw, monkeypatch):
        monkeypatch.setenv("OPENROUTER_API_KEY", "sk-or-test")
        monkeypatch.setenv("OPENROUTER_SITE_NAME", "BBQ Wholesale")
        monkeypatch.delenv("MISSING_HEADER", raising=False)
        monkeypatch.setenv("WHATSAPP_ACCESS_TOKEN", "EAAG-token")
        monkeypatch.setenv("WHATSAPP_PHONE_NUMBER_ID", "1234567890")

        config = parse_config(raw)

        assert config.agent.use_llm is True
        assert config.agent.defaults.temperature == 0.2
        assert config.limits.rate_limit_max_messages == 5
        assert config.limits.rate_limit_per_sender is False

        provider = config.get_provider("openrouter")
        assert provider.api_key == "sk-or-test"
        assert provider.headers == {"X-Title": "BBQ Wholesale"}
        assert provider.adapters == "openai"

        channel = config.get_channel("whatsapp")
        assert channel.token == "EAAG-token"
        assert channel.account_id == "1234567890"
        assert channel.verify_token == "verify-literal"
        assert channel.extra == {"env_app_secret": "WHATSAPP_APP_SECRET", "ignore_groups": False}

        assert config.server.port == 9000
        assert config.server.host == "0.0.0.0"

    def test_empty_config_uses_defaults(self):
        config = parse_config({})

        assert isinstance(config, AppConfig)
        assert config.agent.use_llm is False
        assert config.agent.enable_tools is True
        assert config.limits.max_history == MAX_HISTORY_TURNS
        assert config.limits.rate_limit_max_messages == RATE_LIMIT_MAX_MESSAGES
        assert config.providers == {}
        assert config.get_channel("whatsapp") is None

    def test_enabled_filters(self, raw):
        raw["providers"]["litellm"] = {"enabled": False, "adapters": "litellm"}
        raw["channels"]["sms"] = {"enabled": False}

        config = parse_config(raw)

        assert list(config.get_enabled_providers()) == ["openrouter"]
        assert list(config.get_enabled_channels()) == ["whatsapp"]

    def test_unknown_keys_ignored(self):
        config = parse_config({"limits": {"max_history": 10, "typo_key": 1}})
        assert config.limits.max_history == 10


class TestLoadConfig:
    def test_explicit_path(self, tmp_path, raw):
        path = tmp_path / "config.json"
        path.write_text(json.dumps(raw), encoding="utf-8")

        assert load_config(path).server.port == 9000

    def test_path_from_environment(self, tmp_path, raw, monkeypatch):
        path = tmp_path / "custom.json"
        path.write_text(json.dumps(raw), encoding="utf-8")
        monkeypatch.setenv("ORDERBOT_CONFIG", str(path))

        assert load_config().limits.rate_limit_max_messages == 5

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.json")

    def test_project_config_parses(self, monkeypatch):
        monkeypatch.delenv("ORDERBOT_CONFIG", raising=False)
        config = load_config()
        assert config.get_channel("whatsapp") is not None
        assert config.limits.rate_limit_max_messages == 30
