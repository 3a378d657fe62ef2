"""Tests for the application object graph built from config."""

import pytest

from orderbot.app import Application, build_llm
from orderbot.config import parse_config
from orderbot.handler.channels.whatsapp import WhatsAppChannelHandler
from orderbot.providers.llm import LiteLLMProvider, LlmApiProvider


def _raw(**agent) -> dict:
    return {
        "agent": {"default": {"provider": "openrouter", "model": "openai/gpt-3.5-turbo"}, **agent},
        "providers": {
            "openrouter": {
                "enabled": True,
                "api_key": "sk-or-literal",
                "api_base": "https://openrouter.ai/api/v1",
            },
            "litellm": {"enabled": True, "api_key": "sk-literal", "adapters": "litellm"},
        },
        "channels": {
            "whatsapp": {
                "enabled": True,
                "env_token": "EAAG-literal",
                "env_account_id": "1234567890",
                "env_verify_token": "verify-me",
            }
        },
    }


class TestBuildLlm:
    def test_openai_adapter(self):
        llm = build_llm(parse_config(_raw()))
        assert isinstance(llm, LlmApiProvider)
        assert llm.default_model == "openai/gpt-3.5-turbo"

    def test_litellm_adapter(self):
        raw = _raw()
        raw["agent"]["default"]["provider"] = "litellm"
        assert isinstance(build_llm(parse_config(raw)), LiteLLMProvider)

    @pytest.mark.parametrize("provider", ["missing", "disabled"])
    def test_unusable_provider(self, provider):
        raw = _raw()
        raw["providers"]["disabled"] = {"enabled": False}
        raw["agent"]["default"]["provider"] = provider
        assert build_llm(parse_config(raw)) is None


class TestApplication:
    def test_default_graph(self):
        app = Application(parse_config(_raw()))

        assert app.llm is None
        assert app.tools.tool_names == ["search_products", "get_order_status", "get_current_datetime"]
        assert isinstance(app.whatsapp, WhatsAppChannelHandler)
        assert app.handler.channels == {"whatsapp": app.whatsapp}

    def test_llm_enabled(self):
        app = Application(parse_config(_raw(use_llm=True)))
        assert isinstance(app.llm, LlmApiProvider)

    def test_tools_disabled(self):
        app = Application(parse_config(_raw(enable_tools=False)))
        assert app.tools is None

    def test_whatsapp_skipped_without_credentials(self, monkeypatch):
        raw = _raw()
        raw["channels"]["whatsapp"]["env_token"] = "UNSET_WHATSAPP_TOKEN"
        monkeypatch.delenv("UNSET_WHATSAPP_TOKEN", raising=False)

        app = Application(parse_config(raw))

        assert app.whatsapp is None
        assert app.handler.channels == {}
