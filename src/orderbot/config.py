"""Configuration for orderbot.

``configs/config.json`` (or the file named by ``$ORDERBOT_CONFIG``) is read
once, after ``.env`` has been loaded into the environment, and turned into
the frozen dataclasses below. Only ``Application`` calls ``get_config()``;
everything else gets its settings through its constructor.

Secrets
-------
String values written as ``UPPER_SNAKE_CASE`` (``"WHATSAPP_ACCESS_TOKEN"``)
are names of environment variables, not literal values, and are looked up
by ``resolve_secret()``. Anything else is used as written.
"""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, TypeVar

from loguru import logger

from orderbot.constants import (
    CONFIG_FILENAME,
    CONFIG_PATH_ENV,
    CONTEXT_TTL,
    DEFAULT_ADVANCED_MODEL,
    DEFAULT_COMPLEXITY_THRESHOLD,
    DEFAULT_HOST,
    DEFAULT_MAX_TOKENS,
    DEFAULT_MODEL,
    DEFAULT_PORT,
    DEFAULT_PROVIDER,
    DEFAULT_TEMPERATURE,
    DEFAULT_VISION_MODEL,
    MAX_CONTEXTS,
    MAX_HISTORY_TURNS,
    QUEUE_BASE_RETRY_DELAY,
    QUEUE_MAX_RETRIES,
    RATE_LIMIT_MAX_MESSAGES,
    RATE_LIMIT_WINDOW,
)

_SECRET_REF = re.compile(r"^[A-Z][A-Z0-9_]{2,}$")

# channel keys consumed by ChannelConfig itself; the rest land in ``extra``
_CHANNEL_KEYS = frozenset({"type", "enabled", "env_token", "env_account_id", "env_verify_token"})

_T = TypeVar("_T")


def resolve_secret(value: str) -> str | None:
    """Look up ``value`` in the environment if it is a secret reference.

    Returns the literal for anything that is not ``UPPER_SNAKE_CASE``, and
    None (with a warning) for a reference that is not set.
    """
    if not isinstance(value, str) or not value:
        return value
    if not _SECRET_REF.match(value):
        return value

    resolved = os.environ.get(value)
    if resolved is None:
        logger.warning("Secret '{}' is not set. Add it to .env or export it.", value)
    return resolved


# ──────────────────────────────────────────────────────────────────────
# Sections
# ──────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class AgentDefaults:
    """Which provider and models answer on the LLM path."""

    provider: str = DEFAULT_PROVIDER
    model: str = DEFAULT_MODEL
    advanced_model: str = DEFAULT_ADVANCED_MODEL
    vision_model: str = DEFAULT_VISION_MODEL
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS
    complexity_threshold: float = DEFAULT_COMPLEXITY_THRESHOLD


@dataclass(frozen=True)
class AgentConfig:
    """Reply routing.

    ``use_llm`` sends general inquiries (and images) to the LLM;
    ``llm_all_intents`` sends every non-order intent there as well.
    """

    use_llm: bool = False
    llm_all_intents: bool = False
    enable_tools: bool = True
    defaults: AgentDefaults = field(default_factory=AgentDefaults)


@dataclass(frozen=True)
class LimitsConfig:
    rate_limit_enabled: bool = True
    rate_limit_window: float = RATE_LIMIT_WINDOW
    rate_limit_max_messages: int = RATE_LIMIT_MAX_MESSAGES
    rate_limit_per_sender: bool = True
    max_history: int = MAX_HISTORY_TURNS
    max_contexts: int = MAX_CONTEXTS
    context_ttl: float | None = CONTEXT_TTL
    queue_max_retries: int = QUEUE_MAX_RETRIES
    queue_base_delay: float = QUEUE_BASE_RETRY_DELAY


@dataclass(frozen=True)
class ProviderConfig:
    """One LLM back-end. ``adapters`` is "openai" (plain HTTP) or "litellm"."""

    name: str
    slug: str
    api_key: str | None = None
    api_base: str = ""
    enabled: bool = False
    adapters: str = "openai"
    headers: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ChannelConfig:
    """One messaging channel, credentials already resolved."""

    name: str
    type: str
    enabled: bool = False
    token: str | None = None
    account_id: str | None = None
    verify_token: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ServerConfig:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT


@dataclass
class AppConfig:
    agent: AgentConfig
    limits: LimitsConfig
    providers: dict[str, ProviderConfig]
    channels: dict[str, ChannelConfig]
    server: ServerConfig = field(default_factory=ServerConfig)

    def get_provider(self, slug: str) -> ProviderConfig | None:
        return self.providers.get(slug)

    def get_enabled_providers(self) -> dict[str, ProviderConfig]:
        return {slug: p for slug, p in self.providers.items() if p.enabled}

    def get_channel(self, name: str) -> ChannelConfig | None:
        return self.channels.get(name)

    def get_enabled_channels(self) -> dict[str, ChannelConfig]:
        return {name: c for name, c in self.channels.items() if c.enabled}


# ──────────────────────────────────────────────────────────────────────
# Parsing
# ──────────────────────────────────────────────────────────────────────


def _section(cls: type[_T], raw: dict[str, Any], section: str, **overrides: Any) -> _T:
    """Build a flat section dataclass from the keys of ``raw`` it declares."""
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(raw) - known - set(overrides) - {"default"})
    if unknown:
        logger.warning("Ignoring unknown keys in '{}': {}", section, ", ".join(unknown))
    values = {key: value for key, value in raw.items() if key in known}
    values.update(overrides)
    return cls(**values)


def _parse_provider(slug: str, raw: dict[str, Any]) -> ProviderConfig:
    headers: dict[str, str] = {}
    for header, ref in raw.get("headers", {}).items():
        resolved = resolve_secret(ref)
        if resolved:
            headers[header] = resolved
    return ProviderConfig(
        name=raw.get("name", slug),
        slug=slug,
        api_key=resolve_secret(raw.get("api_key", "")) or None,
        api_base=raw.get("api_base", ""),
        enabled=raw.get("enabled", False),
        adapters=raw.get("adapters", "openai"),
        headers=headers,
    )


def _parse_channel(name: str, raw: dict[str, Any]) -> ChannelConfig:
    def secret(key: str) -> str | None:
        ref = raw.get(key)
        return resolve_secret(ref) if ref else None

    return ChannelConfig(
        name=name,
        type=raw.get("type", name),
        enabled=raw.get("enabled", False),
        token=secret("env_token"),
        account_id=secret("env_account_id"),
        verify_token=secret("env_verify_token"),
        extra={k: v for k, v in raw.items() if k not in _CHANNEL_KEYS},
    )


def parse_config(raw: dict[str, Any]) -> AppConfig:
    """Turn the raw config.json dict into an AppConfig. Missing keys take defaults."""
    agent_raw = raw.get("agent", {})
    agent = _section(
        AgentConfig,
        agent_raw,
        "agent",
        defaults=_section(AgentDefaults, agent_raw.get("default", {}), "agent.default"),
    )

    return AppConfig(
        agent=agent,
        limits=_section(LimitsConfig, raw.get("limits", {}), "limits"),
        providers={
            slug: _parse_provider(slug, prov) for slug, prov in raw.get("providers", {}).items()
        },
        channels={
            name: _parse_channel(name, chan) for name, chan in raw.get("channels", {}).items()
        },
        server=_section(ServerConfig, raw.get("server", {}), "server"),
    )


# ──────────────────────────────────────────────────────────────────────
# Loading
# ──────────────────────────────────────────────────────────────────────

_config: AppConfig | None = None


def _default_config_path() -> Path:
    """``configs/config.json`` under the first ancestor directory that has one."""
    start = Path(__file__).resolve().parent
    for directory in (start, *start.parents):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    raise FileNotFoundError(f"No {CONFIG_FILENAME} found above {start}; set ${CONFIG_PATH_ENV}")


def load_config(path: str | Path | None = None) -> AppConfig:
    """Read and parse a config file (``$ORDERBOT_CONFIG`` or the project default)."""
    path = Path(path or os.environ.get(CONFIG_PATH_ENV) or _default_config_path())
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, encoding="utf-8") as f:
        config = parse_config(json.load(f))

    logger.info(
        "Loaded config from {} ({} providers, {} channels)",
        path,
        len(config.providers),
        len(config.channels),
    )
    return config


def get_config(*, reload: bool = False) -> AppConfig:
    """Load ``.env`` and the config file on first call; cached afterwards."""
    global _config

    if _config is None or reload:
        from dotenv import load_dotenv

        load_dotenv()
        _config = load_config()

    return _config
