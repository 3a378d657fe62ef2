"""Application bootstrap: builds the object graph and runs everything.

This is the single place that reads configuration. Every other component
receives its settings and collaborators through its constructor.
"""

from __future__ import annotations

import asyncio
import signal

import uvicorn
from loguru import logger

from orderbot.agents.message_handler import MessageHandler
from orderbot.agents.orders import OrderDialogue
from orderbot.agents.responses import ScriptedResponder
from orderbot.agents.tools import ToolRegistry
from orderbot.config import AppConfig, get_config, resolve_secret
from orderbot.handler.channels.whatsapp import WhatsAppChannelHandler
from orderbot.handler.handler import CommunicationHandler
from orderbot.handler.rate_limiter import RateLimiter
from orderbot.handler.session.session import ConversationStore
from orderbot.providers.llm import BaseLLMProvider, LiteLLMProvider, LlmApiProvider
from orderbot.server import create_app
from orderbot.store.catalog import ProductCatalog
from orderbot.store.customers import CustomerStore
from orderbot.store.orders import OrderStore
from orderbot.tools import DateTimeTool, OrderLookupTool, ProductSearchTool


def build_llm(config: AppConfig) -> BaseLLMProvider | None:
    """Instantiate the configured default provider, or None if it is unusable."""
    defaults = config.agent.defaults
    provider = config.get_provider(defaults.provider)
    if provider is None or not provider.enabled:
        logger.warning("LLM provider '{}' is missing or disabled", defaults.provider)
        return None

    common = dict(
        default_model=defaults.model,
        advanced_model=defaults.advanced_model,
        vision_model=defaults.vision_model,
        temperature=defaults.temperature,
        max_tokens=defaults.max_tokens,
        complexity_threshold=defaults.complexity_threshold,
    )
    if provider.adapters == "litellm":
        return LiteLLMProvider(
            api_key=provider.api_key,
            api_base=provider.api_base or None,
            default_headers=provider.headers,
            **common,
        )
    return LlmApiProvider(
        api_base=provider.api_base,
        api_key=provider.api_key,
        slug=provider.slug,
        default_headers=provider.headers,
        **common,
    )


class Application:
    """Top-level application that owns all major components.

    Architecture:
        WhatsApp webhook (FastAPI)
            └── WhatsAppChannelHandler ──► CommunicationHandler
                                              └── MessageQueue ──► MessageHandler
                                                                     ├── OrderDialogue
                                                                     ├── ScriptedResponder
                                                                     └── LLM + ToolRegistry
    """

    def __init__(self, config: AppConfig | None = None) -> None:
        self._config = config or get_config()
        limits = self._config.limits
        agent = self._config.agent

        # Stores
        self.catalog = ProductCatalog()
        self.orders = OrderStore(self.catalog)
        self.customers = CustomerStore()
        self.conversations = ConversationStore(
            max_history=limits.max_history,
            max_contexts=limits.max_contexts,
            ttl=limits.context_ttl,
        )

        # Tools + LLM
        self.tools: ToolRegistry | None = None
        if agent.enable_tools:
            self.tools = ToolRegistry(
                [
                    ProductSearchTool(self.catalog),
                    OrderLookupTool(self.orders),
                    DateTimeTool(),
                ]
            )
        self.llm = build_llm(self._config) if agent.use_llm else None

        self.message_handler = MessageHandler(
            conversations=self.conversations,
            rate_limiter=RateLimiter(
                window=limits.rate_limit_window,
                max_messages=limits.rate_limit_max_messages,
                per_sender=limits.rate_limit_per_sender,
                enabled=limits.rate_limit_enabled,
            ),
            dialogue=OrderDialogue(self.catalog, self.orders, self.customers),
            responder=ScriptedResponder(self.catalog, self.orders),
            llm=self.llm,
            tools=self.tools,
            use_llm=agent.use_llm,
            llm_all_intents=agent.llm_all_intents,
        )
        self.handler = CommunicationHandler(
            self.message_handler,
            max_retries=limits.queue_max_retries,
            base_delay=limits.queue_base_delay,
        )

        self.whatsapp = self._build_whatsapp()
        if self.whatsapp is not None:
            self.handler.add_channel(self.whatsapp.name, self.whatsapp)

        self._shutdown_event = asyncio.Event()

    def _build_whatsapp(self) -> WhatsAppChannelHandler | None:
        channel_cfg = self._config.get_channel("whatsapp")
        if channel_cfg is None or not channel_cfg.enabled:
            return None
        if not channel_cfg.token or not channel_cfg.account_id:
            logger.warning(
                "WhatsApp token or phone number id not resolved. Check your .env file. Skipping."
            )
            return None

        app_secret_ref = channel_cfg.extra.get("env_app_secret")
        return WhatsAppChannelHandler(
            token=channel_cfg.token,
            phone_number_id=channel_cfg.account_id,
            verify_token=channel_cfg.verify_token,
            app_secret=resolve_secret(app_secret_ref) if app_secret_ref else None,
            config=channel_cfg.extra,
        )

    async def start(self) -> None:
        """Start all components and run until a shutdown signal."""
        logger.info("orderbot starting up...")
        if self.whatsapp is None:
            logger.error("No WhatsApp channel configured; nothing to serve.")
            return

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self._signal_handler)

        await self.handler.start()

        server_cfg = self._config.server
        server = uvicorn.Server(
            uvicorn.Config(
                create_app(self.handler, self.whatsapp),
                host=server_cfg.host,
                port=server_cfg.port,
                log_level="warning",
            )
        )
        server_task = asyncio.create_task(server.serve(), name="webhook-server")
        shutdown_task = asyncio.create_task(self._shutdown_event.wait(), name="shutdown-wait")

        logger.info("orderbot listening on {}:{}", server_cfg.host, server_cfg.port)
        await asyncio.wait({server_task, shutdown_task}, return_when=asyncio.FIRST_COMPLETED)

        logger.info("Shutting down...")
        server.should_exit = True
        await server_task
        shutdown_task.cancel()

        await self.handler.stop()
        logger.info("orderbot stopped.")

    def _signal_handler(self) -> None:
        """Handle SIGINT/SIGTERM by setting the shutdown event."""
        logger.info("Shutdown signal received")
        self._shutdown_event.set()

    def run(self) -> None:
        """Synchronous entry point: creates the event loop and runs the app."""
        asyncio.run(self.start())


def main() -> None:
    Application().run()


if __name__ == "__main__":
    main()
