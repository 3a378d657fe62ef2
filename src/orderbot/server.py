"""FastAPI webhook surface for the WhatsApp channel.

Routes:
    GET  /webhook  Cloud API verification handshake (hub.challenge echo)
    POST /webhook  inbound notifications; messages are enqueued, never awaited
    GET  /health   liveness probe with the current queue length
"""

from __future__ import annotations

import json

from fastapi import FastAPI, HTTPException, Request, Response, status
from fastapi.responses import PlainTextResponse
from loguru import logger

from orderbot.handler.channels.whatsapp import WhatsAppChannelHandler
from orderbot.handler.handler import CommunicationHandler


def create_app(handler: CommunicationHandler, channel: WhatsAppChannelHandler) -> FastAPI:
    app = FastAPI(title="orderbot", docs_url=None, redoc_url=None)

    @app.get("/webhook")
    async def verify_webhook(request: Request) -> Response:
        params = request.query_params
        challenge = channel.verify_challenge(
            params.get("hub.mode"),
            params.get("hub.verify_token"),
            params.get("hub.challenge"),
        )
        if challenge is None:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Verification failed")
        return PlainTextResponse(challenge)

    @app.post("/webhook")
    async def receive_webhook(request: Request) -> dict:
        body = await request.body()
        if not channel.verify_signature(body, request.headers):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")
        try:
            payload = json.loads(body.decode("utf-8")) if body else {}
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise HTTPException(status_code=400, detail=f"Invalid JSON payload: {exc}") from exc

        received = channel.handle_webhook(payload)
        if received:
            logger.info("Webhook delivered {} message(s)", received)
        return {"status": "ok", "received": received}

    @app.get("/health")
    async def health() -> dict:
        return {
            "status": "ok",
            "queue_length": handler.queue.get_queue_length(),
            "processing": handler.queue.is_queue_processing(),
        }

    return app
