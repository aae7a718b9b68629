"""FastAPI app exposing POST /api/debate as a newline-delimited JSON stream."""

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from config.config_loader import AppConfig
from hippodrome.channel import UpdateChannel, encode_update
from hippodrome.gateway import ModelGateway
from hippodrome.models import DebateRequest
from hippodrome.orchestrator import run_debate
from hippodrome.request import RequestError, parse_request

logger = logging.getLogger(__name__)

_STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def create_app(config: AppConfig, gateway_factory=None) -> FastAPI:
    """Create the FastAPI application.

    gateway_factory(request) -> ModelGateway lets tests swap the network
    layer; by default each debate gets its own OpenRouter client.
    """
    app = FastAPI(title="LLM Hippodrome", description="Multi-model consensus debates")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def _gateway_for(request: DebateRequest) -> ModelGateway:
        if gateway_factory is not None:
            return gateway_factory(request)
        return ModelGateway.for_credential(config.gateway, request.credential)

    @app.exception_handler(RequestError)
    async def _request_error(_: Request, exc: RequestError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/debate")
    async def debate(http_request: Request) -> StreamingResponse:
        try:
            payload = await http_request.json()
        except ValueError:
            payload = None
        debate_request = parse_request(
            payload,
            header_credential=http_request.headers.get(config.gateway.credential_header),
            env_credential=config.env_credential(),
        )
        logger.info(
            "Debate request: %d models, topic %r",
            len(debate_request.participants),
            debate_request.topic[:60],
        )
        return StreamingResponse(
            _stream_debate(debate_request, config, _gateway_for(debate_request)),
            media_type="application/x-ndjson",
            headers=_STREAM_HEADERS,
        )

    return app


async def _stream_debate(
    request: DebateRequest, config: AppConfig, gateway: ModelGateway,
) -> AsyncIterator[bytes]:
    channel = UpdateChannel()
    cancel = asyncio.Event()
    task = asyncio.create_task(run_debate(request, config, channel, cancel, gateway))
    try:
        async for state in channel:
            yield encode_update(state)
    finally:
        # Reached early only when the client went away.
        if not task.done():
            logger.info("Client disconnected, cancelling debate")
            cancel.set()
        with contextlib.suppress(asyncio.CancelledError):
            await task
