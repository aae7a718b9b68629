"""OpenRouter transports using the openai SDK (OpenAI-compatible API)."""

import asyncio
import logging
import time

import openai
from openai import AsyncOpenAI

from config.config_loader import GatewayConfig
from hippodrome.providers.base import ChunkObserver, StreamSetupError, Transport, TransportError

logger = logging.getLogger(__name__)


def _status_of(exc: Exception) -> int | None:
    return getattr(exc, "status_code", None)


def build_client(config: GatewayConfig, api_key: str) -> AsyncOpenAI:
    """Build one client per debate; the credential is never shared across requests."""
    headers: dict[str, str] = {}
    if config.referer:
        headers["HTTP-Referer"] = config.referer
    if config.title:
        headers["X-Title"] = config.title
    return AsyncOpenAI(
        api_key=api_key,
        base_url=config.base_url,
        default_headers=headers or None,
        timeout=config.timeout_sec,
        max_retries=0,
    )


class BufferedTransport(Transport):
    """One request, one JSON body: choices[0].message.content."""

    def __init__(self, client: AsyncOpenAI, timeout_sec: int) -> None:
        self._client = client
        self._timeout_sec = timeout_sec

    async def complete(
        self,
        prompt: str,
        model_id: str,
        *,
        temperature: float,
        max_tokens: int,
        on_chunk: ChunkObserver | None = None,
    ) -> str:
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=model_id,
                    messages=[{"role": "user", "content": prompt}],
                    temperature=temperature,
                    max_tokens=max_tokens,
                    stream=False,
                ),
                timeout=self._timeout_sec,
            )
        except TimeoutError as exc:
            raise TransportError(model_id, f"Request timed out after {self._timeout_sec}s") from exc
        except openai.APIError as exc:
            raise TransportError(model_id, f"API call failed: {exc}", _status_of(exc)) from exc
        except Exception as exc:
            raise TransportError(model_id, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start

        choice = response.choices[0] if response.choices else None
        if not choice or not choice.message.content:
            raise TransportError(model_id, "Empty response content")

        logger.info("Buffered completion from %s: %.2fs", model_id, latency)
        return choice.message.content


class StreamingTransport(BufferedTransport):
    """Event-stream of choices[0].delta.content frames.

    Falls back to a buffered request when the stream cannot be opened;
    the fallback emits no chunk events.
    """

    async def complete(
        self,
        prompt: str,
        model_id: str,
        *,
        temperature: float,
        max_tokens: int,
        on_chunk: ChunkObserver | None = None,
    ) -> str:
        try:
            return await self._complete_streaming(prompt, model_id, temperature, max_tokens, on_chunk)
        except StreamSetupError as exc:
            logger.warning("Stream setup failed for %s, retrying buffered: %s", model_id, exc)
            return await super().complete(
                prompt, model_id, temperature=temperature, max_tokens=max_tokens,
            )

    async def _complete_streaming(
        self,
        prompt: str,
        model_id: str,
        temperature: float,
        max_tokens: int,
        on_chunk: ChunkObserver | None,
    ) -> str:
        start = time.monotonic()
        try:
            stream = await self._client.chat.completions.create(
                model=model_id,
                messages=[{"role": "user", "content": prompt}],
                temperature=temperature,
                max_tokens=max_tokens,
                stream=True,
            )
        except Exception as exc:
            raise StreamSetupError(model_id, f"Could not open stream: {exc}", _status_of(exc)) from exc

        accumulated = ""
        try:
            async for chunk in stream:
                delta = ""
                if chunk.choices and chunk.choices[0].delta:
                    delta = chunk.choices[0].delta.content or ""
                if not delta:
                    continue
                accumulated += delta
                if on_chunk is not None:
                    result = on_chunk(accumulated)
                    if asyncio.iscoroutine(result):
                        await result
        except openai.APIError as exc:
            raise TransportError(model_id, f"Stream interrupted: {exc}", _status_of(exc)) from exc

        if not accumulated:
            raise TransportError(model_id, "Empty streamed content")

        logger.info(
            "Streamed completion from %s: %.2fs, %d chars",
            model_id,
            time.monotonic() - start,
            len(accumulated),
        )
        return accumulated
