"""Model gateway: one generate() call over any transport, never raises."""

import logging

from config.config_loader import GatewayConfig
from hippodrome.models import FREE_SUFFIX, Participant, TransportKind
from hippodrome.providers.base import ChunkObserver, Transport, TransportError
from hippodrome.providers.openrouter import BufferedTransport, StreamingTransport, build_client

logger = logging.getLogger(__name__)

SENTINEL_PREFIX = "Error: "


def sentinel_for(identifier: str) -> str:
    return f"{SENTINEL_PREFIX}Could not get response from model {identifier}"


def is_sentinel(text: str | None) -> bool:
    """True for empty text or a gateway failure placeholder."""
    return not text or not text.strip() or text.startswith(SENTINEL_PREFIX)


def alternate_identifier(identifier: str) -> str | None:
    """Vendor-prefix-stripped identifier, or None when there is no prefix."""
    bare = identifier[: -len(FREE_SUFFIX)] if identifier.endswith(FREE_SUFFIX) else identifier
    if "/" not in bare:
        return None
    alt = bare.rsplit("/", 1)[-1]
    return alt or None


class ModelGateway:
    """Uniform generate(prompt, participant) -> text.

    Dispatches on Participant.transport_kind. Transport failures are
    retried once with the vendor prefix stripped, then turned into a
    sentinel error-text answer so the debate can carry on.
    """

    def __init__(self, config: GatewayConfig, transports: dict[TransportKind, Transport]) -> None:
        self._config = config
        self._transports = transports

    @classmethod
    def for_credential(cls, config: GatewayConfig, api_key: str) -> "ModelGateway":
        client = build_client(config, api_key)
        return cls(
            config,
            {
                TransportKind.BUFFERED: BufferedTransport(client, config.timeout_sec),
                TransportKind.STREAMING: StreamingTransport(client, config.timeout_sec),
            },
        )

    def normalize(self, identifier: str) -> str:
        suffix = self._config.model_suffix
        if suffix and not identifier.endswith(suffix):
            return f"{identifier}{suffix}"
        return identifier

    async def generate(
        self,
        prompt: str,
        participant: Participant,
        on_chunk: ChunkObserver | None = None,
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Return the participant's completion, or a sentinel error-text."""
        transport = self._transports[participant.transport_kind]
        temperature = self._config.temperature if temperature is None else temperature
        max_tokens = self._config.max_tokens if max_tokens is None else max_tokens

        logger.debug("Prompt for %s: %d chars", participant.identifier, len(prompt))
        try:
            return await self._attempt(
                transport, prompt, participant.identifier, temperature, max_tokens, on_chunk,
            )
        except TransportError as exc:
            alt = alternate_identifier(participant.identifier)
            if alt is None:
                logger.warning("Model %s failed: %s", participant.identifier, exc)
                return sentinel_for(participant.identifier)
            logger.warning(
                "Model %s failed (%s), retrying as %s", participant.identifier, exc, alt,
            )

        try:
            return await self._attempt(transport, prompt, alt, temperature, max_tokens, on_chunk)
        except TransportError as retry_exc:
            logger.warning(
                "Model %s failed after retry as %s: %s", participant.identifier, alt, retry_exc,
            )
            return sentinel_for(participant.identifier)

    async def _attempt(
        self,
        transport: Transport,
        prompt: str,
        identifier: str,
        temperature: float,
        max_tokens: int,
        on_chunk: ChunkObserver | None,
    ) -> str:
        model_id = self.normalize(identifier)
        try:
            return await transport.complete(
                prompt,
                model_id,
                temperature=temperature,
                max_tokens=max_tokens,
                on_chunk=on_chunk,
            )
        except TransportError:
            raise
        except Exception as exc:
            raise TransportError(model_id, f"Unexpected error: {exc}") from exc
