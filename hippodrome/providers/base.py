"""Abstract base for chat-completion transports."""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable

# Called with the running accumulation after every streamed chunk.
ChunkObserver = Callable[[str], Awaitable[None] | None]


class TransportError(Exception):
    """Raised when a transport call fails."""

    def __init__(self, identifier: str, message: str, status_code: int | None = None) -> None:
        self.identifier = identifier
        self.status_code = status_code
        super().__init__(f"[{identifier}] {message}")


class StreamSetupError(TransportError):
    """Raised when a streamed request could not be opened."""


class Transport(ABC):
    """Sends one prompt to one model and returns the completion text."""

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        model_id: str,
        *,
        temperature: float,
        max_tokens: int,
        on_chunk: ChunkObserver | None = None,
    ) -> str:
        """Return the full completion for prompt.

        Args:
            prompt: The user message content.
            model_id: Identifier as the endpoint expects it.
            temperature: Sampling temperature.
            max_tokens: Completion token cap.
            on_chunk: Observer for streamed partial text. Buffered
                transports ignore it.

        Raises:
            TransportError: On API failure, timeout, or empty response.
        """
        ...
