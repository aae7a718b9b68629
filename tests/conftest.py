"""Shared pytest fixtures."""

from collections.abc import Callable

import pytest

from config.config_loader import (
    AppConfig,
    DebateConfig,
    GatewayConfig,
    JudgeConfig,
    PromptsConfig,
    ServerConfig,
)
from hippodrome.gateway import ModelGateway
from hippodrome.models import Participant, TransportKind
from hippodrome.providers.base import ChunkObserver, Transport, TransportError

Responder = Callable[[str, str], str]


@pytest.fixture
def sample_gateway_config() -> GatewayConfig:
    return GatewayConfig(
        base_url="https://openrouter.test/api/v1",
        api_key_env="TEST_OPENROUTER_KEY",
        credential_header="x-openrouter-key",
        model_suffix=":free",
        temperature=0.7,
        max_tokens=1000,
        judge_temperature=0.5,
        judge_max_tokens=800,
        timeout_sec=30,
        referer="https://hippodrome.test",
        title="Hippodrome Test",
    )


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(
        initial="INITIAL {name}: {topic}",
        first_round="ROUND 1 {name}: {topic}\nInitial:\n{initial_answers}",
        later_round="ROUND {round} {name}: {topic}\nInitial:\n{initial_answers}\nPrevious:\n{previous_round}",
        judge="JUDGE {topic}\n{answers}\n{lenient_clause}",
        summarize="SUMMARIZE {topic}\n{conversation}",
        propose="PROPOSE {topic}\n{initial_answers}\n{transcript}",
        vote="VOTE {vote_round} {name}: {proposal}",
        emergency="EMERGENCY {topic}\n{initial_answers}\n{transcript}",
        lenient_clause="Be generous.",
    )


@pytest.fixture
def sample_app_config(sample_gateway_config, sample_prompts_config) -> AppConfig:
    return AppConfig(
        gateway=sample_gateway_config,
        debate=DebateConfig(max_rounds=3, max_vote_rounds=5, fallback_model="vendor/fallback-model"),
        judge=JudgeConfig(lenient=True),
        server=ServerConfig(),
        prompts=sample_prompts_config,
    )


@pytest.fixture
def two_participants() -> list[Participant]:
    return [Participant("vendor/alpha-one"), Participant("vendor/beta-two")]


@pytest.fixture
def three_participants() -> list[Participant]:
    return [
        Participant("vendor/alpha-one"),
        Participant("vendor/beta-two"),
        Participant("vendor/gamma-three"),
    ]


class ScriptedTransport(Transport):
    """Test double transport. Replies come from a responder(prompt, model_id).

    A responder that raises TransportError simulates a failing call.
    When chunks is set, streamed partials are pushed to on_chunk.
    """

    def __init__(self, responder: Responder, chunks: int = 0) -> None:
        self._responder = responder
        self._chunks = chunks
        self.calls: list[tuple[str, str]] = []

    async def complete(
        self,
        prompt: str,
        model_id: str,
        *,
        temperature: float,
        max_tokens: int,
        on_chunk: ChunkObserver | None = None,
    ) -> str:
        self.calls.append((prompt, model_id))
        reply = self._responder(prompt, model_id)
        if self._chunks and on_chunk is not None:
            step = max(1, len(reply) // self._chunks)
            for end in range(step, len(reply), step):
                on_chunk(reply[:end])
            on_chunk(reply)
        return reply

    def prompts_for(self, marker: str) -> list[str]:
        return [p for p, _ in self.calls if p.startswith(marker)]


def default_responder(
    judge_reply: str = "Agreement level: 20%\nConsensus reached: NO",
    vote_reply: str = "APPROVE",
) -> Responder:
    """Distinct text per prompt kind, round and model."""

    def respond(prompt: str, model_id: str) -> str:
        model = model_id.split("/")[-1].replace(":free", "")
        if prompt.startswith("INITIAL"):
            return f"initial view of {model}"
        if prompt.startswith("ROUND"):
            return f"round {prompt.split()[1]} answer of {model}"
        if prompt.startswith("JUDGE"):
            return judge_reply
        if prompt.startswith("SUMMARIZE"):
            return "summarized consensus"
        if prompt.startswith("PROPOSE"):
            return "Consensus: \"proposed common ground\""
        if prompt.startswith("VOTE"):
            return vote_reply
        if prompt.startswith("EMERGENCY"):
            return "emergency synthesis"
        return "unexpected prompt"

    return respond


def failing_responder(reason: str = "boom") -> Responder:
    def respond(prompt: str, model_id: str) -> str:
        raise TransportError(model_id, reason, status_code=404)

    return respond


def make_gateway(config: GatewayConfig, responder: Responder, chunks: int = 0) -> tuple[ModelGateway, ScriptedTransport]:
    transport = ScriptedTransport(responder, chunks=chunks)
    gateway = ModelGateway(
        config,
        {TransportKind.BUFFERED: transport, TransportKind.STREAMING: transport},
    )
    return gateway, transport
