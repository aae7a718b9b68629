"""Debate orchestration: initial answers, sequential rounds, judge, escalation.

Every debate ends with exactly one committed final answer unless it is
cancelled. A snapshot is published after every state change.
"""

import asyncio
import contextlib
import logging
from enum import Enum

from config.config_loader import AppConfig, PromptsConfig
from hippodrome.aggregator import ResponseAggregator
from hippodrome.channel import UpdateChannel
from hippodrome.context import DebateContext
from hippodrome.gateway import ModelGateway, is_sentinel, sentinel_for
from hippodrome.judge import ConsensusJudge, templated_consensus
from hippodrome.models import DebateRequest, DebateState, Participant
from hippodrome.transcript import format_answers, format_transcript
from hippodrome.voting import VotingProtocol

logger = logging.getLogger(__name__)


class DebatePhase(str, Enum):
    COLLECTING_INITIAL = "collecting_initial"
    DEBATING = "debating"
    CONSENSUS_FOUND = "consensus_found"
    ESCALATING_VOTE = "escalating_vote"
    TERMINAL = "terminal"
    CANCELLED = "cancelled"


class DebateOrchestrator:
    def __init__(
        self,
        ctx: DebateContext,
        judge: ConsensusJudge,
        voting: VotingProtocol,
        prompts: PromptsConfig,
        *,
        max_rounds: int = 3,
        fallback_model: str = "mistralai/mistral-7b-instruct",
    ) -> None:
        self._ctx = ctx
        self._judge = judge
        self._voting = voting
        self._prompts = prompts
        self._max_rounds = max_rounds
        self._fallback = Participant(fallback_model)
        self.phase = DebatePhase.COLLECTING_INITIAL

    async def run(self, cancel: asyncio.Event | None = None) -> DebateState | None:
        """Drive the debate to its terminal state.

        Returns the terminal snapshot, or None when cancel was set first.
        On cancellation in-flight calls are abandoned and the channel is
        closed without a final answer.
        """
        drive = asyncio.create_task(self._drive())
        if cancel is None:
            try:
                await drive
            except asyncio.CancelledError:
                self._ctx.channel.close()
                raise
            return self._ctx.aggregator.snapshot()

        waiter = asyncio.create_task(cancel.wait())
        try:
            await asyncio.wait({drive, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            self._ctx.channel.close()
            drive.cancel()
            waiter.cancel()
            raise

        if drive.done():
            waiter.cancel()
            drive.result()
            return self._ctx.aggregator.snapshot()

        logger.info("Debate on %r cancelled during %s", self._ctx.topic[:60], self.phase.value)
        self.phase = DebatePhase.CANCELLED
        self._ctx.channel.close()
        drive.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await drive
        return None

    async def _drive(self) -> None:
        try:
            await self._collect_initial()
            if not await self._debate_rounds():
                await self._escalate()
        except Exception:
            logger.exception("Debate on %r failed, falling back", self._ctx.topic[:60])

        try:
            if not self._ctx.aggregator.is_terminal:
                await self._last_resort()
            self.phase = DebatePhase.TERMINAL
        finally:
            self._ctx.channel.close()

    async def _collect_initial(self) -> None:
        self.phase = DebatePhase.COLLECTING_INITIAL
        logger.info("Collecting initial answers from %d models", len(self._ctx.participants))
        await asyncio.gather(*(self._collect_one(p) for p in self._ctx.participants))
        logger.info("All initial answers received")

    async def _collect_one(self, participant: Participant) -> None:
        ctx = self._ctx
        name = participant.display_name
        ctx.aggregator.record_placeholder(name)
        ctx.publish()

        def on_chunk(partial: str) -> None:
            ctx.aggregator.update_partial(name, partial)
            ctx.publish()

        prompt = self._prompts.initial.format(name=name, topic=ctx.topic)
        try:
            answer = await ctx.gateway.generate(prompt, participant, on_chunk=on_chunk)
        except Exception as exc:
            logger.warning("Initial answer from %s failed: %s", participant.identifier, exc)
            answer = sentinel_for(participant.identifier)
        ctx.aggregator.finalize_initial(name, answer)
        ctx.publish()

    def _round_prompt(
        self, participant: Participant, round_index: int, initial: str, previous: str,
    ) -> str:
        if round_index == 0:
            return self._prompts.first_round.format(
                name=participant.display_name,
                topic=self._ctx.topic,
                initial_answers=initial,
            )
        return self._prompts.later_round.format(
            name=participant.display_name,
            round=round_index + 1,
            topic=self._ctx.topic,
            initial_answers=initial,
            previous_round=previous,
        )

    async def _debate_rounds(self) -> bool:
        """Run up to max_rounds rounds. Returns True once consensus is committed."""
        ctx = self._ctx
        self.phase = DebatePhase.DEBATING

        for round_index in range(self._max_rounds):
            logger.info("Starting debate round %d", round_index + 1)
            slot = ctx.aggregator.append_round_slot()
            ctx.publish()

            initial = format_answers(ctx.aggregator.initial_answers())
            previous = format_answers(ctx.aggregator.rounds()[slot - 1]) if round_index > 0 else ""

            for participant in ctx.participants:
                prompt = self._round_prompt(participant, round_index, initial, previous)
                answer = await ctx.gateway.generate(prompt, participant)
                ctx.aggregator.record_round_answer(slot, participant.display_name, answer)
                ctx.publish()

            answers = list(ctx.aggregator.rounds()[slot].values())
            try:
                verdict = await self._judge.evaluate(
                    ctx.topic, answers, ctx.aggregator.rounds(), round_index,
                )
            except Exception as exc:
                logger.warning("Judge raised after round %d: %s", round_index + 1, exc)
                verdict = self._judge.degraded_verdict(ctx.topic, round_index)

            if verdict.reached and verdict.answer:
                self.phase = DebatePhase.CONSENSUS_FOUND
                if ctx.aggregator.set_final(verdict.answer, escalated=False):
                    ctx.publish()
                logger.info("Consensus reached in round %d", round_index + 1)
                return True

        return False

    async def _escalate(self) -> None:
        self.phase = DebatePhase.ESCALATING_VOTE
        try:
            result = await self._voting.run(self._ctx)
        except Exception as exc:
            logger.warning("Voting failed: %s", exc)
            return
        if self._ctx.aggregator.set_final(result.text, escalated=True):
            self._ctx.publish()

    async def _last_resort(self) -> None:
        ctx = self._ctx
        logger.warning("Last-resort synthesis via %s", self._fallback.identifier)
        prompt = self._prompts.emergency.format(
            topic=ctx.topic,
            initial_answers=format_answers(ctx.aggregator.initial_answers()),
            transcript=format_transcript(ctx.aggregator.rounds()),
        )
        try:
            text = await ctx.gateway.generate(prompt, self._fallback)
        except Exception as exc:
            logger.warning("Last-resort synthesis failed: %s", exc)
            text = ""
        if is_sentinel(text):
            text = templated_consensus(ctx.topic)
        if ctx.aggregator.set_final(text.strip(), escalated=True):
            ctx.publish()


def build_orchestrator(
    request: DebateRequest,
    config: AppConfig,
    channel: UpdateChannel,
    gateway: ModelGateway | None = None,
) -> DebateOrchestrator:
    """Wire a fresh, request-scoped orchestrator. Nothing is shared across debates."""
    if gateway is None:
        gateway = ModelGateway.for_credential(config.gateway, request.credential)
    ctx = DebateContext(
        topic=request.topic,
        participants=list(request.participants),
        gateway=gateway,
        aggregator=ResponseAggregator(len(request.participants), config.debate.placeholder),
        channel=channel,
    )
    return DebateOrchestrator(
        ctx,
        ConsensusJudge.from_config(gateway, request.participants[0], config),
        VotingProtocol(config.prompts, config.debate.max_vote_rounds),
        config.prompts,
        max_rounds=config.debate.max_rounds,
        fallback_model=config.debate.fallback_model,
    )


async def run_debate(
    request: DebateRequest,
    config: AppConfig,
    channel: UpdateChannel,
    cancel: asyncio.Event | None = None,
    gateway: ModelGateway | None = None,
) -> DebateState | None:
    """Run one debate, streaming snapshots into channel."""
    orchestrator = build_orchestrator(request, config, channel, gateway)
    return await orchestrator.run(cancel)
