"""Consensus judge: asks one participant whether a round's answers agree.

The judge never raises. A failed or unparseable evaluation degrades to a
deterministic verdict so the round loop always makes progress.
"""

import logging
import re

from config.config_loader import AppConfig, PromptsConfig
from hippodrome.gateway import ModelGateway, is_sentinel
from hippodrome.models import ConsensusVerdict, Participant
from hippodrome.transcript import format_answers, format_numbered

logger = logging.getLogger(__name__)

_AGREEMENT_RE = re.compile(r"consensus reached:\s*[\[*]*\s*yes\b(?!\s*/\s*no)", re.IGNORECASE)
# Block runs to the next marker or end of text; the first block wins.
_FINAL_RE = re.compile(
    r"final consensus:\s*(.*?)(?=\n[ \t*]*final consensus:|\Z)",
    re.IGNORECASE | re.DOTALL,
)


class JudgeError(Exception):
    """Raised internally when the judge cannot produce a verdict."""


def templated_consensus(topic: str) -> str:
    return (
        f"After thorough discussion, the participants agree that {topic} involves "
        "considering multiple perspectives and finding a balanced approach."
    )


def parse_verdict(reply: str) -> tuple[bool, str | None]:
    """Extract (agreement, synthesis) from a judge reply.

    Synthesis is None when agreement is not signalled or the
    'Final consensus:' block is missing or empty.
    """
    if not _AGREEMENT_RE.search(reply):
        return False, None
    match = _FINAL_RE.search(reply)
    if not match:
        return True, None
    answer = match.group(1).strip()
    if not answer or answer.startswith("[only if"):
        return True, None
    return True, answer


class ConsensusJudge:
    def __init__(
        self,
        gateway: ModelGateway,
        judge: Participant,
        prompts: PromptsConfig,
        *,
        max_rounds: int,
        lenient: bool = True,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> None:
        self._gateway = gateway
        self._judge = judge
        self._prompts = prompts
        self._max_rounds = max_rounds
        self._lenient = lenient
        self._temperature = temperature
        self._max_tokens = max_tokens

    @classmethod
    def from_config(
        cls, gateway: ModelGateway, judge: Participant, config: AppConfig,
    ) -> "ConsensusJudge":
        return cls(
            gateway,
            judge,
            config.prompts,
            max_rounds=config.debate.max_rounds,
            lenient=config.judge.lenient,
            temperature=config.gateway.judge_temperature,
            max_tokens=config.gateway.judge_max_tokens,
        )

    @property
    def participant(self) -> Participant:
        return self._judge

    def degraded_verdict(self, topic: str, round_index: int) -> ConsensusVerdict:
        """Assume consensus on the final allotted round, else inconclusive."""
        if round_index >= self._max_rounds - 1:
            return ConsensusVerdict(reached=True, answer=templated_consensus(topic))
        return ConsensusVerdict(reached=False)

    async def evaluate(
        self,
        topic: str,
        answers: list[str],
        transcript: list[dict[str, str]],
        round_index: int,
    ) -> ConsensusVerdict:
        """Judge one round's answers.

        Args:
            topic: The debate topic.
            answers: The current round's answers, in participant order.
            transcript: All rounds so far; the last one feeds the repair
                summary.
            round_index: 0-based round number, used for degradation.
        """
        try:
            reply = await self._ask(
                self._prompts.judge.format(
                    topic=topic,
                    answers=format_numbered(answers),
                    lenient_clause=self._prompts.lenient_clause if self._lenient else "",
                )
            )
            reached, answer = parse_verdict(reply)
            if reached and not answer:
                logger.info("Consensus signalled without a synthesis, asking for a summary")
                answer = await self._summarize(topic, answers, transcript)
        except Exception as exc:
            verdict = self.degraded_verdict(topic, round_index)
            logger.warning(
                "Consensus check failed after round %d (%s), degraded verdict reached=%s",
                round_index + 1,
                exc,
                verdict.reached,
            )
            return verdict

        logger.info("Consensus check after round %d: reached=%s", round_index + 1, reached)
        return ConsensusVerdict(reached=reached, answer=answer if reached else None)

    async def _ask(self, prompt: str) -> str:
        reply = await self._gateway.generate(
            prompt,
            self._judge,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )
        if is_sentinel(reply):
            raise JudgeError(f"Judge {self._judge.identifier} gave no usable reply")
        return reply

    async def _summarize(
        self, topic: str, answers: list[str], transcript: list[dict[str, str]],
    ) -> str:
        if transcript and transcript[-1]:
            conversation = format_answers(transcript[-1])
        else:
            conversation = format_numbered(answers)
        reply = await self._gateway.generate(
            self._prompts.summarize.format(topic=topic, conversation=conversation),
            self._judge,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )
        if is_sentinel(reply):
            return templated_consensus(topic)
        return reply.strip()
