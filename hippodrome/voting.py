"""Escalation protocol: propose a consensus text, then approve-or-revise votes.

Used when the round loop ends without the judge finding consensus. The
first participant proposes; every other participant votes APPROVE or
offers a revision. The proposer counts as an approval.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum

from config.config_loader import PromptsConfig
from hippodrome.context import DebateContext
from hippodrome.gateway import is_sentinel
from hippodrome.transcript import format_answers, format_transcript

logger = logging.getLogger(__name__)

_APPROVE_RE = re.compile(r"^[\W_]*approved?\b", re.IGNORECASE)
_PREFIX_RE = re.compile(
    r"^\s*(?:revised\s+)?(?:final\s+)?(?:consensus|revision|proposal)(?:\s+statement)?\s*:\s*",
    re.IGNORECASE,
)
_QUOTES = "\"'“”‘’`"


class VotingError(Exception):
    """Raised when the protocol cannot even produce a proposal."""


class VoteOutcome(str, Enum):
    UNANIMOUS = "unanimous"
    MAJORITY = "majority"
    REVISE = "revise"
    CONTINUE = "continue"


@dataclass
class VoteTally:
    electorate: int
    approvals: list[str] = field(default_factory=list)
    revisions: dict[str, str] = field(default_factory=dict)
    abstentions: list[str] = field(default_factory=list)

    @property
    def approval_count(self) -> int:
        """Voter approvals plus the proposer's implicit one."""
        return len(self.approvals) + 1


@dataclass
class VoteResult:
    text: str
    outcome: VoteOutcome
    vote_rounds: int
    forced: bool = False


def clean_revision(text: str) -> str:
    """Strip a leading 'Consensus:'-style label and surrounding quotes."""
    cleaned = _PREFIX_RE.sub("", text.strip(), count=1).strip()
    if len(cleaned) >= 2 and cleaned[0] in _QUOTES and cleaned[-1] in _QUOTES:
        cleaned = cleaned[1:-1].strip()
    return cleaned


def tally_votes(votes: dict[str, str], electorate: int) -> VoteTally:
    """Sort voter replies into approvals, revisions and abstentions.

    Failed calls and empty revisions count as abstentions.
    """
    tally = VoteTally(electorate=electorate)
    for voter, reply in votes.items():
        if is_sentinel(reply):
            tally.abstentions.append(voter)
        elif _APPROVE_RE.match(reply):
            tally.approvals.append(voter)
        else:
            revision = clean_revision(reply)
            if revision:
                tally.revisions[voter] = revision
            else:
                tally.abstentions.append(voter)
    return tally


def decide(tally: VoteTally) -> VoteOutcome:
    if tally.approval_count >= tally.electorate:
        return VoteOutcome.UNANIMOUS
    if tally.approval_count * 2 > tally.electorate:
        return VoteOutcome.MAJORITY
    if not tally.approvals and len(tally.revisions) == 1:
        return VoteOutcome.REVISE
    return VoteOutcome.CONTINUE


class VotingProtocol:
    def __init__(self, prompts: PromptsConfig, max_vote_rounds: int = 5) -> None:
        self._prompts = prompts
        self._max_vote_rounds = max_vote_rounds

    async def run(self, ctx: DebateContext) -> VoteResult:
        """Run proposal plus up to max_vote_rounds voting rounds.

        Every call is sequential and every recorded answer is published.

        Raises:
            VotingError: If the proposer returns no usable text.
        """
        proposer, voters = ctx.participants[0], ctx.participants[1:]

        slot = ctx.aggregator.append_round_slot()
        ctx.publish()
        reply = await ctx.gateway.generate(
            self._prompts.propose.format(
                topic=ctx.topic,
                initial_answers=format_answers(ctx.aggregator.initial_answers()),
                transcript=format_transcript(ctx.aggregator.rounds()[:slot]),
            ),
            proposer,
        )
        if is_sentinel(reply):
            raise VotingError(f"Proposer {proposer.identifier} gave no usable proposal")
        proposal = clean_revision(reply) or reply.strip()
        ctx.aggregator.record_round_answer(slot, proposer.display_name, proposal)
        ctx.publish()
        logger.info("Escalated to voting, proposal by %s", proposer.display_name)

        for vote_round in range(1, self._max_vote_rounds + 1):
            slot = ctx.aggregator.append_round_slot()
            ctx.publish()
            votes: dict[str, str] = {}
            for voter in voters:
                vote = await ctx.gateway.generate(
                    self._prompts.vote.format(
                        name=voter.display_name,
                        topic=ctx.topic,
                        proposal=proposal,
                        vote_round=vote_round,
                    ),
                    voter,
                )
                votes[voter.display_name] = vote
                ctx.aggregator.record_round_answer(slot, voter.display_name, vote)
                ctx.publish()

            tally = tally_votes(votes, electorate=len(ctx.participants))
            outcome = decide(tally)
            logger.info(
                "Vote %d: %d/%d approve, %d revision(s), outcome=%s",
                vote_round,
                tally.approval_count,
                tally.electorate,
                len(tally.revisions),
                outcome.value,
            )
            if outcome in (VoteOutcome.UNANIMOUS, VoteOutcome.MAJORITY):
                return VoteResult(text=proposal, outcome=outcome, vote_rounds=vote_round)
            if outcome is VoteOutcome.REVISE:
                proposal = next(iter(tally.revisions.values()))

        logger.warning(
            "No agreement after %d vote(s), forcing current proposal", self._max_vote_rounds,
        )
        return VoteResult(
            text=proposal,
            outcome=VoteOutcome.CONTINUE,
            vote_rounds=self._max_vote_rounds,
            forced=True,
        )
