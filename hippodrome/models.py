"""Dataclasses for the debate pipeline. No I/O, no third-party deps."""

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

FREE_SUFFIX = ":free"


class TransportKind(str, Enum):
    BUFFERED = "buffered"
    STREAMING = "streaming"


def display_name_for(identifier: str) -> str:
    """Humanize a model identifier.

    >>> display_name_for("meta-llama/llama-3.2-1b-instruct:free")
    'Llama 3.2 1b Instruct'
    """
    name = identifier[: -len(FREE_SUFFIX)] if identifier.endswith(FREE_SUFFIX) else identifier
    if "/" in name:
        name = name.rsplit("/", 1)[-1] or name
    return " ".join(word[:1].upper() + word[1:] for word in name.split("-"))


@dataclass(frozen=True)
class Participant:
    identifier: str
    transport_kind: TransportKind = TransportKind.BUFFERED

    @property
    def display_name(self) -> str:
        return display_name_for(self.identifier)


@dataclass(frozen=True)
class ConsensusVerdict:
    reached: bool
    answer: str | None = None


@dataclass
class DebateRequest:
    topic: str
    participants: list[Participant]
    credential: str


@dataclass
class DebateState:
    """Full state of one debate. Snapshots of this are what gets streamed."""

    initial_answers: dict[str, str] = field(default_factory=dict)
    in_flight: dict[str, str] = field(default_factory=dict)
    rounds: list[dict[str, str]] = field(default_factory=list)
    final_answer: str | None = None
    consensus_reached: bool = False
    is_terminal: bool = False
    escalated: bool = False
    total_participants: int = 0

    def copy(self) -> "DebateState":
        return copy.deepcopy(self)

    def to_wire(self) -> dict[str, Any]:
        """Translate to the JSON shape consumed by the web client."""
        wire: dict[str, Any] = {
            "initialResponses": dict(self.initial_answers),
            "streamingResponses": dict(self.in_flight),
            "debates": [dict(r) for r in self.rounds],
            "finalAnswer": self.final_answer,
            "consensusReached": self.consensus_reached,
            "totalSelectedModels": self.total_participants,
        }
        if self.is_terminal:
            wire["isFinalUpdate"] = True
            wire["forced"] = self.escalated
        return wire
