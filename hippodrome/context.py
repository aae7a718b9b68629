"""Per-debate context passed explicitly through every orchestration call."""

from dataclasses import dataclass

from hippodrome.aggregator import ResponseAggregator
from hippodrome.channel import UpdateChannel
from hippodrome.gateway import ModelGateway
from hippodrome.models import Participant


@dataclass
class DebateContext:
    topic: str
    participants: list[Participant]
    gateway: ModelGateway
    aggregator: ResponseAggregator
    channel: UpdateChannel

    def publish(self) -> None:
        """Push a snapshot of the current state to the consumer."""
        self.channel.push(self.aggregator.snapshot())
