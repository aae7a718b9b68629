"""Mutable per-debate state, handed out only as deep-copied snapshots."""

import logging

from hippodrome.models import DebateState

logger = logging.getLogger(__name__)


class ResponseAggregator:
    """Owns one DebateState. Only the orchestrating task mutates it."""

    def __init__(self, total_participants: int, placeholder: str = "Thinking...") -> None:
        self._state = DebateState(total_participants=total_participants)
        self._placeholder = placeholder

    @property
    def is_terminal(self) -> bool:
        return self._state.is_terminal

    @property
    def final_answer(self) -> str | None:
        return self._state.final_answer

    def initial_answers(self) -> dict[str, str]:
        return dict(self._state.initial_answers)

    def rounds(self) -> list[dict[str, str]]:
        return [dict(r) for r in self._state.rounds]

    def record_placeholder(self, name: str) -> None:
        if name in self._state.initial_answers:
            return
        self._state.in_flight[name] = self._placeholder

    def update_partial(self, name: str, text: str) -> None:
        """Replace the in-flight text for name; ignored once finalized."""
        if name in self._state.initial_answers:
            return
        self._state.in_flight[name] = text

    def finalize_initial(self, name: str, text: str) -> None:
        self._state.in_flight.pop(name, None)
        if name in self._state.initial_answers:
            logger.warning("Initial answer for %s already recorded, keeping the first", name)
            return
        self._state.initial_answers[name] = text

    def append_round_slot(self) -> int:
        self._state.rounds.append({})
        return len(self._state.rounds) - 1

    def record_round_answer(self, round_index: int, name: str, text: str) -> None:
        if not 0 <= round_index < len(self._state.rounds):
            raise IndexError(f"No round slot {round_index}")
        self._state.rounds[round_index][name] = text

    def set_final(self, text: str, escalated: bool = False) -> bool:
        """Commit the final answer. Returns False when one is already committed."""
        if self._state.is_terminal:
            logger.warning("Final answer already committed, ignoring late commit")
            return False
        self._state.final_answer = text
        self._state.consensus_reached = True
        self._state.escalated = escalated
        self._state.in_flight.clear()
        self._state.is_terminal = True
        return True

    def snapshot(self) -> DebateState:
        return self._state.copy()
