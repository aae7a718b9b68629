"""Append-only stream of state snapshots from one debate to one consumer."""

import asyncio
import json
import logging
from collections.abc import AsyncIterator

from hippodrome.models import DebateState

logger = logging.getLogger(__name__)

_CLOSED = object()


def encode_update(state: DebateState) -> bytes:
    """One newline-delimited JSON line carrying the full state."""
    return (json.dumps(state.to_wire(), ensure_ascii=False) + "\n").encode("utf-8")


class UpdateChannel:
    """Unbounded queue of snapshots. Each message replaces all prior state.

    push() never blocks, so the orchestrator is never slowed by a slow
    reader. After close() further pushes are dropped.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._closed = False
        self._pushed = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pushed(self) -> int:
        return self._pushed

    def push(self, state: DebateState) -> None:
        if self._closed:
            logger.debug("Dropping update pushed after close")
            return
        self._queue.put_nowait(state)
        self._pushed += 1

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    async def __aiter__(self) -> AsyncIterator[DebateState]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item  # type: ignore[misc]
