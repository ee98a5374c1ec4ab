"""
Local ICE candidate bookkeeping.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional


@dataclass
class IceCandidate:
    """Serialisable ICE candidate container."""

    candidate: str
    sdp_mid: Optional[str] = None
    sdp_mline_index: Optional[int] = None
    # Local capture time, never sent on the wire.
    captured_at: float = field(default_factory=time.monotonic, compare=False)

    def to_dict(self) -> dict:
        return {
            "candidate": self.candidate,
            "sdpMid": self.sdp_mid,
            "sdpMLineIndex": self.sdp_mline_index,
        }


SubmitCallable = Callable[[IceCandidate], Awaitable[None]]


class IceCandidateBuffer:
    """
    Hold local candidates until the remote description is applied.

    After :meth:`drain` (or :meth:`flush`) the buffer refuses every further
    candidate so callers submit them directly.
    """

    def __init__(self) -> None:
        self._pending: List[IceCandidate] = []
        self._flushed = False

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def flushed(self) -> bool:
        return self._flushed

    def offer(self, candidate: IceCandidate) -> bool:
        """Buffer ``candidate``; returns False once the buffer has been flushed."""

        if self._flushed:
            return False
        self._pending.append(candidate)
        return True

    def drain(self) -> List[IceCandidate]:
        self._flushed = True
        pending, self._pending = self._pending, []
        return pending

    async def flush(self, submit: SubmitCallable) -> int:
        pending = self.drain()
        for candidate in pending:
            await submit(candidate)
        return len(pending)


__all__ = ["IceCandidate", "IceCandidateBuffer"]
