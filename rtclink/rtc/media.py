"""
Remote media sinks.

A sink is where the controller "renders" a session: it receives the remote
tracks once the session is connected and an opacity-style indicator for every
connectivity change.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Optional, Sequence

LOG = logging.getLogger(__name__)

INDICATOR_CONNECTED = 1.0
INDICATOR_DISCONNECTED = 0.4
INDICATOR_FAILED = 0.6


class MediaSink:
    """
    Minimal sink that remembers what it was asked to render.
    """

    def __init__(self) -> None:
        self.tracks: List[Any] = []
        self.indicator: Optional[float] = None

    @property
    def attached(self) -> bool:
        return bool(self.tracks)

    def attach(self, tracks: Sequence[Any]) -> None:
        self.tracks = list(tracks)

    def detach(self) -> None:
        tracks, self.tracks = self.tracks, []
        for track in tracks:
            stop = getattr(track, "stop", None)
            if callable(stop):
                stop()

    def set_indicator(self, value: float) -> None:
        self.indicator = max(0.0, min(1.0, float(value)))


class TrackConsumerSink(MediaSink):
    """
    Sink that drains remote tracks so the media stack keeps decoding.

    Frame counts are logged the same way for every track kind; nothing is
    displayed.
    """

    def __init__(self, log_every_n: int = 300) -> None:
        super().__init__()
        self.log_every_n = max(1, int(log_every_n))
        self._tasks: List["asyncio.Task[None]"] = []

    def attach(self, tracks: Sequence[Any]) -> None:
        for track in tracks:
            if track in self.tracks:
                continue
            self.tracks.append(track)
            self._tasks.append(asyncio.ensure_future(self._consume(track)))

    def detach(self) -> None:
        for task in self._tasks:
            task.cancel()
        self._tasks = []
        super().detach()

    async def _consume(self, track: Any) -> None:
        kind = getattr(track, "kind", "unknown")
        recv_count = 0
        try:
            while True:
                try:
                    await track.recv()
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    LOG.info("Remote %s track ended: %s", kind, exc)
                    break
                recv_count += 1
                if recv_count == 1:
                    LOG.info("First remote %s frame received", kind)
                elif recv_count % self.log_every_n == 0:
                    LOG.debug("Received %d remote %s frames", recv_count, kind)
        finally:
            LOG.info("Remote %s track consumer stopped (frames: %d)", kind, recv_count)


__all__ = [
    "INDICATOR_CONNECTED",
    "INDICATOR_DISCONNECTED",
    "INDICATOR_FAILED",
    "MediaSink",
    "TrackConsumerSink",
]
