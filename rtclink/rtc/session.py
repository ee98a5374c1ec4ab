"""
Session level value types.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Set

from .candidates import IceCandidateBuffer

if TYPE_CHECKING:  # pragma: no cover
    from .peer import PeerConnection


class SessionState(str, Enum):
    """Externally observed lifecycle of a session."""

    IDLE = "idle"
    NEGOTIATING = "negotiating"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    FAILED = "failed"
    CLOSED = "closed"


@dataclass(frozen=True)
class SessionDescription:
    type: str
    sdp: str

    def to_dict(self) -> dict:
        return {"type": self.type, "sdp": self.sdp}


@dataclass
class ConnectParams:
    """Target stream and negotiation preferences for one ``connect`` call."""

    video_url: str
    audio_url: Optional[str] = None
    options: Optional[str] = None
    preferred_codec: Optional[str] = None
    local_tracks: List[Any] = field(default_factory=list)

    @classmethod
    def from_source(cls, source: Mapping[str, Any]) -> "ConnectParams":
        """
        Build parameters from a ``{"kind": "webrtc", "url": ...}`` stream source.
        """

        kind = source.get("kind", "webrtc")
        if kind != "webrtc":
            raise ValueError(f"Unsupported stream source kind '{kind}'")
        url = str(source.get("url") or "").strip()
        if not url:
            raise ValueError("Stream source requires a url")
        return cls(
            video_url=url,
            audio_url=source.get("audioUrl") or None,
            options=source.get("options") or None,
            preferred_codec=source.get("preferCodec") or None,
        )


def new_peer_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Session:
    """
    State owned by one negotiation attempt.

    A session is never reused: ``connect`` always creates a new one and the
    old one ends up ``CLOSED``.
    """

    peer: "PeerConnection"
    peer_id: str = field(default_factory=new_peer_id)
    state: SessionState = SessionState.NEGOTIATING
    ice_state: str = "new"
    buffer: IceCandidateBuffer = field(default_factory=IceCandidateBuffer)
    remote_tracks: List[Any] = field(default_factory=list)
    media_url: Optional[str] = None
    tasks: Set["asyncio.Task[Any]"] = field(default_factory=set)
    poll_task: Optional["asyncio.Task[Any]"] = None
    connected_notified: bool = False
    remote_description_set: bool = False

    @property
    def closed(self) -> bool:
        return self.state is SessionState.CLOSED

    @property
    def polling_allowed(self) -> bool:
        return self.state in (SessionState.NEGOTIATING, SessionState.DISCONNECTED)

    def describe(self) -> Dict[str, Any]:
        return {
            "peerId": self.peer_id,
            "mediaUrl": self.media_url,
            "state": self.state.value,
            "iceState": self.ice_state,
            "bufferedCandidates": len(self.buffer),
            "remoteTracks": len(self.remote_tracks),
        }


__all__ = ["ConnectParams", "Session", "SessionDescription", "SessionState", "new_peer_id"]
