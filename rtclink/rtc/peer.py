"""
Peer connection capability consumed by the session controller.

The controller only talks to :class:`PeerConnection`; the media stack behind
it is swappable.  :class:`AiortcPeerConnection` is the default implementation.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Protocol

from aiortc import RTCConfiguration, RTCIceServer, RTCPeerConnection, RTCSessionDescription
from aiortc.sdp import candidate_from_sdp

from .candidates import IceCandidate
from .ice_servers import IceServerConfig
from .session import SessionDescription

LOG = logging.getLogger(__name__)

ICE_STATE_EVENT = "iceconnectionstatechange"
TRACK_EVENT = "track"
CANDIDATE_EVENT = "icecandidate"


class PeerConnection(Protocol):
    """
    Capability set required to negotiate one session.

    ``on(event, callback)`` subscriptions deliver:

    * ``"iceconnectionstatechange"`` -> ``callback(state: str)``
    * ``"track"`` -> ``callback(track)``
    * ``"icecandidate"`` -> ``callback(candidate: IceCandidate)``
    """

    async def create_offer(self) -> SessionDescription: ...

    async def set_local_description(self, description: SessionDescription) -> None: ...

    async def set_remote_description(self, description: SessionDescription) -> None: ...

    async def add_ice_candidate(self, candidate: IceCandidate) -> None: ...

    def add_track(self, track: Any) -> None: ...

    def add_transceiver(self, kind: str, direction: str) -> None: ...

    def create_data_channel(self, label: str) -> None: ...

    def on(self, event: str, callback: Callable[..., None]) -> None: ...

    async def close(self) -> None: ...


PeerFactory = Callable[[IceServerConfig], PeerConnection]


def parse_candidate_lines(sdp: str) -> List[IceCandidate]:
    """
    Extract ``a=candidate`` lines from ``sdp`` with their media ids and indexes.
    """

    candidates: List[IceCandidate] = []
    mline_index = -1
    mid: Optional[str] = None
    for raw in sdp.splitlines():
        line = raw.strip()
        if line.startswith("m="):
            mline_index += 1
            mid = None
        elif line.startswith("a=mid:"):
            mid = line[len("a=mid:"):]
        elif line.startswith("a=candidate:") and mline_index >= 0:
            candidates.append(
                IceCandidate(candidate=line[2:], sdp_mid=mid, sdp_mline_index=mline_index)
            )
    return candidates


class AiortcPeerConnection:
    """
    :class:`PeerConnection` backed by :class:`aiortc.RTCPeerConnection`.

    aiortc gathers every local candidate inside ``setLocalDescription``
    instead of trickling them, so they are re-emitted as ``icecandidate``
    events once the local description is applied.
    """

    def __init__(self, ice_servers: IceServerConfig) -> None:
        configuration = RTCConfiguration(
            iceServers=[
                RTCIceServer(
                    urls=list(server.urls),
                    username=server.username,
                    credential=server.credential,
                )
                for server in ice_servers.servers
            ]
        )
        self._pc = RTCPeerConnection(configuration=configuration)
        self._listeners: Dict[str, List[Callable[..., None]]] = defaultdict(list)

        @self._pc.on("iceconnectionstatechange")
        def on_iceconnectionstatechange() -> None:
            self._emit(ICE_STATE_EVENT, self._pc.iceConnectionState)

        @self._pc.on("track")
        def on_track(track) -> None:
            LOG.info("Remote %s track received", track.kind)
            self._emit(TRACK_EVENT, track)

    def _emit(self, event: str, *args: Any) -> None:
        for callback in list(self._listeners.get(event, ())):
            callback(*args)

    def on(self, event: str, callback: Callable[..., None]) -> None:
        self._listeners[event].append(callback)

    async def create_offer(self) -> SessionDescription:
        offer = await self._pc.createOffer()
        return SessionDescription(type=offer.type, sdp=offer.sdp)

    async def set_local_description(self, description: SessionDescription) -> None:
        await self._pc.setLocalDescription(
            RTCSessionDescription(sdp=description.sdp, type=description.type)
        )
        local = self._pc.localDescription
        if local is None:
            return
        for candidate in parse_candidate_lines(local.sdp):
            self._emit(CANDIDATE_EVENT, candidate)

    async def set_remote_description(self, description: SessionDescription) -> None:
        await self._pc.setRemoteDescription(
            RTCSessionDescription(sdp=description.sdp, type=description.type)
        )

    async def add_ice_candidate(self, candidate: IceCandidate) -> None:
        text = candidate.candidate
        if text.startswith("candidate:"):
            text = text[len("candidate:"):]
        if not text:
            # End-of-candidates marker; aiortc has nothing to do with it.
            return
        remote = candidate_from_sdp(text)
        remote.sdpMid = candidate.sdp_mid
        remote.sdpMLineIndex = candidate.sdp_mline_index
        await self._pc.addIceCandidate(remote)

    def add_track(self, track: Any) -> None:
        self._pc.addTrack(track)

    def add_transceiver(self, kind: str, direction: str) -> None:
        self._pc.addTransceiver(kind, direction=direction)

    def create_data_channel(self, label: str) -> None:
        self._pc.createDataChannel(label)

    async def close(self) -> None:
        await self._pc.close()


__all__ = [
    "AiortcPeerConnection",
    "CANDIDATE_EVENT",
    "ICE_STATE_EVENT",
    "PeerConnection",
    "PeerFactory",
    "TRACK_EVENT",
    "parse_candidate_lines",
]
