"""Shared fakes: an in-process signaling gateway and a peer connection double."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest
from fastapi import FastAPI, HTTPException, Request

from rtclink.api.signaling import SignalingClient
from rtclink.rtc.candidates import IceCandidate
from rtclink.rtc.ice_servers import IceServer, IceServerConfig
from rtclink.rtc.session import SessionDescription

GATEWAY_URL = "http://gateway.test"

OFFER_SDP = "\r\n".join(
    [
        "v=0",
        "o=- 4611731400430051336 2 IN IP4 127.0.0.1",
        "s=-",
        "t=0 0",
        "a=group:BUNDLE 0 1",
        "m=audio 9 UDP/TLS/RTP/SAVPF 111 0",
        "c=IN IP4 0.0.0.0",
        "a=mid:0",
        "a=rtpmap:111 opus/48000/2",
        "a=fmtp:111 minptime=10;useinbandfec=1",
        "a=rtpmap:0 PCMU/8000",
        "m=video 9 UDP/TLS/RTP/SAVPF 96 97 98 102",
        "c=IN IP4 0.0.0.0",
        "a=mid:1",
        "a=recvonly",
        "a=rtpmap:96 H264/90000",
        "a=rtcp-fb:96 nack",
        "a=fmtp:96 level-asymmetry-allowed=1;packetization-mode=1;profile-level-id=42e01f",
        "a=rtpmap:97 VP8/90000",
        "a=rtcp-fb:97 nack",
        "a=rtpmap:98 rtx/90000",
        "a=fmtp:98 apt=97",
        "a=rtpmap:102 h264/90000",
        "a=fmtp:102 packetization-mode=0",
        "",
    ]
)

ANSWER_SDP = "\r\n".join(
    [
        "v=0",
        "o=- 1 2 IN IP4 127.0.0.1",
        "s=-",
        "t=0 0",
        "m=video 9 UDP/TLS/RTP/SAVPF 96",
        "a=mid:1",
        "a=sendonly",
        "a=rtpmap:96 H264/90000",
        "",
    ]
)


# ---------------------------------------------------------------------- gateway


class GatewayState:
    def __init__(self) -> None:
        self.calls: Dict[str, int] = defaultdict(int)
        self.ice_servers: Any = {"iceServers": [{"urls": ["stun:stun.l.google.com:19302"]}]}
        self.answer: Any = {"type": "answer", "sdp": ANSWER_SDP}
        self.remote_candidates: List[dict] = []
        self.offers: List[dict] = []
        self.submitted: List[tuple] = []
        self.hangups: List[str] = []
        self.status: Dict[str, int] = defaultdict(lambda: 200)

    def _check(self, endpoint: str) -> None:
        self.calls[endpoint] += 1
        status = self.status[endpoint]
        if status != 200:
            raise HTTPException(status_code=status, detail=f"{endpoint} failed")


def build_gateway(state: GatewayState) -> FastAPI:
    app = FastAPI()

    @app.get("/api/getIceServers")
    async def get_ice_servers():
        state._check("getIceServers")
        return state.ice_servers

    @app.post("/api/call")
    async def call(
        request: Request,
        peerid: str,
        url: str,
        audiourl: Optional[str] = None,
        options: Optional[str] = None,
    ):
        body = await request.json()
        state.offers.append(
            {"peerid": peerid, "url": url, "audiourl": audiourl, "options": options, "offer": body}
        )
        state._check("call")
        return state.answer

    @app.post("/api/addIceCandidate")
    async def add_ice_candidate(request: Request, peerid: str):
        state.submitted.append((peerid, await request.json()))
        state._check("addIceCandidate")
        return True

    @app.get("/api/getIceCandidate")
    async def get_ice_candidate(peerid: str):
        state._check("getIceCandidate")
        candidates, state.remote_candidates = state.remote_candidates, []
        return candidates

    @app.get("/api/hangup")
    async def hangup(peerid: str):
        state.hangups.append(peerid)
        state._check("hangup")
        return True

    return app


@pytest.fixture
def gateway() -> GatewayState:
    return GatewayState()


@pytest.fixture
def make_signaling(gateway: GatewayState) -> Callable[[], SignalingClient]:
    def factory() -> SignalingClient:
        transport = httpx.ASGITransport(app=build_gateway(gateway))
        return SignalingClient(GATEWAY_URL, transport=transport)

    return factory


# ---------------------------------------------------------------------- signaling double


class FakeSignaling:
    """Records every call; the controller cannot tell it apart from SignalingClient."""

    server_url = GATEWAY_URL

    def __init__(self) -> None:
        self.ice_fetches = 0
        self.ice_error: Optional[Exception] = None
        self.call_error: Optional[Exception] = None
        self.answer = SessionDescription(type="answer", sdp=ANSWER_SDP)
        self.offers: List[dict] = []
        self.submitted: List[tuple] = []
        self.remote_batches: List[List[IceCandidate]] = []
        self.polls = 0
        self.poll_gate: Optional[asyncio.Event] = None
        self.hangups: List[str] = []
        self._ice: Optional[IceServerConfig] = None

    async def fetch_ice_servers(self) -> IceServerConfig:
        if self._ice is not None:
            return self._ice
        self.ice_fetches += 1
        if self.ice_error is not None:
            raise self.ice_error
        self._ice = IceServerConfig(servers=[IceServer(urls=["stun:stun.test:3478"])])
        return self._ice

    async def open_session(self, peer_id, media_url, offer, *, audio_url=None, options=None):
        self.offers.append(
            {
                "peer_id": peer_id,
                "media_url": media_url,
                "offer": offer,
                "audio_url": audio_url,
                "options": options,
            }
        )
        if self.call_error is not None:
            raise self.call_error
        return self.answer

    async def submit_local_candidate(self, peer_id: str, candidate: IceCandidate) -> None:
        self.submitted.append((peer_id, candidate))

    async def poll_remote_candidates(self, peer_id: str) -> List[IceCandidate]:
        self.polls += 1
        if self.poll_gate is not None:
            await self.poll_gate.wait()
        if self.remote_batches:
            return self.remote_batches.pop(0)
        return []

    async def close_session(self, peer_id: str) -> None:
        self.hangups.append(peer_id)


@pytest.fixture
def signaling() -> FakeSignaling:
    return FakeSignaling()


# ---------------------------------------------------------------------- peer double


class FakeTrack:
    def __init__(self, kind: str) -> None:
        self.kind = kind
        self.stopped = False

    def stop(self) -> None:
        self.stopped = True


class FakePeerConnection:
    def __init__(self, ice_servers: IceServerConfig) -> None:
        self.ice_servers = ice_servers
        self.listeners: Dict[str, List[Callable[..., None]]] = defaultdict(list)
        self.offer_sdp = OFFER_SDP
        self.local_description: Optional[SessionDescription] = None
        self.remote_description: Optional[SessionDescription] = None
        self.tracks: List[Any] = []
        self.transceivers: List[tuple] = []
        self.data_channels: List[str] = []
        self.remote_candidates: List[IceCandidate] = []
        self.gathered: List[IceCandidate] = []
        self.fail_on: set = set()
        self.closed = False
        self.close_calls = 0

    def emit(self, event: str, *args: Any) -> None:
        for callback in list(self.listeners[event]):
            callback(*args)

    def on(self, event: str, callback: Callable[..., None]) -> None:
        self.listeners[event].append(callback)

    def _maybe_fail(self, name: str) -> None:
        if name in self.fail_on:
            raise RuntimeError(f"{name} failed")

    async def create_offer(self) -> SessionDescription:
        self._maybe_fail("create_offer")
        return SessionDescription(type="offer", sdp=self.offer_sdp)

    async def set_local_description(self, description: SessionDescription) -> None:
        self._maybe_fail("set_local_description")
        self.local_description = description
        for candidate in self.gathered:
            self.emit("icecandidate", candidate)

    async def set_remote_description(self, description: SessionDescription) -> None:
        self._maybe_fail("set_remote_description")
        self.remote_description = description

    async def add_ice_candidate(self, candidate: IceCandidate) -> None:
        if candidate.candidate.startswith("bad"):
            raise ValueError("malformed candidate")
        self.remote_candidates.append(candidate)

    def add_track(self, track: Any) -> None:
        self.tracks.append(track)

    def add_transceiver(self, kind: str, direction: str) -> None:
        self.transceivers.append((kind, direction))

    def create_data_channel(self, label: str) -> None:
        self._maybe_fail("create_data_channel")
        self.data_channels.append(label)

    async def close(self) -> None:
        self.close_calls += 1
        self._maybe_fail("close")
        self.closed = True


class PeerRecorder:
    """Peer factory keeping every peer connection it created."""

    def __init__(self) -> None:
        self.created: List[FakePeerConnection] = []
        self.configure: Optional[Callable[[FakePeerConnection], None]] = None

    def __call__(self, ice_servers: IceServerConfig) -> FakePeerConnection:
        peer = FakePeerConnection(ice_servers)
        if self.configure is not None:
            self.configure(peer)
        self.created.append(peer)
        return peer

    @property
    def last(self) -> FakePeerConnection:
        return self.created[-1]


@pytest.fixture
def peers() -> PeerRecorder:
    return PeerRecorder()


@pytest.fixture
def make_track() -> Callable[[str], FakeTrack]:
    return FakeTrack


@pytest.fixture
def offer_sdp() -> str:
    return OFFER_SDP
