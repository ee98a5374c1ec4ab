"""
WebRTC negotiation helpers.
"""

from __future__ import annotations

from .candidates import IceCandidate, IceCandidateBuffer
from .codec_filter import SdpCodecFilter, filter_preferred_codec
from .controller import SessionController
from .ice_servers import IceServer, IceServerConfig
from .session import ConnectParams, Session, SessionDescription, SessionState

__all__ = [
    "ConnectParams",
    "IceCandidate",
    "IceCandidateBuffer",
    "IceServer",
    "IceServerConfig",
    "SdpCodecFilter",
    "Session",
    "SessionController",
    "SessionDescription",
    "SessionState",
    "filter_preferred_codec",
]
