"""
rtclink stream negotiation client.

This package establishes real-time media sessions against a webrtc-streamer
style signaling service.  The media transport itself is supplied by a peer
connection capability (aiortc by default); the package only orchestrates the
offer/answer exchange, trickle ICE and codec preference rewriting around it.
"""

from __future__ import annotations

from dataclasses import dataclass

__all__ = [
    "ClientConfig",
]


@dataclass
class ClientConfig:
    """Per-client configuration for the signaling service."""

    server_url: str = "http://127.0.0.1:8000"
    poll_interval: float = 1.0
    max_polls: int = 30
    request_timeout: float = 10.0

    def __post_init__(self) -> None:
        self.server_url = str(self.server_url or "").rstrip("/")
        self.poll_interval = max(0.0, float(self.poll_interval))
        self.max_polls = max(1, int(self.max_polls))
