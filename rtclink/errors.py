"""
Error taxonomy raised by the negotiation client.
"""

from __future__ import annotations

from typing import Optional


class RtcLinkError(RuntimeError):
    """Base class for negotiation client errors."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ConfigError(RtcLinkError):
    """Raised when the ICE server configuration cannot be fetched."""


class NegotiationError(RtcLinkError):
    """Raised when the offer/answer exchange is rejected by the signaling service."""


class StreamNotFoundError(NegotiationError):
    """Raised when the signaling service does not know the requested stream."""


class TransportError(RtcLinkError):
    """Raised on network level failures or unexpected HTTP status codes."""


class StateError(RtcLinkError):
    """Raised when an operation needs an active peer connection and there is none."""


__all__ = [
    "ConfigError",
    "NegotiationError",
    "RtcLinkError",
    "StateError",
    "StreamNotFoundError",
    "TransportError",
]
