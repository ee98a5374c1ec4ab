"""
ICE server configuration returned by the signaling service.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence


@dataclass(frozen=True)
class IceServer:
    """One STUN/TURN descriptor."""

    urls: Sequence[str]
    username: Optional[str] = None
    credential: Optional[str] = None


@dataclass(frozen=True)
class IceServerConfig:
    """
    Relay/STUN descriptors used to build every peer connection of a client.

    The wire format is validated by :class:`rtclink.api.schemas.IceServerConfigModel`.
    """

    servers: List[IceServer] = field(default_factory=list)


__all__ = ["IceServer", "IceServerConfig"]
