"""Signaling service client and wire schemas."""

from .signaling import SignalingClient

__all__ = ["SignalingClient"]
