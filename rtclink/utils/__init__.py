"""Utility helpers for the client."""

from .logging import configure_logging
from .profiles import load_profiles, resolve_profile

__all__ = ["configure_logging", "load_profiles", "resolve_profile"]
