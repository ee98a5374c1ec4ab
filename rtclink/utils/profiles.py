"""
Named connection profiles stored as YAML.

A profile is a stream source mapping::

    front-gate:
      kind: webrtc
      server: http://127.0.0.1:8000
      url: rtsp://camera-1/Streaming/Channels/101
      preferCodec: video/H264
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import yaml

from ..rtc.session import ConnectParams

CONFIG_DIR = Path(__file__).resolve().parent.parent / "configs"
PROFILES_PATH = CONFIG_DIR / "profiles.yaml"


def load_profiles(path: Optional[Union[str, Path]] = None) -> Dict[str, Dict[str, Any]]:
    profiles_path = Path(path) if path is not None else PROFILES_PATH
    try:
        with profiles_path.open("r", encoding="utf-8") as handle:
            profiles = yaml.safe_load(handle) or {}
    except FileNotFoundError:
        profiles = {}
    if not isinstance(profiles, dict):
        raise ValueError(f"{profiles_path} must contain a mapping of profiles")
    return {str(name): dict(entry or {}) for name, entry in profiles.items()}


def resolve_profile(
    name: str, path: Optional[Union[str, Path]] = None
) -> Tuple[Optional[str], ConnectParams]:
    """
    Return ``(server_url, params)`` for the profile called ``name``.
    """

    profiles = load_profiles(path)
    if name not in profiles:
        raise KeyError(f"Unknown profile '{name}'")
    source = profiles[name]
    return source.get("server"), ConnectParams.from_source(source)
