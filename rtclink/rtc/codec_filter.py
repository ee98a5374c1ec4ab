"""
Codec preference rewriting for SDP offers.

The filter keeps only the payload types of the preferred codec on the media
line of the preferred kind, together with their ``rtpmap``/``fmtp``/``rtcp-fb``
attributes.  Every other line of the description is left untouched.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

MEDIA_KINDS = ("audio", "video")
PAYLOAD_ATTRIBUTES = ("a=rtpmap:", "a=fmtp:", "a=rtcp-fb:")


@dataclass(frozen=True, slots=True)
class CodecPreference:
    """Parsed ``"<kind>/<codec>"`` preference string."""

    kind: str
    codec: str

    @classmethod
    def parse(cls, preference: str) -> Optional["CodecPreference"]:
        text = str(preference or "").strip().lower()
        if not text:
            return None
        kind, sep, codec = text.partition("/")
        if not sep or kind not in MEDIA_KINDS:
            # "h264" or "h264/90000": the leading token is the codec itself.
            kind, codec = "video", kind
        codec = codec.strip()
        if not codec:
            return None
        return cls(kind=kind, codec=codec)


def _strip_eol(line: str) -> str:
    return line[:-1] if line.endswith("\r") else line


def _split_sections(lines: Sequence[str]) -> List[List[str]]:
    sections: List[List[str]] = []
    current: List[str] = []
    for line in lines:
        if line.startswith("m=") and current:
            sections.append(current)
            current = []
        current.append(line)
    if current:
        sections.append(current)
    return sections


def _media_kind(m_line: str) -> str:
    return _strip_eol(m_line)[2:].split(" ", 1)[0]


def _payload_type(attribute_line: str) -> str:
    """Return the payload type token of an ``a=<attr>:<pt> ...`` line."""

    value = _strip_eol(attribute_line).split(":", 1)[1]
    return value.split(" ", 1)[0]


def _codec_name(rtpmap_line: str) -> str:
    value = _strip_eol(rtpmap_line).split(":", 1)[1]
    _, _, encoding = value.partition(" ")
    return encoding.split("/", 1)[0]


def preferred_payload_types(section: Sequence[str], codec: str) -> List[str]:
    """
    Payload types whose ``rtpmap`` codec name contains ``codec``, in section order.
    """

    needle = codec.lower()
    return [
        _payload_type(line)
        for line in section
        if line.startswith("a=rtpmap:") and needle in _codec_name(line).lower()
    ]


def _rewrite_section(section: List[str], preferred: List[str]) -> List[str]:
    m_line = section[0]
    eol = "\r" if m_line.endswith("\r") else ""
    # m=<kind> <port> <proto> <fmt> ...
    head = _strip_eol(m_line).split(" ")[:3]
    rewritten = [" ".join(head + preferred) + eol]

    allowed = set(preferred)
    for line in section[1:]:
        if line.startswith(PAYLOAD_ATTRIBUTES) and _payload_type(line) not in allowed:
            continue
        rewritten.append(line)
    return rewritten


def filter_preferred_codec(sdp: str, preference: str) -> str:
    """
    Restrict the media sections of the preferred kind to the preferred codec.

    Sections without a matching ``rtpmap`` are returned unchanged, as are the
    session header and sections of the other media kind.
    """

    if not sdp:
        return sdp
    pref = CodecPreference.parse(preference)
    if pref is None:
        return sdp

    processed: List[str] = []
    for section in _split_sections(sdp.split("\n")):
        if not section[0].startswith("m=") or _media_kind(section[0]) != pref.kind:
            processed.extend(section)
            continue
        preferred = preferred_payload_types(section, pref.codec)
        if not preferred:
            processed.extend(section)
            continue
        processed.extend(_rewrite_section(section, preferred))
    return "\n".join(processed)


class SdpCodecFilter:
    """Stateless wrapper binding a preference string to :func:`filter_preferred_codec`."""

    def __init__(self, preference: str) -> None:
        self.preference = preference

    def __call__(self, sdp: str) -> str:
        return filter_preferred_codec(sdp, self.preference)


__all__ = ["CodecPreference", "SdpCodecFilter", "filter_preferred_codec", "preferred_payload_types"]
