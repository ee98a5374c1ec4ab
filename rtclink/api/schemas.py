"""
Pydantic schemas mirroring the signaling service JSON contract.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, validator

from ..rtc.candidates import IceCandidate
from ..rtc.ice_servers import IceServer, IceServerConfig
from ..rtc.session import SessionDescription

DESCRIPTION_TYPES = {"offer", "answer", "pranswer"}


class SessionDescriptionModel(BaseModel):
    type: str
    sdp: str
    model_config = ConfigDict(extra="ignore")

    @validator("type", pre=True)
    def _normalise_type(cls, value: object) -> str:
        result = str(value or "").strip().lower()
        if result not in DESCRIPTION_TYPES:
            raise ValueError(f"unsupported description type '{value}'")
        return result

    @validator("sdp")
    def _require_sdp(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("sdp is required")
        return value

    def to_description(self) -> SessionDescription:
        return SessionDescription(type=self.type, sdp=self.sdp)


class IceCandidateModel(BaseModel):
    candidate: str
    sdp_mid: Optional[str] = Field(default=None, alias="sdpMid")
    sdp_mline_index: Optional[int] = Field(default=None, alias="sdpMLineIndex")
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_candidate(self) -> IceCandidate:
        return IceCandidate(
            candidate=self.candidate,
            sdp_mid=self.sdp_mid,
            sdp_mline_index=self.sdp_mline_index,
        )


class IceCandidateList(BaseModel):
    candidates: List[IceCandidateModel] = Field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: object) -> "IceCandidateList":
        if payload is None:
            return cls()
        return cls(candidates=payload)  # type: ignore[arg-type]

    def to_candidates(self) -> List[IceCandidate]:
        return [entry.to_candidate() for entry in self.candidates]


class IceServerModel(BaseModel):
    urls: List[str] = Field(validation_alias=AliasChoices("urls", "url"))
    username: Optional[str] = None
    credential: Optional[str] = None
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @validator("urls", pre=True)
    def _coerce_urls(cls, value: object) -> object:
        if isinstance(value, str):
            value = [value]
        if not value:
            raise ValueError("at least one url is required")
        return value

    def to_server(self) -> IceServer:
        return IceServer(urls=list(self.urls), username=self.username, credential=self.credential)


class IceServerConfigModel(BaseModel):
    """``RTCConfiguration`` shaped answer of ``getIceServers``."""

    ice_servers: List[IceServerModel] = Field(
        default_factory=list,
        validation_alias=AliasChoices("iceServers", "ice_servers"),
    )
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @validator("ice_servers", pre=True)
    def _default_servers(cls, value: object) -> object:
        return [] if value is None else value

    @classmethod
    def from_payload(cls, payload: object) -> "IceServerConfigModel":
        if payload is None:
            return cls()
        return cls.model_validate(payload)

    def to_config(self) -> IceServerConfig:
        return IceServerConfig(servers=[entry.to_server() for entry in self.ice_servers])


__all__ = [
    "IceCandidateList",
    "IceCandidateModel",
    "IceServerConfigModel",
    "IceServerModel",
    "SessionDescriptionModel",
]
