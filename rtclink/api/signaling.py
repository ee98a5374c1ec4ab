"""
REST client for the webrtc-streamer signaling API.

Every call maps onto one endpoint of the service:

==========  ======================  ==========================================
Method      Path                    Purpose
==========  ======================  ==========================================
GET         /api/getIceServers      STUN/TURN configuration (cached)
POST        /api/call               offer in, answer out
POST        /api/addIceCandidate    trickle one local candidate
GET         /api/getIceCandidate    fetch the remote candidates gathered so far
GET         /api/hangup             release the remote peer
==========  ======================  ==========================================

Candidate exchange and hangup are best-effort: failures are logged and never
raised.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from ..errors import NegotiationError, StreamNotFoundError, TransportError
from ..rtc.candidates import IceCandidate
from ..rtc.ice_servers import IceServerConfig
from ..rtc.session import SessionDescription
from .schemas import IceCandidateList, IceServerConfigModel, SessionDescriptionModel

LOG = logging.getLogger(__name__)

USER_AGENT = "rtclink/0.1"


class SignalingClient:
    """Stateless HTTP calls against one signaling service base URL."""

    def __init__(
        self,
        server_url: str,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.server_url = str(server_url or "").rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.server_url,
            timeout=httpx.Timeout(timeout),
            headers={"User-Agent": USER_AGENT},
            transport=transport,
        )
        self._ice_servers: Optional[IceServerConfig] = None

    async def __aenter__(self) -> "SignalingClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------ helpers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, str]] = None,
        json: Any = None,
    ) -> httpx.Response:
        try:
            return await self._client.request(method, path, params=params, json=json)
        except httpx.HTTPError as exc:
            raise TransportError(f"{method} {path} failed: {exc}") from exc

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if not response.content:
            return None
        return response.json()

    # ------------------------------------------------------------------ public API

    async def fetch_ice_servers(self) -> IceServerConfig:
        if self._ice_servers is not None:
            return self._ice_servers

        response = await self._request("GET", "/api/getIceServers")
        if response.is_error:
            raise TransportError(
                f"getIceServers HTTP {response.status_code}",
                status_code=response.status_code,
            )
        try:
            payload = IceServerConfigModel.from_payload(self._decode(response))
        except (ValueError, ValidationError) as exc:
            raise TransportError(f"getIceServers returned an invalid configuration: {exc}") from exc

        self._ice_servers = payload.to_config()
        LOG.debug("Cached %d ICE server(s) from %s", len(self._ice_servers.servers), self.server_url)
        return self._ice_servers

    async def open_session(
        self,
        peer_id: str,
        media_url: str,
        offer: SessionDescription,
        *,
        audio_url: Optional[str] = None,
        options: Optional[str] = None,
    ) -> SessionDescription:
        params = {"peerid": peer_id, "url": media_url}
        if audio_url:
            params["audiourl"] = audio_url
        if options:
            params["options"] = options

        response = await self._request("POST", "/api/call", params=params, json=offer.to_dict())
        if response.status_code == 404:
            raise StreamNotFoundError("WebRTC stream not found (404)", status_code=404)
        if response.is_error:
            raise NegotiationError(
                f"call HTTP {response.status_code}", status_code=response.status_code
            )

        try:
            answer = SessionDescriptionModel.model_validate(self._decode(response))
        except (ValueError, ValidationError) as exc:
            raise NegotiationError(f"call returned an invalid answer: {exc}") from exc
        return answer.to_description()

    async def submit_local_candidate(self, peer_id: str, candidate: IceCandidate) -> None:
        try:
            response = await self._request(
                "POST",
                "/api/addIceCandidate",
                params={"peerid": peer_id},
                json=candidate.to_dict(),
            )
        except TransportError as exc:
            LOG.warning("addIceCandidate error: %s", exc)
            return
        if response.is_error:
            LOG.warning("addIceCandidate failed (HTTP %s)", response.status_code)

    async def poll_remote_candidates(self, peer_id: str) -> List[IceCandidate]:
        try:
            response = await self._request(
                "GET", "/api/getIceCandidate", params={"peerid": peer_id}
            )
        except TransportError as exc:
            LOG.warning("getIceCandidate error: %s", exc)
            return []
        if response.is_error:
            LOG.debug("getIceCandidate returned HTTP %s", response.status_code)
            return []
        try:
            candidates = IceCandidateList.from_payload(self._decode(response))
        except (ValueError, ValidationError) as exc:
            LOG.warning("getIceCandidate returned an invalid payload: %s", exc)
            return []
        return candidates.to_candidates()

    async def close_session(self, peer_id: str) -> None:
        try:
            response = await self._request("GET", "/api/hangup", params={"peerid": peer_id})
        except TransportError as exc:
            LOG.warning("hangup error: %s", exc)
            return
        if response.is_error:
            LOG.warning("hangup failed (HTTP %s)", response.status_code)


__all__ = ["SignalingClient"]
