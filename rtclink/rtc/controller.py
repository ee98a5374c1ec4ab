"""
Session lifecycle orchestration.

One controller owns at most one :class:`Session`.  ``connect`` always tears
the previous session down first, so the asynchronous work of two sessions
never overlaps; work that completes after its session was superseded is
discarded.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Optional

from .. import ClientConfig
from ..diagnostics import FailureHistory
from ..errors import (
    ConfigError,
    NegotiationError,
    RtcLinkError,
    StateError,
    StreamNotFoundError,
    TransportError,
)
from .candidates import IceCandidate
from .codec_filter import filter_preferred_codec
from .ice_servers import IceServerConfig
from .media import INDICATOR_CONNECTED, INDICATOR_DISCONNECTED, INDICATOR_FAILED, MediaSink
from .peer import CANDIDATE_EVENT, ICE_STATE_EVENT, TRACK_EVENT, PeerFactory
from .session import ConnectParams, Session, SessionDescription, SessionState

if TYPE_CHECKING:  # pragma: no cover
    from ..api.signaling import SignalingClient

LOG = logging.getLogger(__name__)

SleepCallable = Callable[[float], Awaitable[None]]

CONNECTED_STATES = ("connected", "completed")
FAILED_STATES = ("failed", "closed")
LISTENER_KINDS = ("ice_state", "connected", "error")
DATA_CHANNEL_LABEL = "client"


class SessionController:
    """
    Drive offer/answer, trickle ICE and teardown for one stream at a time.
    """

    def __init__(
        self,
        signaling: "SignalingClient",
        peer_factory: PeerFactory,
        *,
        config: Optional[ClientConfig] = None,
        media_sink: Optional[MediaSink] = None,
        diagnostics: Optional[FailureHistory] = None,
        sleep: Optional[SleepCallable] = None,
    ) -> None:
        self._signaling = signaling
        self._peer_factory = peer_factory
        self._config = config or ClientConfig(server_url=signaling.server_url)
        self.media_sink = media_sink or MediaSink()
        self.diagnostics = diagnostics or FailureHistory()
        self._sleep: SleepCallable = sleep if sleep is not None else asyncio.sleep
        self._session: Optional[Session] = None

        self._observer_counter = 0
        self._observers: Dict[str, Dict[int, Callable[..., None]]] = {
            kind: {} for kind in LISTENER_KINDS
        }

    # ------------------------------------------------------------------ properties

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def state(self) -> SessionState:
        if self._session is None:
            return SessionState.IDLE
        return self._session.state

    @property
    def peer_id(self) -> Optional[str]:
        return self._session.peer_id if self._session is not None else None

    def describe(self) -> Dict[str, Any]:
        snapshot: Dict[str, Any] = {
            "server": self._signaling.server_url,
            "state": self.state.value,
            "peerId": None,
            "iceState": None,
            "bufferedCandidates": 0,
        }
        if self._session is not None:
            snapshot.update(self._session.describe())
        return snapshot

    # ------------------------------------------------------------------ listeners

    def _subscribe(self, kind: str, callback: Callable[..., None]) -> int:
        if not callable(callback):
            raise TypeError("callback must be callable")
        self._observer_counter += 1
        token = self._observer_counter
        self._observers[kind][token] = callback
        return token

    def on_ice_state(self, callback: Callable[[str], None]) -> int:
        return self._subscribe("ice_state", callback)

    def on_connected(self, callback: Callable[[], None]) -> int:
        return self._subscribe("connected", callback)

    def on_error(self, callback: Callable[[str], None]) -> int:
        return self._subscribe("error", callback)

    def unsubscribe(self, token: int) -> None:
        for observers in self._observers.values():
            observers.pop(token, None)

    def _notify(self, kind: str, *args: Any) -> None:
        for token, callback in list(self._observers[kind].items()):
            try:
                callback(*args)
            except Exception:  # pragma: no cover - listener failures must not break event handling
                LOG.exception("%s listener %s failed.", kind, token)

    # ------------------------------------------------------------------ helpers

    def _is_current(self, session: Session) -> bool:
        return self._session is session and not session.closed

    def _ensure_current(self, session: Session) -> None:
        if not self._is_current(session):
            raise StateError(f"Session {session.peer_id} was superseded")

    def _require_session(self) -> Session:
        if self._session is None:
            raise StateError("No active peer connection")
        return self._session

    def _spawn(self, session: Session, coro: Awaitable[Any]) -> "asyncio.Task[Any]":
        task = asyncio.ensure_future(coro)
        session.tasks.add(task)
        task.add_done_callback(session.tasks.discard)
        return task

    def _record_failure(self, channel: str, exc: BaseException) -> None:
        if isinstance(exc, ConfigError):
            code = "config"
        elif isinstance(exc, StreamNotFoundError):
            code = "not_found"
        elif isinstance(exc, NegotiationError):
            code = "negotiation"
        elif isinstance(exc, TransportError):
            code = "transport"
        else:
            code = "error"
        status_code = getattr(exc, "status_code", None)
        self.diagnostics.record(channel, code, message=str(exc), statusCode=status_code)

    async def _ensure_ice_servers(self) -> IceServerConfig:
        try:
            return await self._signaling.fetch_ice_servers()
        except RtcLinkError as exc:
            raise ConfigError(
                f"ICE server configuration unavailable: {exc}",
                status_code=exc.status_code,
            ) from exc

    # ------------------------------------------------------------------ lifecycle

    async def connect(self, params: ConnectParams) -> Session:
        """
        Negotiate a new session for ``params``.

        Any failure tears the new session down and propagates; the controller
        is left idle.
        """

        await self.disconnect()

        try:
            ice_servers = await self._ensure_ice_servers()
        except ConfigError as exc:
            LOG.error("Cannot connect to %s: %s", params.video_url, exc)
            self._record_failure(params.video_url, exc)
            raise

        session = Session(peer=self._peer_factory(ice_servers), media_url=params.video_url)
        self._session = session
        log = LOG.getChild(session.peer_id[:8])
        log.info("Negotiating %s", params.video_url)
        self._wire_events(session)

        try:
            await self._negotiate(session, params)
        except BaseException as exc:
            if not isinstance(exc, asyncio.CancelledError):
                log.warning("Negotiation of %s failed: %s", params.video_url, exc)
                if not isinstance(exc, StateError):
                    self._record_failure(params.video_url, exc)
            await self._teardown(session)
            raise

        self._start_polling(session)
        return session

    async def _negotiate(self, session: Session, params: ConnectParams) -> None:
        peer = session.peer

        local_kinds = set()
        for track in params.local_tracks:
            peer.add_track(track)
            local_kinds.add(getattr(track, "kind", None))
        for kind in ("audio", "video"):
            if kind not in local_kinds:
                peer.add_transceiver(kind, "recvonly")
        try:
            peer.create_data_channel(DATA_CHANNEL_LABEL)
        except Exception as exc:
            LOG.warning("Data channel creation failed: %s", exc)

        offer = await peer.create_offer()
        self._ensure_current(session)
        if params.preferred_codec:
            offer = SessionDescription(
                type=offer.type,
                sdp=filter_preferred_codec(offer.sdp, params.preferred_codec),
            )
        await peer.set_local_description(offer)
        self._ensure_current(session)

        answer = await self._signaling.open_session(
            session.peer_id,
            params.video_url,
            offer,
            audio_url=params.audio_url,
            options=params.options,
        )
        self._ensure_current(session)

        await peer.set_remote_description(answer)
        self._ensure_current(session)
        session.remote_description_set = True

        flushed = await session.buffer.flush(self._submit_for(session))
        if flushed:
            LOG.debug("Flushed %d early candidate(s) for %s", flushed, session.peer_id)

    def _submit_for(self, session: Session) -> Callable[[IceCandidate], Awaitable[None]]:
        async def submit(candidate: IceCandidate) -> None:
            await self._signaling.submit_local_candidate(session.peer_id, candidate)

        return submit

    async def disconnect(self) -> None:
        """
        Tear the active session down.  Never raises; calling it again is a no-op.
        """

        session = self._session
        if session is None:
            return
        await self._teardown(session)

    async def _teardown(self, session: Session) -> None:
        owns_sink = self._session is session
        if owns_sink:
            self._session = None
        if session.closed:
            return
        session.state = SessionState.CLOSED
        LOG.info("Closing session %s", session.peer_id)

        current = asyncio.current_task()
        for task in list(session.tasks):
            if task is not current:
                task.cancel()

        # The sink is shared; only the current session may clear it.
        if owns_sink:
            try:
                self.media_sink.detach()
            except Exception as exc:
                LOG.warning("Media detach failed: %s", exc)
        try:
            await self._signaling.close_session(session.peer_id)
        except Exception as exc:
            LOG.warning("hangup error: %s", exc)
        try:
            await session.peer.close()
        except Exception as exc:
            LOG.warning("Peer connection close error: %s", exc)

    # ------------------------------------------------------------------ remote candidates

    def _start_polling(self, session: Session) -> None:
        if session.poll_task is not None and not session.poll_task.done():
            return
        session.poll_task = self._spawn(session, self._poll_loop(session))

    async def _poll_loop(self, session: Session) -> None:
        for _ in range(self._config.max_polls):
            if not self._is_current(session) or not session.polling_allowed:
                return
            await self.poll_remote_candidates(session)
            await self._sleep(self._config.poll_interval)

    async def poll_remote_candidates(self, session: Optional[Session] = None) -> int:
        """
        Fetch remote candidates once and hand them to the peer connection.

        Returns the number of candidates applied.  Results arriving after the
        session was superseded are discarded.
        """

        if session is None:
            session = self._require_session()
        if not self._is_current(session) or session.state is SessionState.FAILED:
            return 0

        candidates = await self._signaling.poll_remote_candidates(session.peer_id)
        applied = 0
        for candidate in candidates:
            if not self._is_current(session) or session.state is SessionState.FAILED:
                LOG.debug("Discarding remote candidates for stale session %s", session.peer_id)
                break
            try:
                await session.peer.add_ice_candidate(candidate)
            except Exception as exc:
                LOG.warning("addIceCandidate(remote) failed: %s", exc)
                continue
            applied += 1
        return applied

    # ------------------------------------------------------------------ peer events

    def _wire_events(self, session: Session) -> None:
        peer = session.peer
        peer.on(ICE_STATE_EVENT, lambda state: self._handle_ice_state(session, state))
        peer.on(TRACK_EVENT, lambda track: self._handle_track(session, track))
        peer.on(CANDIDATE_EVENT, lambda candidate: self._handle_local_candidate(session, candidate))

    def _handle_local_candidate(self, session: Session, candidate: IceCandidate) -> None:
        if not self._is_current(session):
            return
        if session.buffer.offer(candidate):
            return
        self._spawn(session, self._signaling.submit_local_candidate(session.peer_id, candidate))

    def _handle_track(self, session: Session, track: Any) -> None:
        if not self._is_current(session):
            return
        session.remote_tracks.append(track)
        if session.state is SessionState.CONNECTED:
            self.media_sink.attach(session.remote_tracks)

    def _handle_ice_state(self, session: Session, state: str) -> None:
        if not self._is_current(session):
            return
        state = str(state)
        session.ice_state = state
        LOG.info("ICE connection state for %s: %s", session.peer_id, state)
        self._notify("ice_state", state)

        if state in CONNECTED_STATES:
            session.state = SessionState.CONNECTED
            self.media_sink.set_indicator(INDICATOR_CONNECTED)
            if not session.connected_notified:
                self.media_sink.attach(session.remote_tracks)
                session.connected_notified = True
                self._notify("connected")
        elif state == "disconnected":
            session.state = SessionState.DISCONNECTED
            self.media_sink.set_indicator(INDICATOR_DISCONNECTED)
            if session.remote_description_set:
                self._start_polling(session)
        elif state in FAILED_STATES:
            session.state = SessionState.FAILED
            self.media_sink.set_indicator(INDICATOR_FAILED)
            if session.poll_task is not None:
                session.poll_task.cancel()
            reason = f"Peer connection {state}"
            self.diagnostics.record(session.media_url, "ice_failed", message=reason, peerId=session.peer_id)
            self._notify("error", reason)
        elif state == "new" and session.remote_description_set:
            self._spawn(session, self.poll_remote_candidates(session))


__all__ = ["SessionController"]
