"""
Command line entrypoint.

Negotiates one stream against a signaling service with the aiortc media stack,
logs every state change and hangs up on SIGINT/SIGTERM or when the peer
connection fails.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
from typing import Optional

from . import ClientConfig
from .api.signaling import SignalingClient
from .errors import RtcLinkError
from .rtc.controller import SessionController
from .rtc.media import TrackConsumerSink
from .rtc.peer import AiortcPeerConnection
from .rtc.session import ConnectParams
from .utils.logging import configure_logging
from .utils.profiles import resolve_profile

LOG = logging.getLogger(__name__)


async def run_session(config: ClientConfig, params: ConnectParams) -> int:
    """
    Run one session until interrupted.  Returns a process exit code.
    """

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    exit_code = 0

    def _handle_signal(signum: int, frame: Optional[object]) -> None:
        LOG.info("Received signal %s, hanging up...", signum)
        loop.call_soon_threadsafe(stop_event.set)

    for signame in ("SIGINT", "SIGTERM"):
        signal.signal(getattr(signal, signame), _handle_signal)

    async with SignalingClient(config.server_url, timeout=config.request_timeout) as signaling:
        controller = SessionController(
            signaling,
            AiortcPeerConnection,
            config=config,
            media_sink=TrackConsumerSink(),
        )

        def on_error(reason: str) -> None:
            nonlocal exit_code
            LOG.error("%s", reason)
            exit_code = 1
            stop_event.set()

        controller.on_ice_state(lambda state: LOG.info("ICE state: %s", state))
        controller.on_connected(lambda: LOG.info("Connected to %s", params.video_url))
        controller.on_error(on_error)

        try:
            await controller.connect(params)
        except RtcLinkError as exc:
            LOG.error("Connection to %s failed: %s", params.video_url, exc)
            return 2

        try:
            await stop_event.wait()
        finally:
            await controller.disconnect()
    return exit_code


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Negotiate a WebRTC stream with a signaling service")
    parser.add_argument("--server", default=None, help="signaling service base URL")
    parser.add_argument("--url", default=None, help="stream URL (or registered alias) to request")
    parser.add_argument("--audio-url", default=None, help="optional audio stream URL")
    parser.add_argument("--options", default=None, help="options string forwarded to the service")
    parser.add_argument("--codec", default=None, help='preferred codec, e.g. "video/H264"')
    parser.add_argument("--profile", default=None, help="connection profile to load")
    parser.add_argument("--profiles-file", default=None, help="YAML file holding connection profiles")
    parser.add_argument("--poll-interval", type=float, default=1.0, help="seconds between candidate polls")
    parser.add_argument("--log-level", default="INFO", help="logging level")
    return parser.parse_args(argv)


def build_request(args: argparse.Namespace) -> tuple[ClientConfig, ConnectParams]:
    server_url: Optional[str] = None
    if args.profile:
        server_url, params = resolve_profile(args.profile, args.profiles_file)
    elif args.url:
        params = ConnectParams(video_url=args.url)
    else:
        raise SystemExit("either --url or --profile is required")

    if args.url:
        params.video_url = args.url
    if args.audio_url:
        params.audio_url = args.audio_url
    if args.options:
        params.options = args.options
    if args.codec:
        params.preferred_codec = args.codec

    config = ClientConfig(
        server_url=args.server or server_url or ClientConfig.server_url,
        poll_interval=args.poll_interval,
    )
    return config, params


def run(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)
    config, params = build_request(args)

    try:
        return asyncio.run(run_session(config, params))
    except KeyboardInterrupt:
        LOG.info("Interrupted by user.")
        return 130


if __name__ == "__main__":
    raise SystemExit(run())
