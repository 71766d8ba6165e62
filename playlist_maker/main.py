import argparse
import asyncio
import logging
import signal
import sys

from pydantic import ValidationError

from .core.config import ExtractionMode, LinkMatch, Settings
from .core.coordinator import Coordinator
from .core.logging import setup_logging

LOGGER = logging.getLogger("PlaylistMaker")

# flag -> Settings field
CLI_OPTIONS = {
    "--listen-addr": ("listen_addr", "Specify the listen address for the http server."),
    "--slack-app-token": ("slack_app_token", "Specify the Slack app-level token"),
    "--slack-bot-token": ("slack_bot_token", "Specify the Slack bot token"),
    "--spotify-id": ("spotify_id", "Specify Spotify ID"),
    "--spotify-secret": ("spotify_secret", "Specify Spotify Secret"),
    "--spotify-redirect-uri": ("spotify_redirect_uri", "Specify Spotify Redirect URI"),
    "--spotify-playlist-id": ("spotify_playlist_id", "Specify Spotify Playlist ID"),
    "--log-level": ("log_level", "Logging level"),
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="playlist-maker",
        description="Collect Spotify tracks posted in Slack into a playlist.",
    )
    for flag, (dest, help_text) in CLI_OPTIONS.items():
        parser.add_argument(flag, dest=dest, default=None, help=help_text)
    parser.add_argument(
        "--extraction-mode",
        dest="extraction_mode",
        choices=[m.value for m in ExtractionMode],
        default=None,
        help="Read tracks from message links or from attachments",
    )
    parser.add_argument(
        "--link-match",
        dest="link_match",
        choices=[m.value for m in LinkMatch],
        default=None,
        help="Require the Spotify host, or accept any /track/<id> link",
    )
    return parser


def load_settings(argv: list[str] | None = None) -> Settings:
    """Environment/.env settings with command line flags on top."""
    args = build_parser().parse_args(argv)
    overrides = {k: v for k, v in vars(args).items() if v is not None}
    return Settings(**overrides)


async def run(settings: Settings) -> int:
    coordinator = Coordinator(settings)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, coordinator.shutdown.trigger, f"received {sig.name}")
        except (NotImplementedError, RuntimeError):
            # Windows: KeyboardInterrupt handling in main() covers Ctrl+C
            pass

    error = await coordinator.run()
    if error is not None:
        LOGGER.error(f"Exiting with error: {error}")
        return 1
    return 0


def main(argv: list[str] | None = None) -> None:
    try:
        settings = load_settings(argv)
    except ValidationError as e:
        setup_logging()
        LOGGER.error(f"Invalid configuration:\n{e}")
        sys.exit(2)

    setup_logging(settings.log_level)

    try:
        exit_code = asyncio.run(run(settings))
    except KeyboardInterrupt:
        LOGGER.warning("Shutting down due to KeyboardInterrupt...")
        exit_code = 0
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
