"""
DuoSync Launcher
Plays one movie through two mpv processes: the video with one audio track on
one output device, and a second audio track on another output device, kept in
sync by a persisted delay compensation.

Usage:
    duosync play <movie> [<video_track> <audio_track>]   # defaults 1, 2
    duosync control [<action> [<value>]]                 # no action: interactive
    duosync devices
    duosync check
    duosync help
"""

import argparse
import logging
import os
import signal
import sys
from typing import Callable, List, Optional, Sequence

from config.logging_config import setup_logging
from config.mpv_config import require_dependencies, verify_mpv
from config.session_config import SessionConfig
from core.control import USAGE as CONTROL_USAGE, ControlInterpreter
from core.control_loop import ControlLoop
from core.delay_config import DelayStore
from core.device_config import DeviceConfigHandler
from core.device_scanner import DeviceScanner
from core.errors import (
    DeviceSelectionError, DuoSyncError, MovieNotFoundError, SessionNotFoundError, UsageError
)
from core.ipc.channel import IPCChannel
from core.selector import fuzzy_select, has_terminal
from playback.session import PlayerPair, SessionOrchestrator
from playback.sync_engine import DelaySyncEngine

logger = logging.getLogger(__name__)

HELP_TEXT = f"""\
DuoSync - one video, two audio tracks, two output devices, kept in sync.

Usage:
  duosync play <movie> [<video_track> <audio_track>]
        Start a session. <video_track> is the audio track played with the
        video (default 1), <audio_track> the one played by the audio-only
        player (default 2). Options:
          --video-device <id>   mpv audio device for the video player
          --audio-device <id>   mpv audio device for the audio-only player
          --screen <n>          show the video fullscreen on display <n>
        Devices not given are picked from a list.

  duosync control [<action> [<value>]]
        Control the running session; without an action, interactive mode.
        {CONTROL_USAGE}

  duosync devices     List audio devices and displays
  duosync check       Check external dependencies
  duosync help        Show this help

Global options:
  -v, --verbose       Debug logging

A positive delay starts the audio-only player later than the video,
a negative delay starts it earlier.
"""


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that raises UsageError instead of exiting with 2."""

    def error(self, message):
        raise UsageError(message)


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(prog='duosync', add_help=False)
    parser.add_argument('-v', '--verbose', action='store_true')
    parser.add_argument('-h', '--help', action='store_true')
    subparsers = parser.add_subparsers(dest='command')

    play = subparsers.add_parser('play', add_help=False)
    play.add_argument('movie')
    play.add_argument('video_track', nargs='?', type=int, default=1)
    play.add_argument('audio_track', nargs='?', type=int, default=2)
    play.add_argument('--video-device')
    play.add_argument('--audio-device')
    play.add_argument('--screen', type=int)

    control = subparsers.add_parser('control', add_help=False)
    control.add_argument('action', nargs='?')
    control.add_argument('value', nargs='?')

    subparsers.add_parser('devices', add_help=False)
    subparsers.add_parser('check', add_help=False)
    subparsers.add_parser('help', add_help=False)
    return parser


# ==================== DEVICE SELECTION ====================

def choose_audio_device(scanner: DeviceScanner, prompt: str, remembered: Optional[str] = None,
                        selector: Callable[[Sequence[str], str], Optional[str]] = fuzzy_select,
                        interactive: Optional[bool] = None) -> str:
    """
    Pick the mpv audio device for one player.

    Without a terminal the remembered device (or 'auto') is used. The
    remembered device is listed first so it is one keystroke away.

    Raises:
        DeviceSelectionError: mpv lists no devices or nothing was chosen
    """
    if interactive is None:
        interactive = has_terminal()
    if not interactive:
        device = remembered or 'auto'
        logger.info(f"No terminal for device selection, using '{device}'")
        return device

    devices = scanner.scan_audio_devices()
    if not devices:
        raise DeviceSelectionError("mpv reported no audio output devices")

    devices = sorted(devices, key=lambda d: d.name != remembered)
    labels = [str(d) for d in devices]
    choice = selector(labels, prompt)
    if choice is None:
        raise DeviceSelectionError(f"No device selected ({prompt.lower()})")

    return devices[labels.index(choice)].name


# ==================== COMMANDS ====================

def cmd_play(args, config: SessionConfig) -> int:
    mpv_cmd = require_dependencies(config.mpv_cmd)

    if not os.path.isfile(args.movie):
        raise MovieNotFoundError(f"Movie file not found: {args.movie}")

    remembered = DeviceConfigHandler(config.device_config_file)
    scanner = DeviceScanner(mpv_cmd)

    video_device = args.video_device or choose_audio_device(
        scanner, "Audio device for the video player", remembered.get('audio.video_output'))
    audio_device = args.audio_device or choose_audio_device(
        scanner, "Audio device for the audio-only player", remembered.get('audio.audio_only_output'))

    if args.screen is not None:
        valid, message = scanner.validate_screen(args.screen)
        if not valid:
            raise UsageError(message, hint="Run 'duosync devices' to list displays.")

    remembered.remember_session(video_device, audio_device, args.screen)

    orchestrator = SessionOrchestrator(config, mpv_cmd)
    orchestrator.start(args.movie, args.video_track, args.audio_track,
                       video_device=video_device, audio_device=audio_device,
                       screen=args.screen)
    return 0


def cmd_control(args, config: SessionConfig) -> int:
    pair = PlayerPair.attach(config)
    missing = [h.channel_address for h in pair.handles() if not h.is_channel_ready()]
    if missing:
        raise SessionNotFoundError(f"No running session (missing channel: {', '.join(missing)})")

    channel = IPCChannel(timeout=config.ipc_timeout)
    engine = DelaySyncEngine(DelayStore(config.delay_file, default=config.default_delay),
                             channel, config)
    engine.load()

    interpreter = ControlInterpreter(engine, channel, pair.video, pair.audio)
    return ControlLoop(interpreter).run(args.action, args.value)


def cmd_devices(args, config: SessionConfig) -> int:
    DeviceScanner(require_dependencies(config.mpv_cmd)).print_all_devices()
    return 0


def cmd_check(args, config: SessionConfig) -> int:
    return 0 if verify_mpv(verbose=True, mpv_override=config.mpv_cmd)['found'] else 1


COMMANDS = {
    'play': cmd_play,
    'control': cmd_control,
    'devices': cmd_devices,
    'check': cmd_check,
}


def main(argv: Optional[List[str]] = None, config: Optional[SessionConfig] = None) -> int:
    """
    Run one duosync invocation.

    Returns:
        Exit code: 0 on success or help, 1 on any fatal or usage error,
        130 when interrupted
    """
    argv = sys.argv[1:] if argv is None else argv

    try:
        args = build_parser().parse_args(argv)
    except UsageError as e:
        print(f"✗ Error: {e}", file=sys.stderr)
        print(f"  {e.hint}", file=sys.stderr)
        return 1

    setup_logging(args.verbose)

    if args.help or args.command in (None, 'help'):
        print(HELP_TEXT)
        return 0 if args.help or args.command == 'help' else 1

    config = config or SessionConfig.from_env()

    try:
        return COMMANDS[args.command](args, config)
    except DuoSyncError as e:
        print(f"✗ Error: {e}", file=sys.stderr)
        if e.hint:
            print(f"  {e.hint}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\n✗ Interrupted by user", file=sys.stderr)
        return 130


def main_entry():
    """Console script entry point."""
    # SIGTERM runs the same cleanup path as Ctrl+C
    def signal_handler(sig, frame):
        raise KeyboardInterrupt

    signal.signal(signal.SIGTERM, signal_handler)
    sys.exit(main())


if __name__ == "__main__":
    main_entry()
