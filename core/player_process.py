"""
PlayerProcessHandle class for DuoSync.

Owns the lifecycle of one mpv process bound to one IPC channel and one audio
output device. A session always has exactly two handles, one per Role.
"""

import logging
import os
import subprocess
from enum import Enum
from pathlib import Path
from typing import List, Optional

from config.session_config import SessionConfig
from core.errors import PlayerSpawnError

logger = logging.getLogger(__name__)


class Role(Enum):
    """Which of the two paired players a handle represents."""

    VIDEO = "video"
    AUDIO_ONLY = "audio-only"


def channel_address(role: Role, config: SessionConfig) -> str:
    """Well-known IPC address for a role."""
    if role == Role.VIDEO:
        return config.video_socket
    return config.audio_socket


class PlayerProcessHandle:
    """
    One spawned (or attached) player process.

    Attributes:
        role: Role.VIDEO or Role.AUDIO_ONLY
        channel_address: Pre-assigned IPC socket path the player binds to
        process: Popen object, or None when attached to a running session
        audio_device: mpv audio device identifier ('auto' if not routed)
        audio_track: Audio track id selected in this player
    """

    def __init__(self, role: Role, channel_address: str,
                 process: Optional[subprocess.Popen] = None,
                 audio_device: Optional[str] = None,
                 audio_track: Optional[int] = None):
        self.role = role
        self.channel_address = channel_address
        self.process = process
        self.audio_device = audio_device
        self.audio_track = audio_track

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process else None

    @staticmethod
    def build_args(mpv_cmd: str, movie_file: str, role: Role, audio_track: int,
                   audio_device: Optional[str], address: str,
                   screen: Optional[int] = None,
                   extra_args: Optional[List[str]] = None) -> List[str]:
        """
        Build the mpv command line for one player.

        Both players start paused with their IPC server pre-bound; video is
        only decoded by the VIDEO player.
        """
        args = [
            mpv_cmd,
            '--pause',
            f'--input-ipc-server={address}',
            f'--aid={audio_track}',
            '--no-input-terminal',  # Two players must not fight over stdin
            '--really-quiet',
        ]

        if audio_device:
            args.append(f'--audio-device={audio_device}')

        if role == Role.VIDEO:
            args.append('--force-window=yes')
            if screen is not None:
                args.extend([f'--screen={screen}', f'--fs-screen={screen}', '--fullscreen'])
        else:
            args.append('--no-video')

        if extra_args:
            args.extend(extra_args)

        args.extend(['--', str(movie_file)])
        return args

    @classmethod
    def spawn(cls, movie_file: str, role: Role, audio_track: int,
              audio_device: Optional[str], config: SessionConfig, mpv_cmd: str,
              screen: Optional[int] = None) -> 'PlayerProcessHandle':
        """
        Start a paused player for ``role``.

        Raises:
            PlayerSpawnError: If the process could not be launched
        """
        address = channel_address(role, config)
        args = cls.build_args(mpv_cmd, movie_file, role, audio_track, audio_device,
                              address, screen=screen, extra_args=config.extra_mpv_args)

        logger.debug(f"Spawning {role.value} player: {' '.join(args)}")
        try:
            process = subprocess.Popen(
                args,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL
            )
        except OSError as e:
            raise PlayerSpawnError(
                f"Could not start the {role.value} player: {e}",
                hint=f"Check that '{mpv_cmd}' runs from a terminal."
            )

        logger.info(f"Started {role.value} player (PID {process.pid}, "
                    f"track {audio_track}, device {audio_device or 'auto'})")
        return cls(role, address, process=process,
                   audio_device=audio_device, audio_track=audio_track)

    @classmethod
    def attach(cls, role: Role, config: SessionConfig) -> 'PlayerProcessHandle':
        """Handle for a player started by another invocation (control mode)."""
        return cls(role, channel_address(role, config))

    def is_channel_ready(self) -> bool:
        """The player's IPC socket exists."""
        return os.path.exists(self.channel_address)

    def is_alive(self) -> bool:
        """
        The player process is still running.

        Attached handles have no process object; the channel is the only
        signal available to them.
        """
        if self.process is None:
            return self.is_channel_ready()
        return self.process.poll() is None

    def terminate(self, timeout: float = 3.0):
        """Stop the process, killing it if it ignores SIGTERM."""
        if self.process is None or self.process.poll() is not None:
            return

        logger.info(f"Terminating {self.role.value} player (PID {self.process.pid})")
        self.process.terminate()
        try:
            self.process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.warning(f"{self.role.value} player ignored SIGTERM, killing it")
            self.process.kill()
            self.process.wait()

    def remove_channel(self):
        """Delete the channel artifact if it is still on disk."""
        try:
            Path(self.channel_address).unlink()
            logger.debug(f"Removed channel {self.channel_address}")
        except FileNotFoundError:
            pass

    def __repr__(self):
        return (f"PlayerProcessHandle(role={self.role.value}, "
                f"channel={self.channel_address}, pid={self.pid})")
