"""
SessionOrchestrator class for DuoSync.

Starts the VIDEO and AUDIO_ONLY players paused, waits for both IPC channels,
performs the timed start and then blocks until the players exit. Channel
artifacts are removed on every exit path: natural exit, fatal startup error,
Ctrl+C or SIGTERM (mapped to KeyboardInterrupt by the launcher).
"""

import logging
import os
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from config.session_config import SessionConfig
from core.delay_config import DelayStore
from core.errors import (
    ChannelTimeoutError, MovieNotFoundError, PlayerDiedError, SessionAlreadyRunningError
)
from core.ipc.channel import IPCChannel
from core.player_process import PlayerProcessHandle, Role
from playback.sync_engine import DelaySyncEngine

logger = logging.getLogger(__name__)


@dataclass
class PlayerPair:
    """The two handles of a session, permanently paired by role."""
    video: PlayerProcessHandle
    audio: PlayerProcessHandle

    def handles(self) -> List[PlayerProcessHandle]:
        return [self.video, self.audio]

    @classmethod
    def attach(cls, config: SessionConfig) -> 'PlayerPair':
        """Pair of handles addressing an already running session."""
        return cls(
            video=PlayerProcessHandle.attach(Role.VIDEO, config),
            audio=PlayerProcessHandle.attach(Role.AUDIO_ONLY, config)
        )

    def channels_exist(self) -> bool:
        return all(h.is_channel_ready() for h in self.handles())


class SessionOrchestrator:
    """
    Runs one playback session from spawn to cleanup.

    Attributes:
        config: SessionConfig with channel addresses and timing
        channel: IPCChannel used for every send
        engine: DelaySyncEngine performing the timed start
    """

    def __init__(self, config: SessionConfig, mpv_cmd: str,
                 channel: Optional[IPCChannel] = None,
                 engine: Optional[DelaySyncEngine] = None,
                 spawner: Optional[Callable[..., PlayerProcessHandle]] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.config = config
        self.mpv_cmd = mpv_cmd
        self.channel = channel or IPCChannel(timeout=config.ipc_timeout)
        self.engine = engine or DelaySyncEngine(
            DelayStore(config.delay_file, default=config.default_delay),
            self.channel, config
        )
        self._spawn = spawner or PlayerProcessHandle.spawn
        self._sleep = sleep
        self._handles: List[PlayerProcessHandle] = []

    # ==================== SESSION ====================

    def start(self, movie_file: str, video_track: int = 1, audio_track: int = 2,
              video_device: Optional[str] = None, audio_device: Optional[str] = None,
              screen: Optional[int] = None) -> Dict[str, Optional[int]]:
        """
        Run a whole session and block until both players have exited.

        Args:
            movie_file: Movie to play in both players
            video_track: Audio track played by the VIDEO player
            audio_track: Audio track played by the AUDIO_ONLY player
            video_device: mpv audio device for the VIDEO player
            audio_device: mpv audio device for the AUDIO_ONLY player
            screen: Optional screen index for a fullscreen video window

        Returns:
            Dictionary of player exit codes: {'video': int, 'audio-only': int}

        Raises:
            FatalStartupError: Missing movie, spawn failure, player died
                               before its channel appeared, ...
        """
        try:
            pair = self.launch(movie_file, video_track, audio_track,
                               video_device, audio_device, screen)
            return self.wait_for_exit(pair)
        finally:
            self.cleanup()

    def launch(self, movie_file: str, video_track: int = 1, audio_track: int = 2,
               video_device: Optional[str] = None, audio_device: Optional[str] = None,
               screen: Optional[int] = None) -> PlayerPair:
        """
        Spawn both players, wait for their channels and do the timed start.

        On any failure every player spawned so far is terminated and its
        channel removed before the error propagates.
        """
        if not os.path.isfile(movie_file):
            raise MovieNotFoundError(f"Movie file not found: {movie_file}")

        self.engine.load()
        self._clear_stale_channels()

        try:
            print(f"[Session] Starting players for {os.path.basename(movie_file)} "
                  f"(delay {self.engine.delay:+.3f}s)")
            video = self._spawn(movie_file, Role.VIDEO, video_track, video_device,
                                self.config, self.mpv_cmd, screen=screen)
            self._handles.append(video)

            audio = self._spawn(movie_file, Role.AUDIO_ONLY, audio_track, audio_device,
                                self.config, self.mpv_cmd)
            self._handles.append(audio)

            pair = PlayerPair(video=video, audio=audio)
            self.wait_for_channels(pair)
            self.engine.apply_timed_start(pair.video, pair.audio)
        except BaseException:
            self.cleanup()
            raise

        print("[Session] Both players running. Control with: duosync control")
        return pair

    def _clear_stale_channels(self):
        """Refuse to start over a live session; remove leftovers of a dead one."""
        for address in (self.config.video_socket, self.config.audio_socket):
            if not os.path.exists(address):
                continue
            if self.channel.is_listening(address):
                raise SessionAlreadyRunningError(
                    f"A session is already running (channel {address} answers)"
                )
            logger.info(f"Removing stale channel {address}")
            os.unlink(address)

    # ==================== WAITING ====================

    def wait_for_channels(self, pair: PlayerPair):
        """
        Poll until both channels exist.

        Raises:
            PlayerDiedError: A player exited before its channel appeared
            ChannelTimeoutError: ready_timeout elapsed with players still alive
        """
        started = time.monotonic()
        while True:
            pending = [h for h in pair.handles() if not h.is_channel_ready()]
            if not pending:
                logger.info("Both player channels ready")
                return

            for handle in pending:
                if not handle.is_alive():
                    code = handle.process.returncode if handle.process else None
                    raise PlayerDiedError(
                        f"The {handle.role.value} player exited (code {code}) "
                        f"before its channel {handle.channel_address} appeared"
                    )

            timeout = self.config.ready_timeout
            if timeout is not None and time.monotonic() - started > timeout:
                roles = ", ".join(h.role.value for h in pending)
                raise ChannelTimeoutError(
                    f"No IPC channel from the {roles} player after {timeout:.0f}s",
                    hint="Check that the installed mpv supports --input-ipc-server."
                )

            self._sleep(self.config.poll_interval)

    def wait_for_exit(self, pair: PlayerPair) -> Dict[str, Optional[int]]:
        """Block until both players have exited naturally."""
        reported = set()
        while True:
            alive = [h for h in pair.handles() if h.is_alive()]
            for handle in pair.handles():
                if handle not in alive and handle.role not in reported:
                    reported.add(handle.role)
                    logger.info(f"The {handle.role.value} player exited")
            if not alive:
                break
            self._sleep(self.config.poll_interval)

        print("[Session] Playback finished")
        return {h.role.value: (h.process.returncode if h.process else None)
                for h in pair.handles()}

    # ==================== CLEANUP ====================

    def cleanup(self):
        """Terminate players still running and remove their channels."""
        for handle in self._handles:
            try:
                handle.terminate(timeout=self.config.terminate_timeout)
            finally:
                handle.remove_channel()
        self._handles = []
