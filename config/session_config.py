"""
Runtime configuration for a DuoSync session.

All process-wide settings (channel addresses, delay file, timing constants)
live in one SessionConfig that is handed to every component, so nothing reads
ambient global state and tests can point everything at a temp directory.

Environment overrides:
    DUOSYNC_STATE_DIR     directory holding the persisted delay file
    DUOSYNC_VIDEO_SOCKET  IPC address of the video player
    DUOSYNC_AUDIO_SOCKET  IPC address of the audio-only player
    DUOSYNC_MPV           mpv executable to launch
"""

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import List, Mapping, Optional


# Delay compensation (seconds, audio-only relative to video)
DEFAULT_DELAY = 0.2
DELAY_STEP = 0.1
ZERO_EPSILON = 0.001
DELAY_PRECISION = 3

# Well-known channel addresses (one session per host)
DEFAULT_VIDEO_SOCKET = "/tmp/duosync-video.sock"
DEFAULT_AUDIO_SOCKET = "/tmp/duosync-audio.sock"


def _default_state_dir() -> Path:
    base = os.environ.get("XDG_STATE_HOME") or str(Path.home() / ".local" / "state")
    return Path(base) / "duosync"


@dataclass
class SessionConfig:
    """
    Settings shared by the orchestrator, sync engine and control loop.

    Attributes:
        state_dir: Directory for persisted state (delay file, device choices)
        video_socket: IPC channel address of the VIDEO player
        audio_socket: IPC channel address of the AUDIO_ONLY player
        default_delay: Delay written when no delay file exists yet
        delay_step: Increment used by increase_delay / decrease_delay
        zero_epsilon: Band around 0 treated as "no delay"
        poll_interval: Seconds between channel readiness checks
        ready_timeout: Give up waiting for channels after this many seconds
                       (None waits as long as both players stay alive)
        ipc_timeout: Socket timeout for a single IPC send
        terminate_timeout: Grace period before a player is killed
        mpv_cmd: mpv executable (None resolves via config.mpv_config)
        extra_mpv_args: Additional arguments passed to both players
    """
    state_dir: Path = field(default_factory=_default_state_dir)
    video_socket: str = DEFAULT_VIDEO_SOCKET
    audio_socket: str = DEFAULT_AUDIO_SOCKET
    default_delay: float = DEFAULT_DELAY
    delay_step: float = DELAY_STEP
    zero_epsilon: float = ZERO_EPSILON
    poll_interval: float = 0.1
    ready_timeout: Optional[float] = 30.0
    ipc_timeout: float = 2.0
    terminate_timeout: float = 3.0
    mpv_cmd: Optional[str] = None
    extra_mpv_args: List[str] = field(default_factory=list)

    @property
    def delay_file(self) -> Path:
        return Path(self.state_dir) / "delay"

    @property
    def device_config_file(self) -> Path:
        return Path(self.state_dir) / "devices.json"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'SessionConfig':
        """Build a config from defaults plus DUOSYNC_* environment overrides."""
        env = os.environ if environ is None else environ
        config = cls()

        overrides = {}
        if env.get("DUOSYNC_STATE_DIR"):
            overrides['state_dir'] = Path(env["DUOSYNC_STATE_DIR"]).expanduser()
        if env.get("DUOSYNC_VIDEO_SOCKET"):
            overrides['video_socket'] = env["DUOSYNC_VIDEO_SOCKET"]
        if env.get("DUOSYNC_AUDIO_SOCKET"):
            overrides['audio_socket'] = env["DUOSYNC_AUDIO_SOCKET"]
        if env.get("DUOSYNC_MPV"):
            overrides['mpv_cmd'] = env["DUOSYNC_MPV"]

        return replace(config, **overrides) if overrides else config
