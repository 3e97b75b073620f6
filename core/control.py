"""
Control command interpreter for a running DuoSync session.

Maps an (action, value) pair to IPC sends against both players. Every command
is independent: the only state lives in the DelaySyncEngine, which is invoked
whenever a command can desynchronize the two streams (seek, delay changes).
Invalid input raises ValidationError before anything is sent.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from core.errors import ValidationError
from core.ipc.messages import quit_player, seek_absolute, set_pause
from playback.sync_engine import AdjustOp, DelaySyncEngine, parse_float

logger = logging.getLogger(__name__)


class Action(Enum):
    """Actions understood by the interpreter."""

    PLAY = "play"
    PAUSE = "pause"
    SEEK = "seek"
    SET_DELAY = "set_delay"
    INCREASE_DELAY = "increase_delay"
    DECREASE_DELAY = "decrease_delay"
    QUIT = "quit"
    UNKNOWN = "unknown"

    @classmethod
    def valid_names(cls):
        return [a.value for a in cls if a != cls.UNKNOWN]


# Actions that take a value, with the prompt shown in interactive mode
VALUE_PROMPTS = {
    Action.SEEK: "Seek to position (seconds or [hh:]mm:ss)",
    Action.SET_DELAY: "New delay in seconds (negative = audio earlier)",
}

USAGE = (
    "Actions: play | pause | seek <seconds> | set_delay <seconds> | "
    "increase_delay [<step>] | decrease_delay [<step>] | quit"
)


@dataclass(frozen=True)
class Command:
    """A request for the interpreter, built fresh per invocation."""
    action: Action
    value: Optional[str] = None
    raw_action: str = ""

    @classmethod
    def parse(cls, name: Optional[str], value: Optional[str] = None) -> 'Command':
        """Build a command from operator text; unrecognised names map to UNKNOWN."""
        raw = (name or "").strip()
        normalized = raw.lower().replace('-', '_')
        try:
            action = Action(normalized)
        except ValueError:
            action = Action.UNKNOWN
        if value is not None:
            value = str(value).strip() or None
        return cls(action=action, value=value, raw_action=raw)


@dataclass
class CommandResult:
    """Outcome of one dispatched command."""
    message: str
    terminal: bool = False


def parse_position(value: Optional[str]) -> float:
    """
    Parse a seek target: plain seconds or [hh:]mm:ss(.fff).

    Plain seconds may be negative; mpv counts those back from the end of the
    file. Clock fields must all be non-negative.

    Raises:
        ValueError: If the value is missing or malformed
    """
    if value is None:
        raise ValueError("missing position")

    parts = str(value).strip().split(':')
    if len(parts) > 3:
        raise ValueError(f"too many ':' in {value!r}")

    if len(parts) == 1:
        return parse_float(parts[0])

    seconds = 0.0
    for index, part in enumerate(parts):
        number = parse_float(part)
        if part.strip().startswith('-') or (index > 0 and number >= 60):
            raise ValueError(f"{value!r} has a field out of range")
        seconds = seconds * 60 + number
    return seconds


class ControlInterpreter:
    """
    Dispatches control commands to the player pair.

    Attributes:
        engine: DelaySyncEngine owning the delay and the resync algorithm
        channel: IPCChannel for direct sends
        video: Handle of the VIDEO player
        audio: Handle of the AUDIO_ONLY player
    """

    def __init__(self, engine: DelaySyncEngine, channel, video, audio):
        self.engine = engine
        self.channel = channel
        self.video = video
        self.audio = audio

    def _send_both(self, command_factory) -> bool:
        """Send a fresh command to video then audio-only; True if both acked."""
        video_ok = self.channel.send(self.video.channel_address, command_factory())
        audio_ok = self.channel.send(self.audio.channel_address, command_factory())
        return video_ok and audio_ok

    def dispatch(self, command: Command) -> CommandResult:
        """
        Execute one command.

        Returns:
            CommandResult with the message to show the operator

        Raises:
            ValidationError: Unknown action or invalid value (nothing sent)
        """
        action = command.action
        logger.debug(f"Dispatching {action.value} (value={command.value!r})")

        if action == Action.PLAY:
            self._send_both(lambda: set_pause(False))
            return CommandResult("Resumed both players")

        if action == Action.PAUSE:
            self._send_both(lambda: set_pause(True))
            return CommandResult("Paused both players")

        if action == Action.SEEK:
            return self._seek(command.value)

        if action == Action.SET_DELAY:
            if command.value is None:
                raise ValidationError(
                    f"set_delay needs a value. Current delay: {self.engine.delay:+.3f}s",
                    hint="Usage: set_delay <seconds>  (e.g. set_delay 0.25 or set_delay -0.1)"
                )
            delay = self.engine.adjust(AdjustOp.SET, self.video, self.audio, command.value)
            return CommandResult(f"Delay set to {delay:+.3f}s and players resynced")

        if action == Action.INCREASE_DELAY:
            delay = self.engine.adjust(AdjustOp.INCREASE, self.video, self.audio, command.value)
            return CommandResult(f"Delay increased to {delay:+.3f}s and players resynced")

        if action == Action.DECREASE_DELAY:
            delay = self.engine.adjust(AdjustOp.DECREASE, self.video, self.audio, command.value)
            return CommandResult(f"Delay decreased to {delay:+.3f}s and players resynced")

        if action == Action.QUIT:
            self._send_both(quit_player)
            return CommandResult("Sent quit to both players", terminal=True)

        shown = command.raw_action or "(empty)"
        raise ValidationError(
            f"Unknown action: {shown}",
            hint=f"Valid actions: {', '.join(Action.valid_names())}"
        )

    def _seek(self, value: Optional[str]) -> CommandResult:
        try:
            position = parse_position(value)
        except ValueError:
            raise ValidationError(
                f"Invalid seek position '{value or ''}'",
                hint="Usage: seek <seconds>  (e.g. seek 120 or seek 1:30:00)"
            )

        self._send_both(lambda: set_pause(True))
        self._send_both(lambda: seek_absolute(position))
        self.engine.resync(self.video, self.audio)
        return CommandResult(f"Seeked to {position:g}s and players resynced")
