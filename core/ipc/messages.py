"""
Command payloads for the player IPC channel.

mpv's JSON IPC takes one JSON object per line with a ``command`` array
(command name followed by positional arguments). Only the three commands the
sync engine needs are modelled here.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from enum import Enum


class CommandName(Enum):
    """mpv IPC commands used by DuoSync."""

    SET_PROPERTY = "set_property"
    SEEK = "seek"
    QUIT = "quit"


@dataclass
class PlayerCommand:
    """
    One command for a player process.

    ``request_id`` is filled in by the channel so the reply can be matched
    against the asynchronous event lines mpv interleaves on the socket.
    """
    name: CommandName
    args: List[Any] = field(default_factory=list)
    request_id: Optional[int] = None

    @property
    def expects_disconnect(self) -> bool:
        """quit may close the socket before mpv writes a reply."""
        return self.name == CommandName.QUIT

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the mpv JSON IPC object."""
        d = {'command': [self.name.value] + list(self.args)}
        if self.request_id is not None:
            d['request_id'] = self.request_id
        return d

    def to_json(self) -> str:
        """Serialize to one newline-terminated line."""
        return json.dumps(self.to_dict()) + '\n'

    def __str__(self):
        return " ".join([self.name.value] + [str(a) for a in self.args])


# Command constructors

def set_pause(paused: bool) -> PlayerCommand:
    """Set the boolean ``pause`` property (False resumes playback)."""
    return PlayerCommand(CommandName.SET_PROPERTY, ['pause', bool(paused)])


def seek_absolute(seconds: float) -> PlayerCommand:
    """Seek to an absolute position in seconds."""
    return PlayerCommand(CommandName.SEEK, [seconds, 'absolute'])


def quit_player() -> PlayerCommand:
    """Ask the player process to exit."""
    return PlayerCommand(CommandName.QUIT)
