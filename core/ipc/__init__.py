"""
Inter-process communication with the mpv player processes.

This module provides the command payloads and the socket channel used to
drive the two player processes of a session.
"""

from .messages import (
    CommandName,
    PlayerCommand,
    set_pause,
    seek_absolute,
    quit_player
)

from .channel import IPCChannel

__all__ = [
    'CommandName',
    'PlayerCommand',
    'set_pause',
    'seek_absolute',
    'quit_player',
    'IPCChannel'
]
