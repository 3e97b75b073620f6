"""
Exception hierarchy for DuoSync.

Startup errors abort the whole session; per-command errors are reported to
the operator and the control loop carries on. Every error carries a ``hint``
with the corrective action shown next to the message.
"""

from typing import Optional


class DuoSyncError(Exception):
    """Base class for all DuoSync errors."""

    default_hint = ""

    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.hint = hint if hint is not None else self.default_hint

    def __str__(self):
        return self.message


# ==================== STARTUP (FATAL) ====================

class FatalStartupError(DuoSyncError):
    """Session cannot start; already-spawned players are cleaned up."""


class MovieNotFoundError(FatalStartupError, FileNotFoundError):
    """The movie file passed to ``play`` does not exist."""

    default_hint = "Check the path to the movie file."


class DependencyMissingError(FatalStartupError):
    """A required external tool is not installed."""

    default_hint = "Run 'duosync check' to see which tools are missing."


class PlayerSpawnError(FatalStartupError):
    """The player executable could not be launched."""


class PlayerDiedError(FatalStartupError):
    """A player process exited before its IPC channel appeared."""

    default_hint = "Run with --verbose and check the movie file and audio device."


class ChannelTimeoutError(FatalStartupError):
    """A player stayed alive but never opened its IPC channel."""


class SessionAlreadyRunningError(FatalStartupError):
    """Another session is already answering on the well-known channels."""

    default_hint = "Quit the running session first: duosync control quit"


class DeviceSelectionError(FatalStartupError):
    """No audio output device was chosen for one of the players."""

    default_hint = "Pass --video-device/--audio-device or pick a device from the list."


# ==================== PER-COMMAND ====================

class TransportError(DuoSyncError):
    """An IPC send failed (missing channel, refused, timeout, error reply)."""


class ValidationError(DuoSyncError):
    """Operator input was rejected before reaching any player."""


class SessionNotFoundError(DuoSyncError):
    """``control`` was invoked while no session channels exist."""

    default_hint = "Start a session first: duosync play <movie>"


class NoInteractiveInputError(DuoSyncError):
    """Interactive mode requested without a terminal to read from."""

    default_hint = "Pass an action directly: duosync control <action> [<value>]"


class UsageError(DuoSyncError):
    """The command line could not be parsed."""

    default_hint = "Run 'duosync help' for usage."
