"""
Configuration for DuoSync.

Session settings, mpv discovery and logging setup.
"""

from .session_config import SessionConfig

__all__ = ['SessionConfig']
