"""
Playback module for DuoSync.

Contains the session orchestrator and the delay synchronization engine.
"""

from .sync_engine import DelaySyncEngine, Sync, AdjustOp
from .session import SessionOrchestrator, PlayerPair

__all__ = ['DelaySyncEngine', 'Sync', 'AdjustOp', 'SessionOrchestrator', 'PlayerPair']
