"""
Delay synchronization engine for the two coupled mpv players.

Both players are started paused. The engine resumes them in an order and with
a gap derived from the signed delay compensation value:

    ZERO      resume video, resume audio-only (no wait)
    POSITIVE  resume video, wait delay, resume audio-only
    NEGATIVE  resume audio-only, wait abs(delay), resume video

The gap is a real blocking wait between the two IPC sends, measured against a
deadline taken right after the first send (hybrid coarse sleep + busy-wait),
so the skew error is the host's timer accuracy plus IPC latency.

Example Usage:
    from playback.sync_engine import DelaySyncEngine

    engine = DelaySyncEngine(DelayStore(config.delay_file), IPCChannel(), config)
    engine.load()
    engine.apply_timed_start(video_handle, audio_handle)
"""

import logging
import math
import time
from enum import Enum
from typing import Any, Callable, Dict, Optional

from config.session_config import SessionConfig
from core.delay_config import normalize_delay
from core.errors import ValidationError
from core.ipc.messages import set_pause

logger = logging.getLogger(__name__)


class Sync(Enum):
    """Classification of a delay value."""

    ZERO = "zero"
    POSITIVE = "positive"   # audio-only starts later
    NEGATIVE = "negative"   # audio-only starts earlier


class AdjustOp(Enum):
    """Delay adjustments accepted by DelaySyncEngine.adjust()."""

    INCREASE = "increase"
    DECREASE = "decrease"
    SET = "set"


BUSY_WAIT_THRESHOLD_MS = 5.0  # Switch from sleep to busy-wait at 5ms before target


def parse_float(value: Any) -> float:
    """
    Parse a finite float from operator input.

    Raises:
        ValueError: If the value is missing, non-numeric, NaN or infinite
    """
    if value is None:
        raise ValueError("missing value")
    number = float(str(value).strip())
    if not math.isfinite(number):
        raise ValueError(f"{value!r} is not a finite number")
    return number


def wait_until_timestamp(target_timestamp: float) -> float:
    """
    Wait until a specific perf_counter timestamp with high precision.

    Strategy:
    1. Coarse sleep until 5ms before target (OS scheduler, low CPU)
    2. Busy-wait for final 5ms (high precision, high CPU)

    Args:
        target_timestamp: Absolute timestamp to wait until (from perf_counter)

    Returns:
        Actual timestamp when wait completed (for drift measurement)
    """
    busy_wait_threshold = BUSY_WAIT_THRESHOLD_MS / 1000.0
    while True:
        time_remaining = target_timestamp - time.perf_counter()
        if time_remaining <= busy_wait_threshold:
            break
        time.sleep(time_remaining - busy_wait_threshold)

    while time.perf_counter() < target_timestamp:
        pass

    return time.perf_counter()


def wait_for(seconds: float, since: Optional[float] = None) -> float:
    """
    Block until ``seconds`` after ``since`` (a perf_counter timestamp, default now).

    Returns the completion timestamp.
    """
    if since is None:
        since = time.perf_counter()
    return wait_until_timestamp(since + seconds)


class DelaySyncEngine:
    """
    Holds the delay compensation value and applies it to a player pair.

    Attributes:
        store: Object with load() -> float and save(float) (DelayStore on disk)
        channel: IPCChannel (or anything with send(address, command) -> bool)
        config: SessionConfig supplying step size and zero band
        delay: Current delay compensation in seconds
    """

    def __init__(self, store, channel, config: Optional[SessionConfig] = None,
                 waiter: Optional[Callable[[float], Any]] = None):
        self.store = store
        self.channel = channel
        self.config = config or SessionConfig()
        self._waiter = waiter
        self.delay: float = normalize_delay(self.config.default_delay)

    # ==================== PERSISTENCE ====================

    def load(self) -> float:
        """Read the persisted delay (the store writes the default when absent)."""
        self.delay = normalize_delay(self.store.load())
        logger.info(f"Delay compensation loaded: {self.delay:+.3f}s")
        return self.delay

    def persist(self):
        """Write the current delay with 3-decimal precision."""
        self.store.save(self.delay)

    # ==================== CLASSIFICATION ====================

    def classify(self, delay: Optional[float] = None) -> Sync:
        """
        Classify a delay using the ±epsilon band.

        Values on the band edges (±epsilon) count as ZERO.
        """
        if delay is None:
            delay = self.delay
        epsilon = self.config.zero_epsilon
        if delay > epsilon:
            return Sync.POSITIVE
        if delay < -epsilon:
            return Sync.NEGATIVE
        return Sync.ZERO

    # ==================== TIMED START ====================

    def _resume(self, handle) -> bool:
        return self.channel.send(handle.channel_address, set_pause(False))

    def _pause(self, handle) -> bool:
        return self.channel.send(handle.channel_address, set_pause(True))

    def _wait_gap(self, gap: float, first_sent: float):
        # Deadline counts from the first send, same origin as actual_gap_ms
        if self._waiter is not None:
            self._waiter(gap)
        else:
            wait_for(gap, since=first_sent)

    def apply_timed_start(self, video, audio) -> Dict[str, Any]:
        """
        Resume both (already paused) players according to the current delay.

        The two resume sends are strictly ordered with a single gap between
        them; nothing else happens in that window.

        Args:
            video: Handle of the VIDEO player
            audio: Handle of the AUDIO_ONLY player

        Returns:
            Dictionary describing what was done:
            {
                'classification': Sync,
                'order': [first_role_value, second_role_value],
                'gap_s': float,            # Requested gap
                'actual_gap_ms': float,    # Measured gap between the sends
                'delivered': [bool, bool]  # Per-send transport result
            }
        """
        classification = self.classify()

        if classification == Sync.NEGATIVE:
            first, second, gap = audio, video, abs(self.delay)
        else:
            first, second = video, audio
            gap = self.delay if classification == Sync.POSITIVE else 0.0

        logger.info(f"Timed start: delay {self.delay:+.3f}s ({classification.value}), "
                    f"{first.role.value} first, gap {gap:.3f}s")

        first_ok = self._resume(first)
        first_sent = time.perf_counter()
        if gap > 0:
            self._wait_gap(gap, first_sent)
        second_sent = time.perf_counter()
        second_ok = self._resume(second)

        actual_gap_ms = (second_sent - first_sent) * 1000
        if gap > 0:
            drift_ms = actual_gap_ms - gap * 1000
            logger.debug(f"Timed start gap {actual_gap_ms:.3f}ms (drift {drift_ms:+.3f}ms)")

        if not (first_ok and second_ok):
            logger.warning("Timed start incomplete: a player did not acknowledge resume")

        return {
            'classification': classification,
            'order': [first.role.value, second.role.value],
            'gap_s': gap,
            'actual_gap_ms': actual_gap_ms,
            'delivered': [first_ok, second_ok]
        }

    def resync(self, video, audio) -> Dict[str, Any]:
        """Pause both players, then run the timed start again."""
        self._pause(video)
        self._pause(audio)
        return self.apply_timed_start(video, audio)

    # ==================== ADJUSTMENT ====================

    def _parse_step(self, value: Optional[Any]) -> float:
        if value is None or str(value).strip() == "":
            return self.config.delay_step
        try:
            step = parse_float(value)
        except ValueError:
            step = -1.0
        if step <= 0:
            raise ValidationError(
                f"Invalid step '{value}'. Current delay: {self.delay:+.3f}s",
                hint="Usage: increase_delay|decrease_delay [<positive seconds>]"
            )
        return step

    def adjust(self, op: AdjustOp, video, audio, value: Optional[Any] = None) -> float:
        """
        Change the delay, persist it and resync the players.

        Args:
            op: AdjustOp.INCREASE / DECREASE (by the fixed step, or by an
                explicit positive ``value``) or AdjustOp.SET (to ``value``)
            video: Handle of the VIDEO player
            audio: Handle of the AUDIO_ONLY player
            value: Target delay for SET, optional step for INCREASE/DECREASE

        Returns:
            The new delay

        Raises:
            ValidationError: Non-numeric input; the delay is left untouched
        """
        if op == AdjustOp.SET:
            try:
                new_delay = parse_float(value)
            except ValueError:
                raise ValidationError(
                    f"Invalid delay '{value if value is not None else ''}'. "
                    f"Current delay: {self.delay:+.3f}s",
                    hint="Usage: set_delay <seconds>  (e.g. set_delay 0.25 or set_delay -0.1)"
                )
        elif op == AdjustOp.INCREASE:
            new_delay = self.delay + self._parse_step(value)
        else:
            new_delay = self.delay - self._parse_step(value)

        old_delay = self.delay
        self.delay = normalize_delay(new_delay)
        self.persist()
        logger.info(f"Delay {op.value}: {old_delay:+.3f}s -> {self.delay:+.3f}s")

        self.resync(video, audio)
        return self.delay
