"""
Delay Compensation Persistence
Stores the signed delay (seconds) between the video and audio-only players as
a single text line with three decimals.

The file is read at every session/control start and atomically replaced on
every change, so a crash mid-write never leaves a truncated value behind.
"""

import logging
import math
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from config.session_config import DEFAULT_DELAY, DELAY_PRECISION

logger = logging.getLogger(__name__)


def normalize_delay(value: float) -> float:
    """Round to persisted precision and fold -0.0 into 0.0."""
    value = round(float(value), DELAY_PRECISION)
    if value == 0:
        return 0.0
    return value


def format_delay(value: float) -> str:
    """Text form written to the delay file, e.g. '0.200' or '-0.150'."""
    return f"{normalize_delay(value):.{DELAY_PRECISION}f}"


class DelayStore:
    """
    File-backed delay value.

    Usage:
        store = DelayStore(config.delay_file)
        delay = store.load()     # writes the default on first use
        store.save(delay + 0.1)
    """

    def __init__(self, path: Union[str, Path], default: float = DEFAULT_DELAY):
        self.path = Path(path)
        self.default = default

    def load(self) -> float:
        """
        Read the persisted delay.

        A missing file is created with the default value. An unreadable or
        non-numeric file is treated the same way, with a warning.

        Returns:
            The delay in seconds
        """
        value = self._read()
        if value is None:
            value = normalize_delay(self.default)
            try:
                self.save(value)
            except OSError as e:
                logger.warning(f"Could not write default delay to {self.path}: {e}")
        return value

    def save(self, value: float):
        """Atomically replace the delay file with ``value``."""
        self.path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(prefix='.delay-', dir=str(self.path.parent))
        try:
            with os.fdopen(fd, 'w') as f:
                f.write(format_delay(value) + '\n')
            os.replace(tmp_path, self.path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass
            raise

        logger.debug(f"Delay {format_delay(value)}s saved to {self.path}")

    def _read(self) -> Optional[float]:
        try:
            text = self.path.read_text().strip()
        except FileNotFoundError:
            logger.info(f"No delay file at {self.path}, using default {self.default:.3f}s")
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Delay file {self.path} is unreadable ({e}), resetting to default "
                           f"{self.default:.3f}s")
            return None

        try:
            value = float(text)
            if not math.isfinite(value):
                raise ValueError(f"{text!r} is not a finite number")
            return normalize_delay(value)
        except ValueError:
            logger.warning(f"Delay file {self.path} holds '{text}', resetting to default "
                           f"{self.default:.3f}s")
            return None
