"""
Logging setup for the duosync command line.

Modules log through ``logging.getLogger(__name__)``; this only configures the
root logger once per invocation.
"""

import logging
import os
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%H:%M:%S"


def resolve_level(verbose: bool = False, env_level: Optional[str] = None) -> int:
    """
    Pick the root log level.

    ``--verbose`` wins; otherwise DUOSYNC_LOG_LEVEL (name such as "INFO");
    otherwise WARNING so transport problems still show up.
    """
    if verbose:
        return logging.DEBUG

    if env_level is None:
        env_level = os.environ.get("DUOSYNC_LOG_LEVEL")

    if env_level:
        level = logging.getLevelName(env_level.strip().upper())
        if isinstance(level, int):
            return level

    return logging.WARNING


def setup_logging(verbose: bool = False) -> int:
    """Configure the root logger and return the level in effect."""
    level = resolve_level(verbose)
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=DATE_FORMAT, force=True)
    return level
