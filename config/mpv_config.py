"""
mpv Configuration for DuoSync

Detects the mpv executable used for both players and reports which optional
helper tools are present.
Priority: DUOSYNC_MPV → local installation (mpv/bin/) → system PATH → error

Usage:
    from config.mpv_config import get_mpv_cmd, check_dependencies, verify_mpv

    args = [get_mpv_cmd(), '--pause', movie]
    missing = [tool for tool, ok in check_dependencies().items() if not ok]
"""

import os
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Dict, Optional

from core.errors import DependencyMissingError

REQUIRED_TOOLS = ('mpv',)
OPTIONAL_TOOLS = ('fzf',)


class MPVNotFoundError(DependencyMissingError):
    """Raised when the mpv executable cannot be found."""
    pass


def _get_project_root():
    """
    Get the project root directory.

    Returns:
        Path: Absolute path to project root
    """
    return Path(__file__).resolve().parent.parent


def _find_local_mpv() -> Optional[str]:
    """
    Check if mpv exists in the local project directory.

    Returns:
        str path to the executable, or None if not found
    """
    name = 'mpv.exe' if sys.platform == 'win32' else 'mpv'
    mpv_path = _get_project_root() / 'mpv' / 'bin' / name

    if mpv_path.exists():
        return str(mpv_path)
    return None


def _find_system_mpv() -> Optional[str]:
    """
    Check if mpv is available in system PATH.

    Returns:
        str path to the executable, or None if not found
    """
    return shutil.which('mpv')


def get_mpv_cmd(override: Optional[str] = None) -> str:
    """
    Get the mpv executable path or command.

    Searches in order:
    1. Explicit override (argument or DUOSYNC_MPV)
    2. Local installation: <project>/mpv/bin/mpv[.exe]
    3. System PATH: mpv command
    4. Raises MPVNotFoundError with installation instructions

    Returns:
        str: Path to mpv executable or command name

    Raises:
        MPVNotFoundError: If mpv cannot be found
    """
    override = override or os.environ.get('DUOSYNC_MPV')
    if override:
        resolved = shutil.which(override)
        if resolved:
            return resolved
        raise MPVNotFoundError(
            f"mpv executable '{override}' does not exist or is not executable",
            hint="Fix DUOSYNC_MPV or unset it to search PATH."
        )

    mpv_local = _find_local_mpv()
    if mpv_local:
        return mpv_local

    mpv_system = _find_system_mpv()
    if mpv_system:
        return mpv_system

    project_root = _get_project_root()
    raise MPVNotFoundError(
        "mpv not found! DuoSync needs mpv to play the video and audio tracks.",
        hint=(
            "Install mpv (https://mpv.io/installation/) and make sure it is on PATH, "
            f"or place the executable at {project_root / 'mpv' / 'bin'}."
        )
    )


def check_dependencies(mpv_override: Optional[str] = None) -> Dict[str, bool]:
    """
    Report presence of every external tool DuoSync uses.

    Returns:
        dict: tool name -> found. 'mpv' is required, 'fzf' is optional
              (the numbered menu is used without it).
    """
    result = {}

    try:
        get_mpv_cmd(mpv_override)
        result['mpv'] = True
    except MPVNotFoundError:
        result['mpv'] = False

    for tool in OPTIONAL_TOOLS:
        result[tool] = shutil.which(tool) is not None

    return result


def require_dependencies(mpv_override: Optional[str] = None) -> str:
    """
    Ensure all required tools are present.

    Returns:
        str: The mpv command to launch

    Raises:
        MPVNotFoundError: If mpv is missing
    """
    return get_mpv_cmd(mpv_override)


def verify_mpv(verbose=True, mpv_override: Optional[str] = None):
    """
    Verify mpv installation and print diagnostic information.

    Args:
        verbose (bool): If True, print detailed information

    Returns:
        dict: Dictionary with installation details:
            - 'found': bool
            - 'mpv_cmd': str or None
            - 'version': str or None
            - 'location': 'local' | 'system' | None
            - 'tools': dict of tool -> bool
    """
    result = {
        'found': False,
        'mpv_cmd': None,
        'version': None,
        'location': None,
        'tools': check_dependencies(mpv_override),
    }

    try:
        mpv_cmd = get_mpv_cmd(mpv_override)
    except MPVNotFoundError as e:
        if verbose:
            print(f"[ERROR] {e}")
            print(f"  {e.hint}")
        return result

    result['found'] = True
    result['mpv_cmd'] = mpv_cmd
    result['location'] = 'local' if mpv_cmd == _find_local_mpv() else 'system'

    try:
        version_result = subprocess.run(
            [mpv_cmd, '--version'],
            capture_output=True,
            text=True,
            timeout=5
        )
        if version_result.returncode == 0 and version_result.stdout:
            result['version'] = version_result.stdout.split('\n')[0]
    except (subprocess.TimeoutExpired, OSError):
        result['version'] = 'Unknown'

    if verbose:
        print("=" * 70)
        print("mpv Configuration Status")
        print("=" * 70)
        print(f"[OK] mpv found: {result['location']} installation")
        print(f"  mpv:     {result['mpv_cmd']}")
        print(f"  Version: {result['version']}")
        for tool, found in result['tools'].items():
            status = "found" if found else "missing"
            print(f"  {tool:<8} {status}")
        print("=" * 70)

    return result


if __name__ == '__main__':
    verify_mpv(verbose=True)
