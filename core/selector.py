"""
Interactive selection for the command line.

Uses fzf for fuzzy selection when it is installed and a terminal is attached;
otherwise shows a numbered menu read with input().
"""

import logging
import shutil
import subprocess
import sys
from typing import Callable, List, Optional, Sequence

logger = logging.getLogger(__name__)


def has_terminal() -> bool:
    """True when stdin is an interactive terminal."""
    try:
        return sys.stdin.isatty()
    except (AttributeError, ValueError):
        return False


def _fzf_select(options: Sequence[str], prompt: str, fzf_cmd: str) -> Optional[str]:
    """
    Run fzf over ``options``.

    Returns:
        The chosen line, or None if the operator aborted (Esc / Ctrl+C)
    """
    result = subprocess.run(
        [fzf_cmd, '--prompt', f'{prompt}> ', '--height', '40%', '--reverse', '--no-multi'],
        input='\n'.join(options),
        stdout=subprocess.PIPE,
        text=True
    )
    if result.returncode != 0:
        logger.debug(f"fzf exited with {result.returncode}, no selection")
        return None
    choice = result.stdout.strip()
    return choice or None


def _menu_select(options: Sequence[str], prompt: str,
                 input_func: Callable[[str], str]) -> Optional[str]:
    """
    Numbered menu fallback.

    Accepts a number, or text matching exactly one option (case-insensitive
    substring). An empty answer selects nothing.
    """
    print(f"\n{prompt}:\n")
    for index, option in enumerate(options, 1):
        print(f"  {index}. {option}")
    print()

    while True:
        answer = input_func(f"Enter your choice (1-{len(options)}, empty to cancel): ").strip()
        if not answer:
            return None

        if answer.isdigit():
            index = int(answer)
            if 1 <= index <= len(options):
                return options[index - 1]
        else:
            matches = [o for o in options if answer.lower() in o.lower()]
            if len(matches) == 1:
                return matches[0]
            if len(matches) > 1:
                print(f"✗ '{answer}' matches {len(matches)} entries, be more specific.")
                continue

        print(f"✗ Invalid choice. Please enter 1-{len(options)}.")


def fuzzy_select(options: Sequence[str], prompt: str,
                 use_fzf: Optional[bool] = None,
                 input_func: Callable[[str], str] = input) -> Optional[str]:
    """
    Let the operator pick one entry of ``options``.

    Args:
        options: Entries to choose from, shown in order
        prompt: Short prompt text
        use_fzf: Force (True) or forbid (False) fzf; None auto-detects
        input_func: Line reader for the numbered menu

    Returns:
        The selected entry, or None when nothing was chosen
    """
    options: List[str] = list(options)
    if not options:
        return None

    fzf_cmd = shutil.which('fzf')
    if use_fzf is None:
        use_fzf = fzf_cmd is not None and has_terminal()

    if use_fzf and fzf_cmd:
        return _fzf_select(options, prompt, fzf_cmd)
    return _menu_select(options, prompt, input_func)
