"""
Device Scanner Module
Scans the audio output devices mpv can route to and the displays available
for the video window.

Audio devices come from ``mpv --audio-device=help`` so the identifiers are
exactly the ones the players accept; displays come from screeninfo.
"""

import logging
import re
import subprocess
from typing import List, Optional
from dataclasses import dataclass

from screeninfo import get_monitors
from screeninfo.common import ScreenInfoError

logger = logging.getLogger(__name__)

# Line format: "  'pulse/alsa_output.usb-...' (USB Headset Analog Stereo)"
_DEVICE_LINE = re.compile(r"^\s*'(?P<name>.+)'\s+\((?P<description>.*)\)\s*$")


@dataclass
class DisplayInfo:
    """Information about a display/monitor"""
    index: int
    name: str
    width: int
    height: int
    x: int
    y: int
    is_primary: bool

    def __str__(self):
        primary_str = " (Primary)" if self.is_primary else ""
        return f"Display {self.index}: {self.name} - {self.width}x{self.height}{primary_str}"


@dataclass
class AudioDeviceInfo:
    """An audio output device as reported by mpv"""
    name: str          # Identifier passed to --audio-device
    description: str   # Human readable label

    def __str__(self):
        return f"{self.name}  ({self.description})"


def parse_audio_device_list(output: str) -> List[AudioDeviceInfo]:
    """Parse the text printed by ``mpv --audio-device=help``."""
    devices = []
    for line in output.splitlines():
        match = _DEVICE_LINE.match(line)
        if match:
            devices.append(AudioDeviceInfo(match.group('name'), match.group('description')))
    return devices


class DeviceScanner:
    """
    Scans and caches information about available system devices:
    - Audio output devices (as mpv identifiers)
    - Displays/Monitors
    """

    def __init__(self, mpv_cmd: str = 'mpv'):
        self.mpv_cmd = mpv_cmd
        self._displays_cache: Optional[List[DisplayInfo]] = None
        self._audio_devices_cache: Optional[List[AudioDeviceInfo]] = None

    def scan_audio_devices(self, force_refresh: bool = False) -> List[AudioDeviceInfo]:
        """
        List audio output devices mpv can route to.

        Args:
            force_refresh: Force re-scan even if cache exists

        Returns:
            List of AudioDeviceInfo ('auto' first, as mpv prints it);
            empty if mpv could not be run
        """
        if self._audio_devices_cache is not None and not force_refresh:
            return self._audio_devices_cache

        try:
            result = subprocess.run(
                [self.mpv_cmd, '--audio-device=help'],
                capture_output=True,
                text=True,
                timeout=10
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning(f"Error scanning audio devices: {e}")
            return []

        devices = parse_audio_device_list(result.stdout)
        if not devices:
            logger.warning("mpv reported no audio devices")

        self._audio_devices_cache = devices
        return devices

    def scan_displays(self, force_refresh: bool = False) -> List[DisplayInfo]:
        """
        Scan available displays/monitors using screeninfo.

        Args:
            force_refresh: Force re-scan even if cache exists

        Returns:
            List of DisplayInfo objects (empty without a display server)
        """
        if self._displays_cache is not None and not force_refresh:
            return self._displays_cache

        try:
            monitors = get_monitors()
        except ScreenInfoError as e:
            logger.warning(f"Error scanning displays: {e}")
            return []

        displays = []
        for idx, monitor in enumerate(monitors):
            # Some backends leave is_primary unset; assume the first screen then
            is_primary = getattr(monitor, 'is_primary', None)
            if is_primary is None:
                is_primary = (idx == 0)

            displays.append(DisplayInfo(
                index=idx,
                name=monitor.name or f"Display {idx + 1}",
                width=monitor.width,
                height=monitor.height,
                x=monitor.x,
                y=monitor.y,
                is_primary=bool(is_primary)
            ))

        self._displays_cache = displays
        return displays

    def get_display_by_index(self, index: int) -> Optional[DisplayInfo]:
        """Get display info by index"""
        for display in self.scan_displays():
            if display.index == index:
                return display
        return None

    def validate_screen(self, index: int) -> tuple[bool, str]:
        """
        Validate that a screen index exists.

        Returns:
            Tuple of (valid: bool, message: str)
        """
        if self.get_display_by_index(index) is None:
            available = [d.index for d in self.scan_displays()]
            return False, f"Display index {index} not found (available: {available})"
        return True, "Display configuration valid"

    def print_all_devices(self):
        """Print all available devices"""
        print("\n" + "="*60)
        print("AVAILABLE AUDIO OUTPUT DEVICES")
        print("="*60)
        audio_devices = self.scan_audio_devices()
        if audio_devices:
            for device in audio_devices:
                print(f"  {device}")
        else:
            print("  No output devices found")

        print("\n" + "="*60)
        print("AVAILABLE DISPLAYS")
        print("="*60)
        displays = self.scan_displays()
        if displays:
            for display in displays:
                print(f"  {display}")
        else:
            print("  No displays found")
        print("="*60 + "\n")
