"""
Device Configuration Handler
Remembers the audio devices and screen chosen for the last DuoSync session,
so the next ``play`` can pre-select them.
"""

import copy
import json
import logging
from typing import Dict, Any, Optional
from pathlib import Path
from datetime import datetime

logger = logging.getLogger(__name__)


class DeviceConfigHandler:
    """
    Handles device configuration persistence.
    """

    DEFAULT_CONFIG = {
        'version': '1.0',
        'last_modified': None,
        'audio': {
            'video_output': None,       # mpv device id for the VIDEO player
            'audio_only_output': None,  # mpv device id for the AUDIO_ONLY player
        },
        'display': {
            'video_screen': None,       # Screen index for the video window
        },
    }

    def __init__(self, config_path: str):
        """
        Initialize configuration handler.

        Args:
            config_path: Path to the JSON config file
        """
        self.config_path = Path(config_path)
        self.config = self.load()

    def load(self) -> Dict[str, Any]:
        """
        Load configuration from file.
        Missing or unparsable files yield the defaults.

        Returns:
            Configuration dictionary
        """
        if not self.config_path.exists():
            return copy.deepcopy(self.DEFAULT_CONFIG)

        try:
            with open(self.config_path, 'r') as f:
                config = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Error reading {self.config_path}: {e}; using defaults")
            return copy.deepcopy(self.DEFAULT_CONFIG)

        if not isinstance(config, dict):
            logger.warning(f"{self.config_path} does not hold an object; using defaults")
            return copy.deepcopy(self.DEFAULT_CONFIG)

        return self._merge_with_defaults(config)

    def save(self, config: Optional[Dict[str, Any]] = None):
        """
        Save configuration to file.

        Args:
            config: Configuration to save. If None, saves current config.
        """
        if config is None:
            config = self.config

        config['last_modified'] = datetime.now().isoformat()

        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, 'w') as f:
                json.dump(config, f, indent=4)
            logger.debug(f"Device configuration saved to {self.config_path}")
        except OSError as e:
            logger.warning(f"Could not save device configuration: {e}")

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation.

        Args:
            key_path: Dot-separated path to value (e.g., 'audio.video_output')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        value = self.config

        for key in key_path.split('.'):
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return default if value is None else value

    def set(self, key_path: str, value: Any, save: bool = True):
        """
        Set configuration value using dot notation.

        Args:
            key_path: Dot-separated path to value
            value: Value to set
            save: Whether to save after setting
        """
        keys = key_path.split('.')
        config = self.config

        for key in keys[:-1]:
            if not isinstance(config.get(key), dict):
                config[key] = {}
            config = config[key]

        config[keys[-1]] = value

        if save:
            self.save()

    def remember_session(self, video_output: Optional[str], audio_only_output: Optional[str],
                         video_screen: Optional[int] = None):
        """Store the choices of a session that started successfully."""
        self.set('audio.video_output', video_output, save=False)
        self.set('audio.audio_only_output', audio_only_output, save=False)
        self.set('display.video_screen', video_screen, save=False)
        self.save()

    def _merge_with_defaults(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge loaded config with defaults to ensure all keys exist.

        Args:
            config: Loaded configuration

        Returns:
            Merged configuration
        """
        def merge_dict(base: dict, overlay: dict) -> dict:
            """Recursively merge overlay into base"""
            result = copy.deepcopy(base)
            for key, value in overlay.items():
                if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                    result[key] = merge_dict(result[key], value)
                else:
                    result[key] = value
            return result

        return merge_dict(self.DEFAULT_CONFIG, config)

    def __str__(self):
        return json.dumps(self.config, indent=2)
