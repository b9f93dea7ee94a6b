"""
Configuration loader with defaults for the vision service, auth, camera and polling.
"""
import copy
from pathlib import Path
from typing import Any, Dict, Optional
import logging

import yaml

from .io_utils import load_yaml

logger = logging.getLogger(__name__)


class Config:
    """
    Configuration container.

    Calibration protocol constants live on the controller and are
    intentionally absent here.
    """

    DEFAULTS = {
        # Remote vision service (marker + category detection)
        "server": {
            "base_url": "https://theforgerealm.com/scryforge",
            "timeout_sec": 10.0,
        },

        # Forge Realm auth server
        "auth": {
            "base_url": "https://theforgerealm.com",
            "cache_duration_sec": 300.0,
            "token_poll_interval_sec": 3.0,
            "token_timeout_sec": 300.0,
            "client_name": "ScryForge Client",
            "token_file": "config/tokens.yaml",
        },

        "camera": {
            "source": 0,
            "width": 1280,
            "height": 720,
            "fps": 30,
            "backend": "any",
            "jpeg_quality": 95,
            "read_timeout_sec": 1.0,
        },

        "scrying": {
            "poll_interval_sec": 1.0,
        },
    }

    def __init__(self, config_path: Optional[Path] = None):
        """
        Load configuration from file or use defaults.

        Args:
            config_path: Path to config YAML (None = use defaults)
        """
        self.data = copy.deepcopy(self.DEFAULTS)

        if config_path and Path(config_path).exists():
            try:
                user_config = load_yaml(Path(config_path))
                self._merge_config(user_config)
                logger.info(f"Configuration loaded from {config_path}")
            except (OSError, ValueError, yaml.YAMLError) as e:
                logger.warning(f"Failed to load config: {e}, using defaults")
        else:
            logger.info("Using default configuration")

    def _merge_config(self, user_config: Dict[str, Any]) -> None:
        """Merge user config into defaults, section by section."""
        for section, values in user_config.items():
            if section in self.data and isinstance(values, dict):
                self.data[section].update(values)
            else:
                self.data[section] = values

    def get(self, section: str, key: str, default: Any = None) -> Any:
        """Get config value."""
        return self.data.get(section, {}).get(key, default)

    def get_section(self, section: str) -> Dict[str, Any]:
        """Get entire config section."""
        return self.data.get(section, {})
