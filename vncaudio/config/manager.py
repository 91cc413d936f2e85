import copy
import json
import logging
from pathlib import Path
from typing import Dict, Any, Optional

from ..core.messages import AudioFormat

logger = logging.getLogger(__name__)

# Default config directory setup
DEFAULT_CONFIG_DIR = Path.home() / '.config' / 'vncaudio'


class ConfigManager:
    def __init__(self, config_dir: Optional[Path] = None):
        self.config_dir = Path(config_dir) if config_dir else DEFAULT_CONFIG_DIR

        self.config_file = self.config_dir / 'config.json'
        self.logs_dir = self.config_dir / 'logs'

        self.ensure_config_dir()
        self.config = self.load_config()

    def ensure_config_dir(self):
        """Create config directory and subdirectories if they don't exist."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.logs_dir.mkdir(parents=True, exist_ok=True)

    def load_config(self) -> Dict[str, Any]:
        """Load configuration from file or create default if not exists."""
        try:
            if self.config_file.exists():
                with open(self.config_file, 'r') as f:
                    loaded_config = json.load(f)
                if not isinstance(loaded_config, dict):
                    raise ValueError(f"expected a JSON object, got {type(loaded_config).__name__}")
                # Merge with defaults to ensure all required keys exist
                return self._merge_configs(DEFAULT_CONFIG, loaded_config)
            else:
                # Save default config if no config exists
                self.save_config(DEFAULT_CONFIG)
                logger.debug(f"Created new config file at {self.config_file}")
                return self._merge_configs(DEFAULT_CONFIG, {})
        except (OSError, ValueError) as e:
            logger.warning(f"Error loading config: {e}, using default configuration")
            return self._merge_configs(DEFAULT_CONFIG, {})

    def save_config(self, config: Dict[str, Any]):
        """Save configuration to file."""
        with open(self.config_file, 'w') as f:
            json.dump(config, f, indent=4)

    def audio_format(self) -> AudioFormat:
        """Sample format to request from the server."""
        return AudioFormat.from_dict(self.config['audio'])

    def get_log_path(self, name: str) -> Path:
        """Get the path for a log file."""
        return self.logs_dir / f'{name}.log'

    @staticmethod
    def _merge_configs(default: Dict[str, Any], loaded: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge loaded config with defaults."""
        merged = copy.deepcopy(default)

        for key, value in loaded.items():
            if key in merged and isinstance(merged[key], dict):
                if not isinstance(value, dict):
                    logger.warning(f"Ignoring config section '{key}': expected an object, got {value!r}")
                    continue
                merged[key] = ConfigManager._merge_configs(merged[key], value)
            else:
                merged[key] = value

        return merged


# Default configuration template
DEFAULT_CONFIG = {
    "server": {
        "address": "127.0.0.1",
        "port": 5900
    },
    "audio": {
        "sample_format": 3,
        "channels": 2,
        "frequency": 48000
    },
    "logging": {
        "level": "INFO",
        "file": False
    }
}
