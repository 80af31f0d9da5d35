"""
Configuration manager for loading and saving application settings.
"""

import os
import json
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .app_settings import AppSettings


# Environment variable -> (setting name, converter)
ENV_OVERRIDES = {
    'MILVET_ENV': ('environment', str),
    'MILVET_BACKEND_URL': ('backend_url', str),
    'MILVET_BACKEND_HOST': ('backend_host', str),
    'MILVET_API_KEY': ('api_key', str),
    'MILVET_DATA_DIR': ('data_dir', str),
    'MILVET_LOG_LEVEL': ('log_level', str),
    'MILVET_CACHE_VERSION': ('cache_version', str),
    'MILVET_REQUEST_TIMEOUT': ('request_timeout', float),
}


class ConfigManager:
    """
    Manages loading and saving of application configuration.

    Settings are read from a JSON file in the user config directory, then
    environment overrides are applied on top.
    """

    def __init__(self, config_dir: Optional[str] = None,
                 environ: Optional[Mapping[str, str]] = None):
        """
        Initialize the configuration manager.

        Args:
            config_dir: Custom configuration directory path.
                       If None, uses default user config directory.
            environ: Environment mapping for overrides (os.environ if None)
        """
        self.logger = logging.getLogger(__name__)
        self.environ = os.environ if environ is None else environ

        if config_dir:
            self.config_dir = Path(config_dir)
        else:
            self.config_dir = self._get_default_config_dir()

        self.config_file = self.config_dir / "milvet_nav_config.json"

    def _get_default_config_dir(self) -> Path:
        """Get the default configuration directory based on OS."""
        if os.name == 'nt':  # Windows
            config_base = os.environ.get('APPDATA', os.path.expanduser('~'))
        else:  # Unix-like systems
            config_base = os.environ.get('XDG_CONFIG_HOME', os.path.expanduser('~/.config'))
        return Path(config_base) / "milvet-nav"

    def _ensure_config_dir(self):
        """Ensure the configuration directory exists."""
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            self.logger.error(f"Failed to create config directory {self.config_dir}: {e}")
            raise

    def load_settings(self) -> AppSettings:
        """
        Load settings from the configuration file and environment.

        Returns:
            AppSettings with loaded values, or defaults when the file is
            missing or invalid.
        """
        data = self._read_file()
        data.update(self._read_environment())

        try:
            return AppSettings.from_dict(data)
        except (ValueError, TypeError) as e:
            self.logger.error(f"Invalid configuration: {e}")
            self.logger.info("Using default settings")
            return AppSettings()

    def save_settings(self, settings: AppSettings) -> bool:
        """
        Save settings to the configuration file.

        Args:
            settings: AppSettings object to save.

        Returns:
            True if saved successfully, False otherwise.
        """
        try:
            self._ensure_config_dir()

            if self.config_file.exists():
                backup_file = self.config_file.with_suffix('.json.bak')
                self.config_file.replace(backup_file)

            with open(self.config_file, 'w', encoding='utf-8') as f:
                json.dump(settings.to_dict(), f, indent=2)

            self.logger.info(f"Saved settings to {self.config_file}")
            return True

        except OSError as e:
            self.logger.error(f"Failed to save settings to {self.config_file}: {e}")
            return False

    def reset_to_defaults(self) -> AppSettings:
        """
        Reset configuration to defaults and save.

        Returns:
            New AppSettings object with default values.
        """
        default_settings = AppSettings()

        if self.save_settings(default_settings):
            self.logger.info("Reset configuration to defaults")
        else:
            self.logger.warning("Failed to save default configuration")

        return default_settings

    def get_config_info(self) -> Dict[str, Any]:
        """
        Get information about the current configuration.

        Returns:
            Dictionary with configuration file information.
        """
        info = {
            'config_dir': str(self.config_dir),
            'config_file': str(self.config_file),
            'exists': self.config_file.exists(),
            'overrides': sorted(k for k in ENV_OVERRIDES if k in self.environ),
            'size': 0,
            'modified': None,
        }

        if info['exists']:
            try:
                stat = self.config_file.stat()
                info['size'] = stat.st_size
                info['modified'] = stat.st_mtime
            except OSError:
                pass

        return info

    def _read_file(self) -> Dict[str, Any]:
        if not self.config_file.exists():
            self.logger.info("Configuration file not found, using defaults")
            return {}

        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("Configuration root must be an object")
            self.logger.info(f"Loaded settings from {self.config_file}")
            return data

        except (json.JSONDecodeError, ValueError) as e:
            self.logger.error(f"Failed to load settings from {self.config_file}: {e}")
            return {}
        except OSError as e:
            self.logger.error(f"Failed to read config file {self.config_file}: {e}")
            return {}

    def _read_environment(self) -> Dict[str, Any]:
        overrides = {}
        for env_name, (setting_name, converter) in ENV_OVERRIDES.items():
            raw_value = self.environ.get(env_name)
            if raw_value is None or raw_value == '':
                continue
            try:
                overrides[setting_name] = converter(raw_value)
            except ValueError:
                self.logger.warning(f"Ignoring invalid value for {env_name}: {raw_value!r}")
        return overrides
