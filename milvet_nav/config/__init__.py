"""
Configuration management for the milvet-nav client.

This module provides configuration loading, saving, and validation
for the offline proxy and error handling settings.
"""

from .config_manager import ConfigManager
from .app_settings import AppSettings

__all__ = ['ConfigManager', 'AppSettings']
