"""Configuration module for loading and managing worker settings"""
from typing import Dict, Any, Optional
from pathlib import Path

from .lib.load_settings_conf import load_settings_conf, validate_settings, SettingsError, DEFAULTS

__all__ = ['load_config', 'validate_settings', 'SettingsError', 'DEFAULTS']

def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load worker settings from file.

    Args:
        config_path: Optional path to a settings file. If not provided,
                    will look for settings.conf in current directory.

    Returns:
        Dictionary of validated settings

    Raises:
        SettingsError: If the file is missing or fails validation
    """
    if not config_path:
        return load_settings_conf()

    path = Path(config_path)
    try:
        return load_settings_conf(str(path.parent), path.name)
    except SettingsError as e:
        # Re-raise the error but provide more context
        raise SettingsError(
            f"Configuration Error\n"
            "=================\n\n"
            f"{str(e)}\n\n"
            "Please ensure settings.conf is properly configured."
        ) from e
