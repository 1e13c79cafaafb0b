from pathlib import Path

import platformdirs


def get_xdg_config_home() -> Path:
    """Get the XDG_CONFIG_HOME directory using platformdirs.

    Returns:
        Path to the user config directory (cross-platform).
    """
    return Path(platformdirs.user_config_dir())


def get_usagebar_config_dir() -> Path:
    """Get the usagebar configuration directory.

    Returns:
        Path to the usagebar directory within the user config directory.
    """
    return get_xdg_config_home() / "usagebar"


def default_credentials_path() -> Path:
    return get_usagebar_config_dir() / "credentials.json"
