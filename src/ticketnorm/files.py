import os
from pathlib import Path

from ticketnorm.constants import CONFIG_FILE_NAME, LOG_FILE_FILE_NAME

APPLICATION_DIRECTORY_NAME = 'ticketnorm'


def _xdg_directory(variable: str, default: Path) -> Path:
    if value := os.getenv(variable):
        return Path(value)
    return default


def get_config_directory() -> Path:
    return _xdg_directory('XDG_CONFIG_HOME', Path.home() / '.config') / APPLICATION_DIRECTORY_NAME


def get_config_file() -> Path:
    """The default location of the configuration file, e.g. `~/.config/ticketnorm/config.yaml`."""
    return get_config_directory() / CONFIG_FILE_NAME


def get_log_file() -> Path:
    """The default location of the log file; the parent directory is created if needed."""
    directory = (
        _xdg_directory('XDG_STATE_HOME', Path.home() / '.local' / 'state') / APPLICATION_DIRECTORY_NAME
    )
    directory.mkdir(parents=True, exist_ok=True)
    return directory / LOG_FILE_FILE_NAME
