import os
from pathlib import Path

from docpublisher.constants import CONFIG_FILE_FILE_NAME, LOG_FILE_FILE_NAME

APPLICATION_DIRECTORY_NAME = 'docpublisher'


def _xdg_directory(variable: str, default: Path) -> Path:
    if value := os.getenv(variable):
        return Path(value).expanduser() / APPLICATION_DIRECTORY_NAME
    return default / APPLICATION_DIRECTORY_NAME


def get_config_directory() -> Path:
    return _xdg_directory('XDG_CONFIG_HOME', Path.home() / '.config')


def get_config_file() -> Path:
    """Returns the path of the YAML configuration file; the file may not exist."""
    return get_config_directory() / CONFIG_FILE_FILE_NAME


def get_log_file() -> Path:
    """Returns the path of the default log file, creating its directory when needed."""
    state_directory = _xdg_directory('XDG_STATE_HOME', Path.home() / '.local' / 'state')
    state_directory.mkdir(parents=True, exist_ok=True)
    return state_directory / LOG_FILE_FILE_NAME
