import logging
import os
from pathlib import Path

from pythonjsonlogger.json import JsonFormatter

from docpublisher.config import CONFIGURATION, ApplicationConfiguration
from docpublisher.constants import LOGGER_NAME
from docpublisher.files import get_log_file


def setup_logging(configuration: ApplicationConfiguration | None = None) -> logging.Logger:
    """Configures the application logger to write JSON records to the log file.

    The log file is taken from `DOCPUBLISHER_LOG_FILE`, then from the configuration and finally defaults to a file in
    the XDG state directory. An empty `log_file` in the configuration disables logging to a file.

    Args:
        configuration: the configuration to use; defaults to the active configuration.

    Returns:
        The application logger.
    """

    config = configuration or CONFIGURATION.get()
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(config.log_level or logging.WARNING)

    if env_log_file := os.getenv('DOCPUBLISHER_LOG_FILE'):
        log_file = Path(env_log_file).resolve()
    elif config.log_file == '':
        return logger
    elif config_log_file := config.log_file:
        log_file = Path(config_log_file).resolve()
    else:
        log_file = get_log_file()

    if any(
        isinstance(handler, logging.FileHandler) and Path(handler.baseFilename) == log_file
        for handler in logger.handlers
    ):
        return logger

    try:
        fh = logging.FileHandler(log_file)
    except Exception as e:
        logger.warning(f'Failed to create log file handler: {e}')
    else:
        fh.setLevel(config.log_level or logging.WARNING)
        fh.setFormatter(
            JsonFormatter('%(asctime)s %(levelname)s %(message)s %(lineno)s %(module)s %(pathname)s ')
        )
        logger.addHandler(fh)
    return logger
