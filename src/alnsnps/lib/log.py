"""Logging helpers for the alnsnps CLI and pipeline."""
import logging

LOGGER_NAME = 'alnsnps'
LOG_FORMAT = '%(asctime)s | %(levelname)s | %(name)s | %(message)s'


def configure_logging(verbose: bool = False) -> logging.Logger:
    """Configures the root logger on stderr and returns the package logger."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
    (logger := logging.getLogger(LOGGER_NAME)).setLevel(level)
    return logger


def get_logger(name: str = None) -> logging.Logger:
    """Returns the package logger, or one of its children."""
    return logging.getLogger(f'{LOGGER_NAME}.{name}' if name else LOGGER_NAME)
