import logging
import sys

LEVELS = {
    'debug': logging.DEBUG,
    'info': logging.INFO,
    'notice': logging.INFO,
    'warning': logging.WARNING,
    'warn': logging.WARNING,
    'error': logging.ERROR,
    'critical': logging.CRITICAL,
}

def setup_logger(name, level=logging.INFO):
    """Set up a logger with console output."""
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # a second call only adjusts the level
    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    # Create console handler and set level
    ch = logging.StreamHandler(sys.stdout)
    ch.setLevel(level)

    # Create formatter
    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    # Add formatter to ch
    ch.setFormatter(formatter)

    # Add ch to logger
    logger.addHandler(ch)

    return logger

def to_logging_level(level):
    if isinstance(level, int):
        return level
    return LEVELS.get(str(level or 'info').lower(), logging.INFO)

# Create a default logger
default_logger = setup_logger('tablesync')
