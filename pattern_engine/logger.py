import logging
from typing import Optional

LOGGER_NAME = "pattern_engine"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Returns a logger under the package namespace.
    """
    if not name:
        return logging.getLogger(LOGGER_NAME)
    if name == LOGGER_NAME or name.startswith(LOGGER_NAME + '.'):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")


def setup_logging(level=logging.INFO) -> logging.Logger:
    """
    Configures the package logger to write to the console.
    Safe to call more than once; only one console handler is attached.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    # Prevent logs from being propagated to the root logger
    logger.propagate = False

    if not any(isinstance(h, logging.StreamHandler) for h in logger.handlers):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(console_handler)

    return logger
