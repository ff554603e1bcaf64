"""
Logging setup for wifictl.

Everything logs under the ``wifictl`` logger tree: command execution,
connection attempts, connectivity probes and monitor events. The CLI or
embedding application calls ``configure_logging`` once; library modules
only ever call ``logging.getLogger(__name__)``.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional

ROOT_LOGGER_NAME = "wifictl"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5


def _handlers(log_file: Optional[str], console_output: bool):
    if console_output:
        yield logging.StreamHandler(sys.stderr)

    if log_file:
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        yield logging.handlers.RotatingFileHandler(
            log_path, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS)


def configure_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    console_output: bool = True
) -> logging.Logger:
    """
    Configure the wifictl logger tree.

    Calling this again replaces the previous handlers.

    Args:
        log_level: Level name (DEBUG, INFO, WARNING, ERROR, CRITICAL);
            unknown names fall back to INFO
        log_file: Optional path of a rotating log file
        console_output: Whether to also log to stderr

    Returns:
        The configured ``wifictl`` logger
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)
    logger.handlers.clear()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in _handlers(log_file, console_output):
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def configure_from_config(cfg: dict) -> logging.Logger:
    """Configure logging from the 'logging' section of a loaded config."""
    section = cfg.get('logging', {})
    return configure_logging(
        log_level=section.get('level') or "INFO",
        log_file=section.get('file'),
    )


def get_logger(name: str) -> logging.Logger:
    """Return a logger inside the wifictl tree, prefixing ``name`` if needed."""
    if name.startswith(ROOT_LOGGER_NAME):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


logger = logging.getLogger(ROOT_LOGGER_NAME)
