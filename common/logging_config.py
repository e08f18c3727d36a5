import logging
import os
import re
import sys
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

CONNECTION_LOGGER_PARENT = 'syncserver'

_UNSAFE_ADDRESS_CHARS = re.compile(r'[/\\.:@?|*"]')


def setup_logging(
    component_name: str,
    log_level: Optional[str] = None
) -> logging.Logger:
    """
    Set up logging configuration for a component.

    Args:
        component_name: Name of the component (e.g., 'syncserver')
        log_level: Log level (DEBUG, INFO, WARNING, ERROR). Defaults to LOG_LEVEL env var or INFO

    Returns:
        Configured logger instance
    """
    if log_level is None:
        log_level = os.getenv('LOG_LEVEL', 'INFO')

    level = getattr(logging, log_level.upper(), logging.INFO)

    logger = logging.getLogger(component_name)
    logger.setLevel(level)

    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))

    logger.addHandler(handler)
    logger.propagate = False

    return logger


def connection_identity(address: str) -> str:
    """
    Derive a logger-safe identity for a peer connection.

    Args:
        address: Peer host as text (e.g., '127.0.0.1')

    Returns:
        Identity such as 'server-connection-from-127-0-0-1'
    """
    return f"server-connection-from-{_UNSAFE_ADDRESS_CHARS.sub('-', address)}"


def get_connection_logger(address: str) -> logging.Logger:
    """
    Get the logger dedicated to one peer connection.

    The logger is a child of the 'syncserver' component logger, so it shares
    the handler installed by setup_logging('syncserver'). Loggers are never
    released, so address must not carry the ephemeral port.

    Args:
        address: Peer host as text

    Returns:
        Logger instance
    """
    return logging.getLogger(f"{CONNECTION_LOGGER_PARENT}.{connection_identity(address)}")
