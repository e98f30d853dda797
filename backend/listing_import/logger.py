"""
Logging configuration for listing import.
"""

import logging
import sys

from .config import config

# Create logger
logger = logging.getLogger('listing_import')
logger.setLevel(getattr(logging, str(config.LOG_LEVEL).upper(), logging.INFO))

# Console handler with formatting
if not logger.handlers:
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(logging.DEBUG)

    formatter = logging.Formatter(
        '%(asctime)s | %(levelname)-5s | %(name)s | %(message)s',
        datefmt='%H:%M:%S'
    )
    console.setFormatter(formatter)

    logger.addHandler(console)


# Strategy-specific loggers
def get_strategy_logger(name):
    """Get a child logger for a specific strategy or stage."""
    return logger.getChild(name)
