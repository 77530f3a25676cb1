"""
Logging for the ledgerplot package.

Modules log through get_logger(__name__) and stay silent until the CLI
calls configure_logging(). Dropped rows, pruned buckets and resolved
models are logged at DEBUG.
"""

import logging
import os

PACKAGE_LOGGER = 'ledgerplot'
LOG_LEVEL_ENV = 'LEDGERPLOT_LOG_LEVEL'
LOG_FORMAT = '%(levelname)s %(name)s: %(message)s'

_package_logger = logging.getLogger(PACKAGE_LOGGER)
_package_logger.addHandler(logging.NullHandler())


def resolve_level(level=None):
    """Level from the argument, then $LEDGERPLOT_LOG_LEVEL, then INFO.

    Unrecognized names are skipped rather than rejected.
    """
    for candidate in (level, os.environ.get(LOG_LEVEL_ENV)):
        if isinstance(candidate, int):
            return candidate
        if not candidate:
            continue
        name = str(candidate).strip().upper()
        if name.isdigit():
            return int(name)
        value = logging.getLevelName(name)
        if isinstance(value, int):
            return value
    return logging.INFO


def _cli_handler():
    for handler in _package_logger.handlers:
        if getattr(handler, 'ledgerplot_cli', False):
            return handler
    return None


def configure_logging(level=None):
    """Send package log records to stderr.

    The handler is attached once; later calls only change the level.
    """
    handler = _cli_handler()
    if handler is None:
        handler = logging.StreamHandler()
        handler.ledgerplot_cli = True
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        _package_logger.addHandler(handler)
        _package_logger.propagate = False
    _package_logger.setLevel(resolve_level(level))
    return handler


def get_logger(name):
    return logging.getLogger(name)
