"""
Package loggers.

Use this in place of :mod:`logging` to get a logger that writes JSON records
to stderr at the level set by the ``LOGLEVEL`` environment variable.

.. code-block:: python

   from kvsessions import logging

   logger = logging.getLogger(__name__)

"""

import os
import sys
import logging
from typing import IO, Optional

from pythonjsonlogger.json import JsonFormatter

LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s %(message)s'


def _get_level() -> int:
    level = os.environ.get('LOGLEVEL', '40')
    if level.isdigit():
        return int(level)
    return logging.getLevelName(level.upper())


def getLogger(name: str, stream: Optional[IO] = None) -> logging.Logger:
    """
    Wrapper for :func:`logging.getLogger` that applies configuration.

    Parameters
    ----------
    name : str
    stream : file-like
        Defaults to ``sys.stderr``.

    Returns
    -------
    :class:`logging.Logger`

    """
    logger = logging.getLogger(name)
    if not any(getattr(h, '_kvsessions', False) for h in logger.handlers):
        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(JsonFormatter(
            LOG_FORMAT,
            rename_fields={'levelname': 'level', 'asctime': 'timestamp'}
        ))
        handler._kvsessions = True   # type: ignore
        logger.addHandler(handler)
        logger.propagate = False
    logger.setLevel(_get_level())
    return logger
