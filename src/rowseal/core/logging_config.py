"""Logging setup for applications embedding rowseal.

The package itself only ever calls ``logging.getLogger(__name__)``; nothing is
printed until the host application configures handlers, either on its own or
through :func:`configure_logging`.
"""

import logging
import sys
from typing import Union

PACKAGE_LOGGER = "rowseal"
LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"


def configure_logging(level: Union[int, str] = logging.INFO, package_level: Union[int, str, None] = None) -> None:
    """
    Configure the root logger once and optionally tune rowseal's own level,
    e.g. ``package_level="DEBUG"`` to see salt-probe details.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt="%H:%M:%S",
        stream=sys.stdout,
    )
    if package_level is not None:
        if isinstance(package_level, str):
            package_level = package_level.upper()
        logging.getLogger(PACKAGE_LOGGER).setLevel(package_level)
