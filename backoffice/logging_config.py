"""Configuration du logging pour une application qui embarque le back-office."""
from __future__ import annotations

import logging
import os
from typing import Optional

ROOT_LOGGER = "backoffice"
DEFAULT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
LEVEL_ENV = "BACKOFFICE_LOG_LEVEL"


def configure_logging(
    level: Optional[int | str] = None,
    handler: Optional[logging.Handler] = None,
    fmt: str = DEFAULT_FORMAT,
) -> logging.Logger:
    """
    Attache un handler unique au logger ``backoffice``.
    Niveau : argument, puis $BACKOFFICE_LOG_LEVEL, puis INFO.
    Rappeler la fonction remplace le handler précédent (pas de doublons).
    """
    logger = logging.getLogger(ROOT_LOGGER)
    for h in list(logger.handlers):
        logger.removeHandler(h)

    handler = handler or logging.StreamHandler()
    handler.setFormatter(logging.Formatter(fmt))
    logger.addHandler(handler)

    lvl = level if level is not None else os.environ.get(LEVEL_ENV, "INFO")
    logger.setLevel(lvl.upper() if isinstance(lvl, str) else lvl)
    logger.propagate = False
    return logger


def reset_logging() -> None:
    logger = logging.getLogger(ROOT_LOGGER)
    for h in list(logger.handlers):
        logger.removeHandler(h)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
