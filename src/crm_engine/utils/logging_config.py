"""Structured logger setup shared across the engine components."""

import logging
import os

from pythonjsonlogger import jsonlogger


def get_logger(name: str) -> logging.Logger:
    """
    Configure a JSON logger once and reuse it.

    Scoring code logs counts and identifiers through ``extra`` only, so the
    output stays machine-readable for the dashboards that consume it.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    formatter = jsonlogger.JsonFormatter(
        "%(levelname)s %(name)s %(message)s %(asctime)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(os.environ.get("CRM_LOG_LEVEL", "INFO").upper())
    logger.propagate = False
    return logger
