#!/usr/bin/env python
#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#
from __future__ import annotations

import logging
import os

from .constants import ENV_VAR_DEBUG_LOGGING, LOG_FORMAT
from .secret_detector import SecretDetector

PACKAGE_LOGGER_NAME = "snowflake.sqlapi"


def setup_logging(
    level: int | str = logging.INFO, path: str | None = None
) -> logging.Handler:
    """Attaches a secret masking handler to the package logger.

    Logs go to ``path`` when it is given, otherwise to stderr. Calling this
    again replaces the handler installed by the previous call.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logger = logging.getLogger(PACKAGE_LOGGER_NAME)
    for handler in list(logger.handlers):
        if getattr(handler, "_sqlapi_handler", False):
            logger.removeHandler(handler)
            handler.close()

    if path:
        directory = os.path.dirname(os.path.abspath(path))
        os.makedirs(directory, exist_ok=True)
        ch: logging.Handler = logging.FileHandler(path)
    else:
        ch = logging.StreamHandler()
    ch.setLevel(level)
    ch.setFormatter(SecretDetector(LOG_FORMAT))
    ch._sqlapi_handler = True  # type: ignore[attr-defined]
    logger.setLevel(level)
    logger.addHandler(ch)
    return ch


def debug_logging_requested() -> bool:
    return os.getenv(ENV_VAR_DEBUG_LOGGING, "false").lower() == "true"


def configure_from_env() -> None:
    if debug_logging_requested():
        setup_logging(logging.DEBUG)
