#!/usr/bin/env python
#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#
from __future__ import annotations

import logging
from functools import wraps
from logging import NullHandler

from .config import SqlApiConfig
from .connection import SnowflakeSqlApiConnection
from .constants import ExecutionState
from .errors import (
    AuthError,
    ConfigurationError,
    DatabaseError,
    EmptyResponseError,
    Error,
    InterfaceError,
    MalformedResponseError,
    OperationalError,
    ProgrammingError,
    ProtocolError,
    RemoteError,
    SubmissionError,
    TimedOutError,
    TransportError,
)
from .log_configuration import configure_from_env, setup_logging
from .result_set import ResultSet
from .version import VERSION

logging.getLogger(__name__).addHandler(NullHandler())
configure_from_env()


@wraps(SnowflakeSqlApiConnection.__init__)
def Connect(**kwargs) -> SnowflakeSqlApiConnection:
    return SnowflakeSqlApiConnection(**kwargs)


connect = Connect

SNOWFLAKE_SQLAPI_VERSION = ".".join(str(v) for v in VERSION[0:3])
__version__ = SNOWFLAKE_SQLAPI_VERSION

__all__ = [
    "SnowflakeSqlApiConnection",
    "SqlApiConfig",
    "ResultSet",
    "ExecutionState",
    "connect",
    "Connect",
    "setup_logging",
    # Error handling
    "Error",
    "InterfaceError",
    "DatabaseError",
    "OperationalError",
    "ProgrammingError",
    "AuthError",
    "ConfigurationError",
    "SubmissionError",
    "ProtocolError",
    "RemoteError",
    "EmptyResponseError",
    "MalformedResponseError",
    "TransportError",
    "TimedOutError",
]
