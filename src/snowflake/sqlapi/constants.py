#!/usr/bin/env python
#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#
from __future__ import annotations

from enum import Enum, unique

# Log format
LOG_FORMAT = (
    "%(asctime)s - %(threadName)s %(filename)s:%(lineno)d - "
    "%(funcName)s() - %(levelname)s - %(message)s"
)

# String literals
UTF8 = "utf-8"

SNOWFLAKE_HOST_SUFFIX = ".snowflakecomputing.com"
STATEMENTS_PATH = "/api/v2/statements"

# SQL API response codes, carried in the body rather than the HTTP status
CODE_SUCCESS = "090001"
CODE_ASYNC_ACCEPTED = "333334"
CODE_IN_PROGRESS = "333333"

# token lifecycle, in seconds
TOKEN_LIFETIME = 60 * 60
TOKEN_EXPIRY_MARGIN = 60
HEADER_EXPIRY_MARGIN = 120

DEFAULT_TIMEOUT = 60
DEFAULT_POLL_INTERVAL = 0.25
DEFAULT_MAX_WORKERS = 4
DEFAULT_REQUEST_TIMEOUT = 60

HTTP_HEADER_AUTHORIZATION = "Authorization"
HTTP_HEADER_CONTENT_TYPE = "Content-Type"
HTTP_HEADER_CONTENT_ENCODING = "Content-Encoding"
HTTP_HEADER_ACCEPT_ENCODING = "Accept-Encoding"
HTTP_HEADER_ACCEPT = "Accept"
HTTP_HEADER_USER_AGENT = "User-Agent"
HTTP_HEADER_TOKEN_TYPE = "X-Snowflake-Authorization-Token-Type"

CONTENT_TYPE_APPLICATION_JSON = "application/json"
HEADER_BEARER_TOKEN = "Bearer {token}"
KEYPAIR_JWT_TOKEN_TYPE = "KEYPAIR_JWT"

# Output formats negotiated at submission time so result parsing does not
# depend on account level defaults.
SESSION_OUTPUT_FORMATS: dict[str, str] = {
    "DATE_OUTPUT_FORMAT": "YYYY-MM-DD",
    "TIME_OUTPUT_FORMAT": "HH24:MI:SS.FF",
    "TIMESTAMP_OUTPUT_FORMAT": "YYYY-MM-DD HH24:MI:SS.FF",
    "TIMESTAMP_NTZ_OUTPUT_FORMAT": "YYYY-MM-DD HH24:MI:SS.FF",
    "TIMESTAMP_LTZ_OUTPUT_FORMAT": "YYYY-MM-DD HH24:MI:SS.FF TZH:TZM",
    "TIMESTAMP_TZ_OUTPUT_FORMAT": "YYYY-MM-DD HH24:MI:SS.FF TZH:TZM",
}

BOOLEAN_TYPE_NAMES = frozenset(["BOOLEAN"])
DATE_TIME_TYPE_NAMES = frozenset(
    [
        "DATE",
        "TIME",
        "TIMESTAMP",
        "TIMESTAMP_NTZ",
        "TIMESTAMP_LTZ",
        "TIMESTAMP_TZ",
    ]
)
INTEGER_TYPE_NAMES = frozenset(["INTEGER", "BIGINT", "SMALLINT", "TINYINT"])
FLOAT_TYPE_NAMES = frozenset(["FLOAT", "DOUBLE", "DECIMAL", "NUMERIC", "REAL"])
FIXED_TYPE_NAMES = frozenset(["FIXED", "NUMBER"])


def is_date_time_type_name(type_name: str | None) -> bool:
    return type_name in DATE_TIME_TYPE_NAMES


def is_integer_type_name(type_name: str | None) -> bool:
    return type_name in INTEGER_TYPE_NAMES


def is_float_type_name(type_name: str | None) -> bool:
    return type_name in FLOAT_TYPE_NAMES


@unique
class ExecutionState(Enum):
    """Lifecycle of a statement as seen by the client."""

    SUBMITTED = "SUBMITTED"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    TIMED_OUT = "TIMED_OUT"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"


# env variables
ENV_VAR_DEBUG_LOGGING = "SNOWFLAKE_SQLAPI_DEBUG_LOGGING"
ENV_VAR_TOKEN_CACHE_DIR = "SNOWFLAKE_SQLAPI_TOKEN_CACHE_DIR"
