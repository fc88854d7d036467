#!/usr/bin/env python
#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#
from __future__ import annotations

# configuration
ER_MISSING_CONFIG_OPTION = 250001
ER_INVALID_CONFIG_VALUE = 250002
ER_INVALID_CONNECTIONS_FILE = 250003

# authentication
ER_EMPTY_PRIVATE_KEY = 251001
ER_INVALID_PRIVATE_KEY = 251002
ER_FAILED_TO_SIGN_TOKEN = 251003
ER_UNSUPPORTED_KEY_TYPE = 251004

# transport
ER_FAILED_TO_REQUEST = 252001
ER_HTTP_GENERAL_ERROR = 252100  # + HTTP status

# response decoding
ER_EMPTY_RESPONSE = 253001
ER_MALFORMED_RESPONSE = 253002

# statement lifecycle
ER_STATEMENT_REJECTED = 254001
ER_MISSING_STATEMENT_HANDLE = 254002
ER_MISSING_RESULT_FIELD = 254003
ER_STATEMENT_TIMED_OUT = 254004
ER_FAILED_TO_CANCEL = 254005
ER_PARTITION_ALREADY_SET = 254006
ER_METADATA_ALREADY_SET = 254007
ER_PARTITION_OUT_OF_RANGE = 254008

# connection
ER_CONNECTION_IS_CLOSED = 255001
