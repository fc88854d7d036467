#!/usr/bin/env python
#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#

"""Various constants."""

from __future__ import annotations

import platform
import sys

from .version import VERSION

SNOWFLAKE_SQLAPI_VERSION = ".".join(str(v) for v in VERSION[0:3])
PYTHON_VERSION = ".".join(str(v) for v in sys.version_info[:3])
OPERATING_SYSTEM = platform.system()
PLATFORM = platform.platform()
IMPLEMENTATION = platform.python_implementation()

CLIENT_NAME = "PythonSqlApiClient"  # don't change!

USER_AGENT = (
    f"{CLIENT_NAME}/{SNOWFLAKE_SQLAPI_VERSION} ({PLATFORM}) "
    f"{IMPLEMENTATION}/{PYTHON_VERSION}"
)
