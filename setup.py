#!/usr/bin/env python
#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#

import os

from setuptools import find_namespace_packages, setup

SQLAPI_SRC_DIR = os.path.join("src", "snowflake", "sqlapi")

VERSION = (1, 0, 0, None)  # Default
with open(os.path.join(SQLAPI_SRC_DIR, "version.py"), encoding="utf-8") as f:
    exec(f.read())
version = ".".join([str(v) for v in VERSION if v is not None])

setup(
    name="snowflake-sqlapi-python",
    version=version,
    description="Snowflake SQL API client for Python",
    author="Snowflake, Inc",
    license="Apache-2.0",
    python_requires=">=3.9",
    package_dir={"": "src"},
    packages=find_namespace_packages(where="src", include=["snowflake.*"]),
    install_requires=[
        "requests<3.0.0",
        "urllib3>=1.21.1",
        "cryptography>=3.1.0",
        "pyjwt<3.0.0",
        "pytz",
        "tomlkit",
        "platformdirs>=2.6.0,<5.0.0",
        "typing_extensions>=4.3,<5",
    ],
    extras_require={
        "development": [
            "pytest<7.5.0",
            "pytest-cov",
        ],
    },
    classifiers=[
        "Development Status :: 5 - Production/Stable",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3 :: Only",
        "Topic :: Database",
    ],
)
