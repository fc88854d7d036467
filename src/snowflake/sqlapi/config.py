#!/usr/bin/env python
#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#
from __future__ import annotations

import os
import stat
from dataclasses import dataclass, field, fields
from logging import getLogger
from pathlib import Path
from typing import Any, Mapping
from warnings import warn

import platformdirs
import tomlkit
from tomlkit.items import Table

from .constants import (
    DEFAULT_MAX_WORKERS,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_TIMEOUT,
    SNOWFLAKE_HOST_SUFFIX,
)
from .errorcode import (
    ER_INVALID_CONFIG_VALUE,
    ER_INVALID_CONNECTIONS_FILE,
    ER_MISSING_CONFIG_OPTION,
)
from .errors import ConfigurationError

logger = getLogger(__name__)

READABLE_BY_OTHERS = stat.S_IRGRP | stat.S_IROTH

REQUIRED_OPTIONS = (
    "account",
    "user",
    "private_key",
    "warehouse",
    "database",
    "schema",
)

# option name -> environment variable
ENV_VARIABLES = {
    "account": "SNOWFLAKE_ACCOUNT",
    "user": "SNOWFLAKE_USER",
    "public_key": "SNOWFLAKE_PUBLIC_KEY",
    "private_key": "SNOWFLAKE_PRIVATE_KEY",
    "private_key_passphrase": "SNOWFLAKE_PRIVATE_KEY_PASSPHRASE",
    "warehouse": "SNOWFLAKE_WAREHOUSE",
    "database": "SNOWFLAKE_DATABASE",
    "schema": "SNOWFLAKE_SCHEMA",
    "timeout": "SNOWFLAKE_TIMEOUT",
    "host": "SNOWFLAKE_HOST",
    "role": "SNOWFLAKE_ROLE",
}


def _default_connections_file() -> Path:
    snowflake_home = os.getenv("SNOWFLAKE_HOME")
    if snowflake_home:
        return Path(snowflake_home).expanduser() / "connections.toml"
    return platformdirs.user_config_path("snowflake", appauthor=False) / "connections.toml"


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class SqlApiConfig:
    """Immutable connection settings for the SQL API client.

    ``private_key`` holds PEM content, not a path. Literal ``\\n`` sequences,
    as found in environment variables, are turned into newlines when the key
    is loaded.
    """

    account: str
    user: str
    private_key: str = field(repr=False)
    warehouse: str
    database: str
    schema: str
    public_key: str = ""
    private_key_passphrase: str = field(default="", repr=False)
    timeout: float = DEFAULT_TIMEOUT
    host: str | None = None
    protocol: str = "https"
    port: int = 443
    role: str | None = None
    max_workers: int = DEFAULT_MAX_WORKERS
    poll_interval: float = DEFAULT_POLL_INTERVAL
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    raise_on_timeout: bool = False
    use_file_token_cache: bool = False
    token_cache_dir: str | None = None

    def __post_init__(self) -> None:
        for name in REQUIRED_OPTIONS:
            if not getattr(self, name):
                raise ConfigurationError(
                    msg=f"Missing required configuration option: {name}",
                    errno=ER_MISSING_CONFIG_OPTION,
                )
        if self.timeout is None or self.timeout < 0:
            raise ConfigurationError(
                msg=f"timeout must be a non negative number of seconds, got {self.timeout!r}",
                errno=ER_INVALID_CONFIG_VALUE,
            )
        if self.max_workers < 1:
            raise ConfigurationError(
                msg=f"max_workers must be at least 1, got {self.max_workers!r}",
                errno=ER_INVALID_CONFIG_VALUE,
            )
        if self.poll_interval < 0:
            raise ConfigurationError(
                msg=f"poll_interval must not be negative, got {self.poll_interval!r}",
                errno=ER_INVALID_CONFIG_VALUE,
            )
        if self.protocol not in ("http", "https"):
            raise ConfigurationError(
                msg=f"protocol must be http or https, got {self.protocol!r}",
                errno=ER_INVALID_CONFIG_VALUE,
            )

    @property
    def base_url(self) -> str:
        host = self.host or f"{self.account}{SNOWFLAKE_HOST_SUFFIX}"
        default_port = 443 if self.protocol == "https" else 80
        if self.port and self.port != default_port:
            return f"{self.protocol}://{host}:{self.port}"
        return f"{self.protocol}://{host}"

    @classmethod
    def from_dict(cls, options: Mapping[str, Any]) -> SqlApiConfig:
        """Builds a config from loosely typed option values.

        Unknown options are ignored with a debug message; numeric and boolean
        options given as strings are converted.
        """
        known = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for name, value in options.items():
            if name not in known:
                logger.debug("Ignoring unknown configuration option %s", name)
                continue
            if value is None or value == "":
                continue
            kwargs[name] = value

        try:
            for name in ("timeout", "poll_interval", "request_timeout"):
                if name in kwargs:
                    kwargs[name] = float(kwargs[name])
            for name in ("port", "max_workers"):
                if name in kwargs:
                    kwargs[name] = int(kwargs[name])
        except (TypeError, ValueError) as e:
            raise ConfigurationError(
                msg=f"Invalid numeric configuration value: {e}",
                errno=ER_INVALID_CONFIG_VALUE,
            ) from e
        for name in ("raise_on_timeout", "use_file_token_cache"):
            if name in kwargs:
                kwargs[name] = _to_bool(kwargs[name])

        missing = [name for name in REQUIRED_OPTIONS if not kwargs.get(name)]
        if missing:
            raise ConfigurationError(
                msg="Missing required configuration option(s): {}".format(
                    ", ".join(missing)
                ),
                errno=ER_MISSING_CONFIG_OPTION,
            )
        return cls(**kwargs)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> SqlApiConfig:
        if environ is None:
            environ = os.environ
        options = {
            name: environ.get(variable) for name, variable in ENV_VARIABLES.items()
        }
        return cls.from_dict(options)

    @classmethod
    def from_connections_file(
        cls,
        path: str | Path | None = None,
        name: str = "default",
    ) -> SqlApiConfig:
        """Reads one connection section of a ``connections.toml`` file."""
        file_path = Path(path) if path is not None else _default_connections_file()
        if not file_path.exists():
            raise ConfigurationError(
                msg=f"Connections file {file_path} does not exist",
                errno=ER_INVALID_CONNECTIONS_FILE,
            )
        if file_path.stat().st_mode & READABLE_BY_OTHERS != 0:
            warn(f"Bad owner or permissions on {str(file_path)}")
        logger.debug("reading configuration file from %s", file_path)
        try:
            document = tomlkit.parse(file_path.read_text())
        except Exception as e:
            raise ConfigurationError(
                msg=f"An unknown error happened while loading '{str(file_path)}'",
                errno=ER_INVALID_CONNECTIONS_FILE,
            ) from e

        section = document.get(name)
        if not isinstance(section, (Table, dict)):
            raise ConfigurationError(
                msg=f"Connection {name} is not defined in {file_path}",
                errno=ER_INVALID_CONNECTIONS_FILE,
            )
        return cls.from_dict(section.unwrap() if isinstance(section, Table) else section)
