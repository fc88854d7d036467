#!/usr/bin/env python
#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#
from __future__ import annotations

from logging import getLogger
from os import PathLike
from types import TracebackType
from typing import Any

from .auth import KeyPairTokenIssuer
from .config import SqlApiConfig
from .converter import SnowflakeConverter
from .coordinator import ExecutionCoordinator
from .decoder import ResponseDecoder
from .errorcode import ER_CONNECTION_IS_CLOSED, ER_FAILED_TO_SIGN_TOKEN
from .errors import AuthError, InterfaceError
from .network import StatementClient
from .result_set import ResultSet
from .token_cache import InMemoryTokenCache, TokenCache
from .transport import HttpConfig, SessionManager, TransportClient

logger = getLogger(__name__)


class SnowflakeSqlApiConnection:
    """Runs SQL statements through the Snowflake SQL API.

    Settings come from, in order of precedence: an explicit ``config``, a
    named section of a ``connections.toml`` file, keyword arguments, and
    finally ``SNOWFLAKE_*`` environment variables.

    Example:

        with SnowflakeSqlApiConnection(account="xy12345", user="ME", ...) as conn:
            rows = conn.execute("SELECT 1 AS TEST")
    """

    def __init__(
        self,
        config: SqlApiConfig | None = None,
        connection_name: str | None = None,
        connections_file_path: str | PathLike[str] | None = None,
        memory_token_cache: InMemoryTokenCache | None = None,
        external_token_cache: TokenCache | None = None,
        transport: TransportClient | None = None,
        **kwargs: Any,
    ) -> None:
        if config is None:
            if connection_name is not None or connections_file_path is not None:
                config = SqlApiConfig.from_connections_file(
                    connections_file_path, connection_name or "default"
                )
            elif kwargs:
                config = SqlApiConfig.from_dict(kwargs)
            else:
                config = SqlApiConfig.from_env()
        self._config = config

        if external_token_cache is None:
            external_token_cache = TokenCache.make(
                config.use_file_token_cache, config.token_cache_dir
            )
        self._token_issuer = KeyPairTokenIssuer(
            account=config.account,
            user=config.user,
            private_key=config.private_key,
            public_key_fingerprint=config.public_key,
            private_key_passphrase=config.private_key_passphrase,
            memory_cache=memory_token_cache,
            external_cache=external_token_cache,
        )
        if transport is None:
            transport = TransportClient(
                SessionManager(
                    HttpConfig(
                        pool_connections=config.max_workers,
                        pool_maxsize=config.max_workers,
                        request_timeout=config.request_timeout,
                    )
                )
            )
        self._transport = transport
        self._client = StatementClient(
            config, self._token_issuer, transport, ResponseDecoder()
        )
        self._coordinator = ExecutionCoordinator(
            self._client,
            converter=SnowflakeConverter(),
            max_workers=config.max_workers,
            poll_interval=config.poll_interval,
            raise_on_timeout=config.raise_on_timeout,
        )
        self._closed = False
        logger.debug(
            "Created SQL API connection for account %s as %s",
            config.account,
            config.user,
        )

    @property
    def config(self) -> SqlApiConfig:
        return self._config

    @property
    def is_closed(self) -> bool:
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise InterfaceError(
                msg="Connection is closed",
                errno=ER_CONNECTION_IS_CLOSED,
            )

    def execute_result(self, sql: str, timeout: float | None = None) -> ResultSet:
        """Runs ``sql`` and returns the populated ResultSet."""
        self._check_open()
        if timeout is None:
            timeout = self._config.timeout
        return self._coordinator.execute(sql, timeout)

    def execute(self, sql: str, timeout: float | None = None) -> list[dict[str, Any]]:
        """Runs ``sql`` and returns its rows as dictionaries keyed by column name."""
        return self.execute_result(sql, timeout).materialize()

    def test_connection(self) -> None:
        """Checks that a token can be produced from the configured key.

        Raises:
            AuthError: The key material is missing, invalid or cannot sign.
        """
        self._check_open()
        try:
            self._token_issuer.get_token()
        except AuthError:
            raise
        except Exception as e:
            raise AuthError(
                msg=f"Failed to generate an authentication token: {e}",
                errno=ER_FAILED_TO_SIGN_TOKEN,
            ) from e

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._transport.close()
        logger.debug("Closed SQL API connection for account %s", self._config.account)

    def __enter__(self) -> SnowflakeSqlApiConnection:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()
