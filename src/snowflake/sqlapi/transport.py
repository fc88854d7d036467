#!/usr/bin/env python
#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#
from __future__ import annotations

import contextlib
import itertools
import logging
from dataclasses import dataclass, replace
from threading import Lock
from typing import Any, Generator, Mapping, NamedTuple

import requests
from requests import Session
from requests.adapters import HTTPAdapter
from urllib3 import Retry
from urllib3.exceptions import HTTPError as Urllib3HTTPError

from .constants import DEFAULT_MAX_WORKERS, DEFAULT_REQUEST_TIMEOUT
from .errorcode import ER_FAILED_TO_REQUEST
from .errors import TransportError
from .time_util import TimerContextManager

logger = logging.getLogger(__name__)
REQUESTS_RETRY = 0  # statements are never resubmitted behind the caller's back


class RawResponse(NamedTuple):
    """An HTTP exchange result before any content decoding.

    Header names are lower cased.
    """

    status_code: int
    headers: Mapping[str, str]
    body: bytes


@dataclass(frozen=True)
class HttpConfig:
    """Immutable HTTP configuration shared by SessionManager instances."""

    max_retries: int | Retry | None = REQUESTS_RETRY
    pool_connections: int = DEFAULT_MAX_WORKERS
    pool_maxsize: int = DEFAULT_MAX_WORKERS
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT

    def copy_with(self, **overrides: Any) -> HttpConfig:
        """Return a new HttpConfig with overrides applied."""
        return replace(self, **overrides)

    def get_adapter(self) -> HTTPAdapter:
        return HTTPAdapter(
            pool_connections=self.pool_connections,
            pool_maxsize=self.pool_maxsize,
            max_retries=self.max_retries,
        )


class SessionPool:
    """Stores and reuses established ``requests.Session`` instances.

    Concurrent partition fetches each borrow their own session so no session
    is used by two threads at once, while idle sessions keep their
    connections open for the next request.
    """

    def __init__(self, manager: SessionManager) -> None:
        # A stack of the idle sessions
        self._idle_sessions: list[Session] = []
        self._active_sessions: set[Session] = set()
        self._manager = manager
        self._lock = Lock()

    def get_session(self) -> Session:
        """Returns a session from the session pool or creates a new one."""
        with self._lock:
            try:
                session = self._idle_sessions.pop()
            except IndexError:
                session = self._manager.make_session()
            self._active_sessions.add(session)
        return session

    def return_session(self, session: Session) -> None:
        """Places an active session back into the idle session stack."""
        with self._lock:
            try:
                self._active_sessions.remove(session)
            except KeyError:
                logger.debug(
                    "session doesn't exist in the active session pool. Ignored..."
                )
            self._idle_sessions.append(session)

    def __str__(self) -> str:
        total_sessions = len(self._active_sessions) + len(self._idle_sessions)
        return (
            f"SessionPool {len(self._active_sessions)}/{total_sessions} active sessions"
        )

    def close(self) -> None:
        """Closes all active and idle sessions in this session pool."""
        with self._lock:
            if self._active_sessions:
                logger.debug("Closing %s active sessions", len(self._active_sessions))
            for session in itertools.chain(self._active_sessions, self._idle_sessions):
                try:
                    session.close()
                except Exception as e:
                    logger.info(
                        "Session cleanup failed - failed to close session: %s", e
                    )
            self._active_sessions.clear()
            self._idle_sessions.clear()


class SessionManager:
    """Owns the HTTP configuration and the pool of reusable sessions."""

    def __init__(self, config: HttpConfig | None = None, **http_config_kwargs) -> None:
        if config is None:
            logger.debug("Creating a config for the SessionManager")
            config = HttpConfig(**http_config_kwargs)
        self._cfg: HttpConfig = config
        self._pool = SessionPool(self)

    @property
    def config(self) -> HttpConfig:
        return self._cfg

    def make_session(self) -> Session:
        session = requests.Session()
        # each session gets its own adapter, adapters hold the connection pools
        adapter = self._cfg.get_adapter()
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        return session

    @contextlib.contextmanager
    def use_requests_session(self) -> Generator[Session, Any, None]:
        session = self._pool.get_session()
        try:
            yield session
        finally:
            self._pool.return_session(session)

    def close(self) -> None:
        self._pool.close()


class TransportClient:
    """Performs HTTP exchanges and hands back undecoded bodies.

    Content decoding is left to the caller: the body is read with
    ``decode_content=False`` so a gzip payload arrives exactly as sent.
    Network level failures raise ``TransportError``; HTTP error statuses are
    returned like any other response.
    """

    def __init__(self, session_manager: SessionManager | None = None) -> None:
        self.session_manager = (
            session_manager if session_manager is not None else SessionManager()
        )

    def request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, Any] | None = None,
        json: Any = None,
        timeout_sec: float | None = None,
    ) -> RawResponse:
        if timeout_sec is None:
            timeout_sec = self.session_manager.config.request_timeout
        logger.debug("%s %s params=%s", method.upper(), url, params)
        try:
            with TimerContextManager() as timer:
                with self.session_manager.use_requests_session() as session:
                    with session.request(
                        method=method.upper(),
                        url=url,
                        headers=headers,
                        params=params,
                        json=json,
                        timeout=timeout_sec,
                        stream=True,
                    ) as response:
                        body = response.raw.read(decode_content=False) or b""
                        raw = RawResponse(
                            status_code=response.status_code,
                            headers={k.lower(): v for k, v in response.headers.items()},
                            body=body,
                        )
        except (requests.exceptions.RequestException, Urllib3HTTPError) as e:
            logger.debug("%s %s failed: %s", method.upper(), url, e)
            raise TransportError(
                msg=f"Failed to execute request {method.upper()} {url}: {e}",
                errno=ER_FAILED_TO_REQUEST,
            ) from e
        logger.debug(
            "%s %s returned %s with %s bytes in %s ms",
            method.upper(),
            url,
            raw.status_code,
            len(raw.body),
            timer.get_timing_millis(),
        )
        return raw

    def close(self) -> None:
        self.session_manager.close()
