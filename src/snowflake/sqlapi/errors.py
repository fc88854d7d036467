#!/usr/bin/env python
#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#
from __future__ import annotations

from logging import getLogger
from typing import Any

from .constants import UTF8
from .errorcode import (
    ER_EMPTY_RESPONSE,
    ER_HTTP_GENERAL_ERROR,
    ER_MALFORMED_RESPONSE,
    ER_STATEMENT_TIMED_OUT,
)
from .secret_detector import SecretDetector

logger = getLogger(__name__)


class Error(Exception):
    """Base Snowflake SQL API exception class."""

    def __init__(
        self,
        msg: str | None = None,
        errno: int | None = None,
        sqlstate: str | None = None,
        sfqid: str | None = None,
        done_format_msg: bool | None = None,
    ) -> None:
        self.msg = msg
        self.errno = errno or -1
        self.sqlstate = sqlstate or "n/a"
        self.sfqid = sfqid

        if not self.msg:
            self.msg = "Unknown error"

        if self.errno != -1 and not done_format_msg:
            if self.sqlstate != "n/a":
                prefix = f"{self.errno:06d} ({self.sqlstate})"
            else:
                prefix = f"{self.errno:06d}"
            if self.sfqid:
                self.msg = f"{prefix}: {self.sfqid}: {self.msg}"
            else:
                self.msg = f"{prefix}: {self.msg}"
        # exception text ends up in logs and tracebacks
        _, masked, _ = SecretDetector.mask_secrets(self.msg)
        self.msg = masked if masked is not None else self.msg
        super().__init__(self.msg)

    def __repr__(self) -> str:
        return self.__str__()

    def __str__(self) -> str:
        return self.msg

    def __bytes__(self) -> bytes:
        return self.__str__().encode(UTF8)


class InterfaceError(Error):
    """Exception for errors related to the interface."""

    pass


class DatabaseError(Error):
    """Exception for errors related to the database."""

    pass


class OperationalError(DatabaseError):
    """Exception for errors related to the database's operation."""

    pass


class ProgrammingError(DatabaseError):
    """Exception for programming errors."""

    pass


class ConfigurationError(ProgrammingError):
    """Raised when a required option is missing or has an invalid value."""

    pass


class AuthError(ProgrammingError):
    """Raised when an authentication token cannot be produced.

    Retrying with the same key material cannot succeed, so this is never
    retried.
    """

    pass


class SubmissionError(DatabaseError):
    """Raised when the service does not accept a statement for execution."""

    pass


class ProtocolError(InterfaceError):
    """Raised when a successful looking response misses required fields."""

    def __init__(self, field: str | None = None, **kwargs: Any) -> None:
        self.field = field
        super().__init__(**kwargs)


class EmptyResponseError(InterfaceError):
    """Raised when the service answers with an empty body."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(
            msg=kwargs.get("msg") or "Response body is empty.",
            errno=kwargs.get("errno") or ER_EMPTY_RESPONSE,
            sfqid=kwargs.get("sfqid"),
        )


class MalformedResponseError(InterfaceError):
    """Raised when a response body cannot be decoded into a JSON object."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(
            msg=kwargs.get("msg") or "Response body is not a JSON object.",
            errno=kwargs.get("errno") or ER_MALFORMED_RESPONSE,
            sfqid=kwargs.get("sfqid"),
        )


class RemoteError(DatabaseError):
    """Exception for HTTP status codes of 400 and above."""

    def __init__(
        self,
        status_code: int,
        message: str | None = None,
        code: str | None = None,
        **kwargs: Any,
    ) -> None:
        self.status_code = status_code
        self.code = code
        super().__init__(
            msg="Snowflake error, {} returned with message: {}".format(
                status_code, message or "Unknown error"
            ),
            errno=kwargs.get("errno") or ER_HTTP_GENERAL_ERROR + status_code,
            sqlstate=kwargs.get("sqlstate"),
            sfqid=kwargs.get("sfqid"),
        )


class TransportError(OperationalError):
    """Raised when a request could not be completed at the network level."""

    pass


class TimedOutError(OperationalError):
    """Raised when polling exceeds the timeout and timeouts are not recovered."""

    def __init__(self, timeout: float, **kwargs: Any) -> None:
        self.timeout = timeout
        super().__init__(
            msg=kwargs.get("msg")
            or f"Statement did not complete within {timeout} seconds and was cancelled",
            errno=kwargs.get("errno") or ER_STATEMENT_TIMED_OUT,
            sfqid=kwargs.get("sfqid"),
        )
