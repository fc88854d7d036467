#!/usr/bin/env python
#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#
from __future__ import annotations

import time
from logging import getLogger
from threading import Lock
from typing import Any
from urllib.parse import quote

from .auth import KeyPairTokenIssuer
from .config import SqlApiConfig
from .constants import (
    CODE_ASYNC_ACCEPTED,
    CODE_SUCCESS,
    CONTENT_TYPE_APPLICATION_JSON,
    HEADER_BEARER_TOKEN,
    HEADER_EXPIRY_MARGIN,
    HTTP_HEADER_ACCEPT,
    HTTP_HEADER_ACCEPT_ENCODING,
    HTTP_HEADER_AUTHORIZATION,
    HTTP_HEADER_CONTENT_TYPE,
    HTTP_HEADER_TOKEN_TYPE,
    HTTP_HEADER_USER_AGENT,
    KEYPAIR_JWT_TOKEN_TYPE,
    SESSION_OUTPUT_FORMATS,
    STATEMENTS_PATH,
)
from .decoder import ResponseDecoder
from .description import USER_AGENT
from .errorcode import (
    ER_FAILED_TO_CANCEL,
    ER_MISSING_STATEMENT_HANDLE,
    ER_STATEMENT_REJECTED,
)
from .errors import Error, RemoteError, SubmissionError
from .transport import TransportClient

logger = getLogger(__name__)


class StatementClient:
    """Wraps the three SQL API calls: submit, fetch a partition, cancel.

    Every request carries the key-pair bearer token. The header set is built
    once and reused until ``HEADER_EXPIRY_MARGIN`` seconds before the token
    it embeds expires.
    """

    def __init__(
        self,
        config: SqlApiConfig,
        token_issuer: KeyPairTokenIssuer,
        transport: TransportClient | None = None,
        decoder: ResponseDecoder | None = None,
    ) -> None:
        self._config = config
        self._token_issuer = token_issuer
        self._transport = transport if transport is not None else TransportClient()
        self._decoder = decoder if decoder is not None else ResponseDecoder()
        self._headers: dict[str, str] | None = None
        self._headers_expiry = 0
        self._headers_lock = Lock()

    @property
    def statements_url(self) -> str:
        return self._config.base_url + STATEMENTS_PATH

    def statement_url(self, handle: str) -> str:
        return f"{self.statements_url}/{quote(handle, safe='')}"

    def _get_headers(self) -> dict[str, str]:
        with self._headers_lock:
            if self._headers is not None and time.time() < self._headers_expiry:
                return self._headers

            token = self._token_issuer.get_token_with_expiry()
            self._headers = {
                HTTP_HEADER_AUTHORIZATION: HEADER_BEARER_TOKEN.format(
                    token=token.token
                ),
                HTTP_HEADER_ACCEPT_ENCODING: "gzip",
                HTTP_HEADER_USER_AGENT: USER_AGENT,
                HTTP_HEADER_TOKEN_TYPE: KEYPAIR_JWT_TOKEN_TYPE,
                HTTP_HEADER_CONTENT_TYPE: CONTENT_TYPE_APPLICATION_JSON,
                HTTP_HEADER_ACCEPT: CONTENT_TYPE_APPLICATION_JSON,
            }
            self._headers_expiry = token.expiry - HEADER_EXPIRY_MARGIN
            logger.debug("Built request headers, valid until %s", self._headers_expiry)
            return self._headers

    def invalidate_headers(self) -> None:
        with self._headers_lock:
            self._headers = None
            self._headers_expiry = 0

    def _request_body(self, sql: str) -> dict[str, Any]:
        body: dict[str, Any] = {
            "statement": sql,
            "warehouse": self._config.warehouse,
            "database": self._config.database,
            "schema": self._config.schema,
            "resultSetMetaData": {
                "format": "json",
            },
            "parameters": dict(SESSION_OUTPUT_FORMATS),
        }
        if self._config.role:
            body["role"] = self._config.role
        return body

    def submit(self, sql: str) -> str:
        """Submits a statement for asynchronous execution.

        Returns:
            The statement handle assigned by the service.

        Raises:
            SubmissionError: The service did not accept the statement.
        """
        logger.debug("Submitting statement")
        raw = self._transport.request(
            "POST",
            self.statements_url,
            headers=self._get_headers(),
            params={"async": "true", "nullable": "true"},
            json=self._request_body(sql),
        )
        payload = self._decoder.decode(raw.body, raw.headers, raw.status_code)

        for field in ("code", "message"):
            if field not in payload:
                raise SubmissionError(
                    msg=f"Unacceptable result, '{field}' is missing from the submission response",
                    errno=ER_STATEMENT_REJECTED,
                )
        if payload["code"] != CODE_ASYNC_ACCEPTED:
            raise SubmissionError(
                msg="{} ({})".format(payload["message"], payload["code"]),
                errno=ER_STATEMENT_REJECTED,
                sqlstate=payload.get("sqlState"),
                sfqid=payload.get("statementHandle"),
            )
        for field in ("statementHandle", "statementStatusUrl"):
            if not payload.get(field):
                raise SubmissionError(
                    msg=f"Unprocessable result, '{field}' is missing from the submission response",
                    errno=ER_MISSING_STATEMENT_HANDLE,
                )

        handle = payload["statementHandle"]
        logger.debug("Statement accepted with handle %s", handle)
        return handle

    def fetch_partition(self, handle: str, partition_index: int) -> dict[str, Any]:
        """Fetches one result partition, ``partition_index`` counts from 1."""
        logger.debug("Fetching partition %s of %s", partition_index, handle)
        raw = self._transport.request(
            "GET",
            self.statement_url(handle),
            headers=self._get_headers(),
            params={"partition": partition_index - 1},
        )
        payload = self._decoder.decode(raw.body, raw.headers, raw.status_code)
        logger.debug(
            "Partition %s of %s returned code %s with %s rows",
            partition_index,
            handle,
            payload.get("code", "no-code"),
            len(payload["data"]) if isinstance(payload.get("data"), list) else 0,
        )
        return payload

    def cancel(self, handle: str) -> None:
        """Requests cancellation of a running statement.

        Any 2xx status counts as success, whatever the body holds.
        """
        logger.debug("Cancelling statement %s", handle)
        raw = self._transport.request(
            "POST",
            self.statement_url(handle) + "/cancel",
            headers=self._get_headers(),
        )
        if not 200 <= raw.status_code < 300:
            message = None
            try:
                message = self._decoder.decode(
                    raw.body, raw.headers, 200
                ).get("message")
            except Error as e:
                logger.debug("Unable to decode cancel response body: %s", e)
            raise RemoteError(
                raw.status_code,
                message=message or f"Failed to cancel statement {handle}",
                errno=ER_FAILED_TO_CANCEL,
                sfqid=handle,
            )

        try:
            payload = self._decoder.decode(raw.body, raw.headers, raw.status_code)
        except Error as e:
            logger.warning(
                "Could not process cancel response body, but status code %s indicates success: %s",
                raw.status_code,
                e,
            )
            return
        if "code" in payload and payload["code"] != CODE_SUCCESS:
            logger.warning(
                "Cancel of %s acknowledged with code %s: %s",
                handle,
                payload["code"],
                payload.get("message"),
            )
        logger.debug("Statement %s cancelled", handle)
