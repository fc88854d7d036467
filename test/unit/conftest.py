#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#
from __future__ import annotations

import gzip
import json
from typing import Any, Callable
from unittest import mock

import pytest
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from snowflake.sqlapi.auth import KeyPairTokenIssuer
from snowflake.sqlapi.config import SqlApiConfig
from snowflake.sqlapi.network import StatementClient
from snowflake.sqlapi.token_cache import InMemoryTokenCache
from snowflake.sqlapi.transport import RawResponse, TransportClient

PASSPHRASE = "test-passphrase"


def generate_rsa_key():
    return rsa.generate_private_key(
        public_exponent=65537, key_size=2048, backend=default_backend()
    )


def to_pem(private_key, passphrase: str | None = None) -> str:
    if passphrase:
        encryption = serialization.BestAvailableEncryption(passphrase.encode("utf-8"))
    else:
        encryption = serialization.NoEncryption()
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=encryption,
    ).decode("utf-8")


@pytest.fixture(scope="session")
def rsa_private_key():
    return generate_rsa_key()


@pytest.fixture(scope="session")
def private_key_pem(rsa_private_key) -> str:
    return to_pem(rsa_private_key)


@pytest.fixture(scope="session")
def encrypted_private_key_pem(rsa_private_key) -> str:
    return to_pem(rsa_private_key, PASSPHRASE)


@pytest.fixture
def memory_token_cache() -> InMemoryTokenCache:
    """A fresh in-process token tier, never the process wide one."""
    return InMemoryTokenCache()


@pytest.fixture
def sqlapi_config(private_key_pem) -> SqlApiConfig:
    return SqlApiConfig(
        account="testaccount",
        user="TESTUSER",
        private_key=private_key_pem,
        public_key="",
        warehouse="TEST_WH",
        database="TEST_DB",
        schema="PUBLIC",
        timeout=5,
        poll_interval=0,
    )


@pytest.fixture
def token_issuer(sqlapi_config, memory_token_cache) -> KeyPairTokenIssuer:
    return KeyPairTokenIssuer(
        account=sqlapi_config.account,
        user=sqlapi_config.user,
        private_key=sqlapi_config.private_key,
        memory_cache=memory_token_cache,
    )


@pytest.fixture
def make_response() -> Callable[..., RawResponse]:
    """Builds a RawResponse from a JSON payload, gzipped when asked."""

    def _make_response(
        payload: Any = None,
        status_code: int = 200,
        compress: bool = False,
        body: bytes | None = None,
    ) -> RawResponse:
        headers: dict[str, str] = {"content-type": "application/json"}
        if body is None:
            body = json.dumps(payload).encode("utf-8") if payload is not None else b""
        if compress:
            body = gzip.compress(body)
            headers["content-encoding"] = "gzip"
        return RawResponse(status_code=status_code, headers=headers, body=body)

    return _make_response


@pytest.fixture
def transport() -> mock.MagicMock:
    return mock.MagicMock(spec=TransportClient)


@pytest.fixture
def statement_client(sqlapi_config, token_issuer, transport) -> StatementClient:
    return StatementClient(sqlapi_config, token_issuer, transport)


def success_payload(
    rows: list[list[Any]],
    row_type: list[dict[str, Any]],
    partitions: int = 1,
    handle: str = "01b2-handle",
) -> dict[str, Any]:
    return {
        "code": "090001",
        "message": "Statement executed successfully.",
        "statementHandle": handle,
        "statementStatusUrl": f"/api/v2/statements/{handle}",
        "createdOn": 1700000000000,
        "resultSetMetaData": {
            "numRows": len(rows),
            "format": "jsonv2",
            "partitionInfo": [{"rowCount": len(rows)}] * partitions,
            "rowType": row_type,
        },
        "data": rows,
    }


@pytest.fixture
def make_success_payload() -> Callable[..., dict[str, Any]]:
    return success_payload
