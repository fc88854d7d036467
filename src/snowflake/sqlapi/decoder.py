#!/usr/bin/env python
#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#
from __future__ import annotations

import gzip
import json
import re
import zlib
from logging import getLogger
from typing import Any, Callable, Mapping

from .constants import HTTP_HEADER_CONTENT_ENCODING, UTF8
from .errors import EmptyResponseError, MalformedResponseError, RemoteError

logger = getLogger(__name__)

CHUNK_SIZE = 16384
MAGIC_NUMBER = 16  # gzip header and trailer, as in urllib3/response.py
AUTO_DETECT = 32  # gzip or zlib header
GZIP_MAGIC = b"\x1f\x8b"

CONTROL_CHARACTERS = re.compile(r"[\x00-\x1F\x7F]")

# JSON numbers are IEEE doubles for most consumers, wider integers stay strings
MAX_SAFE_INTEGER = 2**53 - 1

COMPRESSED_ENCODINGS = frozenset(["gzip", "x-gzip", "deflate"])


def decompress_gzip(data: bytes) -> bytes:
    return gzip.decompress(data)


def decompress_stream(data: bytes) -> bytes:
    """Decompresses chunk by chunk, accepting gzip or zlib framing.

    Concatenated gzip members are decompressed one after the other.
    """
    obj = zlib.decompressobj(AUTO_DETECT + zlib.MAX_WBITS)
    out = bytearray()
    for offset in range(0, len(data), CHUNK_SIZE):
        out += obj.decompress(data[offset : offset + CHUNK_SIZE])
        while obj.unused_data != b"":
            unused_data = obj.unused_data
            obj = zlib.decompressobj(AUTO_DETECT + zlib.MAX_WBITS)
            out += obj.decompress(unused_data)
    out += obj.flush()
    if not obj.eof:
        raise zlib.error("incomplete or truncated stream")
    return bytes(out)


def decompress_raw_deflate(data: bytes) -> bytes:
    obj = zlib.decompressobj(-zlib.MAX_WBITS)
    out = obj.decompress(data) + obj.flush()
    if not obj.eof:
        raise zlib.error("incomplete or truncated stream")
    return out


# tried in order, the first one that succeeds wins
DECOMPRESSION_STRATEGIES: list[Callable[[bytes], bytes]] = [
    decompress_gzip,
    decompress_stream,
    decompress_raw_deflate,
]


def decompress(data: bytes) -> bytes:
    for strategy in DECOMPRESSION_STRATEGIES:
        try:
            return strategy(data)
        except (OSError, EOFError, zlib.error) as e:
            logger.debug("%s failed: %s", strategy.__name__, e)
    logger.warning(
        "Body is marked as compressed but could not be decompressed, "
        "treating it as already decoded"
    )
    return data


def _parse_int(text: str) -> int | str:
    value = int(text)
    if abs(value) > MAX_SAFE_INTEGER:
        return text
    return value


def _header(headers: Mapping[str, str] | None, name: str) -> str:
    if not headers:
        return ""
    name = name.lower()
    for k, v in headers.items():
        if k.lower() == name:
            return v or ""
    return ""


class ResponseDecoder:
    """Turns raw response bytes into the API's JSON envelope.

    Decompresses when the body is marked (or recognizably) compressed, strips
    ASCII control characters, parses JSON keeping integers wider than 53 bits
    as strings, and raises ``RemoteError`` for HTTP statuses of 400 and above.
    """

    def decode(
        self,
        raw_body: bytes | str | None,
        headers: Mapping[str, str] | None = None,
        status_code: int = 200,
    ) -> dict[str, Any]:
        if not raw_body:
            raise EmptyResponseError(
                msg=f"Response body is empty (HTTP {status_code})."
            )
        if isinstance(raw_body, str):
            raw_body = raw_body.encode(UTF8)

        encoding = _header(headers, HTTP_HEADER_CONTENT_ENCODING).strip().lower()
        if encoding in COMPRESSED_ENCODINGS or raw_body[:2] == GZIP_MAGIC:
            raw_body = decompress(raw_body)

        text = raw_body.decode(UTF8, errors="replace")
        if CONTROL_CHARACTERS.search(text):
            text = CONTROL_CHARACTERS.sub("", text)

        try:
            payload = json.loads(text, parse_int=_parse_int)
        except ValueError as e:
            raise MalformedResponseError(
                msg=f"Response body (HTTP {status_code}) is not valid JSON: {e}"
            ) from e
        if not isinstance(payload, dict):
            raise MalformedResponseError(
                msg=f"Response body (HTTP {status_code}) is a JSON "
                f"{type(payload).__name__}, expected an object."
            )

        if status_code >= 400:
            raise RemoteError(
                status_code,
                message=payload.get("message"),
                code=payload.get("code"),
                sqlstate=payload.get("sqlState"),
                sfqid=payload.get("statementHandle"),
            )
        return payload
