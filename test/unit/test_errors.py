#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#

from __future__ import annotations

import re
import uuid

import pytest

from snowflake.sqlapi import errors
from snowflake.sqlapi.errorcode import (
    ER_EMPTY_RESPONSE,
    ER_HTTP_GENERAL_ERROR,
    ER_MALFORMED_RESPONSE,
    ER_STATEMENT_TIMED_OUT,
)


def test_detecting_duplicate_detail_insertion():
    sfqid = str(uuid.uuid4())
    sqlstate = "24000"
    errno = 123456
    msg = "Some error happened"
    expected_msg = re.compile(rf"{errno} \({sqlstate}\): {sfqid}: {msg}")
    original_ex = errors.ProgrammingError(
        sqlstate=sqlstate,
        sfqid=sfqid,
        errno=errno,
        msg=msg,
    )
    assert expected_msg.fullmatch(original_ex.msg)

    # an already formatted message is kept as is
    assert (
        errors.ProgrammingError(
            msg=original_ex.msg, errno=errno, done_format_msg=True
        ).msg
        == original_ex.msg
    )


def test_args():
    assert errors.Error("msg").args == ("msg",)


def test_defaults():
    error = errors.Error()
    assert error.msg == "Unknown error"
    assert error.errno == -1
    assert error.sqlstate == "n/a"
    assert bytes(error) == b"Unknown error"
    assert repr(error) == str(error)


@pytest.mark.parametrize(
    "error_class,base",
    [
        (errors.ConfigurationError, errors.ProgrammingError),
        (errors.AuthError, errors.ProgrammingError),
        (errors.SubmissionError, errors.DatabaseError),
        (errors.RemoteError, errors.DatabaseError),
        (errors.TransportError, errors.OperationalError),
        (errors.TimedOutError, errors.OperationalError),
        (errors.ProtocolError, errors.InterfaceError),
        (errors.EmptyResponseError, errors.InterfaceError),
        (errors.MalformedResponseError, errors.InterfaceError),
    ],
)
def test_hierarchy(error_class, base):
    assert issubclass(error_class, base)
    assert issubclass(error_class, errors.Error)


def test_remote_error():
    error = errors.RemoteError(
        404, message="Statement not found", code="000709", sfqid="01b2-handle"
    )
    assert error.status_code == 404
    assert error.code == "000709"
    assert error.errno == ER_HTTP_GENERAL_ERROR + 404
    assert error.msg == (
        f"{ER_HTTP_GENERAL_ERROR + 404:06d}: 01b2-handle: "
        "Snowflake error, 404 returned with message: Statement not found"
    )


def test_response_errors_have_defaults():
    assert errors.EmptyResponseError().errno == ER_EMPTY_RESPONSE
    assert "empty" in errors.EmptyResponseError().msg
    assert errors.MalformedResponseError().errno == ER_MALFORMED_RESPONSE


def test_protocol_error_names_the_field():
    error = errors.ProtocolError(field="rowType", msg="missing")
    assert error.field == "rowType"


def test_timed_out_error():
    error = errors.TimedOutError(2.5, sfqid="01b2-handle")
    assert error.timeout == 2.5
    assert error.errno == ER_STATEMENT_TIMED_OUT
    assert "2.5 seconds" in error.msg
