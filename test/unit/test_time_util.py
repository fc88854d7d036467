#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#
from __future__ import annotations

from unittest import mock

import pytest

from snowflake.sqlapi import time_util
from snowflake.sqlapi.time_util import PollDeadline, TimerContextManager


def test_timer_context_manager():
    with mock.patch.object(time_util, "get_monotonic_millis", side_effect=[100, 350]):
        with TimerContextManager() as timer:
            pass
    assert timer.get_timing_millis() == 250
    assert int(timer) == 250


def test_timer_not_finished():
    with pytest.raises(Exception):
        TimerContextManager().get_timing_millis()


def test_zero_timeout_expires_immediately():
    deadline = PollDeadline(0)
    deadline.set_start_time()
    assert deadline.expired()


def test_deadline():
    deadline = PollDeadline(2)
    with mock.patch.object(time_util, "get_monotonic_millis", return_value=1000):
        deadline.set_start_time()
    with mock.patch.object(time_util, "get_monotonic_millis", return_value=2999):
        assert deadline.remaining_time_millis() == 1
        assert not deadline.expired()
    with mock.patch.object(time_util, "get_monotonic_millis", return_value=3000):
        assert deadline.expired()


def test_attempts():
    deadline = PollDeadline(1)
    deadline.increment()
    deadline.increment()
    assert deadline.attempts == 2
    assert deadline.timeout == 1
