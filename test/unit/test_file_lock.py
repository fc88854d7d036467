#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#
from __future__ import annotations

import time
from unittest import mock

import pytest

from snowflake.sqlapi.file_lock import FileLock, FileLockError


def test_acquire_and_release(tmp_path):
    path = tmp_path / "cache.lck"
    with FileLock(path) as lock:
        assert lock.locked
        assert path.is_dir()
    assert not lock.locked
    assert not path.exists()


def test_held_lock_times_out(tmp_path):
    path = tmp_path / "cache.lck"
    path.mkdir()
    with mock.patch("snowflake.sqlapi.file_lock.sleep") as sleep:
        with pytest.raises(FileLockError):
            with FileLock(path, max_retries=3):
                pass
    assert sleep.call_count == 3
    # backoff doubles between attempts
    delays = [c.args[0] for c in sleep.call_args_list]
    assert delays[1] == delays[0] * 2
    assert path.exists()


def test_stale_lock_is_removed(tmp_path):
    path = tmp_path / "cache.lck"
    path.mkdir()
    # lock age is judged on ctime, so move the clock instead
    with mock.patch("snowflake.sqlapi.file_lock.time.time", return_value=time.time() + 60):
        with FileLock(path) as lock:
            assert lock.locked
    assert not path.exists()
