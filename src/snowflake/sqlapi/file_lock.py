#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#
from __future__ import annotations

import logging
import time
from os import stat_result
from pathlib import Path
from time import sleep

MAX_RETRIES = 5
INITIAL_BACKOFF_SECONDS = 0.025
STALE_LOCK_AGE_SECONDS = 1


class FileLockError(Exception):
    pass


class FileLock:
    """Cross process lock built on the atomicity of ``mkdir``.

    A lock directory older than ``STALE_LOCK_AGE_SECONDS`` is assumed to be
    left over by a crashed process and is removed before acquiring.
    """

    def __init__(self, path: Path, max_retries: int = MAX_RETRIES) -> None:
        self.path: Path = path
        self.max_retries = max_retries
        self.locked = False
        self.logger = logging.getLogger(__name__)

    def _remove_stale_lock(self) -> None:
        statinfo: stat_result | None = None
        try:
            statinfo = self.path.stat()
        except FileNotFoundError:
            return
        except OSError as e:
            raise FileLockError(f"Failed to stat lock file {self.path} due to {e=}")

        if statinfo.st_ctime < time.time() - STALE_LOCK_AGE_SECONDS:
            self.logger.debug("Removing stale file lock %s", self.path)
            try:
                self.path.rmdir()
            except FileNotFoundError:
                pass
            except OSError as e:
                raise FileLockError(
                    f"Failed to remove stale lock file {self.path} due to {e=}"
                )

    def __enter__(self) -> FileLock:
        self._remove_stale_lock()

        backoff_seconds = INITIAL_BACKOFF_SECONDS
        for attempt in range(self.max_retries):
            self.logger.debug(
                "Trying to acquire file lock %s in attempt number %s.",
                self.path,
                attempt,
            )
            try:
                self.path.mkdir(mode=0o700)
                self.locked = True
                break
            except FileExistsError:
                sleep(backoff_seconds)
                backoff_seconds = backoff_seconds * 2
                continue
            except OSError as e:
                raise FileLockError(
                    f"Failed to acquire lock file {self.path} due to {e=}"
                )

        if not self.locked:
            raise FileLockError(
                f"Failed to acquire file lock {self.path}, after {self.max_retries} attempts."
            )
        return self

    def __exit__(self, exc_type, exc_val, exc_tbc) -> None:
        try:
            self.path.rmdir()
        except FileNotFoundError:
            pass
        self.locked = False
