#!/usr/bin/env python
#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#

from __future__ import annotations

import time
from logging import getLogger
from types import TracebackType

logger = getLogger(__name__)


def get_monotonic_millis() -> int:
    return int(time.monotonic() * 1000)


class TimerContextManager:
    """Context manager class to easily measure execution of a code block.

    Once the context manager finishes, the class should be cast into an int to retrieve
    result.

    Example:

        with TimerContextManager() as measured_time:
            pass
        download_metric = measured_time.get_timing_millis()
    """

    def __init__(self) -> None:
        self._start: int | None = None
        self._end: int | None = None

    def __enter__(self) -> TimerContextManager:
        self._start = get_monotonic_millis()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self._end = get_monotonic_millis()

    def get_timing_millis(self) -> int:
        """Get measured timing in milliseconds."""
        if self._start is None or self._end is None:
            raise Exception(
                "Trying to get timing before TimerContextManager has finished"
            )
        return self._end - self._start

    def __int__(self) -> int:
        return self.get_timing_millis()


class PollDeadline:
    """Tracks the time budget of a polling loop.

    The deadline counts from ``set_start_time``; ``expired`` turns true once
    the elapsed time reaches the timeout, so a timeout of zero expires on the
    first check.
    """

    def __init__(self, timeout: float) -> None:
        # in seconds
        self._timeout = timeout
        # in milliseconds
        self._start_time_millis: int | None = None
        self._attempts = 0

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def attempts(self) -> int:
        return self._attempts

    def set_start_time(self) -> None:
        self._start_time_millis = get_monotonic_millis()

    def elapsed_millis(self) -> int:
        if self._start_time_millis is None:
            logger.warning("Elapsed time requested before the start time was recorded")
            return 0
        return get_monotonic_millis() - self._start_time_millis

    def remaining_time_millis(self) -> int:
        return int(self._timeout * 1000) - self.elapsed_millis()

    def expired(self) -> bool:
        return self.remaining_time_millis() <= 0

    def increment(self) -> None:
        self._attempts += 1
        logger.debug("Update poll attempt count to %s", self._attempts)
