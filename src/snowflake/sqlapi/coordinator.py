#!/usr/bin/env python
#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#
from __future__ import annotations

import time
from concurrent.futures import Future, as_completed
from concurrent.futures.thread import ThreadPoolExecutor
from enum import Enum, unique
from logging import getLogger
from typing import Any, Callable, NamedTuple

from .constants import (
    CODE_ASYNC_ACCEPTED,
    CODE_IN_PROGRESS,
    CODE_SUCCESS,
    DEFAULT_MAX_WORKERS,
    DEFAULT_POLL_INTERVAL,
    ExecutionState,
)
from .converter import SnowflakeConverter
from .errorcode import ER_MISSING_RESULT_FIELD, ER_STATEMENT_REJECTED
from .errors import DatabaseError, Error, ProtocolError, TimedOutError
from .network import StatementClient
from .result_set import ResultMetadata, ResultSet
from .time_util import PollDeadline, TimerContextManager

logger = getLogger(__name__)

PENDING_CODES = frozenset([CODE_IN_PROGRESS, CODE_ASYNC_ACCEPTED])
REQUIRED_RESULT_FIELDS = ("resultSetMetaData", "data")


@unique
class PollStatus(Enum):
    PENDING = "PENDING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


class PollOutcome(NamedTuple):
    status: PollStatus
    payload: dict[str, Any] | None = None
    error: Error | None = None


class ExecutionCoordinator:
    """Drives a statement from submission to a populated ResultSet.

    Partition 1 is polled until the statement completes, fails or runs out
    of time. Partitions 2..N are then fetched concurrently on a bounded
    thread pool, each written to its own slot of the result set.
    """

    def __init__(
        self,
        client: StatementClient,
        converter: SnowflakeConverter | None = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        raise_on_timeout: bool = False,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._client = client
        self._converter = converter if converter is not None else SnowflakeConverter()
        self._max_workers = max_workers
        self._poll_interval = poll_interval
        self._raise_on_timeout = raise_on_timeout
        self._sleep = sleep

    def execute(self, sql: str, timeout: float) -> ResultSet:
        """Runs ``sql`` and returns its result set.

        ``timeout`` bounds the polling phase only. When it runs out the
        statement is cancelled and an empty result set flagged as timed out
        is returned, or ``TimedOutError`` is raised when the coordinator was
        built with ``raise_on_timeout``.
        """
        handle = self._client.submit(sql)
        result = ResultSet(handle, self._converter)

        deadline = PollDeadline(timeout)
        deadline.set_start_time()
        with TimerContextManager() as timer:
            while True:
                outcome = self.poll(handle)
                if outcome.status is PollStatus.SUCCEEDED:
                    self._store_first_partition(result, outcome.payload)
                    break
                if outcome.status is PollStatus.FAILED:
                    result.state = ExecutionState.FAILED
                    logger.debug("Statement %s failed: %s", handle, outcome.error)
                    raise outcome.error

                if result.state is not ExecutionState.RUNNING:
                    logger.debug("Statement %s is running", handle)
                    result.state = ExecutionState.RUNNING
                if deadline.expired():
                    return self._handle_timeout(handle, timeout)
                deadline.increment()
                self._sleep(self._poll_interval)

        logger.debug(
            "Statement %s completed after %s polls in %s ms",
            handle,
            deadline.attempts + 1,
            timer.get_timing_millis(),
        )

        try:
            self._fetch_remaining_partitions(result)
        except Error:
            result.state = ExecutionState.FAILED
            raise
        result.state = ExecutionState.SUCCEEDED
        return result

    def poll(self, handle: str) -> PollOutcome:
        """Fetches partition 1 once and classifies the response."""
        try:
            payload = self._client.fetch_partition(handle, 1)
        except Error as e:
            return PollOutcome(PollStatus.FAILED, error=e)

        code = payload.get("code")
        if code == CODE_SUCCESS:
            return PollOutcome(PollStatus.SUCCEEDED, payload=payload)
        if code in PENDING_CODES:
            return PollOutcome(PollStatus.PENDING, payload=payload)
        return PollOutcome(
            PollStatus.FAILED,
            payload=payload,
            error=DatabaseError(
                msg="{} ({})".format(payload.get("message", "Unknown error"), code),
                errno=ER_STATEMENT_REJECTED,
                sqlstate=payload.get("sqlState"),
                sfqid=handle,
            ),
        )

    def _store_first_partition(self, result: ResultSet, payload: dict[str, Any]) -> None:
        for field in REQUIRED_RESULT_FIELDS:
            if field not in payload:
                raise ProtocolError(
                    field=field,
                    msg=f'Object "{field}" not found',
                    errno=ER_MISSING_RESULT_FIELD,
                    sfqid=result.handle,
                )
        if not isinstance(payload["resultSetMetaData"], dict):
            raise ProtocolError(
                field="resultSetMetaData",
                msg='Object "resultSetMetaData" is not an object',
                errno=ER_MISSING_RESULT_FIELD,
                sfqid=result.handle,
            )
        metadata = ResultMetadata.from_json(
            payload["resultSetMetaData"], sfqid=result.handle
        )
        result.set_metadata(metadata)
        result.created_on = payload.get("createdOn")
        result.set_partition(1, payload["data"] or [])

    def _fetch_partition_rows(self, handle: str, index: int) -> list[Any]:
        payload = self._client.fetch_partition(handle, index)
        code = payload.get("code")
        if code is not None and code != CODE_SUCCESS:
            raise DatabaseError(
                msg="Partition {} returned {} ({})".format(
                    index, payload.get("message", "Unknown error"), code
                ),
                errno=ER_STATEMENT_REJECTED,
                sfqid=handle,
            )
        if "data" not in payload:
            raise ProtocolError(
                field="data",
                msg=f'Object "data" not found in partition {index}',
                errno=ER_MISSING_RESULT_FIELD,
                sfqid=handle,
            )
        return payload["data"] or []

    def _fetch_remaining_partitions(self, result: ResultSet) -> None:
        count = result.partition_count
        if count <= 1:
            return
        handle = result.handle
        workers = min(self._max_workers, count - 1)
        logger.debug(
            "Fetching %s more partitions of %s with %s workers", count - 1, handle, workers
        )
        with ThreadPoolExecutor(workers) as pool:
            futures: dict[Future, int] = {
                pool.submit(self._fetch_partition_rows, handle, index): index
                for index in range(2, count + 1)
            }
            try:
                for future in as_completed(futures):
                    result.set_partition(futures[future], future.result())
            except BaseException:
                for future in futures:
                    future.cancel()
                raise

    def _handle_timeout(self, handle: str, timeout: float) -> ResultSet:
        logger.warning(
            "Statement %s did not complete within %s seconds, cancelling it",
            handle,
            timeout,
        )
        state = ExecutionState.TIMED_OUT
        try:
            self._client.cancel(handle)
            state = ExecutionState.CANCELLED
        except Error as e:
            logger.warning("Failed to cancel statement %s: %s", handle, e)

        if self._raise_on_timeout:
            raise TimedOutError(timeout, sfqid=handle)
        return ResultSet.timed_out_result(handle, state)
