#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#
from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from threading import Lock
from typing import Any, Iterator, NamedTuple, Sequence

from .constants import ExecutionState
from .converter import SnowflakeConverter
from .errorcode import (
    ER_METADATA_ALREADY_SET,
    ER_MISSING_RESULT_FIELD,
    ER_PARTITION_ALREADY_SET,
    ER_PARTITION_OUT_OF_RANGE,
)
from .errors import InterfaceError, ProtocolError

logger = getLogger(__name__)

REQUIRED_METADATA_FIELDS = ("numRows", "partitionInfo", "rowType")


class ColumnDescriptor(NamedTuple):
    name: str
    type_code: str
    scale: int | None = None
    precision: int | None = None
    length: int | None = None
    is_nullable: bool = True

    @classmethod
    def from_column(cls, col: dict[str, Any]) -> ColumnDescriptor:
        """Initializes a ColumnDescriptor object from one ``rowType`` entry."""
        return cls(
            name=col["name"],
            type_code=str(col.get("type") or "").upper(),
            scale=col.get("scale"),
            precision=col.get("precision"),
            length=col.get("length"),
            is_nullable=col.get("nullable", True),
        )


@dataclass(frozen=True)
class ResultMetadata:
    """Row count, partition count and column layout of a statement result."""

    row_count: int
    partition_count: int
    columns: tuple[ColumnDescriptor, ...]

    @classmethod
    def from_json(
        cls, meta: dict[str, Any], sfqid: str | None = None
    ) -> ResultMetadata:
        for field in REQUIRED_METADATA_FIELDS:
            if field not in meta:
                raise ProtocolError(
                    field=field,
                    msg=f'Object "{field}" in "resultSetMetaData" not found',
                    errno=ER_MISSING_RESULT_FIELD,
                    sfqid=sfqid,
                )
        try:
            columns = tuple(ColumnDescriptor.from_column(c) for c in meta["rowType"])
        except (KeyError, TypeError, AttributeError) as e:
            raise ProtocolError(
                field="rowType",
                msg=f'Object "rowType" in "resultSetMetaData" is malformed: {e}',
                errno=ER_MISSING_RESULT_FIELD,
                sfqid=sfqid,
            ) from e
        try:
            row_count = int(meta["numRows"] or 0)
        except (TypeError, ValueError) as e:
            raise ProtocolError(
                field="numRows",
                msg=f'Object "numRows" in "resultSetMetaData" is not a number: {e}',
                errno=ER_MISSING_RESULT_FIELD,
                sfqid=sfqid,
            ) from e
        try:
            partition_count = len(meta["partitionInfo"] or [])
        except TypeError as e:
            raise ProtocolError(
                field="partitionInfo",
                msg=f'Object "partitionInfo" in "resultSetMetaData" is malformed: {e}',
                errno=ER_MISSING_RESULT_FIELD,
                sfqid=sfqid,
            ) from e
        return cls(
            row_count=row_count,
            partition_count=partition_count,
            columns=columns,
        )

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]


class ResultSet:
    """Holds a statement's metadata and raw partitions until materialized.

    Metadata is set once. Each partition slot, numbered from 1, is written
    at most once, and partitions are concatenated in index order whatever
    order they were fetched in. Materializing does not change the result
    set, calling it again returns equal rows.
    """

    def __init__(
        self,
        handle: str | None = None,
        converter: SnowflakeConverter | None = None,
    ) -> None:
        self.handle = handle
        self.created_on: int | None = None
        self.state: ExecutionState = ExecutionState.SUBMITTED
        self.timed_out = False
        self._converter = converter if converter is not None else SnowflakeConverter()
        self._metadata: ResultMetadata | None = None
        self._partitions: dict[int, list[Sequence[Any]]] = {}
        self._lock = Lock()

    @classmethod
    def timed_out_result(
        cls,
        handle: str | None = None,
        state: ExecutionState = ExecutionState.CANCELLED,
    ) -> ResultSet:
        result = cls(handle)
        result.state = state
        result.timed_out = True
        return result

    @property
    def metadata(self) -> ResultMetadata | None:
        return self._metadata

    @property
    def rowcount(self) -> int:
        if self._metadata is None:
            return 0
        return self._metadata.row_count

    @property
    def partition_count(self) -> int:
        if self._metadata is None:
            return 0
        return self._metadata.partition_count

    def set_metadata(self, metadata: ResultMetadata) -> None:
        with self._lock:
            if self._metadata is not None:
                raise InterfaceError(
                    msg="Result metadata is already set",
                    errno=ER_METADATA_ALREADY_SET,
                    sfqid=self.handle,
                )
            self._metadata = metadata

    def set_partition(self, index: int, rows: Sequence[Sequence[Any]]) -> None:
        with self._lock:
            if index < 1 or (
                self._metadata is not None
                and index > max(self._metadata.partition_count, 1)
            ):
                raise InterfaceError(
                    msg=f"Partition {index} is out of range",
                    errno=ER_PARTITION_OUT_OF_RANGE,
                    sfqid=self.handle,
                )
            if index in self._partitions:
                raise InterfaceError(
                    msg=f"Partition {index} is already set",
                    errno=ER_PARTITION_ALREADY_SET,
                    sfqid=self.handle,
                )
            self._partitions[index] = list(rows)
        logger.debug(
            "Stored %s rows for partition %s of %s", len(rows), index, self.handle
        )

    def has_partition(self, index: int) -> bool:
        with self._lock:
            return index in self._partitions

    def raw_rows(self) -> list[Sequence[Any]]:
        """Returns raw rows of all stored partitions in index order."""
        with self._lock:
            indexes = sorted(self._partitions)
            return [row for i in indexes for row in self._partitions[i]]

    def materialize(self) -> list[dict[str, Any]]:
        if self._metadata is None:
            return []
        columns = self._metadata.columns
        converters = [
            self._converter.to_python_method(c.type_code, c._asdict()) for c in columns
        ]
        rows: list[dict[str, Any]] = []
        for raw in self.raw_rows():
            row: dict[str, Any] = {}
            for position, (column, conv) in enumerate(zip(columns, converters)):
                value = raw[position] if position < len(raw) else None
                row[column.name] = conv(value)
            rows.append(row)
        return rows

    def __iter__(self) -> Iterator[dict[str, Any]]:
        return iter(self.materialize())

    def __len__(self) -> int:
        return len(self.raw_rows())

    def __repr__(self) -> str:
        return (
            f"ResultSet(handle={self.handle!r}, state={self.state.value}, "
            f"rowcount={self.rowcount}, partitions={len(self._partitions)}"
            f"/{self.partition_count})"
        )
