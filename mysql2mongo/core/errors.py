"""Error taxonomy for copy runs."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class SyncError(Exception):
    """Base class for every failure that should end the process non-zero."""


class CopyErrorKind(str, Enum):
    SOURCE_READ_FAILURE = "source_read_failure"
    SINK_WRITE_FAILURE = "sink_write_failure"


class CopyError(SyncError):
    """A single table copy could not complete."""

    def __init__(self, kind: CopyErrorKind, table: str, cause: Optional[BaseException] = None):
        self.kind = kind
        self.table = table
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{kind.value} while copying table '{table}'{detail}")


class StoreError(SyncError):
    """Checkpoint could not be loaded or saved."""

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"checkpoint {operation} failed{detail}")


class TableNotFound(SyncError):
    def __init__(self, table: str, tables_file: Optional[str] = None):
        self.table = table
        self.tables_file = tables_file
        where = f" in the {tables_file} file" if tables_file else ""
        super().__init__(f"Table {table} not found{where}")


class RunError(SyncError):
    """A run stopped at a failed table; remaining tables were not copied."""

    def __init__(self, table: str, cause: BaseException):
        self.table = table
        self.cause = cause
        super().__init__(f"run aborted at table '{table}': {cause}")
