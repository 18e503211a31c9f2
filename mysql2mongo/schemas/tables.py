"""Table list schemas"""

from __future__ import annotations

import json
from pathlib import Path
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from mysql2mongo.core.errors import TableNotFound


class TableSpec(BaseModel):
    """One table to copy, as described in the tables JSON file."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    columns: tuple[str, ...]
    primary_key_column: str = Field(alias="primaryKeyColumn")
    insert_date_column: str = Field(alias="insertDateColumn")
    update_date_column: str = Field(alias="updateDateColumn")

    @field_validator("columns")
    @classmethod
    def _unique_columns(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        # Keep first occurrence order; duplicates would project twice
        return tuple(dict.fromkeys(value))

    @property
    def projection(self) -> List[str]:
        """Primary key first, then the configured columns."""
        return [self.primary_key_column] + [c for c in self.columns if c != self.primary_key_column]


def load_tables(path: str | Path) -> List[TableSpec]:
    """Load the ordered table list from a JSON file."""
    with Path(path).open("r", encoding="utf-8") as f:
        data = json.load(f)
    return [TableSpec.model_validate(item) for item in data]


def find_table(tables: List[TableSpec], name: str, tables_file: str | None = None) -> TableSpec:
    for table in tables:
        if table.name == name:
            return table
    raise TableNotFound(name, tables_file)
