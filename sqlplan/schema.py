"""Table schemas, the catalog that stores them, and schema and row validation."""

from __future__ import annotations

import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Iterator, List, Optional, Sequence, Tuple

from .errors import InvalidValueError
from .values import DataType, Row, Value, datatype_of, format_value

_BARE_IDENT = re.compile(r"[a-z_][a-z0-9_]*")
_MAX_STRING_BYTES = 1024


class _Missing(Enum):
    MISSING = "MISSING"


_MISSING = _Missing.MISSING


def format_ident(ident: str) -> str:
    """Format an identifier for SQL output, quoting it unless it is a plain lower-case name."""
    if _BARE_IDENT.fullmatch(ident):
        return ident
    return '"' + ident.replace('"', '""') + '"'


def _same_value(a: Value, b: Value) -> bool:
    """Compare two values the way SQL rows compare them: type and content must match."""
    return datatype_of(a) is datatype_of(b) and a == b


class Catalog(ABC):
    """Stores table schemas."""

    @abstractmethod
    def create_table(self, table: "Table") -> None:
        """Create a new table."""

    @abstractmethod
    def delete_table(self, table: str) -> None:
        """Delete an existing table, raising if it does not exist."""

    @abstractmethod
    def read_table(self, table: str) -> Optional["Table"]:
        """Return a table schema, or None if it does not exist."""

    @abstractmethod
    def scan_tables(self) -> Iterator["Table"]:
        """Iterate over all tables."""

    def must_read_table(self, table: str) -> "Table":
        """Return a table schema, raising if it does not exist."""
        schema = self.read_table(table)
        if schema is None:
            raise InvalidValueError(f"Table {table} does not exist")
        return schema

    def table_references(
        self, table: str, with_self: bool
    ) -> List[Tuple[str, List[str]]]:
        """Return (table, columns) pairs for every column that references the given table."""
        references = []
        for schema in self.scan_tables():
            if not with_self and schema.name == table:
                continue
            columns = [c.name for c in schema.columns if c.references == table]
            if columns:
                references.append((schema.name, columns))
        return references


class Transaction(Catalog):
    """A transaction that can read rows as well as schemas."""

    @abstractmethod
    def read(self, table: str, id: Value) -> Optional[Row]:
        """Return the row with the given primary key, or None."""

    @abstractmethod
    def scan(self, table: str, filter: Any) -> Iterable[Row]:
        """Iterate over the rows of a table, optionally filtered."""


@dataclass
class Column:
    """A table column schema.

    A column without a ``default`` has no default value at all; ``default=None``
    makes NULL the default.
    """

    name: str
    datatype: DataType
    primary_key: bool = False
    nullable: bool = False
    default: Any = _MISSING
    unique: bool = False
    references: Optional[str] = None
    index: bool = False

    def validate(self, table: "Table", txn: Transaction) -> None:
        """Check the column schema, raising InvalidValueError if it is invalid."""
        if self.primary_key and self.nullable:
            raise InvalidValueError(f"Primary key {self.name} cannot be nullable")
        if self.primary_key and not self.unique:
            raise InvalidValueError(f"Primary key {self.name} must be unique")

        if self.default is not _MISSING:
            kind = datatype_of(self.default)
            if kind is not None:
                if kind is not self.datatype:
                    raise InvalidValueError(
                        f"Default value for column {self.name} has datatype {kind}, "
                        f"must be {self.datatype}"
                    )
            elif not self.nullable:
                raise InvalidValueError(
                    "Can't use NULL as default value for non-nullable column "
                    f"{self.name}"
                )
        elif self.nullable:
            raise InvalidValueError(
                f"Nullable column {self.name} must have a default value"
            )

        if self.references is not None:
            if self.references == table.name:
                target = table
            else:
                target = txn.read_table(self.references)
                if target is None:
                    raise InvalidValueError(
                        f"Table {self.references} referenced by column {self.name} "
                        "does not exist"
                    )
            target_pk = target.get_primary_key()
            if self.datatype is not target_pk.datatype:
                raise InvalidValueError(
                    f"Can't reference {target_pk.datatype} primary key of table "
                    f"{target.name} from {self.datatype} column {self.name}"
                )

    def validate_value(
        self, table: "Table", pk: Value, value: Value, txn: Transaction
    ) -> None:
        """Check a value for this column in the row with primary key ``pk``."""
        kind = datatype_of(value)
        if kind is None:
            if not self.nullable:
                raise InvalidValueError(f"NULL value not allowed for column {self.name}")
        elif kind is not self.datatype:
            raise InvalidValueError(
                f"Invalid datatype {kind} for {self.datatype} column {self.name}"
            )

        if kind is DataType.STRING and len(value.encode("utf-8")) > _MAX_STRING_BYTES:
            raise InvalidValueError("Strings cannot be more than 1024 bytes")

        if self.references is not None:
            target = self.references
            exempt = (
                value is None
                or (kind is DataType.FLOAT and math.isnan(value))
                or (target == table.name and _same_value(value, pk))
            )
            if not exempt and txn.read(target, value) is None:
                raise InvalidValueError(
                    f"Referenced primary key {format_value(value)} in table {target} "
                    "does not exist"
                )

        if self.unique and not self.primary_key and value is not None:
            index = table.get_column_index(self.name)
            for row in txn.scan(table.name, None):
                existing = row[index] if index < len(row) else None
                if _same_value(existing, value) and not _same_value(
                    table.get_row_key(row), pk
                ):
                    raise InvalidValueError(
                        f"Unique value {format_value(value)} already exists for column "
                        f"{self.name}"
                    )

    def __str__(self) -> str:
        sql = f"{format_ident(self.name)} {self.datatype}"
        if self.primary_key:
            sql += " PRIMARY KEY"
        if not self.nullable and not self.primary_key:
            sql += " NOT NULL"
        if self.default is not _MISSING:
            sql += f" DEFAULT {format_value(self.default)}"
        if self.unique and not self.primary_key:
            sql += " UNIQUE"
        if self.references is not None:
            sql += f" REFERENCES {self.references}"
        if self.index:
            sql += " INDEX"
        return sql


@dataclass
class Table:
    """A table schema."""

    name: str
    columns: List[Column] = field(default_factory=list)

    def get_column(self, name: str) -> Column:
        """Return the column with the given name."""
        for column in self.columns:
            if column.name == name:
                return column
        raise InvalidValueError(f"Column {name} not found in table {self.name}")

    def get_column_index(self, name: str) -> int:
        """Return the position of the column with the given name."""
        for index, column in enumerate(self.columns):
            if column.name == name:
                return index
        raise InvalidValueError(f"Column {name} not found in table {self.name}")

    def get_primary_key(self) -> Column:
        """Return the primary key column."""
        for column in self.columns:
            if column.primary_key:
                return column
        raise InvalidValueError(f"Primary key not found in table {self.name}")

    def get_row_key(self, row: Sequence[Value]) -> Value:
        """Return the primary key value of a row."""
        position = next(
            (i for i, column in enumerate(self.columns) if column.primary_key), None
        )
        if position is None:
            raise InvalidValueError("Primary key not found")
        if position >= len(row):
            raise InvalidValueError("Primary key value not found for row")
        return row[position]

    def validate(self, txn: Transaction) -> None:
        """Check the table schema, raising InvalidValueError if it is invalid."""
        if not self.columns:
            raise InvalidValueError(f"Table {self.name} has no columns")
        keys = sum(1 for column in self.columns if column.primary_key)
        if keys == 0:
            raise InvalidValueError(f"No primary key in table {self.name}")
        if keys > 1:
            raise InvalidValueError(f"Multiple primary keys in table {self.name}")
        for column in self.columns:
            column.validate(self, txn)

    def validate_row(self, row: Sequence[Value], txn: Transaction) -> None:
        """Check a row against the schema, raising InvalidValueError if it is invalid."""
        if len(row) != len(self.columns):
            raise InvalidValueError(f"Invalid row size for table {self.name}")
        pk = self.get_row_key(row)
        for column, value in zip(self.columns, row):
            column.validate_value(self, pk, value, txn)

    def __str__(self) -> str:
        body = ",\n".join(f"  {column}" for column in self.columns)
        return f"CREATE TABLE {format_ident(self.name)} (\n{body}\n)"