"""Query plan nodes, forming a tree that executes from the leaves up."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, ClassVar, Optional, Sequence, Tuple

from .expression import Expression, Label
from .schema import Table
from .values import Value, format_value

NodeTransform = Callable[["Node"], "Node"]
ExpressionTransform = Callable[[Expression], Expression]
FieldRef = Tuple[int, Label]


class Aggregate(Enum):
    """An aggregate function."""

    AVERAGE = "average"
    COUNT = "count"
    MAX = "maximum"
    MIN = "minimum"
    SUM = "sum"

    def __str__(self) -> str:
        return self.value


class Direction(Enum):
    """A sort direction."""

    ASCENDING = "asc"
    DESCENDING = "desc"

    def __str__(self) -> str:
        return self.value


def _format_values(values: Sequence[Value], noun: str) -> str:
    if values and len(values) < 10:
        return " (" + ", ".join(format_value(v) for v in values) + ")"
    return f" ({len(values)} {noun})"


def _format_field(ref: FieldRef, side: str) -> str:
    index, label = ref
    if label is None:
        return f"{side} #{index}"
    table, name = label
    return name if table is None else f"{table}.{name}"


class Node:
    """A plan node."""

    _children: ClassVar[Tuple[str, ...]] = ()

    def transform(self, before: NodeTransform, after: NodeTransform) -> "Node":
        """Rewrite the tree, applying ``before`` on the way down and ``after`` on the way up."""
        node = before(self)
        children = {
            name: getattr(node, name).transform(before, after) for name in node._children
        }
        if children:
            node = replace(node, **children)
        return after(node)

    def transform_expressions(
        self, before: ExpressionTransform, after: ExpressionTransform
    ) -> "Node":
        """Transform every expression held directly by this node."""
        return self

    def _header(self) -> str:
        raise NotImplementedError

    def format(self, indent: str = "", root: bool = True, last: bool = True) -> str:
        """Render the node and its children as an indented tree."""
        text = indent
        if not last:
            text += "├─ "
            indent += "│  "
        elif not root:
            text += "└─ "
            indent += "   "
        text += self._header() + "\n"
        children = [getattr(self, name) for name in self._children]
        for position, child in enumerate(children):
            text += child.format(indent, False, position == len(children) - 1)
        return text.rstrip() if root else text

    def __str__(self) -> str:
        return self.format("", True, True)


@dataclass(frozen=True)
class Aggregation(Node):
    """Computes aggregates over its source, passing group columns through."""

    source: Node
    aggregates: Tuple[Aggregate, ...]
    _children: ClassVar[Tuple[str, ...]] = ("source",)

    def _header(self):
        return "Aggregation: " + ", ".join(str(a) for a in self.aggregates)


@dataclass(frozen=True)
class CreateTable(Node):
    """Creates a table."""

    schema: Table

    def _header(self):
        return f"CreateTable: {self.schema.name}"


@dataclass(frozen=True)
class Delete(Node):
    """Deletes the rows produced by its source."""

    table: str
    source: Node
    _children: ClassVar[Tuple[str, ...]] = ("source",)

    def _header(self):
        return f"Delete: {self.table}"


@dataclass(frozen=True)
class DropTable(Node):
    """Drops a table."""

    table: str

    def _header(self):
        return f"DropTable: {self.table}"


@dataclass(frozen=True)
class Filter(Node):
    """Keeps the source rows for which the predicate is true."""

    source: Node
    predicate: Expression
    _children: ClassVar[Tuple[str, ...]] = ("source",)

    def transform_expressions(self, before, after):
        return replace(self, predicate=self.predicate.transform(before, after))

    def _header(self):
        return f"Filter: {self.predicate}"


@dataclass(frozen=True)
class HashJoin(Node):
    """Joins two sources on equal field values using a hash table."""

    left: Node
    left_field: FieldRef
    right: Node
    right_field: FieldRef
    outer: bool
    _children: ClassVar[Tuple[str, ...]] = ("left", "right")

    def _header(self):
        kind = "outer" if self.outer else "inner"
        return (
            f"HashJoin: {kind} on {_format_field(self.left_field, 'left')} = "
            f"{_format_field(self.right_field, 'right')}"
        )


@dataclass(frozen=True)
class IndexLookup(Node):
    """Looks up rows through a secondary index."""

    table: str
    alias: Optional[str]
    column: str
    values: Tuple[Value, ...]

    def _header(self):
        text = f"IndexLookup: {self.table}"
        if self.alias is not None:
            text += f" as {self.alias}"
        text += f" column {self.column}"
        return text + _format_values(self.values, "values")


@dataclass(frozen=True)
class Insert(Node):
    """Inserts rows of evaluated expressions."""

    table: str
    columns: Tuple[str, ...]
    expressions: Tuple[Tuple[Expression, ...], ...]

    def transform_expressions(self, before, after):
        return replace(
            self,
            expressions=tuple(
                tuple(e.transform(before, after) for e in row) for row in self.expressions
            ),
        )

    def _header(self):
        return f"Insert: {self.table} ({len(self.expressions)} rows)"


@dataclass(frozen=True)
class KeyLookup(Node):
    """Looks up rows by primary key."""

    table: str
    alias: Optional[str]
    keys: Tuple[Value, ...]

    def _header(self):
        text = f"KeyLookup: {self.table}"
        if self.alias is not None:
            text += f" as {self.alias}"
        return text + _format_values(self.keys, "keys")


@dataclass(frozen=True)
class Limit(Node):
    """Passes on at most ``limit`` rows."""

    source: Node
    limit: int
    _children: ClassVar[Tuple[str, ...]] = ("source",)

    def _header(self):
        return f"Limit: {self.limit}"


@dataclass(frozen=True)
class NestedLoopJoin(Node):
    """Joins every left row with every right row, optionally filtered by a predicate."""

    left: Node
    left_size: int
    right: Node
    predicate: Optional[Expression]
    outer: bool
    _children: ClassVar[Tuple[str, ...]] = ("left", "right")

    def transform_expressions(self, before, after):
        if self.predicate is None:
            return self
        return replace(self, predicate=self.predicate.transform(before, after))

    def _header(self):
        text = f"NestedLoopJoin: {'outer' if self.outer else 'inner'}"
        if self.predicate is not None:
            text += f" on {self.predicate}"
        return text


@dataclass(frozen=True)
class Nothing(Node):
    """Produces a single empty row."""

    def _header(self):
        return "Nothing"


@dataclass(frozen=True)
class Offset(Node):
    """Skips the first ``offset`` rows."""

    source: Node
    offset: int
    _children: ClassVar[Tuple[str, ...]] = ("source",)

    def _header(self):
        return f"Offset: {self.offset}"


@dataclass(frozen=True)
class Order(Node):
    """Sorts the source rows."""

    source: Node
    orders: Tuple[Tuple[Expression, Direction], ...]
    _children: ClassVar[Tuple[str, ...]] = ("source",)

    def transform_expressions(self, before, after):
        return replace(
            self,
            orders=tuple((e.transform(before, after), d) for e, d in self.orders),
        )

    def _header(self):
        return "Order: " + ", ".join(f"{e} {d}" for e, d in self.orders)


@dataclass(frozen=True)
class Projection(Node):
    """Evaluates expressions over each source row."""

    source: Node
    expressions: Tuple[Tuple[Expression, Optional[str]], ...]
    _children: ClassVar[Tuple[str, ...]] = ("source",)

    def transform_expressions(self, before, after):
        return replace(
            self,
            expressions=tuple(
                (e.transform(before, after), label) for e, label in self.expressions
            ),
        )

    def _header(self):
        return "Projection: " + ", ".join(str(e) for e, _ in self.expressions)


@dataclass(frozen=True)
class Scan(Node):
    """Scans a table, optionally filtering rows."""

    table: str
    alias: Optional[str] = None
    filter: Optional[Expression] = None

    def transform_expressions(self, before, after):
        if self.filter is None:
            return self
        return replace(self, filter=self.filter.transform(before, after))

    def _header(self):
        text = f"Scan: {self.table}"
        if self.alias is not None:
            text += f" as {self.alias}"
        if self.filter is not None:
            text += f" ({self.filter})"
        return text


@dataclass(frozen=True)
class Update(Node):
    """Updates the source rows by setting columns to evaluated expressions."""

    table: str
    source: Node
    expressions: Tuple[Tuple[int, Optional[str], Expression], ...]
    _children: ClassVar[Tuple[str, ...]] = ("source",)

    def transform_expressions(self, before, after):
        return replace(
            self,
            expressions=tuple(
                (i, label, e.transform(before, after)) for i, label, e in self.expressions
            ),
        )

    def _header(self):
        sets = ",".join(
            f"{label if label is not None else f'#{i}'}={e}"
            for i, label, e in self.expressions
        )
        return f"Update: {self.table} ({sets})"