# sqlplan

Building blocks for a SQL query engine: typed values, expression trees with
SQL three-valued evaluation, table schemas with validation, query plan nodes
and a chain of plan optimizers. It has no dependencies outside the standard
library.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

- `sqlplan.values`: SQL values are plain Python objects (`None` is NULL,
  plus `bool`, `int`, `float` and `str`). The module provides the `DataType`
  enum, `datatype_of`, `format_value`, `compare_values` (NULL sorts first,
  integers compare with floats, incomparable values give `None`),
  `value_key` (a hashable key that tells types apart), the checked
  accessors `expect_boolean`, `expect_integer`, `expect_float` and
  `expect_string`, and `ResultColumn` for result-set columns.
- `sqlplan.expression`: the `Expression` tree: `Constant`, `Field`, `And`,
  `Or`, `Not`, `Equal`, `GreaterThan`, `LessThan`, `IsNull`, `Add`,
  `Subtract`, `Multiply`, `Divide`, `Modulo`, `Exponentiate`, `Factorial`,
  `Negate`, `Assert` and `Like`. Expressions support `evaluate(row)`,
  `walk`, `contains`, `transform(before, after)` and `as_lookup(field)`.
  Integer arithmetic is checked against 64-bit overflow. The helpers
  `from_cnf_list`, `from_dnf_list` and `from_lookup` build expressions from
  lists.
- `sqlplan.normalform`: `to_nnf`, `to_cnf`, `to_dnf`, `cnf_list` and
  `dnf_list`.
- `sqlplan.schema`: `Table` and `Column` schemas, with `validate` for
  schemas and `validate_row` / `validate_value` for rows (types, nullability,
  the 1024-byte string limit, foreign keys and uniqueness), `format_ident`,
  and the abstract `Catalog` and `Transaction` interfaces the validation
  runs against.
- `sqlplan.nodes`: plan nodes `Scan`, `Filter`, `Projection`,
  `NestedLoopJoin`, `HashJoin`, `KeyLookup`, `IndexLookup`, `Aggregation`,
  `Order`, `Limit`, `Offset`, `Insert`, `Update`, `Delete`, `CreateTable`,
  `DropTable` and `Nothing`, the `Aggregate` and `Direction` enums, and
  `Node.format` / `str()` for a tree-shaped text rendering.
- `sqlplan.optimizer`: `ConstantFolder`, `FilterPushdown`,
  `IndexLookupOptimizer`, `NoopCleaner` and `JoinTypeOptimizer`, all
  subclasses of `Optimizer`, and `Plan`, whose `optimize(catalog)` runs them
  in that order.

## Examples

Evaluating an expression:

```python
from sqlplan.expression import Add, Constant, Equal, Field

expr = Equal(Field(0, (None, "id")), Add(Constant(1), Constant(2)))
print(expr)                  # id = 1 + 2
print(expr.evaluate([3]))    # True
print(expr.evaluate([None])) # None (SQL NULL)
```

Optimizing a plan against a catalog:

```python
from sqlplan.expression import Constant, Equal, Field
from sqlplan.nodes import Filter, Scan
from sqlplan.optimizer import Plan
from sqlplan.schema import Catalog, Column, Table
from sqlplan.values import DataType


class MemoryCatalog(Catalog):
    def __init__(self):
        self.tables = {}

    def create_table(self, table):
        self.tables[table.name] = table

    def delete_table(self, table):
        del self.tables[table]

    def read_table(self, table):
        return self.tables.get(table)

    def scan_tables(self):
        return iter(self.tables.values())


catalog = MemoryCatalog()
catalog.create_table(Table("movies", [
    Column("id", DataType.INTEGER, primary_key=True, unique=True),
    Column("title", DataType.STRING),
]))

plan = Plan(Filter(Scan("movies"), Equal(Field(0, (None, "id")), Constant(1))))
print(plan.optimize(catalog))  # KeyLookup: movies (1)
```

Bad values, types and schemas raise `sqlplan.errors.InvalidValueError`
(also a `ValueError`); `sqlplan.errors.InternalError` is for internal
faults. Both derive from `sqlplan.errors.SqlError`.

## What this package does not do

It has no SQL parser and no planner that turns statements into plan nodes:
plans are built by constructing nodes directly. Nothing executes a plan, and
there is no storage engine. `Catalog` and `Transaction` are abstract; you
supply implementations that hold tables and rows.