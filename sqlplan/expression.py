"""Expression trees over SQL values, with evaluation and tree rewriting."""

from __future__ import annotations

import functools
import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Callable, ClassVar, Iterable, List, Optional, Sequence, Tuple

from .errors import InvalidValueError
from .values import DataType, Value, datatype_of, format_value, value_key

Label = Optional[Tuple[Optional[str], str]]
Transform = Callable[["Expression"], "Expression"]

_I64_MIN = -(1 << 63)
_I64_MAX = (1 << 63) - 1
_NUMERIC = (DataType.INTEGER, DataType.FLOAT)


def _check_int(value: int) -> int:
    if not _I64_MIN <= value <= _I64_MAX:
        raise InvalidValueError("Integer overflow")
    return value


def _int_div(a: int, b: int) -> int:
    if b == 0:
        raise InvalidValueError("Can't divide by zero")
    quotient = abs(a) // abs(b)
    return _check_int(-quotient if (a < 0) != (b < 0) else quotient)


def _int_mod(a: int, b: int) -> int:
    if b == 0:
        raise InvalidValueError("Can't divide by zero")
    remainder = abs(a) % abs(b)
    return -remainder if a < 0 else remainder


def _float_div(a: float, b: float) -> float:
    if b == 0.0:
        if a == 0.0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1.0, b)
    return a / b


def _float_mod(a: float, b: float) -> float:
    if b == 0.0:
        return math.nan
    try:
        return math.fmod(a, b)
    except ValueError:
        return math.nan


def _is_odd_integer(x: float) -> bool:
    return math.isfinite(x) and x.is_integer() and int(x) % 2 == 1


def _powf(a: float, b: float) -> float:
    try:
        return math.pow(a, b)
    except OverflowError:
        return -math.inf if a < 0 and _is_odd_integer(b) else math.inf
    except ValueError:
        if a == 0.0 and b < 0:
            return math.copysign(math.inf, a) if _is_odd_integer(b) else math.inf
        return math.nan


def _int_pow(base: int, exponent: int):
    if exponent < 0:
        return _powf(float(base), float(exponent))
    exponent &= 0xFFFFFFFF
    if base in (0, 1, -1) or exponent <= 64:
        return _check_int(base**exponent)
    raise InvalidValueError("Integer overflow")


def _arithmetic(verb: str, lhs: Value, rhs: Value, int_op, float_op) -> Value:
    lt, rt = datatype_of(lhs), datatype_of(rhs)
    if lt is DataType.INTEGER and rt is DataType.INTEGER:
        return int_op(lhs, rhs)
    if lt in _NUMERIC and rt in _NUMERIC:
        return float_op(float(lhs), float(rhs))
    if (lt is None or lt in _NUMERIC) and (rt is None or rt in _NUMERIC):
        return None
    raise InvalidValueError(f"Can't {verb} {format_value(lhs)} and {format_value(rhs)}")


def _compare(lhs: Value, rhs: Value, op) -> Optional[bool]:
    lt, rt = datatype_of(lhs), datatype_of(rhs)
    if lt is not None and lt is rt:
        return op(lhs, rhs)
    if lt in _NUMERIC and rt in _NUMERIC:
        return op(float(lhs), float(rhs))
    if lt is None or rt is None:
        return None
    raise InvalidValueError(f"Can't compare {format_value(lhs)} and {format_value(rhs)}")


class Expression(ABC):
    """An expression made up of constants, field references and operations."""

    @abstractmethod
    def evaluate(self, row: Optional[Sequence[Value]] = None) -> Value:
        """Evaluate the expression against an optional row of values."""

    @property
    def children(self) -> Tuple["Expression", ...]:
        """The direct sub-expressions, in order."""
        return ()

    def walk(self, visitor: Callable[["Expression"], bool]) -> bool:
        """Visit every node depth-first; stop and return False once the visitor does."""
        return visitor(self) and all(child.walk(visitor) for child in self.children)

    def contains(self, visitor: Callable[["Expression"], bool]) -> bool:
        """Return True as soon as the visitor returns True for any node."""
        return not self.walk(lambda e: not visitor(e))

    def transform(self, before: Transform, after: Transform) -> "Expression":
        """Rewrite the tree, applying ``before`` on the way down and ``after`` on the way up."""
        expr = before(self)
        if isinstance(expr, _Binary):
            expr = replace(
                expr,
                lhs=expr.lhs.transform(before, after),
                rhs=expr.rhs.transform(before, after),
            )
        elif isinstance(expr, _Unary):
            expr = replace(expr, expr=expr.expr.transform(before, after))
        return after(expr)

    def as_lookup(self, field: int) -> Optional[List[Value]]:
        """Return the values looked up for a field, if this is a lookup expression.

        Only combinations of ``=``, ``IS NULL`` and ``OR`` on the field qualify.
        """
        if isinstance(self, Equal):
            lhs, rhs = self.lhs, self.rhs
            if isinstance(lhs, Field) and isinstance(rhs, Constant) and lhs.index == field:
                return [rhs.value]
            if isinstance(lhs, Constant) and isinstance(rhs, Field) and rhs.index == field:
                return [lhs.value]
            return None
        if isinstance(self, IsNull):
            if isinstance(self.expr, Field) and self.expr.index == field:
                return [None]
            return None
        if isinstance(self, Or):
            left = self.lhs.as_lookup(field)
            right = self.rhs.as_lookup(field)
            if left is None or right is None:
                return None
            return left + right
        return None


@dataclass(frozen=True)
class Constant(Expression):
    """A constant value."""

    value: Value

    def __eq__(self, other: object) -> bool:
        if type(other) is not Constant:
            return NotImplemented
        return (
            datatype_of(self.value) is datatype_of(other.value)
            and self.value == other.value
        )

    def __hash__(self) -> int:
        return hash(value_key(self.value))

    def evaluate(self, row=None):
        return self.value

    def __str__(self) -> str:
        return format_value(self.value)


@dataclass(frozen=True)
class Field(Expression):
    """A reference to a row field by index, with an optional (table, name) label."""

    index: int
    label: Label = None

    def evaluate(self, row=None):
        if row is not None and 0 <= self.index < len(row):
            return row[self.index]
        return None

    def __str__(self) -> str:
        if self.label is None:
            return f"#{self.index}"
        table, name = self.label
        return name if table is None else f"{table}.{name}"


@dataclass(frozen=True)
class _Unary(Expression):
    expr: Expression

    @property
    def children(self):
        return (self.expr,)

    def evaluate(self, row=None):
        return self._apply(self.expr.evaluate(row))

    def _apply(self, value: Value) -> Value:
        raise InvalidValueError(f"Can't evaluate {type(self).__name__}")


@dataclass(frozen=True)
class _Binary(Expression):
    lhs: Expression
    rhs: Expression
    symbol: ClassVar[str] = ""

    @property
    def children(self):
        return (self.lhs, self.rhs)

    def evaluate(self, row=None):
        return self._apply(self.lhs.evaluate(row), self.rhs.evaluate(row))

    def _apply(self, lhs: Value, rhs: Value) -> Value:
        raise InvalidValueError(f"Can't evaluate {type(self).__name__}")

    def __str__(self) -> str:
        return f"{self.lhs} {self.symbol} {self.rhs}"


@dataclass(frozen=True)
class And(_Binary):
    """Three-valued logical AND."""

    symbol: ClassVar[str] = "AND"

    def _apply(self, lhs, rhs):
        lt, rt = datatype_of(lhs), datatype_of(rhs)
        if lt is DataType.BOOLEAN and rt is DataType.BOOLEAN:
            return lhs and rhs
        if lt is DataType.BOOLEAN and rhs is None:
            return False if not lhs else None
        if lhs is None and rt is DataType.BOOLEAN:
            return False if not rhs else None
        if lhs is None and rhs is None:
            return None
        raise InvalidValueError(f"Can't and {format_value(lhs)} and {format_value(rhs)}")


@dataclass(frozen=True)
class Or(_Binary):
    """Three-valued logical OR."""

    symbol: ClassVar[str] = "OR"

    def _apply(self, lhs, rhs):
        lt, rt = datatype_of(lhs), datatype_of(rhs)
        if lt is DataType.BOOLEAN and rt is DataType.BOOLEAN:
            return lhs or rhs
        if lt is DataType.BOOLEAN and rhs is None:
            return True if lhs else None
        if lhs is None and rt is DataType.BOOLEAN:
            return True if rhs else None
        if lhs is None and rhs is None:
            return None
        raise InvalidValueError(f"Can't or {format_value(lhs)} and {format_value(rhs)}")


@dataclass(frozen=True)
class Not(_Unary):
    """Logical negation."""

    def _apply(self, value):
        kind = datatype_of(value)
        if kind is DataType.BOOLEAN:
            return not value
        if value is None:
            return None
        raise InvalidValueError(f"Can't negate {format_value(value)}")

    def __str__(self) -> str:
        return f"NOT {self.expr}"


@dataclass(frozen=True)
class Equal(_Binary):
    """Equality comparison."""

    symbol: ClassVar[str] = "="

    def _apply(self, lhs, rhs):
        return _compare(lhs, rhs, lambda a, b: a == b)


@dataclass(frozen=True)
class GreaterThan(_Binary):
    """Greater-than comparison."""

    symbol: ClassVar[str] = ">"

    def _apply(self, lhs, rhs):
        return _compare(lhs, rhs, lambda a, b: a > b)


@dataclass(frozen=True)
class LessThan(_Binary):
    """Less-than comparison."""

    symbol: ClassVar[str] = "<"

    def _apply(self, lhs, rhs):
        return _compare(lhs, rhs, lambda a, b: a < b)


@dataclass(frozen=True)
class IsNull(_Unary):
    """NULL check."""

    def _apply(self, value):
        return value is None

    def __str__(self) -> str:
        return f"{self.expr} IS NULL"


@dataclass(frozen=True)
class Add(_Binary):
    """Addition."""

    symbol: ClassVar[str] = "+"

    def _apply(self, lhs, rhs):
        return _arithmetic("add", lhs, rhs, lambda a, b: _check_int(a + b), lambda a, b: a + b)


@dataclass(frozen=True)
class Assert(_Unary):
    """Unary plus: passes numbers through unchanged."""

    def _apply(self, value):
        if value is None or datatype_of(value) in _NUMERIC:
            return value
        raise InvalidValueError(f"Can't take the positive of {format_value(value)}")

    def __str__(self) -> str:
        return str(self.expr)


@dataclass(frozen=True)
class Divide(_Binary):
    """Division; integer division truncates toward zero."""

    symbol: ClassVar[str] = "/"

    def _apply(self, lhs, rhs):
        return _arithmetic("divide", lhs, rhs, _int_div, _float_div)


@dataclass(frozen=True)
class Exponentiate(_Binary):
    """Exponentiation."""

    symbol: ClassVar[str] = "^"

    def _apply(self, lhs, rhs):
        return _arithmetic("exponentiate", lhs, rhs, _int_pow, _powf)


@dataclass(frozen=True)
class Factorial(_Unary):
    """Factorial of a non-negative integer."""

    def _apply(self, value):
        kind = datatype_of(value)
        if kind is DataType.INTEGER:
            if value < 0:
                raise InvalidValueError("Can't take factorial of negative number")
            result = 1
            for n in range(2, value + 1):
                result = _check_int(result * n)
            return result
        if value is None:
            return None
        raise InvalidValueError(f"Can't take factorial of {format_value(value)}")

    def __str__(self) -> str:
        return f"!{self.expr}"


@dataclass(frozen=True)
class Modulo(_Binary):
    """Remainder, with the sign of the dividend."""

    symbol: ClassVar[str] = "%"

    def _apply(self, lhs, rhs):
        return _arithmetic("take modulo of", lhs, rhs, _int_mod, _float_mod)


@dataclass(frozen=True)
class Multiply(_Binary):
    """Multiplication."""

    symbol: ClassVar[str] = "*"

    def _apply(self, lhs, rhs):
        return _arithmetic(
            "multiply", lhs, rhs, lambda a, b: _check_int(a * b), lambda a, b: a * b
        )


@dataclass(frozen=True)
class Negate(_Unary):
    """Arithmetic negation."""

    def _apply(self, value):
        kind = datatype_of(value)
        if kind is DataType.INTEGER:
            return _check_int(-value)
        if kind is DataType.FLOAT:
            return -value
        if value is None:
            return None
        raise InvalidValueError(f"Can't negate {format_value(value)}")

    def __str__(self) -> str:
        return f"-{self.expr}"


@dataclass(frozen=True)
class Subtract(_Binary):
    """Subtraction."""

    symbol: ClassVar[str] = "-"

    def _apply(self, lhs, rhs):
        return _arithmetic(
            "subtract", lhs, rhs, lambda a, b: _check_int(a - b), lambda a, b: a - b
        )


@dataclass(frozen=True)
class Like(_Binary):
    """SQL LIKE pattern match, with ``%`` and ``_`` wildcards."""

    symbol: ClassVar[str] = "LIKE"

    def _apply(self, lhs, rhs):
        lt, rt = datatype_of(lhs), datatype_of(rhs)
        if lt is DataType.STRING and rt is DataType.STRING:
            pattern = (
                re.escape(rhs)
                .replace("%", ".*")
                .replace(".*.*", "%")
                .replace("_", ".")
                .replace("..", "_")
            )
            try:
                return re.fullmatch(pattern, lhs) is not None
            except re.error as err:
                raise InvalidValueError(f"Invalid LIKE pattern {rhs}: {err}") from err
        if (lt is DataType.STRING and rhs is None) or (lhs is None and rt is DataType.STRING):
            return None
        raise InvalidValueError(f"Can't LIKE {format_value(lhs)} and {format_value(rhs)}")


def from_cnf_list(cnf: Iterable[Expression]) -> Optional[Expression]:
    """Join expressions with AND, left to right; None if there are none."""
    items = list(cnf)
    if not items:
        return None
    return functools.reduce(And, items)


def from_dnf_list(dnf: Iterable[Expression]) -> Optional[Expression]:
    """Join expressions with OR, left to right; None if there are none."""
    items = list(dnf)
    if not items:
        return None
    return functools.reduce(Or, items)


def from_lookup(field: int, label: Label, values: Iterable[Value]) -> Expression:
    """Build an OR of field equality checks for the given lookup values."""
    items = list(values)
    if not items:
        return Equal(Field(field, label), Constant(None))
    return from_dnf_list(Equal(Field(field, label), Constant(v)) for v in items)