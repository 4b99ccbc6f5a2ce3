import math

import pytest

from sqlplan.errors import InvalidValueError
from sqlplan.expression import (
    Add,
    And,
    Assert,
    Constant,
    Divide,
    Equal,
    Exponentiate,
    Factorial,
    Field,
    GreaterThan,
    IsNull,
    LessThan,
    Like,
    Modulo,
    Multiply,
    Negate,
    Not,
    Or,
    Subtract,
    from_cnf_list,
    from_dnf_list,
    from_lookup,
)

I64_MAX = 9223372036854775807


def c(value):
    return Constant(value)


def test_constant_equality_respects_type():
    assert Constant(1) == Constant(1)
    assert Constant(1) != Constant(True)
    assert Constant(1) != Constant(1.0)
    assert Add(c(1), c(2)) == Add(c(1), c(2))


def test_field_evaluates_from_row():
    row = [10, "x", None]
    assert Field(1).evaluate(row) == "x"
    assert Field(5).evaluate(row) is None
    assert Field(0).evaluate(None) is None


@pytest.mark.parametrize(
    "lhs, rhs, expected",
    [
        (True, True, True),
        (True, False, False),
        (False, None, False),
        (True, None, None),
        (None, False, False),
        (None, None, None),
    ],
)
def test_and_three_valued(lhs, rhs, expected):
    assert And(c(lhs), c(rhs)).evaluate() is expected


@pytest.mark.parametrize(
    "lhs, rhs, expected",
    [
        (False, False, False),
        (True, None, True),
        (False, None, None),
        (None, True, True),
        (None, None, None),
    ],
)
def test_or_three_valued(lhs, rhs, expected):
    assert Or(c(lhs), c(rhs)).evaluate() is expected


def test_logic_rejects_non_booleans():
    with pytest.raises(InvalidValueError, match="Can't and"):
        And(c(1), c(True)).evaluate()
    with pytest.raises(InvalidValueError, match="Can't negate"):
        Not(c("a")).evaluate()
    assert Not(c(None)).evaluate() is None
    assert Not(c(False)).evaluate() is True


def test_comparisons():
    assert GreaterThan(c(2), c(1.5)).evaluate() is True
    assert LessThan(c(2), c(1.5)).evaluate() is False
    assert Equal(c(3), c(3.0)).evaluate() is True
    assert GreaterThan(c("b"), c("a")).evaluate() is True
    assert Equal(c(None), c(1)).evaluate() is None
    with pytest.raises(InvalidValueError, match="Can't compare"):
        Equal(c("1"), c(1)).evaluate()


def test_is_null():
    assert IsNull(c(None)).evaluate() is True
    assert IsNull(c(0)).evaluate() is False


@pytest.mark.parametrize("a, b", [(3, 4), (-8, 5), (2.5, 7), (0, -1.25)])
def test_add_subtract_inverse(a, b):
    total = Add(c(a), c(b)).evaluate()
    assert Add(c(b), c(a)).evaluate() == total
    assert Subtract(c(total), c(b)).evaluate() == a


def test_integer_overflow():
    with pytest.raises(InvalidValueError, match="Integer overflow"):
        Add(c(I64_MAX), c(1)).evaluate()
    with pytest.raises(InvalidValueError, match="Integer overflow"):
        Multiply(c(I64_MAX), c(2)).evaluate()
    with pytest.raises(InvalidValueError, match="Integer overflow"):
        Subtract(c(-I64_MAX), c(2)).evaluate()
    with pytest.raises(InvalidValueError, match="Integer overflow"):
        Exponentiate(c(2), c(63)).evaluate()


def test_null_propagation_and_type_errors():
    assert Add(c(1), c(None)).evaluate() is None
    assert Multiply(c(None), c(None)).evaluate() is None
    with pytest.raises(InvalidValueError, match="Can't add"):
        Add(c(True), c(None)).evaluate()
    with pytest.raises(InvalidValueError, match="Can't multiply"):
        Multiply(c("a"), c(2)).evaluate()


@pytest.mark.parametrize("a, b", [(7, 2), (-7, 2), (7, -2), (-7, -2), (6, 3)])
def test_division_and_remainder_agree(a, b):
    quotient = Divide(c(a), c(b)).evaluate()
    remainder = Modulo(c(a), c(b)).evaluate()
    assert quotient * b + remainder == a
    assert abs(remainder) < abs(b)
    assert remainder == 0 or (remainder < 0) == (a < 0)


def test_division_by_zero():
    with pytest.raises(InvalidValueError, match="Can't divide by zero"):
        Divide(c(1), c(0)).evaluate()
    with pytest.raises(InvalidValueError, match="Can't divide by zero"):
        Modulo(c(1), c(0)).evaluate()
    assert math.isinf(Divide(c(1.0), c(0)).evaluate())
    assert math.isnan(Modulo(c(1.0), c(0.0)).evaluate())


def test_exponentiate_negative_exponent_gives_float():
    result = Exponentiate(c(2), c(-1)).evaluate()
    assert result == Divide(c(1.0), c(2)).evaluate()


def test_factorial():
    for n in range(1, 10):
        assert Factorial(c(n)).evaluate() == Multiply(c(n), c(Factorial(c(n - 1)).evaluate())).evaluate()
    assert Factorial(c(None)).evaluate() is None
    with pytest.raises(InvalidValueError, match="negative"):
        Factorial(c(-1)).evaluate()
    with pytest.raises(InvalidValueError, match="Integer overflow"):
        Factorial(c(21)).evaluate()


def test_unary_numeric():
    assert Negate(Negate(c(5))).evaluate() == 5
    assert Assert(c(2.5)).evaluate() == 2.5
    with pytest.raises(InvalidValueError, match="positive"):
        Assert(c("x")).evaluate()


@pytest.mark.parametrize(
    "text, pattern, expected",
    [
        ("abc", "a%", True),
        ("abc", "a_c", True),
        ("abc", "a_", False),
        ("a%", "a%%", True),
        ("a.c", "a.c", True),
        ("abc", "a.c", False),
    ],
)
def test_like(text, pattern, expected):
    assert Like(c(text), c(pattern)).evaluate() is expected


def test_like_nulls():
    assert Like(c("a"), c(None)).evaluate() is None
    with pytest.raises(InvalidValueError, match="Can't LIKE"):
        Like(c(None), c(None)).evaluate()


def test_display():
    expr = And(Equal(Field(0, ("t", "id")), c(1)), Not(IsNull(Field(1, (None, "name")))))
    assert str(expr) == "t.id = 1 AND NOT name IS NULL"
    assert str(Field(3)) == "#3"
    assert str(c(None)) == "NULL"


def test_walk_and_contains():
    expr = Add(Field(0), Multiply(c(2), Field(1)))
    seen = []
    assert expr.walk(lambda e: seen.append(e) or True) is True
    assert seen[0] == expr
    assert len(seen) == 5
    assert expr.contains(lambda e: isinstance(e, Field))
    assert not c(1).contains(lambda e: isinstance(e, Field))


def test_transform_shifts_fields():
    expr = Equal(Field(3), Add(Field(4), c(1)))
    shifted = expr.transform(
        lambda e: Field(e.index - 3, e.label) if isinstance(e, Field) else e,
        lambda e: e,
    )
    assert shifted == Equal(Field(0), Add(Field(1), c(1)))
    assert shifted.evaluate([5, 4]) is True


def test_as_lookup():
    expr = Or(Equal(Field(0), c(1)), Or(IsNull(Field(0)), Equal(c("x"), Field(0))))
    assert expr.as_lookup(0) == [1, None, "x"]
    assert expr.as_lookup(1) is None
    assert GreaterThan(Field(0), c(1)).as_lookup(0) is None


@pytest.mark.parametrize("values", [[1], [1, 2, 3], ["a", None]])
def test_from_lookup_round_trip(values):
    expr = from_lookup(2, (None, "col"), values)
    assert expr.as_lookup(2) == values


def test_from_lookup_empty():
    expr = from_lookup(0, None, [])
    assert expr == Equal(Field(0), Constant(None))


def test_from_cnf_and_dnf_lists():
    a, b, d = Field(0), Field(1), Field(2)
    assert from_cnf_list([]) is None
    assert from_dnf_list([]) is None
    assert from_cnf_list([a]) == a
    assert from_cnf_list([a, b, d]) == And(And(a, b), d)
    assert from_dnf_list([a, b, d]) == Or(Or(a, b), d)