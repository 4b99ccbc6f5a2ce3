import pytest

from sqlplan.errors import InvalidValueError
from sqlplan.values import (
    DataType,
    ResultColumn,
    compare_values,
    datatype_of,
    expect_boolean,
    expect_float,
    expect_integer,
    expect_string,
    format_value,
    value_key,
)


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, None),
        (True, DataType.BOOLEAN),
        (False, DataType.BOOLEAN),
        (7, DataType.INTEGER),
        (2.5, DataType.FLOAT),
        ("x", DataType.STRING),
    ],
)
def test_datatype_of(value, expected):
    assert datatype_of(value) is expected


def test_datatype_of_rejects_unknown():
    with pytest.raises(InvalidValueError):
        datatype_of([1])


def test_datatype_display():
    assert str(datatype_of(1)) == "INTEGER"
    assert str(datatype_of("s")) == "STRING"


def test_format_special_values():
    assert format_value(None) == "NULL"
    assert format_value(True) == "TRUE"
    assert format_value(False) == "FALSE"
    assert format_value(float("nan")) == "NaN"


def test_format_whole_float_has_no_fraction():
    assert format_value(1.0) == "1"


def test_format_string_is_bare():
    assert format_value("hello") == "hello"


@pytest.mark.parametrize("number", [0.5, -3.25, 1e20, 1e-7, 123456.789])
def test_format_float_round_trips_without_exponent(number):
    text = format_value(number)
    assert "e" not in text
    assert float(text) == number


def test_compare_null_first():
    assert compare_values(None, None) == 0
    assert compare_values(None, 1) == -1
    assert compare_values("a", None) == 1


def test_compare_mixed_numbers():
    assert compare_values(1, 1.0) == 0
    assert compare_values(1, 1.5) == -1
    assert compare_values(2.5, 2) == 1


def test_compare_incomparable():
    assert compare_values(1, "1") is None
    assert compare_values(True, 1) is None
    assert compare_values(float("nan"), 1.0) is None


def test_compare_is_antisymmetric():
    pairs = [(1, 2), ("a", "b"), (False, True), (None, 3.0)]
    for a, b in pairs:
        assert compare_values(a, b) == -compare_values(b, a)


def test_value_key_distinguishes_types():
    keys = {value_key(1), value_key(1.0), value_key(True), value_key("1"), value_key(None)}
    assert len(keys) == 5
    assert value_key(3) == value_key(3)


def test_expect_accessors():
    assert expect_boolean(True) is True
    assert expect_integer(4) == 4
    assert expect_float(0.25) == 0.25
    assert expect_string("s") == "s"


def test_expect_accessors_raise():
    with pytest.raises(InvalidValueError, match="Not a boolean"):
        expect_boolean(1)
    with pytest.raises(InvalidValueError, match="Not an integer"):
        expect_integer(True)
    with pytest.raises(InvalidValueError, match="Not a float"):
        expect_float(1)
    with pytest.raises(InvalidValueError, match="Not a string"):
        expect_string(None)


def test_result_column_default_name():
    assert ResultColumn().name is None
    assert ResultColumn("id") == ResultColumn(name="id")