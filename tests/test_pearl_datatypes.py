import math

import pytest

from pearl.pearl_datatypes import (
    Array, Boolean, Environment, Error, FALSE, Float, Integer, Map, NULL, Range,
    String, TRUE, format_float, hash_key, native_bool, wrap_int64,
)


@pytest.mark.parametrize("value, expected", [
    (2 ** 63, -(2 ** 63)),
    (-(2 ** 63) - 1, 2 ** 63 - 1),
    (42, 42),
])
def test_wrap_int64(value, expected):
    assert wrap_int64(value) == expected


@pytest.mark.parametrize("value, expected", [
    (3.0, "3"),
    (-2.0, "-2"),
    (2.5, "2.5"),
    (math.inf, "inf"),
    (-math.inf, "-inf"),
    (math.nan, "NaN"),
])
def test_format_float(value, expected):
    assert format_float(value) == expected


def test_kinds():
    assert Integer(1).kind() == "INTEGER"
    assert String("").kind() == "STRING"
    assert NULL.kind() == "NULL"
    assert Range(0, 1).kind() == "RANGE"
    assert Error("x").kind() == "ERROR"


def test_display():
    assert Array([Integer(1), String("a"), NULL, TRUE]).display() == "[1, a, null, true]"
    assert Error("boom").display() == "ERROR: boom"
    assert Range(2, 5).display() == "2..5"


def test_native_bool_returns_singletons():
    assert native_bool(True) is TRUE
    assert native_bool(False) is FALSE
    assert isinstance(TRUE, Boolean)


def test_hash_key_by_kind_and_value():
    assert hash_key(Integer(1)) == ("INTEGER", 1)
    assert hash_key(Integer(1)) != hash_key(Float(1.0))
    assert hash_key(Array()) is None


def test_map_keeps_original_keys_in_insertion_order():
    m = Map()
    m.set(String("b"), Integer(1))
    m.set(Integer(2), Integer(2))
    m.set(String("b"), Integer(3))
    assert m.keys() == [String("b"), Integer(2)]
    assert m.values() == [Integer(3), Integer(2)]
    assert m.get(String("b")) == Integer(3)
    assert m.get(String("missing")) is None
    assert m.display() == "{b: 3, 2: 2}"


def test_map_rejects_unhashable_keys():
    with pytest.raises(TypeError):
        Map().set(Array(), NULL)


def test_environment_scoping():
    root = Environment()
    root.set("x", Integer(1))
    inner = root.enclosed()
    inner.set("y", Integer(2))

    assert inner.get("x") == Integer(1)
    assert root.get("y") is None
    assert "x" in inner
    assert inner.find_owner("x") is root

    assert inner.update("x", Integer(5))
    assert root.get("x") == Integer(5)
    assert not inner.update("missing", NULL)

    inner.set("x", Integer(9))
    assert root.get("x") == Integer(5)
