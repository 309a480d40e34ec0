import io
import re

import pytest

from pearl.pearl_datatypes import Error, Integer, NULL, String
from pearl.pearl_interpreter import evaluate
from pearl.pearl_parser import parse
from pearl.pearl_stdlib import StdLib, expand_template, is_truthy


def run(source):
    program, errors = parse(source)
    assert errors == [], errors
    return evaluate(program)


# (id, source, expected_display)
BUILTIN_CASES = [
    # Introspection
    ("type_int", "type(1)", "INTEGER"),
    ("type_float", "type(1.5)", "FLOAT"),
    ("type_map", "type({})", "MAP"),
    ("type_null", "type(null)", "NULL"),
    ("type_fn", "type(fn() { 1 })", "FUNCTION"),
    ("type_builtin", "type(len)", "BUILTIN"),
    ("type_range", "type(0..2)", "RANGE"),
    ("len_string_code_points", 'len("héllo")', "5"),
    ("len_array", "len([1, 2, 3])", "3"),
    ("len_map", 'len({"a": 1})', "1"),
    # Strings
    ("upper", 'upper("abc")', "ABC"),
    ("lower", 'lower("ABC")', "abc"),
    ("trim", 'trim("  hi \\n")', "hi"),
    ("ltrim", 'ltrim("  hi  ") ++ "|"', "hi  |"),
    ("rtrim", '"|" ++ rtrim("  hi  ")', "|  hi"),
    ("split_default", 'split("a b c")', "[a, b, c]"),
    ("split_sep", 'split("a,b,,c", ",")', "[a, b, , c]"),
    ("split_empty_sep", 'split("abc", "")', "[a, b, c]"),
    ("join_default", "join([1, 2, 3])", "123"),
    ("join_sep", 'join(["a", "b"], ", ")', "a, b"),
    ("replace_string_first", 'replace("aaa", "a", "b")', "baa"),
    ("replace_regex_first", r'replace("a1b2", /\d/, "_")', "a_b2"),
    ("replace_regex_group", r'replace("john smith", /(\w+) (\w+)/, "$2, $1")', "smith, john"),
    ("replace_regex_named", r'replace("x=1", /(?P<k>\w)=(?P<v>\d)/, "$\{v}=$\{k}")', "1=x"),
    ("replace_all_string", 'replace_all("aaa", "a", "b")', "bbb"),
    ("replace_all_regex", r'replace_all("a1b2", /\d/, "_")', "a_b_"),
    ("replace_all_dollar", r'replace_all("a1", /\d/, "$$")', "a$"),
    ("contains_string", 'contains("hello", "ell")', "true"),
    ("contains_array", "contains([1, 2, 3], 2)", "true"),
    ("contains_array_missing", 'contains([1, 2, 3], "4")', "false"),
    ("starts_with", 'starts_with("hello", "he")', "true"),
    ("ends_with", 'ends_with("hello", "lo")', "true"),
    ("substr_start", 'substr("hello", 1)', "ello"),
    ("substr_length", 'substr("hello", 1, 3)', "ell"),
    ("substr_negative", 'substr("hello", -3)', "llo"),
    ("substr_past_end", 'substr("hello", 10)', ""),
    ("substr_long_length", 'substr("hello", 3, 100)', "lo"),
    ("repeat", 'repeat("ab", 3)', "ababab"),
    ("reverse_string", 'reverse("abc")', "cba"),
    ("reverse_array", "reverse([1, 2, 3])", "[3, 2, 1]"),
    ("lines", 'lines("a\\nb")', "[a, b]"),
    ("chars", 'chars("abc")', "[a, b, c]"),
    ("find_string", 'find("hello", "l")', "2"),
    ("find_string_missing", 'find("hello", "z")', "-1"),
    ("find_array", 'find(["a", "b"], "b")', "1"),
    # Regular expressions
    ("match_groups", r'match("key=val", /(\w+)=(\w+)/)', "[key=val, key, val]"),
    ("match_none", r'match("abc", /\d/)', "null"),
    ("match_all", r'match_all("a1 b2", /(\w)(\d)/)', "[[a1, a, 1], [b2, b, 2]]"),
    ("match_all_empty", r'match_all("abc", /\d/)', "[]"),
    ("regex_builtin", r'match("a1", regex("\\d"))', "[1]"),
    ("regex_display", 'regex("a+")', "/a+/"),
    # Arrays
    ("push_returns_array", "push([1], 2)", "[1, 2]"),
    ("pop", "let a = [1, 2]\nlet x = pop(a)\n[x, a]", "[2, [1]]"),
    ("pop_empty", "pop([])", "null"),
    ("shift", "let a = [1, 2]\nlet x = shift(a)\n[x, a]", "[1, [2]]"),
    ("shift_empty", "shift([])", "null"),
    ("unshift", "unshift([2], 1)", "[1, 2]"),
    ("slice", "slice([1, 2, 3, 4], 1, 3)", "[2, 3]"),
    ("slice_open_end", "slice([1, 2, 3, 4], 2)", "[3, 4]"),
    ("slice_negative", "slice([1, 2, 3, 4], -2)", "[3, 4]"),
    ("slice_empty", "slice([1, 2, 3], 2, 1)", "[]"),
    ("sort_by_display", "sort([10, 2, 1])", "[1, 10, 2]"),
    ("sort_strings", 'sort(["b", "c", "a"])', "[a, b, c]"),
    ("unique", "unique([1, 2, 1, 3, 2])", "[1, 2, 3]"),
    ("flatten", "flatten([1, [2, [3, [4]]], 5])", "[1, 2, 3, 4, 5]"),
    # Higher-order
    ("map", "map([1, 2, 3], fn(x) { x * 2 })", "[2, 4, 6]"),
    ("map_with_index", "map([10, 20], fn(x, i) { x + i })", "[10, 21]"),
    ("map_return", "map([1, 2], fn(x) { return x + 1 })", "[2, 3]"),
    ("filter", "filter([1, 2, 3, 4], fn(x) { x % 2 == 0 })", "[2, 4]"),
    ("filter_with_index", 'filter(["a", "b", "c"], fn(x, i) { i != 1 })', "[a, c]"),
    ("reduce", "reduce([1, 2, 3, 4], fn(acc, x) { acc + x }, 0)", "10"),
    ("reduce_strings", 'reduce(["a", "b"], fn(acc, x) { acc ++ x }, ">")', ">ab"),
    # Maps
    ("keys", 'keys({"a": 1, "b": 2})', "[a, b]"),
    ("values", 'values({"a": 1, "b": 2})', "[1, 2]"),
    # Conversion
    ("int_from_float", "int(3.9)", "3"),
    ("int_from_negative_float", "int(-3.9)", "-3"),
    ("int_from_string", 'int("42")', "42"),
    ("int_from_leading_digits", 'int("12abc")', "12"),
    ("int_from_bool", "int(true)", "1"),
    ("float_from_int", "type(float(2))", "FLOAT"),
    ("float_from_string", 'float("2.5")', "2.5"),
    ("str_of_array", "str([1, 2])", "[1, 2]"),
    ("str_of_null", "str(null)", "null"),
    ("range_one_arg", "range(3)", "0..3"),
    ("range_two_args", "range(2, 5)", "2..5"),
]


@pytest.mark.parametrize("source, expected", [c[1:] for c in BUILTIN_CASES],
                         ids=[c[0] for c in BUILTIN_CASES])
def test_builtin(source, expected):
    assert run(source).display() == expected


# (id, source, expected_error_message)
BUILTIN_ERROR_CASES = [
    ("type_arity", "type()", "type() takes 1 argument, got 0"),
    ("len_arity", "len(1, 2)", "len() takes 1 argument, got 2"),
    ("len_type", "len(1)", "len() not supported for INTEGER"),
    ("upper_type", "upper(1)", "upper() requires a string"),
    ("split_separator", 'split("a", 1)', "split() separator must be a string"),
    ("join_type", 'join("abc")', "join() requires an array"),
    ("replace_arity", 'replace("a", "b")', "replace() takes 3 arguments: string, old, new"),
    ("replace_old", 'replace("a", 1, "c")', "replace() old must be a string or regex"),
    ("contains_type", "contains(1, 2)", "contains() requires string or array"),
    ("substr_start", 'substr("abc", "x")', "substr() start must be an integer"),
    ("match_regex", 'match("abc", "b")', "match() second arg must be a regex"),
    ("regex_invalid", 'regex("(")', None),
    ("push_type", "push(1, 2)", "push() requires an array"),
    ("map_fn", "map([1], len)", "map() second arg must be a function"),
    ("map_array", "map(1, fn(x) { x })", "map() first arg must be an array"),
    ("filter_arity", "filter([1])", "filter() takes 2 arguments"),
    ("reduce_arity", "reduce([1], fn(a, b) { a })", "reduce() takes 3 arguments: array, function, initial"),
    ("keys_type", "keys([1])", "keys() requires a map"),
    ("int_bad_string", 'int("abc")', 'cannot convert "abc" to int'),
    ("int_bad_type", "int([1])", "cannot convert ARRAY to int"),
    ("float_bad_string", 'float("x")', 'cannot convert "x" to float'),
    ("range_types", 'range("a")', "range() requires integers"),
]


@pytest.mark.parametrize("source, message", [c[1:] for c in BUILTIN_ERROR_CASES],
                         ids=[c[0] for c in BUILTIN_ERROR_CASES])
def test_builtin_errors(source, message):
    result = run(source)
    assert isinstance(result, Error)
    if message is not None:
        assert result.message == message


def test_regex_builtin_error_mentions_regex():
    result = run('regex("(")')
    assert result.message.startswith("invalid regex: ")


def test_higher_order_errors_propagate():
    assert run("map([1, 2], fn(x) { missing })") == Error("undefined variable: missing")
    assert run("reduce([1], fn(a, x) { a + missing }, 0)") == Error("undefined variable: missing")


def test_mutating_builtins_share_the_array():
    assert run("let a = [1]\npush(a, 2)\nunshift(a, 0)\na").display() == "[0, 1, 2]"


def test_sort_and_reverse_copy_arrays():
    assert run("let a = [2, 1]\nsort(a)\nreverse(a)\na").display() == "[2, 1]"


@pytest.mark.parametrize("arr", ["[]", "[1, 1, 1]", '[3, "3", 1, 3, "a", "a"]', "[[1], [1], 2]"])
def test_unique_is_idempotent(arr):
    once = run(f"unique({arr})")
    twice = run(f"unique(unique({arr}))")
    assert once == twice


def test_print_joins_arguments_without_separator():
    out = io.StringIO()
    stdlib = StdLib(lambda fn, args: NULL, out)
    assert stdlib._print(String("a"), Integer(1), NULL) is NULL
    assert out.getvalue() == "a1null\n"


def test_print_defaults_to_current_stdout(capsys):
    StdLib(lambda fn, args: NULL)._print(String("hi"))
    assert capsys.readouterr().out == "hi\n"


def test_builtin_table_covers_the_documented_surface():
    names = set(StdLib(lambda fn, args: NULL).builtins())
    assert names == {
        "print", "type", "len", "upper", "lower", "trim", "ltrim", "rtrim", "split",
        "join", "replace", "replace_all", "contains", "starts_with", "ends_with",
        "substr", "repeat", "reverse", "lines", "chars", "match", "match_all",
        "regex", "push", "pop", "shift", "unshift", "slice", "sort", "unique",
        "flatten", "map", "filter", "reduce", "keys", "values", "int", "float",
        "str", "find", "range",
    }


@pytest.mark.parametrize("value, expected", [
    (NULL, False),
    (Integer(0), False),
    (Integer(-1), True),
    (String(""), False),
    (String("0"), True),
])
def test_is_truthy(value, expected):
    assert is_truthy(value) is expected


def test_expand_template():
    m = re.search(r"(?P<word>\w+)-(\d+)", "abc-12")
    assert expand_template(m, "$2:${word}:$$:$9") == "12:abc:$:"
