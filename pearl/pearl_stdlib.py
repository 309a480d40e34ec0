"""
The Pearl built-in function registry.

Every `_name` method of `StdLib` becomes the builtin `name`. Builtins receive
already-evaluated positional arguments, validate their count and types, and
report misuse by returning an `Error` value rather than raising.
"""

import inspect
import logging
import math
import re
import sys
from typing import Callable, Dict, List, Optional, TextIO

from pearl.pearl_datatypes import (
    Array, Boolean, Builtin, Error, Float, Function, Integer, Map, NULL,
    PearlObject, Range, Regex, String, TRUE, native_bool,
)

logger = logging.getLogger(__name__)

ApplyFunction = Callable[[PearlObject, List[PearlObject]], PearlObject]

TEMPLATE_REF = re.compile(r"\$(?:\$|\{(\w+)\}|(\w+))")
LEADING_INT = re.compile(r"\s*([+-]?\d+)")
LEADING_FLOAT = re.compile(r"\s*([+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?)")
ASCII_SPACE = " \t\n\r"


def is_truthy(obj: Optional[PearlObject]) -> bool:
    """Truthiness shared by conditionals, `not` and filter()."""
    if obj is None or obj is NULL:
        return False
    if isinstance(obj, Boolean):
        return obj.value
    if isinstance(obj, Integer):
        return obj.value != 0
    if isinstance(obj, String):
        return obj.value != ""
    if isinstance(obj, Array):
        return len(obj.elements) > 0
    return True


def compile_regex(pattern: str) -> "re.Pattern":
    return re.compile(pattern)


def expand_template(match: "re.Match", template: str) -> str:
    """Expands `$1`, `${1}`, `$name`, `${name}` and `$$` against a match."""
    def ref(m):
        if m.group(0) == "$$":
            return "$"
        name = m.group(1) or m.group(2)
        try:
            value = match.group(int(name) if name.isdigit() else name)
        except IndexError:
            return ""
        return value or ""
    return TEMPLATE_REF.sub(ref, template)


def quote(text: str) -> str:
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


class StdLib:
    """Python implementations of the Pearl builtins.

    `apply_function` is the evaluator's function application entry point;
    the higher-order builtins call back through it. `print` writes each
    line to `out` as soon as it is called, falling back to the current
    `sys.stdout`.
    """
    def __init__(self, apply_function: ApplyFunction, out: Optional[TextIO] = None):
        self.apply_function = apply_function
        self.out = out

    def builtins(self) -> Dict[str, Builtin]:
        """Builds the name to `Builtin` table from the `_name` methods."""
        table = {}
        for name, member in inspect.getmembers(self):
            if name.startswith('_') and not name.startswith('__') and callable(member):
                table[name[1:]] = Builtin(name[1:], member)
        logger.debug("registered %d builtins", len(table))
        return table

    def write_line(self, text: str):
        stream = self.out if self.out is not None else sys.stdout
        stream.write(text + "\n")
        stream.flush()

    # --- Output and Introspection ---
    def _print(self, *args):
        self.write_line("".join(arg.display() for arg in args))
        return NULL

    def _type(self, *args):
        if len(args) != 1:
            return Error(f"type() takes 1 argument, got {len(args)}")
        return String(args[0].kind())

    def _len(self, *args):
        if len(args) != 1:
            return Error(f"len() takes 1 argument, got {len(args)}")
        arg = args[0]
        if isinstance(arg, String):
            return Integer(len(arg.value))
        if isinstance(arg, (Array, Map)):
            return Integer(len(arg))
        return Error(f"len() not supported for {arg.kind()}")

    # --- Strings ---
    def _upper(self, *args):
        if len(args) != 1:
            return Error("upper() takes 1 argument")
        if not isinstance(args[0], String):
            return Error("upper() requires a string")
        return String(args[0].value.upper())

    def _lower(self, *args):
        if len(args) != 1:
            return Error("lower() takes 1 argument")
        if not isinstance(args[0], String):
            return Error("lower() requires a string")
        return String(args[0].value.lower())

    def _trim(self, *args):
        if len(args) != 1:
            return Error("trim() takes 1 argument")
        if not isinstance(args[0], String):
            return Error("trim() requires a string")
        return String(args[0].value.strip())

    def _ltrim(self, *args):
        if len(args) != 1:
            return Error("ltrim() takes 1 argument")
        if not isinstance(args[0], String):
            return Error("ltrim() requires a string")
        return String(args[0].value.lstrip(ASCII_SPACE))

    def _rtrim(self, *args):
        if len(args) != 1:
            return Error("rtrim() takes 1 argument")
        if not isinstance(args[0], String):
            return Error("rtrim() requires a string")
        return String(args[0].value.rstrip(ASCII_SPACE))

    def _split(self, *args):
        if len(args) < 1 or len(args) > 2:
            return Error("split() takes 1-2 arguments")
        s = args[0]
        if not isinstance(s, String):
            return Error("split() requires a string")
        sep = " "
        if len(args) == 2:
            if not isinstance(args[1], String):
                return Error("split() separator must be a string")
            sep = args[1].value
        parts = list(s.value) if sep == "" else s.value.split(sep)
        return Array([String(p) for p in parts])

    def _join(self, *args):
        if len(args) < 1 or len(args) > 2:
            return Error("join() takes 1-2 arguments")
        arr = args[0]
        if not isinstance(arr, Array):
            return Error("join() requires an array")
        sep = ""
        if len(args) == 2:
            if not isinstance(args[1], String):
                return Error("join() separator must be a string")
            sep = args[1].value
        return String(sep.join(el.display() for el in arr.elements))

    def _replace(self, *args):
        if len(args) != 3:
            return Error("replace() takes 3 arguments: string, old, new")
        s, old, new = args
        if not isinstance(s, String):
            return Error("replace() first arg must be a string")
        if not isinstance(old, (String, Regex)):
            return Error("replace() old must be a string or regex")
        if not isinstance(new, String):
            return Error("replace() new must be a string")
        if isinstance(old, String):
            return String(s.value.replace(old.value, new.value, 1))
        return String(old.compiled.sub(lambda m: expand_template(m, new.value), s.value, count=1))

    def _replace_all(self, *args):
        if len(args) != 3:
            return Error("replace_all() takes 3 arguments")
        s, old, new = args
        if not isinstance(s, String):
            return Error("replace_all() first arg must be a string")
        if not isinstance(old, (String, Regex)):
            return Error("replace_all() old must be a string or regex")
        if not isinstance(new, String):
            return Error("replace_all() new must be a string")
        if isinstance(old, String):
            return String(s.value.replace(old.value, new.value))
        return String(old.compiled.sub(lambda m: expand_template(m, new.value), s.value))

    def _contains(self, *args):
        if len(args) != 2:
            return Error("contains() takes 2 arguments")
        container, needle = args
        if isinstance(container, String):
            if not isinstance(needle, String):
                return Error("contains() needle must be a string for string search")
            return native_bool(needle.value in container.value)
        if isinstance(container, Array):
            wanted = needle.display()
            return native_bool(any(el.display() == wanted for el in container.elements))
        return Error("contains() requires string or array")

    def _starts_with(self, *args):
        if len(args) != 2:
            return Error("starts_with() takes 2 arguments")
        if not isinstance(args[0], String):
            return Error("starts_with() requires a string")
        if not isinstance(args[1], String):
            return Error("starts_with() prefix must be a string")
        return native_bool(args[0].value.startswith(args[1].value))

    def _ends_with(self, *args):
        if len(args) != 2:
            return Error("ends_with() takes 2 arguments")
        if not isinstance(args[0], String):
            return Error("ends_with() requires a string")
        if not isinstance(args[1], String):
            return Error("ends_with() suffix must be a string")
        return native_bool(args[0].value.endswith(args[1].value))

    def _substr(self, *args):
        if len(args) < 2 or len(args) > 3:
            return Error("substr() takes 2-3 arguments")
        s = args[0]
        if not isinstance(s, String):
            return Error("substr() requires a string")
        if not isinstance(args[1], Integer):
            return Error("substr() start must be an integer")
        text = s.value
        start = args[1].value
        if start < 0:
            start = max(len(text) + start, 0)
        if start >= len(text):
            return String("")
        if len(args) == 2:
            return String(text[start:])
        if not isinstance(args[2], Integer):
            return Error("substr() length must be an integer")
        end = min(start + args[2].value, len(text))
        return String(text[start:end])

    def _repeat(self, *args):
        if len(args) != 2:
            return Error("repeat() takes 2 arguments")
        if not isinstance(args[0], String):
            return Error("repeat() requires a string")
        if not isinstance(args[1], Integer):
            return Error("repeat() count must be an integer")
        return String(args[0].value * args[1].value)

    def _reverse(self, *args):
        if len(args) != 1:
            return Error("reverse() takes 1 argument")
        arg = args[0]
        if isinstance(arg, String):
            return String(arg.value[::-1])
        if isinstance(arg, Array):
            return Array(arg.elements[::-1])
        return Error("reverse() requires string or array")

    def _lines(self, *args):
        if len(args) != 1:
            return Error("lines() takes 1 argument")
        if not isinstance(args[0], String):
            return Error("lines() requires a string")
        return Array([String(p) for p in args[0].value.split("\n")])

    def _chars(self, *args):
        if len(args) != 1:
            return Error("chars() takes 1 argument")
        if not isinstance(args[0], String):
            return Error("chars() requires a string")
        return Array([String(ch) for ch in args[0].value])

    def _find(self, *args):
        if len(args) != 2:
            return Error("find() takes 2 arguments")
        container, needle = args
        if isinstance(container, String):
            if not isinstance(needle, String):
                return Error("find() needle must be a string")
            return Integer(container.value.find(needle.value))
        if isinstance(container, Array):
            wanted = needle.display()
            for i, el in enumerate(container.elements):
                if el.display() == wanted:
                    return Integer(i)
            return Integer(-1)
        return Error("find() requires string or array")

    # --- Regular Expressions ---
    def _match(self, *args):
        if len(args) != 2:
            return Error("match() takes 2 arguments: string, regex")
        if not isinstance(args[0], String):
            return Error("match() first arg must be a string")
        if not isinstance(args[1], Regex):
            return Error("match() second arg must be a regex")
        m = args[1].compiled.search(args[0].value)
        if m is None:
            return NULL
        return Array([String(g or "") for g in (m.group(0),) + m.groups()])

    def _match_all(self, *args):
        if len(args) != 2:
            return Error("match_all() takes 2 arguments")
        if not isinstance(args[0], String):
            return Error("match_all() first arg must be a string")
        if not isinstance(args[1], Regex):
            return Error("match_all() second arg must be a regex")
        results = []
        for m in args[1].compiled.finditer(args[0].value):
            results.append(Array([String(g or "") for g in (m.group(0),) + m.groups()]))
        return Array(results)

    def _regex(self, *args):
        if len(args) != 1:
            return Error("regex() takes 1 argument")
        if not isinstance(args[0], String):
            return Error("regex() requires a string pattern")
        try:
            compiled = compile_regex(args[0].value)
        except re.error as e:
            return Error(f"invalid regex: {e}")
        return Regex(args[0].value, compiled)

    # --- Arrays ---
    def _push(self, *args):
        if len(args) != 2:
            return Error("push() takes 2 arguments")
        arr = args[0]
        if not isinstance(arr, Array):
            return Error("push() requires an array")
        arr.elements.append(args[1])
        return arr

    def _pop(self, *args):
        if len(args) != 1:
            return Error("pop() takes 1 argument")
        arr = args[0]
        if not isinstance(arr, Array):
            return Error("pop() requires an array")
        if not arr.elements:
            return NULL
        return arr.elements.pop()

    def _shift(self, *args):
        if len(args) != 1:
            return Error("shift() takes 1 argument")
        arr = args[0]
        if not isinstance(arr, Array):
            return Error("shift() requires an array")
        if not arr.elements:
            return NULL
        return arr.elements.pop(0)

    def _unshift(self, *args):
        if len(args) != 2:
            return Error("unshift() takes 2 arguments")
        arr = args[0]
        if not isinstance(arr, Array):
            return Error("unshift() requires an array")
        arr.elements.insert(0, args[1])
        return arr

    def _slice(self, *args):
        if len(args) < 2 or len(args) > 3:
            return Error("slice() takes 2-3 arguments")
        arr = args[0]
        if not isinstance(arr, Array):
            return Error("slice() requires an array")
        if not isinstance(args[1], Integer):
            return Error("slice() start must be an integer")
        size = len(arr.elements)
        start = args[1].value
        if start < 0:
            start = size + start
        end = size
        if len(args) == 3:
            if not isinstance(args[2], Integer):
                return Error("slice() end must be an integer")
            end = args[2].value
            if end < 0:
                end = size + end
        start = max(start, 0)
        end = min(end, size)
        if start >= end:
            return Array()
        return Array(arr.elements[start:end])

    def _sort(self, *args):
        if len(args) != 1:
            return Error("sort() takes 1 argument")
        if not isinstance(args[0], Array):
            return Error("sort() requires an array")
        return Array(sorted(args[0].elements, key=lambda el: el.display()))

    def _unique(self, *args):
        if len(args) != 1:
            return Error("unique() takes 1 argument")
        if not isinstance(args[0], Array):
            return Error("unique() requires an array")
        seen = set()
        result = []
        for el in args[0].elements:
            key = el.display()
            if key not in seen:
                seen.add(key)
                result.append(el)
        return Array(result)

    def _flatten(self, *args):
        if len(args) != 1:
            return Error("flatten() takes 1 argument")
        if not isinstance(args[0], Array):
            return Error("flatten() requires an array")

        def walk(elements):
            for el in elements:
                if isinstance(el, Array):
                    yield from walk(el.elements)
                else:
                    yield el

        return Array(list(walk(args[0].elements)))

    # --- Higher-order ---
    def _map(self, *args):
        if len(args) != 2:
            return Error("map() takes 2 arguments: array, function")
        arr, fn = args
        if not isinstance(arr, Array):
            return Error("map() first arg must be an array")
        if not isinstance(fn, Function):
            return Error("map() second arg must be a function")
        results = []
        for i, el in enumerate(list(arr.elements)):
            result = self.apply_function(fn, [el, Integer(i)])
            if isinstance(result, Error):
                return result
            results.append(result)
        return Array(results)

    def _filter(self, *args):
        if len(args) != 2:
            return Error("filter() takes 2 arguments")
        arr, fn = args
        if not isinstance(arr, Array):
            return Error("filter() first arg must be an array")
        if not isinstance(fn, Function):
            return Error("filter() second arg must be a function")
        results = []
        for i, el in enumerate(list(arr.elements)):
            result = self.apply_function(fn, [el, Integer(i)])
            if isinstance(result, Error):
                return result
            if is_truthy(result):
                results.append(el)
        return Array(results)

    def _reduce(self, *args):
        if len(args) != 3:
            return Error("reduce() takes 3 arguments: array, function, initial")
        arr, fn, acc = args
        if not isinstance(arr, Array):
            return Error("reduce() first arg must be an array")
        if not isinstance(fn, Function):
            return Error("reduce() second arg must be a function")
        for el in list(arr.elements):
            acc = self.apply_function(fn, [acc, el])
            if isinstance(acc, Error):
                return acc
        return acc

    # --- Maps ---
    def _keys(self, *args):
        if len(args) != 1:
            return Error("keys() takes 1 argument")
        if not isinstance(args[0], Map):
            return Error("keys() requires a map")
        return Array(args[0].keys())

    def _values(self, *args):
        if len(args) != 1:
            return Error("values() takes 1 argument")
        if not isinstance(args[0], Map):
            return Error("values() requires a map")
        return Array(args[0].values())

    # --- Type and Conversion ---
    def _int(self, *args):
        if len(args) != 1:
            return Error("int() takes 1 argument")
        arg = args[0]
        if isinstance(arg, Integer):
            return arg
        if isinstance(arg, Float):
            if math.isnan(arg.value) or math.isinf(arg.value):
                return Error(f"cannot convert {arg.display()} to int")
            return Integer(int(arg.value))
        if isinstance(arg, String):
            m = LEADING_INT.match(arg.value)
            if m is None:
                return Error(f"cannot convert {quote(arg.value)} to int")
            return Integer(int(m.group(1)))
        if isinstance(arg, Boolean):
            return Integer(1 if arg is TRUE else 0)
        return Error(f"cannot convert {arg.kind()} to int")

    def _float(self, *args):
        if len(args) != 1:
            return Error("float() takes 1 argument")
        arg = args[0]
        if isinstance(arg, Float):
            return arg
        if isinstance(arg, Integer):
            return Float(float(arg.value))
        if isinstance(arg, String):
            m = LEADING_FLOAT.match(arg.value)
            if m is None:
                return Error(f"cannot convert {quote(arg.value)} to float")
            return Float(float(m.group(1)))
        return Error(f"cannot convert {arg.kind()} to float")

    def _str(self, *args):
        if len(args) != 1:
            return Error("str() takes 1 argument")
        return String(args[0].display())

    def _range(self, *args):
        if len(args) < 1 or len(args) > 2:
            return Error("range() takes 1-2 arguments")
        if not all(isinstance(a, Integer) for a in args):
            return Error("range() requires integers")
        if len(args) == 1:
            return Range(0, args[0].value)
        return Range(args[0].value, args[1].value)
