"""
Defines the runtime value types for the Pearl language.

Every value the evaluator produces is an instance of one of the `PearlObject`
subclasses below. The set is closed: the evaluator, the builtins and the
printer dispatch over exactly these classes.
"""

import math
from abc import ABC, abstractmethod
from typing import Callable, Dict, Iterator, List, Optional, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    import re
    from pearl.pearl_ast import BlockStatement, FunctionParameter

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1


def wrap_int64(value: int) -> int:
    """Wraps an arbitrary Python int to signed 64-bit two's complement."""
    return (value - INT64_MIN) % (2 ** 64) + INT64_MIN


def format_float(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    if value == int(value) and abs(value) < 1e21:
        return str(int(value))
    return repr(value)


# =================================================================
# Abstract Base Class
# =================================================================

class PearlObject(ABC):
    """Base class for all Pearl runtime values."""
    kind_name: str = ""

    def kind(self) -> str:
        """The type tag reported by `type()` and used in error messages."""
        return self.kind_name

    @abstractmethod
    def display(self) -> str:
        """The text used by print, string interpolation and the REPL."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.display()}>"


# =================================================================
# Scalars
# =================================================================

class Integer(PearlObject):
    kind_name = "INTEGER"

    def __init__(self, value: int):
        self.value = wrap_int64(value)

    def display(self) -> str:
        return str(self.value)

    def __eq__(self, other):
        if not isinstance(other, Integer):
            return NotImplemented
        return self.value == other.value

    def __hash__(self):
        return hash((self.kind_name, self.value))


class Float(PearlObject):
    kind_name = "FLOAT"

    def __init__(self, value: float):
        self.value = float(value)

    def display(self) -> str:
        return format_float(self.value)

    def __eq__(self, other):
        if not isinstance(other, Float):
            return NotImplemented
        return self.value == other.value

    def __hash__(self):
        return hash((self.kind_name, self.value))


class String(PearlObject):
    kind_name = "STRING"

    def __init__(self, value: str):
        self.value = value

    def display(self) -> str:
        return self.value

    def __repr__(self) -> str:
        return f"String({self.value!r})"

    def __eq__(self, other):
        if not isinstance(other, String):
            return NotImplemented
        return self.value == other.value

    def __hash__(self):
        return hash((self.kind_name, self.value))


class Boolean(PearlObject):
    """Only the two module-level instances TRUE and FALSE are ever created."""
    kind_name = "BOOLEAN"

    def __init__(self, value: bool):
        self.value = value

    def display(self) -> str:
        return "true" if self.value else "false"


class Null(PearlObject):
    kind_name = "NULL"

    def display(self) -> str:
        return "null"


TRUE = Boolean(True)
FALSE = Boolean(False)
NULL = Null()


def native_bool(value: bool) -> Boolean:
    return TRUE if value else FALSE


# =================================================================
# Collections
# =================================================================

class Array(PearlObject):
    """A mutable, ordered sequence shared by reference."""
    kind_name = "ARRAY"

    def __init__(self, elements: Optional[List[PearlObject]] = None):
        self.elements: List[PearlObject] = list(elements) if elements is not None else []

    def display(self) -> str:
        return "[" + ", ".join(e.display() for e in self.elements) + "]"

    def __len__(self) -> int:
        return len(self.elements)

    def __iter__(self) -> Iterator[PearlObject]:
        return iter(self.elements)

    def __eq__(self, other):
        if not isinstance(other, Array):
            return NotImplemented
        return self.elements == other.elements

    __hash__ = None


HashKey = Tuple[str, object]


def hash_key(obj: PearlObject) -> Optional[HashKey]:
    """Returns the map key for `obj`, or None when the kind cannot be a key."""
    if isinstance(obj, (Integer, Float, String, Boolean)):
        return (obj.kind(), obj.value)
    return None


class Map(PearlObject):
    """A mutable mapping shared by reference.

    Entries are keyed by `(kind, value)` and keep the original key object so
    it can be handed back by `keys()` and `for` loops. Insertion order is kept.
    """
    kind_name = "MAP"

    def __init__(self):
        self.pairs: Dict[HashKey, Tuple[PearlObject, PearlObject]] = {}

    def get(self, key: PearlObject) -> Optional[PearlObject]:
        entry = self.pairs.get(hash_key(key))
        return entry[1] if entry is not None else None

    def set(self, key: PearlObject, value: PearlObject):
        hashed = hash_key(key)
        if hashed is None:
            raise TypeError(f"unusable as map key: {key.kind()}")
        self.pairs[hashed] = (key, value)

    def keys(self) -> List[PearlObject]:
        return [k for k, _ in self.pairs.values()]

    def values(self) -> List[PearlObject]:
        return [v for _, v in self.pairs.values()]

    def display(self) -> str:
        items = [f"{k.display()}: {v.display()}" for k, v in self.pairs.values()]
        return "{" + ", ".join(items) + "}"

    def __len__(self) -> int:
        return len(self.pairs)

    def __eq__(self, other):
        if not isinstance(other, Map):
            return NotImplemented
        if self.pairs.keys() != other.pairs.keys():
            return False
        return all(v == other.pairs[k][1] for k, (_, v) in self.pairs.items())

    __hash__ = None


class Range(PearlObject):
    """A half-open ascending integer interval."""
    kind_name = "RANGE"

    def __init__(self, start: int, end: int):
        self.start = start
        self.end = end

    def display(self) -> str:
        return f"{self.start}..{self.end}"

    def __iter__(self) -> Iterator[int]:
        return iter(range(self.start, self.end))

    def __eq__(self, other):
        if not isinstance(other, Range):
            return NotImplemented
        return (self.start, self.end) == (other.start, other.end)

    def __hash__(self):
        return hash((self.kind_name, self.start, self.end))


class Regex(PearlObject):
    kind_name = "REGEX"

    def __init__(self, pattern: str, compiled: "re.Pattern"):
        self.pattern = pattern
        self.compiled = compiled

    def display(self) -> str:
        return f"/{self.pattern}/"

    def __eq__(self, other):
        if not isinstance(other, Regex):
            return NotImplemented
        return self.pattern == other.pattern

    def __hash__(self):
        return hash((self.kind_name, self.pattern))


# =================================================================
# Callables
# =================================================================

class Function(PearlObject):
    """A closure: parameters, body and the environment it was defined in."""
    kind_name = "FUNCTION"

    def __init__(self, parameters: List["FunctionParameter"], body: "BlockStatement",
                 env: "Environment", name: Optional[str] = None):
        self.parameters = parameters
        self.body = body
        self.env = env
        self.name = name

    def display(self) -> str:
        from pearl.pearl_printer import Printer
        return Printer().format_function(self.parameters, self.body, self.name)

    def __repr__(self) -> str:
        return f"<Function {self.name or 'anonymous'}/{len(self.parameters)}>"


BuiltinFn = Callable[..., PearlObject]


class Builtin(PearlObject):
    kind_name = "BUILTIN"

    def __init__(self, name: str, fn: BuiltinFn):
        self.name = name
        self.fn = fn

    def display(self) -> str:
        return f"builtin function {self.name}"


# =================================================================
# Control Signals
# =================================================================

class ReturnValue(PearlObject):
    """Wraps the value of a `return` until the enclosing call unwraps it."""
    kind_name = "RETURN_VALUE"

    def __init__(self, value: PearlObject):
        self.value = value

    def display(self) -> str:
        return self.value.display()


class Error(PearlObject):
    """A runtime failure, propagated as an ordinary value."""
    kind_name = "ERROR"

    def __init__(self, message: str):
        self.message = message

    def display(self) -> str:
        return f"ERROR: {self.message}"

    def __eq__(self, other):
        if not isinstance(other, Error):
            return NotImplemented
        return self.message == other.message

    def __hash__(self):
        return hash((self.kind_name, self.message))


def is_error(obj: Optional[PearlObject]) -> bool:
    return isinstance(obj, Error)


# =================================================================
# Environment
# =================================================================

class Environment:
    """A lexical scope: name bindings plus an optional enclosing scope.

    Lookup walks outward; `set` always binds in this scope, while `update`
    rebinds the name in whichever scope defines it.
    """
    def __init__(self, outer: Optional["Environment"] = None):
        self.bindings: Dict[str, PearlObject] = {}
        self.outer = outer

    def find_owner(self, name: str) -> Optional["Environment"]:
        """Finds the scope in the chain that defines `name`."""
        env = self
        while env is not None:
            if name in env.bindings:
                return env
            env = env.outer
        return None

    def get(self, name: str) -> Optional[PearlObject]:
        owner = self.find_owner(name)
        if owner is None:
            return None
        return owner.bindings[name]

    def set(self, name: str, value: PearlObject) -> PearlObject:
        self.bindings[name] = value
        return value

    def update(self, name: str, value: PearlObject) -> bool:
        owner = self.find_owner(name)
        if owner is None:
            return False
        owner.bindings[name] = value
        return True

    def enclosed(self) -> "Environment":
        return Environment(outer=self)

    def __contains__(self, name: str) -> bool:
        return self.find_owner(name) is not None

    def __repr__(self) -> str:
        keys = ", ".join(self.bindings.keys())
        outer = f", outer=#{id(self.outer)}" if self.outer else ""
        return f"<Environment bindings=[{keys}]{outer}>"
