"""
The core Pearl interpreter: a tree-walking Evaluator over the parser's AST.

Runtime failures are `Error` values, not exceptions. Every step that
evaluates a sub-expression checks for one and hands it straight back, so an
error travels up through statements, arguments and loop bodies unchanged.
"""

import re
from typing import List, Optional, TextIO, Union

from pearl.pearl_ast import (
    ArrayLiteral, AssignExpression, BlockStatement, BooleanLiteral, CallExpression,
    Expression, ExpressionStatement, FloatLiteral, ForStatement, FunctionLiteral,
    Identifier, IfExpression, IndexExpression, InfixExpression, IntegerLiteral,
    LetStatement, MapLiteral, NullLiteral, PipeExpression, PrefixExpression, Program,
    RangeLiteral, RegexLiteral, ReturnStatement, StringLiteral, WhileStatement,
)
from pearl.pearl_datatypes import (
    Array, Builtin, Environment, Error, Float, Function, Integer, Map, NULL,
    PearlObject, Range, Regex, ReturnValue, String, hash_key, is_error, native_bool,
)
from pearl.pearl_stdlib import StdLib, compile_regex, is_truthy


def unwrap_return(obj: PearlObject) -> PearlObject:
    if isinstance(obj, ReturnValue):
        return obj.value
    return obj


def _truncated_div(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return -q if (a < 0) != (b < 0) else q


def _truncated_mod(a: int, b: int) -> int:
    r = abs(a) % abs(b)
    return -r if a < 0 else r


class Evaluator:
    """The Pearl execution engine.

    Owns the builtin registry; builtins are consulted only after a name
    misses in every enclosing environment, so scripts may shadow them.
    """
    def __init__(self, out: Optional[TextIO] = None):
        self.stdlib = StdLib(self.apply_function, out)
        self.builtins = self.stdlib.builtins()

    def eval(self, node, env: Environment) -> PearlObject:
        """Recursive dispatcher for evaluating any AST node."""
        match node:
            case Program():
                return self._eval_program(node, env)
            case ExpressionStatement():
                return self.eval(node.expression, env)
            case BlockStatement():
                return self._eval_block(node, env)
            case LetStatement():
                value = self.eval(node.value, env)
                if is_error(value):
                    return value
                return env.set(node.name.value, value)
            case ReturnStatement():
                if node.value is None:
                    return ReturnValue(NULL)
                value = self.eval(node.value, env)
                if is_error(value):
                    return value
                return ReturnValue(value)
            case ForStatement():
                return self._eval_for(node, env)
            case WhileStatement():
                return self._eval_while(node, env)
            case IntegerLiteral():
                return Integer(node.value)
            case FloatLiteral():
                return Float(node.value)
            case StringLiteral():
                return self._eval_string(node, env)
            case BooleanLiteral():
                return native_bool(node.value)
            case NullLiteral():
                return NULL
            case RegexLiteral():
                try:
                    compiled = compile_regex(node.pattern)
                except re.error as e:
                    return Error(f"invalid regex pattern: {e}")
                return Regex(node.pattern, compiled)
            case ArrayLiteral():
                elements = self._eval_expressions(node.elements, env)
                if is_error(elements):
                    return elements
                return Array(elements)
            case MapLiteral():
                return self._eval_map(node, env)
            case RangeLiteral():
                return self._eval_range(node, env)
            case Identifier():
                return self._eval_identifier(node, env)
            case PrefixExpression():
                right = self.eval(node.right, env)
                if is_error(right):
                    return right
                return self._eval_prefix(node.operator, right)
            case InfixExpression():
                if node.operator in ("and", "or"):
                    return self._eval_logical(node, env)
                left = self.eval(node.left, env)
                if is_error(left):
                    return left
                right = self.eval(node.right, env)
                if is_error(right):
                    return right
                return self._eval_infix(node.operator, left, right)
            case IfExpression():
                return self._eval_if(node, env)
            case FunctionLiteral():
                fn = Function(node.parameters, node.body, env, node.name)
                if node.name:
                    env.set(node.name, fn)
                return fn
            case CallExpression():
                function = self.eval(node.function, env)
                if is_error(function):
                    return function
                args = self._eval_expressions([a.value for a in node.arguments], env)
                if is_error(args):
                    return args
                return self.apply_function(function, args, [a.name for a in node.arguments])
            case IndexExpression():
                left = self.eval(node.left, env)
                if is_error(left):
                    return left
                index = self.eval(node.index, env)
                if is_error(index):
                    return index
                return self._eval_index(left, index)
            case PipeExpression():
                return self._eval_pipe(node, env)
            case AssignExpression():
                return self._eval_assign(node, env)
            case _:
                raise TypeError(f"cannot evaluate node of type {type(node).__name__}")

    # --- Statements ---

    def _eval_program(self, program: Program, env: Environment) -> PearlObject:
        result = NULL
        for stmt in program.statements:
            result = self.eval(stmt, env)
            if isinstance(result, ReturnValue):
                return result.value
            if is_error(result):
                return result
        return result

    def _eval_block(self, block: BlockStatement, env: Environment) -> PearlObject:
        result = NULL
        for stmt in block.statements:
            result = self.eval(stmt, env)
            # Stop here, but leave a ReturnValue wrapped for the enclosing call.
            if isinstance(result, (ReturnValue, Error)):
                return result
        return result

    def _eval_for(self, node: ForStatement, env: Environment) -> PearlObject:
        iterable = self.eval(node.iterable, env)
        if is_error(iterable):
            return iterable

        if isinstance(iterable, Array):
            items = list(iterable.elements)
        elif isinstance(iterable, Range):
            items = (Integer(i) for i in iterable)
        elif isinstance(iterable, String):
            items = (String(ch) for ch in iterable.value)
        elif isinstance(iterable, Map):
            items = iterable.keys()
        else:
            return Error(f"cannot iterate over {iterable.kind()}")

        result = NULL
        for item in items:
            # A fresh scope per iteration gives each closure its own binding.
            inner = env.enclosed()
            inner.set(node.variable.value, item)
            result = self.eval(node.body, inner)
            if isinstance(result, (ReturnValue, Error)):
                return result
        return result

    def _eval_while(self, node: WhileStatement, env: Environment) -> PearlObject:
        result = NULL
        while True:
            condition = self.eval(node.condition, env)
            if is_error(condition):
                return condition
            if not is_truthy(condition):
                return result
            result = self.eval(node.body, env)
            if isinstance(result, (ReturnValue, Error)):
                return result

    # --- Expressions ---

    def _eval_expressions(self, nodes: List[Expression], env: Environment) -> Union[List[PearlObject], Error]:
        values = []
        for node in nodes:
            value = self.eval(node, env)
            if is_error(value):
                return value
            values.append(value)
        return values

    def _eval_string(self, node: StringLiteral, env: Environment) -> PearlObject:
        if not node.parts:
            return String(node.value)
        out = []
        for part in node.parts:
            if part.is_expression:
                value = self.eval(part.expression, env)
                if is_error(value):
                    return value
                out.append(value.display())
            else:
                out.append(part.text)
        return String("".join(out))

    def _eval_map(self, node: MapLiteral, env: Environment) -> PearlObject:
        result = Map()
        for key_node, value_node in node.pairs:
            key = self.eval(key_node, env)
            if is_error(key):
                return key
            if hash_key(key) is None:
                return Error(f"unusable as map key: {key.kind()}")
            value = self.eval(value_node, env)
            if is_error(value):
                return value
            result.set(key, value)
        return result

    def _eval_range(self, node: RangeLiteral, env: Environment) -> PearlObject:
        start = self.eval(node.start, env)
        if is_error(start):
            return start
        end = self.eval(node.end, env)
        if is_error(end):
            return end
        if not isinstance(start, Integer):
            return Error(f"range start must be an integer, got {start.kind()}")
        if not isinstance(end, Integer):
            return Error(f"range end must be an integer, got {end.kind()}")
        return Range(start.value, end.value)

    def _eval_identifier(self, node: Identifier, env: Environment) -> PearlObject:
        value = env.get(node.value)
        if value is not None:
            return value
        builtin = self.builtins.get(node.value)
        if builtin is not None:
            return builtin
        return Error(f"undefined variable: {node.value}")

    def _eval_prefix(self, operator: str, right: PearlObject) -> PearlObject:
        if operator in ("!", "not"):
            return native_bool(not is_truthy(right))
        if operator == "-":
            if isinstance(right, Integer):
                return Integer(-right.value)
            if isinstance(right, Float):
                return Float(-right.value)
            return Error(f"unknown operator: -{right.kind()}")
        return Error(f"unknown operator: {operator}{right.kind()}")

    def _eval_logical(self, node: InfixExpression, env: Environment) -> PearlObject:
        left = self.eval(node.left, env)
        if is_error(left):
            return left
        if node.operator == "and":
            if not is_truthy(left):
                return left
            return self.eval(node.right, env)
        if is_truthy(left):
            return left
        return self.eval(node.right, env)

    def _eval_infix(self, operator: str, left: PearlObject, right: PearlObject) -> PearlObject:
        numeric = (Integer, Float)
        if isinstance(left, Integer) and isinstance(right, Integer):
            return self._eval_integer_infix(operator, left, right)
        if isinstance(left, numeric) and isinstance(right, numeric):
            return self._eval_float_infix(operator, left, right)
        if isinstance(left, String) and isinstance(right, String):
            return self._eval_string_infix(operator, left, right)
        if isinstance(left, String) and isinstance(right, Regex):
            return self._eval_regex_match(operator, left, right)
        # Structural for collections, identity for everything else.
        if operator == "==":
            return native_bool(left == right)
        if operator == "!=":
            return native_bool(not left == right)
        return self._unknown_operator(operator, left, right)

    def _unknown_operator(self, operator, left, right) -> Error:
        return Error(f"unknown operator: {left.kind()} {operator} {right.kind()}")

    def _eval_integer_infix(self, operator: str, left: Integer, right: Integer) -> PearlObject:
        a, b = left.value, right.value
        match operator:
            case "+":
                return Integer(a + b)
            case "-":
                return Integer(a - b)
            case "*":
                return Integer(a * b)
            case "/":
                if b == 0:
                    return Error("division by zero")
                return Integer(_truncated_div(a, b))
            case "%":
                if b == 0:
                    return Error("division by zero")
                return Integer(_truncated_mod(a, b))
            case "<":
                return native_bool(a < b)
            case ">":
                return native_bool(a > b)
            case "<=":
                return native_bool(a <= b)
            case ">=":
                return native_bool(a >= b)
            case "==":
                return native_bool(a == b)
            case "!=":
                return native_bool(a != b)
        return self._unknown_operator(operator, left, right)

    def _eval_float_infix(self, operator: str, left: PearlObject, right: PearlObject) -> PearlObject:
        a, b = float(left.value), float(right.value)
        match operator:
            case "+":
                return Float(a + b)
            case "-":
                return Float(a - b)
            case "*":
                return Float(a * b)
            case "/":
                if b == 0:
                    return Error("division by zero")
                return Float(a / b)
            case "<":
                return native_bool(a < b)
            case ">":
                return native_bool(a > b)
            case "<=":
                return native_bool(a <= b)
            case ">=":
                return native_bool(a >= b)
            case "==":
                return native_bool(a == b)
            case "!=":
                return native_bool(a != b)
        return self._unknown_operator(operator, left, right)

    def _eval_string_infix(self, operator: str, left: String, right: String) -> PearlObject:
        a, b = left.value, right.value
        match operator:
            case "++":
                return String(a + b)
            case "==":
                return native_bool(a == b)
            case "!=":
                return native_bool(a != b)
            case "<":
                return native_bool(a < b)
            case ">":
                return native_bool(a > b)
            case "<=":
                return native_bool(a <= b)
            case ">=":
                return native_bool(a >= b)
        return self._unknown_operator(operator, left, right)

    def _eval_regex_match(self, operator: str, left: String, right: Regex) -> PearlObject:
        matched = right.compiled.search(left.value) is not None
        if operator == "~":
            return native_bool(matched)
        if operator == "!~":
            return native_bool(not matched)
        return self._unknown_operator(operator, left, right)

    def _eval_if(self, node: IfExpression, env: Environment) -> PearlObject:
        condition = self.eval(node.condition, env)
        if is_error(condition):
            return condition
        if is_truthy(condition):
            return self.eval(node.consequence, env)
        if node.alternative is not None:
            return self.eval(node.alternative, env)
        return NULL

    def _eval_index(self, left: PearlObject, index: PearlObject) -> PearlObject:
        if isinstance(left, Array) and isinstance(index, Integer):
            return self._index_sequence(left.elements, index.value)
        if isinstance(left, String) and isinstance(index, Integer):
            ch = self._index_sequence(left.value, index.value)
            return NULL if ch is NULL else String(ch)
        if isinstance(left, Map):
            if hash_key(index) is None:
                return Error(f"unusable as map key: {index.kind()}")
            value = left.get(index)
            return NULL if value is None else value
        return Error(f"index operator not supported: {left.kind()}[{index.kind()}]")

    @staticmethod
    def _index_sequence(seq, idx: int):
        if idx < 0:
            idx += len(seq)
        if idx < 0 or idx >= len(seq):
            return NULL
        return seq[idx]

    def _eval_pipe(self, node: PipeExpression, env: Environment) -> PearlObject:
        left = self.eval(node.left, env)
        if is_error(left):
            return left

        right = node.right
        if isinstance(right, CallExpression):
            fn = self.eval(right.function, env)
            if is_error(fn):
                return fn
            args = self._eval_expressions([a.value for a in right.arguments], env)
            if is_error(args):
                return args
            names = [None] + [a.name for a in right.arguments]
            return self.apply_function(fn, [left] + args, names)
        if isinstance(right, Identifier):
            fn = self._eval_identifier(right, env)
            if is_error(fn):
                return fn
            return self.apply_function(fn, [left])
        return Error("right side of pipe must be a function call")

    def _eval_assign(self, node: AssignExpression, env: Environment) -> PearlObject:
        value = self.eval(node.value, env)
        if is_error(value):
            return value

        target = node.target
        if isinstance(target, Identifier):
            if not env.update(target.value, value):
                return Error(f"undefined variable: {target.value}")
            return value

        if isinstance(target, IndexExpression):
            left = self.eval(target.left, env)
            if is_error(left):
                return left
            index = self.eval(target.index, env)
            if is_error(index):
                return index

            if isinstance(left, Array):
                if not isinstance(index, Integer):
                    return Error(f"index operator not supported: {left.kind()}[{index.kind()}]")
                idx = index.value
                if idx < 0:
                    idx += len(left.elements)
                if idx < 0 or idx >= len(left.elements):
                    return Error(f"array index out of bounds: {index.value}")
                left.elements[idx] = value
                return value
            if isinstance(left, Map):
                if hash_key(index) is None:
                    return Error(f"unusable as map key: {index.kind()}")
                left.set(index, value)
                return value
            return Error(f"cannot assign to index of {left.kind()}")

        return Error("cannot assign to this expression")

    # --- Function application ---

    def apply_function(self, fn: PearlObject, args: List[PearlObject],
                       names: Optional[List[Optional[str]]] = None) -> PearlObject:
        """Calls a user function or builtin with evaluated arguments.

        `names` runs parallel to `args` and holds the parameter name for each
        argument that was passed by name at the call site. Builtins only ever
        see the positional values.
        """
        if isinstance(fn, Function):
            env = self._extend_function_env(fn, args, names)
            if is_error(env):
                return env
            return unwrap_return(self.eval(fn.body, env))
        if isinstance(fn, Builtin):
            result = fn.fn(*args)
            return NULL if result is None else result
        return Error(f"not a function: {fn.kind()}")

    def _extend_function_env(self, fn: Function, args: List[PearlObject],
                             names: Optional[List[Optional[str]]]) -> Union[Environment, Error]:
        env = fn.env.enclosed()

        named = {}
        positional = []
        for i, arg in enumerate(args):
            name = names[i] if names is not None and i < len(names) else None
            if name:
                named[name] = arg
            else:
                positional.append(arg)

        pos = 0
        for param in fn.parameters:
            name = param.name.value
            if name in named:
                env.set(name, named[name])
            elif pos < len(positional):
                env.set(name, positional[pos])
                pos += 1
            elif param.default is not None:
                # Defaults see the defining scope, not the call site.
                default = self.eval(param.default, fn.env)
                if is_error(default):
                    return default
                env.set(name, default)
            else:
                env.set(name, NULL)
        return env


def evaluate(node, env: Optional[Environment] = None, evaluator: Optional[Evaluator] = None) -> PearlObject:
    """Evaluates `node` against `env` (a fresh root environment by default)."""
    evaluator = evaluator or Evaluator()
    return evaluator.eval(node, env if env is not None else Environment())
