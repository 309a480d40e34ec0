"""
A pretty-printer for Pearl syntax trees.

Expressions are printed fully parenthesized, so the output shows exactly how
the parser grouped operators: `-a * b` prints as `((-a) * b)`.
"""

import math
from decimal import Decimal
from typing import List, Optional

from pearl.pearl_ast import (
    ArrayLiteral, AssignExpression, BlockStatement, BooleanLiteral, CallExpression,
    ExpressionStatement, FloatLiteral, ForStatement, FunctionLiteral, FunctionParameter,
    Identifier, IfExpression, IndexExpression, InfixExpression, IntegerLiteral,
    LetStatement, MapLiteral, NullLiteral, PipeExpression, PrefixExpression, Program,
    RangeLiteral, RegexLiteral, ReturnStatement, StringLiteral, WhileStatement,
)
from pearl.pearl_datatypes import PearlObject, format_float

STRING_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\t": "\\t",
    "\r": "\\r",
    "{": "\\{",
}


class Printer:
    """Formats Pearl AST nodes back into readable Pearl source."""

    def __init__(self, indent_width=2):
        self._indent_char = " " * indent_width
        self._handlers = self._create_handlers()

    def pformat(self, obj, level=0):
        """Public entry point to format a node or runtime value."""
        handler = self._get_handler(obj)
        return handler(obj, level)

    def format_function(self, parameters: List[FunctionParameter], body: BlockStatement,
                        name: Optional[str] = None, level=0) -> str:
        params = ", ".join(self._pformat_parameter(p, level) for p in parameters)
        head = f"fn {name}" if name else "fn"
        return f"{head}({params}) {self._pformat_block(body, level)}"

    def _get_handler(self, obj):
        obj_type = type(obj)
        if obj_type in self._handlers:
            return self._handlers[obj_type]
        if isinstance(obj, PearlObject):
            return lambda o, l: o.display()
        return lambda o, l: repr(o)

    def _create_handlers(self):
        return {
            Program: self._pformat_program,
            LetStatement: self._pformat_let,
            ReturnStatement: self._pformat_return,
            ExpressionStatement: self._pformat_expression_statement,
            BlockStatement: self._pformat_block,
            ForStatement: self._pformat_for,
            WhileStatement: self._pformat_while,
            Identifier: self._pformat_identifier,
            IntegerLiteral: self._pformat_integer,
            FloatLiteral: self._pformat_float,
            StringLiteral: self._pformat_string,
            BooleanLiteral: self._pformat_boolean,
            NullLiteral: self._pformat_null,
            RegexLiteral: self._pformat_regex,
            ArrayLiteral: self._pformat_array,
            MapLiteral: self._pformat_map,
            RangeLiteral: self._pformat_range,
            PrefixExpression: self._pformat_prefix,
            InfixExpression: self._pformat_infix,
            IfExpression: self._pformat_if,
            FunctionLiteral: self._pformat_function_literal,
            CallExpression: self._pformat_call,
            IndexExpression: self._pformat_index,
            PipeExpression: self._pformat_pipe,
            AssignExpression: self._pformat_assign,
        }

    # --- Statements ---

    def _pformat_program(self, obj, level):
        return "\n".join(self.pformat(s, level) for s in obj.statements)

    def _pformat_let(self, obj, level):
        return f"let {obj.name.value} = {self.pformat(obj.value, level)}"

    def _pformat_return(self, obj, level):
        if obj.value is None:
            return "return"
        return f"return {self.pformat(obj.value, level)}"

    def _pformat_expression_statement(self, obj, level):
        return self.pformat(obj.expression, level)

    def _pformat_block(self, obj, level):
        if not obj.statements:
            return "{}"

        outer_indent = self._indent_char * level
        inner_level = level + 1
        inner_indent = self._indent_char * inner_level

        lines = []
        for stmt in obj.statements:
            stmt_lines = self.pformat(stmt, inner_level).splitlines()
            if not stmt_lines:
                continue
            # Only the first line needs indenting; nested blocks indent their own.
            lines.append("\n".join([inner_indent + stmt_lines[0]] + stmt_lines[1:]))

        return "{\n" + "\n".join(lines) + f"\n{outer_indent}}}"

    def _pformat_for(self, obj, level):
        iterable = self.pformat(obj.iterable, level)
        return f"for {obj.variable.value} in {iterable} {self._pformat_block(obj.body, level)}"

    def _pformat_while(self, obj, level):
        return f"while {self.pformat(obj.condition, level)} {self._pformat_block(obj.body, level)}"

    # --- Literals ---

    def _pformat_identifier(self, obj, level):
        return obj.value

    def _pformat_integer(self, obj, level):
        return str(obj.value)

    def _pformat_float(self, obj, level):
        # Source floats have no exponent form.
        if not math.isfinite(obj.value):
            return format_float(obj.value)
        text = format(Decimal(repr(obj.value)), "f")
        return text if "." in text else f"{text}.0"

    def _pformat_string(self, obj, level):
        if not obj.parts:
            return '"' + self._escape(obj.value) + '"'
        pieces = []
        for part in obj.parts:
            if part.is_expression:
                pieces.append("{" + self.pformat(part.expression, level) + "}")
            else:
                pieces.append(self._escape(part.text))
        return '"' + "".join(pieces) + '"'

    def _escape(self, text):
        return "".join(STRING_ESCAPES.get(ch, ch) for ch in text)

    def _pformat_boolean(self, obj, level):
        return "true" if obj.value else "false"

    def _pformat_null(self, obj, level):
        return "null"

    def _pformat_regex(self, obj, level):
        return f"/{obj.pattern}/"

    def _pformat_array(self, obj, level):
        return "[" + ", ".join(self.pformat(e, level) for e in obj.elements) + "]"

    def _pformat_map(self, obj, level):
        if not obj.pairs:
            return "{}"
        items = [f"{self.pformat(k, level)}: {self.pformat(v, level)}" for k, v in obj.pairs]
        return "{" + ", ".join(items) + "}"

    def _pformat_range(self, obj, level):
        return f"({self.pformat(obj.start, level)}..{self.pformat(obj.end, level)})"

    # --- Operators and compound expressions ---

    def _pformat_prefix(self, obj, level):
        sep = " " if obj.operator == "not" else ""
        return f"({obj.operator}{sep}{self.pformat(obj.right, level)})"

    def _pformat_infix(self, obj, level):
        left = self.pformat(obj.left, level)
        right = self.pformat(obj.right, level)
        return f"({left} {obj.operator} {right})"

    def _pformat_if(self, obj, level):
        out = f"if {self.pformat(obj.condition, level)} {self._pformat_block(obj.consequence, level)}"
        if obj.alternative is not None:
            out += f" else {self._pformat_block(obj.alternative, level)}"
        return out

    def _pformat_parameter(self, param, level):
        if param.default is None:
            return param.name.value
        return f"{param.name.value} = {self.pformat(param.default, level)}"

    def _pformat_function_literal(self, obj, level):
        return self.format_function(obj.parameters, obj.body, obj.name, level)

    def _pformat_call(self, obj, level):
        args = []
        for arg in obj.arguments:
            value = self.pformat(arg.value, level)
            args.append(f"{arg.name} = {value}" if arg.name else value)
        return f"{self.pformat(obj.function, level)}({', '.join(args)})"

    def _pformat_index(self, obj, level):
        return f"({self.pformat(obj.left, level)}[{self.pformat(obj.index, level)}])"

    def _pformat_pipe(self, obj, level):
        return f"({self.pformat(obj.left, level)} |> {self.pformat(obj.right, level)})"

    def _pformat_assign(self, obj, level):
        return f"{self.pformat(obj.target, level)} = {self.pformat(obj.value, level)}"
