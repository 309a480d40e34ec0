"""
AST node types produced by the Pearl parser.

Nodes are immutable dataclasses and carry no behavior; the evaluator and the
printer dispatch on their type. Each node keeps the token it started at so
later stages can report positions.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from pearl.pearl_tokens import Token


class Node:
    """Base class for all AST nodes."""
    token: Token


class Statement(Node):
    pass


class Expression(Node):
    pass


# =================================================================
# Program and Statements
# =================================================================

@dataclass(frozen=True)
class Program(Node):
    statements: List[Statement] = field(default_factory=list)
    token: Optional[Token] = None


@dataclass(frozen=True)
class LetStatement(Statement):
    token: Token
    name: "Identifier"
    value: Expression


@dataclass(frozen=True)
class ReturnStatement(Statement):
    token: Token
    value: Optional[Expression] = None


@dataclass(frozen=True)
class ExpressionStatement(Statement):
    token: Token
    expression: Expression


@dataclass(frozen=True)
class BlockStatement(Statement):
    token: Token
    statements: List[Statement] = field(default_factory=list)


@dataclass(frozen=True)
class ForStatement(Statement):
    token: Token
    variable: "Identifier"
    iterable: Expression
    body: BlockStatement


@dataclass(frozen=True)
class WhileStatement(Statement):
    token: Token
    condition: Expression
    body: BlockStatement


# =================================================================
# Literals
# =================================================================

@dataclass(frozen=True)
class Identifier(Expression):
    token: Token
    value: str


@dataclass(frozen=True)
class IntegerLiteral(Expression):
    token: Token
    value: int


@dataclass(frozen=True)
class FloatLiteral(Expression):
    token: Token
    value: float


@dataclass(frozen=True)
class StringPart:
    """One piece of a string literal: literal text, or an embedded expression."""
    text: str = ""
    expression: Optional[Expression] = None

    @property
    def is_expression(self) -> bool:
        return self.expression is not None


@dataclass(frozen=True)
class StringLiteral(Expression):
    token: Token
    value: str
    parts: Tuple[StringPart, ...] = ()


@dataclass(frozen=True)
class BooleanLiteral(Expression):
    token: Token
    value: bool


@dataclass(frozen=True)
class NullLiteral(Expression):
    token: Token


@dataclass(frozen=True)
class RegexLiteral(Expression):
    token: Token
    pattern: str


@dataclass(frozen=True)
class ArrayLiteral(Expression):
    token: Token
    elements: List[Expression] = field(default_factory=list)


@dataclass(frozen=True)
class MapLiteral(Expression):
    token: Token
    pairs: List[Tuple[Expression, Expression]] = field(default_factory=list)


@dataclass(frozen=True)
class RangeLiteral(Expression):
    token: Token
    start: Expression
    end: Expression


# =================================================================
# Operators and Compound Expressions
# =================================================================

@dataclass(frozen=True)
class PrefixExpression(Expression):
    token: Token
    operator: str
    right: Expression


@dataclass(frozen=True)
class InfixExpression(Expression):
    token: Token
    left: Expression
    operator: str
    right: Expression


@dataclass(frozen=True)
class IfExpression(Expression):
    token: Token
    condition: Expression
    consequence: BlockStatement
    alternative: Optional[BlockStatement] = None


@dataclass(frozen=True)
class FunctionParameter:
    name: Identifier
    default: Optional[Expression] = None


@dataclass(frozen=True)
class FunctionLiteral(Expression):
    token: Token
    parameters: List[FunctionParameter]
    body: BlockStatement
    name: Optional[str] = None


@dataclass(frozen=True)
class CallArgument:
    """A call-site argument; `name` is set for `name = value` arguments."""
    value: Expression
    name: Optional[str] = None


@dataclass(frozen=True)
class CallExpression(Expression):
    token: Token
    function: Expression
    arguments: List[CallArgument] = field(default_factory=list)


@dataclass(frozen=True)
class IndexExpression(Expression):
    token: Token
    left: Expression
    index: Expression


@dataclass(frozen=True)
class PipeExpression(Expression):
    token: Token
    left: Expression
    right: Expression


@dataclass(frozen=True)
class AssignExpression(Expression):
    token: Token
    target: Expression
    value: Expression
