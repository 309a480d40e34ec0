"""
Token vocabulary for the Pearl lexer and parser.

Every token kind is a member of the closed `TokenType` enumeration. A member's
value is the text shown for it in parser diagnostics.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple


class TokenType(Enum):
    ILLEGAL = "ILLEGAL"
    EOF = "EOF"

    # Identifiers and literals
    IDENT = "IDENT"
    INT = "INT"
    FLOAT = "FLOAT"
    STRING = "STRING"
    REGEX = "REGEX"

    # Operators
    ASSIGN = "="
    PLUS = "+"
    MINUS = "-"
    BANG = "!"
    ASTERISK = "*"
    SLASH = "/"
    PERCENT = "%"
    LT = "<"
    GT = ">"
    EQ = "=="
    NOT_EQ = "!="
    LTE = "<="
    GTE = ">="
    CONCAT = "++"
    PIPE = "|>"
    MATCH = "~"
    NOTMATCH = "!~"
    RANGE = ".."
    ARROW = "=>"

    # Delimiters
    COMMA = ","
    COLON = ":"
    SEMICOLON = ";"
    NEWLINE = "NEWLINE"
    LPAREN = "("
    RPAREN = ")"
    LBRACE = "{"
    RBRACE = "}"
    LBRACKET = "["
    RBRACKET = "]"

    # Keywords
    LET = "LET"
    FN = "FN"
    TRUE = "TRUE"
    FALSE = "FALSE"
    IF = "IF"
    ELSE = "ELSE"
    RETURN = "RETURN"
    FOR = "FOR"
    IN = "IN"
    WHILE = "WHILE"
    AND = "AND"
    OR = "OR"
    NOT = "NOT"
    NULL = "NULL"

    # Reserved: no grammar production uses these yet.
    TRY = "TRY"
    CATCH = "CATCH"
    MATCH_KW = "MATCH_KW"

    def __str__(self) -> str:
        return self.value


KEYWORDS: Dict[str, TokenType] = {
    "fn": TokenType.FN,
    "let": TokenType.LET,
    "true": TokenType.TRUE,
    "false": TokenType.FALSE,
    "if": TokenType.IF,
    "else": TokenType.ELSE,
    "return": TokenType.RETURN,
    "for": TokenType.FOR,
    "in": TokenType.IN,
    "while": TokenType.WHILE,
    "and": TokenType.AND,
    "or": TokenType.OR,
    "not": TokenType.NOT,
    "null": TokenType.NULL,
    "try": TokenType.TRY,
    "catch": TokenType.CATCH,
    # `match` stays an identifier so the match() builtin can be called.
}


def lookup_ident(ident: str) -> TokenType:
    """Returns the keyword kind for `ident`, or IDENT."""
    return KEYWORDS.get(ident, TokenType.IDENT)


@dataclass(frozen=True)
class Token:
    """A lexed token with its source position.

    `offset` is the index of the token's first character in the source text.
    For STRING tokens `literal_braces` lists the indices in `literal` of the
    braces that came from a `\\{` escape.
    """
    type: TokenType
    literal: str
    line: int = 0
    col: int = 0
    offset: int = 0
    literal_braces: Tuple[int, ...] = ()

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.literal!r}, line={self.line}, col={self.col})"
