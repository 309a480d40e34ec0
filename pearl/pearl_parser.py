"""
The Pearl parser.

A Pratt (operator-precedence) parser over a two-token window of the lexer's
output. Every token type can register a prefix routine (tokens that start an
expression) and an infix routine (tokens that combine with an expression that
was already parsed). Problems are collected as diagnostics instead of being
raised, and a statement that fails to parse is left out of the program.
"""

import logging
from typing import Callable, Dict, List, Optional, Tuple

from pearl.pearl_ast import (
    ArrayLiteral, AssignExpression, BlockStatement, BooleanLiteral, CallArgument,
    CallExpression, Expression, ExpressionStatement, FloatLiteral, ForStatement,
    FunctionLiteral, FunctionParameter, Identifier, IfExpression, IndexExpression,
    InfixExpression, IntegerLiteral, LetStatement, MapLiteral, NullLiteral,
    PipeExpression, PrefixExpression, Program, RangeLiteral, RegexLiteral,
    ReturnStatement, Statement, StringLiteral, StringPart, WhileStatement,
)
from pearl.pearl_lexer import Lexer, RegexSyntaxError
from pearl.pearl_tokens import Token, TokenType

logger = logging.getLogger(__name__)

INT64_MAX = 2 ** 63 - 1

# Precedence levels, lowest first.
(
    LOWEST,
    ASSIGN,
    PIPE,
    OR,
    AND,
    EQUALS,
    LESSGREATER,
    MATCH,
    RANGE,
    SUM,
    PRODUCT,
    PREFIX,
    CALL,
    INDEX,
) = range(1, 15)

PRECEDENCES: Dict[TokenType, int] = {
    TokenType.ASSIGN: ASSIGN,
    TokenType.PIPE: PIPE,
    TokenType.OR: OR,
    TokenType.AND: AND,
    TokenType.EQ: EQUALS,
    TokenType.NOT_EQ: EQUALS,
    TokenType.LT: LESSGREATER,
    TokenType.GT: LESSGREATER,
    TokenType.LTE: LESSGREATER,
    TokenType.GTE: LESSGREATER,
    TokenType.MATCH: MATCH,
    TokenType.NOTMATCH: MATCH,
    TokenType.RANGE: RANGE,
    TokenType.PLUS: SUM,
    TokenType.MINUS: SUM,
    TokenType.CONCAT: SUM,
    TokenType.ASTERISK: PRODUCT,
    TokenType.SLASH: PRODUCT,
    TokenType.PERCENT: PRODUCT,
    TokenType.LPAREN: CALL,
    TokenType.LBRACKET: INDEX,
}

PrefixParseFn = Callable[[], Optional[Expression]]
InfixParseFn = Callable[[Expression], Optional[Expression]]


class Parser:
    """Builds a `Program` from a lexer's token stream."""

    def __init__(self, lexer: Lexer):
        self.lexer = lexer
        self.errors: List[str] = []
        self.cur_token: Token = Token(TokenType.EOF, "")
        self.peek_token: Token = Token(TokenType.EOF, "")

        self._prefix_fns: Dict[TokenType, PrefixParseFn] = {
            TokenType.IDENT: self._parse_identifier,
            TokenType.INT: self._parse_integer_literal,
            TokenType.FLOAT: self._parse_float_literal,
            TokenType.STRING: self._parse_string_literal,
            TokenType.TRUE: self._parse_boolean,
            TokenType.FALSE: self._parse_boolean,
            TokenType.NULL: self._parse_null,
            TokenType.BANG: self._parse_prefix_expression,
            TokenType.MINUS: self._parse_prefix_expression,
            TokenType.NOT: self._parse_prefix_expression,
            TokenType.LPAREN: self._parse_grouped_expression,
            TokenType.IF: self._parse_if_expression,
            TokenType.FN: self._parse_function_literal,
            TokenType.LBRACKET: self._parse_array_literal,
            TokenType.LBRACE: self._parse_map_literal,
            TokenType.SLASH: self._parse_regex_literal,
        }

        self._infix_fns: Dict[TokenType, InfixParseFn] = {
            TokenType.PLUS: self._parse_infix_expression,
            TokenType.MINUS: self._parse_infix_expression,
            TokenType.SLASH: self._parse_infix_expression,
            TokenType.ASTERISK: self._parse_infix_expression,
            TokenType.PERCENT: self._parse_infix_expression,
            TokenType.CONCAT: self._parse_infix_expression,
            TokenType.EQ: self._parse_infix_expression,
            TokenType.NOT_EQ: self._parse_infix_expression,
            TokenType.LT: self._parse_infix_expression,
            TokenType.GT: self._parse_infix_expression,
            TokenType.LTE: self._parse_infix_expression,
            TokenType.GTE: self._parse_infix_expression,
            TokenType.AND: self._parse_infix_expression,
            TokenType.OR: self._parse_infix_expression,
            TokenType.MATCH: self._parse_match_expression,
            TokenType.NOTMATCH: self._parse_match_expression,
            TokenType.RANGE: self._parse_range_expression,
            TokenType.PIPE: self._parse_pipe_expression,
            TokenType.LPAREN: self._parse_call_expression,
            TokenType.LBRACKET: self._parse_index_expression,
            TokenType.ASSIGN: self._parse_assign_expression,
        }

        # Fill both cur_token and peek_token.
        self.next_token()
        self.next_token()

    # --- Token window ---

    def next_token(self):
        self.cur_token = self.peek_token
        self.peek_token = self.lexer.next_token()

    def cur_is(self, kind: TokenType) -> bool:
        return self.cur_token.type is kind

    def peek_is(self, kind: TokenType) -> bool:
        return self.peek_token.type is kind

    def expect_peek(self, kind: TokenType) -> bool:
        """Advances when the lookahead is `kind`, otherwise records a diagnostic."""
        if self.peek_is(kind):
            self.next_token()
            return True
        self._add_error(f"expected {kind}, got {self.peek_token.type} instead")
        return False

    def _skip_peek_newlines(self):
        while self.peek_is(TokenType.NEWLINE):
            self.next_token()

    def _skip_terminator(self):
        if self.peek_is(TokenType.SEMICOLON) or self.peek_is(TokenType.NEWLINE):
            self.next_token()

    def _peek_precedence(self) -> int:
        return PRECEDENCES.get(self.peek_token.type, LOWEST)

    def _cur_precedence(self) -> int:
        return PRECEDENCES.get(self.cur_token.type, LOWEST)

    def _add_error(self, msg: str, token: Optional[Token] = None):
        tok = token or self.cur_token
        self.errors.append(f"line {tok.line}, col {tok.col}: {msg}")

    # --- Statements ---

    def parse_program(self) -> Program:
        statements: List[Statement] = []
        while not self.cur_is(TokenType.EOF):
            if self.cur_is(TokenType.NEWLINE) or self.cur_is(TokenType.SEMICOLON):
                self.next_token()
                continue
            stmt = self.parse_statement()
            if stmt is not None:
                statements.append(stmt)
            self.next_token()
        return Program(statements)

    def parse_statement(self) -> Optional[Statement]:
        kind = self.cur_token.type
        if kind is TokenType.LET:
            return self._parse_let_statement()
        if kind is TokenType.RETURN:
            return self._parse_return_statement()
        if kind is TokenType.FOR:
            return self._parse_for_statement()
        if kind is TokenType.WHILE:
            return self._parse_while_statement()
        return self._parse_expression_statement()

    def _parse_let_statement(self) -> Optional[LetStatement]:
        tok = self.cur_token
        if not self.expect_peek(TokenType.IDENT):
            return None
        name = Identifier(self.cur_token, self.cur_token.literal)
        if not self.expect_peek(TokenType.ASSIGN):
            return None
        self.next_token()
        value = self.parse_expression(LOWEST)
        if value is None:
            return None
        self._skip_terminator()
        return LetStatement(tok, name, value)

    def _parse_return_statement(self) -> Optional[ReturnStatement]:
        tok = self.cur_token
        if (self.peek_is(TokenType.NEWLINE) or self.peek_is(TokenType.SEMICOLON)
                or self.peek_is(TokenType.EOF) or self.peek_is(TokenType.RBRACE)):
            self._skip_terminator()
            return ReturnStatement(tok)
        self.next_token()
        value = self.parse_expression(LOWEST)
        if value is None:
            return None
        self._skip_terminator()
        return ReturnStatement(tok, value)

    def _parse_for_statement(self) -> Optional[ForStatement]:
        tok = self.cur_token
        if not self.expect_peek(TokenType.IDENT):
            return None
        variable = Identifier(self.cur_token, self.cur_token.literal)
        if not self.expect_peek(TokenType.IN):
            return None
        self.next_token()
        iterable = self.parse_expression(LOWEST)
        if iterable is None:
            return None
        if not self.expect_peek(TokenType.LBRACE):
            return None
        return ForStatement(tok, variable, iterable, self._parse_block_statement())

    def _parse_while_statement(self) -> Optional[WhileStatement]:
        tok = self.cur_token
        self.next_token()
        condition = self.parse_expression(LOWEST)
        if condition is None:
            return None
        if not self.expect_peek(TokenType.LBRACE):
            return None
        return WhileStatement(tok, condition, self._parse_block_statement())

    def _parse_expression_statement(self) -> Optional[ExpressionStatement]:
        tok = self.cur_token
        expression = self.parse_expression(LOWEST)
        if expression is None:
            return None
        self._skip_terminator()
        return ExpressionStatement(tok, expression)

    def _parse_block_statement(self) -> BlockStatement:
        tok = self.cur_token
        statements: List[Statement] = []
        self.next_token()
        while not self.cur_is(TokenType.RBRACE) and not self.cur_is(TokenType.EOF):
            if self.cur_is(TokenType.NEWLINE) or self.cur_is(TokenType.SEMICOLON):
                self.next_token()
                continue
            stmt = self.parse_statement()
            if stmt is not None:
                statements.append(stmt)
            self.next_token()
        if self.cur_is(TokenType.EOF):
            self._add_error(f"expected {TokenType.RBRACE}, got {TokenType.EOF} instead")
        return BlockStatement(tok, statements)

    # --- Expressions ---

    def parse_expression(self, precedence: int) -> Optional[Expression]:
        prefix = self._prefix_fns.get(self.cur_token.type)
        if prefix is None:
            self._add_error(f"no prefix parse function for {self.cur_token.type} found")
            return None
        left = prefix()

        while (left is not None
               and not self.peek_is(TokenType.SEMICOLON)
               and not self.peek_is(TokenType.NEWLINE)
               and precedence < self._peek_precedence()):
            infix = self._infix_fns.get(self.peek_token.type)
            if infix is None:
                return left
            self.next_token()
            left = infix(left)

        return left

    def _parse_identifier(self) -> Expression:
        return Identifier(self.cur_token, self.cur_token.literal)

    def _parse_integer_literal(self) -> Optional[Expression]:
        literal = self.cur_token.literal
        value = int(literal)
        if value > INT64_MAX:
            self._add_error(f'could not parse "{literal}" as integer')
            return None
        return IntegerLiteral(self.cur_token, value)

    def _parse_float_literal(self) -> Optional[Expression]:
        literal = self.cur_token.literal
        try:
            value = float(literal)
        except ValueError:
            self._add_error(f'could not parse "{literal}" as float')
            return None
        return FloatLiteral(self.cur_token, value)

    def _parse_boolean(self) -> Expression:
        return BooleanLiteral(self.cur_token, self.cur_is(TokenType.TRUE))

    def _parse_null(self) -> Expression:
        return NullLiteral(self.cur_token)

    def _parse_string_literal(self) -> Expression:
        tok = self.cur_token
        return StringLiteral(tok, tok.literal, tuple(self._parse_string_parts(tok)))

    def _parse_string_parts(self, tok: Token) -> List[StringPart]:
        """Splits a string into literal runs and `{...}` interpolation spans.

        Spans are found with a brace-depth counter over the processed text, so
        a brace inside a string nested in the span still counts. Each span is
        parsed as an independent program and its first expression is kept.
        """
        text = tok.literal
        escaped = set(tok.literal_braces)
        parts: List[StringPart] = []
        i = 0
        while i < len(text):
            if text[i] == "{" and i not in escaped:
                depth = 1
                j = i + 1
                while j < len(text) and depth > 0:
                    if j not in escaped:
                        if text[j] == "{":
                            depth += 1
                        elif text[j] == "}":
                            depth -= 1
                    j += 1
                if depth == 0:
                    expression = self._parse_embedded(text[i + 1:j - 1], tok)
                    if expression is not None:
                        parts.append(StringPart(expression=expression))
                    i = j
                else:
                    parts.append(StringPart(text="{"))
                    i += 1
            else:
                start = i
                while i < len(text) and not (text[i] == "{" and i not in escaped):
                    i += 1
                parts.append(StringPart(text=text[start:i]))
        return parts

    def _parse_embedded(self, source: str, tok: Token) -> Optional[Expression]:
        program, errors = parse(source)
        for msg in errors:
            self._add_error(f"in string interpolation: {msg}", tok)
        if not program.statements:
            return None
        first = program.statements[0]
        if isinstance(first, ExpressionStatement):
            return first.expression
        return None

    def _parse_regex_literal(self) -> Optional[Expression]:
        # The lookahead was lexed past the slash; rewind to just after it.
        tok = self.cur_token
        self.lexer.seek(tok.offset + 1)
        try:
            pattern = self.lexer.read_regex()
        except RegexSyntaxError as e:
            self._add_error(f"invalid regex: {e.msg}")
            self.peek_token = self.lexer.next_token()
            return None
        self.cur_token = Token(TokenType.REGEX, f"/{pattern}/", tok.line, tok.col, tok.offset)
        self.peek_token = self.lexer.next_token()
        return RegexLiteral(self.cur_token, pattern)

    def _parse_array_literal(self) -> Optional[Expression]:
        tok = self.cur_token
        elements = self._parse_expression_list(TokenType.RBRACKET)
        if elements is None:
            return None
        return ArrayLiteral(tok, elements)

    def _parse_map_literal(self) -> Optional[Expression]:
        tok = self.cur_token
        pairs = []
        while not self.peek_is(TokenType.RBRACE):
            self.next_token()
            while self.cur_is(TokenType.NEWLINE):
                self.next_token()
            if self.cur_is(TokenType.RBRACE):
                return MapLiteral(tok, pairs)

            key = self.parse_expression(LOWEST)
            if key is None:
                return None
            if not self.expect_peek(TokenType.COLON):
                return None
            self.next_token()
            value = self.parse_expression(LOWEST)
            if value is None:
                return None
            pairs.append((key, value))

            while self.peek_is(TokenType.COMMA) or self.peek_is(TokenType.NEWLINE):
                self.next_token()

        if not self.expect_peek(TokenType.RBRACE):
            return None
        return MapLiteral(tok, pairs)

    def _parse_expression_list(self, end: TokenType) -> Optional[List[Expression]]:
        items: List[Expression] = []
        self._skip_peek_newlines()
        if self.peek_is(end):
            self.next_token()
            return items

        self.next_token()
        item = self.parse_expression(LOWEST)
        if item is None:
            return None
        items.append(item)
        self._skip_peek_newlines()

        while self.peek_is(TokenType.COMMA):
            self.next_token()
            self._skip_peek_newlines()
            if self.peek_is(end):
                break
            self.next_token()
            item = self.parse_expression(LOWEST)
            if item is None:
                return None
            items.append(item)
            self._skip_peek_newlines()

        if not self.expect_peek(end):
            return None
        return items

    def _parse_prefix_expression(self) -> Optional[Expression]:
        tok = self.cur_token
        self.next_token()
        right = self.parse_expression(PREFIX)
        if right is None:
            return None
        return PrefixExpression(tok, tok.literal, right)

    def _parse_infix_expression(self, left: Expression) -> Optional[Expression]:
        tok = self.cur_token
        precedence = self._cur_precedence()
        self.next_token()
        right = self.parse_expression(precedence)
        if right is None:
            return None
        return InfixExpression(tok, left, tok.literal, right)

    def _parse_match_expression(self, left: Expression) -> Optional[Expression]:
        """Parses `left ~ /re/` and `left !~ /re/`.

        The lookahead token was lexed from what is really the regex body, so
        the lexer is sent back to the lookahead's offset, the regex is read
        raw, and the token window is rebuilt from there.
        """
        tok = self.cur_token
        start = self.peek_token
        self.lexer.seek(start.offset)
        try:
            pattern = self.lexer.read_regex_from_start()
        except RegexSyntaxError as e:
            self._add_error(f"invalid regex: {e.msg}")
            self.peek_token = self.lexer.next_token()
            return None
        regex_token = Token(TokenType.REGEX, f"/{pattern}/", start.line, start.col, start.offset)
        self.cur_token = regex_token
        self.peek_token = self.lexer.next_token()
        return InfixExpression(tok, left, tok.literal, RegexLiteral(regex_token, pattern))

    def _parse_range_expression(self, left: Expression) -> Optional[Expression]:
        tok = self.cur_token
        self.next_token()
        end = self.parse_expression(RANGE)
        if end is None:
            return None
        return RangeLiteral(tok, left, end)

    def _parse_pipe_expression(self, left: Expression) -> Optional[Expression]:
        tok = self.cur_token
        self.next_token()
        right = self.parse_expression(PIPE)
        if right is None:
            return None
        return PipeExpression(tok, left, right)

    def _parse_assign_expression(self, left: Expression) -> Optional[Expression]:
        tok = self.cur_token
        self.next_token()
        value = self.parse_expression(LOWEST)
        if value is None:
            return None
        return AssignExpression(tok, left, value)

    def _parse_grouped_expression(self) -> Optional[Expression]:
        self.next_token()
        expression = self.parse_expression(LOWEST)
        if expression is None:
            return None
        if not self.expect_peek(TokenType.RPAREN):
            return None
        return expression

    def _parse_if_expression(self) -> Optional[IfExpression]:
        tok = self.cur_token
        self.next_token()
        condition = self.parse_expression(LOWEST)
        if condition is None:
            return None
        if not self.expect_peek(TokenType.LBRACE):
            return None
        consequence = self._parse_block_statement()

        alternative = None
        if self.peek_is(TokenType.ELSE):
            self.next_token()
            if self.peek_is(TokenType.IF):
                # `else if` becomes an else block holding the nested if.
                self.next_token()
                nested = self._parse_if_expression()
                if nested is None:
                    return None
                alternative = BlockStatement(nested.token, [ExpressionStatement(nested.token, nested)])
            else:
                if not self.expect_peek(TokenType.LBRACE):
                    return None
                alternative = self._parse_block_statement()

        return IfExpression(tok, condition, consequence, alternative)

    def _parse_function_literal(self) -> Optional[Expression]:
        tok = self.cur_token
        name = None
        if self.peek_is(TokenType.IDENT):
            self.next_token()
            name = self.cur_token.literal
        if not self.expect_peek(TokenType.LPAREN):
            return None
        parameters = self._parse_function_parameters()
        if parameters is None:
            return None
        if not self.expect_peek(TokenType.LBRACE):
            return None
        return FunctionLiteral(tok, parameters, self._parse_block_statement(), name)

    def _parse_function_parameters(self) -> Optional[List[FunctionParameter]]:
        parameters: List[FunctionParameter] = []
        if self.peek_is(TokenType.RPAREN):
            self.next_token()
            return parameters

        if not self.expect_peek(TokenType.IDENT):
            return None
        param = self._parse_function_parameter()
        if param is None:
            return None
        parameters.append(param)

        while self.peek_is(TokenType.COMMA):
            self.next_token()
            if not self.expect_peek(TokenType.IDENT):
                return None
            param = self._parse_function_parameter()
            if param is None:
                return None
            parameters.append(param)

        if not self.expect_peek(TokenType.RPAREN):
            return None
        return parameters

    def _parse_function_parameter(self) -> Optional[FunctionParameter]:
        name = Identifier(self.cur_token, self.cur_token.literal)
        if not self.peek_is(TokenType.ASSIGN):
            return FunctionParameter(name)
        self.next_token()
        self.next_token()
        default = self.parse_expression(LOWEST)
        if default is None:
            return None
        return FunctionParameter(name, default)

    def _parse_call_expression(self, function: Expression) -> Optional[Expression]:
        tok = self.cur_token
        arguments = self._parse_call_arguments()
        if arguments is None:
            return None
        return CallExpression(tok, function, arguments)

    def _parse_call_arguments(self) -> Optional[List[CallArgument]]:
        arguments: List[CallArgument] = []
        self._skip_peek_newlines()
        if self.peek_is(TokenType.RPAREN):
            self.next_token()
            return arguments

        self.next_token()
        arg = self._parse_call_argument()
        if arg is None:
            return None
        arguments.append(arg)
        self._skip_peek_newlines()

        while self.peek_is(TokenType.COMMA):
            self.next_token()
            self._skip_peek_newlines()
            if self.peek_is(TokenType.RPAREN):
                break
            self.next_token()
            arg = self._parse_call_argument()
            if arg is None:
                return None
            arguments.append(arg)
            self._skip_peek_newlines()

        if not self.expect_peek(TokenType.RPAREN):
            return None
        return arguments

    def _parse_call_argument(self) -> Optional[CallArgument]:
        # Named-ness is decided per argument by `IDENT =` lookahead.
        name = None
        if self.cur_is(TokenType.IDENT) and self.peek_is(TokenType.ASSIGN):
            name = self.cur_token.literal
            self.next_token()
            self.next_token()
        value = self.parse_expression(LOWEST)
        if value is None:
            return None
        return CallArgument(value, name)

    def _parse_index_expression(self, left: Expression) -> Optional[Expression]:
        tok = self.cur_token
        self.next_token()
        index = self.parse_expression(LOWEST)
        if index is None:
            return None
        if not self.expect_peek(TokenType.RBRACKET):
            return None
        return IndexExpression(tok, left, index)


def parse(source: str) -> Tuple[Program, List[str]]:
    """Lexes and parses `source`, returning the program and its diagnostics.

    Each call owns its own lexer and parser, which is what lets string
    interpolation call back into it while an outer parse is in progress.
    """
    parser = Parser(Lexer(source))
    program = parser.parse_program()
    if parser.errors:
        logger.debug("parsed %d statements with %d diagnostics", len(program.statements), len(parser.errors))
    return program, parser.errors
