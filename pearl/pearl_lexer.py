"""
The Pearl lexer.

Turns source text into tokens on demand, one `next_token()` call at a time.
Regex literals are not tokenized eagerly: `/` is always a SLASH token and the
parser asks for the raw regex body through `read_regex()` or
`read_regex_from_start()` once the surrounding context tells it a regex is
expected.
"""

from typing import List, Tuple

from pearl.pearl_tokens import Token, TokenType, lookup_ident


TWO_CHAR_TOKENS = {
    "==": TokenType.EQ,
    "!=": TokenType.NOT_EQ,
    "<=": TokenType.LTE,
    ">=": TokenType.GTE,
    "++": TokenType.CONCAT,
    "|>": TokenType.PIPE,
    "..": TokenType.RANGE,
    "!~": TokenType.NOTMATCH,
    "=>": TokenType.ARROW,
}

ONE_CHAR_TOKENS = {
    "=": TokenType.ASSIGN,
    "+": TokenType.PLUS,
    "-": TokenType.MINUS,
    "!": TokenType.BANG,
    "*": TokenType.ASTERISK,
    "/": TokenType.SLASH,
    "%": TokenType.PERCENT,
    "<": TokenType.LT,
    ">": TokenType.GT,
    "~": TokenType.MATCH,
    ",": TokenType.COMMA,
    ":": TokenType.COLON,
    ";": TokenType.SEMICOLON,
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    "{": TokenType.LBRACE,
    "}": TokenType.RBRACE,
    "[": TokenType.LBRACKET,
    "]": TokenType.RBRACKET,
}

ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    '"': '"',
    "\\": "\\",
    "{": "{",
}

WHITESPACE = " \t\r"
DIGITS = "0123456789"


class RegexSyntaxError(ValueError):
    """Raised when a regex literal body cannot be read."""

    def __init__(self, msg: str, line: int, col: int):
        super().__init__(msg)
        self.msg = msg
        self.line = line
        self.col = col


def is_letter(ch: str) -> bool:
    return ch == "_" or (ch != "" and ch.isalpha())


def is_digit(ch: str) -> bool:
    return ch != "" and ch in DIGITS


class Lexer:
    """Pull-based tokenizer with one character of lookahead."""

    def __init__(self, source: str):
        self.source = source
        self.pos = 0
        self.line = 1
        self.col = 1

    # --- Cursor ---

    @property
    def ch(self) -> str:
        """The current character, or "" at end of input."""
        if self.pos < len(self.source):
            return self.source[self.pos]
        return ""

    def _peek_char(self) -> str:
        if self.pos + 1 < len(self.source):
            return self.source[self.pos + 1]
        return ""

    def _advance(self):
        if self.pos >= len(self.source):
            return
        if self.source[self.pos] == "\n":
            self.line += 1
            self.col = 1
        else:
            self.col += 1
        self.pos += 1

    def seek(self, offset: int):
        """Moves the cursor to `offset`, recomputing line and column."""
        offset = max(0, min(offset, len(self.source)))
        self.pos = offset
        self.line = self.source.count("\n", 0, offset) + 1
        self.col = offset - self.source.rfind("\n", 0, offset)

    # --- Tokens ---

    def next_token(self) -> Token:
        self._skip_whitespace()
        while self.ch == "#":
            self._skip_comment()
            self._skip_whitespace()

        line, col, start = self.line, self.col, self.pos
        ch = self.ch

        if ch == "":
            return Token(TokenType.EOF, "", line, col, start)
        if ch == "\n":
            self._advance()
            return Token(TokenType.NEWLINE, "\n", line, col, start)
        if ch == '"':
            text, braces = self._read_string()
            return Token(TokenType.STRING, text, line, col, start, braces)
        if is_letter(ch):
            ident = self._read_identifier()
            return Token(lookup_ident(ident), ident, line, col, start)
        if is_digit(ch):
            literal, is_float = self._read_number()
            kind = TokenType.FLOAT if is_float else TokenType.INT
            return Token(kind, literal, line, col, start)

        pair = self.source[self.pos:self.pos + 2]
        if pair in TWO_CHAR_TOKENS:
            self._advance()
            self._advance()
            return Token(TWO_CHAR_TOKENS[pair], pair, line, col, start)

        self._advance()
        return Token(ONE_CHAR_TOKENS.get(ch, TokenType.ILLEGAL), ch, line, col, start)

    def tokenize(self) -> List[Token]:
        """Lexes the remaining input into a list ending with EOF."""
        tokens = []
        while True:
            tok = self.next_token()
            tokens.append(tok)
            if tok.type is TokenType.EOF:
                return tokens

    # --- Regex bodies (parser driven) ---

    def read_regex_from_start(self) -> str:
        """Reads `/body/` when the opening slash has not been consumed yet."""
        while self.ch in (" ", "\t"):
            self._advance()
        if self.ch != "/":
            raise RegexSyntaxError(f"expected '/' to start regex, got '{self.ch}'", self.line, self.col)
        self._advance()
        return self.read_regex()

    def read_regex(self) -> str:
        """Reads a regex body up to its closing slash; the opening slash is already consumed."""
        out = []
        while self.ch not in ("/", "", "\n"):
            if self.ch == "\\":
                out.append(self.ch)
                self._advance()
                if self.ch != "":
                    out.append(self.ch)
            else:
                out.append(self.ch)
            self._advance()

        if self.ch != "/":
            raise RegexSyntaxError("unterminated regex", self.line, self.col)
        self._advance()
        return "".join(out)

    # --- Helpers ---

    def _read_identifier(self) -> str:
        start = self.pos
        while is_letter(self.ch) or is_digit(self.ch):
            self._advance()
        return self.source[start:self.pos]

    def _read_number(self) -> Tuple[str, bool]:
        start = self.pos
        is_float = False
        while is_digit(self.ch):
            self._advance()
        # A trailing '.' without a digit is left alone so `1..5` stays a range.
        if self.ch == "." and is_digit(self._peek_char()):
            is_float = True
            self._advance()
            while is_digit(self.ch):
                self._advance()
        return self.source[start:self.pos], is_float

    def _read_string(self) -> Tuple[str, Tuple[int, ...]]:
        self._advance()  # opening quote
        out: List[str] = []
        braces: List[int] = []
        while self.ch not in ('"', ""):
            if self.ch == "\\":
                self._advance()
                esc = self.ch
                if esc in ESCAPES:
                    if esc == "{":
                        braces.append(len(out))
                    out.append(ESCAPES[esc])
                else:
                    out.append("\\" + esc)
            else:
                out.append(self.ch)
            self._advance()
        if self.ch == '"':
            self._advance()
        # `braces` holds piece indices; unknown escapes are two-character pieces.
        text = "".join(out)
        return text, tuple(self._char_offsets(out, braces))

    @staticmethod
    def _char_offsets(pieces: List[str], indices: List[int]) -> List[int]:
        if not indices:
            return []
        offsets = []
        pos = 0
        wanted = set(indices)
        for i, piece in enumerate(pieces):
            if i in wanted:
                offsets.append(pos)
            pos += len(piece)
        return offsets

    def _skip_whitespace(self):
        while self.ch != "" and self.ch in WHITESPACE:
            self._advance()

    def _skip_comment(self):
        while self.ch not in ("\n", ""):
            self._advance()
