import pytest

from pearl.pearl_lexer import Lexer, RegexSyntaxError
from pearl.pearl_tokens import TokenType, lookup_ident


def kinds(source):
    return [tok.type for tok in Lexer(source).tokenize()]


def test_let_statement_tokens():
    tokens = Lexer("let x = 5 + 10;").tokenize()
    assert [t.type for t in tokens] == [
        TokenType.LET, TokenType.IDENT, TokenType.ASSIGN, TokenType.INT,
        TokenType.PLUS, TokenType.INT, TokenType.SEMICOLON, TokenType.EOF,
    ]
    assert [t.literal for t in tokens[:-1]] == ["let", "x", "=", "5", "+", "10", ";"]


def test_two_character_operators():
    assert kinds("== != <= >= ++ |> .. !~ =>") == [
        TokenType.EQ, TokenType.NOT_EQ, TokenType.LTE, TokenType.GTE,
        TokenType.CONCAT, TokenType.PIPE, TokenType.RANGE, TokenType.NOTMATCH,
        TokenType.ARROW, TokenType.EOF,
    ]


def test_single_character_operators_and_delimiters():
    assert kinds("= + - ! * / % < > ~ , : ; ( ) { } [ ]") == [
        TokenType.ASSIGN, TokenType.PLUS, TokenType.MINUS, TokenType.BANG,
        TokenType.ASTERISK, TokenType.SLASH, TokenType.PERCENT, TokenType.LT,
        TokenType.GT, TokenType.MATCH, TokenType.COMMA, TokenType.COLON,
        TokenType.SEMICOLON, TokenType.LPAREN, TokenType.RPAREN, TokenType.LBRACE,
        TokenType.RBRACE, TokenType.LBRACKET, TokenType.RBRACKET, TokenType.EOF,
    ]


def test_numbers_and_ranges():
    tokens = Lexer("3.14 1..5").tokenize()
    assert [(t.type, t.literal) for t in tokens[:-1]] == [
        (TokenType.FLOAT, "3.14"),
        (TokenType.INT, "1"),
        (TokenType.RANGE, ".."),
        (TokenType.INT, "5"),
    ]


@pytest.mark.parametrize("word, expected", [
    ("fn", TokenType.FN),
    ("let", TokenType.LET),
    ("while", TokenType.WHILE),
    ("and", TokenType.AND),
    ("not", TokenType.NOT),
    ("null", TokenType.NULL),
    ("try", TokenType.TRY),
    ("catch", TokenType.CATCH),
    ("match", TokenType.IDENT),
    ("letter", TokenType.IDENT),
])
def test_keyword_lookup(word, expected):
    assert lookup_ident(word) is expected


def test_newlines_are_tokens_and_comments_are_skipped():
    assert kinds("x # trailing comment\ny") == [
        TokenType.IDENT, TokenType.NEWLINE, TokenType.IDENT, TokenType.EOF,
    ]


def test_token_positions():
    tokens = Lexer("let x\n  y").tokenize()
    y = tokens[3]
    assert y.literal == "y"
    assert (y.line, y.col, y.offset) == (2, 3, 8)


def test_string_escapes():
    tok = Lexer(r'"a\nb\t\"q\"\\"').next_token()
    assert tok.type is TokenType.STRING
    assert tok.literal == 'a\nb\t"q"\\'


def test_unknown_escape_is_kept_verbatim():
    tok = Lexer(r'"\d+"').next_token()
    assert tok.literal == "\\d+"


def test_escaped_brace_positions_are_recorded():
    tok = Lexer(r'"ab\{x} {y}"').next_token()
    assert tok.literal == "ab{x} {y}"
    assert tok.literal_braces == (2,)


def test_illegal_character():
    tok = Lexer("@").next_token()
    assert tok.type is TokenType.ILLEGAL
    assert tok.literal == "@"


def test_read_regex_after_opening_slash():
    lexer = Lexer(r"a\/b+/ rest")
    assert lexer.read_regex() == r"a\/b+"
    tok = lexer.next_token()
    assert (tok.type, tok.literal) == (TokenType.IDENT, "rest")


def test_read_regex_from_start_skips_blanks():
    lexer = Lexer("  /x+/")
    assert lexer.read_regex_from_start() == "x+"
    assert lexer.next_token().type is TokenType.EOF


def test_unterminated_regex_raises():
    with pytest.raises(RegexSyntaxError) as excinfo:
        Lexer("abc").read_regex()
    assert excinfo.value.msg == "unterminated regex"


def test_regex_must_start_with_slash():
    with pytest.raises(RegexSyntaxError):
        Lexer('"abc"').read_regex_from_start()


def test_seek_recomputes_position():
    lexer = Lexer("a\nbc d")
    lexer.seek(5)
    tok = lexer.next_token()
    assert (tok.literal, tok.line, tok.col) == ("d", 2, 4)
