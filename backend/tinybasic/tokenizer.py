"""Lazy, single-lookahead scanner for TinyBASIC program text.

The scanner never materialises a token list. It keeps a cursor (an offset
into the program text) plus the kind of the token that starts there, and
rescans exactly one token each time it advances. Token payloads (number
value, string contents, variable letter) are read directly from the text at
the cursor.

Lexical rules:

- numbers are 1-6 decimal digits; longer runs are an ERROR token
- strings run from `"` to the next `"`; an unterminated string is an ERROR
- keywords are lowercase and matched by exact prefix, before variables
- a single lowercase letter that does not start a keyword is a variable
- `rem` swallows the rest of its line, newline included
"""

from enum import Enum, auto
from typing import Optional, Tuple

from .errors import BasicSyntaxError

MAX_NUMBER_LEN = 6
MAX_STRING_LEN = 40


class TokenKind(Enum):
    END_OF_INPUT = auto()
    ERROR = auto()
    NUMBER = auto()
    STRING = auto()
    VARIABLE = auto()
    CR = auto()

    # punctuation / operators
    COMMA = auto()
    SEMICOLON = auto()
    PLUS = auto()
    MINUS = auto()
    AND = auto()
    OR = auto()
    ASTR = auto()
    SLASH = auto()
    MOD = auto()
    LEFTPAREN = auto()
    RIGHTPAREN = auto()
    HASH = auto()
    LT = auto()
    GT = auto()
    EQ = auto()

    # keywords
    LET = auto()
    PRINT = auto()
    IF = auto()
    THEN = auto()
    ELSE = auto()
    FOR = auto()
    TO = auto()
    NEXT = auto()
    GOTO = auto()
    GOSUB = auto()
    RETURN = auto()
    CALL = auto()
    REM = auto()
    PEEK = auto()
    POKE = auto()
    END = auto()


# Order matters: matching is by prefix and the first hit wins.
KEYWORDS: Tuple[Tuple[str, TokenKind], ...] = (
    ("let", TokenKind.LET),
    ("print", TokenKind.PRINT),
    ("if", TokenKind.IF),
    ("then", TokenKind.THEN),
    ("else", TokenKind.ELSE),
    ("for", TokenKind.FOR),
    ("to", TokenKind.TO),
    ("next", TokenKind.NEXT),
    ("goto", TokenKind.GOTO),
    ("gosub", TokenKind.GOSUB),
    ("return", TokenKind.RETURN),
    ("call", TokenKind.CALL),
    ("rem", TokenKind.REM),
    ("peek", TokenKind.PEEK),
    ("poke", TokenKind.POKE),
    ("end", TokenKind.END),
)

SINGLE_CHARS = {
    "\n": TokenKind.CR,
    ",": TokenKind.COMMA,
    ";": TokenKind.SEMICOLON,
    "+": TokenKind.PLUS,
    "-": TokenKind.MINUS,
    "&": TokenKind.AND,
    "|": TokenKind.OR,
    "*": TokenKind.ASTR,
    "/": TokenKind.SLASH,
    "%": TokenKind.MOD,
    "(": TokenKind.LEFTPAREN,
    "#": TokenKind.HASH,
    ")": TokenKind.RIGHTPAREN,
    "<": TokenKind.LT,
    ">": TokenKind.GT,
    "=": TokenKind.EQ,
}

_INTRA_LINE_SPACE = " \t\r"


class Scanner:
    """Cursor over immutable program text with one token of lookahead.

    Args:
        text: program source; borrowed read-only for the scanner's lifetime.
        max_number_len: longest accepted run of digits in a number literal.
    """

    def __init__(self, text: str = "", *, max_number_len: int = MAX_NUMBER_LEN):
        self.max_number_len = max_number_len
        self._text = ""
        self._pos = 0
        self._next = 0
        self._token = TokenKind.END_OF_INPUT
        # True when the last advance swallowed a `rem` comment (and its newline)
        self.comment_skipped = False
        self.init(text)

    def init(self, text: str) -> None:
        """Reset the cursor to the start of `text` and scan the first token."""
        self._text = text
        self.goto(0)

    def goto(self, position: int) -> None:
        """Resume scanning at a position previously returned by `position()`."""
        text = self._text
        while position < len(text) and text[position] in _INTRA_LINE_SPACE:
            position += 1
        self._pos = position
        self.comment_skipped = False
        self._token, self._next = self._scan(position)

    @property
    def text(self) -> str:
        return self._text

    def current(self) -> TokenKind:
        return self._token

    def position(self) -> int:
        return self._pos

    def is_finished(self) -> bool:
        return self._pos >= len(self._text) or self._token is TokenKind.END_OF_INPUT

    def at_line_end(self) -> bool:
        """True on a line terminator, at end of input, or right after a comment."""
        return self.comment_skipped or self._token in (TokenKind.CR, TokenKind.END_OF_INPUT)

    def advance(self) -> None:
        """Move past the current lexeme and scan the next token.

        A `rem` token discards the rest of its line and the scanner moves on
        to the first token of the following line.
        """
        if self.is_finished():
            return
        self.comment_skipped = False
        text = self._text
        while True:
            pos = self._next
            while pos < len(text) and text[pos] in _INTRA_LINE_SPACE:
                pos += 1
            self._pos = pos
            self._token, self._next = self._scan(pos)
            if self._token is not TokenKind.REM:
                return
            end = text.find("\n", self._next)
            self._next = len(text) if end < 0 else end + 1
            self.comment_skipped = True

    def numeric_value(self) -> int:
        """Return the value of the number literal at the cursor."""
        if self._token is not TokenKind.NUMBER:
            raise BasicSyntaxError(f"Expected a number, found {self.describe()}")
        return int(self._text[self._pos:self._next])

    def string_contents(self, max_len: int = MAX_STRING_LEN) -> str:
        """Return the payload of the string literal at the cursor, truncated to `max_len`."""
        if self._token is not TokenKind.STRING:
            return ""
        return self._text[self._pos + 1:self._next - 1][:max_len]

    def variable_index(self) -> int:
        """Return 0-25 for the variable letter at the cursor."""
        return ord(self._text[self._pos]) - ord("a")

    def lexeme(self) -> str:
        return self._text[self._pos:self._next]

    def column(self) -> int:
        """1-based column of the cursor within its text line."""
        return self._pos - self._text.rfind("\n", 0, self._pos)

    def describe(self) -> str:
        if self._token is TokenKind.END_OF_INPUT:
            return "end of input"
        if self._token is TokenKind.CR:
            return "end of line"
        return repr(self.lexeme())

    # --- internals -----------------------------------------------------
    def _scan(self, pos: int) -> Tuple[TokenKind, int]:
        """Classify the lexeme starting at `pos`; return (kind, end offset)."""
        text = self._text
        if pos >= len(text):
            return TokenKind.END_OF_INPUT, pos
        ch = text[pos]

        if "0" <= ch <= "9":
            end = pos
            while end < len(text) and "0" <= text[end] <= "9":
                end += 1
            if end - pos > self.max_number_len:
                return TokenKind.ERROR, end
            return TokenKind.NUMBER, end

        kind = SINGLE_CHARS.get(ch)
        if kind is not None:
            return kind, pos + 1

        if ch == '"':
            close = text.find('"', pos + 1)
            if close < 0:
                return TokenKind.ERROR, len(text)
            return TokenKind.STRING, close + 1

        keyword = self._match_keyword(pos)
        if keyword is not None:
            return keyword

        if "a" <= ch <= "z":
            return TokenKind.VARIABLE, pos + 1
        return TokenKind.ERROR, pos + 1

    def _match_keyword(self, pos: int) -> Optional[Tuple[TokenKind, int]]:
        for word, kind in KEYWORDS:
            if self._text.startswith(word, pos):
                return kind, pos + len(word)
        return None
