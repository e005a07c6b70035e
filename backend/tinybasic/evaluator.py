"""Recursive-descent integer expression evaluator.

Grammar, tightest binding first::

    factor   := number | "(" expr ")" | variable
    term     := factor (("*" | "/" | "%") factor)*
    expr     := term (("+" | "-" | "&" | "|") term)*
    relation := expr (("<" | ">" | "=") expr)*

All operators are left-associative and evaluated eagerly as tokens are
consumed; nothing short-circuits. `&` and `|` are bitwise. Relations yield
1 or 0. Division truncates toward zero and modulo takes the sign of the
dividend; both raise `DivisionByZeroError` on a zero divisor. Every result
is wrapped to signed 32 bits.
"""

from .errors import (
    BasicSyntaxError,
    DivisionByZeroError,
    LexicalError,
    NestingDepthError,
)
from .state import VariableStore, wrap32
from .tokenizer import Scanner, TokenKind

MAX_EXPR_DEPTH = 32

_TERM_OPS = (TokenKind.ASTR, TokenKind.SLASH, TokenKind.MOD)
_EXPR_OPS = (TokenKind.PLUS, TokenKind.MINUS, TokenKind.AND, TokenKind.OR)
_RELATION_OPS = (TokenKind.LT, TokenKind.GT, TokenKind.EQ)


def accept(scanner: Scanner, kind: TokenKind) -> None:
    """Consume a token of `kind` or raise.

    An ERROR token at the cursor is reported as a lexical error, any other
    mismatch as a syntax error.
    """
    token = scanner.current()
    if token is kind:
        scanner.advance()
        return
    if token is TokenKind.ERROR:
        raise LexicalError(f"Invalid token {scanner.describe()}", column=scanner.column())
    raise BasicSyntaxError(
        f"Unexpected token: expected {kind.name.lower()}, found {scanner.describe()}",
        column=scanner.column(),
    )


def c_div(a: int, b: int) -> int:
    if b == 0:
        raise DivisionByZeroError("Division by zero", hint="Guard the divisor with an if statement.")
    q = abs(a) // abs(b)
    return q if (a < 0) == (b < 0) else -q


def c_mod(a: int, b: int) -> int:
    if b == 0:
        raise DivisionByZeroError("Modulo by zero", hint="Guard the divisor with an if statement.")
    return a - b * c_div(a, b)


class ExpressionEvaluator:
    """Evaluate expressions straight off a scanner's token stream.

    Args:
        scanner: token source; consumed as the expression is evaluated.
        variables: store used to resolve variable factors.
        max_depth: maximum parenthesis nesting before `NestingDepthError`.
    """

    def __init__(self, scanner: Scanner, variables: VariableStore, max_depth: int = MAX_EXPR_DEPTH):
        self.scanner = scanner
        self.variables = variables
        self.max_depth = max_depth
        self._depth = 0

    def reset(self) -> None:
        self._depth = 0

    def factor(self) -> int:
        scanner = self.scanner
        token = scanner.current()
        if token is TokenKind.NUMBER:
            value = scanner.numeric_value()
            accept(scanner, TokenKind.NUMBER)
            return wrap32(value)
        if token is TokenKind.LEFTPAREN:
            if self._depth >= self.max_depth:
                raise NestingDepthError(
                    f"Parentheses nested deeper than {self.max_depth}",
                    column=scanner.column(),
                )
            accept(scanner, TokenKind.LEFTPAREN)
            self._depth += 1
            try:
                value = self.expr()
            finally:
                self._depth -= 1
            accept(scanner, TokenKind.RIGHTPAREN)
            return value
        return self.varfactor()

    def varfactor(self) -> int:
        scanner = self.scanner
        if scanner.current() is not TokenKind.VARIABLE:
            # reuse accept() for the error message
            accept(scanner, TokenKind.VARIABLE)
        value = self.variables.get(scanner.variable_index())
        accept(scanner, TokenKind.VARIABLE)
        return value

    def term(self) -> int:
        f1 = self.factor()
        op = self.scanner.current()
        while op in _TERM_OPS:
            self.scanner.advance()
            f2 = self.factor()
            if op is TokenKind.ASTR:
                f1 = wrap32(f1 * f2)
            elif op is TokenKind.SLASH:
                f1 = wrap32(c_div(f1, f2))
            else:
                f1 = wrap32(c_mod(f1, f2))
            op = self.scanner.current()
        return f1

    def expr(self) -> int:
        t1 = self.term()
        op = self.scanner.current()
        while op in _EXPR_OPS:
            self.scanner.advance()
            t2 = self.term()
            if op is TokenKind.PLUS:
                t1 = wrap32(t1 + t2)
            elif op is TokenKind.MINUS:
                t1 = wrap32(t1 - t2)
            elif op is TokenKind.AND:
                t1 = t1 & t2
            else:
                t1 = t1 | t2
            op = self.scanner.current()
        return t1

    def relation(self) -> int:
        r1 = self.expr()
        op = self.scanner.current()
        while op in _RELATION_OPS:
            self.scanner.advance()
            r2 = self.expr()
            if op is TokenKind.LT:
                r1 = int(r1 < r2)
            elif op is TokenKind.GT:
                r1 = int(r1 > r2)
            else:
                r1 = int(r1 == r2)
            op = self.scanner.current()
        return r1
