"""Expression evaluator tests: precedence, integer semantics and error cases."""

import pytest

from backend.tinybasic.errors import (
    BasicSyntaxError,
    DivisionByZeroError,
    LexicalError,
    NestingDepthError,
)
from backend.tinybasic.evaluator import ExpressionEvaluator
from backend.tinybasic.state import VariableStore
from backend.tinybasic.tokenizer import Scanner, TokenKind


def evaluate(text, max_depth=32, **variables):
    store = VariableStore()
    for name, value in variables.items():
        store.set(name, value)
    ev = ExpressionEvaluator(Scanner(text), store, max_depth)
    return ev.relation()


@pytest.mark.parametrize(
    "text,expected",
    [
        ("2+3*4", 14),
        ("(2+3)*4", 20),
        ("10%3", 1),
        ("10/3", 3),
        ("7-2-1", 4),
        ("100/10/5", 2),
        ("6&3", 2),
        ("6|3", 7),
        ("1+2&3", 3),
        ("2*(3+(4-1))", 12),
    ],
)
def test_arithmetic(text, expected):
    assert evaluate(text) == expected


def test_relations_yield_one_or_zero():
    assert evaluate("3<5") == 1
    assert evaluate("5<3") == 0
    assert evaluate("2=2") == 1
    assert evaluate("4>1+2") == 1


def test_relations_chain_left_to_right():
    # (1<2) -> 1, then 1<3
    assert evaluate("1<2<3") == 1
    # (3>2) -> 1, then 1>1
    assert evaluate("3>2>1") == 0


def test_variables_resolve_and_default_to_zero():
    assert evaluate("a*b", a=6, b=7) == 42
    assert evaluate("q+1") == 1


def test_division_truncates_toward_zero():
    assert evaluate("a/2", a=-7) == -3
    assert evaluate("a%2", a=-7) == -1
    assert evaluate("7/b", b=-2) == -3


def test_results_wrap_to_32_bits():
    assert evaluate("a*2", a=2147483647) == -2
    assert evaluate("a+1", a=2147483647) == -2147483648


def test_division_by_zero_is_an_error():
    with pytest.raises(DivisionByZeroError):
        evaluate("1/0")
    with pytest.raises(DivisionByZeroError):
        evaluate("5%a")


def test_nesting_depth_cap():
    assert evaluate("(" * 32 + "1" + ")" * 32) == 1
    with pytest.raises(NestingDepthError):
        evaluate("(" * 33 + "1" + ")" * 33)


def test_incomplete_expression_is_syntax_error():
    with pytest.raises(BasicSyntaxError):
        evaluate("2+")
    with pytest.raises(BasicSyntaxError):
        evaluate("(1+2")


def test_error_token_is_lexical_error():
    with pytest.raises(LexicalError):
        evaluate("2+@")
    with pytest.raises(LexicalError):
        evaluate("1234567+1")


def test_evaluation_stops_at_foreign_token():
    s = Scanner("1+2 then")
    ev = ExpressionEvaluator(s, VariableStore())
    assert ev.expr() == 3
    assert s.current() is TokenKind.THEN
