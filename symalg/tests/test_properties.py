"""Property tests over a corpus of expressions: idempotence, canonicity, substitution."""

import pytest
from symalg import E, Variable, simplify, substitute

x, y, z = E.vars("x", "y", "z")

EXPRESSIONS = [
    x,
    E.const(3),
    E.inf(),
    2 * x + 3 * x,
    x + 2 * x + y,
    1 * x,
    2 * x + 3 * y,
    5 + 2 * x,
    x - x,
    y + x + 2 * y + 7,
    x * y * 2 + 3 * x * y + y * x,
    (x + x) * (y + y + y),
    x ** 2 + 3 * x ** 2 - x / 2,
    E.dd(x + 2 * x + y, x),
    E.dd(E.dd(1 * x + x, x), y) + 4 * E.dd(E.dd(1 * x + x, x), y),
    E.sum(E.sum(E.product(1, x)), E.product(1, 1, y)),
    0.5 * x + 0.5 * x + z ** (y + y),
    x + E.inf() + 2 * x,
]


@pytest.mark.parametrize("expr", EXPRESSIONS, ids=str)
def test_idempotence(expr):
    """simplify(simplify(e)) == simplify(e)."""
    once = simplify(expr)
    assert simplify(once) == once


@pytest.mark.parametrize("expr", EXPRESSIONS, ids=str)
def test_simplify_does_not_mutate(expr):
    """The input tree keeps its canonical form."""
    before = str(expr)
    simplify(expr)
    assert str(expr) == before


@pytest.mark.parametrize("expr", EXPRESSIONS, ids=str)
def test_equality_canonicity(expr):
    """e == e, and equal trees hash alike."""
    assert expr == expr
    copy = expr.with_children(expr.children())
    assert copy == expr
    assert hash(copy) == hash(expr)


@pytest.mark.parametrize("expr", EXPRESSIONS, ids=str)
def test_substitution_removes_variable(expr):
    """After substitution the variable only appears through the replacement."""
    result = substitute(expr, x, y + 1)
    assert Variable("x") not in list(result.descendants_and_self())


@pytest.mark.parametrize("expr", EXPRESSIONS, ids=str)
def test_substitution_with_self_reference(expr):
    """A replacement containing the variable is not substituted again."""
    result = substitute(expr, x, x + 1)
    count_before = sum(1 for e in expr.descendants_and_self() if e == x)
    count_after = sum(1 for e in result.descendants_and_self() if e == x)
    assert count_after == count_before
