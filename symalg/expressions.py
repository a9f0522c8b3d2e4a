"""
Expression model for symalg.

Expressions are immutable trees. Every node can report its children,
rebuild itself over new children, substitute variables and compute its
constant value when it has no free variables.

Equality is structural: two expressions are equal iff their canonical
s-expression strings are identical.

    (+ x (* 2 y))      SumExpressionList(x, ProductExpressionList(2, y))
    (^ x 2)            PowerExpression(x, 2)
    (dd (^ x 2) x)     DifferentiationExpression((^ x 2), x)
    ∞                  InfinityExpression()

Construction:
    from symalg import E, variable

    x, y = E.vars("x", "y")
    expr = 2 * x + 3 * y          # (+ (* 2 x) (* 3 y))
    expr = E.sum(x, E.neg(y))     # (+ x (* -1 y))
"""

import math
from typing import Any, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from .cancellation import CancellationToken
from .errors import InvalidExpressionError

NumericType = Union[int, float]
ExprLike = Union['AlgebraExpression', int, float, str]

INFINITY_SYMBOL = "∞"


class AlgebraExpression:
    """
    Base class of all expressions.

    Subclasses implement children(), with_children(), get_constant_value()
    and _format(). Everything else (substitution, traversal, equality,
    operators) is derived from those.
    """

    __slots__ = ('_canonical',)

    def __init__(self):
        self._canonical: Optional[str] = None

    # ------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------

    def children(self) -> Tuple['AlgebraExpression', ...]:
        """Direct subexpressions, in order, not including self."""
        return ()

    def with_children(self, children: Sequence['AlgebraExpression']) -> 'AlgebraExpression':
        """Return a copy of this node over new children."""
        return self

    def get_constant_value(
        self, cancellation_token: Optional[CancellationToken] = None
    ) -> Optional[NumericType]:
        """Numeric value of the expression, or None if it has free variables."""
        raise NotImplementedError

    def _format(self) -> str:
        raise NotImplementedError

    def substitute(self, variable: 'Variable', replacement: ExprLike) -> 'AlgebraExpression':
        """
        Replace every occurrence of variable by replacement.

        Returns self when nothing changed.

        Raises:
            InvalidExpressionError: If variable is not a Variable
        """
        if not isinstance(variable, Variable):
            raise InvalidExpressionError(
                f"substitution target must be a Variable, got {variable!r}"
            )
        return self._substitute(variable, as_expression(replacement))

    def _substitute(self, variable: 'Variable', replacement: 'AlgebraExpression') -> 'AlgebraExpression':
        if self == variable:
            return replacement
        children = self.children()
        if not children:
            return self
        new_children = [c._substitute(variable, replacement) for c in children]
        if all(new is old for new, old in zip(new_children, children)):
            return self
        return self.with_children(new_children)

    def descendants(self) -> Iterator['AlgebraExpression']:
        """All subexpressions, depth-first, not including self."""
        for child in self.children():
            yield from child.descendants_and_self()

    def descendants_and_self(self) -> Iterator['AlgebraExpression']:
        yield self
        yield from self.descendants()

    def is_infinity(self) -> bool:
        """True if any descendant-or-self is InfinityExpression."""
        return any(isinstance(e, InfinityExpression) for e in self.descendants_and_self())

    def is_constant(self, respect_to: 'Variable') -> bool:
        """True if respect_to does not occur in the expression."""
        return respect_to not in self.descendants_and_self()

    def simplify(self, cancellation_token: Optional[CancellationToken] = None) -> 'AlgebraExpression':
        """Simplify with the default simplifier registry."""
        from .engine import simplify
        return simplify(self, cancellation_token)

    def to_sexpr(self) -> Any:
        """
        Export as nested lists.

        Example:
            (2 * x + y).to_sexpr() -> ["+", ["*", 2, "x"], "y"]
        """
        raise NotImplementedError

    # ------------------------------------------------------------
    # Equality
    # ------------------------------------------------------------

    def canonical(self) -> str:
        """The canonical s-expression string used for equality and hashing."""
        if self._canonical is None:
            self._canonical = self._format()
        return self._canonical

    def __eq__(self, other):
        if not isinstance(other, AlgebraExpression):
            return NotImplemented
        return self is other or self.canonical() == other.canonical()

    def __hash__(self) -> int:
        return hash(self.canonical())

    def __str__(self) -> str:
        return self.canonical()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.canonical()})"

    # ------------------------------------------------------------
    # Operators
    # ------------------------------------------------------------

    def __add__(self, other):
        return add(self, other)

    def __radd__(self, other):
        return add(other, self)

    def __sub__(self, other):
        return subtract(self, other)

    def __rsub__(self, other):
        return subtract(other, self)

    def __mul__(self, other):
        return multiply(self, other)

    def __rmul__(self, other):
        return multiply(other, self)

    def __truediv__(self, other):
        return divide(self, other)

    def __rtruediv__(self, other):
        return divide(other, self)

    def __pow__(self, other):
        return exponentiate(self, other)

    def __rpow__(self, other):
        return exponentiate(other, self)

    def __neg__(self):
        return negate(self)


# ============================================================
# Leaves
# ============================================================

class Constant(AlgebraExpression):
    """A numeric literal."""

    __slots__ = ('_value',)

    def __init__(self, value: NumericType):
        super().__init__()
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidExpressionError(f"constant value must be int or float, got {value!r}")
        self._value = value

    @property
    def value(self) -> NumericType:
        return self._value

    def get_constant_value(self, cancellation_token=None):
        return self._value

    def _format(self) -> str:
        return repr(self._value)

    def to_sexpr(self):
        return self._value


class Variable(AlgebraExpression):
    """A named symbol. Two variables are the same iff their names are."""

    __slots__ = ('_name',)

    def __init__(self, name: str):
        super().__init__()
        _check_name(name)
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def get_constant_value(self, cancellation_token=None):
        return None

    def _format(self) -> str:
        return self._name

    def to_sexpr(self):
        return self._name


class InfinityExpression(AlgebraExpression):
    """Unbounded value."""

    __slots__ = ()

    def get_constant_value(self, cancellation_token=None):
        return math.inf

    def _format(self) -> str:
        return INFINITY_SYMBOL

    def to_sexpr(self):
        return INFINITY_SYMBOL


def _check_name(name: Any) -> None:
    if not isinstance(name, str) or not name:
        raise InvalidExpressionError(f"variable name must be a non-empty string, got {name!r}")
    if any(c.isspace() or c in "()" for c in name) or name == INFINITY_SYMBOL:
        raise InvalidExpressionError(f"invalid variable name: {name!r}")
    try:
        float(name)
    except ValueError:
        return
    raise InvalidExpressionError(f"variable name looks like a number: {name!r}")


# ============================================================
# Compound nodes
# ============================================================

class _ExpressionList(AlgebraExpression):
    """Shared behavior of sums and products: a flat, ordered term list."""

    __slots__ = ('_terms',)

    operator = ""

    def __init__(self, terms: Iterable[ExprLike] = ()):
        super().__init__()
        flat: List[AlgebraExpression] = []
        for term in terms:
            term = as_expression(term)
            if type(term) is type(self):
                flat.extend(term.terms)
            else:
                flat.append(term)
        self._terms = tuple(flat)

    @property
    def terms(self) -> Tuple[AlgebraExpression, ...]:
        return self._terms

    def with_terms(self, terms: Iterable[ExprLike]) -> '_ExpressionList':
        """Return a copy with a different term sequence."""
        return type(self)(terms)

    def children(self):
        return self._terms

    def with_children(self, children):
        return self.with_terms(children)

    def _constant_values(self, cancellation_token) -> Optional[List[NumericType]]:
        values = []
        for term in self._terms:
            if cancellation_token is not None:
                cancellation_token.raise_if_cancellation_requested()
            value = term.get_constant_value(cancellation_token)
            if value is None:
                return None
            values.append(value)
        return values

    def _format(self) -> str:
        return "(" + " ".join([self.operator] + [t.canonical() for t in self._terms]) + ")"

    def to_sexpr(self):
        return [self.operator] + [t.to_sexpr() for t in self._terms]


class SumExpressionList(_ExpressionList):
    """Sum of its terms."""

    __slots__ = ()

    operator = "+"

    def get_constant_value(self, cancellation_token=None):
        values = self._constant_values(cancellation_token)
        if values is None:
            return None
        result = 0
        for value in values:
            result = result + value
        return result


class ProductExpressionList(_ExpressionList):
    """Product of its factors."""

    __slots__ = ()

    operator = "*"

    def get_constant_value(self, cancellation_token=None):
        values = self._constant_values(cancellation_token)
        if values is None:
            return None
        result = 1
        for value in values:
            result = result * value
        return result


class PowerExpression(AlgebraExpression):
    """base raised to exponent."""

    __slots__ = ('_base', '_exponent')

    def __init__(self, base: ExprLike, exponent: ExprLike):
        super().__init__()
        self._base = as_expression(base)
        self._exponent = as_expression(exponent)

    @property
    def base(self) -> AlgebraExpression:
        return self._base

    @property
    def exponent(self) -> AlgebraExpression:
        return self._exponent

    def children(self):
        return (self._base, self._exponent)

    def with_children(self, children):
        base, exponent = children
        return PowerExpression(base, exponent)

    def get_constant_value(self, cancellation_token=None):
        if cancellation_token is not None:
            cancellation_token.raise_if_cancellation_requested()
        base = self._base.get_constant_value(cancellation_token)
        if base is None:
            return None
        exponent = self._exponent.get_constant_value(cancellation_token)
        if exponent is None:
            return None
        return _power(base, exponent)

    def _format(self) -> str:
        return f"(^ {self._base.canonical()} {self._exponent.canonical()})"

    def to_sexpr(self):
        return ["^", self._base.to_sexpr(), self._exponent.to_sexpr()]


def _power(base: NumericType, exponent: NumericType) -> NumericType:
    """base ** exponent with float semantics instead of exceptions."""
    try:
        result = base ** exponent
    except ZeroDivisionError:
        return math.inf
    except OverflowError:
        return math.inf
    if isinstance(result, complex):
        return math.nan
    return result


class DifferentiationExpression(AlgebraExpression):
    """
    Derivative of expression with respect to a variable.

    Only the inner expression is a child; the variable is a parameter of
    the node.
    """

    __slots__ = ('_expression', '_respect_to')

    def __init__(self, expression: ExprLike, respect_to: Union['Variable', str]):
        super().__init__()
        respect_to = as_expression(respect_to)
        if not isinstance(respect_to, Variable):
            raise InvalidExpressionError(
                f"differentiation variable must be a Variable, got {respect_to!r}"
            )
        self._expression = as_expression(expression)
        self._respect_to = respect_to

    @property
    def expression(self) -> AlgebraExpression:
        return self._expression

    @property
    def respect_to(self) -> Variable:
        return self._respect_to

    def with_expression(self, expression: ExprLike) -> 'DifferentiationExpression':
        """Return a copy over a different inner expression."""
        return DifferentiationExpression(expression, self._respect_to)

    def children(self):
        return (self._expression,)

    def with_children(self, children):
        (expression,) = children
        return self.with_expression(expression)

    def get_constant_value(self, cancellation_token=None):
        if cancellation_token is not None:
            cancellation_token.raise_if_cancellation_requested()
        if self._expression.get_constant_value(cancellation_token) is not None:
            return 0
        return None

    def _format(self) -> str:
        return f"(dd {self._expression.canonical()} {self._respect_to.canonical()})"

    def to_sexpr(self):
        return ["dd", self._expression.to_sexpr(), self._respect_to.to_sexpr()]


# ============================================================
# Traversal helpers
# ============================================================

def descendants(expression: AlgebraExpression) -> Iterator[AlgebraExpression]:
    return expression.descendants()


def descendants_and_self(expression: AlgebraExpression) -> Iterator[AlgebraExpression]:
    return expression.descendants_and_self()


def substitute(expression: ExprLike, variable: Union[Variable, str],
               replacement: ExprLike) -> AlgebraExpression:
    """
    Replace every occurrence of variable in expression.

    Example:
        substitute(x + 2 * x, "x", 3) -> (+ 3 (* 2 3))
    """
    if isinstance(variable, str):
        variable = Variable(variable)
    return as_expression(expression).substitute(variable, replacement)


# ============================================================
# Construction API
# ============================================================

def as_expression(value: ExprLike) -> AlgebraExpression:
    """
    Coerce a literal to an expression.

    Numbers become Constant, strings become Variable, expressions pass
    through unchanged.

    Raises:
        InvalidExpressionError: For any other type
    """
    if isinstance(value, AlgebraExpression):
        return value
    if isinstance(value, str):
        return Variable(value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return Constant(value)
    raise InvalidExpressionError(f"cannot convert {value!r} to an expression")


def constant(value: NumericType) -> Constant:
    return Constant(value)


def variable(name: str) -> Variable:
    return Variable(name)


def infinity() -> InfinityExpression:
    return InfinityExpression()


def sum_of(*terms: ExprLike) -> SumExpressionList:
    """Sum of any number of terms; nested sums are flattened."""
    return SumExpressionList(terms)


def product_of(*factors: ExprLike) -> ProductExpressionList:
    """Product of any number of factors; nested products are flattened."""
    return ProductExpressionList(factors)


def add(left: ExprLike, right: ExprLike) -> SumExpressionList:
    return SumExpressionList([left, right])


def subtract(left: ExprLike, right: ExprLike) -> SumExpressionList:
    return SumExpressionList([left, negate(right)])


def multiply(left: ExprLike, right: ExprLike) -> ProductExpressionList:
    return ProductExpressionList([left, right])


def divide(left: ExprLike, right: ExprLike) -> ProductExpressionList:
    return ProductExpressionList([left, PowerExpression(right, -1)])


def exponentiate(base: ExprLike, exponent: ExprLike) -> PowerExpression:
    return PowerExpression(base, exponent)


def negate(expression: ExprLike) -> ProductExpressionList:
    return ProductExpressionList([-1, expression])


def differentiate(expression: ExprLike, respect_to: Union[Variable, str]) -> DifferentiationExpression:
    return DifferentiationExpression(expression, respect_to)


class _ExprBuilder:
    """
    Expression builder for symalg.

    Examples:
        from symalg import E

        E(2)                        -> Constant 2
        E("x")                      -> Variable x
        x, y = E.vars("x", "y")
        E.sum(x, E.product(2, y))   -> (+ x (* 2 y))
        E.power(x, 2)               -> (^ x 2)
        E.dd(E.power(x, 2), x)      -> (dd (^ x 2) x)
    """

    def __call__(self, value: ExprLike) -> AlgebraExpression:
        """Coerce a number, name or expression."""
        return as_expression(value)

    def const(self, value: NumericType) -> Constant:
        return Constant(value)

    def var(self, name: str) -> Variable:
        return Variable(name)

    def vars(self, *names: str) -> Tuple[Variable, ...]:
        """
        Create multiple variables for unpacking.

        Example:
            x, y, z = E.vars("x", "y", "z")
        """
        return tuple(Variable(name) for name in names)

    def sum(self, *terms: ExprLike) -> SumExpressionList:
        return sum_of(*terms)

    def product(self, *factors: ExprLike) -> ProductExpressionList:
        return product_of(*factors)

    def power(self, base: ExprLike, exponent: ExprLike) -> PowerExpression:
        return exponentiate(base, exponent)

    def neg(self, expression: ExprLike) -> ProductExpressionList:
        return negate(expression)

    def dd(self, expression: ExprLike, respect_to: Union[Variable, str]) -> DifferentiationExpression:
        return differentiate(expression, respect_to)

    def inf(self) -> InfinityExpression:
        return InfinityExpression()

    def __repr__(self) -> str:
        return "E (expression builder)"


# Singleton instance
E = _ExprBuilder()
