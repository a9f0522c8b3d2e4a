"""
Rewrite rules for symalg.

Each rule is a Simplifier bound to one or more expression shapes. The
standard sets below play the part of ready-made rule collections:

    STANDARD_SIMPLIFIERS    - everything in this module
    COLLECTION_SIMPLIFIERS  - coefficient collection in sums only
    NO_SIMPLIFIERS          - empty (simplify() only rebuilds the tree)

Custom sets are plain lists:

    registry = SimplifierRegistry([*COLLECTION_SIMPLIFIERS, MyPowerSimplifier()])
"""

from typing import Callable, Dict, List, Optional

from .cancellation import CancellationToken
from .engine import Simplifier, simplify as _default_simplify
from .expressions import (
    AlgebraExpression, Constant, DifferentiationExpression,
    NumericType, ProductExpressionList, SumExpressionList, multiply,
)

SimplifyFunc = Callable[[AlgebraExpression, CancellationToken], AlgebraExpression]


class MultiplicationByOneSimplifier(Simplifier):
    """Drops factors equal to one from a product."""

    shapes = (ProductExpressionList,)
    name = "multiplication-by-one"
    description = "1 * x = x"

    def simplify(self, expression, cancellation_token):
        factors = [f for f in expression.terms if f.get_constant_value(cancellation_token) != 1]
        if len(factors) == len(expression.terms):
            return expression
        if not factors:
            return Constant(1)
        if len(factors) == 1:
            return factors[0]
        return expression.with_terms(factors)


class UnwrapSingletonSimplifier(Simplifier):
    """A sum or product of exactly one term is that term."""

    shapes = (SumExpressionList, ProductExpressionList)
    name = "unwrap-singleton"
    description = "(+ x) = x, (* x) = x"

    def simplify(self, expression, cancellation_token):
        if len(expression.terms) == 1:
            return expression.terms[0]
        return expression


class GenericDifferentiationSimplifier(Simplifier):
    """
    Simplifies the expression under a differentiation node.

    No differentiation is performed here: the node keeps its shape and
    variable, and only its inner expression is normalized.

    Inside a registry the inner expression is simplified by that registry.
    During a bottom-up pass it has already been, so the node is returned
    as is. Called on its own, the rule uses ``simplify`` (the default
    registry unless another function is given).
    """

    shapes = (DifferentiationExpression,)
    name = "differentiation-inner"
    description = "dd(e, v) = dd(simplify(e), v)"

    def __init__(self, simplify: Optional[SimplifyFunc] = None):
        self._simplify = simplify

    def simplify(self, expression, cancellation_token):
        simplify = self._simplify or _default_simplify
        return expression.with_expression(
            simplify(expression.expression, cancellation_token)
        )

    def simplify_node(self, expression, cancellation_token, registry,
                      trace=None, children_normalized=False):
        if self._simplify is not None:
            return self.simplify(expression, cancellation_token)
        if children_normalized:
            return expression
        return expression.with_expression(
            registry.normalize(expression.expression, cancellation_token, trace)
        )


class CollectCoefficientsInSumSimplifier(Simplifier):
    """
    Collects like terms in a sum.

    Terms that differ only by their numeric coefficient are merged into a
    single term carrying the summed coefficient:

        (+ (* 2 x) (* 3 x))   => (* 5 x)
        (+ x (* 2 x) y)       => (+ (* 3 x) y)
        (+ 5 (* 2 x))         => (+ (* 2 x) 5)

    Constant terms are left alone. Keys are compared structurally, so
    (* 2 x y) and (* 3 y x) are not like terms.

    The merged coefficient adds up every constant factor of every member,
    a member without constant factors counting as 1, so (* 2 3 x) + x
    gives (* 6 x). With ``multiply_constant_factors`` each member's
    constant factors are multiplied first, which gives (* 7 x).
    """

    shapes = (SumExpressionList,)
    name = "collect-coefficients"
    description = "a*k + b*k = (a+b)*k"

    _multiplication_by_one = MultiplicationByOneSimplifier()

    def __init__(self, multiply_constant_factors: bool = False):
        self.multiply_constant_factors = multiply_constant_factors

    def simplify(self, expression, cancellation_token):
        # key -> indices of the sum's terms with that key, first-occurrence order
        groups: Dict[ProductExpressionList, List[int]] = {}
        products: Dict[int, ProductExpressionList] = {}
        for index, term in enumerate(expression.terms):
            cancellation_token.raise_if_cancellation_requested()
            if term.get_constant_value(cancellation_token) is not None:
                continue
            product = _as_product(term)
            key = product.with_terms(
                [f for f in product.terms if f.get_constant_value(cancellation_token) is None]
            )
            if not key.terms:
                continue
            products[index] = product
            groups.setdefault(key, []).append(index)

        if not groups:
            return expression

        merged = []
        for key, members in groups.items():
            cancellation_token.raise_if_cancellation_requested()
            coefficient = 0
            for index in members:
                coefficient = coefficient + self._coefficient(products[index], cancellation_token)
            term = multiply(coefficient, _normalize(key))
            merged.append(self._multiplication_by_one.simplify(term, cancellation_token))

        grouped = {index for members in groups.values() for index in members}
        new_terms = merged + [t for i, t in enumerate(expression.terms) if i not in grouped]

        if len(new_terms) == 1:
            return new_terms[0]
        return expression.with_terms(new_terms)

    def _coefficient(self, product: ProductExpressionList,
                     cancellation_token: CancellationToken) -> NumericType:
        """A member's contribution to the merged coefficient."""
        values = [v for v in (f.get_constant_value(cancellation_token) for f in product.terms)
                  if v is not None]
        if not values:
            return 1
        if self.multiply_constant_factors:
            result = 1
            for value in values:
                result = result * value
            return result
        return sum(values)


def _as_product(expression: AlgebraExpression) -> ProductExpressionList:
    if isinstance(expression, ProductExpressionList):
        return expression
    return ProductExpressionList([expression])


def _normalize(key: ProductExpressionList) -> AlgebraExpression:
    if len(key.terms) == 1:
        return key.terms[0]
    return key


COLLECTION_SIMPLIFIERS: List[Simplifier] = [
    CollectCoefficientsInSumSimplifier(),
]

STANDARD_SIMPLIFIERS: List[Simplifier] = [
    CollectCoefficientsInSumSimplifier(),
    MultiplicationByOneSimplifier(),
    UnwrapSingletonSimplifier(),
    GenericDifferentiationSimplifier(),
]

NO_SIMPLIFIERS: List[Simplifier] = []
