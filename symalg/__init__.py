"""
symalg - symbolic algebra on immutable expression trees

Build expressions, then reduce them to a simplified canonical form with
per-shape rewrite rules.

Quick Start:
    from symalg import E, simplify

    x, y = E.vars("x", "y")
    simplify(2 * x + 3 * x)         # => (* 5 x)
    simplify(x + 2 * x + y)         # => (+ (* 3 x) y)
    simplify(E.dd(1 * x + x, x))    # => (dd (* 2 x) x)

Expressions:
    Constant, Variable, InfinityExpression                 leaves
    SumExpressionList, ProductExpressionList               flat term lists
    PowerExpression, DifferentiationExpression             binary/unary nodes

Canonical form (used for equality and hashing):
    (+ x (* 2 y))   (^ x 2)   (dd (^ x 2) x)   ∞

Custom registries:
    from symalg import SimplifierRegistry, COLLECTION_SIMPLIFIERS

    registry = SimplifierRegistry(COLLECTION_SIMPLIFIERS, strategy="once")
    result, trace = registry.simplify(expr, trace=True)

Cancellation:
    token = CancellationToken()
    simplify(expr, token)           # raises OperationCancelledError once cancelled
"""

__version__ = "0.1.0"

# Errors and cancellation
from .errors import (
    SymalgError,
    InvalidExpressionError,
    OperationCancelledError,
)
from .cancellation import CancellationToken

# Expression model and construction API
from .expressions import (
    AlgebraExpression,
    Constant,
    Variable,
    SumExpressionList,
    ProductExpressionList,
    PowerExpression,
    DifferentiationExpression,
    InfinityExpression,
    ExprLike,
    NumericType,
    E,
    as_expression,
    constant,
    variable,
    infinity,
    sum_of,
    product_of,
    add,
    subtract,
    multiply,
    divide,
    exponentiate,
    negate,
    differentiate,
    substitute,
    descendants,
    descendants_and_self,
)

# Engine
from .engine import (
    Simplifier,
    SimplifierRegistry,
    RewriteStep,
    RewriteTrace,
    default_registry,
    simplify,
)

# Rules
from .rules import (
    CollectCoefficientsInSumSimplifier,
    GenericDifferentiationSimplifier,
    MultiplicationByOneSimplifier,
    UnwrapSingletonSimplifier,
    STANDARD_SIMPLIFIERS,
    COLLECTION_SIMPLIFIERS,
    NO_SIMPLIFIERS,
)

# Public API
__all__ = [
    # Version
    "__version__",
    # Errors
    "SymalgError",
    "InvalidExpressionError",
    "OperationCancelledError",
    "CancellationToken",
    # Expressions
    "AlgebraExpression",
    "Constant",
    "Variable",
    "SumExpressionList",
    "ProductExpressionList",
    "PowerExpression",
    "DifferentiationExpression",
    "InfinityExpression",
    "ExprLike",
    "NumericType",
    # Construction
    "E",
    "as_expression",
    "constant",
    "variable",
    "infinity",
    "sum_of",
    "product_of",
    "add",
    "subtract",
    "multiply",
    "divide",
    "exponentiate",
    "negate",
    "differentiate",
    # Traversal
    "substitute",
    "descendants",
    "descendants_and_self",
    # Engine
    "Simplifier",
    "SimplifierRegistry",
    "RewriteStep",
    "RewriteTrace",
    "default_registry",
    "simplify",
    # Rules
    "CollectCoefficientsInSumSimplifier",
    "GenericDifferentiationSimplifier",
    "MultiplicationByOneSimplifier",
    "UnwrapSingletonSimplifier",
    "STANDARD_SIMPLIFIERS",
    "COLLECTION_SIMPLIFIERS",
    "NO_SIMPLIFIERS",
]
