"""
Simplifier registry and traversal harness for symalg.

A simplifier is a rewrite rule for one or more expression shapes
(expression classes). The registry maps each shape to the simplifiers
registered for it and drives simplification of whole trees:

    1. simplify every child (bottom-up)
    2. rebuild the node over the simplified children
    3. apply the node's simplifiers, in registration order

Strategies:
    "bottomup" - repeat passes until the tree stops changing (default)
    "once"     - a single bottom-up pass

Every step polls the cancellation token; a cancelled token aborts the
whole simplification with OperationCancelledError.

Example:
    from symalg import SimplifierRegistry, STANDARD_SIMPLIFIERS, E

    registry = SimplifierRegistry(STANDARD_SIMPLIFIERS)
    x = E.var("x")
    registry.simplify(2 * x + 3 * x)       # => (* 5 x)

Tracing:
    result, trace = registry.simplify(expr, trace=True)
    print(trace.format("chain"))
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple, Type

from .cancellation import CancellationToken, ensure_token
from .expressions import AlgebraExpression, ExprLike, as_expression

logger = logging.getLogger(__name__)

STRATEGIES = ("bottomup", "once")


class Simplifier:
    """
    Base class of rewrite rules.

    Subclasses set ``shapes`` to the expression classes they accept and
    implement simplify(). A simplifier must be pure: it returns an
    equivalent expression (or the input unchanged) and never mutates.
    """

    shapes: Tuple[Type[AlgebraExpression], ...] = ()
    name: Optional[str] = None
    description: Optional[str] = None

    def simplify(self, expression: AlgebraExpression,
                 cancellation_token: CancellationToken) -> AlgebraExpression:
        raise NotImplementedError

    def __call__(self, expression: AlgebraExpression,
                 cancellation_token: Optional[CancellationToken] = None) -> AlgebraExpression:
        return self.simplify(expression, ensure_token(cancellation_token))

    def simplify_node(self, expression: AlgebraExpression,
                      cancellation_token: CancellationToken,
                      registry: 'SimplifierRegistry',
                      trace: Optional['RewriteTrace'] = None,
                      children_normalized: bool = False) -> AlgebraExpression:
        """
        Rewrite a node on behalf of a registry.

        Rules that simplify subexpressions themselves override this and go
        through ``registry`` so that its rules, strategy and trace apply.
        When ``children_normalized`` is set, the registry has already
        simplified every child of the node in the current pass.
        """
        return self.simplify(expression, cancellation_token)

    @property
    def label(self) -> str:
        return self.name or type(self).__name__

    def __repr__(self) -> str:
        base = f"@{self.label}"
        if self.description:
            base += f" \"{self.description}\""
        return base


class RewriteStep:
    """A single rewrite performed by one simplifier."""

    def __init__(self, simplifier: Simplifier,
                 before: AlgebraExpression, after: AlgebraExpression):
        self.simplifier = simplifier
        self.before = before
        self.after = after

    def __repr__(self) -> str:
        return f"{self.simplifier.label}: {self.before} → {self.after}"

    def to_dict(self) -> Dict:
        """Convert step to dictionary for serialization."""
        return {
            "simplifier": self.simplifier.label,
            "description": self.simplifier.description,
            "before": self.before.to_sexpr(),
            "after": self.after.to_sexpr(),
        }


class RewriteTrace:
    """
    A trace of all rewriting steps applied.

    Provides multiple formatting options:
        - Default repr: verbose multi-line format
        - format("compact"): single line showing simplifier chain
        - format("rules"): just the simplifier names applied
        - format("chain"): the expression after every step
        - to_dict(): JSON-serializable dictionary
    """

    def __init__(self):
        self.steps: List[RewriteStep] = []
        self.initial: Optional[AlgebraExpression] = None
        self.final: Optional[AlgebraExpression] = None
        self.passes = 0

    def add_step(self, step: RewriteStep):
        self.steps.append(step)

    def format(self, style: str = "verbose") -> str:
        """
        Format the trace in different styles.

        Args:
            style: One of "verbose", "compact", "rules", "chain"

        Returns:
            Formatted string representation of the trace.
        """
        if style == "compact":
            names = self.rules_applied()
            return f"{self.initial} --[{', '.join(names)}]--> {self.final}"

        elif style == "rules":
            names = self.rules_applied()
            return " -> ".join(names) if names else "(no rules applied)"

        elif style == "chain":
            if not self.steps:
                return str(self.initial)
            parts = [str(self.initial)]
            for step in self.steps:
                parts.append(f"  --({step.simplifier.label})-->")
                parts.append(str(step.after))
            return "\n".join(parts)

        else:  # verbose (default)
            return repr(self)

    def __repr__(self) -> str:
        lines = [f"Initial: {self.initial}"]
        for i, step in enumerate(self.steps, 1):
            lines.append(f"  {i}. {step}")
        lines.append(f"Final: {self.final}")
        return "\n".join(lines)

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self):
        """Iterate over rewrite steps."""
        return iter(self.steps)

    def __bool__(self) -> bool:
        """True if any rewriting was done."""
        return len(self.steps) > 0

    def to_dict(self) -> Dict:
        """Convert trace to dictionary for JSON serialization."""
        return {
            "initial": self.initial.to_sexpr() if self.initial is not None else None,
            "final": self.final.to_sexpr() if self.final is not None else None,
            "steps": [step.to_dict() for step in self.steps],
            "step_count": len(self.steps),
            "passes": self.passes,
        }

    def rule_counts(self) -> Dict[str, int]:
        """Count how many times each simplifier rewrote a node."""
        counts: Dict[str, int] = {}
        for step in self.steps:
            name = step.simplifier.label
            counts[name] = counts.get(name, 0) + 1
        return counts

    def rules_applied(self) -> List[str]:
        """Get list of simplifier names in order of application."""
        return [s.simplifier.label for s in self.steps]

    def summary(self) -> str:
        """Get a brief summary of the rewriting."""
        if not self.steps:
            return "No rewriting performed"
        counts = self.rule_counts()
        most_used = max(counts.items(), key=lambda x: x[1])
        return (f"{len(self.steps)} steps using {len(counts)} unique rules. "
                f"Most used: {most_used[0]} ({most_used[1]}x)")


class SimplifierRegistry:
    """
    Maps expression shapes to simplifiers and simplifies whole trees.

    Example:
        registry = (SimplifierRegistry()
            .register(CollectCoefficientsInSumSimplifier())
            .register(GenericDifferentiationSimplifier()))
        result = registry(expr)
    """

    def __init__(self, simplifiers: Optional[Iterable[Simplifier]] = None,
                 strategy: str = "bottomup", max_passes: int = 1000):
        """
        Initialize a SimplifierRegistry.

        Args:
            simplifiers: Simplifiers to register, in order.
            strategy: "bottomup" (repeat passes to a fixpoint) or "once".
            max_passes: Upper bound on passes for "bottomup".
        """
        self._simplifiers: List[Simplifier] = []
        self._by_shape: Dict[Type[AlgebraExpression], List[Simplifier]] = {}
        self._strategy = _check_strategy(strategy)
        if max_passes < 1:
            raise ValueError(f"max_passes must be positive, got {max_passes}")
        self._max_passes = max_passes
        for simplifier in simplifiers or ():
            self.register(simplifier)

    # ============================================================
    # Registration
    # ============================================================

    def register(self, simplifier: Simplifier) -> 'SimplifierRegistry':
        """Register a simplifier for each of its shapes."""
        if not isinstance(simplifier, Simplifier):
            raise TypeError(f"expected a Simplifier, got {simplifier!r}")
        if not simplifier.shapes:
            raise ValueError(f"{simplifier.label} declares no shapes")
        self._simplifiers.append(simplifier)
        for shape in simplifier.shapes:
            self._by_shape.setdefault(shape, []).append(simplifier)
        return self

    def with_strategy(self, strategy: str) -> 'SimplifierRegistry':
        """Set the traversal strategy. Returns self for chaining."""
        self._strategy = _check_strategy(strategy)
        return self

    @property
    def strategy(self) -> str:
        return self._strategy

    @property
    def max_passes(self) -> int:
        return self._max_passes

    @property
    def simplifiers(self) -> List[Simplifier]:
        """Get all registered simplifiers."""
        return self._simplifiers.copy()

    def simplifiers_for(self, expression: AlgebraExpression) -> List[Simplifier]:
        """Simplifiers for the expression's shape, most specific class first."""
        for shape in type(expression).__mro__:
            if shape in self._by_shape:
                return self._by_shape[shape]
        return []

    def clear(self) -> 'SimplifierRegistry':
        """Remove all simplifiers."""
        self._simplifiers = []
        self._by_shape = {}
        return self

    def list_simplifiers(self) -> List[str]:
        """One line per simplifier: name, shapes and description."""
        result = []
        for simplifier in self._simplifiers:
            shapes = ", ".join(s.__name__ for s in simplifier.shapes)
            line = f"@{simplifier.label} [{shapes}]"
            if simplifier.description:
                line += f" \"{simplifier.description}\""
            result.append(line)
        return result

    # ============================================================
    # Single-node application
    # ============================================================

    def apply_once(self, expression: AlgebraExpression,
                   cancellation_token: Optional[CancellationToken] = None
                   ) -> Tuple[AlgebraExpression, Optional[Simplifier]]:
        """
        Apply at most one simplifier to the node itself.

        Does not recurse into children.

        Returns:
            Tuple of (result, simplifier) where simplifier is None if no
            simplifier changed the node.
        """
        token = ensure_token(cancellation_token)
        for simplifier in self.simplifiers_for(expression):
            token.raise_if_cancellation_requested()
            result = simplifier.simplify_node(expression, token, self)
            if result != expression:
                return result, simplifier
        return expression, None

    def apply_rules(self, expression: AlgebraExpression,
                    cancellation_token: Optional[CancellationToken] = None,
                    trace: Optional[RewriteTrace] = None,
                    children_normalized: bool = False) -> AlgebraExpression:
        """
        Apply the node's simplifiers in registration order.

        Stops early once a simplifier turns the node into a shape the
        remaining simplifiers do not accept. Pass ``children_normalized``
        when the node's children already went through this registry.
        """
        token = ensure_token(cancellation_token)
        current = expression
        for simplifier in self.simplifiers_for(expression):
            if not isinstance(current, simplifier.shapes):
                break
            token.raise_if_cancellation_requested()
            result = simplifier.simplify_node(current, token, self, trace,
                                              children_normalized and current is expression)
            if result != current:
                logger.debug("%s: %s -> %s", simplifier.label, current, result)
                if trace is not None:
                    trace.add_step(RewriteStep(simplifier, current, result))
                current = result
        return current

    # ============================================================
    # Whole-tree simplification
    # ============================================================

    def simplify(self, expression: ExprLike,
                 cancellation_token: Optional[CancellationToken] = None,
                 trace: bool = False):
        """
        Simplify an expression tree.

        Args:
            expression: Expression (or literal) to simplify
            cancellation_token: Polled before every node and rule
            trace: If True, return (result, trace) tuple

        Returns:
            Simplified expression, or (expression, trace) if trace=True

        Raises:
            OperationCancelledError: If the token is cancelled
        """
        token = ensure_token(cancellation_token)
        token.raise_if_cancellation_requested()
        current = as_expression(expression)
        trace_obj = RewriteTrace() if trace else None
        if trace_obj is not None:
            trace_obj.initial = current

        current, count = self._run_passes(current, token, trace_obj)

        if trace_obj is not None:
            trace_obj.passes = count
            trace_obj.final = current
            return current, trace_obj
        return current

    def normalize(self, expression: AlgebraExpression, cancellation_token: CancellationToken,
                  trace: Optional[RewriteTrace] = None) -> AlgebraExpression:
        """
        Simplify a subexpression on behalf of a rule.

        Same passes as simplify(), but steps go into the caller's trace
        and only the result is returned.
        """
        return self._run_passes(expression, cancellation_token, trace)[0]

    def _run_passes(self, expression: AlgebraExpression, token: CancellationToken,
                    trace: Optional[RewriteTrace]) -> Tuple[AlgebraExpression, int]:
        current = expression
        passes = 1 if self._strategy == "once" else self._max_passes
        count = 0
        for count in range(1, passes + 1):
            result = self._bottomup_pass(current, token, trace)
            if result == current:
                logger.debug("fixpoint after %d pass(es): %s", count, result)
                return result, count
            current = result
        if self._strategy == "bottomup":
            logger.warning("no fixpoint after %d passes, returning %s",
                           self._max_passes, current)
        return current, count

    def _bottomup_pass(self, expression: AlgebraExpression, token: CancellationToken,
                       trace: Optional[RewriteTrace]) -> AlgebraExpression:
        """Single bottom-up pass: simplify children, then apply rules to parent."""
        token.raise_if_cancellation_requested()
        children = expression.children()
        current = expression
        if children:
            new_children = []
            for child in children:
                token.raise_if_cancellation_requested()
                new_children.append(self._bottomup_pass(child, token, trace))
            if any(new is not old for new, old in zip(new_children, children)):
                current = expression.with_children(new_children)
        token.raise_if_cancellation_requested()
        return self.apply_rules(current, token, trace, children_normalized=True)

    # ============================================================
    # Combining registries
    # ============================================================

    def copy(self) -> 'SimplifierRegistry':
        """Create a copy of this registry."""
        return SimplifierRegistry(self._simplifiers, strategy=self._strategy,
                                  max_passes=self._max_passes)

    def __or__(self, other: 'SimplifierRegistry') -> 'SimplifierRegistry':
        """Union of two registries: registry1 | registry2."""
        result = self.copy()
        for simplifier in other:
            result.register(simplifier)
        return result

    def __ior__(self, other: 'SimplifierRegistry') -> 'SimplifierRegistry':
        """In-place union: registry1 |= registry2."""
        for simplifier in other:
            self.register(simplifier)
        return self

    def __len__(self) -> int:
        return len(self._simplifiers)

    def __iter__(self):
        """Iterate over simplifiers in registration order."""
        return iter(self._simplifiers.copy())

    def __contains__(self, name: str) -> bool:
        """Check if a named simplifier is registered: 'collect-coefficients' in registry."""
        return any(s.label == name for s in self._simplifiers)

    def __repr__(self) -> str:
        return f"SimplifierRegistry({len(self._simplifiers)} simplifiers, {self._strategy})"

    def __call__(self, expression: ExprLike, **kwargs):
        """Make registry callable: registry(expr) is shorthand for registry.simplify(expr)."""
        return self.simplify(expression, **kwargs)


def _check_strategy(strategy: str) -> str:
    if strategy not in STRATEGIES:
        raise ValueError(f"Unknown strategy: {strategy}. "
                         f"Valid options: {', '.join(STRATEGIES)}")
    return strategy


_default_registry: Optional[SimplifierRegistry] = None


def default_registry() -> SimplifierRegistry:
    """The shared registry over STANDARD_SIMPLIFIERS, built on first use."""
    global _default_registry
    if _default_registry is None:
        from .rules import STANDARD_SIMPLIFIERS
        _default_registry = SimplifierRegistry(STANDARD_SIMPLIFIERS)
    return _default_registry


def simplify(expression: ExprLike,
             cancellation_token: Optional[CancellationToken] = None,
             trace: bool = False):
    """Simplify with the default registry. See SimplifierRegistry.simplify."""
    return default_registry().simplify(expression, cancellation_token, trace=trace)
