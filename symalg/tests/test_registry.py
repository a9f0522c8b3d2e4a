"""Tests for SimplifierRegistry: registration, dispatch, strategies, combination."""

import logging

import pytest
from symalg import (
    E, Constant, Variable, SumExpressionList, AlgebraExpression,
    Simplifier, SimplifierRegistry, STANDARD_SIMPLIFIERS, COLLECTION_SIMPLIFIERS,
    NO_SIMPLIFIERS, CollectCoefficientsInSumSimplifier, MultiplicationByOneSimplifier,
    default_registry, multiply, simplify,
)


class Rename(Simplifier):
    """Renames variables according to a mapping."""

    shapes = (Variable,)
    name = "rename"

    def __init__(self, mapping):
        self.mapping = mapping

    def simplify(self, expression, cancellation_token):
        if expression.name in self.mapping:
            return Variable(self.mapping[expression.name])
        return expression


class SumOnly(Simplifier):
    """Fails if handed anything but a sum."""

    shapes = (SumExpressionList,)

    def simplify(self, expression, cancellation_token):
        assert isinstance(expression, SumExpressionList)
        return expression


class TaggedSum(SumExpressionList):
    """A sum subclass, used to check dispatch through base classes."""

    __slots__ = ()


class TestRegistration:
    """Tests for register() and lookups."""

    def test_register_fluent(self):
        """register() returns self for chaining."""
        registry = SimplifierRegistry()
        assert registry.register(MultiplicationByOneSimplifier()) is registry
        assert len(registry) == 1

    def test_register_rejects_non_simplifier(self):
        """Only Simplifier instances can be registered."""
        with pytest.raises(TypeError):
            SimplifierRegistry().register(lambda e, t: e)

    def test_register_requires_shapes(self):
        """A simplifier must declare shapes."""
        with pytest.raises(ValueError):
            SimplifierRegistry().register(Simplifier())

    def test_simplifiers_for(self):
        """Lookup is by the expression's class."""
        registry = SimplifierRegistry(STANDARD_SIMPLIFIERS)
        names = [s.label for s in registry.simplifiers_for(E.sum("x", "y"))]
        assert names == ["collect-coefficients", "unwrap-singleton"]
        assert registry.simplifiers_for(Constant(1)) == []

    def test_simplifiers_for_subclass(self):
        """Subclasses dispatch to their base class's simplifiers."""
        registry = SimplifierRegistry(COLLECTION_SIMPLIFIERS)
        x = E.var("x")
        expr = TaggedSum([2 * x, 3 * x])
        assert len(registry.simplifiers_for(expr)) == 1
        assert registry.simplify(expr) == multiply(5, x)

    def test_contains_by_name(self):
        """'name' in registry checks simplifier names."""
        registry = SimplifierRegistry(STANDARD_SIMPLIFIERS)
        assert "collect-coefficients" in registry
        assert "power-rule" not in registry

    def test_list_simplifiers(self):
        """list_simplifiers() shows names and shapes."""
        registry = SimplifierRegistry(COLLECTION_SIMPLIFIERS)
        assert registry.list_simplifiers() == [
            '@collect-coefficients [SumExpressionList] "a*k + b*k = (a+b)*k"'
        ]

    def test_clear(self):
        """clear() removes everything."""
        registry = SimplifierRegistry(STANDARD_SIMPLIFIERS).clear()
        assert len(registry) == 0
        assert registry.simplifiers_for(E.sum("x", "x")) == []

    def test_repr(self):
        """repr shows size and strategy."""
        assert repr(SimplifierRegistry(COLLECTION_SIMPLIFIERS)) == \
            "SimplifierRegistry(1 simplifiers, bottomup)"


class TestConfiguration:
    """Tests for strategy and pass limits."""

    def test_unknown_strategy(self):
        """Unknown strategies are rejected."""
        with pytest.raises(ValueError, match="Unknown strategy"):
            SimplifierRegistry(strategy="topdown")
        with pytest.raises(ValueError):
            SimplifierRegistry().with_strategy("sideways")

    def test_bad_max_passes(self):
        """max_passes must be positive."""
        with pytest.raises(ValueError):
            SimplifierRegistry(max_passes=0)

    def test_with_strategy_fluent(self):
        """with_strategy() returns self."""
        registry = SimplifierRegistry()
        assert registry.with_strategy("once") is registry
        assert registry.strategy == "once"

    def test_once_vs_bottomup(self):
        """'once' runs a single pass; 'bottomup' runs to a fixpoint."""
        rule = Rename({"a": "b", "b": "c"})
        once = SimplifierRegistry([rule], strategy="once")
        full = SimplifierRegistry([rule])
        assert once.simplify(E.var("a")) == Variable("b")
        assert full.simplify(E.var("a")) == Variable("c")

    def test_max_passes_warning(self, caplog):
        """Running out of passes logs a warning and returns the last tree."""
        registry = SimplifierRegistry([Rename({"a": "b", "b": "a"})], max_passes=3)
        with caplog.at_level(logging.WARNING, logger="symalg.engine"):
            result = registry.simplify(E.var("a"))
        assert result == Variable("b")
        assert "no fixpoint after 3 passes" in caplog.text


class TestApply:
    """Tests for single-node application."""

    def setup_method(self):
        self.registry = SimplifierRegistry(STANDARD_SIMPLIFIERS)
        self.x = E.var("x")

    def test_apply_once_applied(self):
        """apply_once() reports the simplifier that fired."""
        result, applied = self.registry.apply_once(2 * self.x + 3 * self.x)
        assert result == multiply(5, self.x)
        assert isinstance(applied, CollectCoefficientsInSumSimplifier)

    def test_apply_once_not_applied(self):
        """apply_once() returns the input and None when nothing fires."""
        expr = 2 * self.x
        result, applied = self.registry.apply_once(expr)
        assert result is expr
        assert applied is None

    def test_apply_once_does_not_recurse(self):
        """Children are not touched by apply_once()."""
        expr = E.product(2, E.sum(self.x, self.x))
        result, applied = self.registry.apply_once(expr)
        assert result is expr
        assert applied is None

    def test_apply_rules_stops_on_shape_change(self):
        """Rules for the old shape are skipped once the node changes shape."""
        registry = SimplifierRegistry([CollectCoefficientsInSumSimplifier(), SumOnly()])
        result = registry.apply_rules(E.sum(self.x, self.x))
        assert result == multiply(2, self.x)


class TestSimplify:
    """Tests for whole-tree simplification."""

    def test_literals(self):
        """Literals are coerced before simplification."""
        assert simplify(5) == Constant(5)
        assert simplify("x") == Variable("x")

    def test_no_simplifiers(self):
        """With no rules the tree comes back equal."""
        registry = SimplifierRegistry(NO_SIMPLIFIERS)
        x = E.var("x")
        expr = 2 * x + 3 * x
        assert registry.simplify(expr) == expr

    def test_unchanged_tree_is_reused(self):
        """A normal tree is returned without rebuilding."""
        x, y = E.vars("x", "y")
        expr = 2 * x + y
        assert simplify(expr) is expr

    def test_callable(self):
        """registry(expr) is registry.simplify(expr)."""
        registry = SimplifierRegistry(STANDARD_SIMPLIFIERS)
        x = E.var("x")
        assert registry(x + x) == multiply(2, x)

    def test_method(self):
        """AlgebraExpression.simplify() uses the default registry."""
        x = E.var("x")
        assert (x + x).simplify() == multiply(2, x)

    def test_default_registry_shared(self):
        """default_registry() is built once."""
        assert default_registry() is default_registry()
        assert len(default_registry()) == len(STANDARD_SIMPLIFIERS)

    def test_debug_logging(self, caplog):
        """Rewrites are logged at debug level."""
        x = E.var("x")
        with caplog.at_level(logging.DEBUG, logger="symalg.engine"):
            SimplifierRegistry(STANDARD_SIMPLIFIERS).simplify(2 * x + 3 * x)
        assert "collect-coefficients" in caplog.text
        assert "fixpoint" in caplog.text


class TestCombination:
    """Tests for copy(), | and |=."""

    def test_copy_independent(self):
        """Registering on a copy leaves the original alone."""
        registry = SimplifierRegistry(COLLECTION_SIMPLIFIERS)
        other = registry.copy().register(MultiplicationByOneSimplifier())
        assert len(registry) == 1
        assert len(other) == 2

    def test_union(self):
        """registry1 | registry2 has both sets of simplifiers."""
        a = SimplifierRegistry(COLLECTION_SIMPLIFIERS)
        b = SimplifierRegistry([MultiplicationByOneSimplifier()])
        combined = a | b
        assert len(combined) == 2
        assert len(a) == 1
        x = E.var("x")
        assert combined(E.sum(1 * x, 1 * x)) == multiply(2, x)

    def test_inplace_union(self):
        """registry1 |= registry2 extends registry1."""
        a = SimplifierRegistry(COLLECTION_SIMPLIFIERS)
        a |= SimplifierRegistry([MultiplicationByOneSimplifier()])
        assert len(a) == 2
        assert "multiplication-by-one" in a

    def test_iteration(self):
        """Iterating yields simplifiers in registration order."""
        registry = SimplifierRegistry(STANDARD_SIMPLIFIERS)
        assert [s.label for s in registry] == [s.label for s in STANDARD_SIMPLIFIERS]
        assert all(isinstance(s, Simplifier) for s in registry)


class TestSimplifierBase:
    """Tests for the Simplifier base class."""

    def test_label_defaults_to_class_name(self):
        """Unnamed simplifiers are labelled by class."""

        class Nameless(Simplifier):
            shapes = (AlgebraExpression,)

            def simplify(self, expression, cancellation_token):
                return expression

        assert Nameless().label == "Nameless"
        assert repr(Nameless()) == "@Nameless"

    def test_repr_with_description(self):
        """repr includes the description."""
        assert repr(MultiplicationByOneSimplifier()) == '@multiplication-by-one "1 * x = x"'

    def test_base_not_implemented(self):
        """The base simplify() must be overridden."""
        with pytest.raises(NotImplementedError):
            Simplifier()(E.var("x"))
