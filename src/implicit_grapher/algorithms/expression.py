"""Operator trees for implicit relations and their interval compilation.

An expression is a tree of operator nodes over variables and constants. The
same tree supports two evaluation modes:

- Scalar evaluation against a variable context (``Expression.evaluate``)
- Interval evaluation, compiled once into nested closures that map the two
  axis interval-unions to an output union (``Expression.compile``)

Trees are immutable. The only mutable state is an explicit per-node cache of
derived facts (constness and constant value); rewrites such as constant
folding always build fresh nodes, so a cache can never go stale.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum

from implicit_grapher.algorithms.interval_ops import (
    FULL,
    INTERVAL_OPS,
    IntervalUnion,
    has_nonpositive,
    point,
    touches_zero,
)
from implicit_grapher.data.operators import (
    AXIS_VARIABLES,
    Operator,
    get_spec,
)

IntervalFunction = Callable[[IntervalUnion, IntervalUnion], IntervalUnion]
"""Compiled form of a node: (x_union, y_union) -> output union."""


class RelationKind(Enum):
    """How the defining expression ``f`` relates to zero."""

    EQUATION = "equation"  # f(x, y) = 0
    INEQUALITY = "inequality"  # f(x, y) <= 0


def parse_relation_kind(name: RelationKind | str) -> RelationKind:
    """Parse a relation kind from an enum or a case-insensitive name."""
    if isinstance(name, RelationKind):
        return name

    normalized = name.strip().lower()
    for kind in RelationKind:
        if kind.value == normalized:
            return kind

    valid = [k.value for k in RelationKind]
    raise ValueError(f"Unknown relation kind: '{name}'. Valid: {valid}")


# =============================================================================
# NODES
# =============================================================================


@dataclass(slots=True)
class NodeCache:
    """Lazily derived facts about a node; safe to discard at any time."""

    is_constant: bool | None = None
    constant_value: float | None = None

    def clear(self) -> None:
        self.is_constant = None
        self.constant_value = None


class ExpressionNode(ABC):
    """Base class of the closed node variant."""

    @property
    def children(self) -> tuple[ExpressionNode, ...]:
        """Ordered operand nodes (empty for leaves)."""
        return ()

    @abstractmethod
    def evaluate(self, variables: Mapping[str, float]) -> float:
        """Evaluate pointwise against a variable context."""

    @abstractmethod
    def is_constant(self) -> bool:
        """True if the subtree contains no variables."""

    @abstractmethod
    def to_source(self) -> str:
        """Render the subtree in prefix-functional syntax."""

    @abstractmethod
    def compile(self, bindings: Mapping[str, float]) -> IntervalFunction:
        """Compile the subtree to an interval function."""

    def constant_value(self) -> float:
        """Scalar value of a constant subtree.

        Raises:
            ValueError: If the subtree depends on a variable.
        """
        if not self.is_constant():
            raise ValueError(f"Expression is not constant: {self.to_source()}")
        return self.evaluate({})

    def clear_cache(self) -> None:
        """Discard cached facts for this subtree."""
        for child in self.children:
            child.clear_cache()


@dataclass(frozen=True, slots=True)
class Constant(ExpressionNode):
    """Numeric literal."""

    value: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", float(self.value))

    def evaluate(self, variables: Mapping[str, float]) -> float:
        return self.value

    def is_constant(self) -> bool:
        return True

    def to_source(self) -> str:
        return f"{self.value!r}&"

    def compile(self, bindings: Mapping[str, float]) -> IntervalFunction:
        union = point(self.value)
        return lambda x, y: union


@dataclass(frozen=True, slots=True)
class NamedConstant(ExpressionNode):
    """Mathematical constant referenced by name (PI, E)."""

    name: str
    value: float

    def evaluate(self, variables: Mapping[str, float]) -> float:
        return self.value

    def is_constant(self) -> bool:
        return True

    def to_source(self) -> str:
        return f"{self.name}&"

    def compile(self, bindings: Mapping[str, float]) -> IntervalFunction:
        union = point(self.value)
        return lambda x, y: union


@dataclass(frozen=True, slots=True)
class Variable(ExpressionNode):
    """Axis variable (x, y) or free symbolic variable."""

    name: str

    @property
    def is_axis(self) -> bool:
        """Whether this variable is substituted by an axis interval."""
        return self.name in AXIS_VARIABLES

    def evaluate(self, variables: Mapping[str, float]) -> float:
        # Unbound variables read as zero
        return float(variables.get(self.name, 0.0))

    def is_constant(self) -> bool:
        return False

    def to_source(self) -> str:
        return f"{self.name}&"

    def compile(self, bindings: Mapping[str, float]) -> IntervalFunction:
        if self.name == AXIS_VARIABLES[0]:
            return lambda x, y: x
        if self.name == AXIS_VARIABLES[1]:
            return lambda x, y: y

        union = point(bindings[self.name]) if self.name in bindings else FULL
        return lambda x, y: union


@dataclass(frozen=True, slots=True)
class OperatorNode(ExpressionNode):
    """Operator applied to an ordered list of operands."""

    operator: Operator
    operands: tuple[ExpressionNode, ...]
    cache: NodeCache = field(default_factory=NodeCache, compare=False, repr=False)

    def __post_init__(self) -> None:
        operands = tuple(self.operands)
        object.__setattr__(self, "operands", operands)

        spec = get_spec(self.operator) if self.operator is not Operator.NULL else None
        if spec is not None and not spec.accepts(len(operands)):
            expected = "at least 1" if spec.variadic else str(spec.arity)
            raise ValueError(
                f"{self.operator.value} expects {expected} operand(s), "
                f"got {len(operands)}"
            )

    @property
    def children(self) -> tuple[ExpressionNode, ...]:
        return self.operands

    def evaluate(self, variables: Mapping[str, float]) -> float:
        if self.cache.constant_value is not None:
            return self.cache.constant_value
        args = [child.evaluate(variables) for child in self.operands]
        if self.operator is Operator.NULL:
            return math.nan
        return get_spec(self.operator).function(args)

    def is_constant(self) -> bool:
        if self.cache.is_constant is None:
            self.cache.is_constant = all(c.is_constant() for c in self.operands)
        return self.cache.is_constant

    def constant_value(self) -> float:
        if self.cache.constant_value is None:
            value = ExpressionNode.constant_value(self)
            self.cache.constant_value = value
        return self.cache.constant_value

    def to_source(self) -> str:
        operands = ",".join(child.to_source() for child in self.operands)
        return f"{self.operator.value}({operands})"

    def compile(self, bindings: Mapping[str, float]) -> IntervalFunction:
        function = INTERVAL_OPS[self.operator]
        compiled = tuple(child.compile(bindings) for child in self.operands)

        if self.is_constant():
            # Axis-independent: evaluate the interval semantics once
            union = function([c(FULL, FULL) for c in compiled])
            return lambda x, y: union

        if len(compiled) == 1:
            only = compiled[0]
            return lambda x, y: function([only(x, y)])

        return lambda x, y: function([c(x, y) for c in compiled])

    def clear_cache(self) -> None:
        self.cache.clear()
        for child in self.operands:
            child.clear_cache()


def fold_constants(node: ExpressionNode) -> ExpressionNode:
    """Replace every variable-free subtree by a Constant of its value.

    A subtree is folded only when its interval image is a single point, so
    the folded Constant compiles to exactly the union the subtree produced.
    Subtrees whose image is empty, widened or split (poles, zero divisors,
    rounded transcendentals) keep their operator and have their operands
    folded instead.

    Returns a new tree; the input is left untouched. Folding is idempotent.
    """
    if isinstance(node, Constant):
        return node
    if node.is_constant():
        image = node.compile({})(FULL, FULL)
        if len(image) == 2 and image[0] == image[1]:
            return Constant(image[0])
    if isinstance(node, OperatorNode):
        return OperatorNode(
            node.operator, tuple(fold_constants(child) for child in node.operands)
        )
    return node


def walk(node: ExpressionNode) -> Iterator[ExpressionNode]:
    """Yield every node of the subtree in pre-order."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


# =============================================================================
# EXPRESSION AND COMPILED RELATION
# =============================================================================


@dataclass(frozen=True, slots=True)
class Expression:
    """A complete operator tree with a single root.

    Example:
        >>> expr = Expression(OperatorNode(Operator.SUB, (Variable("y"), Variable("x"))))
        >>> expr.evaluate(x=1.0, y=3.0)
        2.0
        >>> relation = expr.compile()
        >>> relation(0.9, 1.1, 0.9, 1.1)
        True
    """

    root: ExpressionNode

    def evaluate(
        self, variables: Mapping[str, float] | None = None, **kwargs: float
    ) -> float:
        """Evaluate the expression at a point."""
        context = dict(variables or {})
        context.update(kwargs)
        return self.root.evaluate(context)

    def variables(self) -> frozenset[str]:
        """Names of all variables referenced (axis and free)."""
        return frozenset(n.name for n in walk(self.root) if isinstance(n, Variable))

    def free_variables(self) -> frozenset[str]:
        """Names of referenced variables that are not axis variables."""
        return self.variables() - frozenset(AXIS_VARIABLES)

    def is_constant(self) -> bool:
        return self.root.is_constant()

    def constant_value(self) -> float:
        return self.root.constant_value()

    def fold_constants(self) -> Expression:
        """Return a new expression with variable-free subtrees folded."""
        return Expression(fold_constants(self.root))

    def clear_cache(self) -> None:
        self.root.clear_cache()

    def to_source(self) -> str:
        return self.root.to_source()

    def node_count(self) -> int:
        return sum(1 for _ in walk(self.root))

    def depth(self) -> int:
        """Number of nodes on the longest root-to-leaf path."""
        deepest = 0
        stack: list[tuple[ExpressionNode, int]] = [(self.root, 1)]
        while stack:
            node, level = stack.pop()
            deepest = max(deepest, level)
            stack.extend((child, level + 1) for child in node.children)
        return deepest

    def compile(
        self,
        kind: RelationKind | str = RelationKind.EQUATION,
        *,
        variables: Mapping[str, float] | None = None,
    ) -> CompiledRelation:
        """Compile to an interval predicate.

        Args:
            kind: Equation (f = 0) or inequality (f <= 0).
            variables: Values for free variables; unbound ones are unconstrained.

        Returns:
            CompiledRelation usable as a renderer predicate.
        """
        function = self.root.compile(dict(variables or {}))
        return CompiledRelation(
            expression=self,
            kind=parse_relation_kind(kind),
            function=function,
        )

    def __str__(self) -> str:
        return self.to_source()


@dataclass(frozen=True, slots=True)
class CompiledRelation:
    """Conservative oracle: "a solution cannot be excluded from this rectangle".

    Callable as ``relation(x1, x2, y1, y2)``; bounds may be given in either
    order along each axis.
    """

    expression: Expression
    kind: RelationKind
    function: IntervalFunction = field(repr=False, compare=False)

    def evaluate(self, x: IntervalUnion, y: IntervalUnion) -> IntervalUnion:
        """Raw output union of the defining expression."""
        return self.function(x, y)

    def accepts(self, union: IntervalUnion) -> bool:
        """Decide the predicate from an output union."""
        if self.kind is RelationKind.EQUATION:
            return touches_zero(union)
        return has_nonpositive(union)

    def __call__(self, x1: float, x2: float, y1: float, y2: float) -> bool:
        x = (float(min(x1, x2)), float(max(x1, x2)))
        y = (float(min(y1, y2)), float(max(y1, y2)))
        return self.accepts(self.function(x, y))

    def holds_at(self, x: float, y: float) -> bool:
        """Predicate on the degenerate rectangle at a single point."""
        return self(x, x, y, y)


__all__ = [
    "CompiledRelation",
    "Constant",
    "Expression",
    "ExpressionNode",
    "IntervalFunction",
    "NamedConstant",
    "NodeCache",
    "OperatorNode",
    "RelationKind",
    "Variable",
    "fold_constants",
    "parse_relation_kind",
    "walk",
]
