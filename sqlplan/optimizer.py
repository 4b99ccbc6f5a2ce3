"""Plan optimizers that rewrite a plan node tree into a cheaper equivalent."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import List, Optional, Tuple

from .expression import (
    And,
    Constant,
    Equal,
    Expression,
    Field,
    Or,
    from_cnf_list,
    from_lookup,
)
from .nodes import (
    Filter,
    HashJoin,
    IndexLookup,
    KeyLookup,
    NestedLoopJoin,
    Node,
    Scan,
)
from .normalform import cnf_list
from .schema import Catalog


def _is_constant(expression: Expression, value) -> bool:
    return isinstance(expression, Constant) and expression.value is value


def _has_field(expression: Expression) -> bool:
    return expression.contains(lambda e: isinstance(e, Field))


class Optimizer(ABC):
    """Rewrites a plan node tree."""

    @abstractmethod
    def optimize(self, node: Node) -> Node:
        """Return an optimized version of the node tree."""


class ConstantFolder(Optimizer):
    """Replaces expressions without field references by their evaluated value."""

    @staticmethod
    def _fold(expression: Expression) -> Expression:
        if _has_field(expression):
            return expression
        return Constant(expression.evaluate(None))

    def optimize(self, node: Node) -> Node:
        return node.transform(
            lambda n: n, lambda n: n.transform_expressions(self._fold, lambda e: e)
        )


class FilterPushdown(Optimizer):
    """Moves filter predicates into, or closer to, the nodes that produce the rows."""

    def optimize(self, node: Node) -> Node:
        return node.transform(self._before, lambda n: n)

    def _before(self, node: Node) -> Node:
        if isinstance(node, Filter):
            # A no-op filter is left behind so the source is still visited; the
            # NoopCleaner removes it later.
            source, remainder = self._pushdown(node.predicate, node.source)
            if remainder is None:
                remainder = Constant(True)
            return Filter(source, remainder)
        if isinstance(node, NestedLoopJoin) and node.predicate is not None:
            left, right, predicate = self._pushdown_join(
                node.predicate, node.left, node.right, node.left_size
            )
            return replace(node, left=left, right=right, predicate=predicate)
        return node

    @staticmethod
    def _pushdown(
        expression: Expression, target: Node
    ) -> Tuple[Node, Optional[Expression]]:
        """Push an expression into a target node, returning the new target and any remainder."""
        if isinstance(target, Scan):
            if target.filter is not None:
                expression = And(expression, target.filter)
            return replace(target, filter=expression), None
        if isinstance(target, NestedLoopJoin):
            if target.predicate is not None:
                expression = And(expression, target.predicate)
            return replace(target, predicate=expression), None
        if isinstance(target, Filter):
            return replace(target, predicate=And(target.predicate, expression)), None
        return target, expression

    def _pushdown_join(
        self, predicate: Expression, left: Node, right: Node, boundary: int
    ) -> Tuple[Node, Node, Optional[Expression]]:
        """Split a join predicate and push the single-sided parts into either source."""

        def refs_right(e: Expression) -> bool:
            return e.contains(lambda x: isinstance(x, Field) and x.index >= boundary)

        def refs_left(e: Expression) -> bool:
            return e.contains(lambda x: isinstance(x, Field) and x.index < boundary)

        push_left: List[Expression] = []
        push_right: List[Expression] = []
        remaining: List[Expression] = []
        for expr in cnf_list(predicate):
            if not refs_right(expr):
                push_left.append(expr)
            elif not refs_left(expr):
                push_right.append(expr)
            else:
                remaining.append(expr)

        # Equijoins with a constant lookup on one side get the same lookup on
        # the other side, so that both sides can use index lookups.
        for expr in remaining:
            if not (
                isinstance(expr, Equal)
                and isinstance(expr.lhs, Field)
                and isinstance(expr.rhs, Field)
            ):
                continue
            lhs, rhs = expr.lhs, expr.rhs
            if lhs.index > rhs.index:
                lhs, rhs = rhs, lhs
            lvals = next(
                (v for v in (e.as_lookup(lhs.index) for e in push_left) if v is not None),
                None,
            )
            if lvals is not None:
                push_right.append(from_lookup(rhs.index, rhs.label, lvals))
                continue
            rvals = next(
                (v for v in (e.as_lookup(rhs.index) for e in push_right) if v is not None),
                None,
            )
            if rvals is not None:
                push_left.append(from_lookup(lhs.index, lhs.label, rvals))

        left_expr = from_cnf_list(push_left)
        if left_expr is not None:
            left, remainder = self._pushdown(left_expr, left)
            if remainder is not None:
                remaining.append(remainder)

        right_expr = from_cnf_list(push_right)
        if right_expr is not None:
            right_expr = right_expr.transform(
                lambda e: Field(e.index - boundary, e.label) if isinstance(e, Field) else e,
                lambda e: e,
            )
            right, remainder = self._pushdown(right_expr, right)
            if remainder is not None:
                remaining.append(remainder)

        return left, right, from_cnf_list(remaining)


class IndexLookupOptimizer(Optimizer):
    """Converts filtered table scans into primary key or index lookups."""

    def __init__(self, catalog: Catalog) -> None:
        self.catalog = catalog

    @staticmethod
    def _wrap(node: Node, cnf: List[Expression]) -> Node:
        predicate = from_cnf_list(cnf)
        return node if predicate is None else Filter(node, predicate)

    def _after(self, node: Node) -> Node:
        if not isinstance(node, Scan) or node.filter is None:
            return node
        table = self.catalog.must_read_table(node.table)
        pk = table.get_column_index(table.get_primary_key().name)
        cnf = cnf_list(node.filter)
        for position, expr in enumerate(cnf):
            rest = cnf[:position] + cnf[position + 1 :]
            keys = expr.as_lookup(pk)
            if keys is not None:
                return self._wrap(KeyLookup(node.table, node.alias, tuple(keys)), rest)
            for index, column in enumerate(table.columns):
                if not column.index:
                    continue
                values = expr.as_lookup(index)
                if values is not None:
                    return self._wrap(
                        IndexLookup(node.table, node.alias, column.name, tuple(values)),
                        rest,
                    )
        return node

    def optimize(self, node: Node) -> Node:
        return node.transform(lambda n: n, self._after)


class NoopCleaner(Optimizer):
    """Simplifies constant boolean logic and removes filters that always pass."""

    @staticmethod
    def _clean(expression: Expression) -> Expression:
        if isinstance(expression, And):
            lhs, rhs = expression.lhs, expression.rhs
            if any(
                _is_constant(side, value) for side in (lhs, rhs) for value in (False, None)
            ):
                return Constant(False)
            if _is_constant(lhs, True):
                return rhs
            if _is_constant(rhs, True):
                return lhs
        elif isinstance(expression, Or):
            lhs, rhs = expression.lhs, expression.rhs
            if _is_constant(lhs, False) or _is_constant(lhs, None):
                return rhs
            if _is_constant(rhs, False) or _is_constant(rhs, None):
                return lhs
            if _is_constant(lhs, True) or _is_constant(rhs, True):
                return Constant(True)
        return expression

    @staticmethod
    def _after(node: Node) -> Node:
        if isinstance(node, Filter) and _is_constant(node.predicate, True):
            return node.source
        return node

    def optimize(self, node: Node) -> Node:
        return node.transform(
            lambda n: n.transform_expressions(lambda e: e, self._clean), self._after
        )


class JoinTypeOptimizer(Optimizer):
    """Replaces nested-loop equijoins on two fields with hash joins."""

    @staticmethod
    def _before(node: Node) -> Node:
        if not isinstance(node, NestedLoopJoin):
            return node
        predicate = node.predicate
        if not (
            isinstance(predicate, Equal)
            and isinstance(predicate.lhs, Field)
            and isinstance(predicate.rhs, Field)
        ):
            return node
        a, b = predicate.lhs, predicate.rhs
        if a.index < node.left_size:
            left_field = (a.index, a.label)
            right_field = (b.index - node.left_size, b.label)
        else:
            left_field = (b.index, b.label)
            right_field = (a.index - node.left_size, a.label)
        return HashJoin(node.left, left_field, node.right, right_field, node.outer)

    def optimize(self, node: Node) -> Node:
        return node.transform(self._before, lambda n: n)


@dataclass(frozen=True)
class Plan:
    """A query plan: a tree of plan nodes."""

    root: Node

    def optimize(self, catalog: Catalog) -> "Plan":
        """Return the plan with every optimizer applied in turn."""
        root = self.root
        for optimizer in (
            ConstantFolder(),
            FilterPushdown(),
            IndexLookupOptimizer(catalog),
            NoopCleaner(),
            JoinTypeOptimizer(),
        ):
            root = optimizer.optimize(root)
        return Plan(root)

    def __str__(self) -> str:
        return str(self.root)