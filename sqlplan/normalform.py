"""Normal forms for boolean expressions: negation, conjunctive and disjunctive."""

from __future__ import annotations

from typing import Iterator, List

from .expression import And, Expression, Not, Or


def _push_not(expression: Expression) -> Expression:
    if isinstance(expression, Not):
        inner = expression.expr
        if isinstance(inner, And):
            return Or(Not(inner.lhs), Not(inner.rhs))
        if isinstance(inner, Or):
            return And(Not(inner.lhs), Not(inner.rhs))
        if isinstance(inner, Not):
            return inner.expr
    return expression


def _distribute_or(expression: Expression) -> Expression:
    if isinstance(expression, Or):
        lhs, rhs = expression.lhs, expression.rhs
        if isinstance(lhs, And):
            return And(Or(lhs.lhs, rhs), Or(lhs.rhs, rhs))
        if isinstance(rhs, And):
            return And(Or(lhs, rhs.lhs), Or(lhs, rhs.rhs))
    return expression


def _distribute_and(expression: Expression) -> Expression:
    if isinstance(expression, And):
        lhs, rhs = expression.lhs, expression.rhs
        if isinstance(lhs, Or):
            return Or(And(lhs.lhs, rhs), And(lhs.rhs, rhs))
        if isinstance(rhs, Or):
            return Or(And(lhs, rhs.lhs), And(lhs, rhs.rhs))
    return expression


def _flatten(expression: Expression, kind: type) -> Iterator[Expression]:
    if isinstance(expression, kind):
        yield from _flatten(expression.lhs, kind)
        yield from _flatten(expression.rhs, kind)
    else:
        yield expression


def to_nnf(expression: Expression) -> Expression:
    """Push NOT operators down past AND and OR using De Morgan's laws."""
    return expression.transform(_push_not, lambda e: e)


def to_cnf(expression: Expression) -> Expression:
    """Convert to conjunctive normal form, an AND of ORs."""
    return to_nnf(expression).transform(_distribute_or, lambda e: e)


def cnf_list(expression: Expression) -> List[Expression]:
    """Convert to conjunctive normal form and return the conjuncts in order."""
    return list(_flatten(to_cnf(expression), And))


def to_dnf(expression: Expression) -> Expression:
    """Convert to disjunctive normal form, an OR of ANDs."""
    return to_nnf(expression).transform(_distribute_and, lambda e: e)


def dnf_list(expression: Expression) -> List[Expression]:
    """Convert to disjunctive normal form and return the disjuncts in order."""
    return list(_flatten(to_dnf(expression), Or))