"""Compile-time scope chain: the names bound by enclosing lambdas, innermost first. The empty chain is None."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Scope:
    name: str
    next: Optional["Scope"] = None

    @staticmethod
    def extend(scope, name):
        """Returns a new chain with name as the innermost binding. scope itself is shared, not copied."""
        return Scope(name, scope)

    @staticmethod
    def resolve(scope, name):
        """Number of hops from the innermost binding to the nearest one named name, or None if name is unbound."""
        hops = 0
        while scope is not None:
            if scope.name == name:
                return hops
            scope = scope.next
            hops += 1
        return None

    @staticmethod
    def depth(scope):
        return sum(1 for __ in Scope.names(scope))

    @staticmethod
    def names(scope):
        while scope is not None:
            yield scope.name
            scope = scope.next
