"""Lambda calculus abstract syntax tree: symbols, lambdas and applications. Nodes are immutable and compare by identity,
so a particular Lambda can still be recognised after it has been compiled or evaluated.

start, when the parser sets it, is the offset in the source text of the symbol's name or of the lambda's bound name.
"""

from dataclasses import dataclass
from typing import Optional


class Expr:
    """Any λ-term."""


@dataclass(frozen=True, eq=False)
class Symbol(Expr):
    name: str
    start: Optional[int] = None

    def __str__(self):
        return self.name


@dataclass(frozen=True, eq=False)
class Lambda(Expr):
    arg: str
    body: Expr
    start: Optional[int] = None

    def __str__(self):
        return f"\\{self.arg} {self.body}"


@dataclass(frozen=True, eq=False)
class Application(Expr):
    operator: Expr
    operand: Expr

    def __str__(self):
        return f"({self.operator} {self.operand})"
