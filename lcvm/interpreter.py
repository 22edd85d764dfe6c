"""Direct tree-walking evaluator for λ-terms.

This is the simple alternative to compiling: no bytecode and no machine, just recursive evaluation with named
environments. Evaluation is call-by-value; applying a lambda extends the environment the lambda was evaluated in, not
the caller's, which gives lexical scoping.
"""

from dataclasses import dataclass
from typing import Optional

from lcvm.lang.error import GenericException, UnboundSymbol
from lcvm.term import Application, Expr, Lambda, Symbol


@dataclass(frozen=True)
class Binding:
    name: str
    value: "LambdaValue"
    next: Optional["Binding"] = None


@dataclass(frozen=True)
class LambdaValue:
    """A lambda paired with the environment it was evaluated in."""
    lam: Lambda
    env: Optional[Binding]

    def render(self):
        return str(self.lam)


def lookup(env, name):
    while env is not None:
        if env.name == name:
            return env.value
        env = env.next
    return None


def evaluate(expr: Expr, env: Optional[Binding] = None, source=None) -> LambdaValue:
    """Evaluates expr in env. Raises UnboundSymbol when a symbol has no binding."""
    if isinstance(expr, Symbol):
        value = lookup(env, expr.name)
        if value is None:
            raise UnboundSymbol(expr.name, source, expr.start)
        return value

    if isinstance(expr, Lambda):
        return LambdaValue(expr, env)

    if isinstance(expr, Application):
        operator = evaluate(expr.operator, env, source)
        operand = evaluate(expr.operand, env, source)
        return evaluate(operator.lam.body, Binding(operator.lam.arg, operand, operator.env), source)

    raise GenericException(f"cannot evaluate {type(expr).__name__}", internal=True)
