"""Closure-converting compiler from λ-terms to position-independent bytecode.

Every lambda compiles to a header that builds a closure out of its body's address and the environment current when the
lambda is evaluated, followed by a jump over the body. Every application compiles to a fixed calling sequence that
switches to the callee's captured environment, extends it with the argument, and calls the body:

```
symbol       ENV_LOOKUP hops
application  <operand> <operator> DUP GET_CLOSURE_ENV PUSH_ENV SWAP EXTEND_ENV GET_CLOSURE_CODE CALL
lambda       GET_REL_ADDR 6 GET_ENV MK_CLOSURE JMP (len(body) + 4) <body> POP_ENV RET
```

Lookup hop counts are positions in the compile-time scope chain, which always has the same shape as the runtime
environment chain at that point in the program.
"""

from lcvm.bytecode.buffer import InstructionBuffer, Opcode
from lcvm.bytecode.scope import Scope
from lcvm.lang.error import GenericException, NestingTooDeep, UnboundSymbol
from lcvm.term import Application, Lambda, Symbol


class Compiler:
    """Lowers λ-terms to InstructionBuffers. source, if given, is only used to point at unbound symbols in errors."""
    LAMBDA_HEADER = 6  # GET_REL_ADDR d GET_ENV MK_CLOSURE JMP d
    JMP_POSITION = 4

    def __init__(self, source=None):
        self.source = source

    def compile(self, expr, scope=None):
        if isinstance(expr, Symbol):
            return self.compile_symbol(expr, scope)
        if isinstance(expr, Application):
            return self.compile_application(expr, scope)
        if isinstance(expr, Lambda):
            return self.compile_lambda(expr, scope)
        raise GenericException(f"cannot compile {type(expr).__name__}", internal=True)

    def compile_symbol(self, expr, scope):
        hops = Scope.resolve(scope, expr.name)
        if hops is None:
            raise UnboundSymbol(expr.name, self.source, expr.start)
        return InstructionBuffer().emit(Opcode.ENV_LOOKUP, hops)

    def compile_application(self, expr, scope):
        operand = self.compile(expr.operand, scope)
        operator = self.compile(expr.operator, scope)

        buf = operand.merge(operator)
        buf.emit(Opcode.DUP)
        buf.emit(Opcode.GET_CLOSURE_ENV)
        buf.emit(Opcode.PUSH_ENV)
        buf.emit(Opcode.SWAP)
        buf.emit(Opcode.EXTEND_ENV)
        buf.emit(Opcode.GET_CLOSURE_CODE)
        buf.emit(Opcode.CALL)
        return buf

    def compile_lambda(self, expr, scope):
        body = self.compile(expr.body, Scope.extend(scope, expr.arg))
        body.emit(Opcode.POP_ENV)
        body.emit(Opcode.RET)

        header = InstructionBuffer()
        header.emit(Opcode.GET_REL_ADDR, Compiler.LAMBDA_HEADER)
        header.emit(Opcode.GET_ENV)
        header.emit(Opcode.MK_CLOSURE)
        header.emit(Opcode.JMP, Compiler.LAMBDA_HEADER - Compiler.JMP_POSITION + len(body))  # jump past closure
        header.lambdas[Compiler.LAMBDA_HEADER] = expr

        return header.merge(body)


def compile_expression(expr, scope=None, source=None):
    """Compiles expr under scope (None for a closed program). Raises UnboundSymbol, producing no code, if any symbol in
    expr is not bound by scope or an enclosing lambda, and NestingTooDeep if expr is nested past the recursion limit.
    """
    try:
        return Compiler(source).compile(expr, scope)
    except RecursionError:
        raise NestingTooDeep("compile") from None


def shadowed_binders(expr, scope=None):
    """Yields, in source order, the lambdas in expr whose bound name hides a binding of an enclosing lambda."""
    pending = [(expr, scope)]
    while pending:
        expr, scope = pending.pop()
        if isinstance(expr, Lambda):
            if Scope.resolve(scope, expr.arg) is not None:
                yield expr
            pending.append((expr.body, Scope.extend(scope, expr.arg)))
        elif isinstance(expr, Application):
            pending.append((expr.operand, scope))
            pending.append((expr.operator, scope))
