"""Opcodes and the growable instruction buffer that the compiler emits into.

A buffer is a flat sequence of integer words. Each word is either an opcode or an inline operand of the opcode before
it; which words are operands is decided by Opcode.arg_count, not by the words themselves. Every address the compiler
emits is relative to the instruction computing it, so buffers can be merged at any offset without patching.
"""

from enum import IntEnum

from lcvm.lang.error import GenericException


class Opcode(IntEnum):
    """Machine operation codes. Each member's value is a (integer_value, arg_count) tuple, where arg_count is the number
    of inline operand words that follow the opcode in the instruction stream.
    """

    def __new__(cls, int_value, arg_count=0):
        obj = int.__new__(cls, int_value)
        obj._value_ = int_value
        obj._arg_count = arg_count
        return obj

    @property
    def arg_count(self):
        return self._arg_count

    DUP = (0, 0)                # duplicate top of stack
    SWAP = (1, 0)               # exchange top two values
    JMP = (2, 1)                # JMP displacement
    CALL = (3, 0)               # pop address, push return address, jump
    RET = (4, 0)                # pop return address into pc
    ENV_LOOKUP = (5, 1)         # ENV_LOOKUP hops
    EXTEND_ENV = (6, 0)         # bind popped value in a new frame
    PUSH_ENV = (7, 0)           # save env, switch to popped environment
    POP_ENV = (8, 0)            # restore saved env
    GET_ENV = (9, 0)            # push current env
    MK_CLOSURE = (10, 0)        # pop env and address, push closure
    GET_CLOSURE_ENV = (11, 0)
    GET_CLOSURE_CODE = (12, 0)
    GET_REL_ADDR = (13, 1)      # GET_REL_ADDR displacement


class InstructionBuffer:
    """Append-only sequence of instruction words.

    lambdas maps the offset of each lambda body in this buffer to the Lambda node it was compiled from. It is debug
    information only: the machine never reads it.
    """

    def __init__(self, words=None, lambdas=None):
        self._words = list(words) if words else []
        self.lambdas = dict(lambdas) if lambdas else {}

    @property
    def words(self):
        return tuple(self._words)

    def append(self, word):
        self._words.append(int(word))

    def emit(self, opcode, *operands):
        """Appends opcode followed by its inline operands, which must match opcode.arg_count."""
        if len(operands) != opcode.arg_count:
            msg = "opcode {} takes {} operand(s)"
            raise GenericException(msg, (opcode.name, str(opcode.arg_count)), internal=True)

        self.append(opcode)
        for operand in operands:
            self.append(operand)
        return self

    def merge(self, other):
        """Returns a new buffer holding self's words followed by other's. Neither buffer is modified."""
        offset = len(self)
        lambdas = dict(self.lambdas)
        lambdas.update({address + offset: lam for address, lam in other.lambdas.items()})
        return InstructionBuffer(self._words + other._words, lambdas)

    __add__ = merge

    def __len__(self):
        return len(self._words)

    def __iter__(self):
        return iter(self._words)

    def __getitem__(self, index):
        return self._words[index]

    def __eq__(self, other):
        return isinstance(other, InstructionBuffer) and self._words == other._words

    def __repr__(self):
        return f"InstructionBuffer({self._words})"
