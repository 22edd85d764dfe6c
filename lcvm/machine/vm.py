"""Stack-based virtual machine executing compiled λ-terms.

The machine state is a program counter, the active environment register, and three bounded stacks: operands, saved
environments, and return addresses. Execution starts at address 0 and stops when the program counter runs off the end
of the program, at which point exactly one value must be left on the operand stack.
"""

from lcvm.bytecode.buffer import Opcode
from lcvm.bytecode.compiler import compile_expression
from lcvm.lang.error import InvalidLookup, InvalidOpcode, MalformedResult, ValueTypeFault, VMFault
from lcvm.machine.stack import Stack
from lcvm.machine.values import Address, Closure, EnvironmentRef, Frame


class VirtualMachine:
    """Executes InstructionBuffers. A machine can run any number of programs, one at a time.

    :param stack_size: capacity of each of the three stacks
    :param trace: optional callable receiving (address, opcode, operand, operand stack depth) before each instruction
    """
    STACK_SIZE = 1024

    def __init__(self, stack_size=STACK_SIZE, trace=None):
        self.stack_size = stack_size
        self.trace = trace
        self._dispatch = {
            Opcode.DUP: self._op_dup,
            Opcode.SWAP: self._op_swap,
            Opcode.JMP: self._op_jmp,
            Opcode.CALL: self._op_call,
            Opcode.RET: self._op_ret,
            Opcode.ENV_LOOKUP: self._op_env_lookup,
            Opcode.EXTEND_ENV: self._op_extend_env,
            Opcode.PUSH_ENV: self._op_push_env,
            Opcode.POP_ENV: self._op_pop_env,
            Opcode.GET_ENV: self._op_get_env,
            Opcode.MK_CLOSURE: self._op_mk_closure,
            Opcode.GET_CLOSURE_ENV: self._op_get_closure_env,
            Opcode.GET_CLOSURE_CODE: self._op_get_closure_code,
            Opcode.GET_REL_ADDR: self._op_get_rel_addr,
        }
        self.reset()

    def reset(self):
        self.pc = 0
        self.env = None
        self.operands = Stack("operand", self.stack_size)
        self.saved_envs = Stack("environment", self.stack_size)
        self.returns = Stack("return", self.stack_size)

    def execute(self, program):
        """Runs program from address 0 and returns the single value it leaves on the operand stack."""
        self.reset()
        end = len(program)

        while self.pc < end:
            address = self.pc
            opcode = self._decode(program, address)
            operand = program[address + 1] if opcode.arg_count else None
            self.pc = address + 1 + opcode.arg_count

            if self.trace is not None:
                self.trace(address, opcode, operand, len(self.operands))

            try:
                self._dispatch[opcode](address, operand)
            except VMFault as fault:
                if fault.pc is None:
                    fault.pc = address
                raise

        if len(self.operands) != 1:
            raise MalformedResult(len(self.operands))
        return self.operands.pop()

    def run(self, expr, source=None):
        """Compiles the closed term expr and executes it."""
        return self.execute(compile_expression(expr, source=source))

    def _decode(self, program, address):
        if address < 0:
            raise InvalidOpcode(address, pc=address)
        try:
            opcode = Opcode(program[address])
        except ValueError:
            raise InvalidOpcode(program[address], pc=address) from None
        if address + opcode.arg_count >= len(program):
            raise InvalidOpcode(program[address], pc=address)  # operand cut off
        return opcode

    def _pop(self, kind, opcode):
        value = self.operands.pop()
        if not isinstance(value, kind):
            raise ValueTypeFault(opcode.name, kind.__name__, type(value).__name__)
        return value

    def _op_dup(self, address, operand):
        self.operands.push(self.operands.peek())

    def _op_swap(self, address, operand):
        top = self.operands.pop()
        below = self.operands.pop()
        self.operands.push(top)
        self.operands.push(below)

    def _op_jmp(self, address, displacement):
        self.pc = address + displacement

    def _op_call(self, address, operand):
        target = self._pop(Address, Opcode.CALL)
        self.returns.push(self.pc)  # pc already points past CALL
        self.pc = target.offset

    def _op_ret(self, address, operand):
        self.pc = self.returns.pop()

    def _op_env_lookup(self, address, hops):
        frame = self.env
        for __ in range(hops):
            if frame is None:
                break
            frame = frame.next
        if frame is None:
            raise InvalidLookup(hops, Frame.depth(self.env))
        self.operands.push(frame.value)

    def _op_extend_env(self, address, operand):
        self.env = Frame(self.operands.pop(), self.env)

    def _op_push_env(self, address, operand):
        ref = self._pop(EnvironmentRef, Opcode.PUSH_ENV)
        self.saved_envs.push(self.env)
        self.env = ref.env

    def _op_pop_env(self, address, operand):
        self.env = self.saved_envs.pop()

    def _op_get_env(self, address, operand):
        self.operands.push(EnvironmentRef(self.env))

    def _op_mk_closure(self, address, operand):
        env = self._pop(EnvironmentRef, Opcode.MK_CLOSURE)
        body = self._pop(Address, Opcode.MK_CLOSURE)
        self.operands.push(Closure(body.offset, env.env))

    def _op_get_closure_env(self, address, operand):
        closure = self._pop(Closure, Opcode.GET_CLOSURE_ENV)
        self.operands.push(EnvironmentRef(closure.env))

    def _op_get_closure_code(self, address, operand):
        closure = self._pop(Closure, Opcode.GET_CLOSURE_CODE)
        self.operands.push(Address(closure.body_address))

    def _op_get_rel_addr(self, address, displacement):
        self.operands.push(Address(address + displacement))


def execute(program, stack_size=VirtualMachine.STACK_SIZE):
    """Runs program on a fresh machine and returns its result value."""
    return VirtualMachine(stack_size).execute(program)
