import random
import unittest

from lcvm.bytecode.buffer import InstructionBuffer, Opcode
from lcvm.bytecode.compiler import compile_expression
from lcvm.grammar.pure import parse
from lcvm.interpreter import evaluate
from lcvm.lang.error import (InvalidLookup, InvalidOpcode, MalformedResult, StackExhausted, StackUnderflow,
                             ValueTypeFault)
from lcvm.machine.stack import Stack
from lcvm.machine.values import Address, Closure, EnvironmentRef, Frame
from lcvm.machine.vm import VirtualMachine, execute
from lcvm.term import Application, Lambda, Symbol

OMEGA = "(\\x (x x) \\x (x x))"


def run_source(source, stack_size=VirtualMachine.STACK_SIZE):
    """Returns (program, result) so results can be traced back to the lambdas they came from."""
    program = compile_expression(parse(source), source=source)
    return program, execute(program, stack_size)


def random_term(rng, depth, names=()):
    """Random closed λ-term with at most depth levels of nesting."""
    if depth == 0 or (names and rng.random() < 0.25):
        if names:
            return Symbol(rng.choice(names))
        return Lambda("v", Symbol("v"))

    if rng.random() < 0.45:
        name = rng.choice("abc")
        return Lambda(name, random_term(rng, depth - 1, (name,) + tuple(names)))
    return Application(random_term(rng, depth - 1, names), random_term(rng, depth - 1, names))


class ExecuteTestCase(unittest.TestCase):

    def test_lambda(self):
        __, result = run_source("\\y y")
        self.assertEqual(Closure(6, None), result)
        self.assertEqual("<lambda>", result.render())

    def test_identity_application(self):
        __, applied = run_source("(\\x x \\y y)")
        __, alone = run_source("\\y y")
        self.assertEqual(alone, applied)

    def test_lexical_capture(self):
        for last in ["\\b b", "\\c \\d c", "(\\e e \\f f)"]:
            program, result = run_source(f"((\\x \\y x \\a a) {last})")
            self.assertIsInstance(result, Closure)
            self.assertEqual("a", program.lambdas[result.body_address].arg, last)
            self.assertIsNone(result.env, last)

    def test_captured_environment(self):
        program, result = run_source("(\\x \\y x \\a a)")
        self.assertEqual("y", program.lambdas[result.body_address].arg)
        self.assertEqual(1, Frame.depth(result.env))
        self.assertEqual(Closure(6, None), result.env.value)  # x is bound to \a a

    def test_non_interference(self):
        k = "\\x \\y x"
        program, result = run_source(f"(\\k (\\g (\\h (g \\z z) (k \\p p)) (k \\q q)) {k})")
        self.assertEqual("q", program.lambdas[result.body_address].arg)

        program, result = run_source(f"(\\k (\\g (\\h (h \\z z) (k \\p p)) (k \\q q)) {k})")
        self.assertEqual("p", program.lambdas[result.body_address].arg)

    def test_church_booleans(self):
        true, false = "\\t \\f t", "\\t \\f f"
        program, result = run_source(f"(((\\b \\x \\y ((b y) x) {true}) \\u u) \\w w)")  # (not true) u w = w
        self.assertEqual("w", program.lambdas[result.body_address].arg)

        program, result = run_source(f"(((\\b \\x \\y ((b y) x) {false}) \\u u) \\w w)")
        self.assertEqual("u", program.lambdas[result.body_address].arg)

    def test_machine_reuse(self):
        machine = VirtualMachine()
        first = machine.execute(compile_expression(parse("(\\x x \\y y)")))
        second = machine.execute(compile_expression(parse("(\\x x \\y y)")))

        self.assertEqual(first, second)
        self.assertIsNone(machine.env)
        self.assertEqual(0, len(machine.saved_envs))
        self.assertEqual(0, len(machine.returns))

    def test_run(self):
        self.assertEqual(Closure(6, None), VirtualMachine().run(parse("(\\x x \\y y)")))


class FaultTestCase(unittest.TestCase):

    def test_stack_exhausted(self):
        with self.assertRaises(StackExhausted) as cm:
            run_source(OMEGA, stack_size=64)
        self.assertEqual(64, cm.exception.capacity)
        self.assertIsNotNone(cm.exception.pc)
        self.assertIn(f"(pc={cm.exception.pc})", str(cm.exception))
        self.assertIn(f"(pc={cm.exception.pc})", cm.exception.msg)

    def test_malformed_result(self):
        with self.assertRaises(MalformedResult) as cm:
            execute(InstructionBuffer([Opcode.GET_ENV, Opcode.GET_ENV]))
        self.assertEqual(2, cm.exception.count)

        with self.assertRaises(MalformedResult) as cm:
            execute(InstructionBuffer())
        self.assertEqual(0, cm.exception.count)

    def test_invalid_lookup(self):
        with self.assertRaises(InvalidLookup) as cm:
            execute(InstructionBuffer().emit(Opcode.ENV_LOOKUP, 0))
        self.assertEqual(0, cm.exception.hops)
        self.assertEqual(0, cm.exception.depth)

    def test_value_type(self):
        with self.assertRaises(ValueTypeFault) as cm:
            execute(InstructionBuffer([Opcode.GET_ENV, Opcode.CALL]))
        self.assertEqual("Address", cm.exception.expected)
        self.assertEqual("EnvironmentRef", cm.exception.got)
        self.assertEqual(1, cm.exception.pc)

    def test_underflow(self):
        self.assertRaises(StackUnderflow, execute, InstructionBuffer([Opcode.DUP]))
        self.assertRaises(StackUnderflow, execute, InstructionBuffer([Opcode.RET]))

    def test_invalid_opcode(self):
        self.assertRaises(InvalidOpcode, execute, InstructionBuffer([99]))
        self.assertRaises(InvalidOpcode, execute, InstructionBuffer([Opcode.GET_ENV, Opcode.JMP]))


class OpcodeTestCase(unittest.TestCase):

    def test_swap(self):
        buf = InstructionBuffer().emit(Opcode.GET_ENV).emit(Opcode.GET_REL_ADDR, 7)
        buf.emit(Opcode.SWAP).emit(Opcode.MK_CLOSURE)
        self.assertEqual(Closure(8, None), execute(buf))

        unswapped = InstructionBuffer().emit(Opcode.GET_ENV).emit(Opcode.GET_REL_ADDR, 7).emit(Opcode.MK_CLOSURE)
        self.assertRaises(ValueTypeFault, execute, unswapped)

    def test_get_rel_addr(self):
        buf = InstructionBuffer().emit(Opcode.JMP, 2).emit(Opcode.GET_REL_ADDR, 3)
        self.assertEqual(Address(5), execute(buf))
        self.assertEqual("[address: 5]", execute(buf).render())

    def test_jmp_skips(self):
        buf = InstructionBuffer().emit(Opcode.JMP, 3).emit(Opcode.DUP).emit(Opcode.GET_ENV)
        self.assertEqual(EnvironmentRef(None), execute(buf))

    def test_extend_and_lookup(self):
        buf = InstructionBuffer()
        buf.emit(Opcode.GET_REL_ADDR, 40).emit(Opcode.EXTEND_ENV)
        buf.emit(Opcode.GET_REL_ADDR, 50).emit(Opcode.EXTEND_ENV)
        buf.emit(Opcode.ENV_LOOKUP, 1)
        self.assertEqual(Address(40), execute(buf))

    def test_call_returns_after_call(self):
        buf = InstructionBuffer()
        buf.emit(Opcode.GET_REL_ADDR, 5)    # 0: address of RET below
        buf.emit(Opcode.CALL)               # 2
        buf.emit(Opcode.JMP, 3)             # 3: jumps to 6, past RET
        buf.emit(Opcode.RET)                # 5
        buf.emit(Opcode.GET_ENV)            # 6

        trace = []
        result = VirtualMachine(trace=lambda address, *args: trace.append(address)).execute(buf)

        self.assertEqual(EnvironmentRef(None), result)
        self.assertEqual([0, 2, 5, 3, 6], trace)

    def test_push_and_pop_env(self):
        machine = VirtualMachine()
        buf = InstructionBuffer()
        buf.emit(Opcode.GET_ENV).emit(Opcode.EXTEND_ENV)   # env = [{environment}]
        buf.emit(Opcode.GET_ENV).emit(Opcode.GET_ENV)
        buf.emit(Opcode.EXTEND_ENV)                        # env = [{env}, {env}]
        buf.emit(Opcode.PUSH_ENV)                          # back to env = [{env}]
        buf.emit(Opcode.POP_ENV)                           # restored to depth 2
        buf.emit(Opcode.GET_ENV)

        result = machine.execute(buf)
        self.assertEqual(2, Frame.depth(result.env))

    def test_trace(self):
        calls = []
        VirtualMachine(trace=lambda *args: calls.append(args)).execute(compile_expression(parse("\\y y")))
        self.assertEqual([(0, Opcode.GET_REL_ADDR, 6, 0), (2, Opcode.GET_ENV, None, 1),
                          (3, Opcode.MK_CLOSURE, None, 2), (4, Opcode.JMP, 6, 1)], calls)


class StackTestCase(unittest.TestCase):

    def test_bounds(self):
        stack = Stack("operand", 2)
        stack.push(1)
        stack.push(2)
        self.assertRaises(StackExhausted, stack.push, 3)
        self.assertEqual(2, stack.peek())
        self.assertEqual(2, stack.pop())
        self.assertEqual(1, stack.pop())
        self.assertRaises(StackUnderflow, stack.pop)
        self.assertRaises(StackUnderflow, stack.peek)


class FuzzTestCase(unittest.TestCase):
    """Random nested lambdas and applications: every lookup stays inside the environment chain, and every result
    agrees with the tree-walking interpreter.
    """
    SEEDS = 300

    def test_random_terms(self):
        rng = random.Random(1729)
        finished = 0

        for seed in range(FuzzTestCase.SEEDS):
            term = random_term(rng, 6)
            program = compile_expression(term)
            machine = VirtualMachine(stack_size=48)

            def check_lookup(address, opcode, operand, depth):
                if opcode is Opcode.ENV_LOOKUP:
                    self.assertLess(operand, Frame.depth(machine.env), str(term))

            machine.trace = check_lookup
            try:
                result = machine.execute(program)
            except StackExhausted:
                continue  # diverges, or recurses deeper than the small stacks allow

            finished += 1
            self.assertIsInstance(result, Closure, str(term))
            self.assertIs(evaluate(term).lam, program.lambdas[result.body_address], str(term))

        self.assertGreater(finished, FuzzTestCase.SEEDS // 3)


if __name__ == '__main__':
    unittest.main()
