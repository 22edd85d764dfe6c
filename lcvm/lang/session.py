"""Session control for lcvm. Parses, compiles and runs λ-term programs, either in command-line mode or file
interpretation mode. Every program is compiled completely when added, so a program with an unbound symbol never runs.
"""

from termcolor import colored

from lcvm.bytecode.compiler import compile_expression, shadowed_binders
from lcvm.bytecode.disassembler import format_listing
from lcvm.grammar.pure import Grammar, parse
from lcvm.interpreter import evaluate
from lcvm.lang.error import GenericException
from lcvm.machine.vm import VirtualMachine


def print_trace(address, opcode, operand, depth):
    """VirtualMachine trace hook: one dimmed line per executed instruction."""
    operand = "" if operand is None else operand
    print(colored(f"  {address:04}  {opcode.name:<16} {operand:>4}  [stack: {depth}]", attrs=["dark"]))


class Session:
    """Governs a lcvm session: programs waiting to run and the results of those that have."""
    SH_FILE = "<in>"  # command-line interpreter filename

    def __init__(self, error_handler, path, cmd_line, interpret=False, stack_size=VirtualMachine.STACK_SIZE,
                 trace=False, disassemble=False):
        self.error_handler = error_handler
        self.error_handler.register_file(path)

        self.path = path                # used for error messages
        self.cmd_line = cmd_line        # whether or not in command-line mode
        self.interpret = interpret      # tree-walking evaluation instead of bytecode
        self.disassemble = disassemble  # print listings of compiled programs

        self.machine = VirtualMachine(stack_size, print_trace if trace else None)
        self.to_exec = {}   # dict of line num: (source, compiled program or λ-term)
        self.results = []   # rendered results, oldest first

        if self.cmd_line:
            self.error_handler.fatal = False

        if path != Session.SH_FILE:
            exprs = []
            add_to_prev = False

            try:
                with open(path, "r") as file:
                    for line_num, line in enumerate(file):
                        __, add_to_prev = self.preprocess_line(line, line_num + 1, add_to_prev, exprs)
            except OSError:
                raise GenericException("'{}' could not be opened", path, diagnosis=False)

            if add_to_prev:
                raise GenericException("unexpected end of file in '{}'", exprs[-1][0], diagnosis=False)

            for expr, line_num in exprs:
                self.add(expr, line_num)

        elif not cmd_line:
            raise GenericException("'<in>' is a reserved filename")

    @staticmethod
    def preprocess_line(line, line_num, add_to_prev, exprs=None):
        """Preprocesses a line from a file or command-line. In command-line mode, exprs can be ignored (used to keep
        track of file's exprs), but add_to_prev will indicate whether a line continuation is necessary. Returns
        updated value of line and add_to_prev.
        """
        line = Grammar.preprocess(line)
        if not line:
            return line, add_to_prev

        if exprs is not None:
            if add_to_prev and exprs:
                prev, first_line_num = exprs.pop()
                line = f"{prev} {line}"
                exprs.append((line, first_line_num))
            else:
                exprs.append((line, line_num))

        return line, Grammar.is_incomplete(line)

    def add(self, expr, line_num):
        """Parses and compiles expr, queueing it to be run. Raises any errors before anything is queued."""
        self.error_handler.register_line(self.path, expr, line_num)  # in case error is raised

        tree = parse(expr)
        for lam in shadowed_binders(tree):
            start = lam.start or 0
            msg = "binding of '{1}' shadows an enclosing binding in {0}"
            self.error_handler.warn(msg, (expr, lam.arg), start=start, end=start + len(lam.arg))

        if self.interpret:
            program = tree
        else:
            program = compile_expression(tree, source=expr)
            if self.disassemble:
                print(format_listing(program))

        self.to_exec[line_num] = (expr, program)
        self.error_handler.remove_line(self.path)  # error was not raised

    def run(self):
        """Runs this session's queued programs in order, collecting their rendered results. Will raise any errors
        that are encountered.
        """
        for line_num, (expr, program) in list(self.to_exec.items()):
            self.error_handler.register_line(self.path, expr, line_num)

            try:
                if self.interpret:
                    result = evaluate(program, source=expr)
                else:
                    result = self.machine.execute(program)
            finally:
                del self.to_exec[line_num]

            self.results.append(result.render())
            self.error_handler.remove_line(self.path)

    def pop(self):
        """Removes and returns the oldest result."""
        return self.results.pop(0)
