"""Error handling for the lcvm compiler and virtual machine. Only GenericExceptions should be encountered during running:
if another type of error is raised and makes it all the way to ErrorHandler, it is assumed to be an internal issue.
"""

import re
import sys

from termcolor import colored


class GenericException(Exception):
    """Templates an error/warning message so that it can be used to throw a lcvm error/warning. exprs are the snippets
    substituted into msg, the first of which is the offending expr; start and end delimit the part of it to underline.
    """

    def __init__(self, msg, exprs=None, start=0, end=-1, diagnosis=True, internal=False):
        """Parses args for GenericException or warning."""
        if exprs is None:
            exprs = ""
        if isinstance(exprs, str):
            exprs = [exprs]

        self.msg = msg.format(*(colored(expr, attrs=["bold"]) for expr in exprs))  # color expr snippets
        self.expr = exprs[0]  # exprs[0] should be the offending expr that caused the error
        self.end = end if end != -1 else len(self.expr)  # needed for error display

        self.start = start
        self.diagnosis = diagnosis
        self.internal = internal

        super().__init__(msg.format(*exprs))


class ParseError(GenericException):
    """Source text does not match the lambda calculus grammar."""


class UnboundSymbol(GenericException):
    """A symbol is referenced outside of every lambda that binds it. Raised at compile time. start is the symbol's
    offset in source when the parser recorded it; otherwise the first whole-token occurrence is underlined.
    """

    def __init__(self, symbol, source=None, start=None):
        self.symbol = symbol
        if source and start is None:
            match = re.search(rf"(?<![^\s()\\]){re.escape(symbol)}(?![^\s()\\])", source)
            start = match.start() if match else None

        if source and start is not None:
            super().__init__("symbol '{1}' is not bound in {0}", (source, symbol), start=start, end=start + len(symbol))
        else:
            super().__init__("symbol '{}' is not bound", symbol, diagnosis=False)


class NestingTooDeep(GenericException):
    """A term is nested deeper than the recursive parser or compiler can follow."""

    def __init__(self, stage):
        super().__init__("expression is nested too deeply to {}", stage, diagnosis=False)


class VMFault(GenericException):
    """Unrecoverable fault raised while executing bytecode. Aborts the current execution. Setting pc, which the
    machine does for faults raised below it, adds the address to the message.
    """

    def __init__(self, msg, *args, pc=None):
        self._template = (msg, args)
        self.pc = pc

    @property
    def pc(self):
        return self._pc

    @pc.setter
    def pc(self, pc):
        self._pc = pc
        msg, args = self._template
        if pc is not None:
            msg += f" (pc={pc})"
        GenericException.__init__(self, msg, *args, diagnosis=False)


class StackExhausted(VMFault):
    """A fixed-capacity machine stack overflowed, usually because the program diverges."""

    def __init__(self, stack, capacity, pc=None):
        self.stack = stack
        self.capacity = capacity
        super().__init__("{} stack exhausted (capacity {})", (stack, str(capacity)), pc=pc)


class StackUnderflow(VMFault):
    """A value was popped from an empty machine stack."""

    def __init__(self, stack, pc=None):
        self.stack = stack
        super().__init__("{} stack underflow", stack, pc=pc)


class MalformedResult(VMFault):
    """Execution finished without exactly one value on the operand stack."""

    def __init__(self, count):
        self.count = count
        super().__init__("execution ended with {} values on the stack, expected 1", str(count))


class InvalidLookup(VMFault):
    """ENV_LOOKUP walked past the end of the runtime environment chain."""

    def __init__(self, hops, depth, pc=None):
        self.hops = hops
        self.depth = depth
        super().__init__("environment lookup of {} hops in a chain of depth {}", (str(hops), str(depth)), pc=pc)


class ValueTypeFault(VMFault):
    """An opcode popped a value of the wrong kind."""

    def __init__(self, opcode, expected, got, pc=None):
        self.expected = expected
        self.got = got
        super().__init__("{} expected {}, got {}", (opcode, expected, got), pc=pc)


class InvalidOpcode(VMFault):
    """An instruction word does not decode to an opcode, or its operand is missing."""

    def __init__(self, word, pc=None):
        self.word = word
        super().__init__("invalid instruction word {}", str(word), pc=pc)


class ErrorHandler:
    """Context manager that will silently suppress Python errors and raise custom lcvm errors/warnings."""
    ERROR = "red"
    WARNING = "magenta"

    def __init__(self, fatal=True):
        self.fatal = fatal
        self.traceback = {}

    def register_file(self, path):
        """Registers path in traceback."""
        self.traceback[path] = (None, None)

    def register_line(self, path, line, line_num):
        """Registers line in traceback given path. Should be called prior to Session add/run."""
        self.traceback[path] = (line, line_num)

    def remove_line(self, path):
        """Removes line from traceback given path. Should be called after successful Session add/run."""
        self.traceback[path] = (None, None)

    @staticmethod
    def diagnose(error, warning=False):
        """Returns offending part of error.expr highlighted and bolded."""
        color = ErrorHandler.WARNING if warning else ErrorHandler.ERROR

        diagnosis = "  " + error.expr[:error.start]

        end = max(error.end, error.start + 1)
        diagnosis += colored(error.expr[error.start:end], color, attrs=["bold"])
        diagnosis += error.expr[end:] + "\n"

        diagnosis += "  " + " " * error.start
        diagnosis += colored("^" + "~" * (end - error.start - 1), color, attrs=["bold"])

        return diagnosis

    def warn(self, *args, **kwargs):
        """Generates and prints runtime warning message based on args."""
        error = GenericException(*args, **kwargs)

        error_msg = ""
        for file, (line, line_num) in self.traceback.items():
            if line:
                error_msg += colored(f"{file}:{line_num}: ", attrs=["bold"])
                break

        error_msg += colored("warning: ", ErrorHandler.WARNING, attrs=["bold"]) + error.msg
        print(error_msg)

        if not error.internal and error.expr and error.diagnosis:
            print(ErrorHandler.diagnose(error, warning=True))

    def throw(self, error):
        """Throws error using error and self.traceback. error must be a GenericException, and self.traceback must be a
        dict of file: (line, line_num) representing origination of error.
        """
        error_msg = ""
        lines = 0
        for file, (line, line_num) in self.traceback.items():  # assumes dict is insertion-ordered
            if line:
                error_msg += f"  File '{file}', line {line_num}:\n"
                error_msg += f"    {line}\n"
                lines += 1

        if lines > 1:
            error_msg = "Traceback:\n" + error_msg

        if error.internal:
            error_msg += colored("[internal] ", ErrorHandler.ERROR, attrs=["bold"])

        error_msg += colored("error: ", ErrorHandler.ERROR, attrs=["bold"]) + error.msg
        print(error_msg)

        if not error.internal and error.expr and error.diagnosis:
            print(ErrorHandler.diagnose(error))

        if self.fatal:
            sys.exit(1)
        self.traceback = {path: (None, None) for path in self.traceback}  # keep files, drop stale lines

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        do_exit = False
        if exc_type is KeyboardInterrupt:
            self.throw(GenericException("keyboard interrupt"))
        elif exc_type is SystemExit:
            do_exit = True
        elif exc_type is RecursionError:
            self.throw(GenericException("expression is nested too deeply: maximum recursion depth exceeded"))
        elif exc_type is not None and issubclass(exc_type, GenericException):
            self.throw(exc_val)
        elif exc_type is not None:
            self.throw(GenericException(f"unknown error: '{exc_type.__name__}: {exc_val}'", internal=True))
            do_exit = True

        return not do_exit
