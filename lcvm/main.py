"""Compiles and runs λ-term files, or starts the command-line shell. Uses the error handling context manager. Installed
as the lcvm executable.
"""

import argparse

from lcvm.lang.error import ErrorHandler
from lcvm.lang.session import Session
from lcvm.lang.shell import Shell
from lcvm.machine.vm import VirtualMachine


def main():
    """Runs lcvm. Called from lcvm executable script."""
    with ErrorHandler() as error_handler:
        parser = argparse.ArgumentParser(description="Compile λ-terms to bytecode and run them on a stack machine.")
        parser.add_argument("file", help="file to compile and run (if empty, goes to command-line mode)", nargs="?")
        parser.add_argument("--interpret", action="store_true", help="evaluate by walking the tree instead")
        parser.add_argument("--disassemble", action="store_true", help="print the bytecode of each program")
        parser.add_argument("--trace", action="store_true", help="print every instruction as it executes")
        parser.add_argument("--stack-size", type=int, default=VirtualMachine.STACK_SIZE,
                            help="capacity of each machine stack (default: %(default)s)")
        args = parser.parse_args()

        if args.stack_size < 1:
            parser.error("--stack-size must be positive")

        options = dict(interpret=args.interpret, stack_size=args.stack_size, trace=args.trace,
                       disassemble=args.disassemble)

        if args.file is not None:
            sess = Session(error_handler, args.file, cmd_line=False, **options)
            sess.run()

            for result in sess.results:
                print(result)

        else:
            Shell(Session(error_handler, Session.SH_FILE, cmd_line=True, **options)).cmdloop()


if __name__ == "__main__":
    main()
