"""Handles interactive/command-line mode for lcvm. Uses cmd as backend."""

import cmd


class Shell(cmd.Cmd):
    """Lambda calculus compiler shell."""
    intro = "Lambda calculus compiler :: bytecode virtual machine\nType '?' or 'help' for more information."
    prompt = "> "
    secondary_prompt = ". "  # used for line continuations
    _tmp_prompt = "> "       # also used for prompt swapping in line continuations

    def __init__(self, sess, *args, **kwargs):
        super().__init__(*args, **kwargs)

        self.sess = sess

        self._tmp_line = ""
        self.line_num = 0

    def default(self, line):
        """Compiles and runs an arbitrary λ-term."""
        with self.sess.error_handler:  # needed because cmd.Cmd automatically exits on Exception
            self.line_num += 1
            line, add_to_prev = self.sess.preprocess_line(f"{self._tmp_line} {line}", self.line_num, False)

            if add_to_prev:
                self._tmp_line = line
                self.prompt = self.secondary_prompt
                return

            self._tmp_line = ""
            self.prompt = self._tmp_prompt
            if not line:
                return

            self.sess.add(line, self.line_num)
            self.sess.run()

            while self.sess.results:
                print(self.sess.pop())

        self._tmp_line = ""  # reached on error too: drop a half-typed program
        self.prompt = self._tmp_prompt

    def do_help(self, arg):
        """Doesnt return docs, but rather a short intro."""
        print("Welcome to the lcvm compiler!\n\n"
              "Each λ-term you type is compiled to bytecode and run on a stack machine with\n"
              "proper closures. Terms are lambdas '\\x body', applications '(f a)', and\n"
              "symbols, which must be bound by an enclosing lambda.\n\n"
              "Try it out by typing '(\\x x \\y y)'. This applies the identity function to\n"
              "'\\y y', giving a closure '<lambda>' as the result.")

    def emptyline(self):
        """Do not repeat previous command on empty line."""
        return ""

    def do_EOF(self, arg):
        """Exits interpreter."""
        print()
        return self.do_exit(arg)

    def do_exit(self, arg):
        """Exits interpreter."""
        return True
