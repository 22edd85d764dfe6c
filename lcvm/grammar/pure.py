"""Pure lambda calculus recursive-descent parser.

Formally, the accepted grammar is

```
<expr>        ::= <lambda> | <application> | <symbol>
<lambda>      ::= "\\" <symbol> <expr>       ; body extends as far as one expr
<application> ::= "(" <expr> <expr> ")"      ; exactly one operator and one operand
<symbol>      ::= letter, then any run of characters other than whitespace, "(", ")" and "\\"
```

Whitespace is insignificant between tokens, and a program is exactly one <expr>.
"""

from lcvm.lang.error import NestingTooDeep, ParseError
from lcvm.term import Application, Lambda, Symbol


class Grammar:
    """Line-level helpers shared by the shell and the file reader."""
    COMMENT = ";;"
    RESERVED = "()\\"

    @staticmethod
    def preprocess(line):
        """Strips comments and surrounding whitespace from line."""
        if Grammar.COMMENT in line:
            line = line[:line.index(Grammar.COMMENT)]
        return line.strip()

    @staticmethod
    def is_incomplete(text):
        """Whether text has more '(' than ')', meaning the program continues on the next line."""
        return text.count("(") > text.count(")")


class Parser:
    """Single-use parser over one program's source text."""

    def __init__(self, source):
        self.source = source
        self.pos = 0

    def parse(self):
        expr = self.parse_expression()
        self.skip_whitespace()
        if self.pos < len(self.source):
            raise self.error("unexpected trailing input in {}", len(self.source))
        return expr

    def parse_expression(self):
        self.skip_whitespace()
        char = self.peek()
        if char == "\\":
            return self.parse_lambda()
        if char == "(":
            return self.parse_application()
        return self.parse_symbol()

    def parse_symbol(self):
        self.skip_whitespace()
        char = self.peek()
        if char is None:
            raise self.error("unexpected end of input in {}")
        if not char.isalpha():
            raise self.error(f"unexpected character '{_escape(char)}' in {{}}", self.pos + 1)

        start = self.pos
        while self.pos < len(self.source):
            char = self.source[self.pos]
            if char.isspace() or char in Grammar.RESERVED:
                break
            self.pos += 1
        return Symbol(self.source[start:self.pos], start)

    def parse_lambda(self):
        self.pos += 1  # consume '\'
        arg = self.parse_symbol()
        body = self.parse_expression()
        return Lambda(arg.name, body, arg.start)

    def parse_application(self):
        self.pos += 1  # consume '('
        operator = self.parse_expression()
        operand = self.parse_expression()

        self.skip_whitespace()
        char = self.peek()
        if char != ")":
            found = "end of input" if char is None else f"'{_escape(char)}'"
            raise self.error(f"expected ')' to end application, but got {found} in {{}}", self.pos + 1)
        self.pos += 1
        return Application(operator, operand)

    def peek(self):
        return self.source[self.pos] if self.pos < len(self.source) else None

    def skip_whitespace(self):
        while self.pos < len(self.source) and self.source[self.pos].isspace():
            self.pos += 1

    def error(self, msg, end=None):
        start = min(self.pos, max(len(self.source) - 1, 0))
        return ParseError(msg, self.source, start=start, end=end if end is not None else start + 1)


def _escape(char):
    """Doubles braces so char survives GenericException's str.format."""
    return char.replace("{", "{{").replace("}", "}}")


def parse(source):
    """Parses source into a single λ-term, raising ParseError if it is not exactly one well-formed expr. Parsing
    recurses once per level of nesting, so terms nested past the interpreter's recursion limit raise NestingTooDeep.
    """
    if not source.strip():
        raise ParseError("λ-term cannot be empty", source, diagnosis=False)
    try:
        return Parser(source).parse()
    except RecursionError:
        raise NestingTooDeep("parse") from None
