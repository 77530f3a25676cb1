"""
Arithmetic expression evaluation for value cells.

A value cell is either a plain number ("1234.5") or a small arithmetic
expression ("1200+300", "(2500 - 200) / 2"). The grammar is explicit and
closed, so nothing outside it is ever evaluated:

    expr   := term (('+' | '-') term)*
    term   := factor (('*' | '/') factor)*
    factor := ('+' | '-') factor | '(' expr ')' | NUMBER

evaluate_value() never raises. When the grammar rejects a cell, or the
result is not finite, the leading number of the cell is used instead
("12 EUR" -> 12.0), and 0.0 when there is none.
"""

import math
import re
from typing import List, Tuple

ALLOWED_CHARS = re.compile(r'^[\d+\-*/.()\s]+$')
LEADING_NUMBER = re.compile(r'^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?')
PLAIN_NUMBER = re.compile(r'^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$')

_TOKEN = re.compile(r'\s*(?:(\d+\.?\d*|\.\d+)|(.))')

# Parentheses and unary signs nested deeper than this are rejected
MAX_DEPTH = 100


class ExpressionError(ValueError):
    """Raised when a string is not a valid arithmetic expression."""

    def __init__(self, message: str, position: int = -1):
        self.position = position
        if position >= 0:
            message = f"{message} (at position {position})"
        super().__init__(message)


def tokenize(text: str) -> List[Tuple[str, str, int]]:
    """Split an expression into (kind, text, position) tokens."""
    tokens = []
    pos = 0
    stripped = text.rstrip()
    while pos < len(stripped):
        match = _TOKEN.match(stripped, pos)
        number, op = match.group(1), match.group(2)
        start = match.start(1) if number else match.start(2)
        if number:
            tokens.append(('num', number, start))
        elif op in '+-*/()':
            tokens.append(('op', op, start))
        else:
            raise ExpressionError(f"Unexpected character {op!r}", start)
        pos = match.end()
    return tokens


class _Parser:
    """Recursive-descent parser that evaluates while it parses."""

    def __init__(self, tokens):
        self.tokens = tokens
        self.index = 0
        self.depth = 0

    def peek(self):
        if self.index < len(self.tokens):
            return self.tokens[self.index]
        return None

    def take(self):
        token = self.peek()
        self.index += 1
        return token

    def parse(self) -> float:
        if not self.tokens:
            raise ExpressionError("Empty expression")
        value = self.expr()
        token = self.peek()
        if token is not None:
            raise ExpressionError(f"Unexpected {token[1]!r}", token[2])
        return value

    def expr(self) -> float:
        value = self.term()
        while True:
            token = self.peek()
            if token is None or token[1] not in '+-':
                return value
            self.take()
            rhs = self.term()
            value = value + rhs if token[1] == '+' else value - rhs

    def term(self) -> float:
        value = self.factor()
        while True:
            token = self.peek()
            if token is None or token[1] not in '*/':
                return value
            self.take()
            rhs = self.factor()
            if token[1] == '*':
                value = value * rhs
            else:
                if rhs == 0:
                    raise ExpressionError("Division by zero", token[2])
                value = value / rhs

    def factor(self) -> float:
        token = self.take()
        if token is None:
            raise ExpressionError("Unexpected end of expression")
        kind, text, pos = token
        if kind == 'num':
            return float(text)
        if self.depth >= MAX_DEPTH:
            raise ExpressionError("Expression nested too deeply", pos)
        self.depth += 1
        try:
            return self._nested(text, pos)
        finally:
            self.depth -= 1

    def _nested(self, text: str, pos: int) -> float:
        if text == '-':
            return -self.factor()
        if text == '+':
            return self.factor()
        if text == '(':
            value = self.expr()
            closing = self.take()
            if closing is None or closing[1] != ')':
                raise ExpressionError("Missing closing parenthesis", pos)
            return value
        raise ExpressionError(f"Unexpected {text!r}", pos)


def parse_expression(text: str) -> float:
    """Evaluate an arithmetic expression strictly.

    Raises:
        ExpressionError: if the text is outside the grammar or the result
            is not a finite number.
    """
    if not ALLOWED_CHARS.match(text):
        raise ExpressionError(f"Not an arithmetic expression: {text!r}")
    result = _Parser(tokenize(text)).parse()
    if not math.isfinite(result):
        raise ExpressionError(f"Result is not finite: {text!r}")
    return result


def leading_number(text: str) -> float:
    """Return the number at the start of text, or 0.0 when there is none."""
    match = LEADING_NUMBER.match(text.strip())
    if not match:
        return 0.0
    value = float(match.group(0))
    return value if math.isfinite(value) else 0.0


def evaluate_value(cell) -> float:
    """Resolve a value cell to a finite float.

    Args:
        cell: Cell text, e.g. "123.45", "1200+300" or "12 EUR"

    Returns:
        The numeric value; 0.0 when nothing numeric can be recovered.
    """
    if cell is None:
        return 0.0
    text = str(cell).strip()
    if not text:
        return 0.0

    if PLAIN_NUMBER.match(text):
        value = float(text)
        return value if math.isfinite(value) else 0.0

    try:
        return parse_expression(text)
    except ExpressionError:
        return leading_number(text)
