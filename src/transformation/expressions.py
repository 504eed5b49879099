"""
Arithmetic expressions for calculated fields.

Grammar::

    expr    := term (("+" | "-") term)*
    term    := unary (("*" | "/") unary)*
    unary   := "-" unary | primary
    primary := NUMBER | "{" path "}" | "(" expr ")"

Placeholders resolve against a row by dot-path; values that are not numbers
evaluate as 0. Division by zero makes the whole expression evaluate to None.
"""

import re
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Union

from src.core.exceptions import ExpressionError

_TOKEN_RE = re.compile(
    r"\s*(?:(?P<number>\d+(?:\.\d*)?|\.\d+)|\{(?P<field>[^{}]+)\}|(?P<op>[-+*/()]))"
)


@dataclass(frozen=True)
class Number:
    value: float


@dataclass(frozen=True)
class FieldRef:
    path: str


@dataclass(frozen=True)
class Negate:
    operand: "Node"


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: "Node"
    right: "Node"


Node = Union[Number, FieldRef, Negate, BinaryOp]


class _DivisionByZero(Exception):
    pass


def tokenize(source: str) -> List[tuple]:
    tokens = []
    pos = 0
    source = source.rstrip()
    while pos < len(source):
        match = _TOKEN_RE.match(source, pos)
        if not match:
            raise ExpressionError(f"Unexpected character at position {pos}: {source[pos:pos + 10]!r}")
        if match.group("number") is not None:
            tokens.append(("number", float(match.group("number"))))
        elif match.group("field") is not None:
            tokens.append(("field", match.group("field").strip()))
        else:
            tokens.append(("op", match.group("op")))
        pos = match.end()
    return tokens


class _Parser:
    def __init__(self, tokens: List[tuple]):
        self.tokens = tokens
        self.pos = 0

    def peek(self) -> Optional[tuple]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def take(self) -> tuple:
        token = self.peek()
        if token is None:
            raise ExpressionError("Unexpected end of expression")
        self.pos += 1
        return token

    def parse(self) -> Node:
        node = self.expr()
        if self.peek() is not None:
            raise ExpressionError(f"Unexpected token {self.peek()[1]!r}")
        return node

    def expr(self) -> Node:
        node = self.term()
        while self.peek() in (("op", "+"), ("op", "-")):
            op = self.take()[1]
            node = BinaryOp(op, node, self.term())
        return node

    def term(self) -> Node:
        node = self.unary()
        while self.peek() in (("op", "*"), ("op", "/")):
            op = self.take()[1]
            node = BinaryOp(op, node, self.unary())
        return node

    def unary(self) -> Node:
        if self.peek() == ("op", "-"):
            self.take()
            return Negate(self.unary())
        return self.primary()

    def primary(self) -> Node:
        kind, value = self.take()
        if kind == "number":
            return Number(value)
        if kind == "field":
            return FieldRef(value)
        if value == "(":
            node = self.expr()
            if self.take() != ("op", ")"):
                raise ExpressionError("Expected ')'")
            return node
        raise ExpressionError(f"Unexpected token {value!r}")


def parse_expression(source: str) -> Node:
    """Parse an expression string into an AST, raising ExpressionError."""
    if not isinstance(source, str) or not source.strip():
        raise ExpressionError("Expression must be a non-empty string")
    return _Parser(tokenize(source)).parse()


def _as_number(value: Any) -> float:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    return 0.0


def _evaluate(node: Node, resolve: Callable[[str], Any]) -> float:
    if isinstance(node, Number):
        return node.value
    if isinstance(node, FieldRef):
        return _as_number(resolve(node.path))
    if isinstance(node, Negate):
        return -_evaluate(node.operand, resolve)
    left = _evaluate(node.left, resolve)
    right = _evaluate(node.right, resolve)
    if node.op == "+":
        return left + right
    if node.op == "-":
        return left - right
    if node.op == "*":
        return left * right
    if right == 0:
        raise _DivisionByZero()
    return left / right


def evaluate(node: Node, resolve: Callable[[str], Any]) -> Optional[float]:
    """Evaluate a parsed expression; None when it divides by zero."""
    try:
        result = _evaluate(node, resolve)
    except _DivisionByZero:
        return None
    if result.is_integer():
        return int(result)
    return result
