"""Plural-forms expression compiler and evaluator.

Catalogs declare how a count maps to a plural form with a C-like formula
in their metadata entry:

    Plural-Forms: nplurals=3; plural=(n%10==1 && n%100!=11 ? 0 : n%10>=2 && n%10<=4 && (n%100<10 || n%100>=20) ? 1 : 2);

The formula is translator-supplied, so it is never handed to ``eval``.
It goes through a character allow-list, a tokenizer and a precedence
parser that builds a small expression tree. Evaluation is a pure function
of ``n`` with C integer semantics:

- comparisons and logical operators yield 1 or 0
- ``/`` and ``%`` truncate toward zero, and yield 0 for a zero divisor
- ``&&``, ``||`` and ``?:`` short-circuit

Tree depth and formula length are bounded, so neither parsing nor
evaluation can recurse without limit. The selected index is clamped into
``[0, nplurals - 1]``.

Usage:
    evaluator = PluralEvaluator.from_declaration("nplurals=2; plural=(n != 1);")
    evaluator.select(1)  # 0
    evaluator.select(5)  # 1
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from mocatalog.exceptions import InvalidPluralExpressionError

logger = logging.getLogger(__name__)


DEFAULT_PLURAL_FORMS = "nplurals=2; plural=n == 1 ? 0 : 1;"

MAX_EXPRESSION_LENGTH = 1024
MAX_TREE_DEPTH = 100
MAX_NESTING = 32

_DISALLOWED_CHARS = re.compile(r"[^0-9a-zA-Z_:;()?|&=!<>+*/%\s-]")
_NPLURALS_RE = re.compile(r"\bnplurals\s*=\s*([^;]*)")
_PLURAL_RE = re.compile(r"\bplural\s*=\s*([^;]*)")


def sanitize_declaration(declaration: str) -> str:
    """Drop every character outside the plural-forms allow-list."""
    return _DISALLOWED_CHARS.sub("", declaration)


# =============================================================================
# C integer semantics
# =============================================================================


def c_div(a: int, b: int) -> int:
    """Integer division truncating toward zero; 0 when ``b`` is 0."""
    if b == 0:
        return 0
    quotient = abs(a) // abs(b)
    return quotient if (a < 0) == (b < 0) else -quotient


def c_mod(a: int, b: int) -> int:
    """Remainder with the sign of the dividend; 0 when ``b`` is 0."""
    if b == 0:
        return 0
    return a - b * c_div(a, b)


_BINARY_OPERATORS: dict[str, Callable[[int, int], int]] = {
    "+": lambda a, b: a + b,
    "-": lambda a, b: a - b,
    "*": lambda a, b: a * b,
    "/": c_div,
    "%": c_mod,
    "==": lambda a, b: int(a == b),
    "!=": lambda a, b: int(a != b),
    "<": lambda a, b: int(a < b),
    ">": lambda a, b: int(a > b),
    "<=": lambda a, b: int(a <= b),
    ">=": lambda a, b: int(a >= b),
}


# =============================================================================
# Tokens
# =============================================================================


class TokenType(Enum):
    """Lexical categories of a plural formula."""

    NUMBER = "number"
    VARIABLE = "variable"
    OPERATOR = "operator"
    LPAREN = "("
    RPAREN = ")"
    QUESTION = "?"
    COLON = ":"
    END = "end"


@dataclass(frozen=True)
class Token:
    type: TokenType
    value: str
    position: int


_DIGITS = "0123456789"
_TWO_CHAR_OPERATORS = ("==", "!=", "<=", ">=", "&&", "||")
_ONE_CHAR_OPERATORS = "<>+-*/%!"
_PUNCTUATION = {
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    "?": TokenType.QUESTION,
    ":": TokenType.COLON,
}


def tokenize(expression: str) -> list[Token]:
    """Split a formula into tokens, ending with an END token.

    Raises:
        InvalidPluralExpressionError: On an unknown identifier or character.
    """
    tokens: list[Token] = []
    i = 0
    length = len(expression)
    while i < length:
        ch = expression[i]
        if ch.isspace():
            i += 1
        elif ch in _DIGITS:
            start = i
            while i < length and expression[i] in _DIGITS:
                i += 1
            tokens.append(Token(TokenType.NUMBER, expression[start:i], start))
        elif ch.isalpha() or ch == "_":
            start = i
            while i < length and (expression[i].isalnum() or expression[i] == "_"):
                i += 1
            name = expression[start:i]
            if name != "n":
                raise InvalidPluralExpressionError(
                    f"Unknown identifier {name!r}", expression, start
                )
            tokens.append(Token(TokenType.VARIABLE, name, start))
        elif expression[i:i + 2] in _TWO_CHAR_OPERATORS:
            tokens.append(Token(TokenType.OPERATOR, expression[i:i + 2], i))
            i += 2
        elif ch in _ONE_CHAR_OPERATORS:
            tokens.append(Token(TokenType.OPERATOR, ch, i))
            i += 1
        elif ch in _PUNCTUATION:
            tokens.append(Token(_PUNCTUATION[ch], ch, i))
            i += 1
        else:
            raise InvalidPluralExpressionError(
                f"Unexpected character {ch!r}", expression, i
            )
    tokens.append(Token(TokenType.END, "", length))
    return tokens


# =============================================================================
# Expression tree
# =============================================================================


class Node(ABC):
    """Expression tree node. ``depth`` is fixed at construction."""

    depth: int

    @abstractmethod
    def evaluate(self, n: int) -> int:
        """Evaluate the subtree for count ``n``."""


@dataclass(frozen=True)
class Literal(Node):
    value: int
    depth: int = field(default=1, init=False)

    def evaluate(self, n: int) -> int:
        return self.value


@dataclass(frozen=True)
class Variable(Node):
    depth: int = field(default=1, init=False)

    def evaluate(self, n: int) -> int:
        return n


@dataclass(frozen=True)
class Group(Node):
    """A parenthesized sub-expression."""

    inner: Node
    depth: int = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "depth", self.inner.depth + 1)

    def evaluate(self, n: int) -> int:
        return self.inner.evaluate(n)


@dataclass(frozen=True)
class Not(Node):
    operand: Node
    depth: int = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "depth", self.operand.depth + 1)

    def evaluate(self, n: int) -> int:
        return int(not self.operand.evaluate(n))


@dataclass(frozen=True)
class BinaryOp(Node):
    operator: str
    left: Node
    right: Node
    depth: int = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "depth", max(self.left.depth, self.right.depth) + 1)

    def evaluate(self, n: int) -> int:
        if self.operator == "&&":
            return int(bool(self.left.evaluate(n)) and bool(self.right.evaluate(n)))
        if self.operator == "||":
            return int(bool(self.left.evaluate(n)) or bool(self.right.evaluate(n)))
        return _BINARY_OPERATORS[self.operator](
            self.left.evaluate(n), self.right.evaluate(n)
        )


@dataclass(frozen=True)
class Conditional(Node):
    condition: Node
    if_true: Node
    if_false: Node
    depth: int = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "depth",
            max(self.condition.depth, self.if_true.depth, self.if_false.depth) + 1,
        )

    def evaluate(self, n: int) -> int:
        if self.condition.evaluate(n):
            return self.if_true.evaluate(n)
        return self.if_false.evaluate(n)


# =============================================================================
# Parser
# =============================================================================


# Binary precedence levels, loosest first.
_PRECEDENCE: tuple[tuple[str, ...], ...] = (
    ("||",),
    ("&&",),
    ("==", "!="),
    ("<", ">", "<=", ">="),
    ("+", "-"),
    ("*", "/", "%"),
)


class _Parser:
    """Recursive-descent parser producing a bounded expression tree."""

    def __init__(self, expression: str) -> None:
        self.expression = expression
        self.tokens = tokenize(expression)
        self.index = 0
        self.nesting = 0

    def parse(self) -> Node:
        node = self._conditional()
        token = self._peek()
        if token.type is not TokenType.END:
            raise self._error(f"Unexpected {token.value!r}", token)
        return node

    def _peek(self) -> Token:
        return self.tokens[self.index]

    def _advance(self) -> Token:
        token = self.tokens[self.index]
        if token.type is not TokenType.END:
            self.index += 1
        return token

    def _expect(self, token_type: TokenType) -> Token:
        token = self._peek()
        if token.type is not token_type:
            found = token.value or "end of expression"
            raise self._error(f"Expected {token_type.value!r}, found {found!r}", token)
        return self._advance()

    def _error(self, message: str, token: Token) -> InvalidPluralExpressionError:
        return InvalidPluralExpressionError(message, self.expression, token.position)

    def _checked(self, node: Node, token: Token) -> Node:
        if node.depth > MAX_TREE_DEPTH:
            raise self._error("Expression nested too deeply", token)
        return node

    def _enter(self, token: Token) -> None:
        self.nesting += 1
        if self.nesting > MAX_NESTING:
            raise self._error("Expression nested too deeply", token)

    def _leave(self) -> None:
        self.nesting -= 1

    def _conditional(self) -> Node:
        condition = self._binary(0)
        token = self._peek()
        if token.type is not TokenType.QUESTION:
            return condition
        self._advance()
        self._enter(token)
        if_true = self._conditional()
        self._expect(TokenType.COLON)
        if_false = self._conditional()
        self._leave()
        return self._checked(Conditional(condition, if_true, if_false), token)

    def _binary(self, level: int) -> Node:
        if level == len(_PRECEDENCE):
            return self._unary()
        operators = _PRECEDENCE[level]
        node = self._binary(level + 1)
        while True:
            token = self._peek()
            if token.type is not TokenType.OPERATOR or token.value not in operators:
                return node
            self._advance()
            right = self._binary(level + 1)
            node = self._checked(BinaryOp(token.value, node, right), token)

    def _unary(self) -> Node:
        token = self._peek()
        if token.type is TokenType.OPERATOR and token.value == "!":
            self._advance()
            self._enter(token)
            operand = self._unary()
            self._leave()
            return self._checked(Not(operand), token)
        return self._primary()

    def _primary(self) -> Node:
        token = self._advance()
        if token.type is TokenType.NUMBER:
            return Literal(int(token.value))
        if token.type is TokenType.VARIABLE:
            return Variable()
        if token.type is TokenType.LPAREN:
            self._enter(token)
            inner = self._conditional()
            self._expect(TokenType.RPAREN)
            self._leave()
            return self._checked(Group(inner), token)
        found = token.value or "end of expression"
        raise self._error(f"Unexpected {found!r}", token)


def parse_expression(expression: str) -> Node:
    """Parse a plural formula into an expression tree.

    Raises:
        InvalidPluralExpressionError: If the formula is malformed, too long
            or nested too deeply.
    """
    if len(expression) > MAX_EXPRESSION_LENGTH:
        raise InvalidPluralExpressionError(
            f"Expression longer than {MAX_EXPRESSION_LENGTH} characters"
        )
    if not expression.strip():
        raise InvalidPluralExpressionError("Empty plural expression", expression)
    return _Parser(expression).parse()


# =============================================================================
# Well-known formulas
# =============================================================================


def _slavic(n: int) -> int:
    if c_mod(n, 10) == 1 and c_mod(n, 100) != 11:
        return 0
    if 2 <= c_mod(n, 10) <= 4 and (c_mod(n, 100) < 10 or c_mod(n, 100) >= 20):
        return 1
    return 2


_KNOWN_FORMULAS: dict[str, Callable[[int], int]] = {
    "0": lambda n: 0,
    "n!=1": lambda n: int(n != 1),
    "n>1": lambda n: int(n > 1),
    "n==1?0:1": lambda n: 0 if n == 1 else 1,
    "n%10==1&&n%100!=11?0:n%10>=2&&n%10<=4&&(n%100<10||n%100>=20)?1:2": _slavic,
}


def _known_formula(formula: str) -> Callable[[int], int] | None:
    compact = "".join(formula.split())
    if compact.startswith("(") and compact.endswith(")"):
        inner = compact[1:-1]
        if inner in _KNOWN_FORMULAS:
            return _KNOWN_FORMULAS[inner]
    return _KNOWN_FORMULAS.get(compact)


# =============================================================================
# Rule and evaluator
# =============================================================================


@dataclass(frozen=True)
class PluralRule:
    """A compiled plural-forms declaration.

    Attributes:
        nplurals: Number of plural forms the catalog stores.
        formula: The formula text after sanitizing.
        expression: Parsed expression tree.
    """

    nplurals: int
    formula: str
    expression: Node


def compile_plural_forms(declaration: str) -> PluralRule:
    """Compile a ``nplurals=INT; plural=EXPR;`` declaration.

    Raises:
        InvalidPluralExpressionError: If either field is missing or invalid.
    """
    cleaned = sanitize_declaration(declaration)

    nplurals_match = _NPLURALS_RE.search(cleaned)
    if nplurals_match is None:
        raise InvalidPluralExpressionError("Missing nplurals", cleaned)
    nplurals_text = nplurals_match.group(1).strip()
    if not nplurals_text.isdigit() or int(nplurals_text) < 1:
        raise InvalidPluralExpressionError(
            f"Invalid nplurals {nplurals_text!r}", cleaned
        )

    plural_match = _PLURAL_RE.search(cleaned)
    if plural_match is None:
        raise InvalidPluralExpressionError("Missing plural expression", cleaned)
    formula = plural_match.group(1).strip()

    return PluralRule(
        nplurals=int(nplurals_text),
        formula=formula,
        expression=parse_expression(formula),
    )


class PluralEvaluator:
    """Selects a plural index for a count using a compiled rule.

    Construct with :meth:`from_declaration` to get the recovery behaviour:
    a malformed declaration is logged and replaced with the default
    two-form rule instead of raising.
    """

    def __init__(self, rule: PluralRule, is_default: bool = False) -> None:
        self.rule = rule
        self.is_default = is_default
        self._select = _known_formula(rule.formula) or rule.expression.evaluate

    @classmethod
    def default(cls) -> "PluralEvaluator":
        return cls(compile_plural_forms(DEFAULT_PLURAL_FORMS), is_default=True)

    @classmethod
    def from_declaration(cls, declaration: str | None) -> "PluralEvaluator":
        """Compile ``declaration``, falling back to the default rule."""
        if declaration is None:
            return cls.default()
        try:
            return cls(compile_plural_forms(declaration))
        except InvalidPluralExpressionError as e:
            logger.warning("Invalid plural forms, using default rule: %s", e)
            return cls.default()

    @property
    def nplurals(self) -> int:
        return self.rule.nplurals

    def select(self, n: int) -> int:
        """Return the plural index for count ``n``, within ``[0, nplurals)``."""
        index = self._select(n)
        if index < 0:
            return 0
        if index >= self.rule.nplurals:
            return self.rule.nplurals - 1
        return index

    def __repr__(self) -> str:
        return f"PluralEvaluator(nplurals={self.nplurals}, plural={self.rule.formula!r})"
