"""
query/filters.py -- Restricted filter-expression grammar.

Clients send filters as short boolean expressions, e.g.

    price_min > 5 AND city = 'Krakow'
    (rating >= 4 OR validated = 1) AND country != "PL"

Grammar (AND binds tighter than OR, both looser than comparisons; left
associative; parentheses override):

    expr       := and_expr ( OR and_expr )*
    and_expr   := primary ( AND primary )*
    primary    := '(' expr ')' | comparison
    comparison := IDENT COMPARATOR ( NUMBER | STRING )
    COMPARATOR := '=' | '!=' | '<' | '<=' | '>' | '>='

Keywords are case-insensitive. Strings use single or double quotes; a doubled
quote inside a string stands for one literal quote. Numbers are integers or
decimals with an optional sign.

This module is pure syntax. It does not know which columns exist -- the
allow-list check belongs to query/options.py. Every failure raises
core.errors.ParseError with the character position of the offending input.

Bounds: expressions longer than MAX_EXPRESSION_LENGTH characters or nested
deeper than MAX_NESTING_DEPTH parentheses are rejected, so the tree is always
finite and parsing never recurses without limit.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any, Union

from core.errors import ParseError

MAX_EXPRESSION_LENGTH = 1000
MAX_NESTING_DEPTH = 32

COMPARATORS = frozenset({"=", "!=", "<", "<=", ">", ">="})
LOGICAL_OPERATORS = frozenset({"AND", "OR"})

_OPERATOR_CHARS = "=!<>"
_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_NUMBER_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)")

Value = Union[int, float, str]


# ---------------------------------------------------------------------------
# Tree
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Comparison:
    column: str
    operator: str
    value: Value


@dataclass(frozen=True)
class Logical:
    op: str  # "AND" | "OR"
    left: FilterNode
    right: FilterNode


FilterNode = Union[Comparison, Logical]


def iter_comparisons(node: FilterNode) -> Iterator[Comparison]:
    """Yield every leaf of the tree, left to right."""
    if isinstance(node, Comparison):
        yield node
    else:
        yield from iter_comparisons(node.left)
        yield from iter_comparisons(node.right)


def filter_to_dict(node: FilterNode) -> dict[str, Any]:
    """Serialize a tree as nested plain dicts (JSON-ready)."""
    if isinstance(node, Comparison):
        return {"type": "comparison", "column": node.column, "operator": node.operator, "value": node.value}
    return {
        "type": "logical",
        "op": node.op,
        "left": filter_to_dict(node.left),
        "right": filter_to_dict(node.right),
    }


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------

IDENT = "IDENT"
OPERATOR = "OPERATOR"
NUMBER = "NUMBER"
STRING = "STRING"
AND = "AND"
OR = "OR"
LPAREN = "LPAREN"
RPAREN = "RPAREN"
END = "END"


@dataclass(frozen=True)
class Token:
    kind: str
    value: Any
    position: int


def tokenize(text: str) -> list[Token]:
    """Split text into tokens. The returned list always ends with an END token."""
    if len(text) > MAX_EXPRESSION_LENGTH:
        raise ParseError(f"expression longer than {MAX_EXPRESSION_LENGTH} characters", MAX_EXPRESSION_LENGTH)

    tokens: list[Token] = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch.isspace():
            i += 1
        elif ch == "(":
            tokens.append(Token(LPAREN, ch, i))
            i += 1
        elif ch == ")":
            tokens.append(Token(RPAREN, ch, i))
            i += 1
        elif ch in "'\"":
            value, end = _read_string(text, i)
            tokens.append(Token(STRING, value, i))
            i = end
        elif ch in _OPERATOR_CHARS:
            j = i
            while j < n and text[j] in _OPERATOR_CHARS:
                j += 1
            op = text[i:j]
            if op not in COMPARATORS:
                raise ParseError(f"unknown operator '{op}'", i)
            tokens.append(Token(OPERATOR, op, i))
            i = j
        else:
            number = _NUMBER_RE.match(text, i)
            ident = _IDENT_RE.match(text, i)
            if number is not None:
                literal = number.group()
                value = float(literal) if "." in literal else int(literal)
                tokens.append(Token(NUMBER, value, i))
                i = number.end()
            elif ident is not None:
                word = ident.group()
                keyword = word.upper()
                if keyword in LOGICAL_OPERATORS:
                    tokens.append(Token(keyword, keyword, i))
                else:
                    tokens.append(Token(IDENT, word, i))
                i = ident.end()
            else:
                raise ParseError(f"unexpected character {ch!r}", i)

    tokens.append(Token(END, None, n))
    return tokens


def _read_string(text: str, start: int) -> tuple[str, int]:
    """Read a quoted literal starting at text[start]. Returns (value, index after closing quote)."""
    quote = text[start]
    chars: list[str] = []
    j = start + 1
    n = len(text)
    while j < n:
        ch = text[j]
        if ch == quote:
            if j + 1 < n and text[j + 1] == quote:
                chars.append(quote)
                j += 2
                continue
            return "".join(chars), j + 1
        chars.append(ch)
        j += 1
    raise ParseError("unterminated string", start)


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class _Parser:
    def __init__(self, tokens: list[Token]) -> None:
        self._tokens = tokens
        self._pos = 0
        self._depth = 0

    def _peek(self) -> Token:
        return self._tokens[self._pos]

    def _advance(self) -> Token:
        token = self._tokens[self._pos]
        if token.kind != END:
            self._pos += 1
        return token

    def _expect(self, kind: str, reason: str) -> Token:
        token = self._peek()
        if token.kind != kind:
            raise ParseError(reason, token.position)
        return self._advance()

    def parse(self) -> FilterNode:
        first = self._peek()
        if first.kind == END:
            raise ParseError("empty expression", first.position)
        node = self._or_expr()
        trailing = self._peek()
        if trailing.kind == RPAREN:
            raise ParseError("unbalanced parentheses", trailing.position)
        if trailing.kind != END:
            raise ParseError(f"unexpected token {trailing.value!r}", trailing.position)
        return node

    def _or_expr(self) -> FilterNode:
        node = self._and_expr()
        while self._peek().kind == OR:
            self._advance()
            node = Logical("OR", node, self._and_expr())
        return node

    def _and_expr(self) -> FilterNode:
        node = self._primary()
        while self._peek().kind == AND:
            self._advance()
            node = Logical("AND", node, self._primary())
        return node

    def _primary(self) -> FilterNode:
        token = self._peek()
        if token.kind != LPAREN:
            return self._comparison()
        self._depth += 1
        if self._depth > MAX_NESTING_DEPTH:
            raise ParseError(f"nesting deeper than {MAX_NESTING_DEPTH} levels", token.position)
        self._advance()
        node = self._or_expr()
        closing = self._peek()
        if closing.kind != RPAREN:
            raise ParseError("unbalanced parentheses", closing.position)
        self._advance()
        self._depth -= 1
        return node

    def _comparison(self) -> Comparison:
        column = self._expect(IDENT, "expected column name")
        operator = self._expect(OPERATOR, "expected comparison operator")
        value = self._peek()
        if value.kind not in (NUMBER, STRING):
            raise ParseError("expected number or string value", value.position)
        self._advance()
        return Comparison(column.value, operator.value, value.value)


def parse_filter(text: str) -> FilterNode:
    """Parse a filter expression into a FilterNode tree. Raises ParseError."""
    return _Parser(tokenize(text)).parse()
