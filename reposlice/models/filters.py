"""
Filters — LDAP-style applicability predicates.

Components and requirements may carry a filter deciding for which
target environments they apply. The syntax is the usual RFC 1960 one:

    (os=linux)
    (&(os=linux)(|(arch=x86_64)(arch=aarch64)))
    (!(ws=cocoa))
    (nl=en*)          substring match
    (feature=*)       presence
    (level>=3)        numeric when both sides are integers
    (name~=Foo Bar)   case and whitespace insensitive

Evaluation never raises: a missing property simply does not match.
Parsing raises FilterSyntaxError for malformed input.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, List, Mapping, Optional, Tuple

from ..validation import FilterSyntaxError

Properties = Mapping[str, str]


def _lookup(props: Properties, attr: str) -> Optional[str]:
    if attr in props:
        return props[attr]
    lowered = attr.lower()
    for key, value in props.items():
        if key.lower() == lowered:
            return value
    return None


_INTEGER = re.compile(r"[+-]?[0-9]+")


def _as_integer(value: str) -> Optional[int]:
    text = value.strip()
    return int(text) if _INTEGER.fullmatch(text) else None


class _Node:
    def evaluate(self, props: Properties) -> bool:  # pragma: no cover - interface
        raise NotImplementedError


@dataclass(frozen=True)
class _And(_Node):
    children: Tuple[_Node, ...]

    def evaluate(self, props: Properties) -> bool:
        return all(child.evaluate(props) for child in self.children)


@dataclass(frozen=True)
class _Or(_Node):
    children: Tuple[_Node, ...]

    def evaluate(self, props: Properties) -> bool:
        return any(child.evaluate(props) for child in self.children)


@dataclass(frozen=True)
class _Not(_Node):
    child: _Node

    def evaluate(self, props: Properties) -> bool:
        return not self.child.evaluate(props)


@dataclass(frozen=True)
class _Present(_Node):
    attr: str

    def evaluate(self, props: Properties) -> bool:
        return _lookup(props, self.attr) is not None


@dataclass(frozen=True)
class _Compare(_Node):
    attr: str
    op: str
    value: str

    def evaluate(self, props: Properties) -> bool:
        actual = _lookup(props, self.attr)
        if actual is None:
            return False

        if self.op == "~=":
            return _squash(actual) == _squash(self.value)

        if self.op == "=":
            return actual == self.value

        # Ordering is numeric only when both sides are integers
        left, right = _as_integer(actual), _as_integer(self.value)
        if left is not None and right is not None:
            a, b = left, right
        else:
            a, b = actual, self.value

        if self.op == ">=":
            return a >= b
        if self.op == "<=":
            return a <= b
        return False


@dataclass(frozen=True)
class _Substring(_Node):
    attr: str
    pattern: "re.Pattern[str]" = field(compare=False)

    def evaluate(self, props: Properties) -> bool:
        actual = _lookup(props, self.attr)
        return actual is not None and self.pattern.fullmatch(actual) is not None


def _squash(value: str) -> str:
    return "".join(value.split()).lower()


class _Parser:
    """Recursive-descent parser over the filter text."""

    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def fail(self, message: str) -> FilterSyntaxError:
        return FilterSyntaxError(message, self.text, self.pos)

    def parse(self) -> _Node:
        node = self._filter()
        self._skip_ws()
        if self.pos != len(self.text):
            raise self.fail("Unexpected trailing characters")
        return node

    def _skip_ws(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def _expect(self, char: str) -> None:
        self._skip_ws()
        if self.pos >= len(self.text) or self.text[self.pos] != char:
            raise self.fail(f"Expected {char!r}")
        self.pos += 1

    def _filter(self) -> _Node:
        self._expect("(")
        self._skip_ws()
        if self.pos >= len(self.text):
            raise self.fail("Unexpected end of filter")

        char = self.text[self.pos]
        if char in "&|":
            self.pos += 1
            children = self._filter_list()
            node: _Node = _And(children) if char == "&" else _Or(children)
        elif char == "!":
            self.pos += 1
            node = _Not(self._filter())
        else:
            node = self._item()

        self._expect(")")
        return node

    def _filter_list(self) -> Tuple[_Node, ...]:
        children: List[_Node] = []
        self._skip_ws()
        while self.pos < len(self.text) and self.text[self.pos] == "(":
            children.append(self._filter())
            self._skip_ws()
        if not children:
            raise self.fail("Empty filter list")
        return tuple(children)

    def _item(self) -> _Node:
        start = self.pos
        while self.pos < len(self.text) and self.text[self.pos] not in "=<>~()":
            self.pos += 1
        attr = self.text[start:self.pos].strip()
        if not attr:
            raise self.fail("Missing attribute name")

        op = self._operator()
        chunks = self._value()

        if op == "=" and len(chunks) > 1:
            if chunks == ["", ""]:
                return _Present(attr)
            regex = ".*".join(re.escape(chunk) for chunk in chunks)
            return _Substring(attr, re.compile(regex, re.DOTALL))

        if len(chunks) > 1:
            raise self.fail(f"Wildcards are not allowed with {op!r}")
        return _Compare(attr, op, chunks[0])

    def _operator(self) -> str:
        rest = self.text[self.pos:]
        for op in ("~=", ">=", "<=", "="):
            if rest.startswith(op):
                self.pos += len(op)
                return op
        raise self.fail("Expected comparison operator")

    def _value(self) -> List[str]:
        """Read a value, split on unescaped '*'."""
        chunks: List[str] = []
        current: List[str] = []
        while self.pos < len(self.text):
            char = self.text[self.pos]
            if char == ")":
                break
            if char == "(":
                raise self.fail("Unescaped '(' in value")
            if char == "\\":
                self.pos += 1
                if self.pos >= len(self.text):
                    raise self.fail("Dangling escape")
                current.append(self.text[self.pos])
            elif char == "*":
                chunks.append("".join(current))
                current = []
            else:
                current.append(char)
            self.pos += 1
        chunks.append("".join(current))
        return chunks


@dataclass(frozen=True)
class Filter:
    """A parsed filter. Equality is by source text."""

    text: str
    _root: _Node = field(compare=False, repr=False)

    @classmethod
    def parse(cls, text: str) -> "Filter":
        raw = (text or "").strip()
        if not raw:
            raise FilterSyntaxError("Empty filter", text or "")
        if not raw.startswith("("):
            raw = f"({raw})"
        return cls(raw, _Parser(raw).parse())

    @classmethod
    def parse_optional(cls, text: Optional[str]) -> Optional["Filter"]:
        """Parse a filter, treating None and blank text as 'no filter'."""
        if text is None or not str(text).strip():
            return None
        return cls.parse(str(text))

    def matches(self, props: Properties) -> bool:
        """Evaluate against one property bag."""
        return self._root.evaluate(props)

    def matches_any(self, contexts: Iterable[object]) -> bool:
        """Existential match: true if any selection context matches."""
        return any(self.matches(getattr(ctx, "properties", ctx)) for ctx in contexts)

    def __str__(self) -> str:
        return self.text
