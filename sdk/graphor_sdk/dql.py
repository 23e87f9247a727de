"""
Filter expressions for DQL.

Filters are kept as small expression trees and only rendered to text when a
query is compiled, so literal values always pass through ``literal()``:
- Func: ``name(field, arg, ...)`` such as ``eq(name, "bob")``
- Not / And / Or: boolean combinators
- UidIn: ``uid(<0x1>, <0x2>)``
- Raw: pre-rendered text (used for templates supplied by callers)

Invariants:
    - Strings are always rendered as escaped JSON string literals
    - Rendering the same tree twice gives the same text
"""

from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any

SENTINEL_UID = "0x0"

_UID = re.compile(r"^0x[0-9a-fA-F]+$")
_DELIMITED_REGEX = re.compile(r"^/(?:[^/\\]|\\.)*/[a-z]*$")


def literal(value: Any) -> str:
    """Render a Python value as a DQL literal.

    Raises:
        TypeError: If the value has no DQL literal form
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise TypeError(f"Cannot use {value!r} in a DQL filter")
        return repr(value)
    if isinstance(value, datetime):
        return json.dumps(value.isoformat())
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    raise TypeError(f"Unsupported DQL literal type: {type(value).__name__}")


def regex_literal(pattern: str) -> str:
    """Render a regular expression in DQL ``/pattern/flags`` form.

    A well-formed ``/pattern/flags`` literal is used as given; anything else
    is treated as a bare pattern and wrapped with its slashes escaped.
    """
    if _DELIMITED_REGEX.fullmatch(pattern):
        return pattern

    out = []
    i = 0
    while i < len(pattern):
        ch = pattern[i]
        if ch == "\\" and i + 1 < len(pattern):
            out.append(pattern[i:i + 2])
            i += 2
            continue
        if ch == "\\":
            out.append("\\\\")
        elif ch == "/":
            out.append("\\/")
        else:
            out.append(ch)
        i += 1
    return "/" + "".join(out) + "/"


def is_valid_uid(*uids: str) -> bool:
    """Whether every uid is a permanent hex uid such as ``0x1f``."""
    return all(isinstance(uid, str) and _UID.fullmatch(uid) is not None for uid in uids)


class Expr:
    """Base filter expression."""

    def render(self) -> str:
        raise NotImplementedError

    def __str__(self) -> str:
        return self.render()


@dataclass(frozen=True)
class Raw(Expr):
    text: str

    def render(self) -> str:
        return self.text


@dataclass(frozen=True)
class Func(Expr):
    """Function call with a field/edge and already-rendered arguments."""

    name: str
    field: str
    args: tuple[str, ...] = ()

    def render(self) -> str:
        return f"{self.name}({', '.join((self.field, *self.args))})"


@dataclass(frozen=True)
class UidIn(Expr):
    uids: tuple[str, ...]

    def render(self) -> str:
        return "uid(" + ", ".join(f"<{uid}>" for uid in self.uids) + ")"


@dataclass(frozen=True)
class Not(Expr):
    expr: Expr

    def render(self) -> str:
        return f"not {self.expr.render()}"


@dataclass(frozen=True)
class And(Expr):
    exprs: tuple[Expr, ...]

    def render(self) -> str:
        return " and ".join(e.render() for e in self.exprs)


@dataclass(frozen=True)
class Or(Expr):
    """Disjunction of AND-groups: ``((a and b) or (c))``."""

    groups: tuple[And, ...]

    def render(self) -> str:
        return "(" + " or ".join(f"({g.render()})" for g in self.groups) + ")"


def compare(op: str, field: str, value: Any) -> Func:
    return Func(op, field, (literal(value),))


def has(edge: str) -> Func:
    return Func("has", edge)


def regexp(field: str, pattern: str) -> Func:
    return Func("regexp", field, (regex_literal(pattern),))


def uid_in(*uids: str) -> UidIn:
    """uid() filter; an empty or malformed set becomes the sentinel uid."""
    if not uids or not is_valid_uid(*uids):
        return UidIn((SENTINEL_UID,))
    return UidIn(tuple(uids))


def conjunction(exprs: list[Expr]) -> str:
    return And(tuple(exprs)).render()
