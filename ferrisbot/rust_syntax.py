"""A small reader for the top-level items of Rust source code."""

from __future__ import annotations

import re
from dataclasses import dataclass


class RustSyntaxError(ValueError):
    """The code could not be read as Rust."""


@dataclass(frozen=True)
class FnItem:
    """A function defined at the top level of a file."""

    name: str
    is_public: bool
    offset: int
    no_inputs: bool


@dataclass(frozen=True)
class _Token:
    text: str
    start: int
    kind: str


_OPENERS = {"(": ")", "[": "]", "{": "}"}
_CLOSERS = {")", "]", "}"}
_RAW_STRING = re.compile(r'(?:b|c)?r(#*)"')
_STRING = re.compile(r'(?:b|c)?"')
_CHAR = re.compile(
    r"b?'(?:\\(?:x[0-9a-fA-F]{2}|u\{[0-9a-fA-F_]*\}|.)|[^\\'\n])'", re.DOTALL
)
_LIFETIME = re.compile(r"'[^\W\d]\w*")
_IDENT = re.compile(r"r#[^\W\d]\w*|[^\W\d]\w*")
_NUMBER = re.compile(r"\d\w*(?:\.\d\w*)?")
_MODIFIERS = frozenset({"const", "async", "unsafe", "safe", "default"})


def _tokenize(code: str) -> tuple[list[_Token], dict[int, int]]:
    tokens: list[_Token] = []
    matches: dict[int, int] = {}
    stack: list[int] = []
    i, n = 0, len(code)
    while i < n:
        c = code[i]
        if c.isspace():
            i += 1
        elif code.startswith("//", i):
            end = code.find("\n", i)
            i = n if end == -1 else end
        elif code.startswith("/*", i):
            depth, i = 1, i + 2
            while depth:
                if i >= n:
                    raise RustSyntaxError("unterminated block comment")
                if code.startswith("/*", i):
                    depth, i = depth + 1, i + 2
                elif code.startswith("*/", i):
                    depth, i = depth - 1, i + 2
                else:
                    i += 1
        elif c in _OPENERS:
            stack.append(len(tokens))
            tokens.append(_Token(c, i, "punct"))
            i += 1
        elif c in _CLOSERS:
            if not stack or _OPENERS[tokens[stack[-1]].text] != c:
                raise RustSyntaxError(f"unexpected `{c}` at offset {i}")
            opener = stack.pop()
            matches[opener] = len(tokens)
            tokens.append(_Token(c, i, "punct"))
            i += 1
        elif (raw := _RAW_STRING.match(code, i)) is not None:
            closing = '"' + raw.group(1)
            end = code.find(closing, raw.end())
            if end == -1:
                raise RustSyntaxError("unterminated raw string")
            end += len(closing)
            tokens.append(_Token(code[i:end], i, "literal"))
            i = end
        elif (quote := _STRING.match(code, i)) is not None:
            j = quote.end()
            while True:
                if j >= n:
                    raise RustSyntaxError("unterminated string")
                if code[j] == "\\":
                    j += 2
                elif code[j] == '"':
                    j += 1
                    break
                else:
                    j += 1
            tokens.append(_Token(code[i:j], i, "literal"))
            i = j
        elif (char := _CHAR.match(code, i)) is not None:
            tokens.append(_Token(char.group(0), i, "literal"))
            i = char.end()
        elif c == "'":
            lifetime = _LIFETIME.match(code, i)
            if lifetime is None:
                raise RustSyntaxError(f"invalid character literal at offset {i}")
            tokens.append(_Token(lifetime.group(0), i, "lifetime"))
            i = lifetime.end()
        elif (ident := _IDENT.match(code, i)) is not None:
            tokens.append(_Token(ident.group(0), i, "ident"))
            i = ident.end()
        elif (number := _NUMBER.match(code, i)) is not None:
            tokens.append(_Token(number.group(0), i, "literal"))
            i = number.end()
        else:
            tokens.append(_Token(c, i, "punct"))
            i += 1
    if stack:
        raise RustSyntaxError("unclosed delimiter")
    return tokens, matches


def _fn_item(tokens: list[_Token], matches: dict[int, int], start: int, end: int) -> FnItem | None:
    def text(k: int) -> str | None:
        return tokens[k].text if k < end else None

    k = start
    while text(k) == "#":
        k += 1
        if text(k) == "!":
            k += 1
        if text(k) != "[":
            return None
        k = matches[k] + 1

    is_public = False
    if text(k) == "pub":
        is_public = True
        k += 1
        if text(k) == "(":
            is_public = False
            k = matches[k] + 1

    while True:
        word = text(k)
        if word in _MODIFIERS:
            k += 1
        elif word == "extern":
            k += 1
            if k < end and tokens[k].kind == "literal":
                k += 1
        else:
            break

    if text(k) != "fn" or k + 1 >= end or tokens[k + 1].kind != "ident":
        return None
    name = tokens[k + 1].text.removeprefix("r#")

    m, angle = k + 2, 0
    while m < end:
        word = tokens[m].text
        if word == "<":
            angle += 1
        elif word == ">":
            angle -= 1
        elif word == "(" and angle <= 0:
            break
        if m in matches:
            m = matches[m]
        m += 1
    if m >= end:
        raise RustSyntaxError(f"function `{name}` has no parameter list")
    return FnItem(
        name=name,
        is_public=is_public,
        offset=tokens[start].start,
        no_inputs=matches[m] == m + 1,
    )


def top_level_items(code: str) -> list[FnItem]:
    """The functions defined at the top level of ``code``, in order."""
    tokens, matches = _tokenize(code)
    items: list[FnItem] = []
    i = 0
    while i < len(tokens):
        j, end = i, len(tokens)
        while j < len(tokens):
            token = tokens[j]
            if token.text == ";":
                end = j + 1
                break
            if j in matches:
                closer = matches[j]
                if token.text == "{":
                    end = closer + 1
                    break
                j = closer
            j += 1
        item = _fn_item(tokens, matches, i, end)
        if item is not None:
            items.append(item)
        i = end
    return items


def pub_fn_names(code: str) -> list[str]:
    """Names of the top-level `pub fn`s; empty if the code cannot be read."""
    try:
        return [item.name for item in top_level_items(code) if item.is_public]
    except RustSyntaxError:
        return []


def pub_fn_offsets(code: str) -> list[int]:
    """Where each top-level `pub fn` item starts, attributes included."""
    return [item.offset for item in top_level_items(code) if item.is_public]


def has_main_fn(code: str) -> bool:
    """Whether the code defines a top-level `fn main()` without parameters."""
    return any(item.name == "main" and item.no_inputs for item in top_level_items(code))