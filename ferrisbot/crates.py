"""Crate lookup on crates.io and resolution of documentation links."""

from __future__ import annotations

import asyncio
import string
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol

import httpx

from ferrisbot.bot import EMBED_COLOR

USER_AGENT = "ferrisbot"
CRATES_API_URL = "https://crates.io/api/v1/crates"
DOCS_RS_URL = "https://docs.rs/"

NO_DESCRIPTION = "_<no description available>_"
UNKNOWN_VERSION = "<unknown version>"

_ASCII_LOWER = str.maketrans(string.ascii_uppercase, string.ascii_lowercase)

_PRIMITIVES = frozenset(
    {
        "f32", "f64",
        "i8", "i16", "i32", "i64", "i128", "isize",
        "u8", "u16", "u32", "u64", "u128", "usize",
        "char", "str",
        "pointer", "reference", "fn",
        "bool", "slice", "tuple", "unit", "array",
    }
)
_NIGHTLY_PRIMITIVES = frozenset({"f16", "f128", "never"})
_KEYWORDS = frozenset(
    {
        "SelfTy",
        "as", "async", "await", "break", "const", "continue", "crate", "dyn", "else", "enum",
        "extern", "false", "for", "if", "impl", "in", "let", "loop", "match", "mod", "move",
        "mut", "pub", "ref", "return", "self", "static", "struct", "super", "trait", "true",
        "type", "union", "unsafe", "use", "where", "while",
    }
)

_RUSTC_CRATE_LINKS = {
    "std": "https://doc.rust-lang.org/stable/std/",
    "core": "https://doc.rust-lang.org/stable/core/",
    "alloc": "https://doc.rust-lang.org/stable/alloc/",
    "proc_macro": "https://doc.rust-lang.org/stable/proc_macro/",
    "beta": "https://doc.rust-lang.org/beta/std/",
    "nightly": "https://doc.rust-lang.org/nightly/std/",
    "rustc": "https://doc.rust-lang.org/nightly/nightly-rustc/",
    "test": "https://doc.rust-lang.org/stable/test",
}

SNAKE_CASE_KINDS = ("fn", "macro", "mod")
UPPER_CAMEL_CASE_KINDS = ("struct", "enum", "union", "trait", "traitalias", "type", "derive")
SCREAMING_SNAKE_CASE_KINDS = ("constant", "static")
RUSTC_CRATE_ONLY_KINDS = ("keyword", "primitive")


class CrateNotFound(LookupError):
    """No crate on crates.io matches the query exactly."""


@dataclass(frozen=True)
class Crate:
    """A crate as listed by the crates.io search API."""

    name: str
    updated_at: str
    downloads: int
    exact_match: bool
    max_version: str | None = None
    max_stable_version: str | None = None
    description: str | None = None
    documentation: str | None = None

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> Crate:
        try:
            crate = cls(
                name=data["name"],
                updated_at=data["updated_at"],
                downloads=data["downloads"],
                exact_match=data["exact_match"],
                max_version=data.get("max_version"),
                max_stable_version=data.get("max_stable_version"),
                description=data.get("description"),
                documentation=data.get("documentation"),
            )
        except (KeyError, TypeError, AttributeError) as exc:
            raise ValueError(f"missing field {exc}") from exc
        if not isinstance(crate.name, str) or not isinstance(crate.updated_at, str):
            raise ValueError("invalid type for `name` or `updated_at`")
        if isinstance(crate.downloads, bool) or not isinstance(crate.downloads, int) or crate.downloads < 0:
            raise ValueError("invalid type for `downloads`")
        if not isinstance(crate.exact_match, bool):
            raise ValueError("invalid type for `exact_match`")
        return crate


class StdKind(Enum):
    """How a bare name relates to the standard library."""

    POSSIBLE_TYPE = "possible_type"
    PRIMITIVE = "primitive"
    PRIMITIVE_NIGHTLY = "primitive_nightly"
    KEYWORD = "keyword"
    FALSE = "false"


@dataclass(frozen=True)
class QualifiedPath:
    """A `kind@crate::mods::ident` query split into its parts."""

    kind: str | None
    crate: str
    ident: str | None
    mods: str


class DocsClient(Protocol):
    async def get_crate_docs(self, crate_name: str) -> str: ...

    async def page_exists(self, url: str) -> bool: ...


def get_documentation(crate: Crate) -> str:
    """The crate's documentation link, falling back to docs.rs."""
    if crate.documentation is not None:
        return crate.documentation
    return f"{DOCS_RS_URL}{crate.name}"


def format_number(n: int) -> str:
    """Group digits in threes separated by spaces: 6051423 -> "6 051 423"."""
    groups: list[str] = []
    while n >= 1000:
        n, rest = divmod(n, 1000)
        groups.append(f"{rest:03}")
    groups.append(str(n))
    return " ".join(reversed(groups))


def is_in_std(name: str) -> tuple[StdKind, str]:
    """Classify a bare name; returns the kind and the name to link to."""
    if name in _PRIMITIVES:
        return StdKind.PRIMITIVE, name
    if name in _NIGHTLY_PRIMITIVES:
        return StdKind.PRIMITIVE_NIGHTLY, name
    if name == "Self":
        return StdKind.KEYWORD, "SelfTy"
    if name in _KEYWORDS:
        return StdKind.KEYWORD, name
    if name[:1].isupper():
        return StdKind.POSSIBLE_TYPE, name
    return StdKind.FALSE, name


def rustc_crate_link(crate_name: str) -> str | None:
    """The documentation link of an official Rust crate such as std or nightly."""
    return _RUSTC_CRATE_LINKS.get(crate_name.translate(_ASCII_LOWER))


def split_qualified_path(text: str) -> QualifiedPath:
    kind: str | None
    kind, sep, path = text.partition("@")
    if not sep:
        kind, path = None, text

    crate, sep, rest = path.partition("::")
    if not sep:
        return QualifiedPath(kind=kind, crate=path, ident=None, mods="")
    mods, sep, ident = rest.rpartition("::")
    if not sep:
        return QualifiedPath(kind=kind, crate=crate, ident=rest, mods="")
    return QualifiedPath(kind=kind, crate=crate, ident=ident, mods=mods)


async def _probe(client: DocsClient, prefix: str, ident: str, kind: str) -> str | None:
    url = f"{prefix}{ident}/index.html" if kind == "mod" else f"{prefix}{kind}.{ident}.html"
    return kind if await client.page_exists(url) else None


async def guess_kind(client: DocsClient, prefix: str, is_rustc_crate: bool, ident: str) -> str | None:
    """Find the item kind whose documentation page exists, trying likely kinds first."""
    if ident[:1].islower():
        attempt_order = [SNAKE_CASE_KINDS, UPPER_CAMEL_CASE_KINDS, SCREAMING_SNAKE_CASE_KINDS]
    elif all(char.isupper() for char in ident):
        attempt_order = [SCREAMING_SNAKE_CASE_KINDS, UPPER_CAMEL_CASE_KINDS, SNAKE_CASE_KINDS]
    else:
        attempt_order = [UPPER_CAMEL_CASE_KINDS, SCREAMING_SNAKE_CASE_KINDS, SNAKE_CASE_KINDS]
    if is_rustc_crate:
        attempt_order.insert(1, RUSTC_CRATE_ONLY_KINDS)

    for kinds in attempt_order:
        tasks = [asyncio.ensure_future(_probe(client, prefix, ident, kind)) for kind in kinds]
        try:
            for finished in asyncio.as_completed(tasks):
                kind = await finished
                if kind is not None:
                    return kind
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
    return None


async def path_to_doc_url(query: str, client: DocsClient) -> str:
    """Resolve a query like `crate::module::Item` into a documentation URL."""
    path = split_qualified_path(query)

    if path.ident is None:
        kind, name = is_in_std(path.crate)
        if kind is StdKind.PRIMITIVE:
            path = QualifiedPath(kind="primitive", crate="std", ident=name, mods="")
        elif kind is StdKind.PRIMITIVE_NIGHTLY:
            path = QualifiedPath(kind="primitive", crate="nightly", ident=name, mods="")
        elif kind is StdKind.KEYWORD:
            path = QualifiedPath(kind="keyword", crate="std", ident=name, mods="")
        elif kind is StdKind.POSSIBLE_TYPE:
            path = QualifiedPath(kind=path.kind, crate="std", ident=path.crate, mods="")

    link = rustc_crate_link(path.crate)
    if link is not None:
        is_rustc_crate = True
        doc_url = link
        root_len = len(link)
    else:
        is_rustc_crate = False
        prefix = await client.get_crate_docs(path.crate)
        root_len = len(prefix)
        if not prefix.endswith("/"):
            prefix += "/"
        doc_url = f"{prefix}latest/{path.crate.replace('-', '_')}/"

    ident = path.ident
    if ident is None:
        return doc_url[:root_len]

    doc_url += "".join(f"{segment}/" for segment in path.mods.split("::") if segment)

    kind = path.kind
    if kind is None:
        kind = await guess_kind(client, doc_url, is_rustc_crate, ident)

    if kind in ("", "mod"):
        return f"{doc_url}{ident}/index.html"
    if kind is not None:
        return f"{doc_url}{kind}.{ident}.html"
    search = f"{path.mods}::{ident}" if path.mods else ident
    return f"{doc_url[:root_len]}?search={search}"


def _parse_timestamp(text: str) -> datetime:
    try:
        stamp = datetime.fromisoformat(text)
    except ValueError:
        return datetime.now(timezone.utc)
    return stamp if stamp.tzinfo is not None else stamp.replace(tzinfo=timezone.utc)


def crate_embed(crate: Crate) -> dict[str, Any]:
    """The embed describing a crate."""
    if crate.max_stable_version is not None:
        version = crate.max_stable_version
    elif crate.max_version is not None:
        version = crate.max_version
    else:
        version = UNKNOWN_VERSION
    return {
        "title": crate.name,
        "url": get_documentation(crate),
        "description": crate.description if crate.description is not None else NO_DESCRIPTION,
        "fields": [
            ("Version", version, True),
            ("Downloads", format_number(crate.downloads), True),
        ],
        "timestamp": _parse_timestamp(crate.updated_at),
        "color": EMBED_COLOR,
    }


class CratesIoClient:
    """Looks crates up on crates.io and checks documentation pages."""

    def __init__(self, http: httpx.AsyncClient | None = None) -> None:
        self._http = http if http is not None else httpx.AsyncClient()
        self._headers = {"User-Agent": USER_AGENT}

    async def _search(self, params: dict[str, str]) -> list[Crate]:
        response = await self._http.get(CRATES_API_URL, params=params, headers=self._headers)
        try:
            return [Crate.from_json(item) for item in response.json()["crates"]]
        except (ValueError, KeyError, TypeError) as exc:
            raise ValueError(f"Cannot parse crates.io JSON response (`{exc}`)") from exc

    async def get_crate(self, query: str) -> Crate:
        """Return the crate named exactly ``query``."""
        crates = await self._search({"q": query})
        if not crates:
            raise CrateNotFound(f"Crate `{query}` not found")
        crate = crates[0]
        if not crate.exact_match:
            raise CrateNotFound(f"Crate `{query}` not found. Did you mean `{crate.name}`?")
        return crate

    async def get_crate_docs(self, crate_name: str) -> str:
        return get_documentation(await self.get_crate(crate_name))

    async def page_exists(self, url: str) -> bool:
        try:
            response = await self._http.head(url, headers=self._headers, follow_redirects=True)
        except httpx.HTTPError:
            return False
        return response.status_code == 200

    async def autocomplete(self, partial: str) -> list[str]:
        """Names of the most downloaded crates matching ``partial``; empty on failure."""
        try:
            crates = await self._search({"q": partial, "per_page": "25", "sort": "downloads"})
        except (httpx.HTTPError, ValueError):
            return []
        return [crate.name for crate in crates]