"""Compiling Rust on Godbolt and formatting the results."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

import httpx

from ferrisbot.helpers import trim_text
from ferrisbot.rust_syntax import RustSyntaxError, pub_fn_offsets

log = logging.getLogger(__name__)

LLVM_MCA_TOOL_ID = "llvm-mcatrunk"
GODBOLT_URL = "https://godbolt.org"
NO_MANGLE = "#[unsafe(no_mangle)] "
PUB_FN_NOTE = "Note: only `pub fn` at file scope are shown"
SHORTLINK_FAILED = "failed to retrieve"


class CodeBlockError(ValueError):
    """The arguments hold no well-formed code block."""


@dataclass(frozen=True)
class GodboltRequest:
    source_code: str
    rustc: str
    flags: str
    run_llvm_mca: bool = False


@dataclass(frozen=True)
class Compilation:
    output: str
    stderr: str


def parse_arguments(args: str) -> tuple[dict[str, str], str]:
    """Split `key=value` arguments from the code block that follows them."""
    params: dict[str, str] = {}
    key, value = "", ""
    in_key = True
    tick_count = 0
    chars = iter(args)
    for ch in chars:
        if ch == "`":
            tick_count += 1
            break
        if ch in " \n":
            params[key] = value
            key, value = "", ""
            in_key = True
        elif ch == "=" and in_key:
            in_key = False
        elif in_key:
            key += ch
        else:
            value += ch

    parsed_lang = False
    code: list[str] = []
    for ch in chars:
        if tick_count == 3 and not parsed_lang:
            if ch == "`":
                raise CodeBlockError("Missing code block")
            if ch == "\n":
                parsed_lang = True
            continue
        if ch == "`":
            if tick_count == 3:
                break
            tick_count += 1
        else:
            code.append(ch)
    return params, "".join(code)


def add_no_mangle(code: str) -> tuple[str, bool]:
    """Mark every top-level `pub fn` no_mangle; returns the code and whether any was marked."""
    try:
        offsets = pub_fn_offsets(code)
    except RustSyntaxError:
        return code, False
    for offset in reversed(offsets):
        code = code[:offset] + NO_MANGLE + code[offset:]
    return code, bool(offsets)


def note(no_mangle_added: bool) -> str:
    return "" if no_mangle_added else PUB_FN_NOTE


def highlight_language(params: Mapping[str, str]) -> str:
    """The code block language for the output, from `--emit` or `--target`."""
    emit = params.get("--emit")
    if emit is not None:
        if emit == "llvmir":
            return "llvm"
        if emit in ("dep-info", "link", "metadata", "obj", "llvm-bc"):
            return ""
        if emit == "mir":
            return "rust"
        return "x86asm"
    target = params.get("--target")
    if target is not None:
        arch = target.split("-")[0]
        if arch == "aarch64" or arch.startswith("arm"):
            return "arm"
        if arch.startswith(("mips", "riscv")):
            return "mips"
        if arch in ("wasm32", "wasm64"):
            return "wasm"
    return "x86asm"


def concatenate(segments: Iterable[Mapping[str, Any]]) -> str:
    """Join Godbolt output segments, each followed by a newline."""
    return "".join(f"{segment['text']}\n" for segment in segments)


def _tools(request: GodboltRequest) -> list[dict[str, str]]:
    return [{"id": LLVM_MCA_TOOL_ID}] if request.run_llvm_mca else []


def compile_payload(request: GodboltRequest) -> dict[str, Any]:
    return {
        "source": request.source_code,
        "options": {"userArguments": request.flags, "tools": _tools(request)},
    }


def shortlink_payload(request: GodboltRequest) -> dict[str, Any]:
    return {
        "sessions": [
            {
                "language": "rust",
                "source": request.source_code,
                "compilers": [
                    {"id": request.rustc, "options": request.flags, "tools": _tools(request)}
                ],
            }
        ]
    }


def parse_compile_response(data: Mapping[str, Any], run_llvm_mca: bool) -> Compilation:
    stderr = concatenate(data["stderr"])
    if not run_llvm_mca:
        return Compilation(output=concatenate(data["asm"]), stderr=stderr)
    tool = next((tool for tool in data["tools"] if tool.get("id") == LLVM_MCA_TOOL_ID), None)
    if tool is None:
        raise ValueError("No llvm-mca result was sent by Godbolt")
    text = concatenate(tool["stdout"])
    cut = text.find("Instruction Info")
    if cut != -1:
        text = text[:cut]
    return Compilation(output=text.strip(), stderr=stderr)


Shortlink = Callable[[], Awaitable[str]]


async def _trim(body: str, end: str, shortlink: Shortlink) -> str:
    async def message() -> str:
        return f"Output too large. Godbolt link: <{await shortlink()}>"

    return await trim_text(body, end, message)


async def format_codeblock(lang: str, text: str, note: str, shortlink: Shortlink) -> str:
    return await _trim(f"```{lang}\n{text}", f"\n```{note}", shortlink)


async def format_codeblocks(result: Compilation, lang: str, note: str, shortlink: Shortlink) -> str:
    """The reply for a compilation: output, errors, or both."""
    output, errors = result.output.strip(), result.stderr.strip()
    if not output and not errors:
        return await format_codeblock("", " ", note, shortlink)
    if not errors:
        return await format_codeblock(lang, output, note, shortlink)
    if output == "<Compilation failed>":
        return await format_codeblock("ansi", errors, "Compilation failed.", shortlink)
    if not output:
        return await format_codeblock("ansi", errors, note, shortlink)
    return await _trim(f"```{lang}\n{output}``````ansi\n{errors}", f"\n```{note}", shortlink)


class GodboltClient:
    """Talks to the Godbolt HTTP API."""

    def __init__(self, http: httpx.AsyncClient | None = None) -> None:
        self._http = http if http is not None else httpx.AsyncClient()

    async def compile(self, request: GodboltRequest) -> Compilation:
        response = await self._http.post(
            f"{GODBOLT_URL}/api/compiler/{request.rustc}/compile",
            json=compile_payload(request),
            headers={"Accept": "application/json"},
        )
        return parse_compile_response(response.json(), request.run_llvm_mca)

    async def shortlink(self, request: GodboltRequest) -> str:
        """A short link to the session; a placeholder text if it cannot be made."""
        try:
            response = await self._http.post(
                f"{GODBOLT_URL}/api/shortener", json=shortlink_payload(request)
            )
            url = response.json()["url"]
            if not isinstance(url, str):
                raise ValueError("invalid shortener response")
            return url
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as exc:
            log.warning("failed to generate godbolt shortlink: %s", exc)
            return SHORTLINK_FAILED