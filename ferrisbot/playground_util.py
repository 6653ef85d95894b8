"""Shared pieces of the playground commands: flags, help, code wrapping and output."""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import Enum

from ferrisbot.helpers import MAX_OUTPUT_LENGTH, merge_output_and_errors, trim_text
from ferrisbot.playground_api import (
    AliasingModel,
    Channel,
    CommandFlags,
    Edition,
    Mode,
    PlayResult,
)
from ferrisbot.rust_syntax import RustSyntaxError, has_main_fn

PLAYGROUND_NOTE = "All code is executed on https://play.rust-lang.org."
STUB_MESSAGE = "_Running code on playground..._\n"
TIMEOUT_NOTE = "Playground timeout detected"
ZERO_WIDTH_SPACE = "\u200b"


def _parse_bool(text: str) -> bool:
    if text == "true":
        return True
    if text == "false":
        return False
    raise ValueError("provided string was not `true` or `false`")


_FLAG_PARSERS: tuple[tuple[str, str, Callable[[str], object]], ...] = (
    ("channel", "channel", Channel.parse),
    ("mode", "mode", Mode.parse),
    ("edition", "edition", Edition.parse),
    ("warn", "warn", _parse_bool),
    ("run", "run", _parse_bool),
    ("aliasingModel", "aliasing_model", AliasingModel.parse),
)


def _lines(text: str) -> list[str]:
    parts = text.split("\n")
    if parts[-1] == "":
        parts.pop()
    return [part.removesuffix("\r") for part in parts]


def parse_flags(args: Mapping[str, str]) -> tuple[CommandFlags, str]:
    """Read the known flags from ``args``.

    Returns the flags and a text of parse errors, one per line (empty if none).
    """
    remaining = dict(args)
    flags = CommandFlags()
    errors: list[str] = []

    for key, attribute, parser in _FLAG_PARSERS:
        if key not in remaining:
            continue
        try:
            setattr(flags, attribute, parser(remaining.pop(key)))
        except ValueError as exc:
            errors.append(f"{exc}\n")

    errors.extend(f"unknown flag `{flag}`\n" for flag in remaining)
    return flags, "".join(errors)


@dataclass(frozen=True)
class GenericHelp:
    """What the help text of a playground command mentions."""

    command: str
    desc: str
    mode_and_channel: bool
    warn: bool
    run: bool
    aliasing_model: bool
    example_code: str


def generic_help(spec: GenericHelp) -> str:
    """The help text for a playground command."""
    parts = [f"{spec.desc}. {PLAYGROUND_NOTE}\n", "```rust\n?", spec.command]
    if spec.mode_and_channel:
        parts.append(" mode={} channel={}")
    parts.append(" edition={}")
    if spec.aliasing_model:
        parts.append(" aliasingModel={}")
    if spec.warn:
        parts.append(" warn={}")
    if spec.run:
        parts.append(" run={}")
    parts.append(f" ``{ZERO_WIDTH_SPACE}`")
    parts.append(spec.example_code)
    parts.append(f"``{ZERO_WIDTH_SPACE}`\n```\n")

    parts.append("Optional arguments:\n")
    if spec.mode_and_channel:
        parts.append("- mode: debug, release (default: debug)\n")
        parts.append("- channel: stable, beta, nightly (default: nightly)\n")
    if spec.aliasing_model:
        parts.append("- aliasingModel: stacked, tree (default: stacked)\n")
    parts.append("- edition: 2015, 2018, 2021, 2024 (default: 2024)\n")
    if spec.warn:
        parts.append("- warn: true, false (default: false)\n")
    if spec.run:
        parts.append("- run: true, false (default: false)\n")
    return "".join(parts)


def extract_relevant_lines(
    stderr: str,
    strip_start_tokens: Iterable[str],
    strip_end_tokens: Iterable[str],
) -> str:
    """Keep the lines after the last start token and before the earliest end token.

    Among several matching tokens the ones giving the most compact output win.
    Leading empty lines and surplus trailing empty lines are removed.
    """
    start_positions = [pos for token in strip_start_tokens if (pos := stderr.rfind(token)) != -1]
    if start_positions:
        start = max(start_positions)
        line_end = stderr.find("\n", start)
        stderr = stderr[line_end + 1:] if line_end != -1 else ""

    end_positions = [pos for token in strip_end_tokens if (pos := stderr.rfind(token)) != -1]
    if end_positions:
        end = min(end_positions)
        prev_line_end = stderr.rfind("\n", 0, end)
        stderr = stderr[: prev_line_end + 1] if prev_line_end != -1 else ""

    stderr = stderr.lstrip("\n")
    while stderr.endswith("\n\n"):
        stderr = stderr[:-1]
    return stderr


class ResultHandling(Enum):
    """What the generated `fn main` does with the value of the user's code."""

    NONE = "none"
    DISCARD = "discard"
    PRINT = "print"


def hoist_crate_attributes(code: str, after_crate_attrs: str, after_code: str) -> str:
    """Put the leading crate attributes first, then ``after_crate_attrs``, the code and ``after_code``."""
    lines = _lines(code)
    attributes: list[str] = []
    consumed = 0
    for line in lines:
        stripped = line.strip()
        if stripped.startswith("#!["):
            attributes.append(f"{stripped}\n")
        elif stripped:
            break
        consumed += 1

    body = "".join(f"{line}\n" for line in lines[consumed:])
    return f"{''.join(attributes)}{after_crate_attrs}{body}{after_code}"


_MAIN_OPENERS = {
    ResultHandling.NONE: "fn main() {\n",
    ResultHandling.DISCARD: "fn main() { let _ = {\n",
    ResultHandling.PRINT: 'fn main() { println!("{:?}", {\n',
}
_PRETTY_PRINT_OPENER = 'fn main() { println!("{:#?}", {\n'
_MAIN_CLOSERS = {
    ResultHandling.NONE: "}",
    ResultHandling.DISCARD: "}; }",
    ResultHandling.PRINT: "}); }",
}


def maybe_wrap(code: str, result_handling: ResultHandling) -> str:
    """Wrap ``code`` in a `fn main` unless it has one; see :func:`maybe_wrapped`."""
    return maybe_wrapped(code, result_handling, False, False)


def maybe_wrapped(code: str, result_handling: ResultHandling, unsf: bool, pretty: bool) -> str:
    """Wrap ``code`` in a `fn main` if it has none, keeping its formatting.

    The code is returned unchanged when it already defines `fn main()` or
    cannot be read; a wrapped result always differs from the input.
    """
    try:
        if has_main_fn(code):
            return code
    except RustSyntaxError:
        return code

    if result_handling is ResultHandling.PRINT and pretty:
        after_crate_attrs = _PRETTY_PRINT_OPENER
    else:
        after_crate_attrs = _MAIN_OPENERS[result_handling]
    after_code = _MAIN_CLOSERS[result_handling]
    if unsf:
        after_crate_attrs += "unsafe {"
        after_code = "}" + after_code
    return hoist_crate_attributes(code, after_crate_attrs, after_code)


def strip_fn_main_boilerplate_from_formatted(text: str) -> str:
    """Remove a `fn main() { ... }` wrapper and one level of indentation."""
    prefix = "fn main() {"
    prefix_pos = text.find(prefix)
    postfix_pos = text.rfind("}")
    if prefix_pos != -1 and postfix_pos != -1:
        start = prefix_pos + len(prefix)
        if start <= postfix_pos:
            text = text[start:postfix_pos]
    text = text.strip()
    return "".join(f"{line.removeprefix('    ')}\n" for line in _lines(text))


_COMPILER_END_TOKENS = (
    "warning emitted",
    "warnings emitted",
    'warning: `playground` (bin "playground") generated',
    "warning: `playground` (lib) generated",
    "error: could not compile",
    "error: aborting",
    "Finished ",
)


def format_play_eval_stderr(stderr: str, show_compiler_warnings: bool) -> str:
    """Split stderr into compiler output and program stderr and combine them for display.

    If the program did not compile, the compiler output is returned. Otherwise
    the program's stderr is returned, preceded by the compiler warnings when
    ``show_compiler_warnings`` is set.
    """
    compiler_output = extract_relevant_lines(stderr, ("Compiling playground",), _COMPILER_END_TOKENS)
    if "Finished " not in stderr:
        return compiler_output

    program_stderr = extract_relevant_lines(stderr, ("Finished ", "Running `target"), ())
    if show_compiler_warnings:
        text = "\n".join(part for part in (compiler_output, program_stderr) if part)
    else:
        text = program_stderr
    return text.replace("`", f"{ZERO_WIDTH_SPACE}`")


def stub_message(existing_response: str | None = None) -> str:
    """The placeholder shown while code runs, keeping any earlier response below it."""
    message = STUB_MESSAGE + (existing_response or "")
    return message.encode("utf-8")[:MAX_OUTPUT_LENGTH].decode("utf-8", errors="ignore")


@dataclass(frozen=True)
class Reply:
    """A reply to a playground command."""

    content: str
    retry_button: bool = False


async def render_reply(
    result: PlayResult,
    flag_parse_errors: str,
    playground_link: Callable[[], str | Awaitable[str]],
) -> Reply:
    """Format a playground result as a Discord reply.

    ``playground_link`` is only called when the output has to be truncated.
    A retry button is offered when the playground timed out.
    """
    merged = merge_output_and_errors(result.stdout, result.stderr)
    if not merged.strip():
        return Reply(f"{flag_parse_errors}``` ```")

    timeout = "Killed" in merged and "timeout" in merged and "--signal=KILL" in merged
    text_end = "```" + (TIMEOUT_NOTE if timeout else "")

    async def truncation_message() -> str:
        link = playground_link()
        if inspect.isawaitable(link):
            link = await link
        return f"Output too large. Playground link: <{link}>"

    content = await trim_text(f"{flag_parse_errors}```rust\n{merged}", text_end, truncation_message)
    return Reply(content, retry_button=timeout)