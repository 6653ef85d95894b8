# ferrisbot

The command logic of a chat bot for Rust communities, written as plain,
testable Python. Your bot framework receives messages, calls these functions
and sends back what they return.

## Modules

- `ferrisbot.crates` – looks crates up on the crates registry
  (`CratesIoClient`). It formats download counts (`format_number`) and builds
  a crate embed (`crate_embed`). `path_to_doc_url` turns paths such as
  `serde-json::value::Index` or `std::char::MAX` into documentation links.
  When the path gives no kind, `guess_kind` guesses the kind of item
  (function, struct, constant, …) from its name and checks which page exists.
- `ferrisbot.godbolt` – parses `key=value` flags followed by a fenced code
  block (`parse_arguments`). It marks top-level `pub fn`s with
  `#[unsafe(no_mangle)]` (`add_no_mangle`) and picks the code block language
  from `--emit` or `--target` (`highlight_language`). `GodboltClient` compiles
  code and makes shortlinks. `format_codeblocks` renders assembly, LLVM IR or
  llvm-mca output as message-sized code blocks.
- `ferrisbot.playground_commands` – `PlaygroundCommands` with `play`,
  `playwarn`, `eval`, `miri`, `expand`, `clippy`, `fmt`, `microbench` and
  `procmacro`, each returning a `Reply`. It also holds the help text of every
  command (`play_help`, `miri_help`, …).
- `ferrisbot.playground_util` – flag parsing (`channel`, `mode`, `edition`,
  `warn`, `run`, `aliasingModel`) and `fn main` wrapping (`maybe_wrap`,
  `maybe_wrapped`). It strips compiler boilerplate from stderr
  (`extract_relevant_lines`, `format_play_eval_stderr`). `render_reply` keeps
  replies within the 2000-character message limit.
- `ferrisbot.playground_api` – playground request payloads, enums for
  channel, edition, mode and aliasing model, `PlayResult`, and
  `PlaygroundClient`.
- `ferrisbot.rust_syntax` – a small reader for the top-level functions of
  Rust code (`top_level_items`, `pub_fn_names`, `has_main_fn`).
- `ferrisbot.man`, `ferrisbot.utilities`, `ferrisbot.thread_pin` – man page
  links, uptime formatting, message cleanup selection, self-timeout durations
  and thread pinning checks.
- `ferrisbot.helpers` – output merging, message truncation (`trim_text`) and
  custom emoji lookup.
- `ferrisbot.bot` – configuration loading, shared state (`Data`), command
  prefix matching (`strip_prefix`) and error replies.

## Examples

Formatting helpers:

```python
from ferrisbot.crates import format_number, split_qualified_path
from ferrisbot.helpers import merge_output_and_errors

format_number(6051423)                    # "6 051 423"
merge_output_and_errors("", "")           # " "
merge_output_and_errors("out", "err")     # "err\n\nout"

path = split_qualified_path("fn@serde-json::value::to_value")
path.kind, path.crate, path.mods, path.ident   # ("fn", "serde-json", "value", "to_value")
```

`path_to_doc_url` works against any object with async `get_crate_docs` and
`page_exists` methods. `CratesIoClient` talks to the real services:

```python
import asyncio

from ferrisbot.crates import CratesIoClient, path_to_doc_url


async def lookup(query: str) -> str:
    return await path_to_doc_url(query, CratesIoClient())


asyncio.run(lookup("std::char::MAX"))
```

Playground helpers:

```python
from ferrisbot.playground_util import ResultHandling, maybe_wrap, parse_flags

flags, errors = parse_flags({"edition": "2021", "mode": "release", "colour": "red"})
# errors == "unknown flag `colour`\n"

wrapped = maybe_wrap('println!("hi");', ResultHandling.NONE)
```

Godbolt argument parsing:

```python
from ferrisbot.godbolt import add_no_mangle, parse_arguments

params, code = parse_arguments("rustc=beta ```rust\npub fn f() {}\n```")
# params == {"rustc": "beta"}, code == "pub fn f() {}\n"
code, added = add_no_mangle(code)
# code == "#[unsafe(no_mangle)] pub fn f() {}\n", added is True
```

## Configuration

`ferrisbot.bot.load_config` reads a TOML file with a `[discord]` table
holding `token`, `guild_id` and `application_id`.
`ferrisbot.bot.Data.from_config` builds the shared state from it.

## What it does not do

- It has no chat client and no command to start a bot. Connecting to a chat
  service and dispatching commands is left to your framework.
- It does not fetch the list of Godbolt compilers. It cannot turn a version
  such as `1.45.2` or `nightly` into a compiler id, and it cannot list the
  available compilers. `GodboltRequest.rustc` must be a compiler id that you
  supply.
- It does not render images.

## Tests

The test suite uses pytest and pytest-asyncio, listed under the `test` extra.