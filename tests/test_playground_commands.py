import json

import httpx
import pytest

from ferrisbot.playground_api import PlaygroundClient
from ferrisbot.playground_commands import (
    BLACK_BOX_HINT,
    BLACK_BOX_IMPORT,
    NO_PUB_FNS_MESSAGE,
    SINGLE_PUB_FN_MESSAGE,
    PlaygroundCommands,
    clippy_help,
    eval_help,
    expand_help,
    fmt_help,
    microbench_code,
    microbench_help,
    miri_help,
    play_help,
    playwarn_help,
    procmacro_code,
    procmacro_help,
)


def make_commands(routes):
    """Commands backed by a mock transport; returns them and the list of (path, body) seen."""
    seen = []

    def handler(request):
        body = json.loads(request.content) if request.content else None
        seen.append((request.url.path, body))
        response = routes[request.url.path]
        if isinstance(response, Exception):
            raise response
        return httpx.Response(200, json=response)

    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return PlaygroundCommands(PlaygroundClient(http)), seen


OK = {"success": True, "stdout": "hello\n", "stderr": ""}

WARN_STDERR = (
    "   Compiling playground v0.0.1 (/playground)\n"
    "warning: unused variable\n"
    "\n"
    "warning: 1 warning emitted\n"
    "\n"
    "    Finished dev [unoptimized] target(s)\n"
    "     Running `target/debug/playground`\n"
)


def test_help_texts_mention_their_options():
    assert play_help().startswith("Compile and run Rust code. All code is executed on")
    assert "?play mode={} channel={} edition={} warn={}" in play_help()
    assert "warn={}" not in playwarn_help()
    assert "Equivalent to `?play warn=true`" in playwarn_help()
    assert "?eval mode={} channel={}" in eval_help()
    assert "aliasingModel={}" in miri_help()
    assert "- aliasingModel: stacked, tree (default: stacked)\n" in miri_help()
    assert "mode={}" not in expand_help()
    assert "Clippy linter" in clippy_help()
    assert "?fmt edition={}" in fmt_help()
    assert " run={}" in procmacro_help()
    assert "- run: true, false (default: false)\n" in procmacro_help()
    assert "Fish is on fire" in procmacro_help()
    assert "black_box(black_box(42.0) * black_box(99.0));" in microbench_help()
    assert "calculated for each\n\nUse the" in microbench_help()


def test_microbench_code_needs_two_functions():
    with pytest.raises(ValueError, match="No public functions"):
        microbench_code("fn private() {}")
    with pytest.raises(ValueError, match="Please include multiple functions"):
        microbench_code("pub fn only() {}")


def test_microbench_code_assembles_program():
    code = microbench_code("#![feature(test)]\npub fn add() {}\npub fn mul() {}")
    assert code.startswith("#![feature(test)]\n" + BLACK_BOX_IMPORT)
    assert '("add", add),\n("mul", mul),\n' in code
    assert "fn bench(functions: &[(&str, fn())])" in code
    assert code.endswith("]);\n}\n")


@pytest.mark.parametrize("run, command", [(True, "cargo r -q"), (False, "cargo c -q")])
def test_procmacro_code_runs_or_checks(run, command):
    code = procmacro_code("MACRO BODY", "USAGE BODY", run)
    assert f'cmd_run("{command} --bin procmacro");' in code
    assert 'r#####"MACRO BODY"#####' in code
    assert 'r#####"USAGE BODY"#####' in code


@pytest.mark.asyncio
async def test_play_wraps_code_and_formats_output():
    commands, seen = make_commands({"/execute": OK})
    reply = await commands.play({}, 'println!("hello");')
    assert reply.content == "```rust\nhello```"
    assert reply.retry_button is False
    path, body = seen[0]
    assert path == "/execute"
    assert body["code"].startswith("fn main() {\n")
    assert body["mode"] == "debug"
    assert body["channel"] == "nightly"
    assert body["crateType"] == "bin"


@pytest.mark.asyncio
async def test_play_reports_unknown_flags():
    commands, seen = make_commands({"/execute": OK})
    reply = await commands.play({"foo": "bar", "mode": "release"}, "fn main() {}")
    assert reply.content.startswith("unknown flag `foo`\n```rust\n")
    assert seen[0][1]["mode"] == "release"
    assert seen[0][1]["code"] == "fn main() {}"


@pytest.mark.asyncio
async def test_playwarn_shows_warnings_play_hides_them():
    response = {"success": True, "stdout": "out\n", "stderr": WARN_STDERR}
    commands, _ = make_commands({"/execute": response})
    warned = await commands.playwarn({}, "fn main() {}")
    plain = await commands.play({}, "fn main() {}")
    assert "warning: unused variable" in warned.content
    assert "unused variable" not in plain.content


@pytest.mark.asyncio
async def test_eval_prints_value_and_pretty_prefix():
    commands, seen = make_commands({"/execute": OK})
    await commands.eval({}, "1 + 2")
    await commands.eval({}, "1 + 2", prefix="<:ferrisOwO:579331467000283136> ")
    assert 'println!("{:?}", {' in seen[0][1]["code"]
    assert 'println!("{:#?}", {' in seen[1][1]["code"]


@pytest.mark.asyncio
async def test_miri_uses_aliasing_model_and_unsafe_for_sweat():
    response = {
        "success": True,
        "stdout": "",
        "stderr": "noise\n     Running `/playground/target/miri`\nUB detected\n",
    }
    commands, seen = make_commands({"/miri": response})
    reply = await commands.miri(
        {"aliasingModel": "tree"}, "let x = 1;", prefix="<:ferrisballSweat:678714352450142239>"
    )
    path, body = seen[0]
    assert path == "/miri"
    assert body["aliasingModel"] == "tree"
    assert "unsafe {" in body["code"]
    assert reply.content == "```rust\nUB detected```"


@pytest.mark.asyncio
async def test_expand_formats_and_strips_main():
    commands, seen = make_commands(
        {
            "/macro-expansion": {"success": True, "stdout": "fn main(){let x=1;}", "stderr": ""},
            "/format": {"success": True, "code": "fn main() {\n    let x = 1;\n}\n", "stderr": ""},
        }
    )
    reply = await commands.expand({}, "let x=1;")
    assert [path for path, _ in seen] == ["/macro-expansion", "/format"]
    assert reply.content == "```rust\nlet x = 1;```"


@pytest.mark.asyncio
async def test_fmt_strips_wrapper_only_when_added():
    formatted = {"success": True, "code": "fn main() {\n    let x = 1;\n}\n", "stderr": ""}
    commands, seen = make_commands({"/format": formatted})
    wrapped = await commands.fmt({}, "let x=1;")
    unwrapped = await commands.fmt({}, "fn main(){let x=1;}")
    assert wrapped.content == "```rust\nlet x = 1;```"
    assert unwrapped.content.startswith("```rust\nfn main() {")
    assert seen[1][1]["code"] == "fn main(){let x=1;}"


@pytest.mark.asyncio
async def test_clippy_prepends_allows():
    commands, seen = make_commands({"/clippy": OK})
    await commands.clippy({}, "let x = 1;")
    path, body = seen[0]
    assert path == "/clippy"
    assert body["code"].startswith("#![allow(dead_code, clippy::let_unit_value)] fn main() { let _ = {\n")


@pytest.mark.asyncio
async def test_microbench_rejects_too_few_functions_without_request():
    commands, seen = make_commands({"/execute": OK})
    none = await commands.microbench({}, "fn a() {}")
    one = await commands.microbench({}, "pub fn a() {}")
    assert none.content == NO_PUB_FNS_MESSAGE
    assert one.content == SINGLE_PUB_FN_MESSAGE
    assert seen == []


@pytest.mark.asyncio
async def test_microbench_runs_in_release_with_hint():
    commands, seen = make_commands({"/execute": OK})
    reply = await commands.microbench({}, "pub fn a() {}\npub fn b() {}")
    assert seen[0][1]["mode"] == "release"
    assert reply.content.startswith(BLACK_BOX_HINT + "```rust\n")


@pytest.mark.asyncio
async def test_procmacro_uses_fixed_glue_settings():
    commands, seen = make_commands({"/execute": OK})
    await commands.procmacro(
        {"run": "true", "mode": "release"}, "pub fn m() {}", "procmacro::m!();"
    )
    body = seen[0][1]
    assert (body["channel"], body["edition"], body["mode"]) == ("nightly", "2024", "debug")
    assert "cargo r -q --bin procmacro" in body["code"]


@pytest.mark.asyncio
async def test_long_output_links_to_gist():
    long_output = {"success": True, "stdout": "x" * 3000, "stderr": ""}
    commands, seen = make_commands({"/execute": long_output, "/meta/gist/": {"id": "abc"}})
    reply = await commands.play({}, "fn main() {}")
    assert reply.content.endswith(
        "Output too large. Playground link: "
        "<https://play.rust-lang.org/?version=nightly&mode=debug&edition=2024&gist=abc>"
    )
    assert len(reply.content) <= 2000
    assert seen[1] == ("/meta/gist/", {"code": "fn main() {}"})


@pytest.mark.asyncio
async def test_gist_failure_leaves_empty_id():
    long_output = {"success": True, "stdout": "x" * 3000, "stderr": ""}
    commands, _ = make_commands({"/execute": long_output, "/meta/gist/": {"error": "nope"}})
    reply = await commands.play({}, "fn main() {}")
    assert reply.content.endswith("&gist=>")


@pytest.mark.asyncio
async def test_timeout_offers_retry():
    response = {
        "success": False,
        "stdout": "",
        "stderr": "timeout --signal=KILL 10 playground\nKilled\n",
    }
    commands, _ = make_commands({"/execute": response})
    reply = await commands.play({}, "fn main() { loop {} }")
    assert reply.retry_button is True
    assert reply.content.endswith("```Playground timeout detected")