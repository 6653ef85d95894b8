import httpx
import pytest

from ferrisbot.godbolt import (
    LLVM_MCA_TOOL_ID,
    NO_MANGLE,
    PUB_FN_NOTE,
    CodeBlockError,
    Compilation,
    GodboltClient,
    GodboltRequest,
    add_no_mangle,
    compile_payload,
    concatenate,
    format_codeblock,
    format_codeblocks,
    highlight_language,
    note,
    parse_arguments,
    parse_compile_response,
    shortlink_payload,
)


async def _link() -> str:
    return "LINK"


def test_parse_arguments():
    params, code = parse_arguments("rustc=beta ```rust\npub fn f() {}\n```")
    assert params == {"rustc": "beta"}
    assert code == "pub fn f() {}\n"


def test_parse_arguments_missing_codeblock():
    with pytest.raises(CodeBlockError):
        parse_arguments("``` ```")


def test_add_no_mangle():
    code, added = add_no_mangle("pub fn f() {}\nfn g() {}")
    assert added
    assert code == NO_MANGLE + "pub fn f() {}\nfn g() {}"
    assert add_no_mangle("fn g() {") == ("fn g() {", False)


def test_note():
    assert note(True) == ""
    assert note(False) == PUB_FN_NOTE


@pytest.mark.parametrize(
    "params, lang",
    [
        ({"--emit": "llvmir"}, "llvm"),
        ({"--emit": "obj"}, ""),
        ({"--emit": "mir"}, "rust"),
        ({"--target": "aarch64-unknown-linux-gnu"}, "arm"),
        ({"--target": "riscv64gc-unknown-linux-gnu"}, "mips"),
        ({"--target": "wasm32-unknown-unknown"}, "wasm"),
        ({}, "x86asm"),
    ],
)
def test_highlight_language(params, lang):
    assert highlight_language(params) == lang


def test_concatenate():
    assert concatenate([{"text": "a"}, {"text": "b"}]) == "a\nb\n"


def test_payloads_carry_tools():
    req = GodboltRequest("src", "nightly", "-O", run_llvm_mca=True)
    assert compile_payload(req)["options"]["tools"] == [{"id": LLVM_MCA_TOOL_ID}]
    session = shortlink_payload(req)["sessions"][0]
    assert session["compilers"][0]["id"] == "nightly"
    assert session["source"] == "src"


def test_parse_compile_response_mca():
    data = {
        "stderr": [],
        "asm": [],
        "tools": [{"id": LLVM_MCA_TOOL_ID, "stdout": [{"text": "keep"}, {"text": "Instruction Info"}]}],
    }
    assert parse_compile_response(data, True).output == "keep"
    with pytest.raises(ValueError):
        parse_compile_response({"stderr": [], "asm": [], "tools": []}, True)


@pytest.mark.asyncio
async def test_format_codeblocks_output_only():
    text = await format_codeblocks(Compilation("mov", ""), "x86asm", "", _link)
    assert text == "```x86asm\nmov\n```"


@pytest.mark.asyncio
async def test_format_codeblocks_failed():
    text = await format_codeblocks(Compilation("<Compilation failed>", "err"), "x86asm", "", _link)
    assert text.endswith("Compilation failed.")
    assert "err" in text


@pytest.mark.asyncio
async def test_format_codeblock_too_long_uses_link():
    text = await format_codeblock("x86asm", "x" * 5000, "", _link)
    assert text.endswith("Output too large. Godbolt link: <LINK>")
    assert len(text) <= 2000


@pytest.mark.asyncio
async def test_client_compile_and_shortlink():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/compile"):
            return httpx.Response(200, json={"stderr": [], "asm": [{"text": "ret"}], "tools": []})
        return httpx.Response(500, text="nope")

    client = GodboltClient(httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    req = GodboltRequest("src", "nightly", "")
    assert (await client.compile(req)).output == "ret\n"
    assert await client.shortlink(req) == "failed to retrieve"