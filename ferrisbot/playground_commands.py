"""The playground commands: play, eval, miri, expand, clippy, fmt, microbench and procmacro."""

from __future__ import annotations

import logging
from collections.abc import Mapping

import httpx

from ferrisbot.playground_api import (
    Channel,
    CommandFlags,
    CrateType,
    Edition,
    Mode,
    PlaygroundClient,
    PlayResult,
    clippy_request,
    macro_expansion_request,
    miri_request,
    playground_request,
    url_from_gist,
)
from ferrisbot.playground_util import (
    GenericHelp,
    Reply,
    ResultHandling,
    extract_relevant_lines,
    format_play_eval_stderr,
    generic_help,
    hoist_crate_attributes,
    maybe_wrap,
    maybe_wrapped,
    parse_flags,
    render_reply,
    strip_fn_main_boilerplate_from_formatted,
)
from ferrisbot.rust_syntax import pub_fn_names

log = logging.getLogger(__name__)

NO_PUB_FNS_MESSAGE = "No public functions (`pub fn`) found for benchmarking :thinking:"
SINGLE_PUB_FN_MESSAGE = "Please include multiple functions. Times are not comparable across runs"
BLACK_BOX_HINT = "Hint: use the black_box function to prevent computations from being optimized out\n"
BLACK_BOX_IMPORT = "#[allow(unused_imports)] use std::hint::black_box;\n"
CLIPPY_ALLOWS = "#![allow(dead_code, clippy::let_unit_value)] "

BENCH_FUNCTION = """
fn bench(functions: &[(&str, fn())]) {
    const CHUNK_SIZE: usize = 1000;

    // Warm up
    for (_, function) in functions.iter() {
        for _ in 0..CHUNK_SIZE {
            (function)();
        }
    }

    let mut functions_chunk_times = functions.iter().map(|_| Vec::new()).collect::<Vec<_>>();

    let start = std::time::Instant::now();
    while (std::time::Instant::now() - start).as_secs() < 5 {
        for (chunk_times, (_, function)) in functions_chunk_times.iter_mut().zip(functions) {
            let start = std::time::Instant::now();
            for _ in 0..CHUNK_SIZE {
                (function)();
            }
            chunk_times.push((std::time::Instant::now() - start).as_secs_f64() / CHUNK_SIZE as f64);
        }
    }

    for (chunk_times, (function_name, _)) in functions_chunk_times.iter().zip(functions) {
        let mean_time: f64 = chunk_times.iter().sum::<f64>() / chunk_times.len() as f64;
        
        let mut sum_of_squared_deviations = 0.0;
        let mut n = 0;
        for &time in chunk_times {
            // Filter out outliers (there are some crazy outliers, I've checked)
            if time < mean_time * 3.0 {
                sum_of_squared_deviations += (time - mean_time).powi(2);
                n += 1;
            }
        }
        let standard_deviation = f64::sqrt(sum_of_squared_deviations / n as f64);

        println!(
            "{}: {:.1}ns ± {:.1}",
            function_name,
            mean_time * 1_000_000_000.0,
            standard_deviation * 1_000_000_000.0,
        );
    }
}"""

_PROCMACRO_DRIVER = """
pub fn cmd_run(cmd: &str) {
    let status = std::process::Command::new("/bin/sh")
        .args(&["-c", cmd])
        .status()
        .unwrap();
    if !status.success() {
        std::process::exit(-1);
    }
}

pub fn cmd_stdout(cmd: &str) -> String {
    let output = std::process::Command::new("/bin/sh")
        .args(&["-c", cmd])
        .output()
        .unwrap();
    String::from_utf8(output.stdout).unwrap()
}

fn main() -> std::io::Result<()> {
    use std::io::Write as _;
    std::env::set_current_dir(cmd_stdout("mktemp -d").trim())?;
    cmd_run("cargo init -q --name procmacro --lib");
    std::fs::write("src/lib.rs", MACRO_CODE)?;
    std::fs::write("src/main.rs", USAGE_CODE)?;
    std::fs::OpenOptions::new()
        .write(true)
        .append(true)
        .open("Cargo.toml")?
        .write_all(b"[lib]\\nproc-macro = true")?;
    cmd_run("cargo"""

_PROCMACRO_TAIL = """ -q --bin procmacro");
    Ok(())
}"""


def play_help() -> str:
    return generic_help(
        GenericHelp(
            command="play",
            desc="Compile and run Rust code",
            mode_and_channel=True,
            warn=True,
            run=False,
            aliasing_model=False,
            example_code="code",
        )
    )


def playwarn_help() -> str:
    return generic_help(
        GenericHelp(
            command="playwarn",
            desc="Compile and run Rust code with warnings. Equivalent to `?play warn=true`",
            mode_and_channel=True,
            warn=False,
            run=False,
            aliasing_model=False,
            example_code="code",
        )
    )


def eval_help() -> str:
    return generic_help(
        GenericHelp(
            command="eval",
            desc="Compile and run Rust code",
            mode_and_channel=True,
            warn=True,
            run=False,
            aliasing_model=False,
            example_code="code",
        )
    )


def miri_help() -> str:
    return generic_help(
        GenericHelp(
            command="miri",
            desc=(
                "Execute this program in the Miri interpreter to detect certain cases of undefined "
                "behavior (like out-of-bounds memory access)"
            ),
            mode_and_channel=False,
            # Miri warnings and program output arrive in the same field, so they cannot be filtered
            warn=False,
            run=False,
            aliasing_model=True,
            example_code="code",
        )
    )


def expand_help() -> str:
    return generic_help(
        GenericHelp(
            command="expand",
            desc="Expand macros to their raw desugared form",
            mode_and_channel=False,
            warn=False,
            run=False,
            aliasing_model=False,
            example_code="code",
        )
    )


def clippy_help() -> str:
    return generic_help(
        GenericHelp(
            command="clippy",
            desc="Catch common mistakes and improve the code using the Clippy linter",
            mode_and_channel=False,
            warn=False,
            run=False,
            aliasing_model=False,
            example_code="code",
        )
    )


def fmt_help() -> str:
    return generic_help(
        GenericHelp(
            command="fmt",
            desc="Format code using rustfmt",
            mode_and_channel=False,
            warn=False,
            run=False,
            aliasing_model=False,
            example_code="code",
        )
    )


def microbench_help() -> str:
    return generic_help(
        GenericHelp(
            command="microbench",
            desc=(
                "Benchmarks small snippets of code by running them repeatedly. Public functions "
                "are run in blocks of 1000 repetitions in a cycle until 5 seconds have "
                "passed. Measurements are averaged and standard deviation is calculated for each"
                "\n\n"
                "Use the `std::hint::black_box` function, which is already imported, to wrap results of "
                "computations that shouldn't be optimized out. Also wrap computation inputs in "
                "`black_box(...)` that should be opaque to the optimizer: `number * 2` produces "
                "optimized integer doubling assembly while `number * black_box(2)` produces a generic "
                "integer multiplication instruction"
            ),
            mode_and_channel=False,
            warn=True,
            run=False,
            aliasing_model=False,
            example_code=(
                "\npub fn add() {\n    black_box(black_box(42.0) + black_box(99.0));\n}\n"
                "pub fn mul() {\n    black_box(black_box(42.0) * black_box(99.0));\n}\n"
            ),
        )
    )


def procmacro_help() -> str:
    return generic_help(
        GenericHelp(
            command="procmacro",
            desc=(
                "Compiles a procedural macro by providing two snippets: one for the "
                "proc-macro code, and one for the usage code which can refer to the proc-macro "
                "crate as `procmacro`. By default, the code is only compiled, _not run_! To run "
                "the final code too, pass\n`run=true`."
            ),
            mode_and_channel=False,
            warn=True,
            run=True,
            aliasing_model=False,
            example_code=(
                "\n#[proc_macro]\n"
                "pub fn foo(_: proc_macro::TokenStream) -> proc_macro::TokenStream {\n"
                '    r#"compile_error!("Fish is on fire")"#.parse().unwrap()\n'
                "}\n"
                "``\u200b` ``\u200b`\n"
                "procmacro::foo!();\n"
            ),
        )
    )


def microbench_code(user_code: str) -> str:
    """Build a program that benchmarks every top-level `pub fn` of ``user_code``.

    Raises ValueError when there are fewer than two public functions to compare.
    """
    names = pub_fn_names(user_code)
    if not names:
        raise ValueError(NO_PUB_FNS_MESSAGE)
    if len(names) == 1:
        raise ValueError(SINGLE_PUB_FN_MESSAGE)

    entries = "".join(f'("{name}", {name}),\n' for name in names)
    after_code = f"{BENCH_FUNCTION}fn main() {{\nbench(&[{entries}]);\n}}\n"
    return hoist_crate_attributes(user_code, BLACK_BOX_IMPORT, after_code)


def procmacro_code(macro_code: str, usage_code: str, run: bool) -> str:
    """Build a program that compiles the macro crate and the usage crate, and runs it if asked."""
    header = (
        f'const MACRO_CODE: &str = r#####"{macro_code}"#####; '
        f'const USAGE_CODE: &str = r#####"{usage_code}"#####;'
    )
    return f"{header}{_PROCMACRO_DRIVER}{' r' if run else ' c'}{_PROCMACRO_TAIL}"


class PlaygroundCommands:
    """Runs the playground commands and produces their replies."""

    def __init__(self, client: PlaygroundClient | None = None) -> None:
        self._client = client if client is not None else PlaygroundClient()

    async def _reply(
        self, result: PlayResult, code: str, flags: CommandFlags, flag_parse_errors: str
    ) -> Reply:
        async def playground_link() -> str:
            try:
                gist_id = await self._client.post_gist(code)
            except (httpx.HTTPError, LookupError, ValueError):
                gist_id = ""
            return url_from_gist(flags, gist_id)

        return await render_reply(result, flag_parse_errors, playground_link)

    async def _play_or_eval(
        self,
        args: Mapping[str, str],
        code: str,
        prefix: str,
        force_warnings: bool,
        result_handling: ResultHandling,
    ) -> Reply:
        code = maybe_wrapped(
            code,
            result_handling,
            "Sweat" in prefix,
            "OwO" in prefix or "Cat" in prefix,
        )
        flags, errors = parse_flags(args)
        if force_warnings:
            flags.warn = True

        result = await self._client.execute(
            playground_request(code, flags.channel, flags.edition, flags.mode, CrateType.BINARY, False)
        )
        result.stderr = format_play_eval_stderr(result.stderr, flags.warn)
        return await self._reply(result, code, flags, errors)

    async def play(self, args: Mapping[str, str], code: str, prefix: str = "?") -> Reply:
        """Compile and run Rust code."""
        return await self._play_or_eval(args, code, prefix, False, ResultHandling.NONE)

    async def playwarn(self, args: Mapping[str, str], code: str, prefix: str = "?") -> Reply:
        """Compile and run Rust code, always showing warnings."""
        return await self._play_or_eval(args, code, prefix, True, ResultHandling.NONE)

    async def eval(self, args: Mapping[str, str], code: str, prefix: str = "?") -> Reply:
        """Evaluate a single expression and print its value."""
        return await self._play_or_eval(args, code, prefix, False, ResultHandling.PRINT)

    async def miri(self, args: Mapping[str, str], code: str, prefix: str = "?") -> Reply:
        """Run code under Miri to detect undefined behaviour."""
        code = maybe_wrapped(code, ResultHandling.DISCARD, "Sweat" in prefix, False)
        flags, errors = parse_flags(args)

        result = await self._client.miri(miri_request(code, flags.edition, flags.aliasing_model))
        result.stderr = extract_relevant_lines(
            result.stderr, ["Running `/playground"], ["error: aborting"]
        )
        return await self._reply(result, code, flags, errors)

    async def expand(self, args: Mapping[str, str], code: str) -> Reply:
        """Expand macros to their desugared form."""
        wrapped = maybe_wrap(code, ResultHandling.NONE)
        was_fn_main_wrapped = wrapped != code
        flags, errors = parse_flags(args)

        result = await self._client.macro_expansion(macro_expansion_request(wrapped, flags.edition))
        result.stderr = extract_relevant_lines(
            result.stderr, ["Finished ", "Compiling playground"], ["error: aborting"]
        )

        if result.success:
            try:
                formatted = await self._client.apply_online_rustfmt(result.stdout, flags.edition)
            except (httpx.HTTPError, ValueError) as exc:
                log.warning("Couldn't run rustfmt: %s", exc)
            else:
                if formatted.success:
                    result.stdout = formatted.stdout
                else:
                    log.warning(
                        "rustfmt failed on code that passed macro expansion: %s", formatted.stderr
                    )
        if was_fn_main_wrapped:
            result.stdout = strip_fn_main_boilerplate_from_formatted(result.stdout)

        return await self._reply(result, wrapped, flags, errors)

    async def clippy(self, args: Mapping[str, str], code: str, prefix: str = "?") -> Reply:
        """Lint code with Clippy."""
        code = CLIPPY_ALLOWS + maybe_wrapped(code, ResultHandling.DISCARD, "Sweat" in prefix, False)
        flags, errors = parse_flags(args)

        result = await self._client.clippy(clippy_request(code, flags.edition, CrateType.BINARY))
        result.stderr = extract_relevant_lines(
            result.stderr,
            ["Checking playground", "Running `/playground"],
            ["error: aborting", "1 warning emitted", "warnings emitted", "Finished "],
        )
        return await self._reply(result, code, flags, errors)

    async def fmt(self, args: Mapping[str, str], code: str) -> Reply:
        """Format code with rustfmt."""
        wrapped = maybe_wrap(code, ResultHandling.NONE)
        was_fn_main_wrapped = wrapped != code
        flags, errors = parse_flags(args)

        result = await self._client.apply_online_rustfmt(wrapped, flags.edition)
        if was_fn_main_wrapped:
            result.stdout = strip_fn_main_boilerplate_from_formatted(result.stdout)
        return await self._reply(result, wrapped, flags, errors)

    async def microbench(self, args: Mapping[str, str], code: str) -> Reply:
        """Benchmark the public functions of the code against each other."""
        try:
            program = microbench_code(code)
        except ValueError as exc:
            return Reply(str(exc))

        flags, errors = parse_flags(args)
        result = await self._client.execute(
            playground_request(
                program, flags.channel, flags.edition, Mode.RELEASE, CrateType.BINARY, False
            )
        )
        result.stderr = format_play_eval_stderr(result.stderr, flags.warn)

        if "black_box" not in code:
            errors += BLACK_BOX_HINT
        return await self._reply(result, program, flags, errors)

    async def procmacro(
        self, args: Mapping[str, str], macro_code: str, usage_code: str
    ) -> Reply:
        """Compile a procedural macro crate and code using it."""
        usage = maybe_wrap(usage_code, ResultHandling.NONE)
        flags, errors = parse_flags(args)
        program = procmacro_code(macro_code, usage, flags.run)

        result = await self._client.execute(
            playground_request(
                program, Channel.NIGHTLY, Edition.E2024, Mode.DEBUG, CrateType.BINARY, False
            )
        )
        result.stderr = format_play_eval_stderr(
            format_play_eval_stderr(result.stderr, flags.warn), flags.warn
        )
        return await self._reply(result, program, flags, errors)