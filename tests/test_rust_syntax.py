import pytest

from ferrisbot.rust_syntax import (
    RustSyntaxError,
    has_main_fn,
    pub_fn_names,
    pub_fn_offsets,
    top_level_items,
)


def test_pub_fn_names_only_public():
    code = "pub fn a() {}\nfn b() {}\npub(crate) fn c() {}\npub fn d() {}"
    assert pub_fn_names(code) == ["a", "d"]


def test_pub_fn_names_ignores_strings_and_comments():
    code = 'const S: &str = "pub fn x() {}";\n// pub fn y() {}\n/* pub fn z() {} */\npub fn real() {}'
    assert pub_fn_names(code) == ["real"]


def test_nested_fns_are_not_top_level():
    code = "pub fn outer() { pub fn inner() {} }"
    assert pub_fn_names(code) == ["outer"]


def test_offsets_include_attributes():
    code = "use std::io;\n#[inline]\npub fn a() {}\npub async fn b() {}"
    assert pub_fn_offsets(code) == [code.index("#[inline]"), code.index("pub async")]


def test_has_main_fn():
    assert has_main_fn("fn main() {}")
    assert not has_main_fn("fn main(x: u8) {}")
    assert not has_main_fn("let x = 1;\nprintln!(\"{x}\");")


def test_generic_fn_with_fn_bound():
    items = top_level_items("fn f<F: Fn(u8)>() {}")
    assert [(i.name, i.no_inputs) for i in items] == [("f", True)]


def test_lifetimes_and_chars():
    code = "pub fn f<'a>(x: &'a str) -> char { '}' }"
    assert pub_fn_names(code) == ["f"]


def test_unbalanced_raises():
    with pytest.raises(RustSyntaxError):
        top_level_items("fn f() {")
    assert pub_fn_names("pub fn f() {") == []