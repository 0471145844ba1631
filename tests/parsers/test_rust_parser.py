"""Tests for the Rust parser adapter."""

from __future__ import annotations

from tests._fixtures.library_builder import LibraryBuilder
from tests._fixtures.sources import RUST_MATH

from stdlib_merger.models import TypeRef
from stdlib_merger.parsers.rust import sanitize

SHAPES = """
pub struct Buffer;

impl Buffer {
    /// Creates a buffer.
    pub fn new() -> Self {
        Buffer
    }

    fn reset(&mut self) {}
}

pub trait Shape {
    fn area(&self) -> f64;

    fn describe(&self) -> String {
        String::from("shape { not a block")
    }
}

impl Shape for Buffer {
    fn area(&self) -> f64 {
        0.0
    }
}

mod inner {
    pub fn helper<T: Clone>(value: &T) -> T
    where
        T: Clone,
    {
        value.clone()
    }
}
"""


def test_rust_parser_extracts_docs_examples_and_types(library_builder: LibraryBuilder) -> None:
    library_builder.write("rust", {"src/lib.rs": RUST_MATH})

    library = library_builder.parse("rust")

    assert [func.name for func in library.functions] == ["add", "concat"]
    module = library.modules["rust"]
    assert module.docstring == "Arithmetic and text helpers."
    add, concat = library.functions
    assert add.return_type == TypeRef("Result", (TypeRef("i64"), TypeRef("String")))
    assert [(param.name, param.type) for param in add.params] == [
        ("a", TypeRef("i64")),
        ("b", TypeRef("i64")),
    ]
    assert add.docstring.startswith("Adds two numbers.")
    assert add.examples == ["assert_eq!(add(1, 2), Ok(3));"]
    assert add.body.startswith("pub fn add(a: i64, b: i64)")
    assert add.body.endswith("}")
    assert add.metadata["visibility"] == "public"
    assert concat.params[0].type == TypeRef("&str")


def test_rust_parser_scopes_impl_trait_and_inline_modules(library_builder: LibraryBuilder) -> None:
    library_builder.write("rust", {"src/shapes.rs": SHAPES})

    library = library_builder.parse("rust")
    found = {(func.module_path, func.name): func for func in library.functions}

    assert set(found) == {
        ("shapes::Buffer", "new"),
        ("shapes::Buffer", "reset"),
        ("shapes::Shape", "describe"),
        ("shapes::Buffer", "area"),
        ("shapes::inner", "helper"),
    }
    assert found[("shapes::Buffer", "new")].docstring == "Creates a buffer."
    assert found[("shapes::Buffer", "reset")].metadata["visibility"] == "private"
    assert found[("shapes::Buffer", "reset")].params == []
    assert found[("shapes::Buffer", "reset")].return_type == TypeRef("()")
    assert found[("shapes::Shape", "describe")].metadata["visibility"] == "public"
    assert found[("shapes::Buffer", "area")].metadata["visibility"] == "public"
    helper = found[("shapes::inner", "helper")]
    assert helper.return_type == TypeRef("T")
    assert helper.params[0].name == "value"


def test_sanitize_blanks_comments_and_literals_but_keeps_offsets() -> None:
    source = 'let s = "fn fake() {}"; // fn other()\nlet c = \'{\';\n'

    cleaned = sanitize(source)

    assert len(cleaned) == len(source)
    assert "fn" not in cleaned
    assert "{" not in cleaned
    assert cleaned.count("\n") == 2
