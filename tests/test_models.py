"""Tests for shared models and per-ecosystem naming helpers."""

from __future__ import annotations

import pytest

from tests._fixtures.signatures import make_function

from stdlib_merger.ecosystems import camelize, get_ecosystem, known_ecosystems, to_identifier
from stdlib_merger.errors import UnsupportedEcosystemError
from stdlib_merger.failsafe import placeholder_message
from stdlib_merger.models import (
    SourceLocation,
    TypeRef,
    format_signature,
    full_name,
    is_optional_type,
    is_result_type,
    is_void_type,
)


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("Result<i64, String>", TypeRef("Result", (TypeRef("i64"), TypeRef("String")))),
        ("list[str]", TypeRef("list", (TypeRef("str"),))),
        ("Map.t()", TypeRef("Map.t")),
        ("Vec<Option<T>>", TypeRef("Vec", (TypeRef("Option", (TypeRef("T"),)),))),
        ("  ", TypeRef("unknown")),
    ],
)
def test_type_ref_parse(text: str, expected: TypeRef) -> None:
    assert TypeRef.parse(text) == expected


def test_type_ref_base_name_and_str() -> None:
    ref = TypeRef.parse("io::Result<Vec<u8>>")

    assert ref.base_name == "Result"
    assert str(ref) == "io::Result<Vec<u8>>"


def test_type_predicates() -> None:
    assert is_result_type(TypeRef.parse("Result<T, E>"))
    assert is_result_type(TypeRef.parse("{:ok, binary} | {:error, atom}"))
    assert not is_result_type(TypeRef.parse("{:ok, binary}"))
    assert is_optional_type(TypeRef.parse("Optional[int]"))
    assert is_optional_type(TypeRef.parse("Union[str, None]"))
    assert not is_optional_type(TypeRef.parse("{:ok, t} | {:error, t}"))
    assert is_void_type(TypeRef("()"))
    assert is_void_type(TypeRef("None"))
    assert not is_optional_type(TypeRef.parse("None"))
    assert not is_optional_type(TypeRef.parse("nil"))
    assert is_optional_type(TypeRef.parse("str | None"))
    assert not is_void_type(TypeRef("int"))


def test_signature_formatting() -> None:
    func = make_function("split", "rust", params=("text",), returns="Vec<String>", module_path="std::str")

    assert format_signature(func) == "split(text: unknown) -> Vec<String>"
    assert full_name(func) == "std::str.split"
    assert func.ecosystem == "rust"
    assert func.body is None


def test_source_location_defaults_end_to_start() -> None:
    location = SourceLocation("lib.rs", 4, 2)

    assert location.end_line == 4
    assert location.end_column == 2
    assert str(location) == "lib.rs:4:2"


def test_identifier_helpers() -> None:
    assert camelize("string_split") == "StringSplit"
    assert to_identifier("to-upper") == "to_upper"
    assert to_identifier("class") == "class_"
    assert to_identifier("fn") == "fn_"
    assert to_identifier("2d_map") == "_2d_map"
    assert to_identifier("???") == "unnamed"


def test_reference_statements_per_ecosystem() -> None:
    assert get_ecosystem("python").reference_statement("string_split") == (
        "from aggregate_library import string_split"
    )
    assert get_ecosystem("Elixir").reference_statement("string_split") == (
        "alias AggregateLibrary.StringSplit"
    )
    assert get_ecosystem("rust").reference_statement("string_split") == (
        "use aggregate_library::string_split;"
    )
    assert get_ecosystem("rust").unified_module("trim") == "aggregate_library::trim"
    assert known_ecosystems() == ("elixir", "python", "rust")
    with pytest.raises(UnsupportedEcosystemError):
        get_ecosystem("haskell")


def test_placeholder_message_includes_reason() -> None:
    assert placeholder_message("trim", "rust", "python") == (
        "trim: translation from rust to python is not implemented yet"
    )
    assert placeholder_message("trim", "python", "python", "no\n body") == (
        "trim: no source body was captured from python (no body)"
    )
