"""Shared jinja2 environment for generated code and markdown reports."""

from __future__ import annotations

from pathlib import Path

from jinja2 import Environment, FileSystemLoader

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"


def create_environment(templates_dir: Path | None = None) -> Environment:
    """Environment over the bundled templates, with the code-escaping filters installed."""
    env = Environment(
        loader=FileSystemLoader(str(templates_dir or TEMPLATES_DIR)),
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["pydoc"] = python_docstring
    env.filters["pystr"] = repr
    env.filters["exdoc"] = elixir_heredoc
    env.filters["exstr"] = elixir_string
    env.filters["rsstr"] = rust_format_string
    env.filters["prefix_lines"] = prefix_lines
    env.filters["score"] = lambda value: f"{float(value):.2f}"
    return env


def python_docstring(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"""', '\\"\\"\\"')


def elixir_heredoc(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"""', '\\"\\"\\"').replace("#{", "\\#{")


def elixir_string(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace('"', '\\"').replace("#{", "\\#{")
    return f'"{escaped}"'


def rust_format_string(text: str) -> str:
    escaped = (
        text.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("{", "{{")
        .replace("}", "}}")
        .replace("\n", " ")
    )
    return f'"{escaped}"'


def prefix_lines(text: str, prefix: str) -> str:
    return "\n".join(f"{prefix} {line}".rstrip() for line in text.splitlines())


__all__ = ["TEMPLATES_DIR", "create_environment"]
