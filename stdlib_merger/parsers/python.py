"""Python adapter backed by the standard ``ast`` module."""

from __future__ import annotations

import ast
from pathlib import Path
from typing import List, Optional, Union

from ..models import UNKNOWN_TYPE, FunctionSignature, Module, Parameter, SourceLocation, TypeRef
from .base import LibraryParser, dedent_block, extract_examples, read_source

FunctionNode = Union[ast.FunctionDef, ast.AsyncFunctionDef]


class PythonParser(LibraryParser):
    """Extract module-level functions and class methods from ``.py`` files."""

    ecosystem = "python"
    extensions = (".py",)

    def parse_file(self, path: Path, root: Path) -> Optional[Module]:
        source = read_source(path)
        relative = path.relative_to(root).as_posix()
        tree = ast.parse(source, filename=relative)
        lines = source.splitlines()
        name = _module_name(path, root)

        module = Module(
            name=name,
            path=relative,
            docstring=ast.get_docstring(tree) or "",
            source_location=SourceLocation(relative, 1, 1, max(len(lines), 1)),
        )
        for node in tree.body:
            if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
                module.functions.append(_signature(node, name, relative, lines))
            elif isinstance(node, ast.ClassDef):
                submodule = Module(
                    name=f"{name}.{node.name}",
                    path=relative,
                    docstring=ast.get_docstring(node) or "",
                    source_location=SourceLocation(
                        relative, node.lineno, node.col_offset + 1, node.end_lineno
                    ),
                )
                for child in node.body:
                    if isinstance(child, (ast.FunctionDef, ast.AsyncFunctionDef)) and not _is_dunder(
                        child.name
                    ):
                        submodule.functions.append(
                            _signature(child, submodule.name, relative, lines, method=True)
                        )
                if submodule.functions:
                    module.submodules.append(submodule)
        return module


def _module_name(path: Path, root: Path) -> str:
    parts = list(path.relative_to(root).with_suffix("").parts)
    if parts and parts[-1] == "__init__":
        parts = parts[:-1] or [root.name]
    return ".".join(parts)


def _is_dunder(name: str) -> bool:
    return name.startswith("__") and name.endswith("__")


def _annotation(node: Optional[ast.expr]) -> TypeRef:
    if node is None:
        return UNKNOWN_TYPE
    return TypeRef.parse(ast.unparse(node))


def _parameters(node: FunctionNode, method: bool) -> List[Parameter]:
    args = node.args
    positional = [*args.posonlyargs, *args.args]
    padding: List[Optional[ast.expr]] = [None] * (len(positional) - len(args.defaults))
    defaults = padding + list(args.defaults)

    params: List[Parameter] = []
    for index, (arg, default) in enumerate(zip(positional, defaults)):
        if method and index == 0 and arg.arg in {"self", "cls"}:
            continue
        params.append(
            Parameter(
                name=arg.arg,
                type=_annotation(arg.annotation),
                default=ast.unparse(default) if default is not None else None,
            )
        )
    if args.vararg is not None:
        params.append(Parameter(name=f"*{args.vararg.arg}", type=_annotation(args.vararg.annotation)))
    for arg, default in zip(args.kwonlyargs, args.kw_defaults):
        params.append(
            Parameter(
                name=arg.arg,
                type=_annotation(arg.annotation),
                default=ast.unparse(default) if default is not None else None,
            )
        )
    if args.kwarg is not None:
        params.append(Parameter(name=f"**{args.kwarg.arg}", type=_annotation(args.kwarg.annotation)))
    return params


def _signature(
    node: FunctionNode, module_path: str, relative: str, lines: List[str], method: bool = False
) -> FunctionSignature:
    start = min([node.lineno, *(decorator.lineno for decorator in node.decorator_list)])
    end = node.end_lineno or node.lineno
    docstring = ast.get_docstring(node) or ""
    return FunctionSignature(
        name=node.name,
        module_path=module_path,
        params=_parameters(node, method),
        return_type=_annotation(node.returns),
        docstring=docstring,
        examples=extract_examples(docstring, ">>>", "..."),
        source_location=SourceLocation(
            relative, start, node.col_offset + 1, end, (node.end_col_offset or 0) + 1
        ),
        metadata={
            "body": dedent_block(lines[start - 1 : end]),
            "visibility": "private" if node.name.startswith("_") else "public",
            "kind": "method" if method else "function",
            "async": isinstance(node, ast.AsyncFunctionDef),
        },
    )


__all__ = ["PythonParser"]
