"""Elixir adapter built on line-oriented regular expressions."""

from __future__ import annotations

import bisect
import re
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..models import UNKNOWN_TYPE, FunctionSignature, Module, Parameter, SourceLocation, TypeRef
from .base import (
    LibraryParser,
    dedent_block,
    extract_examples,
    find_matching,
    read_source,
    split_top_level,
)

_DEFMODULE = re.compile(r"^(?P<indent>\s*)defmodule\s+(?P<name>[A-Z][\w.]*)\s+do\b")
_DEF = re.compile(r"^(?P<indent>\s*)(?P<kind>defp?)\s+(?P<name>[a-z_]\w*[?!]?)(?P<rest>.*)$")
_OTHER_DEF = re.compile(
    r"^(?P<indent>\s*)(?P<kind>defmacrop?|defdelegate|defguardp?|defstruct|defexception|defoverridable|defprotocol|defimpl)\b"
)
_DOC_ATTR = re.compile(r"^\s*@(?P<attr>moduledoc|doc)\s+(?P<value>.*)$")
_SPEC = re.compile(r"^\s*@spec\s+(?P<text>.*)$")
_SPEC_HEAD = re.compile(r"(?P<name>[a-z_]\w*[?!]?)\s*(?P<open>\()?")
_HEREDOC = re.compile(r'^(~[sS])?"""\s*$')
_STRING = re.compile(r'^(~[sS])?"(?P<body>(?:[^"\\]|\\.)*)"\s*$')
_END = re.compile(r"^(?P<indent>\s*)end\b")
_DO_BLOCK = re.compile(r"\bdo\s*(#.*)?$")
_DO_INLINE = re.compile(r"\bdo:")
_IDENT = re.compile(r"^[a-z_]\w*[?!]?$")

SpecKey = Tuple[str, str, int]


class ElixirParser(LibraryParser):
    """Extract public and private functions from ``.ex``/``.exs`` sources."""

    ecosystem = "elixir"
    extensions = (".ex", ".exs")

    def parse_file(self, path: Path, root: Path) -> Optional[Module]:
        relative = path.relative_to(root).as_posix()
        return _ElixirSource(read_source(path), relative).parse()


class _ElixirSource:
    def __init__(self, text: str, relative: str) -> None:
        self.text = text
        self.relative = relative
        self.lines = text.splitlines()
        self.offsets: List[int] = []
        offset = 0
        for line in text.splitlines(keepends=True):
            self.offsets.append(offset)
            offset += len(line)
        self.specs: Dict[SpecKey, Tuple[List[TypeRef], TypeRef]] = {}

    def parse(self) -> Optional[Module]:
        roots: List[Module] = []
        stack: List[Tuple[int, Module]] = []
        seen: Dict[SpecKey, FunctionSignature] = {}
        pending_doc: Optional[str] = None
        index = 0

        while index < len(self.lines):
            while stack and index > stack[-1][0]:
                stack.pop()
            line = self.lines[index]

            module_match = _DEFMODULE.match(line)
            if module_match:
                indent = len(module_match.group("indent"))
                end = self._block_end(index, indent)
                parent = stack[-1][1] if stack else None
                name = module_match.group("name")
                if parent is not None:
                    name = f"{parent.name}.{name}"
                module = Module(
                    name=name,
                    path=self.relative,
                    source_location=SourceLocation(self.relative, index + 1, indent + 1, end + 1),
                )
                if parent is not None:
                    parent.submodules.append(module)
                else:
                    roots.append(module)
                stack.append((end, module))
                pending_doc = None
                index += 1
                continue

            doc_match = _DOC_ATTR.match(line)
            if doc_match:
                doc, index = self._read_doc(doc_match.group("value"), index)
                if doc is None:
                    continue
                if doc_match.group("attr") == "moduledoc":
                    if stack:
                        stack[-1][1].docstring = doc
                else:
                    pending_doc = doc
                continue

            if _SPEC.match(line):
                spec_text, index = self._read_spec(index)
                if stack:
                    self._record_spec(stack[-1][1].name, spec_text)
                continue

            def_match = _DEF.match(line)
            if def_match and stack:
                module = stack[-1][1]
                func, end = self._read_function(def_match, index, module.name, pending_doc)
                key = (module.name, func.name, len(func.params))
                existing = seen.get(key)
                if existing is None:
                    seen[key] = func
                    module.functions.append(func)
                else:
                    self._merge_clause(existing, func)
                pending_doc = None
                index = end + 1
                continue

            other_match = _OTHER_DEF.match(line)
            if other_match and stack:
                # a @doc above a macro or delegate belongs to it
                pending_doc = None
                if other_match.group("kind") in ("defprotocol", "defimpl"):
                    index += 1
                else:
                    index = self._find_end(index, line, len(other_match.group("indent"))) + 1
                continue

            index += 1

        if not roots:
            return None
        for root in roots:
            for module in root.walk():
                self._apply_specs(module)
        if len(roots) == 1:
            return roots[0]
        container = Module(
            name=Path(self.relative).stem,
            path=self.relative,
            submodules=roots,
            source_location=SourceLocation(self.relative, 1, 1, len(self.lines)),
        )
        return container

    def _block_end(self, start: int, indent: int) -> int:
        for index in range(start + 1, len(self.lines)):
            match = _END.match(self.lines[index])
            if match and len(match.group("indent")) == indent:
                return index
        return len(self.lines) - 1

    def _inline_end(self, start: int, indent: int) -> int:
        end = start
        for index in range(start + 1, len(self.lines)):
            line = self.lines[index]
            if not line.strip() or _indent_of(line) <= indent:
                break
            end = index
        return end

    def _line_of(self, offset: int) -> int:
        return bisect.bisect_right(self.offsets, offset) - 1

    def _read_doc(self, value: str, index: int) -> Tuple[Optional[str], int]:
        value = value.strip()
        if value == "false":
            return "", index + 1
        if _HEREDOC.match(value):
            collected: List[str] = []
            cursor = index + 1
            while cursor < len(self.lines) and not self.lines[cursor].strip().startswith('"""'):
                collected.append(self.lines[cursor])
                cursor += 1
            return dedent_block(collected).strip(), cursor + 1
        match = _STRING.match(value)
        if match:
            body = match.group("body").replace('\\"', '"').replace("\\n", "\n")
            return body.strip(), index + 1
        # keyword metadata such as `@doc since: "1.4.0"`
        return None, index + 1

    def _read_spec(self, index: int) -> Tuple[str, int]:
        match = _SPEC.match(self.lines[index])
        parts = [match.group("text").strip()] if match else []
        index += 1
        while index < len(self.lines):
            joined = " ".join(parts)
            following = self.lines[index].strip()
            if (
                _unbalanced(joined)
                or joined.endswith(("::", "|", ","))
                or following.startswith(("|", "::", "when "))
            ):
                parts.append(following)
                index += 1
                continue
            break
        return " ".join(parts), index

    def _record_spec(self, module_name: str, text: str) -> None:
        head = _SPEC_HEAD.match(text)
        if not head:
            return
        if head.group("open"):
            close = find_matching(text, head.end() - 1)
            if close < 0:
                return
            args = split_top_level(text[head.end() : close])
            rest = text[close + 1 :].strip()
        else:
            args = []
            rest = text[head.end() :].strip()
        if not rest.startswith("::"):
            return
        returns = re.split(r"\s+when\s+", rest[2:], maxsplit=1)[0].strip()
        arg_types = []
        for arg in args:
            if "::" in arg and _IDENT.match(arg.split("::", 1)[0].strip()):
                arg = arg.split("::", 1)[1]
            arg_types.append(TypeRef.parse(arg))
        self.specs[(module_name, head.group("name"), len(args))] = (
            arg_types,
            TypeRef.parse(returns),
        )

    def _read_function(
        self, match: re.Match[str], index: int, module_name: str, doc: Optional[str]
    ) -> Tuple[FunctionSignature, int]:
        indent = len(match.group("indent"))
        name = match.group("name")
        rest = match.group("rest")
        line = self.lines[index]
        params: List[Parameter] = []
        header = index
        tail = rest

        if rest.startswith("("):
            open_at = self.offsets[index] + len(line) - len(rest)
            close_at = find_matching(self.text, open_at)
            if close_at < 0:
                raise ValueError(f"unbalanced parameter list for {name} at line {index + 1}")
            raw_params = split_top_level(self.text[open_at + 1 : close_at])
            params = [_parse_param(raw, position) for position, raw in enumerate(raw_params)]
            header = self._line_of(close_at)
            tail = self.text[close_at + 1 : self.offsets[header] + len(self.lines[header])]

        end = self._find_end(header, tail, indent)
        docstring = doc or ""
        func = FunctionSignature(
            name=name,
            module_path=module_name,
            params=params,
            docstring=docstring,
            examples=extract_examples(docstring, "iex>", "...>"),
            source_location=SourceLocation(
                self.relative, index + 1, indent + 1, end + 1, len(self.lines[end]) + 1
            ),
            metadata={
                "body": dedent_block(self.lines[index : end + 1]),
                "spans": [(index + 1, end + 1)],
                "visibility": "public" if match.group("kind") == "def" else "private",
            },
        )
        return func, end

    def _find_end(self, header: int, tail: str, indent: int) -> int:
        if _DO_INLINE.search(tail):
            return self._inline_end(header, indent)
        if _DO_BLOCK.search(tail):
            return self._block_end(header, indent)
        # guards or `do:` continued on the following, deeper indented lines
        probe = header + 1
        while probe < len(self.lines):
            line = self.lines[probe]
            if not line.strip() or _indent_of(line) <= indent:
                break
            if _DO_INLINE.search(line):
                return self._inline_end(probe, indent)
            if _DO_BLOCK.search(line):
                return self._block_end(probe, indent)
            probe += 1
        # bodiless head declaring defaults
        return header

    def _merge_clause(self, existing: FunctionSignature, clause: FunctionSignature) -> None:
        start = existing.source_location.line
        end = clause.source_location.end_line or clause.source_location.line
        existing.source_location = SourceLocation(
            self.relative,
            start,
            existing.source_location.column,
            end,
            clause.source_location.end_column,
        )
        # other functions may sit between clauses, so each clause keeps its own span
        spans = existing.metadata["spans"]
        spans.extend(clause.metadata.get("spans", []))
        existing.metadata["body"] = "\n\n".join(
            dedent_block(self.lines[first - 1 : last]) for first, last in spans
        )
        existing.metadata["clauses"] = int(existing.metadata.get("clauses", 1)) + 1
        if not existing.docstring and clause.docstring:
            existing.docstring = clause.docstring
            existing.examples = clause.examples
        for position, (current, other) in enumerate(zip(existing.params, clause.params)):
            placeholder = f"arg{position}"
            if current.name == placeholder and other.name != placeholder:
                current.name = other.name

    def _apply_specs(self, module: Module) -> None:
        for func in module.functions:
            spec = self.specs.get((module.name, func.name, len(func.params)))
            if spec is None:
                continue
            arg_types, returns = spec
            func.return_type = returns
            for param, type_ref in zip(func.params, arg_types):
                if param.type == UNKNOWN_TYPE:
                    param.type = type_ref
            func.metadata["spec"] = True


def _parse_param(raw: str, position: int) -> Parameter:
    text = raw.strip()
    default: Optional[str] = None
    if "\\\\" in text:
        text, default = (part.strip() for part in text.split("\\\\", 1))
    type_ref = UNKNOWN_TYPE
    if "::" in text and _IDENT.match(text.split("::", 1)[0].strip()):
        text, annotation = (part.strip() for part in text.split("::", 1))
        type_ref = TypeRef.parse(annotation)
    bindings = split_top_level(text, "=")
    if len(bindings) == 2:
        left, right = bindings
        text = right if _IDENT.match(right) else left
    name = text if _IDENT.match(text) else f"arg{position}"
    return Parameter(name=name, type=type_ref, default=default)


def _indent_of(line: str) -> int:
    return len(line) - len(line.lstrip())


def _unbalanced(text: str) -> bool:
    return sum(text.count(char) for char in "([{") > sum(text.count(char) for char in ")]}")


__all__ = ["ElixirParser"]
