"""Rust adapter working on a comment- and literal-blanked copy of the source."""

from __future__ import annotations

import bisect
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..models import UNKNOWN_TYPE, FunctionSignature, Module, Parameter, SourceLocation, TypeRef
from .base import LibraryParser, dedent_block, find_matching, read_source, split_top_level

_FN = re.compile(
    r"(?P<prefix>(?:\bpub(?:\s*\([^)]*\))?\s+)?"
    r"(?:(?:const|async|unsafe|default)\s+)*"
    r'(?:extern\s+(?:"[^"]*"\s+)?)?)'
    r"\bfn\s+(?P<name>[A-Za-z_]\w*)"
)
_IMPL = re.compile(r"\bimpl\b")
_TRAIT = re.compile(r"\btrait\s+(?P<name>[A-Za-z_]\w*)")
_MOD = re.compile(r"\bmod\s+(?P<name>[A-Za-z_]\w*)\s*\{")
_RAW_STRING = re.compile(r'b?r(#*)"')
_CHAR_LITERAL = re.compile(r"'(?:\\(?:x[0-9a-fA-F]{2}|u\{[0-9a-fA-F]+\}|.)|[^\\'\n])'")
_SELF_PARAM = re.compile(r"^(?:&(?:'\w+\s+)?)?(?:mut\s+)?self\b")
_TYPE_NAME = re.compile(r"\s*&?(?:'\w+\s+)?(?:mut\s+|dyn\s+)?(?P<name>[A-Za-z_][\w:]*)")
_PATTERN_NAME = re.compile(r"^(?:ref\s+)?(?:mut\s+)?(?P<name>[A-Za-z_]\w*)$")
_FENCE = re.compile(r"^\s*```")


@dataclass
class _Scope:
    kind: str
    name: str
    start: int
    end: int


class RustParser(LibraryParser):
    """Extract ``fn`` items, including methods of ``impl`` and ``trait`` blocks."""

    ecosystem = "rust"
    extensions = (".rs",)

    def parse_file(self, path: Path, root: Path) -> Optional[Module]:
        text = read_source(path)
        relative = path.relative_to(root).as_posix()
        module_name = _module_name(path, root)
        clean = sanitize(text)
        lines = text.splitlines()
        offsets = _line_offsets(text)
        scopes = _scopes(clean, lines, offsets)

        module = Module(
            name=module_name,
            path=relative,
            docstring=_module_doc(lines),
            source_location=SourceLocation(relative, 1, 1, max(len(lines), 1)),
        )
        groups: Dict[str, Module] = {}
        consumed = -1

        for match in _FN.finditer(clean):
            start = match.start()
            if start < consumed:
                continue
            enclosing = [scope for scope in scopes if scope.start < start < scope.end]
            if any(scope.kind == "test" for scope in enclosing):
                continue
            func, end = _read_fn(match, start, text, clean, lines, offsets, relative)
            if func is None:
                continue
            consumed = end

            path_parts = [module_name]
            path_parts.extend(scope.name for scope in enclosing if scope.kind == "mod")
            owner = [scope for scope in enclosing if scope.kind in {"impl", "trait", "trait_impl"}]
            if owner:
                path_parts.append(owner[-1].name)
                # trait items carry the visibility of the trait itself
                if owner[-1].kind in {"trait", "trait_impl"}:
                    func.metadata["visibility"] = "public"
            func.module_path = "::".join(path_parts)

            if func.module_path == module_name:
                module.functions.append(func)
            else:
                group = groups.get(func.module_path)
                if group is None:
                    group = Module(name=func.module_path, path=relative)
                    groups[func.module_path] = group
                    module.submodules.append(group)
                group.functions.append(func)

        return module


def sanitize(text: str) -> str:
    """Blank comments, string and char literals while keeping offsets and newlines."""
    out = list(text)
    length = len(text)

    def blank(start: int, end: int) -> None:
        for position in range(start, min(end, length)):
            if out[position] != "\n":
                out[position] = " "

    index = 0
    while index < length:
        char = text[index]
        if text.startswith("//", index):
            end = text.find("\n", index)
            end = length if end < 0 else end
            blank(index, end)
            index = end
            continue
        if text.startswith("/*", index):
            depth = 0
            cursor = index
            while cursor < length:
                if text.startswith("/*", cursor):
                    depth += 1
                    cursor += 2
                elif text.startswith("*/", cursor):
                    depth -= 1
                    cursor += 2
                    if depth == 0:
                        break
                else:
                    cursor += 1
            blank(index, cursor)
            index = cursor
            continue
        raw = _RAW_STRING.match(text, index)
        if raw and (index == 0 or not (text[index - 1].isalnum() or text[index - 1] == "_")):
            terminator = '"' + raw.group(1)
            end = text.find(terminator, raw.end())
            end = length if end < 0 else end
            blank(raw.end(), end)
            index = end + len(terminator)
            continue
        if char == '"':
            cursor = index + 1
            while cursor < length and text[cursor] != '"':
                cursor += 2 if text[cursor] == "\\" else 1
            blank(index + 1, cursor)
            index = cursor + 1
            continue
        if char == "'":
            literal = _CHAR_LITERAL.match(text, index)
            if literal:
                blank(index + 1, literal.end() - 1)
                index = literal.end()
                continue
        index += 1
    return "".join(out)


def _module_name(path: Path, root: Path) -> str:
    parts = list(path.relative_to(root).with_suffix("").parts)
    if parts and parts[0] == "src":
        parts = parts[1:]
    if parts and parts[-1] in {"lib", "main", "mod"}:
        parts = parts[:-1]
    return "::".join(parts) or root.name


def _line_offsets(text: str) -> List[int]:
    offsets: List[int] = []
    offset = 0
    for line in text.splitlines(keepends=True):
        offsets.append(offset)
        offset += len(line)
    return offsets


def _line_of(offsets: List[int], position: int) -> int:
    return max(bisect.bisect_right(offsets, position) - 1, 0)


def _module_doc(lines: List[str]) -> str:
    collected: List[str] = []
    for line in lines:
        stripped = line.strip()
        if stripped.startswith("//!"):
            collected.append(_strip_marker(stripped, "//!"))
        elif stripped and not stripped.startswith("#!["):
            break
    return "\n".join(collected).strip()


def _strip_marker(line: str, marker: str) -> str:
    content = line[len(marker) :]
    return content[1:] if content.startswith(" ") else content


def _scopes(clean: str, lines: List[str], offsets: List[int]) -> List[_Scope]:
    scopes: List[_Scope] = []
    for match in _MOD.finditer(clean):
        open_at = match.end() - 1
        close_at = find_matching(clean, open_at, "{", "}")
        if close_at < 0:
            continue
        line = _line_of(offsets, match.start())
        attributes = " ".join(lines[max(line - 2, 0) : line + 1])
        kind = "test" if match.group("name") == "tests" or "cfg(test)" in attributes else "mod"
        scopes.append(_Scope(kind, match.group("name"), open_at, close_at))

    for match in _TRAIT.finditer(clean):
        open_at = clean.find("{", match.end())
        if open_at < 0 or ";" in clean[match.end() : open_at]:
            continue
        close_at = find_matching(clean, open_at, "{", "}")
        if close_at >= 0:
            scopes.append(_Scope("trait", match.group("name"), open_at, close_at))

    for match in _IMPL.finditer(clean):
        open_at = clean.find("{", match.end())
        if open_at < 0:
            continue
        close_at = find_matching(clean, open_at, "{", "}")
        header = clean[match.end() : open_at]
        name = _impl_target(header)
        kind = "trait_impl" if re.search(r"\bfor\b", header) else "impl"
        if close_at >= 0 and name:
            scopes.append(_Scope(kind, name, open_at, close_at))

    scopes.sort(key=lambda scope: scope.start)
    return scopes


def _impl_target(header: str) -> str:
    header = header.strip()
    if header.startswith("<"):
        close = _matching_angle(header, 0)
        header = header[close + 1 :] if close >= 0 else header
    header = re.split(r"\bwhere\b", header, maxsplit=1)[0]
    if re.search(r"\bfor\b", header):
        header = re.split(r"\bfor\b", header, maxsplit=1)[1]
    match = _TYPE_NAME.match(header)
    if not match:
        return ""
    return match.group("name").split("::")[-1]


def _matching_angle(text: str, start: int) -> int:
    depth = 0
    for index in range(start, len(text)):
        char = text[index]
        if char == "<":
            depth += 1
        elif char == ">" and text[index - 1 : index] != "-":
            depth -= 1
            if depth == 0:
                return index
    return -1


def _read_fn(
    match: re.Match[str],
    start: int,
    text: str,
    clean: str,
    lines: List[str],
    offsets: List[int],
    relative: str,
) -> Tuple[Optional[FunctionSignature], int]:
    cursor = match.end()
    while cursor < len(clean) and clean[cursor].isspace():
        cursor += 1
    if cursor < len(clean) and clean[cursor] == "<":
        closing = _matching_angle(clean, cursor)
        if closing < 0:
            return None, start
        cursor = closing + 1
    open_paren = clean.find("(", cursor)
    if open_paren < 0:
        return None, start
    close_paren = find_matching(clean, open_paren)
    if close_paren < 0:
        return None, start

    brace = clean.find("{", close_paren)
    semicolon = clean.find(";", close_paren)
    if brace < 0 or (0 <= semicolon < brace):
        # declaration without a body, e.g. a required trait method
        return None, start
    body_end = find_matching(clean, brace, "{", "}")
    if body_end < 0:
        raise ValueError(f"unbalanced braces in fn {match.group('name')}")

    signature_tail = text[close_paren + 1 : brace]
    return_type = TypeRef("()")
    if "->" in signature_tail:
        returns = signature_tail.split("->", 1)[1]
        returns = re.split(r"\bwhere\b", returns, maxsplit=1)[0].strip()
        return_type = TypeRef.parse(returns)

    first_line = _line_of(offsets, start)
    last_line = _line_of(offsets, body_end)
    docstring = _doc_comment(lines, first_line)
    prefix = match.group("prefix") or ""
    visibility = "public" if re.match(r"pub\s", prefix.strip() + " ") else "private"
    params = [
        param
        for position, raw in enumerate(split_top_level(text[open_paren + 1 : close_paren], quotes=('"',)))
        for param in [_parse_param(raw, position)]
        if param is not None
    ]
    column = start - offsets[first_line] + 1
    func = FunctionSignature(
        name=match.group("name"),
        module_path="",
        params=params,
        return_type=return_type,
        docstring=docstring,
        examples=_fenced_examples(docstring),
        source_location=SourceLocation(
            relative, first_line + 1, column, last_line + 1, body_end - offsets[last_line] + 1
        ),
        metadata={
            "body": dedent_block(lines[first_line : last_line + 1]),
            "visibility": visibility,
            "method": _has_self(text[open_paren + 1 : close_paren]),
        },
    )
    return func, body_end


def _has_self(raw_params: str) -> bool:
    parts = split_top_level(raw_params, quotes=('"',))
    return bool(parts) and bool(_SELF_PARAM.match(_strip_attributes(parts[0])))


def _strip_attributes(raw: str) -> str:
    return re.sub(r"#\[[^\]]*\]\s*", "", raw).strip()


def _parse_param(raw: str, position: int) -> Optional[Parameter]:
    text = _strip_attributes(raw)
    if _SELF_PARAM.match(text):
        return None
    colon = _top_level_colon(text)
    if colon < 0:
        return Parameter(name=f"arg{position}", type=TypeRef.parse(text))
    pattern = text[:colon].strip()
    annotation = text[colon + 1 :].strip()
    named = _PATTERN_NAME.match(pattern)
    name = named.group("name") if named else f"arg{position}"
    return Parameter(name=name, type=TypeRef.parse(annotation) if annotation else UNKNOWN_TYPE)


def _top_level_colon(text: str) -> int:
    depth = 0
    for index, char in enumerate(text):
        if char in "([{<":
            depth += 1
        elif char in ")]}>":
            depth -= 1
        elif char == ":" and depth == 0:
            following = text[index + 1 : index + 2]
            previous = text[index - 1 : index] if index else ""
            if following != ":" and previous != ":":
                return index
    return -1


def _doc_comment(lines: List[str], fn_line: int) -> str:
    collected: List[str] = []
    index = fn_line - 1
    while index >= 0:
        stripped = lines[index].strip()
        if stripped.startswith("///"):
            collected.append(_strip_marker(stripped, "///"))
        elif stripped.startswith("#[") or stripped.startswith("#!["):
            pass
        else:
            break
        index -= 1
    return "\n".join(reversed(collected)).strip()


def _fenced_examples(docstring: str) -> List[str]:
    examples: List[str] = []
    current: Optional[List[str]] = None
    for line in docstring.splitlines():
        if _FENCE.match(line):
            if current is None:
                current = []
            else:
                snippet = "\n".join(current).strip()
                if snippet:
                    examples.append(snippet)
                current = None
            continue
        if current is not None:
            current.append(line)
    return examples


__all__ = ["RustParser", "sanitize"]
