"""POSIX-style text tools: ``uniq`` and ``grep``.

Failures reading the filesystem are reported back as error tool results so the
caller sees them in-band instead of as a protocol error.
"""

from __future__ import annotations

import re
from typing import Any

import anyio

from context_gateway.registry import CapabilityRegistry
from context_gateway.types.content import TextContent
from context_gateway.types.tools import CallToolResult

UNIQ_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "path": {"type": "string", "description": "Path to the file to process"},
        "count": {"type": "boolean", "description": "Prefix lines by number of occurrences"},
        "repeated": {"type": "boolean", "description": "Only print duplicate lines"},
        "unique": {"type": "boolean", "description": "Only print unique lines"},
        "ignoreCase": {"type": "boolean", "description": "Ignore case when comparing"},
        "skipFields": {"type": "integer", "minimum": 0, "description": "Skip N fields before comparing"},
        "skipChars": {"type": "integer", "minimum": 0, "description": "Skip N characters before comparing"},
    },
    "required": ["path"],
}

GREP_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "pattern": {"type": "string", "description": "Pattern to search for"},
        "path": {"type": "string", "description": "Path to search in"},
        "recursive": {"type": "boolean", "description": "Search directories recursively"},
        "ignoreCase": {"type": "boolean", "description": "Ignore case distinctions"},
        "lineNumber": {"type": "boolean", "description": "Prefix each line with line number"},
        "invertMatch": {"type": "boolean", "description": "Select non-matching lines"},
        "wordMatch": {"type": "boolean", "description": "Match whole words only"},
    },
    "required": ["pattern", "path"],
}

NO_MATCHES = "No matches found"


def _tool_error(text: str) -> CallToolResult:
    return CallToolResult(content=[TextContent(text=text)], is_error=True)


def uniq_lines(
    lines: list[str],
    *,
    count: bool = False,
    repeated: bool = False,
    unique: bool = False,
    ignore_case: bool = False,
    skip_fields: int | None = None,
    skip_chars: int | None = None,
) -> list[str]:
    """Collapse lines that compare equal, keeping the first occurrence.

    Comparison keys ignore the first ``skip_fields`` fields split on
    whitespace runs (a leading indent counts as an empty field), then the
    first ``skip_chars`` characters.
    """
    keyed: list[tuple[str, str]] = []
    for line in lines:
        key = line
        if skip_fields is not None:
            key = " ".join(re.split(r"\s+", line)[skip_fields:])
        if skip_chars is not None:
            key = key[skip_chars:]
        if ignore_case:
            key = key.lower()
        keyed.append((line, key))

    counts: dict[str, int] = {}
    for _, key in keyed:
        counts[key] = counts.get(key, 0) + 1

    output: list[str] = []
    seen: set[str] = set()
    for line, key in keyed:
        if repeated:
            keep = counts[key] > 1
        elif unique:
            keep = counts[key] == 1
        else:
            keep = key not in seen
        seen.add(key)
        if keep:
            output.append(f"{counts[key]} {line}" if count else line)
    return output


async def uniq(args: dict[str, Any]) -> str | CallToolResult:
    try:
        content = await anyio.Path(args["path"]).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        return _tool_error(f"Error processing file: {e}")

    lines = [line for line in content.split("\n") if line]
    output = uniq_lines(
        lines,
        count=args.get("count", False),
        repeated=args.get("repeated", False),
        unique=args.get("unique", False),
        ignore_case=args.get("ignoreCase", False),
        skip_fields=args.get("skipFields"),
        skip_chars=args.get("skipChars"),
    )
    return "\n".join(output)


async def _grep_file(path: anyio.Path, regex: re.Pattern[str], invert: bool, line_number: bool) -> list[str]:
    content = await path.read_text(encoding="utf-8", errors="replace")
    results = []
    for i, line in enumerate(content.split("\n"), start=1):
        if (regex.search(line) is not None) != invert:
            prefix = f"{i}:" if line_number else ""
            results.append(f"{path}:{prefix}{line}")
    return results


async def _grep_directory(
    path: anyio.Path, regex: re.Pattern[str], invert: bool, line_number: bool, recursive: bool
) -> list[str]:
    results: list[str] = []
    entries = sorted([entry async for entry in path.iterdir()], key=lambda p: p.name)
    for entry in entries:
        if await entry.is_dir():
            if recursive:
                results.extend(await _grep_directory(entry, regex, invert, line_number, recursive))
        elif await entry.is_file():
            results.extend(await _grep_file(entry, regex, invert, line_number))
    return results


async def grep(args: dict[str, Any]) -> str | CallToolResult:
    pattern = args["pattern"]
    if args.get("wordMatch"):
        pattern = rf"\b{pattern}\b"
    try:
        regex = re.compile(pattern, re.IGNORECASE if args.get("ignoreCase") else 0)
    except re.error as e:
        return _tool_error(f"Invalid pattern: {e}")

    invert = bool(args.get("invertMatch"))
    line_number = bool(args.get("lineNumber"))
    path = anyio.Path(args["path"])
    try:
        if await path.is_dir():
            results = await _grep_directory(path, regex, invert, line_number, bool(args.get("recursive")))
        else:
            results = await _grep_file(path, regex, invert, line_number)
    except OSError as e:
        return _tool_error(f"Error searching files: {e}")

    return "\n".join(results) if results else NO_MATCHES


def install_uniq_tool(registry: CapabilityRegistry) -> None:
    registry.register("tool", "uniq", "Report or filter out repeated lines", UNIQ_SCHEMA, uniq)


def install_grep_tool(registry: CapabilityRegistry) -> None:
    registry.register("tool", "grep", "Search for patterns in files", GREP_SCHEMA, grep)
