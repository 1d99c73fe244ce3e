"""Frontmatter codec for content files.

Content files start with a restricted YAML-like header::

    ---
    title: "Hello"
    tags: ["a", "b"]
    draft: true
    ---

    Body text...

Only one ``key: value`` pair per line is understood. Values are strings,
arrays, or booleans. Arrays are written as one-line JSON, which also
carries the profile's resume sections (arrays of mappings). Other array
elements read back as strings, so ``[1, true]`` gives ``["1", "true"]``.
Quoting a value always makes it a string, so ``"true"`` and ``"[x]"``
survive a round trip unchanged.
"""

import json
import re
from collections.abc import Mapping, Sequence
from typing import Any

FRONTMATTER_PATTERN = re.compile(
    r"\A---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)",
    re.DOTALL | re.MULTILINE,
)

QUOTES = ('"', "'")


def _split(text: str) -> tuple[str | None, str]:
    """Return (header block or None, remainder)."""
    match = FRONTMATTER_PATTERN.match(text)
    if match is None:
        return None, text
    return match.group(1), text[match.end() :]


def _is_quoted(value: str) -> bool:
    return len(value) >= 2 and value[0] == value[-1] and value[0] in QUOTES


def _array_element(value: Any) -> Any:
    """Mappings are kept; other JSON scalars become their string form."""
    if value is None or isinstance(value, (Mapping, str)):
        return value
    return json.dumps(value, ensure_ascii=False)


def _parse_array(value: str) -> list[Any]:
    try:
        data = json.loads(value)
    except ValueError:
        data = None
    if isinstance(data, list):
        elements = (_array_element(v) for v in data)
        return [v for v in elements if v is not None and v != ""]

    # Hand-written arrays: [a, b] or ['a', "b"]
    items = []
    for part in value[1:-1].split(","):
        part = part.strip()
        if _is_quoted(part):
            part = part[1:-1]
        if part:
            items.append(part)
    return items


def _parse_value(raw: str) -> Any:
    if _is_quoted(raw):
        return raw[1:-1]
    if raw.startswith("[") and raw.endswith("]"):
        return _parse_array(raw)
    if raw == "true":
        return True
    if raw == "false":
        return False
    return raw


def parse_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """Parse the header of ``text``.

    Returns (record, body). Without a closing delimiter the record is empty
    and the whole text is the body. Never raises on malformed input.
    """
    header, body = _split(text)
    if header is None:
        return {}, text

    record: dict[str, Any] = {}
    for line in header.splitlines():
        key, sep, raw = line.partition(":")
        key = key.strip()
        if not sep or not key:
            continue
        record[key] = _parse_value(raw.strip())
    return record, body


def _one_line(value: str) -> str:
    return value.replace("\r\n", " ").replace("\n", " ").replace("\r", " ")


def _format_array(values: Sequence[Any]) -> str:
    items = [_one_line(v) if isinstance(v, str) else v for v in values if v is not None]
    return json.dumps(items, ensure_ascii=False, default=str)


def generate_frontmatter(record: Mapping[str, Any]) -> str:
    """Serialize ``record`` as a header block, keys in insertion order.

    ``None`` and empty strings are omitted, so a parse of the output does not
    give those keys back.
    """
    lines = ["---"]
    for key, value in record.items():
        if value is None:
            continue
        if isinstance(value, bool):
            lines.append(f"{key}: {'true' if value else 'false'}")
        elif isinstance(value, (list, tuple)):
            lines.append(f"{key}: {_format_array(value)}")
        elif value == "":
            continue
        else:
            lines.append(f'{key}: "{_one_line(str(value))}"')
    lines.append("---")
    return "\n".join(lines) + "\n"


def compose_document(record: Mapping[str, Any], body: str = "") -> str:
    """Header, one blank separator line, then the body."""
    return generate_frontmatter(record) + "\n" + body


def split_document(text: str) -> tuple[dict[str, Any], str]:
    """Inverse of :func:`compose_document`.

    Like :func:`parse_frontmatter` but drops the single blank line that
    separates header and body.
    """
    header, _ = _split(text)
    record, body = parse_frontmatter(text)
    if header is not None:
        if body.startswith("\r\n"):
            body = body[2:]
        elif body.startswith("\n"):
            body = body[1:]
    return record, body
