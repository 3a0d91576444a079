"""Grammar for the signature positions catalogue text.

The catalogue is a flat collection of blocks shaped like::

    "absa-form": {
      x: 78,
      y: 376,
      width: 200,
      height: 60,
      opacity: 1
    },

This module is the only place that knows that shape. Reads, verification and
writes all go through the same block matcher so they always agree on which
position is in effect. Anything that does not match the block shape (nested
braces, comments, other declarations) is left alone and is invisible to the
parser.
"""

import re
from decimal import Decimal
from typing import Dict, Iterator, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from position_store.schemas.signature_position import INTEGER_FIELDS, PositionRecord
from position_store.utils.exceptions import (
    CatalogueFormatError,
    MalformedRecordError,
    ValidationError,
)

INDENT_STEP = "  "
DEFAULT_ENTRY_INDENT = "  "

# Shortest brace-free run after the key, so a block never spans nested braces.
# The body (between the braces) is captured; fields are only read from it.
_BLOCK_BODY = r"\s*:\s*\{([^{}]*)\}"
_ANY_BLOCK_RE = re.compile(r'"([^"\r\n]+)"' + _BLOCK_BODY)

_INT_FIELD_RES = {
    name: re.compile(r"\b" + name + r"\s*:\s*(\d+)\b(?!\.)")
    for name in INTEGER_FIELDS
}
_OPACITY_RE = re.compile(r"\bopacity\s*:\s*(\d*\.?\d+)")


def validate_template_key(template_key: str) -> str:
    """Return the stripped key, rejecting keys that cannot be written as a quoted string."""
    key = (template_key or "").strip()
    if not key:
        raise ValidationError("Template key is required", field="template_key")
    if '"' in key or "\n" in key or "\r" in key:
        raise ValidationError(
            f"Template key contains characters that cannot be stored: {key!r}",
            field="template_key",
        )
    return key


def block_pattern(template_key: str) -> "re.Pattern[str]":
    """Compiled matcher for one key's block (exact quoted-string match)."""
    return re.compile('"' + re.escape(template_key) + '"' + _BLOCK_BODY)


def find_position_block(text: str, template_key: str) -> Optional["re.Match[str]"]:
    """First block for ``template_key`` in ``text``, or None."""
    return block_pattern(template_key).search(text)


def iter_position_blocks(text: str) -> Iterator[Tuple[str, "re.Match[str]"]]:
    """Yield ``(template_key, match)`` for every block in file order."""
    for match in _ANY_BLOCK_RE.finditer(text):
        yield match.group(1), match


def parse_position_block(template_key: str, block_text: str) -> PositionRecord:
    """Extract a PositionRecord from the text between one block's braces.

    Raises:
        MalformedRecordError: a required integer field is missing or a value
            is out of range.
    """
    values = {}
    missing: List[str] = []
    for name, pattern in _INT_FIELD_RES.items():
        found = pattern.search(block_text)
        if found is None:
            missing.append(name)
        else:
            values[name] = int(found.group(1))

    if missing:
        raise MalformedRecordError(template_key, missing, block_text)

    opacity_match = _OPACITY_RE.search(block_text)
    if opacity_match:
        values["opacity"] = float(opacity_match.group(1))

    try:
        return PositionRecord(**values)
    except PydanticValidationError as e:
        invalid = [str(err["loc"][0]) for err in e.errors() if err.get("loc")]
        raise MalformedRecordError(template_key, invalid or ["opacity"], block_text)


def parse_position(text: str, template_key: str) -> Optional[PositionRecord]:
    """Position for ``template_key`` as written in ``text``.

    Returns None when no block matches. Raises MalformedRecordError when a
    block matches but cannot be read.
    """
    match = find_position_block(text, template_key)
    if match is None:
        return None
    return parse_position_block(template_key, match.group(1))


def parse_catalogue(text: str) -> Tuple[Dict[str, PositionRecord], List[MalformedRecordError]]:
    """Every readable block in ``text``, first occurrence of a key winning.

    Malformed blocks are returned separately so callers can log them.
    """
    positions: Dict[str, PositionRecord] = {}
    errors: List[MalformedRecordError] = []
    seen = set()
    for key, match in iter_position_blocks(text):
        if key in seen:
            continue
        seen.add(key)
        try:
            positions[key] = parse_position_block(key, match.group(2))
        except MalformedRecordError as e:
            errors.append(e)
    return positions, errors


def format_opacity(value: float) -> str:
    """Shortest decimal text that parses back to exactly ``value`` (``1``, ``0.7``)."""
    text = repr(float(value))
    if "e" in text or "E" in text:
        text = format(Decimal(text), "f")
    if text.endswith(".0"):
        text = text[:-2]
    return text


def render_position_block(
    template_key: str,
    position: PositionRecord,
    indent: str = DEFAULT_ENTRY_INDENT,
    newline: str = "\n",
) -> str:
    """Canonical block text.

    The first line carries no indent because it is placed where the key
    starts; fields sit one step deeper than ``indent`` and the closing brace
    lines up with ``indent``. Lines are joined with ``newline``.
    """
    inner = indent + INDENT_STEP
    lines = [
        f'"{template_key}": {{',
        f"{inner}x: {position.x},",
        f"{inner}y: {position.y},",
        f"{inner}width: {position.width},",
        f"{inner}height: {position.height},",
        f"{inner}opacity: {format_opacity(position.opacity)}",
        f"{indent}}}",
    ]
    return newline.join(lines)


def _line_ending(text: str) -> str:
    return "\r\n" if "\r\n" in text else "\n"


def _line_indent(text: str, offset: int) -> str:
    line_start = text.rfind("\n", 0, offset) + 1
    return re.match(r"[ \t]*", text[line_start:offset]).group(0)


def _entry_indent(text: str) -> str:
    for _key, match in iter_position_blocks(text):
        return _line_indent(text, match.start())
    return DEFAULT_ENTRY_INDENT


def _closing_delimiter(text: str) -> int:
    index = text.rfind("};")
    if index == -1:
        index = text.rfind("}")
    return index


def upsert_position_block(text: str, template_key: str, position: PositionRecord) -> Tuple[str, bool]:
    """Replace or insert one key's block, leaving the rest of ``text`` as is.

    Returns:
        ``(new_text, inserted)`` where ``inserted`` is True when the key was
        not present before.

    Raises:
        CatalogueFormatError: the key is new and the text has no closing
            delimiter to insert before.
    """
    newline = _line_ending(text)
    match = find_position_block(text, template_key)
    if match is not None:
        block = render_position_block(template_key, position, _line_indent(text, match.start()), newline)
        return text[:match.start()] + block + text[match.end():], False

    close = _closing_delimiter(text)
    if close == -1:
        raise CatalogueFormatError(template_key, "no closing delimiter found in catalogue text")

    indent = _entry_indent(text)
    before, after = text[:close], text[close:]
    content = before.rstrip()
    trailing = before[len(content):]
    # Keep the collection syntactically valid: separate from the previous entry.
    needs_comma = not (content.endswith(",") or content.endswith("{"))
    block = render_position_block(template_key, position, indent, newline)
    new_text = (
        content
        + ("," if needs_comma else "")
        + newline
        + indent
        + block
        + (trailing if trailing else newline)
        + after
    )
    return new_text, True
